"""
Tests for score table export.

Tests:
- Excel workbook sheets and cell content
- JSON payload
"""

import io
import json

import pandas as pd
import pytest
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.scale.export import (
    export_scores_to_json,
    export_table_to_excel,
    scores_payload,
    table_to_excel_bytes,
)
from src.scale.models import AggregatedScore
from src.scale.table import SortState

from conftest import make_group, make_metric, make_object


@pytest.fixture
def exported():
    group = make_group(metrics=[
        make_metric("m1", "Revenue", prefix="$", suffix="M", order=0),
        make_metric("m2", "Growth", suffix="%", order=1),
    ])
    objects = [
        make_object("o1", name="Alpha"),
        make_object("o2", name="Beta"),
        make_object("o3", name="Hidden", visible_in_graph=False),
    ]
    scores = [
        AggregatedScore(object_id="o1", metric_id="m1", average_value=12.5, total_ratings=2),
        AggregatedScore(object_id="o1", metric_id="m2", average_value=0, total_ratings=0),
        AggregatedScore(object_id="o2", metric_id="m1", average_value=40, total_ratings=1),
        AggregatedScore(object_id="o2", metric_id="m2", average_value=5, total_ratings=1),
    ]
    return group, objects, scores


class TestExcelExport:
    """Tests for the Excel exporter."""

    def test_sheets(self, exported):
        data = table_to_excel_bytes(*exported)
        sheets = pd.read_excel(io.BytesIO(data), sheet_name=None)
        assert list(sheets) == ['Scores', 'Raw Scores', 'Metrics', 'Summary']

    def test_scores_sheet_hides_hidden_items(self, exported):
        sheets = pd.read_excel(io.BytesIO(table_to_excel_bytes(*exported)), sheet_name=None)
        scores = sheets['Scores']
        assert list(scores['Name']) == ['Alpha', 'Beta']
        assert scores.loc[0, 'Revenue'] == '$12.5M'
        assert scores.loc[0, 'Growth'] == '–'

    def test_include_hidden_and_sort(self, exported):
        data = table_to_excel_bytes(*exported, sort_state=SortState('m1', 'desc'), include_hidden=True)
        raw = pd.read_excel(io.BytesIO(data), sheet_name='Raw Scores')
        assert list(raw['Name']) == ['Beta', 'Alpha', 'Hidden']
        assert raw.loc[0, 'Revenue'] == 40
        assert raw.loc[0, 'Revenue (ratings)'] == 1

    def test_summary(self, exported):
        summary = pd.read_excel(io.BytesIO(table_to_excel_bytes(*exported)), sheet_name='Summary')
        assert summary.loc[0, 'Group'] == 'Test Group'
        assert summary.loc[0, 'Items'] == 2
        assert summary.loc[0, 'Metrics'] == 2

    def test_file_export(self, exported, tmp_path):
        path = export_table_to_excel(*exported, str(tmp_path / "out" / "scores.xlsx"))
        assert Path(path).exists()


class TestJsonExport:
    """Tests for the JSON exporter."""

    def test_payload(self, exported):
        payload = scores_payload(*exported)
        assert payload['group']['name'] == 'Test Group'
        assert [m['id'] for m in payload['metrics']] == ['m1', 'm2']
        alpha = payload['items'][0]
        assert alpha['scores']['m1'] == {"average_value": 12.5, "total_ratings": 2, "applicable": True}

    def test_missing_scores_default_to_zero(self, exported):
        payload = scores_payload(*exported)
        hidden = payload['items'][2]
        assert hidden['visible_in_graph'] is False
        assert hidden['scores']['m1']['total_ratings'] == 0

    def test_text_and_file(self, exported, tmp_path):
        text = export_scores_to_json(*exported)
        assert json.loads(text)['items'][1]['name'] == 'Beta'

        path = export_scores_to_json(*exported, output_path=str(tmp_path / "scores.json"))
        with open(path, encoding='utf-8') as f:
            assert json.load(f)['group']['id'] == 'g1'

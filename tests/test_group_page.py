"""
Tests for the Group page's Rate tab, driven through Streamlit's AppTest.

Runs against the in-memory demo groups (no database, no password).
"""

import pytest
import sys
from pathlib import Path

# Add project root and frontend to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))
sys.path.insert(0, str(PROJECT_ROOT / "frontend"))

from streamlit.testing.v1 import AppTest

from scale_session import get_app
from src.scale.demo_data import FEATURED_GROUP_ID
from src.scale.models import UserIdentity
from src.utils.config import reload_settings

GROUP_PAGE = str(PROJECT_ROOT / "frontend" / "pages" / "02_Group.py")
RATER = UserIdentity(id="page-rater", name="Page Rater", email="page-rater@example.com")


@pytest.fixture
def demo_app(monkeypatch):
    """Fresh demo store for each page run."""
    monkeypatch.setenv("ENABLE_DATABASE", "false")
    monkeypatch.setenv("APP_PASSWORD", "")
    reload_settings()
    get_app.clear()
    yield
    get_app.clear()
    reload_settings()


def open_group_page() -> AppTest:
    at = AppTest.from_file(GROUP_PAGE, default_timeout=60)
    at.session_state["scale_user"] = RATER
    at.session_state["selected_group_id"] = FEATURED_GROUP_ID
    return at.run()


def rating_sliders(at: AppTest):
    return [s for s in at.slider if s.key and s.key.startswith("slider_")]


def rater_ratings():
    return get_app().repository.list_ratings(FEATURED_GROUP_ID, rater_id=RATER.id)


class TestRateTab:
    """Tests for saving ratings from the Rate tab."""

    def test_form_shows_one_item(self, demo_app):
        at = open_group_page()
        assert not at.exception
        item_keys = {s.key.split("_")[1] for s in rating_sliders(at)}
        assert len(item_keys) == 1

    def test_only_moved_slider_is_saved(self, demo_app):
        at = open_group_page()
        assert rater_ratings() == []

        sliders = rating_sliders(at)
        assert len(sliders) > 1
        moved = sliders[0]
        moved.set_value(moved.max)
        save = next(b for b in at.button if b.label == "Save ratings")
        save.click().run()

        assert not at.exception
        stored = rater_ratings()
        assert len(stored) == 1
        assert stored[0].metric_id in moved.key
        assert stored[0].value == pytest.approx(moved.max)

    def test_save_without_changes_writes_nothing(self, demo_app):
        at = open_group_page()
        save = next(b for b in at.button if b.label == "Save ratings")
        save.click().run()

        assert not at.exception
        assert rater_ratings() == []

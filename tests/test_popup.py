"""
Tests for popup placement and the hover/pin state machine.
"""

import pytest
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.scale.graph.popup import PopupController, Rect, Size, place_popup

CONTAINER = Rect(0, 0, 300, 300)
POPUP = Size(100, 50)


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class TestPlacePopup:
    """Tests for place_popup()."""

    def test_prefers_right(self):
        placement = place_popup(Rect(50, 100, 10, 10), CONTAINER, POPUP)
        assert placement.arrow_side == 'left'
        assert placement.x == 68
        assert placement.y == pytest.approx(80)

    def test_falls_back_to_left_near_right_edge(self):
        """Anchor at x=280 in a 300-wide container cannot fit a 100-wide popup on the right."""
        placement = place_popup(Rect(280, 100, 10, 10), CONTAINER, POPUP)
        assert placement.arrow_side == 'right'
        assert placement.x == 172
        assert placement.x + POPUP.width <= CONTAINER.right

    def test_above_when_no_side_fits(self):
        container = Rect(0, 0, 150, 300)
        placement = place_popup(Rect(70, 100, 10, 10), container, POPUP)
        assert placement.arrow_side == 'bottom'
        assert placement.x == 25
        assert placement.y == 42

    def test_below_when_no_room_above(self):
        container = Rect(0, 0, 150, 300)
        placement = place_popup(Rect(70, 20, 10, 10), container, POPUP)
        assert placement.arrow_side == 'top'
        assert placement.y == 38

    def test_clamped_horizontally(self):
        """A 110-wide container fits the popup on neither side of the anchor."""
        container = Rect(0, 0, 110, 300)
        placement = place_popup(Rect(5, 100, 10, 10), container, POPUP)
        assert placement.arrow_side == 'bottom'
        assert placement.x == 0
        placement = place_popup(Rect(95, 100, 10, 10), container, POPUP)
        assert placement.arrow_side == 'bottom'
        assert placement.x == 10

    def test_below_clamped_to_container_bottom(self):
        container = Rect(0, 0, 150, 100)
        placement = place_popup(Rect(70, 40, 10, 10), container, POPUP)
        assert placement.arrow_side == 'top'
        assert placement.y == 50
        assert placement.y + POPUP.height <= container.bottom

    def test_above_when_more_room_above_than_below(self):
        container = Rect(0, 0, 150, 100)
        placement = place_popup(Rect(70, 48, 10, 10), container, POPUP)
        assert placement.arrow_side == 'bottom'
        assert placement.y == 0

    def test_fallback_stays_inside_container(self):
        container = Rect(0, 0, 120, 90)
        for anchor_y in range(0, 90, 5):
            placement = place_popup(Rect(55, anchor_y, 10, 5), container, POPUP)
            assert container.y <= placement.y
            assert placement.y + POPUP.height <= container.bottom
            assert container.x <= placement.x
            assert placement.x + POPUP.width <= container.right

    def test_side_placement_clamped_vertically(self):
        placement = place_popup(Rect(50, 2, 10, 10), CONTAINER, POPUP)
        assert placement.y == 0
        placement = place_popup(Rect(50, 295, 10, 5), CONTAINER, POPUP)
        assert placement.y == 250

    def test_pinned_carried_through(self):
        assert place_popup(Rect(50, 100, 10, 10), CONTAINER, POPUP, pinned=True).pinned
        assert not place_popup(Rect(50, 100, 10, 10), CONTAINER, POPUP).pinned

    def test_never_overlaps_anchor_on_sides(self):
        anchor = Rect(150, 100, 20, 20)
        placement = place_popup(anchor, CONTAINER, POPUP)
        assert placement.x >= anchor.right or placement.x + POPUP.width <= anchor.x


class TestPopupController:
    """Tests for PopupController."""

    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest.fixture
    def controller(self, clock):
        return PopupController(hover_grace_seconds=0.15, clock=clock)

    def test_hover_opens_unpinned(self, controller):
        controller.hover("o1")
        assert controller.active.object_id == "o1"
        assert not controller.active.pinned

    def test_leave_closes_after_grace(self, controller, clock):
        controller.hover("o1")
        controller.leave("o1")
        clock.advance(0.1)
        assert controller.active is not None
        clock.advance(0.1)
        assert controller.active is None

    def test_moving_onto_popup_keeps_it_open(self, controller, clock):
        controller.hover("o1")
        controller.leave("o1")
        controller.enter_popup()
        clock.advance(1.0)
        assert controller.active.object_id == "o1"
        controller.leave_popup()
        clock.advance(0.2)
        assert controller.active is None

    def test_hover_other_object_switches(self, controller):
        controller.hover("o1")
        controller.hover("o2")
        assert controller.active.object_id == "o2"

    def test_click_pins(self, controller, clock):
        controller.hover("o1")
        controller.click("o1")
        controller.leave("o1")
        clock.advance(5)
        assert controller.active.pinned

    def test_pinned_ignores_hover(self, controller):
        controller.click("o1")
        controller.hover("o2")
        assert controller.active.object_id == "o1"

    def test_click_other_object_moves_pin(self, controller):
        controller.click("o1")
        controller.click("o2")
        assert controller.active.object_id == "o2"
        assert controller.active.pinned

    def test_outside_click_closes_pinned(self, controller):
        controller.click("o1")
        controller.outside_click(inside_popup=True, inside_anchor=False)
        assert controller.active is not None
        controller.outside_click(inside_popup=False, inside_anchor=False)
        assert controller.active is None

    def test_close_and_unpin(self, controller):
        controller.click("o1")
        controller.unpin()
        assert not controller.active.pinned
        controller.close()
        assert controller.active is None

"""
Popup placement and popup state for the graph.

``place_popup`` positions the detail panel next to an object's anchor without
covering the anchor or leaving the container. ``PopupController`` owns the
single "which popup is open" value and applies the hover/pin rules.
"""

import logging
import time
from dataclasses import dataclass, replace
from typing import Callable, Literal, Optional

logger = logging.getLogger(__name__)

ArrowSide = Literal['left', 'right', 'top', 'bottom']

DEFAULT_PADDING = 8.0
DEFAULT_HOVER_GRACE_SECONDS = 0.15


@dataclass(frozen=True)
class Rect:
    """Axis-aligned rectangle; y grows downward."""
    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def center_x(self) -> float:
        return self.x + self.width / 2

    @property
    def center_y(self) -> float:
        return self.y + self.height / 2

    def contains(self, px: float, py: float) -> bool:
        return self.x <= px <= self.right and self.y <= py <= self.bottom


@dataclass(frozen=True)
class Size:
    width: float
    height: float


@dataclass(frozen=True)
class PopupPlacement:
    """
    Top-left corner of the popup plus the edge carrying the pointer arrow.

    The arrow sits on the popup edge facing the anchor: a popup placed to the
    right of the anchor has its arrow on its left edge, and so on.
    """
    x: float
    y: float
    arrow_side: ArrowSide
    pinned: bool = False


def _clamp(value: float, low: float, high: float) -> float:
    # Popups larger than the container pin to the low edge
    if high < low:
        return low
    return max(low, min(high, value))


def place_popup(
    anchor_rect: Rect,
    container_rect: Rect,
    popup_size: Size,
    pinned: bool = False,
    padding: float = DEFAULT_PADDING,
) -> PopupPlacement:
    """
    Place a popup beside its anchor.

    Priority: right of the anchor, then left, then centered above (or below
    when there is more room below), clamped into the container on both axes.

    Args:
        anchor_rect: Screen rectangle of the object's marker
        container_rect: Rectangle of the plot container
        popup_size: Size of the popup to place
        pinned: Whether the popup is pinned (carried through to the placement)
        padding: Gap between anchor and popup

    Returns:
        PopupPlacement in the same coordinate space as the rectangles
    """
    needed_width = popup_size.width + padding
    side_y = _clamp(
        anchor_rect.center_y - popup_size.height / 2,
        container_rect.y,
        container_rect.bottom - popup_size.height,
    )

    room_right = container_rect.right - anchor_rect.right
    if room_right >= needed_width:
        return PopupPlacement(
            x=anchor_rect.right + padding,
            y=side_y,
            arrow_side='left',
            pinned=pinned,
        )

    room_left = anchor_rect.x - container_rect.x
    if room_left >= needed_width:
        return PopupPlacement(
            x=anchor_rect.x - padding - popup_size.width,
            y=side_y,
            arrow_side='right',
            pinned=pinned,
        )

    x = _clamp(
        anchor_rect.center_x - popup_size.width / 2,
        container_rect.x,
        container_rect.right - popup_size.width,
    )
    room_above = anchor_rect.y - container_rect.y
    room_below = container_rect.bottom - anchor_rect.bottom
    if room_above >= popup_size.height + padding or room_above >= room_below:
        y = anchor_rect.y - padding - popup_size.height
        arrow_side = 'bottom'
    else:
        y = anchor_rect.bottom + padding
        arrow_side = 'top'
    return PopupPlacement(
        x=x,
        y=_clamp(y, container_rect.y, container_rect.bottom - popup_size.height),
        arrow_side=arrow_side,
        pinned=pinned,
    )


@dataclass(frozen=True)
class ActivePopup:
    """The one popup currently open on a graph."""
    object_id: str
    pinned: bool = False
    anchor: Optional[Rect] = None


class PopupController:
    """
    Hover and pin state machine for graph popups.

    - Hovering an object opens an unpinned popup for it.
    - Leaving the object (or the popup) schedules a close after a grace delay;
      the close is suppressed while the pointer is over the popup.
    - Clicking an object pins its popup. Pinned popups ignore all hover
      events, including other objects' hovers, and close only through
      ``close()`` or a click outside both the popup and the anchor.
    """

    def __init__(
        self,
        hover_grace_seconds: float = DEFAULT_HOVER_GRACE_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.hover_grace_seconds = hover_grace_seconds
        self._clock = clock
        self._active: Optional[ActivePopup] = None
        self._close_deadline: Optional[float] = None
        self.pointer_over_popup = False

    @property
    def active(self) -> Optional[ActivePopup]:
        """Current popup, after applying any expired close delay."""
        self.tick()
        return self._active

    def tick(self) -> None:
        """Close an unpinned popup whose grace delay has elapsed."""
        if self._close_deadline is None:
            return
        if self.pointer_over_popup:
            return
        if self._clock() >= self._close_deadline:
            self._active = None
            self._close_deadline = None

    def hover(self, object_id: str, anchor: Optional[Rect] = None) -> None:
        if self._active is not None and self._active.pinned:
            return
        self._active = ActivePopup(object_id=object_id, pinned=False, anchor=anchor)
        self._close_deadline = None

    def leave(self, object_id: str) -> None:
        """Pointer left the object's marker."""
        if self._active is None or self._active.pinned:
            return
        if self._active.object_id != object_id:
            return
        self._schedule_close()

    def enter_popup(self) -> None:
        self.pointer_over_popup = True
        self._close_deadline = None

    def leave_popup(self) -> None:
        self.pointer_over_popup = False
        if self._active is not None and not self._active.pinned:
            self._schedule_close()

    def click(self, object_id: str, anchor: Optional[Rect] = None) -> None:
        """Clicking a marker pins its popup."""
        current_anchor = anchor
        if current_anchor is None and self._active is not None and self._active.object_id == object_id:
            current_anchor = self._active.anchor
        self._active = ActivePopup(object_id=object_id, pinned=True, anchor=current_anchor)
        self._close_deadline = None

    def outside_click(self, inside_popup: bool, inside_anchor: bool) -> None:
        """A click somewhere on the page; closes a pinned popup if outside it."""
        if self._active is None or not self._active.pinned:
            return
        if inside_popup or inside_anchor:
            return
        self.close()

    def unpin(self) -> None:
        if self._active is not None:
            self._active = replace(self._active, pinned=False)

    def close(self) -> None:
        self._active = None
        self._close_deadline = None
        self.pointer_over_popup = False

    def _schedule_close(self) -> None:
        self._close_deadline = self._clock() + self.hover_grace_seconds

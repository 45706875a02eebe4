"""
Rating Debouncer

Slider edits fire many value changes per second. Each (object, metric) cell
gets its own cancellable delayed write: a new change for the cell replaces
the pending write, and only the last value inside the quiet period reaches
the store. Failed writes are reported through ``on_error`` and are not
retried.

The API's ``POST /api/v1/ratings`` endpoint keeps one debouncer per
(group, rater) for slider-driven clients; the Streamlit Rate tab saves
through a form and writes directly.
"""

import asyncio
import inspect
import logging
from typing import Awaitable, Callable, Dict, Optional, Set, Tuple, Union

logger = logging.getLogger(__name__)

CellKey = Tuple[str, str]  # (object_id, metric_id)
RatingWriter = Callable[[str, str, float], Union[None, Awaitable[object], object]]
ErrorHandler = Callable[[CellKey, Exception], None]

DEFAULT_DELAY_SECONDS = 0.5


class RatingDebouncer:
    """Per-cell debounced rating writes on an asyncio event loop."""

    def __init__(
        self,
        write: RatingWriter,
        delay: float = DEFAULT_DELAY_SECONDS,
        on_error: Optional[ErrorHandler] = None,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ):
        """
        Initialize the debouncer.

        Args:
            write: Called as write(object_id, metric_id, value); may be a
                coroutine function
            delay: Quiet period in seconds after the last change
            on_error: Called with (cell, exception) when a write fails
            loop: Event loop (defaults to the running loop at schedule time)
        """
        self._write = write
        self.delay = delay
        self._on_error = on_error
        self._loop = loop
        self._handles: Dict[CellKey, asyncio.TimerHandle] = {}
        self._values: Dict[CellKey, float] = {}
        self._in_flight: Set[asyncio.Task] = set()

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    @property
    def pending(self) -> Dict[CellKey, float]:
        """Values waiting for their quiet period to elapse."""
        return dict(self._values)

    def schedule(self, object_id: str, metric_id: str, value: float) -> None:
        """Record a change; replaces any pending write for the same cell."""
        key = (object_id, metric_id)
        self._cancel_handle(key)
        self._values[key] = value
        self._handles[key] = self._get_loop().call_later(self.delay, self._fire, key)

    def cancel(self, object_id: str, metric_id: str) -> None:
        key = (object_id, metric_id)
        self._cancel_handle(key)
        self._values.pop(key, None)

    def cancel_all(self) -> None:
        """Drop every pending write (teardown)."""
        for key in list(self._handles):
            self._cancel_handle(key)
        self._values.clear()

    async def flush(self) -> None:
        """Fire every pending write now and wait for all writes to finish."""
        for key in list(self._handles):
            self._cancel_handle(key)
            self._fire(key)
        await self.drain()

    async def drain(self) -> None:
        """Wait for writes that have already started."""
        while self._in_flight:
            await asyncio.gather(*list(self._in_flight), return_exceptions=True)

    def _cancel_handle(self, key: CellKey) -> None:
        handle = self._handles.pop(key, None)
        if handle is not None:
            handle.cancel()

    def _fire(self, key: CellKey) -> None:
        self._handles.pop(key, None)
        if key not in self._values:
            return
        value = self._values.pop(key)
        object_id, metric_id = key
        try:
            result = self._write(object_id, metric_id, value)
        except Exception as e:
            self._report(key, e)
            return
        if inspect.isawaitable(result):
            task = self._get_loop().create_task(self._await_write(key, result))
            self._in_flight.add(task)
            task.add_done_callback(self._in_flight.discard)

    async def _await_write(self, key: CellKey, result: Awaitable[object]) -> None:
        try:
            await result
        except Exception as e:
            self._report(key, e)

    def _report(self, key: CellKey, error: Exception) -> None:
        logger.error(f"Rating write failed for {key[0]}/{key[1]}: {error}")
        if self._on_error is not None:
            self._on_error(key, error)

"""
Live Scoreboard

Keeps a group's aggregated scores current by subscribing to the group, its
objects and its ratings. Every emitted snapshot triggers a full
recomputation; there is no incremental state to drift.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from src.scale.models import AggregatedScore, Group, GroupObject, Rating
from src.scale.protocols.store_protocol import Unsubscribe
from src.scale.repositories.scale_repository import ScaleRepository
from src.scale.scoring.aggregation import ScoreIndex, compute_scores

logger = logging.getLogger(__name__)


@dataclass
class ScoreSnapshot:
    """Everything a graph or table needs for one render."""
    group: Group
    objects: List[GroupObject]
    ratings: List[Rating]
    scores: List[AggregatedScore]
    index: Optional[ScoreIndex] = field(repr=False, default=None)

    def __post_init__(self):
        if self.index is None:
            self.index = ScoreIndex(self.scores)


ScoreListener = Callable[[ScoreSnapshot], None]


class LiveScoreboard:
    """Subscription-driven score recomputation for one group."""

    def __init__(self, repository: ScaleRepository, group_id: str):
        """
        Initialize the scoreboard. Call ``start()`` to subscribe.

        Args:
            repository: Scale repository
            group_id: Group to follow
        """
        self._repository = repository
        self.group_id = group_id
        self._group: Optional[Group] = None
        self._objects: Optional[List[GroupObject]] = None
        self._ratings: Optional[List[Rating]] = None
        self._listeners: List[ScoreListener] = []
        self._unsubscribes: List[Unsubscribe] = []
        self._lock = threading.RLock()
        self.snapshot: Optional[ScoreSnapshot] = None
        self.group_deleted = False

    def add_listener(self, listener: ScoreListener) -> None:
        self._listeners.append(listener)
        if self.snapshot is not None:
            listener(self.snapshot)

    def start(self) -> "LiveScoreboard":
        if self._unsubscribes:
            return self
        self._unsubscribes = [
            self._repository.subscribe_group(self.group_id, self._on_group),
            self._repository.subscribe_objects(self.group_id, self._on_objects),
            self._repository.subscribe_ratings(self.group_id, self._on_ratings),
        ]
        logger.info(f"Live scoreboard started for group {self.group_id}")
        return self

    def close(self) -> None:
        for unsubscribe in self._unsubscribes:
            unsubscribe()
        self._unsubscribes = []
        logger.info(f"Live scoreboard closed for group {self.group_id}")

    def __enter__(self) -> "LiveScoreboard":
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _on_group(self, group: Optional[Group]) -> None:
        with self._lock:
            if group is None:
                self.group_deleted = self._group is not None
                self._group = None
                return
            self._group = group
            self._recompute()

    def _on_objects(self, objects: List[GroupObject]) -> None:
        with self._lock:
            self._objects = objects
            self._recompute()

    def _on_ratings(self, ratings: List[Rating]) -> None:
        with self._lock:
            self._ratings = ratings
            self._recompute()

    def _recompute(self) -> None:
        # Wait until every subscription has delivered its first snapshot
        if self._group is None or self._objects is None or self._ratings is None:
            return
        scores = compute_scores(
            self._objects,
            self._group.ordered_metrics,
            self._ratings,
            captain_id=self._group.captain_id,
        )
        self.snapshot = ScoreSnapshot(
            group=self._group,
            objects=list(self._objects),
            ratings=list(self._ratings),
            scores=scores,
        )
        for listener in list(self._listeners):
            try:
                listener(self.snapshot)
            except Exception as e:
                logger.error(f"Score listener failed for group {self.group_id}: {e}")

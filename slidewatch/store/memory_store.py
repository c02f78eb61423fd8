"""
In-process StateStore.

Suitable for single-process pollers and tests. State lives in plain dicts
guarded by one lock; each presentation's change log is a bounded deque, so
FIFO eviction happens on append.
"""

import logging
import threading
from collections import deque
from typing import Deque, Dict, List, Optional, Sequence

from ..config import DEFAULT_MAX_CHANGES
from ..diff.change_events import ChangeRecord
from ..snapshot.models import PresentationSnapshot
from .base import MonitoringState, StateStore

logger = logging.getLogger(__name__)


class InMemoryStateStore(StateStore):
    """
    Dict-backed snapshot store and change log.

    Thread-safe: every public method holds ``self._lock`` for its duration.
    """

    def __init__(self, max_changes: int = DEFAULT_MAX_CHANGES):
        if max_changes <= 0:
            raise ValueError(f"max_changes must be positive, got {max_changes}")
        self.max_changes = max_changes
        self._lock = threading.Lock()
        self._snapshots: Dict[str, PresentationSnapshot] = {}
        self._monitoring: Dict[str, bool] = {}
        self._logs: Dict[str, Deque[ChangeRecord]] = {}

    # -------------------------------------------------------------------------
    # SnapshotStore
    # -------------------------------------------------------------------------

    def get(self, presentation_id: str) -> Optional[PresentationSnapshot]:
        with self._lock:
            return self._snapshots.get(presentation_id)

    def put(self, presentation_id: str, snapshot: PresentationSnapshot) -> None:
        with self._lock:
            self._snapshots[presentation_id] = snapshot

    def delete(self, presentation_id: str) -> None:
        with self._lock:
            self._snapshots.pop(presentation_id, None)

    def monitoring_state(self, presentation_id: str) -> MonitoringState:
        with self._lock:
            if presentation_id not in self._monitoring:
                return MonitoringState.UNINITIALIZED
            if self._monitoring[presentation_id]:
                return MonitoringState.ACTIVE
            return MonitoringState.STOPPED

    def set_monitoring(self, presentation_id: str, active: bool) -> None:
        with self._lock:
            self._monitoring[presentation_id] = active

    # -------------------------------------------------------------------------
    # ChangeLogStore
    # -------------------------------------------------------------------------

    def _append_locked(self, presentation_id: str, records: Sequence[ChangeRecord]) -> int:
        log = self._logs.get(presentation_id)
        if log is None:
            log = deque(maxlen=self.max_changes)
            self._logs[presentation_id] = log

        evicted = max(0, len(log) + len(records) - self.max_changes)
        log.extend(records)
        if evicted:
            logger.debug(f"Evicted {evicted} oldest changes for {presentation_id}")
        return evicted

    def append(self, presentation_id: str, records: Sequence[ChangeRecord]) -> int:
        with self._lock:
            return self._append_locked(presentation_id, records)

    def get_all(self, presentation_id: str) -> List[ChangeRecord]:
        with self._lock:
            return list(self._logs.get(presentation_id, ()))

    def count(self, presentation_id: str) -> int:
        with self._lock:
            return len(self._logs.get(presentation_id, ()))

    # -------------------------------------------------------------------------
    # StateStore
    # -------------------------------------------------------------------------

    def clear(self, presentation_id: str) -> None:
        with self._lock:
            self._logs.pop(presentation_id, None)
            self._snapshots.pop(presentation_id, None)
            self._monitoring.pop(presentation_id, None)

    def commit_cycle(
        self,
        presentation_id: str,
        records: Sequence[ChangeRecord],
        current: PresentationSnapshot,
    ) -> int:
        with self._lock:
            evicted = self._append_locked(presentation_id, records)
            self._snapshots[presentation_id] = current
            return evicted

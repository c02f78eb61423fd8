"""
Diff orchestrator: one polling cycle per call, serialized per presentation.

A cycle is the unit of work

    load previous -> compare -> classify -> append records -> store current

and runs under a per-presentation lock, so two cycles for the same id never
read the same stale "previous" snapshot. Different ids run in parallel.

The append and the snapshot replacement are committed together through
``StateStore.commit_cycle``; a failure anywhere leaves the stored snapshot
and change log exactly as they were.

LIFECYCLE (per presentation id):
    UNINITIALIZED --start_monitoring--> ACTIVE (no baseline yet)
    ACTIVE, first cycle                 stores the baseline, returns []
    ACTIVE, later cycles                return the classified changes
    ACTIVE --stop_monitoring--> STOPPED (snapshot and log kept)
    any --clear--> UNINITIALIZED (snapshot, log and flag removed)

With ``auto_start`` enabled, a cycle for an UNINITIALIZED id starts
monitoring implicitly instead of raising NotInitializedError.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ..config import Settings
from ..diff.change_events import ChangeRecord, classify_all, summarize_changes
from ..diff.snapshot_diff import compare
from ..errors import CaptureError, NotInitializedError, SlideWatchError, SnapshotValidationError, StoreUnavailableError
from ..snapshot.models import PresentationSnapshot
from ..store.base import MonitoringState, StateStore
from .locks import KeyedLock

logger = logging.getLogger(__name__)


class SnapshotSource:
    """
    Capture collaborator interface.

    Implement ``capture`` to produce a fresh snapshot for a presentation id.
    Per-element failures should be recorded as ``extraction_error`` on the
    element rather than raised.
    """

    def capture(self, presentation_id: str) -> PresentationSnapshot:
        raise NotImplementedError


class DiffOrchestrator:
    """
    Runs polling cycles against an injected StateStore.

    Usage:
        orchestrator = DiffOrchestrator(InMemoryStateStore())
        orchestrator.start_monitoring("deck-1")
        orchestrator.run_cycle("deck-1", first)    # baseline, returns []
        changes = orchestrator.run_cycle("deck-1", second)
    """

    def __init__(
        self,
        store: StateStore,
        source: Optional[SnapshotSource] = None,
        auto_start: bool = False,
        lock_timeout: Optional[float] = None,
    ):
        """
        Args:
            store: Snapshot store and change log for all presentations
            source: Capture collaborator used by ``poll``
            auto_start: Start monitoring implicitly on the first cycle
            lock_timeout: Seconds to wait for a running cycle on the same id
                          before raising CycleBusyError (None blocks)
        """
        self.store = store
        self.source = source
        self.auto_start = auto_start
        self.lock_timeout = lock_timeout
        self._locks = KeyedLock()

    @classmethod
    def from_settings(
        cls,
        store: StateStore,
        settings: Settings,
        source: Optional[SnapshotSource] = None,
    ) -> "DiffOrchestrator":
        return cls(
            store,
            source=source,
            auto_start=settings.auto_start,
            lock_timeout=settings.lock_timeout,
        )

    # -------------------------------------------------------------------------
    # Store access
    # -------------------------------------------------------------------------

    def _store_call(self, operation: str, presentation_id: str, method, *args):
        """Call a store method, translating backend failures into StoreUnavailableError."""
        try:
            return method(*args)
        except SlideWatchError:
            raise
        except Exception as e:
            logger.error(f"Store {operation} failed for {presentation_id}: {e}", exc_info=True)
            raise StoreUnavailableError(operation, presentation_id, e) from e

    def _hold(self, presentation_id: str):
        return self._locks.hold(presentation_id, timeout=self.lock_timeout)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def start_monitoring(
        self,
        presentation_id: str,
        baseline: Optional[PresentationSnapshot] = None,
    ) -> None:
        """
        Mark a presentation as monitored.

        Args:
            presentation_id: Presentation to monitor
            baseline: Optional snapshot to store as previous right away; without
                      it the next cycle establishes the baseline
        """
        with self._hold(presentation_id):
            if baseline is not None:
                self._check_snapshot_id(presentation_id, baseline)
                self._store_call("put", presentation_id, self.store.put, presentation_id, baseline)
            self._store_call("set_monitoring", presentation_id, self.store.set_monitoring, presentation_id, True)
        logger.info(
            f"Started monitoring {presentation_id}"
            + (f" with baseline of {len(baseline.slides)} slides" if baseline is not None else "")
        )

    def stop_monitoring(self, presentation_id: str) -> None:
        """Stop monitoring; the stored snapshot and change log are kept."""
        with self._hold(presentation_id):
            state = self._store_call("monitoring_state", presentation_id, self.store.monitoring_state, presentation_id)
            if state == MonitoringState.UNINITIALIZED:
                raise NotInitializedError(presentation_id, state.value)
            self._store_call("set_monitoring", presentation_id, self.store.set_monitoring, presentation_id, False)
        logger.info(f"Stopped monitoring {presentation_id}")

    def clear(self, presentation_id: str) -> None:
        """Full reset: change log, previous snapshot and monitoring flag."""
        with self._hold(presentation_id):
            self._store_call("clear", presentation_id, self.store.clear, presentation_id)
        logger.info(f"Cleared all state for {presentation_id}")

    # -------------------------------------------------------------------------
    # Cycles
    # -------------------------------------------------------------------------

    @staticmethod
    def _check_snapshot_id(presentation_id: str, snapshot: PresentationSnapshot) -> None:
        if snapshot.presentation_id != presentation_id:
            raise SnapshotValidationError(
                f"Snapshot for presentation {snapshot.presentation_id} "
                f"passed to cycle for {presentation_id}"
            )

    def _ensure_active(self, presentation_id: str) -> bool:
        """Return True when the cycle must auto-start monitoring once its write lands."""
        state = self._store_call("monitoring_state", presentation_id, self.store.monitoring_state, presentation_id)
        if state == MonitoringState.ACTIVE:
            return False
        if state == MonitoringState.UNINITIALIZED and self.auto_start:
            return True
        raise NotInitializedError(presentation_id, state.value)

    def _auto_start(self, presentation_id: str) -> None:
        self._store_call("set_monitoring", presentation_id, self.store.set_monitoring, presentation_id, True)
        logger.info(f"Auto-started monitoring {presentation_id}")

    def _run_cycle_locked(self, presentation_id: str, current: PresentationSnapshot) -> List[ChangeRecord]:
        self._check_snapshot_id(presentation_id, current)
        needs_start = self._ensure_active(presentation_id)

        previous = self._store_call("get", presentation_id, self.store.get, presentation_id)
        if previous is None:
            self._store_call("put", presentation_id, self.store.put, presentation_id, current)
            if needs_start:
                self._auto_start(presentation_id)
            logger.info(
                f"Baseline established for {presentation_id}: "
                f"{len(current.slides)} slides, {current.element_count()} elements"
            )
            return []

        differences = compare(previous, current)
        records = classify_all(
            differences, detected_at=datetime.now(timezone.utc), presentation_id=presentation_id
        )

        evicted = self._store_call(
            "commit_cycle", presentation_id, self.store.commit_cycle, presentation_id, records, current
        )
        if needs_start:
            self._auto_start(presentation_id)

        logger.debug(
            f"Cycle for {presentation_id}: {len(records)} changes"
            + (f", {evicted} old changes evicted" if evicted else "")
        )
        return records

    def run_cycle(self, presentation_id: str, current: PresentationSnapshot) -> List[ChangeRecord]:
        """
        Run one cycle with an already captured snapshot.

        Args:
            presentation_id: Presentation the snapshot belongs to
            current: Freshly captured snapshot

        Returns:
            Change records of this cycle, in comparator order (empty on the
            baseline cycle or when nothing changed)

        Raises:
            NotInitializedError: Monitoring is not active for this id
            StoreUnavailableError: The store failed; nothing was written
            CycleBusyError: Another cycle for this id held the lock too long
            SnapshotValidationError: ``current`` belongs to another presentation
        """
        with self._hold(presentation_id):
            return self._run_cycle_locked(presentation_id, current)

    def poll(self, presentation_id: str) -> List[ChangeRecord]:
        """
        Capture a snapshot through the configured source and run a cycle.

        Capture happens inside the per-presentation lock so the snapshot
        compared is never older than the stored one.

        Raises:
            CaptureError: No source configured, or capture failed (no writes)
        """
        if self.source is None:
            raise CaptureError("No snapshot source configured for polling")

        with self._hold(presentation_id):
            try:
                current = self.source.capture(presentation_id)
            except CaptureError:
                raise
            except Exception as e:
                logger.error(f"Capture failed for {presentation_id}: {e}", exc_info=True)
                raise CaptureError(f"Capture failed for presentation {presentation_id}: {e}") from e
            return self._run_cycle_locked(presentation_id, current)

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get_changes(self, presentation_id: str) -> List[ChangeRecord]:
        """All retained change records, oldest first."""
        return self._store_call("get_all", presentation_id, self.store.get_all, presentation_id)

    def describe(self, presentation_id: str) -> Dict[str, Any]:
        """Debug view of the stored state for one presentation."""
        state = self._store_call("monitoring_state", presentation_id, self.store.monitoring_state, presentation_id)
        snapshot = self._store_call("get", presentation_id, self.store.get, presentation_id)
        records = self._store_call("get_all", presentation_id, self.store.get_all, presentation_id)

        info: Dict[str, Any] = {
            "presentationId": presentation_id,
            "monitoring": state.value,
            "hasBaseline": snapshot is not None,
            "changeCount": len(records),
            "maxChanges": self.store.max_changes,
            "summary": summarize_changes(records),
        }
        if snapshot is not None:
            info["presentationName"] = snapshot.presentation_name
            info["slideCount"] = len(snapshot.slides)
            info["elementCount"] = snapshot.element_count()
            info["elementTypes"] = snapshot.element_type_counts()
        return info

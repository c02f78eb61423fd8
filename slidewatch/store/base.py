"""
Store interfaces for slidewatch.

Two kinds of state survive between polling cycles, both keyed by
presentation id:

- the previous snapshot plus the monitoring flag (SnapshotStore)
- the bounded, append-only change log (ChangeLogStore)

StateStore combines both so a cycle's writes ("append the new records, then
replace the previous snapshot") can be committed as one unit. Implement it
with your backend; InMemoryStateStore and PostgresStateStore ship with the
package.

Only the DiffOrchestrator should call the mutating methods. Implementations
raise their own exceptions on failure; the orchestrator translates them into
StoreUnavailableError.
"""

from enum import Enum
from typing import List, Optional, Sequence

from ..diff.change_events import ChangeRecord
from ..snapshot.models import PresentationSnapshot


class MonitoringState(Enum):
    """Monitoring flag as persisted per presentation id."""
    UNINITIALIZED = "UNINITIALIZED"  # never started, or fully cleared
    ACTIVE = "ACTIVE"
    STOPPED = "STOPPED"              # snapshot and log retained


class SnapshotStore:
    """
    Previous-snapshot store interface.

    Holds at most one snapshot per presentation id: the one the next cycle
    compares against.
    """

    def get(self, presentation_id: str) -> Optional[PresentationSnapshot]:
        """
        Get the stored previous snapshot.

        Returns:
            The snapshot, or None if no baseline exists yet
        """
        raise NotImplementedError

    def put(self, presentation_id: str, snapshot: PresentationSnapshot) -> None:
        """Store ``snapshot`` as the previous snapshot, replacing any existing one."""
        raise NotImplementedError

    def delete(self, presentation_id: str) -> None:
        """Delete the previous snapshot (no-op if absent)."""
        raise NotImplementedError

    def monitoring_state(self, presentation_id: str) -> MonitoringState:
        """Get the monitoring flag for a presentation."""
        raise NotImplementedError

    def set_monitoring(self, presentation_id: str, active: bool) -> None:
        """Set the monitoring flag (ACTIVE when True, STOPPED when False)."""
        raise NotImplementedError

    def is_monitoring(self, presentation_id: str) -> bool:
        return self.monitoring_state(presentation_id) == MonitoringState.ACTIVE


class ChangeLogStore:
    """
    Bounded, append-only change log interface.

    Records are kept per presentation id in insertion order. When an append
    overflows the capacity the oldest records are evicted first; the newest
    are never evicted.
    """

    max_changes: int

    def append(self, presentation_id: str, records: Sequence[ChangeRecord]) -> int:
        """
        Append records in order.

        Returns:
            Number of older records evicted to stay within capacity
        """
        raise NotImplementedError

    def get_all(self, presentation_id: str) -> List[ChangeRecord]:
        """All retained records, oldest first."""
        raise NotImplementedError

    def count(self, presentation_id: str) -> int:
        return len(self.get_all(presentation_id))

    def clear(self, presentation_id: str) -> None:
        """Remove all records for a presentation."""
        raise NotImplementedError


class StateStore(SnapshotStore, ChangeLogStore):
    """
    Combined snapshot + change log store.

    ``clear`` here is a full reset: change log, previous snapshot and
    monitoring flag are all removed, returning the id to UNINITIALIZED.
    """

    def commit_cycle(
        self,
        presentation_id: str,
        records: Sequence[ChangeRecord],
        current: PresentationSnapshot,
    ) -> int:
        """
        Atomically append ``records`` and then replace the previous snapshot.

        Either both writes happen or neither does.

        Returns:
            Number of older records evicted from the change log
        """
        raise NotImplementedError

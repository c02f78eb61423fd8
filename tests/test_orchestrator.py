"""
Unit tests for the diff orchestrator.

These tests verify that:
1. The per-presentation lifecycle is enforced (start / baseline / stop / clear)
2. Repeating a cycle with the same snapshot yields no changes
3. A failing store leaves previous snapshot and change log untouched
4. Cycles for one presentation are serialized, different presentations are not
"""

import threading
import time

import pytest

from factories import make_position, make_shape, make_slide, make_snapshot
from slidewatch.diff.change_events import ChangeType
from slidewatch.errors import (
    CaptureError,
    CycleBusyError,
    NotInitializedError,
    SnapshotValidationError,
    StoreUnavailableError,
)
from slidewatch.config import Settings
from slidewatch.monitor import DiffOrchestrator, SnapshotSource
from slidewatch.store import InMemoryStateStore, MonitoringState


def deck(content: str = "Hello", x: float = 100, presentation_id: str = "deck-1"):
    return make_snapshot(
        presentation_id=presentation_id,
        slides=[make_slide(elements=[make_shape(content=content, position=make_position(x=x))])],
    )


@pytest.fixture
def store():
    return InMemoryStateStore(max_changes=50)


@pytest.fixture
def orchestrator(store):
    return DiffOrchestrator(store)


class FailingCommitStore(InMemoryStateStore):
    """Store whose cycle commit fails like an unreachable database."""

    def commit_cycle(self, presentation_id, records, current):
        raise ConnectionError("database unreachable")


class FailingReadStore(InMemoryStateStore):

    def get(self, presentation_id):
        raise TimeoutError("read timed out")


class StaticSource(SnapshotSource):

    def __init__(self, *snapshots):
        self.snapshots = list(snapshots)

    def capture(self, presentation_id):
        return self.snapshots.pop(0)


class BrokenSource(SnapshotSource):

    def capture(self, presentation_id):
        raise RuntimeError("Slides API quota exceeded")


# =============================================================================
# LIFECYCLE
# =============================================================================

class TestLifecycle:

    def test_cycle_without_start_raises(self, orchestrator, store):
        with pytest.raises(NotInitializedError) as exc_info:
            orchestrator.run_cycle("deck-1", deck())
        assert exc_info.value.state == "UNINITIALIZED"
        assert store.get("deck-1") is None

    def test_first_cycle_establishes_baseline(self, orchestrator, store):
        snapshot = deck()
        orchestrator.start_monitoring("deck-1")

        assert orchestrator.run_cycle("deck-1", snapshot) == []
        assert store.get("deck-1") is snapshot
        assert store.get_all("deck-1") == []

    def test_later_cycle_returns_and_logs_changes(self, orchestrator, store):
        orchestrator.start_monitoring("deck-1")
        orchestrator.run_cycle("deck-1", deck("Hello"))

        current = deck("Hello World")
        changes = orchestrator.run_cycle("deck-1", current)

        assert [c.change_type for c in changes] == [ChangeType.TEXT_CONTENT_CHANGED]
        assert store.get_all("deck-1") == changes
        assert store.get("deck-1") is current

    def test_start_with_baseline(self, orchestrator):
        orchestrator.start_monitoring("deck-1", baseline=deck(x=100))
        changes = orchestrator.run_cycle("deck-1", deck(x=150))
        assert [c.change_type for c in changes] == [ChangeType.ELEMENT_MOVED]

    def test_start_with_foreign_baseline_rejected(self, orchestrator):
        with pytest.raises(SnapshotValidationError):
            orchestrator.start_monitoring("deck-1", baseline=deck(presentation_id="deck-2"))

    def test_stopped_cycle_raises_and_keeps_state(self, orchestrator, store):
        orchestrator.start_monitoring("deck-1")
        orchestrator.run_cycle("deck-1", deck("a"))
        orchestrator.run_cycle("deck-1", deck("b"))
        orchestrator.stop_monitoring("deck-1")

        with pytest.raises(NotInitializedError) as exc_info:
            orchestrator.run_cycle("deck-1", deck("c"))

        assert exc_info.value.state == "STOPPED"
        assert store.get("deck-1").slides[0].elements[0].content == "b"
        assert len(store.get_all("deck-1")) == 1

    def test_restart_after_stop_resumes_from_stored_snapshot(self, orchestrator):
        orchestrator.start_monitoring("deck-1")
        orchestrator.run_cycle("deck-1", deck("a"))
        orchestrator.stop_monitoring("deck-1")
        orchestrator.start_monitoring("deck-1")

        changes = orchestrator.run_cycle("deck-1", deck("b"))
        assert len(changes) == 1

    def test_stop_uninitialized_raises(self, orchestrator):
        with pytest.raises(NotInitializedError):
            orchestrator.stop_monitoring("deck-1")

    def test_clear_returns_to_uninitialized(self, orchestrator, store):
        orchestrator.start_monitoring("deck-1")
        orchestrator.run_cycle("deck-1", deck("a"))
        orchestrator.run_cycle("deck-1", deck("b"))

        orchestrator.clear("deck-1")

        assert store.monitoring_state("deck-1") == MonitoringState.UNINITIALIZED
        assert store.get("deck-1") is None
        assert orchestrator.get_changes("deck-1") == []
        with pytest.raises(NotInitializedError):
            orchestrator.run_cycle("deck-1", deck("c"))

    def test_auto_start(self, store):
        orchestrator = DiffOrchestrator(store, auto_start=True)
        snapshot = deck()

        assert orchestrator.run_cycle("deck-1", snapshot) == []
        assert store.get("deck-1") is snapshot
        assert store.is_monitoring("deck-1")

    def test_auto_start_does_not_resume_stopped(self, store):
        orchestrator = DiffOrchestrator(store, auto_start=True)
        orchestrator.run_cycle("deck-1", deck())
        orchestrator.stop_monitoring("deck-1")
        with pytest.raises(NotInitializedError):
            orchestrator.run_cycle("deck-1", deck("b"))

    def test_from_settings(self, store):
        orchestrator = DiffOrchestrator.from_settings(store, Settings(auto_start=True, lock_timeout=2.5))
        assert orchestrator.auto_start is True
        assert orchestrator.lock_timeout == 2.5

    def test_snapshot_for_other_presentation_rejected(self, orchestrator):
        orchestrator.start_monitoring("deck-1")
        with pytest.raises(SnapshotValidationError):
            orchestrator.run_cycle("deck-1", deck(presentation_id="deck-2"))


# =============================================================================
# IDEMPOTENCE
# =============================================================================

class TestIdempotence:

    def test_same_snapshot_twice_yields_nothing(self, orchestrator, store):
        orchestrator.start_monitoring("deck-1")
        orchestrator.run_cycle("deck-1", deck("a"))

        current = deck("b")
        assert len(orchestrator.run_cycle("deck-1", current)) == 1
        assert orchestrator.run_cycle("deck-1", current) == []
        assert len(store.get_all("deck-1")) == 1

    def test_log_capacity_applies_across_cycles(self):
        store = InMemoryStateStore(max_changes=3)
        orchestrator = DiffOrchestrator(store)
        orchestrator.start_monitoring("deck-1")
        orchestrator.run_cycle("deck-1", deck("v0"))

        for n in range(1, 6):
            orchestrator.run_cycle("deck-1", deck(f"v{n}"))

        contents = [r.details["content"]["newValue"] for r in orchestrator.get_changes("deck-1")]
        assert contents == ["v3", "v4", "v5"]


# =============================================================================
# STORE FAILURES
# =============================================================================

class TestStoreFailures:

    def test_failed_commit_leaves_state_untouched(self):
        store = FailingCommitStore()
        orchestrator = DiffOrchestrator(store)
        baseline = deck("a")
        orchestrator.start_monitoring("deck-1", baseline=baseline)

        with pytest.raises(StoreUnavailableError) as exc_info:
            orchestrator.run_cycle("deck-1", deck("b"))

        assert exc_info.value.operation == "commit_cycle"
        assert isinstance(exc_info.value.__cause__, ConnectionError)
        assert store.get("deck-1") is baseline
        assert store.get_all("deck-1") == []

    def test_failed_read_is_typed(self):
        store = FailingReadStore()
        store.set_monitoring("deck-1", True)
        orchestrator = DiffOrchestrator(store)

        with pytest.raises(StoreUnavailableError) as exc_info:
            orchestrator.run_cycle("deck-1", deck())

        assert exc_info.value.presentation_id == "deck-1"
        assert exc_info.value.operation == "get"
        assert store.get_all("deck-1") == []

    def test_failed_read_does_not_auto_start(self):
        store = FailingReadStore()
        orchestrator = DiffOrchestrator(store, auto_start=True)

        with pytest.raises(StoreUnavailableError):
            orchestrator.run_cycle("deck-1", deck())

        assert store.monitoring_state("deck-1") == MonitoringState.UNINITIALIZED

    def test_failed_baseline_write_does_not_auto_start(self):
        class FailingPutStore(InMemoryStateStore):
            def put(self, presentation_id, snapshot):
                raise ConnectionError("database unreachable")

        store = FailingPutStore()
        orchestrator = DiffOrchestrator(store, auto_start=True)

        with pytest.raises(StoreUnavailableError):
            orchestrator.run_cycle("deck-1", deck())

        assert store.monitoring_state("deck-1") == MonitoringState.UNINITIALIZED


# =============================================================================
# POLLING
# =============================================================================

class TestPoll:

    def test_poll_uses_source(self, store):
        orchestrator = DiffOrchestrator(store, source=StaticSource(deck("a"), deck("b")))
        orchestrator.start_monitoring("deck-1")

        assert orchestrator.poll("deck-1") == []
        assert [c.change_type for c in orchestrator.poll("deck-1")] == [ChangeType.TEXT_CONTENT_CHANGED]

    def test_poll_without_source(self, orchestrator):
        with pytest.raises(CaptureError):
            orchestrator.poll("deck-1")

    def test_capture_failure_writes_nothing(self, store):
        orchestrator = DiffOrchestrator(store, source=BrokenSource())
        orchestrator.start_monitoring("deck-1", baseline=deck())

        with pytest.raises(CaptureError) as exc_info:
            orchestrator.poll("deck-1")

        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert store.get("deck-1").slides[0].elements[0].content == "Hello"
        assert store.get_all("deck-1") == []


# =============================================================================
# CONCURRENCY
# =============================================================================

class SlowStore(InMemoryStateStore):
    """Tracks how many reads of the previous snapshot overlap."""

    def __init__(self, barrier: threading.Barrier = None, **kwargs):
        super().__init__(**kwargs)
        self.barrier = barrier
        self.active = 0
        self.max_active = 0
        self._counter_lock = threading.Lock()

    def get(self, presentation_id):
        with self._counter_lock:
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        try:
            if self.barrier is not None:
                self.barrier.wait()
            else:
                time.sleep(0.02)
            return super().get(presentation_id)
        finally:
            with self._counter_lock:
                self.active -= 1


class TestConcurrency:

    def test_cycles_for_same_presentation_are_serialized(self):
        store = SlowStore()
        orchestrator = DiffOrchestrator(store)
        orchestrator.start_monitoring("deck-1", baseline=deck("v0"))

        errors = []

        def worker(n):
            try:
                orchestrator.run_cycle("deck-1", deck(f"v{n}"))
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(1, 6)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        assert store.max_active == 1

        # Every cycle compared against the snapshot the previous cycle stored
        records = orchestrator.get_changes("deck-1")
        assert len(records) == 5
        for earlier, later in zip(records, records[1:]):
            assert later.details["content"]["oldValue"] == earlier.details["content"]["newValue"]

    def test_different_presentations_run_in_parallel(self):
        # Both reads must be in flight at once for the barrier to release
        store = SlowStore(barrier=threading.Barrier(2, timeout=5))
        orchestrator = DiffOrchestrator(store)
        for pid in ("deck-1", "deck-2"):
            store.set_monitoring(pid, True)

        errors = []

        def worker(pid):
            try:
                orchestrator.run_cycle(pid, deck(presentation_id=pid))
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=worker, args=(pid,)) for pid in ("deck-1", "deck-2")]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        assert store.max_active == 2

    def test_busy_lock_times_out(self, store):
        orchestrator = DiffOrchestrator(store, lock_timeout=0.05)
        orchestrator.start_monitoring("deck-1")

        with orchestrator._locks.hold("deck-1"):
            with pytest.raises(CycleBusyError) as exc_info:
                orchestrator.run_cycle("deck-1", deck())

        assert exc_info.value.presentation_id == "deck-1"
        assert store.get("deck-1") is None

    def test_lock_registry_drops_idle_ids(self, store):
        orchestrator = DiffOrchestrator(store, lock_timeout=0.05)
        for pid in ("deck-1", "deck-2"):
            orchestrator.start_monitoring(pid)
            orchestrator.run_cycle(pid, deck(presentation_id=pid))
        orchestrator.clear("deck-1")
        assert len(orchestrator._locks) == 0

        with orchestrator._locks.hold("deck-1"):
            assert len(orchestrator._locks) == 1
            with pytest.raises(CycleBusyError):
                orchestrator.run_cycle("deck-1", deck())
            assert len(orchestrator._locks) == 1
        assert len(orchestrator._locks) == 0


# =============================================================================
# DESCRIBE
# =============================================================================

class TestDescribe:

    def test_describe_uninitialized(self, orchestrator):
        info = orchestrator.describe("deck-1")
        assert info["monitoring"] == "UNINITIALIZED"
        assert info["hasBaseline"] is False
        assert info["changeCount"] == 0

    def test_describe_active(self, orchestrator):
        orchestrator.start_monitoring("deck-1")
        orchestrator.run_cycle("deck-1", deck("a"))
        orchestrator.run_cycle("deck-1", deck("b"))

        info = orchestrator.describe("deck-1")

        assert info["monitoring"] == "ACTIVE"
        assert info["slideCount"] == 1
        assert info["elementCount"] == 1
        assert info["elementTypes"] == {"SHAPE": 1}
        assert info["changeCount"] == 1
        assert info["maxChanges"] == 50
        assert info["summary"]["highSeverityCount"] == 1

"""
Typed errors surfaced by slidewatch.

Per-element extraction failures are NOT exceptions: they are recorded on the
snapshot (``ElementSnapshot.extraction_error``) and the element is skipped for
field-level diffing. Everything here is raised to the caller.
"""


class SlideWatchError(Exception):
    """Base class for all slidewatch errors."""


class SnapshotValidationError(SlideWatchError, ValueError):
    """
    A snapshot violates a structural invariant.

    Raised for duplicate slide/element ids, unknown element types, or a
    snapshot handed to the wrong presentation id. Treated as programmer error.
    """


class NotInitializedError(SlideWatchError):
    """A cycle was requested for a presentation whose monitoring is not active."""

    def __init__(self, presentation_id: str, state: str = "UNINITIALIZED"):
        self.presentation_id = presentation_id
        self.state = state
        super().__init__(
            f"Monitoring not initialized for presentation {presentation_id} "
            f"(state: {state}). Call start_monitoring() first."
        )


class StoreUnavailableError(SlideWatchError):
    """The snapshot store or change log store failed; the cycle was aborted."""

    def __init__(self, operation: str, presentation_id: str, cause: Exception = None):
        self.operation = operation
        self.presentation_id = presentation_id
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(
            f"Store unavailable during '{operation}' for presentation {presentation_id}{detail}"
        )


class CaptureError(SlideWatchError):
    """The snapshot capture collaborator could not produce a snapshot."""


class CycleBusyError(SlideWatchError):
    """Another cycle for the same presentation held the lock past the timeout."""

    def __init__(self, presentation_id: str, timeout: float):
        self.presentation_id = presentation_id
        self.timeout = timeout
        super().__init__(
            f"Cycle for presentation {presentation_id} still running after {timeout:.1f}s"
        )

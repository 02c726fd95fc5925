"""Exceptions raised while reconciling containers.

Hierarchy:
    BerthError
    ├── SpecValidationError   contradictory fields in a container spec
    └── ReconcileError        a reconcile step failed (carries the phase)
        └── ConvergenceError  container never reached an acceptable state
            └── ContainerExitedError

Absence of a container is never an error: the reconciler clears the
recorded identity instead.
"""

from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from berth.models.state import ContainerState


class BerthError(Exception):
    """Base exception for berth."""
    pass


class SpecValidationError(BerthError):
    """Raised when a container spec contains contradictory fields."""
    pass


class ReconcileError(BerthError):
    """Raised when a reconcile phase fails.

    Attributes:
        phase: Name of the failing phase (image, validate, create, network,
            upload, start, wait, read, delete)
        state: Container state as far as it got, so that a caller can
            still delete a container that was created before the failure
    """

    def __init__(
        self,
        phase: str,
        message: str,
        state: Optional["ContainerState"] = None,
    ):
        super().__init__(message)
        self.phase = phase
        self.message = message
        self.state = state

    def __str__(self) -> str:
        return f"{self.phase}: {self.message}"


class ConvergenceError(ReconcileError):
    """Raised when a container does not settle into the required state."""

    def __init__(self, message: str, state: Optional["ContainerState"] = None):
        super().__init__("read", message, state)


class ContainerExitedError(ConvergenceError):
    """Raised when a freshly created container exits straight away."""
    pass

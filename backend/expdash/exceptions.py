"""Domain errors raised by the experiment services.

Storage errors (``sqlalchemy.exc.SQLAlchemyError``) are never wrapped here;
they propagate to the API layer unchanged.
"""
from typing import List


class ExperimentError(Exception):
    """Base class for experiment workflow errors."""
    pass


class ExperimentNotFound(ExperimentError):
    """Raised when an experiment id does not exist."""

    def __init__(self, experiment_id):
        self.experiment_id = experiment_id
        super().__init__(f"Experiment {experiment_id} not found")


class Forbidden(ExperimentError):
    """Raised when the actor is not the experiment's owner."""

    def __init__(self, message: str = "You don't have permission to update this experiment"):
        super().__init__(message)


class InvalidTransition(ExperimentError):
    """Raised when the requested status is not reachable from the current one."""

    def __init__(self, current, requested):
        self.current = current
        self.requested = requested
        super().__init__(
            f"Invalid status transition from {_label(current)} to {_label(requested)}"
        )


class GoLiveValidationFailed(ExperimentError):
    """Raised when an experiment does not satisfy the go-live checks."""

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__("Experiment cannot go live: " + "; ".join(self.errors))


class ExperimentLocked(ExperimentError):
    """Raised when editing an experiment that has left the draft state."""

    def __init__(self, status):
        self.status = status
        super().__init__(
            f"Experiment is {_label(status)} and can no longer be edited"
        )


class InvalidExperimentData(ExperimentError):
    """Raised when an edit would leave the experiment in an inconsistent state."""
    pass


class ConcurrentTransitionConflict(ExperimentError):
    """Raised when concurrent requests keep changing the status underneath a transition."""

    def __init__(self, experiment_id):
        self.experiment_id = experiment_id
        super().__init__(
            f"Experiment {experiment_id} was modified concurrently, please retry"
        )


def _label(status) -> str:
    return getattr(status, "value", status)

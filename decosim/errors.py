"""Exception types raised by the decompression engine."""

from typing import List, Optional


class DecoSimError(Exception):
    """Base class for engine errors."""


class ProfileValidationError(DecoSimError, ValueError):
    """A waypoint list failed validation. All problems are listed in `errors`."""

    def __init__(self, errors: List[str], message: Optional[str] = None):
        self.errors = list(errors)
        if message is None:
            message = "Invalid dive profile: " + "; ".join(self.errors)
        super().__init__(message)


class GasError(DecoSimError, ValueError):
    """Gas fractions are invalid or a gas id could not be resolved."""


class DecoScheduleError(DecoSimError, RuntimeError):
    """A stop never cleared within the configured maximum stop time."""


class InvariantViolation(DecoSimError, AssertionError):
    """The model produced a state it must never produce (a modelling defect)."""

"""Typed failures raised by the scheduling engine."""


class SchedulingError(Exception):
    """Base class for every error the scheduling engine surfaces to callers."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(SchedulingError):
    """Malformed booking input, rejected before the store is touched."""


class NotFoundError(SchedulingError):
    """The referenced appointment, professional or patient is not in the tenant."""


class ConflictError(SchedulingError):
    """The candidate interval overlaps an active appointment of the professional."""

    def __init__(self, message: str, conflicting_appointment):
        super().__init__(message)
        self.conflicting_appointment = conflicting_appointment


class InvalidTransitionError(SchedulingError):
    """The requested status is not reachable from the appointment's current status."""

    def __init__(self, message: str, current_status, target_status):
        super().__init__(message)
        self.current_status = current_status
        self.target_status = target_status

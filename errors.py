"""Exceptions raised by the schedule and class tracking logic."""


class PlannerError(Exception):
    """Base class for domain errors surfaced to the operator."""


class ScheduleValidationError(PlannerError):
    """A weekly schedule is malformed or has overlapping slots."""

    def __init__(self, message, slots=None):
        super().__init__(message)
        self.slots = slots or []


class DataIntegrityError(PlannerError):
    """Referenced records are missing or carry unusable data (e.g. no price)."""


class InvalidStatusTransition(PlannerError):
    pass


class ConfirmationRequired(PlannerError):
    """The change is allowed but needs an explicit confirmation from the operator."""


class RecordNotFound(PlannerError, LookupError):
    pass

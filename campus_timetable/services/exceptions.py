"""
Exceptions raised by the scheduling services.
Routes translate these into HTTP errors.
"""


class SchedulingError(Exception):
    """Base class for timetable generation and editing failures."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class TimetableConflict(SchedulingError):
    """A timetable already exists for the requested department/semester/shift."""


class PreconditionFailed(SchedulingError):
    """Generation cannot start, e.g. there are no instructors or no rooms."""


class EntryNotFound(SchedulingError):
    """No class entry with the given id exists in any timetable."""


class InvariantViolation(SchedulingError):
    """Internal bookkeeping is inconsistent. Indicates a bug, never user input."""

"""Exceptions raised by the grading and scheduling services."""


class TutorError(Exception):
    """Base class for every error the engine reports to its caller."""


class NotFound(TutorError):
    """A lesson, question, drill or queue entry does not exist for this user."""


class ValidationError(TutorError):
    """Input was rejected before any state was touched."""


class StorageError(TutorError):
    """The database failed mid-operation; the unit of work was rolled back."""

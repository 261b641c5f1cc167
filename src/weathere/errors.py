"""Error taxonomy for the feedback core.

None of these are fatal to the process: each one degrades a single response
or skips a single scheduler tick.
"""


class WeathereError(Exception):
    """Base class for feedback-core errors."""


class ValidationError(WeathereError):
    """Bad input shape, length or enum value. Safe to show to the user."""


class ConflictError(WeathereError):
    """A uniqueness race on insert. Retried internally as an update."""


class UnavailableError(WeathereError):
    """The backing store cannot be reached."""


class GenerationFailure(WeathereError):
    """The text-generation collaborator failed, timed out or returned nothing."""

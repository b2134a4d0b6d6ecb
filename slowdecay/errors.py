class SlowDecayError(Exception):
    """Base class for profile extraction failures."""


class InvalidInputError(SlowDecayError, ValueError):
    """Caller supplied ranges, paths or alignment results that break the input contract."""


class InsufficientDataError(SlowDecayError, RuntimeError):
    """No station profile met the selection criteria."""

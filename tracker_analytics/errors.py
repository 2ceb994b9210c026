class TrackerAnalyticsError(Exception):
    """Base class for errors surfaced to API callers."""


class ValidationError(TrackerAnalyticsError):
    pass


class InvalidPeriod(ValidationError):
    pass


class InvalidRange(ValidationError):
    pass


class NotFoundError(TrackerAnalyticsError):
    pass


class CacheError(Exception):
    """The cache store could not be reached. Never shown to callers."""

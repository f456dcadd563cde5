"""Exception types raised by the analytics service."""


class AnalyticsError(Exception):
    """Base exception for spending analytics."""
    pass


class SourceUnavailable(AnalyticsError):
    """A transaction source fetch failed."""
    pass

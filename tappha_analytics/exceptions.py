"""Exception hierarchy for TappHA Analytics.

Components raise these internally; service entry points catch them and turn
them into ``success=False`` result objects.
"""


class AnalyticsError(Exception):
    """Base class for all analytics errors."""


class ConfigurationError(AnalyticsError):
    """Invalid or inconsistent configuration."""


class DataSourceError(AnalyticsError):
    """The ingestion collaborator failed to deliver a time series."""


class CacheError(AnalyticsError):
    """The cache backend failed a get/set/delete."""


class InvalidTransitionError(AnalyticsError):
    """An approval status change is not allowed from the current state."""

    def __init__(self, recommendation_id: str, current: str, requested: str):
        self.recommendation_id = recommendation_id
        self.current = current
        self.requested = requested
        super().__init__(
            f"Recommendation {recommendation_id} cannot move from "
            f"'{current}' to '{requested}'"
        )

from __future__ import annotations


class ForecastError(RuntimeError):
    pass


class DataUnavailable(ForecastError):
    """An external feed was unreachable or returned nothing usable."""


class DataIncomplete(ForecastError):
    """Required history is missing for an entity or fixture."""


class OrderingViolation(ForecastError):
    """A match was processed out of chronological order."""


class ValidationPrecondition(ForecastError):
    """A batch is not ready to be scored (unfinished fixtures)."""


class FeedRateLimitError(ForecastError):
    pass


class FeedServerError(ForecastError):
    pass


class FeedClientError(ForecastError):
    pass

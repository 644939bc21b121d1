class ConflictMeterError(Exception):
    """Base application exception."""


class SourceUnavailable(ConflictMeterError):
    """Raised when a single headline feed cannot be fetched or parsed."""


class IngestionFailed(ConflictMeterError):
    """Raised when headline ingestion aborts because a feed failed."""


class ServiceError(ConflictMeterError):
    """Raised when the reasoning service call fails."""


class EstimatorUnavailable(ServiceError):
    """Raised when the reasoning service is not configured or unreachable."""


class EstimatorMalformed(ConflictMeterError):
    """Raised when the reasoning service returns an unusable payload."""


class StoreUnavailable(ConflictMeterError):
    """Raised when the cache store cannot be read or written."""

"""
Exception hierarchy for trade analyst.
"""


class TradeAnalystError(Exception):
    """Base exception for trade analyst."""

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.code = code
        self.message = message

    def __str__(self) -> str:
        if self.code:
            return f"[{self.code}] {self.message}"
        return self.message


class DataFetchError(TradeAnalystError):
    """Data fetch failed."""

    def __init__(self, message: str = "Failed to fetch market data", code: str | None = None):
        super().__init__(message, code)


class RateLimitError(DataFetchError):
    """Rate limit exceeded."""

    def __init__(self, message: str = "Provider rate limit exceeded, please retry later", code: str | None = None):
        super().__init__(message, code)


class DataSourceUnavailableError(DataFetchError):
    """Data source unavailable."""

    def __init__(self, message: str = "Data source temporarily unavailable", code: str | None = None):
        super().__init__(message, code)


class ConfigurationError(TradeAnalystError):
    """Configuration error."""

    def __init__(self, message: str = "Invalid configuration", code: str | None = None):
        super().__init__(message, code)


class ValidationError(TradeAnalystError):
    """Data validation failed."""

    def __init__(self, message: str = "Data validation failed", code: str | None = None):
        super().__init__(message, code)


class AnalysisError(TradeAnalystError):
    """Analysis process failed."""

    def __init__(self, message: str = "Analysis failed", code: str | None = None):
        super().__init__(message, code)


class LLMError(AnalysisError):
    """LLM provider call failed."""

    def __init__(self, message: str = "AI service unavailable", code: str | None = None):
        super().__init__(message, code)


class StorageError(TradeAnalystError):
    """Storage operation failed."""

    def __init__(self, message: str = "Storage operation failed", code: str | None = None):
        super().__init__(message, code)


class JobNotFoundError(StorageError):
    """Analysis job does not exist."""

    def __init__(self, message: str = "Analysis job not found", code: str | None = None):
        super().__init__(message, code)


class JobStateError(StorageError):
    """Analysis job is in a state that does not allow the operation."""

    def __init__(self, message: str = "Invalid job state for this operation", code: str | None = None):
        super().__init__(message, code)

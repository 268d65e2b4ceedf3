"""Errors raised by the fetchers, the valuation engine and configuration loading.

Fetchers raise ``DataSourceError``; the orchestrator turns those into fallback
values. The engine raises ``ValidationError`` only for negative caller input.
"""


class DashboardError(Exception):
    """Root of every error the dashboard raises on purpose."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class DataSourceError(DashboardError):
    """An upstream (CoinGecko, DefiLlama, RPC node, vault stats) gave no usable figure.

    ``reason`` is the bare upstream message, which the stats proxy returns to
    browsers; ``message`` carries the source tag for logs and fetch statuses.
    """

    def __init__(
        self,
        source: str,
        message: str,
        endpoint: str | None = None,
        status_code: int | None = None,
    ):
        super().__init__(
            f"[{source}] {message}",
            {"source": source, "endpoint": endpoint, "status_code": status_code},
        )
        self.source = source
        self.reason = message
        self.endpoint = endpoint
        self.status_code = status_code


class RateLimitError(DataSourceError):
    """Upstream answered 429; the fetch falls back like any other failure."""

    def __init__(
        self,
        source: str,
        retry_after_seconds: int | None = None,
        endpoint: str | None = None,
    ):
        message = "Too many requests"
        if retry_after_seconds:
            message += f" (try again in {retry_after_seconds}s)"
        super().__init__(source, message, endpoint=endpoint, status_code=429)
        self.retry_after_seconds = retry_after_seconds


class ValidationError(DashboardError):
    """Negative FDV or point count passed straight to the valuation engine."""

    def __init__(self, field: str, value: str, reason: str):
        super().__init__(
            f"Cannot value {field}={value}: {reason}",
            {"field": field, "value": value, "reason": reason},
        )
        self.field = field
        self.value = value
        self.reason = reason


class ConfigurationError(DashboardError):
    """Dashboard settings that make a comparison impossible."""

    def __init__(self, config_key: str, message: str):
        super().__init__(f"Bad setting {config_key}: {message}", {"config_key": config_key})
        self.config_key = config_key

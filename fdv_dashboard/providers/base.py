"""Base class for data providers."""

import logging
import time
from abc import ABC
from typing import Any

import httpx

from ..core.exceptions import DataSourceError, RateLimitError
from ..core.models import AuditEntry
from ..core.types import DataSource

logger = logging.getLogger(__name__)


class BaseProvider(ABC):
    """Abstract base class for all data providers.

    Each request opens its own ``httpx.AsyncClient`` so providers can be shared
    between concurrent fetches. Transport, status and parse failures are
    raised as ``DataSourceError``; callers decide on fallbacks.
    """

    # Subclasses must define their data source
    SOURCE: DataSource = DataSource.UNKNOWN

    def __init__(
        self,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize provider.

        Args:
            timeout: Request timeout in seconds
            transport: Optional httpx transport (used to stub upstreams)
        """
        self.timeout = timeout
        self.transport = transport
        self._audit_entries: list[AuditEntry] = []

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport)

    async def _make_request(
        self,
        method: str,
        url: str,
        endpoint: str,
        params: dict[str, Any] | None = None,
        json: Any = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        """Make a request and return the decoded JSON body."""
        start_time = time.time()

        try:
            async with self._client() as client:
                response = await client.request(
                    method, url, params=params, json=json, headers=headers
                )

            duration_ms = int((time.time() - start_time) * 1000)

            if response.status_code == 429:
                self._record_audit(
                    action="fetch",
                    endpoint=endpoint,
                    success=False,
                    error_message="Rate limit exceeded",
                    duration_ms=duration_ms,
                )
                raise RateLimitError(
                    source=self.SOURCE.value,
                    retry_after_seconds=60,
                    endpoint=endpoint,
                )

            response.raise_for_status()
            data = response.json()

            self._record_audit(
                action="fetch",
                endpoint=endpoint,
                success=True,
                duration_ms=duration_ms,
            )
            return data

        except httpx.HTTPStatusError as e:
            self._record_audit(
                action="fetch",
                endpoint=endpoint,
                success=False,
                error_message=f"HTTP {e.response.status_code}",
            )
            raise DataSourceError(
                source=self.SOURCE.value,
                message=f"HTTP error! status: {e.response.status_code}",
                endpoint=endpoint,
                status_code=e.response.status_code,
            ) from e
        except httpx.RequestError as e:
            self._record_audit(
                action="fetch",
                endpoint=endpoint,
                success=False,
                error_message=str(e),
            )
            raise DataSourceError(
                source=self.SOURCE.value,
                message=str(e) or type(e).__name__,
                endpoint=endpoint,
            ) from e
        except ValueError as e:
            # response.json() on a non-JSON body
            self._record_audit(
                action="fetch",
                endpoint=endpoint,
                success=False,
                error_message="Malformed JSON body",
            )
            raise DataSourceError(
                source=self.SOURCE.value,
                message=f"Malformed JSON body: {e}",
                endpoint=endpoint,
            ) from e

    def _record_audit(
        self,
        action: str,
        endpoint: str | None = None,
        success: bool = True,
        error_message: str | None = None,
        duration_ms: int | None = None,
        notes: str | None = None,
    ) -> AuditEntry:
        """Record an audit entry for this provider action."""
        entry = AuditEntry(
            source=self.SOURCE,
            action=action,
            endpoint=endpoint,
            success=success,
            error_message=error_message,
            duration_ms=duration_ms,
            notes=notes,
        )
        self._audit_entries.append(entry)
        if not success:
            logger.debug(f"[{self.SOURCE.value}] {action} {endpoint} failed: {error_message}")
        return entry

    def get_audit_trail(self) -> list[AuditEntry]:
        """Return all audit entries recorded by this provider."""
        return self._audit_entries.copy()


def parse_number(value: Any, source: DataSource, endpoint: str) -> float:
    """Coerce an upstream numeric field (number or numeric string) to float."""
    if isinstance(value, bool) or value is None:
        raise DataSourceError(source.value, f"Expected a number, got {value!r}", endpoint=endpoint)
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise DataSourceError(
            source.value, f"Expected a number, got {value!r}", endpoint=endpoint
        ) from e

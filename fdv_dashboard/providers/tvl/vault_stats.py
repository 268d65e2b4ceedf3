"""Vault stats provider for the Arma and Pulse stats endpoints.

Both endpoints return a JSON stats document with a ``total_balance`` field.
Arma reports it in USD; Pulse reports it in wei as a decimal string.
"""

import logging
from typing import Any

import httpx

from ...core.exceptions import DataSourceError
from ...core.types import DataSource
from ..base import BaseProvider, parse_number

logger = logging.getLogger(__name__)

WEI_PER_ETH = 10**18

STATS_HEADERS = {
    "Content-Type": "application/json",
    "User-Agent": "Almanak-App/1.0",
}


class VaultStatsProvider(BaseProvider):
    """Fetches a vault stats document from a fixed URL."""

    def __init__(
        self,
        name: str,
        url: str | None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize a stats provider.

        Args:
            name: Upstream name ("arma", "pulse")
            url: Stats URL; None when the upstream is not configured
            timeout: Request timeout in seconds
            transport: Optional httpx transport
        """
        super().__init__(timeout=timeout, transport=transport)
        self.name = name
        self.url = url
        try:
            self.SOURCE = DataSource(name)
        except ValueError:
            self.SOURCE = DataSource.UNKNOWN

    @property
    def display_name(self) -> str:
        return self.name.capitalize()

    async def get_stats(self) -> Any:
        """Return the upstream stats body as decoded JSON."""
        endpoint = f"/api/{self.name}/stats"
        if not self.url:
            raise DataSourceError(
                source=self.name,
                message=f"No upstream URL configured for {self.name}",
                endpoint=endpoint,
            )
        return await self._make_request("GET", self.url, endpoint, headers=STATS_HEADERS)

    async def get_total_balance(self) -> float:
        """Return the raw ``total_balance`` figure as a float."""
        stats = await self.get_stats()
        balance = total_balance(stats, self.SOURCE)
        logger.debug(f"{self.display_name} total_balance: {balance}")
        return balance


def total_balance(stats: Any, source: DataSource = DataSource.UNKNOWN) -> float:
    """Read ``total_balance`` from a stats document; absent or empty counts as 0."""
    endpoint = "total_balance"
    if not isinstance(stats, dict):
        raise DataSourceError(source.value, "Stats body is not an object", endpoint=endpoint)
    value = stats.get("total_balance")
    if value in (None, "", 0):
        return 0.0
    return parse_number(value, source, endpoint)


def wei_to_eth(wei_value: float | str) -> float:
    """Convert an 18-decimal wei amount to ETH."""
    return float(wei_value) / WEI_PER_ETH

"""DefiLlama protocol TVL provider."""

import logging

import httpx

from ...core.types import DataSource
from ..base import BaseProvider, parse_number

logger = logging.getLogger(__name__)


class DefiLlamaTvlProvider(BaseProvider):
    """Fetches the current TVL of a protocol from DefiLlama."""

    SOURCE = DataSource.DEFILLAMA
    BASE_URL = "https://api.llama.fi"

    def __init__(
        self,
        base_url: str = BASE_URL,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(timeout=timeout, transport=transport)
        self.base_url = base_url.rstrip("/")

    async def get_protocol_tvl(self, protocol: str) -> float:
        """
        Get a protocol's current TVL in USD.

        The ``/tvl/{protocol}`` endpoint returns a bare JSON number.
        """
        endpoint = f"/tvl/{protocol}"
        data = await self._make_request("GET", f"{self.base_url}{endpoint}", endpoint)
        tvl = parse_number(data, self.SOURCE, endpoint)
        logger.debug(f"DefiLlama TVL for {protocol}: {tvl}")
        return tvl

"""CoinGecko market data provider.

Fetches the current market snapshot of a token (price, market cap, FDV,
supply) and simple spot prices such as ETH/USD.
"""

import logging
from typing import Any

import httpx
from pydantic import ValidationError as PydanticValidationError

from ...core.exceptions import DataSourceError
from ...core.models import TokenSnapshot
from ...core.types import DataSource
from ..base import BaseProvider, parse_number

logger = logging.getLogger(__name__)


class CoinGeckoMarketProvider(BaseProvider):
    """Fetches token market data from CoinGecko."""

    SOURCE = DataSource.COINGECKO
    BASE_URL = "https://api.coingecko.com/api/v3"
    PRO_BASE_URL = "https://pro-api.coingecko.com/api/v3"

    def __init__(
        self,
        api_key: str | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize CoinGecko market provider.

        Args:
            api_key: Optional CoinGecko Pro API key
            timeout: Request timeout in seconds
            transport: Optional httpx transport
        """
        super().__init__(timeout=timeout, transport=transport)
        self.api_key = api_key
        self.base_url = self.PRO_BASE_URL if api_key else self.BASE_URL

    async def _get(self, endpoint: str, params: dict[str, Any] | None = None) -> Any:
        headers = {}
        if self.api_key:
            headers["x-cg-pro-api-key"] = self.api_key
        return await self._make_request(
            "GET", f"{self.base_url}{endpoint}", endpoint, params=params, headers=headers
        )

    async def get_token_snapshot(self, coingecko_id: str) -> TokenSnapshot:
        """
        Get the current market snapshot for a token.

        Args:
            coingecko_id: CoinGecko token ID (e.g. "giza")

        Returns:
            TokenSnapshot with USD-denominated market figures

        Raises:
            DataSourceError: if the request fails or the body has no usable market data
        """
        endpoint = f"/coins/{coingecko_id}"
        data = await self._get(
            endpoint,
            params={
                "localization": "false",
                "tickers": "false",
                "market_data": "true",
                "community_data": "false",
                "developer_data": "false",
                "sparkline": "false",
            },
        )

        if not isinstance(data, dict) or not isinstance(data.get("market_data"), dict):
            raise DataSourceError(
                source=self.SOURCE.value,
                message=f"No market data available for {coingecko_id}",
                endpoint=endpoint,
            )

        try:
            snapshot = parse_token_snapshot(coingecko_id, data)
        except (PydanticValidationError, TypeError, ValueError, OverflowError) as e:
            raise DataSourceError(
                source=self.SOURCE.value,
                message=f"Malformed market data for {coingecko_id}: {e}",
                endpoint=endpoint,
            ) from e
        logger.debug(f"Got {snapshot.symbol}: FDV={snapshot.fully_diluted_valuation}")
        return snapshot

    async def get_simple_price(self, coin_id: str = "ethereum", vs_currency: str = "usd") -> float:
        """
        Get the current spot price of a coin.

        Args:
            coin_id: CoinGecko coin ID
            vs_currency: Quote currency

        Returns:
            Price in the quote currency
        """
        endpoint = "/simple/price"
        data = await self._get(endpoint, params={"ids": coin_id, "vs_currencies": vs_currency})

        try:
            price = data[coin_id][vs_currency]
        except (KeyError, TypeError) as e:
            raise DataSourceError(
                source=self.SOURCE.value,
                message=f"No {vs_currency} price for {coin_id}",
                endpoint=endpoint,
            ) from e

        return parse_number(price, self.SOURCE, endpoint)


def _number(market_data: dict[str, Any], key: str) -> float | None:
    """Read a numeric field; per-currency fields resolve to their USD leg."""
    value = market_data.get(key)
    if isinstance(value, dict):
        value = value.get("usd")
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def parse_token_snapshot(coingecko_id: str, data: dict[str, Any]) -> TokenSnapshot:
    """Normalize a CoinGecko ``/coins/{id}`` body into a TokenSnapshot."""
    market_data = data.get("market_data") or {}
    image = data.get("image")
    rank = market_data.get("market_cap_rank", data.get("market_cap_rank"))

    return TokenSnapshot(
        coingecko_id=data.get("id") or coingecko_id,
        symbol=data.get("symbol") or coingecko_id,
        name=data.get("name") or coingecko_id,
        current_price=_number(market_data, "current_price"),
        market_cap=_number(market_data, "market_cap"),
        fully_diluted_valuation=_number(market_data, "fully_diluted_valuation"),
        total_supply=_number(market_data, "total_supply"),
        max_supply=_number(market_data, "max_supply"),
        circulating_supply=_number(market_data, "circulating_supply"),
        price_change_percentage_24h=_number(market_data, "price_change_percentage_24h"),
        market_cap_rank=int(rank) if isinstance(rank, (int, float)) and not isinstance(rank, bool) else None,
        image=image.get("large") if isinstance(image, dict) else None,
    )

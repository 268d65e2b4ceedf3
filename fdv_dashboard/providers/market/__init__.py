"""Token market data providers."""

from .coingecko import CoinGeckoMarketProvider, parse_token_snapshot

__all__ = ["CoinGeckoMarketProvider", "parse_token_snapshot"]

"""Data providers for the FDV comparison dashboard.

This module contains providers for:
- Token market data (CoinGecko)
- Protocol TVL (DefiLlama)
- ERC-20 balances (Ethereum JSON-RPC)
- Vault stats (Arma, Pulse)
"""

from .base import BaseProvider

__all__ = ["BaseProvider"]

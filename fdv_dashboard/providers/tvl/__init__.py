"""TVL component providers."""

from .defillama import DefiLlamaTvlProvider
from .ethereum import EthereumBalanceProvider
from .vault_stats import VaultStatsProvider, total_balance, wei_to_eth

__all__ = [
    "DefiLlamaTvlProvider",
    "EthereumBalanceProvider",
    "VaultStatsProvider",
    "total_balance",
    "wei_to_eth",
]

"""Type definitions and enums for the FDV comparison dashboard."""

from enum import Enum


class DataSource(str, Enum):
    """Upstream a figure was fetched from."""

    COINGECKO = "coingecko"
    DEFILLAMA = "defillama"
    ETHEREUM_RPC = "ethereum_rpc"
    ARMA = "arma"
    PULSE = "pulse"
    UNKNOWN = "unknown"


class FetchSlot(str, Enum):
    """Named result slots filled by one fetch cycle."""

    TOKEN = "token"
    SUBJECT_PROTOCOL_TVL = "subject_protocol_tvl"
    SUBJECT_WALLET_BALANCE = "subject_wallet_balance"
    REFERENCE_VAULT_A = "reference_vault_a"
    REFERENCE_VAULT_B = "reference_vault_b"
    ETH_PRICE = "eth_price"


# Type aliases for common patterns
Percentage = float  # 0-100 scale
TokenAmount = float  # Number of tokens
PointAmount = float  # Number of program points
USDAmount = float    # USD value

"""Ethereum JSON-RPC provider for ERC-20 balances."""

import asyncio
import logging
import time

import aiohttp
from web3 import AsyncHTTPProvider, AsyncWeb3, Web3
from web3.exceptions import Web3Exception
from web3.providers.async_base import AsyncBaseProvider

from ...core.exceptions import DataSourceError
from ...core.types import DataSource
from ..base import BaseProvider

logger = logging.getLogger(__name__)

ERC20_ABI = [
    {
        "inputs": [{"name": "account", "type": "address"}],
        "name": "balanceOf",
        "outputs": [{"type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
]


class EthereumBalanceProvider(BaseProvider):
    """Fetches ERC-20 token balances from an Ethereum JSON-RPC node."""

    SOURCE = DataSource.ETHEREUM_RPC

    def __init__(
        self,
        rpc_url: str,
        timeout: float = 30.0,
        rpc_provider: AsyncBaseProvider | None = None,
    ):
        """
        Initialize the provider.

        Args:
            rpc_url: JSON-RPC endpoint
            timeout: Request timeout in seconds
            rpc_provider: Optional web3 provider used instead of HTTP to ``rpc_url``
        """
        super().__init__(timeout=timeout)
        self.rpc_url = rpc_url
        self.w3 = AsyncWeb3(
            rpc_provider
            or AsyncHTTPProvider(
                rpc_url, request_kwargs={"timeout": aiohttp.ClientTimeout(total=timeout)}
            )
        )

    async def get_erc20_balance(self, holder: str, token_contract: str, decimals: int) -> float:
        """
        Get a holder's ERC-20 balance in whole-token units.

        Args:
            holder: Address whose balance is read
            token_contract: ERC-20 contract address
            decimals: Token decimals (6 for USDC)

        Returns:
            Balance divided by 10**decimals
        """
        endpoint = "eth_call"
        try:
            holder_address = Web3.to_checksum_address(holder)
            contract = self.w3.eth.contract(
                address=Web3.to_checksum_address(token_contract), abi=ERC20_ABI
            )
        except ValueError as e:
            raise DataSourceError(
                self.SOURCE.value, f"Invalid Ethereum address: {e}", endpoint=endpoint
            ) from e

        start_time = time.time()
        try:
            raw_balance = await contract.functions.balanceOf(holder_address).call()
        except (Web3Exception, ValueError) as e:
            self._record_audit(action="fetch", endpoint=endpoint, success=False, error_message=str(e))
            raise DataSourceError(self.SOURCE.value, f"RPC Error: {e}", endpoint=endpoint) from e
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            self._record_audit(action="fetch", endpoint=endpoint, success=False, error_message=str(e))
            raise DataSourceError(
                self.SOURCE.value, str(e) or type(e).__name__, endpoint=endpoint
            ) from e

        self._record_audit(
            action="fetch",
            endpoint=endpoint,
            success=True,
            duration_ms=int((time.time() - start_time) * 1000),
        )
        balance = raw_balance / 10**decimals
        logger.debug(f"Balance of {holder} in {token_contract}: {balance}")
        return balance

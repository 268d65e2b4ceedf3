"""Main orchestrator for the comparison pipeline.

Fans out every upstream fetch of one cycle concurrently, settles each into a
typed slot with its own fallback, then runs the valuation engine once per
reference token and once on the TVL-scaled FDV.
"""

import asyncio
import logging
from typing import Awaitable, TypeVar

import httpx
from web3.providers.async_base import AsyncBaseProvider

from .calculator.valuation import ValuationCalculator, calc_tvl_ratio
from .core.config import (
    DEFAULT_REFERENCE_TOKENS,
    USDC_CONTRACT_ADDRESS,
    USDC_DECIMALS,
    AppConfig,
    get_config,
    load_program_config,
)
from .core.exceptions import ConfigurationError, DashboardError
from .core.models import (
    AllocationProgramConfig,
    AuditEntry,
    ComparisonResult,
    FetchStatus,
    MarketSnapshot,
    ReferenceToken,
    TokenSnapshot,
    TokenValuation,
    TvlSnapshot,
)
from .core.types import DataSource, FetchSlot
from .providers.base import BaseProvider
from .providers.market.coingecko import CoinGeckoMarketProvider
from .providers.tvl.defillama import DefiLlamaTvlProvider
from .providers.tvl.ethereum import EthereumBalanceProvider
from .providers.tvl.vault_stats import VaultStatsProvider, wei_to_eth

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ComparisonOrchestrator:
    """Orchestrates fetching and valuation for the comparison dashboard."""

    def __init__(
        self,
        config: AppConfig | None = None,
        program: AllocationProgramConfig | None = None,
        reference_tokens: list[ReferenceToken] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        rpc_provider: AsyncBaseProvider | None = None,
    ):
        """
        Initialize the orchestrator with all providers.

        Args:
            config: Runtime configuration (global config if not provided)
            program: Allocation program constants (loaded from
                ``config.program_config_path`` or defaults if not provided)
            reference_tokens: Tokens whose FDVs are valuation references; the
                first one is scaled by the TVL ratio
            transport: Optional httpx transport shared by the HTTP providers
            rpc_provider: Optional web3 provider for the Ethereum balance read
        """
        self.config = config or get_config()
        self.program = program or load_program_config(self.config.program_config_path)
        self.reference_tokens = list(
            DEFAULT_REFERENCE_TOKENS if reference_tokens is None else reference_tokens
        )
        if not self.reference_tokens:
            raise ConfigurationError("reference_tokens", "at least one reference token is required")

        self.market_provider = CoinGeckoMarketProvider(
            api_key=self.config.coingecko_api_key, transport=transport
        )
        self.defillama_provider = DefiLlamaTvlProvider(transport=transport)
        self.balance_provider = EthereumBalanceProvider(
            rpc_url=self.config.ethereum_rpc_url, rpc_provider=rpc_provider
        )
        self.arma_provider = VaultStatsProvider(
            "arma", self.config.stats_url("arma"), transport=transport
        )
        self.pulse_provider = VaultStatsProvider(
            "pulse", self.config.stats_url("pulse"), transport=transport
        )

        self.calculator = ValuationCalculator(self.program)

    async def _settle(
        self,
        awaitable: Awaitable[T],
        fallback: T,
        slot: FetchSlot,
        source: DataSource,
        key: str | None = None,
    ) -> tuple[T, FetchStatus]:
        """Await one fetch, substituting its fallback if the fetch fails."""
        try:
            value = await awaitable
        except DashboardError as e:
            logger.warning(f"{slot.value} fetch failed ({e.message}), using fallback {fallback!r}")
            return fallback, FetchStatus(
                slot=slot, source=source, key=key, success=False, error_message=e.message
            )
        return value, FetchStatus(slot=slot, source=source, key=key, success=True)

    async def fetch_tokens(self) -> list[tuple[TokenSnapshot | None, FetchStatus]]:
        """Fetch every reference token snapshot concurrently."""
        return await asyncio.gather(
            *[
                self._settle(
                    self.market_provider.get_token_snapshot(token.coingecko_id),
                    None,
                    FetchSlot.TOKEN,
                    DataSource.COINGECKO,
                    key=token.coingecko_id,
                )
                for token in self.reference_tokens
            ]
        )

    async def fetch_subject_tvl(self) -> tuple[TvlSnapshot, list[FetchStatus]]:
        """Fetch the subject protocol's TVL: DefiLlama TVL plus wallet USDC balance."""
        (protocol_tvl, protocol_status), (balance, balance_status) = await asyncio.gather(
            self._settle(
                self.defillama_provider.get_protocol_tvl(self.config.defillama_protocol),
                0.0,
                FetchSlot.SUBJECT_PROTOCOL_TVL,
                DataSource.DEFILLAMA,
            ),
            self._settle(
                self.balance_provider.get_erc20_balance(
                    self.config.subject_wallet_address, USDC_CONTRACT_ADDRESS, USDC_DECIMALS
                ),
                0.0,
                FetchSlot.SUBJECT_WALLET_BALANCE,
                DataSource.ETHEREUM_RPC,
            ),
        )

        snapshot = TvlSnapshot(
            label=self.program.name,
            component_a_label="DeFiLlama TVL",
            component_b_label="USDC Balance",
            component_a=protocol_tvl,
            component_b=balance,
        )
        return snapshot, [protocol_status, balance_status]

    async def fetch_reference_tvl(self) -> tuple[TvlSnapshot, list[FetchStatus]]:
        """Fetch the reference protocol's TVL: Arma USD balance plus Pulse ETH balance."""
        results = await asyncio.gather(
            self._settle(
                self.arma_provider.get_total_balance(),
                0.0,
                FetchSlot.REFERENCE_VAULT_A,
                DataSource.ARMA,
            ),
            self._settle(
                self.pulse_provider.get_total_balance(),
                0.0,
                FetchSlot.REFERENCE_VAULT_B,
                DataSource.PULSE,
            ),
            self._settle(
                self.market_provider.get_simple_price("ethereum", "usd"),
                0.0,
                FetchSlot.ETH_PRICE,
                DataSource.COINGECKO,
            ),
        )
        (arma_tvl, arma_status), (pulse_wei, pulse_status), (eth_price, price_status) = results

        pulse_eth = wei_to_eth(pulse_wei)
        snapshot = TvlSnapshot(
            label=self.reference_tokens[0].label,
            component_a_label="Arma TVL",
            component_b_label="Pulse TVL",
            component_a=arma_tvl,
            component_b=pulse_eth * eth_price,
            component_b_native=pulse_eth,
            reference_token_price=eth_price,
        )
        return snapshot, [arma_status, pulse_status, price_status]

    async def collect(self) -> MarketSnapshot:
        """Run one fetch cycle: all tokens and both TVL snapshots, joined."""
        logger.info("Fetching market and TVL data...")
        tokens, (subject_tvl, subject_statuses), (reference_tvl, reference_statuses) = (
            await asyncio.gather(
                self.fetch_tokens(),
                self.fetch_subject_tvl(),
                self.fetch_reference_tvl(),
            )
        )

        statuses = [status for _, status in tokens] + subject_statuses + reference_statuses
        failed = [s for s in statuses if not s.success]
        if failed:
            logger.info(f"{len(failed)} of {len(statuses)} fetches fell back to defaults")

        return MarketSnapshot(
            tokens={
                token.coingecko_id: snapshot
                for token, (snapshot, _) in zip(self.reference_tokens, tokens)
            },
            subject_tvl=subject_tvl,
            reference_tvl=reference_tvl,
            statuses=statuses,
        )

    def build_comparison(self, snapshot: MarketSnapshot) -> ComparisonResult:
        """
        Run the valuation engine over a fetched snapshot.

        Args:
            snapshot: Result of ``collect()``

        Returns:
            ComparisonResult with one valuation per reference token and a
            TVL-scaled valuation of the first token's FDV
        """
        token_valuations = []
        for token in self.reference_tokens:
            token_snapshot = snapshot.tokens.get(token.coingecko_id)
            fdv = self._valuation_fdv(token_snapshot)
            token_valuations.append(
                TokenValuation(
                    reference=token,
                    snapshot=token_snapshot,
                    valuation=self.calculator.calculate(fdv),
                )
            )

        reference_total = snapshot.reference_tvl.total
        reference_is_fixed = reference_total <= 0
        if reference_is_fixed:
            logger.info(
                f"No live {snapshot.reference_tvl.label} TVL, using fixed "
                f"${self.config.fixed_reference_tvl:,.0f}"
            )
            reference_total = self.config.fixed_reference_tvl

        tvl_ratio = calc_tvl_ratio(snapshot.subject_tvl.total, reference_total)
        base = token_valuations[0]
        base_fdv = self._valuation_fdv(base.snapshot)

        return ComparisonResult(
            program=self.program,
            tokens=token_valuations,
            subject_tvl=snapshot.subject_tvl,
            reference_tvl=snapshot.reference_tvl,
            reference_tvl_total=reference_total,
            reference_tvl_is_fixed=reference_is_fixed,
            tvl_ratio=tvl_ratio,
            tvl_scaled=self.calculator.calculate_tvl_scaled(base_fdv, tvl_ratio),
            statuses=snapshot.statuses,
            generated_at=snapshot.fetched_at,
        )

    @staticmethod
    def _valuation_fdv(token_snapshot: TokenSnapshot | None) -> float | None:
        """Upstream FDV as an engine input; unusable values count as missing."""
        if token_snapshot is None:
            return None
        fdv = token_snapshot.valuation_fdv
        if fdv is None and token_snapshot.fully_diluted_valuation is not None:
            logger.warning(
                f"Ignoring unusable FDV {token_snapshot.fully_diluted_valuation!r} "
                f"for {token_snapshot.coingecko_id}"
            )
        return fdv

    async def run(self) -> ComparisonResult:
        """Fetch everything once and compute the full comparison."""
        snapshot = await self.collect()
        return self.build_comparison(snapshot)

    def get_audit_trail(self) -> list[AuditEntry]:
        """Collect audit entries from all providers."""
        entries: list[AuditEntry] = []
        for provider in self._providers():
            entries.extend(provider.get_audit_trail())
        return sorted(entries, key=lambda e: e.timestamp)

    def _providers(self) -> list[BaseProvider]:
        return [
            self.market_provider,
            self.defillama_provider,
            self.balance_provider,
            self.arma_provider,
            self.pulse_provider,
        ]

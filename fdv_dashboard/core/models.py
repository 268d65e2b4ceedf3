"""Pydantic data models for the FDV comparison dashboard.

All data structures are immutable (frozen) after creation. Valuation results
are recomputed from scratch on every call and never mutated in place.
"""

import math
from datetime import datetime, timezone

from pydantic import BaseModel, Field, field_validator

from .types import DataSource, FetchSlot, Percentage, PointAmount, TokenAmount, USDAmount


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditEntry(BaseModel):
    """Audit trail entry for a data fetch."""

    timestamp: datetime = Field(default_factory=_utcnow)
    source: DataSource
    action: str  # "fetch", "proxy"
    endpoint: str | None = None
    success: bool = True
    error_message: str | None = None
    duration_ms: int | None = None
    notes: str | None = None

    model_config = {"frozen": True}


class ReferenceToken(BaseModel):
    """A token whose FDV is used as a valuation reference."""

    coingecko_id: str
    label: str  # Short label used in report rows, e.g. "Giza"
    symbol: str  # Fallback symbol when the fetch fails
    name: str  # Fallback name when the fetch fails

    model_config = {"frozen": True}


class TokenSnapshot(BaseModel):
    """Market data for one token, normalized from a CoinGecko coin response."""

    coingecko_id: str
    symbol: str
    name: str
    current_price: USDAmount | None = None
    market_cap: USDAmount | None = None
    fully_diluted_valuation: USDAmount | None = None
    total_supply: TokenAmount | None = None
    max_supply: TokenAmount | None = None
    circulating_supply: TokenAmount | None = None
    price_change_percentage_24h: Percentage | None = None
    market_cap_rank: int | None = None
    image: str | None = None

    model_config = {"frozen": True}

    @field_validator("symbol")
    @classmethod
    def upper_symbol(cls, v: str) -> str:
        return v.upper()

    @property
    def valuation_fdv(self) -> USDAmount | None:
        """FDV usable as an engine input; None when missing, non-finite or negative."""
        fdv = self.fully_diluted_valuation
        if fdv is None or not math.isfinite(fdv) or fdv < 0:
            return None
        return fdv


class TvlSnapshot(BaseModel):
    """TVL of one protocol, summed from two independently fetched components."""

    label: str
    component_a_label: str
    component_b_label: str
    component_a: USDAmount = 0.0
    component_b: USDAmount = 0.0
    # Price used to convert component B from its native unit (ETH for Pulse)
    reference_token_price: USDAmount | None = None
    component_b_native: float | None = None

    model_config = {"frozen": True}

    @property
    def total(self) -> USDAmount:
        return self.component_a + self.component_b


class Phase(BaseModel):
    """One point-program phase."""

    name: str
    points_per_day: PointAmount
    total_points: PointAmount

    model_config = {"frozen": True}

    @field_validator("points_per_day", "total_points")
    @classmethod
    def validate_points(cls, v: PointAmount) -> PointAmount:
        if v < 0:
            raise ValueError(f"Points must be non-negative, got {v}")
        return v


class AllocationProgramConfig(BaseModel):
    """Static constants describing the token-distribution program."""

    name: str = "Almanak"
    total_supply: TokenAmount = Field(default=1_000_000_000, gt=0)
    flat_allocation_label: str = "CSNapper"
    flat_allocation_percent: Percentage = 0.5
    point_program_percent: Percentage = 0.048333
    phases: list[Phase] = Field(
        default_factory=lambda: [
            Phase(name="Phase 1", points_per_day=150_000, total_points=4_650_000),
            Phase(name="Phase 2", points_per_day=333_333, total_points=12_987_000),
        ]
    )

    model_config = {"frozen": True}

    @field_validator("flat_allocation_percent", "point_program_percent")
    @classmethod
    def validate_percentage(cls, v: Percentage) -> Percentage:
        if v < 0 or v > 100:
            raise ValueError(f"Percentage must be 0-100, got {v}")
        return v


class PhaseValuation(BaseModel):
    """Value of one phase's points at a given effective FDV."""

    name: str
    points_per_day: PointAmount
    total_points: PointAmount
    total_value: USDAmount
    value_per_point: USDAmount

    model_config = {"frozen": True}


class ValuationResult(BaseModel):
    """Derived metrics of the program at one effective FDV."""

    reference_fdv: USDAmount
    implied_token_price: USDAmount
    implied_market_cap: USDAmount
    flat_allocation_value: USDAmount
    flat_allocation_tokens: TokenAmount
    point_program_allocation_value: USDAmount
    point_program_tokens: TokenAmount
    phases: list[PhaseValuation] = Field(default_factory=list)
    total_allocation_value: USDAmount
    # Set when an input was missing and 0 was substituted
    is_fallback: bool = False

    model_config = {"frozen": True}

    @property
    def per_phase_total_value(self) -> list[USDAmount]:
        return [p.total_value for p in self.phases]

    @property
    def per_phase_value_per_point(self) -> list[USDAmount]:
        return [p.value_per_point for p in self.phases]


class TvlRatio(BaseModel):
    """Quotient of the subject TVL over the reference TVL."""

    subject_tvl: USDAmount
    reference_tvl: USDAmount
    ratio: float
    difference: USDAmount
    percentage: Percentage
    available: bool

    model_config = {"frozen": True}


class CustomPointsComparison(BaseModel):
    """A user-entered point count valued at the FDV and at the TVL ratio."""

    points: PointAmount
    fdv_value: USDAmount
    tvl_value: USDAmount
    difference: USDAmount
    higher: str  # "FDV" or "TVL"
    average: USDAmount

    model_config = {"frozen": True}


class TokenPointsComparison(BaseModel):
    """A user-entered point count valued at two reference tokens' FDVs."""

    points: PointAmount
    first_label: str
    first_value: USDAmount
    second_label: str
    second_value: USDAmount
    difference: USDAmount
    higher: str  # label of the token giving the higher value
    average: USDAmount

    model_config = {"frozen": True}


class BonusAprResult(BaseModel):
    """Bonus APR earned from point emissions on a deposit."""

    apr_percent: Percentage = 0.0
    yearly_bonus: USDAmount = 0.0
    points_value_per_day: USDAmount = 0.0
    user_share_per_day: USDAmount = 0.0

    model_config = {"frozen": True}


class FetchStatus(BaseModel):
    """Outcome of one isolated fetch in a fetch cycle."""

    slot: FetchSlot
    source: DataSource
    key: str | None = None  # e.g. the CoinGecko id for token slots
    success: bool = True
    error_message: str | None = None

    model_config = {"frozen": True}


class MarketSnapshot(BaseModel):
    """Everything fetched during one fetch cycle."""

    tokens: dict[str, TokenSnapshot | None] = Field(default_factory=dict)
    subject_tvl: TvlSnapshot
    reference_tvl: TvlSnapshot
    statuses: list[FetchStatus] = Field(default_factory=list)
    fetched_at: datetime = Field(default_factory=_utcnow)

    model_config = {"frozen": True}

    def status_for(self, slot: FetchSlot, key: str | None = None) -> FetchStatus | None:
        for status in self.statuses:
            if status.slot == slot and status.key == key:
                return status
        return None


class TokenValuation(BaseModel):
    """Program valuation at one reference token's FDV."""

    reference: ReferenceToken
    snapshot: TokenSnapshot | None = None
    valuation: ValuationResult

    model_config = {"frozen": True}

    @property
    def fetch_ok(self) -> bool:
        return self.snapshot is not None

    @property
    def symbol(self) -> str:
        return self.snapshot.symbol if self.snapshot else self.reference.symbol

    @property
    def name(self) -> str:
        return self.snapshot.name if self.snapshot else self.reference.name


class ComparisonResult(BaseModel):
    """Complete output of one comparison pass."""

    program: AllocationProgramConfig
    tokens: list[TokenValuation]
    subject_tvl: TvlSnapshot
    reference_tvl: TvlSnapshot
    # Reference TVL total used for the ratio (live, or the fixed fallback)
    reference_tvl_total: USDAmount
    reference_tvl_is_fixed: bool = False
    tvl_ratio: TvlRatio
    tvl_scaled: ValuationResult
    statuses: list[FetchStatus] = Field(default_factory=list)
    generated_at: datetime = Field(default_factory=_utcnow)

    model_config = {"frozen": True}

    @property
    def base_token(self) -> TokenValuation:
        """The token whose FDV is scaled by the TVL ratio."""
        return self.tokens[0]

    @property
    def subject_tvl_ok(self) -> bool:
        return self.subject_tvl.total > 0

"""Core module - data models, types, configuration and exceptions."""

from .models import (
    AllocationProgramConfig,
    AuditEntry,
    BonusAprResult,
    ComparisonResult,
    CustomPointsComparison,
    FetchStatus,
    MarketSnapshot,
    Phase,
    PhaseValuation,
    ReferenceToken,
    TokenPointsComparison,
    TokenSnapshot,
    TokenValuation,
    TvlRatio,
    TvlSnapshot,
    ValuationResult,
)
from .types import DataSource, FetchSlot
from .exceptions import (
    ConfigurationError,
    DashboardError,
    DataSourceError,
    RateLimitError,
    ValidationError,
)

__all__ = [
    # Models
    "AllocationProgramConfig",
    "AuditEntry",
    "BonusAprResult",
    "ComparisonResult",
    "CustomPointsComparison",
    "FetchStatus",
    "MarketSnapshot",
    "Phase",
    "PhaseValuation",
    "ReferenceToken",
    "TokenPointsComparison",
    "TokenSnapshot",
    "TokenValuation",
    "TvlRatio",
    "TvlSnapshot",
    "ValuationResult",
    # Types
    "DataSource",
    "FetchSlot",
    # Exceptions
    "ConfigurationError",
    "DashboardError",
    "DataSourceError",
    "RateLimitError",
    "ValidationError",
]

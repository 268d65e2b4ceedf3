"""Configuration management for upstream endpoints and server settings.

Loads configuration from environment variables or .env file. The allocation
program constants live in code and can be overridden from a YAML file.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml
from dotenv import load_dotenv
from pydantic import ValidationError as PydanticValidationError

from .models import AllocationProgramConfig, ReferenceToken

logger = logging.getLogger(__name__)

ARMA_STATS_URL = "https://api.arma.xyz/api/v1/8453/stats"
DEFILLAMA_PROTOCOL = "almanak"
USDC_CONTRACT_ADDRESS = "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eb48"
USDC_DECIMALS = 6
SUBJECT_WALLET_ADDRESS = "0x6402D60bEE5e67226F19CFD08A1734586e6c3954"
ETHEREUM_RPC_URL = "https://eth.llamarpc.com"

# Reference TVL used when no live figure could be fetched
DEFAULT_REFERENCE_TVL = 16_389_772.0

DEFAULT_REFERENCE_TOKENS = [
    ReferenceToken(coingecko_id="giza", label="Giza", symbol="GIZA", name="Giza"),
    ReferenceToken(
        coingecko_id="newton-protocol",
        label="Newton",
        symbol="NEWTON",
        name="Newton Protocol",
    ),
]


@dataclass
class AppConfig:
    """Runtime configuration for fetchers, dashboard and server."""

    # Server
    port: int = 3001
    environment: str = "development"
    static_dir: Path = Path("build")

    # CoinGecko (optional - public API works without key)
    coingecko_api_key: Optional[str] = None

    # Base URL of a running proxy server; stats are fetched upstream when unset
    backend_url: Optional[str] = None

    # Upstream stats endpoints proxied by the server, keyed by route name
    stats_upstreams: dict[str, Optional[str]] = field(
        default_factory=lambda: {"arma": ARMA_STATS_URL, "pulse": None}
    )

    ethereum_rpc_url: str = ETHEREUM_RPC_URL
    defillama_protocol: str = DEFILLAMA_PROTOCOL
    subject_wallet_address: str = SUBJECT_WALLET_ADDRESS
    fixed_reference_tvl: float = DEFAULT_REFERENCE_TVL

    program_config_path: Optional[Path] = None

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Load configuration from environment variables."""
        program_path = os.getenv("PROGRAM_CONFIG")
        port = os.getenv("PORT", "3001")
        try:
            port_value = int(port)
        except ValueError:
            logger.warning(f"Invalid PORT value {port!r}, using 3001")
            port_value = 3001

        return cls(
            port=port_value,
            environment=os.getenv("APP_ENV", "development"),
            static_dir=Path(os.getenv("STATIC_DIR", "build")),
            coingecko_api_key=os.getenv("COINGECKO_API_KEY") or None,
            backend_url=(os.getenv("DASHBOARD_BACKEND_URL") or "").rstrip("/") or None,
            stats_upstreams={
                "arma": os.getenv("ARMA_STATS_URL", ARMA_STATS_URL),
                "pulse": os.getenv("PULSE_STATS_URL") or None,
            },
            ethereum_rpc_url=os.getenv("ETHEREUM_RPC_URL", ETHEREUM_RPC_URL),
            program_config_path=Path(program_path) if program_path else None,
        )

    @classmethod
    def load(cls, env_file: Optional[Path] = None) -> "AppConfig":
        """
        Load configuration from .env file and environment variables.

        Args:
            env_file: Optional path to .env file. If not provided,
                      looks for .env in the project root.

        Returns:
            AppConfig instance with loaded values
        """
        if env_file:
            load_dotenv(env_file)
        else:
            project_root = Path(__file__).parent.parent.parent
            env_path = project_root / ".env"
            if env_path.exists():
                load_dotenv(env_path)

        return cls.from_env()

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def has_coingecko_key(self) -> bool:
        """Check if a CoinGecko Pro API key is configured."""
        return bool(self.coingecko_api_key)

    def stats_url(self, upstream: str) -> Optional[str]:
        """
        URL the fetchers should use for an upstream's stats.

        Goes through the proxy server when ``backend_url`` is set, otherwise
        straight to the configured upstream.
        """
        if self.backend_url:
            return f"{self.backend_url}/api/{upstream}/stats"
        return self.stats_upstreams.get(upstream)


def load_program_config(config_path: Path | str | None = None) -> AllocationProgramConfig:
    """
    Load the allocation program constants.

    Args:
        config_path: Optional YAML file overriding any of the program fields.
            Missing or invalid files fall back to the built-in defaults.

    Returns:
        AllocationProgramConfig
    """
    if not config_path:
        return AllocationProgramConfig()

    config_path = Path(config_path)
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            raw: Any = yaml.safe_load(f) or {}
    except FileNotFoundError:
        logger.warning(f"Program config not found: {config_path}, using defaults")
        return AllocationProgramConfig()
    except yaml.YAMLError as e:
        logger.error(f"Invalid YAML in {config_path}: {e}")
        return AllocationProgramConfig()

    if not isinstance(raw, dict):
        logger.error(f"Program config {config_path} is not a mapping, using defaults")
        return AllocationProgramConfig()

    try:
        program = AllocationProgramConfig(**raw)
    except PydanticValidationError as e:
        logger.error(f"Invalid program config in {config_path}: {e}")
        return AllocationProgramConfig()

    logger.info(f"Loaded program config from {config_path}")
    return program


# Global config instance (lazy loaded)
_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = AppConfig.load()
    return _config

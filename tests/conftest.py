"""Pytest configuration and fixtures for FDV comparison dashboard tests."""

import itertools
from pathlib import Path
from typing import Any, Callable

import httpx
import pytest
from web3.providers.async_base import AsyncBaseProvider

from fdv_dashboard.core.config import SUBJECT_WALLET_ADDRESS, AppConfig
from fdv_dashboard.core.models import AllocationProgramConfig, Phase, ReferenceToken

Handler = Callable[[httpx.Request], httpx.Response]

PULSE_STATS_URL = "https://pulse.example/api/stats"


def coingecko_coin(
    coin_id: str,
    symbol: str,
    name: str,
    fdv: float | None,
    price: float = 0.25,
) -> dict[str, Any]:
    """Minimal CoinGecko ``/coins/{id}`` body."""
    market_data: dict[str, Any] = {
        "current_price": {"usd": price, "eur": price * 0.9},
        "market_cap": {"usd": 30_000_000},
        "fully_diluted_valuation": {"usd": fdv} if fdv is not None else {},
        "total_supply": 1_000_000_000,
        "max_supply": 1_000_000_000,
        "circulating_supply": 120_000_000,
        "price_change_percentage_24h": -3.4567,
        "market_cap_rank": 812,
    }
    return {
        "id": coin_id,
        "symbol": symbol,
        "name": name,
        "image": {"large": f"https://img.example/{coin_id}.png"},
        "market_data": market_data,
    }


class StubRpcNode(AsyncBaseProvider):
    """Answers ERC-20 ``balanceOf`` calls from an in-memory balance table.

    Setting ``error`` makes every ``eth_call`` return that JSON-RPC error.
    """

    def __init__(self):
        super().__init__()
        self.balances: dict[str, int] = {}
        self.error: str | None = None
        self.calls: list[dict[str, Any]] = []
        self._ids = itertools.count(1)

    def set_balance(self, holder: str, raw_balance: int) -> None:
        self.balances[holder.lower()] = raw_balance

    async def make_request(self, method: str, params: Any) -> dict[str, Any]:
        response: dict[str, Any] = {"jsonrpc": "2.0", "id": next(self._ids)}
        if method == "eth_chainId":
            response["result"] = "0x1"
        elif method == "eth_call" and self.error is None:
            call = params[0]
            self.calls.append(call)
            data = call["data"]
            data = data.hex() if isinstance(data, bytes) else data
            raw_balance = self.balances.get("0x" + data[-40:].lower(), 0)
            response["result"] = "0x" + format(raw_balance, "064x")
        else:
            response["error"] = {"code": -32000, "message": self.error or f"{method} not stubbed"}
        return response

    async def is_connected(self, show_traceback: bool = False) -> bool:
        return True


class UpstreamRouter:
    """Routes stubbed upstream requests by host and path."""

    def __init__(self):
        self.routes: dict[tuple[str, str], Handler] = {}
        self.requests: list[httpx.Request] = []

    def add(self, host: str, path: str, handler: Handler) -> None:
        self.routes[(host, path)] = handler

    def json(self, host: str, path: str, body: Any, status_code: int = 200) -> None:
        self.add(host, path, lambda request: httpx.Response(status_code, json=body))

    def fail(self, host: str, path: str, status_code: int = 500) -> None:
        self.add(host, path, lambda request: httpx.Response(status_code, text="upstream down"))

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self.routes.get((request.url.host, request.url.path))
        if handler is None:
            return httpx.Response(404, json={"error": "no route"})
        return handler(request)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


@pytest.fixture
def program() -> AllocationProgramConfig:
    """Default allocation program."""
    return AllocationProgramConfig()


@pytest.fixture
def simple_program() -> AllocationProgramConfig:
    """Round-number program used for hand-checked scenarios."""
    return AllocationProgramConfig(
        name="Almanak",
        total_supply=1_000_000_000,
        flat_allocation_percent=0.5,
        point_program_percent=0.048333,
        phases=[Phase(name="Phase 1", points_per_day=150_000, total_points=4_650_000)],
    )


@pytest.fixture
def reference_tokens() -> list[ReferenceToken]:
    return [
        ReferenceToken(coingecko_id="giza", label="Giza", symbol="GIZA", name="Giza"),
        ReferenceToken(
            coingecko_id="newton-protocol",
            label="Newton",
            symbol="NEWTON",
            name="Newton Protocol",
        ),
    ]


@pytest.fixture
def app_config(tmp_path: Path) -> AppConfig:
    """Config pointing every upstream at stub-able hosts."""
    return AppConfig(
        environment="test",
        static_dir=tmp_path / "build",
        stats_upstreams={
            "arma": "https://api.arma.xyz/api/v1/8453/stats",
            "pulse": PULSE_STATS_URL,
        },
    )


@pytest.fixture
def router() -> UpstreamRouter:
    return UpstreamRouter()


@pytest.fixture
def healthy_router(router: UpstreamRouter) -> UpstreamRouter:
    """Every upstream answering with known figures.

    Giza FDV 1B, Newton FDV 500M; Almanak DefiLlama TVL 30M (the USDC
    balance comes from ``rpc_node``);
    Arma 10M + Pulse 2,000 ETH at 3,194.886 = 16,389,772 reference TVL.
    """
    router.json(
        "api.coingecko.com",
        "/api/v3/coins/giza",
        coingecko_coin("giza", "giza", "Giza", 1_000_000_000),
    )
    router.json(
        "api.coingecko.com",
        "/api/v3/coins/newton-protocol",
        coingecko_coin("newton-protocol", "newt", "Newton Protocol", 500_000_000, price=0.5),
    )
    router.json("api.coingecko.com", "/api/v3/simple/price", {"ethereum": {"usd": 3194.886}})
    router.json("api.llama.fi", "/tvl/almanak", 30_000_000)
    router.json("api.arma.xyz", "/api/v1/8453/stats", {"total_balance": 10_000_000})
    router.json("pulse.example", "/api/stats", {"total_balance": str(2_000 * 10**18)})
    return router


@pytest.fixture
def rpc_node() -> StubRpcNode:
    """RPC node holding 2,779,544 USDC in the subject wallet."""
    node = StubRpcNode()
    node.set_balance(SUBJECT_WALLET_ADDRESS, 2_779_544 * 10**6)
    return node


@pytest.fixture
def coin_body() -> Callable[..., dict[str, Any]]:
    """Factory for CoinGecko coin bodies."""
    return coingecko_coin

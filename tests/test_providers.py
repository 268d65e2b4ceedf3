"""Tests for upstream data providers against stubbed transports."""

import httpx
import pytest

from fdv_dashboard.core.exceptions import DataSourceError, RateLimitError
from fdv_dashboard.core.types import DataSource
from fdv_dashboard.providers.market.coingecko import (
    CoinGeckoMarketProvider,
    parse_token_snapshot,
)
from fdv_dashboard.providers.tvl.defillama import DefiLlamaTvlProvider
from fdv_dashboard.providers.tvl.ethereum import EthereumBalanceProvider
from fdv_dashboard.providers.tvl.vault_stats import (
    VaultStatsProvider,
    total_balance,
    wei_to_eth,
)

USDC = "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eb48"
HOLDER = "0x6402D60bEE5e67226F19CFD08A1734586e6c3954"


class TestCoinGeckoMarketProvider:
    """Tests for CoinGecko snapshots and spot prices."""

    @pytest.mark.asyncio
    async def test_get_token_snapshot(self, router, coin_body):
        router.json("api.coingecko.com", "/api/v3/coins/giza", coin_body("giza", "giza", "Giza", 1e9))
        provider = CoinGeckoMarketProvider(transport=router.transport())

        snapshot = await provider.get_token_snapshot("giza")

        assert snapshot.symbol == "GIZA"
        assert snapshot.name == "Giza"
        assert snapshot.fully_diluted_valuation == 1e9
        assert snapshot.current_price == 0.25
        assert snapshot.total_supply == 1_000_000_000
        assert snapshot.market_cap_rank == 812
        assert snapshot.image == "https://img.example/giza.png"

        params = router.requests[0].url.params
        assert params["market_data"] == "true"
        assert params["tickers"] == "false"

    @pytest.mark.asyncio
    async def test_malformed_field(self, router, coin_body):
        body = coin_body("giza", "giza", "Giza", 1e9)
        body["image"] = {"large": 123}
        router.json("api.coingecko.com", "/api/v3/coins/giza", body)
        provider = CoinGeckoMarketProvider(transport=router.transport())

        with pytest.raises(DataSourceError, match="Malformed market data for giza"):
            await provider.get_token_snapshot("giza")

    @pytest.mark.asyncio
    async def test_infinite_rank(self, router):
        body = '{"id": "giza", "symbol": "giza", "market_data": {"market_cap_rank": Infinity}}'
        router.add(
            "api.coingecko.com",
            "/api/v3/coins/giza",
            lambda request: httpx.Response(200, text=body),
        )
        provider = CoinGeckoMarketProvider(transport=router.transport())

        with pytest.raises(DataSourceError, match="Malformed market data"):
            await provider.get_token_snapshot("giza")

    @pytest.mark.asyncio
    async def test_missing_market_data(self, router):
        router.json("api.coingecko.com", "/api/v3/coins/giza", {"id": "giza", "symbol": "giza"})
        provider = CoinGeckoMarketProvider(transport=router.transport())

        with pytest.raises(DataSourceError, match="No market data"):
            await provider.get_token_snapshot("giza")

    @pytest.mark.asyncio
    async def test_http_error(self, router):
        router.fail("api.coingecko.com", "/api/v3/coins/giza", status_code=503)
        provider = CoinGeckoMarketProvider(transport=router.transport())

        with pytest.raises(DataSourceError) as exc_info:
            await provider.get_token_snapshot("giza")

        assert exc_info.value.status_code == 503
        assert exc_info.value.reason == "HTTP error! status: 503"
        assert not provider.get_audit_trail()[-1].success

    @pytest.mark.asyncio
    async def test_rate_limit(self, router):
        router.fail("api.coingecko.com", "/api/v3/coins/giza", status_code=429)
        provider = CoinGeckoMarketProvider(transport=router.transport())

        with pytest.raises(RateLimitError):
            await provider.get_token_snapshot("giza")

    @pytest.mark.asyncio
    async def test_pro_api_key(self, router, coin_body):
        router.json("pro-api.coingecko.com", "/api/v3/coins/giza", coin_body("giza", "giza", "Giza", 1e9))
        provider = CoinGeckoMarketProvider(api_key="secret", transport=router.transport())

        await provider.get_token_snapshot("giza")

        assert router.requests[0].headers["x-cg-pro-api-key"] == "secret"

    @pytest.mark.asyncio
    async def test_get_simple_price(self, router):
        router.json("api.coingecko.com", "/api/v3/simple/price", {"ethereum": {"usd": 3200.5}})
        provider = CoinGeckoMarketProvider(transport=router.transport())

        assert await provider.get_simple_price("ethereum", "usd") == 3200.5

    @pytest.mark.asyncio
    async def test_simple_price_missing(self, router):
        router.json("api.coingecko.com", "/api/v3/simple/price", {})
        provider = CoinGeckoMarketProvider(transport=router.transport())

        with pytest.raises(DataSourceError):
            await provider.get_simple_price()

    def test_parse_snapshot_missing_fields(self):
        snapshot = parse_token_snapshot("newton-protocol", {"market_data": {}})

        assert snapshot.symbol == "NEWTON-PROTOCOL"
        assert snapshot.fully_diluted_valuation is None
        assert snapshot.valuation_fdv is None
        assert snapshot.market_cap_rank is None


class TestDefiLlamaTvlProvider:
    """Tests for the DefiLlama protocol TVL endpoint."""

    @pytest.mark.asyncio
    async def test_bare_number_body(self, router):
        router.json("api.llama.fi", "/tvl/almanak", 12_345_678.9)
        provider = DefiLlamaTvlProvider(transport=router.transport())

        assert await provider.get_protocol_tvl("almanak") == 12_345_678.9

    @pytest.mark.asyncio
    async def test_non_numeric_body(self, router):
        router.json("api.llama.fi", "/tvl/almanak", {"message": "Protocol not found"})
        provider = DefiLlamaTvlProvider(transport=router.transport())

        with pytest.raises(DataSourceError):
            await provider.get_protocol_tvl("almanak")

    @pytest.mark.asyncio
    async def test_malformed_json(self, router):
        router.add("api.llama.fi", "/tvl/almanak", lambda request: httpx.Response(200, text="<html>"))
        provider = DefiLlamaTvlProvider(transport=router.transport())

        with pytest.raises(DataSourceError, match="Malformed JSON"):
            await provider.get_protocol_tvl("almanak")

    @pytest.mark.asyncio
    async def test_transport_error(self):
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        provider = DefiLlamaTvlProvider(transport=httpx.MockTransport(refuse))

        with pytest.raises(DataSourceError, match="connection refused"):
            await provider.get_protocol_tvl("almanak")


class TestEthereumBalanceProvider:
    """Tests for the ERC-20 balanceOf contract call."""

    @pytest.mark.asyncio
    async def test_get_erc20_balance(self, rpc_node):
        rpc_node.set_balance(HOLDER, 1_234_567_890)
        provider = EthereumBalanceProvider("https://eth.llamarpc.com", rpc_provider=rpc_node)

        balance = await provider.get_erc20_balance(HOLDER, USDC, 6)

        assert balance == pytest.approx(1_234.56789)
        data = rpc_node.calls[-1]["data"]
        data = data.hex() if isinstance(data, bytes) else data
        assert data.removeprefix("0x").startswith("70a08231")
        assert provider.get_audit_trail()[-1].success

    @pytest.mark.asyncio
    async def test_lowercase_holder_is_accepted(self, rpc_node):
        provider = EthereumBalanceProvider("https://eth.llamarpc.com", rpc_provider=rpc_node)

        balance = await provider.get_erc20_balance(HOLDER.lower(), USDC.lower(), 6)

        assert balance == pytest.approx(2_779_544)

    @pytest.mark.asyncio
    async def test_invalid_address(self, rpc_node):
        provider = EthereumBalanceProvider("https://eth.llamarpc.com", rpc_provider=rpc_node)

        with pytest.raises(DataSourceError, match="Invalid Ethereum address"):
            await provider.get_erc20_balance("0x1234", USDC, 6)

        assert rpc_node.calls == []

    @pytest.mark.asyncio
    async def test_rpc_error(self, rpc_node):
        rpc_node.error = "rate limited"
        provider = EthereumBalanceProvider("https://eth.llamarpc.com", rpc_provider=rpc_node)

        with pytest.raises(DataSourceError, match="rate limited") as exc_info:
            await provider.get_erc20_balance(HOLDER, USDC, 6)

        assert exc_info.value.reason.startswith("RPC Error: ")
        assert not provider.get_audit_trail()[-1].success


class TestVaultStatsProvider:
    """Tests for the Arma/Pulse stats endpoints."""

    @pytest.mark.asyncio
    async def test_get_stats_sends_headers(self, router):
        body = {"total_balance": 1_500_000.5, "vaults": 3}
        router.json("api.arma.xyz", "/api/v1/8453/stats", body)
        provider = VaultStatsProvider(
            "arma", "https://api.arma.xyz/api/v1/8453/stats", transport=router.transport()
        )

        assert await provider.get_stats() == body
        assert await provider.get_total_balance() == 1_500_000.5
        assert router.requests[0].headers["user-agent"] == "Almanak-App/1.0"
        assert provider.SOURCE == DataSource.ARMA
        assert provider.display_name == "Arma"

    @pytest.mark.asyncio
    async def test_unconfigured_url(self):
        provider = VaultStatsProvider("pulse", None)

        with pytest.raises(DataSourceError, match="No upstream URL"):
            await provider.get_stats()

    def test_total_balance(self):
        assert total_balance({"total_balance": 42}) == 42.0
        assert total_balance({"total_balance": "1000000000000000000"}) == 1e18
        assert total_balance({}) == 0.0
        assert total_balance({"total_balance": None}) == 0.0

    def test_total_balance_not_an_object(self):
        with pytest.raises(DataSourceError):
            total_balance([1, 2, 3])

    def test_wei_to_eth(self):
        assert wei_to_eth("2500000000000000000") == 2.5
        assert wei_to_eth(0) == 0.0

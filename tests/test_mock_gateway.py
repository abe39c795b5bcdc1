"""Tests for copilot.gateway.mock and gateway selection."""

import pytest

from copilot.config import Config
from copilot.errors import ErrorKind, GatewayError
from copilot.gateway.base import LiquidityGateway, is_public_key
from copilot.gateway.factory import build_gateway
from copilot.gateway.live import LiveGateway
from copilot.gateway.mock import MOCK_MID_PRICE, MockGateway, derive_seed, mock_txid
from copilot.gateway.models import AddLiquidityRequest, RemoveLiquidityRequest

WALLET = "So11111111111111111111111111111111111111112"


def _make_config(mock_mode: bool = True) -> Config:
    return Config(
        mock_mode=mock_mode,
        solana_rpc_url="https://api.devnet.solana.com",
        dlmm_api_url=None if mock_mode else "https://dlmm.test",
        strategy_port=4000,
        log_level="INFO",
        cors_origins=["http://localhost:3000"],
        bot_username=None,
        default_band_bps=100,
        fee_per_exit=0.0002,
        store_backend="memory",
        store_db_path="data/copilot.db",
    )


# ── Helpers ──────────────────────────────────────────────────────────────


class TestMockHelpers:
    def test_txid_format(self):
        txid = mock_txid("rebalance-execute", {"pool": "P"})
        assert txid.startswith("MOCK-")
        assert len(txid) == len("MOCK-") + 32
        int(txid[5:], 16)

    def test_txid_deterministic(self):
        assert mock_txid("a", {"x": 1}) == mock_txid("a", {"x": 1})
        assert mock_txid("a", {"x": 1}) != mock_txid("a", {"x": 2})
        assert mock_txid("a", {"x": 1}) != mock_txid("b", {"x": 1})

    def test_seed_uses_last_eight_chars(self):
        assert derive_seed(WALLET) == 7 * ord("1") + ord("2")
        assert derive_seed("XXXX" + WALLET[-8:]) == derive_seed(WALLET)

    def test_public_key_check(self):
        assert is_public_key(WALLET)
        assert not is_public_key("0OIl" * 10)
        assert not is_public_key("short")


# ── Gateway ──────────────────────────────────────────────────────────────


class TestMockGateway:
    def test_satisfies_protocol(self):
        assert isinstance(MockGateway(), LiquidityGateway)

    @pytest.mark.asyncio
    async def test_list_pools(self):
        pools = await MockGateway().list_pools()
        assert [p.address for p in pools] == [
            "MOCK_POOL_SOL_USDC",
            "MOCK_POOL_BTC_USDT",
            "MOCK_POOL_ETH_SOL",
        ]

    @pytest.mark.asyncio
    async def test_mid_price_fixed(self):
        assert await MockGateway().current_mid_price("anything") == MOCK_MID_PRICE

    @pytest.mark.asyncio
    async def test_mid_price_requires_pool(self):
        with pytest.raises(GatewayError) as exc_info:
            await MockGateway().current_mid_price("  ")
        assert exc_info.value.kind is ErrorKind.INVALID_INPUT

    @pytest.mark.asyncio
    @pytest.mark.parametrize("price", [1e308, float("inf"), 10**400])
    async def test_price_to_bin_rejects_unmappable_price(self, price):
        with pytest.raises(GatewayError, match="finite") as exc_info:
            await MockGateway().price_to_bin_index("P", price)
        assert exc_info.value.kind is ErrorKind.INVALID_INPUT

    @pytest.mark.asyncio
    async def test_price_to_bin(self):
        gateway = MockGateway()
        assert await gateway.price_to_bin_index("P", 1.2345) == 123
        assert await gateway.price_to_bin_index("P", 2.0) == 200

    @pytest.mark.asyncio
    @pytest.mark.parametrize("price", [0, -1.0, True, "1.5"])
    async def test_price_to_bin_rejects_bad_price(self, price):
        with pytest.raises(GatewayError) as exc_info:
            await MockGateway().price_to_bin_index("P", price)
        assert exc_info.value.kind is ErrorKind.INVALID_INPUT

    @pytest.mark.asyncio
    async def test_positions_seeded_by_wallet(self):
        positions = await MockGateway().get_user_positions(WALLET)
        assert len(positions) == 2
        first, second = positions
        assert first.pool == "MOCK_POOL_SOL_USDC"
        assert (first.bin_lower, first.bin_upper) == (10, 20)
        assert first.amount_base == "4323"
        assert first.amount_quote == "2751"
        assert first.fees_base == "13"
        assert first.fees_quote == "3"
        assert second.pool == "MOCK_POOL_BTC_USDT"
        assert (second.bin_lower, second.bin_upper) == (0, 15)
        assert second.amount_base == "1965"
        assert second.amount_quote == "1179"

    @pytest.mark.asyncio
    async def test_positions_reject_bad_wallet(self):
        with pytest.raises(GatewayError, match="Invalid Solana public key"):
            await MockGateway().get_user_positions("not-a-wallet")

    @pytest.mark.asyncio
    async def test_add_liquidity(self):
        request = AddLiquidityRequest(
            pool="MOCK_POOL_SOL_USDC", bin_lower=1, bin_upper=3,
            single_sided="base", amount_base="10",
        )
        first = await MockGateway().add_liquidity(request)
        second = await MockGateway().add_liquidity(request)
        assert first.txid == second.txid
        assert first.txid.startswith("MOCK-")

    @pytest.mark.asyncio
    async def test_add_liquidity_validates(self):
        request = AddLiquidityRequest(
            pool="MOCK_POOL_SOL_USDC", bin_lower=5, bin_upper=3, single_sided="both",
        )
        with pytest.raises(GatewayError) as exc_info:
            await MockGateway().add_liquidity(request)
        message = str(exc_info.value)
        assert "binLower" in message
        assert "amountBase" in message
        assert "amountQuote" in message

    @pytest.mark.asyncio
    async def test_remove_liquidity_validates_percent(self):
        request = RemoveLiquidityRequest(
            pool="MOCK_POOL_SOL_USDC", bin_lower=1, bin_upper=3, percent=150,
        )
        with pytest.raises(GatewayError, match="percent"):
            await MockGateway().remove_liquidity(request)

    @pytest.mark.asyncio
    async def test_strategy_transactions(self):
        gateway = MockGateway()
        payload = {"wallet": WALLET, "pool": "MOCK_POOL_SOL_USDC"}
        receipts = await gateway.execute_rebalance(payload)
        armed = await gateway.arm_advanced_order(payload)
        disarmed = await gateway.disarm_advanced_order(payload)
        assert len(receipts) == 1
        assert len({receipts[0].txid, armed.txid, disarmed.txid}) == 3


class TestBuildGateway:
    def test_mock_mode(self):
        assert isinstance(build_gateway(_make_config(True)), MockGateway)

    def test_live_mode(self):
        assert isinstance(build_gateway(_make_config(False)), LiveGateway)

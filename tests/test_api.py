"""Tests for the strategy API — routes, validation, and problem documents."""

from dataclasses import replace

import pytest
from fastapi.testclient import TestClient

from copilot.api.routers import mask_url
from copilot.api.schemas import MOCK_WALLET_ADDRESS
from copilot.config import Config
from copilot.errors import ErrorKind, GatewayError
from copilot.gateway.live import LiveGateway
from copilot.gateway.mock import MockGateway
from copilot.main import create_app
from copilot.store.base import InMemoryStore

WALLET = "So11111111111111111111111111111111111111112"
OTHER_WALLET = "7xKXtg2CW87d97TXJSDpbD5jBkheTqA83TZRuJosgAsU"
POOL = "MOCK_POOL_SOL_USDC"

CANDLE_CSV = "timestamp,open,high,low,close\n0,1.0,1.05,0.95,1.0\n1,1.25,1.3,1.2,1.25\n"


def _make_config(**overrides) -> Config:
    cfg = Config(
        mock_mode=True,
        solana_rpc_url="https://api.devnet.solana.com",
        dlmm_api_url=None,
        strategy_port=4000,
        log_level="INFO",
        cors_origins=["http://localhost:3000"],
        bot_username=None,
        default_band_bps=100,
        fee_per_exit=0.0002,
        store_backend="memory",
        store_db_path="data/copilot.db",
    )
    return replace(cfg, **overrides)


def _client(gateway=None, **overrides) -> TestClient:
    app = create_app(
        _make_config(**overrides),
        gateway=gateway or MockGateway(),
        store=InMemoryStore(),
    )
    return TestClient(app)


class _FailingGateway(MockGateway):
    """Mock gateway whose price lookups fail with a fixed error kind."""

    def __init__(self, kind: ErrorKind, detail: str):
        self._error = GatewayError(kind, detail)

    async def list_pools(self):
        raise self._error

    async def current_mid_price(self, pool):
        raise self._error

    async def price_to_bin_index(self, pool, price):
        raise self._error


@pytest.fixture
def client():
    return _client()


def _assert_problem(resp, status, title=None):
    assert resp.status_code == status
    assert resp.headers["content-type"].startswith("application/problem+json")
    body = resp.json()
    assert body["status"] == status
    assert body["type"]
    if title is not None:
        assert body["title"] == title
    return body


# ── Health & market data ─────────────────────────────────────────────────


class TestHealth:
    def test_mock_health(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "ok"
        assert data["mockMode"] is True
        assert data["rpc"] == {"url": "https://api.devnet.solana.com", "status": "connected"}
        assert data["sdk"] == {"status": "mock"}

    def test_rpc_failure_reported(self):
        client = _client(_FailingGateway(ErrorKind.RPC_ERROR, "ECONNREFUSED"))
        data = client.get("/health").json()
        assert data["status"] == "ok"
        assert data["rpc"]["status"] == "error"

    def test_mask_url(self):
        long_url = "https://mainnet.helius-rpc.com/?api-key=abcdef0123456789"
        masked = mask_url(long_url)
        assert masked == long_url[:24] + "..." + long_url[-6:]
        assert "abcdef01" not in masked
        assert mask_url(None) == "unknown"


class TestMarketData:
    def test_pools(self, client):
        pools = client.get("/pools").json()["pools"]
        assert len(pools) == 3
        assert pools[0]["address"] == POOL
        assert pools[0]["decimalsA"] == 9

    def test_price(self, client):
        assert client.get(f"/price/{POOL}").json() == {"midPrice": 1.2345}

    def test_price_upstream_failure(self):
        client = _client(_FailingGateway(ErrorKind.NOT_FOUND, "Pool X not found"))
        body = _assert_problem(client.get("/price/X"), 404, "Failed to fetch mid price")
        assert body["detail"] == "Pool X not found"
        assert body["code"] == "NotFound"

    def test_positions(self, client):
        positions = client.get(f"/positions/{WALLET}").json()["positions"]
        assert len(positions) == 2
        assert positions[0]["binLower"] == 10
        assert positions[0]["amountBase"] == "4323"

    def test_positions_invalid_wallet(self, client):
        body = _assert_problem(client.get("/positions/nope"), 400, "Invalid Request")
        assert body["code"] == "InvalidInput"


# ── Rebalance ────────────────────────────────────────────────────────────


class TestRebalance:
    def test_plan(self, client):
        resp = client.post("/rebalance/plan", json={"wallet": WALLET, "pool": POOL, "bandBps": 100})
        assert resp.status_code == 200
        assert resp.json() == {
            "inBand": True,
            "target": {"binLower": 122, "binUpper": 125},
            "current": {"midPrice": 1.2345, "binIndex": 123},
        }

    def test_plan_validation_lists_every_issue(self, client):
        resp = client.post("/rebalance/plan", json={"wallet": "short", "pool": "", "bandBps": 0})
        body = _assert_problem(resp, 400, "Invalid Request")
        assert "wallet" in body["detail"]
        assert "pool" in body["detail"]
        assert "bandBps" in body["detail"]

    def test_plan_rejects_non_object_body(self, client):
        _assert_problem(client.post("/rebalance/plan", json=[1, 2]), 400)

    def test_plan_rate_limited_upstream(self):
        client = _client(_FailingGateway(ErrorKind.RATE_LIMITED, "Rate limit exceeded"))
        resp = client.post("/rebalance/plan", json={"wallet": WALLET, "pool": POOL, "bandBps": 100})
        body = _assert_problem(resp, 429)
        assert body["code"] == "RateLimited"

    def test_plan_rpc_failure_is_bad_gateway(self):
        client = _client(_FailingGateway(ErrorKind.RPC_ERROR, "timed out"))
        resp = client.post("/rebalance/plan", json={"wallet": WALLET, "pool": POOL, "bandBps": 100})
        _assert_problem(resp, 502, "Failed to fetch mid price")

    def test_execute_then_cooldown(self, client):
        body = {"wallet": WALLET, "pool": POOL, "bandBps": 100}
        first = client.post("/rebalance/execute", json=body)
        assert first.status_code == 200
        (txid,) = first.json()["txids"]
        assert txid.startswith("MOCK-")

        second = client.post("/rebalance/execute", json=body)
        problem = _assert_problem(second, 429, "Too Many Requests")
        assert problem["detail"].startswith("Try again in ")

        other = client.post("/rebalance/execute", json={**body, "wallet": OTHER_WALLET})
        assert other.status_code == 200

    def test_execute_live_not_implemented(self):
        client = _client(
            LiveGateway(_make_config(mock_mode=False, dlmm_api_url="https://dlmm.test")),
            mock_mode=False,
        )
        resp = client.post("/rebalance/execute", json={"wallet": WALLET, "pool": POOL, "bandBps": 100})
        body = _assert_problem(resp, 501, "Not Implemented")
        assert body["code"] == "NotImplemented"


# ── Advanced orders ──────────────────────────────────────────────────────


class TestAdvancedOrders:
    def _body(self, wallet=WALLET, **spec):
        return {
            "wallet": wallet,
            "pool": POOL,
            "spec": {"kind": "limitSell", "targetPrice": 1.5, **spec},
        }

    def test_plan(self, client):
        resp = client.post("/orders/advanced/plan", json=self._body())
        assert resp.status_code == 200
        data = resp.json()
        assert data["bins"] == [150, 151, 152]
        assert data["singleSided"] == "base"
        assert data["note"]

    def test_plan_rejects_unknown_kind(self, client):
        resp = client.post("/orders/advanced/plan", json=self._body(kind="market"))
        body = _assert_problem(resp, 400)
        assert "spec.kind" in body["detail"]
        assert "must be one of limitBuy" in body["detail"]

    def test_plan_rejects_bad_target(self, client):
        resp = client.post("/orders/advanced/plan", json=self._body(targetPrice=-1))
        body = _assert_problem(resp, 400)
        assert "targetPrice" in body["detail"]

    @pytest.mark.parametrize("route", ["/orders/advanced/plan", "/orders/advanced/arm"])
    def test_rejects_target_that_overflows_bin_index(self, client, route):
        resp = client.post(route, json=self._body(targetPrice=1e308, sizeBase="1"))
        body = _assert_problem(resp, 400, "Invalid Request")
        assert "spec.targetPrice" in body["detail"]

    def test_rejects_infinite_target(self, client):
        raw = (
            '{"wallet": "' + WALLET + '", "pool": "' + POOL + '", '
            '"spec": {"kind": "limitBuy", "targetPrice": Infinity}}'
        )
        resp = client.post(
            "/orders/advanced/plan",
            content=raw,
            headers={"content-type": "application/json"},
        )
        body = _assert_problem(resp, 400)
        assert "spec.targetPrice" in body["detail"]

    def test_arm_requires_size(self, client):
        resp = client.post("/orders/advanced/arm", json=self._body())
        body = _assert_problem(resp, 400)
        assert "positive base size" in body["detail"]

    def test_arm(self, client):
        resp = client.post("/orders/advanced/arm", json=self._body(sizeBase="2"))
        assert resp.status_code == 200
        assert resp.json()["txid"].startswith("MOCK-")

    def test_disarm(self, client):
        resp = client.post("/orders/advanced/disarm", json={"wallet": WALLET, "pool": POOL})
        assert resp.status_code == 200
        assert resp.json()["txid"].startswith("MOCK-")


# ── Bot linking ──────────────────────────────────────────────────────────


class TestBotLinking:
    def test_link_flow(self, client):
        resp = client.post("/bot/link-code", json={"wallet": WALLET})
        assert resp.status_code == 200
        data = resp.json()
        code = data["code"]
        assert len(code) == 8
        assert "/link" in data["note"]

        consumed = client.post("/bot/consume-link", json={"code": code, "telegramId": 42})
        assert consumed.json() == {"wallet": WALLET}
        assert client.get("/bot/wallet/42").json() == {"wallet": WALLET}

        again = client.post("/bot/consume-link", json={"code": code, "telegramId": 42})
        body = _assert_problem(again, 400, "Invalid Link Code")
        assert body["detail"] == "Invalid link code"

    def test_deeplink_with_bot_username(self):
        client = _client(bot_username="copilot_bot")
        data = client.post("/bot/link-code", json={"wallet": WALLET}).json()
        assert data["deeplink"] == f"https://t.me/copilot_bot?start=link_{data['code']}"

    def test_link_code_rate_limited(self, client):
        client.post("/bot/link-code", json={"wallet": WALLET})
        resp = client.post("/bot/link-code", json={"wallet": WALLET})
        body = _assert_problem(resp, 429, "Rate Limited")
        assert body["code"] == "RateLimited"

    def test_mock_wallet_alias(self, client):
        code = client.post("/bot/link-code", json={"wallet": "WALLET_MOCK"}).json()["code"]
        consumed = client.post("/bot/consume-link", json={"code": code, "telegramId": 7})
        assert consumed.json() == {"wallet": MOCK_WALLET_ADDRESS}

    def test_mock_wallet_alias_rejected_in_live_mode(self):
        client = _client(mock_mode=False, dlmm_api_url="https://dlmm.test")
        resp = client.post("/bot/link-code", json={"wallet": "WALLET_MOCK"})
        _assert_problem(resp, 400)

    def test_consume_validation(self, client):
        resp = client.post("/bot/consume-link", json={"code": "abc", "telegramId": -1})
        body = _assert_problem(resp, 400)
        assert "code" in body["detail"]
        assert "telegramId" in body["detail"]

    def test_unknown_telegram_user(self, client):
        body = _assert_problem(client.get("/bot/wallet/999"), 404, "Not Found")
        assert body["detail"] == "No wallet linked for this Telegram user."

    def test_bad_telegram_id(self, client):
        _assert_problem(client.get("/bot/wallet/abc"), 400)


# ── Backtest ─────────────────────────────────────────────────────────────


class TestBacktestEndpoint:
    def test_backtest(self, client):
        resp = client.post("/backtest", json={"csv": CANDLE_CSV, "bandBps": 100, "cooldownSec": 0})
        assert resp.status_code == 200
        data = resp.json()
        assert data["exits"] == 2
        assert data["finalEquity"] == pytest.approx(1.0004)
        assert data["totalFeesPct"] == pytest.approx(0.04)
        assert [p["t"] for p in data["equitySeries"]] == [0, 1000]
        assert data["stats"]["candles"] == 2

    def test_backtest_defaults(self, client):
        resp = client.post("/backtest", json={"csv": CANDLE_CSV})
        assert resp.status_code == 200
        # 900 s default cooldown allows only the first exit
        assert resp.json()["exits"] == 1

    def test_malformed_csv(self, client):
        csv_text = "timestamp,open,high,low,close\n0,1,1,1,1\n1,x,1,1,1\n"
        resp = client.post("/backtest", json={"csv": csv_text})
        body = _assert_problem(resp, 400, "Malformed CSV")
        assert "row 3" in body["detail"]
        assert "open" in body["detail"]

    def test_missing_csv(self, client):
        body = _assert_problem(client.post("/backtest", json={"bandBps": 100}), 400)
        assert "csv" in body["detail"]


def test_unknown_route(client):
    body = _assert_problem(client.get("/does-not-exist"), 404, "Not Found")
    assert body["detail"] == "The requested resource does not exist."

"""Strategy API routers — /health, /pools, /price, /positions, /rebalance,
/orders/advanced, /bot, and /backtest endpoints.

No planning arithmetic here.  Delegates to the planners, the gateway, the
link service, and the backtest engine; failures surface as exceptions that
``copilot.api.problem`` turns into problem documents.
"""

import logging
from typing import Optional

from fastapi import APIRouter

from copilot.api.problem import ProblemError
from copilot.api.schemas import (
    parse_advanced_order,
    parse_backtest,
    parse_consume_link,
    parse_disarm,
    parse_link_code,
    parse_rebalance,
    parse_telegram_id,
)
from copilot.backtest.csv_loader import parse_candles_csv
from copilot.backtest.engine import DEFAULT_FEE_PER_EXIT, BacktestEngine
from copilot.backtest.stats import calculate_stats
from copilot.config import Config
from copilot.errors import ErrorKind, GatewayError, UpstreamUnavailable
from copilot.gateway.base import LiquidityGateway
from copilot.gateway.mock import MockGateway
from copilot.linking import BotLinkService, WalletCooldown
from copilot.planning.band import plan_rebalance
from copilot.planning.orders import plan_advanced_order, required_order_size
from copilot.store.base import InMemoryStore, KeyValueStore

logger = logging.getLogger("copilot")
router = APIRouter()

WALLET_COOLDOWN_SECONDS = 15
LINK_COOLDOWN_SECONDS = 10

# ── Shared state (set during app startup) ────────────────────────────────

_gateway: LiquidityGateway = MockGateway()
_mock_mode: bool = True
_rpc_url: str = "https://api.devnet.solana.com"
_bot_username: Optional[str] = None
_default_band_bps: int = 100
_fee_per_exit: float = DEFAULT_FEE_PER_EXIT
_link_service = BotLinkService(InMemoryStore())
_action_cooldown = WalletCooldown(InMemoryStore(), WALLET_COOLDOWN_SECONDS, scope="action")
_link_cooldown = WalletCooldown(InMemoryStore(), LINK_COOLDOWN_SECONDS, scope="link")


def configure_routers(
    config: Config,
    gateway: LiquidityGateway,
    store: Optional[KeyValueStore] = None,
) -> None:
    """Inject dependencies from the application startup.

    Args:
        config: Application configuration.
        gateway: The mock or live ``LiquidityGateway``.
        store: Backing store for cooldowns and link codes.  A fresh
            ``InMemoryStore`` is used when omitted.
    """
    global _gateway, _mock_mode, _rpc_url, _bot_username  # noqa: PLW0603
    global _default_band_bps, _fee_per_exit  # noqa: PLW0603
    global _link_service, _action_cooldown, _link_cooldown  # noqa: PLW0603
    if store is None:
        store = InMemoryStore()
    _gateway = gateway
    _mock_mode = config.mock_mode
    _rpc_url = config.solana_rpc_url
    _bot_username = config.bot_username
    _default_band_bps = config.default_band_bps
    _fee_per_exit = config.fee_per_exit
    _link_service = BotLinkService(store)
    _action_cooldown = WalletCooldown(store, WALLET_COOLDOWN_SECONDS, scope="action")
    _link_cooldown = WalletCooldown(store, LINK_COOLDOWN_SECONDS, scope="link")


def mask_url(value: Optional[str]) -> str:
    """Shorten long URLs (which may embed API keys) for display."""
    if not value:
        return "unknown"
    trimmed = value.strip()
    if len(trimmed) <= 32:
        return trimmed
    return f"{trimmed[:24]}...{trimmed[-6:]}"


def _enforce_cooldown(cooldown: WalletCooldown, wallet: str, title: str) -> None:
    retry_after = cooldown.check(wallet)
    if retry_after is not None:
        raise ProblemError(
            429, title, f"Try again in {retry_after} seconds.",
            ErrorKind.RATE_LIMITED.value,
        )


# ── Health & market data ─────────────────────────────────────────────────


@router.get("/health")
async def health():
    """Service health including upstream RPC reachability."""
    rpc_status = "connected"
    try:
        await _gateway.list_pools()
    except GatewayError as exc:
        if exc.kind is ErrorKind.RPC_ERROR:
            rpc_status = "error"
    return {
        "status": "ok",
        "mockMode": _mock_mode,
        "rpc": {"url": mask_url(_rpc_url), "status": rpc_status},
        "sdk": {"status": "mock" if _mock_mode else "ready"},
    }


@router.get("/pools")
async def get_pools():
    pools = await _gateway.list_pools()
    return {
        "pools": [
            {
                "address": p.address,
                "tokenA": p.token_a,
                "tokenB": p.token_b,
                "decimalsA": p.decimals_a,
                "decimalsB": p.decimals_b,
            }
            for p in pools
        ]
    }


@router.get("/price/{pool}")
async def get_price(pool: str):
    """Return the pool's current mid price."""
    try:
        mid_price = await _gateway.current_mid_price(pool)
    except GatewayError as exc:
        raise UpstreamUnavailable("Failed to fetch mid price", exc) from exc
    return {"midPrice": mid_price}


@router.get("/positions/{wallet}")
async def get_positions(wallet: str):
    """Return the wallet's liquidity positions."""
    positions = await _gateway.get_user_positions(wallet)
    return {
        "positions": [
            {
                "pool": p.pool,
                "binLower": p.bin_lower,
                "binUpper": p.bin_upper,
                "amountBase": p.amount_base,
                "amountQuote": p.amount_quote,
                "feesBase": p.fees_base,
                "feesQuote": p.fees_quote,
            }
            for p in positions
        ]
    }


# ── Rebalance ────────────────────────────────────────────────────────────


@router.post("/rebalance/plan")
async def post_rebalance_plan(body: dict):
    """Plan a band around the current mid price and report whether it is in range."""
    req = parse_rebalance(body)
    band = await plan_rebalance(_gateway, req.pool, req.band_bps)
    return {
        "inBand": band.in_band,
        "target": {"binLower": band.bin_lower, "binUpper": band.bin_upper},
        "current": {"midPrice": band.mid_price, "binIndex": band.current_bin},
    }


@router.post("/rebalance/execute")
async def post_rebalance_execute(body: dict):
    req = parse_rebalance(body)
    _enforce_cooldown(_action_cooldown, req.wallet, "Too Many Requests")
    receipts = await _gateway.execute_rebalance(
        {"wallet": req.wallet, "pool": req.pool, "bandBps": req.band_bps}
    )
    logger.info("Rebalance executed for %s on %s", req.wallet[:6], req.pool)
    return {"txids": [r.txid for r in receipts]}


# ── Advanced orders ──────────────────────────────────────────────────────


def _spec_payload(spec) -> dict:
    payload = {"kind": spec.kind.value, "targetPrice": spec.target_price}
    if spec.size_quote is not None:
        payload["sizeQuote"] = spec.size_quote
    if spec.size_base is not None:
        payload["sizeBase"] = spec.size_base
    return payload


@router.post("/orders/advanced/plan")
async def post_advanced_plan(body: dict):
    """Choose bins and deposit side for a limit or stop order."""
    req = parse_advanced_order(body)
    plan = await plan_advanced_order(_gateway, req.pool, req.spec)
    return {"bins": plan.bins, "singleSided": plan.single_sided, "note": plan.note}


@router.post("/orders/advanced/arm")
async def post_advanced_arm(body: dict):
    req = parse_advanced_order(body)
    _enforce_cooldown(_action_cooldown, req.wallet, "Too Many Requests")
    plan = await plan_advanced_order(_gateway, req.pool, req.spec)
    required_order_size(req.spec)
    receipt = await _gateway.arm_advanced_order(
        {
            "wallet": req.wallet,
            "pool": req.pool,
            "spec": _spec_payload(req.spec),
            "bins": plan.bins,
        }
    )
    logger.info(
        "Armed %s order for %s on %s bins %s",
        req.spec.kind.value, req.wallet[:6], req.pool, plan.bins,
    )
    return {"txid": receipt.txid}


@router.post("/orders/advanced/disarm")
async def post_advanced_disarm(body: dict):
    req = parse_disarm(body)
    _enforce_cooldown(_action_cooldown, req.wallet, "Too Many Requests")
    receipt = await _gateway.disarm_advanced_order(
        {"wallet": req.wallet, "pool": req.pool}
    )
    return {"txid": receipt.txid}


# ── Bot linking ──────────────────────────────────────────────────────────


@router.post("/bot/link-code")
async def post_link_code(body: dict):
    """Issue a one-time code the Telegram bot can redeem for this wallet."""
    wallet = parse_link_code(body, _mock_mode)
    _enforce_cooldown(_link_cooldown, wallet, "Rate Limited")
    code = _link_service.create_code(wallet)
    if _bot_username:
        return {
            "code": code,
            "deeplink": f"https://t.me/{_bot_username}?start=link_{code}",
        }
    return {
        "code": code,
        "note": "Send /link <CODE> to your bot to complete linking.",
    }


@router.post("/bot/consume-link")
async def post_consume_link(body: dict):
    req = parse_consume_link(body)
    wallet = _link_service.consume_code(req.code, req.telegram_id)
    return {"wallet": wallet}


@router.get("/bot/wallet/{telegram_id}")
async def get_bot_wallet(telegram_id: str):
    wallet = _link_service.get_wallet(parse_telegram_id(telegram_id))
    if wallet is None:
        raise ProblemError(
            404, "Not Found", "No wallet linked for this Telegram user.",
            ErrorKind.NOT_FOUND.value,
        )
    return {"wallet": wallet}


# ── Backtest ─────────────────────────────────────────────────────────────


@router.post("/backtest")
async def post_backtest(body: dict):
    """Replay uploaded CSV candles through the band-reset simulator."""
    req = parse_backtest(body, _default_band_bps)
    candles = parse_candles_csv(req.csv)
    result = BacktestEngine(_fee_per_exit).run(candles, req.band_bps, req.cooldown_sec)
    return {
        "equitySeries": [{"t": p.t, "equity": p.equity} for p in result.equity_series],
        "exits": result.exits,
        "totalFeesPct": result.total_fees_pct,
        "finalEquity": result.final_equity,
        "stats": calculate_stats(result),
    }

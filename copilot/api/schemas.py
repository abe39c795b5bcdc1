"""Request bodies — typed structures plus one validation function per route.

Each ``parse_*`` function takes the raw JSON body, collects every problem it
finds, and raises ``InvalidInput`` listing them, or returns the typed request.
"""

import math
import re
from dataclasses import dataclass
from typing import Any, Optional

from copilot.errors import InvalidInput
from copilot.gateway.base import BIN_SCALING, is_public_key
from copilot.planning.band import MAX_BAND_BPS, MIN_BAND_BPS
from copilot.planning.models import AdvancedOrderSpec
from copilot.planning.orders import parse_order_kind

_LINK_CODE = re.compile(r"^[A-Z0-9]{6,16}$")

MOCK_WALLET_ALIAS = "WALLET_MOCK"
MOCK_WALLET_ADDRESS = "11111111111111111111111111111111"


@dataclass(frozen=True)
class RebalanceRequest:
    wallet: str
    pool: str
    band_bps: int


@dataclass(frozen=True)
class AdvancedOrderRequest:
    wallet: str
    pool: str
    spec: AdvancedOrderSpec


@dataclass(frozen=True)
class DisarmRequest:
    wallet: str
    pool: str


@dataclass(frozen=True)
class ConsumeLinkRequest:
    code: str
    telegram_id: int


@dataclass(frozen=True)
class BacktestRequest:
    csv: str
    band_bps: int
    cooldown_sec: int


# ── Field checks ─────────────────────────────────────────────────────────


def _require_dict(body: Any) -> dict:
    if not isinstance(body, dict):
        raise InvalidInput("body: expected a JSON object")
    return body


def _as_int(value: Any) -> Optional[int]:
    """Integral JSON numbers (``5`` or ``5.0``) as ``int``; otherwise ``None``."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _maps_to_bin(price: float) -> bool:
    try:
        return math.isfinite(float(price) * BIN_SCALING)
    except OverflowError:
        return False


def _check_public_key(body: dict, errors: list[str]) -> str:
    wallet = body.get("wallet")
    if not isinstance(wallet, str) or not 32 <= len(wallet) <= 64:
        errors.append("wallet: must be a 32–64 character string")
    elif not is_public_key(wallet):
        errors.append("wallet: Invalid Solana public key")
    return wallet if isinstance(wallet, str) else ""


def _check_pool(body: dict, errors: list[str]) -> str:
    pool = body.get("pool")
    if not isinstance(pool, str) or not pool:
        errors.append("pool: Pool identifier is required")
        return ""
    return pool


def _check_band_bps(value: Any, errors: list[str]) -> int:
    band_bps = _as_int(value)
    if band_bps is None:
        errors.append("bandBps: must be an integer")
        return 0
    if not MIN_BAND_BPS <= band_bps <= MAX_BAND_BPS:
        errors.append(f"bandBps: must be {MIN_BAND_BPS}–{MAX_BAND_BPS}")
    return band_bps


def _check_spec(raw: Any, errors: list[str]) -> Optional[AdvancedOrderSpec]:
    if not isinstance(raw, dict):
        errors.append("spec: expected an object")
        return None
    kind = None
    try:
        kind = parse_order_kind(raw.get("kind"))
    except InvalidInput as exc:
        errors.append(exc.detail)
    target_price = raw.get("targetPrice")
    if not _is_number(target_price) or not target_price > 0 or not _maps_to_bin(target_price):
        errors.append("spec.targetPrice: must be a positive finite number")
    sizes = {}
    for field_name in ("sizeBase", "sizeQuote"):
        value = raw.get(field_name)
        if value is not None and not isinstance(value, str):
            errors.append(f"spec.{field_name}: must be a string")
        sizes[field_name] = value
    if kind is None or errors:
        return None
    return AdvancedOrderSpec(
        kind=kind,
        target_price=float(target_price),
        size_base=sizes["sizeBase"],
        size_quote=sizes["sizeQuote"],
    )


def _raise_if(errors: list[str]) -> None:
    if errors:
        raise InvalidInput("; ".join(errors))


# ── Route bodies ─────────────────────────────────────────────────────────


def parse_rebalance(body: Any) -> RebalanceRequest:
    body = _require_dict(body)
    errors: list[str] = []
    wallet = _check_public_key(body, errors)
    pool = _check_pool(body, errors)
    band_bps = _check_band_bps(body.get("bandBps"), errors)
    _raise_if(errors)
    return RebalanceRequest(wallet=wallet, pool=pool, band_bps=band_bps)


def parse_advanced_order(body: Any) -> AdvancedOrderRequest:
    body = _require_dict(body)
    errors: list[str] = []
    wallet = _check_public_key(body, errors)
    pool = _check_pool(body, errors)
    spec = _check_spec(body.get("spec"), errors)
    _raise_if(errors)
    return AdvancedOrderRequest(wallet=wallet, pool=pool, spec=spec)  # type: ignore[arg-type]


def parse_disarm(body: Any) -> DisarmRequest:
    body = _require_dict(body)
    errors: list[str] = []
    wallet = _check_public_key(body, errors)
    pool = _check_pool(body, errors)
    _raise_if(errors)
    return DisarmRequest(wallet=wallet, pool=pool)


def parse_link_code(body: Any, mock_mode: bool) -> str:
    """Return the wallet to link, resolving the mock alias in mock mode."""
    body = _require_dict(body)
    wallet = body.get("wallet")
    if not isinstance(wallet, str) or not wallet.strip():
        raise InvalidInput("wallet: Wallet is required")
    wallet = wallet.strip()
    if wallet == MOCK_WALLET_ALIAS:
        if not mock_mode:
            raise InvalidInput("Mock wallet unavailable in live mode.")
        wallet = MOCK_WALLET_ADDRESS
    errors: list[str] = []
    _check_public_key({"wallet": wallet}, errors)
    _raise_if(errors)
    return wallet


def parse_telegram_id(value: Any) -> int:
    telegram_id = _as_int(value)
    if telegram_id is None and isinstance(value, str) and value.isdigit():
        telegram_id = int(value)
    if telegram_id is None or telegram_id <= 0:
        raise InvalidInput("telegramId: must be a positive integer")
    return telegram_id


def parse_consume_link(body: Any) -> ConsumeLinkRequest:
    body = _require_dict(body)
    errors: list[str] = []
    code = body.get("code")
    if not isinstance(code, str) or not _LINK_CODE.match(code):
        errors.append("code: Code must be 6–16 uppercase alphanumeric characters")
    telegram_id = _as_int(body.get("telegramId"))
    if telegram_id is None or telegram_id <= 0:
        errors.append("telegramId: must be a positive integer")
    _raise_if(errors)
    return ConsumeLinkRequest(code=code, telegram_id=telegram_id)  # type: ignore[arg-type]


def parse_backtest(body: Any, default_band_bps: int, default_cooldown_sec: int = 900) -> BacktestRequest:
    body = _require_dict(body)
    errors: list[str] = []
    csv_text = body.get("csv")
    if not isinstance(csv_text, str) or not csv_text.strip():
        errors.append("csv: CSV text is required")
    band_bps = _check_band_bps(body.get("bandBps", default_band_bps), errors)
    cooldown_sec = _as_int(body.get("cooldownSec", default_cooldown_sec))
    if cooldown_sec is None or cooldown_sec < 0:
        errors.append("cooldownSec: must be a non-negative integer")
    _raise_if(errors)
    return BacktestRequest(csv=csv_text, band_bps=band_bps, cooldown_sec=cooldown_sec)  # type: ignore[arg-type]

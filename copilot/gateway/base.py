"""Gateway protocol and shared input validation.

Defines the interface both the mock and live gateways implement.  Every
method is async and raises ``GatewayError`` on failure; callers must not
retry, retry policy belongs to the implementation.
"""

from __future__ import annotations

import math
import re
from typing import Protocol, runtime_checkable

from copilot.errors import InvalidInput
from copilot.gateway.models import (
    AddLiquidityRequest,
    PoolRef,
    RemoveLiquidityRequest,
    TxReceipt,
    UserPosition,
)

BIN_SCALING = 100

_BASE58_KEY = re.compile(r"^[1-9A-HJ-NP-Za-km-z]{32,44}$")


@runtime_checkable
class LiquidityGateway(Protocol):
    """Interface to a concentrated-liquidity pool backend."""

    async def list_pools(self) -> list[PoolRef]:
        ...

    async def current_mid_price(self, pool: str) -> float:
        ...

    async def price_to_bin_index(self, pool: str, price: float) -> int:
        ...

    async def get_user_positions(self, wallet: str) -> list[UserPosition]:
        ...

    async def add_liquidity(self, request: AddLiquidityRequest) -> TxReceipt:
        ...

    async def remove_liquidity(self, request: RemoveLiquidityRequest) -> TxReceipt:
        ...

    # Strategy-level transactions.  *payload* is the validated request body.

    async def execute_rebalance(self, payload: dict) -> list[TxReceipt]:
        ...

    async def arm_advanced_order(self, payload: dict) -> TxReceipt:
        ...

    async def disarm_advanced_order(self, payload: dict) -> TxReceipt:
        ...


# ── Validation ───────────────────────────────────────────────────────────


def is_public_key(value: str) -> bool:
    """``True`` when *value* looks like a base58-encoded Solana public key."""
    return bool(_BASE58_KEY.match(value))


def validate_pool(pool: str) -> str:
    if not isinstance(pool, str) or not pool.strip():
        raise InvalidInput("pool: Pool address is required")
    return pool.strip()


def validate_wallet(wallet: str) -> str:
    if not isinstance(wallet, str) or not wallet:
        raise InvalidInput("wallet: Wallet public key required")
    if not is_public_key(wallet):
        raise InvalidInput("wallet: Invalid Solana public key")
    return wallet


def validate_price(price: float) -> float:
    """Return *price* as a float if it is positive and maps onto a finite bin."""
    if isinstance(price, bool) or not isinstance(price, (int, float)) or not price > 0:
        raise InvalidInput("targetPrice: must be a positive number")
    try:
        value = float(price)
    except OverflowError:
        value = math.inf
    if not math.isfinite(value * BIN_SCALING):
        raise InvalidInput("targetPrice: must be a finite number within bin range")
    return value


def _positive_amount(value) -> bool:
    try:
        return value is not None and float(value) > 0
    except (TypeError, ValueError):
        return False


def validate_add_request(request: AddLiquidityRequest) -> None:
    """Check bin ordering and that each deposited side carries an amount."""
    issues: list[str] = []
    if not request.pool:
        issues.append("pool: Pool address is required")
    if request.bin_lower > request.bin_upper:
        issues.append("binLower: binLower must be less than or equal to binUpper")
    if request.single_sided not in ("base", "quote", "both"):
        issues.append("singleSided: must be one of base, quote, both")
    if request.single_sided != "quote" and not _positive_amount(request.amount_base):
        issues.append("amountBase: amountBase must be provided for base or both sides")
    if request.single_sided != "base" and not _positive_amount(request.amount_quote):
        issues.append("amountQuote: amountQuote must be provided for quote or both sides")
    if issues:
        raise InvalidInput("; ".join(issues))


def validate_remove_request(request: RemoveLiquidityRequest) -> None:
    issues: list[str] = []
    if not request.pool:
        issues.append("pool: Pool address is required")
    if request.bin_lower > request.bin_upper:
        issues.append("binLower: binLower must be less than or equal to binUpper")
    if not 0 <= request.percent <= 100:
        issues.append("percent: must be between 0 and 100")
    if issues:
        raise InvalidInput("; ".join(issues))

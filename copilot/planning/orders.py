"""Advanced order planner — limit/stop orders as single-sided liquidity.

A limit sell rests base tokens at and above the target; a limit buy rests
quote tokens at and below it; a stop loss rests base tokens at and below the
trigger so fills convert to quote as price falls through.
"""

from typing import Callable, Optional

from copilot.errors import GatewayError, InvalidInput, UpstreamUnavailable
from copilot.gateway.base import LiquidityGateway
from copilot.planning.models import AdvancedOrderPlan, AdvancedOrderSpec, OrderKind

BINS_PER_ORDER = 3

_NOTES: dict[OrderKind, str] = {
    OrderKind.LIMIT_SELL: (
        "Places base-only liquidity at/above the target to sell into strength."
    ),
    OrderKind.STOP_LOSS: (
        "Places base-only liquidity below the trigger so fills convert to "
        "quote once price crosses lower."
    ),
    OrderKind.LIMIT_BUY: (
        "Places quote-only liquidity at/below the target to accumulate base "
        "when price trades down."
    ),
}


def parse_order_kind(value) -> OrderKind:
    try:
        return OrderKind(value)
    except ValueError:
        allowed = ", ".join(k.value for k in OrderKind)
        raise InvalidInput(f"spec.kind: must be one of {allowed}") from None


def single_sided_for_kind(kind: OrderKind) -> str:
    """``"base"`` for limit sells and stop losses, ``"quote"`` for limit buys."""
    if kind in (OrderKind.LIMIT_SELL, OrderKind.STOP_LOSS):
        return "base"
    return "quote"


def note_for_kind(kind: OrderKind) -> str:
    return _NOTES[kind]


def build_order_bins(kind: OrderKind, base_index: int) -> list[int]:
    """Candidate bins around *base_index*, never empty and never negative."""
    step = 1 if kind is OrderKind.LIMIT_SELL else -1
    candidates = {base_index + step * offset for offset in range(BINS_PER_ORDER)}
    bins = sorted(b for b in candidates if b >= 0)
    if not bins:
        bins = [max(0, base_index)]
    return bins


def plan_advanced_order_bins(
    kind: OrderKind,
    target_price: float,
    price_to_bin: Callable[[float], int],
) -> AdvancedOrderPlan:
    """Select bins and the deposit side for an advanced order."""
    base_index = int(price_to_bin(target_price))
    return AdvancedOrderPlan(
        bins=build_order_bins(kind, base_index),
        single_sided=single_sided_for_kind(kind),
        note=note_for_kind(kind),
    )


async def plan_advanced_order(
    gateway: LiquidityGateway,
    pool: str,
    spec: AdvancedOrderSpec,
) -> AdvancedOrderPlan:
    """Resolve the target bin through *gateway* and plan the order."""
    try:
        base_index = await gateway.price_to_bin_index(pool, spec.target_price)
    except GatewayError as exc:
        raise UpstreamUnavailable("Failed to calculate target bin", exc) from exc
    return plan_advanced_order_bins(spec.kind, spec.target_price, lambda _: base_index)


def _is_positive(value: Optional[str]) -> bool:
    try:
        return value is not None and float(value) > 0
    except ValueError:
        return False


def required_order_size(spec: AdvancedOrderSpec) -> str:
    """Return the size for the side the order deposits.

    Raises ``InvalidInput`` unless that size is present and positive.
    """
    if single_sided_for_kind(spec.kind) == "base":
        if not _is_positive(spec.size_base):
            raise InvalidInput("Provide a positive base size for this advanced order.")
        return spec.size_base  # type: ignore[return-value]
    if not _is_positive(spec.size_quote):
        raise InvalidInput("Provide a positive quote size for this advanced order.")
    return spec.size_quote  # type: ignore[return-value]

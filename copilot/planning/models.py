"""Planning data models — typed representations for planner outputs."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


@dataclass(frozen=True)
class PriceBand:
    """A concrete bin range around a mid price.

    ``bin_lower <= bin_upper`` always holds, and ``in_band`` is true iff
    ``current_bin`` lies inside the range (inclusive).
    """

    mid_price: float
    band_bps: int
    bin_lower: int
    bin_upper: int
    current_bin: int
    in_band: bool


class OrderKind(str, Enum):
    """Synthetic order types built from single-sided liquidity."""

    LIMIT_BUY = "limitBuy"
    LIMIT_SELL = "limitSell"
    STOP_LOSS = "stopLoss"


@dataclass(frozen=True)
class AdvancedOrderSpec:
    """A limit or stop order expressed as a target price and a size."""

    kind: OrderKind
    target_price: float
    size_base: Optional[str] = None
    size_quote: Optional[str] = None


@dataclass(frozen=True)
class AdvancedOrderPlan:
    """Bins and deposit side chosen for an advanced order."""

    bins: list[int]
    single_sided: str  # "base" or "quote"
    note: str

"""Backtest data models."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class Candle:
    """A single OHLC bar; ``t`` is epoch milliseconds."""

    t: int
    o: float
    h: float
    l: float  # noqa: E741
    c: float


@dataclass(frozen=True)
class EquityPoint:
    t: int
    equity: float


@dataclass(frozen=True)
class BacktestResult:
    """Outcome of one band-reset simulation."""

    equity_series: list[EquityPoint] = field(default_factory=list)
    exits: int = 0
    total_fees_pct: float = 0.0
    final_equity: float = 1.0

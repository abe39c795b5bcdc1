"""Backtest statistics — pure functions for equity-curve analysis."""

from copilot.backtest.models import BacktestResult

_MS_PER_DAY = 86_400_000


def calculate_stats(result: BacktestResult) -> dict:
    """Compute summary statistics from a backtest result.

    Returns:
        Dict with ``candles``, ``exits``, ``final_equity``,
        ``total_fees_pct``, ``max_drawdown_pct`` and ``exits_per_day``.
    """
    series = result.equity_series
    if not series:
        return {
            "candles": 0,
            "exits": result.exits,
            "final_equity": result.final_equity,
            "total_fees_pct": result.total_fees_pct,
            "max_drawdown_pct": 0.0,
            "exits_per_day": 0.0,
        }

    return {
        "candles": len(series),
        "exits": result.exits,
        "final_equity": result.final_equity,
        "total_fees_pct": result.total_fees_pct,
        "max_drawdown_pct": round(_max_drawdown_pct([p.equity for p in series]), 4),
        "exits_per_day": round(_exits_per_day(result.exits, series[0].t, series[-1].t), 4),
    }


# ── Helpers ──────────────────────────────────────────────────────────────


def _max_drawdown_pct(equity: list[float]) -> float:
    """Largest peak-to-trough decline as a percentage of the peak."""
    peak = 0.0
    max_dd = 0.0
    for value in equity:
        if value > peak:
            peak = value
        if peak > 0:
            dd = (peak - value) / peak * 100.0
            if dd > max_dd:
                max_dd = dd
    return max_dd


def _exits_per_day(exits: int, start_ms: int, end_ms: int) -> float:
    """Exit frequency over the covered span; 0.0 for a zero-length span."""
    span = end_ms - start_ms
    if span <= 0:
        return 0.0
    return exits / (span / _MS_PER_DAY)

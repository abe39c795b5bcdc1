"""Backtest engine — replays historical candles through a band-reset strategy.

Models a liquidity provider holding a symmetric band around the last reset
price.  Whenever a candle's range breaks out of the band (and the cooldown
has elapsed) the position exits, books a fixed fee gain, and re-centres on
the candle close.  No real orders are placed.
"""

import math

from copilot.backtest.models import BacktestResult, Candle, EquityPoint
from copilot.planning.band import band_prices

DEFAULT_FEE_PER_EXIT = 0.0002  # 2 bps


class BacktestEngine:
    """Simulates band exits on historical candle data.

    Args:
        fee_per_exit: Fractional equity gain credited on every exit.
    """

    def __init__(self, fee_per_exit: float = DEFAULT_FEE_PER_EXIT) -> None:
        self._fee_per_exit = fee_per_exit

    # ── Public API ───────────────────────────────────────────────────────

    def run(
        self,
        candles: list[Candle],
        band_bps: int,
        cooldown_sec: float,
    ) -> BacktestResult:
        """Execute a full backtest.

        Args:
            candles: Time-ordered candles; rows with non-finite t/h/l/c are
                skipped without touching the state.
            band_bps: Half-width of the band in basis points.
            cooldown_sec: Minimum time between two exits.

        Returns:
            ``BacktestResult`` with one equity point per processed candle.
        """
        equity = 1.0
        exits = 0
        last_exit_ts = -math.inf
        cooldown_ms = cooldown_sec * 1000
        lower, upper = band_prices(candles[0].c if candles else 1.0, band_bps)
        equity_series: list[EquityPoint] = []

        for candle in candles:
            if not all(math.isfinite(v) for v in (candle.t, candle.h, candle.l, candle.c)):
                continue

            can_exit = candle.t >= last_exit_ts + cooldown_ms
            hit_upper = candle.h > upper
            hit_lower = candle.l < lower

            if can_exit and (hit_upper or hit_lower):
                exits += 1
                last_exit_ts = candle.t
                equity += equity * self._fee_per_exit
                lower, upper = band_prices(candle.c, band_bps)

            equity_series.append(EquityPoint(t=candle.t, equity=round(equity, 6)))

        total_fees_pct = (equity - 1.0) * 100 if equity > 0 else 0.0
        return BacktestResult(
            equity_series=equity_series,
            exits=exits,
            total_fees_pct=round(total_fees_pct, 4),
            final_equity=round(equity, 6),
        )

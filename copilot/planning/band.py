"""Band planner — pure bin-range arithmetic plus the gateway-backed wrapper.

``plan_band`` converts a basis-point band around a mid price into a bin range
using any price-to-bin mapping.  ``plan_rebalance`` supplies that mapping from
a ``LiquidityGateway`` and surfaces any gateway failure as
``UpstreamUnavailable`` without retrying.
"""

import asyncio
import math
from typing import Callable

from copilot.errors import GatewayError, InvalidInput, UpstreamUnavailable
from copilot.gateway.base import LiquidityGateway
from copilot.planning.models import PriceBand

BPS_DENOMINATOR = 10_000
MIN_BAND_BPS = 1
MAX_BAND_BPS = 10_000


def validate_band_bps(band_bps: int) -> int:
    """Return *band_bps* if it is an integer in ``[1, 10000]``."""
    if isinstance(band_bps, bool) or not isinstance(band_bps, int):
        raise InvalidInput("bandBps: must be an integer")
    if not MIN_BAND_BPS <= band_bps <= MAX_BAND_BPS:
        raise InvalidInput(
            f"bandBps: must be {MIN_BAND_BPS}–{MAX_BAND_BPS}, got {band_bps}"
        )
    return band_bps


def band_prices(mid_price: float, band_bps: int) -> tuple[float, float]:
    """Return ``(lower_price, upper_price)`` for a symmetric band."""
    ratio = band_bps / BPS_DENOMINATOR
    return mid_price * (1 - ratio), mid_price * (1 + ratio)


def plan_band(
    mid_price: float,
    band_bps: int,
    price_to_bin: Callable[[float], int],
) -> PriceBand:
    """Compute the target bin range and in-band verdict for *mid_price*.

    The lower/upper bins are ordered with min/max so an inverted or
    non-monotonic *price_to_bin* still yields ``bin_lower <= bin_upper``.
    """
    if not math.isfinite(mid_price) or mid_price <= 0:
        raise InvalidInput(f"midPrice: must be a positive number, got {mid_price}")
    validate_band_bps(band_bps)

    lower_price, upper_price = band_prices(mid_price, band_bps)
    lower_bin = price_to_bin(lower_price)
    upper_bin = price_to_bin(upper_price)
    current_bin = price_to_bin(mid_price)

    bin_lower = min(lower_bin, upper_bin)
    bin_upper = max(lower_bin, upper_bin)
    return PriceBand(
        mid_price=mid_price,
        band_bps=band_bps,
        bin_lower=bin_lower,
        bin_upper=bin_upper,
        current_bin=current_bin,
        in_band=bin_lower <= current_bin <= bin_upper,
    )


async def _lookup(
    gateway: LiquidityGateway, pool: str, price: float, stage: str,
) -> int:
    try:
        return await gateway.price_to_bin_index(pool, price)
    except GatewayError as exc:
        raise UpstreamUnavailable(stage, exc) from exc


async def plan_rebalance(
    gateway: LiquidityGateway,
    pool: str,
    band_bps: int,
) -> PriceBand:
    """Fetch the pool's mid price and plan a band around it.

    The three price-to-bin lookups are independent and run concurrently.
    """
    validate_band_bps(band_bps)
    try:
        mid_price = await gateway.current_mid_price(pool)
    except GatewayError as exc:
        raise UpstreamUnavailable("Failed to fetch mid price", exc) from exc

    lower_price, upper_price = band_prices(mid_price, band_bps)
    current_bin, lower_bin, upper_bin = await asyncio.gather(
        _lookup(gateway, pool, mid_price, "Failed to determine active bin"),
        _lookup(gateway, pool, lower_price, "Failed to compute lower band bin"),
        _lookup(gateway, pool, upper_price, "Failed to compute upper band bin"),
    )
    resolved = {
        mid_price: current_bin,
        lower_price: lower_bin,
        upper_price: upper_bin,
    }
    return plan_band(mid_price, band_bps, resolved.__getitem__)

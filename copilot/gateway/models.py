"""Gateway data models — typed representations of DLMM pool objects."""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class PoolRef:
    """A DLMM pool and its token pair."""

    address: str
    token_a: str
    token_b: str
    decimals_a: int
    decimals_b: int


@dataclass(frozen=True)
class UserPosition:
    """A wallet's liquidity position in one pool.

    Amounts are decimal strings in raw token units.
    """

    pool: str
    bin_lower: int
    bin_upper: int
    amount_base: str
    amount_quote: str
    fees_base: str
    fees_quote: str


@dataclass(frozen=True)
class AddLiquidityRequest:
    """Deposit into ``[bin_lower, bin_upper]`` on one or both sides."""

    pool: str
    bin_lower: int
    bin_upper: int
    single_sided: str  # "base", "quote" or "both"
    amount_base: Optional[str] = None
    amount_quote: Optional[str] = None


@dataclass(frozen=True)
class RemoveLiquidityRequest:
    """Withdraw ``percent`` of the liquidity in ``[bin_lower, bin_upper]``."""

    pool: str
    bin_lower: int
    bin_upper: int
    percent: float


@dataclass(frozen=True)
class TxReceipt:
    """Identifier of a submitted (or simulated) transaction."""

    txid: str

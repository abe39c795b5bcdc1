"""Deterministic in-process gateway used in mock mode.

Every answer is a pure function of its inputs: fixed pools, a fixed mid
price, a linear price-to-bin mapping, wallet-seeded positions, and
hash-derived transaction ids.
"""

import hashlib
import json
import logging
from dataclasses import asdict
from typing import Any

from copilot.gateway.base import (
    BIN_SCALING,
    validate_add_request,
    validate_pool,
    validate_price,
    validate_remove_request,
    validate_wallet,
)
from copilot.gateway.models import (
    AddLiquidityRequest,
    PoolRef,
    RemoveLiquidityRequest,
    TxReceipt,
    UserPosition,
)

logger = logging.getLogger("copilot")

MOCK_MID_PRICE = 1.2345

MOCK_POOLS: tuple[PoolRef, ...] = (
    PoolRef(
        address="MOCK_POOL_SOL_USDC",
        token_a="So11111111111111111111111111111111111111112",
        token_b="USDcMock11111111111111111111111111111111",
        decimals_a=9,
        decimals_b=6,
    ),
    PoolRef(
        address="MOCK_POOL_BTC_USDT",
        token_a="BTCMock111111111111111111111111111111111111",
        token_b="USDtMock11111111111111111111111111111111",
        decimals_a=8,
        decimals_b=6,
    ),
    PoolRef(
        address="MOCK_POOL_ETH_SOL",
        token_a="ETHMock11111111111111111111111111111111111",
        token_b="So11111111111111111111111111111111111111112",
        decimals_a=8,
        decimals_b=9,
    ),
)


def mock_txid(prefix: str, payload: Any) -> str:
    """Return ``MOCK-`` + 32 hex chars of sha256 over *prefix* and *payload*."""
    body = json.dumps(payload, separators=(",", ":"), default=str)
    digest = hashlib.sha256(f"{prefix}:{body}".encode("utf-8")).hexdigest()
    return f"MOCK-{digest[:32]}"


def derive_seed(wallet: str) -> int:
    """Sum of the last eight character codes of *wallet*, modulo 10 000."""
    total = 0
    for char in wallet[-8:]:
        total = (total + ord(char)) % 10_000
    return total


class MockGateway:
    """Gateway that never leaves the process."""

    async def list_pools(self) -> list[PoolRef]:
        return list(MOCK_POOLS)

    async def current_mid_price(self, pool: str) -> float:
        validate_pool(pool)
        return MOCK_MID_PRICE

    async def price_to_bin_index(self, pool: str, price: float) -> int:
        validate_pool(pool)
        return round(validate_price(price) * BIN_SCALING)

    async def get_user_positions(self, wallet: str) -> list[UserPosition]:
        seed = derive_seed(validate_wallet(wallet)) or 1
        return [
            UserPosition(
                pool=MOCK_POOLS[0].address,
                bin_lower=10,
                bin_upper=20,
                amount_base=str(seed * 11),
                amount_quote=str(seed * 7),
                fees_base=str(seed % 19),
                fees_quote=str(seed % 13),
            ),
            UserPosition(
                pool=MOCK_POOLS[1].address,
                bin_lower=0,
                bin_upper=15,
                amount_base=str(seed * 5),
                amount_quote=str(seed * 3),
                fees_base=str(seed % 7),
                fees_quote=str(seed % 5),
            ),
        ]

    async def add_liquidity(self, request: AddLiquidityRequest) -> TxReceipt:
        validate_add_request(request)
        logger.info(
            "Mock add liquidity on %s bins [%d, %d]",
            request.pool, request.bin_lower, request.bin_upper,
        )
        return TxReceipt(txid=mock_txid("addLiquidity", asdict(request)))

    async def remove_liquidity(self, request: RemoveLiquidityRequest) -> TxReceipt:
        validate_remove_request(request)
        logger.info(
            "Mock remove %.1f%% liquidity on %s bins [%d, %d]",
            request.percent, request.pool, request.bin_lower, request.bin_upper,
        )
        return TxReceipt(txid=mock_txid("removeLiquidity", asdict(request)))

    async def execute_rebalance(self, payload: dict) -> list[TxReceipt]:
        return [TxReceipt(txid=mock_txid("rebalance-execute", payload))]

    async def arm_advanced_order(self, payload: dict) -> TxReceipt:
        return TxReceipt(txid=mock_txid("advanced-arm", payload))

    async def disarm_advanced_order(self, payload: dict) -> TxReceipt:
        return TxReceipt(txid=mock_txid("advanced-disarm", payload))

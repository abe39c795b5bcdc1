"""DLMM pool metadata REST API async client.

Handles all communication with the live pool backend: pool discovery,
reserve-derived mid prices, and wallet positions.  Liquidity mutations are
not wired up yet and fail with ``SdkError``.
"""

import asyncio
import logging
from typing import Optional

import httpx

from copilot.config import Config
from copilot.errors import (
    ErrorKind,
    ExecutionNotImplemented,
    GatewayError,
    classify_error,
)
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

# Retry settings
_MAX_RETRIES = 3
_RETRY_BASE_DELAY = 1.0  # seconds; doubles each attempt
_RETRYABLE_STATUS_CODES = {502, 503, 504, 429}


def mid_price_from_metadata(metadata: dict) -> float:
    """Quote-per-base price from pool reserves, scaled by token decimals.

    Returns 0.0 when the reserves are missing, non-numeric or empty.
    """
    extra = metadata.get("extra") or {}
    base_decimals = int(extra.get("tokenBaseDecimal") or 0)
    quote_decimals = int(extra.get("tokenQuoteDecimal") or 0)
    try:
        base_raw = float(metadata.get("baseReserve") or 0)
        quote_raw = float(metadata.get("quoteReserve") or 0)
    except (TypeError, ValueError):
        return 0.0
    if base_raw <= 0:
        return 0.0
    base_reserve = base_raw / 10 ** base_decimals
    quote_reserve = quote_raw / 10 ** quote_decimals
    return quote_reserve / base_reserve


def _to_pool_ref(metadata: dict) -> PoolRef:
    extra = metadata.get("extra") or {}
    return PoolRef(
        address=metadata["poolAddress"],
        token_a=metadata.get("baseMint", ""),
        token_b=metadata.get("quoteMint", ""),
        decimals_a=int(extra.get("tokenBaseDecimal") or 0),
        decimals_b=int(extra.get("tokenQuoteDecimal") or 0),
    )


def _fmt_amount(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


class LiveGateway:
    """Async client wrapping the DLMM pool metadata REST API."""

    def __init__(self, config: Config) -> None:
        self._config = config
        self._base_url = (config.dlmm_api_url or "").rstrip("/")
        self._headers = {
            "Accept": "application/json",
            "X-Solana-Rpc": config.solana_rpc_url,
        }

    # ── Retry helper ─────────────────────────────────────────────────────

    async def _request_with_retry(
        self,
        method: str,
        url: str,
        **kwargs,
    ) -> httpx.Response:
        """Execute an HTTP request with exponential-backoff retry.

        Retries on transient server errors (502, 503, 504) and rate-limits
        (429).  Non-retryable errors are raised immediately.
        """
        last_exc: Optional[Exception] = None

        for attempt in range(_MAX_RETRIES):
            try:
                async with httpx.AsyncClient() as client:
                    resp = await getattr(client, method)(
                        url,
                        headers=self._headers,
                        timeout=15.0,
                        **kwargs,
                    )

                if resp.status_code not in _RETRYABLE_STATUS_CODES:
                    resp.raise_for_status()
                    return resp

                reason = f"returned {resp.status_code}"
                last_exc = httpx.HTTPStatusError(
                    f"Server error '{resp.status_code}'",
                    request=resp.request,
                    response=resp,
                )
            except httpx.TransportError as exc:
                reason = f"transport error ({exc})"
                last_exc = exc

            if attempt == _MAX_RETRIES - 1:
                break
            delay = _RETRY_BASE_DELAY * (2 ** attempt)
            logger.warning(
                "DLMM %s %s %s, retry %d/%d in %.1fs",
                method.upper(), url, reason,
                attempt + 1, _MAX_RETRIES - 1, delay,
            )
            await asyncio.sleep(delay)

        logger.warning(
            "DLMM %s %s failed after %d attempts", method.upper(), url, _MAX_RETRIES,
        )
        raise last_exc  # type: ignore[misc]

    async def _get_json(self, path: str, **params) -> dict:
        """GET *path* and decode JSON, translating failures to ``GatewayError``."""
        url = f"{self._base_url}{path}"
        try:
            resp = await self._request_with_retry(
                "get", url, params=params or None,
            )
            return resp.json()
        except httpx.TransportError as exc:
            raise GatewayError(
                ErrorKind.RPC_ERROR, f"Connection to DLMM API failed: {exc}"
            ) from exc
        except (httpx.HTTPStatusError, ValueError) as exc:
            raise classify_error(exc) from exc

    async def _pool_metadata(self, pool: str) -> dict:
        return await self._get_json(f"/pools/{pool}")

    # ── Pools ────────────────────────────────────────────────────────────

    async def list_pools(self) -> list[PoolRef]:
        """Return every pool known to the backend."""
        data = await self._get_json("/pools")
        addresses = data.get("pools", [])
        if not addresses:
            return []
        metadata = await asyncio.gather(
            *(self._pool_metadata(address) for address in addresses)
        )
        try:
            return [_to_pool_ref(m) for m in metadata]
        except KeyError as exc:
            raise GatewayError(
                ErrorKind.SDK_ERROR, f"Malformed pool metadata: missing {exc}"
            ) from exc

    async def current_mid_price(self, pool: str) -> float:
        """Derive the pool's mid price from its reserves."""
        metadata = await self._pool_metadata(validate_pool(pool))
        price = mid_price_from_metadata(metadata)
        if price <= 0:
            raise GatewayError(
                ErrorKind.SDK_ERROR, "Unable to derive mid price from pool reserves"
            )
        return price

    async def price_to_bin_index(self, pool: str, price: float) -> int:
        """Map *price* onto a bin index after confirming the pool exists."""
        price = validate_price(price)
        await self._pool_metadata(validate_pool(pool))
        return round(price * BIN_SCALING)

    # ── Positions ────────────────────────────────────────────────────────

    async def get_user_positions(self, wallet: str) -> list[UserPosition]:
        """Return all of *wallet*'s positions across every pool.

        Position amounts are summed from per-bin reserve information.
        """
        wallet = validate_wallet(wallet)
        try:
            pools = await self.list_pools()
        except GatewayError as exc:
            if exc.kind is ErrorKind.NOT_FOUND:
                return []
            raise

        positions: list[UserPosition] = []
        for pool in pools:
            data = await self._get_json(
                "/positions", payer=wallet, pair=pool.address,
            )
            for raw in data.get("positions", []) or []:
                amount_base = "0"
                amount_quote = "0"
                position_address = raw.get("position")
                if position_address:
                    reserves = await self._get_json(
                        f"/positions/{position_address}/reserves",
                        payer=wallet, pair=pool.address,
                    )
                    base_total = 0.0
                    quote_total = 0.0
                    for reserve in reserves.get("reserves", []):
                        base_total += float(reserve.get("reserveX") or 0)
                        quote_total += float(reserve.get("reserveY") or 0)
                    amount_base = _fmt_amount(base_total)
                    amount_quote = _fmt_amount(quote_total)
                positions.append(
                    UserPosition(
                        pool=pool.address,
                        bin_lower=int(raw.get("lowerBinId") or 0),
                        bin_upper=int(raw.get("upperBinId") or 0),
                        amount_base=amount_base,
                        amount_quote=amount_quote,
                        fees_base="0",
                        fees_quote="0",
                    )
                )
        return positions

    # ── Liquidity ────────────────────────────────────────────────────────

    async def add_liquidity(self, request: AddLiquidityRequest) -> TxReceipt:
        validate_add_request(request)
        await self._pool_metadata(request.pool)
        raise GatewayError(
            ErrorKind.SDK_ERROR, "Add liquidity is not implemented in the wrapper yet"
        )

    async def remove_liquidity(self, request: RemoveLiquidityRequest) -> TxReceipt:
        validate_remove_request(request)
        await self._pool_metadata(request.pool)
        raise GatewayError(
            ErrorKind.SDK_ERROR, "Remove liquidity is not implemented in the wrapper yet"
        )

    async def execute_rebalance(self, payload: dict) -> list[TxReceipt]:
        raise ExecutionNotImplemented("Rebalance execution")

    async def arm_advanced_order(self, payload: dict) -> TxReceipt:
        raise ExecutionNotImplemented("Advanced order arming")

    async def disarm_advanced_order(self, payload: dict) -> TxReceipt:
        raise ExecutionNotImplemented("Advanced order disarming")

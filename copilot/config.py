"""DLMM Copilot — application configuration.

Loads .env variables into a typed config object.
Validates malformed values on startup.
"""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv


_TRUE_VALUES = {"true", "1", "yes", "on"}
_FALSE_VALUES = {"false", "0", "no", "off"}


@dataclass(frozen=True)
class Config:
    """Typed configuration loaded from environment variables."""

    mock_mode: bool
    solana_rpc_url: str
    dlmm_api_url: Optional[str]
    strategy_port: int
    log_level: str
    cors_origins: list[str]
    bot_username: Optional[str]
    default_band_bps: int
    fee_per_exit: float
    store_backend: str  # "memory" or "sqlite"
    store_db_path: str

    @property
    def network(self) -> str:
        """Return the Solana cluster inferred from the RPC URL."""
        url = self.solana_rpc_url.lower()
        if "devnet" in url:
            return "devnet"
        if "testnet" in url:
            return "testnet"
        return "mainnet-beta"


def _optional(name: str) -> Optional[str]:
    value = os.environ.get(name, "").strip()
    return value or None


def _parse_bool(name: str, default: bool) -> bool:
    raw = _optional(name)
    if raw is None:
        return default
    normalized = raw.lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    raise ValueError(f"Invalid boolean for {name}: {raw!r}")


def _parse_int(name: str, default: int, low: int, high: int) -> int:
    raw = _optional(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"Invalid integer for {name}: {raw!r}") from None
    if not low <= value <= high:
        raise ValueError(f"{name} must be {low}–{high}, got {value}")
    return value


def _parse_float(name: str, default: float) -> float:
    raw = _optional(name)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"Invalid number for {name}: {raw!r}") from None
    if value < 0:
        raise ValueError(f"{name} must be non-negative, got {value}")
    return value


def load_config(env_path: str | None = None) -> Config:
    """Load configuration from environment variables.

    Raises ``ValueError`` with a message naming the offending variable when
    a value cannot be parsed, or when live mode is selected without
    ``DLMM_API_URL``.
    """
    load_dotenv(dotenv_path=env_path)

    mock_mode = _parse_bool("MOCK_MODE", True)
    dlmm_api_url = _optional("DLMM_API_URL")
    if not mock_mode and dlmm_api_url is None:
        raise ValueError(
            "Missing required environment variable(s): DLMM_API_URL"
        )

    store_backend = (_optional("STORE_BACKEND") or "memory").lower()
    if store_backend not in ("memory", "sqlite"):
        raise ValueError(
            f"STORE_BACKEND must be 'memory' or 'sqlite', got {store_backend!r}"
        )

    origins = os.environ.get("CORS_ORIGINS", "http://localhost:3000")

    return Config(
        mock_mode=mock_mode,
        solana_rpc_url=_optional("SOLANA_RPC_URL") or "https://api.devnet.solana.com",
        dlmm_api_url=dlmm_api_url,
        strategy_port=_parse_int("STRATEGY_PORT", 4000, 1, 65535),
        log_level=(_optional("LOG_LEVEL") or "INFO").upper(),
        cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
        bot_username=_optional("BOT_USERNAME"),
        default_band_bps=_parse_int("DEFAULT_BAND_BPS", 100, 1, 10_000),
        fee_per_exit=_parse_float("FEE_PER_EXIT", 0.0002),
        store_backend=store_backend,
        store_db_path=_optional("STORE_DB_PATH") or "data/copilot.db",
    )

"""DLMM Copilot — application entry point.

Builds the FastAPI strategy server and provides the CLI entry point for
serving the API and running offline CSV backtests.
"""

import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from copilot.api.problem import install_problem_handlers
from copilot.api.routers import configure_routers, router
from copilot.config import Config
from copilot.gateway.base import LiquidityGateway
from copilot.gateway.factory import build_gateway
from copilot.store.base import KeyValueStore
from copilot.store.factory import build_store

logger = logging.getLogger("copilot")


def create_app(
    config: Config,
    gateway: Optional[LiquidityGateway] = None,
    store: Optional[KeyValueStore] = None,
) -> FastAPI:
    """Assemble the strategy server for *config*.

    *gateway* and *store* default to the ones selected by the configuration.
    """
    if gateway is None:
        gateway = build_gateway(config)
    if store is None:
        store = build_store(config)

    app = FastAPI(title="DLMM Copilot Strategy API", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )
    install_problem_handlers(app)
    configure_routers(config=config, gateway=gateway, store=store)
    app.include_router(router)
    return app


# ── CLI ──────────────────────────────────────────────────────────────────


def _run_cli(argv: Optional[list[str]] = None) -> None:
    """Parse CLI arguments and dispatch to the appropriate mode."""
    import argparse

    from copilot.config import load_config

    parser = argparse.ArgumentParser(description="DLMM liquidity copilot")
    parser.add_argument(
        "--mode",
        choices=["serve", "backtest"],
        default="serve",
        help="Run the strategy API or a CSV backtest (default: serve)",
    )
    parser.add_argument("--csv", help="Candle CSV file for backtest mode")
    parser.add_argument("--band-bps", type=int, help="Band half-width in basis points")
    parser.add_argument(
        "--cooldown-sec", type=int, default=900,
        help="Minimum seconds between exits (default: 900)",
    )
    parser.add_argument("--delimiter", default=",", help="CSV field delimiter")
    parser.add_argument("--env-file", help="Path to a .env file")
    args = parser.parse_args(argv)

    config = load_config(args.env_file)
    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    if args.mode == "backtest":
        if not args.csv:
            parser.error("--csv is required in backtest mode")
        band_bps = args.band_bps if args.band_bps is not None else config.default_band_bps
        _run_backtest(config, args.csv, band_bps, args.cooldown_sec, args.delimiter)
    else:
        _serve(config)


def _serve(config: Config) -> None:
    """Start the strategy API with uvicorn."""
    import uvicorn

    logger.info(
        "Starting DLMM Copilot on port %d (%s mode, %s).",
        config.strategy_port,
        "mock" if config.mock_mode else "live",
        config.network,
    )
    uvicorn.run(
        create_app(config),
        host="0.0.0.0",
        port=config.strategy_port,
        log_level=config.log_level.lower(),
    )


def _run_backtest(
    config: Config, csv_path: str, band_bps: int, cooldown_sec: int, delimiter: str,
) -> dict:
    """Load candles from *csv_path*, simulate, and log summary statistics."""
    from copilot.backtest.csv_loader import load_candles_csv
    from copilot.backtest.engine import BacktestEngine
    from copilot.backtest.stats import calculate_stats

    candles = load_candles_csv(csv_path, delimiter=delimiter)
    result = BacktestEngine(config.fee_per_exit).run(candles, band_bps, cooldown_sec)
    stats = calculate_stats(result)
    logger.info(
        "Backtest complete: %d candles, %d exits, final equity %.6f, "
        "fees %.4f%%, max drawdown %.2f%%",
        stats["candles"],
        stats["exits"],
        stats["final_equity"],
        stats["total_fees_pct"],
        stats["max_drawdown_pct"],
    )
    return stats


if __name__ == "__main__":
    _run_cli()

"""Gateway selection — picks the mock or live implementation at startup."""

import logging

from copilot.config import Config
from copilot.gateway.base import LiquidityGateway
from copilot.gateway.live import LiveGateway
from copilot.gateway.mock import MockGateway

logger = logging.getLogger("copilot")


def build_gateway(config: Config) -> LiquidityGateway:
    """Return a ``MockGateway`` when ``config.mock_mode`` is set, else a ``LiveGateway``."""
    if config.mock_mode:
        logger.info("Using mock DLMM gateway.")
        return MockGateway()
    logger.info("Using live DLMM gateway at %s.", config.dlmm_api_url)
    return LiveGateway(config)

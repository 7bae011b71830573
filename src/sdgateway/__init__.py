"""SD Gateway - plan-gated HTTP proxy for hosted text-to-image inference."""

__version__ = "2.1.0"

from sdgateway.core.config import GatewayConfig, config

__all__ = [
    "GatewayConfig",
    "config",
]

"""Core gatekeeper logic for SD Gateway.

Nothing in this package reads raw HTTP requests; the API layer resolves a
``CallerContext`` and hands decoded JSON to :class:`ImageGateway`.

Architecture Overview
---------------------
1. **Configuration Layer** (config.py):
   - Environment-based configuration using Pydantic Settings
   - All settings prefixed with SDGATEWAY_
2. **Entitlement Layer** (plans.py, entitlements.py):
   - Static plan table and case-insensitive plan resolution
   - Header-based caller resolution producing a typed context
3. **Gatekeeper Layer** (models.py, validation.py, usage.py, gateway.py):
   - Ordered, fail-fast request validation
   - Advisory daily usage counting behind a lock
4. **Upstream Layer** (upstream.py, errors.py):
   - One httpx call per generation, no retries
   - Upstream status mapping into the client error taxonomy
5. **Traffic Guard** (rate_limit.py):
   - Sliding-window request budget per client address
"""

from sdgateway.core.config import ConfigurationError, GatewayConfig, config
from sdgateway.core.errors import ErrorKind, GatewayError
from sdgateway.core.gateway import ImageGateway
from sdgateway.core.plans import PLANS, Plan, resolve_plan

__all__ = [
    "ConfigurationError",
    "ErrorKind",
    "GatewayConfig",
    "GatewayError",
    "ImageGateway",
    "PLANS",
    "Plan",
    "config",
    "resolve_plan",
]

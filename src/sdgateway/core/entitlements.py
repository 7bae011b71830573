"""Caller entitlement resolution.

The gateway is sold through a reseller marketplace that forwards each call
with advisory headers describing the subscriber.  :class:`HeaderEntitlementProvider`
is the only code that reads those headers; everything downstream works with
the typed :class:`CallerContext` it produces.

Recognised headers (all optional):

- ``X-RapidAPI-Subscription``: plan hint (``basic``, ``pro``, ...)
- ``X-RapidAPI-User``: stable caller identifier
- ``X-RapidAPI-Key`` / ``X-API-Key``: caller API key, only fingerprinted
"""

from __future__ import annotations

import hashlib
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Protocol

from sdgateway.core.plans import DEFAULT_PLAN_ID, Plan, resolve_plan

PLAN_HEADER = "x-rapidapi-subscription"
USER_HEADER = "x-rapidapi-user"
API_KEY_HEADERS = ("x-rapidapi-key", "x-api-key")

ANONYMOUS_CALLER = "anonymous"


@dataclass(frozen=True)
class CallerContext:
    """Who is calling and what they are entitled to, for one request.

    ``caller_id`` is used for logging and usage counting only, never for
    authorisation.
    """

    plan: Plan
    caller_id: str
    api_key_present: bool = False


class EntitlementProvider(Protocol):
    def resolve(self, headers: Mapping[str, str], client_host: str | None) -> CallerContext: ...


def _key_fingerprint(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()[:12]


class HeaderEntitlementProvider:
    """Resolve a :class:`CallerContext` from reseller headers.

    Args:
        default_plan: Plan id used when the plan header is absent or unknown.
    """

    def __init__(self, default_plan: str = DEFAULT_PLAN_ID) -> None:
        self._default_plan = default_plan

    def resolve(self, headers: Mapping[str, str], client_host: str | None) -> CallerContext:
        # Starlette headers are case-insensitive; plain dicts from tests are not.
        lowered = {k.lower(): v for k, v in headers.items()}

        plan = resolve_plan(lowered.get(PLAN_HEADER), default=self._default_plan)

        api_key = next(
            (lowered[h].strip() for h in API_KEY_HEADERS if lowered.get(h, "").strip()),
            "",
        )
        user = (lowered.get(USER_HEADER) or "").strip()

        if user:
            caller_id = user
        elif api_key:
            caller_id = f"key:{_key_fingerprint(api_key)}"
        elif client_host:
            caller_id = client_host
        else:
            caller_id = ANONYMOUS_CALLER

        return CallerContext(plan=plan, caller_id=caller_id, api_key_present=bool(api_key))

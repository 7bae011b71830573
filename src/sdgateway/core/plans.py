"""Subscription plans and plan resolution.

Plans are a static, ordered table defined at import time.  The order is the
upgrade path: :func:`next_plan` returns the tier above a plan, and the last
entry is the top tier (no upgrade suggestion).

Usage
-----
::

    from sdgateway.core.plans import resolve_plan, next_plan

    plan = resolve_plan("PRO")       # -> Plan(id="pro", ...)
    plan = resolve_plan("platinum")  # unknown -> default "basic"
    upgrade = next_plan(plan)
"""

from __future__ import annotations

from dataclasses import asdict, dataclass

DEFAULT_PLAN_ID = "basic"


@dataclass(frozen=True)
class Plan:
    """One subscription tier.

    Attributes:
        id: Lowercase identifier matched against the plan header.
        name: Display name.
        max_resolution: Largest permitted edge, in pixels.
        price: Nominal monthly price in USD.
        daily_limit: Advisory number of generations per caller per day.
    """

    id: str
    name: str
    max_resolution: int
    price: float
    daily_limit: int

    def to_dict(self) -> dict:
        return asdict(self)


PLANS: tuple[Plan, ...] = (
    Plan(id="basic", name="Basic", max_resolution=512, price=0.0, daily_limit=50),
    Plan(id="pro", name="Pro", max_resolution=768, price=9.99, daily_limit=1000),
    Plan(id="ultra", name="Ultra", max_resolution=1024, price=29.99, daily_limit=5000),
    Plan(id="mega", name="Mega", max_resolution=1024, price=99.99, daily_limit=20000),
)

_PLANS_BY_ID: dict[str, Plan] = {plan.id: plan for plan in PLANS}


def get_plan(plan_id: str) -> Plan | None:
    """Return the plan with exactly this id, or ``None``."""
    return _PLANS_BY_ID.get(plan_id)


def resolve_plan(hint: str | None, default: str = DEFAULT_PLAN_ID) -> Plan:
    """Map a caller-supplied plan hint to a :class:`Plan`.

    Matching is case-insensitive and ignores surrounding whitespace.  There is
    no error path: an absent or unrecognised hint resolves to ``default``,
    and an unrecognised ``default`` resolves to the lowest tier.

    Args:
        hint: Free-form plan text from a request header.
        default: Plan id used when ``hint`` does not match.

    Returns:
        The matching plan.
    """
    if hint:
        plan = _PLANS_BY_ID.get(hint.strip().lower())
        if plan is not None:
            return plan
    return _PLANS_BY_ID.get(default.strip().lower(), PLANS[0])


def _tiers_above(plan: Plan) -> tuple[Plan, ...]:
    # Match by id so ad hoc plans (e.g. with overridden limits) keep their place.
    for index, candidate in enumerate(PLANS):
        if candidate.id == plan.id:
            return PLANS[index + 1 :]
    return ()


def next_plan(plan: Plan) -> Plan | None:
    """Return the tier directly above ``plan``, or ``None`` for the top tier."""
    above = _tiers_above(plan)
    return above[0] if above else None


def next_plan_with_resolution(plan: Plan, dimension: int) -> Plan | None:
    """Return the cheapest tier above ``plan`` whose limit covers ``dimension``."""
    for candidate in _tiers_above(plan):
        if candidate.max_resolution >= dimension:
            return candidate
    return None

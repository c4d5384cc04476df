from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from typing import Any, Optional

from pydantic import ValidationError

from funnel_builder.funnel_model import Funnel, Tier, find_tier
from funnel_builder.schemas import Page, PricingPlan

logger = logging.getLogger(__name__)

# Page types searched for pricing plans, most specific first.
_PRICING_PAGE_TYPES = ("pricing", "checkout")


class PlanMappingError(ValueError):
    pass


class PlanLaunchError(ValueError):
    pass


def _normalize(value: Optional[str]) -> str:
    return (value or "").strip().lower()


def match_tier(plan_name: str, tiers: Sequence[Tier]) -> Optional[Tier]:
    """Best-effort tier for a plan name.

    An exact case-insensitive match wins over any substring match, so plan
    "Pro" picks tier "Pro" even when "Professional" comes first.
    """
    needle = _normalize(plan_name)
    if not needle:
        return None
    for tier in tiers:
        if _normalize(tier.name) == needle:
            return tier
    for tier in tiers:
        name = _normalize(tier.name)
        if name and (name in needle or needle in name):
            return tier
    return None


def map_plans_to_tiers(plans: Iterable[PricingPlan], tiers: Sequence[Tier]) -> dict[str, str]:
    mapping: dict[str, str] = {}
    for plan in plans:
        tier = match_tier(plan.name, tiers)
        if tier is not None:
            mapping[plan.name] = tier.id
    return mapping


class PlanTierMap:
    """Plan name to tier id mapping with operator overrides.

    Heuristic entries are recomputed on every refresh; entries the operator
    assigned or cleared stay as they were left.
    """

    def __init__(self) -> None:
        self._entries: dict[str, Optional[str]] = {}
        # Operator overrides by plan name, retained across refreshes even for absent plans.
        self._overrides: dict[str, Optional[str]] = {}
        self.plans: tuple[PricingPlan, ...] = ()

    def refresh(self, plans: Iterable[PricingPlan], tiers: Sequence[Tier]) -> None:
        self.plans = tuple(plans)
        tier_ids = {tier.id for tier in tiers}
        entries: dict[str, Optional[str]] = {}
        for plan in self.plans:
            if plan.name in self._overrides:
                tier_id = self._overrides[plan.name]
                # An override pointing at a tier that no longer exists resolves to unmapped.
                entries[plan.name] = tier_id if tier_id in tier_ids else None
                continue
            tier = match_tier(plan.name, tiers)
            entries[plan.name] = tier.id if tier is not None else None
        self._entries = entries

    def assign(self, plan_name: str, tier_id: str, tiers: Sequence[Tier]) -> None:
        if not any(tier.id == tier_id for tier in tiers):
            raise PlanMappingError(f"Tier '{tier_id}' does not exist")
        self._entries[plan_name] = tier_id
        self._overrides[plan_name] = tier_id

    def unassign(self, plan_name: str) -> None:
        self._entries[plan_name] = None
        self._overrides[plan_name] = None

    def is_overridden(self, plan_name: str) -> bool:
        return plan_name in self._overrides

    def get(self, plan_name: str) -> Optional[str]:
        return self._entries.get(plan_name)

    def as_dict(self) -> dict[str, str]:
        return {name: tier_id for name, tier_id in self._entries.items() if tier_id is not None}


def resolve_launch_tier(mapping: Mapping[str, str] | PlanTierMap, plan_name: str, funnel: Funnel) -> Tier:
    tier_id = mapping.get(plan_name)
    if tier_id is None:
        raise PlanLaunchError(f"Plan '{plan_name}' is not mapped to a tier")
    tier = find_tier(funnel, tier_id)
    if tier is None:
        raise PlanLaunchError(f"Plan '{plan_name}' is mapped to a tier that no longer exists")
    if not tier.steps:
        raise PlanLaunchError(f"Tier '{tier.name}' mapped to plan '{plan_name}' has no steps")
    return tier


def _plans_from_content(content: Mapping[str, Any]) -> list[PricingPlan]:
    pricing = content.get("pricing")
    raw = pricing.get("plans") if isinstance(pricing, dict) else None
    if not isinstance(raw, list):
        raw = content.get("plans")
    if not isinstance(raw, list):
        return []
    plans: list[PricingPlan] = []
    for item in raw:
        try:
            plan = PricingPlan.from_content(item)
        except ValidationError as exc:
            logger.warning("plan_mapper.invalid_plan_skipped", extra={"error": str(exc)})
            continue
        if plan is not None:
            plans.append(plan)
    return plans


def extract_pricing_plans(pages: Iterable[Page]) -> list[PricingPlan]:
    pages = list(pages)
    for page_type in _PRICING_PAGE_TYPES:
        for page in pages:
            if page.page_type != page_type:
                continue
            plans = _plans_from_content(page.content_json)
            if plans:
                logger.info(
                    "plan_mapper.plans_extracted",
                    extra={"page_id": page.id, "page_type": page_type, "plans": len(plans)},
                )
                return plans
    return []


def synthesize_plans(tiers: Iterable[Tier]) -> list[PricingPlan]:
    return [
        PricingPlan(name=tier.name, features=[step.label for step in tier.steps])
        for tier in tiers
        if tier.name.strip()
    ]


def pricing_plans_for(pages: Iterable[Page], tiers: Sequence[Tier]) -> list[PricingPlan]:
    plans = extract_pricing_plans(pages)
    if plans:
        return plans
    return synthesize_plans(tiers)

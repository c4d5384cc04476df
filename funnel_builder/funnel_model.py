from __future__ import annotations

import random
import re
import string
import time
from collections.abc import Callable, Collection, Iterable
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

StepType = Literal["checkout", "upsell", "register", "thankyou", "custom"]

TIER_COLORS: tuple[str, ...] = (
    "#27ae60",
    "#667eea",
    "#f39c12",
    "#e74c3c",
    "#9b59b6",
    "#1abc9c",
    "#e91e63",
    "#00bcd4",
)

THANKYOU_AUTO_ADVANCE_SECONDS = 5


@dataclass(frozen=True)
class StepTypeInfo:
    type: str
    label: str
    color: str
    description: str


STEP_TYPES: tuple[StepTypeInfo, ...] = (
    StepTypeInfo("checkout", "Checkout", "#667eea", "Payment / pricing page"),
    StepTypeInfo("upsell", "Upsell", "#e67e22", "One-time offer after purchase"),
    StepTypeInfo("register", "Register", "#27ae60", "Account creation page"),
    StepTypeInfo("thankyou", "Thank You", "#3498db", "Confirmation / welcome page"),
    StepTypeInfo("custom", "Custom Page", "#9b59b6", "Any custom page"),
)

# Tier headers only offer one-click buttons for the first three step types.
QUICK_ADD_STEP_TYPES: tuple[StepTypeInfo, ...] = STEP_TYPES[:3]


class FunnelModelError(ValueError):
    pass


def step_type_info(page_type: str) -> Optional[StepTypeInfo]:
    for info in STEP_TYPES:
        if info.type == page_type:
            return info
    return None


class Step(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    pageType: StepType
    label: str
    pageId: Optional[int] = None
    config: dict[str, Any] = Field(default_factory=dict)


class Tier(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    color: str = TIER_COLORS[0]
    steps: tuple[Step, ...] = ()

    @model_validator(mode="after")
    def validate_unique_step_ids(self) -> "Tier":
        seen: set[str] = set()
        for step in self.steps:
            if step.id in seen:
                raise ValueError(f"Duplicate step id '{step.id}' in tier '{self.id}'")
            seen.add(step.id)
        return self


class Funnel(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    projectId: int
    name: str
    description: Optional[str] = None
    tiers: tuple[Tier, ...] = ()
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None

    @model_validator(mode="after")
    def validate_unique_tier_ids(self) -> "Funnel":
        seen: set[str] = set()
        for tier in self.tiers:
            if tier.id in seen:
                raise ValueError(f"Duplicate tier id '{tier.id}'")
            seen.add(tier.id)
        return self


def new_funnel(*, funnel_id: int, project_id: int, name: str, description: Optional[str] = None) -> Funnel:
    return Funnel(id=funnel_id, projectId=project_id, name=name, description=description)


def slugify(value: str) -> str:
    value = (value or "").strip().lower()
    value = re.sub(r"[^a-z0-9]+", "-", value)
    value = re.sub(r"-{2,}", "-", value).strip("-")
    return value or "tier"


def unique_tier_id(name: str, existing: Collection[str]) -> str:
    base = slugify(name)
    suffix = 0
    while True:
        candidate = base if suffix == 0 else f"{base}-{suffix + 1}"
        if candidate not in existing:
            return candidate
        suffix += 1


_issued_step_ids: set[str] = set()
_STEP_ID_ALPHABET = string.ascii_lowercase + string.digits


def generate_step_id(existing: Collection[str] = ()) -> str:
    while True:
        suffix = "".join(random.choices(_STEP_ID_ALPHABET, k=5))
        candidate = f"step-{int(time.time() * 1000)}-{suffix}"
        if candidate in _issued_step_ids or candidate in existing:
            continue
        _issued_step_ids.add(candidate)
        return candidate


def find_tier(funnel: Funnel, tier_id: str) -> Optional[Tier]:
    for tier in funnel.tiers:
        if tier.id == tier_id:
            return tier
    return None


def find_step(funnel: Funnel, tier_id: str, step_id: str) -> Optional[Step]:
    tier = find_tier(funnel, tier_id)
    if tier is None:
        return None
    for step in tier.steps:
        if step.id == step_id:
            return step
    return None


def step_delay_seconds(step: Step) -> int:
    raw = step.config.get("autoAdvance")
    if raw is None:
        return THANKYOU_AUTO_ADVANCE_SECONDS if step.pageType == "thankyou" else 0
    try:
        return max(0, int(raw))
    except (TypeError, ValueError):
        return 0


def next_tier_color(tiers: Iterable[Tier]) -> str:
    used = {tier.color for tier in tiers}
    for color in TIER_COLORS:
        if color not in used:
            return color
    return TIER_COLORS[0]


def make_step(page_type: str, existing_ids: Collection[str] = ()) -> Step:
    info = step_type_info(page_type)
    if info is None:
        raise FunnelModelError(f"Unknown step type: {page_type}")
    return Step(id=generate_step_id(existing_ids), pageType=info.type, label=info.label)


def replace_tier(funnel: Funnel, tier_id: str, update: Callable[[Tier], Tier]) -> Funnel:
    """Return ``funnel`` with one tier swapped for ``update(tier)``.

    The original object comes back untouched when the tier does not exist or
    ``update`` returns the very same tier, so callers can compare by identity.
    """
    changed = False
    tiers: list[Tier] = []
    for tier in funnel.tiers:
        if tier.id == tier_id:
            updated = update(tier)
            changed = changed or updated is not tier
            tiers.append(updated)
        else:
            tiers.append(tier)
    if not changed:
        return funnel
    return funnel.model_copy(update={"tiers": tuple(tiers)})


def _replace_step(funnel: Funnel, tier_id: str, step_id: str, update: Callable[[Step], Step]) -> Funnel:
    def update_tier(tier: Tier) -> Tier:
        changed = False
        steps: list[Step] = []
        for step in tier.steps:
            if step.id == step_id:
                updated = update(step)
                changed = changed or updated is not step
                steps.append(updated)
            else:
                steps.append(step)
        if not changed:
            return tier
        return tier.model_copy(update={"steps": tuple(steps)})

    return replace_tier(funnel, tier_id, update_tier)


def add_tier(funnel: Funnel, name: str) -> Funnel:
    name = (name or "").strip()
    if not name:
        return funnel
    tier = Tier(
        id=unique_tier_id(name, {t.id for t in funnel.tiers}),
        name=name,
        color=next_tier_color(funnel.tiers),
    )
    return funnel.model_copy(update={"tiers": funnel.tiers + (tier,)})


def rename_tier(funnel: Funnel, tier_id: str, name: str) -> Funnel:
    return replace_tier(
        funnel, tier_id, lambda tier: tier if tier.name == name else tier.model_copy(update={"name": name})
    )


def remove_tier(funnel: Funnel, tier_id: str) -> Funnel:
    tiers = tuple(tier for tier in funnel.tiers if tier.id != tier_id)
    if len(tiers) == len(funnel.tiers):
        return funnel
    return funnel.model_copy(update={"tiers": tiers})


def add_step(funnel: Funnel, tier_id: str, page_type: str) -> Funnel:
    def append(tier: Tier) -> Tier:
        step = make_step(page_type, {s.id for s in tier.steps})
        return tier.model_copy(update={"steps": tier.steps + (step,)})

    return replace_tier(funnel, tier_id, append)


def remove_step(funnel: Funnel, tier_id: str, step_id: str) -> Funnel:
    def drop(tier: Tier) -> Tier:
        steps = tuple(step for step in tier.steps if step.id != step_id)
        if len(steps) == len(tier.steps):
            return tier
        return tier.model_copy(update={"steps": steps})

    return replace_tier(funnel, tier_id, drop)


def duplicate_step(funnel: Funnel, tier_id: str, step_id: str) -> Funnel:
    def clone(tier: Tier) -> Tier:
        for idx, step in enumerate(tier.steps):
            if step.id != step_id:
                continue
            copy = step.model_copy(
                update={
                    "id": generate_step_id({s.id for s in tier.steps}),
                    "label": f"{step.label} (copy)",
                    "config": dict(step.config),
                }
            )
            steps = tier.steps[: idx + 1] + (copy,) + tier.steps[idx + 1 :]
            return tier.model_copy(update={"steps": steps})
        return tier

    return replace_tier(funnel, tier_id, clone)


def relabel_step(funnel: Funnel, tier_id: str, step_id: str, label: str) -> Funnel:
    return _replace_step(
        funnel,
        tier_id,
        step_id,
        lambda step: step if step.label == label else step.model_copy(update={"label": label}),
    )


def link_page(funnel: Funnel, tier_id: str, step_id: str, page_id: int, page_title: str) -> Funnel:
    def link(step: Step) -> Step:
        config = {**step.config, "pageTitle": page_title}
        return step.model_copy(update={"pageId": page_id, "config": config})

    return _replace_step(funnel, tier_id, step_id, link)


def unlink_page(funnel: Funnel, tier_id: str, step_id: str) -> Funnel:
    def unlink(step: Step) -> Step:
        if step.pageId is None and "pageTitle" not in step.config:
            return step
        config = {key: value for key, value in step.config.items() if key != "pageTitle"}
        return step.model_copy(update={"pageId": None, "config": config})

    return _replace_step(funnel, tier_id, step_id, unlink)


def set_step_delay(funnel: Funnel, tier_id: str, step_id: str, seconds: int) -> Funnel:
    seconds = max(0, int(seconds))

    def set_delay(step: Step) -> Step:
        if step.config.get("autoAdvance") == seconds:
            return step
        return step.model_copy(update={"config": {**step.config, "autoAdvance": seconds}})

    return _replace_step(funnel, tier_id, step_id, set_delay)


def strip_page_links(tiers: Iterable[Tier]) -> tuple[Tier, ...]:
    """Drop page links from every step; linked pages belong to a single project."""
    stripped: list[Tier] = []
    for tier in tiers:
        steps = tuple(
            step.model_copy(
                update={
                    "pageId": None,
                    "config": {key: value for key, value in step.config.items() if key != "pageTitle"},
                }
            )
            for step in tier.steps
        )
        stripped.append(tier.model_copy(update={"steps": steps}))
    return tuple(stripped)


def tiers_payload(tiers: Iterable[Tier]) -> list[dict[str, Any]]:
    return [tier.model_dump(mode="json", exclude_none=True) for tier in tiers]


def funnel_payload(funnel: Funnel) -> dict[str, Any]:
    return funnel.model_dump(mode="json", exclude_none=True)

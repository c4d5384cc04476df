from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from funnel_builder.funnel_model import Funnel, Tier, find_tier, generate_step_id, make_step


@dataclass(frozen=True)
class StepLocation:
    tier_id: str
    index: int


@dataclass(frozen=True)
class PaletteItem:
    page_type: str


DragPayload = Union[StepLocation, PaletteItem]


def _insert(steps: tuple, index: int, step) -> tuple:
    index = min(max(index, 0), len(steps))
    return steps[:index] + (step,) + steps[index:]


def _with_steps(funnel: Funnel, updated: dict[str, Tier]) -> Funnel:
    tiers = tuple(updated.get(tier.id, tier) for tier in funnel.tiers)
    return funnel.model_copy(update={"tiers": tiers})


def move_step(funnel: Funnel, source: StepLocation, destination: StepLocation) -> Funnel:
    """Move an existing step to a drop position.

    ``destination.index`` is a gap index in the destination tier as it looks
    before the move: 0 drops in front of the first step, ``len(steps)`` (or
    anything larger) appends.
    """
    src_tier = find_tier(funnel, source.tier_id)
    dst_tier = find_tier(funnel, destination.tier_id)
    if src_tier is None or dst_tier is None:
        return funnel
    if not 0 <= source.index < len(src_tier.steps):
        return funnel

    same_tier = src_tier.id == dst_tier.id
    insert_at = destination.index
    if same_tier and source.index < insert_at:
        insert_at = max(0, insert_at - 1)
    if same_tier and min(max(insert_at, 0), len(src_tier.steps) - 1) == source.index:
        return funnel

    moved = src_tier.steps[source.index]
    remaining = src_tier.steps[: source.index] + src_tier.steps[source.index + 1 :]
    if same_tier:
        tier = src_tier.model_copy(update={"steps": _insert(remaining, insert_at, moved)})
        return _with_steps(funnel, {tier.id: tier})

    src = src_tier.model_copy(update={"steps": remaining})
    if any(step.id == moved.id for step in dst_tier.steps):
        # Step ids only need to be unique per tier; re-key on collision.
        moved = moved.model_copy(update={"id": generate_step_id({s.id for s in dst_tier.steps})})
    dst = dst_tier.model_copy(update={"steps": _insert(dst_tier.steps, insert_at, moved)})
    return _with_steps(funnel, {src.id: src, dst.id: dst})


def insert_new_step(funnel: Funnel, page_type: str, destination: StepLocation) -> Funnel:
    tier = find_tier(funnel, destination.tier_id)
    if tier is None:
        return funnel
    step = make_step(page_type, {s.id for s in tier.steps})
    updated = tier.model_copy(update={"steps": _insert(tier.steps, destination.index, step)})
    return _with_steps(funnel, {updated.id: updated})


def drop(funnel: Funnel, payload: DragPayload, destination: StepLocation) -> Funnel:
    if isinstance(payload, PaletteItem):
        return insert_new_step(funnel, payload.page_type, destination)
    return move_step(funnel, payload, destination)

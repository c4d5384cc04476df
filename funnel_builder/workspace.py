from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Literal, Optional

from funnel_builder import funnel_model, reorder
from funnel_builder.funnel_model import Funnel, FunnelModelError
from funnel_builder.funnels_api import FunnelApiClient, FunnelApiError
from funnel_builder.plan_mapper import (
    PlanLaunchError,
    PlanMappingError,
    PlanTierMap,
    pricing_plans_for,
    resolve_launch_tier,
)
from funnel_builder.schemas import Page, PricingPlan
from funnel_builder.simulation import SimulationController, SimulationError, SimulationSession

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Notice:
    severity: Literal["info", "warning", "error"]
    message: str


class FunnelWorkspace:
    """Authoring state for one project's funnels.

    Holds the active funnel value, applies mutations to it, tracks whether it
    has unsaved changes and tells subscribers after every change. Failures
    never raise out of the public methods; they become a ``Notice``.
    """

    def __init__(
        self,
        api: FunnelApiClient,
        project_id: int,
        *,
        controller: Optional[SimulationController] = None,
    ) -> None:
        self.api = api
        self.project_id = project_id
        self.controller = controller or SimulationController(api)
        self.funnels: list[Funnel] = []
        self.active: Optional[Funnel] = None
        self.dirty = False
        self.notices: list[Notice] = []
        self.plan_map = PlanTierMap()
        self._subscribers: list[Callable[[FunnelWorkspace], None]] = []

    def subscribe(self, callback: Callable[[FunnelWorkspace], None]) -> Callable[[], None]:
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _notify(self) -> None:
        for callback in list(self._subscribers):
            callback(self)

    def _notice(self, severity: Literal["info", "warning", "error"], message: str) -> None:
        level = {"info": logging.INFO, "warning": logging.WARNING, "error": logging.ERROR}[severity]
        logger.log(level, "workspace.notice", extra={"project_id": self.project_id, "notice": message})
        self.notices.append(Notice(severity=severity, message=message))
        self._notify()

    def _replace_listed(self, funnel: Funnel) -> None:
        for idx, existing in enumerate(self.funnels):
            if existing.id == funnel.id:
                self.funnels[idx] = funnel
                return
        self.funnels.append(funnel)

    def select(self, funnel_id: int) -> bool:
        for funnel in self.funnels:
            if funnel.id == funnel_id:
                self.active = funnel
                self.dirty = False
                self._notify()
                return True
        self._notice("error", f"Funnel {funnel_id} is not part of this project")
        return False

    def apply(self, mutator: Callable[..., Funnel], *args: Any) -> bool:
        """Run ``mutator(active, *args)``; returns whether the funnel changed."""
        if self.active is None:
            self._notice("error", "Select or create a funnel first")
            return False
        try:
            updated = mutator(self.active, *args)
        except FunnelModelError as exc:
            self._notice("error", str(exc))
            return False
        if updated is self.active:
            return False
        self.active = updated
        self.dirty = True
        self._notify()
        return True

    def add_tier(self, name: str) -> bool:
        return self.apply(funnel_model.add_tier, name)

    def rename_tier(self, tier_id: str, name: str) -> bool:
        return self.apply(funnel_model.rename_tier, tier_id, name)

    def remove_tier(self, tier_id: str) -> bool:
        return self.apply(funnel_model.remove_tier, tier_id)

    def add_step(self, tier_id: str, page_type: str) -> bool:
        return self.apply(funnel_model.add_step, tier_id, page_type)

    def remove_step(self, tier_id: str, step_id: str) -> bool:
        return self.apply(funnel_model.remove_step, tier_id, step_id)

    def duplicate_step(self, tier_id: str, step_id: str) -> bool:
        return self.apply(funnel_model.duplicate_step, tier_id, step_id)

    def relabel_step(self, tier_id: str, step_id: str, label: str) -> bool:
        return self.apply(funnel_model.relabel_step, tier_id, step_id, label)

    def link_page(self, tier_id: str, step_id: str, page: Page) -> bool:
        return self.apply(funnel_model.link_page, tier_id, step_id, page.id, page.title)

    def unlink_page(self, tier_id: str, step_id: str) -> bool:
        return self.apply(funnel_model.unlink_page, tier_id, step_id)

    def set_step_delay(self, tier_id: str, step_id: str, seconds: int) -> bool:
        return self.apply(funnel_model.set_step_delay, tier_id, step_id, seconds)

    def move(self, source: reorder.StepLocation, destination: reorder.StepLocation) -> bool:
        return self.apply(reorder.move_step, source, destination)

    def drop(self, payload: reorder.DragPayload, destination: reorder.StepLocation) -> bool:
        return self.apply(reorder.drop, payload, destination)

    async def load(self) -> list[Funnel]:
        try:
            funnels = await self.api.list_funnels(self.project_id)
        except FunnelApiError as exc:
            self._notice("error", f"Could not load funnels: {exc}")
            return self.funnels
        self.funnels = list(funnels)
        active_id = self.active.id if self.active is not None else None
        if self.dirty and any(funnel.id == active_id for funnel in self.funnels):
            # Unsaved edits win over the server copy.
            self._replace_listed(self.active)
        else:
            self.active = next((f for f in self.funnels if f.id == active_id), None)
            if self.active is None and self.funnels:
                self.active = self.funnels[0]
            self.dirty = False
        self._notify()
        return self.funnels

    async def create(self, name: str, description: Optional[str] = None) -> Optional[Funnel]:
        name = (name or "").strip()
        if not name:
            self._notice("error", "Funnel name is required")
            return None
        try:
            funnel = await self.api.create_funnel(self.project_id, name, description)
        except FunnelApiError as exc:
            self._notice("error", f"Could not create funnel: {exc}")
            return None
        self.funnels.append(funnel)
        self.active = funnel
        self.dirty = False
        self._notify()
        return funnel

    async def save(self) -> bool:
        if self.active is None:
            self._notice("error", "Select or create a funnel first")
            return False
        if not self.dirty:
            return True
        snapshot = self.active
        try:
            saved = await self.api.update_funnel(
                snapshot.id,
                name=snapshot.name,
                description=snapshot.description,
                tiers=snapshot.tiers,
            )
        except FunnelApiError as exc:
            self._notice("error", f"Could not save funnel: {exc}")
            return False
        self._replace_listed(saved)
        if self.active is snapshot:
            self.active = saved
            self.dirty = False
        logger.info("workspace.saved", extra={"funnel_id": saved.id, "tiers": len(saved.tiers)})
        self._notice("info", "Funnel saved")
        return True

    async def delete(self, funnel_id: int) -> bool:
        try:
            await self.api.delete_funnel(funnel_id)
        except FunnelApiError as exc:
            self._notice("error", f"Could not delete funnel: {exc}")
            return False
        self.funnels = [funnel for funnel in self.funnels if funnel.id != funnel_id]
        if self.active is not None and self.active.id == funnel_id:
            self.active = self.funnels[0] if self.funnels else None
            self.dirty = False
        self._notify()
        return True

    async def clone_sources(self) -> list[Funnel]:
        """Funnels of other projects that can be copied into this one."""
        try:
            funnels = await self.api.list_all_funnels()
        except FunnelApiError as exc:
            self._notice("error", f"Could not load funnels to clone: {exc}")
            return []
        return [funnel for funnel in funnels if funnel.projectId != self.project_id]

    async def clone_from(self, source_funnel_id: int, name: Optional[str] = None) -> Optional[Funnel]:
        try:
            funnel = await self.api.clone_funnel(source_funnel_id, self.project_id, name)
        except FunnelApiError as exc:
            self._notice("error", f"Could not clone funnel: {exc}")
            return None
        self.funnels.append(funnel)
        self.active = funnel
        self.dirty = False
        self._notice("info", f"Cloned into '{funnel.name}'")
        return funnel

    async def load_pricing(self) -> list[PricingPlan]:
        if self.active is None:
            self._notice("error", "Select or create a funnel first")
            return []
        try:
            pages = await self.api.list_pages(self.project_id)
        except FunnelApiError as exc:
            self._notice("warning", f"Could not load pages, using the funnel's tiers as plans: {exc}")
            pages = []
        plans = pricing_plans_for(pages, self.active.tiers)
        self.plan_map.refresh(plans, self.active.tiers)
        self._notify()
        return plans

    def assign_plan(self, plan_name: str, tier_id: Optional[str]) -> bool:
        if tier_id is None:
            self.plan_map.unassign(plan_name)
            self._notify()
            return True
        tiers = self.active.tiers if self.active is not None else ()
        try:
            self.plan_map.assign(plan_name, tier_id, tiers)
        except PlanMappingError as exc:
            self._notice("error", str(exc))
            return False
        self._notify()
        return True

    async def launch_plan(self, plan_name: str) -> Optional[SimulationSession]:
        if self.active is None:
            self._notice("error", "Select or create a funnel first")
            return None
        try:
            tier = resolve_launch_tier(self.plan_map, plan_name, self.active)
        except PlanLaunchError as exc:
            self._notice("error", str(exc))
            return None
        return await self.start_simulation(tier.id)

    async def start_simulation(self, tier_id: str) -> Optional[SimulationSession]:
        if self.active is None:
            self._notice("error", "Select or create a funnel first")
            return None
        try:
            return await self.controller.start(self.active, tier_id)
        except SimulationError as exc:
            self._notice("error", str(exc))
            return None

    def close_simulation(self) -> None:
        self.controller.close()

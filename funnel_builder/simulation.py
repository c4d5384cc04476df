from __future__ import annotations

import asyncio
import enum
import itertools
import logging
import uuid
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal, Optional

from funnel_builder.config import settings
from funnel_builder.content_renderer import render_page, render_placeholder
from funnel_builder.funnel_model import Funnel, Step, Tier, find_tier, step_delay_seconds
from funnel_builder.schemas import Page

if TYPE_CHECKING:
    from funnel_builder.funnels_api import FunnelApiClient

logger = logging.getLogger(__name__)


class SimulationError(ValueError):
    pass


class SimulationState(str, enum.Enum):
    idle = "idle"
    loading = "loading"
    running = "running"
    closed = "closed"


EventKind = Literal[
    "ready",
    "step_changed",
    "countdown_started",
    "countdown_tick",
    "countdown_cancelled",
    "paused",
    "resumed",
    "completed",
    "closed",
]


@dataclass(frozen=True)
class SimulationEvent:
    kind: EventKind
    step_index: int
    token: int
    remaining_seconds: Optional[int] = None


@dataclass(frozen=True)
class StepPreview:
    step: Step
    html: str
    kind: Literal["page", "unrendered", "unlinked"]


def resolve_preview(page: Page) -> Optional[str]:
    if page.html_preview:
        return page.html_preview
    page_type = page.page_type or page.content_json.get("pageType")
    return render_page(page_type, page.content_json)


def resolve_previews(tier: Tier, pages: Iterable[Page]) -> dict[int, str]:
    by_id = {page.id: page for page in pages}
    previews: dict[int, str] = {}
    for step in tier.steps:
        if step.pageId is None or step.pageId in previews:
            continue
        page = by_id.get(step.pageId)
        if page is None:
            logger.warning(
                "simulation.page_missing",
                extra={"tier_id": tier.id, "step_id": step.id, "page_id": step.pageId},
            )
            continue
        html = resolve_preview(page)
        if html is None:
            logger.info(
                "simulation.page_unrendered",
                extra={"tier_id": tier.id, "step_id": step.id, "page_id": step.pageId},
            )
            continue
        previews[step.pageId] = html
    return previews


_tokens = itertools.count(1)


class SimulationSession:
    """One walkthrough of a tier, as an end customer would see it.

    The countdown is described by ``(step_index, remaining_seconds, token)``.
    Only a step change and a tick may touch it; every step change issues a new
    token, so a timer still holding the previous token can no longer advance
    the cursor.
    """

    def __init__(self, tier: Tier, *, funnel_id: Optional[int] = None) -> None:
        if not tier.steps:
            raise SimulationError(f"Tier '{tier.name}' has no steps to simulate")
        self.session_id = uuid.uuid4().hex
        self.funnel_id = funnel_id
        self.tier = tier.model_copy(deep=True)
        self.state = SimulationState.loading
        self.step_index = 0
        self.previews: dict[int, str] = {}
        self.remaining_seconds: Optional[int] = None
        self.paused = False
        self.token = next(_tokens)
        self._listeners: list[Callable[[SimulationEvent], None]] = []

    @property
    def steps(self) -> tuple[Step, ...]:
        return self.tier.steps

    @property
    def current_step(self) -> Step:
        return self.tier.steps[self.step_index]

    @property
    def is_last_step(self) -> bool:
        return self.step_index == len(self.tier.steps) - 1

    @property
    def countdown_running(self) -> bool:
        return self.remaining_seconds is not None

    def subscribe(self, listener: Callable[[SimulationEvent], None]) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, kind: EventKind) -> None:
        event = SimulationEvent(
            kind=kind,
            step_index=self.step_index,
            token=self.token,
            remaining_seconds=self.remaining_seconds,
        )
        for listener in list(self._listeners):
            listener(event)

    def _require_running(self) -> None:
        if self.state is not SimulationState.running:
            raise SimulationError(f"Simulation is {self.state.value}, not running")

    def _cancel_countdown(self) -> None:
        was_running = self.remaining_seconds is not None
        self.remaining_seconds = None
        self.token = next(_tokens)
        if was_running:
            self._emit("countdown_cancelled")

    def _evaluate_step(self) -> None:
        if self.paused or self.is_last_step:
            return
        delay = step_delay_seconds(self.current_step)
        if delay <= 0:
            return
        self.remaining_seconds = delay
        self._emit("countdown_started")

    def _move_to(self, index: int) -> None:
        self._cancel_countdown()
        self.step_index = index
        self._emit("step_changed")
        self._evaluate_step()

    def attach_previews(self, previews: Mapping[int, str]) -> None:
        if self.state is not SimulationState.loading:
            raise SimulationError(f"Simulation is {self.state.value}, not loading")
        self.previews = dict(previews)
        self.state = SimulationState.running
        self._emit("ready")
        self._evaluate_step()

    def next(self) -> bool:
        self._require_running()
        if self.is_last_step:
            return False
        self._move_to(self.step_index + 1)
        return True

    def back(self) -> bool:
        self._require_running()
        if self.step_index == 0:
            return False
        self._move_to(self.step_index - 1)
        return True

    def jump(self, index: int) -> None:
        self._require_running()
        if not 0 <= index < len(self.tier.steps):
            raise SimulationError(f"Step {index + 1} does not exist in tier '{self.tier.name}'")
        if index == self.step_index:
            return
        self._move_to(index)

    def skip(self) -> bool:
        return self.next()

    def pause(self) -> None:
        self._require_running()
        if self.paused:
            return
        self.paused = True
        self._cancel_countdown()
        self._emit("paused")

    def resume(self) -> None:
        self._require_running()
        if not self.paused:
            return
        self.paused = False
        self._emit("resumed")
        self._evaluate_step()

    def tick(self, token: Optional[int] = None) -> bool:
        """Advance the countdown by one second.

        Returns whether the countdown identified by ``token`` is still live
        afterwards; a stale token or an idle countdown is ignored.
        """
        if self.state is not SimulationState.running or self.remaining_seconds is None:
            return False
        if token is not None and token != self.token:
            return False
        self.remaining_seconds -= 1
        if self.remaining_seconds > 0:
            self._emit("countdown_tick")
            return True
        self._move_to(self.step_index + 1)
        return False

    def complete(self) -> None:
        self._require_running()
        if not self.is_last_step:
            raise SimulationError("Only the last step can complete the simulation")
        self._emit("completed")
        self.close()

    def close(self) -> None:
        if self.state is SimulationState.closed:
            return
        self._cancel_countdown()
        self.state = SimulationState.closed
        self._emit("closed")
        self._listeners.clear()

    def current_preview(self) -> StepPreview:
        step = self.current_step
        if step.pageId is None:
            return StepPreview(step=step, html=render_placeholder(step.label, step.pageType, linked=False), kind="unlinked")
        html = self.previews.get(step.pageId)
        if html is None:
            return StepPreview(step=step, html=render_placeholder(step.label, step.pageType, linked=True), kind="unrendered")
        return StepPreview(step=step, html=html, kind="page")


def open_session(funnel: Funnel, tier_id: str) -> SimulationSession:
    if not funnel.tiers:
        raise SimulationError("Add a tier before testing this funnel")
    tier = find_tier(funnel, tier_id)
    if tier is None:
        raise SimulationError(f"Tier '{tier_id}' does not exist in funnel '{funnel.name}'")
    if not tier.steps:
        raise SimulationError(f"Tier '{tier.name}' has no steps to simulate")
    return SimulationSession(tier, funnel_id=funnel.id)


class CountdownRunner:
    """Drives a session's countdown from the running event loop."""

    def __init__(self, session: SimulationSession, *, tick_seconds: Optional[float] = None) -> None:
        self._session = session
        self._tick_seconds = tick_seconds if tick_seconds is not None else settings.SIMULATION_TICK_SECONDS
        self._task: Optional[asyncio.Task] = None
        session.subscribe(self._on_event)

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    def _on_event(self, event: SimulationEvent) -> None:
        if event.kind == "countdown_started":
            self._restart(event.token)
        elif event.kind in ("countdown_cancelled", "closed"):
            self.cancel()

    def _restart(self, token: int) -> None:
        self.cancel()
        self._task = asyncio.get_running_loop().create_task(self._run(token))

    async def _run(self, token: int) -> None:
        while True:
            await asyncio.sleep(self._tick_seconds)
            if not self._session.tick(token):
                return

    def cancel(self) -> None:
        task, self._task = self._task, None
        if task is None or task.done():
            return
        try:
            current = asyncio.current_task()
        except RuntimeError:
            current = None
        # A tick that advances the cursor cancels its own countdown; let it finish.
        if task is not current:
            task.cancel()


class SimulationController:
    """Owns the single open simulation of an authoring surface."""

    def __init__(self, api: "FunnelApiClient", *, tick_seconds: Optional[float] = None) -> None:
        self._api = api
        self._tick_seconds = tick_seconds
        self.current: Optional[SimulationSession] = None
        self._runner: Optional[CountdownRunner] = None

    @property
    def state(self) -> SimulationState:
        if self.current is None:
            return SimulationState.idle
        return self.current.state

    async def start(self, funnel: Funnel, tier_id: str) -> SimulationSession:
        session = open_session(funnel, tier_id)
        self.close()
        self.current = session
        session.subscribe(self._on_session_event)
        logger.info(
            "simulation.loading",
            extra={"session_id": session.session_id, "funnel_id": funnel.id, "tier_id": tier_id},
        )

        pages: list[Page] = []
        if any(step.pageId is not None for step in session.steps):
            try:
                pages = await self._api.list_pages(funnel.projectId)
            except Exception as exc:  # noqa: BLE001
                logger.warning(
                    "simulation.page_catalog_failed",
                    extra={"session_id": session.session_id, "error": str(exc)},
                )

        if self.current is not session or session.state is not SimulationState.loading:
            logger.info("simulation.stale_catalog_discarded", extra={"session_id": session.session_id})
            return session

        previews = resolve_previews(session.tier, pages)
        self._runner = CountdownRunner(session, tick_seconds=self._tick_seconds)
        session.attach_previews(previews)
        logger.info(
            "simulation.running",
            extra={"session_id": session.session_id, "steps": len(session.steps), "previews": len(previews)},
        )
        return session

    def _on_session_event(self, event: SimulationEvent) -> None:
        if event.kind == "closed" and self.current is not None and self.current.token == event.token:
            self.current = None
            self._runner = None

    def close(self) -> None:
        if self.current is None:
            return
        session = self.current
        self.current = None
        session.close()
        if self._runner is not None:
            self._runner.cancel()
            self._runner = None
        logger.info("simulation.closed", extra={"session_id": session.session_id})

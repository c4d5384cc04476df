from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException, Query, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, ORJSONResponse
from sqlalchemy.orm import Session

from funnel_builder.config import settings
from funnel_builder.content_renderer import needs_build_step, render_page
from funnel_builder.db import get_session, init_db
from funnel_builder.funnel_model import Funnel, Tier
from funnel_builder.repository import (
    FunnelNotFoundError,
    FunnelsRepository,
    InvalidFunnelError,
    TierConflictError,
    to_funnel,
)
from funnel_builder.schemas import (
    FunnelCloneRequest,
    FunnelCreateRequest,
    FunnelUpdateRequest,
    RenderPreviewRequest,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _app_lifespan(_app: FastAPI) -> AsyncIterator[None]:
    init_db()
    yield


def _repository(session: Session = Depends(get_session)) -> FunnelsRepository:
    return FunnelsRepository(session)


def _not_found(exc: FunnelNotFoundError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))


def create_app() -> FastAPI:
    app = FastAPI(
        title="Funnel Builder API",
        default_response_class=ORJSONResponse,
        lifespan=_app_lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(_request: Request, exc: Exception) -> ORJSONResponse:
        logger.exception("Unhandled server exception", exc_info=exc)
        return ORJSONResponse(status_code=500, content={"detail": "Internal server error."})

    @app.get("/health")
    async def health() -> dict[str, bool]:
        return {"ok": True}

    @app.get("/api/funnels", response_model=list[Funnel], response_model_exclude_none=True)
    def list_funnels(
        project_id: int = Query(alias="projectId"),
        repo: FunnelsRepository = Depends(_repository),
    ) -> list[Funnel]:
        return [to_funnel(record) for record in repo.list(project_id=project_id)]

    @app.get("/api/funnels/all", response_model=list[Funnel], response_model_exclude_none=True)
    def list_all_funnels(repo: FunnelsRepository = Depends(_repository)) -> list[Funnel]:
        return [to_funnel(record) for record in repo.list_all()]

    @app.get("/api/funnels/{funnel_id}", response_model=Funnel, response_model_exclude_none=True)
    def get_funnel(funnel_id: int, repo: FunnelsRepository = Depends(_repository)) -> Funnel:
        record = repo.get(funnel_id=funnel_id)
        if record is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Funnel {funnel_id} not found")
        return to_funnel(record)

    @app.post(
        "/api/funnels",
        response_model=Funnel,
        response_model_exclude_none=True,
        status_code=status.HTTP_201_CREATED,
    )
    def create_funnel(payload: FunnelCreateRequest, repo: FunnelsRepository = Depends(_repository)) -> Funnel:
        record = repo.create(project_id=payload.projectId, name=payload.name, description=payload.description)
        logger.info("funnels.created", extra={"funnel_id": record.id, "project_id": record.project_id})
        return to_funnel(record)

    @app.put("/api/funnels/{funnel_id}", response_model=Funnel, response_model_exclude_none=True)
    def update_funnel(
        funnel_id: int,
        payload: FunnelUpdateRequest,
        repo: FunnelsRepository = Depends(_repository),
    ) -> Funnel:
        try:
            record = repo.update(
                funnel_id=funnel_id,
                name=payload.name,
                description=payload.description,
                tiers=payload.tiers,
            )
        except FunnelNotFoundError as exc:
            raise _not_found(exc) from exc
        except InvalidFunnelError as exc:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
        return to_funnel(record)

    @app.delete("/api/funnels/{funnel_id}", status_code=status.HTTP_204_NO_CONTENT)
    def delete_funnel(funnel_id: int, repo: FunnelsRepository = Depends(_repository)) -> Response:
        try:
            repo.delete(funnel_id=funnel_id)
        except FunnelNotFoundError as exc:
            raise _not_found(exc) from exc
        logger.info("funnels.deleted", extra={"funnel_id": funnel_id})
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @app.post("/api/funnels/{funnel_id}/tiers", response_model=Funnel, response_model_exclude_none=True)
    def add_tier(funnel_id: int, tier: Tier, repo: FunnelsRepository = Depends(_repository)) -> Funnel:
        try:
            record = repo.add_tier(funnel_id=funnel_id, tier=tier)
        except FunnelNotFoundError as exc:
            raise _not_found(exc) from exc
        except TierConflictError as exc:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
        return to_funnel(record)

    @app.delete("/api/funnels/{funnel_id}/tiers/{tier_id}", response_model=Funnel, response_model_exclude_none=True)
    def remove_tier(funnel_id: int, tier_id: str, repo: FunnelsRepository = Depends(_repository)) -> Funnel:
        try:
            record = repo.remove_tier(funnel_id=funnel_id, tier_id=tier_id)
        except FunnelNotFoundError as exc:
            raise _not_found(exc) from exc
        return to_funnel(record)

    @app.post(
        "/api/funnels/{funnel_id}/clone",
        response_model=Funnel,
        response_model_exclude_none=True,
        status_code=status.HTTP_201_CREATED,
    )
    def clone_funnel(
        funnel_id: int,
        payload: FunnelCloneRequest,
        repo: FunnelsRepository = Depends(_repository),
    ) -> Funnel:
        try:
            record = repo.clone(
                source_funnel_id=funnel_id,
                target_project_id=payload.targetProjectId,
                name=payload.name,
            )
        except FunnelNotFoundError as exc:
            raise _not_found(exc) from exc
        logger.info(
            "funnels.cloned",
            extra={"source_funnel_id": funnel_id, "funnel_id": record.id, "project_id": record.project_id},
        )
        return to_funnel(record)

    @app.post("/api/preview/render", response_class=HTMLResponse)
    def render_preview(payload: RenderPreviewRequest) -> HTMLResponse:
        if needs_build_step(payload.content):
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="Page content needs a build step before it can be previewed",
            )
        html = render_page(payload.pageType, payload.content)
        if html is None:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=f"No preview available for page type '{payload.pageType}'",
            )
        return HTMLResponse(content=html)

    return app


app = create_app()

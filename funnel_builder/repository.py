from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from funnel_builder.funnel_model import Funnel, Tier, strip_page_links, tiers_payload
from funnel_builder.models import FunnelRecord


class FunnelNotFoundError(ValueError):
    pass


class TierConflictError(ValueError):
    pass


class InvalidFunnelError(ValueError):
    pass


DEFAULT_TIERS: tuple[dict[str, Any], ...] = (
    {
        "id": "free",
        "name": "Free",
        "color": "#27ae60",
        "steps": [
            {"id": "free-1", "pageType": "register", "label": "Register"},
        ],
    },
    {
        "id": "pro",
        "name": "Pro",
        "color": "#667eea",
        "steps": [
            {"id": "pro-1", "pageType": "checkout", "label": "Checkout"},
            {"id": "pro-2", "pageType": "upsell", "label": "Upsell Offer"},
            {"id": "pro-3", "pageType": "register", "label": "Register"},
        ],
    },
    {
        "id": "gold",
        "name": "Gold",
        "color": "#f39c12",
        "steps": [
            {"id": "gold-1", "pageType": "checkout", "label": "Checkout"},
            {"id": "gold-2", "pageType": "upsell", "label": "Upsell 1"},
            {"id": "gold-3", "pageType": "upsell", "label": "Upsell 2"},
            {"id": "gold-4", "pageType": "register", "label": "Register"},
        ],
    },
)


def to_funnel(record: FunnelRecord) -> Funnel:
    return Funnel.model_validate(
        {
            "id": record.id,
            "projectId": record.project_id,
            "name": record.name,
            "description": record.description,
            "tiers": record.tiers or [],
            "createdAt": record.created_at,
            "updatedAt": record.updated_at,
        }
    )


def _checked_tiers(tiers: Sequence[Tier]) -> list[dict[str, Any]]:
    seen: set[str] = set()
    for tier in tiers:
        if tier.id in seen:
            raise InvalidFunnelError(f"Duplicate tier id '{tier.id}'")
        seen.add(tier.id)
    return tiers_payload(tiers)


class FunnelsRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def list(self, *, project_id: int) -> list[FunnelRecord]:
        stmt = (
            select(FunnelRecord)
            .where(FunnelRecord.project_id == project_id)
            .order_by(FunnelRecord.created_at.asc(), FunnelRecord.id.asc())
        )
        return list(self.session.scalars(stmt).all())

    def list_all(self) -> list[FunnelRecord]:
        stmt = select(FunnelRecord).order_by(FunnelRecord.created_at.asc(), FunnelRecord.id.asc())
        return list(self.session.scalars(stmt).all())

    def get(self, *, funnel_id: int) -> Optional[FunnelRecord]:
        return self.session.get(FunnelRecord, funnel_id)

    def _require(self, funnel_id: int) -> FunnelRecord:
        record = self.get(funnel_id=funnel_id)
        if record is None:
            raise FunnelNotFoundError(f"Funnel {funnel_id} not found")
        return record

    def _save(self, record: FunnelRecord) -> FunnelRecord:
        self.session.add(record)
        self.session.commit()
        self.session.refresh(record)
        return record

    def create(self, *, project_id: int, name: str, description: Optional[str] = None) -> FunnelRecord:
        record = FunnelRecord(
            project_id=project_id,
            name=name,
            description=description,
            tiers=[dict(tier, steps=[dict(step) for step in tier["steps"]]) for tier in DEFAULT_TIERS],
        )
        return self._save(record)

    def update(
        self,
        *,
        funnel_id: int,
        name: Optional[str] = None,
        description: Optional[str] = None,
        tiers: Optional[Sequence[Tier]] = None,
    ) -> FunnelRecord:
        record = self._require(funnel_id)
        if name is not None:
            record.name = name
        if description is not None:
            record.description = description
        if tiers is not None:
            record.tiers = _checked_tiers(tiers)
        return self._save(record)

    def delete(self, *, funnel_id: int) -> None:
        record = self._require(funnel_id)
        self.session.delete(record)
        self.session.commit()

    def add_tier(self, *, funnel_id: int, tier: Tier) -> FunnelRecord:
        record = self._require(funnel_id)
        if any(existing.get("id") == tier.id for existing in record.tiers or []):
            raise TierConflictError(f"Tier '{tier.id}' already exists in funnel {funnel_id}")
        record.tiers = [*(record.tiers or []), *tiers_payload([tier])]
        return self._save(record)

    def remove_tier(self, *, funnel_id: int, tier_id: str) -> FunnelRecord:
        record = self._require(funnel_id)
        record.tiers = [tier for tier in record.tiers or [] if tier.get("id") != tier_id]
        return self._save(record)

    def clone(self, *, source_funnel_id: int, target_project_id: int, name: Optional[str] = None) -> FunnelRecord:
        source = to_funnel(self._require(source_funnel_id))
        record = FunnelRecord(
            project_id=target_project_id,
            name=(name or "").strip() or f"{source.name} (Copy)",
            description=source.description,
            tiers=tiers_payload(strip_page_links(source.tiers)),
        )
        return self._save(record)

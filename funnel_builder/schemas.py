from __future__ import annotations

import json
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from funnel_builder.funnel_model import Tier


class Page(BaseModel):
    """A page record from the pages service. Read-only to the funnel builder."""

    model_config = ConfigDict(extra="ignore")

    id: int
    title: str = ""
    page_type: str = "custom"
    content_json: dict[str, Any] = Field(default_factory=dict)

    @field_validator("content_json", mode="before")
    @classmethod
    def decode_content(cls, value: Any) -> Any:
        if value is None:
            return {}
        if isinstance(value, str):
            try:
                decoded = json.loads(value)
            except json.JSONDecodeError:
                return {}
            return decoded if isinstance(decoded, dict) else {}
        return value

    @property
    def html_preview(self) -> Optional[str]:
        value = self.content_json.get("htmlPreview")
        if isinstance(value, str) and value.strip():
            return value
        return None


class PricingPlan(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str
    price: str = ""
    popular: bool = False
    features: list[str] = Field(default_factory=list)
    cta: str = "Choose Plan"

    @field_validator("price", mode="before")
    @classmethod
    def coerce_price(cls, value: Any) -> str:
        if value is None:
            return ""
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return f"${value:g}"
        return str(value)

    @field_validator("features", mode="before")
    @classmethod
    def coerce_features(cls, value: Any) -> list[str]:
        if not isinstance(value, list):
            return []
        items: list[str] = []
        for item in value:
            if isinstance(item, str):
                items.append(item)
            elif isinstance(item, dict) and isinstance(item.get("text"), str):
                items.append(item["text"])
        return items

    @classmethod
    def from_content(cls, raw: Any) -> Optional["PricingPlan"]:
        if not isinstance(raw, dict):
            return None
        name = raw.get("name") or raw.get("title")
        if not isinstance(name, str) or not name.strip():
            return None
        cta = raw.get("cta") or raw.get("ctaText")
        if isinstance(cta, dict):
            cta = cta.get("text") or cta.get("label")
        price = raw.get("price")
        if not isinstance(price, (str, int, float)) or isinstance(price, bool):
            price = None
        return cls(
            name=name.strip(),
            price=price,
            popular=bool(raw.get("popular") or raw.get("highlighted")),
            features=raw.get("features"),
            cta=cta.strip() if isinstance(cta, str) and cta.strip() else "Choose Plan",
        )


class FunnelCreateRequest(BaseModel):
    projectId: int
    name: str = Field(min_length=1)
    description: Optional[str] = None

    @field_validator("name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Funnel name must not be blank")
        return value


class FunnelUpdateRequest(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    tiers: Optional[list[Tier]] = None


class FunnelCloneRequest(BaseModel):
    targetProjectId: int
    name: Optional[str] = None


class RenderPreviewRequest(BaseModel):
    pageType: str
    content: dict[str, Any] = Field(default_factory=dict)

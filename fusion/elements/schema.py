from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from fusion.elements.models import Element


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FuseRequest(BaseModel):
    name1: str | None = Field(None, description="First parent element name")
    name2: str | None = Field(None, description="Second parent element name")


class ElementResponse(CamelModel):
    id: str
    name: str
    description: str
    icon_url: str
    created_at: datetime
    combined_from: list[str] = []

    @classmethod
    def from_element(cls, element: Element) -> ElementResponse:
        return cls(
            id=element.id,
            name=element.name,
            description=element.description,
            icon_url=element.icon_url,
            created_at=element.created_at,
            combined_from=list(element.combined_from),
        )


class ElementEnvelope(BaseModel):
    element: ElementResponse


class ElementListResponse(BaseModel):
    elements: list[ElementResponse]


class FusionResponse(BaseModel):
    message: str
    element: ElementResponse


class ResetResponse(CamelModel):
    message: str
    deleted_count: int
    created_default_elements_count: int

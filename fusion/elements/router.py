"""
router.py — Element Endpoints
=============================
GET    /elements?name=X      → one element, 404 if absent
GET    /elements             → the four root elements
POST   /elements             → fuse {name1, name2}; 200 existing, 201 created
DELETE /elements?confirm=T   → wipe and reseed
"""

from fastapi import APIRouter, Depends, Query, Response, status

from fusion.config import FusionSettings
from fusion.deps import get_app_settings, get_fusion_service
from fusion.elements.schema import (
    ElementEnvelope,
    ElementListResponse,
    ElementResponse,
    FuseRequest,
    FusionResponse,
    ResetResponse,
)
from fusion.elements.service import FusionService, check_reset_token
from fusion.errors import ElementNotFoundError, ValidationError

router = APIRouter(
    prefix="/elements",
    tags=["elements"],
    responses={
        400: {"description": "Bad request"},
        404: {"description": "Element not found"},
    },
)


@router.get("", response_model=ElementEnvelope | ElementListResponse)
async def get_elements(
    name: str | None = Query(None, description="Exact element name, case-insensitive"),
    fusion: FusionService = Depends(get_fusion_service),
):
    if name is not None:
        element = await fusion.get_by_name(name)
        if element is None:
            raise ElementNotFoundError(name)
        return ElementEnvelope(element=ElementResponse.from_element(element))

    roots = await fusion.list_roots()
    return ElementListResponse(elements=[ElementResponse.from_element(el) for el in roots])


@router.post(
    "",
    response_model=FusionResponse,
    status_code=status.HTTP_200_OK,
    responses={
        201: {"model": FusionResponse, "description": "New element created"},
        409: {"description": "Duplicate name could not be resolved"},
        500: {"description": "Generation or storage failed"},
    },
)
async def fuse_elements(
    body: FuseRequest,
    response: Response,
    fusion: FusionService = Depends(get_fusion_service),
):
    name1 = (body.name1 or "").strip()
    name2 = (body.name2 or "").strip()
    if not name1 or not name2:
        raise ValidationError("MISSING_ELEMENTS", "Missing element details for combination.")

    result = await fusion.fuse(name1, name2)
    if result.created:
        response.status_code = status.HTTP_201_CREATED
        message = "Element created successfully"
    else:
        message = "Element already exists"
    return FusionResponse(message=message, element=ElementResponse.from_element(result.element))


@router.delete("", response_model=ResetResponse)
async def reset_elements(
    confirm: str | None = Query(None, description="Environment-specific confirmation token"),
    fusion: FusionService = Depends(get_fusion_service),
    settings: FusionSettings = Depends(get_app_settings),
):
    check_reset_token(confirm, settings.reset_token, settings.is_production)
    result = await fusion.reset()
    return ResetResponse(
        message="All elements deleted and default elements have been added successfully.",
        deleted_count=result.deleted_count,
        created_default_elements_count=result.created_count,
    )

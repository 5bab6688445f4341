from fastapi import Request

from fusion.config import FusionSettings
from fusion.elements.service import FusionService
from fusion.elements.store import ElementStore


def get_app_settings(request: Request) -> FusionSettings:
    return request.app.state.settings


def get_store(request: Request) -> ElementStore:
    return request.app.state.store


def get_fusion_service(request: Request) -> FusionService:
    return request.app.state.fusion

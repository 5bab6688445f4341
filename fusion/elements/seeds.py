"""Seed root elements, recreated on every reset."""

from __future__ import annotations

import logging

from fusion.elements.models import Element
from fusion.elements.store import ElementStore
from fusion.errors import DuplicateNameError

logger = logging.getLogger(__name__)

# (name, icon file, description)
SEED_ELEMENTS: list[tuple[str, str, str]] = [
    ("Water", "water.png", "A fluid element that quenches thirst and nourishes life."),
    ("Fire", "fire.png", "A blazing element that brings warmth and light."),
    ("Air", "wind.png", "An invisible element that carries scents and sounds."),
    ("Earth", "earth.png", "A solid element that provides stability and strength."),
]

SEED_NAMES: frozenset[str] = frozenset(name for name, _, _ in SEED_ELEMENTS)


async def seed_roots(store: ElementStore, icon_base_url: str) -> list[Element]:
    """Create the four roots. A root that fails to create is logged and skipped."""
    created: list[Element] = []
    for name, icon, description in SEED_ELEMENTS:
        try:
            element = await store.create(name, f"{icon_base_url.rstrip('/')}/{icon}", description)
        except DuplicateNameError:
            logger.warning(f"Seed element '{name}' already exists, skipping")
            continue
        created.append(element)
    logger.info(f"🌱 Seeded {len(created)} root elements")
    return created

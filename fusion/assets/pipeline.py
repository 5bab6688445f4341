"""
pipeline.py — Asset Pipeline
============================
Turns two parent elements into a candidate element:

    generate_details  → name + description   (text model)
    generate_icon     → PNG bytes             (image model)
    persist_icon      → public icon URL       (object storage)

The three steps are independent and independently failable; the caller
decides the order and what to do on failure. Nothing here touches the
element store.
"""

from __future__ import annotations

import asyncio
import logging
import re
import uuid

import pydantic

from fusion.assets.schema import ElementDetails
from fusion.clients import CollaboratorError, ImageGenerator, ObjectStorage, TextGenerator
from fusion.elements.models import Element
from fusion.errors import (
    ImageGenerationError,
    MalformedGenerationError,
    StorageUploadError,
    TextGenerationError,
)
from fusion.prompts.fusion import ELEMENT_DETAILS_PROMPT, ICON_PROMPT

logger = logging.getLogger(__name__)

_JSON_FENCE_RE = re.compile(r"```(?:json)?\s*(.+?)\s*```", re.DOTALL | re.IGNORECASE)
_NON_WORD_RE = re.compile(r"[\W_]+")


def _extract_json_text(s: str) -> str:
    if not s:
        return ""
    m = _JSON_FENCE_RE.search(s)
    if m:
        return m.group(1).strip()
    return s.strip()


def _squash(name: str) -> str:
    return _NON_WORD_RE.sub("", name.casefold())


def is_naive_blend(name: str, parent_a: str, parent_b: str) -> bool:
    """True if `name` is a parent name or the two parent names glued together."""
    n, a, b = _squash(name), _squash(parent_a), _squash(parent_b)
    return n in {a, b, a + b, b + a}


def icon_object_key(element_name: str, prefix: str = "elements") -> str:
    safe = re.sub(r"\s+", "_", element_name.strip())
    safe = re.sub(r"[^A-Za-z0-9._-]+", "", safe) or "element"
    return f"{prefix}/{safe}-{uuid.uuid4()}.png"


def parse_element_details(output: str, parent_a: str, parent_b: str) -> ElementDetails:
    text = _extract_json_text(output)
    try:
        details = ElementDetails.model_validate_json(text)
    except pydantic.ValidationError as e:
        raise MalformedGenerationError(f"Text model returned malformed element details: {e.error_count()} error(s)", output) from e
    if is_naive_blend(details.name, parent_a, parent_b):
        raise MalformedGenerationError(
            f"Text model returned '{details.name}', a copy or blend of '{parent_a}' and '{parent_b}'", output
        )
    return details


class AssetPipeline:
    def __init__(
        self,
        text: TextGenerator,
        images: ImageGenerator,
        storage: ObjectStorage,
        timeout: float | None = 60.0,
        storage_prefix: str = "elements",
    ):
        self.text = text
        self.images = images
        self.storage = storage
        self.timeout = timeout
        self.storage_prefix = storage_prefix

    async def generate_details(self, parent_a: Element, parent_b: Element) -> ElementDetails:
        prompt = ELEMENT_DETAILS_PROMPT.format(
            name_a=parent_a.name,
            description_a=parent_a.description,
            name_b=parent_b.name,
            description_b=parent_b.description,
        )
        try:
            output = await asyncio.wait_for(self.text.generate(prompt), self.timeout)
        except asyncio.TimeoutError as e:
            logger.warning(f"Text generation timed out after {self.timeout}s")
            raise TextGenerationError(f"Text generation timed out after {self.timeout}s") from e
        except CollaboratorError as e:
            logger.warning(f"Text generation failed: {e}")
            raise TextGenerationError(str(e)) from e

        return parse_element_details(output, parent_a.name, parent_b.name)

    async def generate_icon(self, name: str, description: str) -> bytes:
        prompt = ICON_PROMPT.format(name=name, description=description)
        try:
            image = await asyncio.wait_for(self.images.generate(prompt), self.timeout)
        except asyncio.TimeoutError as e:
            logger.warning(f"Icon generation for '{name}' timed out after {self.timeout}s")
            raise ImageGenerationError(f"Icon generation timed out after {self.timeout}s") from e
        except CollaboratorError as e:
            logger.warning(f"Icon generation for '{name}' failed: {e}")
            raise ImageGenerationError(str(e)) from e

        if not image:
            raise ImageGenerationError(f"Image model returned no image for '{name}'")
        return image

    async def persist_icon(self, image: bytes, element_name: str) -> str:
        key = icon_object_key(element_name, self.storage_prefix)
        try:
            url = await asyncio.wait_for(self.storage.upload(image, key, "image/png"), self.timeout)
        except asyncio.TimeoutError as e:
            logger.warning(f"Icon upload {key} timed out after {self.timeout}s")
            raise StorageUploadError(f"Icon upload timed out after {self.timeout}s") from e
        except CollaboratorError as e:
            logger.warning(f"Icon upload {key} failed: {e}")
            raise StorageUploadError(str(e)) from e

        if not url:
            raise StorageUploadError(f"Object storage returned no URL for {key}")
        logger.info(f"Icon uploaded: {url}")
        return url

"""
clients.py — External Collaborators
===================================
Gemini text generation (google-genai), FLUX icon generation and CDN storage
(fal.ai). Each client is built once at startup and handed to the asset
pipeline; the underlying SDK client is created on first use so the app can
boot without keys.

Env:
    export FAL_KEY="your-fal-api-key"
    export GEMINI_API_KEY="your-gemini-api-key"
"""

from __future__ import annotations

import base64
from typing import Protocol

import fal_client
import httpx
from google import genai
from google.genai import types


class CollaboratorError(Exception):
    def __init__(self, service: str, message: str):
        self.service = service
        super().__init__(f"[{service}] {message}")


# ── Interfaces the pipeline depends on ───────────────

class TextGenerator(Protocol):
    async def generate(self, prompt: str) -> str: ...


class ImageGenerator(Protocol):
    async def generate(self, prompt: str) -> bytes: ...


class ObjectStorage(Protocol):
    async def upload(self, data: bytes, key: str, content_type: str = "image/png") -> str: ...


# ══════════════════════════════════════════════════════════
#  1. Text — Google Gemini
# ══════════════════════════════════════════════════════════

class GeminiTextGenerator:
    def __init__(self, api_key: str, model: str = "gemini-2.5-flash", temperature: float = 0.9):
        self.api_key = api_key
        self.model = model
        self.temperature = temperature
        self._client: genai.Client | None = None

    def _get_client(self) -> genai.Client:
        if not self._client:
            if not self.api_key:
                raise CollaboratorError("gemini", "GEMINI_API_KEY is not set")
            self._client = genai.Client(api_key=self.api_key)
        return self._client

    async def generate(self, prompt: str) -> str:
        client = self._get_client()
        config = types.GenerateContentConfig(
            temperature=self.temperature,
            response_mime_type="application/json",
            thinking_config=types.ThinkingConfig(thinking_budget=0),
        )
        try:
            response = await client.aio.models.generate_content(
                model=self.model,
                contents=prompt,
                config=config,
            )
        except Exception as e:
            raise CollaboratorError("gemini", str(e)) from e
        return response.text or ""


# ══════════════════════════════════════════════════════════
#  2. Icon — fal.ai FLUX
# ══════════════════════════════════════════════════════════

class FluxImageGenerator:
    def __init__(
        self,
        fal_key: str,
        endpoint: str = "fal-ai/flux/schnell",
        image_size: str = "square",
        num_inference_steps: int = 4,
        timeout: float = 60.0,
    ):
        self.fal_key = fal_key
        self.endpoint = endpoint
        self.image_size = image_size
        self.num_inference_steps = num_inference_steps
        self.timeout = timeout
        self._client: fal_client.AsyncClient | None = None

    def _get_client(self) -> fal_client.AsyncClient:
        if not self._client:
            if not self.fal_key:
                raise CollaboratorError("flux", "FAL_KEY is not set")
            self._client = fal_client.AsyncClient(key=self.fal_key)
        return self._client

    async def generate(self, prompt: str) -> bytes:
        """Returns PNG bytes, or b"" when the endpoint produced no image."""
        client = self._get_client()
        try:
            handler = await client.submit(
                self.endpoint,
                arguments={
                    "prompt": prompt,
                    "image_size": self.image_size,
                    "num_images": 1,
                    "num_inference_steps": self.num_inference_steps,
                    "output_format": "png",
                    # image comes back inline as a data URI
                    "sync_mode": True,
                },
            )
            result = await handler.get()
        except Exception as e:
            raise CollaboratorError("flux", str(e)) from e

        images = result.get("images") or []
        if not images or not images[0].get("url"):
            return b""
        return await self._read_image(images[0]["url"])

    async def _read_image(self, url: str) -> bytes:
        if url.startswith("data:"):
            _, _, payload = url.partition(",")
            try:
                return base64.b64decode(payload)
            except ValueError as e:
                raise CollaboratorError("flux", f"Invalid data URI: {e}") from e

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as http:
                resp = await http.get(url)
                resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise CollaboratorError("flux", f"HTTP {e.response.status_code}: {e.response.text[:200]}") from e
        except httpx.HTTPError as e:
            raise CollaboratorError("flux", str(e)) from e
        return resp.content


# ══════════════════════════════════════════════════════════
#  3. Storage — fal.ai CDN
# ══════════════════════════════════════════════════════════

class FalObjectStorage:
    def __init__(self, fal_key: str):
        self.fal_key = fal_key
        self._client: fal_client.AsyncClient | None = None

    def _get_client(self) -> fal_client.AsyncClient:
        if not self._client:
            if not self.fal_key:
                raise CollaboratorError("storage", "FAL_KEY is not set")
            self._client = fal_client.AsyncClient(key=self.fal_key)
        return self._client

    async def upload(self, data: bytes, key: str, content_type: str = "image/png") -> str:
        client = self._get_client()
        try:
            return await client.upload(data, content_type, file_name=key)
        except Exception as e:
            raise CollaboratorError("storage", str(e)) from e

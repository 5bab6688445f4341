import asyncio
import json

import pytest

from fusion.assets.pipeline import AssetPipeline
from fusion.elements.service import FusionService
from fusion.elements.sqlite_store import SqliteElementStore
from fusion.elements.store import InMemoryElementStore

SEED_ICON_BASE_URL = "https://icons.test/elements"
PNG = b"\x89PNG\r\n\x1a\nfake-icon"


@pytest.fixture
def anyio_backend():
    return "asyncio"


def details_json(name: str, description: str = "A freshly discovered element.") -> str:
    return json.dumps({"name": name, "description": description})


class FakeTextGenerator:
    """Returns queued outputs in order; the last one repeats."""

    def __init__(self, *outputs: str, error: Exception | None = None, delay: float = 0):
        self.outputs = list(outputs) or [details_json("Steam")]
        self.error = error
        self.delay = delay
        self.prompts: list[str] = []

    async def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        if len(self.outputs) > 1:
            return self.outputs.pop(0)
        return self.outputs[0]


class FakeImageGenerator:
    """With `barrier=n`, every call blocks until n calls are in flight."""

    def __init__(self, image: bytes = PNG, error: Exception | None = None, barrier: int = 0):
        self.image = image
        self.error = error
        self.barrier = barrier
        self.prompts: list[str] = []
        self._released = asyncio.Event()

    async def generate(self, prompt: str) -> bytes:
        self.prompts.append(prompt)
        if self.barrier:
            if len(self.prompts) >= self.barrier:
                self._released.set()
            await asyncio.wait_for(self._released.wait(), 2.0)
        await asyncio.sleep(0)
        if self.error:
            raise self.error
        return self.image


class FakeStorage:
    def __init__(self, error: Exception | None = None, url: str | None = None):
        self.error = error
        self.url = url
        self.uploads: list[tuple[str, bytes, str]] = []

    async def upload(self, data: bytes, key: str, content_type: str = "image/png") -> str:
        await asyncio.sleep(0)
        if self.error:
            raise self.error
        self.uploads.append((key, data, content_type))
        return self.url if self.url is not None else f"https://cdn.test/{key}"


def make_pipeline(text=None, images=None, storage=None, timeout: float | None = 1.0) -> AssetPipeline:
    return AssetPipeline(
        text=text or FakeTextGenerator(),
        images=images or FakeImageGenerator(),
        storage=storage or FakeStorage(),
        timeout=timeout,
    )


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_path):
    if request.param == "sqlite":
        return SqliteElementStore(str(tmp_path / "fusion.db"))
    return InMemoryElementStore()


@pytest.fixture
def make_service(store):
    def _make(text=None, images=None, storage=None, pair_locks: bool = False) -> FusionService:
        return FusionService(
            store=store,
            pipeline=make_pipeline(text, images, storage),
            pair_locks=pair_locks,
            seed_icon_base_url=SEED_ICON_BASE_URL,
        )

    return _make


"""
service.py — Fusion Orchestrator
================================
Maps "combine (name1, name2)" to one stable element.

Pipeline (each step can exit early):

    1. resolve parents          → UnknownElementError
    2. pair memo                → existing element
    3. generate details         → GenerationFailedError
    4. generated-name collision → existing element
    5. generate icon            → GenerationFailedError
    6. upload icon              → StorageFailedError
    7. create                   → DuplicateNameError converges to the winner
    8. return created element

Creation is the last step, so a failure anywhere earlier leaves the store
untouched. No step is retried here; the client may resubmit the pair.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import weakref
from dataclasses import dataclass

from fusion.assets.pipeline import AssetPipeline
from fusion.elements.models import Element, pair_key
from fusion.elements.seeds import SEED_NAMES, seed_roots
from fusion.elements.store import ElementStore
from fusion.errors import (
    AssetPipelineError,
    DuplicateNameError,
    GenerationFailedError,
    ResetNotConfirmedError,
    StorageFailedError,
    UnknownElementError,
)

logger = logging.getLogger(__name__)


class FusionOutcome(str, enum.Enum):
    CREATED = "created"
    EXISTING = "existing"


@dataclass
class FusionResult:
    element: Element
    outcome: FusionOutcome

    @property
    def created(self) -> bool:
        return self.outcome is FusionOutcome.CREATED


@dataclass
class ResetResult:
    deleted_count: int
    created_count: int


class FusionService:
    _pair_locks: weakref.WeakValueDictionary[tuple[str, str], asyncio.Lock] | None

    def __init__(
        self,
        store: ElementStore,
        pipeline: AssetPipeline,
        pair_locks: bool = False,
        seed_icon_base_url: str = "",
    ):
        self.store = store
        self.pipeline = pipeline
        self.seed_icon_base_url = seed_icon_base_url
        self._pair_locks = weakref.WeakValueDictionary() if pair_locks else None

    # ── Fusion ───────────────────────────────────────

    async def fuse(self, name1: str, name2: str) -> FusionResult:
        parent_a = await self._resolve(name1)
        parent_b = await self._resolve(name2)
        logger.info(f"⚗️  Fusing '{parent_a.name}' + '{parent_b.name}'")

        if self._pair_locks is None:
            return await self._fuse_pair(parent_a, parent_b)

        key = pair_key(parent_a.id, parent_b.id)
        lock = self._pair_locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._pair_locks[key] = lock
        async with lock:
            return await self._fuse_pair(parent_a, parent_b)

    async def _resolve(self, name: str) -> Element:
        element = await self.store.find_by_name(name)
        if element is None:
            logger.warning(f"Unknown element requested for fusion: '{name}'")
            raise UnknownElementError(name)
        return element

    async def _fuse_pair(self, parent_a: Element, parent_b: Element) -> FusionResult:
        known = await self.store.find_by_parent_pair(parent_a.id, parent_b.id)
        if known is not None:
            logger.info(f"Pair already fused into '{known.name}'")
            return FusionResult(known, FusionOutcome.EXISTING)

        try:
            details = await self.pipeline.generate_details(parent_a, parent_b)
        except AssetPipelineError as e:
            logger.error(f"Detail generation failed for '{parent_a.name}' + '{parent_b.name}': {e.message}")
            raise GenerationFailedError() from e

        # The model may invent a name that another pair already produced
        existing = await self.store.find_by_name(details.name)
        if existing is not None:
            logger.info(f"Generated name '{details.name}' already exists, returning it")
            return FusionResult(existing, FusionOutcome.EXISTING)

        try:
            image = await self.pipeline.generate_icon(details.name, details.description)
        except AssetPipelineError as e:
            logger.error(f"Icon generation failed for '{details.name}': {e.message}")
            raise GenerationFailedError("Failed to generate the element icon. Try again.") from e

        try:
            icon_url = await self.pipeline.persist_icon(image, details.name)
        except AssetPipelineError as e:
            logger.error(f"Icon upload failed for '{details.name}': {e.message}")
            raise StorageFailedError() from e

        try:
            element = await self.store.create(
                details.name,
                icon_url,
                details.description,
                [parent_a.id, parent_b.id],
            )
        except DuplicateNameError:
            # A concurrent request created the same name first
            winner = await self.store.find_by_name(details.name)
            if winner is None:
                raise
            logger.info(f"Converged on concurrently created '{winner.name}' ({winner.id})")
            return FusionResult(winner, FusionOutcome.EXISTING)

        logger.info(f"✨ Created element '{element.name}' ({element.id})")
        return FusionResult(element, FusionOutcome.CREATED)

    # ── Catalogue ────────────────────────────────────

    async def get_by_name(self, name: str) -> Element | None:
        return await self.store.find_by_name(name)

    async def list_roots(self) -> list[Element]:
        return [el for el in await self.store.list_all() if el.name in SEED_NAMES]

    # ── Reset ────────────────────────────────────────

    async def reset(self) -> ResetResult:
        deleted = await self.store.delete_all()
        logger.warning(f"🗑️  Deleted {deleted} elements")
        created = await seed_roots(self.store, self.seed_icon_base_url)
        return ResetResult(deleted_count=deleted, created_count=len(created))

    async def ensure_seeded(self) -> int:
        if await self.store.count():
            return 0
        return len(await seed_roots(self.store, self.seed_icon_base_url))


def check_reset_token(token: str | None, expected: str, production: bool) -> None:
    if token != expected:
        raise ResetNotConfirmedError(production, expected)

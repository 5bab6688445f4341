import asyncio

import pytest

from conftest import FakeImageGenerator, FakeStorage, FakeTextGenerator, details_json, make_pipeline
from fusion.clients import CollaboratorError
from fusion.elements.seeds import SEED_NAMES
from fusion.elements.service import FusionOutcome, FusionService
from fusion.elements.store import InMemoryElementStore
from fusion.errors import (
    DuplicateNameError,
    GenerationFailedError,
    ImageGenerationError,
    MalformedGenerationError,
    StorageFailedError,
    StorageUploadError,
    UnknownElementError,
)


@pytest.mark.anyio
async def test_fresh_fusion_creates_element_with_provenance(store, make_service):
    service = make_service(text=FakeTextGenerator(details_json("Steam", "Hot vapor.")))
    await service.ensure_seeded()
    water = await store.find_by_name("Water")
    fire = await store.find_by_name("Fire")

    result = await service.fuse("Water", "Fire")

    assert result.outcome is FusionOutcome.CREATED
    assert result.created
    assert result.element.name == "Steam"
    assert result.element.description == "Hot vapor."
    assert result.element.combined_from == (water.id, fire.id)
    assert result.element.icon_url.startswith("https://cdn.test/elements/Steam-")


@pytest.mark.anyio
async def test_repeat_and_reversed_pair_return_same_element(store, make_service):
    text = FakeTextGenerator(details_json("Steam"), details_json("Mist"))
    images = FakeImageGenerator()
    service = make_service(text=text, images=images)
    await service.ensure_seeded()

    first = await service.fuse("Water", "Fire")
    again = await service.fuse("Water", "Fire")
    reversed_ = await service.fuse("fire", "WATER")

    assert again.outcome is FusionOutcome.EXISTING
    assert reversed_.outcome is FusionOutcome.EXISTING
    assert again.element.id == first.element.id == reversed_.element.id
    assert len(text.prompts) == 1
    assert len(images.prompts) == 1


@pytest.mark.anyio
async def test_unknown_parent_is_rejected_without_side_effects(store, make_service):
    text = FakeTextGenerator()
    service = make_service(text=text)
    await service.ensure_seeded()

    with pytest.raises(UnknownElementError) as exc:
        await service.fuse("Water", "Bogus")

    assert exc.value.name == "Bogus"
    assert exc.value.status == 404
    assert text.prompts == []
    assert await store.count() == 4


@pytest.mark.anyio
async def test_generated_name_collision_returns_existing_without_new_provenance(store, make_service):
    images = FakeImageGenerator()
    service = make_service(text=FakeTextGenerator(details_json("Steam")), images=images)
    await service.ensure_seeded()
    steam = (await service.fuse("Water", "Fire")).element

    result = await service.fuse("Air", "Fire")

    assert result.outcome is FusionOutcome.EXISTING
    assert result.element.id == steam.id
    assert result.element.combined_from == steam.combined_from
    assert len(images.prompts) == 1
    air = await store.find_by_name("Air")
    fire = await store.find_by_name("Fire")
    assert await store.find_by_parent_pair(air.id, fire.id) is None


@pytest.mark.anyio
async def test_text_failure_surfaces_generation_failed(store, make_service):
    service = make_service(text=FakeTextGenerator(error=CollaboratorError("gemini", "down")))
    await service.ensure_seeded()

    with pytest.raises(GenerationFailedError) as exc:
        await service.fuse("Water", "Fire")

    assert exc.value.status == 500
    assert await store.count() == 4


@pytest.mark.anyio
async def test_malformed_output_surfaces_generation_failed(store, make_service):
    service = make_service(text=FakeTextGenerator('{"name": "Steam"}'))
    await service.ensure_seeded()

    with pytest.raises(GenerationFailedError) as exc:
        await service.fuse("Water", "Fire")

    assert isinstance(exc.value.__cause__, MalformedGenerationError)
    assert await store.count() == 4


@pytest.mark.anyio
async def test_icon_failure_leaves_store_untouched(store, make_service):
    storage = FakeStorage()
    service = make_service(images=FakeImageGenerator(image=b""), storage=storage)
    await service.ensure_seeded()

    with pytest.raises(GenerationFailedError) as exc:
        await service.fuse("Water", "Fire")

    assert isinstance(exc.value.__cause__, ImageGenerationError)
    assert storage.uploads == []
    assert await store.find_by_name("Steam") is None


@pytest.mark.anyio
async def test_upload_failure_surfaces_storage_failed(store, make_service):
    service = make_service(storage=FakeStorage(error=CollaboratorError("storage", "denied")))
    await service.ensure_seeded()

    with pytest.raises(StorageFailedError) as exc:
        await service.fuse("Water", "Fire")

    assert isinstance(exc.value.__cause__, StorageUploadError)
    assert await store.find_by_name("Steam") is None

    # a resubmission after the outage succeeds
    service.pipeline.storage = FakeStorage()
    assert (await service.fuse("Water", "Fire")).created


@pytest.mark.anyio
async def test_concurrent_identical_requests_converge_on_one_element(store, make_service):
    images = FakeImageGenerator(barrier=2)
    service = make_service(text=FakeTextGenerator(details_json("Dust")), images=images)
    await service.ensure_seeded()

    first, second = await asyncio.gather(service.fuse("Air", "Earth"), service.fuse("Air", "Earth"))

    assert len(images.prompts) == 2
    assert first.element.id == second.element.id
    assert {first.outcome, second.outcome} == {FusionOutcome.CREATED, FusionOutcome.EXISTING}
    assert [el.name for el in await store.list_all()].count("Dust") == 1
    assert await store.count() == 5


@pytest.mark.anyio
async def test_pair_locks_make_pair_fusion_exact(store, make_service):
    text = FakeTextGenerator(details_json("Dust"), details_json("Sand"))
    service = make_service(text=text, pair_locks=True)
    await service.ensure_seeded()

    first, second = await asyncio.gather(service.fuse("Air", "Earth"), service.fuse("Earth", "Air"))

    assert first.element.id == second.element.id
    assert len(text.prompts) == 1
    assert await store.find_by_name("Sand") is None


@pytest.mark.anyio
async def test_unresolvable_duplicate_is_surfaced():
    class VanishingStore(InMemoryElementStore):
        """Reports the name as taken, then cannot find it (a reset ran in between)."""

        async def create(self, name, icon_url, description="", combined_from=()):
            if combined_from:
                raise DuplicateNameError(name)
            return await super().create(name, icon_url, description, combined_from)

    service = FusionService(VanishingStore(), make_pipeline())
    await service.ensure_seeded()

    with pytest.raises(DuplicateNameError) as exc:
        await service.fuse("Water", "Fire")
    assert exc.value.status == 409


@pytest.mark.anyio
async def test_every_fused_element_references_stored_parents(store, make_service):
    text = FakeTextGenerator(details_json("Steam"), details_json("Mud"), details_json("Cloud"))
    service = make_service(text=text)
    await service.ensure_seeded()

    await service.fuse("Water", "Fire")
    await service.fuse("Water", "Earth")
    await service.fuse("Steam", "Air")

    for element in await store.list_all():
        for parent_id in element.combined_from:
            assert await store.get(parent_id) is not None


@pytest.mark.anyio
async def test_reset_leaves_exactly_the_four_roots(store, make_service):
    service = make_service(text=FakeTextGenerator(details_json("Steam")))
    await service.ensure_seeded()
    await service.fuse("Water", "Fire")

    result = await service.reset()

    assert result.deleted_count == 5
    assert result.created_count == 4
    elements = await store.list_all()
    assert {el.name for el in elements} == SEED_NAMES == {"Water", "Fire", "Air", "Earth"}
    assert all(el.is_root for el in elements)


@pytest.mark.anyio
async def test_ensure_seeded_only_fills_an_empty_store(store, make_service):
    service = make_service()

    assert await service.ensure_seeded() == 4
    assert await service.ensure_seeded() == 0
    assert await store.count() == 4


@pytest.mark.anyio
async def test_list_roots_hides_discovered_elements(make_service):
    service = make_service(text=FakeTextGenerator(details_json("Steam")))
    await service.ensure_seeded()
    await service.fuse("Water", "Fire")

    roots = await service.list_roots()

    assert sorted(el.name for el in roots) == ["Air", "Earth", "Fire", "Water"]

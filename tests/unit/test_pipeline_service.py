import asyncio

import pytest

from outreach.models.domain.business_domain import StarKind
from outreach.models.domain.pipeline_domain import Stage, stage_of
from outreach.services.local_cache import LocalCacheError
from outreach.services.pipeline_service import StagePipeline
from outreach.services.stores import LocalCacheStore, StoreError


def test_stage_of_defaults_to_new():
    assert stage_of({}, "anything") is Stage.NEW
    assert stage_of({"a": Stage.QUALIFIED}, "a") is Stage.QUALIFIED


@pytest.mark.asyncio
async def test_unassigned_business_is_new(local_cache):
    pipeline = StagePipeline(LocalCacheStore(local_cache))

    assert await pipeline.get_stage("acme") is Stage.NEW


@pytest.mark.asyncio
async def test_any_stage_can_follow_any_other(local_cache):
    pipeline = StagePipeline(LocalCacheStore(local_cache))

    await pipeline.set_stage("acme", Stage.CONVERTED)
    await pipeline.set_stage("acme", "Contacted")

    assert await pipeline.get_stage("acme") is Stage.CONTACTED
    assert await local_cache.load_stages() == {"acme": Stage.CONTACTED}


@pytest.mark.asyncio
async def test_concurrent_local_stage_writes_are_not_lost(local_cache):
    pipeline = StagePipeline(LocalCacheStore(local_cache))
    ids = [f"biz-{n}" for n in range(10)]

    await asyncio.gather(*(pipeline.set_stage(business_id, Stage.ENGAGED) for business_id in ids))

    assert set(await pipeline.get_stages()) == set(ids)


@pytest.mark.asyncio
async def test_toggle_star_flips_state(local_cache):
    pipeline = StagePipeline(LocalCacheStore(local_cache))

    assert await pipeline.toggle_star("acme", StarKind.DIRECTORY) is True
    assert await pipeline.list_starred(StarKind.DIRECTORY) == ["acme"]
    assert await pipeline.list_starred(StarKind.EXTERNAL) == []

    assert await pipeline.toggle_star("acme", StarKind.DIRECTORY) is False
    assert await pipeline.list_starred(StarKind.DIRECTORY) == []


@pytest.mark.asyncio
async def test_remote_writes_go_through_store(fake_remote):
    pipeline = StagePipeline(fake_remote)

    await pipeline.set_stage("acme", Stage.QUALIFIED)
    await pipeline.toggle_star("g-1", StarKind.EXTERNAL)

    assert fake_remote.stages == {"acme": Stage.QUALIFIED}
    assert fake_remote.starred[StarKind.EXTERNAL] == ["g-1"]


@pytest.mark.asyncio
async def test_failed_local_write_raises(local_cache, monkeypatch):
    async def refuse(key, value):
        return False

    monkeypatch.setattr(local_cache.backend, "set", refuse)

    with pytest.raises(StoreError):
        await StagePipeline(LocalCacheStore(local_cache)).set_stage("acme", Stage.ENGAGED)


@pytest.mark.asyncio
async def test_stage_write_after_failed_read_keeps_existing_stages(local_cache, monkeypatch):
    await local_cache.save_stages({"acme": Stage.QUALIFIED, "paws": Stage.ENGAGED})
    before = dict(local_cache.backend.store)

    async def unavailable(key):
        raise ConnectionError("redis unavailable")

    monkeypatch.setattr(local_cache.backend, "get", unavailable)

    with pytest.raises(LocalCacheError):
        await StagePipeline(LocalCacheStore(local_cache)).set_stage("zen", Stage.CONTACTED)

    assert local_cache.backend.store == before

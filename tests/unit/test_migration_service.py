from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock

import pytest

from outreach.features.inbox.domain import EmailDirection, EmailRecord, EmailThread
from outreach.models.domain.business_domain import StarKind
from outreach.models.domain.pipeline_domain import Stage
from outreach.services import migration_service
from outreach.services.local_cache import LocalCacheError
from outreach.services.migration_service import MigrationError, MigrationService

BASE = datetime(2024, 5, 1, tzinfo=UTC)


def _thread(business_id: str, email_count: int) -> EmailThread:
    return EmailThread(
        business_id=business_id,
        subject=f"About {business_id}",
        emails=[
            EmailRecord(
                id=f"{business_id}-{n}",
                sender="me@outreach.app",
                recipient=f"owner@{business_id}.com",
                subject="Hello",
                text="hi",
                timestamp=BASE + timedelta(minutes=n),
                direction=EmailDirection.SENT,
            )
            for n in range(email_count)
        ],
    )


async def _seed(cache, *, stages=3, starred=2, external=1, threads=5, emails_per_thread=3):
    await cache.save_stages({f"s-{n}": Stage.CONTACTED for n in range(stages)})
    await cache.save_starred(StarKind.DIRECTORY, [f"d-{n}" for n in range(starred)])
    await cache.save_starred(StarKind.EXTERNAL, [f"g-{n}" for n in range(external)])
    await cache.save_threads([_thread(f"t-{n}", emails_per_thread) for n in range(threads)])
    await cache.save_messages({"s-0": [{"text": "draft"}]})


@pytest.fixture(autouse=True)
def audit_log(monkeypatch):
    mock = AsyncMock(return_value=True)
    monkeypatch.setattr(migration_service.audit_logger, "log_migration", mock)
    return mock


@pytest.mark.asyncio
async def test_status_counts_each_collection(local_cache):
    await _seed(local_cache)

    status = await MigrationService(local_cache).check_migration_status("user-123")

    assert status.has_local_data is True
    assert status.local_data_count.as_dict() == {
        "business_stages": 3,
        "starred_businesses": 2,
        "starred_external_businesses": 1,
        "email_threads": 5,
    }


@pytest.mark.asyncio
async def test_empty_cache_has_no_local_data(local_cache):
    status = await MigrationService(local_cache).check_migration_status("user-123")

    assert status.has_local_data is False
    assert status.local_data_count.total == 0


@pytest.mark.asyncio
async def test_receipt_counts_threads_not_emails(local_cache, fake_remote):
    await _seed(local_cache, stages=4, starred=2, external=3, threads=2, emails_per_thread=7)

    receipt = await MigrationService(local_cache, fake_remote).migrate_from_local_storage("user-123")

    assert (
        receipt.business_stages,
        receipt.starred_businesses,
        receipt.starred_external_businesses,
        receipt.email_threads,
    ) == (4, 2, 3, 2)
    assert len(fake_remote.threads) == 2
    assert all(len(thread.emails) == 7 for thread in fake_remote.threads.values())
    assert fake_remote.starred[StarKind.EXTERNAL] == ["g-0", "g-1", "g-2"]


@pytest.mark.asyncio
async def test_migration_is_idempotent_for_already_starred(local_cache, fake_remote):
    await _seed(local_cache, stages=0, starred=2, external=0, threads=0)
    fake_remote.starred[StarKind.DIRECTORY] = ["d-0"]

    await MigrationService(local_cache, fake_remote).migrate_from_local_storage("user-123")

    assert fake_remote.starred[StarKind.DIRECTORY] == ["d-0", "d-1"]


@pytest.mark.asyncio
async def test_bootstrap_purges_after_success(local_cache, fake_remote, audit_log):
    await _seed(local_cache)

    receipt = await MigrationService(local_cache, fake_remote).bootstrap("user-123")

    assert receipt.total == 3 + 2 + 1 + 5
    assert local_cache.backend.store == {}
    audit_log.assert_awaited_once()


@pytest.mark.asyncio
async def test_failed_thread_write_aborts_without_purge(local_cache, remote_store_factory, audit_log):
    await _seed(local_cache, threads=5)
    before = dict(local_cache.backend.store)
    remote = remote_store_factory(fail_thread_write=3)

    with pytest.raises(MigrationError) as exc_info:
        await MigrationService(local_cache, remote).bootstrap("user-123")

    assert exc_info.value.collection == "email_threads"
    assert local_cache.backend.store == before
    audit_log.assert_not_awaited()


@pytest.mark.asyncio
async def test_retry_after_failure_completes(local_cache, remote_store_factory):
    await _seed(local_cache, threads=5)
    remote = remote_store_factory(fail_thread_write=3)
    service = MigrationService(local_cache, remote)

    with pytest.raises(MigrationError):
        await service.migrate_from_local_storage("user-123")

    remote.fail_thread_write = None
    receipt = await service.migrate_from_local_storage("user-123")

    assert receipt.email_threads == 5
    assert len(remote.threads) == 5


@pytest.mark.asyncio
async def test_bootstrap_without_local_data_returns_none(local_cache, fake_remote, audit_log):
    assert await MigrationService(local_cache, fake_remote).bootstrap("user-123") is None
    audit_log.assert_not_awaited()


@pytest.mark.asyncio
async def test_unreadable_threads_abort_bootstrap_without_purge(
    local_cache, fake_remote, audit_log, monkeypatch
):
    await _seed(local_cache, threads=3)
    before = dict(local_cache.backend.store)
    read = local_cache.backend.get

    async def threads_unavailable(key):
        if key.endswith(":email_threads"):
            raise ConnectionError("redis unavailable")
        return await read(key)

    monkeypatch.setattr(local_cache.backend, "get", threads_unavailable)

    with pytest.raises(MigrationError) as exc_info:
        await MigrationService(local_cache, fake_remote).bootstrap("user-123")

    assert exc_info.value.collection == "email_threads"
    assert local_cache.backend.store == before
    assert fake_remote.threads == {}
    audit_log.assert_not_awaited()


@pytest.mark.asyncio
async def test_read_failure_during_transfer_writes_nothing(local_cache, fake_remote, monkeypatch):
    await _seed(local_cache, threads=2)
    unreadable = LocalCacheError("read failed", key="email_threads")
    monkeypatch.setattr(local_cache, "load_threads", AsyncMock(side_effect=unreadable))

    with pytest.raises(MigrationError) as exc_info:
        await MigrationService(local_cache, fake_remote).migrate_from_local_storage("user-123")

    assert exc_info.value.collection == "email_threads"
    assert fake_remote.stages == {}
    assert fake_remote.starred[StarKind.DIRECTORY] == []


@pytest.mark.asyncio
async def test_local_thread_merges_into_existing_account_thread(local_cache, fake_remote):
    local = _thread("acme", 2)
    await local_cache.save_threads([local])
    account_email = EmailRecord(
        id="acme-remote",
        sender="owner@acme.com",
        recipient="me@outreach.app",
        subject="Re: Hello",
        text="sure",
        timestamp=BASE + timedelta(minutes=5),
        direction=EmailDirection.RECEIVED,
    )
    fake_remote.threads["acme"] = EmailThread(business_id="acme", subject="Account", emails=[account_email])

    receipt = await MigrationService(local_cache, fake_remote).bootstrap("user-123")

    assert receipt.email_threads == 1
    merged = fake_remote.threads["acme"]
    assert [email.id for email in merged.emails] == ["acme-0", "acme-1", "acme-remote"]
    assert merged.subject == "Account"
    assert local_cache.backend.store == {}

import json
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from unittest.mock import AsyncMock

import pytest

from outreach.db.helpers import DatabaseError
from outreach.features.inbox.domain import EmailDirection, EmailRecord, EmailThread
from outreach.features.inbox.repository import inbound_email_repository
from outreach.features.inbox.repository.inbound_email_repository import InboundEmailRepository, StoredDelivery
from outreach.models.domain.business_domain import Business, StarKind
from outreach.models.domain.pipeline_domain import Stage
from outreach.repositories import business_repository, stage_repository, starred_repository, thread_repository
from outreach.repositories.business_repository import BusinessRepository
from outreach.repositories.stage_repository import StageRepository
from outreach.repositories.starred_repository import StarredRepository
from outreach.repositories.thread_repository import ThreadRepository


@pytest.mark.asyncio
async def test_stage_upsert_uses_on_conflict(monkeypatch):
    execute = AsyncMock(return_value=1)
    monkeypatch.setattr(stage_repository, "execute_query", execute)

    await StageRepository.upsert_stage("user-123", "acme", Stage.QUALIFIED)

    query, params = execute.await_args.args
    assert "ON CONFLICT (user_id, business_id) DO UPDATE" in query
    assert params == ("user-123", "acme", "Qualified")


@pytest.mark.asyncio
async def test_stage_upsert_with_no_row_raises(monkeypatch):
    monkeypatch.setattr(stage_repository, "execute_query", AsyncMock(return_value=0))

    with pytest.raises(DatabaseError):
        await StageRepository.upsert_stage("user-123", "acme", Stage.NEW)


@pytest.mark.asyncio
async def test_get_stages_skips_unknown_values(monkeypatch):
    rows = [{"business_id": "a", "stage": "Engaged"}, {"business_id": "b", "stage": "Lost"}]
    monkeypatch.setattr(stage_repository, "fetch_all", AsyncMock(return_value=rows))

    assert await StageRepository.get_stages("user-123") == {"a": Stage.ENGAGED}


@pytest.mark.asyncio
async def test_set_starred_is_idempotent_insert(monkeypatch):
    execute = AsyncMock(return_value=0)
    monkeypatch.setattr(starred_repository, "execute_query", execute)

    assert await StarredRepository.set_starred("user-123", "g-1", StarKind.EXTERNAL, True) is True

    query, params = execute.await_args.args
    assert "DO NOTHING" in query
    assert params == ("user-123", "g-1", "external")


def _email(email_id: str, day: int = 1) -> EmailRecord:
    return EmailRecord(
        id=email_id,
        sender="a@b.com",
        recipient="c@d.com",
        subject="Hi",
        text="body",
        timestamp=datetime(2024, 5, day, tzinfo=UTC),
        direction=EmailDirection.RECEIVED,
    )


def _thread_row(*emails: EmailRecord) -> dict:
    return {"business_id": "acme", "subject": "Intro", "emails": [email.to_dict() for email in emails]}


@pytest.fixture
def thread_db(monkeypatch):
    conn = object()

    @asynccontextmanager
    async def transaction():
        yield conn

    mocks = {
        "conn": conn,
        "fetch_one": AsyncMock(),
        "execute_query": AsyncMock(return_value=1),
    }
    monkeypatch.setattr(thread_repository, "get_db_transaction", AsyncMock(side_effect=lambda: transaction()))
    monkeypatch.setattr(thread_repository, "fetch_one", mocks["fetch_one"])
    monkeypatch.setattr(thread_repository, "execute_query", mocks["execute_query"])
    return mocks


@pytest.mark.asyncio
async def test_thread_merge_inserts_missing_row(thread_db):
    thread_db["fetch_one"].return_value = {"business_id": "acme"}
    thread = EmailThread(business_id="acme", emails=[_email("m1")])

    stored, changed = await ThreadRepository.merge_thread("user-123", thread)

    assert (stored, changed) == (thread, True)
    query, params = thread_db["fetch_one"].await_args.args
    assert "ON CONFLICT (user_id, business_id) DO NOTHING" in query
    assert params[:3] == ("user-123", "acme", "Email Thread")
    assert json.loads(params[3])[0]["timestamp"] == "2024-05-01T00:00:00+00:00"
    assert thread_db["fetch_one"].await_args.kwargs == {"connection": thread_db["conn"]}
    thread_db["execute_query"].assert_not_awaited()


@pytest.mark.asyncio
async def test_thread_merge_locks_row_and_keeps_stored_emails(thread_db):
    # another process stored m1 after this caller last read the thread
    thread_db["fetch_one"].side_effect = [None, _thread_row(_email("m1", day=1))]
    incoming = EmailThread(business_id="acme", subject="Other", emails=[_email("m2", day=2)])

    stored, changed = await ThreadRepository.merge_thread("user-123", incoming)

    assert changed is True
    assert [email.id for email in stored.emails] == ["m1", "m2"]
    assert stored.subject == "Intro"
    select_query = thread_db["fetch_one"].await_args_list[1].args[0]
    assert "FOR UPDATE" in select_query
    query, params = thread_db["execute_query"].await_args.args
    assert query.strip().startswith("UPDATE email_threads")
    assert [email["id"] for email in json.loads(params[1])] == ["m1", "m2"]
    assert params[2:] == ("user-123", "acme")
    assert thread_db["execute_query"].await_args.kwargs == {"connection": thread_db["conn"]}


@pytest.mark.asyncio
async def test_thread_merge_skips_write_when_nothing_new(thread_db):
    thread_db["fetch_one"].side_effect = [None, _thread_row(_email("m1"))]

    stored, changed = await ThreadRepository.merge_thread(
        "user-123", EmailThread(business_id="acme", emails=[_email("m1")])
    )

    assert changed is False
    assert [email.id for email in stored.emails] == ["m1"]
    thread_db["execute_query"].assert_not_awaited()


@pytest.mark.asyncio
async def test_get_thread_parses_jsonb_row(monkeypatch):
    row = {
        "business_id": "acme",
        "subject": "Intro",
        "emails": [
            {
                "id": "m1",
                "from": "a@b.com",
                "to": "c@d.com",
                "subject": "Intro",
                "body": "hi",
                "timestamp": "2024-05-01T00:00:00+00:00",
                "direction": "sent",
            }
        ],
    }
    monkeypatch.setattr(thread_repository, "fetch_one", AsyncMock(return_value=row))

    thread = await ThreadRepository.get_thread("user-123", "acme")

    assert thread.subject == "Intro"
    assert thread.emails[0].direction is EmailDirection.SENT


@pytest.mark.asyncio
async def test_business_upsert_many_batches_in_one_transaction(monkeypatch):
    transaction = AsyncMock(return_value=True)
    monkeypatch.setattr(business_repository, "execute_transaction", transaction)
    businesses = [
        Business(id="acme", name="Acme", emails=("a@acme.com",)),
        Business(id="paws", name="Paws", source=StarKind.EXTERNAL),
    ]

    assert await BusinessRepository.upsert_many("user-123", businesses) == 2

    statements = transaction.await_args.args[0]
    assert len(statements) == 2
    assert statements[0][1][-3:] == ("a@acme.com", None, None)
    assert statements[1][1][2] == "external"
    assert await BusinessRepository.upsert_many("user-123", []) == 0


@pytest.mark.asyncio
async def test_inbound_list_filters(monkeypatch):
    fetch = AsyncMock(return_value=[])
    monkeypatch.setattr(inbound_email_repository, "fetch_all", fetch)

    await InboundEmailRepository.list_emails("user-123", business_id="acme", limit=5)
    query, params = fetch.await_args.args
    assert "business_id = %s" in query
    assert params == ("user-123", "acme", 5)

    await InboundEmailRepository.list_emails("user-123", business_id="acme", unmatched=True)
    query, params = fetch.await_args.args
    assert "business_id IS NULL" in query
    assert params == ("user-123", 50)


@pytest.mark.asyncio
async def test_inbound_store_reports_redelivery_with_stored_link(monkeypatch):
    fetch = AsyncMock(return_value=[{"business_id": "acme", "inserted": False}])
    monkeypatch.setattr(inbound_email_repository, "fetch_all", fetch)

    stored = await InboundEmailRepository.store("user-123", _email("m1").with_business("paws"))

    assert stored == StoredDelivery(inserted=False, business_id="acme")
    query, params = fetch.await_args.args
    assert "RETURNING business_id" in query
    assert params[:3] == ("m1", "user-123", "paws")

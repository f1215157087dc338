"""
Thread merging.

One thread per business. Merging is idempotent on the email id (the
inbound webhook delivers at least once) and keeps every thread sorted
oldest first. Inputs are never mutated; callers get new objects back.
"""

from collections.abc import Mapping

from outreach.features.inbox.domain import DEFAULT_THREAD_SUBJECT, EmailRecord, EmailThread


def merge_into_thread(thread: EmailThread | None, business_id: str, email: EmailRecord) -> EmailThread:
    """Return the thread with `email` merged in; the same thread if already present."""
    if thread is None:
        thread = EmailThread(business_id=business_id, subject=email.subject or DEFAULT_THREAD_SUBJECT)

    if thread.contains(email.id):
        return thread

    # sorted() is stable, so equal timestamps keep arrival order
    emails = sorted([*thread.emails, email], key=lambda record: record.timestamp)
    return EmailThread(business_id=thread.business_id, emails=emails, subject=thread.subject)


def merge(
    business_id: str, email: EmailRecord, threads: Mapping[str, EmailThread]
) -> dict[str, EmailThread]:
    """Merge `email` into the thread for `business_id` within a thread mapping."""
    merged = dict(threads)
    merged[business_id] = merge_into_thread(threads.get(business_id), business_id, email)
    return merged


def merge_threads(existing: EmailThread | None, incoming: EmailThread) -> EmailThread:
    """
    Fold every email of `incoming` into `existing`.

    Returns `existing` itself when it already held all of them, so callers
    can skip the write. The existing subject wins over the incoming one.
    """
    if existing is None:
        return incoming

    merged = existing
    for email in incoming.emails:
        merged = merge_into_thread(merged, existing.business_id, email)
    return merged

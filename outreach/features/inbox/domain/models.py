"""
Domain models for the inbox feature.

Email records are immutable once created. Threads hold every email
exchanged with one business, oldest first. The dict forms are what the
local cache and the email_threads JSONB column store.
"""

import secrets
import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from email.utils import parseaddr
from enum import Enum
from typing import Any

DEFAULT_THREAD_SUBJECT = "Email Thread"


class EmailDirection(str, Enum):
    SENT = "sent"
    RECEIVED = "received"


def parse_timestamp(value: Any) -> datetime:
    """Parse an ISO-8601 string (or pass through a datetime), always tz-aware."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)):
        parsed = datetime.fromtimestamp(value / 1000 if value > 1e11 else value, tz=UTC)
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def bare_address(address: str | None) -> str:
    """'Jane Doe <jane@acme.com>' -> 'jane@acme.com'."""
    if not address:
        return ""
    _, parsed = parseaddr(address)
    return (parsed or address).strip()


def normalize_headers(headers: Any) -> dict[str, str]:
    """Accept a header mapping or a list of {name, value} pairs; keys lower-cased."""
    if not headers:
        return {}
    if isinstance(headers, Mapping):
        return {str(k).lower(): str(v) for k, v in headers.items() if v is not None}
    normalized = {}
    for item in headers:
        if isinstance(item, Mapping) and item.get("name"):
            normalized[str(item["name"]).lower()] = str(item.get("value", ""))
    return normalized


def generate_email_id(direction: EmailDirection) -> str:
    """Fallback id for deliveries that carry no provider message id."""
    return f"{direction.value}_{int(time.time() * 1000)}_{secrets.token_hex(5)}"


@dataclass(frozen=True, slots=True)
class EmailRecord:
    """A single sent or received email."""

    id: str
    sender: str
    recipient: str
    subject: str
    text: str
    timestamp: datetime
    direction: EmailDirection
    html: str | None = None
    business_id: str | None = None
    thread_reference: str | None = None

    def __post_init__(self):
        # Naive datetimes are UTC; mixing naive and aware breaks thread ordering
        object.__setattr__(self, "timestamp", parse_timestamp(self.timestamp))
        object.__setattr__(self, "direction", EmailDirection(self.direction))

    @property
    def body(self) -> str:
        return self.text or self.html or ""

    @property
    def sender_address(self) -> str:
        return bare_address(self.sender)

    def with_business(self, business_id: str | None) -> "EmailRecord":
        return EmailRecord(
            id=self.id,
            sender=self.sender,
            recipient=self.recipient,
            subject=self.subject,
            text=self.text,
            timestamp=self.timestamp,
            direction=self.direction,
            html=self.html,
            business_id=business_id,
            thread_reference=self.thread_reference,
        )

    def to_dict(self) -> dict[str, Any]:
        data = {
            "id": self.id,
            "from": self.sender,
            "to": self.recipient,
            "subject": self.subject,
            "body": self.text,
            "timestamp": self.timestamp.isoformat(),
            "direction": self.direction.value,
        }
        if self.html:
            data["html"] = self.html
        if self.thread_reference:
            data["threadReference"] = self.thread_reference
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "EmailRecord":
        return cls(
            id=str(data["id"]),
            sender=str(data.get("from", "")),
            recipient=str(data.get("to", "")),
            subject=str(data.get("subject", "")),
            text=str(data.get("body") or data.get("text") or ""),
            html=data.get("html") or None,
            timestamp=parse_timestamp(data["timestamp"]),
            direction=EmailDirection(data.get("direction", EmailDirection.RECEIVED.value)),
            business_id=data.get("businessId") or data.get("business_id"),
            thread_reference=data.get("threadReference"),
        )


@dataclass(slots=True)
class EmailThread:
    """All emails exchanged with one business, non-decreasing by timestamp."""

    business_id: str
    emails: list[EmailRecord] = field(default_factory=list)
    subject: str = DEFAULT_THREAD_SUBJECT

    def contains(self, email_id: str) -> bool:
        return any(email.id == email_id for email in self.emails)

    def received_count(self) -> int:
        return sum(1 for email in self.emails if email.direction is EmailDirection.RECEIVED)

    def to_dict(self) -> dict[str, Any]:
        return {
            "businessId": self.business_id,
            "subject": self.subject,
            "emails": [email.to_dict() for email in self.emails],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "EmailThread":
        return cls(
            business_id=str(data.get("businessId") or data.get("business_id")),
            subject=data.get("subject") or DEFAULT_THREAD_SUBJECT,
            emails=[EmailRecord.from_dict(email) for email in data.get("emails") or []],
        )


def email_from_inbound(payload: Mapping[str, Any], *, received_at: datetime | None = None) -> EmailRecord:
    """
    Build an EmailRecord from an inbound webhook delivery.

    The provider message id (Message-ID header) is the record id so a
    redelivered webhook maps onto the same record.
    """
    headers = normalize_headers(payload.get("headers"))
    message_id = (headers.get("message-id") or payload.get("messageId") or "").strip()
    references = (headers.get("references") or "").split()
    thread_reference = (headers.get("in-reply-to") or "").strip() or (
        references[-1] if references else None
    )

    timestamp = payload.get("timestamp")
    return EmailRecord(
        id=message_id or generate_email_id(EmailDirection.RECEIVED),
        sender=payload.get("from") or "unknown@example.com",
        recipient=payload.get("to") or "",
        subject=payload.get("subject") or "No Subject",
        text=payload.get("text") or "",
        html=payload.get("html") or None,
        timestamp=parse_timestamp(timestamp) if timestamp else (received_at or datetime.now(UTC)),
        direction=EmailDirection.RECEIVED,
        business_id=payload.get("businessId") or payload.get("business_id") or None,
        thread_reference=thread_reference,
    )

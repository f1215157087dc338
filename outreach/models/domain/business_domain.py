# outreach/models/domain/business_domain.py
"""
Business Domain Models
Directory and externally sourced business records the user can contact.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

MAX_KNOWN_EMAILS = 3


class StarKind(str, Enum):
    """Which list a starred business belongs to."""

    DIRECTORY = "directory"
    EXTERNAL = "external"


@dataclass(slots=True)
class Business:
    """A company record the user may reach out to."""

    id: str
    name: str
    rating: float = 0.0
    reviews: int = 0
    city: str = ""
    domain: str | None = None
    emails: tuple[str, ...] = field(default_factory=tuple)
    is_starred: bool = False
    source: StarKind = StarKind.DIRECTORY

    def __post_init__(self):
        cleaned = [email.strip() for email in self.emails if email and email.strip()]
        self.emails = tuple(cleaned[:MAX_KNOWN_EMAILS])
        self.rating = min(max(float(self.rating or 0.0), 0.0), 5.0)
        self.reviews = max(int(self.reviews or 0), 0)
        self.source = StarKind(self.source)

    def has_email(self, address: str) -> bool:
        """Case-insensitive exact comparison against the known addresses."""
        needle = address.strip().lower()
        return bool(needle) and any(email.lower() == needle for email in self.emails)

    @classmethod
    def from_dataset_row(
        cls,
        row: dict[str, Any],
        *,
        category: str,
        index: int,
        source: StarKind = StarKind.DIRECTORY,
    ) -> "Business":
        """
        Build a business from a lead-dataset row.

        Rows look like {"Website": "Spot Pet Insurance", "Rating": 4.78,
        "Reviews": 553, "Address": "990 Main St, Austin", "Domain": "spotpetins.com"}.
        Missing ids are derived from the category and the row position.
        """
        address = str(row.get("Address") or row.get("address") or "")
        domain = row.get("Domain") or row.get("domain")
        if domain in ("", "-"):
            domain = None

        return cls(
            id=str(row.get("id") or f"{category}-{index}"),
            name=str(row.get("Website") or row.get("name") or row.get("Name") or "Unknown"),
            rating=_to_float(row.get("Rating", row.get("rating"))),
            reviews=_to_int(row.get("Reviews", row.get("reviews"))),
            city=address.split(",")[0].strip(),
            domain=str(domain) if domain else None,
            emails=tuple(str(row.get(f"email_{n}") or "") for n in range(1, MAX_KNOWN_EMAILS + 1)),
            source=source,
        )

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> "Business":
        return cls(
            id=row["business_id"],
            name=row["name"],
            rating=row.get("rating") or 0.0,
            reviews=row.get("reviews") or 0,
            city=row.get("city") or "",
            domain=row.get("domain"),
            emails=tuple(row.get(f"email_{n}") or "" for n in range(1, MAX_KNOWN_EMAILS + 1)),
            source=row.get("source") or StarKind.DIRECTORY,
        )

    def email_columns(self) -> tuple[str | None, str | None, str | None]:
        padded = list(self.emails) + [None] * MAX_KNOWN_EMAILS
        return tuple(padded[:MAX_KNOWN_EMAILS])


def _to_float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _to_int(value: Any) -> int:
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return 0

"""
Business matching for inbound email.

Resolves an email to a business id by trying a fixed sequence of
heuristics and stopping at the first hit:

1. a business id already attached upstream
2. a business name taken from the subject line
3. a capitalized name taken from the body
4. the sender address against each business's known addresses

Every strategy is a pure function of (email, businesses) returning a
business id or None. A miss is not an error: the caller receives
UNMATCHED and still stores the email.
"""

import re
from collections.abc import Callable, Sequence

from outreach.features.inbox.domain import EmailRecord
from outreach.infrastructure.observability.logging import get_logger
from outreach.models.domain.business_domain import Business

logger = get_logger(__name__)

UNMATCHED = None

MatchStrategy = Callable[[EmailRecord, Sequence[Business]], str | None]

_REPLY_PREFIX = re.compile(r"^(?:re|reply|fwd|forward):\s*", re.IGNORECASE)
_SUBJECT_DELIMITERS = ("-", "(", "[")
_HTML_TAG = re.compile(r"<[^>]*>")
_CAPITALIZED_RUN = re.compile(r"\b[A-Z][a-z]+(?:\s+[A-Z][a-z]+)*\b")


def subject_candidate(subject: str | None) -> str | None:
    """
    Business name guess from a subject line.

    "Re: Acme Vet Clinic - quick question" -> "Acme Vet Clinic"
    """
    if not subject:
        return None

    cleaned = _REPLY_PREFIX.sub("", subject.strip(), count=1).strip()
    cut = min(
        (idx for idx in (cleaned.find(d) for d in _SUBJECT_DELIMITERS) if idx >= 0),
        default=len(cleaned),
    )
    candidate = cleaned[:cut].strip()
    return candidate or None


def body_candidate(body: str | None) -> str | None:
    """First run of capitalized words in the body, with HTML tags removed."""
    if not body:
        return None

    text = _HTML_TAG.sub(" ", body)
    match = _CAPITALIZED_RUN.search(text)
    return match.group(0) if match else None


def find_business_by_name(candidate: str | None, businesses: Sequence[Business]) -> str | None:
    """Case-insensitive substring match in either direction; first business wins."""
    if not candidate:
        return None

    needle = candidate.lower()
    for business in businesses:
        name = business.name.lower()
        if not name:
            continue
        if name in needle or needle in name:
            return business.id
    return None


def match_preassigned(email: EmailRecord, businesses: Sequence[Business]) -> str | None:
    return email.business_id or None


def match_subject(email: EmailRecord, businesses: Sequence[Business]) -> str | None:
    return find_business_by_name(subject_candidate(email.subject), businesses)


def match_body(email: EmailRecord, businesses: Sequence[Business]) -> str | None:
    return find_business_by_name(body_candidate(email.body), businesses)


def match_sender(email: EmailRecord, businesses: Sequence[Business]) -> str | None:
    sender = email.sender_address
    if not sender:
        return None
    for business in businesses:
        if business.has_email(sender):
            return business.id
    return None


DEFAULT_STRATEGIES: tuple[tuple[str, MatchStrategy], ...] = (
    ("preassigned", match_preassigned),
    ("subject", match_subject),
    ("body", match_body),
    ("sender", match_sender),
)


class BusinessMatcher:
    """Runs the match strategies in order and reports which one hit."""

    def __init__(self, strategies: Sequence[tuple[str, MatchStrategy]] = DEFAULT_STRATEGIES):
        self.strategies = tuple(strategies)

    def resolve(
        self, email: EmailRecord, businesses: Sequence[Business]
    ) -> tuple[str | None, str | None]:
        """Return (business_id, strategy_name), or (UNMATCHED, None) on a miss."""
        for name, strategy in self.strategies:
            business_id = strategy(email, businesses)
            if business_id:
                logger.debug(
                    "Inbound email matched",
                    email_id=email.id,
                    business_id=business_id,
                    strategy=name,
                )
                return business_id, name

        logger.debug("Inbound email unmatched", email_id=email.id, candidates=len(businesses))
        return UNMATCHED, None

    def match(self, email: EmailRecord, businesses: Sequence[Business]) -> str | None:
        business_id, _ = self.resolve(email, businesses)
        return business_id


business_matcher = BusinessMatcher()


def match(email: EmailRecord, businesses: Sequence[Business]) -> str | None:
    """Resolve an email to a business id, or UNMATCHED."""
    return business_matcher.match(email, businesses)

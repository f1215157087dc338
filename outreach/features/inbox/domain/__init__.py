"""
Domain subpackage for the inbox feature.
"""

from .models import (
    DEFAULT_THREAD_SUBJECT,
    EmailDirection,
    EmailRecord,
    EmailThread,
    email_from_inbound,
)

__all__ = [
    "DEFAULT_THREAD_SUBJECT",
    "EmailDirection",
    "EmailRecord",
    "EmailThread",
    "email_from_inbound",
]

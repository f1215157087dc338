"""
Inbox API request models.
Used by routes for input validation.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class InboundHeader(BaseModel):
    name: str
    value: str = ""


class InboundEmailPayload(BaseModel):
    """Inbound delivery as posted by the email provider's webhook."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    sender: str | None = Field(default=None, alias="from", description="Sender, optionally 'Name <addr>'")
    to: str | None = Field(default=None, description="Recipient address")
    subject: str | None = Field(default=None, description="Subject line")
    text: str | None = Field(default=None, description="Plain text body")
    html: str | None = Field(default=None, description="HTML body")
    headers: dict[str, Any] | list[InboundHeader] | None = Field(
        default=None, description="Raw headers as a mapping or a list of {name, value}"
    )
    message_id: str | None = Field(default=None, alias="messageId", description="Provider message id")
    business_id: str | None = Field(
        default=None, alias="businessId", description="Business id already known to the sender"
    )
    timestamp: datetime | None = Field(default=None, description="When the email was sent")

    def to_payload(self) -> dict[str, Any]:
        """Dict in the delivery's own field names for the ingestion service."""
        return self.model_dump(by_alias=True, exclude_none=True)


class RecordSentEmailRequest(BaseModel):
    """An email the user sent to a business through the send provider."""

    to: str = Field(..., min_length=3, description="Recipient address")
    subject: str = Field(..., min_length=1, max_length=998, description="Email subject")
    body: str = Field(default="", description="Plain text body")
    html: str | None = Field(default=None, description="HTML body")
    message_id: str | None = Field(default=None, description="Id returned by the send provider")


class RematchRequest(BaseModel):
    limit: int = Field(default=500, ge=1, le=5000, description="Maximum unmatched emails to scan")

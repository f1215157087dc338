"""
Inbox API response models.
Used by routes for output formatting.
"""

from datetime import datetime

from pydantic import BaseModel, Field

from outreach.features.inbox.domain import EmailDirection, EmailRecord, EmailThread


class EmailResponse(BaseModel):
    id: str = Field(..., description="Message id")
    sender: str = Field(..., description="Sender as received")
    recipient: str = Field(..., description="Recipient")
    subject: str = Field(..., description="Subject line")
    body: str = Field(default="", description="Plain text body")
    html: str | None = Field(None, description="HTML body")
    timestamp: datetime = Field(..., description="When the email was sent")
    direction: EmailDirection = Field(..., description="sent or received")
    business_id: str | None = Field(None, description="Matched business, if any")
    thread_reference: str | None = Field(None, description="In-Reply-To / References id")

    @classmethod
    def from_domain(cls, email: EmailRecord) -> "EmailResponse":
        return cls(
            id=email.id,
            sender=email.sender,
            recipient=email.recipient,
            subject=email.subject,
            body=email.text,
            html=email.html,
            timestamp=email.timestamp,
            direction=email.direction,
            business_id=email.business_id,
            thread_reference=email.thread_reference,
        )


class ThreadResponse(BaseModel):
    business_id: str = Field(..., description="Business the thread belongs to")
    subject: str = Field(..., description="Thread subject")
    emails: list[EmailResponse] = Field(default_factory=list, description="Emails, oldest first")
    email_count: int = Field(..., description="Number of emails in the thread")
    received_count: int = Field(..., description="Number of received emails")

    @classmethod
    def from_domain(cls, thread: EmailThread) -> "ThreadResponse":
        return cls(
            business_id=thread.business_id,
            subject=thread.subject,
            emails=[EmailResponse.from_domain(email) for email in thread.emails],
            email_count=len(thread.emails),
            received_count=thread.received_count(),
        )


class ThreadsListResponse(BaseModel):
    threads: list[ThreadResponse]
    total_count: int


class InboundIngestResponse(BaseModel):
    success: bool = True
    email_id: str
    business_id: str | None = None
    matched: bool
    strategy: str | None = Field(None, description="Which match heuristic resolved the business")
    duplicate: bool = Field(False, description="True when this message id was already stored")


class InboundListResponse(BaseModel):
    emails: list[EmailResponse]
    total_count: int


class RematchResponse(BaseModel):
    scanned: int
    matched: int

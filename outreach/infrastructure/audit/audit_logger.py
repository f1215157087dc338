"""
AuditLogger - audit trail for pipeline state changes.

Records who moved which data where:
- local cache contents migrated into the remote store
- inbound emails accepted by the webhook
- unmatched emails linked by a re-match run

Usage:
    from outreach.infrastructure.audit import audit_logger

    await audit_logger.log(
        user_id="user-123",
        action="local_data_migrated",
        resource_type="pipeline_state",
        resource_count=12,
        metadata={"business_stages": 4, "email_threads": 2},
        request_id="req-abc123",
    )

Design Principles:
- Write to both database (audit_logs table) and structured logs
- Never fail the request if audit logging fails
"""

import json
from typing import Any
from uuid import UUID

from outreach.db.pool import db_pool
from outreach.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class AuditLogger:
    """
    Centralized audit logging service.

    Logs to:
    1. Database (audit_logs table) - Immutable, queryable
    2. Structured logs (stdout) - Real-time monitoring
    """

    @staticmethod
    async def log(
        user_id: str | UUID,
        action: str,
        resource_type: str | None = None,
        resource_id: str | None = None,
        resource_count: int | None = None,
        request_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> bool:
        """
        Log an audit event to database and structured logs.

        Args:
            user_id: User who owns the affected data (required)
            action: Action name (e.g., "local_data_migrated", "inbound_email_received")
            resource_type: Type of resource (e.g., "pipeline_state", "inbound_email")
            resource_id: Specific resource ID (e.g., message ID)
            resource_count: Number of resources affected
            request_id: Request correlation ID for tracing
            metadata: Additional context (JSON-serializable dict)

        Returns:
            True if logged successfully, False if failed (never raises)
        """
        if isinstance(user_id, UUID):
            user_id = str(user_id)

        # Structured log first so the event survives a database outage
        logger.info(
            "Audit event",
            audit_action=action,
            user_id=user_id,
            resource_type=resource_type,
            resource_id=resource_id,
            resource_count=resource_count,
            request_id=request_id,
            metadata=metadata,
        )

        try:
            async with db_pool.connection() as conn:
                await conn.execute(
                    """
                    INSERT INTO audit_logs (
                        user_id, action, resource_type, resource_id,
                        resource_count, request_id, metadata
                    ) VALUES (%s, %s, %s, %s, %s, %s, %s::jsonb)
                    """,
                    (
                        user_id,
                        action,
                        resource_type,
                        resource_id,
                        resource_count,
                        request_id,
                        json.dumps(metadata) if metadata is not None else None,
                    ),
                )

            return True

        except Exception as e:
            # NEVER fail the request due to audit logging failure
            logger.error(
                "CRITICAL: Failed to write audit log to database",
                error=str(e),
                error_type=type(e).__name__,
                action=action,
                user_id=user_id,
                fallback_data={
                    "resource_type": resource_type,
                    "resource_id": resource_id,
                    "resource_count": resource_count,
                    "request_id": request_id,
                    "metadata": metadata,
                },
            )
            return False

    @staticmethod
    async def log_migration(
        user_id: str | UUID,
        counts: dict[str, int],
        request_id: str | None = None,
    ) -> bool:
        """Record a completed local-to-remote migration with its per-collection counts."""
        return await AuditLogger.log(
            user_id=user_id,
            action="local_data_migrated",
            resource_type="pipeline_state",
            resource_count=sum(counts.values()),
            request_id=request_id,
            metadata={"counts": counts},
        )


# Global singleton instance
audit_logger = AuditLogger()

"""
Audit logging infrastructure.

Migration results and inbound email ingestion are recorded here.
"""

from outreach.infrastructure.audit.audit_logger import AuditLogger, audit_logger

__all__ = ["AuditLogger", "audit_logger"]

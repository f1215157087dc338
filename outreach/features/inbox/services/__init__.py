"""
Service layer for the inbox feature.
"""

from .ingestion_service import InboxIngestionService, IngestResult, RematchResult
from .thread_service import ThreadService

__all__ = ["InboxIngestionService", "IngestResult", "RematchResult", "ThreadService"]

"""
Inbox feature package.

Inbound email ingestion, business matching, thread merging and the
re-match job live together in this slice (domain models, repository,
services, jobs and API router).
"""

"""
Job runners for the inbox feature.
"""

from .rematch_job import run_inbound_rematch, start_inbound_rematch_scheduler

__all__ = ["run_inbound_rematch", "start_inbound_rematch_scheduler"]

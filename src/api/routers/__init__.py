"""
API Routers package.

Scheduler control plane, job management, and sync operations.
"""

from . import jobs, scheduler, sync

__all__ = ["jobs", "scheduler", "sync"]

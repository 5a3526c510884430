"""
Sync Module - Keeps content records in step with form submissions

Supports:
- Record creation when a submission is created
- Record update/deletion when a submission is edited or deleted
- Dispatch of submission events to every configuration of a form
"""

from .context import SyncContext
from .synchronizer import ContentSynchronizer, FAILED, SAVED_NEW, SAVED_UPDATED, DELETED
from .events import SubmissionEvent, SubmissionEventDispatcher, SubmissionOperation

__all__ = [
    "SyncContext",
    "ContentSynchronizer",
    "SubmissionEvent",
    "SubmissionEventDispatcher",
    "SubmissionOperation",
    "FAILED",
    "SAVED_NEW",
    "SAVED_UPDATED",
    "DELETED",
]

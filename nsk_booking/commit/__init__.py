"""Commit module - commit submission and asynchronous status resolution."""

from .backoff import BackoffPolicy, wait_for_cancel
from .orchestrator import CommitOrchestrator, commit_failure_message

__all__ = ["BackoffPolicy", "CommitOrchestrator", "commit_failure_message", "wait_for_cancel"]

"""Routes submission lifecycle events to the configurations of their form."""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict

from src.mapper.repository import ConfigRepository
from src.schema.models import Submission
from src.sync.synchronizer import FAILED, OP_DELETE, OP_EDIT, ContentSynchronizer

logger = logging.getLogger(__name__)


class SubmissionOperation(str, Enum):
    """Submission lifecycle events"""
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True)
class SubmissionEvent:
    """A submission was created, edited or deleted"""
    operation: SubmissionOperation
    submission: Submission


class SubmissionEventDispatcher:
    """Runs every configuration of a submission's form for an event."""

    def __init__(self, repository: ConfigRepository, synchronizer: ContentSynchronizer):
        self.repository = repository
        self.synchronizer = synchronizer

    def dispatch(self, event: SubmissionEvent) -> Dict[str, int]:
        """
        Handle an event

        Returns:
            {configuration id: result}; errors are logged, never raised
        """
        submission = event.submission
        try:
            configs = self.repository.for_form(submission.form_id)
        except (OSError, ValueError) as e:
            logger.error(f"Could not load configurations for {submission.form_id}: {e}")
            return {}

        results = {}
        for config in configs:
            try:
                if event.operation == SubmissionOperation.INSERT:
                    result = self.synchronizer.create_content(config, submission)
                elif event.operation == SubmissionOperation.UPDATE:
                    result = self.synchronizer.update_content(config, submission, op=OP_EDIT)
                else:
                    result = self.synchronizer.update_content(config, submission, op=OP_DELETE)
            except Exception as e:
                logger.error(f"Error running {config.id} for submission {submission.id}: {e}")
                result = FAILED
            results[config.id] = result

        return results

    def on_insert(self, submission: Submission) -> Dict[str, int]:
        """Submission created"""
        return self.dispatch(SubmissionEvent(SubmissionOperation.INSERT, submission))

    def on_update(self, submission: Submission) -> Dict[str, int]:
        """Submission edited"""
        return self.dispatch(SubmissionEvent(SubmissionOperation.UPDATE, submission))

    def on_delete(self, submission: Submission) -> Dict[str, int]:
        """Submission deleted"""
        return self.dispatch(SubmissionEvent(SubmissionOperation.DELETE, submission))

"""Keeps content records in step with the submissions they were created from."""
import logging
from typing import Dict, List, Optional

from src.api.storage import SAVED_NEW, SAVED_UPDATED
from src.builder.payload_builder import MappingEngine
from src.mapper.mapping import MappingConfiguration
from src.mapper.options import bundle_fields
from src.schema.models import ContentRecord, FieldDefinition, Submission
from src.sync.context import SyncContext

logger = logging.getLogger(__name__)

FAILED = 0
DELETED = 3

OP_EDIT = "edit"
OP_DELETE = "delete"

__all__ = [
    "ContentSynchronizer",
    "FAILED",
    "SAVED_NEW",
    "SAVED_UPDATED",
    "DELETED",
    "OP_EDIT",
    "OP_DELETE",
]


class ContentSynchronizer:
    """Creates, updates and deletes content records for submissions."""

    def __init__(self, context: SyncContext):
        """
        Initialize synchronizer

        Args:
            context: Storage, forms, tokens and encryption services
        """
        self.context = context
        self.engine = MappingEngine(context)
        self.last_warnings: List[str] = []

    def _fields(self, config: MappingConfiguration) -> Optional[Dict[str, FieldDefinition]]:
        bundle = self.context.storage.load_bundle(config.target_bundle)
        if bundle is None:
            logger.warning(f"Bundle {config.target_bundle} of {config.id} no longer exists")
            return None
        fields = bundle_fields(bundle)
        if not fields:
            logger.warning(f"Bundle {config.target_bundle} has no fields that can be mapped")
            return None
        return fields

    def create_content(self, config: MappingConfiguration, submission: Submission) -> int:
        """
        Create a record from a submission

        Returns:
            SAVED_NEW, or FAILED when nothing was created
        """
        self.last_warnings = []
        form = self.context.forms.load(config.source_form_id)

        title = self.engine.resolve_title(config, submission, form)
        if title is None:
            return FAILED

        if not submission.has_data():
            logger.debug(f"Submission {submission.id} has no data")
            return FAILED

        fields = self._fields(config)
        if fields is None:
            return FAILED

        record = self.context.storage.create(config.target_bundle, {"title": title})

        # Keep the submission id for later updates unless a rule writes the field
        if config.sync_id_field in fields and config.sync_id_field not in config.field_mappings:
            record.set(config.sync_id_field, submission.id)

        self.last_warnings = self.engine.apply(record, config, submission, fields, form)

        return self._save(record, "A problem occurred when creating a new record.")

    def update_content(
        self,
        config: MappingConfiguration,
        submission: Submission,
        op: str = OP_EDIT,
    ) -> int:
        """
        Update (or delete) the record created from a submission

        Args:
            config: Mapping configuration
            submission: Edited or deleted submission
            op: "edit" or "delete"

        Returns:
            SAVED_UPDATED, DELETED, or FAILED when the record was left untouched
        """
        self.last_warnings = []
        if not config.sync_id_field:
            return FAILED

        fields = self._fields(config)
        if fields is None:
            return FAILED

        if config.sync_id_field not in fields:
            logger.warning(f"Sync field {config.sync_id_field} not found on {config.target_bundle}")
            return FAILED

        form = self.context.forms.load(config.source_form_id)
        title = self.engine.resolve_title(config, submission, form)
        if title is None:
            return FAILED

        if not submission.has_data():
            return FAILED

        record = self._find_record(config, submission)
        if record is None:
            return FAILED

        if op == OP_DELETE:
            if not config.sync_on_delete:
                return FAILED
            return self._delete(record)

        if not config.sync_on_edit:
            return FAILED

        record.title = title
        self.last_warnings = self.engine.apply(record, config, submission, fields, form)

        return self._save(record, "A problem occurred while updating record.")

    def delete_content(self, config: MappingConfiguration, submission: Submission) -> int:
        """Delete the record created from a submission"""
        return self.update_content(config, submission, op=OP_DELETE)

    def _find_record(
        self,
        config: MappingConfiguration,
        submission: Submission,
    ) -> Optional[ContentRecord]:
        """First record whose sync field holds the submission id"""
        try:
            records = self.context.storage.load_by_properties(
                config.target_bundle, {config.sync_id_field: submission.id}
            )
        except Exception as e:
            logger.error(f"Could not look up record of submission {submission.id}: {e}")
            return None

        if not records:
            logger.debug(f"No record found for submission {submission.id}")
            return None
        return records[0]

    def _save(self, record: ContentRecord, message: str) -> int:
        try:
            return self.context.storage.save(record)
        except Exception as e:
            logger.error(message)
            logger.error(str(e))
            return FAILED

    def _delete(self, record: ContentRecord) -> int:
        try:
            self.context.storage.delete(record)
        except Exception as e:
            logger.error("A problem occurred while deleting record.")
            logger.error(str(e))
            return FAILED
        return DELETED

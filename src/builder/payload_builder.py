"""
Mapping Engine - Resolves mapping rules into content record field values

Integrates:
- TokenTemplateEngine: custom values and record titles
- Encryption profiles: decryption of submission values
- FieldMappingRegistry: per field type strategies (default, link)
- Type handling: reference clearing, date storage formats, max length
"""

import html
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from src.mapper.mapping import MappingConfiguration, MappingRule
from src.schema.models import ContentRecord, FieldDefinition, FormDefinition, Submission
from src.security.encryption import decrypt_value

logger = logging.getLogger(__name__)

SET = "set"
CLEAR = "clear"
SKIP = "skip"

INTEGER_PREFIX = re.compile(r"^\s*([+-]?\d+)")


@dataclass
class FieldResolution:
    """What to do with one target field"""

    field: str
    action: str  # "set", "clear" or "skip"
    value: Any = None
    warnings: List[str] = field(default_factory=list)


class MappingEngine:
    """
    Turns a mapping configuration and a submission into field values

    Usage:
    ```python
    engine = MappingEngine(context)
    title = engine.resolve_title(config, submission, form)
    warnings = engine.apply(record, config, submission, fields, form)
    ```
    """

    DATETIME_STORAGE_FORMAT = "%Y-%m-%dT%H:%M:%S"
    DATE_STORAGE_FORMAT = "%Y-%m-%d"

    def __init__(self, context):
        """
        Initialize MappingEngine

        Args:
            context: SyncContext with tokens, encryption and field mappings
        """
        self.context = context

    # ------------------------------------------------------------------
    # Values
    # ------------------------------------------------------------------

    def decrypt(self, config: MappingConfiguration, value: Any) -> Any:
        """Decrypt with the configured profile when encryption is enabled"""
        if not config.use_encryption:
            return value
        return decrypt_value(value, config.encryption_profile, self.context.encryption)

    def _decryptor(self, config: MappingConfiguration):
        if not config.use_encryption:
            return None
        return lambda value: self.decrypt(config, value)

    def evaluate_template(
        self,
        config: MappingConfiguration,
        template: str,
        submission: Submission,
        form: Optional[FormDefinition] = None,
    ) -> str:
        """Evaluate a token template, decrypting every token value"""
        return self.context.tokens.evaluate(
            template, submission, form, decrypt=self._decryptor(config)
        )

    def resolve_title(
        self,
        config: MappingConfiguration,
        submission: Submission,
        form: Optional[FormDefinition] = None,
    ) -> Optional[str]:
        """
        Title of the record: the configured template, or the form label

        Returns:
            Decoded title, None if there is neither a template nor a form
        """
        template = config.target_title_template
        if not template:
            if form is None:
                logger.warning(f"Form {config.source_form_id} not found for title of {config.id}")
                return None
            template = form.label

        title = self.evaluate_template(config, template, submission, form)
        return html.unescape(title)

    def _source_value(
        self,
        config: MappingConfiguration,
        rule: MappingRule,
        submission: Submission,
        form: Optional[FormDefinition],
    ) -> Tuple[bool, Any]:
        """Return (found, value) for a single rule"""
        if rule.is_custom:
            return True, self.evaluate_template(config, rule.custom_template, submission, form)

        source_id = rule.source_field_or_property_id
        if not source_id:
            return False, None

        if rule.is_property:
            if not submission.has_property(source_id):
                return False, None
            return True, submission.get_property(source_id)

        if source_id not in submission.data:
            return False, None
        return True, self.decrypt(config, submission.data[source_id])

    # ------------------------------------------------------------------
    # Type handling
    # ------------------------------------------------------------------

    @staticmethod
    def is_zero_reference(value: Any) -> bool:
        """Check if a scalar reference value means "nothing selected" (integer value 0)"""
        if isinstance(value, (list, dict)):
            return False
        if value is None:
            return True
        if isinstance(value, (bool, int, float)):
            return value == 0
        match = INTEGER_PREFIX.match(str(value))
        return match is None or int(match.group(1)) == 0

    @staticmethod
    def _from_timestamp(value: Any) -> Optional[datetime]:
        try:
            return datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None

    @classmethod
    def parse_datetime(cls, value: Any) -> Optional[datetime]:
        """Parse timestamps, ISO 8601 and "Y-m-d H:i:s" values; naive values are UTC"""
        if isinstance(value, datetime):
            parsed = value
        elif isinstance(value, (int, float)) and not isinstance(value, bool):
            parsed = cls._from_timestamp(value)
        else:
            text = str(value or "").strip()
            if not text:
                return None
            if re.fullmatch(r"[+-]?\d+", text):
                return cls._from_timestamp(int(text))
            try:
                parsed = datetime.fromisoformat(text)
            except ValueError:
                parsed = None
                for fmt in ("%Y-%m-%dT%H:%M:%S%z", "%Y-%m-%d %H:%M:%S%z", "%Y-%m-%d %H:%M"):
                    try:
                        parsed = datetime.strptime(text, fmt)
                        break
                    except ValueError:
                        continue

        if parsed is None:
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        try:
            return parsed.astimezone(timezone.utc)
        except OverflowError:
            return None

    def convert_timestamp(self, field_definition: FieldDefinition, value: Any) -> Optional[str]:
        """Format a date value the way a datetime field stores it"""
        parsed = self.parse_datetime(value)
        if parsed is None:
            return None
        if field_definition.datetime_type == "datetime":
            return parsed.strftime(self.DATETIME_STORAGE_FORMAT)
        return parsed.strftime(self.DATE_STORAGE_FORMAT)

    @staticmethod
    def check_max_field_size_exceeded(field_definition: FieldDefinition, value: Any) -> bool:
        """Check if a string value is longer than the field allows"""
        max_length = field_definition.max_length
        if not max_length or not isinstance(value, str):
            return False
        return len(value) > max_length

    # ------------------------------------------------------------------
    # Rules
    # ------------------------------------------------------------------

    def resolve_rule(
        self,
        config: MappingConfiguration,
        field_id: str,
        rule: MappingRule,
        submission: Submission,
        fields: Dict[str, FieldDefinition],
        form: Optional[FormDefinition] = None,
    ) -> FieldResolution:
        """
        Resolve one mapping rule

        Args:
            config: Mapping configuration
            field_id: Target field
            rule: Mapping rule of the field
            submission: Submission values are read from
            fields: Mappable fields of the target bundle
            form: Source form definition

        Returns:
            FieldResolution telling whether to set, clear or leave the field
        """
        field_definition = fields.get(field_id)
        if field_definition is None:
            logger.debug(f"Field {field_id} is not available on {config.target_bundle}")
            return FieldResolution(field_id, SKIP)

        registry = self.context.field_mappings
        if rule.mapping_plugin:
            strategy = registry.get(rule.mapping_plugin)
        else:
            strategy = registry.for_field_type(field_definition.type)

        components = strategy.component_fields(field_definition)
        warnings: List[str] = []
        values: Dict[str, Any] = {}
        elements: Dict[str, Any] = {}

        # Component values go to the strategy as read
        if rule.is_composite and components:
            for component in components:
                component_rule = rule.components.get(component)
                if component_rule is None:
                    continue
                found, value = self._source_value(config, component_rule, submission, form)
                if not found:
                    continue
                values[component] = value
                elements[component] = self._element(form, component_rule)
            if not values:
                return FieldResolution(field_id, SKIP)
        else:
            found, value = self._source_value(config, rule, submission, form)
            if not found:
                return FieldResolution(field_id, SKIP)

            if (
                not rule.is_custom
                and field_definition.type == "entity_reference"
                and self.is_zero_reference(value)
            ):
                return FieldResolution(field_id, CLEAR)

            if field_definition.type == "datetime":
                converted = self.convert_timestamp(field_definition, value)
                if converted is None:
                    warning = f"Could not convert '{value}' to a date for {field_id}"
                    logger.warning(warning)
                    return FieldResolution(field_id, SKIP, warnings=[warning])
                value = converted

            if self.check_max_field_size_exceeded(field_definition, value):
                warning = (
                    f"Value of {field_id} truncated to {field_definition.max_length} characters"
                )
                logger.warning(warning)
                warnings.append(warning)
                value = value[:field_definition.max_length]

            values[field_id] = value
            elements[field_id] = self._element(form, rule)

        resolved = strategy.resolve(field_definition, values, elements)
        if resolved is None:
            return FieldResolution(field_id, SKIP, warnings=warnings)
        return FieldResolution(field_id, SET, resolved, warnings)

    @staticmethod
    def _element(form: Optional[FormDefinition], rule: MappingRule):
        if form is None or rule.is_custom or rule.is_property:
            return None
        return form.get_element(rule.source_field_or_property_id)

    def apply(
        self,
        record: ContentRecord,
        config: MappingConfiguration,
        submission: Submission,
        fields: Dict[str, FieldDefinition],
        form: Optional[FormDefinition] = None,
    ) -> List[str]:
        """
        Apply every mapping rule of the configuration to a record

        Returns:
            Warnings raised while resolving (e.g. truncated values)
        """
        warnings: List[str] = []

        for field_id, rule in config.field_mappings.items():
            resolution = self.resolve_rule(config, field_id, rule, submission, fields, form)
            warnings.extend(resolution.warnings)

            if resolution.action == SET:
                record.set(field_id, resolution.value)
            elif resolution.action == CLEAR:
                record.clear(field_id)

        return warnings

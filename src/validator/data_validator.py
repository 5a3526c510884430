"""Configuration validation."""
from typing import Dict, List, Optional

from src.builder.field_builder import FieldMappingRegistry
from src.mapper.mapping import MappingConfiguration, MappingRule
from src.mapper.options import bundle_fields, form_element_types
from src.schema.models import FieldDefinition

INCOMPATIBLE_TYPE = "Incompatible type"


def types_compatible(field_type: str, source_type: str) -> bool:
    """Check if a source of source_type may be written to a field of field_type."""
    if field_type == source_type:
        return True
    if field_type == "email":
        return False
    if source_type == "email" and "text" not in field_type and "string" not in field_type:
        return False
    return True


class MappingValidator:
    """Validates a mapping configuration against its form and bundle."""

    def __init__(self, context):
        """
        Initialize validator

        Args:
            context: SyncContext giving access to storage, forms and encryption
        """
        self.context = context
        self.field_mappings: FieldMappingRegistry = context.field_mappings

    def validate(self, config: MappingConfiguration) -> List[str]:
        """Validate configuration; returns a list of error messages."""
        errors = []

        form = self.context.forms.load(config.source_form_id)
        if form is None:
            errors.append(f"Form '{config.source_form_id}' does not exist")
        source_types = form_element_types(form)

        bundle = self.context.storage.load_bundle(config.target_bundle)
        if bundle is None:
            errors.append(f"Bundle '{config.target_bundle}' does not exist")
        fields = bundle_fields(bundle)

        if config.use_encryption:
            profiles = self.context.encryption.profiles() if self.context.encryption else {}
            if not config.encryption_profile:
                errors.append("Encryption profile is required when decrypting values")
            elif config.encryption_profile not in profiles:
                errors.append(f"Unknown encryption profile '{config.encryption_profile}'")

        if (config.sync_on_edit or config.sync_on_delete) and bundle is not None:
            if not config.sync_id_field:
                errors.append("Sync field is required to synchronize edits or deletions")
            elif config.sync_id_field not in fields:
                errors.append(f"Sync field '{config.sync_id_field}' not found in {config.target_bundle}")

        if bundle is None:
            return errors

        for field_id, rule in config.field_mappings.items():
            errors.extend(self.validate_rule(field_id, rule, fields, source_types))

        return errors

    def validate_rule(
        self,
        field_id: str,
        rule: MappingRule,
        fields: Dict[str, FieldDefinition],
        source_types: Optional[Dict[str, str]],
    ) -> List[str]:
        """Validate a single field mapping."""
        errors = []

        field_definition = fields.get(field_id)
        if field_definition is None:
            return [f"{field_id}: field cannot be mapped"]

        if rule.mapping_plugin:
            if not self.field_mappings.has(rule.mapping_plugin):
                errors.append(f"{field_id}: unknown field mapping '{rule.mapping_plugin}'")
                return errors
            strategy = self.field_mappings.get(rule.mapping_plugin)
            if not strategy.supports_field_type(field_definition.type):
                errors.append(
                    f"{field_id}: field mapping '{rule.mapping_plugin}' does not support {field_definition.type} fields"
                )
        else:
            strategy = self.field_mappings.for_field_type(field_definition.type)

        if rule.is_composite:
            components = strategy.component_fields(field_definition)
            for name, component in rule.components.items():
                if name not in components:
                    errors.append(f"{field_id}: unknown component '{name}'")
                    continue
                errors.extend(self._check_source(f"{field_id}.{name}", component, None, source_types))
            return errors

        errors.extend(self._check_source(field_id, rule, field_definition, source_types))
        return errors

    @staticmethod
    def _check_source(
        label: str,
        rule: MappingRule,
        field_definition: Optional[FieldDefinition],
        source_types: Optional[Dict[str, str]],
    ) -> List[str]:
        active = rule.active_source()
        if active is None:
            return [f"{label}: use either a custom template or a source field"]
        if active == "custom" or source_types is None:
            return []

        source_type = source_types.get(rule.source_field_or_property_id)
        if source_type is None:
            return [f"{label}: source '{rule.source_field_or_property_id}' not found"]

        if field_definition is not None and not types_compatible(field_definition.type, source_type):
            return [f"{label}: {INCOMPATIBLE_TYPE}"]
        return []

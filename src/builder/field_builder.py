"""
Field Mappings - Strategies turning resolved submission values into a field value

Supports:
- Default mapping (any field type, value set as resolved)
- Link mapping (link fields, uri/title sub-components)
- Strategy lookup by plugin id or by field type
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from src.mapper.mapping import DEFAULT_MAPPING_PLUGIN
from src.schema.models import FieldDefinition, FormDefinition, FormElement

logger = logging.getLogger(__name__)


class FieldMapping:
    """Base strategy: how resolved values become the value of one field"""

    plugin_id = ""
    label = ""
    weight = 0
    field_types: Tuple[str, ...] = ()  # Empty means every field type
    supported_element_types: Tuple[str, ...] = ()  # Empty means every element type

    def supports_field_type(self, field_type: str) -> bool:
        """Check if the strategy can write fields of this type"""
        return not self.field_types or field_type in self.field_types

    def component_fields(self, field_definition: FieldDefinition) -> List[str]:
        """Sub-components mapped separately for this field (none by default)"""
        return []

    def supported_source_fields(self, form: FormDefinition) -> Dict[str, FormElement]:
        """Form elements whose values this strategy accepts"""
        if not self.supported_element_types:
            return dict(form.elements)
        return {
            key: element
            for key, element in form.elements.items()
            if element.type in self.supported_element_types
        }

    def resolve(
        self,
        field_definition: FieldDefinition,
        values: Dict[str, Any],
        elements: Optional[Dict[str, Optional[FormElement]]] = None,
    ) -> Any:
        """
        Build the field value

        Args:
            field_definition: Target field
            values: {field name: value} or {component: value} for composite rules
            elements: Source form elements, keyed like values

        Returns:
            Value to store in the field
        """
        if field_definition.name in values:
            return values[field_definition.name]
        return dict(values)


class DefaultFieldMapping(FieldMapping):
    """Sets the resolved value as is"""

    plugin_id = DEFAULT_MAPPING_PLUGIN
    label = "Default"
    weight = 99


class LinkFieldMapping(FieldMapping):
    """Maps url elements onto link fields"""

    plugin_id = "link_mapping"
    label = "Link"
    weight = 0
    field_types = ("link",)
    supported_element_types = ("url",)

    COMPONENTS = ["uri", "title"]

    def component_fields(self, field_definition: FieldDefinition) -> List[str]:
        return list(self.COMPONENTS)

    def resolve(self, field_definition, values, elements=None):
        if field_definition.name in values:
            return values[field_definition.name]

        uri = values.get("uri", "")
        if not uri:
            return None
        return {"uri": uri, "title": values.get("title") or ""}


class FieldMappingRegistry:
    """Closed registry of field mapping strategies"""

    def __init__(self):
        """Initialize registry."""
        self.mappings: Dict[str, FieldMapping] = {
            mapping.plugin_id: mapping
            for mapping in (DefaultFieldMapping(), LinkFieldMapping())
        }

    def get(self, plugin_id: Optional[str]) -> FieldMapping:
        """Get strategy by id, falling back to the default mapping"""
        if not plugin_id:
            return self.mappings[DEFAULT_MAPPING_PLUGIN]
        mapping = self.mappings.get(plugin_id)
        if mapping is None:
            logger.warning(f"Unknown field mapping: {plugin_id}")
            return self.mappings[DEFAULT_MAPPING_PLUGIN]
        return mapping

    def has(self, plugin_id: str) -> bool:
        """Check if a strategy id is known"""
        return plugin_id in self.mappings

    def for_field_type(self, field_type: str) -> FieldMapping:
        """Strategy with the lowest weight that declares the field type"""
        candidates = [
            mapping
            for mapping in self.mappings.values()
            if field_type in mapping.field_types
        ]
        if not candidates:
            return self.mappings[DEFAULT_MAPPING_PLUGIN]
        return min(candidates, key=lambda mapping: mapping.weight)

    def options(self, field_type: str) -> Dict[str, str]:
        """{id: label} of the strategies able to write this field type, by weight"""
        mappings = sorted(self.mappings.values(), key=lambda mapping: mapping.weight)
        return {
            mapping.plugin_id: mapping.label
            for mapping in mappings
            if mapping.supports_field_type(field_type)
        }

"""
Builder Module - Turns submissions into content record values

Provides:
- Token templates evaluated against submission values and properties
- Field mapping strategies selected per field type (default, link)
- MappingEngine: rule resolution, decryption, type handling and truncation
"""

from .payload_builder import MappingEngine, FieldResolution
from .field_builder import (
    FieldMapping,
    DefaultFieldMapping,
    LinkFieldMapping,
    FieldMappingRegistry,
)
from .template_engine import TokenTemplateEngine

__all__ = [
    "MappingEngine",
    "FieldResolution",
    "FieldMapping",
    "DefaultFieldMapping",
    "LinkFieldMapping",
    "FieldMappingRegistry",
    "TokenTemplateEngine",
]

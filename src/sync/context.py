"""Services the mapping engine and synchronizer work with."""
from dataclasses import dataclass, field
from typing import Optional

from src.api.forms import FormRegistry
from src.api.storage import ContentStorage
from src.builder.field_builder import FieldMappingRegistry
from src.builder.template_engine import TokenService, TokenTemplateEngine
from src.security.encryption import EncryptionService


@dataclass
class SyncContext:
    """Explicitly injected collaborators; nothing is looked up globally."""

    storage: ContentStorage
    forms: FormRegistry
    tokens: TokenService = field(default_factory=TokenTemplateEngine)
    encryption: Optional[EncryptionService] = None
    field_mappings: FieldMappingRegistry = field(default_factory=FieldMappingRegistry)

"""
Pydantic schemas for API request/response validation.

This package contains schema definitions for field definitions, choices,
stored values and the portable schema document.
"""

# Re-export schemas for convenient imports.
from .field_definition import ChoiceCreate as ChoiceCreate
from .field_definition import ChoiceResponse as ChoiceResponse
from .field_definition import ChoiceUpdate as ChoiceUpdate
from .field_definition import (
    FieldDefinitionCreate as FieldDefinitionCreate,
)
from .field_definition import (
    FieldDefinitionResponse as FieldDefinitionResponse,
)
from .field_definition import (
    FieldDefinitionUpdate as FieldDefinitionUpdate,
)
from .schema_document import ImportResult as ImportResult
from .schema_document import SchemaDocument as SchemaDocument

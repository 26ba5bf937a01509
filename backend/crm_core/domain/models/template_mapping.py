"""
Template Variable Mapping Models
Where each positional WhatsApp template variable takes its value from
"""
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field


class FixedFieldSource(BaseModel):
    """Built-in snapshot field"""
    type: Literal["fixed_field"] = "fixed_field"
    field: Literal["numero", "nombre"]


class CustomFieldSource(BaseModel):
    """Tenant custom field stored in contact attributes"""
    type: Literal["custom_field"] = "custom_field"
    field_name: str


class StaticValueSource(BaseModel):
    """Same literal for every contact"""
    type: Literal["static_value"] = "static_value"
    value: str


TemplateVariableSource = Annotated[
    Union[FixedFieldSource, CustomFieldSource, StaticValueSource],
    Field(discriminator="type"),
]


class TemplateVariableMapping(BaseModel):
    """Mapping for template placeholder {{position}}"""
    position: int = Field(..., ge=1, description="1-based placeholder position")
    variable_name: str = ""
    source: TemplateVariableSource

"""Pydantic schemas for the on-disk mapping dictionary."""

from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class FieldMappingSchema(_CamelModel):
    """A field rename, optionally with a transformation rule."""
    source_field: str = Field(..., alias="sourceField", min_length=1)
    target_field: str = Field(..., alias="targetField", min_length=1)
    data_type: str = Field("string", alias="dataType")
    required: bool = Field(False)
    transformation: Optional[str] = Field(None)
    deprecated: bool = Field(False)
    notes: str = Field("")


class EndpointMappingSchema(_CamelModel):
    """Source endpoint type → target endpoint with its field renames."""
    source_endpoint: str = Field(..., alias="sourceEndpoint", min_length=1)
    target_endpoint: str = Field(..., alias="targetEndpoint", min_length=1)
    method: str = Field("POST")
    description: str = Field("")
    field_mappings: Union[Dict[str, str], List[FieldMappingSchema]] = Field(
        default_factory=dict, alias="fieldMappings",
        description="Either {source: target} or a list of detailed field mappings",
    )

    @field_validator("method")
    @classmethod
    def _check_method(cls, value: str) -> str:
        method = value.upper()
        if method not in ("GET", "POST", "PUT", "DELETE", "PATCH"):
            raise ValueError(f"Unsupported HTTP method: {value}")
        return method

    @model_validator(mode="after")
    def _unique_source_fields(self) -> "EndpointMappingSchema":
        if isinstance(self.field_mappings, list):
            names = [f.source_field for f in self.field_mappings]
            duplicates = sorted({n for n in names if names.count(n) > 1})
            if duplicates:
                raise ValueError(
                    f"Source fields mapped more than once in {self.source_endpoint}: {duplicates}"
                )
        return self


class MappingDictionarySchema(_CamelModel):
    version: str = Field(..., min_length=1)
    last_updated: str = Field(..., alias="lastUpdated")
    mappings: List[EndpointMappingSchema] = Field(...)
    common_fields: List[FieldMappingSchema] = Field(default_factory=list, alias="commonFields")
    transformation_rules: Dict[str, str] = Field(default_factory=dict, alias="transformationRules")

"""
DatasetSchema and SchemaField models describing the shape of a dataset.
"""

import re
from datetime import datetime
from typing import List, Literal
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .record import utc_now

FieldType = Literal["string", "number", "boolean", "date", "datetime", "email", "url", "uuid"]

FIELD_TYPES: tuple[str, ...] = ("string", "number", "boolean", "date", "datetime", "email", "url", "uuid")


class FieldConstraints(BaseModel):
    """
    Optional constraints checked after a value passes its type check.

    Attributes:
        min_length: Minimum text length (string fields)
        max_length: Maximum text length (string fields)
        min_value: Minimum numeric value (number fields)
        max_value: Maximum numeric value (number fields)
        pattern: Regular expression searched in the value (any type)
        options: Closed set of allowed values
        format: Date/datetime format token such as "YYYY-MM-DD"
    """

    min_length: int | None = Field(None, ge=0)
    max_length: int | None = Field(None, ge=0)
    min_value: float | None = None
    max_value: float | None = None
    pattern: str | None = None
    options: List[str] | None = None
    format: str | None = None

    @field_validator("pattern")
    @classmethod
    def check_pattern_compiles(cls, v: str | None) -> str | None:
        if v is not None:
            try:
                re.compile(v)
            except re.error as e:
                raise ValueError(f"invalid pattern {v!r}: {e}") from e
        return v


class SchemaField(BaseModel):
    """
    One column of a dataset schema.

    Attributes:
        name: Column key used in records
        display_name: Human-readable header; also accepted as an upload header
        data_type: One of FIELD_TYPES
        is_required: Empty values are rejected
        is_unique: Informational flag; uniqueness is enforced by a
            ``unique`` business rule
        default_value: Informational default
        position: Ordering key within the schema
        validation: Constraints checked after the type check
    """

    name: str = Field(..., min_length=1, max_length=255)
    display_name: str | None = None
    data_type: FieldType = "string"
    is_required: bool = False
    is_unique: bool = False
    default_value: str | None = None
    position: int = Field(0, ge=0)
    validation: FieldConstraints = Field(default_factory=FieldConstraints)

    @property
    def label(self) -> str:
        return self.display_name or self.name


class DatasetSchema(BaseModel):
    """
    The active schema of a dataset.

    Field names and positions are unique and ``fields`` is always held in
    position order.
    """

    id: UUID = Field(default_factory=uuid4)
    dataset_id: UUID
    name: str = Field(..., min_length=1)
    description: str | None = None
    fields: List[SchemaField] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "dataset_id": "0b7a4c2e-1f0d-4c8e-9a57-3f3f1d8f2a10",
                "name": "customers_schema",
                "fields": [
                    {"name": "email", "data_type": "email", "is_required": True, "position": 0},
                    {
                        "name": "age",
                        "data_type": "number",
                        "position": 1,
                        "validation": {"min_value": 0, "max_value": 150},
                    },
                ],
            }
        }
    )

    @field_validator("fields")
    @classmethod
    def check_fields(cls, v: List[SchemaField]) -> List[SchemaField]:
        names = [f.name for f in v]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"duplicate field names: {', '.join(duplicates)}")

        positions = [f.position for f in v]
        if len(set(positions)) != len(positions):
            raise ValueError("field positions must be unique")

        return sorted(v, key=lambda f: f.position)

    def get_field(self, name: str) -> SchemaField | None:
        for field in self.fields:
            if field.name == name:
                return field
        return None

    @property
    def field_names(self) -> List[str]:
        return [f.name for f in self.fields]

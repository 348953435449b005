"""
Candidate schema produced by inference, pending reviewer acceptance.
"""

from typing import Any, Dict, List
from uuid import UUID

from pydantic import BaseModel, Field

from .schema import DatasetSchema, FieldConstraints, FieldType, SchemaField


class InferredField(BaseModel):
    """
    Inferred description of one column.

    Attributes:
        name: Sanitized field name
        display_name: Original header text
        data_type: Inferred type
        is_required: Non-empty ratio met the required threshold
        required_confidence: Share of non-empty values in the sample
        confidence: Share of non-empty values matching ``data_type``
        format: Dominant date/datetime format token, if any
        constraints: Observed bounds (min, max, integer, min_length, max_length, format)
        sample_values: First distinct non-empty values seen
    """

    name: str
    display_name: str
    data_type: FieldType
    is_required: bool = False
    required_confidence: float = Field(0.0, ge=0.0, le=1.0)
    confidence: float = Field(0.0, ge=0.0, le=1.0)
    format: str | None = None
    constraints: Dict[str, Any] = Field(default_factory=dict)
    sample_values: List[str] = Field(default_factory=list)

    def to_schema_field(self, position: int, include_observed_bounds: bool = False) -> SchemaField:
        constraints = FieldConstraints(format=self.format)
        if include_observed_bounds:
            if self.data_type == "number":
                constraints.min_value = self.constraints.get("min")
                constraints.max_value = self.constraints.get("max")
            elif self.data_type == "string":
                constraints.min_length = self.constraints.get("min_length")
                constraints.max_length = self.constraints.get("max_length")

        return SchemaField(
            name=self.name,
            display_name=self.display_name,
            data_type=self.data_type,
            is_required=self.is_required,
            position=position,
            validation=constraints,
        )


class InferredSchema(BaseModel):
    """Inference output; nothing here is persisted until a reviewer accepts it."""

    name: str
    description: str
    fields: List[InferredField] = Field(default_factory=list)
    row_count: int = 0
    sampled_rows: int = 0
    confidence: float = Field(0.0, ge=0.0, le=1.0)

    def to_schema(self, dataset_id: UUID, include_observed_bounds: bool = False) -> DatasetSchema:
        """
        Turn the candidate into a DatasetSchema.

        Observed min/max bounds describe the sample only, so they are
        copied as constraints only when ``include_observed_bounds`` is set.
        """
        return DatasetSchema(
            dataset_id=dataset_id,
            name=self.name,
            description=self.description,
            fields=[
                field.to_schema_field(position, include_observed_bounds)
                for position, field in enumerate(self.fields)
            ],
        )

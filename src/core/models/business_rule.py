"""
BusinessRule model: a dataset-level rule evaluated across staged rows.
"""

import re
from datetime import datetime
from typing import List, Literal
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .record import utc_now
from .schema import FieldType

RuleType = Literal["unique", "range_check", "cross_field", "field_validation", "required"]

RULE_TYPES: tuple[str, ...] = ("unique", "range_check", "cross_field", "field_validation", "required")


class RuleConfig(BaseModel):
    """
    Parameters for a business rule.

    Which keys matter depends on the rule type:
        unique, required: field_name
        range_check: field_name, min_value, max_value
        cross_field: condition (and optionally fields)
        field_validation: field_name plus pattern, allowed_values or data_type
    """

    field_name: str | None = None
    min_value: float | None = None
    max_value: float | None = None
    fields: List[str] = Field(default_factory=list)
    condition: str | None = None
    pattern: str | None = None
    allowed_values: List[str] | None = None
    data_type: FieldType | None = None

    model_config = ConfigDict(extra="ignore")

    @field_validator("pattern")
    @classmethod
    def check_pattern_compiles(cls, v: str | None) -> str | None:
        if v is not None:
            try:
                re.compile(v)
            except re.error as e:
                raise ValueError(f"invalid pattern {v!r}: {e}") from e
        return v


class BusinessRule(BaseModel):
    """
    A configurable rule attached to a dataset.

    Attributes:
        rule_name: Human-readable name
        rule_type: Evaluation strategy (see RULE_TYPES)
        rule_config: Type-specific parameters
        error_message: Message attached to every error the rule raises
        is_active: Inactive rules are never evaluated
        priority: Lower values are evaluated first
        severity: "error" makes the row invalid, "warning" only flags it
    """

    id: UUID = Field(default_factory=uuid4)
    dataset_id: UUID | None = None
    rule_name: str = Field(..., min_length=1)
    rule_type: RuleType
    rule_config: RuleConfig = Field(default_factory=RuleConfig)
    error_message: str = Field(..., min_length=1)
    is_active: bool = True
    priority: int = 100
    severity: Literal["error", "warning"] = "error"
    created_by: str | None = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "rule_name": "unique_email",
                "rule_type": "unique",
                "rule_config": {"field_name": "email"},
                "error_message": "Email must be unique",
                "priority": 10,
            }
        }
    )

    @model_validator(mode="after")
    def check_config_for_type(self) -> "BusinessRule":
        if self.rule_type != "cross_field" and not self.rule_config.field_name:
            raise ValueError(f"{self.rule_type} rule '{self.rule_name}' requires rule_config.field_name")
        return self

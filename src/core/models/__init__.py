"""
Core data models for the staged append pipeline.

All models use Pydantic for runtime validation and type safety.
"""

from .business_rule import RULE_TYPES, BusinessRule, RuleConfig
from .dataset_row import DataPreview, DatasetRow, PromotionResult
from .inferred_schema import InferredField, InferredSchema
from .record import Record, RecordValue, is_empty, value_to_text
from .schema import FIELD_TYPES, DatasetSchema, FieldConstraints, SchemaField
from .staging_row import StagingRow
from .submission import (
    InvalidStatusTransitionError,
    Submission,
    SubmissionStatus,
)
from .validation_result import (
    HEADER_ROW_INDEX,
    FieldStats,
    FieldValidationError,
    HeaderValidationResult,
    ValidationSummary,
)

__all__ = [
    "RULE_TYPES",
    "BusinessRule",
    "RuleConfig",
    "DataPreview",
    "DatasetRow",
    "PromotionResult",
    "InferredField",
    "InferredSchema",
    "Record",
    "RecordValue",
    "is_empty",
    "value_to_text",
    "FIELD_TYPES",
    "DatasetSchema",
    "FieldConstraints",
    "SchemaField",
    "StagingRow",
    "InvalidStatusTransitionError",
    "Submission",
    "SubmissionStatus",
    "HEADER_ROW_INDEX",
    "FieldStats",
    "FieldValidationError",
    "HeaderValidationResult",
    "ValidationSummary",
]

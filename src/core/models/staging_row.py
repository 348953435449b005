"""
StagingRow model: one uploaded row with its validation outcome.
"""

from datetime import datetime
from typing import List, Literal
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from .record import Record, utc_now
from .validation_result import FieldValidationError

RowStatus = Literal["valid", "invalid", "warning"]


class StagingRow(BaseModel):
    """
    A row held between validation and promotion.

    Attributes:
        submission_id: Owning submission; unset until the submission is stored
        row_index: Zero-based position in the uploaded file
        data: Field name to value
        validation_status: valid, invalid or warning
        validation_errors: Every error recorded for the row
    """

    id: UUID = Field(default_factory=uuid4)
    submission_id: UUID | None = None
    row_index: int = Field(..., ge=0)
    data: Record = Field(default_factory=dict)
    validation_status: RowStatus = "valid"
    validation_errors: List[FieldValidationError] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)

    @property
    def is_valid(self) -> bool:
        return self.validation_status == "valid"

"""
Rows of the authoritative dataset and paged views over them.
"""

from datetime import datetime
from typing import List
from uuid import UUID

from pydantic import BaseModel, Field

from .record import Record, utc_now


class DatasetRow(BaseModel):
    """A promoted row; ``row_index`` is unique within its dataset."""

    dataset_id: UUID
    row_index: int = Field(..., ge=0)
    data: Record = Field(default_factory=dict)
    version: int = 1
    created_by: str | None = None
    created_at: datetime = Field(default_factory=utc_now)


class DataPreview(BaseModel):
    rows: List[DatasetRow] = Field(default_factory=list)
    total_rows: int = 0
    page: int = 1
    page_size: int = 50
    total_pages: int = 0


class PromotionResult(BaseModel):
    """
    Outcome of promoting one submission.

    ``first_row_index``/``last_row_index`` are None when no row was eligible.
    """

    submission_id: UUID
    dataset_id: UUID
    rows_promoted: int = 0
    first_row_index: int | None = None
    last_row_index: int | None = None
    dataset_row_count: int = 0
    applied_at: datetime

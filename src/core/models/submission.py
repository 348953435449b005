"""
Submission model and its review state machine.

    pending -> under_review -> approved -> applied
       |            |
       +------------+-------> rejected

A pending submission may also be approved or rejected directly.
``rejected`` and ``applied`` are terminal.
"""

from datetime import datetime
from enum import Enum
from typing import Dict, FrozenSet
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from .record import utc_now
from .validation_result import ValidationSummary


class SubmissionStatus(str, Enum):
    PENDING = "pending"
    UNDER_REVIEW = "under_review"
    APPROVED = "approved"
    REJECTED = "rejected"
    APPLIED = "applied"

    @property
    def is_terminal(self) -> bool:
        return not ALLOWED_TRANSITIONS[self]


ALLOWED_TRANSITIONS: Dict[SubmissionStatus, FrozenSet[SubmissionStatus]] = {
    SubmissionStatus.PENDING: frozenset(
        {SubmissionStatus.UNDER_REVIEW, SubmissionStatus.APPROVED, SubmissionStatus.REJECTED}
    ),
    SubmissionStatus.UNDER_REVIEW: frozenset({SubmissionStatus.APPROVED, SubmissionStatus.REJECTED}),
    SubmissionStatus.APPROVED: frozenset({SubmissionStatus.APPLIED}),
    SubmissionStatus.REJECTED: frozenset(),
    SubmissionStatus.APPLIED: frozenset(),
}

# Statuses a reviewer may set; "applied" is reserved for promotion.
REVIEW_DECISIONS: FrozenSet[SubmissionStatus] = frozenset(
    {SubmissionStatus.UNDER_REVIEW, SubmissionStatus.APPROVED, SubmissionStatus.REJECTED}
)

EDITABLE_STATUSES: FrozenSet[SubmissionStatus] = frozenset(
    {SubmissionStatus.PENDING, SubmissionStatus.UNDER_REVIEW}
)


class InvalidStatusTransitionError(Exception):
    """Raised when a submission is moved along an edge the state machine forbids."""

    def __init__(self, submission_id: UUID | None, current: SubmissionStatus, requested: SubmissionStatus):
        self.submission_id = submission_id
        self.current = current
        self.requested = requested
        super().__init__(
            f"Submission {submission_id} cannot move from '{current.value}' to '{requested.value}'"
        )


def can_transition(current: SubmissionStatus, requested: SubmissionStatus) -> bool:
    return requested in ALLOWED_TRANSITIONS[current]


class Submission(BaseModel):
    """
    A contributor's upload and its review lifecycle.

    Attributes:
        dataset_id: Target dataset
        submitted_by: Opaque identity of the contributor
        file_name/file_path/file_size: Reference to the raw upload
        row_count: Number of data rows staged
        status: Position in the review state machine
        validation_results: Snapshot of the latest ValidationSummary
        admin_notes/reviewed_by/reviewed_at: Review decision details
        applied_at: Set once, when promotion commits
    """

    id: UUID = Field(default_factory=uuid4)
    dataset_id: UUID
    submitted_by: str
    file_name: str
    file_path: str | None = None
    file_size: int = Field(0, ge=0)
    row_count: int = Field(0, ge=0)
    status: SubmissionStatus = SubmissionStatus.PENDING
    validation_results: ValidationSummary | None = None
    admin_notes: str | None = None
    reviewed_by: str | None = None
    reviewed_at: datetime | None = None
    submitted_at: datetime = Field(default_factory=utc_now)
    applied_at: datetime | None = None

    def transition_to(self, status: SubmissionStatus | str) -> "Submission":
        """
        Return a copy of this submission in ``status``.

        Raises:
            InvalidStatusTransitionError: If the edge is not allowed,
                including any move out of a terminal status
        """
        requested = SubmissionStatus(status)
        if not can_transition(self.status, requested):
            raise InvalidStatusTransitionError(self.id, self.status, requested)
        return self.model_copy(update={"status": requested})

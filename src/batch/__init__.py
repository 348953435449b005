"""
Submission validation and lifecycle.
"""

from .pipeline import SubmissionParseError, SubmissionValidator, validate_submission
from .readers import CSVParseError, CSVReader

__all__ = [
    "SubmissionValidator",
    "SubmissionParseError",
    "validate_submission",
    "CSVReader",
    "CSVParseError",
]

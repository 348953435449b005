"""
Schema inference from tabular samples.

Takes the header row and data rows of an upload, analyzes each column
independently and returns a candidate schema with per-field confidence.
The candidate is never persisted here; a reviewer accepts it through the
SchemaRegistry.
"""

import re
from typing import List, Sequence

from src.core.models.inferred_schema import InferredField, InferredSchema
from src.core.settings import InferenceSettings
from src.observability.logger import get_logger
from src.observability.metrics import (
    increment_counter,
    inferred_field_types_total,
    schema_inferences_total,
)

from .column_analyzer import ColumnAnalyzer

logger = get_logger(__name__)

PLACEHOLDER_FIELD_NAME = "field"

_INVALID_NAME_CHARS = re.compile(r"[^a-z0-9_]+")
_REPEATED_UNDERSCORES = re.compile(r"_+")


def sanitize_field_name(name: str) -> str:
    """
    Turn an arbitrary header into a field name.

    Lower-cases, collapses runs of characters outside ``[a-z0-9_]`` into a
    single underscore and trims underscores from both ends. An empty
    result becomes ``field``.

    Examples:
        >>> sanitize_field_name("Email Address")
        'email_address'
        >>> sanitize_field_name("  Total ($) ")
        'total'
        >>> sanitize_field_name("%%%")
        'field'
    """
    sanitized = _INVALID_NAME_CHARS.sub("_", name.strip().lower())
    sanitized = _REPEATED_UNDERSCORES.sub("_", sanitized).strip("_")
    return sanitized or PLACEHOLDER_FIELD_NAME


def unique_field_names(headers: Sequence[str]) -> List[str]:
    """
    Sanitize headers and suffix repeats (``_2``, ``_3``...) so names stay unique.

    Examples:
        >>> unique_field_names(["Name", "name", ""])
        ['name', 'name_2', 'field']
    """
    names: List[str] = []
    taken = set()
    for header in headers:
        base = sanitize_field_name(header)
        candidate = base
        suffix = 2
        while candidate in taken:
            candidate = f"{base}_{suffix}"
            suffix += 1
        taken.add(candidate)
        names.append(candidate)
    return names


class SchemaInferrer:
    """
    Infers a candidate schema from a sample of rows.

    Only the first ``sample_size`` rows are analyzed. Overall confidence is
    the mean of the field confidences.
    """

    def __init__(self, settings: InferenceSettings | None = None):
        """
        Initialize schema inferrer.

        Args:
            settings: Inference thresholds; defaults apply when omitted
        """
        self.settings = settings or InferenceSettings()
        self.analyzer = ColumnAnalyzer(self.settings)

    def infer(
        self,
        headers: Sequence[str],
        rows: Sequence[Sequence[str]],
        dataset_name: str,
    ) -> InferredSchema:
        """
        Infer a schema from headers and rows.

        Args:
            headers: Header row
            rows: Data rows; short rows read as empty cells
            dataset_name: Used to name and describe the candidate

        Returns:
            InferredSchema candidate
        """
        sample = list(rows[: self.settings.sample_size])
        names = unique_field_names(headers)

        fields: List[InferredField] = []
        for column, (header, name) in enumerate(zip(headers, names)):
            values = [row[column] if column < len(row) else "" for row in sample]
            field = self.analyzer.analyze(name, header.strip(), values)
            fields.append(field)
            increment_counter(inferred_field_types_total, 1, data_type=field.data_type)

        confidence = sum(f.confidence for f in fields) / len(fields) if fields else 0.0
        increment_counter(schema_inferences_total, 1, status="success" if sample else "empty")

        logger.info(
            f"Inferred {len(fields)} fields for dataset '{dataset_name}' "
            f"from {len(sample)} of {len(rows)} rows (confidence {confidence:.2f})"
        )

        return InferredSchema(
            name=f"{sanitize_field_name(dataset_name)}_schema",
            description=f"Auto-inferred schema for dataset '{dataset_name}'",
            fields=fields,
            row_count=len(rows),
            sampled_rows=len(sample),
            confidence=confidence,
        )


def infer_schema(
    headers: Sequence[str],
    rows: Sequence[Sequence[str]],
    dataset_name: str,
    settings: InferenceSettings | None = None,
) -> InferredSchema:
    """Infer a candidate schema with the given (or default) settings."""
    return SchemaInferrer(settings).infer(headers, rows, dataset_name)

"""
Column analysis: from one column of raw values to an inferred field.
"""

from collections import Counter
from typing import Any, Dict, List, Sequence

from src.core.models.inferred_schema import InferredField
from src.core.settings import InferenceSettings

from .classifier import (
    DATE_FORMATS,
    DATETIME_FORMATS,
    TYPE_TAGS,
    classify,
    match_format,
    parse_number,
)


class ColumnAnalyzer:
    """
    Infers type, requiredness and constraints for a single column.

    The winning type is the non-string tag matched by the most non-empty
    values, as long as it covers at least ``type_confidence_threshold`` of
    them; otherwise the column is a string.
    """

    def __init__(self, settings: InferenceSettings | None = None):
        self.settings = settings or InferenceSettings()

    def analyze(self, name: str, display_name: str, values: Sequence[str]) -> InferredField:
        """
        Analyze one column.

        Args:
            name: Sanitized field name
            display_name: Original header
            values: Raw cell values for the column, in row order

        Returns:
            InferredField describing the column
        """
        settings = self.settings
        trimmed = [value.strip() for value in values]
        non_empty = [value for value in trimmed if value]

        total = len(trimmed)
        required_confidence = len(non_empty) / total if total else 0.0

        if not non_empty:
            return InferredField(
                name=name,
                display_name=display_name,
                data_type="string",
                is_required=False,
                required_confidence=required_confidence,
                confidence=settings.empty_column_confidence,
            )

        tag_counts: Counter = Counter()
        for value in non_empty:
            tag_counts.update(classify(value))

        best_type = None
        best_count = 0
        for tag in TYPE_TAGS:
            if tag_counts[tag] > best_count:
                best_type = tag
                best_count = tag_counts[tag]

        confidence = best_count / len(non_empty)
        if best_type is None or confidence < settings.type_confidence_threshold:
            data_type = "string"
            confidence = settings.string_fallback_confidence
        else:
            data_type = best_type

        field_format = None
        if data_type == "date":
            field_format = self._dominant_format(non_empty, DATE_FORMATS)
        elif data_type == "datetime":
            field_format = self._dominant_format(non_empty, DATETIME_FORMATS)

        return InferredField(
            name=name,
            display_name=display_name,
            data_type=data_type,
            is_required=required_confidence >= settings.required_threshold,
            required_confidence=required_confidence,
            confidence=confidence,
            format=field_format,
            constraints=self._constraints(data_type, non_empty, field_format),
            sample_values=self._samples(non_empty),
        )

    def _dominant_format(self, values: List[str], formats: Sequence[str]) -> str | None:
        counts: Counter = Counter()
        for value in values:
            matched = match_format(value, formats)
            if matched:
                counts[matched] += 1
        if not counts:
            return None
        # ties go to catalogue order
        best = max(counts.values())
        return next(f for f in formats if counts.get(f) == best)

    def _constraints(self, data_type: str, values: List[str], field_format: str | None) -> Dict[str, Any]:
        constraints: Dict[str, Any] = {}

        if data_type == "number":
            numbers = [n for n in (parse_number(v) for v in values) if n is not None]
            if numbers:
                constraints["min"] = min(numbers)
                constraints["max"] = max(numbers)
                constraints["integer"] = all(n.is_integer() for n in numbers)
        elif data_type == "string":
            lengths = [len(v) for v in values]
            constraints["min_length"] = min(lengths)
            constraints["max_length"] = max(lengths)
        elif field_format:
            constraints["format"] = field_format

        return constraints

    def _samples(self, values: List[str]) -> List[str]:
        samples: List[str] = []
        for value in values:
            if len(samples) >= self.settings.sample_values:
                break
            if value not in samples:
                samples.append(value)
        return samples

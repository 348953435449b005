"""
Submission validation pipeline.

Coordinates the flow: read → header check → row validation → business
rules → aggregate. The result is a ValidationSummary plus one StagingRow
per data row; persisting them is the caller's job.
"""

from pathlib import Path
from typing import Dict, List, Sequence, Tuple

from src.batch.readers import CSVParseError, CSVReader
from src.core.models import (
    BusinessRule,
    DatasetSchema,
    FieldStats,
    FieldValidationError,
    Record,
    StagingRow,
    ValidationSummary,
    value_to_text,
)
from src.core.rules import BusinessRuleEvaluator
from src.core.settings import ValidationSettings
from src.core.validators import RowValidator, build_record, validate_headers
from src.observability.logger import get_logger
from src.observability.metrics import (
    record_submission_validation,
    track_duration,
    validation_duration_seconds,
)

logger = get_logger(__name__)

ValidationOutcome = Tuple[ValidationSummary, List[StagingRow]]


class SubmissionParseError(Exception):
    """Raised when an upload cannot be parsed; no row of it is staged."""


def row_status(errors: Sequence[FieldValidationError]) -> str:
    """invalid if any blocking error, warning if only warnings, else valid."""
    if any(e.severity == "error" for e in errors):
        return "invalid"
    if errors:
        return "warning"
    return "valid"


class SubmissionValidator:
    """
    Validates one submission against a schema and business rules.

    Flow:
    1. Match headers to schema fields (missing fields abort the batch)
    2. Pair every row's cells with the headers
    3. Run the row validator on each record and collect null counts
    4. Run business rules over the full record set and merge their errors
    5. Compute unique and invalid counts per field in a final pass

    Holds no state between calls, so one instance can serve concurrent
    submissions.
    """

    def __init__(self, settings: ValidationSettings | None = None):
        """
        Initialize submission validator.

        Args:
            settings: Validation settings; defaults apply when omitted
        """
        self.settings = settings or ValidationSettings()

    def validate_file(
        self,
        file_path: str | Path,
        schema: DatasetSchema,
        rules: Sequence[BusinessRule],
    ) -> ValidationOutcome:
        """
        Read a CSV upload and validate it.

        Raises:
            SubmissionParseError: If the file cannot be read or a row is malformed
        """
        try:
            headers, rows = CSVReader(file_path).read()
        except CSVParseError as e:
            raise SubmissionParseError(str(e)) from e
        return self.validate_submission(rows, headers, schema, rules)

    def validate_submission(
        self,
        rows: Sequence[Sequence[str]],
        headers: Sequence[str],
        schema: DatasetSchema,
        rules: Sequence[BusinessRule],
    ) -> ValidationOutcome:
        """
        Validate parsed rows.

        Args:
            rows: Data rows (without the header row)
            headers: Header row
            schema: Active schema of the target dataset
            rules: Business rules of the target dataset

        Returns:
            (summary, staging_rows). When a schema field is missing from the
            headers the summary has ``header_valid=False`` and no staging
            rows are returned.

        Raises:
            SubmissionParseError: If a row's width differs from the header
                and strict_row_width is enabled
        """
        dataset_id = str(schema.dataset_id)
        header_result = validate_headers(headers, schema)
        if not header_result.is_valid:
            logger.warning(
                f"Submission for dataset {dataset_id} rejected: "
                f"{len(header_result.errors)} schema fields missing from headers"
            )
            summary = ValidationSummary(
                is_valid=False,
                header_valid=False,
                total_rows=len(rows),
                header_errors=header_result.errors + header_result.warnings,
            )
            record_submission_validation(dataset_id, summary)
            return summary, []

        if self.settings.strict_row_width:
            self._check_row_widths(rows, len(headers))

        records = [build_record(headers, cells, header_result.field_map) for cells in rows]

        with track_duration(validation_duration_seconds, dataset_id=dataset_id):
            summary, staging_rows = self.revalidate(records, schema, rules)
        summary.header_errors = list(header_result.warnings)

        logger.info(
            f"Validated {summary.total_rows} rows for dataset {dataset_id}: "
            f"{summary.valid_rows} valid, {summary.invalid_rows} invalid, {summary.warning_rows} warning"
        )
        record_submission_validation(dataset_id, summary)
        return summary, staging_rows

    def revalidate(
        self,
        records: Sequence[Record],
        schema: DatasetSchema,
        rules: Sequence[BusinessRule],
    ) -> ValidationOutcome:
        """
        Run row validation and business rules over already-built records.

        Used for the initial pass and again after a staging row is edited.
        """
        row_validator = RowValidator(schema, self.settings)
        evaluator = BusinessRuleEvaluator(rules, self.settings)

        field_stats: Dict[str, FieldStats] = {f.name: FieldStats() for f in schema.fields}
        staging_rows: List[StagingRow] = []
        schema_errors: List[FieldValidationError] = []

        for row_index, record in enumerate(records):
            errors = row_validator.validate_row(record, row_index)
            self._count_values(record, field_stats)
            staging_rows.append(
                StagingRow(
                    row_index=row_index,
                    data=dict(record),
                    validation_status=row_status(errors),
                    validation_errors=errors,
                )
            )
            schema_errors.extend(errors)

        rule_errors = evaluator.evaluate(records)
        self._merge_rule_errors(staging_rows, rule_errors)
        self._finalize_stats(records, staging_rows, field_stats)

        valid_rows = sum(1 for r in staging_rows if r.validation_status == "valid")
        invalid_rows = sum(1 for r in staging_rows if r.validation_status == "invalid")
        warning_rows = sum(1 for r in staging_rows if r.validation_status == "warning")

        summary = ValidationSummary(
            is_valid=invalid_rows == 0,
            header_valid=True,
            total_rows=len(staging_rows),
            valid_rows=valid_rows,
            invalid_rows=invalid_rows,
            warning_rows=warning_rows,
            schema_errors=schema_errors,
            business_rule_errors=rule_errors,
            field_stats=field_stats,
        )
        return summary, staging_rows

    def _check_row_widths(self, rows: Sequence[Sequence[str]], width: int) -> None:
        for row_index, cells in enumerate(rows):
            if len(cells) != width:
                raise SubmissionParseError(
                    f"Row {row_index} has {len(cells)} cells but the header has {width}"
                )

    def _count_values(self, record: Record, field_stats: Dict[str, FieldStats]) -> None:
        for field_name, stats in field_stats.items():
            stats.total_values += 1
            if not value_to_text(record.get(field_name)).strip():
                stats.null_values += 1

    def _merge_rule_errors(self, staging_rows: List[StagingRow], rule_errors: List[FieldValidationError]) -> None:
        for error in rule_errors:
            staging_rows[error.row_index].validation_errors.append(error)
        for row in staging_rows:
            row.validation_status = row_status(row.validation_errors)

    def _finalize_stats(
        self,
        records: Sequence[Record],
        staging_rows: Sequence[StagingRow],
        field_stats: Dict[str, FieldStats],
    ) -> None:
        for field_name, stats in field_stats.items():
            distinct = {value_to_text(r.get(field_name)).strip() for r in records}
            distinct.discard("")
            stats.unique_values = len(distinct)
            stats.invalid_values = sum(
                1
                for row in staging_rows
                if any(e.field_name == field_name and e.severity == "error" for e in row.validation_errors)
            )


def validate_submission(
    rows: Sequence[Sequence[str]],
    headers: Sequence[str],
    schema: DatasetSchema,
    rules: Sequence[BusinessRule],
    settings: ValidationSettings | None = None,
) -> ValidationOutcome:
    """Validate a parsed upload with the given (or default) settings."""
    return SubmissionValidator(settings).validate_submission(rows, headers, schema, rules)

"""
Admin CLI for the staged append pipeline.

Usage:
    python -m src.cli.admin_cli infer --file <csv> --dataset-name <name> [--output <json>]
    python -m src.cli.admin_cli validate --file <csv> --schema <json> [--rules <yaml>]
    python -m src.cli.admin_cli create-dataset --name <name> [--description <text>]
    python -m src.cli.admin_cli accept-schema --dataset-id <id> --candidate <json> [--include-observed-bounds]
    python -m src.cli.admin_cli add-rule --dataset-id <id> --rule-file <yaml>
    python -m src.cli.admin_cli submit --dataset-id <id> --file <csv> --submitted-by <user>
    python -m src.cli.admin_cli pending
    python -m src.cli.admin_cli staging --submission-id <id> [--page N] [--page-size N]
    python -m src.cli.admin_cli edit-row --row-id <id> --set field=value [--set ...]
    python -m src.cli.admin_cli review --submission-id <id> --status <decision> --reviewed-by <user>
    python -m src.cli.admin_cli promote --submission-id <id>
    python -m src.cli.admin_cli query --dataset-id <id> [--search <text>] [--page N]

``infer`` and ``validate`` work offline; every other command needs the
database.
"""

import argparse
import json
import sys
from datetime import datetime
from pathlib import Path
from typing import List
from uuid import uuid4

from src.batch.pipeline import SubmissionParseError, SubmissionValidator
from src.batch.readers import CSVParseError, CSVReader
from src.batch.submissions import SubmissionNotEditableError, SubmissionService
from src.core.models import DatasetSchema, InferredSchema, InvalidStatusTransitionError, ValidationSummary
from src.core.rules import RuleConfigLoader
from src.core.schema import SchemaInferrer
from src.core.schema.registry import SchemaRegistry
from src.core.settings import PipelineSettings, load_settings
from src.observability.logger import get_logger, set_level
from src.observability.metrics import start_metrics_server
from src.utils.validation import validate_page, validate_page_size, validate_uuid
from src.warehouse.connection import DatabaseConnectionPool
from src.warehouse.dataset_rows import DatasetRowStore
from src.warehouse.promotion import SubmissionAlreadyAppliedError
from src.warehouse.rule_store import BusinessRuleStore
from src.warehouse.schema_mgmt import SchemaStore

logger = get_logger(__name__)


def format_timestamp(ts: datetime | str | None) -> str:
    """Format timestamp for display."""
    if isinstance(ts, str):
        return ts
    return ts.strftime("%Y-%m-%d %H:%M:%S") if ts else "N/A"


def create_pool(args) -> DatabaseConnectionPool:
    pool = DatabaseConnectionPool(
        host=args.db_host,
        port=args.db_port,
        database=args.db_name,
        user=args.db_user,
        password=args.db_password,
    )
    pool.open()
    return pool


def get_settings(args) -> PipelineSettings:
    settings = load_settings(args.config)
    set_level(settings.log_level)
    return settings


def print_summary(summary: ValidationSummary, max_errors: int = 20) -> None:
    print(f"\n{'=' * 80}")
    print("VALIDATION SUMMARY")
    print(f"{'=' * 80}")
    print(f"Header valid:  {summary.header_valid}")
    print(f"Total rows:    {summary.total_rows}")
    print(f"Valid rows:    {summary.valid_rows}")
    print(f"Invalid rows:  {summary.invalid_rows}")
    print(f"Warning rows:  {summary.warning_rows}")
    print(f"Submission is {'VALID' if summary.is_valid else 'INVALID'}")

    errors = summary.header_errors + summary.schema_errors + summary.business_rule_errors
    if errors:
        print(f"\nErrors by type: {json.dumps(summary.errors_by_type(), sort_keys=True)}")
        print(f"\nFirst {min(len(errors), max_errors)} of {len(errors)} errors:")
        for error in errors[:max_errors]:
            location = "header" if error.row_index < 0 else f"row {error.row_index}"
            print(f"  [{error.severity}] {location} {error.field_name}: {error.message} ({error.error_type})")


def load_schema_file(path: str) -> DatasetSchema:
    """
    Load a schema from JSON.

    Accepts a stored DatasetSchema or an inference candidate written by
    ``infer --output``.
    """
    with open(path, "r") as f:
        data = json.load(f)
    if "dataset_id" in data:
        return DatasetSchema.model_validate(data)
    return InferredSchema.model_validate(data).to_schema(uuid4())


def parse_assignments(assignments: List[str]) -> dict:
    record = {}
    for assignment in assignments:
        if "=" not in assignment:
            raise ValueError(f"Expected field=value, got '{assignment}'")
        field_name, value = assignment.split("=", 1)
        record[field_name.strip()] = value
    return record


def infer_command(args):
    """
    Infer a candidate schema from a sample file.

    Args:
        args: Command line arguments
    """
    settings = get_settings(args)
    inferrer = SchemaInferrer(settings.inference)

    try:
        headers, rows = CSVReader(args.file).read()
    except CSVParseError as e:
        print(f"\nError: {e}")
        sys.exit(1)
    candidate = inferrer.infer(headers, rows, args.dataset_name)

    print(f"\n{'=' * 80}")
    print(f"INFERRED SCHEMA: {candidate.name} (confidence {candidate.confidence:.2f})")
    print(f"{'=' * 80}")
    print(f"Rows sampled: {candidate.sampled_rows} of {candidate.row_count}\n")
    print(f"{'Field':<25} {'Type':<10} {'Required':<10} {'Confidence':<12} Samples")
    print("-" * 80)
    for field in candidate.fields:
        samples = ", ".join(field.sample_values[:3])
        print(
            f"{field.name:<25} {field.data_type:<10} {str(field.is_required):<10} "
            f"{field.confidence:<12.2f} {samples}"
        )

    if args.output:
        Path(args.output).write_text(candidate.model_dump_json(indent=2))
        print(f"\nCandidate written to {args.output}")


def validate_command(args):
    """Validate a file against a schema file without touching the database."""
    settings = get_settings(args)

    try:
        schema = load_schema_file(args.schema)
        rules = RuleConfigLoader(args.rules).load_rules(schema.dataset_id) if args.rules else []
        summary, _ = SubmissionValidator(settings.validation).validate_file(args.file, schema, rules)
    except (SubmissionParseError, ValueError, FileNotFoundError) as e:
        logger.error(f"Validation failed: {e}")
        print(f"\nError: {e}")
        sys.exit(1)

    print_summary(summary, max_errors=args.max_errors)
    if not summary.is_valid:
        sys.exit(2)


def create_dataset_command(args):
    pool = create_pool(args)
    try:
        dataset_id = DatasetRowStore(pool).create_dataset(args.name, args.description)
        print(f"\nDataset created: {dataset_id}")
    finally:
        pool.close()


def accept_schema_command(args):
    """
    Store a reviewed inference candidate as a dataset's schema.

    Args:
        args: Command line arguments
    """
    dataset_id = validate_uuid(args.dataset_id, "dataset_id")
    with open(args.candidate, "r") as f:
        candidate = InferredSchema.model_validate_json(f.read())

    pool = create_pool(args)
    try:
        registry = SchemaRegistry(SchemaStore(pool))
        schema = registry.accept(candidate, dataset_id, include_observed_bounds=args.include_observed_bounds)
        print(f"\nSchema '{schema.name}' accepted for dataset {dataset_id} with {len(schema.fields)} fields")
    finally:
        pool.close()


def add_rule_command(args):
    """
    Add business rules for a dataset from a YAML file.

    Args:
        args: Command line arguments
    """
    dataset_id = validate_uuid(args.dataset_id, "dataset_id")
    logger.info(f"Adding business rules from file: {args.rule_file}")

    try:
        rules = RuleConfigLoader(args.rule_file).load_rules(dataset_id)
    except (ValueError, FileNotFoundError) as e:
        print(f"\nError: {e}")
        sys.exit(1)

    pool = create_pool(args)
    try:
        store = BusinessRuleStore(pool)
        for rule in rules:
            store.create_rule(rule)
            print(f"Rule added: {rule.rule_name} ({rule.rule_type}, priority {rule.priority})")
    finally:
        pool.close()


def submit_command(args):
    """
    Validate an upload and stage it for review.

    Args:
        args: Command line arguments
    """
    settings = get_settings(args)
    pool = create_pool(args)
    try:
        service = SubmissionService(pool, settings=settings)
        outcome = service.submit_file(args.dataset_id, args.file, args.submitted_by)
    except SubmissionParseError as e:
        print(f"\nError: {e}")
        sys.exit(1)
    finally:
        pool.close()

    print_summary(outcome.summary)
    if outcome.submission is None:
        print("\nSubmission was not created: the file's headers do not match the dataset schema")
        sys.exit(2)
    print(f"\nSubmission {outcome.submission.id} staged with status '{outcome.submission.status.value}'")


def pending_command(args):
    pool = create_pool(args)
    try:
        service = SubmissionService(pool, settings=get_settings(args))
        if args.dataset_id:
            submissions = service.list_by_dataset(args.dataset_id)
        else:
            submissions = service.list_pending()
    finally:
        pool.close()

    if not submissions:
        print("\nNo submissions found" if args.dataset_id else "\nNo submissions awaiting review")
        return

    print(f"\n{'Submission':<38} {'Dataset':<38} {'Status':<14} {'Rows':<6} {'Submitted by':<20} Submitted at")
    print("-" * 140)
    for submission in submissions:
        print(
            f"{str(submission.id):<38} {str(submission.dataset_id):<38} {submission.status.value:<14} "
            f"{submission.row_count:<6} {submission.submitted_by:<20} {format_timestamp(submission.submitted_at)}"
        )


def staging_command(args):
    """
    Show one page of a submission's staged rows.

    Args:
        args: Command line arguments
    """
    pool = create_pool(args)
    try:
        page = SubmissionService(pool, settings=get_settings(args)).get_staging_rows(
            args.submission_id, page=args.page, page_size=args.page_size
        )
    finally:
        pool.close()

    print(f"\nRows {len(page.rows)} of {page.total_rows} (page {page.page}, size {page.page_size})\n")
    for row in page.rows:
        print(f"[{row.row_index}] {row.id} {row.validation_status.upper()}")
        print(f"    {json.dumps(row.data, sort_keys=True)}")
        for error in row.validation_errors:
            print(f"    - {error.field_name}: {error.message}")


def edit_row_command(args):
    """
    Edit a staged row and show its new validation outcome.

    Args:
        args: Command line arguments
    """
    try:
        record = parse_assignments(args.set)
    except ValueError as e:
        print(f"\nError: {e}")
        sys.exit(1)

    pool = create_pool(args)
    try:
        row = SubmissionService(pool, settings=get_settings(args)).update_staging_row(args.row_id, record)
    finally:
        pool.close()

    print(f"\nRow {row.row_index} is now {row.validation_status.upper()}")
    for error in row.validation_errors:
        print(f"  - {error.field_name}: {error.message}")


def review_command(args):
    """
    Record a review decision; approval promotes the submission.

    Args:
        args: Command line arguments
    """
    pool = create_pool(args)
    try:
        outcome = SubmissionService(pool, settings=get_settings(args)).review(
            args.submission_id, args.status, args.reviewed_by, args.notes
        )
    finally:
        pool.close()

    print(f"\nSubmission {outcome.submission.id} is now '{outcome.submission.status.value}'")
    if outcome.promotion is not None:
        print_promotion(outcome.promotion)


def promote_command(args):
    pool = create_pool(args)
    try:
        result = SubmissionService(pool, settings=get_settings(args)).promote(args.submission_id)
    finally:
        pool.close()
    print_promotion(result)


def print_promotion(result) -> None:
    print(f"Promoted {result.rows_promoted} rows into dataset {result.dataset_id}")
    if result.rows_promoted:
        print(f"Row indexes {result.first_row_index}..{result.last_row_index}")
    print(f"Dataset now holds {result.dataset_row_count} rows")


def query_command(args):
    """
    Page through a dataset's rows.

    Args:
        args: Command line arguments
    """
    settings = get_settings(args)
    dataset_id = validate_uuid(args.dataset_id, "dataset_id")
    page = validate_page(args.page)
    page_size = validate_page_size(
        args.page_size or settings.staging.default_page_size, settings.staging.max_page_size
    )

    pool = create_pool(args)
    try:
        preview = DatasetRowStore(pool).query_rows(dataset_id, search=args.search, page=page, page_size=page_size)
    finally:
        pool.close()

    print(f"\nPage {preview.page} of {preview.total_pages} ({preview.total_rows} rows)\n")
    for row in preview.rows:
        print(f"[{row.row_index}] {json.dumps(row.data, sort_keys=True)}")


COMMANDS = {
    "infer": infer_command,
    "validate": validate_command,
    "create-dataset": create_dataset_command,
    "accept-schema": accept_schema_command,
    "add-rule": add_rule_command,
    "submit": submit_command,
    "pending": pending_command,
    "staging": staging_command,
    "edit-row": edit_row_command,
    "review": review_command,
    "promote": promote_command,
    "query": query_command,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Admin CLI for the staged append pipeline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    # Global options
    parser.add_argument("--config", help="Pipeline settings YAML (default: PIPELINE_CONFIG or config/pipeline.yaml)")
    parser.add_argument("--db-host", default=None, help="Database host (default: DB_HOST or localhost)")
    parser.add_argument("--db-port", type=int, default=None, help="Database port (default: DB_PORT or 5432)")
    parser.add_argument("--db-name", default=None, help="Database name (default: DB_NAME or datasets)")
    parser.add_argument("--db-user", default=None, help="Database user (default: DB_USER or pipeline)")
    parser.add_argument("--db-password", default=None, help="Database password (default: DB_PASSWORD)")
    parser.add_argument(
        "--metrics-port", type=int, default=None, help="Serve Prometheus metrics on this port while the command runs"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    infer_parser = subparsers.add_parser("infer", help="Infer a candidate schema from a sample CSV")
    infer_parser.add_argument("--file", required=True, help="Sample CSV file")
    infer_parser.add_argument("--dataset-name", required=True, help="Dataset name used to name the schema")
    infer_parser.add_argument("--output", help="Write the candidate as JSON to this path")

    validate_parser = subparsers.add_parser("validate", help="Validate a CSV offline")
    validate_parser.add_argument("--file", required=True, help="CSV file to validate")
    validate_parser.add_argument("--schema", required=True, help="Schema or inference candidate JSON")
    validate_parser.add_argument("--rules", help="Business rules YAML")
    validate_parser.add_argument("--max-errors", type=int, default=20, help="Errors to print (default: 20)")

    dataset_parser = subparsers.add_parser("create-dataset", help="Create an empty dataset")
    dataset_parser.add_argument("--name", required=True, help="Dataset name")
    dataset_parser.add_argument("--description", help="Dataset description")

    accept_parser = subparsers.add_parser("accept-schema", help="Accept an inference candidate as a dataset schema")
    accept_parser.add_argument("--dataset-id", required=True, help="Dataset ID")
    accept_parser.add_argument("--candidate", required=True, help="Candidate JSON written by 'infer --output'")
    accept_parser.add_argument(
        "--include-observed-bounds",
        action="store_true",
        help="Copy observed min/max values and lengths into field constraints",
    )

    rule_parser = subparsers.add_parser("add-rule", help="Add business rules from a YAML file")
    rule_parser.add_argument("--dataset-id", required=True, help="Dataset ID")
    rule_parser.add_argument("--rule-file", required=True, help="Business rules YAML")

    submit_parser = subparsers.add_parser("submit", help="Validate and stage a CSV upload")
    submit_parser.add_argument("--dataset-id", required=True, help="Target dataset ID")
    submit_parser.add_argument("--file", required=True, help="CSV upload")
    submit_parser.add_argument("--submitted-by", required=True, help="Contributor identity")

    pending_parser = subparsers.add_parser("pending", help="List submissions awaiting review")
    pending_parser.add_argument("--dataset-id", help="List every submission of this dataset instead")

    staging_parser = subparsers.add_parser("staging", help="Show staged rows of a submission")
    staging_parser.add_argument("--submission-id", required=True, help="Submission ID")
    staging_parser.add_argument("--page", type=int, default=1, help="Page number (default: 1)")
    staging_parser.add_argument("--page-size", type=int, help="Rows per page")

    edit_parser = subparsers.add_parser("edit-row", help="Edit a staged row")
    edit_parser.add_argument("--row-id", required=True, help="Staging row ID")
    edit_parser.add_argument(
        "--set", action="append", required=True, metavar="FIELD=VALUE", help="Field assignment (repeatable)"
    )

    review_parser = subparsers.add_parser("review", help="Record a review decision")
    review_parser.add_argument("--submission-id", required=True, help="Submission ID")
    review_parser.add_argument(
        "--status", required=True, choices=["under_review", "approved", "rejected"], help="Decision"
    )
    review_parser.add_argument("--reviewed-by", required=True, help="Reviewer identity")
    review_parser.add_argument("--notes", help="Admin notes")

    promote_parser = subparsers.add_parser("promote", help="Promote an approved submission")
    promote_parser.add_argument("--submission-id", required=True, help="Submission ID")

    query_parser = subparsers.add_parser("query", help="Page through dataset rows")
    query_parser.add_argument("--dataset-id", required=True, help="Dataset ID")
    query_parser.add_argument("--search", help="Case-insensitive text filter")
    query_parser.add_argument("--page", type=int, default=1, help="Page number (default: 1)")
    query_parser.add_argument("--page-size", type=int, help="Rows per page")

    return parser


def main(argv: List[str] | None = None):
    """Main entry point for admin CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    try:
        if args.metrics_port:
            start_metrics_server(args.metrics_port)
        COMMANDS[args.command](args)
    except KeyboardInterrupt:
        print("\n\nInterrupted by user")
        sys.exit(130)
    except (
        LookupError,
        ValueError,
        OSError,
        InvalidStatusTransitionError,
        SubmissionAlreadyAppliedError,
        SubmissionNotEditableError,
    ) as e:
        logger.error(f"{args.command} failed: {e}")
        print(f"\nError: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()

"""
Prometheus metrics for the staged append pipeline

Counters and histograms covering schema inference, submission validation,
staging outcomes and promotion. All metrics live in a private registry so
that importing the package never collides with an application's default
registry.
"""
from prometheus_client import (
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
    start_http_server,
)

REGISTRY = CollectorRegistry()


# =======================
# INFERENCE METRICS
# =======================

schema_inferences_total = Counter(
    name="pipeline_schema_inferences_total",
    documentation="Total number of schema inference runs",
    labelnames=["status"],  # status: success, empty
    registry=REGISTRY,
)

inferred_field_types_total = Counter(
    name="pipeline_inferred_field_types_total",
    documentation="Inferred field types across all inference runs",
    labelnames=["data_type"],
    registry=REGISTRY,
)

# =======================
# VALIDATION METRICS
# =======================

submissions_validated_total = Counter(
    name="pipeline_submissions_validated_total",
    documentation="Total number of submissions validated",
    labelnames=["dataset_id", "outcome"],  # outcome: valid, invalid, header_rejected
    registry=REGISTRY,
)

staged_rows_total = Counter(
    name="pipeline_staged_rows_total",
    documentation="Rows written to staging, by validation status",
    labelnames=["dataset_id", "status"],  # status: valid, invalid, warning
    registry=REGISTRY,
)

validation_errors_total = Counter(
    name="pipeline_validation_errors_total",
    documentation="Validation errors by error type",
    labelnames=["dataset_id", "error_type"],
    registry=REGISTRY,
)

validation_duration_seconds = Histogram(
    name="pipeline_validation_duration_seconds",
    documentation="Time spent validating a submission in seconds",
    labelnames=["dataset_id"],
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 10.0, 30.0, 60.0],
    registry=REGISTRY,
)

# =======================
# PROMOTION METRICS
# =======================

promotions_total = Counter(
    name="pipeline_promotions_total",
    documentation="Promotion attempts by outcome",
    labelnames=["dataset_id", "status"],  # status: success, failure
    registry=REGISTRY,
)

rows_promoted_total = Counter(
    name="pipeline_rows_promoted_total",
    documentation="Rows appended to datasets by promotion",
    labelnames=["dataset_id"],
    registry=REGISTRY,
)

promotion_retries_total = Counter(
    name="pipeline_promotion_retries_total",
    documentation="Promotion transactions retried after a serialization failure",
    labelnames=["dataset_id"],
    registry=REGISTRY,
)

promotion_duration_seconds = Histogram(
    name="pipeline_promotion_duration_seconds",
    documentation="Time spent in the promotion transaction in seconds",
    labelnames=["dataset_id"],
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 10.0],
    registry=REGISTRY,
)


# =======================
# HELPER FUNCTIONS
# =======================

def generate_metrics() -> bytes:
    """Render all metrics in Prometheus text format."""
    return generate_latest(REGISTRY)


def start_metrics_server(port: int) -> None:
    """Expose the pipeline registry over HTTP on ``port`` from a daemon thread."""
    start_http_server(port, registry=REGISTRY)


def increment_counter(counter: Counter, value: float = 1.0, **labels) -> None:
    """Increment a labelled counter; zero increments are skipped."""
    if value:
        counter.labels(**labels).inc(value)


class track_duration:
    """
    Context manager for tracking operation duration

    Usage:
        with track_duration(promotion_duration_seconds, dataset_id=str(dataset_id)):
            ...
    """

    def __init__(self, histogram: Histogram, **labels):
        self.histogram = histogram
        self.labels = labels
        self.timer = None

    def __enter__(self):
        self.timer = self.histogram.labels(**self.labels).time()
        self.timer.__enter__()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.timer.__exit__(exc_type, exc_val, exc_tb)
        return False


# =======================
# PIPELINE HELPERS
# =======================

def record_submission_validation(dataset_id: str, summary) -> None:
    """
    Record the outcome of validating one submission.

    Args:
        dataset_id: Dataset the submission targets
        summary: ValidationSummary produced by the orchestrator
    """
    if not summary.header_valid:
        outcome = "header_rejected"
    else:
        outcome = "valid" if summary.is_valid else "invalid"
    increment_counter(submissions_validated_total, 1, dataset_id=dataset_id, outcome=outcome)

    increment_counter(staged_rows_total, summary.valid_rows, dataset_id=dataset_id, status="valid")
    increment_counter(staged_rows_total, summary.invalid_rows, dataset_id=dataset_id, status="invalid")
    increment_counter(staged_rows_total, summary.warning_rows, dataset_id=dataset_id, status="warning")

    errors = summary.header_errors + summary.schema_errors + summary.business_rule_errors
    for error in errors:
        increment_counter(validation_errors_total, 1, dataset_id=dataset_id, error_type=error.error_type)


def record_promotion(dataset_id: str, rows_promoted: int, success: bool = True) -> None:
    status = "success" if success else "failure"
    increment_counter(promotions_total, 1, dataset_id=dataset_id, status=status)
    if success:
        increment_counter(rows_promoted_total, rows_promoted, dataset_id=dataset_id)

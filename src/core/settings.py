"""
Pipeline settings

Thresholds and format catalogues used by inference, validation and
promotion are grouped in pydantic models and passed explicitly to the
components that need them. Values come from an optional YAML file and
can be overridden per process with environment variables.
"""
import os
from pathlib import Path
from typing import Any, List

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

DEFAULT_CONFIG_PATH = Path("config/pipeline.yaml")


class InferenceSettings(BaseModel):
    """Thresholds for schema inference."""

    sample_size: int = Field(1000, gt=0)
    required_threshold: float = Field(0.9, ge=0.0, le=1.0)
    type_confidence_threshold: float = Field(0.8, ge=0.0, le=1.0)
    string_fallback_confidence: float = Field(0.7, ge=0.0, le=1.0)
    empty_column_confidence: float = Field(0.1, ge=0.0, le=1.0)
    sample_values: int = Field(5, ge=0)


class ValidationSettings(BaseModel):
    """
    Row and rule validation behaviour.

    Attributes:
        date_formats: Format tokens accepted for date fields
        datetime_formats: Format tokens accepted for datetime fields
        prefer_field_format: Validate dates against the field's stored
            format instead of the whole catalogue when one is set
        cross_field_fail_closed: Treat an unparseable cross-field
            condition as a violation on every row
        strict_row_width: Reject the submission when a row's cell count
            differs from the header
    """

    date_formats: List[str] = Field(
        default_factory=lambda: [
            "YYYY-MM-DD",
            "MM/DD/YYYY",
            "MM-DD-YYYY",
            "YYYY/MM/DD",
            "DD-MM-YYYY",
            "YYYY-MM-DD HH:mm:ss",
        ]
    )
    datetime_formats: List[str] = Field(
        default_factory=lambda: [
            "YYYY-MM-DD HH:mm:ss",
            "MM/DD/YYYY HH:mm:ss",
            "YYYY-MM-DDTHH:mm:ssZ",
            "YYYY-MM-DDTHH:mm:ss.SSSZ",
        ]
    )
    prefer_field_format: bool = False
    cross_field_fail_closed: bool = False
    strict_row_width: bool = True

    @field_validator("date_formats", "datetime_formats")
    @classmethod
    def check_not_empty(cls, v: List[str]) -> List[str]:
        if not v:
            raise ValueError("at least one format is required")
        return v


class PromotionSettings(BaseModel):
    max_retries: int = Field(3, ge=1)
    retry_delay: float = Field(0.2, ge=0.0)
    include_warning_rows: bool = False


class StagingSettings(BaseModel):
    default_page_size: int = Field(50, gt=0)
    max_page_size: int = Field(100, gt=0)

    @model_validator(mode="after")
    def check_page_sizes(self) -> "StagingSettings":
        if self.default_page_size > self.max_page_size:
            raise ValueError("default_page_size cannot exceed max_page_size")
        return self


class PipelineSettings(BaseModel):
    inference: InferenceSettings = Field(default_factory=InferenceSettings)
    validation: ValidationSettings = Field(default_factory=ValidationSettings)
    promotion: PromotionSettings = Field(default_factory=PromotionSettings)
    staging: StagingSettings = Field(default_factory=StagingSettings)
    log_level: str = "INFO"


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    if os.getenv("LOG_LEVEL"):
        data["log_level"] = os.environ["LOG_LEVEL"]
    if os.getenv("PROMOTION_MAX_RETRIES"):
        promotion = data.get("promotion") or {}
        promotion["max_retries"] = int(os.environ["PROMOTION_MAX_RETRIES"])
        data["promotion"] = promotion
    if os.getenv("INFERENCE_SAMPLE_SIZE"):
        inference = data.get("inference") or {}
        inference["sample_size"] = int(os.environ["INFERENCE_SAMPLE_SIZE"])
        data["inference"] = inference
    return data


def load_settings(path: str | Path | None = None) -> PipelineSettings:
    """
    Load pipeline settings from YAML.

    Args:
        path: Config file path. Falls back to the PIPELINE_CONFIG env var,
            then to config/pipeline.yaml if it exists, then to defaults.

    Returns:
        Validated PipelineSettings

    Raises:
        FileNotFoundError: If an explicitly named file does not exist
        ValueError: If the file is not valid YAML or fails validation
    """
    explicit = path or os.getenv("PIPELINE_CONFIG")
    config_path = Path(explicit) if explicit else DEFAULT_CONFIG_PATH

    data: dict[str, Any] = {}
    if config_path.exists():
        try:
            with open(config_path, "r") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in {config_path}: {e}") from e
        if not isinstance(data, dict):
            raise ValueError(f"Config file {config_path} must contain a mapping")
    elif explicit:
        raise FileNotFoundError(f"Config file not found: {config_path}")

    try:
        return PipelineSettings(**_apply_env_overrides(data))
    except ValidationError as e:
        raise ValueError(f"Invalid pipeline settings in {config_path}: {e}") from e

"""
Business rule configuration.

Loads dataset business rules from YAML files and provides a builder for
assembling rules in code (tests, CLI).
"""

from pathlib import Path
from typing import Any, List
from uuid import UUID

import yaml
from pydantic import ValidationError

from src.core.models.business_rule import RULE_TYPES, BusinessRule, RuleConfig
from src.core.models.schema import FieldType

_CONFIG_KEYS = set(RuleConfig.model_fields) - {"field_name"}


class RuleConfigLoader:
    """
    Loads business rules from YAML configuration files.

    Expected YAML format:
    ```yaml
    rules:
      email:
        - type: unique
          message: "Email must be unique"
          priority: 10
      age:
        - type: range_check
          params:
            min_value: 0
            max_value: 150
          message: "Age out of range"

    cross_field:
      - name: end_after_start
        condition: "end_date > start_date"
        message: "End date must be after start date"
    ```
    """

    def __init__(self, config_path: str | Path):
        """
        Initialize the rule config loader.

        Args:
            config_path: Path to the YAML configuration file
        """
        self.config_path = Path(config_path)
        if not self.config_path.exists():
            raise FileNotFoundError(f"Rule configuration file not found: {config_path}")

    def load_rules(self, dataset_id: UUID | None = None) -> List[BusinessRule]:
        """
        Load and parse business rules.

        Args:
            dataset_id: Dataset to attach the rules to, if known

        Returns:
            BusinessRule list in file order

        Raises:
            ValueError: If YAML is invalid or a rule definition is malformed
        """
        with open(self.config_path) as f:
            try:
                config = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ValueError(f"Invalid YAML in {self.config_path}: {e}") from e

        if not config or ("rules" not in config and "cross_field" not in config):
            raise ValueError("Configuration file must contain a 'rules' or 'cross_field' section")

        rules: List[BusinessRule] = []
        for field_name, field_rule_list in (config.get("rules") or {}).items():
            if not isinstance(field_rule_list, list):
                raise ValueError(f"Rules for field '{field_name}' must be a list")
            for idx, rule_def in enumerate(field_rule_list):
                rules.append(self._parse_rule(field_name, rule_def, idx, dataset_id))

        for idx, rule_def in enumerate(config.get("cross_field") or []):
            rule_def = {"type": "cross_field", **rule_def}
            rules.append(self._parse_rule(None, rule_def, idx, dataset_id))

        return rules

    def _parse_rule(
        self,
        field_name: str | None,
        rule_def: dict[str, Any],
        idx: int,
        dataset_id: UUID | None,
    ) -> BusinessRule:
        if not isinstance(rule_def, dict) or "type" not in rule_def:
            raise ValueError(f"Rule {idx} for '{field_name or 'cross_field'}' is missing 'type'")

        rule_type = rule_def["type"]
        if rule_type not in RULE_TYPES:
            raise ValueError(f"Unknown rule type '{rule_type}'. Expected one of: {', '.join(RULE_TYPES)}")

        rule_name = rule_def.get("name", f"{field_name or 'cross_field'}_{rule_type}_{idx}")

        params = dict(rule_def.get("params", rule_def.get("parameters", {})) or {})
        for key in _CONFIG_KEYS:
            if key in rule_def:
                params.setdefault(key, rule_def[key])
        if field_name is not None:
            params["field_name"] = field_name

        severity = rule_def.get("severity", "error")
        if severity not in ("error", "warning"):
            raise ValueError(f"Invalid severity '{severity}' for rule '{rule_name}'. Must be 'error' or 'warning'")

        try:
            return BusinessRule(
                dataset_id=dataset_id,
                rule_name=rule_name,
                rule_type=rule_type,
                rule_config=RuleConfig(**params),
                error_message=rule_def.get("message") or rule_def.get("error_message") or f"{rule_name} failed",
                is_active=rule_def.get("enabled", True),
                priority=rule_def.get("priority", 100),
                severity=severity,
            )
        except ValidationError as e:
            raise ValueError(f"Invalid rule '{rule_name}': {e}") from e


class RuleConfigBuilder:
    """
    Programmatically build business rules (for testing or dynamic rules).

    Usage:
        rules = (
            RuleConfigBuilder()
            .add_unique("email")
            .add_range_check("age", min_value=0, max_value=150)
            .build()
        )
    """

    def __init__(self, dataset_id: UUID | None = None):
        self.dataset_id = dataset_id
        self.rules: List[BusinessRule] = []

    def _add(
        self,
        rule_name: str,
        rule_type: str,
        config: RuleConfig,
        error_message: str,
        priority: int,
        severity: str,
    ) -> "RuleConfigBuilder":
        self.rules.append(
            BusinessRule(
                dataset_id=self.dataset_id,
                rule_name=rule_name,
                rule_type=rule_type,
                rule_config=config,
                error_message=error_message,
                priority=priority,
                severity=severity,
            )
        )
        return self

    def add_unique(
        self, field_name: str, error_message: str | None = None, priority: int = 100, severity: str = "error"
    ) -> "RuleConfigBuilder":
        return self._add(
            f"{field_name}_unique",
            "unique",
            RuleConfig(field_name=field_name),
            error_message or f"Duplicate value in '{field_name}'",
            priority,
            severity,
        )

    def add_range_check(
        self,
        field_name: str,
        min_value: float | None = None,
        max_value: float | None = None,
        error_message: str | None = None,
        priority: int = 100,
        severity: str = "error",
    ) -> "RuleConfigBuilder":
        return self._add(
            f"{field_name}_range",
            "range_check",
            RuleConfig(field_name=field_name, min_value=min_value, max_value=max_value),
            error_message or f"Value of '{field_name}' is out of range",
            priority,
            severity,
        )

    def add_cross_field(
        self,
        condition: str,
        fields: List[str] | None = None,
        rule_name: str | None = None,
        error_message: str | None = None,
        priority: int = 100,
        severity: str = "error",
    ) -> "RuleConfigBuilder":
        return self._add(
            rule_name or f"cross_field_{len(self.rules)}",
            "cross_field",
            RuleConfig(condition=condition, fields=fields or []),
            error_message or f"Condition failed: {condition}",
            priority,
            severity,
        )

    def add_required(
        self, field_name: str, error_message: str | None = None, priority: int = 100, severity: str = "error"
    ) -> "RuleConfigBuilder":
        return self._add(
            f"{field_name}_required",
            "required",
            RuleConfig(field_name=field_name),
            error_message or f"'{field_name}' is required",
            priority,
            severity,
        )

    def add_field_validation(
        self,
        field_name: str,
        pattern: str | None = None,
        allowed_values: List[str] | None = None,
        data_type: FieldType | None = None,
        error_message: str | None = None,
        priority: int = 100,
        severity: str = "error",
    ) -> "RuleConfigBuilder":
        return self._add(
            f"{field_name}_field_validation",
            "field_validation",
            RuleConfig(field_name=field_name, pattern=pattern, allowed_values=allowed_values, data_type=data_type),
            error_message or f"Invalid value in '{field_name}'",
            priority,
            severity,
        )

    def build(self) -> List[BusinessRule]:
        return list(self.rules)

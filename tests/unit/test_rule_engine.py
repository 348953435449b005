"""
Unit tests for rule engine and rule configuration.
"""

import pytest
import tempfile
from pathlib import Path
from uuid import uuid4

from src.core.models.business_rule import BusinessRule, RuleConfig
from src.core.rules import BusinessRuleEvaluator, RuleConfigBuilder, RuleConfigLoader, evaluate_rules
from src.core.settings import ValidationSettings


@pytest.mark.unit
class TestBusinessRuleEvaluator:
    """Tests for BusinessRuleEvaluator"""

    def test_duplicate_value_flagged_after_first(self):
        """Only the second occurrence of a value is a duplicate"""
        rules = RuleConfigBuilder() \
            .add_unique("email") \
            .build()

        errors = evaluate_rules([{"email": "a@x.com"}, {"email": "a@x.com"}], rules)

        assert len(errors) == 1
        assert errors[0].row_index == 1
        assert errors[0].error_type == "duplicate_value"
        assert errors[0].rule_name == "email_unique"
        assert errors[0].expected_value == "unique (first seen in row 0)"

    def test_unique_ignores_empty_values(self):
        rules = RuleConfigBuilder().add_unique("email").build()
        records = [{"email": ""}, {"email": " "}, {"email": "b@x.com"}]

        assert evaluate_rules(records, rules) == []

    def test_every_repeat_is_flagged(self):
        rules = RuleConfigBuilder().add_unique("code").build()
        records = [{"code": "A"}, {"code": "B"}, {"code": "A"}, {"code": "A"}]

        errors = evaluate_rules(records, rules)

        assert [e.row_index for e in errors] == [2, 3]

    def test_range_check(self):
        rules = RuleConfigBuilder() \
            .add_range_check("age", min_value=0, max_value=150) \
            .build()
        records = [{"age": "30"}, {"age": "151"}, {"age": "-1"}, {"age": "unknown"}, {"age": ""}]

        errors = evaluate_rules(records, rules)

        assert [e.row_index for e in errors] == [1, 2]
        assert all(e.error_type == "range_violation" for e in errors)
        assert errors[0].expected_value == "between 0 and 150"

    def test_range_check_open_bound(self):
        rules = RuleConfigBuilder().add_range_check("score", min_value=10).build()

        errors = evaluate_rules([{"score": "9.5"}, {"score": "10"}], rules)

        assert [e.row_index for e in errors] == [0]
        assert errors[0].expected_value == ">= 10"

    def test_cross_field_dates(self):
        rules = RuleConfigBuilder() \
            .add_cross_field("end_date > start_date", fields=["start_date", "end_date"], rule_name="end_after_start") \
            .build()
        records = [
            {"start_date": "2024-01-01", "end_date": "2024-02-01"},
            {"start_date": "2024-03-01", "end_date": "2024-02-01"},
            {"start_date": "2024-03-01", "end_date": ""},
        ]

        errors = evaluate_rules(records, rules)

        assert len(errors) == 1
        assert errors[0].row_index == 1
        assert errors[0].error_type == "cross_field_violation"
        assert errors[0].field_name == "start_date, end_date"

    def test_cross_field_against_literal(self):
        rules = RuleConfigBuilder().add_cross_field("quantity <= 10").build()

        errors = evaluate_rules([{"quantity": "5"}, {"quantity": "11"}], rules)

        assert [e.row_index for e in errors] == [1]

    def test_cross_field_with_one_field_passes(self):
        rules = RuleConfigBuilder().add_cross_field("a > b", fields=["a"]).build()

        assert evaluate_rules([{"a": "1", "b": "2"}], rules) == []

    def test_unparseable_condition_passes_by_default(self):
        rules = RuleConfigBuilder().add_cross_field("a >>> b").build()

        assert evaluate_rules([{"a": "1", "b": "2"}], rules) == []

    def test_unparseable_condition_fails_closed_when_configured(self):
        rules = RuleConfigBuilder().add_cross_field("a >>> b").build()
        settings = ValidationSettings(cross_field_fail_closed=True)

        errors = evaluate_rules([{"a": "1"}, {"a": "2"}], rules, settings)

        assert [e.row_index for e in errors] == [0, 1]

    def test_required_rule(self):
        rules = RuleConfigBuilder().add_required("phone").build()

        errors = evaluate_rules([{"phone": "555"}, {"phone": ""}, {}], rules)

        assert [e.row_index for e in errors] == [1, 2]
        assert errors[0].error_type == "required_violation"

    def test_field_validation_allowed_values(self):
        rules = RuleConfigBuilder() \
            .add_field_validation("status", allowed_values=["active", "inactive"]) \
            .build()

        errors = evaluate_rules([{"status": "active"}, {"status": "gone"}, {"status": ""}], rules)

        assert [e.row_index for e in errors] == [1]
        assert errors[0].expected_value == "active, inactive"

    def test_field_validation_pattern_and_type(self):
        rules = RuleConfigBuilder() \
            .add_field_validation("code", pattern=r"^[A-Z]") \
            .add_field_validation("count", data_type="number") \
            .build()

        errors = evaluate_rules([{"code": "x1", "count": "3"}, {"code": "X1", "count": "three"}], rules)

        assert [(e.row_index, e.field_name) for e in errors] == [(0, "code"), (1, "count")]

    def test_invalid_pattern_rejected_when_rule_is_built(self):
        with pytest.raises(ValueError, match="invalid pattern"):
            RuleConfigBuilder().add_field_validation("code", pattern="[oops")

    def test_unknown_data_type_rejected_when_rule_is_built(self):
        with pytest.raises(ValueError):
            RuleConfig(field_name="count", data_type="integer")
        with pytest.raises(ValueError):
            BusinessRule(
                rule_name="count_type",
                rule_type="field_validation",
                rule_config={"field_name": "count", "data_type": "integer"},
                error_message="m",
            )

    def test_warning_severity_is_carried(self):
        rules = RuleConfigBuilder().add_unique("email", severity="warning").build()

        errors = evaluate_rules([{"email": "a@x.com"}, {"email": "a@x.com"}], rules)

        assert errors[0].severity == "warning"

    def test_inactive_rules_skipped(self):
        rule = BusinessRule(
            rule_name="email_unique",
            rule_type="unique",
            rule_config=RuleConfig(field_name="email"),
            error_message="dup",
            is_active=False,
        )

        assert evaluate_rules([{"email": "a"}, {"email": "a"}], [rule]) == []

    def test_rules_run_in_priority_order(self):
        rules = RuleConfigBuilder() \
            .add_required("b", priority=50) \
            .add_required("a", priority=10) \
            .build()

        errors = evaluate_rules([{}], rules)

        assert [e.field_name for e in errors] == ["a", "b"]

    def test_get_rule_summary(self):
        """Test rule summary statistics"""
        rules = RuleConfigBuilder() \
            .add_unique("email", priority=1) \
            .add_range_check("age", min_value=0) \
            .add_range_check("score", max_value=10) \
            .build()

        summary = BusinessRuleEvaluator(rules).get_rule_summary()

        assert summary["total_rules"] == 3
        assert summary["rules_by_type"] == {"unique": 1, "range_check": 2}
        assert summary["rule_order"][0] == "email_unique"

    def test_invalid_rule_type_raises_error(self):
        """Test that invalid rule type raises ValueError"""
        rule = BusinessRule.model_construct(
            rule_name="invalid_rule",
            rule_type="unknown_type",
            rule_config=RuleConfig(field_name="field"),
            error_message="bad",
            is_active=True,
            priority=100,
            severity="error",
        )

        with pytest.raises(ValueError) as exc_info:
            BusinessRuleEvaluator([rule])

        assert "unknown rule type" in str(exc_info.value).lower()


@pytest.mark.unit
class TestRuleConfigLoader:
    """Tests for RuleConfigLoader"""

    def _write(self, content: str) -> str:
        with tempfile.NamedTemporaryFile(mode='w', suffix='.yaml', delete=False) as f:
            f.write(content)
            return f.name

    def test_load_rules_from_yaml(self):
        """Test loading rules from YAML file"""
        yaml_content = """
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

cross_field:
  - name: end_after_start
    condition: "end_date > start_date"
    fields: [start_date, end_date]
    message: "End date must be after start date"
"""
        temp_path = self._write(yaml_content)
        dataset_id = uuid4()

        try:
            rules = RuleConfigLoader(temp_path).load_rules(dataset_id)

            assert [r.rule_type for r in rules] == ["unique", "range_check", "cross_field"]
            assert rules[0].priority == 10
            assert rules[0].error_message == "Email must be unique"
            assert rules[1].rule_config.max_value == 150
            assert rules[1].rule_name == "age_range_check_0"
            assert rules[2].rule_name == "end_after_start"
            assert rules[2].rule_config.fields == ["start_date", "end_date"]
            assert all(r.dataset_id == dataset_id for r in rules)
        finally:
            Path(temp_path).unlink()

    def test_load_rules_with_severity(self):
        yaml_content = """
rules:
  email:
    - type: field_validation
      pattern: "@"
      severity: warning
      enabled: false
"""
        temp_path = self._write(yaml_content)

        try:
            rules = RuleConfigLoader(temp_path).load_rules()

            assert rules[0].severity == "warning"
            assert rules[0].is_active is False
            assert rules[0].rule_config.pattern == "@"
        finally:
            Path(temp_path).unlink()

    def test_load_rules_file_not_found(self):
        with pytest.raises(FileNotFoundError):
            RuleConfigLoader("/nonexistent/path/rules.yaml")

    def test_load_rules_invalid_yaml(self):
        temp_path = self._write("rules: [unclosed")

        try:
            with pytest.raises(ValueError):
                RuleConfigLoader(temp_path).load_rules()
        finally:
            Path(temp_path).unlink()

    def test_load_rules_missing_type(self):
        yaml_content = """
rules:
  email:
    - message: "no type"
"""
        temp_path = self._write(yaml_content)

        try:
            with pytest.raises(ValueError) as exc_info:
                RuleConfigLoader(temp_path).load_rules()
            assert "missing 'type'" in str(exc_info.value)
        finally:
            Path(temp_path).unlink()

    def test_load_rules_unknown_type(self):
        temp_path = self._write("rules:\n  email:\n    - type: custom_sql\n")

        try:
            with pytest.raises(ValueError, match="Unknown rule type"):
                RuleConfigLoader(temp_path).load_rules()
        finally:
            Path(temp_path).unlink()

    def test_load_rules_bad_field_validation(self):
        temp_path = self._write(
            "rules:\n"
            "  code:\n"
            "    - type: field_validation\n"
            "      pattern: \"[oops\"\n"
            "  count:\n"
            "    - type: field_validation\n"
            "      data_type: integer\n"
        )

        try:
            with pytest.raises(ValueError, match="Invalid rule 'code_field_validation_0'"):
                RuleConfigLoader(temp_path).load_rules()
        finally:
            Path(temp_path).unlink()

    def test_shipped_rule_file_loads(self):
        rules = RuleConfigLoader(Path(__file__).parents[2] / "config" / "business_rules.yaml").load_rules()
        assert {r.rule_type for r in rules} >= {"unique", "range_check", "cross_field"}


@pytest.mark.unit
class TestRuleConfigBuilder:
    """Tests for RuleConfigBuilder"""

    def test_builder_fluent_interface(self):
        dataset_id = uuid4()
        rules = RuleConfigBuilder(dataset_id) \
            .add_unique("email") \
            .add_range_check("age", min_value=0, max_value=150) \
            .add_cross_field("end > start", rule_name="ordered") \
            .build()

        assert len(rules) == 3
        assert [r.rule_name for r in rules] == ["email_unique", "age_range", "ordered"]
        assert all(r.dataset_id == dataset_id for r in rules)

    def test_non_cross_field_rule_requires_field_name(self):
        with pytest.raises(ValueError):
            BusinessRule(rule_name="r", rule_type="unique", error_message="m")

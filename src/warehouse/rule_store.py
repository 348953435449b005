"""
Business rule storage.
"""

import json
from typing import List
from uuid import UUID

from psycopg import Connection

from src.core.models.business_rule import BusinessRule, RuleConfig
from src.core.models.record import utc_now
from src.observability.logger import get_logger

from .connection import DatabaseConnectionPool

logger = get_logger(__name__)

_RULE_COLUMNS = """
    id, dataset_id, rule_name, rule_type, rule_config, error_message,
    is_active, priority, severity, created_by, created_at, updated_at
"""


class BusinessRuleStore:
    """CRUD for per-dataset business rules."""

    def __init__(self, pool: DatabaseConnectionPool):
        self.pool = pool

    def get_active_rules(self, dataset_id: UUID, conn: Connection | None = None) -> List[BusinessRule]:
        """
        Active rules of a dataset, lowest priority value first.

        Args:
            dataset_id: Dataset ID
            conn: Connection of an open transaction, if any
        """
        with self.pool.get_cursor(conn) as cur:
            cur.execute(
                f"""
                SELECT {_RULE_COLUMNS}
                FROM dataset_business_rules
                WHERE dataset_id = %s AND is_active
                ORDER BY priority ASC, created_at ASC
                """,
                (dataset_id,),
            )
            rows = cur.fetchall()
        return [self._row_to_rule(row) for row in rows]

    def list_rules(self, dataset_id: UUID) -> List[BusinessRule]:
        rows = self.pool.execute_query(
            f"""
            SELECT {_RULE_COLUMNS}
            FROM dataset_business_rules
            WHERE dataset_id = %s
            ORDER BY priority ASC, created_at ASC
            """,
            (dataset_id,),
        )
        return [self._row_to_rule(row) for row in rows]

    def create_rule(self, rule: BusinessRule) -> BusinessRule:
        """
        Store a new rule.

        Raises:
            ValueError: If the rule has no dataset_id
        """
        if rule.dataset_id is None:
            raise ValueError(f"Rule '{rule.rule_name}' has no dataset_id")

        self.pool.execute_command(
            f"""
            INSERT INTO dataset_business_rules ({_RULE_COLUMNS})
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
            """,
            (
                rule.id,
                rule.dataset_id,
                rule.rule_name,
                rule.rule_type,
                json.dumps(rule.rule_config.model_dump(exclude_none=True)),
                rule.error_message,
                rule.is_active,
                rule.priority,
                rule.severity,
                rule.created_by,
                rule.created_at,
                rule.updated_at,
            ),
        )
        logger.info(f"Created {rule.rule_type} rule '{rule.rule_name}' for dataset {rule.dataset_id}")
        return rule

    def update_rule(self, rule: BusinessRule) -> bool:
        """Overwrite a stored rule. Returns False if it does not exist."""
        updated = self.pool.execute_command(
            """
            UPDATE dataset_business_rules
            SET rule_name = %s, rule_type = %s, rule_config = %s, error_message = %s,
                is_active = %s, priority = %s, severity = %s, updated_at = %s
            WHERE id = %s
            """,
            (
                rule.rule_name,
                rule.rule_type,
                json.dumps(rule.rule_config.model_dump(exclude_none=True)),
                rule.error_message,
                rule.is_active,
                rule.priority,
                rule.severity,
                utc_now(),
                rule.id,
            ),
        )
        return updated > 0

    def delete_rule(self, rule_id: UUID) -> bool:
        deleted = self.pool.execute_command("DELETE FROM dataset_business_rules WHERE id = %s", (rule_id,))
        return deleted > 0

    @staticmethod
    def _row_to_rule(row: dict) -> BusinessRule:
        data = dict(row)
        data["rule_config"] = RuleConfig(**(data["rule_config"] or {}))
        return BusinessRule(**data)

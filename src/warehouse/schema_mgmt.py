"""
Schema storage for datasets.

A dataset has at most one active schema, stored as a dataset_schemas row
plus one schema_fields row per field.
"""

import json
from uuid import UUID

from psycopg import Connection

from src.core.models.record import utc_now
from src.core.models.schema import DatasetSchema, FieldConstraints, SchemaField
from src.observability.logger import get_logger

from .connection import DatabaseConnectionPool

logger = get_logger(__name__)


class SchemaStore:
    """
    Reads and replaces dataset schemas.

    Handles:
    - Looking up the active schema of a dataset
    - Saving a schema (replacing any previous one and its fields)
    - Deleting a schema
    """

    def __init__(self, pool: DatabaseConnectionPool):
        """
        Initialize schema store.

        Args:
            pool: Database connection pool
        """
        self.pool = pool

    def get_schema(self, dataset_id: UUID, conn: Connection | None = None) -> DatasetSchema | None:
        """
        Get the active schema of a dataset.

        Args:
            dataset_id: Dataset ID
            conn: Connection of an open transaction, if any

        Returns:
            DatasetSchema with fields in position order, or None
        """
        with self.pool.get_cursor(conn) as cur:
            cur.execute(
                """
                SELECT id, dataset_id, name, description, created_at, updated_at
                FROM dataset_schemas
                WHERE dataset_id = %s
                """,
                (dataset_id,),
            )
            schema_row = cur.fetchone()
            if schema_row is None:
                return None

            cur.execute(
                """
                SELECT name, display_name, data_type, is_required, is_unique,
                       default_value, position, validation
                FROM schema_fields
                WHERE schema_id = %s
                ORDER BY position
                """,
                (schema_row["id"],),
            )
            field_rows = cur.fetchall()

        return DatasetSchema(
            **schema_row,
            fields=[self._row_to_field(row) for row in field_rows],
        )

    def save_schema(self, schema: DatasetSchema) -> DatasetSchema:
        """
        Store ``schema`` as the dataset's active schema.

        Any previous schema of the dataset is replaced in the same
        transaction.

        Returns:
            The stored schema with refreshed timestamps
        """
        now = utc_now()
        with self.pool.transaction() as conn:
            with conn.cursor() as cur:
                cur.execute("DELETE FROM dataset_schemas WHERE dataset_id = %s", (schema.dataset_id,))
                cur.execute(
                    """
                    INSERT INTO dataset_schemas (id, dataset_id, name, description, created_at, updated_at)
                    VALUES (%s, %s, %s, %s, %s, %s)
                    """,
                    (schema.id, schema.dataset_id, schema.name, schema.description, schema.created_at, now),
                )
                cur.executemany(
                    """
                    INSERT INTO schema_fields (
                        schema_id, name, display_name, data_type, is_required,
                        is_unique, default_value, position, validation
                    ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
                    """,
                    [self._field_params(schema.id, field) for field in schema.fields],
                )

        logger.info(f"Saved schema '{schema.name}' with {len(schema.fields)} fields for dataset {schema.dataset_id}")
        return schema.model_copy(update={"updated_at": now})

    def delete_schema(self, dataset_id: UUID) -> bool:
        deleted = self.pool.execute_command("DELETE FROM dataset_schemas WHERE dataset_id = %s", (dataset_id,))
        return deleted > 0

    @staticmethod
    def _field_params(schema_id: UUID, field: SchemaField) -> tuple:
        return (
            schema_id,
            field.name,
            field.display_name,
            field.data_type,
            field.is_required,
            field.is_unique,
            field.default_value,
            field.position,
            json.dumps(field.validation.model_dump(exclude_none=True)),
        )

    @staticmethod
    def _row_to_field(row: dict) -> SchemaField:
        return SchemaField(
            name=row["name"],
            display_name=row["display_name"],
            data_type=row["data_type"],
            is_required=row["is_required"],
            is_unique=row["is_unique"],
            default_value=row["default_value"],
            position=row["position"],
            validation=FieldConstraints(**(row["validation"] or {})),
        )

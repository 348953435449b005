"""
Pytest configuration and fixtures for staged-append-pipeline tests

This module provides shared fixtures for unit, integration, and E2E tests.
Unit tests run against in-memory store fakes that honour the Postgres
store interfaces, including transaction rollback.
"""
import copy
import os
from contextlib import contextmanager
from types import SimpleNamespace
from typing import Generator, Iterator, List
from uuid import UUID, uuid4

import psycopg
import pytest
from psycopg.errors import SerializationFailure, UniqueViolation

from src.core.models import (
    BusinessRule,
    DataPreview,
    DatasetRow,
    DatasetSchema,
    SchemaField,
    StagingRow,
    Submission,
    SubmissionStatus,
)
from src.core.models.schema import FieldConstraints
from src.core.settings import PipelineSettings


# =======================
# PYTEST CONFIGURATION
# =======================

def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line(
        "markers", "unit: Unit tests that don't require external services"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests that require Docker containers"
    )
    config.addinivalue_line(
        "markers", "e2e: End-to-end tests that test the full pipeline"
    )
    config.addinivalue_line(
        "markers", "slow: Tests that take more than 5 seconds to run"
    )


# =======================
# IN-MEMORY STORES
# =======================

class InMemoryDatabase:
    """State shared by the fake stores."""

    def __init__(self):
        self.datasets: dict = {}
        self.schemas: dict = {}
        self.rules: dict = {}
        self.submissions: dict = {}
        self.staging: dict = {}
        self.dataset_rows: dict = {}

    def snapshot(self) -> dict:
        return copy.deepcopy(self.__dict__)

    def restore(self, state: dict) -> None:
        self.__dict__.update(state)


class FakePool:
    """
    Stand-in for DatabaseConnectionPool.

    ``transaction`` snapshots the database and restores it when the block
    raises. Setting ``serialization_failures`` makes that many commits fail
    with SerializationFailure.
    """

    def __init__(self, db: InMemoryDatabase):
        self.db = db
        self.isolation_levels: List = []
        self.serialization_failures = 0
        self.commits = 0

    @contextmanager
    def transaction(self, isolation_level=None) -> Iterator[object]:
        self.isolation_levels.append(isolation_level)
        state = self.db.snapshot()
        try:
            yield object()
            if self.serialization_failures:
                self.serialization_failures -= 1
                raise SerializationFailure("could not serialize access due to concurrent update")
        except BaseException:
            self.db.restore(state)
            raise
        self.commits += 1


class FakeSchemaStore:
    def __init__(self, db: InMemoryDatabase):
        self.db = db

    def get_schema(self, dataset_id: UUID, conn=None) -> DatasetSchema | None:
        return self.db.schemas.get(dataset_id)

    def save_schema(self, schema: DatasetSchema) -> DatasetSchema:
        self.db.schemas[schema.dataset_id] = schema
        return schema

    def delete_schema(self, dataset_id: UUID) -> bool:
        return self.db.schemas.pop(dataset_id, None) is not None


class FakeRuleStore:
    def __init__(self, db: InMemoryDatabase):
        self.db = db

    def get_active_rules(self, dataset_id: UUID, conn=None) -> List[BusinessRule]:
        rules = [r for r in self.db.rules.get(dataset_id, []) if r.is_active]
        return sorted(rules, key=lambda r: r.priority)

    def list_rules(self, dataset_id: UUID) -> List[BusinessRule]:
        return list(self.db.rules.get(dataset_id, []))

    def create_rule(self, rule: BusinessRule) -> BusinessRule:
        self.db.rules.setdefault(rule.dataset_id, []).append(rule)
        return rule


class FakeSubmissionStore:
    def __init__(self, db: InMemoryDatabase):
        self.db = db

    def create(self, conn, submission: Submission) -> Submission:
        self.db.submissions[submission.id] = submission
        return submission

    def get(self, submission_id: UUID, conn=None) -> Submission | None:
        return self.db.submissions.get(submission_id)

    def get_for_update(self, conn, submission_id: UUID) -> Submission | None:
        return self.db.submissions.get(submission_id)

    def list_pending(self) -> List[Submission]:
        pending = {SubmissionStatus.PENDING, SubmissionStatus.UNDER_REVIEW}
        return sorted(
            (s for s in self.db.submissions.values() if s.status in pending),
            key=lambda s: s.submitted_at,
        )

    def list_by_dataset(self, dataset_id: UUID) -> List[Submission]:
        matching = [s for s in self.db.submissions.values() if s.dataset_id == dataset_id]
        return sorted(matching, key=lambda s: s.submitted_at, reverse=True)

    def update_review(self, conn, submission_id, status, reviewed_by, admin_notes, reviewed_at) -> None:
        self._update(submission_id, status=status, reviewed_by=reviewed_by,
                     admin_notes=admin_notes, reviewed_at=reviewed_at)

    def update_validation_summary(self, conn, submission_id, summary) -> None:
        self._update(submission_id, validation_results=summary)

    def mark_applied(self, conn, submission_id, applied_at) -> None:
        self._update(submission_id, status=SubmissionStatus.APPLIED, applied_at=applied_at)

    def _update(self, submission_id: UUID, **changes) -> None:
        self.db.submissions[submission_id] = self.db.submissions[submission_id].model_copy(update=changes)


class FakeStagingStore:
    def __init__(self, db: InMemoryDatabase):
        self.db = db

    def insert_rows(self, conn, rows) -> int:
        for row in rows:
            self.db.staging[row.id] = row
        return len(rows)

    def _for_submission(self, submission_id: UUID) -> List[StagingRow]:
        rows = [r for r in self.db.staging.values() if r.submission_id == submission_id]
        return sorted(rows, key=lambda r: r.row_index)

    def get_rows(self, submission_id: UUID, limit: int, offset: int = 0) -> List[StagingRow]:
        return self._for_submission(submission_id)[offset:offset + limit]

    def count_rows(self, submission_id: UUID) -> int:
        return len(self._for_submission(submission_id))

    def get_all(self, conn, submission_id: UUID) -> List[StagingRow]:
        return self._for_submission(submission_id)

    def get_row(self, conn, staging_row_id: UUID) -> StagingRow | None:
        return self.db.staging.get(staging_row_id)

    def get_promotable_rows(self, conn, submission_id: UUID, statuses=("valid",)) -> List[StagingRow]:
        return [r for r in self._for_submission(submission_id) if r.validation_status in statuses]

    def update_row(self, conn, staging_row_id, data, validation_status, validation_errors) -> None:
        self.db.staging[staging_row_id] = self.db.staging[staging_row_id].model_copy(
            update={
                "data": data,
                "validation_status": validation_status,
                "validation_errors": list(validation_errors),
            }
        )


class FakeDatasetRowStore:
    def __init__(self, db: InMemoryDatabase):
        self.db = db
        self.locked: List[UUID] = []

    def create_dataset(self, name: str, description: str | None = None) -> UUID:
        dataset_id = uuid4()
        self.db.datasets[dataset_id] = {"name": name, "description": description, "row_count": 0}
        self.db.dataset_rows[dataset_id] = {}
        return dataset_id

    def get_row_count(self, dataset_id: UUID, conn=None) -> int:
        return self.db.datasets[dataset_id]["row_count"]

    def lock_dataset(self, conn, dataset_id: UUID) -> None:
        self.locked.append(dataset_id)

    def get_max_row_index(self, conn, dataset_id: UUID) -> int | None:
        rows = self.db.dataset_rows.get(dataset_id, {})
        return max(rows) if rows else None

    def insert_rows(self, conn, dataset_id: UUID, rows, created_by=None) -> int:
        stored = self.db.dataset_rows.setdefault(dataset_id, {})
        for row_index, data in rows:
            if row_index in stored:
                raise UniqueViolation(f"duplicate row_index {row_index} for dataset {dataset_id}")
            stored[row_index] = DatasetRow(
                dataset_id=dataset_id, row_index=row_index, data=data, created_by=created_by
            )
        return len(rows)

    def update_row_count(self, conn, dataset_id: UUID) -> int:
        count = len(self.db.dataset_rows.get(dataset_id, {}))
        self.db.datasets.setdefault(dataset_id, {"name": "", "description": None})["row_count"] = count
        return count

    def query_rows(self, dataset_id: UUID, search=None, page: int = 1, page_size: int = 50) -> DataPreview:
        rows = [self.db.dataset_rows[dataset_id][i] for i in sorted(self.db.dataset_rows.get(dataset_id, {}))]
        if search:
            rows = [r for r in rows if search.lower() in str(r.data).lower()]
        start = (page - 1) * page_size
        return DataPreview(
            rows=rows[start:start + page_size],
            total_rows=len(rows),
            page=page,
            page_size=page_size,
            total_pages=-(-len(rows) // page_size),
        )


@pytest.fixture
def memory_db() -> InMemoryDatabase:
    return InMemoryDatabase()


@pytest.fixture
def fake_pool(memory_db) -> FakePool:
    return FakePool(memory_db)


@pytest.fixture
def stores(memory_db) -> SimpleNamespace:
    """All fake stores over one in-memory database."""
    return SimpleNamespace(
        schemas=FakeSchemaStore(memory_db),
        rules=FakeRuleStore(memory_db),
        submissions=FakeSubmissionStore(memory_db),
        staging=FakeStagingStore(memory_db),
        rows=FakeDatasetRowStore(memory_db),
    )


# =======================
# DOMAIN FIXTURES
# =======================

@pytest.fixture
def settings() -> PipelineSettings:
    return PipelineSettings()


@pytest.fixture
def contacts_schema() -> DatasetSchema:
    """
    Schema used across the validation tests:
    name (required string), email (required email), age (number 0..150)
    """
    return DatasetSchema(
        dataset_id=uuid4(),
        name="contacts_schema",
        fields=[
            SchemaField(name="name", display_name="Name", data_type="string", is_required=True, position=0),
            SchemaField(name="email", display_name="Email", data_type="email", is_required=True, position=1),
            SchemaField(
                name="age",
                display_name="Age",
                data_type="number",
                position=2,
                validation=FieldConstraints(min_value=0, max_value=150),
            ),
        ],
    )


@pytest.fixture
def contacts_csv(tmp_path):
    """Write a CSV file under tmp_path and return its path."""
    def _write(text: str, name: str = "upload.csv") -> str:
        path = tmp_path / name
        path.write_text(text, encoding="utf-8")
        return str(path)

    return _write


# =======================
# DATABASE FIXTURES (Testcontainers)
# =======================

def start_postgres_container():
    """Start the test PostgreSQL container, skipping when Docker is unavailable."""
    from testcontainers.postgres import PostgresContainer

    try:
        container = PostgresContainer(
            image="postgres:16.2-alpine",
            username="test_pipeline",
            password="test_password",
            dbname="test_datawarehouse",
        )
        container.start()
    except Exception as e:
        pytest.skip(f"Docker is not available: {e}")
    return container


@pytest.fixture(scope="session")
def postgres_container():
    """
    Start PostgreSQL container for integration tests

    Skips the requesting tests when Docker is not available.

    Yields:
        PostgresContainer instance with initialized database
    """
    container = start_postgres_container()

    try:
        init_sql_path = os.path.join(
            os.path.dirname(os.path.dirname(__file__)),
            "docker",
            "init-db.sql"
        )
        with open(init_sql_path, "r") as f:
            init_sql = f.read()

        with psycopg.connect(**_conn_params(container)) as conn:
            with conn.cursor() as cur:
                cur.execute(init_sql)
            conn.commit()

        yield container
    finally:
        container.stop()


def _conn_params(container) -> dict:
    return {
        "host": container.get_container_host_ip(),
        "port": int(container.get_exposed_port(5432)),
        "dbname": "test_datawarehouse",
        "user": "test_pipeline",
        "password": "test_password",
    }


@pytest.fixture(scope="function")
def db_pool(postgres_container) -> Generator:
    """Open DatabaseConnectionPool on the test container."""
    from src.warehouse.connection import DatabaseConnectionPool

    params = _conn_params(postgres_container)
    pool = DatabaseConnectionPool(
        host=params["host"],
        port=params["port"],
        database=params["dbname"],
        user=params["user"],
        password=params["password"],
        min_size=1,
        max_size=4,
    )
    pool.open()
    yield pool
    pool.close()


@pytest.fixture(scope="function")
def clean_db(db_pool):
    """
    Provide a clean database by truncating all tables before each test

    Yields:
        DatabaseConnectionPool on the emptied database
    """
    db_pool.execute_command("TRUNCATE TABLE datasets CASCADE")
    yield db_pool


# =======================
# CONFIGURATION FIXTURES
# =======================

@pytest.fixture(scope="session")
def test_env_vars():
    """
    Set test environment variables

    This fixture loads config/test.env when it exists
    """
    from dotenv import load_dotenv

    env_path = os.path.join(
        os.path.dirname(os.path.dirname(__file__)),
        "config",
        "test.env"
    )

    if os.path.exists(env_path):
        load_dotenv(env_path, override=True)

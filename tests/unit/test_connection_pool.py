"""
Unit tests for database connection pool

Tests the PostgreSQL connection pool and its transaction scopes using
testcontainers.
"""
import pytest
from psycopg import IsolationLevel

from src.warehouse.connection import DatabaseConfig, DatabaseConnectionPool


def pool_kwargs(container) -> dict:
    return {
        "host": container.get_container_host_ip(),
        "port": int(container.get_exposed_port(5432)),
        "database": "test_datawarehouse",
        "user": "test_pipeline",
        "password": "test_password",
    }


@pytest.mark.unit
def test_password_required(monkeypatch):
    """Test that a missing password is rejected before connecting"""
    monkeypatch.delenv("DB_PASSWORD", raising=False)

    with pytest.raises(ValueError, match="password"):
        DatabaseConnectionPool(host="localhost")


@pytest.mark.unit
def test_config_from_env(monkeypatch):
    monkeypatch.delenv("DB_USER", raising=False)
    monkeypatch.setenv("DB_HOST", "db.internal")
    monkeypatch.setenv("DB_PORT", "6543")
    monkeypatch.setenv("DB_PASSWORD", "from-env")

    config = DatabaseConfig.from_env(database="contacts", user=None)

    assert config.host == "db.internal"
    assert config.port == 6543
    assert config.database == "contacts"
    assert config.user == "pipeline"
    assert config.password == "from-env"
    assert config.describe() == "pipeline@db.internal:6543/contacts"


@pytest.mark.unit
def test_conninfo_quotes_password():
    config = DatabaseConfig(password="p@ss word")

    conninfo = config.conninfo()

    assert "password='p@ss word'" in conninfo
    assert "dbname=datasets" in conninfo


@pytest.mark.unit
def test_get_connection_requires_open_pool():
    pool = DatabaseConnectionPool(password="secret")

    assert pool.is_open is False
    with pytest.raises(RuntimeError):
        with pool.get_connection():
            pass


@pytest.mark.unit
def test_container_skips_when_docker_client_cannot_be_built(monkeypatch):
    """Test that a failing container constructor skips instead of erroring"""
    import testcontainers.postgres
    from conftest import start_postgres_container

    def no_docker(*args, **kwargs):
        raise ConnectionError("Error while fetching server API version")

    monkeypatch.setattr(testcontainers.postgres, "PostgresContainer", no_docker)

    with pytest.raises(pytest.skip.Exception, match="Docker is not available"):
        start_postgres_container()


@pytest.mark.integration
def test_connection_pool_initialization(postgres_container):
    """Test that connection pool initializes correctly"""
    pool = DatabaseConnectionPool(min_size=2, max_size=5, **pool_kwargs(postgres_container))

    pool.open()

    assert pool.is_open
    assert pool._pool.min_size == 2
    assert pool._pool.max_size == 5

    pool.close()
    assert pool.is_open is False


@pytest.mark.integration
def test_rows_are_dicts(db_pool):
    """Test that cursors return dictionary rows"""
    with db_pool.get_cursor() as cur:
        cur.execute("SELECT 1 AS test")
        assert cur.fetchone()["test"] == 1

    assert db_pool.execute_query("SELECT 42 AS answer") == [{"answer": 42}]


@pytest.mark.integration
def test_execute_command(clean_db):
    """Test executing INSERT commands"""
    rowcount = clean_db.execute_command(
        "INSERT INTO datasets (name) VALUES (%s)",
        ("contacts",),
    )

    assert rowcount == 1
    result = clean_db.execute_query("SELECT name, row_count FROM datasets")
    assert result == [{"name": "contacts", "row_count": 0}]


@pytest.mark.integration
def test_transaction_commits(clean_db):
    with clean_db.transaction() as conn:
        with clean_db.get_cursor(conn) as cur:
            cur.execute("INSERT INTO datasets (name) VALUES ('a')")
            cur.execute("INSERT INTO datasets (name) VALUES ('b')")

    names = [r["name"] for r in clean_db.execute_query("SELECT name FROM datasets ORDER BY name")]
    assert names == ["a", "b"]


@pytest.mark.integration
def test_transaction_rolls_back_on_error(clean_db):
    with pytest.raises(RuntimeError):
        with clean_db.transaction() as conn:
            with clean_db.get_cursor(conn) as cur:
                cur.execute("INSERT INTO datasets (name) VALUES ('a')")
            raise RuntimeError("abort")

    assert clean_db.execute_query("SELECT COUNT(*) AS n FROM datasets")[0]["n"] == 0


@pytest.mark.integration
def test_transaction_isolation_level(clean_db):
    with clean_db.transaction(IsolationLevel.SERIALIZABLE) as conn:
        with clean_db.get_cursor(conn) as cur:
            cur.execute("SHOW transaction_isolation")
            assert cur.fetchone()["transaction_isolation"] == "serializable"

    with clean_db.transaction() as conn:
        with clean_db.get_cursor(conn) as cur:
            cur.execute("SHOW transaction_isolation")
            assert cur.fetchone()["transaction_isolation"] == "read committed"


@pytest.mark.integration
def test_context_manager(postgres_container):
    """Test using pool as context manager"""
    with DatabaseConnectionPool(**pool_kwargs(postgres_container)) as pool:
        result = pool.execute_query("SELECT 1 as test")
        assert result[0]["test"] == 1

    # Pool should be closed after context
    with pytest.raises(RuntimeError):
        pool.execute_query("SELECT 1")


from __future__ import annotations

from sqlalchemy.engine import make_url

LOCAL_TEST_HOSTS = frozenset({"localhost", "127.0.0.1", "::1", "postgres", "boostify_postgres"})


def integration_db_refusal_reason(database_url: str) -> str | None:
    """Return why the URL must not be truncated by integration tests, or None if it is safe."""
    parsed = make_url(database_url)
    db_name = (parsed.database or "").strip()
    host = (parsed.host or "").strip().lower()

    if parsed.get_backend_name() != "postgresql":
        return f"backend '{parsed.get_backend_name()}' is not PostgreSQL"
    if "test" not in db_name.lower():
        return f"database '{db_name}' is not named as a test database"
    if host not in LOCAL_TEST_HOSTS:
        return f"host '{host}' is not a local test host"
    return None


def assert_safe_integration_db(database_url: str) -> None:
    reason = integration_db_refusal_reason(database_url)
    if reason is None:
        return
    raise RuntimeError(
        f"Refusing to run destructive integration tests: {reason}. "
        "Point DATABASE_URL at a dedicated local database such as 'boostify_test'."
    )

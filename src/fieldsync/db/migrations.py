"""
Database migrations for the sync tracker.

create_all() builds tables for fresh installs but never touches an existing
database. The helpers here evolve older databases in place. Each migration is
idempotent: columns are only added if absent, indexes use IF NOT EXISTS.

Called automatically from get_engine() after create_all().
"""
from sqlalchemy import inspect, text


def run_migrations(engine) -> None:
    """Apply all pending schema migrations.

    Safe to call multiple times.

    Args:
        engine: SQLAlchemy engine (SQLModel create_engine result).
    """
    with engine.connect() as conn:
        # SyncRecord: implicit agreement point used as the conflict baseline
        _add_column_if_missing(conn, "syncrecord", "last_agreed_at", "DATETIME")
        # SyncRecord: optimistic concurrency counter
        _add_column_if_missing(conn, "syncrecord", "version", "INTEGER NOT NULL DEFAULT 0")

        # History pagination is always tenant-scoped and newest-first
        conn.execute(text(
            "CREATE INDEX IF NOT EXISTS ix_synchistoryentry_tenant_created "
            "ON synchistoryentry (tenant_id, created_at)"
        ))

        conn.commit()


def _add_column_if_missing(conn, table: str, column: str, col_type: str) -> None:
    """Add a column to a table if it doesn't already exist.

    Args:
        conn: SQLAlchemy connection.
        table: Table name (lowercase, as SQLModel names it).
        column: Column name to add.
        col_type: SQL type string, e.g. "INTEGER", "DATETIME", "TEXT".
    """
    existing_columns = {col["name"] for col in inspect(conn).get_columns(table)}
    if column not in existing_columns:
        conn.execute(text(f"ALTER TABLE {table} ADD COLUMN {column} {col_type}"))

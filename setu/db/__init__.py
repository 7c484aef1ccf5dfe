"""
Setu - Database Layer
SQLite file store by default, PostgreSQL when DATABASE_URL is set.

SQL is written once with `?` placeholders; the PostgreSQL session rewrites
them to `%s`. Rows come back as plain dicts keyed by column name.
"""
import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path

from setu.config import DATABASE_URL, DB_PATH, DB_POOL_MIN, DB_POOL_MAX

logger = logging.getLogger(__name__)

POSTGRES = "postgres"
SQLITE = "sqlite"


class IntegrityViolation(Exception):
    """A unique / foreign-key constraint rejected a write."""

    def __init__(self, constraint: str, detail: str = ""):
        super().__init__(detail or constraint)
        self.constraint = constraint or ""
        self.detail = detail


def _sqlite_constraint(err: Exception) -> str:
    # "UNIQUE constraint failed: analytics_folders.slug"
    msg = str(err)
    return msg.split("failed:", 1)[1].strip() if "failed:" in msg else msg


def _pg_constraint(err: Exception) -> str:
    diag = getattr(err, "diag", None)
    return getattr(diag, "constraint_name", None) or str(err)


# ============================================================
# SESSION
# ============================================================
class Session:
    """One connection inside one transaction."""

    def __init__(self, conn, dialect: str):
        self.conn = conn
        self.dialect = dialect

    def _sql(self, sql: str) -> str:
        return sql.replace("?", "%s") if self.dialect == POSTGRES else sql

    def _run(self, sql: str, params=()):
        cur = self.conn.cursor()
        try:
            cur.execute(self._sql(sql), tuple(params))
        except sqlite3.IntegrityError as e:
            raise IntegrityViolation(_sqlite_constraint(e), str(e)) from e
        except Exception as e:
            if self.dialect == POSTGRES and getattr(e, "pgcode", "") and e.pgcode.startswith("23"):
                raise IntegrityViolation(_pg_constraint(e), str(e)) from e
            raise
        return cur

    def query(self, sql: str, params=()) -> list:
        cur = self._run(sql, params)
        if cur.description is None:
            return []
        cols = [d[0] for d in cur.description]
        return [dict(zip(cols, row)) for row in cur.fetchall()]

    def query_one(self, sql: str, params=()):
        rows = self.query(sql, params)
        return rows[0] if rows else None

    def scalar(self, sql: str, params=()):
        row = self.query_one(sql, params)
        return next(iter(row.values())) if row else None

    def execute(self, sql: str, params=()) -> int:
        return self._run(sql, params).rowcount

    def insert(self, table: str, values: dict) -> int:
        cols = ", ".join(values)
        marks = ", ".join("?" for _ in values)
        sql = f"INSERT INTO {table} ({cols}) VALUES ({marks})"
        if self.dialect == POSTGRES:
            cur = self._run(sql + " RETURNING id", values.values())
            return cur.fetchone()[0]
        return self._run(sql, values.values()).lastrowid


# ============================================================
# DATABASE
# ============================================================
class Database:
    """Connection factory. Pass `url` for PostgreSQL or `path` for SQLite."""

    def __init__(self, url: str = None, path=None):
        self.url = url
        self.path = Path(path) if path else None
        self._pool = None
        if url:
            self.dialect = POSTGRES
            self._pg_connect()
        else:
            self.dialect = SQLITE
            self.path = self.path or DB_PATH
            self.path.parent.mkdir(parents=True, exist_ok=True)
            logger.info("Using SQLite backend (%s)", self.path)

    def _pg_connect(self):
        import psycopg2  # noqa: F401
        from psycopg2.pool import SimpleConnectionPool
        self._pool = SimpleConnectionPool(DB_POOL_MIN, DB_POOL_MAX, self.url)
        logger.info("Connected to PostgreSQL")

    def _acquire(self):
        if self.dialect == POSTGRES:
            return self._pool.getconn()
        conn = sqlite3.connect(str(self.path), timeout=30)
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    def _release(self, conn):
        if self.dialect == POSTGRES:
            self._pool.putconn(conn)
        else:
            conn.close()

    @contextmanager
    def transaction(self):
        conn = self._acquire()
        try:
            yield Session(conn, self.dialect)
            conn.commit()
        except BaseException:
            conn.rollback()
            raise
        finally:
            self._release(conn)

    # One-shot shortcuts, each in its own transaction
    def query(self, sql: str, params=()) -> list:
        with self.transaction() as s:
            return s.query(sql, params)

    def query_one(self, sql: str, params=()):
        with self.transaction() as s:
            return s.query_one(sql, params)

    def scalar(self, sql: str, params=()):
        with self.transaction() as s:
            return s.scalar(sql, params)

    def execute(self, sql: str, params=()) -> int:
        with self.transaction() as s:
            return s.execute(sql, params)

    def insert(self, table: str, values: dict) -> int:
        with self.transaction() as s:
            return s.insert(table, values)

    def close(self):
        if self._pool:
            self._pool.closeall()
            self._pool = None


def open_database() -> Database:
    """Build the configured backend."""
    if DATABASE_URL:
        logger.info("Using PostgreSQL backend")
        return Database(url=DATABASE_URL)
    return Database(path=DB_PATH)


# ============================================================
# UTILITIES
# ============================================================
def _n(val, default=0):
    """Safe numeric conversion: None/empty -> default, strings/Decimal -> float."""
    if val is None or val == "":
        return float(default)
    try:
        return float(val)
    except (ValueError, TypeError):
        return float(default)


def _b(val) -> bool:
    """Driver-neutral boolean read (SQLite hands back 0/1)."""
    return bool(val) if val is not None else False

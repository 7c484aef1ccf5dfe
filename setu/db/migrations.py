"""
Setu - Schema Migrations
Ordered, versioned DDL. Applied once per database; `schema_migrations`
records what has run. Never edit a shipped version, append a new one.
"""
import logging
from datetime import datetime

from setu.db import POSTGRES

logger = logging.getLogger(__name__)

_TOKENS = {
    POSTGRES: {"pk": "SERIAL PRIMARY KEY"},
    "sqlite": {"pk": "INTEGER PRIMARY KEY AUTOINCREMENT"},
}

MIGRATIONS = [
    (1, "core ledger schema", [
        """CREATE TABLE IF NOT EXISTS users (
            id {pk},
            username TEXT NOT NULL UNIQUE,
            password_hash TEXT NOT NULL,
            role TEXT NOT NULL DEFAULT 'user',
            banned BOOLEAN NOT NULL DEFAULT FALSE,
            display_name TEXT,
            logged_in TEXT,
            created_at TEXT
        )""",
        """CREATE TABLE IF NOT EXISTS categories (
            id {pk},
            name TEXT NOT NULL,
            enabled BOOLEAN NOT NULL DEFAULT TRUE,
            created_at TEXT
        )""",
        "CREATE UNIQUE INDEX IF NOT EXISTS ux_categories_name ON categories (lower(name))",
        """CREATE TABLE IF NOT EXISTS donations (
            id {pk},
            donor_user_id INTEGER,
            donor_username TEXT,
            donor_name TEXT NOT NULL,
            amount NUMERIC NOT NULL,
            payment_method TEXT NOT NULL,
            category TEXT NOT NULL,
            cash_receiver_name TEXT,
            approved BOOLEAN NOT NULL DEFAULT FALSE,
            status TEXT NOT NULL DEFAULT 'pending',
            screenshot_locator TEXT,
            screenshot_url TEXT,
            receipt_code TEXT UNIQUE,
            approved_by TEXT,
            approved_by_id INTEGER,
            approved_by_role TEXT,
            approved_by_name TEXT,
            approved_at TEXT,
            created_at TEXT,
            updated_at TEXT
        )""",
        "CREATE INDEX IF NOT EXISTS idx_donations_cat ON donations (lower(category))",
        "CREATE INDEX IF NOT EXISTS idx_donations_approved ON donations (approved)",
        """CREATE TABLE IF NOT EXISTS expenses (
            id {pk},
            amount NUMERIC NOT NULL,
            category TEXT NOT NULL,
            description TEXT,
            paid_to TEXT,
            date TEXT,
            enabled BOOLEAN NOT NULL DEFAULT TRUE,
            approved BOOLEAN NOT NULL DEFAULT FALSE,
            status TEXT NOT NULL DEFAULT 'pending',
            submitted_by TEXT,
            submitted_by_id INTEGER,
            approved_by TEXT,
            approved_by_id INTEGER,
            approved_at TEXT,
            created_at TEXT,
            updated_at TEXT
        )""",
        "CREATE INDEX IF NOT EXISTS idx_expenses_cat ON expenses (lower(category))",
        "CREATE INDEX IF NOT EXISTS idx_expenses_approved_enabled ON expenses (approved, enabled)",
    ]),
    (2, "analytics folders and events", [
        """CREATE TABLE IF NOT EXISTS analytics_folders (
            id {pk},
            name TEXT NOT NULL,
            slug TEXT NOT NULL UNIQUE,
            enabled BOOLEAN NOT NULL DEFAULT TRUE,
            order_index INTEGER NOT NULL DEFAULT 0,
            created_at TEXT
        )""",
        """CREATE TABLE IF NOT EXISTS analytics_events (
            id {pk},
            folder_id INTEGER NOT NULL REFERENCES analytics_folders(id) ON DELETE CASCADE,
            name TEXT NOT NULL,
            enabled BOOLEAN NOT NULL DEFAULT TRUE,
            show_donation_detail BOOLEAN NOT NULL DEFAULT TRUE,
            show_expense_detail BOOLEAN NOT NULL DEFAULT TRUE,
            order_index INTEGER NOT NULL DEFAULT 0,
            created_at TEXT
        )""",
        "CREATE INDEX IF NOT EXISTS idx_analytics_folders_order ON analytics_folders (order_index)",
        "CREATE INDEX IF NOT EXISTS idx_analytics_events_order ON analytics_events (folder_id, order_index)",
    ]),
    (3, "notifications", [
        """CREATE TABLE IF NOT EXISTS notifications (
            id {pk},
            username TEXT NOT NULL,
            type TEXT NOT NULL,
            title TEXT NOT NULL,
            body TEXT,
            data TEXT,
            is_read BOOLEAN NOT NULL DEFAULT FALSE,
            created_at TEXT
        )""",
        "CREATE INDEX IF NOT EXISTS idx_notifications_user ON notifications (username)",
    ]),
    (4, "gallery", [
        """CREATE TABLE IF NOT EXISTS gallery_folders (
            id {pk},
            name TEXT NOT NULL,
            slug TEXT NOT NULL UNIQUE,
            enabled BOOLEAN NOT NULL DEFAULT TRUE,
            order_index INTEGER NOT NULL DEFAULT 0,
            cover_url TEXT,
            created_at TEXT
        )""",
        """CREATE TABLE IF NOT EXISTS gallery_images (
            id {pk},
            folder_id INTEGER REFERENCES gallery_folders(id) ON DELETE CASCADE,
            name TEXT NOT NULL,
            locator TEXT,
            url TEXT NOT NULL,
            size INTEGER,
            enabled BOOLEAN NOT NULL DEFAULT TRUE,
            order_index INTEGER NOT NULL DEFAULT 0,
            created_at TEXT
        )""",
        "CREATE INDEX IF NOT EXISTS idx_gallery_images_order ON gallery_images (folder_id, order_index)",
    ]),
    (5, "ebooks", [
        """CREATE TABLE IF NOT EXISTS ebook_folders (
            id {pk},
            name TEXT NOT NULL,
            slug TEXT NOT NULL UNIQUE,
            enabled BOOLEAN NOT NULL DEFAULT TRUE,
            order_index INTEGER NOT NULL DEFAULT 0,
            created_at TEXT
        )""",
        """CREATE TABLE IF NOT EXISTS ebook_files (
            id {pk},
            folder_id INTEGER REFERENCES ebook_folders(id) ON DELETE CASCADE,
            name TEXT NOT NULL,
            locator TEXT,
            url TEXT NOT NULL,
            size INTEGER,
            enabled BOOLEAN NOT NULL DEFAULT TRUE,
            order_index INTEGER NOT NULL DEFAULT 0,
            created_at TEXT
        )""",
        "CREATE INDEX IF NOT EXISTS idx_ebook_files_order ON ebook_files (folder_id, order_index)",
    ]),
]


def _ensure_ledger(db):
    with db.transaction() as s:
        s.execute("""CREATE TABLE IF NOT EXISTS schema_migrations (
            version INTEGER PRIMARY KEY,
            name TEXT NOT NULL,
            applied_at TEXT
        )""")


def applied_versions(db) -> set:
    _ensure_ledger(db)
    return {r["version"] for r in db.query("SELECT version FROM schema_migrations")}


def migrate(db) -> list:
    """Apply pending migrations in order. Returns the versions applied."""
    done = applied_versions(db)
    tokens = _TOKENS.get(db.dialect, _TOKENS["sqlite"])
    applied = []
    for version, name, statements in MIGRATIONS:
        if version in done:
            continue
        with db.transaction() as s:
            for stmt in statements:
                s.execute(stmt.format(**tokens))
            s.execute("INSERT INTO schema_migrations (version, name, applied_at) VALUES (?, ?, ?)",
                      (version, name, datetime.now().isoformat()))
        logger.info("Applied migration %s (%s)", version, name)
        applied.append(version)
    return applied

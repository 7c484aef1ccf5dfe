"""Setu - Categories. Flat, case-insensitively unique list of reporting categories."""
import logging
from datetime import datetime

from setu.db import IntegrityViolation, _b
from setu.errors import ConflictError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)


def category_out(r: dict) -> dict:
    return {"id": r["id"], "name": r["name"], "enabled": _b(r["enabled"]), "createdAt": r["created_at"]}


def list_categories(db, include_disabled: bool = True) -> list:
    if include_disabled:
        rows = db.query("SELECT * FROM categories ORDER BY lower(name) ASC")
    else:
        rows = db.query("SELECT * FROM categories WHERE enabled = ? ORDER BY lower(name) ASC", (True,))
    return [category_out(r) for r in rows]


def _check_free(session, name: str, exclude_id: int = None):
    taken = session.query_one("SELECT id FROM categories WHERE lower(name) = ? AND id <> ?",
                              (name.lower(), exclude_id or -1))
    if taken:
        raise ConflictError("Category already exists", "ux_categories_name")


def create_category(db, name: str, enabled: bool = True) -> dict:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Name is required")
    try:
        with db.transaction() as s:
            _check_free(s, name)
            cid = s.insert("categories", {"name": name, "enabled": bool(enabled),
                                          "created_at": datetime.now().isoformat()})
            row = s.query_one("SELECT * FROM categories WHERE id = ?", (cid,))
    except IntegrityViolation as e:
        raise ConflictError("Category already exists", e.constraint)
    logger.info("Created category #%s '%s'", cid, name)
    return category_out(row)


def update_category(db, category_id: int, name: str = None, enabled: bool = None) -> dict:
    name = name.strip() if isinstance(name, str) else None
    try:
        with db.transaction() as s:
            if not s.query_one("SELECT id FROM categories WHERE id = ?", (category_id,)):
                raise NotFoundError("Category not found")
            if name:
                _check_free(s, name, category_id)
                s.execute("UPDATE categories SET name = ? WHERE id = ?", (name, category_id))
            if enabled is not None:
                s.execute("UPDATE categories SET enabled = ? WHERE id = ?", (bool(enabled), category_id))
            row = s.query_one("SELECT * FROM categories WHERE id = ?", (category_id,))
    except IntegrityViolation as e:
        raise ConflictError("Category already exists", e.constraint)
    return category_out(row)


def delete_category(db, category_id: int) -> dict:
    if not db.execute("DELETE FROM categories WHERE id = ?", (category_id,)):
        raise NotFoundError("Category not found")
    return {"message": "Category deleted"}

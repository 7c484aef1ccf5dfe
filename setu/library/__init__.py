"""
Setu - Media Library
Ordered, slugged folders holding ordered uploaded items, plus a root shelf of
items outside any folder. The gallery and the e-book shelf are both built on it.
"""
import logging
from datetime import datetime
from pathlib import Path
from typing import NamedTuple

from setu.catalog import next_order_index, reorder_scope, unique_slug, _is_slug_violation
from setu.config import MAX_FILES_PER_UPLOAD
from setu.db import IntegrityViolation, _b
from setu.errors import ConflictError, NotFoundError, ValidationError
from setu.uploads import UploadKind, discard, store_all

logger = logging.getLogger(__name__)

FOLDER_ORDER = "order_index ASC, lower(name) ASC"
ITEM_ORDER = "order_index ASC, id ASC"


class Shelf(NamedTuple):
    folders: str
    items: str
    store_folder: str
    kind: UploadKind
    folder_label: str
    item_label: str
    covers: bool = False


def _scope(folder_id):
    if folder_id is None:
        return "folder_id IS NULL", ()
    return "folder_id = ?", (folder_id,)


def folder_out(shelf: Shelf, r: dict) -> dict:
    out = {"id": r["id"], "name": r["name"], "slug": r["slug"], "enabled": _b(r["enabled"]),
           "orderIndex": r["order_index"], "itemCount": int(r.get("item_count") or 0)}
    if shelf.covers:
        out["coverUrl"] = r["cover_url"]
    return out


def item_out(r: dict) -> dict:
    return {"id": r["id"], "folderId": r["folder_id"], "name": r["name"], "url": r["url"],
            "size": r["size"], "enabled": _b(r["enabled"]), "orderIndex": r["order_index"],
            "createdAt": r["created_at"]}


def _folder_select(shelf: Shelf, only_enabled: bool) -> str:
    counted = "i.enabled = ?" if only_enabled else "1 = 1"
    return (f"SELECT f.*, (SELECT COUNT(*) FROM {shelf.items} i WHERE i.folder_id = f.id AND {counted})"
            f" AS item_count FROM {shelf.folders} f")


def _load_folder(session, shelf: Shelf, folder_id: int) -> dict:
    row = session.query_one(f"SELECT * FROM {shelf.folders} WHERE id = ?", (folder_id,))
    if not row:
        raise NotFoundError(f"{shelf.folder_label} not found")
    return row


def _load_item(session, shelf: Shelf, item_id: int) -> dict:
    row = session.query_one(f"SELECT * FROM {shelf.items} WHERE id = ?", (item_id,))
    if not row:
        raise NotFoundError(f"{shelf.item_label} not found")
    return row


def _clean_name(name: str) -> str:
    name = (name or "").strip()
    if not name:
        raise ValidationError("name required")
    return name

# ============================================================
# FOLDERS
# ============================================================
def list_folders(db, shelf: Shelf, include_disabled: bool = False) -> list:
    sql = _folder_select(shelf, not include_disabled)
    if include_disabled:
        rows = db.query(f"{sql} ORDER BY {FOLDER_ORDER}")
    else:
        rows = db.query(f"{sql} WHERE f.enabled = ? ORDER BY {FOLDER_ORDER}", (True, True))
    return [folder_out(shelf, r) for r in rows]


def get_folder(db, shelf: Shelf, folder_id: int) -> dict:
    row = db.query_one(f"{_folder_select(shelf, False)} WHERE f.id = ?", (folder_id,))
    if not row:
        raise NotFoundError(f"{shelf.folder_label} not found")
    return folder_out(shelf, row)


def create_folder(db, shelf: Shelf, name: str, enabled: bool = True) -> dict:
    name = _clean_name(name)
    for attempt in range(2):
        try:
            with db.transaction() as s:
                fid = s.insert(shelf.folders, {
                    "name": name, "slug": unique_slug(s, shelf.folders, name),
                    "enabled": bool(enabled), "order_index": next_order_index(s, shelf.folders),
                    "created_at": datetime.now().isoformat(),
                })
        except IntegrityViolation as e:
            if attempt == 0 and _is_slug_violation(e):
                continue
            raise ConflictError(f"{shelf.folder_label} violates a uniqueness constraint", e.constraint)
        logger.info("Created %s #%s (%s)", shelf.folders, fid, name)
        return get_folder(db, shelf, fid)


def rename_folder(db, shelf: Shelf, folder_id: int, name: str) -> dict:
    name = _clean_name(name)
    try:
        with db.transaction() as s:
            _load_folder(s, shelf, folder_id)
            s.execute(f"UPDATE {shelf.folders} SET name = ?, slug = ? WHERE id = ?",
                      (name, unique_slug(s, shelf.folders, name, exclude_id=folder_id), folder_id))
    except IntegrityViolation as e:
        raise ConflictError(f"{shelf.folder_label} violates a uniqueness constraint", e.constraint)
    return get_folder(db, shelf, folder_id)


def set_folder_enabled(db, shelf: Shelf, folder_id: int, enabled: bool) -> dict:
    if not db.execute(f"UPDATE {shelf.folders} SET enabled = ? WHERE id = ?", (bool(enabled), folder_id)):
        raise NotFoundError(f"{shelf.folder_label} not found")
    return {"ok": True, "id": folder_id, "enabled": bool(enabled)}


def delete_folder(db, store, shelf: Shelf, folder_id: int) -> dict:
    """Drops the folder with its items; stored objects are discarded after commit."""
    with db.transaction() as s:
        _load_folder(s, shelf, folder_id)
        locators = [r["locator"] for r in
                    s.query(f"SELECT locator FROM {shelf.items} WHERE folder_id = ?", (folder_id,))]
        s.execute(f"DELETE FROM {shelf.items} WHERE folder_id = ?", (folder_id,))
        s.execute(f"DELETE FROM {shelf.folders} WHERE id = ?", (folder_id,))
    discard(store, locators, shelf.kind)
    logger.info("Deleted %s #%s (%d items)", shelf.folders, folder_id, len(locators))
    return {"ok": True}


def reorder_folders(db, shelf: Shelf, folder_id: int, direction: str = None, new_index: int = None) -> list:
    return reorder_scope(db, shelf.folders, folder_id, direction, new_index, order_by=FOLDER_ORDER)


def set_cover(db, shelf: Shelf, folder_id: int, item_id: int) -> dict:
    """Point the folder's cover at one of its own items."""
    with db.transaction() as s:
        _load_folder(s, shelf, folder_id)
        item = _load_item(s, shelf, item_id)
        if item["folder_id"] != folder_id:
            raise NotFoundError(f"{shelf.item_label} not found in folder")
        s.execute(f"UPDATE {shelf.folders} SET cover_url = ? WHERE id = ?", (item["url"], folder_id))
    return get_folder(db, shelf, folder_id)

# ============================================================
# ITEMS
# ============================================================
def list_items(db, shelf: Shelf, folder_id: int = None, include_disabled: bool = False) -> list:
    """Items of one folder, or of the root shelf when folder_id is None.

    A disabled folder is reported as missing unless disabled content was asked for.
    """
    with db.transaction() as s:
        if folder_id is not None:
            folder = _load_folder(s, shelf, folder_id)
            if not include_disabled and not _b(folder["enabled"]):
                raise NotFoundError(f"{shelf.folder_label} not found")
        scope_sql, params = _scope(folder_id)
        sql = f"SELECT * FROM {shelf.items} WHERE {scope_sql}"
        params = list(params)
        if not include_disabled:
            sql += " AND enabled = ?"
            params.append(True)
        return [item_out(r) for r in s.query(f"{sql} ORDER BY {ITEM_ORDER}", params)]


def add_items(db, store, shelf: Shelf, folder_id: int, files: list) -> list:
    """Store each (filename, content) pair and append it to the scope's order.

    Nothing is kept on failure: a bad file rejects the whole batch before any
    write, and objects already stored are discarded if the insert fails.
    """
    if not files:
        raise ValidationError("No files uploaded")
    if len(files) > MAX_FILES_PER_UPLOAD:
        raise ValidationError(f"At most {MAX_FILES_PER_UPLOAD} files per upload")
    folder = None
    if folder_id is not None:
        with db.transaction() as s:
            folder = _load_folder(s, shelf, folder_id)

    stored = store_all(store, files, shelf.store_folder, shelf.kind)
    scope_sql, scope_params = _scope(folder_id)
    try:
        with db.transaction() as s:
            added = []
            for (filename, content), obj in zip(files, stored):
                iid = s.insert(shelf.items, {
                    "folder_id": folder_id, "name": Path(filename).stem or filename,
                    "locator": obj.locator, "url": obj.url, "size": len(content), "enabled": True,
                    "order_index": next_order_index(s, shelf.items, scope_sql, scope_params),
                    "created_at": datetime.now().isoformat(),
                })
                added.append(item_out(_load_item(s, shelf, iid)))
            if shelf.covers and folder is not None and not folder["cover_url"]:
                s.execute(f"UPDATE {shelf.folders} SET cover_url = ? WHERE id = ?", (added[0]["url"], folder_id))
    except Exception:
        discard(store, [obj.locator for obj in stored], shelf.kind)
        raise
    logger.info("Added %d item(s) to %s (folder %s)", len(added), shelf.items, folder_id or "root")
    return added


def set_item_enabled(db, shelf: Shelf, item_id: int, enabled: bool) -> dict:
    if not db.execute(f"UPDATE {shelf.items} SET enabled = ? WHERE id = ?", (bool(enabled), item_id)):
        raise NotFoundError(f"{shelf.item_label} not found")
    return {"ok": True, "id": item_id, "enabled": bool(enabled)}


def rename_item(db, shelf: Shelf, item_id: int, name: str) -> dict:
    name = _clean_name(name)
    with db.transaction() as s:
        _load_item(s, shelf, item_id)
        s.execute(f"UPDATE {shelf.items} SET name = ? WHERE id = ?", (name, item_id))
        return item_out(_load_item(s, shelf, item_id))


def delete_item(db, store, shelf: Shelf, item_id: int) -> dict:
    with db.transaction() as s:
        row = _load_item(s, shelf, item_id)
        s.execute(f"DELETE FROM {shelf.items} WHERE id = ?", (item_id,))
        if shelf.covers and row["folder_id"] is not None:
            s.execute(f"UPDATE {shelf.folders} SET cover_url = NULL WHERE id = ? AND cover_url = ?",
                      (row["folder_id"], row["url"]))
    discard(store, [row["locator"]], shelf.kind)
    return {"ok": True}


def reorder_items(db, shelf: Shelf, item_id: int, direction: str = None, new_index: int = None) -> list:
    row = db.query_one(f"SELECT folder_id FROM {shelf.items} WHERE id = ?", (item_id,))
    if not row:
        return []
    scope_sql, scope_params = _scope(row["folder_id"])
    return reorder_scope(db, shelf.items, item_id, direction, new_index,
                         scope_sql=scope_sql, scope_params=scope_params, order_by=ITEM_ORDER)

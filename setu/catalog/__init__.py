"""
Setu - Analytics Catalog
Ordered folders holding ordered events. Events are the reporting buckets
donations and expenses are tagged into (by category name).

Order is kept as a dense 0..n-1 `order_index` per scope: every reorder
rewrites the whole scope. Concurrent reorders of one scope are last-write-wins.
"""
import logging
import re
import unicodedata
from datetime import datetime

from setu.config import SLUG_MAX_ATTEMPTS, PRIVILEGED_ROLES, GIFT_PAYMENT_METHOD
from setu.db import IntegrityViolation, _b, _n
from setu.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from setu.matching import category_key, match_clause

logger = logging.getLogger(__name__)

FOLDER_ORDER = "order_index ASC, lower(name) ASC"
EVENT_ORDER = "order_index ASC, id ASC"
EVENT_LIST_ORDER = "order_index ASC, lower(name) ASC"

DONATION_DETAIL = "donations"
EXPENSE_DETAIL = "expenses"

# ============================================================
# SLUGS
# ============================================================
_NON_WORD = re.compile(r"[^\w\s-]", re.ASCII)
_SPACES = re.compile(r"\s+")
_HYPHENS = re.compile(r"-+")


def slugify(name: str, fallback: str = "folder") -> str:
    """'Diwali Fund' -> 'diwali-fund'. Accents are folded, other symbols dropped."""
    s = unicodedata.normalize("NFKD", str(name or "").lower())
    s = _NON_WORD.sub("", s).strip()
    s = _HYPHENS.sub("-", _SPACES.sub("-", s)).strip("-")
    return s or fallback


def unique_slug(session, table: str, name: str, exclude_id: int = None) -> str:
    """First free slug among base, base-2, base-3... Rows with `exclude_id` don't count."""
    base = slugify(name)
    for attempt in range(1, SLUG_MAX_ATTEMPTS):
        candidate = base if attempt == 1 else f"{base}-{attempt}"
        taken = session.query_one(
            f"SELECT id FROM {table} WHERE slug = ? AND id <> ?", (candidate, exclude_id or -1))
        if not taken:
            return candidate
    raise ConflictError(f"No free slug for '{name}'", f"{table}_slug_key")


def _is_slug_violation(err: IntegrityViolation) -> bool:
    return "slug" in (err.constraint or "") or "slug" in (err.detail or "")

# ============================================================
# REORDER
# ============================================================
def reorder_ids(ids: list, target, direction: str = None, new_index: int = None):
    """New order for `ids` after moving `target`, or None when target isn't in the list.

    An explicit `new_index` wins: the target is pulled out and reinserted at
    new_index clamped to [0, len(ids)]. Otherwise direction 'up'/'down' swaps
    with the neighbour; anything else leaves the order as is.
    """
    order = list(ids)
    if target not in order:
        return None
    i = order.index(target)
    if new_index is not None:
        order.pop(i)
        order.insert(max(0, min(int(new_index), len(ids))), target)
    elif direction == "up" and i > 0:
        order[i - 1], order[i] = order[i], order[i - 1]
    elif direction == "down" and i < len(order) - 1:
        order[i + 1], order[i] = order[i], order[i + 1]
    return order


def reorder_scope(db, table: str, target_id: int, direction=None, new_index=None,
                  scope_sql: str = "1 = 1", scope_params=(), order_by: str = "order_index ASC, id ASC"):
    """Move one row inside a scope and re-index the whole scope. Returns the id order."""
    with db.transaction() as s:
        rows = s.query(f"SELECT id FROM {table} WHERE {scope_sql} ORDER BY {order_by}", scope_params)
        ids = [r["id"] for r in rows]
        order = reorder_ids(ids, target_id, direction, new_index)
        if order is None:
            logger.debug("Reorder of %s #%s skipped: not in scope", table, target_id)
            return ids
        for pos, rid in enumerate(order):
            s.execute(f"UPDATE {table} SET order_index = ? WHERE id = ?", (pos, rid))
    return order


def next_order_index(session, table: str, scope_sql: str = "1 = 1", scope_params=()) -> int:
    top = session.scalar(f"SELECT MAX(order_index) AS m FROM {table} WHERE {scope_sql}", scope_params)
    return 0 if top is None else int(top) + 1

# ============================================================
# SERIALIZATION
# ============================================================
def folder_out(r: dict) -> dict:
    return {"id": r["id"], "name": r["name"], "slug": r["slug"],
            "enabled": _b(r["enabled"]), "orderIndex": r["order_index"]}


def event_out(r: dict) -> dict:
    return {"id": r["id"], "folderId": r["folder_id"], "name": r["name"],
            "enabled": _b(r["enabled"]),
            "showDonationDetail": _b(r["show_donation_detail"]),
            "showExpenseDetail": _b(r["show_expense_detail"]),
            "orderIndex": r["order_index"]}

# ============================================================
# FOLDERS
# ============================================================
def list_folders(db, include_disabled: bool = True) -> list:
    where = "" if include_disabled else "WHERE enabled = ?"
    params = () if include_disabled else (True,)
    with db.transaction() as s:
        folders = [folder_out(r) for r in s.query(f"SELECT * FROM analytics_folders {where} ORDER BY {FOLDER_ORDER}", params)]
        events = [event_out(r) for r in s.query(f"SELECT * FROM analytics_events {where} ORDER BY {EVENT_LIST_ORDER}", params)]
    by_folder = {f["id"]: f for f in folders}
    for f in folders:
        f["events"] = []
    for e in events:
        if e["folderId"] in by_folder:
            by_folder[e["folderId"]]["events"].append(e)
    return folders


def get_folder(db, folder_id: int) -> dict:
    row = db.query_one("SELECT * FROM analytics_folders WHERE id = ?", (folder_id,))
    if not row:
        raise NotFoundError("Folder not found")
    return folder_out(row)


def resolve_folder(db, ref):
    """Folder by numeric id, slug, or case-insensitive name. None when nothing matches."""
    s = str(ref if ref is not None else "").strip()
    if not s:
        return None
    if s.isdigit():
        row = db.query_one("SELECT * FROM analytics_folders WHERE id = ?", (int(s),))
        if row:
            return folder_out(row)
    row = (db.query_one("SELECT * FROM analytics_folders WHERE slug = ?", (s.lower(),))
           or db.query_one("SELECT * FROM analytics_folders WHERE lower(name) = ? ORDER BY id LIMIT 1", (s.lower(),)))
    return folder_out(row) if row else None


def create_folder(db, name: str, enabled: bool = True) -> dict:
    name = (name or "").strip()
    if not name:
        raise ValidationError("name required")
    for attempt in range(2):
        try:
            with db.transaction() as s:
                slug = unique_slug(s, "analytics_folders", name)
                fid = s.insert("analytics_folders", {
                    "name": name, "slug": slug, "enabled": bool(enabled),
                    "order_index": next_order_index(s, "analytics_folders"),
                    "created_at": datetime.now().isoformat(),
                })
                row = s.query_one("SELECT * FROM analytics_folders WHERE id = ?", (fid,))
            logger.info("Created analytics folder #%s '%s' (%s)", fid, name, slug)
            return folder_out(row)
        except IntegrityViolation as e:
            if attempt == 0 and _is_slug_violation(e):
                logger.warning("Slug race on folder '%s'; retrying", name)
                continue
            raise ConflictError("Folder violates a uniqueness constraint", e.constraint)


def update_folder(db, folder_id: int, name: str = None, enabled: bool = None) -> dict:
    name = name.strip() if isinstance(name, str) else None
    if not name and enabled is None:
        raise ValidationError("No changes")
    try:
        with db.transaction() as s:
            if not s.query_one("SELECT id FROM analytics_folders WHERE id = ?", (folder_id,)):
                raise NotFoundError("Not found")
            if name:
                s.execute("UPDATE analytics_folders SET name = ?, slug = ? WHERE id = ?",
                          (name, unique_slug(s, "analytics_folders", name, exclude_id=folder_id), folder_id))
            if enabled is not None:
                s.execute("UPDATE analytics_folders SET enabled = ? WHERE id = ?", (bool(enabled), folder_id))
            row = s.query_one("SELECT * FROM analytics_folders WHERE id = ?", (folder_id,))
    except IntegrityViolation as e:
        raise ConflictError("Folder violates a uniqueness constraint", e.constraint)
    return folder_out(row)


def set_folder_enabled(db, folder_id: int, enabled: bool) -> dict:
    if not db.execute("UPDATE analytics_folders SET enabled = ? WHERE id = ?", (bool(enabled), folder_id)):
        raise NotFoundError("Not found")
    return {"ok": True, "id": folder_id, "enabled": bool(enabled)}


def delete_folder(db, folder_id: int) -> dict:
    with db.transaction() as s:
        # Explicit child delete so backends without FK enforcement still cascade
        s.execute("DELETE FROM analytics_events WHERE folder_id = ?", (folder_id,))
        if not s.execute("DELETE FROM analytics_folders WHERE id = ?", (folder_id,)):
            raise NotFoundError("Not found")
    logger.info("Deleted analytics folder #%s", folder_id)
    return {"ok": True}


def reorder_folders(db, folder_id: int, direction: str = None, new_index: int = None) -> list:
    return reorder_scope(db, "analytics_folders", folder_id, direction, new_index, order_by=FOLDER_ORDER)

# ============================================================
# EVENTS
# ============================================================
def _require_folder(db, folder_ref) -> dict:
    folder = resolve_folder(db, folder_ref)
    if not folder:
        raise NotFoundError("Folder not found")
    return folder


def list_events(db, folder_ref) -> list:
    folder = _require_folder(db, folder_ref)
    rows = db.query(f"SELECT * FROM analytics_events WHERE folder_id = ? ORDER BY {EVENT_LIST_ORDER}", (folder["id"],))
    return [event_out(r) for r in rows]


def get_event(db, event_id: int) -> dict:
    row = db.query_one("SELECT * FROM analytics_events WHERE id = ?", (event_id,))
    if not row:
        raise NotFoundError("Event not found")
    return event_out(row)


def resolve_event(db, ref):
    """Event by numeric id or case-insensitive name."""
    s = str(ref if ref is not None else "").strip()
    if not s:
        return None
    if s.isdigit():
        row = db.query_one("SELECT * FROM analytics_events WHERE id = ?", (int(s),))
        if row:
            return event_out(row)
    row = db.query_one("SELECT * FROM analytics_events WHERE lower(name) = ? ORDER BY id LIMIT 1", (s.lower(),))
    return event_out(row) if row else None


def create_event(db, folder_ref, name: str, enabled: bool = True,
                 show_donation_detail: bool = True, show_expense_detail: bool = True) -> dict:
    folder = _require_folder(db, folder_ref)
    name = (name or "").strip()
    if not name:
        raise ValidationError("name required")
    try:
        with db.transaction() as s:
            eid = s.insert("analytics_events", {
                "folder_id": folder["id"], "name": name, "enabled": bool(enabled),
                "show_donation_detail": bool(show_donation_detail),
                "show_expense_detail": bool(show_expense_detail),
                "order_index": next_order_index(s, "analytics_events", "folder_id = ?", (folder["id"],)),
                "created_at": datetime.now().isoformat(),
            })
            row = s.query_one("SELECT * FROM analytics_events WHERE id = ?", (eid,))
    except IntegrityViolation as e:
        raise ConflictError("Event violates a constraint", e.constraint)
    logger.info("Created event #%s '%s' in folder #%s", eid, name, folder["id"])
    return event_out(row)


_EVENT_FLAGS = ("enabled", "show_donation_detail", "show_expense_detail")


def update_event(db, event_id: int, name: str = None, **flags) -> dict:
    fields, vals = [], []
    name = name.strip() if isinstance(name, str) else None
    if name:
        fields.append("name = ?")
        vals.append(name)
    for column in _EVENT_FLAGS:
        if flags.get(column) is not None:
            fields.append(f"{column} = ?")
            vals.append(bool(flags[column]))
    if not fields:
        raise ValidationError("No changes")
    with db.transaction() as s:
        if not s.execute(f"UPDATE analytics_events SET {', '.join(fields)} WHERE id = ?", (*vals, event_id)):
            raise NotFoundError("Not found")
        row = s.query_one("SELECT * FROM analytics_events WHERE id = ?", (event_id,))
    return event_out(row)


def set_event_enabled(db, event_id: int, enabled: bool) -> dict:
    if not db.execute("UPDATE analytics_events SET enabled = ? WHERE id = ?", (bool(enabled), event_id)):
        raise NotFoundError("Not found")
    return {"ok": True, "id": event_id, "enabled": bool(enabled)}


def delete_event(db, event_id: int) -> dict:
    if not db.execute("DELETE FROM analytics_events WHERE id = ?", (event_id,)):
        raise NotFoundError("Not found")
    return {"ok": True}


def reorder_events(db, event_id: int, direction: str = None, new_index: int = None, folder_ref=None) -> list:
    """Reorder within a folder. Without `folder_ref`, the event's own folder is used."""
    if folder_ref is not None and str(folder_ref).strip():
        folder_id = _require_folder(db, folder_ref)["id"]
    else:
        row = db.query_one("SELECT folder_id FROM analytics_events WHERE id = ?", (event_id,))
        if not row:
            return []
        folder_id = row["folder_id"]
    return reorder_scope(db, "analytics_events", event_id, direction, new_index,
                         scope_sql="folder_id = ?", scope_params=(folder_id,), order_by=EVENT_ORDER)

# ============================================================
# PUBLIC VIEWS
# ============================================================
def public_events(db, q: str = "") -> list:
    """Enabled events inside enabled folders, optionally filtered by event/folder name."""
    sql = """SELECT e.*, f.name AS folder_name, f.slug AS folder_slug, f.order_index AS folder_order
             FROM analytics_events e JOIN analytics_folders f ON f.id = e.folder_id
             WHERE f.enabled = ? AND e.enabled = ?"""
    params = [True, True]
    q = (q or "").strip().lower()
    if q:
        sql += " AND (lower(e.name) LIKE ? OR lower(f.name) LIKE ?)"
        params += [f"%{q}%", f"%{q}%"]
    sql += " ORDER BY f.order_index ASC, e.order_index ASC, lower(e.name) ASC"
    out = []
    for r in db.query(sql, params):
        ev = event_out(r)
        ev["folder"] = {"id": r["folder_id"], "name": r["folder_name"],
                        "slug": r["folder_slug"], "orderIndex": r["folder_order"]}
        out.append(ev)
    return out


def can_view(event: dict, role: str, detail: str) -> bool:
    """Privileged roles see everything; others need the event enabled and the detail flag on."""
    if role in PRIVILEGED_ROLES:
        return True
    flag = event["showDonationDetail"] if detail == DONATION_DETAIL else event["showExpenseDetail"]
    return bool(event["enabled"]) and bool(flag)


def require_visible(db, ref, role: str, detail: str) -> dict:
    event = resolve_event(db, ref)
    if not event:
        raise NotFoundError("Event not found")
    if not can_view(event, role, detail):
        raise ForbiddenError("Hidden")
    return event


def event_donations(db, event: dict, gifts: bool = False, limit: int = 500, offset: int = 0) -> list:
    op = "=" if gifts else "<>"
    rows = db.query(
        f"""SELECT id, donor_name, amount, payment_method, receipt_code, created_at, category
            FROM donations
            WHERE approved = ? AND {match_clause()}
              AND lower(coalesce(payment_method, '')) {op} ?
            ORDER BY created_at DESC LIMIT ? OFFSET ?""",
        (True, category_key(event["name"]), GIFT_PAYMENT_METHOD, limit, offset))
    return [{"id": r["id"], "donorName": r["donor_name"], "amount": _n(r["amount"]),
             "paymentMethod": r["payment_method"], "receiptCode": r["receipt_code"],
             "createdAt": r["created_at"], "category": r["category"]} for r in rows]


def event_expenses(db, event: dict, limit: int = 500, offset: int = 0) -> list:
    rows = db.query(
        f"""SELECT id, amount, description, paid_to, date, created_at, category
            FROM expenses
            WHERE approved = ? AND enabled = ? AND {match_clause()}
            ORDER BY COALESCE(date, created_at) DESC LIMIT ? OFFSET ?""",
        (True, True, category_key(event["name"]), limit, offset))
    return [{"id": r["id"], "amount": _n(r["amount"]), "description": r["description"],
             "paidTo": r["paid_to"], "date": r["date"], "createdAt": r["created_at"],
             "category": r["category"]} for r in rows]

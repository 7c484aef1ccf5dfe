"""
Setu - Notifications
Per-username inbox written by ledger transitions (approvals, submissions).
"""
import json
import logging
from datetime import datetime

from setu.db import _b
from setu.errors import NotFoundError

logger = logging.getLogger(__name__)


def _out(r: dict) -> dict:
    return {"id": r["id"], "type": r["type"], "title": r["title"], "body": r["body"],
            "data": json.loads(r["data"]) if r["data"] else {},
            "read": _b(r["is_read"]), "createdAt": r["created_at"]}


def push(db, username: str, type: str, title: str, body: str = "", data: dict = None):
    if not username:
        return None
    nid = db.insert("notifications", {
        "username": username, "type": type, "title": title, "body": body,
        "data": json.dumps(data or {}, default=str), "is_read": False,
        "created_at": datetime.now().isoformat(),
    })
    logger.debug("Notification %s -> %s (%s)", nid, username, type)
    return nid


def list_for(db, username: str, unread_only: bool = False) -> list:
    sql = "SELECT * FROM notifications WHERE username = ?"
    params = [username]
    if unread_only:
        sql += " AND is_read = ?"
        params.append(False)
    return [_out(r) for r in db.query(sql + " ORDER BY id DESC", params)]


def mark_read(db, notification_id: int, username: str) -> dict:
    if not db.execute("UPDATE notifications SET is_read = ? WHERE id = ? AND username = ?",
                      (True, notification_id, username)):
        raise NotFoundError("Notification not found")
    return {"ok": True, "id": notification_id}

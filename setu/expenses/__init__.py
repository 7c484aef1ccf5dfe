"""
Setu - Expense Ledger
Same lifecycle as donations without receipt codes. `enabled` is independent
of approval: a disabled expense stays approved but drops out of public views.
"""
import logging
from datetime import datetime

from setu import notifications
from setu.auth import is_privileged
from setu.db import _b, _n
from setu.donations import STATUS_APPROVED, STATUS_PENDING, parse_amount
from setu.errors import NotFoundError, ValidationError
from setu.matching import category_key, match_clause

logger = logging.getLogger(__name__)

NEWEST_FIRST = "ORDER BY COALESCE(date, created_at) DESC, id DESC"


def expense_out(r: dict) -> dict:
    approved = _b(r["approved"])
    return {
        "id": r["id"], "amount": _n(r["amount"]), "category": r["category"],
        "description": r["description"] or "", "paidTo": r["paid_to"] or "", "date": r["date"],
        "enabled": _b(r["enabled"]), "approved": approved,
        "status": STATUS_APPROVED if approved else STATUS_PENDING,
        "submittedBy": r["submitted_by"], "submittedById": r["submitted_by_id"],
        "approvedBy": r["approved_by"], "approvedById": r["approved_by_id"], "approvedAt": r["approved_at"],
        "createdAt": r["created_at"], "updatedAt": r["updated_at"],
    }


def _load(session, expense_id: int) -> dict:
    row = session.query_one("SELECT * FROM expenses WHERE id = ?", (expense_id,))
    if not row:
        raise NotFoundError("Expense not found")
    return row

# ============================================================
# LISTING
# ============================================================
def list_expenses(db, user: dict, status: str = None, category: str = "",
                  include_disabled: bool = False, mine: bool = False) -> list:
    """Privileged callers filter by status (default all); everyone else sees approved+enabled,
    plus their own pending submissions when `mine` is set."""
    clauses, params = [], []
    if category and category.strip():
        clauses.append(match_clause())
        params.append(category_key(category))

    if is_privileged(user["role"]):
        status = (status or "all").lower()
        if status == STATUS_APPROVED:
            clauses.append("approved = ?")
            params.append(True)
        elif status == STATUS_PENDING:
            clauses.append("approved = ?")
            params.append(False)
        if not include_disabled:
            clauses.append("enabled = ?")
            params.append(True)
    else:
        visible = "(approved = ? AND enabled = ?)"
        params += [True, True]
        if mine and user.get("username"):
            visible = f"({visible} OR (submitted_by = ? AND approved = ?))"
            params += [user["username"], False]
        clauses.append(visible)

    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
    return [expense_out(r) for r in db.query(f"SELECT * FROM expenses {where} {NEWEST_FIRST}", params)]

# ============================================================
# CREATE
# ============================================================
def _new_row(user: dict, amount, category: str, description, paid_to, date, now: str) -> dict:
    category = (category or "").strip()
    if not category:
        raise ValidationError("category is required")
    return {
        "amount": parse_amount(amount), "category": category,
        "description": (description or "").strip(), "paid_to": (paid_to or "").strip(),
        "date": date or now, "enabled": True,
        "submitted_by": user.get("username"), "submitted_by_id": user.get("id"),
        "created_at": now, "updated_at": now,
    }


def submit_expense(db, user: dict, amount, category: str, description: str = None,
                   paid_to: str = None, date: str = None) -> dict:
    now = datetime.now().isoformat()
    row = _new_row(user, amount, category, description, paid_to, date, now)
    row.update(approved=False, status=STATUS_PENDING)
    with db.transaction() as s:
        expense = expense_out(_load(s, s.insert("expenses", row)))
    logger.info("Expense #%s submitted by %s", expense["id"], user.get("username"))
    notifications.push(db, expense["submittedBy"], "expenseSubmit", "Expense submitted",
                       f"{expense['category']} | {expense['amount']:g} (pending approval)",
                       {"id": expense["id"], "category": expense["category"],
                        "amount": expense["amount"], "approved": False})
    return expense


def create_expense(db, user: dict, amount, category: str, description: str = None, paid_to: str = None,
                   date: str = None, approve_now: bool = True, enabled: bool = True) -> dict:
    """Admin entry; approved immediately unless `approve_now` is false."""
    now = datetime.now().isoformat()
    row = _new_row(user, amount, category, description, paid_to, date, now)
    row.update(
        enabled=bool(enabled), approved=bool(approve_now),
        status=STATUS_APPROVED if approve_now else STATUS_PENDING,
        approved_by=user["username"] if approve_now else None,
        approved_by_id=user.get("id") if approve_now else None,
        approved_at=now if approve_now else None,
    )
    with db.transaction() as s:
        expense = expense_out(_load(s, s.insert("expenses", row)))
    logger.info("Expense #%s created by %s (approved=%s)", expense["id"], user["username"], expense["approved"])
    return expense

# ============================================================
# UPDATE / APPROVE / DELETE
# ============================================================
_TEXT_FIELDS = ("category", "description", "paid_to")


def update_expense(db, expense_id: int, amount=None, date: str = None, enabled: bool = None, **fields) -> dict:
    sets, vals = [], []
    if amount is not None:
        sets.append("amount = ?")
        vals.append(parse_amount(amount))
    for column in _TEXT_FIELDS:
        if isinstance(fields.get(column), str):
            sets.append(f"{column} = ?")
            vals.append(fields[column].strip())
    if date:
        sets.append("date = ?")
        vals.append(date)
    if enabled is not None:
        sets.append("enabled = ?")
        vals.append(bool(enabled))
    sets.append("updated_at = ?")
    vals.append(datetime.now().isoformat())
    with db.transaction() as s:
        _load(s, expense_id)
        s.execute(f"UPDATE expenses SET {', '.join(sets)} WHERE id = ?", (*vals, expense_id))
        return expense_out(_load(s, expense_id))


def set_expense_enabled(db, expense_id: int, enabled: bool) -> dict:
    with db.transaction() as s:
        _load(s, expense_id)
        s.execute("UPDATE expenses SET enabled = ?, updated_at = ? WHERE id = ?",
                  (bool(enabled), datetime.now().isoformat(), expense_id))
        return expense_out(_load(s, expense_id))


def approve_expense(db, expense_id: int, approver: dict, approve: bool = True) -> dict:
    """Approve, or set back to pending. Either way the acting admin is stamped."""
    now = datetime.now().isoformat()
    with db.transaction() as s:
        _load(s, expense_id)
        s.execute("""UPDATE expenses SET approved = ?, status = ?, approved_by = ?, approved_by_id = ?,
                     approved_at = ?, updated_at = ? WHERE id = ?""",
                  (bool(approve), STATUS_APPROVED if approve else STATUS_PENDING,
                   approver["username"], approver.get("id"), now, now, expense_id))
        expense = expense_out(_load(s, expense_id))
    logger.info("Expense #%s %s by %s", expense_id, "approved" if approve else "set to pending", approver["username"])
    notifications.push(db, expense["submittedBy"], "expenseApproval" if approve else "expensePending",
                       "Expense approved" if approve else "Expense set to pending",
                       f"{expense['category']} | {expense['amount']:g}",
                       {"id": expense_id, "category": expense["category"], "approved": bool(approve)})
    return expense


def delete_expense(db, expense_id: int) -> dict:
    with db.transaction() as s:
        expense = expense_out(_load(s, expense_id))
        s.execute("DELETE FROM expenses WHERE id = ?", (expense_id,))
    logger.info("Expense #%s deleted", expense_id)
    return expense

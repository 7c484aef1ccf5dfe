"""
Setu - Donation Ledger
Submission, listing, approval and admin edits of donations, plus the
receipt-code rules and role-based redaction applied to every response.

A donation points at its reporting event through `category` (see setu.matching).
"""
import logging
import re
import secrets
from datetime import datetime

from setu import notifications
from setu.auth import display_name_for, is_privileged, is_top_role
from setu.config import (
    RECEIPT_LETTERS, RECEIPT_DIGITS, RECEIPT_ALPHABET, RECEIPT_CODE_LENGTH,
    RECEIPT_CODE_MAX_TRIES, SENSITIVE_DONATION_KEYS,
)
from setu.db import IntegrityViolation, _b, _n
from setu.errors import ConflictError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

STATUS_APPROVED = "approved"
STATUS_PENDING = "pending"
SEARCH_LIMIT = 100
_INSERT_TRIES = 3

# ============================================================
# RECEIPT CODES
# ============================================================
_CODE_SHAPE = re.compile(r"^[A-Z0-9]{%d}$" % RECEIPT_CODE_LENGTH)


def generate_receipt_code() -> str:
    """One letter, one digit, the rest from the mixed alphabet, shuffled."""
    chars = [secrets.choice(RECEIPT_LETTERS), secrets.choice(RECEIPT_DIGITS)]
    chars += [secrets.choice(RECEIPT_ALPHABET) for _ in range(RECEIPT_CODE_LENGTH - 2)]
    for i in range(len(chars) - 1, 0, -1):
        j = secrets.randbelow(i + 1)
        chars[i], chars[j] = chars[j], chars[i]
    return "".join(chars)


def is_valid_receipt_code(code) -> bool:
    code = str(code or "")
    return (bool(_CODE_SHAPE.match(code))
            and any(c.isalpha() for c in code)
            and any(c.isdigit() for c in code))


def _code_taken(session, code: str, exclude_id: int = None) -> bool:
    return session.query_one("SELECT id FROM donations WHERE upper(receipt_code) = ? AND id <> ?",
                             (code.upper(), exclude_id or -1)) is not None


def unique_receipt_code(session, exclude_id: int = None) -> str:
    for _ in range(RECEIPT_CODE_MAX_TRIES):
        code = generate_receipt_code()
        if not _code_taken(session, code, exclude_id):
            return code
    raise ConflictError("Could not allocate a unique receipt code", "donations_receipt_code_key")

# ============================================================
# SERIALIZATION / REDACTION
# ============================================================
def donation_out(r: dict) -> dict:
    approved = _b(r["approved"])
    return {
        "id": r["id"], "donorUserId": r["donor_user_id"], "donorUsername": r["donor_username"],
        "donorName": r["donor_name"], "amount": _n(r["amount"]),
        "paymentMethod": r["payment_method"], "category": r["category"],
        "cashReceiverName": r["cash_receiver_name"],
        "approved": approved, "status": STATUS_APPROVED if approved else STATUS_PENDING,
        "screenshotPath": r["screenshot_locator"], "screenshotUrl": r["screenshot_url"],
        "receiptCode": r["receipt_code"],
        "approvedBy": r["approved_by"], "approvedById": r["approved_by_id"],
        "approvedByRole": r["approved_by_role"], "approvedByName": r["approved_by_name"],
        "approvedAt": r["approved_at"], "createdAt": r["created_at"], "updatedAt": r["updated_at"],
    }


def redact_donation(donation: dict, role: str) -> dict:
    """Approved donations lose screenshot and cash-receiver fields unless the caller is top tier."""
    out = dict(donation)
    if _b(out.get("approved")) and not is_top_role(role):
        for key in SENSITIVE_DONATION_KEYS:
            out.pop(key, None)
    return out


def _render(rows: list, role: str) -> list:
    return [redact_donation(donation_out(r), role) for r in rows]


def _load(session, donation_id: int) -> dict:
    row = session.query_one("SELECT * FROM donations WHERE id = ?", (donation_id,))
    if not row:
        raise NotFoundError("Donation not found")
    return row

# ============================================================
# SUBMIT
# ============================================================
def parse_amount(value) -> float:
    try:
        amount = float(value)
    except (TypeError, ValueError):
        raise ValidationError("amount must be a number")
    if amount != amount or amount < 0 or amount == float("inf"):
        raise ValidationError("amount must be a non-negative number")
    return amount


def submit_donation(db, user: dict, donor_name: str, amount, payment_method: str, category: str,
                    cash_receiver_name: str = None, screenshot=None) -> dict:
    """Record a pending donation. `screenshot` is a StoredObject from the upload relay, or None."""
    donor_name = (donor_name or "").strip()
    if not donor_name:
        raise ValidationError("donorName is required")
    payment_method = (payment_method or "").strip()
    category = (category or "").strip()
    if amount in (None, "") or not payment_method or not category:
        raise ValidationError("amount, paymentMethod, and category are required")
    amount = parse_amount(amount)

    now = datetime.now().isoformat()
    for attempt in range(_INSERT_TRIES):
        try:
            with db.transaction() as s:
                did = s.insert("donations", {
                    "donor_user_id": user.get("id"), "donor_username": user.get("username"),
                    "donor_name": donor_name, "amount": amount,
                    "payment_method": payment_method, "category": category,
                    "cash_receiver_name": (cash_receiver_name or "").strip() or None,
                    "approved": False, "status": STATUS_PENDING,
                    "screenshot_locator": screenshot.locator if screenshot else None,
                    "screenshot_url": screenshot.url if screenshot else None,
                    "receipt_code": unique_receipt_code(s),
                    "created_at": now, "updated_at": now,
                })
                row = _load(s, did)
            logger.info("Donation #%s submitted by %s (%s, %.2f)", did, user.get("username"), category, amount)
            return donation_out(row)
        except IntegrityViolation as e:
            if "receipt_code" not in (e.constraint + e.detail) or attempt == _INSERT_TRIES - 1:
                raise ConflictError("Donation violates a uniqueness constraint", e.constraint)
            logger.warning("Receipt code collision on insert; retrying")

# ============================================================
# LISTING
# ============================================================
_SEARCH_SQL = "(lower(donor_name) LIKE ? OR lower(coalesce(receipt_code, '')) LIKE ? OR lower(category) LIKE ?)"


def _search_params(q: str) -> tuple:
    pattern = f"%{q.strip().lower()}%"
    return (pattern, pattern, pattern)


def list_donations(db, user: dict, status: str = STATUS_APPROVED, q: str = "") -> list:
    """Own donations by status; privileged callers asking for `all` get everyone's."""
    status = (status or STATUS_APPROVED).lower()
    clauses, params = [], []
    if not (is_privileged(user["role"]) and status == "all"):
        clauses.append("donor_username = ?")
        params.append(user["username"])
        if status == STATUS_PENDING:
            clauses.append("approved = ?")
            params.append(False)
        elif status == STATUS_APPROVED:
            clauses.append("approved = ?")
            params.append(True)
    if q and q.strip():
        clauses.append(_SEARCH_SQL)
        params.extend(_search_params(q))
    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
    return _render(db.query(f"SELECT * FROM donations {where} ORDER BY id ASC", params), user["role"])


def all_donations(db, role: str, q: str = "") -> list:
    if q and q.strip():
        rows = db.query(f"SELECT * FROM donations WHERE {_SEARCH_SQL} ORDER BY id ASC", _search_params(q))
    else:
        rows = db.query("SELECT * FROM donations ORDER BY id ASC")
    return _render(rows, role)


def search_donations(db, user: dict, q: str) -> list:
    """Role-safe search: non-privileged callers see approved donations plus their own."""
    if not q or not q.strip():
        return []
    sql = f"SELECT * FROM donations WHERE {_SEARCH_SQL}"
    params = list(_search_params(q))
    if not is_privileged(user["role"]):
        sql += " AND (approved = ? OR donor_username = ?)"
        params += [True, user["username"]]
    sql += " ORDER BY created_at DESC, id DESC LIMIT ?"
    params.append(SEARCH_LIMIT)
    return _render(db.query(sql, params), user["role"])


def my_receipts(db, user: dict) -> list:
    rows = db.query("SELECT * FROM donations WHERE donor_username = ? AND approved = ? ORDER BY id ASC",
                    (user["username"], True))
    return _render(rows, user["role"])


def pending_donations(db, role: str) -> list:
    return _render(db.query("SELECT * FROM donations WHERE approved = ? ORDER BY id ASC", (False,)), role)

# ============================================================
# APPROVAL
# ============================================================
def approve_donation(db, donation_id: int, approver: dict) -> dict:
    """Approve and stamp the approver. Also the repair point for malformed receipt codes."""
    now = datetime.now().isoformat()
    approver_name = display_name_for(db, approver["username"])
    with db.transaction() as s:
        row = _load(s, donation_id)
        already = _b(row["approved"])
        code = str(row["receipt_code"] or "").upper()
        if not is_valid_receipt_code(code) or _code_taken(s, code, donation_id):
            repaired = unique_receipt_code(s, donation_id)
            logger.info("Donation #%s receipt code '%s' replaced with '%s'", donation_id, row["receipt_code"], repaired)
            code = repaired
        s.execute("""UPDATE donations SET approved = ?, status = ?, approved_by = ?, approved_by_id = ?,
                     approved_by_role = ?, approved_by_name = ?, approved_at = ?, receipt_code = ?, updated_at = ?
                     WHERE id = ?""",
                  (True, STATUS_APPROVED, approver["username"], approver.get("id"), approver["role"],
                   approver_name, now, code, now, donation_id))
        donation = donation_out(_load(s, donation_id))

    logger.info("Donation #%s approved by %s", donation_id, approver["username"])
    if not already:
        notifications.push(
            db, donation["donorUsername"] or donation["donorName"], "donationApproval", "Donation approved",
            f"Receipt: {code} | Event: {donation['category']} | Amount: {donation['amount']:g}",
            {"receiptCode": code, "category": donation["category"], "amount": donation["amount"],
             "paymentMethod": donation["paymentMethod"], "approved": True},
        )
    return donation


def disapprove_donation(db, donation_id: int) -> dict:
    now = datetime.now().isoformat()
    with db.transaction() as s:
        _load(s, donation_id)
        s.execute("""UPDATE donations SET approved = ?, status = ?, approved_by = NULL, approved_by_id = NULL,
                     approved_by_role = NULL, approved_by_name = NULL, approved_at = NULL, updated_at = ?
                     WHERE id = ?""", (False, STATUS_PENDING, now, donation_id))
        donation = donation_out(_load(s, donation_id))
    logger.info("Donation #%s set to pending", donation_id)
    return donation

# ============================================================
# ADMIN EDIT
# ============================================================
_EDITABLE = ("donor_name", "category", "payment_method", "cash_receiver_name")


def update_donation(db, donation_id: int, amount=None, receipt_code: str = None,
                    regenerate_receipt_code: bool = False, **fields) -> dict:
    sets, vals = [], []
    if amount is not None:
        sets.append("amount = ?")
        vals.append(parse_amount(amount))
    for column in _EDITABLE:
        if isinstance(fields.get(column), str):
            sets.append(f"{column} = ?")
            vals.append(fields[column].strip())
    try:
        with db.transaction() as s:
            _load(s, donation_id)
            code = None
            if receipt_code and receipt_code.strip():
                code = receipt_code.strip().upper()
                if not is_valid_receipt_code(code):
                    raise ValidationError("receiptCode must be 6-char A-Z0-9 with at least 1 letter & 1 digit")
                if _code_taken(s, code, donation_id):
                    raise ConflictError("receiptCode already exists", "donations_receipt_code_key")
            if regenerate_receipt_code:
                code = unique_receipt_code(s, donation_id)
            if code:
                sets.append("receipt_code = ?")
                vals.append(code)
            sets.append("updated_at = ?")
            vals.append(datetime.now().isoformat())
            s.execute(f"UPDATE donations SET {', '.join(sets)} WHERE id = ?", (*vals, donation_id))
            return donation_out(_load(s, donation_id))
    except IntegrityViolation as e:
        raise ConflictError("Donation violates a uniqueness constraint", e.constraint)

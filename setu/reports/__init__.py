"""
Setu - Aggregation & Reporting
Per-category totals of approved donations and approved+enabled expenses,
the global totals, and the folder/event breakdown of the catalog.
"""
import logging

from setu.auth import is_privileged
from setu.catalog import list_folders
from setu.db import _n
from setu.matching import category_key

logger = logging.getLogger(__name__)

_DONATION_SUMS = """SELECT trim(category) AS label, SUM(amount) AS total, MIN(id) AS first_id
                    FROM donations WHERE approved = ? GROUP BY trim(category)"""
_EXPENSE_SUMS = """SELECT trim(category) AS label, SUM(amount) AS total, MIN(id) AS first_id
                   FROM expenses WHERE approved = ? AND enabled = ? GROUP BY trim(category)"""


def _fold(rows: list) -> dict:
    """key -> (label, total, first_id). Spellings differing only in case merge into one bucket."""
    out = {}
    for r in sorted(rows, key=lambda r: r["first_id"]):
        key = category_key(r["label"])
        label, total, first = out.get(key, (r["label"], 0.0, r["first_id"]))
        out[key] = (label, total + _n(r["total"]), first)
    return out


def category_totals(db) -> list:
    with db.transaction() as s:
        donations = _fold(s.query(_DONATION_SUMS, (True,)))
        expenses = _fold(s.query(_EXPENSE_SUMS, (True, True)))

    rows = []
    for key in sorted(set(donations) | set(expenses)):
        d_label, d_total, d_first = donations.get(key, (None, 0.0, None))
        e_label, e_total, _ = expenses.get(key, (None, 0.0, None))
        rows.append({"category": d_label if d_first is not None else e_label,
                     "donationTotal": d_total, "expenseTotal": e_total,
                     "balance": d_total - e_total})
    return rows


def grand_totals(rows: list) -> dict:
    donation = sum(r["donationTotal"] for r in rows)
    expense = sum(r["expenseTotal"] for r in rows)
    return {"totalDonation": donation, "totalExpense": expense, "balance": donation - expense}


def totals(db) -> dict:
    return grand_totals(category_totals(db))


def summary(db, role: str) -> dict:
    """Category rows, grand totals, and per-folder event balances.
    Non-privileged callers only see enabled folders and events."""
    rows = category_totals(db)
    by_key = {category_key(r["category"]): r for r in rows}
    folders = []
    for folder in list_folders(db, include_disabled=is_privileged(role)):
        events = []
        for ev in folder["events"]:
            r = by_key.get(category_key(ev["name"]), {})
            d, e = r.get("donationTotal", 0.0), r.get("expenseTotal", 0.0)
            events.append({
                "eventId": ev["id"], "name": ev["name"],
                "donationTotal": d, "expenseTotal": e, "balance": d - e,
                "config": {"enabled": ev["enabled"],
                           "showDonationDetail": ev["showDonationDetail"],
                           "showExpenseDetail": ev["showExpenseDetail"]},
            })
        folders.append({"folderId": folder["id"], "folderName": folder["name"], "events": events})
    return {"categories": rows, "totals": grand_totals(rows), "folders": folders}

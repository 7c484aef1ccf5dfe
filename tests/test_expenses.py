import pytest

from setu import expenses, notifications
from setu.errors import NotFoundError, ValidationError


def test_submit_is_pending_and_notifies(db, users):
    e = expenses.submit_expense(db, users["user"], 120, " Annakshetra ", "rice", "Vendor A")
    assert e["approved"] is False
    assert e["status"] == "pending"
    assert e["category"] == "Annakshetra"
    assert e["submittedBy"] == "asha"
    assert e["date"]
    assert [n["type"] for n in notifications.list_for(db, "asha")] == ["expenseSubmit"]


def test_submit_requires_category(db, users):
    with pytest.raises(ValidationError):
        expenses.submit_expense(db, users["user"], 10, "  ")


def test_admin_create_defaults_to_approved(db, users):
    e = expenses.create_expense(db, users["admin"], 300, "Seva")
    assert e["approved"] is True
    assert e["approvedBy"] == "ravi"
    pending = expenses.create_expense(db, users["admin"], 300, "Seva", approve_now=False)
    assert pending["approved"] is False
    assert pending["approvedBy"] is None


def test_approve_and_set_pending(db, users):
    e = expenses.submit_expense(db, users["user"], 50, "Seva")
    approved = expenses.approve_expense(db, e["id"], users["admin"], True)
    assert approved["approved"] is True
    back = expenses.approve_expense(db, e["id"], users["admin"], False)
    assert back["status"] == "pending"
    types = [n["type"] for n in notifications.list_for(db, "asha")]
    assert types == ["expensePending", "expenseApproval", "expenseSubmit"]


def test_enable_is_independent_of_approval(db, users):
    e = expenses.create_expense(db, users["admin"], 80, "Seva")
    disabled = expenses.set_expense_enabled(db, e["id"], False)
    assert disabled["approved"] is True
    assert disabled["enabled"] is False
    assert expenses.list_expenses(db, users["user"]) == []


def test_partial_update(db, users):
    e = expenses.create_expense(db, users["admin"], 80, "Seva", description="old")
    updated = expenses.update_expense(db, e["id"], amount="95.5", description=" new ")
    assert updated["amount"] == 95.5
    assert updated["description"] == "new"
    assert updated["category"] == "Seva"
    with pytest.raises(NotFoundError):
        expenses.update_expense(db, 999, amount=1)


def test_list_semantics(db, users):
    live = expenses.create_expense(db, users["admin"], 10, "Seva", date="2025-01-02T00:00:00")
    newer = expenses.create_expense(db, users["admin"], 20, "Temple", date="2025-03-01T00:00:00")
    hidden = expenses.create_expense(db, users["admin"], 30, "Seva", date="2025-02-01T00:00:00")
    expenses.set_expense_enabled(db, hidden["id"], False)
    mine = expenses.submit_expense(db, users["user"], 40, "Seva", date="2024-12-01T00:00:00")

    ids = lambda rows: [r["id"] for r in rows]
    assert ids(expenses.list_expenses(db, users["user"])) == [newer["id"], live["id"]]
    assert ids(expenses.list_expenses(db, users["user"], mine=True)) == [newer["id"], live["id"], mine["id"]]
    assert ids(expenses.list_expenses(db, users["admin"])) == [newer["id"], live["id"], mine["id"]]
    assert ids(expenses.list_expenses(db, users["admin"], include_disabled=True)) == \
        [newer["id"], hidden["id"], live["id"], mine["id"]]
    assert ids(expenses.list_expenses(db, users["admin"], status="pending")) == [mine["id"]]
    assert ids(expenses.list_expenses(db, users["user"], category="seva ")) == [live["id"]]


def test_delete(db, users):
    e = expenses.create_expense(db, users["admin"], 10, "Seva")
    assert expenses.delete_expense(db, e["id"])["id"] == e["id"]
    with pytest.raises(NotFoundError):
        expenses.delete_expense(db, e["id"])


# ============================================================
# HTTP
# ============================================================
def test_expense_routes(client, auth):
    submitted = client.post("/api/expenses/submit", json={"amount": 75, "eventName": "Seva"}, headers=auth("user"))
    assert submitted.status_code == 201
    eid = submitted.json()["expense"]["id"]

    assert client.post("/api/expenses", json={"amount": 1, "category": "x"}, headers=auth("user")).status_code == 403
    assert client.post(f"/admin/expenses/{eid}/approve", json={"approve": "true"}, headers=auth("admin")).json()["expense"]["approved"] is True
    assert client.post(f"/api/expenses/{eid}/enable", json={"enabled": "0"}, headers=auth("admin")).json()["expense"]["enabled"] is False
    assert client.get("/api/expenses/list", headers=auth("user")).json() == []
    listed = client.get("/api/expenses/list?includeDisabled=true", headers=auth("admin")).json()
    assert [e["id"] for e in listed] == [eid]
    assert client.delete(f"/api/expenses/{eid}", headers=auth("admin")).status_code == 200


def test_bad_amount_is_400(client, auth):
    resp = client.post("/api/expenses/submit", json={"amount": "lots", "category": "Seva"}, headers=auth("user"))
    assert resp.status_code == 400


@pytest.mark.parametrize("approve", ["yes", 2, "on", "TRUE ", 1])
def test_approve_flag_is_strict(client, auth, approve):
    eid = client.post("/api/expenses/submit", json={"amount": 5, "category": "Seva"}, headers=auth("user")).json()["expense"]["id"]
    resp = client.post(f"/admin/expenses/{eid}/approve", json={"approve": approve}, headers=auth("admin"))
    assert resp.json()["expense"]["approved"] is (approve in (1, "TRUE "))

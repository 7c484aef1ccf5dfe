import pytest

from setu import donations, notifications
from setu.config import SENSITIVE_DONATION_KEYS
from setu.donations import generate_receipt_code, is_valid_receipt_code, redact_donation
from setu.errors import ConflictError, NotFoundError, ValidationError


def _submit(db, user, **overrides):
    fields = dict(donor_name="Asha", amount="500", payment_method="upi", category="Annakshetra",
                  cash_receiver_name="Gopal")
    fields.update(overrides)
    return donations.submit_donation(db, user, **fields)


def test_generated_codes_satisfy_predicate():
    codes = {generate_receipt_code() for _ in range(500)}
    for code in codes:
        assert len(code) == 6
        assert is_valid_receipt_code(code)
    assert len(codes) > 490


@pytest.mark.parametrize("code,ok", [
    ("AB12CD", True), ("A1B2C3", True), ("ABCDEF", False), ("123456", False),
    ("ab12cd", False), ("AB12C", False), ("AB12CDE", False), ("AB-2CD", False), (None, False),
])
def test_receipt_code_predicate(code, ok):
    assert is_valid_receipt_code(code) is ok


def test_submit_stores_pending_with_code(db, users):
    d = _submit(db, users["user"])
    assert d["approved"] is False
    assert d["status"] == "pending"
    assert d["donorUsername"] == "asha"
    assert d["amount"] == 500.0
    assert is_valid_receipt_code(d["receiptCode"])


@pytest.mark.parametrize("overrides", [
    {"donor_name": "  "}, {"amount": ""}, {"payment_method": None}, {"category": ""},
    {"amount": "abc"}, {"amount": "-5"},
])
def test_submit_validation(db, users, overrides):
    with pytest.raises(ValidationError):
        _submit(db, users["user"], **overrides)


def test_approve_stamps_approver_and_notifies_once(db, users):
    d = _submit(db, users["user"])
    approved = donations.approve_donation(db, d["id"], users["admin"])
    assert approved["approved"] is True
    assert approved["approvedBy"] == "ravi"
    assert approved["approvedByName"] == "Ravi Kumar"
    assert approved["approvedByRole"] == "admin"
    assert approved["approvedAt"]
    donations.approve_donation(db, d["id"], users["admin"])
    inbox = notifications.list_for(db, "asha")
    assert [n["type"] for n in inbox] == ["donationApproval"]
    assert inbox[0]["data"]["receiptCode"] == approved["receiptCode"]


def test_approve_repairs_malformed_code(db, users):
    d = _submit(db, users["user"])
    db.execute("UPDATE donations SET receipt_code = ? WHERE id = ?", ("LEGACY-9", d["id"]))
    approved = donations.approve_donation(db, d["id"], users["admin"])
    assert approved["receiptCode"] != "LEGACY-9"
    assert is_valid_receipt_code(approved["receiptCode"])


def test_approve_keeps_valid_code(db, users):
    d = _submit(db, users["user"])
    assert donations.approve_donation(db, d["id"], users["admin"])["receiptCode"] == d["receiptCode"]


def test_disapprove_clears_approver(db, users):
    d = _submit(db, users["user"])
    donations.approve_donation(db, d["id"], users["admin"])
    reset = donations.disapprove_donation(db, d["id"])
    assert reset["approved"] is False
    assert reset["status"] == "pending"
    for key in ("approvedBy", "approvedById", "approvedByRole", "approvedByName", "approvedAt"):
        assert reset[key] is None


def test_approve_missing_donation(db, users):
    with pytest.raises(NotFoundError):
        donations.approve_donation(db, 12345, users["admin"])


def test_redaction_rules():
    record = {"id": 1, "approved": True, "screenshotUrl": "u", "screenshotPath": "p",
              "cashReceiverName": "Gopal", "amount": 10.0}
    for_user = redact_donation(record, "user")
    assert not set(SENSITIVE_DONATION_KEYS) & set(for_user)
    assert redact_donation(record, "admin").get("cashReceiverName") is None
    assert redact_donation(record, "mainadmin")["cashReceiverName"] == "Gopal"
    pending = dict(record, approved=False)
    assert redact_donation(pending, "user")["screenshotUrl"] == "u"


def test_update_receipt_code_rules(db, users):
    a = _submit(db, users["user"])
    b = _submit(db, users["user"])
    with pytest.raises(ValidationError):
        donations.update_donation(db, a["id"], receipt_code="abc")
    with pytest.raises(ConflictError):
        donations.update_donation(db, a["id"], receipt_code=b["receiptCode"].lower())
    updated = donations.update_donation(db, a["id"], receipt_code="zz99aa", donor_name=" Asha Devi ")
    assert updated["receiptCode"] == "ZZ99AA"
    assert updated["donorName"] == "Asha Devi"
    regenerated = donations.update_donation(db, a["id"], regenerate_receipt_code=True)
    assert regenerated["receiptCode"] != "ZZ99AA"
    assert is_valid_receipt_code(regenerated["receiptCode"])


def test_listing_scopes(db, users):
    mine = _submit(db, users["user"])
    other = _submit(db, users["admin"], donor_name="Ravi")
    donations.approve_donation(db, mine["id"], users["admin"])

    assert [d["id"] for d in donations.list_donations(db, users["user"])] == [mine["id"]]
    assert donations.list_donations(db, users["user"], "pending") == []
    assert [d["id"] for d in donations.list_donations(db, users["admin"], "all")] == [mine["id"], other["id"]]
    assert [d["id"] for d in donations.list_donations(db, users["user"], "all")] == [mine["id"]]
    assert [d["id"] for d in donations.my_receipts(db, users["user"])] == [mine["id"]]
    assert [d["id"] for d in donations.pending_donations(db, "admin")] == [other["id"]]


def test_search_is_role_safe(db, users):
    mine = _submit(db, users["user"], category="Temple Fund")
    other = _submit(db, users["admin"], donor_name="Ravi", category="Temple Fund")
    assert donations.search_donations(db, users["user"], "") == []
    assert [d["id"] for d in donations.search_donations(db, users["user"], "temple")] == [mine["id"]]
    found = donations.search_donations(db, users["admin"], "TEMPLE")
    assert {d["id"] for d in found} == {mine["id"], other["id"]}
    by_code = donations.search_donations(db, users["admin"], other["receiptCode"].lower())
    assert [d["id"] for d in by_code] == [other["id"]]


# ============================================================
# HTTP
# ============================================================
def test_submit_with_screenshot(client, auth, store):
    resp = client.post(
        "/api/donations/submit-donation",
        data={"amount": "250", "paymentMethod": "upi", "category": "Annakshetra", "donorName": "Asha"},
        files={"screenshot": ("proof.png", b"\x89PNG fake", "image/png")},
        headers=auth("user"),
    )
    assert resp.status_code == 201
    donation = resp.json()["donation"]
    assert donation["screenshotUrl"].startswith("http://testserver/uploads/screenshots/")
    folder, filename = donation["screenshotPath"].split("/")
    assert store.resolve(folder, filename).read_bytes() == b"\x89PNG fake"


def test_submit_requires_member(client):
    resp = client.post("/api/donations/submit-donation", data={"amount": "1"})
    assert resp.status_code == 401


def test_approve_route_redacts_for_admin_but_not_mainadmin(client, auth):
    created = client.post(
        "/api/donations/submit-donation",
        data={"amount": "100", "paymentMethod": "cash", "category": "Seva",
              "donorName": "Asha", "cashReceiverName": "Gopal"},
        headers=auth("user"),
    ).json()["donation"]
    approved = client.post(f"/admin/donations/{created['id']}/approve", headers=auth("admin")).json()
    assert approved["message"] == "Donation approved"
    assert "cashReceiverName" not in approved["donation"]
    full = client.get("/api/donations/all-donations", headers=auth("mainadmin")).json()
    assert full[0]["cashReceiverName"] == "Gopal"
    assert client.get("/api/donations/all-donations", headers=auth("user")).status_code == 403


def test_put_donation_bad_code_is_400(client, auth, db, users):
    d = _submit(db, users["user"])
    resp = client.put(f"/admin/donations/{d['id']}", json={"receiptCode": "nope"}, headers=auth("admin"))
    assert resp.status_code == 400


def test_failed_submit_discards_screenshot(client, auth, store):
    resp = client.post(
        "/api/donations/submit-donation",
        data={"amount": "250", "paymentMethod": "upi", "donorName": "Asha"},
        files={"screenshot": ("proof.png", b"\x89PNG fake", "image/png")},
        headers=auth("user"),
    )
    assert resp.status_code == 400
    shots = store.root / "screenshots"
    assert not shots.exists() or not list(shots.iterdir())


def test_create_alias_submits(client, auth):
    resp = client.post("/api/donations/create", headers=auth("user"),
                       data={"amount": "10", "paymentMethod": "upi", "category": "Seva", "donorName": "Asha"})
    assert resp.status_code == 201
    assert resp.json()["donation"]["status"] == "pending"


def test_put_alias_updates(client, auth, db, users):
    d = _submit(db, users["user"])
    resp = client.put(f"/api/donations/{d['id']}", json={"amount": 750}, headers=auth("admin"))
    assert resp.json()["donation"]["amount"] == 750
    assert client.put(f"/api/donations/{d['id']}", json={"amount": 1}, headers=auth("user")).status_code == 403


@pytest.mark.parametrize("approve, approved", [(True, True), ("true", True), (1, True), ("1", True),
                                               ("yes", False), (False, False), (None, False)])
def test_approve_endpoint_is_strict(client, auth, db, users, approve, approved):
    d = _submit(db, users["user"])
    donations.approve_donation(db, d["id"], users["admin"])
    body = {"id": d["id"]}
    if approve is not None:
        body["approve"] = approve
    resp = client.post("/api/donations/approve", json=body, headers=auth("admin"))
    assert resp.status_code == 200
    assert resp.json()["donation"]["approved"] is approved
    assert resp.json()["message"] == ("Donation approved" if approved else "Donation set to pending")


def test_approve_endpoint_errors(client, auth):
    assert client.post("/api/donations/approve", json={"approve": True}, headers=auth("admin")).status_code == 400
    assert client.post("/api/donations/approve", json={"id": 999, "approve": True}, headers=auth("admin")).status_code == 404
    assert client.post("/api/donations/approve", json={"id": 1, "approve": True}, headers=auth("user")).status_code == 403

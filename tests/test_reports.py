from setu import catalog, donations, expenses, reports


def _donate(db, user, amount, category, approve_by=None, method="upi"):
    d = donations.submit_donation(db, user, "Asha", amount, method, category)
    if approve_by:
        donations.approve_donation(db, d["id"], approve_by)
    return d


def test_only_approved_donations_count(db, users):
    folder = catalog.create_folder(db, "Temple")
    catalog.create_event(db, folder["id"], "Annakshetra")
    d = _donate(db, users["user"], 500, "Annakshetra")

    event = reports.summary(db, "user")["folders"][0]["events"][0]
    assert event["donationTotal"] == 0

    donations.approve_donation(db, d["id"], users["admin"])
    event = reports.summary(db, "user")["folders"][0]["events"][0]
    assert event["donationTotal"] == 500
    assert event["balance"] == 500


def test_case_variants_merge_under_first_spelling(db, users):
    _donate(db, users["user"], 100, "Annakshetra", users["admin"])
    _donate(db, users["user"], 50, " annakshetra ", users["admin"])
    _donate(db, users["user"], 25, "ANNAKSHETRA", users["admin"])
    rows = reports.category_totals(db)
    assert rows == [{"category": "Annakshetra", "donationTotal": 175.0, "expenseTotal": 0.0, "balance": 175.0}]


def test_disabled_and_pending_expenses_are_excluded(db, users):
    _donate(db, users["user"], 1000, "Seva", users["admin"])
    expenses.create_expense(db, users["admin"], 300, "seva")
    off = expenses.create_expense(db, users["admin"], 200, "Seva")
    expenses.set_expense_enabled(db, off["id"], False)
    expenses.submit_expense(db, users["user"], 99, "Seva")
    assert reports.totals(db) == {"totalDonation": 1000.0, "totalExpense": 300.0, "balance": 700.0}


def test_expense_only_category_uses_expense_label(db, users):
    expenses.create_expense(db, users["admin"], 40, "Flowers")
    assert reports.category_totals(db)[0]["category"] == "Flowers"


def test_summary_hides_disabled_folders_from_non_admins(db, users):
    live = catalog.create_folder(db, "Live")
    catalog.create_folder(db, "Archive", enabled=False)
    catalog.create_event(db, live["id"], "Seva", show_expense_detail=False)
    assert [f["folderName"] for f in reports.summary(db, "")["folders"]] == ["Live"]
    admin_view = reports.summary(db, "admin")
    assert [f["folderName"] for f in admin_view["folders"]] == ["Live", "Archive"]
    config = admin_view["folders"][0]["events"][0]["config"]
    assert config == {"enabled": True, "showDonationDetail": True, "showExpenseDetail": False}


def test_totals_route(client, db, users, auth):
    _donate(db, users["user"], 10, "Seva", users["admin"])
    body = client.get("/totals", headers=auth("user")).json()
    assert body["totalDonation"] == 10
    summary = client.get("/analytics/summary", headers=auth("user")).json()
    assert summary["totals"] == body


def test_totals_and_summary_need_a_member(client, users, auth):
    assert client.get("/totals").status_code == 401
    assert client.get("/analytics/summary").status_code == 401
    assert client.get("/totals", headers=auth("mainadmin")).status_code == 200

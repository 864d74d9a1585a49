"""
HTTP surface: envelopes, authentication and role gates.
"""
from datetime import date, timedelta
from decimal import Decimal


def _create_expense(client, auth, category, user, amount="2500.00"):
    response = client.post("/api/v1/expenses", json={
        "category_id": category.id,
        "amount": amount,
        "expense_date": "2024-03-15",
        "description": "Electricity bill",
        "payment_method": "Cash",
    }, headers=auth(user))
    assert response.status_code == 201
    return response.json()["data"]


class TestEnvelope:

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_success_envelope(self, client, auth, category, account_manager):
        data = _create_expense(client, auth, category, account_manager)
        assert data["expense_number"] == "EXP-2024-00001"
        assert data["status"] == "Draft"
        assert Decimal(data["amount"]) == Decimal("2500.00")

    def test_paginated_list(self, client, auth, category, account_manager):
        for _ in range(3):
            _create_expense(client, auth, category, account_manager)

        body = client.get("/api/v1/expenses?limit=2", headers=auth(account_manager)).json()
        assert body["success"] is True
        assert len(body["data"]) == 2
        assert body["pagination"] == {"page": 1, "limit": 2, "total": 3, "pages": 2}

    def test_not_found_envelope(self, client, auth, account_manager):
        response = client.get("/api/v1/expenses/999", headers=auth(account_manager))
        assert response.status_code == 404
        assert response.json() == {
            "success": False,
            "error": {"code": "EXPENSE_NOT_FOUND", "message": response.json()["error"]["message"]},
        }

    def test_validation_error(self, client, auth, account_manager):
        response = client.post("/api/v1/expenses", json={"amount": "10"},
                               headers=auth(account_manager))
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"


class TestAuthentication:

    def test_missing_token(self, client):
        response = client.get("/api/v1/expenses")
        assert response.status_code == 401
        assert response.json()["success"] is False

    def test_garbage_token(self, client):
        response = client.get("/api/v1/expenses", headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401
        assert response.json()["error"]["code"] == "INVALID_TOKEN"

    def test_category_creation_is_admin_only(self, client, auth, account_manager, admin):
        payload = {"name": "Marketing"}
        denied = client.post("/api/v1/expense-categories", json=payload,
                             headers=auth(account_manager))
        assert denied.status_code == 403

        created = client.post("/api/v1/expense-categories", json=payload, headers=auth(admin))
        assert created.status_code == 201


class TestExpenseFlow:

    def test_full_approval_posts_ledger(self, client, auth, category, account_manager, hof):
        expense = _create_expense(client, auth, category, account_manager)
        base = f"/api/v1/expenses/{expense['id']}"

        assert client.post(f"{base}/submit", headers=auth(account_manager)).status_code == 200
        first = client.post(f"{base}/approve", json={"remarks": "Matches invoice"},
                            headers=auth(account_manager))
        assert first.json()["data"]["status"] == "Pending HOF"

        final = client.post(f"{base}/approve", headers=auth(hof))
        assert final.status_code == 200
        assert final.json()["data"]["status"] == "Approved"
        assert len(final.json()["data"]["approval_history"]) == 2

        ledger = client.get(f"/api/v1/ledger?reference_model=Expense&reference_id={expense['id']}",
                            headers=auth(hof)).json()["data"]
        assert len(ledger["entries"]) == 2
        assert Decimal(ledger["total_debit"]) == Decimal(ledger["total_credit"]) == Decimal("2500")

    def test_hof_blocked_at_accounts_stage(self, client, auth, category, account_manager, hof):
        expense = _create_expense(client, auth, category, account_manager)
        base = f"/api/v1/expenses/{expense['id']}"
        client.post(f"{base}/submit", headers=auth(account_manager))

        response = client.post(f"{base}/approve", headers=auth(hof))
        assert response.status_code == 403

        current = client.get(base, headers=auth(hof)).json()["data"]
        assert current["status"] == "Pending Accounts"
        assert current["approval_history"] == []

    def test_reject_without_remarks(self, client, auth, category, account_manager):
        expense = _create_expense(client, auth, category, account_manager)
        base = f"/api/v1/expenses/{expense['id']}"
        client.post(f"{base}/submit", headers=auth(account_manager))

        response = client.post(f"{base}/reject", json={}, headers=auth(account_manager))
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "REMARKS_REQUIRED"


class TestRefundRoutes:

    def test_queue_forbidden_for_non_admin(self, client, auth, account_manager, admin):
        denied = client.get("/api/v1/refunds/approval-queue", headers=auth(account_manager))
        assert denied.status_code == 403

        allowed = client.get("/api/v1/refunds/approval-queue", headers=auth(admin))
        assert allowed.status_code == 200
        assert allowed.json()["data"] == []

    def test_schedule_via_http(self, client, auth, approved_cancellation, admin):
        cancellation = approved_cancellation("1000000.00")
        response = client.post("/api/v1/refunds", json={
            "cancellation_id": cancellation.id,
            "number_of_installments": 3,
            "start_date": "2024-01-31",
        }, headers=auth(admin))

        assert response.status_code == 201
        rows = response.json()["data"]
        assert [Decimal(r["amount"]) for r in rows] == [
            Decimal("333333"), Decimal("333333"), Decimal("333334")
        ]
        assert [r["due_date"] for r in rows] == ["2024-01-31", "2024-02-29", "2024-03-31"]

        again = client.post("/api/v1/refunds", json={
            "cancellation_id": cancellation.id, "number_of_installments": 2,
        }, headers=auth(admin))
        assert again.status_code == 409


class TestChequeRoutes:

    def test_record_and_clear(self, client, auth, buyer, account_manager):
        today = date.today()
        response = client.post("/api/v1/cheques", json={
            "cheque_number": "004512",
            "bank_name": "Meezan Bank",
            "issue_date": (today - timedelta(days=3)).isoformat(),
            "due_date": today.isoformat(),
            "amount": "75000.00",
            "client_id": buyer.id,
        }, headers=auth(account_manager))
        assert response.status_code == 201
        cheque = response.json()["data"]
        assert cheque["status"] == "Due Today"

        due = client.get("/api/v1/cheques/due", headers=auth(account_manager)).json()["data"]
        assert [c["id"] for c in due] == [cheque["id"]]

        cleared = client.post(f"/api/v1/cheques/{cheque['id']}/clear", json={},
                              headers=auth(account_manager))
        assert cleared.json()["data"]["status"] == "Cleared"

        deleted = client.delete(f"/api/v1/cheques/{cheque['id']}", headers=auth(account_manager))
        assert deleted.status_code == 400
        assert deleted.json()["error"]["code"] == "CANNOT_DELETE_CLEARED_CHEQUE"

    def test_sweep_is_admin_only(self, client, auth, account_manager, admin):
        assert client.post("/api/v1/cheques/sweep", headers=auth(account_manager)).status_code == 403

        response = client.post("/api/v1/cheques/sweep", headers=auth(admin))
        assert response.status_code == 200
        assert response.json()["data"] == {"due_today": 0, "overdue": 0}


class TestSaleCancellationRoutes:

    def test_sale_cancelled_then_approved_by_hof(self, client, auth, account_manager, hof):
        buyer = client.post("/api/v1/clients", json={"name": "Usman Tariq"},
                            headers=auth(account_manager)).json()["data"]
        sale = client.post("/api/v1/sales", json={
            "sale_number": "PLOT-17",
            "client_id": buyer["id"],
            "total_price": "4000000.00",
            "paid_amount": "800000.00",
        }, headers=auth(account_manager)).json()["data"]

        created = client.post("/api/v1/cancellations", json={
            "sale_id": sale["id"], "reason": "Buyer relocating",
        }, headers=auth(account_manager))
        assert created.status_code == 201
        cancellation = created.json()["data"]
        assert Decimal(cancellation["refundable_amount"]) == Decimal("720000.00")

        sale_now = client.get(f"/api/v1/sales/{sale['id']}", headers=auth(account_manager)).json()["data"]
        assert sale_now["status"] == "Cancelled"

        base = f"/api/v1/cancellations/{cancellation['id']}"
        assert client.post(f"{base}/approve", headers=auth(account_manager)).status_code == 403
        approved = client.post(f"{base}/approve", headers=auth(hof))
        assert approved.json()["data"]["status"] == "Approved"

    def test_unknown_client(self, client, auth, account_manager):
        response = client.post("/api/v1/sales", json={
            "sale_number": "PLOT-1", "client_id": 404, "total_price": "100.00",
        }, headers=auth(account_manager))
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "CLIENT_NOT_FOUND"


class TestPayrollRoutes:

    def test_cost_entry_and_summary(self, client, auth, account_manager):
        employee = client.post("/api/v1/employees", json={
            "employee_code": "EMP-009", "full_name": "Sana Iqbal",
        }, headers=auth(account_manager)).json()["data"]

        created = client.post("/api/v1/employee-costs", json={
            "employee_id": employee["id"], "month": 4, "year": 2024,
            "salary": "90000", "bonus": "5000", "advances": "15000",
        }, headers=auth(account_manager))
        assert created.status_code == 201
        assert Decimal(created.json()["data"]["net_pay"]) == Decimal("80000")

        duplicate = client.post("/api/v1/employee-costs", json={
            "employee_id": employee["id"], "month": 4, "year": 2024, "salary": "1",
        }, headers=auth(account_manager))
        assert duplicate.status_code == 409
        assert duplicate.json()["error"]["code"] == "DUPLICATE_COST_ENTRY"

        summary = client.get("/api/v1/employee-costs/summary?year=2024&month=4",
                             headers=auth(account_manager)).json()["data"]
        assert summary["total_employees"] == 1
        assert Decimal(summary["total_net_pay"]) == Decimal("80000")

    def test_summary_needs_year_and_month(self, client, auth, account_manager):
        response = client.get("/api/v1/employee-costs/summary?year=2024", headers=auth(account_manager))
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "MISSING_PARAMETERS"

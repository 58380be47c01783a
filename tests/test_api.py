"""
TradeDoc Tracker - API Tests

End-to-end tests of the HTTP endpoints.
"""

from io import BytesIO

import pytest
from openpyxl import Workbook

XLSX_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

TRANSACTION_HEADER = ["Trref", "Custno", "Custnm", "Tradate", "Currency", "Amount", "bencust", "remark"]


def _xlsx(header, rows) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.append(header)
    for row in rows:
        ws.append(row)
    buffer = BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


def _transaction_file(*rows):
    return {"file": ("transactions.xlsx", _xlsx(TRANSACTION_HEADER, rows), XLSX_TYPE)}


def _tx_row(trref, custnm="Acme Trading", remark="HD 123, TT truoc 240115"):
    return [trref, "C001", custnm, "10/01/2024", "USD", "1,500", "Shenzhen Parts Co", remark]


async def _import(client, headers, *rows):
    response = await client.post(
        "/api/v1/transactions/import", files=_transaction_file(*rows), headers=headers,
    )
    assert response.status_code == 200, response.text
    return response.json()


async def _first_id(client, headers):
    response = await client.get("/api/v1/transactions", headers=headers)
    return response.json()["data"][0]["id"]


class TestHealth:

    @pytest.mark.asyncio
    async def test_health_check(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


class TestAuthentication:

    @pytest.mark.asyncio
    async def test_missing_token(self, client):
        response = await client.get("/api/v1/transactions")
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_invalid_token(self, client):
        response = await client.get(
            "/api/v1/transactions", headers={"Authorization": "Bearer not-a-jwt"},
        )
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_token_in_cookie(self, client, teller_headers):
        token = teller_headers["Authorization"].split(" ", 1)[1]

        response = await client.get(
            "/api/v1/transactions", headers={"Cookie": f"access_token={token}"},
        )

        assert response.status_code == 200


class TestTransactionImportApi:

    @pytest.mark.asyncio
    async def test_import_and_list(self, client, teller_headers):
        result = await _import(client, teller_headers, _tx_row("FT1"), _tx_row("FT2"), _tx_row("FT1"))

        assert result == {"created": 2, "skipped_duplicates": 1, "total_rows": 3}

        response = await client.get("/api/v1/transactions", headers=teller_headers)
        body = response.json()
        assert body["total"] == 2
        assert body["last_page"] == 1
        transaction = body["data"][0]
        assert transaction["contract_number"] == "123"
        assert transaction["expected_declaration_date"] == "2024-02-14"
        assert transaction["status"] == "awaiting_documents"
        assert transaction["amount"] == "1500.00"

    @pytest.mark.asyncio
    async def test_invalid_rows_reject_batch(self, client, teller_headers):
        bad = _tx_row("FT2")
        bad[5] = "lots"

        response = await client.post(
            "/api/v1/transactions/import",
            files=_transaction_file(_tx_row("FT1"), bad),
            headers=teller_headers,
        )

        assert response.status_code == 422
        detail = response.json()["detail"]
        assert detail["code"] == "BATCH_VALIDATION_FAILED"
        assert detail["details"]["errors"][0]["row"] == 3

        listing = await client.get("/api/v1/transactions", headers=teller_headers)
        assert listing.json()["total"] == 0

    @pytest.mark.asyncio
    async def test_rejects_non_xlsx_upload(self, client, teller_headers):
        response = await client.post(
            "/api/v1/transactions/import",
            files={"file": ("transactions.csv", b"Trref,Custno\n", "text/csv")},
            headers=teller_headers,
        )

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "INVALID_FILE"

    @pytest.mark.asyncio
    async def test_rejects_corrupt_workbook(self, client, teller_headers):
        response = await client.post(
            "/api/v1/transactions/import",
            files={"file": ("transactions.xlsx", b"not a zip", XLSX_TYPE)},
            headers=teller_headers,
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_controller_cannot_import(self, client, controller_headers):
        response = await client.post(
            "/api/v1/transactions/import",
            files=_transaction_file(_tx_row("FT1")),
            headers=controller_headers,
        )
        assert response.status_code == 403


class TestTransactionQueriesApi:

    @pytest.mark.asyncio
    async def test_status_listing_accepts_codes_and_labels(self, client, teller_headers):
        await _import(client, teller_headers, _tx_row("FT1"), _tx_row("FT2", remark="Goods"))

        overdue = await client.get("/api/v1/transactions/status/overdue", headers=teller_headers)
        assert [t["trref"] for t in overdue.json()["data"]] == ["FT1"]

        awaiting = await client.get("/api/v1/transactions/status/Chưa bổ sung", headers=teller_headers)
        assert [t["trref"] for t in awaiting.json()["data"]] == ["FT2"]

    @pytest.mark.asyncio
    async def test_unknown_status(self, client, teller_headers):
        response = await client.get("/api/v1/transactions/status/archived", headers=teller_headers)

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "INVALID_STATUS"

    @pytest.mark.asyncio
    async def test_search(self, client, teller_headers):
        await _import(client, teller_headers, _tx_row("FT1", custnm="Acme"), _tx_row("FT2", custnm="Beta"))

        response = await client.get(
            "/api/v1/transactions", params={"search": "beta"}, headers=teller_headers,
        )

        assert [t["trref"] for t in response.json()["data"]] == ["FT2"]

    @pytest.mark.asyncio
    async def test_get_unknown_transaction(self, client, teller_headers):
        response = await client.get("/api/v1/transactions/999", headers=teller_headers)

        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "TRANSACTION_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_export_by_status(self, client, teller_headers):
        await _import(client, teller_headers, _tx_row("FT1"))

        response = await client.get("/api/v1/transactions/report/overdue", headers=teller_headers)

        assert response.status_code == 200
        assert response.headers["content-type"] == XLSX_TYPE
        assert "report-overdue-" in response.headers["content-disposition"]
        assert response.content[:2] == b"PK"


class TestWorkflowApi:

    @pytest.mark.asyncio
    async def test_full_workflow(
        self, client, teller_headers, controller_headers, inspector_headers,
    ):
        await _import(client, teller_headers, _tx_row("FT1"))
        transaction_id = await _first_id(client, teller_headers)

        response = await client.put(
            f"/api/v1/transactions/{transaction_id}",
            json={"status": "Đã bổ sung", "note": "Invoice received"},
            headers=teller_headers,
        )
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "documents_added"
        assert body["is_document_added"] is True
        assert body["updated_by"] == "Teller"

        response = await client.put(
            f"/api/v1/transactions/{transaction_id}/censorship",
            json={"censored": True, "note_censored": "OK"},
            headers=controller_headers,
        )
        assert response.status_code == 200
        assert response.json()["censored"] is True

        listing = await client.get(
            "/api/v1/transactions/post-censorship",
            params={"post_inspection": "false"},
            headers=inspector_headers,
        )
        assert [t["id"] for t in listing.json()["data"]] == [transaction_id]

        response = await client.put(
            f"/api/v1/transactions/{transaction_id}/post-inspection",
            json={"post_inspection": True, "note_inspection": "Checked"},
            headers=inspector_headers,
        )
        assert response.status_code == 200
        assert response.json()["post_inspection"] is True

        export = await client.get(
            "/api/v1/transactions/report-post-inspection", headers=inspector_headers,
        )
        assert export.status_code == 200
        assert "report-post-inspection-" in export.headers["content-disposition"]

    @pytest.mark.asyncio
    async def test_wrong_role_is_forbidden(self, client, teller_headers, controller_headers):
        await _import(client, teller_headers, _tx_row("FT1"))
        transaction_id = await _first_id(client, teller_headers)

        response = await client.put(
            f"/api/v1/transactions/{transaction_id}",
            json={"status": "documents_added"},
            headers=controller_headers,
        )

        assert response.status_code == 403
        assert response.json()["detail"]["code"] == "INSUFFICIENT_PERMISSIONS"

    @pytest.mark.asyncio
    async def test_status_cannot_go_back(self, client, teller_headers):
        await _import(client, teller_headers, _tx_row("FT1"))
        transaction_id = await _first_id(client, teller_headers)
        url = f"/api/v1/transactions/{transaction_id}"

        await client.put(url, json={"status": "documents_added"}, headers=teller_headers)
        response = await client.put(url, json={"status": "awaiting_documents"}, headers=teller_headers)

        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "INVALID_TRANSITION"

    @pytest.mark.asyncio
    async def test_invalid_status_value(self, client, teller_headers):
        await _import(client, teller_headers, _tx_row("FT1"))
        transaction_id = await _first_id(client, teller_headers)

        response = await client.put(
            f"/api/v1/transactions/{transaction_id}",
            json={"status": "overdue"},
            headers=teller_headers,
        )

        assert response.status_code == 400


class TestCustomerApi:

    @pytest.mark.asyncio
    async def test_import_and_list_with_transactions(self, client, admin_headers, teller_headers):
        content = _xlsx(
            ["Custno", "Custnm", "email", "contact_person"],
            [["C001", "Acme Trading", "accounts@acme-trading.vn", "Nguyen Van A"]],
        )
        response = await client.post(
            "/api/v1/customers/import",
            files={"file": ("customers.xlsx", content, XLSX_TYPE)},
            headers=admin_headers,
        )
        assert response.status_code == 200
        assert response.json() == {"created": 1, "updated": 0, "total_rows": 1}

        await _import(client, teller_headers, _tx_row("FT1"))

        response = await client.get("/api/v1/customers/with-transactions", headers=teller_headers)
        body = response.json()
        assert body["total"] == 1
        assert body["data"][0]["customer"]["custno"] == "C001"
        assert [t["trref"] for t in body["data"][0]["transactions"]] == ["FT1"]

        response = await client.get("/api/v1/customers/C001", headers=teller_headers)
        assert response.json()["email"] == "accounts@acme-trading.vn"

    @pytest.mark.asyncio
    async def test_teller_cannot_import_customers(self, client, teller_headers):
        content = _xlsx(["Custno", "Custnm", "email"], [["C001", "Acme", "a@acme-trading.vn"]])

        response = await client.post(
            "/api/v1/customers/import",
            files={"file": ("customers.xlsx", content, XLSX_TYPE)},
            headers=teller_headers,
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_unknown_customer(self, client, teller_headers):
        response = await client.get("/api/v1/customers/C404", headers=teller_headers)

        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "CUSTOMER_NOT_FOUND"


class TestEmailConfigApi:

    @pytest.mark.asyncio
    async def test_create_update_and_list(self, client, admin_headers):
        response = await client.post(
            "/api/v1/email-config",
            json={"email": "ttqt@bank.vn", "password": "secret"},
            headers=admin_headers,
        )
        assert response.status_code == 201
        created = response.json()
        assert created["email"] == "ttqt@bank.vn"
        assert "password" not in created

        response = await client.put(
            f"/api/v1/email-config/{created['id']}",
            json={"is_active": False},
            headers=admin_headers,
        )
        assert response.json()["is_active"] is False

        response = await client.get("/api/v1/email-config", headers=admin_headers)
        assert [c["email"] for c in response.json()] == ["ttqt@bank.vn"]

    @pytest.mark.asyncio
    async def test_duplicate_sender(self, client, admin_headers):
        payload = {"email": "ttqt@bank.vn", "password": "secret"}
        await client.post("/api/v1/email-config", json=payload, headers=admin_headers)

        response = await client.post("/api/v1/email-config", json=payload, headers=admin_headers)

        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_requires_admin(self, client, teller_headers):
        response = await client.get("/api/v1/email-config", headers=teller_headers)
        assert response.status_code == 403


class TestReminderApi:

    @pytest.mark.asyncio
    async def test_sweep_sends_due_reminders(self, client, admin_headers, teller_headers, session_factory, notifier):
        from tradedoc.models.customer import Customer
        from tests.conftest import add_all

        await add_all(
            session_factory,
            Customer(custno="C001", name="Acme Trading", email="accounts@acme-trading.vn"),
        )
        await _import(client, teller_headers, _tx_row("FT1"))

        response = await client.post("/api/v1/reminders/sweep", headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["dispatched"] == 1
        assert notifier.sent[0]["to"] == "accounts@acme-trading.vn"

        listing = await client.get(
            "/api/v1/customers/with-transactions",
            params={"is_send_email": "true"},
            headers=teller_headers,
        )
        assert listing.json()["total"] == 1

    @pytest.mark.asyncio
    async def test_failed_reminder_can_be_reset(
        self, client, admin_headers, teller_headers, session_factory, notifier,
    ):
        from tradedoc.models.customer import Customer
        from tests.conftest import add_all

        notifier.result = False
        await add_all(
            session_factory,
            Customer(custno="C001", name="Acme Trading", email="accounts@acme-trading.vn"),
        )
        await _import(client, teller_headers, _tx_row("FT1"))
        await client.post("/api/v1/reminders/sweep", headers=admin_headers)

        pending = await client.get("/api/v1/reminders/pending", headers=admin_headers)
        [entry] = pending.json()
        assert entry["trref"] == "FT1"
        assert entry["reminder_attempted_at"] is not None

        response = await client.post(
            f"/api/v1/reminders/{entry['transaction_id']}/reset", headers=admin_headers,
        )
        assert response.status_code == 200
        assert response.json()["is_sending_email"] is False

        # Nothing scheduled for this transaction
        response = await client.delete(
            f"/api/v1/reminders/{entry['transaction_id']}", headers=admin_headers,
        )
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_requires_admin(self, client, teller_headers):
        response = await client.post("/api/v1/reminders/sweep", headers=teller_headers)
        assert response.status_code == 403

from datetime import timedelta

import pytest

from conftest import audit_count


def _create_invoice(client, customer_id, **overrides):
    body = {"customerId": customer_id, "amount": 100, "dueDate": "2024-03-01"}
    body.update(overrides)
    return client.post("/invoices", json=body)


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_create_invoice(client, committed_customer):
    r = _create_invoice(client, committed_customer["id"], externalId="I1", description="Setup")

    assert r.status_code == 201
    body = r.json()
    assert body["status"] == "PENDING"
    assert body["externalId"] == "I1"
    assert body["amount"] == 100
    assert body["dueDate"] == "2024-03-01T00:00:00.000Z"
    assert body["createdAt"].endswith("Z")

    detail = client.get(f"/invoices/{body['id']}").json()
    assert detail["customer"]["name"] == "Acme Corp"
    assert [log["fieldChanged"] for log in detail["auditLogs"]] == ["creation"]


@pytest.mark.parametrize("missing", ["amount", "dueDate", "customerId"])
def test_create_invoice_requires_fields(client, committed_customer, missing):
    body = {"customerId": committed_customer["id"], "amount": 100, "dueDate": "2024-03-01"}
    del body[missing]

    r = client.post("/invoices", json=body)

    assert r.status_code == 400
    assert missing in r.json()["error"]


def test_create_invoice_rejects_non_positive_amount(client, committed_customer):
    r = _create_invoice(client, committed_customer["id"], amount=-5)
    assert r.status_code == 400


def test_create_invoice_unknown_customer(client):
    r = _create_invoice(client, 999)
    assert r.status_code == 404
    assert r.json() == {"error": "Customer not found"}


def test_duplicate_external_id_conflicts(client, committed_customer):
    assert _create_invoice(client, committed_customer["id"], externalId="I1").status_code == 201

    r = _create_invoice(client, committed_customer["id"], externalId="I1")

    assert r.status_code == 409


def test_update_invoice_and_replay(client, engine, committed_customer):
    invoice_id = _create_invoice(client, committed_customer["id"]).json()["id"]
    body = {"amount": "120.00", "dueDate": "2024-03-15", "status": "PAID"}

    r = client.put(f"/invoices/{invoice_id}", json=body)
    assert r.status_code == 200
    assert r.json()["status"] == "PAID"
    assert r.json()["statusLabel"] == "PAID"

    client.put(f"/invoices/{invoice_id}", json=body)

    with engine.connect() as c:
        assert audit_count(c, invoice_id) == 4  # creation + amount, dueDate, status


def test_update_leaves_unsent_fields_alone(client, committed_customer):
    created = _create_invoice(client, committed_customer["id"], description="Keep me", externalId="I9").json()

    r = client.put(f"/invoices/{created['id']}", json={"amount": 100, "dueDate": "2024-03-01"})

    assert r.json()["description"] == "Keep me"
    assert r.json()["externalId"] == "I9"


def test_update_requires_amount_and_due_date(client, committed_customer):
    invoice_id = _create_invoice(client, committed_customer["id"]).json()["id"]

    r = client.put(f"/invoices/{invoice_id}", json={"status": "PAID"})

    assert r.status_code == 400


def test_update_missing_invoice(client):
    r = client.put("/invoices/42", json={"amount": 1, "dueDate": "2024-03-01"})
    assert r.status_code == 404


def test_delete_invoice(client, committed_customer):
    invoice_id = _create_invoice(client, committed_customer["id"]).json()["id"]

    assert client.delete(f"/invoices/{invoice_id}").json() == {"success": True}
    assert client.get(f"/invoices/{invoice_id}").status_code == 404


def test_list_invoices(client, committed_customer):
    _create_invoice(client, committed_customer["id"])
    _create_invoice(client, committed_customer["id"], status="PAID")

    body = client.get("/invoices", params={"status": "PAID"}).json()

    assert body["total"] == 1
    assert body["items"][0]["status"] == "PAID"


def test_external_ingestion_create_then_replay(client, engine, committed_customer):
    payload = {
        "externalCustomerId": "C1",
        "externalInvoiceId": "I1",
        "amount": 50,
        "dueDate": "2024-05-31",
    }

    first = client.post("/external/invoices", json=payload)
    assert first.status_code == 200
    assert first.json()["action"] == "created"
    assert first.json()["message"] == "Invoice created successfully"

    second = client.post("/external/invoices", json=payload)
    assert second.json()["action"] == "updated"
    assert second.json()["changedFields"] == []
    assert second.json()["invoice"]["amount"] == 50
    assert second.json()["invoice"]["id"] == first.json()["invoice"]["id"]

    with engine.connect() as c:
        assert audit_count(c) == 1


def test_external_ingestion_without_description_keeps_stored_one(client, engine, committed_customer):
    payload = {
        "externalCustomerId": "C1",
        "externalInvoiceId": "I1",
        "amount": 50,
        "dueDate": "2024-05-31",
    }
    client.post("/external/invoices", json={**payload, "description": "Retainer"})

    r = client.post("/external/invoices", json=payload)

    assert r.json()["changedFields"] == []
    assert r.json()["invoice"]["description"] == "Retainer"

    cleared = client.post("/external/invoices", json={**payload, "description": None})
    assert cleared.json()["changedFields"] == ["description"]
    assert cleared.json()["invoice"]["description"] == ""
    with engine.connect() as c:
        assert audit_count(c) == 2


def test_external_ingestion_unknown_customer(client, engine):
    r = client.post(
        "/external/invoices",
        json={"externalCustomerId": "X", "externalInvoiceId": "I1", "amount": 50, "dueDate": "2024-05-31"},
    )

    assert r.status_code == 404
    with engine.connect() as c:
        assert audit_count(c) == 0


def test_external_ingestion_requires_fields(client, committed_customer):
    r = client.post(
        "/external/invoices",
        json={"externalCustomerId": "C1", "externalInvoiceId": "", "amount": 50, "dueDate": "2024-05-31"},
    )
    assert r.status_code == 400


def test_cron_sweep(client, committed_customer, today, yesterday):
    past = _create_invoice(client, committed_customer["id"], dueDate=yesterday.isoformat()).json()
    future = _create_invoice(
        client, committed_customer["id"], dueDate=(today + timedelta(days=3)).isoformat()
    ).json()

    r = client.post("/cron/check-overdue-invoices", params={"asOf": today.isoformat()})

    assert r.status_code == 200
    assert r.json()["success"] is True
    assert r.json()["updatedInvoices"] == 1
    assert r.json()["emailsSent"] == 1
    assert client.get(f"/invoices/{past['id']}").json()["status"] == "PAST_DUE"
    assert client.get(f"/invoices/{past['id']}").json()["statusLabel"] == "PAST DUE"
    assert client.get(f"/invoices/{future['id']}").json()["status"] == "PENDING"

    again = client.get("/cron/check-overdue-invoices", params={"asOf": today.isoformat()})
    assert again.json()["updatedInvoices"] == 0


def test_cron_secret_is_enforced_when_configured(client):
    client.app.state.settings.CRON_SECRET = "s3cret"

    assert client.get("/cron/check-overdue-invoices").status_code == 401
    assert client.get("/cron/check-overdue-invoices", params={"secret": "wrong"}).status_code == 401
    assert client.get("/cron/check-overdue-invoices", params={"secret": "s3cret"}).status_code == 200


def test_stats(client, committed_customer):
    for status, amount in (("PAID", 100), ("PENDING", 50), ("PAST_DUE", 25), ("CANCELLED", 10)):
        _create_invoice(client, committed_customer["id"], amount=amount, status=status)

    body = client.get("/stats").json()

    assert body["totalCustomers"] == 1
    assert body["totalInvoices"] == 4
    assert body["totalRevenue"] == 100
    assert body["pendingRevenue"] == 50
    assert body["overdueRevenue"] == 25
    assert body["invoicesByStatus"] == {"PAID": 1, "PENDING": 1, "PAST_DUE": 1, "CANCELLED": 1}
    assert len(body["monthlyRevenue"]) == 1
    assert body["monthlyRevenue"][0]["count"] == 4


def test_customer_endpoints(client):
    r = client.post(
        "/customers",
        json={"name": "Globex", "email": "ap@globex.com", "externalId": "G1"},
    )
    assert r.status_code == 201
    customer_id = r.json()["id"]

    dup = client.post("/customers", json={"name": "Globex 2", "email": "x@globex.com", "externalId": "G1"})
    assert dup.status_code == 409

    bad = client.post("/customers", json={"name": "No Email", "email": "not-an-email"})
    assert bad.status_code == 400

    _create_invoice(client, customer_id, amount=40)
    listing = client.get("/customers", params={"search": "glob"}).json()
    assert listing["total"] == 1
    assert listing["items"][0]["outstandingAmount"] == 40

    detail = client.get(f"/customers/{customer_id}").json()
    assert len(detail["invoices"]) == 1

    assert client.delete(f"/customers/{customer_id}").json() == {"success": True}
    assert client.get(f"/customers/{customer_id}").status_code == 404
    assert client.get("/invoices").json()["total"] == 0

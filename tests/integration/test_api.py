"""Integration tests for API endpoints"""

import pytest
from unittest.mock import patch
from datetime import date
from decimal import Decimal
from fastapi.testclient import TestClient
from envelope_ledger.domain.exceptions import BankFeedError
from envelope_ledger.domain.models import BankRecord


@pytest.fixture
def setup_ledger(client: TestClient, auth_headers: dict) -> dict:
    """Checking account with 1000.00 and a Groceries envelope with 300.00"""
    account = client.post(
        "/v1/accounts",
        json={"name": "Everyday", "type": "checking", "opening_balance": "1000.00"},
        headers=auth_headers,
    ).json()
    envelope = client.post(
        "/v1/envelopes",
        json={"name": "Groceries", "opening_balance": "300.00", "budgeted_amount": "400.00"},
        headers=auth_headers,
    ).json()
    return {"account_id": account["id"], "envelope_id": envelope["id"]}


def test_health_endpoint(client: TestClient):
    """Test health check endpoint"""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_metrics_endpoint(client: TestClient):
    """Test Prometheus metrics endpoint"""
    response = client.get("/metrics")
    assert response.status_code == 200
    assert "ledger_transaction_approvals_total" in response.text


def test_request_id_echoed(client: TestClient):
    response = client.get("/health", headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"
    assert client.get("/health").headers["X-Request-ID"]


@pytest.mark.parametrize("headers", [{}, {"X-User-ID": "abc"}, {"X-User-ID": "0"}])
def test_missing_or_invalid_user(client: TestClient, headers: dict):
    response = client.get("/v1/accounts", headers=headers)
    assert response.status_code == 401


def test_create_and_list_accounts(client: TestClient, auth_headers: dict, setup_ledger: dict):
    response = client.get("/v1/accounts", headers=auth_headers)

    assert response.status_code == 200
    [account] = response.json()
    assert account["balance"] == "1000.00"
    assert account["opening_balance"] == "1000.00"

    # Another user sees nothing
    assert client.get("/v1/accounts", headers={"X-User-ID": "2"}).json() == []


def test_approve_flow(client: TestClient, auth_headers: dict, setup_ledger: dict):
    """Create pending expense, approve it, approve again"""
    created = client.post(
        "/v1/transactions",
        json={
            "account_id": setup_ledger["account_id"],
            "amount": "-45.67",
            "merchant": "Countdown",
            "date": "2024-03-01",
            "envelope_id": setup_ledger["envelope_id"],
        },
        headers=auth_headers,
    )
    assert created.status_code == 201
    txn_id = created.json()["id"]
    assert created.json()["is_approved"] is False

    pending = client.get("/v1/transactions/pending", headers=auth_headers).json()
    assert [t["id"] for t in pending] == [txn_id]

    approved = client.post(f"/v1/transactions/{txn_id}/approve", headers=auth_headers)
    assert approved.status_code == 200
    assert approved.json()["is_approved"] is True

    again = client.post(f"/v1/transactions/{txn_id}/approve", headers=auth_headers)
    assert again.status_code == 409
    assert again.json()["error"] == "AlreadyProcessedError"

    [envelope] = client.get("/v1/envelopes", headers=auth_headers).json()
    assert envelope["current_balance"] == "254.33"
    [account] = client.get("/v1/accounts", headers=auth_headers).json()
    assert account["balance"] == "954.33"


def test_approve_without_envelope(client: TestClient, auth_headers: dict, setup_ledger: dict):
    txn_id = client.post(
        "/v1/transactions",
        json={"account_id": setup_ledger["account_id"], "amount": "-5.00", "merchant": "Kiosk", "date": "2024-03-01"},
        headers=auth_headers,
    ).json()["id"]

    response = client.post(f"/v1/transactions/{txn_id}/approve", headers=auth_headers)
    assert response.status_code == 422
    assert response.json()["error"] == "MissingEnvelopeError"

    response = client.post(
        f"/v1/transactions/{txn_id}/approve",
        json={"envelope_id": setup_ledger["envelope_id"]},
        headers=auth_headers,
    )
    assert response.status_code == 200
    assert response.json()["envelope_id"] == setup_ledger["envelope_id"]


def test_reject_reverse_reassign(client: TestClient, auth_headers: dict, setup_ledger: dict):
    other = client.post("/v1/envelopes", json={"name": "Dining"}, headers=auth_headers).json()
    body = {
        "account_id": setup_ledger["account_id"],
        "amount": "-20.00",
        "merchant": "Cafe",
        "date": "2024-03-01",
        "envelope_id": setup_ledger["envelope_id"],
    }

    rejected_id = client.post("/v1/transactions", json=body, headers=auth_headers).json()["id"]
    assert client.post(f"/v1/transactions/{rejected_id}/reject", headers=auth_headers).status_code == 204
    assert client.get(f"/v1/transactions/{rejected_id}", headers=auth_headers).status_code == 404

    txn_id = client.post("/v1/transactions", json={**body, "approved": True}, headers=auth_headers).json()["id"]
    assert client.post(f"/v1/transactions/{txn_id}/reject", headers=auth_headers).status_code == 409

    moved = client.post(
        f"/v1/transactions/{txn_id}/reassign", json={"envelope_id": other["id"]}, headers=auth_headers
    )
    assert moved.status_code == 200
    balances = {e["name"]: e["current_balance"] for e in client.get("/v1/envelopes", headers=auth_headers).json()}
    assert balances == {"Groceries": "300.00", "Dining": "-20.00"}

    reversed_txn = client.post(f"/v1/transactions/{txn_id}/reverse", headers=auth_headers)
    assert reversed_txn.status_code == 200
    assert reversed_txn.json()["is_approved"] is False
    assert client.get("/v1/reconciliation/integrity", headers=auth_headers).json() == {"status": "consistent"}


def test_invalid_amounts(client: TestClient, auth_headers: dict, setup_ledger: dict):
    response = client.post(
        "/v1/transactions",
        json={"account_id": setup_ledger["account_id"], "amount": "0", "merchant": "X", "date": "2024-03-01"},
        headers=auth_headers,
    )
    assert response.status_code == 422
    assert response.json()["error"] == "InvalidAmountError"

    response = client.post(
        "/v1/transactions",
        json={"account_id": setup_ledger["account_id"], "amount": "ten", "merchant": "X", "date": "2024-03-01"},
        headers=auth_headers,
    )
    assert response.status_code == 422


def test_sub_cent_amounts_rejected(client: TestClient, auth_headers: dict, setup_ledger: dict):
    account_id = setup_ledger["account_id"]
    requests = [
        ("/v1/transactions", {"account_id": account_id, "amount": "10.005", "merchant": "X", "date": "2024-03-01"}),
        (
            "/v1/transactions/import",
            {"account_id": account_id, "records": [{"date": "2024-03-01", "amount": "-4.999", "merchant": "X"}]},
        ),
        (f"/v1/envelopes/{setup_ledger['envelope_id']}/allocate", {"amount": "0.125"}),
    ]

    for url, body in requests:
        assert client.post(url, json=body, headers=auth_headers).status_code == 422
    assert client.get("/v1/transactions/pending", headers=auth_headers).json() == []

    whole_cents = client.post(
        "/v1/transactions",
        json={"account_id": account_id, "amount": "10.5", "merchant": "X", "date": "2024-03-01"},
        headers=auth_headers,
    )
    assert whole_cents.status_code == 201
    assert whole_cents.json()["amount"] == "10.50"


def test_unknown_transaction(client: TestClient, auth_headers: dict):
    response = client.post("/v1/transactions/999/approve", headers=auth_headers)
    assert response.status_code == 404
    assert response.json() == {"detail": "Transaction 999 not found", "error": "NotFoundError"}


def test_duplicate_review_flow(client: TestClient, auth_headers: dict, setup_ledger: dict):
    manual = client.post(
        "/v1/transactions",
        json={
            "account_id": setup_ledger["account_id"],
            "amount": "-45.67",
            "merchant": "Countdown Supermarket",
            "date": "2024-03-01",
            "envelope_id": setup_ledger["envelope_id"],
        },
        headers=auth_headers,
    ).json()

    imported = client.post(
        "/v1/transactions/import",
        json={
            "account_id": setup_ledger["account_id"],
            "records": [
                {"date": "2024-03-03", "amount": "-45.67", "merchant": "Countdown", "bank_transaction_id": "BNK-1"},
                {"date": "2024-03-03", "amount": "-9.99", "merchant": "Netflix", "bank_transaction_id": "BNK-2"},
            ],
        },
        headers=auth_headers,
    )
    assert imported.status_code == 200
    summary = imported.json()
    assert (summary["created"], summary["flagged"], summary["skipped"]) == (1, 1, 0)
    bank_id = summary["outcomes"][0]["transaction_id"]
    assert summary["outcomes"][0]["duplicate_of_id"] == manual["id"]

    blocked = client.post(f"/v1/transactions/{bank_id}/approve", headers=auth_headers)
    assert blocked.status_code == 409
    assert blocked.json()["error"] == "DuplicateReviewRequiredError"

    [pair] = client.get("/v1/duplicates", headers=auth_headers).json()["duplicates"]
    assert pair["bank"]["id"] == bank_id
    assert pair["manual"]["id"] == manual["id"]

    bad = client.post(f"/v1/duplicates/{bank_id}/resolve", json={"action": "ignore"}, headers=auth_headers)
    assert bad.status_code == 422

    merged = client.post(f"/v1/duplicates/{bank_id}/resolve", json={"action": "merge"}, headers=auth_headers)
    assert merged.status_code == 200
    assert merged.json()["kept_transaction_ids"] == [manual["id"]]

    verified = client.get(f"/v1/transactions/{manual['id']}", headers=auth_headers).json()
    assert verified["bank_verified"] is True
    assert verified["is_approved"] is True
    assert client.get("/v1/duplicates", headers=auth_headers).json() == {"duplicates": []}


def test_rules_and_suggestions(client: TestClient, auth_headers: dict, setup_ledger: dict):
    other = client.post("/v1/envelopes", json={"name": "Treats"}, headers=auth_headers).json()

    first = client.post(
        "/v1/rules", json={"pattern": "coun", "envelope_id": setup_ledger["envelope_id"]}, headers=auth_headers
    )
    assert first.status_code == 201
    client.post("/v1/rules", json={"pattern": "down", "envelope_id": other["id"]}, headers=auth_headers)

    suggestion = client.get("/v1/rules/suggest", params={"merchant": "Countdown"}, headers=auth_headers).json()
    assert suggestion["envelope_id"] == setup_ledger["envelope_id"]
    assert len(client.get("/v1/rules", headers=auth_headers).json()) == 2

    blank = client.post("/v1/rules", json={"pattern": "  ", "envelope_id": other["id"]}, headers=auth_headers)
    assert blank.status_code == 422
    assert blank.json()["error"] == "InvalidRequestError"


def test_recurring_distribution(client: TestClient, auth_headers: dict, setup_ledger: dict):
    savings = client.post("/v1/envelopes", json={"name": "Savings"}, headers=auth_headers).json()
    buffer = client.post("/v1/envelopes", json={"name": "Buffer"}, headers=auth_headers).json()

    template = client.post(
        "/v1/recurring",
        json={
            "account_id": setup_ledger["account_id"],
            "name": "Salary",
            "amount": "150.00",
            "frequency": "fortnightly",
            "next_date": "2024-01-05",
            "splits": [
                {"envelope_id": setup_ledger["envelope_id"], "amount": "100.00"},
                {"envelope_id": savings["id"], "amount": "50.00"},
            ],
            "surplus_envelope_id": buffer["id"],
        },
        headers=auth_headers,
    )
    assert template.status_code == 201
    template_id = template.json()["id"]

    result = client.post(
        f"/v1/recurring/{template_id}/process", json={"actual_amount": "120.00"}, headers=auth_headers
    )
    assert result.status_code == 200
    data = result.json()
    assert data["surplus"] == "-30.00"
    assert data["next_date"] == "2024-01-19"
    assert [c["amount"] for c in data["credited_envelopes"]] == ["100.00", "50.00"]

    missing = client.post("/v1/recurring/999/process", json={"actual_amount": "120.00"}, headers=auth_headers)
    assert missing.status_code == 404

    report = client.get("/v1/reconciliation", headers=auth_headers).json()
    assert report["total_bank_balance"] == "1120.00"
    assert report["total_envelope_balance"] == "420.00"
    assert report["difference"] == "700.00"
    assert report["is_reconciled"] is False
    assert {e["name"]: e["status"] for e in report["envelopes"]}["Buffer"] == "overspent"


def test_allocate_and_transfer(client: TestClient, auth_headers: dict, setup_ledger: dict):
    savings = client.post("/v1/envelopes", json={"name": "Savings"}, headers=auth_headers).json()

    allocated = client.post(
        f"/v1/envelopes/{savings['id']}/allocate", json={"amount": "700.00"}, headers=auth_headers
    )
    assert allocated.json()["current_balance"] == "700.00"

    moved = client.post(
        "/v1/envelopes/transfer",
        json={"from_envelope_id": savings["id"], "to_envelope_id": setup_ledger["envelope_id"], "amount": "25.50"},
        headers=auth_headers,
    )
    assert moved.status_code == 200
    assert moved.json()["source"]["current_balance"] == "674.50"
    assert moved.json()["destination"]["current_balance"] == "325.50"

    assert client.get("/v1/reconciliation", headers=auth_headers).json()["is_reconciled"] is True


def test_labels(client: TestClient, auth_headers: dict):
    created = client.post("/v1/labels", json={"name": "Holiday", "color": "#FF0000"}, headers=auth_headers)
    assert created.status_code == 201
    assert client.get("/v1/labels", headers=auth_headers).json() == [created.json()]

    assert client.post("/v1/labels", json={"name": "Bad", "color": "red"}, headers=auth_headers).status_code == 422


@patch("envelope_ledger.infrastructure.clients.bank_feed.BankFeedClient.get_transactions")
def test_bank_feed_sync(mock_feed, client: TestClient, auth_headers: dict, setup_ledger: dict):
    """Sync imports new records and skips ones already seen"""
    mock_feed.return_value = [
        BankRecord(date=date(2024, 3, 2), amount=Decimal("-12.00"), merchant="Cafe", bank_transaction_id="B-1"),
        BankRecord(date=date(2024, 3, 2), amount=Decimal("2500.00"), merchant="Employer", bank_transaction_id="B-2"),
    ]
    url = f"/v1/bank-feed/{setup_ledger['account_id']}/sync"

    first = client.post(url, headers=auth_headers)
    assert first.status_code == 200
    assert (first.json()["created"], first.json()["skipped"]) == (2, 0)

    second = client.post(url, headers=auth_headers).json()
    assert (second["created"], second["skipped"]) == (0, 2)
    mock_feed.assert_called_with(str(setup_ledger["account_id"]))


@patch("envelope_ledger.infrastructure.clients.bank_feed.BankFeedClient.get_transactions")
def test_bank_feed_unavailable(mock_feed, client: TestClient, auth_headers: dict, setup_ledger: dict):
    mock_feed.side_effect = BankFeedError("Bank feed timeout after 5.0s")

    response = client.post(f"/v1/bank-feed/{setup_ledger['account_id']}/sync", headers=auth_headers)

    assert response.status_code == 503
    assert response.json()["error"] == "BankFeedError"
    assert client.get("/v1/transactions/pending", headers=auth_headers).json() == []


@patch("envelope_ledger.infrastructure.clients.bank_feed.BankFeedClient.get_transactions")
def test_bank_feed_sync_unknown_account(mock_feed, client: TestClient, auth_headers: dict):
    response = client.post("/v1/bank-feed/42/sync", headers=auth_headers)

    assert response.status_code == 404
    mock_feed.assert_not_called()


@patch("envelope_ledger.infrastructure.clients.bank_feed.BankFeedClient.get_transactions")
def test_bank_feed_sync_skips_discarded_records(mock_feed, client: TestClient, auth_headers: dict, setup_ledger: dict):
    client.post(
        "/v1/transactions",
        json={
            "account_id": setup_ledger["account_id"],
            "amount": "-45.67",
            "merchant": "Countdown",
            "date": "2024-03-01",
            "envelope_id": setup_ledger["envelope_id"],
            "approved": True,
        },
        headers=auth_headers,
    )
    mock_feed.return_value = [
        BankRecord(date=date(2024, 3, 2), amount=Decimal("-45.67"), merchant="Countdown Supermarket", bank_transaction_id="B1"),
    ]
    url = f"/v1/bank-feed/{setup_ledger['account_id']}/sync"

    first = client.post(url, headers=auth_headers).json()
    assert first["flagged"] == 1
    bank_id = first["outcomes"][0]["transaction_id"]
    resolved = client.post(f"/v1/duplicates/{bank_id}/resolve", json={"action": "delete_bank"}, headers=auth_headers)
    assert resolved.status_code == 200

    second = client.post(url, headers=auth_headers).json()
    assert (second["created"], second["flagged"], second["skipped"]) == (0, 0, 1)
    assert client.get("/v1/duplicates", headers=auth_headers).json() == {"duplicates": []}
    assert client.get("/v1/transactions/pending", headers=auth_headers).json() == []

"""
Integration tests for the HTTP adapter

Exercises the FastAPI routes through TestClient.
"""

import pytest
from fastapi.testclient import TestClient

from core_exchange.api import create_app
from core_exchange.config import ExchangeConfig
from core_exchange.service import ExchangeService


@pytest.fixture
def client():
    app = create_app(ExchangeService(ExchangeConfig()))
    return TestClient(app)


@pytest.fixture
def accounts(client):
    first = client.post("/accounts").json()["data"]["account_id"]
    second = client.post("/accounts").json()["data"]["account_id"]
    return first, second


class TestExchangeAPI:
    
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
    
    def test_root(self, client):
        data = client.get("/").json()
        assert data["name"] == "Core Exchange API"
        assert "transactions" in data["endpoints"]
    
    def test_create_account(self, client):
        response = client.post("/accounts")
        assert response.status_code == 201
        assert response.json() == {
            "status": "201",
            "text": "Created",
            "message": "Account created",
            "data": {"account_id": 1}
        }
    
    def test_account_info(self, client, accounts):
        response = client.get(f"/accounts/{accounts[0]}")
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["balances"] == {"USD": "100.00", "RUB": "10000.00"}
        assert data["verified"] is False
    
    def test_unknown_account(self, client):
        response = client.get("/accounts/999")
        assert response.status_code == 404
        assert response.json()["kind"] == "ACCOUNT_NOT_FOUND"
    
    def test_propose_and_accept(self, client, accounts):
        a, b = accounts
        response = client.post("/transactions", json={
            "from_account_id": a, "to_account_id": b, "currency": "USD", "amount": "50"
        })
        assert response.status_code == 200
        transaction_id = response.json()["data"]["transaction_id"]
        
        response = client.post(f"/transactions/{transaction_id}/accept", json={"receiver_id": b})
        assert response.status_code == 200
        assert response.json()["data"]["status"] == "ACCEPTED"
        
        assert client.get(f"/accounts/{a}").json()["data"]["balances"] == {
            "USD": "50.00", "RUB": "15000.00"
        }
        assert client.get(f"/transactions/{transaction_id}").json()["data"]["status"] == "ACCEPTED"
    
    def test_reject(self, client, accounts):
        a, b = accounts
        client.post("/transactions", json={
            "from_account_id": a, "to_account_id": b, "currency": "RUB", "amount": 100
        })
        response = client.post("/transactions/1/reject", json={"receiver_id": b})
        assert response.status_code == 200
        assert response.json()["message"] == "Transaction rejected"
        
        listing = client.get(f"/accounts/{b}/transactions", params={"status": "REJECTED"})
        assert [t["id"] for t in listing.json()["data"]["transactions"]] == [1]
    
    def test_self_transfer(self, client, accounts):
        a, _ = accounts
        response = client.post("/transactions", json={
            "from_account_id": a, "to_account_id": a, "currency": "USD", "amount": "1"
        })
        assert response.status_code == 400
        assert response.json()["kind"] == "SELF_TRANSFER"
    
    def test_unknown_transaction(self, client, accounts):
        response = client.post("/transactions/999/accept", json={"receiver_id": accounts[1]})
        assert response.status_code == 404
        assert response.json()["text"] == "Not Found"
    
    def test_malformed_request(self, client):
        response = client.post("/transactions", json={"from_account_id": 1})
        assert response.status_code == 400
        body = response.json()
        assert body["kind"] == "INVALID_REQUEST"
        assert body["status"] == "400"
    
    def test_bad_amount_and_currency(self, client, accounts):
        a, b = accounts
        response = client.post("/transactions", json={
            "from_account_id": a, "to_account_id": b, "currency": "USD", "amount": "lots"
        })
        assert response.json()["kind"] == "INVALID_AMOUNT"
        
        response = client.post("/transactions", json={
            "from_account_id": a, "to_account_id": b, "currency": "EUR", "amount": "1"
        })
        assert response.json()["kind"] == "UNSUPPORTED_CURRENCY"
    
    def test_numeric_amount(self, client, accounts):
        a, b = accounts
        response = client.post("/transactions", json={
            "from_account_id": a, "to_account_id": b, "currency": "USD", "amount": 12.5
        })
        assert response.status_code == 200
        transaction_id = response.json()["data"]["transaction_id"]
        assert client.get(f"/transactions/{transaction_id}").json()["data"]["amount"] == "12.50"
    
    def test_oversized_amount(self, client, accounts):
        a, b = accounts
        response = client.post("/transactions", json={
            "from_account_id": a, "to_account_id": b, "currency": "USD", "amount": "1e30"
        })
        assert response.status_code == 400
        assert response.json()["kind"] == "INVALID_AMOUNT"
    
    def test_invalid_limit(self, client, accounts):
        response = client.get(f"/accounts/{accounts[0]}/transactions", params={"limit": -1})
        assert response.status_code == 400
        assert response.json()["kind"] == "INVALID_REQUEST"
    
    def test_correlation_id_header(self, client):
        response = client.get("/health", headers={"X-Correlation-ID": "req-42"})
        assert response.headers["X-Correlation-ID"] == "req-42"
        assert client.get("/health").headers["X-Correlation-ID"]

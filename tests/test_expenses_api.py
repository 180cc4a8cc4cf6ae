"""
Tests for the expense endpoints
"""

import pytest

EXPENSES = "/api/v1/expenses"


def create_expense(client, headers, **overrides):
    payload = {"date": "2024-03-10", "amount": 1500, "category": "Meals", "description": "Lunch"}
    payload.update(overrides)
    response = client.post(EXPENSES, json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["expense"]


class TestExpenseEndpoints:
    def test_requires_auth(self, client):
        response = client.get(EXPENSES)
        assert response.status_code == 401
        assert response.json()["error"]["code"] == "MISSING_AUTH_HEADER"

    def test_rejects_non_bearer_header(self, client):
        response = client.get(EXPENSES, headers={"Authorization": "Basic abc"})
        assert response.status_code == 401
        assert response.json()["error"]["code"] == "INVALID_AUTH_HEADER"

    def test_rejects_unknown_token(self, client):
        response = client.get(EXPENSES, headers={"Authorization": "Bearer nonsense"})
        assert response.status_code == 401
        assert response.json()["error"]["code"] == "INVALID_TOKEN"

    def test_create(self, client, auth_headers, user):
        response = client.post(
            EXPENSES,
            json={"date": "2024-03-10", "amount": 1500, "category": "Meals"},
            headers=auth_headers,
        )
        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["timestamp"]
        assert body["expense"]["user_id"] == user.id
        assert body["expense"]["category_id"] is not None

    def test_create_validation(self, client, auth_headers):
        for payload in (
            {"date": "2024-02-30", "amount": 100, "category": "Meals"},
            {"date": "2024-03-01", "amount": 0, "category": "Meals"},
            {"date": "2024-03-01", "amount": 100, "category": "   "},
            {"date": "2024-03-01", "amount": 100, "category": "Meals", "receipt_url": "http://x/y.jpg"},
            {"date": "2024-03-01", "amount": 100, "category": "Meals", "description": "x" * 501},
        ):
            response = client.post(EXPENSES, json=payload, headers=auth_headers)
            assert response.status_code == 400, payload
            assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_list_with_filters(self, client, auth_headers):
        create_expense(client, auth_headers, date="2024-03-01")
        create_expense(client, auth_headers, date="2024-03-15", category="Supplies")
        create_expense(client, auth_headers, date="2024-04-01")

        body = client.get(EXPENSES, params={"month": "2024-03"}, headers=auth_headers).json()
        assert body["count"] == 2
        assert body["filters"] == {"month": "2024-03", "category": None}

        body = client.get(EXPENSES, params={"category": "Supplies"}, headers=auth_headers).json()
        assert [e["category"] for e in body["expenses"]] == ["Supplies"]

    def test_list_rejects_bad_month(self, client, auth_headers):
        response = client.get(EXPENSES, params={"month": "March"}, headers=auth_headers)
        assert response.status_code == 400
        assert response.json()["error"]["details"]["field"] == "month"

    def test_summary(self, client, auth_headers):
        create_expense(client, auth_headers, amount=1000)
        create_expense(client, auth_headers, amount=250, category="Supplies")

        response = client.get(f"{EXPENSES}/summary", params={"month": "2024-03"}, headers=auth_headers)
        assert response.status_code == 200
        summary = response.json()["summary"]
        assert summary["total"] == 1250
        assert summary["count"] == 2

    def test_summary_requires_month(self, client, auth_headers):
        response = client.get(f"{EXPENSES}/summary", headers=auth_headers)
        assert response.status_code == 400

    def test_get_update_delete(self, client, auth_headers):
        expense = create_expense(client, auth_headers)
        url = f"{EXPENSES}/{expense['id']}"

        assert client.get(url, headers=auth_headers).json()["expense"]["id"] == expense["id"]

        updated = client.put(url, json={"amount": 2000, "category": "Supplies"}, headers=auth_headers)
        assert updated.status_code == 200
        assert updated.json()["expense"]["amount"] == 2000
        assert updated.json()["expense"]["category"] == "Supplies"

        assert client.delete(url, headers=auth_headers).status_code == 200
        assert client.get(url, headers=auth_headers).status_code == 404

    def test_update_with_no_fields(self, client, auth_headers):
        expense = create_expense(client, auth_headers)
        response = client.put(f"{EXPENSES}/{expense['id']}", json={}, headers=auth_headers)
        assert response.status_code == 400

    @pytest.mark.parametrize("field", ["date", "amount", "category"])
    def test_update_rejects_null_for_required_field(self, client, auth_headers, field):
        expense = create_expense(client, auth_headers)
        url = f"{EXPENSES}/{expense['id']}"

        response = client.put(url, json={field: None}, headers=auth_headers)
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"
        assert client.get(url, headers=auth_headers).json()["expense"][field] == expense[field]

    def test_update_clears_description_with_null(self, client, auth_headers):
        expense = create_expense(client, auth_headers)
        response = client.put(f"{EXPENSES}/{expense['id']}", json={"description": None}, headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["expense"]["description"] is None

    def test_non_integer_id(self, client, auth_headers):
        response = client.get(f"{EXPENSES}/abc", headers=auth_headers)
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_other_users_expense_is_not_found(self, client, auth_headers, other_auth_headers):
        expense = create_expense(client, auth_headers)
        url = f"{EXPENSES}/{expense['id']}"
        assert client.get(url, headers=other_auth_headers).status_code == 404
        assert client.delete(url, headers=other_auth_headers).status_code == 404
        assert client.get(EXPENSES, headers=other_auth_headers).json()["count"] == 0


class TestExpenseReceipts:
    def test_upload_and_get(self, client, auth_headers, user):
        expense = create_expense(client, auth_headers)
        url = f"{EXPENSES}/{expense['id']}/receipt"

        response = client.post(
            url,
            files={"file": ("lunch receipt.jpg", b"\xff\xd8\xff fake jpeg", "image/jpeg")},
            headers=auth_headers,
        )
        assert response.status_code == 200, response.text
        body = response.json()
        receipt_url = body["expense"]["receipt_url"]
        assert receipt_url.startswith("https://api.test/api/v1/receipts/files/users/")
        assert body["upload"]["file_key"].startswith(f"users/{user.id}/receipts/{expense['id']}/")
        assert body["upload"]["file_key"].endswith("_lunch_receipt.jpg")

        assert client.get(url, headers=auth_headers).json()["receipt_url"] == receipt_url

    def test_upload_rejects_type(self, client, auth_headers):
        expense = create_expense(client, auth_headers)
        response = client.post(
            f"{EXPENSES}/{expense['id']}/receipt",
            files={"file": ("notes.txt", b"hello", "text/plain")},
            headers=auth_headers,
        )
        assert response.status_code == 415
        assert response.json()["error"]["code"] == "INVALID_FILE_TYPE"

    def test_upload_requires_file(self, client, auth_headers):
        expense = create_expense(client, auth_headers)
        response = client.post(f"{EXPENSES}/{expense['id']}/receipt", headers=auth_headers)
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "MISSING_FILE"

    def test_upload_to_missing_expense(self, client, auth_headers):
        response = client.post(
            f"{EXPENSES}/999/receipt",
            files={"file": ("a.png", b"png", "image/png")},
            headers=auth_headers,
        )
        assert response.status_code == 404

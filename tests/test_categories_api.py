"""
Tests for the category endpoints
"""

CATEGORIES = "/api/v1/categories"


class TestCategoryEndpoints:
    def test_lists_default_categories(self, client, auth_headers):
        body = client.get(CATEGORIES, headers=auth_headers).json()
        assert body["count"] == 6
        assert body["categories"][0]["name"] == "Transportation"
        assert body["categories"][-1]["name"] == "Other"

    def test_create_get_update(self, client, auth_headers):
        response = client.post(CATEGORIES, json={"name": "Books", "icon": "📚"}, headers=auth_headers)
        assert response.status_code == 201
        category = response.json()["category"]
        assert category["display_order"] == 7

        url = f"{CATEGORIES}/{category['id']}"
        assert client.get(url, headers=auth_headers).json()["category"]["icon"] == "📚"

        response = client.put(url, json={"name": "Books & Media"}, headers=auth_headers)
        assert response.json()["category"]["name"] == "Books & Media"

    def test_update_rejects_null_name(self, client, auth_headers):
        category = client.post(CATEGORIES, json={"name": "Books", "icon": "📚"}, headers=auth_headers).json()["category"]
        response = client.put(f"{CATEGORIES}/{category['id']}", json={"name": None}, headers=auth_headers)
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_duplicate_name(self, client, auth_headers):
        response = client.post(CATEGORIES, json={"name": "Meals", "icon": "🍜"}, headers=auth_headers)
        assert response.status_code == 409
        assert response.json()["error"]["code"] == "CONFLICT"

    def test_soft_delete(self, client, auth_headers):
        category = client.post(CATEGORIES, json={"name": "Books", "icon": "📚"}, headers=auth_headers).json()["category"]

        assert client.delete(f"{CATEGORIES}/{category['id']}", headers=auth_headers).status_code == 200

        active = client.get(CATEGORIES, headers=auth_headers).json()["categories"]
        assert "Books" not in [c["name"] for c in active]
        everything = client.get(CATEGORIES, params={"includeInactive": "true"}, headers=auth_headers).json()
        assert "Books" in [c["name"] for c in everything["categories"]]

    def test_missing(self, client, auth_headers):
        assert client.get(f"{CATEGORIES}/999", headers=auth_headers).status_code == 404

"""
API tests for authentication endpoints.
"""

from django.urls import reverse

from authentication.tests.factories import UserFactory


class TestTokenObtain:
    """Tests for POST /api/v1/auth/token/."""

    def test_returns_access_and_refresh(self, api_client, db):
        UserFactory(email="login@example.com")

        response = api_client.post(
            reverse("authentication:token-obtain"),
            {"email": "login@example.com", "password": "TestPass123!"},
            format="json",
        )

        assert response.status_code == 200
        assert "access" in response.data
        assert "refresh" in response.data

    def test_rejects_wrong_password(self, api_client, db):
        UserFactory(email="login@example.com")

        response = api_client.post(
            reverse("authentication:token-obtain"),
            {"email": "login@example.com", "password": "wrong"},
            format="json",
        )

        assert response.status_code == 401


class TestCurrentUser:
    """Tests for /api/v1/auth/me/."""

    def test_requires_authentication(self, api_client, db):
        response = api_client.get(reverse("authentication:me"))

        assert response.status_code == 401

    def test_returns_current_user(self, authenticated_client, user):
        response = authenticated_client.get(reverse("authentication:me"))

        assert response.status_code == 200
        assert response.data["email"] == user.email
        assert response.data["status"] == "offline"

    def test_status_is_read_only(self, authenticated_client, user):
        response = authenticated_client.patch(
            reverse("authentication:me"),
            {"full_name": "Ada King", "status": "busy"},
            format="json",
        )

        user.refresh_from_db()
        assert response.status_code == 200
        assert user.full_name == "Ada King"
        assert user.status == "offline"

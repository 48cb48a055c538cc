"""
Tests for the users router: admin listing and IDOR protection.
"""

import pytest


class TestUserAccess:
    """Users can read themselves; admins can read anyone"""

    @pytest.mark.api
    def test_get_own_user(self, authed_client, test_user):
        """Test a user can read their own record"""
        response = authed_client.get(f"/api/users/{test_user.id}")

        assert response.status_code == 200
        assert response.json()["user"]["email"] == test_user.email

    @pytest.mark.api
    def test_cannot_read_other_user(self, authed_client, admin_user):
        """Test IDOR protection on another user's record"""
        response = authed_client.get(f"/api/users/{admin_user.id}")

        assert response.status_code == 403

    @pytest.mark.api
    def test_admin_reads_any_user(self, admin_client, test_user):
        """Test admins bypass the ownership check"""
        response = admin_client.get(f"/api/users/{test_user.id}")

        assert response.status_code == 200
        assert response.json()["user"]["academic_profile"]["cgpa"] == 8.5

    @pytest.mark.api
    def test_admin_missing_user_404(self, admin_client):
        """Test unknown ids are 404 for admins"""
        response = admin_client.get("/api/users/does-not-exist")

        assert response.status_code == 404


class TestUserListing:
    """Admin-only user listing"""

    @pytest.mark.api
    def test_list_requires_admin(self, authed_client):
        """Test students cannot list users"""
        response = authed_client.get("/api/users/")

        assert response.status_code == 403

    @pytest.mark.api
    def test_list_paginates(self, admin_client, test_user, admin_user):
        """Test listing returns users with pagination info"""
        response = admin_client.get("/api/users/?page=1&limit=1")

        assert response.status_code == 200
        data = response.json()
        assert len(data["users"]) == 1
        assert data["pagination"]["total"] == 2
        assert data["pagination"]["pages"] == 2

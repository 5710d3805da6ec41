"""Tests for User CRUD endpoints."""
from tests.conftest import create_test_user


class TestUserCRUD:
    """User create / get / update / list."""

    def test_create_user(self, client):
        data = create_test_user(client, name="Alice", blood_group="ab+", district="Khulna")
        assert data["name"] == "Alice"
        assert data["blood_group"] == "AB+"
        assert data["district"] == "Khulna"
        assert data["role"] == "donor"
        assert data["status"] == "active"
        assert data["is_available"] is True
        assert data["total_donations"] == 0
        assert "user_id" in data

    def test_get_user(self, client):
        user = create_test_user(client)
        resp = client.get(f"/api/users/{user['user_id']}")
        assert resp.status_code == 200
        assert resp.json()["name"] == "Test User"

    def test_get_user_not_found(self, client):
        resp = client.get("/api/users/00000000-0000-0000-0000-000000000000")
        assert resp.status_code == 404

    def test_update_user(self, client):
        user = create_test_user(client)
        resp = client.patch(f"/api/users/{user['user_id']}", json={
            "name": "Updated Name",
            "is_available": False,
            "status": "blocked",
        })
        assert resp.status_code == 200
        assert resp.json()["name"] == "Updated Name"
        assert resp.json()["is_available"] is False
        assert resp.json()["status"] == "blocked"

    def test_list_users(self, client):
        create_test_user(client, name="Alice")
        create_test_user(client, name="Bob", blood_group="B-")
        create_test_user(client, name="Vera", role="volunteer")
        resp = client.get("/api/users/")
        assert resp.status_code == 200
        names = sorted(u["name"] for u in resp.json())
        assert names == ["Alice", "Bob", "Vera"]

    def test_list_users_filtered(self, client):
        create_test_user(client, name="Alice")
        create_test_user(client, name="Bob", blood_group="B-")
        create_test_user(client, name="Vera", role="volunteer")
        donors = client.get("/api/users/", params={"role": "donor", "blood_group": "o+"}).json()
        assert [u["name"] for u in donors] == ["Alice"]


class TestUserValidation:

    def test_duplicate_email(self, client):
        create_test_user(client, name="Alice")
        resp = client.post("/api/users/", json={"name": "Alice Again", "email": "alice@example.com"})
        assert resp.status_code == 409

    def test_invalid_role(self, client):
        resp = client.post("/api/users/", json={"name": "Root", "email": "root@example.com", "role": "superuser"})
        assert resp.status_code == 400

    def test_invalid_blood_group(self, client):
        resp = client.post("/api/users/", json={"name": "X", "email": "x@example.com", "blood_group": "Z+"})
        assert resp.status_code == 400

    def test_invalid_status_update(self, client):
        user = create_test_user(client)
        resp = client.patch(f"/api/users/{user['user_id']}", json={"status": "suspended"})
        assert resp.status_code == 400


class TestCompatibility:

    def test_o_negative_donates_to_everyone(self, client):
        user = create_test_user(client, name="Universal", blood_group="O-")
        data = client.get(f"/api/users/{user['user_id']}/compatibility").json()
        assert data["can_receive_from"] == ["O-"]
        assert len(data["can_donate_to"]) == 8

    def test_ab_positive_receives_from_everyone(self, client):
        user = create_test_user(client, name="Receiver", blood_group="AB+")
        data = client.get(f"/api/users/{user['user_id']}/compatibility").json()
        assert len(data["can_receive_from"]) == 8
        assert data["can_donate_to"] == ["AB+"]

    def test_no_blood_group(self, client):
        user = create_test_user(client, name="Staff", role="admin", blood_group=None)
        data = client.get(f"/api/users/{user['user_id']}/compatibility").json()
        assert data == {"blood_group": None, "can_receive_from": [], "can_donate_to": []}

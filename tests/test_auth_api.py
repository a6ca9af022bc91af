import pytest


@pytest.mark.api
class TestAuth:

    def test_register_signs_in(self, client):
        resp = client.post("/auth/register", json={
            "email": "new@example.com", "password": "hunter22", "fullName": "New Learner",
        })
        assert resp.status_code == 201
        profile = resp.get_json()["profile"]
        assert profile["email"] == "new@example.com"
        assert profile["isPremium"] is False

        me = client.get("/auth/me")
        assert me.status_code == 200
        assert me.get_json()["courseLimit"] == 1

    def test_register_duplicate_email(self, client, user):
        resp = client.post("/auth/register", json={"email": "Learner@Example.com", "password": "hunter22"})
        assert resp.status_code == 409

    def test_register_short_password(self, client):
        resp = client.post("/auth/register", json={"email": "x@example.com", "password": "123"})
        assert resp.status_code == 400

    def test_login_wrong_password(self, client, user):
        resp = client.post("/auth/login", json={"email": "learner@example.com", "password": "nope"})
        assert resp.status_code == 401
        assert resp.get_json() == {"error": "Invalid email or password"}

    def test_logout(self, auth_client):
        assert auth_client.post("/auth/logout").status_code == 200
        assert auth_client.get("/auth/me").status_code == 401

    def test_me_requires_login(self, client):
        resp = client.get("/auth/me")
        assert resp.status_code == 401
        assert resp.get_json() == {"error": "You must be logged in"}

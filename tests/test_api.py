from datetime import date

import pytest
from sqlalchemy.exc import OperationalError

import lifecycle
import reporting
from models import ASSET_BORROWED, ASSET_PENDING, BORROW_APPROVED, Asset, Borrowing

BORROW_BODY = {"borrow_date": "2025-03-03", "return_date": "2025-03-10"}


def login(client, username, password="pw1"):
    return client.post("/login", json={"username": username, "password": password})


@pytest.fixture
def pending_borrow(session, student, make_asset):
    asset = make_asset()
    borrow_id = lifecycle.submit_borrow_request(
        session, student, asset.id, date(2025, 3, 3), date(2025, 3, 10)
    )
    return borrow_id, asset.id


class TestAuth:
    def test_register_then_login(self, client):
        response = client.post("/register", json={"username": "alice", "password": "pw1"})
        assert response.status_code == 201
        assert response.json() == {"message": "Register successful!"}

        response = login(client, "alice")
        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Login successful"
        assert body["user"]["username"] == "alice"
        assert body["user"]["role"] == "student"

        me = client.get("/me").json()
        assert me["loggedIn"] is True
        assert me["user"]["id"] == body["user"]["id"]

    def test_register_duplicate(self, client):
        client.post("/register", json={"username": "alice", "password": "pw1"})

        response = client.post("/register", json={"username": "alice", "password": "pw2"})

        assert response.status_code == 400
        assert response.json() == {"message": "Username already exists"}

    def test_register_missing_fields(self, client):
        response = client.post("/register", json={"username": "alice"})

        assert response.status_code == 400
        assert response.json() == {"message": "Username and password required"}

    def test_login_unknown_user(self, client):
        response = login(client, "ghost")

        assert response.status_code == 400
        assert response.json() == {"message": "User not found"}

    def test_wrong_password_sets_no_session(self, client, student):
        response = login(client, "alice", "wrong")

        assert response.status_code == 401
        assert response.json() == {"message": "Invalid password"}
        assert client.get("/me").json() == {"loggedIn": False}

    def test_logout_ends_session(self, client, student):
        login(client, "alice")

        response = client.post("/logout")

        assert response.status_code == 200
        assert client.get("/me").json() == {"loggedIn": False}

    def test_cookie_copied_before_logout_is_rejected(self, client, student):
        token = login(client, "alice").cookies["session"]
        headers = {"Cookie": f"session={token}"}
        assert client.get("/me", headers=headers).json()["loggedIn"] is True

        client.post("/logout")

        assert client.get("/me", headers=headers).json() == {"loggedIn": False}
        assert client.get("/api/history", headers=headers).status_code == 401

        login(client, "alice")
        assert client.get("/me").json()["loggedIn"] is True

    def test_tampered_cookie_is_ignored(self, client, student):
        headers = {"Cookie": "session=not-a-signed-token"}

        assert client.get("/me", headers=headers).json() == {"loggedIn": False}
        assert client.get("/api/history", headers=headers).status_code == 401


class TestBorrow:
    def test_requires_session(self, client, make_asset):
        asset = make_asset()

        response = client.post("/api/borrow", json={"asset_id": asset.id, **BORROW_BODY})

        assert response.status_code == 401
        assert response.json() == {"message": "Unauthorized: please login first"}

    def test_submit_and_repeat(self, client, session, student, make_asset):
        first = make_asset("Projector")
        second = make_asset("Camera")
        login(client, "alice")

        response = client.post("/api/borrow", json={"asset_id": first.id, **BORROW_BODY})
        assert response.status_code == 200
        assert response.json()["message"] == "Borrow request submitted successfully"
        assert session.get(Asset, first.id).status == ASSET_PENDING

        response = client.post("/api/borrow", json={"asset_id": second.id, **BORROW_BODY})
        assert response.status_code == 400
        assert response.json() == {"message": "You already have an active borrow request"}

        check = client.get("/api/borrow-requests/check").json()
        assert check["hasActiveRequest"] is True
        assert check["requests"][0]["asset_name"] == "Projector"

    def test_missing_fields(self, client, student):
        login(client, "alice")

        response = client.post("/api/borrow", json={"asset_id": 1})

        assert response.status_code == 400
        assert response.json() == {"message": "Missing required fields"}

    def test_malformed_date(self, client, student):
        login(client, "alice")

        response = client.post(
            "/api/borrow",
            json={"asset_id": 1, "borrow_date": "someday", "return_date": "2025-03-10"},
        )

        assert response.status_code == 400
        assert "borrow_date" in response.json()["message"]

    def test_unknown_asset(self, client, student):
        login(client, "alice")

        response = client.post("/api/borrow", json={"asset_id": 99, **BORROW_BODY})

        assert response.status_code == 404
        assert response.json() == {"message": "Asset not found"}

    def test_unavailable_asset(self, client, student, make_asset):
        asset = make_asset(status=ASSET_BORROWED)
        login(client, "alice")

        response = client.post("/api/borrow", json={"asset_id": asset.id, **BORROW_BODY})

        assert response.status_code == 400
        assert response.json() == {"message": "Asset not available"}


class TestDecide:
    def test_requires_session(self, client, pending_borrow):
        borrow_id, _ = pending_borrow

        response = client.patch(f"/api/borrow/{borrow_id}", json={"status": "Approved"})

        assert response.status_code == 401

    def test_student_is_forbidden(self, client, session, pending_borrow):
        borrow_id, _ = pending_borrow
        login(client, "alice")

        response = client.patch(f"/api/borrow/{borrow_id}", json={"status": "Approved"})

        assert response.status_code == 403
        assert session.get(Borrowing, borrow_id).status == "Pending"

    def test_invalid_status(self, client, lender, pending_borrow):
        borrow_id, _ = pending_borrow
        login(client, "lena")

        response = client.patch(f"/api/borrow/{borrow_id}", json={"status": "Returned"})

        assert response.status_code == 400

    def test_approve_once(self, client, session, lender, pending_borrow):
        borrow_id, asset_id = pending_borrow
        login(client, "lena")

        response = client.patch(f"/api/borrow/{borrow_id}", json={"status": "Approved"})
        assert response.status_code == 200
        assert response.json()["status"] == BORROW_APPROVED
        assert session.get(Asset, asset_id).status == ASSET_BORROWED

        response = client.patch(f"/api/borrow/{borrow_id}", json={"status": "Approved"})
        assert response.status_code == 404
        assert response.json() == {"message": "Borrow request not found or already processed"}

    def test_disapprove(self, client, session, lender, pending_borrow):
        borrow_id, asset_id = pending_borrow
        login(client, "lena")

        response = client.patch(f"/api/borrow/{borrow_id}", json={"status": "Disapproved"})

        assert response.status_code == 200
        borrowing = session.get(Borrowing, borrow_id)
        assert (borrowing.status, borrowing.returned) == ("Disapproved", True)
        assert session.get(Asset, asset_id).status == "Available"


class TestViews:
    def test_list_assets(self, client, make_asset):
        make_asset("Projector")

        response = client.get("/api/asset")

        assert response.status_code == 200
        assert response.json() == [{"id": 1, "asset_name": "Projector", "status": "Available"}]

    def test_history_requires_session(self, client):
        response = client.get("/api/history")

        assert response.status_code == 401

    def test_history_after_decision(self, client, session, lender, pending_borrow):
        borrow_id, _ = pending_borrow
        lifecycle.decide(session, lender, borrow_id, BORROW_APPROVED)
        login(client, "alice")

        records = client.get("/api/history").json()

        assert [r["id"] for r in records] == [borrow_id]
        assert records[0]["borrow_date"] == "2025-03-03"

    def test_pending_queue_and_dashboard_are_public(self, client, pending_borrow):
        borrow_id, _ = pending_borrow

        queue = client.get("/api/checkrequest").json()
        assert [(r["id"], r["username"]) for r in queue] == [(borrow_id, "alice")]

        assert client.get("/api/dashboard").json() == {
            "Available": 0,
            "Borrowed": 0,
            "Disabled": 0,
        }

    def test_store_failure_is_generic_500(self, client, monkeypatch):
        def broken(session):
            raise OperationalError("SELECT * FROM assets", {}, Exception("disk I/O error"))

        monkeypatch.setattr(reporting, "list_assets", broken)

        response = client.get("/api/asset")

        assert response.status_code == 500
        assert response.json() == {"message": "Server error"}


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["database"] == "connected"
    assert body["timestamp"]

import pytest
from unittest.mock import patch
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from clubs_backend.database import get_db
from clubs_backend.model.club import MembershipRequest
from clubs_backend.permissions.core import db_set_config_flag
from clubs_backend.permissions.flags import MAINTENANCE_ENABLED
from clubs_backend.server import create_app
from clubs_backend.tests.fixtures import (
    TEST_USER_HEADER,
    HeaderIdentityProvider,
    bind_role,
    make_club,
    make_request,
    make_user,
)


@pytest.fixture
def client(db, Session):
    app = create_app(provider=HeaderIdentityProvider(), session_factory=Session, enable_route_gate=True)

    def override_get_db():
        session = Session()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    return TestClient(app)


@pytest.fixture
def club(db):
    return make_club(db, "Club A", city="Lyon")


@pytest.fixture
def admin(db):
    user = make_user(db, "admin")
    bind_role(db, user.id, "admin")
    return user


@pytest.fixture
def requester(db):
    return make_user(db, "requester", full_name="Rita Requester")


def as_user(user) -> dict:
    return {TEST_USER_HEADER: user.id}


class TestGateMiddleware:

    def test_dashboard_redirects_to_signin(self, client):
        response = client.get("/dashboard/profile", follow_redirects=False)

        assert response.status_code == 307
        assert response.headers["location"] == "/signin?redirect=/dashboard/profile"

    def test_admin_api_without_session(self, client):
        response = client.get("/api/admin/clubs/membership-requests")

        assert response.status_code == 401
        assert response.json() == {"success": False, "error": "Not authenticated"}

    def test_maintenance_redirect(self, client, db):
        db_set_config_flag(MAINTENANCE_ENABLED, True, db)

        response = client.get("/dashboard", follow_redirects=False)

        assert response.headers["location"] == "/maintenance"

    def test_public_settings(self, client, db):
        assert client.get("/api/site-settings/public").json() == {"maintenance.enabled": False}

        db_set_config_flag(MAINTENANCE_ENABLED, True, db)

        assert client.get("/api/site-settings/public").json() == {"maintenance.enabled": True}


class TestReviewEndpoint:

    def url(self, request_id):
        return f"/api/admin/clubs/membership-requests/{request_id}"

    def test_admin_approves(self, client, db, admin, requester, club):
        request = make_request(db, requester.id, club.id)

        response = client.patch(self.url(request.id), json={"action": "approve"}, headers=as_user(admin))

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"]["requestId"] == request.id
        assert body["data"]["status"] == "approved"
        assert body["data"]["warnings"] == []

        db.expire_all()
        assert db.get(MembershipRequest, request.id).status == "approved"

    def test_second_review_conflicts(self, client, db, admin, requester, club):
        request = make_request(db, requester.id, club.id)
        client.patch(self.url(request.id), json={"action": "approve"}, headers=as_user(admin))

        response = client.patch(self.url(request.id), json={"action": "reject"}, headers=as_user(admin))

        assert response.status_code == 409
        assert response.json() == {"success": False, "error": "already reviewed"}

    def test_coach_of_another_club(self, client, db, requester, club):
        other = make_club(db, "Club B")
        coach = make_user(db, "coach")
        bind_role(db, coach.id, "coach", other.id)
        request = make_request(db, requester.id, club.id)

        response = client.patch(self.url(request.id), json={"action": "approve"}, headers=as_user(coach))

        assert response.status_code == 403
        assert response.json()["error"] == "not authorized for this club"

    def test_invalid_action(self, client, db, admin, requester, club):
        request = make_request(db, requester.id, club.id)

        response = client.patch(self.url(request.id), json={"action": "maybe"}, headers=as_user(admin))

        assert response.status_code == 400
        assert response.json()["success"] is False

    def test_reviewer_roles_unreadable(self, client, db, admin, requester, club):
        request = make_request(db, requester.id, club.id)

        with patch(
            "clubs_backend.permissions.resolver.db_find_role_bindings",
            side_effect=OperationalError("SELECT", {}, Exception("down")),
        ):
            response = client.patch(self.url(request.id), json={"action": "approve"}, headers=as_user(admin))

        assert response.status_code == 503
        assert response.json()["success"] is False

    def test_unknown_request(self, client, admin):
        response = client.patch(self.url("missing"), json={"action": "approve"}, headers=as_user(admin))

        assert response.status_code == 404


class TestReviewerQueues:

    def test_pending_summary_requires_admin(self, client, db, requester):
        response = client.get("/api/admin/clubs/membership-requests", headers=as_user(requester))

        assert response.status_code == 403

    def test_pending_summary(self, client, db, admin, requester, club):
        make_request(db, requester.id, club.id)

        body = client.get("/api/admin/clubs/membership-requests", headers=as_user(admin)).json()

        assert body["data"]["totalPending"] == 1
        assert body["data"]["byClub"][0]["clubName"] == "Club A"

    def test_club_queue_for_its_coach(self, client, db, requester, club):
        coach = make_user(db, "coach")
        bind_role(db, coach.id, "coach", club.id)
        make_request(db, requester.id, club.id)

        response = client.get(f"/api/admin/clubs/{club.id}/membership-requests", headers=as_user(coach))

        assert response.status_code == 200
        [entry] = response.json()["data"]
        assert entry["fullName"] == "Rita Requester"
        assert entry["email"] == "requester@example.org"

    def test_club_queue_for_other_coach(self, client, db, club):
        coach = make_user(db, "coach")
        bind_role(db, coach.id, "coach", make_club(db, "Club B").id)

        response = client.get(f"/api/admin/clubs/{club.id}/membership-requests", headers=as_user(coach))

        assert response.status_code == 403


class TestClubEndpoints:

    def test_request_membership(self, client, db, requester, club):
        response = client.post("/api/clubs/request-membership", json={"clubId": club.id}, headers=as_user(requester))

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["status"] == "pending"
        assert data["clubName"] == "Club A"

        again = client.post("/api/clubs/request-membership", json={"clubId": club.id}, headers=as_user(requester))
        assert again.status_code == 409
        assert again.json()["error"] == "already pending"

    def test_request_membership_requires_principal(self, client, club):
        response = client.post("/api/clubs/request-membership", json={"clubId": club.id})

        assert response.status_code == 401
        assert response.json() == {"success": False, "error": "Not authenticated"}

    def test_membership_status(self, client, db, requester, club):
        make_request(db, requester.id, club.id)

        data = client.get("/api/clubs/membership-status", headers=as_user(requester)).json()["data"]

        assert data["hasClub"] is False
        assert [r["clubId"] for r in data["pendingRequests"]] == [club.id]

    def test_my_club(self, client, db, requester, club):
        bind_role(db, requester.id, "student", club.id)

        data = client.get("/api/clubs/my-club", headers=as_user(requester)).json()["data"]

        assert data == {"clubId": club.id, "name": "Club A", "slug": "club-a", "city": "Lyon"}

    def test_my_club_without_club(self, client, requester):
        assert client.get("/api/clubs/my-club", headers=as_user(requester)).json() == {"success": True, "data": None}

    def test_contact_visibility(self, client, db, requester, club):
        url = "/api/clubs/contact-visibility"
        assert client.get(url, headers=as_user(requester)).json()["data"] == {"canViewContact": False}

        bind_role(db, requester.id, "student", club.id)
        assert client.get(url, headers=as_user(requester)).json()["data"] == {"canViewContact": True}


class TestCoachRole:

    def test_coach(self, client, db, club):
        coach = make_user(db, "coach")
        bind_role(db, coach.id, "coach", club.id)

        body = client.get("/api/admin/user-role", headers=as_user(coach)).json()

        assert body == {"success": True, "isCoach": True, "coachClubId": club.id}

    def test_not_a_coach(self, client, requester):
        body = client.get("/api/admin/user-role", headers=as_user(requester)).json()

        assert body == {"success": True, "isCoach": False, "coachClubId": None}

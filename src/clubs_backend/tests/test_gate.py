import time
import pytest
from unittest.mock import patch
from sqlalchemy.exc import OperationalError

from clubs_backend.auth.providers import SessionRecord
from clubs_backend.permissions.core import db_set_config_flag
from clubs_backend.permissions.flags import MAINTENANCE_ENABLED, SHOP_HIDDEN, ConfigFlags, flag_value_as_bool
from clubs_backend.permissions.gate import GateConfig, GateOutcome, GateRequest, RouteGate, path_under
from clubs_backend.permissions.resolver import RoleResolver
from clubs_backend.tests.fixtures import bind_role, make_user, usable_session


@pytest.fixture
def users(db):
    users = {"anonymous": None}
    for role in ["developer", "admin", "moderator", "coach", "student"]:
        user = make_user(db, role)
        bind_role(db, user.id, role)
        users[role] = user.id
    users["nobody"] = make_user(db, "nobody").id
    return users


def decide(db, path, user_id=None, session=None, session_error=None):
    if session is None and user_id is not None:
        session = usable_session(user_id)
    gate = RouteGate(RoleResolver(db), ConfigFlags(db), GateConfig())
    return gate.decide(GateRequest(path=path, session=session, session_error=session_error))


def set_flag(db, key, value=True):
    db_set_config_flag(key, value, db)


@pytest.mark.parametrize("path", ["/", "/blog/news", "/clubs/lyon", "/api/clubs/my-club"])
def test_public_paths_are_allowed(db, users, path):
    assert decide(db, path).outcome == GateOutcome.ALLOW


def test_dashboard_requires_session(db, users):
    decision = decide(db, "/dashboard/profile")

    assert decision.outcome == GateOutcome.REDIRECT
    assert decision.location() == "/signin?redirect=/dashboard/profile"


def test_dashboard_with_session(db, users):
    assert decide(db, "/dashboard/profile", users["nobody"]).outcome == GateOutcome.ALLOW


def test_expired_session_is_anonymous(db, users):
    expired = SessionRecord(user_id=users["admin"], access_token="t", expires_at=int(time.time()) - 1)
    decision = decide(db, "/dashboard", session=expired)

    assert decision.location() == "/signin?redirect=/dashboard"


def test_session_error_is_anonymous(db, users):
    decision = decide(db, "/dashboard", session=usable_session(users["admin"]), session_error=RuntimeError("refresh"))

    assert decision.location() == "/signin?redirect=/dashboard"


@pytest.mark.parametrize("role", ["developer", "admin"])
def test_admin_area_allows_admins(db, users, role):
    assert decide(db, "/admin/clubs", users[role]).outcome == GateOutcome.ALLOW


@pytest.mark.parametrize("role", ["moderator", "coach", "student", "nobody"])
def test_admin_area_rejects_others(db, users, role):
    decision = decide(db, "/admin/clubs", users[role])

    assert decision.outcome == GateOutcome.REDIRECT
    assert decision.location() == "/dashboard?error=unauthorized"


def test_admin_area_requires_session(db, users):
    assert decide(db, "/admin").location() == "/signin?redirect=/admin"


def test_admin_prefix_matches_whole_segments(db, users):
    assert decide(db, "/administration-fees").outcome == GateOutcome.ALLOW


def test_admin_api_requires_session(db, users):
    decision = decide(db, "/api/admin/clubs/membership-requests")

    assert decision.outcome == GateOutcome.DENY
    assert decision.status_code == 401


def test_admin_api_leaves_role_checks_to_handlers(db, users):
    assert decide(db, "/api/admin/user-role", users["coach"]).outcome == GateOutcome.ALLOW


@pytest.mark.parametrize("path", ["/signin", "/signup"])
def test_signed_in_principal_skips_signin(db, users, path):
    assert decide(db, path, users["admin"]).location() == "/dashboard"


@pytest.mark.parametrize("path", ["/signin", "/signup"])
def test_anonymous_may_sign_in(db, users, path):
    assert decide(db, path).outcome == GateOutcome.ALLOW


class TestMaintenance:

    @pytest.fixture(autouse=True)
    def maintenance(self, db):
        set_flag(db, MAINTENANCE_ENABLED)

    @pytest.mark.parametrize("path", ["/", "/dashboard", "/shop", "/signup", "/blog/post"])
    def test_anonymous_is_sent_to_maintenance(self, db, users, path):
        assert decide(db, path).location() == "/maintenance"

    @pytest.mark.parametrize("role", ["moderator", "coach", "student", "nobody"])
    def test_maintenance_dominates_admin_area(self, db, users, role):
        assert decide(db, "/admin/users", users[role]).location() == "/maintenance"

    @pytest.mark.parametrize("role", ["developer", "admin"])
    def test_elevated_principals_pass(self, db, users, role):
        assert decide(db, "/admin/users", users[role]).outcome == GateOutcome.ALLOW
        assert decide(db, "/", users[role]).outcome == GateOutcome.ALLOW

    @pytest.mark.parametrize("path", ["/api/site-settings/public", "/maintenance", "/signin"])
    def test_exempt_paths(self, db, users, path):
        assert decide(db, path).outcome == GateOutcome.ALLOW

    def test_admin_api_is_exempt_but_still_gated(self, db, users):
        assert decide(db, "/api/admin/user-role").outcome == GateOutcome.DENY


class TestHiddenShop:

    @pytest.fixture(autouse=True)
    def shop_hidden(self, db):
        set_flag(db, SHOP_HIDDEN)

    @pytest.mark.parametrize("path", ["/shop", "/shop/t-shirt", "/cart", "/checkout/pay"])
    def test_shop_redirects_to_home(self, db, users, path):
        assert decide(db, path).location() == "/"

    def test_admin_is_not_enough(self, db, users):
        assert decide(db, "/shop", users["admin"]).location() == "/"

    def test_developer_sees_shop(self, db, users):
        assert decide(db, "/shop", users["developer"]).outcome == GateOutcome.ALLOW

    def test_shop_visible_when_flag_off(self, db, users):
        set_flag(db, SHOP_HIDDEN, False)
        assert decide(db, "/shop").outcome == GateOutcome.ALLOW


def test_unreadable_flags_count_as_off(db, users):
    with patch(
        "clubs_backend.permissions.flags.db_get_config_flag",
        side_effect=OperationalError("SELECT", {}, Exception("down")),
    ):
        assert decide(db, "/").outcome == GateOutcome.ALLOW
        assert decide(db, "/shop").outcome == GateOutcome.ALLOW


def test_flags_are_read_per_request(db, users):
    assert decide(db, "/").outcome == GateOutcome.ALLOW
    set_flag(db, MAINTENANCE_ENABLED)
    assert decide(db, "/").location() == "/maintenance"
    set_flag(db, MAINTENANCE_ENABLED, False)
    assert decide(db, "/").outcome == GateOutcome.ALLOW


@pytest.mark.parametrize("value,expected", [
    (True, True), ("true", True), ("on", True), (1, True), ({"enabled": True}, True),
    (False, False), ("false", False), (0, False), (None, False), ([], False),
])
def test_flag_values(value, expected):
    assert flag_value_as_bool(value) is expected


def test_path_under():
    assert path_under("/admin", "/admin")
    assert path_under("/admin/x", "/admin/")
    assert not path_under("/administer", "/admin")

import pytest

from nurushop.core.exceptions import ForbiddenError, UnauthorizedError
from nurushop.core.security import create_admin_token, hash_password, load_admin_token, verify_password
from nurushop.models.admin_user import AdminRole
from nurushop.services.admins import AdminIdentity, require_role, token_from_request


def test_password_hash_round_trip():
    h = hash_password("s3cret")
    assert verify_password("s3cret", h)
    assert not verify_password("wrong", h)
    assert not verify_password("s3cret", "not-a-hash")


def test_token_tamper_and_expiry():
    token = create_admin_token({"admin_id": "abc", "role": "senior"})
    assert load_admin_token(token) == {"admin_id": "abc", "role": "senior"}
    assert load_admin_token(token + "x") is None
    assert load_admin_token(token, max_age_seconds=-1) is None


def test_bearer_wins_over_cookie():
    assert token_from_request("Bearer abc", {"nurushop_admin": "def"}) == "abc"
    assert token_from_request(None, {"nurushop_admin": "def"}) == "def"
    assert token_from_request("Basic xyz", {}) is None


def test_require_role():
    senior = AdminIdentity(admin_id="1", role=AdminRole.SENIOR)
    sub = AdminIdentity(admin_id="2", role=AdminRole.SUB)
    assert require_role(senior, AdminRole.SENIOR) is senior
    assert require_role(senior, AdminRole.SUB) is senior
    assert require_role(sub, AdminRole.SUB) is sub
    with pytest.raises(ForbiddenError):
        require_role(sub, AdminRole.SENIOR)
    with pytest.raises(UnauthorizedError):
        require_role(None, AdminRole.SUB)

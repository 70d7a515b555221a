"""Admin accounts, session identity and the role gate."""

from dataclasses import dataclass

from bson import ObjectId

from nurushop.core.exceptions import BadRequestError, ConflictError, ForbiddenError, UnauthorizedError
from nurushop.core.logging import get_logger
from nurushop.core.security import (
    ADMIN_COOKIE_NAME,
    create_admin_token,
    hash_password,
    load_admin_token,
    verify_password,
)
from nurushop.models.admin_user import AdminRole, AdminUser

log = get_logger(__name__)


@dataclass(frozen=True)
class AdminIdentity:
    admin_id: str
    role: AdminRole
    name: str = ""
    email: str = ""

    def as_dict(self) -> dict:
        return {"adminId": self.admin_id, "role": self.role.value, "name": self.name, "email": self.email}


def _identity(admin: AdminUser) -> AdminIdentity:
    return AdminIdentity(admin_id=str(admin.id), role=admin.role, name=admin.name, email=admin.email)


def token_from_request(authorization: str | None, cookies: dict[str, str]) -> str | None:
    """Bearer header wins over the session cookie."""
    if authorization and authorization.startswith("Bearer "):
        token = authorization[len("Bearer "):].strip()
        if token:
            return token
    return cookies.get(ADMIN_COOKIE_NAME) or None


async def resolve_admin(token: str | None) -> AdminIdentity | None:
    """Decode a signed session token into the admin it belongs to.

    Returns None for a missing, tampered or expired token, or one whose admin
    no longer exists. The role is read from the admin record so a demotion
    takes effect without waiting for the token to expire.
    """
    if not token:
        return None
    payload = load_admin_token(token)
    if not payload:
        return None
    admin_id = payload.get("admin_id")
    if not admin_id or not ObjectId.is_valid(admin_id):
        return None
    admin = await AdminUser.get(admin_id)
    if not admin:
        return None
    return _identity(admin)


def require_role(identity: AdminIdentity | None, min_role: AdminRole) -> AdminIdentity:
    if identity is None:
        raise UnauthorizedError("Unauthorized")
    if identity.role.rank < min_role.rank:
        raise ForbiddenError("Forbidden")
    return identity


def require_senior(identity: AdminIdentity | None) -> AdminIdentity:
    return require_role(identity, AdminRole.SENIOR)


async def create_admin(email: str, password: str, name: str = "", role: AdminRole = AdminRole.SUB) -> AdminUser:
    email = (email or "").strip().lower()
    if not email or not password:
        raise BadRequestError("Email and password required")
    if await AdminUser.find_one(AdminUser.email == email):
        raise ConflictError("Admin already exists")
    admin = AdminUser(email=email, name=name, role=role, password_hash=hash_password(password))
    await admin.insert()
    log.info("admin_created", admin_id=str(admin.id), role=role.value)
    return admin


async def login(email: str, password: str) -> tuple[AdminIdentity, str]:
    """Verify credentials; return identity and a signed session token."""
    email = (email or "").strip().lower()
    if not email or not password:
        raise BadRequestError("Email and password required")
    admin = await AdminUser.find_one(AdminUser.email == email)
    if not admin or not verify_password(password, admin.password_hash or ""):
        log.info("admin_login_failed", email=email)
        raise UnauthorizedError("Invalid email or password")
    identity = _identity(admin)
    token = create_admin_token({"admin_id": identity.admin_id, "role": identity.role.value})
    log.info("admin_login", admin_id=identity.admin_id, role=identity.role.value)
    return identity, token


async def senior_admin_ids() -> list[str]:
    admins = await AdminUser.find(AdminUser.role == AdminRole.SENIOR).to_list()
    return [str(a.id) for a in admins]

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel

from nurushop.core.config import get_settings
from nurushop.core.security import ADMIN_COOKIE_NAME
from nurushop.deps import rate_limited
from nurushop.services import admins as admin_service

router = APIRouter()


class LoginRequest(BaseModel):
    email: str = ""
    password: str = ""


@router.post("/login", dependencies=[Depends(rate_limited("login"))])
async def admin_login(body: LoginRequest, response: Response):
    """Exchange email/password for an admin session; sets httpOnly cookie and returns the token for bearer use."""
    settings = get_settings()
    identity, token = await admin_service.login(body.email, body.password)
    response.set_cookie(
        key=ADMIN_COOKIE_NAME,
        value=token,
        max_age=settings.admin_session_max_age,
        httponly=True,
        secure=settings.env == "production",
        samesite="lax",
        path="/",
    )
    return {"success": True, "admin": identity.as_dict(), "token": token}


@router.post("/logout")
async def admin_logout(response: Response):
    response.delete_cookie(key=ADMIN_COOKIE_NAME, path="/", httponly=True, samesite="lax")
    return {"success": True}

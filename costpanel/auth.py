import logging
import secrets

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from .config import Settings, get_settings
from .schemas import LoginRequest

LOG = logging.getLogger(__name__)

AUTH_COOKIE = "gps_auth"
AUTH_VALUE = "authenticated"
COOKIE_MAX_AGE = 60 * 60 * 24 * 7

PUBLIC_PREFIXES = ("/login", "/api/auth/", "/api/costs", "/costs", "/api/health", "/metrics")

router = APIRouter(prefix="/api/auth")


class AuthMiddleware(BaseHTTPMiddleware):
    """Everything outside the public paths needs the login cookie."""

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        if path.startswith(PUBLIC_PREFIXES):
            return await call_next(request)
        if request.cookies.get(AUTH_COOKIE) != AUTH_VALUE:
            return JSONResponse(status_code=401, content={"detail": "Not authenticated", "login_url": "/login"})
        return await call_next(request)


@router.post("/login")
def login(body: LoginRequest, settings: Settings = Depends(get_settings)):
    user_ok = secrets.compare_digest(body.username.encode(), settings.admin_username.encode())
    password_ok = secrets.compare_digest(body.password.encode(), settings.admin_password.encode())
    if not (user_ok and password_ok):
        LOG.warning(f"failed login for user={body.username!r}")
        return JSONResponse(status_code=401, content={"error": "Invalid credentials"})

    response = JSONResponse(content={"success": True})
    response.set_cookie(
        AUTH_COOKIE,
        AUTH_VALUE,
        max_age=COOKIE_MAX_AGE,
        path="/",
        httponly=True,
        secure=settings.production,
        samesite="lax",
    )
    return response


@router.post("/logout")
def logout():
    response = JSONResponse(content={"success": True})
    response.delete_cookie(AUTH_COOKIE, path="/")
    return response

"""
Auth + permission middleware.

Runs on every request (except PUBLIC_ROUTES):
  1. Decode JWT → Principal(id=sub, role_id)
  2. Set request.state.principal
  3. Check the module-level permission for the target route
"""

from fastapi import HTTPException
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from backoffice.auth.helpers import decode_access_token, principal_from_payload
from backoffice.rbac.permissions import resolve_permission_from_request
from backoffice.utils import Logger

logger = Logger(__name__)

# Routes that skip all auth / permission checks
PUBLIC_ROUTES = {
    "/health",
    "/openapi.json",
    "/api/docs",
    "/redoc",
}


class AuthPermissionMiddleware(BaseHTTPMiddleware):
    """Single middleware that handles JWT verification + RBAC enforcement."""

    async def dispatch(self, request: Request, call_next):
        if request.method == "OPTIONS":
            return await call_next(request)

        path = request.url.path

        # ── Skip public routes ───────────────────────────────────
        if path in PUBLIC_ROUTES:
            return await call_next(request)

        # ── Extract & decode JWT ─────────────────────────────────
        auth_header = request.headers.get("Authorization")
        if not auth_header:
            return JSONResponse(
                status_code=401,
                content={"detail": "Missing Authorization header"},
            )

        if not auth_header.startswith("Bearer "):
            return JSONResponse(
                status_code=401,
                content={"detail": "Invalid token format. Expected 'Bearer <token>'"},
            )

        token = auth_header.split(" ", 1)[1].strip()

        try:
            principal = principal_from_payload(decode_access_token(token))
        except HTTPException as e:
            return JSONResponse(status_code=e.status_code, content={"detail": e.detail})

        request.state.principal = principal

        # ── RBAC check ───────────────────────────────────────────
        required = resolve_permission_from_request(request)
        if required is None:
            return await call_next(request)

        facade = getattr(request.app.state, "permission_facade", None)
        if facade is None:
            return JSONResponse(
                status_code=503,
                content={"detail": "Permission system not initialized"},
            )

        result = await facade.check_permission_with_result(required, principal)
        if not result.granted:
            logger.warning(
                f"Denied {required.module.value}:{required.action.value} "
                f"for {principal.id}: {result.reason}"
            )
            return JSONResponse(
                status_code=403,
                content={
                    "detail": (
                        "Permission denied. Requires: "
                        f"{required.module.value}:{required.action.value}"
                    ),
                },
            )

        return await call_next(request)

"""
Back Office — main application.

Assembles config, middleware, auth and the RBAC routes.
"""

import time
import traceback
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from backoffice.config import settings, db_manager
from backoffice.middleware import AuthPermissionMiddleware
from backoffice.rbac.facade import PermissionFacade
from backoffice.rbac.store import PermissionStore
from backoffice.utils import Logger, error_response
from backoffice.utils.exceptions import BootstrapError

# ── Route imports ────────────────────────────────────────────────
from backoffice.rbac.routes import permissions_router, rbac_router

logger = Logger("request")


# ── Request Logging Middleware ───────────────────────────────────
class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs every request: method, path, status code, and duration."""

    async def dispatch(self, request: Request, call_next):
        start = time.time()
        method = request.method
        path = request.url.path
        client = request.client.host if request.client else "unknown"

        logger.info(f"--> {method} {path} (from {client})")

        try:
            response = await call_next(request)
        except Exception as exc:
            duration = round((time.time() - start) * 1000, 2)
            logger.error(f"<-- {method} {path} | 500 | {duration}ms")
            logger.error(f"    Exception: {exc}")
            raise

        duration = round((time.time() - start) * 1000, 2)
        status = response.status_code

        if status >= 500:
            logger.error(f"<-- {method} {path} | {status} | {duration}ms")
        elif status >= 400:
            logger.warning(f"<-- {method} {path} | {status} | {duration}ms")
        else:
            logger.info(f"<-- {method} {path} | {status} | {duration}ms")

        return response


# ── Lifespan ─────────────────────────────────────────────────────
@asynccontextmanager
async def lifespan(app: FastAPI):
    await db_manager.connect()
    facade = PermissionFacade(PermissionStore(db_manager.database))
    app.state.permission_facade = facade
    if settings.rbac_bootstrap_on_startup:
        try:
            await facade.initialize()
        except BootstrapError:
            # checks deny until a later load succeeds
            logger.exception("Permission bootstrap failed at startup")
    yield
    db_manager.close()


# ── App factory ──────────────────────────────────────────────────
def create_app(use_lifespan: bool = True) -> FastAPI:
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Back-office API with role-based access control",
        docs_url="/api/docs",
        lifespan=lifespan if use_lifespan else None,
    )

    # ── CORS (must be first) ─────────────────────────────────
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allowed_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allowed_methods,
        allow_headers=settings.cors_allowed_headers,
    )

    # ── Auth + RBAC middleware ───────────────────────────────
    app.add_middleware(AuthPermissionMiddleware)

    # ── Request logging (outermost, sees every response) ─────
    app.add_middleware(RequestLoggingMiddleware)

    # ── Exception handlers ───────────────────────────────────
    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        return error_response(str(exc.detail), code=exc.status_code)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception on {request.method} {request.url.path}:")
        logger.error(traceback.format_exc())
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "error": {
                    "code": 500,
                    "message": str(exc) if settings.debug else "Internal server error",
                },
                "timestamp": datetime.now(timezone.utc).isoformat(),
            },
        )

    # ── Routes ───────────────────────────────────────────────
    v = settings.api_version  # "v1"

    app.include_router(
        permissions_router,
        prefix=f"/api/{v}/permissions",
        tags=["Permissions"],
    )
    app.include_router(
        rbac_router,
        prefix=f"/api/{v}/rbac",
        tags=["Access Control"],
    )

    # ── Health check ─────────────────────────────────────────
    @app.get("/health")
    async def health():
        facade = getattr(app.state, "permission_facade", None)
        return {
            "status": "healthy",
            "app": settings.app_name,
            "version": settings.app_version,
            "database": db_manager.is_connected,
            "permissions": facade.state.value if facade else None,
        }

    return app


# ── Create the app instance ──────────────────────────────────────
app = create_app()

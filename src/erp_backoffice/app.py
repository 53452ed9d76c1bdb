"""FastAPI application factory for the ERP back-office."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from erp_backoffice.common.config import get_settings
from erp_backoffice.common.exceptions import BackofficeError
from erp_backoffice.common.logging import setup_logging
from erp_backoffice.common.schemas import HealthResponse

logger = logging.getLogger(__name__)

STATUS_BY_CODE = {
    "NOT_FOUND": 404,
    "INVALID_INPUT": 400,
    "INVALID_CREDENTIALS": 401,
    "INACTIVE_ACCOUNT": 401,
    "INVALID_OTP": 401,
    "INVALID_TOKEN": 401,
    "INVALID_TOKEN_ALGORITHM": 401,
    "EXPIRED_TOKEN": 401,
    "USED_TOKEN": 401,
    "UNAUTHENTICATED": 401,
    "TWO_FACTOR_REQUIRED": 403,
    "FORBIDDEN": 403,
    "CONFLICT": 409,
    "STALE_APPROVAL_STATE": 409,
    "DATA_INTEGRITY": 500,
    "EXTERNAL_SERVICE": 500,
}


def _envelope(status: int, message: str, code: str | None = None, data=None) -> JSONResponse:
    body = {"status": status, "message": message, "data": data}
    if code:
        body["code"] = code
    return JSONResponse(status_code=status, content=body)


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(BackofficeError)
    async def backoffice_error(request: Request, exc: BackofficeError):
        status = STATUS_BY_CODE.get(exc.code, 500)
        if status >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return _envelope(status, exc.message, exc.code)

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        first = exc.errors()[0] if exc.errors() else {}
        field = ".".join(str(p) for p in first.get("loc", ())[1:])
        message = f"{field}: {first.get('msg')}" if field else str(first.get("msg", "Invalid input"))
        return _envelope(400, message, "INVALID_INPUT")

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        return _envelope(exc.status_code, str(exc.detail))

    @app.exception_handler(Exception)
    async def internal_error(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return _envelope(500, "Internal server error", "INTERNAL")


def create_app() -> FastAPI:
    settings = get_settings()
    setup_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        from erp_backoffice.deps import get_db
        db = get_db()
        await db.init()
        await db.create_all()
        yield
        # Shutdown
        await db.close()

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)

    @app.get("/health", response_model=HealthResponse)
    async def health():
        return HealthResponse(version=settings.api_version)

    # Mount routers
    from erp_backoffice.activity.router import router as activity_router
    from erp_backoffice.approvals.router import router as approval_router
    from erp_backoffice.auth.router import router as auth_router
    from erp_backoffice.auth.users_router import router as users_router
    from erp_backoffice.masterdata.router import router as masterdata_router
    from erp_backoffice.rbac.router import router as rbac_router

    prefix = settings.api_prefix
    app.include_router(auth_router, prefix=prefix, tags=["auth"])
    app.include_router(users_router, prefix=prefix, tags=["users"])
    app.include_router(rbac_router, prefix=prefix, tags=["rbac"])
    app.include_router(approval_router, prefix=prefix, tags=["approvals"])
    app.include_router(masterdata_router, prefix=prefix, tags=["master-data"])
    app.include_router(activity_router, prefix=prefix, tags=["activity"])

    return app

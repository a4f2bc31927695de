"""
FastAPI application: routers, middleware and error handlers.
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from timing_asgi import TimingMiddleware, TimingClient  # type: ignore
from timing_asgi.integrations import StarletteScopeToName  # type: ignore

from roles_api.core import config
from roles_api.core.database.engine import init_db
from roles_api.features.users.routes import router as user_router
from roles_api.features.permissions.routes import router as permission_router
from roles_api.features.users.dependencies import get_authorization_header
from roles_api.utils import get_logger


log = get_logger(__name__)

VERSION = "0.1.0"


class LogTimings(TimingClient):
    """Route timings go to the debug log."""

    def timing(self, metric_name, timing, tags):
        route = metric_name.removeprefix("main.roles_api.features.")
        log.debug(dict(route=route, timing=timing, tags=tags))


def create_limiter() -> Limiter:
    """Limit requests per bearer token (anonymous callers share one bucket)."""
    default_limits = [config.RATE_LIMIT] if config.RATE_LIMIT else []
    return Limiter(key_func=get_authorization_header, default_limits=default_limits)


async def flatten_validation_errors(_request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report validation errors as a 400 {field: message} body."""
    errors = {}
    for error in exc.errors():
        if "loc" not in error or "msg" not in error:
            continue
        field = error["loc"][-1]
        errors["root" if field == "__root__" else field] = error["msg"]
    log.info("Request validation error %s", errors)
    return JSONResponse(status_code=400, content=jsonable_encoder(errors))


# slowapi's middleware calls this synchronously
def too_many_requests(_request: Request, exc: RateLimitExceeded) -> Response:
    log.info("Rate limit hit: %s", exc.detail)
    return JSONResponse({"error": "You are going too fast"}, status_code=429)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    log.info("Initializing database...")
    await init_db()
    log.info("Database initialized successfully")
    yield


def create_app() -> FastAPI:
    docs = config.ENABLE_DOCS
    application = FastAPI(
        title="Roles API",
        description="Role-based access control: users hold roles, roles grant permissions",
        version=VERSION,
        docs_url="/docs" if docs else None,
        redoc_url="/redoc" if docs else None,
        openapi_url="/openapi.json" if docs else None,
        lifespan=lifespan,
    )
    if docs:
        log.warning("Docs enabled")

    application.state.limiter = create_limiter()
    application.add_middleware(SlowAPIMiddleware)
    application.add_middleware(
        TimingMiddleware, client=LogTimings(), metric_namer=StarletteScopeToName("main", application)
    )
    if config.ALLOW_ORIGIN:
        log.warning("Setting allow origin to %s", config.ALLOW_ORIGIN)
        application.add_middleware(
            CORSMiddleware,
            allow_origins=[config.ALLOW_ORIGIN],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    application.add_exception_handler(RequestValidationError, flatten_validation_errors)
    application.add_exception_handler(RateLimitExceeded, too_many_requests)

    application.include_router(user_router, prefix="/users", tags=["users"])
    application.include_router(permission_router, prefix="/permissions", tags=["permissions"])
    return application


log.info("Initializing server")
app = create_app()


@app.get("/")
async def root():
    """Service summary."""
    return {
        "message": "Roles API",
        "version": VERSION,
        "status": "online",
        "docs": "/docs" if config.ENABLE_DOCS else None,
        "authentication": {
            "info": "Protected endpoints require Bearer token in Authorization header",
            "protected_endpoints": ["/users/*", "/permissions/*"],
        },
    }


@app.get("/health")
async def health():
    return {"status": "healthy"}

from fastapi import FastAPI, HTTPException
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from slowapi.errors import RateLimitExceeded
from sqlalchemy.orm.exc import StaleDataError
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from timing_asgi import TimingMiddleware, TimingClient  # type: ignore
from timing_asgi.integrations import StarletteScopeToName  # type: ignore

from app.core import config
from app.core.database.engine import init_db
from app.core.limiter import limiter
from app.features.users.routes import router as user_router
from app.features.permissions.routes import router as permission_router
from app.features.roles.routes import router as role_router
from app.features.contractors.routes import router as contractor_router
from app.features.service_points.routes import router as service_point_router
from app.features.addons.routes import router as addon_router
from app.features.cities.routes import router as city_router
from app.features.agreements.routes import router as agreement_router
from app.features.suggestions.routes import router as suggestion_router
from app.utils import get_logger


log = get_logger(__name__)
log.info("Initializing server")
app = FastAPI(
    title="Contractor CRM Backend",
    description="Contractor CRM back office with role-based and ownership-aware permissions",
    version="0.1.0",
    docs_url="/docs" if config.ENABLE_DOCS else None,
    redoc_url="/redoc" if config.ENABLE_DOCS else None,
    openapi_url="/openapi.json" if config.ENABLE_DOCS else None
)
app.state.limiter = limiter


class PrintTimings(TimingClient):
    def timing(self, metric_name, timing, tags):
        log.debug(dict(route=metric_name.removeprefix("main.app.features."), timing=timing, tags=tags))


app.add_middleware(TimingMiddleware, client=PrintTimings(), metric_namer=StarletteScopeToName("main", app))

if config.ENABLE_DOCS:
    log.warning("Docs enabled")
if config.ALLOW_ORIGIN:
    log.warning("Setting allow origin to %s", config.ALLOW_ORIGIN)
    origins = [config.ALLOW_ORIGIN]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(_request: Request, exc: HTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(_request: Request, exc: RequestValidationError):
    errors = dict()
    for error in exc.errors():
        if "loc" not in error or "msg" not in error:
            continue
        key = error["loc"][-1] if error["loc"] else "root"
        if key == "__root__":
            key = "root"
        errors[key] = error["msg"]
    log.info("Request validation error %s", errors)
    return JSONResponse(
        status_code=400,
        content=jsonable_encoder({"error": "Validation failed", "fields": errors}),
    )


@app.exception_handler(RateLimitExceeded)
def rate_limit_exceeded_handler(_request: Request, _exc: RateLimitExceeded) -> Response:
    return JSONResponse({"error": "You are going too fast"}, status_code=429)


@app.exception_handler(StaleDataError)
async def stale_data_handler(_request: Request, exc: StaleDataError):
    log.info("Concurrent modification: %s", exc)
    return JSONResponse({"error": "Record was modified by another user"}, status_code=409)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    log.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse({"error": "Internal server error"}, status_code=500)


@app.on_event("startup")
async def startup():
    """Initialize database on application startup."""
    log.info("Initializing database...")
    await init_db()
    log.info("Database initialized successfully")


@app.get("/")
async def root():
    """Root endpoint - API health check."""
    return {
        "message": "Contractor CRM API",
        "version": "0.1.0",
        "status": "online",
        "docs": "/docs" if config.ENABLE_DOCS else None,
        "authentication": {
            "info": "Protected endpoints require Bearer token in Authorization header",
            "public_endpoints": ["/", "/health", "/users/login"]
        },
        "features": {
            "users": "Local accounts with login/password and bearer tokens",
            "permissions": "Permission tags with an ADMIN wildcard and ownership-aware client access",
            "roles": "Permission templates with a single default role",
            "contractors": "Clients with service points, files and visibility control",
            "service_points": "Client locations with fronts and addons",
            "suggestions": "Proposed client changes reviewed by managers",
            "references": "Cities, agreements and addons"
        }
    }


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}


# Include routers
app.include_router(user_router, prefix="/users", tags=["users"])

# Permission tags, presets and checks
app.include_router(permission_router, prefix="/permissions", tags=["permissions"])

# Role templates
app.include_router(role_router, prefix="/roles", tags=["roles"])

# Contractor routes (with nested files and service points)
app.include_router(contractor_router, prefix="/contractors", tags=["contractors"])
app.include_router(service_point_router, prefix="/service-points", tags=["service-points"])

# Reference data
app.include_router(addon_router, prefix="/addons", tags=["addons"])
app.include_router(city_router, prefix="/cities", tags=["cities"])
app.include_router(agreement_router, prefix="/agreements", tags=["agreements"])

# Suggestion workflow
app.include_router(suggestion_router, prefix="/suggestions", tags=["suggestions"])

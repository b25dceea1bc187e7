from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

from app.config import settings
from app.api.v1.router import api_router, webhook_router, realtime_router
from app.core.exceptions import ServiceError
from app.database import init_db, async_session_factory


logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
    - Create database tables
    """
    # Startup
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    await init_db()

    yield

    # Shutdown
    logger.info("Shutting down...")


# OpenAPI Tags with detailed descriptions
OPENAPI_TAGS = [
    {"name": "Authentication", "description": "JWT bearer authentication and registration"},
    {"name": "Users", "description": "User administration (admin only)"},
    {"name": "Partners", "description": "Partner approval, consultant assignment and profile"},
    {"name": "Public", "description": "Unauthenticated partner registration"},
    {"name": "Leads", "description": "Referral leads, notes, tasks and sale/commission data"},
    {"name": "Dashboard", "description": "Partner and admin KPIs"},
    {"name": "Finance", "description": "Commission statement, payment proofs and manual entries"},
    {"name": "Materials", "description": "Support materials for partners"},
    {"name": "Chat", "description": "Direct messages; realtime delivery on /ws/chat"},
    {"name": "Webhooks", "description": "Inbound Pipedrive events"},
]

FULL_API_DESCRIPTION = """
## Tirvu Partners API

Commission tracking and lead referral platform for admins, consultants and partners.

### Roles

| Role | Sees |
|------|------|
| **admin** | Everything |
| **consultor** | Partners assigned to them, and those partners' leads |
| **partner** | Their own leads and statement |

### Authentication

Include the token returned by `/api/auth/login` in the Authorization header: `Bearer <token>`.
The realtime channel `/ws/chat` takes the same token as `?token=` or in a first `auth` frame.

### Error Codes

| Code | Description |
|------|-------------|
| 400 | Bad Request - Business rule violated (quota, duplicate, already approved) |
| 401 | Unauthorized - Missing/invalid token |
| 403 | Forbidden - Role or ownership mismatch |
| 404 | Not Found - Resource absent or not visible |
| 422 | Unprocessable Entity - Body validation failed |
| 500 | Internal Server Error |
"""

# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description=FULL_API_DESCRIPTION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=OPENAPI_TAGS,
    swagger_ui_parameters={
        "deepLinking": True,
        "persistAuthorization": True,
    },
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(api_router)
app.include_router(webhook_router)
app.include_router(realtime_router)


@app.exception_handler(ServiceError)
async def service_exception_handler(request: Request, exc: ServiceError):
    """Business rule violations raised by services."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Log unexpected errors with their stack; the client gets a generic message."""
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")

    response = JSONResponse(status_code=500, content={"detail": "Internal server error"})

    # Error responses bypass the CORS middleware
    origin = request.headers.get("origin", "")
    if origin in settings.cors_origins_list or "*" in settings.cors_origins_list:
        response.headers["Access-Control-Allow-Origin"] = origin
        response.headers["Access-Control-Allow-Credentials"] = "true"

    return response


# Health check endpoint
@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint with database validation."""
    from sqlalchemy import text
    from datetime import datetime, timezone

    health_status = {
        "status": "healthy",
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": {
            "database": "unknown"
        }
    }

    # Check database connectivity
    try:
        async with async_session_factory() as session:
            result = await session.execute(text("SELECT 1"))
            result.scalar()
            health_status["checks"]["database"] = "connected"
    except Exception as e:
        logger.error(f"Health check database error: {e}")
        health_status["status"] = "unhealthy"
        health_status["checks"]["database"] = f"error: {str(e)}"

    # Return 503 if unhealthy
    if health_status["status"] == "unhealthy":
        return JSONResponse(status_code=503, content=health_status)

    return health_status


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint."""
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
        "redoc": "/redoc",
    }

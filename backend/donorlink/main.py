"""FastAPI application entry point."""
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from donorlink.config import settings
from donorlink.database import Base, engine
from donorlink.errors import DonationError

# Import routers
from donorlink.routers import users, donation_requests, reconciliation

# Import all models so Base.metadata knows about them
from donorlink.models.user import User                                   # noqa: F401
from donorlink.models.donation_request import DonationRequest            # noqa: F401
from donorlink.models.notification import Notification                   # noqa: F401
from donorlink.models.activity_log import ActivityLog                    # noqa: F401
from donorlink.models.reconciliation_task import ReconciliationTask      # noqa: F401

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="DonorLink",
    description="Blood donation request lifecycle and donor matching engine",
    version="0.1.0",
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register routers
app.include_router(users.router, prefix="/api/users", tags=["Users"])
app.include_router(donation_requests.router, prefix="/api/donation-requests", tags=["DonationRequests"])
app.include_router(reconciliation.router, prefix="/api/reconciliation", tags=["Reconciliation"])


@app.exception_handler(DonationError)
async def donation_error_handler(request: Request, exc: DonationError):
    """Map the engine's error taxonomy onto structured JSON responses."""
    logger.info("%s %s rejected (%s): %s", request.method, request.url.path, exc.code, exc.detail)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.on_event("startup")
def on_startup():
    """Create database tables on startup (for SQLite dev mode)."""
    if settings.DATABASE_URL.startswith("sqlite"):
        Base.metadata.create_all(bind=engine)


@app.get("/api/health")
def health_check():
    return {"status": "ok"}

# FastAPI Server for the Collabmart Platform

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging
import os
from dotenv import load_dotenv

from config.app_config import CORS_ORIGINS
from database.config import init_db
from services.errors import (
    AccessDenied,
    MarketplaceError,
    NotFound,
    StateConflict,
    UpstreamFailure,
    ValidationError,
)
from routers import (
    campaigns_router,
    collaborations_router,
    campaign_content_router,
    checkout_router,
    orders_router,
    notifications_router,
)

load_dotenv()

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Collabmart API",
    description="Influencer collaborations and campaign storefront",
    version="1.0.0"
)


@app.on_event("startup")
def startup_event():
    # Schema is owned by alembic in production; create_all covers fresh dev databases
    if os.getenv("INIT_DB_ON_STARTUP", "true").lower() == "true":
        init_db()
        logger.info("Database tables initialized")


# CORS Setup
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials="*" not in CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================================================
# ERROR HANDLING
# ============================================================================

ERROR_STATUS = [
    (NotFound, status.HTTP_404_NOT_FOUND),
    (AccessDenied, status.HTTP_403_FORBIDDEN),
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (StateConflict, status.HTTP_409_CONFLICT),
    (UpstreamFailure, status.HTTP_502_BAD_GATEWAY),
]


def status_for(exc: MarketplaceError) -> int:
    for error_type, code in ERROR_STATUS:
        if isinstance(exc, error_type):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


@app.exception_handler(MarketplaceError)
async def marketplace_error_handler(request: Request, exc: MarketplaceError):
    code = status_for(exc)
    if code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    else:
        logger.info(f"{request.method} {request.url.path} -> {code}: {exc}")
    return JSONResponse(status_code=code, content={"detail": str(exc)})


# ============================================================================
# ROUTERS
# ============================================================================

app.include_router(campaigns_router)
app.include_router(collaborations_router)
app.include_router(campaign_content_router)
app.include_router(checkout_router)
app.include_router(orders_router)
app.include_router(notifications_router)


# Health Check
@app.get("/")
def root():
    return {
        "message": "Collabmart API",
        "version": "1.0.0",
        "status": "running"
    }


@app.get("/health")
def health_check():
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", 8000)))

"""
FastAPI application - Main entry point
"""

from dotenv import load_dotenv

load_dotenv()

import logging
import os
from datetime import datetime
from urllib.parse import parse_qs, urlparse

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

import src.api.contracts_router as contracts_module
from src.api.contracts_router import contracts_api, register_exception_handlers
from src.api.dependencies import api_key_protection
from src.contract_lifecycle.errors import StorageUnavailable
from src.contract_lifecycle.service import ContractService
from src.utils.contracts_config_loader import load_contracts_config

# Setup logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="Speaker Contracts API",
    description="Contract generation, dispatch and e-signature for booked speaking engagements",
    version="1.0.0",
    dependencies=[Depends(api_key_protection)],  # protect everything by default
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ============================================================================
# DEPENDENCY INJECTION
# ============================================================================

# Initialize storage: use real Postgres when env is set, else the in-memory stub
if os.getenv("DATABASE_URL") and os.getenv("USE_POSTGRES_CONTRACTS", "").lower() in ("1", "true", "yes"):
    from src.database.postgres_real import ContractsDB

    contracts_db = ContractsDB(connection_string=os.environ["DATABASE_URL"])
else:
    from src.database.postgres import ContractsDB

    contracts_db = ContractsDB()

# Notifications: real email service when configured, else the mock dispatcher
if os.getenv("NOTIFICATIONS_API_URL"):
    from src.integrations.clients.real_http.notifications import RealNotificationDispatcher

    notification_dispatcher = RealNotificationDispatcher()
else:
    from src.integrations.clients.mocks.notifications import MockNotificationDispatcher

    notification_dispatcher = MockNotificationDispatcher()

contracts_cfg = load_contracts_config()

contract_service = ContractService(contracts_db, dispatcher=notification_dispatcher, config=contracts_cfg)

contracts_module.contract_service = contract_service
app.include_router(contracts_api, prefix="/api/v1/contracts")
register_exception_handlers(app)


@app.get("/", tags=["Health"])
async def root():
    return {"service": "Speaker Contracts API", "status": "healthy", "version": "1.0.0", "timestamp": datetime.now().isoformat()}


@app.get("/health", tags=["Health"])
def health_check():
    """Detailed health check (contracts store)."""
    try:
        database = "connected" if contracts_db.ping() else "unavailable"
    except StorageUnavailable as e:
        logger.warning("Health check could not reach the contracts store: %s", e)
        database = "unavailable"
    return {
        "status": "healthy" if database == "connected" else "degraded",
        "database": database,
        "notifications": type(notification_dispatcher).__name__,
        "timestamp": datetime.now().isoformat(),
    }


# ============================================================================
# STARTUP/SHUTDOWN EVENTS
# ============================================================================
@app.on_event("startup")
async def startup_event():
    """Initialize on startup"""
    logger.info("Starting Speaker Contracts API...")

    # Log sanitized DB target details (no credentials) for connectivity debugging.
    db_url = os.getenv("DATABASE_URL", "")
    if db_url:
        try:
            parsed = urlparse(db_url)
            query = parse_qs(parsed.query or "")
            logger.info(
                "DATABASE_URL target: scheme=%s host=%s port=%s db=%s sslmode=%s use_postgres=%s",
                parsed.scheme,
                parsed.hostname,
                parsed.port or 5432,
                (parsed.path or "").lstrip("/"),
                (query.get("sslmode") or [""])[0],
                os.getenv("USE_POSTGRES_CONTRACTS", ""),
            )
        except ValueError as e:
            logger.warning("Could not parse DATABASE_URL for startup logging: %s", e)
    else:
        logger.info("DATABASE_URL not set; using in-memory ContractsDB stub")

    # Create database tables if they don't exist
    try:
        contracts_db.create_tables()
        logger.info("Database tables initialized")
    except StorageUnavailable as e:
        logger.error(f"Error initializing database: {str(e)}")


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on shutdown"""
    logger.info("Shutting down Speaker Contracts API...")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("src.api.main:app", host="0.0.0.0", port=int(os.getenv("PORT", "8000")), reload=False)

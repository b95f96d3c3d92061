"""
AuditHub - FastAPI Application Entry Point

This is the main entry point for the FastAPI application.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from audithub.config import settings
from audithub.database import init_db, close_db, async_session_maker
from audithub.utils.error_handling import setup_exception_handlers

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.debug else getattr(logging, settings.log_level.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


async def seed_bootstrap_admin():
    """
    Seed the configured admin account on startup.
    Admins cannot self-register, so this is the only way to create the first one.
    """
    from audithub.services.user_service import UserService

    async with async_session_maker() as session:
        service = UserService(session)
        try:
            admin = await service.bootstrap_admin(
                settings.bootstrap_admin_address,
                settings.bootstrap_admin_name,
            )
            logger.info(f"Bootstrap admin ready: {admin.public_address}")
        except Exception as e:
            logger.warning(f"Could not seed bootstrap admin: {e}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for FastAPI.
    Handles startup and shutdown events.
    """
    # Startup
    logger.info(f"Starting {settings.app_name}...")
    logger.info(f"Environment: {settings.app_env}")
    if settings.is_production and settings.debug:
        logger.warning("DEBUG is enabled in production; SQL statements will be logged")

    # Initialize database (dev only)
    if settings.is_development:
        await init_db()
        logger.info("Database tables initialized")

    if settings.bootstrap_admin_address and settings.bootstrap_admin_name:
        await seed_bootstrap_admin()

    yield

    # Shutdown
    logger.info(f"Shutting down {settings.app_name}...")
    await close_db()
    logger.info("Database connections closed")


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    description="Smart-contract audit marketplace: audit requests, reviews and reports",
    version=settings.api_version,
    docs_url="/docs" if settings.is_development else None,
    redoc_url="/redoc" if settings.is_development else None,
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

setup_exception_handlers(app)


# ===========================================
# API ROUTES
# ===========================================

@app.get("/")
async def api_info():
    """API information endpoint."""
    return {
        "name": settings.app_name,
        "version": settings.api_version,
        "status": "running",
        "environment": settings.app_env,
        "endpoints": {
            "scopes": "/scope",
            "companies": "/company",
            "users": "/user",
            "audits": "/audit",
            "comments": "/comment",
        },
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


# ===========================================
# INCLUDE ROUTERS
# ===========================================

from audithub.routers import scopes, companies, users, audits, comments  # noqa: E402

app.include_router(scopes.router, prefix="/scope", tags=["Scopes"])
app.include_router(companies.router, prefix="/company", tags=["Companies"])
app.include_router(users.router, prefix="/user", tags=["Users"])
app.include_router(audits.router, prefix="/audit", tags=["Audits"])
app.include_router(comments.router, prefix="/comment", tags=["Comments"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.is_development,
    )

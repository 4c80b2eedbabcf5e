"""
Pilot Dashboard - Main Application Entry Point
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import RedirectResponse

from app.config import settings
from app.db import init_db
from app.api import (
    auth_router,
    projects_router,
    agents_router,
    dashboard_router,
    api_keys_router,
    machine_router,
    pages_router,
    LoginRequired,
)
from app.api.auth import clear_session_cookie

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler - runs on startup and shutdown"""
    print(f"🚀 {settings.app_name} starting up...")
    await init_db()
    print("✅ Database initialized")

    yield

    print(f"🛑 {settings.app_name} shutdown complete.")


app = FastAPI(
    title=settings.app_name,
    description="Projects with funded vaults, budgeted AI agents and a spend ledger",
    version=settings.app_version,
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(LoginRequired)
async def login_required_handler(request: Request, exc: LoginRequired):
    """Anonymous or expired visitors on a guarded route go to the login page."""
    logger.debug("Redirecting unauthenticated request for %s", request.url.path)
    response = RedirectResponse(url=settings.login_path, status_code=status.HTTP_303_SEE_OTHER)
    clear_session_cookie(response)
    return response


# Include routers
app.include_router(auth_router, prefix=settings.api_prefix)
app.include_router(projects_router, prefix=settings.api_prefix)
app.include_router(agents_router, prefix=settings.api_prefix)
app.include_router(dashboard_router, prefix=settings.api_prefix)
app.include_router(api_keys_router, prefix=settings.api_prefix)
app.include_router(machine_router, prefix=settings.api_prefix)
# Page data (/login, /app/...)
app.include_router(pages_router)


@app.get("/")
async def root():
    return RedirectResponse(url=settings.dashboard_path, status_code=status.HTTP_303_SEE_OTHER)


@app.get("/health")
async def health():
    """Health check with a database probe."""
    db_status = "connected"
    try:
        from sqlalchemy import text
        from app.db.database import async_session_maker
        async with async_session_maker() as db:
            await db.execute(text("SELECT 1"))
    except Exception as e:
        db_status = f"error: {e}"

    return {
        "name": settings.app_name,
        "status": "healthy" if db_status == "connected" else "degraded",
        "version": settings.app_version,
        "database": db_status,
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
    )

from app.api.auth import router as auth_router, get_current_user, require_auth, LoginRequired
from app.api.projects import router as projects_router
from app.api.agents import router as agents_router
from app.api.dashboard import router as dashboard_router
from app.api.api_keys import router as api_keys_router, machine_router, require_api_key
from app.api.pages import router as pages_router

__all__ = [
    "auth_router",
    "projects_router",
    "agents_router",
    "dashboard_router",
    "api_keys_router",
    "machine_router",
    "pages_router",
    "get_current_user",
    "require_auth",
    "require_api_key",
    "LoginRequired",
]

from app.services.auth_service import (
    AuthResult, hash_password, verify_password, register_user,
    authenticate_user, create_session, get_session, delete_session,
    get_user_by_id, get_user_by_email, to_safe_user,
)
from app.services.project_service import (
    get_user_projects, get_project, get_user_project_stats,
    create_project, update_project, delete_project,
)
from app.services.agent_service import (
    get_project_agents, get_agent, create_agent, update_agent,
    update_agent_budget, delete_agent, get_agent_performance,
)
from app.services.event_service import (
    get_user_activity, get_project_activity, create_funding_event,
    get_user_spend_chart_data, get_project_comparison_data,
)
from app.services.api_key_service import (
    create_api_key, get_user_api_keys, delete_api_key, verify_api_key, mask_api_key,
)
from app.services.money import MICRO_UNITS_PER_USD, usd_to_minor, minor_to_usd, format_usd

__all__ = [
    # Auth & sessions
    "AuthResult",
    "hash_password",
    "verify_password",
    "register_user",
    "authenticate_user",
    "create_session",
    "get_session",
    "delete_session",
    "get_user_by_id",
    "get_user_by_email",
    "to_safe_user",
    # Projects
    "get_user_projects",
    "get_project",
    "get_user_project_stats",
    "create_project",
    "update_project",
    "delete_project",
    # Agents
    "get_project_agents",
    "get_agent",
    "create_agent",
    "update_agent",
    "update_agent_budget",
    "delete_agent",
    "get_agent_performance",
    # Events & charts
    "get_user_activity",
    "get_project_activity",
    "create_funding_event",
    "get_user_spend_chart_data",
    "get_project_comparison_data",
    # API keys
    "create_api_key",
    "get_user_api_keys",
    "delete_api_key",
    "verify_api_key",
    "mask_api_key",
    # Money
    "MICRO_UNITS_PER_USD",
    "usd_to_minor",
    "minor_to_usd",
    "format_usd",
]

"""Dependency injection for FastAPI routes.

All services and sessions are provided via Depends() from this module.
Route handlers never instantiate services directly.
"""

from collections.abc import AsyncGenerator
from uuid import UUID

from fastapi import Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import (
    get_current_tenant_id,  # noqa: F401
    get_current_user_claims,
    get_current_user_id,  # noqa: F401
)
from app.core.config import settings
from app.core.database import get_db as _get_db
from app.core.redis import get_redis as _get_redis
from app.engine.dashboard_manager import DashboardManager
from app.models.chat import Chat
from app.services.audit_service import AuditService
from app.services.chat_service import (
    ChatAccessError,
    chat_title_for_workflow,
    create_chat,
    get_chat_workflow,
    get_owned_chat,
    get_readable_chat,
)
from app.services.dashboard_service import DashboardService
from app.services.execution_service import ExecutionService
from app.services.template_service import TemplateService
from app.services.websocket_manager import WebSocketManager


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Provide an async database session."""
    async for session in _get_db():
        yield session


async def get_redis():
    """Provide the Redis client."""
    return await _get_redis()


async def get_websocket_manager(request: Request) -> WebSocketManager:
    """Return the WebSocket manager from app state."""
    return request.app.state.ws_manager


async def get_audit_service(db: AsyncSession = Depends(get_db)) -> AuditService:
    return AuditService(db)


async def get_dashboard_service(db: AsyncSession = Depends(get_db)) -> DashboardService:
    return DashboardService(db)


async def get_dashboard_manager() -> DashboardManager:
    return DashboardManager()


async def get_template_service(db: AsyncSession = Depends(get_db)) -> TemplateService:
    return TemplateService(db)


async def get_execution_service(
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
    ws_manager: WebSocketManager = Depends(get_websocket_manager),
) -> ExecutionService:
    return ExecutionService(db=db, redis=redis, ws_manager=ws_manager)


async def get_user_claims(request: Request) -> dict:
    """Wrapper around get_current_user_claims for DI.

    In development mode without auth header or with "dev-token",
    returns dev claims with admin access.
    This allows Depends() override in tests.
    """
    auth_header = request.headers.get("Authorization")
    token = auth_header.removeprefix("Bearer ") if auth_header else None
    if settings.app_env == "development" and (not token or token == "dev-token"):
        return {
            "sub": settings.dev_user_id,
            "tenant_id": settings.dev_tenant_id,
            "realm_access": {"roles": ["admin"]},
            "resource_access": {},
            "dev_bypass": True,
        }
    return await get_current_user_claims(request)


def require_role(*allowed_roles: str):
    """Dependency factory that enforces Keycloak role-based access.

    Usage: `Depends(require_role("admin", "analyst"))`
    """

    async def _check(
        claims: dict = Depends(get_user_claims),
    ) -> dict:
        realm_roles = claims.get("realm_access", {}).get("roles", [])
        client_roles = []
        for client_data in claims.get("resource_access", {}).values():
            client_roles.extend(client_data.get("roles", []))
        all_roles = set(realm_roles + client_roles)

        if not any(r in all_roles for r in allowed_roles):
            raise HTTPException(status_code=403, detail="Insufficient permissions")
        return claims

    return _check


async def load_chat(
    db: AsyncSession,
    chat_id: UUID,
    tenant_id: UUID,
    user_id: UUID,
    owner: bool = False,
) -> Chat:
    """Chat the user may read (or, with owner=True, change); 404 or 403 otherwise."""
    lookup = get_owned_chat if owner else get_readable_chat
    try:
        chat = await lookup(db, chat_id, tenant_id, user_id)
    except ChatAccessError:
        raise HTTPException(status_code=403, detail="Access denied")
    if not chat:
        raise HTTPException(status_code=404, detail="Chat not found")
    return chat


async def claim_chat(
    db: AsyncSession,
    chat_id: UUID | None,
    workflow_name: str,
    tenant_id: UUID,
    user_id: UUID,
) -> UUID:
    """Chat id for a new workflow: the given chat, which must have no workflow yet, or a new one."""
    if chat_id is None:
        chat = await create_chat(db, tenant_id, user_id, chat_title_for_workflow(workflow_name))
        return chat.id

    chat = await load_chat(db, chat_id, tenant_id, user_id, owner=True)
    if await get_chat_workflow(db, chat.id, tenant_id):
        raise HTTPException(status_code=409, detail="Chat already has a workflow")
    return chat.id

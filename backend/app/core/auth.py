"""Authentication utilities.

Keycloak OIDC bearer tokens identify the user and tenant for every route.
Development mode accepts requests without a token (or with "dev-token").
"""

from uuid import UUID

import httpx
import structlog
from fastapi import HTTPException, Request, status
from jose import JWTError, jwt  # type: ignore[import-untyped]

from app.core.config import settings

logger = structlog.stdlib.get_logger(__name__)

# Cached JWKS keys (refreshed on cache miss / key rotation)
_jwks_cache: dict | None = None


def _get_keycloak_realm_url() -> str:
    return f"{settings.auth.keycloak_url}/realms/{settings.auth.keycloak_realm}"


def _get_jwks_url() -> str:
    return f"{_get_keycloak_realm_url()}/protocol/openid-connect/certs"


async def _get_jwks() -> dict:
    """Fetch Keycloak JWKS (JSON Web Key Set) for token verification."""
    global _jwks_cache
    if _jwks_cache is not None:
        return _jwks_cache
    async with httpx.AsyncClient() as client:
        resp = await client.get(_get_jwks_url())
        resp.raise_for_status()
        _jwks_cache = resp.json()
        return _jwks_cache


def _clear_jwks_cache() -> None:
    global _jwks_cache
    _jwks_cache = None


def _jwt_decode(token: str, jwks: dict) -> dict:
    return jwt.decode(
        token,
        jwks,
        algorithms=["RS256"],
        audience=settings.auth.keycloak_client_id,
        issuer=_get_keycloak_realm_url(),
    )


async def _decode_token(token: str) -> dict:
    """Decode and validate a Keycloak-issued JWT.

    On key-not-found, clears the JWKS cache and retries once (key rotation).
    """
    try:
        return _jwt_decode(token, await _get_jwks())
    except JWTError:
        _clear_jwks_cache()
        try:
            return _jwt_decode(token, await _get_jwks())
        except JWTError as e:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail=f"Invalid or expired token: {e}",
                headers={"WWW-Authenticate": "Bearer"},
            ) from e


def _bearer_token(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization")
    return auth_header.removeprefix("Bearer ") if auth_header else None


def is_dev_bypass(request: Request) -> bool:
    token = _bearer_token(request)
    return settings.app_env == "development" and (not token or token == "dev-token")


async def _require_payload(request: Request) -> dict:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing or invalid Authorization header",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return await _decode_token(auth_header.removeprefix("Bearer "))


async def get_current_user_id(request: Request) -> UUID:
    """Extract and validate the current user from a Keycloak Bearer token."""
    if is_dev_bypass(request):
        logger.warning("dev_auth_bypass", msg="Using dev user ID - dev mode")
        user_id = UUID(settings.dev_user_id)
        structlog.contextvars.bind_contextvars(user_id=str(user_id))
        return user_id

    payload = await _require_payload(request)
    sub = payload.get("sub")
    if not sub:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token missing subject claim",
        )

    user_id = UUID(sub)
    structlog.contextvars.bind_contextvars(user_id=str(user_id))
    return user_id


async def get_current_tenant_id(request: Request) -> UUID:
    """Extract tenant_id from the Keycloak JWT claims.

    Keycloak must be configured with a protocol mapper that includes
    a 'tenant_id' claim in the access token. This is the single source
    of truth for tenant context; never accept tenant_id from request bodies.
    """
    if is_dev_bypass(request):
        logger.warning("dev_auth_bypass", msg="Using dev tenant ID - dev mode")
        tid = UUID(settings.dev_tenant_id)
        structlog.contextvars.bind_contextvars(tenant_id=str(tid))
        return tid

    payload = await _require_payload(request)
    tenant_id = payload.get("tenant_id")
    if not tenant_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Token missing tenant_id claim",
        )

    tid = UUID(tenant_id)
    structlog.contextvars.bind_contextvars(tenant_id=str(tid))
    return tid


async def get_current_user_claims(request: Request) -> dict:
    """Return the decoded Keycloak payload, used for role checks.

    Relevant claims: sub, email, realm_access.roles and
    resource_access.<client>.roles.
    """
    return await _require_payload(request)

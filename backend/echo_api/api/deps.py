"""
FastAPI Dependencies for Authentication and Authorization.

Key patterns:
1. Services (storage, gateway, orchestrator, auth provider) are built once at
   startup and stored on app.state; dependencies read them from there
2. get_current_user: Extracts the bearer token and resolves it to a User
   through the configured AuthProvider
3. Ownership checks happen in stores and services, not middleware

Security model:
- Token sent as 'Authorization: Bearer <token>'
- Missing auth configuration rejects every privileged request (fail closed)
"""

from typing import Annotated
from uuid import UUID

from fastapi import Depends, Header, Request

from echo_api.config import Settings, get_settings
from echo_api.errors import Forbidden, RateLimited, Unauthorized
from echo_api.services.auth import AuthProvider
from echo_api.services.model_gateway import ModelGateway
from echo_api.services.rate_limiter import RateLimiter
from echo_api.services.turn_orchestrator import TurnOrchestrator
from echo_api.storage.base import Storage, User


# =============================================================================
# SERVICES
# =============================================================================


def get_storage(request: Request) -> Storage:
    return request.app.state.storage


def get_gateway(request: Request) -> ModelGateway:
    return request.app.state.gateway


def get_orchestrator(request: Request) -> TurnOrchestrator:
    return request.app.state.orchestrator


def get_auth_provider(request: Request) -> AuthProvider:
    return request.app.state.auth_provider


StorageDep = Annotated[Storage, Depends(get_storage)]
GatewayDep = Annotated[ModelGateway, Depends(get_gateway)]
OrchestratorDep = Annotated[TurnOrchestrator, Depends(get_orchestrator)]
AuthProviderDep = Annotated[AuthProvider, Depends(get_auth_provider)]
SettingsDep = Annotated[Settings, Depends(get_settings)]


# =============================================================================
# RATE LIMITING
# =============================================================================


async def enforce_rate_limit(request: Request) -> None:
    """Count the request against the caller's address; 429 past the limit."""
    limiter: RateLimiter | None = getattr(request.app.state, "rate_limiter", None)
    if limiter is None:
        return
    client = request.client.host if request.client else "unknown"
    if not limiter.check_and_increment(client):
        raise RateLimited()


# =============================================================================
# AUTHENTICATION DEPENDENCIES
# =============================================================================


async def get_token_from_request(
    authorization: Annotated[str | None, Header()] = None,
) -> str:
    """Extract the token from 'Authorization: Bearer <token>'."""
    if authorization:
        parts = authorization.split()
        if len(parts) == 2 and parts[0].lower() == "bearer":
            return parts[1]

    raise Unauthorized("Not authorized, no token provided")


async def get_current_user(
    token: Annotated[str, Depends(get_token_from_request)],
    provider: AuthProviderDep,
    storage: StorageDep,
) -> User:
    """
    Resolve the bearer token to the current user.

        @router.get("/history/{user_id}")
        async def history(user: CurrentUser):
            # user is guaranteed to be authenticated
            ...

    Raises Unauthorized if the token is invalid or expired, the user no
    longer exists, or authentication is not configured.
    """
    return await provider.authenticate(token, storage.users)


CurrentUser = Annotated[User, Depends(get_current_user)]


# =============================================================================
# AUTHORIZATION HELPERS
# =============================================================================


def require_self(user_id: UUID | str, current_user: User) -> None:
    """
    Verify a user-scoped path parameter names the caller.

    We return 403 Forbidden (not 404) when it doesn't: user ids are not secret
    and the distinction helps debugging.
    """
    if str(user_id) != str(current_user.id):
        raise Forbidden("You can only access your own data")

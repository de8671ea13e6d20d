"""
Authentication Routes

Endpoints:
- POST /auth/login - Login or register (auto-provisioning), returns a JWT
- GET /auth/verify - Validate the bearer token and return the user

Login is only offered by the "jwt" auth provider. With "firebase", clients
authenticate every request with their Firebase ID token and accounts are
provisioned on first use.
"""

import logging

from fastapi import APIRouter

from echo_api.api.deps import AuthProviderDep, CurrentUser, StorageDep
from echo_api.errors import BadRequest, Unauthorized
from echo_api.schemas.auth import LoginRequest, TokenResponse, VerifyResponse
from echo_api.schemas.user import UserRead
from echo_api.services.auth import NOT_CONFIGURED, JWTAuthProvider

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=TokenResponse)
async def login(
    request: LoginRequest,
    storage: StorageDep,
    provider: AuthProviderDep,
) -> TokenResponse:
    """
    Login or register a user (auto-signup).

    Flow:
    1. Find the user by google_id, then by email
    2. Create the user if absent; refresh name / google_id if changed
    3. Return a signed JWT
    """
    if not isinstance(provider, JWTAuthProvider):
        raise BadRequest(f"Login is not available with the '{provider.name}' auth provider")

    if not provider.configured:
        raise Unauthorized(NOT_CONFIGURED)

    user, created = await storage.users.provision(
        email=request.email,
        name=request.name,
        external_id=request.google_id,
    )
    if created:
        logger.info("New user created: %s", user.email)
    else:
        logger.info("Existing user logged in: %s", user.email)

    return TokenResponse(
        message="User registered successfully" if created else "Login successful",
        token=provider.create_access_token(user.id, user.email),
        expires_in=provider.expire_minutes * 60,
        user=UserRead.model_validate(user),
    )


@router.get("/verify", response_model=VerifyResponse)
async def verify(current_user: CurrentUser) -> VerifyResponse:
    """
    Verify the token and return the current user's profile.

    Useful for checking whether a stored session is still valid after page reload.
    """
    return VerifyResponse(user=UserRead.model_validate(current_user))

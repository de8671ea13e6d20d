"""
Authentication providers.

A deployment picks exactly one strategy with AUTH_PROVIDER:

- "jwt": the API issues its own HS256 tokens at POST /auth/login
- "firebase": clients send Firebase ID tokens, verified with google-auth;
  the matching user is auto-provisioned from the token claims

Both fail closed: without their configuration (JWT secret / Firebase project
id) every token is rejected.
"""

import abc
import logging
from datetime import datetime, timedelta, timezone
from uuid import UUID

from google.auth import exceptions as google_exceptions
from google.auth.transport import requests as google_requests
from google.oauth2 import id_token as google_id_token
from jose import ExpiredSignatureError, JWTError, jwt
from starlette.concurrency import run_in_threadpool

from echo_api.config import Settings
from echo_api.errors import Unauthorized
from echo_api.storage.base import User, UserStore

logger = logging.getLogger(__name__)

NOT_CONFIGURED = "Authentication is not configured"


class AuthProvider(abc.ABC):
    """Turns a bearer token into a user, or raises Unauthorized."""

    name: str

    @property
    @abc.abstractmethod
    def configured(self) -> bool: ...

    @abc.abstractmethod
    async def authenticate(self, token: str, users: UserStore) -> User: ...


class JWTAuthProvider(AuthProvider):
    name = "jwt"

    def __init__(self, secret_key: str | None, algorithm: str = "HS256", expire_minutes: int = 60 * 24 * 30):
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.expire_minutes = expire_minutes

    @property
    def configured(self) -> bool:
        return bool(self.secret_key)

    def create_access_token(self, user_id: UUID, email: str | None = None) -> str:
        """
        Create a JWT access token for a user.

        Token payload contains:
        - sub: user_id as string (standard JWT subject claim)
        - email: informational only, never trusted for lookups
        - exp: expiration timestamp
        """
        if not self.configured:
            raise Unauthorized(NOT_CONFIGURED)

        expire = datetime.now(timezone.utc) + timedelta(minutes=self.expire_minutes)
        payload = {"sub": str(user_id), "exp": expire}
        if email:
            payload["email"] = email
        return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)

    def decode_access_token(self, token: str) -> UUID:
        """Decode and validate a token, returning the user id."""
        if not self.configured:
            raise Unauthorized(NOT_CONFIGURED)
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except ExpiredSignatureError:
            raise Unauthorized("Token has expired") from None
        except JWTError:
            raise Unauthorized("Invalid token") from None

        try:
            return UUID(payload["sub"])
        except (KeyError, TypeError, ValueError):
            raise Unauthorized("Invalid token") from None

    async def authenticate(self, token: str, users: UserStore) -> User:
        user = await users.get_user(self.decode_access_token(token))
        if user is None:
            raise Unauthorized("User not found")
        return user


class FirebaseAuthProvider(AuthProvider):
    name = "firebase"

    def __init__(self, project_id: str | None):
        self.project_id = project_id
        self._request = google_requests.Request()

    @property
    def configured(self) -> bool:
        return bool(self.project_id)

    def _verify(self, token: str) -> dict:
        # Fetches Google's public certs; blocking, so called from a worker thread
        return google_id_token.verify_firebase_token(token, self._request, audience=self.project_id)

    async def authenticate(self, token: str, users: UserStore) -> User:
        if not self.configured:
            raise Unauthorized(NOT_CONFIGURED)
        try:
            claims = await run_in_threadpool(self._verify, token)
        except (ValueError, google_exceptions.GoogleAuthError) as e:
            logger.info("Firebase token rejected: %s", e)
            message = "Token expired. Please sign in again." if "expired" in str(e).lower() else "Invalid token"
            raise Unauthorized(message) from None

        uid = claims.get("user_id") or claims.get("sub")
        email = claims.get("email")
        if not uid or not email:
            raise Unauthorized("Token is missing required claims")

        name = claims.get("name") or email.split("@")[0]
        user, created = await users.provision(email=email, name=name, external_id=uid)
        if created:
            logger.info("New user provisioned from Firebase: %s", user.email)
        return user


def build_auth_provider(settings: Settings) -> AuthProvider:
    if settings.auth_provider == "firebase":
        provider = FirebaseAuthProvider(settings.firebase_project_id)
    else:
        provider = JWTAuthProvider(
            settings.jwt_secret_key,
            algorithm=settings.jwt_algorithm,
            expire_minutes=settings.jwt_expire_minutes,
        )
    if not provider.configured:
        logger.warning("Auth provider '%s' is not configured; protected routes will reject all requests", provider.name)
    return provider

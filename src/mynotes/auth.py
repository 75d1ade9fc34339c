"""
Identity provider for mynotes.

Email/password accounts through the Firebase Authentication REST API.
The signed-in user is kept in session.json so it survives restarts.
The notes core only ever sees the user's email.
"""

import logging
import os
from pathlib import Path
from typing import Any

import httpx
from pydantic import BaseModel, ValidationError

from mynotes.config import get_session_path, load_config
from mynotes.exceptions import MynotesError

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://identitytoolkit.googleapis.com/v1"
DEFAULT_TOKEN_URL = "https://securetoken.googleapis.com/v1/token"


class AuthError(MynotesError):
    """Generic identity provider failure."""


class UserNotLoggedInError(AuthError):
    """The operation needs a signed-in user."""


class TokenExpiredError(UserNotLoggedInError):
    """The saved ID token is no longer accepted."""


class InvalidCredentialsError(AuthError):
    """Wrong email or password."""


class EmailAlreadyInUseError(AuthError):
    """An account already exists for this email."""


class InvalidEmailError(AuthError):
    """The email address is malformed."""


class WeakPasswordError(AuthError):
    """The password was rejected as too weak."""


# Firebase error message -> exception class
ERROR_CODES: dict[str, type[AuthError]] = {
    "EMAIL_EXISTS": EmailAlreadyInUseError,
    "INVALID_EMAIL": InvalidEmailError,
    "WEAK_PASSWORD": WeakPasswordError,
    "EMAIL_NOT_FOUND": InvalidCredentialsError,
    "INVALID_PASSWORD": InvalidCredentialsError,
    "INVALID_LOGIN_CREDENTIALS": InvalidCredentialsError,
    "INVALID_ID_TOKEN": TokenExpiredError,
    "TOKEN_EXPIRED": TokenExpiredError,
    "INVALID_REFRESH_TOKEN": UserNotLoggedInError,
    "USER_NOT_FOUND": UserNotLoggedInError,
}


class AuthUser(BaseModel):
    """The signed-in account as reported by the identity provider."""

    uid: str
    email: str
    is_email_verified: bool = False
    id_token: str
    refresh_token: str | None = None


def load_session(session_path: Path | None = None) -> AuthUser | None:
    """Read the saved session, if any. Needs no network or API key."""
    session_path = session_path or get_session_path()
    if not session_path.exists():
        return None
    try:
        return AuthUser.model_validate_json(session_path.read_text(encoding="utf-8"))
    except ValidationError as e:
        logger.warning(f"Ignoring unreadable session {session_path}: {e}")
        return None


def clear_session(session_path: Path | None = None) -> None:
    """Remove the saved session. Needs no network or API key."""
    session_path = session_path or get_session_path()
    session_path.unlink(missing_ok=True)


def error_from_response(response: httpx.Response) -> AuthError:
    """Map a Firebase error response to an AuthError."""
    try:
        message = response.json()["error"]["message"]
    except (ValueError, KeyError, TypeError):
        return AuthError(f"HTTP {response.status_code}")

    # e.g. "WEAK_PASSWORD : Password should be at least 6 characters"
    code = message.split(":", 1)[0].strip()
    error_cls = ERROR_CODES.get(code, AuthError)
    return error_cls(message)


def first_account(data: dict[str, Any]) -> dict[str, Any]:
    """Pick the account out of an accounts:lookup response."""
    users = data.get("users") or []
    if not users:
        raise UserNotLoggedInError("Account no longer exists")
    return users[0]


class FirebaseAuthProvider:
    """Firebase email/password authentication with a local session file."""

    def __init__(
        self,
        config: dict[str, Any] | None = None,
        session_path: Path | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.config = config or load_config()
        auth_config = self.config.get("auth", {})

        self.api_key = (
            auth_config.get("api_key")
            or os.environ.get("MYNOTES_FIREBASE_API_KEY")
        )
        if not self.api_key:
            raise ValueError(
                "Firebase API key not found. Set MYNOTES_FIREBASE_API_KEY env var or add to config."
            )

        self.base_url = auth_config.get("base_url", DEFAULT_BASE_URL)
        self.token_url = auth_config.get("token_url", DEFAULT_TOKEN_URL)
        self.session_path = session_path or get_session_path()
        self._transport = transport
        self._user = load_session(self.session_path)

    @property
    def current_user(self) -> AuthUser | None:
        return self._user

    def _require_user(self) -> AuthUser:
        if self._user is None:
            raise UserNotLoggedInError("No user is signed in")
        return self._user

    async def _request(self, url: str, label: str, **kwargs: Any) -> dict[str, Any]:
        """POST to url with the API key and return the decoded body."""
        async with httpx.AsyncClient(timeout=30.0, transport=self._transport) as client:
            response = await client.post(url, params={"key": self.api_key}, **kwargs)

        if response.is_error:
            error = error_from_response(response)
            logger.warning(f"{label} failed: {error}")
            raise error

        logger.debug(f"{label} OK")
        return response.json()

    async def _post(self, endpoint: str, payload: dict[str, Any]) -> dict[str, Any]:
        """POST to an accounts endpoint."""
        return await self._request(f"{self.base_url}/{endpoint}", endpoint, json=payload)

    async def _post_as_user(self, endpoint: str, payload: dict[str, Any] | None = None) -> dict[str, Any]:
        """
        POST to an accounts endpoint with the signed-in user's ID token.

        ID tokens expire after an hour. An expired one is exchanged once
        for a new one using the saved refresh token, then the call is retried.
        """
        user = self._require_user()
        payload = payload or {}
        try:
            return await self._post(endpoint, {**payload, "idToken": user.id_token})
        except TokenExpiredError:
            if not user.refresh_token:
                raise

        user = await self._refresh_id_token(user)
        return await self._post(endpoint, {**payload, "idToken": user.id_token})

    async def _refresh_id_token(self, user: AuthUser) -> AuthUser:
        data = await self._request(self.token_url, "token", data={
            "grant_type": "refresh_token",
            "refresh_token": user.refresh_token,
        })
        user = user.model_copy(update={
            "id_token": data["id_token"],
            "refresh_token": data.get("refresh_token", user.refresh_token),
        })
        self._set_user(user)
        logger.info(f"Refreshed ID token for {user.email}")
        return user

    async def _lookup(self, id_token: str) -> dict[str, Any]:
        return first_account(await self._post("accounts:lookup", {"idToken": id_token}))

    async def register(self, email: str, password: str) -> AuthUser:
        """Create an account and sign in as it."""
        data = await self._post("accounts:signUp", {
            "email": email,
            "password": password,
            "returnSecureToken": True,
        })
        user = AuthUser(
            uid=data["localId"],
            email=data.get("email", email),
            is_email_verified=False,
            id_token=data["idToken"],
            refresh_token=data.get("refreshToken"),
        )
        self._set_user(user)
        return user

    async def login(self, email: str, password: str) -> AuthUser:
        """Sign in with email and password."""
        data = await self._post("accounts:signInWithPassword", {
            "email": email,
            "password": password,
            "returnSecureToken": True,
        })
        account = await self._lookup(data["idToken"])
        user = AuthUser(
            uid=data["localId"],
            email=data.get("email", email),
            is_email_verified=bool(account.get("emailVerified", False)),
            id_token=data["idToken"],
            refresh_token=data.get("refreshToken"),
        )
        self._set_user(user)
        return user

    async def refresh(self) -> AuthUser:
        """Re-read the signed-in account (picks up email verification)."""
        account = first_account(await self._post_as_user("accounts:lookup"))
        user = self._require_user().model_copy(update={
            "is_email_verified": bool(account.get("emailVerified", False)),
        })
        self._set_user(user)
        return user

    async def send_email_verification(self) -> None:
        """Ask the provider to email a verification link to the signed-in user."""
        await self._post_as_user("accounts:sendOobCode", {"requestType": "VERIFY_EMAIL"})
        user = self._require_user()
        logger.info(f"Sent verification email to {user.email}")

    def logout(self) -> None:
        """Forget the signed-in user."""
        self._require_user()
        self._user = None
        clear_session(self.session_path)

    def _set_user(self, user: AuthUser) -> None:
        self._user = user
        self.session_path.parent.mkdir(parents=True, exist_ok=True)
        self.session_path.write_text(user.model_dump_json(), encoding="utf-8")


def get_auth_provider(config: dict[str, Any] | None = None) -> FirebaseAuthProvider:
    """Build the configured identity provider."""
    config = config or load_config()
    provider = config.get("auth", {}).get("provider", "firebase")
    if provider != "firebase":
        raise ValueError(f"Unknown auth provider: {provider}")
    return FirebaseAuthProvider(config)

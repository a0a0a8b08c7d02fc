"""Accounts: password login and Google sign-in."""
import hashlib
import hmac
import secrets
from typing import Optional
from urllib.parse import urlencode

import httpx

from fluentdrama.core.errors import AuthenticationError, UpstreamError, ValidationFailedError
from fluentdrama.core.logging import setup_logging
from fluentdrama.models.user import RegisterRequest, User
from fluentdrama.services.storage import Storage

logger = setup_logging("auth")

SCRYPT_N = 2**14
SCRYPT_R = 8
SCRYPT_P = 1


def hash_password(password: str, salt: Optional[bytes] = None) -> str:
    """Return `salt_hex.hash_hex` using scrypt."""
    salt = salt or secrets.token_bytes(16)
    digest = hashlib.scrypt(
        password.encode("utf-8"), salt=salt, n=SCRYPT_N, r=SCRYPT_R, p=SCRYPT_P, dklen=64
    )
    return f"{salt.hex()}.{digest.hex()}"


def verify_password(password: str, stored: str) -> bool:
    try:
        salt_hex, digest_hex = stored.split(".", 1)
        salt = bytes.fromhex(salt_hex)
    except ValueError:
        return False
    candidate = hash_password(password, salt).split(".", 1)[1]
    return hmac.compare_digest(candidate, digest_hex)


class AuthService:
    """Registration, password login and Google account linking."""

    def __init__(self, storage: Storage, admin_emails=()) -> None:
        self.storage = storage
        self.admin_emails = {email.lower() for email in admin_emails}

    def register(self, request: RegisterRequest) -> User:
        email = request.email.strip().lower()
        if not email or not request.password:
            raise ValidationFailedError("Email and password are required")
        if self.storage.get_user_by_email(email) is not None:
            raise ValidationFailedError("User already exists")
        user = User(
            email=email,
            password_hash=hash_password(request.password),
            first_name=request.first_name,
            last_name=request.last_name,
            is_admin=email in self.admin_emails,
        )
        self.storage.create_user(user)
        logger.info("Registered user", extra={"user_id": user.id})
        return user

    def authenticate(self, email: str, password: str) -> User:
        user = self.storage.get_user_by_email(email.strip().lower())
        if user is None or not user.password_hash or not verify_password(password, user.password_hash):
            raise AuthenticationError("Invalid email or password")
        return user

    def user_for_session(self, user_id: Optional[str]) -> User:
        if not user_id:
            raise AuthenticationError()
        user = self.storage.get_user(user_id)
        if user is None:
            raise AuthenticationError()
        return user

    def google_user(self, profile: dict) -> User:
        """Find or create the user for a Google profile (sub, email, names, picture)."""
        google_id = profile["sub"]
        user = self.storage.get_user_by_google_id(google_id)
        if user is not None:
            return user
        email = (profile.get("email") or "").lower()
        user = self.storage.get_user_by_email(email) if email else None
        if user is not None:
            return self.storage.update_user(user.id, {"google_id": google_id}) or user
        user = User(
            email=email,
            google_id=google_id,
            first_name=profile.get("given_name"),
            last_name=profile.get("family_name"),
            profile_image_url=profile.get("picture"),
            is_admin=email in self.admin_emails,
        )
        self.storage.create_user(user)
        logger.info("Created user from Google sign-in", extra={"user_id": user.id})
        return user


class GoogleOAuthClient:
    """Authorization-code flow against Google's OAuth endpoints."""

    AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
    TOKEN_URL = "https://oauth2.googleapis.com/token"
    USERINFO_URL = "https://openidconnect.googleapis.com/v1/userinfo"

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        http: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
    ) -> None:
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.http = http or httpx.AsyncClient(timeout=timeout)

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def authorization_url(self, state: str) -> str:
        query = urlencode(
            {
                "client_id": self.client_id,
                "redirect_uri": self.redirect_uri,
                "response_type": "code",
                "scope": "openid profile email",
                "state": state,
            }
        )
        return f"{self.AUTHORIZE_URL}?{query}"

    async def fetch_profile(self, code: str) -> dict:
        """Exchange the code and return the userinfo claims."""
        try:
            return await self._exchange(code)
        except httpx.HTTPError as exc:
            logger.error("Google OAuth request failed: %s", exc, extra={"error_type": type(exc).__name__})
            raise UpstreamError("Google sign-in failed", error=str(exc)) from exc

    async def _exchange(self, code: str) -> dict:
        token = await self.http.post(
            self.TOKEN_URL,
            data={
                "code": code,
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "redirect_uri": self.redirect_uri,
                "grant_type": "authorization_code",
            },
        )
        if token.status_code != 200:
            raise UpstreamError("Google sign-in failed", error=token.text)
        access_token = token.json()["access_token"]
        info = await self.http.get(
            self.USERINFO_URL, headers={"Authorization": f"Bearer {access_token}"}
        )
        if info.status_code != 200:
            raise UpstreamError("Google sign-in failed", error=info.text)
        return info.json()

    async def aclose(self) -> None:
        await self.http.aclose()

"""
Google OAuth 2.0 authorization-code flow using httpx.
"""

from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlencode
import logging

import httpx

from app.config import get_settings
from app.utils.exceptions import ServiceUnavailableError, UnauthorizedError

logger = logging.getLogger(__name__)

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v3/userinfo"


@dataclass
class GoogleProfile:
    """The parts of a Google profile the API keeps."""

    google_id: str
    email: str
    name: str
    picture: Optional[str] = None


class GoogleOAuthClient:
    """Builds the consent URL and exchanges callback codes for a profile."""

    def __init__(self, client_id: Optional[str], client_secret: Optional[str], redirect_uri: str, timeout: float = 10.0):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.timeout = timeout

    @property
    def enabled(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def _require_enabled(self) -> None:
        if not self.enabled:
            raise ServiceUnavailableError("Google login is not configured")

    def authorization_url(self, state: str) -> str:
        self._require_enabled()
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": "openid email profile",
            "state": state,
            "prompt": "select_account",
        }
        return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"

    async def fetch_profile(self, code: str) -> GoogleProfile:
        """
        Exchange an authorization code for the user's Google profile.

        Raises:
            UnauthorizedError: If Google rejects the code or returns no email
            ServiceUnavailableError: If Google cannot be reached
        """
        self._require_enabled()
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                token_response = await client.post(
                    GOOGLE_TOKEN_URL,
                    data={
                        "code": code,
                        "client_id": self.client_id,
                        "client_secret": self.client_secret,
                        "redirect_uri": self.redirect_uri,
                        "grant_type": "authorization_code",
                    },
                )
                if token_response.status_code != 200:
                    logger.warning(f"Google token exchange failed: {token_response.status_code}")
                    raise UnauthorizedError("Google authentication failed")

                access_token = token_response.json().get("access_token")
                userinfo_response = await client.get(
                    GOOGLE_USERINFO_URL,
                    headers={"Authorization": f"Bearer {access_token}"},
                )
                if userinfo_response.status_code != 200:
                    logger.warning(f"Google userinfo request failed: {userinfo_response.status_code}")
                    raise UnauthorizedError("Google authentication failed")
                info = userinfo_response.json()
        except httpx.HTTPError as e:
            logger.error(f"Google OAuth request error: {e}")
            raise ServiceUnavailableError("Google login is temporarily unavailable")

        if not info.get("email") or not info.get("sub"):
            raise UnauthorizedError("Google profile must include an email address")

        return GoogleProfile(
            google_id=info["sub"],
            email=info["email"],
            name=info.get("name") or info["email"].split("@")[0],
            picture=info.get("picture"),
        )


def get_google_oauth_client() -> GoogleOAuthClient:
    settings = get_settings()
    return GoogleOAuthClient(
        client_id=settings.google_client_id,
        client_secret=settings.google_client_secret,
        redirect_uri=settings.google_redirect_uri,
    )

import logging
from typing import Optional
from urllib.parse import urlencode

import httpx

from app.exceptions import UpstreamFailure
from app.schemas.auth import ExternalProfile

logger = logging.getLogger(__name__)

AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
TOKEN_URL = "https://oauth2.googleapis.com/token"
USERINFO_URL = "https://openidconnect.googleapis.com/v1/userinfo"
SCOPES = ("openid", "email", "profile")


class GoogleIdentityProvider:
    """Authorization-code exchange against Google's OAuth 2.0 / OpenID endpoints."""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self._client = http_client or httpx.AsyncClient(timeout=10.0)

    def authorization_url(self, state: Optional[str] = None) -> str:
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": " ".join(SCOPES),
            "access_type": "offline",
            "prompt": "consent",
        }
        if state:
            params["state"] = state
        return f"{AUTHORIZE_URL}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> ExternalProfile:
        try:
            token_response = await self._client.post(
                TOKEN_URL,
                data={
                    "code": code,
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "redirect_uri": self.redirect_uri,
                    "grant_type": "authorization_code",
                },
            )
            token_response.raise_for_status()
            access_token = token_response.json().get("access_token")
            if not access_token:
                raise UpstreamFailure("Google returned no access token")

            userinfo_response = await self._client.get(
                USERINFO_URL,
                headers={"Authorization": f"Bearer {access_token}"},
            )
            userinfo_response.raise_for_status()
            payload = userinfo_response.json()
        except httpx.HTTPError as e:
            logger.warning("Google code exchange failed: %s", e)
            raise UpstreamFailure(f"Failed to verify Google sign-in: {e}")

        if not payload.get("sub") or not payload.get("email"):
            raise UpstreamFailure("Google profile is missing id or email")

        return ExternalProfile(
            external_id=payload["sub"],
            name=payload.get("name") or payload["email"].split("@")[0],
            email=payload["email"],
            avatar_url=payload.get("picture"),
        )

    async def aclose(self) -> None:
        await self._client.aclose()


def build_identity_provider(settings) -> Optional[GoogleIdentityProvider]:
    """Provider for the configured credentials, or None when login is disabled."""
    if not settings.google_oauth_enabled:
        return None
    return GoogleIdentityProvider(
        settings.GOOGLE_CLIENT_ID,
        settings.GOOGLE_CLIENT_SECRET,
        settings.GOOGLE_CALLBACK_URL,
    )

from typing import Optional

from fastapi import Request

from app.exceptions import UpstreamFailure
from app.integrations.google_oauth import GoogleIdentityProvider
from app.integrations.object_storage import LocalObjectStorage
from app.websocket_manager import PresenceRegistry


def get_registry(request: Request) -> PresenceRegistry:
    return request.app.state.registry


def get_storage(request: Request) -> LocalObjectStorage:
    return request.app.state.storage


def get_identity_provider(request: Request) -> GoogleIdentityProvider:
    provider: Optional[GoogleIdentityProvider] = request.app.state.identity_provider
    if provider is None:
        raise UpstreamFailure("Google OAuth is not configured", disabled=True)
    return provider

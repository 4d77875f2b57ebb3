"""
Authenticated HTTP Client

Builds the httpx client every podmesh operation is handed. The client
attaches a bearer token to each request, either a static token or one
obtained from the server's token endpoint with client credentials.

Usage:
    async with create_client(settings) as client:
        access = AccessControlManager(client)
        await access.grant(resource_url, agent_web_id, ["Read"])
"""

import logging
import time
from typing import Generator

import httpx

from podmesh.core.config import Settings, get_settings
from podmesh.core.errors import AuthenticationError

logger = logging.getLogger(__name__)


class BearerTokenAuth(httpx.Auth):
    """Attach a fixed bearer token."""

    def __init__(self, token: str) -> None:
        self._token = token

    def auth_flow(self, request: httpx.Request) -> Generator[httpx.Request, httpx.Response, None]:
        request.headers["Authorization"] = f"Bearer {self._token}"
        yield request


class ClientCredentialsAuth(httpx.Auth):
    """
    Client-credentials bearer auth.

    The token is requested from ``token_url`` with HTTP Basic
    ``client_id:client_secret`` and reused until ``refresh_margin``
    seconds before it expires.
    """

    requires_response_body = True

    def __init__(
        self,
        token_url: str,
        client_id: str,
        client_secret: str,
        refresh_margin: float = 30.0,
    ) -> None:
        self._token_url = token_url
        self._credentials = (client_id, client_secret)
        self._refresh_margin = refresh_margin
        self._token: str | None = None
        self._expires_at = 0.0

    def auth_flow(self, request: httpx.Request) -> Generator[httpx.Request, httpx.Response, None]:
        if self._token is None or time.monotonic() >= self._expires_at:
            response = yield self._build_token_request()
            self._update_token(response)

        request.headers["Authorization"] = f"Bearer {self._token}"
        yield request

    def _build_token_request(self) -> httpx.Request:
        request = httpx.Request(
            "POST",
            self._token_url,
            data={"grant_type": "client_credentials", "scope": "webid"},
        )
        # Reuse httpx's own Basic header encoding
        return next(httpx.BasicAuth(*self._credentials).auth_flow(request))

    def _update_token(self, response: httpx.Response) -> None:
        if response.status_code != 200:
            raise AuthenticationError.from_response(response, "Failed to get access token")

        data = response.json()
        self._token = data["access_token"]
        expires_in = float(data.get("expires_in", 600))
        self._expires_at = time.monotonic() + max(expires_in - self._refresh_margin, 0.0)
        logger.debug(f"Obtained access token valid for {expires_in:.0f}s")


def build_auth(settings: Settings) -> httpx.Auth | None:
    """Choose the auth scheme the settings provide credentials for."""
    if settings.access_token:
        return BearerTokenAuth(settings.access_token)

    if settings.client_id and settings.client_secret:
        token_url = f"{settings.server_url.rstrip('/')}/.oidc/token"
        return ClientCredentialsAuth(token_url, settings.client_id, settings.client_secret)

    return None


def create_client(
    settings: Settings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """
    Create an authenticated async client.

    Without credentials the client is anonymous, which is enough for
    reading the public directory.

    Args:
        settings: Settings to read credentials and timeout from
        transport: Optional transport override (used by tests)

    Returns:
        Unopened httpx.AsyncClient; use it as an async context manager
    """
    settings = settings or get_settings()
    return httpx.AsyncClient(
        auth=build_auth(settings),
        timeout=settings.http_timeout,
        transport=transport,
    )

"""
podmesh Errors

Every remote failure carries the HTTP status and response body of the
request that failed.
"""

from __future__ import annotations

import httpx


class PodmeshError(Exception):
    """Base error for podmesh operations."""

    pass


class RemoteError(PodmeshError):
    """The storage server answered with an unexpected status."""

    def __init__(self, message: str, status: int, body: str = "", url: str | None = None) -> None:
        super().__init__(f"{message}: {status} {body}".rstrip())
        self.status = status
        self.body = body
        self.url = url

    @property
    def access_denied(self) -> bool:
        """True for 401/403, the server's access-denial signals."""
        return self.status in (401, 403)

    @classmethod
    def from_response(cls, response: httpx.Response, message: str) -> RemoteError:
        """Build the error from a response whose body has been read."""
        return cls(message, response.status_code, response.text, str(response.request.url))


class AccessControlError(RemoteError):
    """Reading or writing an authorization document failed."""

    pass


class NotificationError(RemoteError):
    """Sending, listing or deleting an inbox notification failed."""

    pass


class DirectoryError(RemoteError):
    """Registering in or reading the agent directory failed."""

    pass


class AuthenticationError(RemoteError):
    """The token endpoint refused the client credentials."""

    pass


class AgentNotFoundError(PodmeshError):
    """No directory entry matched the requested agent name."""

    def __init__(self, name: str) -> None:
        super().__init__(f'Agent "{name}" not found in directory')
        self.name = name

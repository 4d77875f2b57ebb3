"""
Sharing Service

Shares a resource in two stages:
1. Grant the recipient access. A failure here fails the share, since
   nothing has changed.
2. Announce the share in the recipient's inbox. This stage is best
   effort: its failure is recorded in the result and the grant stays.

Usage:
    sharing = SharingService(client)

    result = await sharing.share_by_name(
        "https://pod.example/alice/shared/notes.ttl",
        "Bob",
        ["Read"],
        sender_id="https://pod.example/alice/profile/card#me",
        directory_url=directory_url_for("https://pod.example"),
    )
    if not result.notified:
        print(f"Shared, but Bob was not told: {result.error}")
"""

import logging
from typing import Iterable

import httpx

from podmesh.core.errors import AgentNotFoundError, NotificationError
from podmesh.core.models import AccessMode, ShareResult, parse_modes
from podmesh.core.rdf import iri
from podmesh.discovery.directory import AgentDirectory
from podmesh.notifications.inbox import InboxManager, build_notification
from podmesh.sharing.access import AccessControlManager

logger = logging.getLogger(__name__)


class SharingService:
    """Grant-then-notify sharing between agents."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        access: AccessControlManager | None = None,
        inbox: InboxManager | None = None,
        directory: AgentDirectory | None = None,
    ) -> None:
        self._access = access or AccessControlManager(client)
        self._inbox = inbox or InboxManager(client)
        self._directory = directory or AgentDirectory(client)

    async def share(
        self,
        resource_url: str,
        recipient_id: str,
        recipient_inbox_url: str,
        modes: Iterable[AccessMode | str],
        sender_id: str,
    ) -> ShareResult:
        """
        Grant access on a resource and notify the recipient.

        Args:
            resource_url: Resource to share
            recipient_id: WebID of the recipient
            recipient_inbox_url: Recipient's inbox container
            modes: WAC modes to grant
            sender_id: WebID of the sharing agent

        Returns:
            The share outcome; ``granted`` is always True when this returns

        Raises:
            AccessControlError: The grant failed and nothing was shared
            ValueError: A mode or identifier is invalid; nothing was changed
        """
        modes = parse_modes(list(modes))

        # Whatever would break the notification must fail before the grant
        build_notification(sender_id, recipient_id, resource_url, modes)
        iri(recipient_inbox_url)

        await self._access.grant(resource_url, recipient_id, modes)
        result = ShareResult(granted=True)

        return await self._notify(result, recipient_inbox_url, sender_id, recipient_id, resource_url, modes)

    async def share_by_name(
        self,
        resource_url: str,
        recipient_name: str,
        modes: Iterable[AccessMode | str],
        sender_id: str,
        directory_url: str,
    ) -> ShareResult:
        """
        Look up a recipient in the directory by name, then share with them.

        Raises:
            AgentNotFoundError: No agent has that name; nothing was changed
        """
        entry = await self._directory.find_by_name(directory_url, recipient_name)
        if entry is None:
            raise AgentNotFoundError(recipient_name)

        return await self.share(resource_url, entry.web_id, entry.inbox_url, modes, sender_id)

    async def _notify(
        self,
        result: ShareResult,
        inbox_url: str,
        sender_id: str,
        recipient_id: str,
        resource_url: str,
        modes: list[AccessMode],
    ) -> ShareResult:
        try:
            notification_url = await self._inbox.send(
                inbox_url, sender_id, recipient_id, resource_url, modes
            )
        except NotificationError as e:
            logger.warning(f"Shared {resource_url} with {recipient_id} but notification failed: {e}")
            return result.model_copy(
                update={"error": f"Notification failed: {e}", "error_status": e.status}
            )
        except httpx.HTTPError as e:
            logger.warning(f"Shared {resource_url} with {recipient_id} but notification failed: {e}")
            return result.model_copy(update={"error": f"Notification failed: {e}"})

        return result.model_copy(update={"notified": True, "notification_url": notification_url})

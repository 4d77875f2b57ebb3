"""
Inbox Notifications

Sharing announcements delivered as ActivityStreams ``Announce`` documents
created inside the recipient's inbox container.

Usage:
    inbox = InboxManager(client)

    # Announce a share to Bob
    url = await inbox.send(bob_inbox, alice_web_id, bob_web_id, resource_url, ["Read"])

    # Read and clear your own inbox
    for notification in await inbox.list(my_inbox):
        await inbox.delete(notification.id)
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, UTC
from typing import Iterable
from urllib.parse import urljoin

import httpx
from rdflib import Literal

from podmesh.core.errors import NotificationError
from podmesh.core.models import AccessMode, SharingNotification
from podmesh.core.rdf import AS, LDP, SOLID, iri, literal, parse_turtle

logger = logging.getLogger(__name__)

TURTLE = "text/turtle"

NOTIFICATION_TEMPLATE = """@prefix as: <https://www.w3.org/ns/activitystreams#>.
@prefix solid: <http://www.w3.org/ns/solid/terms#>.

<> a as:Announce;
    as:actor {actor};
    as:target {target};
    as:object {object};
    as:summary {summary};
    as:published "{published}"^^<http://www.w3.org/2001/XMLSchema#dateTime>;
    solid:accessModes {modes}.
"""


def build_notification(
    sender_id: str,
    recipient_id: str,
    resource_url: str,
    modes: Iterable[AccessMode | str],
    published: datetime | None = None,
) -> str:
    """Render the Turtle body of a sharing announcement."""
    mode_names = [m.value if isinstance(m, AccessMode) else str(m) for m in modes]
    if not mode_names:
        raise ValueError("At least one access mode is required")

    published = published or datetime.now(UTC)
    return NOTIFICATION_TEMPLATE.format(
        actor=iri(sender_id),
        target=iri(recipient_id),
        object=iri(resource_url),
        summary=literal(f"Resource shared: {resource_url}"),
        published=published.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
        modes=", ".join(literal(m) for m in mode_names),
    )


def parse_notification(turtle: str, url: str) -> SharingNotification | None:
    """
    Parse a notification document.

    Returns:
        The notification, or None when it is malformed or lacks an actor
        or shared resource
    """
    try:
        graph = parse_turtle(turtle, url)
    except ValueError as e:
        logger.debug(f"Unparsable notification {url}: {e}")
        return None

    values: dict = {}
    modes: list[str] = []
    for predicate, obj in graph.predicate_objects():
        if predicate == SOLID.accessModes:
            modes.append(str(obj))
        elif predicate in (AS.actor, AS.target, AS.object, AS.summary):
            values[predicate] = str(obj)
        elif predicate == AS.published:
            values[predicate] = _to_datetime(obj)

    actor = values.get(AS.actor)
    resource_url = values.get(AS.object)
    if not actor or not resource_url:
        return None

    return SharingNotification(
        id=url,
        actor=actor,
        target=values.get(AS.target, ""),
        resource_url=resource_url,
        modes=modes,
        published=values.get(AS.published),
        summary=values.get(AS.summary) or None,
    )


def sort_by_published(notifications: list[SharingNotification]) -> list[SharingNotification]:
    """Order notifications oldest first; undated ones go last."""
    dated = [n for n in notifications if n.published is not None]
    undated = [n for n in notifications if n.published is None]
    return sorted(dated, key=lambda n: n.published) + undated


class InboxManager:
    """
    Sends and consumes sharing notifications.

    Listing is pull-based and makes no ordering promise; use
    ``sort_by_published`` when order matters.
    """

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    async def send(
        self,
        inbox_url: str,
        sender_id: str,
        recipient_id: str,
        resource_url: str,
        modes: Iterable[AccessMode | str],
    ) -> str:
        """
        Announce a share in a recipient's inbox.

        Args:
            inbox_url: Recipient's inbox container
            sender_id: WebID of the sharing agent
            recipient_id: WebID of the recipient
            resource_url: Shared resource
            modes: Access modes that were granted

        Returns:
            Location the server assigned to the notification, or the inbox
            URL itself when the server did not report one
        """
        body = build_notification(sender_id, recipient_id, resource_url, modes)

        response = await self._client.post(
            inbox_url,
            content=body,
            headers={
                "Content-Type": TURTLE,
                "Slug": f"notification-{int(time.time() * 1000)}",
            },
        )
        if not response.is_success:
            raise NotificationError.from_response(response, "Failed to send notification")

        location = response.headers.get("location")
        if not location:
            logger.debug(f"No Location header from {inbox_url}")
            return inbox_url

        notification_url = urljoin(inbox_url, location)
        logger.info(f"Sent notification {notification_url} to {recipient_id}")
        return notification_url

    async def list(self, inbox_url: str) -> list[SharingNotification]:
        """
        List the notifications in an inbox.

        Members that cannot be fetched or parsed are skipped.
        """
        response = await self._client.get(inbox_url, headers={"Accept": TURTLE})
        if response.status_code == 404:
            return []
        if not response.is_success:
            raise NotificationError.from_response(response, "Failed to read inbox")

        notifications = []
        for url in self._container_members(response.text, inbox_url):
            notification = await self._fetch(url)
            if notification is not None:
                notifications.append(notification)

        return notifications

    async def delete(self, notification_id: str) -> None:
        """Delete a notification. One that is already gone counts as deleted."""
        response = await self._client.delete(notification_id)
        if response.status_code == 404:
            logger.debug(f"Notification {notification_id} already deleted")
            return
        if not response.is_success:
            raise NotificationError.from_response(response, "Failed to delete notification")

        logger.info(f"Deleted notification {notification_id}")

    async def _fetch(self, url: str) -> SharingNotification | None:
        try:
            response = await self._client.get(url, headers={"Accept": TURTLE})
        except httpx.HTTPError as e:
            logger.debug(f"Skipping unreachable notification {url}: {e}")
            return None

        if not response.is_success:
            logger.debug(f"Skipping notification {url}: {response.status_code}")
            return None

        notification = parse_notification(response.text, url)
        if notification is None:
            logger.debug(f"Skipping malformed notification {url}")
        return notification

    def _container_members(self, turtle: str, inbox_url: str) -> list[str]:
        try:
            graph = parse_turtle(turtle, inbox_url)
        except ValueError as e:
            logger.debug(f"Unparsable inbox listing {inbox_url}: {e}")
            return []

        return [str(member) for member in graph.objects(predicate=LDP.contains)]


def _to_datetime(term) -> datetime | None:
    value = term.toPython() if isinstance(term, Literal) else None
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(term).replace("Z", "+00:00"))
    except ValueError:
        return None

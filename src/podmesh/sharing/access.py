"""
Access Control Manager

Grants and revokes WAC access for one agent on one resource by rewriting
the resource's authorization document.

Usage:
    access = AccessControlManager(client)

    # Grant read access
    await access.grant(resource_url, "https://pod.example/bob/profile/card#me", ["Read"])

    # Revoke every grant to that agent
    await access.revoke(resource_url, "https://pod.example/bob/profile/card#me")

Grant and revoke read the whole document and write it back. Two callers
changing the same resource concurrently race, and the last write wins.
"""

import logging
from typing import Iterable
from urllib.parse import urljoin

import httpx

from podmesh.core.errors import AccessControlError
from podmesh.core.models import AccessMode
from podmesh.sharing.acl import AuthorizationRule, add_rule, parse, remove_rule

logger = logging.getLogger(__name__)

ACL_SUFFIX = ".acl"
TURTLE = "text/turtle"


class AccessControlManager:
    """
    Manages WAC authorization documents on a storage server.

    Nothing is cached: every call re-reads the document, since the server
    enforces whatever was last written.
    """

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    async def resolve_acl_url(self, resource_url: str) -> str:
        """
        Find the authorization document of a resource.

        The server advertises it in a ``Link: <...>; rel="acl"`` header;
        without one, the ``.acl`` naming convention is assumed.
        """
        response = await self._client.head(resource_url)
        link = response.links.get("acl")
        if link and link.get("url"):
            return urljoin(resource_url, link["url"])

        logger.debug(f"No acl link for {resource_url}, using {ACL_SUFFIX} convention")
        return f"{resource_url}{ACL_SUFFIX}"

    async def fetch_document(self, acl_url: str) -> str | None:
        """
        Read an authorization document.

        Returns:
            The Turtle text, or None when the document does not exist
        """
        response = await self._client.get(acl_url, headers={"Accept": TURTLE})
        if response.status_code == 404:
            return None
        if not response.is_success:
            raise AccessControlError.from_response(response, "Failed to fetch ACL")
        return response.text

    async def grant(
        self,
        resource_url: str,
        agent_id: str,
        modes: Iterable[AccessMode | str],
    ) -> None:
        """
        Grant access modes on a resource to an agent.

        Args:
            resource_url: Resource to share
            agent_id: WebID of the agent receiving access
            modes: WAC modes to grant (Read, Write, Append, Control)
        """
        rule = AuthorizationRule.for_agent(agent_id, resource_url, modes)

        acl_url = await self.resolve_acl_url(resource_url)
        existing = await self.fetch_document(acl_url) or ""

        await self._write(acl_url, add_rule(existing, rule), "Failed to grant access")
        logger.info(
            f"Granted {', '.join(sorted(m.value for m in rule.modes))} on {resource_url} to {agent_id}"
        )

    async def revoke(self, resource_url: str, agent_id: str) -> None:
        """
        Revoke every grant an agent holds on a resource.

        A missing document, or one without grants for the agent, is left
        alone.
        """
        acl_url = await self.resolve_acl_url(resource_url)
        existing = await self.fetch_document(acl_url)
        if existing is None:
            return

        updated = remove_rule(existing, agent_id)
        if updated == existing:
            logger.debug(f"No grants for {agent_id} on {resource_url}")
            return

        await self._write(acl_url, updated, "Failed to revoke access")
        logger.info(f"Revoked access on {resource_url} from {agent_id}")

    async def list_rules(self, resource_url: str) -> list[AuthorizationRule]:
        """List the rules currently governing a resource."""
        acl_url = await self.resolve_acl_url(resource_url)
        document = await self.fetch_document(acl_url)
        if document is None:
            return []
        return parse(document, base=acl_url)

    async def _write(self, acl_url: str, document: str, message: str) -> None:
        response = await self._client.put(
            acl_url,
            content=document,
            headers={"Content-Type": TURTLE},
        )
        if not response.is_success:
            raise AccessControlError.from_response(response, message)

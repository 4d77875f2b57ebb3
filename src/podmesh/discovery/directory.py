"""
Agent Directory

A single shared Turtle document listing the agents on a server, their
pods and their declared capabilities.

Usage:
    directory = AgentDirectory(client)
    url = directory_url_for("https://pod.example")

    # Register yourself
    await directory.register(url, DirectoryEntry(
        web_id="https://pod.example/alice/profile/card#me",
        name="Alice",
        pod_url="https://pod.example/alice/",
        capabilities=["research"],
    ))

    # Find others
    bob = await directory.find_by_name(url, "bob")
    researchers = await directory.find_by_capability(url, "research")

Entries are only ever added with insert-only patches, so agents
registering concurrently never overwrite each other.
"""

from __future__ import annotations

import logging
from urllib.parse import urljoin

import httpx

from podmesh.core.errors import DirectoryError
from podmesh.core.models import DirectoryEntry
from podmesh.core.rdf import AGENTS, FOAF, SOLID, iri, literal, parse_turtle_tolerant

logger = logging.getLogger(__name__)

DIRECTORY_PATH = "directory/agents.ttl"
TURTLE = "text/turtle"

DIRECTORY_PREAMBLE = f"""@prefix foaf: <http://xmlns.com/foaf/0.1/>.
@prefix interition: <{AGENTS}>.
@prefix solid: <http://www.w3.org/ns/solid/terms#>.

"""

# Statuses meaning "already exists" for If-None-Match: * creations
_ALREADY_EXISTS = (409, 412)


def directory_url_for(server_url: str, path: str = DIRECTORY_PATH) -> str:
    """The shared directory document on a server."""
    if not server_url.endswith("/"):
        server_url += "/"
    return urljoin(server_url, path)


def build_entry_triples(entry: DirectoryEntry) -> str:
    """Render an entry's triples with full IRIs, for an INSERT DATA patch."""
    lines = [
        f"{iri(entry.web_id)}",
        f"    a {iri(str(AGENTS.Agent))}, {iri(str(FOAF.Agent))} ;",
        f"    {iri(str(FOAF.name))} {literal(entry.name)}",
    ]
    if entry.pod_url:
        lines[-1] += " ;"
        lines.append(f"    {iri(str(SOLID.account))} {iri(entry.pod_url)}")
    for capability in entry.capabilities:
        lines[-1] += " ;"
        lines.append(f"    {iri(str(AGENTS.capability))} {literal(capability)}")

    lines[-1] += " ."
    return "\n".join(lines)


def parse_directory(turtle: str, base: str) -> list[DirectoryEntry]:
    """
    Parse a directory document.

    Malformed statements are skipped, and subjects without a name are
    not agent entries.
    """
    graph = parse_turtle_tolerant(turtle, base)

    entries = []
    for subject in graph.subjects(unique=True):
        name = graph.value(subject, FOAF.name)
        if name is None or not str(name):
            continue

        pod_url = graph.value(subject, SOLID.account)
        entries.append(
            DirectoryEntry(
                web_id=str(subject),
                name=str(name),
                pod_url=str(pod_url) if pod_url is not None else "",
                capabilities=[str(c) for c in graph.objects(subject, AGENTS.capability)],
            )
        )

    return entries


class AgentDirectory:
    """
    Registers and looks up agents in a shared directory document.

    Reading a directory that does not exist yet gives an empty listing.
    """

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    async def register(self, directory_url: str, entry: DirectoryEntry) -> None:
        """
        Add an agent to the directory.

        Creates the directory container and document on first use, then
        appends the entry's triples.
        """
        await self._ensure_directory(directory_url)

        response = await self._client.patch(
            directory_url,
            content=f"INSERT DATA {{ {build_entry_triples(entry)} }}",
            headers={"Content-Type": "application/sparql-update"},
        )
        if not response.is_success:
            raise DirectoryError.from_response(response, "Failed to register agent")

        logger.info(f"Registered {entry.name} ({entry.web_id}) in {directory_url}")

    async def list(self, directory_url: str) -> list[DirectoryEntry]:
        """List every agent in the directory."""
        response = await self._client.get(directory_url, headers={"Accept": TURTLE})
        if response.status_code == 404:
            return []
        if not response.is_success:
            raise DirectoryError.from_response(response, "Failed to list agents")

        return parse_directory(response.text, directory_url)

    async def find_by_name(self, directory_url: str, name: str) -> DirectoryEntry | None:
        """
        Find an agent by name, ignoring case.

        Names are not unique; the first match wins.
        """
        wanted = name.lower()
        for entry in await self.list(directory_url):
            if entry.name.lower() == wanted:
                return entry
        return None

    async def find_by_capability(self, directory_url: str, capability: str) -> list[DirectoryEntry]:
        """Find every agent declaring a capability, ignoring case."""
        return [e for e in await self.list(directory_url) if e.has_capability(capability)]

    async def _ensure_directory(self, directory_url: str) -> None:
        container_url = directory_url[: directory_url.rfind("/") + 1]

        response = await self._client.put(
            container_url,
            content=b"",
            headers={
                "Content-Type": TURTLE,
                "If-None-Match": "*",
                "Link": '<http://www.w3.org/ns/ldp#BasicContainer>; rel="type"',
            },
        )
        if not response.is_success and response.status_code not in _ALREADY_EXISTS:
            raise DirectoryError.from_response(response, "Failed to create directory container")

        response = await self._client.put(
            directory_url,
            content=DIRECTORY_PREAMBLE,
            headers={"Content-Type": TURTLE, "If-None-Match": "*"},
        )
        if not response.is_success and response.status_code not in _ALREADY_EXISTS:
            raise DirectoryError.from_response(response, "Failed to create directory resource")
        if response.is_success:
            logger.info(f"Created directory {directory_url}")

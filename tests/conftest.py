"""
Shared test fixtures for the podmesh test suite.

Provides fixtures for:
- An in-memory pod server (FakePod) behind httpx.MockTransport
- Authenticated clients for two agents, Alpha and Beta
- Test data factories
"""

from typing import AsyncGenerator, Callable
from urllib.parse import urlsplit
from uuid import uuid4

import httpx
import pytest
import pytest_asyncio
from rdflib import Graph, URIRef
from rdflib.namespace import FOAF, RDF

from podmesh.core.auth import BearerTokenAuth
from podmesh.core.models import DirectoryEntry
from podmesh.core.rdf import ACL


SERVER_URL = "http://localhost:3000/"

ALPHA_WEB_ID = "http://localhost:3000/alpha/profile/card#me"
ALPHA_POD = "http://localhost:3000/alpha/"
BETA_WEB_ID = "http://localhost:3000/beta/profile/card#me"
BETA_POD = "http://localhost:3000/beta/"
BETA_INBOX = "http://localhost:3000/beta/inbox/"

DIRECTORY_URL = "http://localhost:3000/directory/agents.ttl"

INBOX_ACL = f"""@prefix acl: <http://www.w3.org/ns/auth/acl#>.
@prefix foaf: <http://xmlns.com/foaf/0.1/>.

<#owner>
    a acl:Authorization;
    acl:agent <{BETA_WEB_ID}>;
    acl:accessTo <{BETA_INBOX}>;
    acl:mode acl:Read, acl:Write, acl:Control.

<#authenticated-append>
    a acl:Authorization;
    acl:agentClass acl:AuthenticatedAgent;
    acl:accessTo <{BETA_INBOX}>;
    acl:mode acl:Append.
"""


# =============================================================================
# Fake Pod Server
# =============================================================================


class FakePod:
    """
    In-memory Solid-style storage server.

    Supports what podmesh relies on: acl link headers, WAC checks on
    per-resource .acl documents, If-None-Match creation, POST to
    containers with a Location header, INSERT DATA patches and container
    listings. Resources under an owned prefix without an .acl document
    are private to the owner; unowned ones are public.
    """

    def __init__(self) -> None:
        self.resources: dict[str, str] = {}
        self.owners: dict[str, str] = {}
        self.tokens: dict[str, str] = {}
        self.failures: dict[tuple[str, str], int] = {}
        self.requests: list[httpx.Request] = []
        self.advertise_acl = True
        self.send_location = True

    # -- setup ---------------------------------------------------------------

    def add_agent(self, web_id: str, pod_url: str) -> str:
        """Register an agent owning ``pod_url``; returns its bearer token."""
        token = f"token-{uuid4().hex[:8]}"
        self.tokens[token] = web_id
        self.owners[pod_url] = web_id
        self.resources[pod_url] = ""
        self.resources[f"{pod_url}inbox/"] = ""
        return token

    def token_for(self, web_id: str) -> str:
        return next(t for t, w in self.tokens.items() if w == web_id)

    def client(self, web_id: str | None = None) -> httpx.AsyncClient:
        auth = BearerTokenAuth(self.token_for(web_id)) if web_id else None
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handle), auth=auth)

    def fail(self, method: str, url: str, status: int) -> None:
        self.failures[(method, url)] = status

    def calls(self, method: str, url: str | None = None) -> list[httpx.Request]:
        return [
            r for r in self.requests
            if r.method == method and (url is None or str(r.url) == url)
        ]

    # -- request handling ----------------------------------------------------

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url)

        status = self.failures.get((request.method, url))
        if status is not None:
            return httpx.Response(status, text="injected failure")

        agent = self._agent(request)
        handler = getattr(self, f"_{request.method.lower()}")
        return handler(request, url, agent)

    def _head(self, request, url, agent):
        headers = {"Link": f'<{url.rsplit("/", 1)[-1]}.acl>; rel="acl"'} if self.advertise_acl else {}
        return httpx.Response(200 if url in self.resources else 404, headers=headers)

    def _get(self, request, url, agent):
        if url not in self.resources:
            return httpx.Response(404, text="Not found")
        if not self._authorized(url, agent, "Read"):
            return self._denied(agent)
        if url.endswith("/"):
            return httpx.Response(200, text=self._listing(url))
        return httpx.Response(200, text=self.resources[url])

    def _put(self, request, url, agent):
        exists = url in self.resources
        if request.headers.get("if-none-match") == "*" and exists:
            return httpx.Response(409 if url.endswith("/") else 412)
        if not self._authorized(url, agent, "Write"):
            return self._denied(agent)
        self.resources[url] = request.content.decode()
        return httpx.Response(205 if exists else 201)

    def _post(self, request, url, agent):
        if url not in self.resources or not url.endswith("/"):
            return httpx.Response(404)
        if not self._authorized(url, agent, "Append"):
            return self._denied(agent)
        name = request.headers.get("slug") or uuid4().hex
        if f"{url}{name}" in self.resources:
            name = f"{name}-{uuid4().hex[:6]}"
        self.resources[f"{url}{name}"] = request.content.decode()
        headers = {"Location": urlsplit(f"{url}{name}").path} if self.send_location else {}
        return httpx.Response(201, headers=headers)

    def _patch(self, request, url, agent):
        if not self._authorized(url, agent, "Append"):
            return self._denied(agent)
        body = request.content.decode()
        triples = body[body.index("{") + 1: body.rindex("}")]
        self.resources[url] = self.resources.get(url, "") + "\n" + triples.strip() + "\n"
        return httpx.Response(205)

    def _delete(self, request, url, agent):
        if url not in self.resources:
            return httpx.Response(404)
        if not self._authorized(url, agent, "Write"):
            return self._denied(agent)
        del self.resources[url]
        return httpx.Response(205)

    # -- helpers -------------------------------------------------------------

    def _agent(self, request: httpx.Request) -> str | None:
        header = request.headers.get("authorization", "")
        if not header.startswith("Bearer "):
            return None
        return self.tokens.get(header.removeprefix("Bearer "))

    def _denied(self, agent: str | None) -> httpx.Response:
        return httpx.Response(403 if agent else 401, text="Access denied")

    def _owner(self, url: str) -> str | None:
        matches = [prefix for prefix in self.owners if url.startswith(prefix)]
        return self.owners[max(matches, key=len)] if matches else None

    def _authorized(self, url: str, agent: str | None, mode: str) -> bool:
        governed = url
        if url.endswith(".acl"):
            governed, mode = url[: -len(".acl")], "Control"

        owner = self._owner(governed)
        if owner is not None and agent == owner:
            return True

        acl = self.resources.get(f"{governed}.acl")
        if acl is None:
            return owner is None
        return self._acl_allows(acl, f"{governed}.acl", agent, mode)

    def _acl_allows(self, acl: str, acl_url: str, agent: str | None, mode: str) -> bool:
        graph = Graph().parse(data=acl, format="turtle", publicID=acl_url)
        for auth in graph.subjects(RDF.type, ACL.Authorization):
            modes = set(graph.objects(auth, ACL.mode))
            if ACL[mode] not in modes and not (mode == "Append" and ACL.Write in modes):
                continue
            if agent and URIRef(agent) in set(graph.objects(auth, ACL.agent)):
                return True
            classes = set(graph.objects(auth, ACL.agentClass))
            if FOAF.Agent in classes or (agent and ACL.AuthenticatedAgent in classes):
                return True
        return False

    def _listing(self, container: str) -> str:
        members = [
            url[len(container):]
            for url in self.resources
            if url.startswith(container)
            and url != container
            and not url.endswith(".acl")
            and "/" not in url[len(container):].rstrip("/")
        ]
        contains = "".join(f";\n    ldp:contains <{m}>" for m in members)
        return f"@prefix ldp: <http://www.w3.org/ns/ldp#>.\n\n<> a ldp:BasicContainer{contains}.\n"


# =============================================================================
# Pod Fixtures
# =============================================================================


@pytest.fixture
def pod() -> FakePod:
    """A pod server with Alpha and Beta provisioned and Beta's inbox open for appends."""
    server = FakePod()
    server.add_agent(ALPHA_WEB_ID, ALPHA_POD)
    server.add_agent(BETA_WEB_ID, BETA_POD)
    server.resources[f"{BETA_INBOX}.acl"] = INBOX_ACL
    return server


@pytest_asyncio.fixture
async def alpha_client(pod: FakePod) -> AsyncGenerator[httpx.AsyncClient, None]:
    """Client acting as Alpha."""
    async with pod.client(ALPHA_WEB_ID) as client:
        yield client


@pytest_asyncio.fixture
async def beta_client(pod: FakePod) -> AsyncGenerator[httpx.AsyncClient, None]:
    """Client acting as Beta."""
    async with pod.client(BETA_WEB_ID) as client:
        yield client


@pytest_asyncio.fixture
async def anonymous_client(pod: FakePod) -> AsyncGenerator[httpx.AsyncClient, None]:
    """Client without credentials."""
    async with pod.client() as client:
        yield client


# =============================================================================
# Test Data Factories
# =============================================================================


@pytest.fixture
def make_entry() -> Callable[..., DirectoryEntry]:
    """Factory for directory entries."""

    def _make_entry(
        name: str = "Alpha",
        web_id: str | None = None,
        pod_url: str | None = None,
        capabilities: list[str] | None = None,
    ) -> DirectoryEntry:
        slug = name.lower()
        return DirectoryEntry(
            web_id=web_id or f"http://localhost:3000/{slug}/profile/card#me",
            name=name,
            pod_url=pod_url or f"http://localhost:3000/{slug}/",
            capabilities=capabilities if capabilities is not None else ["research"],
        )

    return _make_entry

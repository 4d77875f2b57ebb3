"""
Authorization Document Codec

Pure parse and rewrite of WAC authorization documents (Turtle). No I/O.

A document is a preamble (prefix declarations) followed by rule blocks,
each opened by a ``<#rule-id>`` subject line:

    @prefix acl: <http://www.w3.org/ns/auth/acl#>.

    <#owner>
        a acl:Authorization;
        acl:agent <https://pod.example/alice/profile/card#me>;
        acl:accessTo <https://pod.example/alice/shared/notes.ttl>;
        acl:mode acl:Read, acl:Write, acl:Control.

Rules granted to an agent get the id ``rule_id_for(agent)``, so revoking
finds them again without reading the graph.

Usage:
    document = add_rule(document, AuthorizationRule.for_agent(bob, resource, ["Read"]))
    document = remove_rule(document, bob)
    rules = parse(document)
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Iterable
from urllib.parse import urldefrag

from rdflib import URIRef

from podmesh.core.models import AccessMode, parse_modes
from podmesh.core.rdf import ACL, RDF, iri, parse_turtle

logger = logging.getLogger(__name__)

ACL_PREFIX = "@prefix acl: <http://www.w3.org/ns/auth/acl#>."
FOAF_PREFIX = "@prefix foaf: <http://xmlns.com/foaf/0.1/>."
PREAMBLE = f"{ACL_PREFIX}\n{FOAF_PREFIX}\n"

# Base for relative IRIs (<#owner>) when the caller has no document URL
DEFAULT_BASE = "https://podmesh.invalid/resource.acl"

_BLOCK_START = re.compile(r"^\s*<#([^>]*)>")
_ACL_PREFIX_DECL = re.compile(
    r"(@prefix|PREFIX)\s+acl:\s*<http://www\.w3\.org/ns/auth/acl#>",
    re.IGNORECASE,
)
_NON_ALNUM = re.compile(r"[^a-zA-Z0-9]")


def rule_id_for(agent_id: str) -> str:
    """
    Derive the rule id used for an agent's grants.

    Every non-alphanumeric character becomes "_", so two identifiers that
    differ only in such characters share an id.
    """
    return f"agent-{_NON_ALNUM.sub('_', agent_id)}"


@dataclass(frozen=True)
class AuthorizationRule:
    """One access grant read from, or written to, a document."""

    rule_id: str
    resource: str
    modes: frozenset[AccessMode]
    agent: str | None = None
    agent_class: str | None = None

    @classmethod
    def for_agent(
        cls,
        agent: str,
        resource: str,
        modes: Iterable[AccessMode | str],
    ) -> AuthorizationRule:
        """Build the rule granting ``modes`` on ``resource`` to ``agent``."""
        parsed = parse_modes(list(modes))
        if not parsed:
            raise ValueError("At least one access mode is required")
        return cls(
            rule_id=rule_id_for(agent),
            resource=resource,
            modes=frozenset(parsed),
            agent=agent,
        )

    def to_turtle(self) -> str:
        """Render the rule block."""
        if self.agent:
            subject = f"acl:agent {iri(self.agent)}"
        elif self.agent_class:
            subject = f"acl:agentClass {iri(self.agent_class)}"
        else:
            raise ValueError(f"Rule {self.rule_id} has neither agent nor agent class")

        modes = ", ".join(f"acl:{m.value}" for m in AccessMode if m in self.modes)
        return (
            f"<#{self.rule_id}>\n"
            f"    a acl:Authorization;\n"
            f"    {subject};\n"
            f"    acl:accessTo {iri(self.resource)};\n"
            f"    acl:mode {modes}."
        )


@dataclass
class RuleBlock:
    """The text of one rule block, keyed by its subject's fragment id."""

    rule_id: str
    text: str


@dataclass
class AclDocument:
    """A document split into its preamble and ordered rule blocks."""

    preamble: str = ""
    blocks: list[RuleBlock] = field(default_factory=list)

    @classmethod
    def from_text(cls, text: str) -> AclDocument:
        """
        Split a document into blocks.

        A line opening with ``<#id>`` starts a block only when the previous
        statement has been closed with ".", so an object that happens to sit
        on its own line does not split a block.
        """
        preamble: list[str] = []
        blocks: list[tuple[str, list[str]]] = []
        statement_open = False

        for line in text.splitlines():
            match = _BLOCK_START.match(line)
            if match and not statement_open:
                blocks.append((match.group(1), [line]))
            elif blocks:
                blocks[-1][1].append(line)
            else:
                preamble.append(line)

            stripped = line.strip()
            if stripped and not stripped.startswith("#"):
                statement_open = not stripped.endswith(".")

        return cls(
            preamble="\n".join(preamble).strip(),
            blocks=[RuleBlock(rule_id, "\n".join(lines).strip()) for rule_id, lines in blocks],
        )

    def to_text(self) -> str:
        """Serialize with one blank line between preamble and blocks."""
        parts = [self.preamble] if self.preamble else []
        parts.extend(block.text for block in self.blocks)
        return "\n\n".join(parts) + "\n" if parts else ""

    def remove(self, rule_id: str) -> int:
        """Drop every block with ``rule_id``; returns how many were dropped."""
        kept = [block for block in self.blocks if block.rule_id != rule_id]
        removed = len(self.blocks) - len(kept)
        self.blocks = kept
        return removed


def add_rule(document: str, rule: AuthorizationRule) -> str:
    """
    Append a rule block to a document.

    An empty document gets the standard preamble first. Existing content is
    kept as is; granting the same agent again appends a second block.
    """
    block = rule.to_turtle()
    if not document.strip():
        return f"{PREAMBLE}\n{block}\n"

    if not _ACL_PREFIX_DECL.search(document):
        document = f"{ACL_PREFIX}\n{document}"

    return f"{document.rstrip()}\n\n{block}\n"


def remove_rule(document: str, agent_id: str) -> str:
    """
    Remove every block granted to ``agent_id``.

    Other blocks, the owner's included, keep their order. When nothing
    matches the input is returned unchanged.
    """
    parsed = AclDocument.from_text(document)
    if not parsed.remove(rule_id_for(agent_id)):
        return document
    return parsed.to_text()


def parse(document: str, base: str | None = None) -> list[AuthorizationRule]:
    """
    Read the rules of a document, in block order.

    Best effort: empty or malformed input yields an empty list.

    Args:
        document: Turtle text
        base: URL of the document, for relative rule subjects

    Returns:
        One rule per acl:agent, and per acl:agentClass, of each authorization
    """
    if not document.strip():
        return []

    try:
        graph = parse_turtle(document, base or DEFAULT_BASE)
    except ValueError as e:
        logger.debug(f"Unparsable authorization document: {e}")
        return []

    rules: list[AuthorizationRule] = []
    for subject in graph.subjects(RDF.type, ACL.Authorization, unique=True):
        rule_id = urldefrag(str(subject)).fragment or str(subject)

        resources = list(graph.objects(subject, ACL.accessTo)) or list(
            graph.objects(subject, ACL.default)
        )
        resource = str(resources[0]) if resources else ""

        modes = set()
        for obj in graph.objects(subject, ACL.mode):
            mode = _mode_from_iri(obj)
            if mode is not None:
                modes.add(mode)

        for agent in graph.objects(subject, ACL.agent):
            rules.append(AuthorizationRule(rule_id, resource, frozenset(modes), agent=str(agent)))
        for agent_class in graph.objects(subject, ACL.agentClass):
            rules.append(
                AuthorizationRule(rule_id, resource, frozenset(modes), agent_class=str(agent_class))
            )

    order = {block.rule_id: i for i, block in enumerate(AclDocument.from_text(document).blocks)}
    rules.sort(key=lambda r: order.get(r.rule_id, len(order)))
    return rules


def _mode_from_iri(term) -> AccessMode | None:
    if not isinstance(term, URIRef) or not str(term).startswith(str(ACL)):
        return None
    try:
        return AccessMode(str(term)[len(str(ACL)):])
    except ValueError:
        return None

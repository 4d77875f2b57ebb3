"""
RDF Helpers

Vocabulary namespaces, term escaping for the hand-built Turtle templates,
and rdflib-based parsing for everything read back from the server.

Emission never goes through rdflib and parsing never goes through the
templates.
"""

import logging
import re

from rdflib import Graph, Namespace
from rdflib.namespace import FOAF, RDF, XSD

logger = logging.getLogger(__name__)

ACL = Namespace("http://www.w3.org/ns/auth/acl#")
AS = Namespace("https://www.w3.org/ns/activitystreams#")
LDP = Namespace("http://www.w3.org/ns/ldp#")
SOLID = Namespace("http://www.w3.org/ns/solid/terms#")
AGENTS = Namespace("https://vocab.interition.org/agents#")

__all__ = [
    "ACL",
    "AS",
    "LDP",
    "SOLID",
    "AGENTS",
    "FOAF",
    "RDF",
    "XSD",
    "iri",
    "literal",
    "parse_turtle",
    "parse_turtle_tolerant",
]

# Characters that may not appear inside an IRIREF
_INVALID_IRI = re.compile(r'[\x00-\x20<>"{}|^`\\]')

_PREFIX_LINE = re.compile(r"^\s*(@prefix|@base|PREFIX|BASE)\b", re.IGNORECASE)

_LITERAL_ESCAPES = {
    "\\": "\\\\",
    '"': '\\"',
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
}


def iri(value: str) -> str:
    """Render a value as a Turtle IRI reference, rejecting unsafe input."""
    if not value or _INVALID_IRI.search(value):
        raise ValueError(f"Invalid IRI: {value!r}")
    return f"<{value}>"


def literal(value: str) -> str:
    """Render a value as a quoted Turtle string literal."""
    escaped = "".join(_LITERAL_ESCAPES.get(ch, ch) for ch in value)
    return f'"{escaped}"'


def parse_turtle(text: str, base: str | None = None) -> Graph:
    """
    Parse Turtle into a graph.

    Raises:
        ValueError: The input is malformed. rdflib signals bad Turtle with
            SyntaxError, ValueError or bare assertions; all become ValueError.
    """
    graph = Graph()
    try:
        graph.parse(data=text, format="turtle", publicID=base)
    except Exception as e:
        raise ValueError(f"Malformed Turtle: {e}") from e
    return graph


def parse_turtle_tolerant(text: str, base: str | None = None) -> Graph:
    """
    Parse Turtle, salvaging well-formed statements from a broken document.

    The whole document is tried first. If that fails, prefix declarations
    are kept and every blank-line separated chunk is parsed on its own, so
    one malformed entry does not hide the others.
    """
    try:
        return parse_turtle(text, base)
    except ValueError as e:
        logger.debug(f"Falling back to statement-level parsing: {e}")

    prefixes: list[str] = []
    chunks: list[list[str]] = [[]]
    for line in text.splitlines():
        if _PREFIX_LINE.match(line):
            prefixes.append(line)
        elif not line.strip():
            chunks.append([])
        else:
            chunks[-1].append(line)

    header = "\n".join(prefixes)
    graph = Graph()
    for chunk in chunks:
        if not chunk:
            continue
        try:
            graph += parse_turtle(header + "\n" + "\n".join(chunk), base)
        except ValueError:
            continue
    return graph

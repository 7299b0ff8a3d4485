"""Extraction of WebSub ``self``/``hub`` links from fetched resources.

A resource may advertise its links in HTTP ``Link`` headers, in ``<link>``
elements of an HTML ``<head>``, or in the feed-level links of an Atom or RSS
document. The first source that yields both a topic and a hub wins.
"""

import re
from collections.abc import Iterable
from typing import NamedTuple
from urllib.parse import urljoin

import structlog
from bs4 import BeautifulSoup
from lxml import etree

logger = structlog.get_logger("websub")

ATOM_NS = "http://www.w3.org/2005/Atom"

_LINK_VALUE = re.compile(r"<([^>]*)>([^<]*)")
_REL_PARAM = re.compile(r"""(?:^|;)\s*rel\s*=\s*(?:"([^"]*)"|([^\s;,]+))""", re.IGNORECASE)

_XML_PARSER = etree.XMLParser(resolve_entities=False, no_network=True, recover=False)


class WebSubLinks(NamedTuple):
    """A topic URL together with the hub that serves it."""

    topic: str
    hub: str


def parse_link_header(value: str) -> list[tuple[str, set[str]]]:
    """Split a ``Link`` header value into ``(url, relations)`` pairs."""
    links = []
    for match in _LINK_VALUE.finditer(value):
        url, params = match.group(1).strip(), match.group(2)
        rel = _REL_PARAM.search(params)
        relations = set()
        if rel:
            relations = {r.lower() for r in (rel.group(1) or rel.group(2)).split()}
        links.append((url, relations))
    return links


def _pick(candidates: Iterable[tuple[str, set[str]]], base_url: str | None) -> WebSubLinks | None:
    """Take the first ``self`` and the first ``hub`` out of ``candidates``."""
    topic = hub = None
    for href, relations in candidates:
        if not href:
            continue
        if topic is None and "self" in relations:
            topic = href
        if hub is None and "hub" in relations:
            hub = href
        if topic is not None and hub is not None:
            break

    if topic is None or hub is None:
        return None
    if base_url:
        topic, hub = urljoin(base_url, topic), urljoin(base_url, hub)
    return WebSubLinks(topic=topic, hub=hub)


def links_from_headers(link_headers: Iterable[str], base_url: str | None = None) -> WebSubLinks | None:
    """Find the links in a sequence of raw ``Link`` header values."""
    candidates = []
    for value in link_headers:
        candidates.extend(parse_link_header(value))
    return _pick(candidates, base_url)


def links_from_html(body: bytes | str, base_url: str | None = None) -> WebSubLinks | None:
    """Find the links among the ``<link>`` elements of an HTML head."""
    soup = BeautifulSoup(body, "lxml")
    if soup.head is None:
        return None

    candidates = []
    for element in soup.head.find_all("link"):
        rel = element.get("rel") or []
        if isinstance(rel, str):
            rel = rel.split()
        candidates.append((element.get("href", "").strip(), {r.lower() for r in rel}))
    return _pick(candidates, base_url)


def _parse_xml(body: bytes | str) -> etree._Element | None:
    if isinstance(body, str):
        body = body.encode("utf-8")
    try:
        return etree.fromstring(body, parser=_XML_PARSER)
    except etree.XMLSyntaxError:
        return None


def _feed_candidates(elements: Iterable[etree._Element]) -> list[tuple[str, set[str]]]:
    return [
        ((element.get("href") or "").strip(), set((element.get("rel") or "alternate").lower().split()))
        for element in elements
    ]


def links_from_atom(body: bytes | str, base_url: str | None = None) -> WebSubLinks | None:
    """Find the links among the feed-level links of an Atom document."""
    root = _parse_xml(body)
    if root is None or root.tag != f"{{{ATOM_NS}}}feed":
        return None
    return _pick(_feed_candidates(root.findall(f"{{{ATOM_NS}}}link")), base_url)


def links_from_rss(body: bytes | str, base_url: str | None = None) -> WebSubLinks | None:
    """Find the ``atom:link`` extension links of an RSS channel."""
    root = _parse_xml(body)
    if root is None or root.tag != "rss":
        return None
    channel = root.find("channel")
    if channel is None:
        return None
    return _pick(_feed_candidates(channel.findall(f"{{{ATOM_NS}}}link")), base_url)


def _is_xml(content_type: str | None) -> bool:
    if not content_type:
        return False
    media_type = content_type.split(";", 1)[0].strip().lower()
    return media_type.endswith("/xml") or media_type.endswith("+xml")


def links_from_body(
    body: bytes | str | None,
    content_type: str | None = None,
    base_url: str | None = None,
) -> WebSubLinks | None:
    """Try HTML, then Atom, then RSS on a document body."""
    if not body:
        return None

    if not _is_xml(content_type):
        links = links_from_html(body, base_url)
        if links:
            return links

    return links_from_atom(body, base_url) or links_from_rss(body, base_url)


def extract_links(
    link_headers: Iterable[str] = (),
    body: bytes | str | None = None,
    content_type: str | None = None,
    base_url: str | None = None,
) -> WebSubLinks | None:
    """Return the first complete link pair from headers, then the body."""
    links = links_from_headers(link_headers, base_url)
    if links:
        logger.debug("WebSub links found in headers", topic=links.topic, hub=links.hub)
        return links

    links = links_from_body(body, content_type, base_url)
    if links:
        logger.debug("WebSub links found in body", topic=links.topic, hub=links.hub)
    return links

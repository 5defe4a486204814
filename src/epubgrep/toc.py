from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Iterator

from bs4 import BeautifulSoup, Tag

from .epub import NCX_MEDIA_TYPE, EpubArchive, PackageDocument
from .errors import EntryError, NavigationError
from .logging_utils import debug_log
from .paths import base_directory, decode_href, join_href, normalize_zip_path, split_href_fragment
from .xmlstream import (
    STREAM_READ_ERRORS,
    Characters,
    EndElement,
    StartElement,
    XmlEvent,
    XmlEventReader,
    XmlStreamError,
    get_attribute,
)

BREADCRUMB_SEPARATOR = " > "


class TocParseError(ValueError):
    """Raised when a navigation document ends before its structure is closed."""


@dataclass
class NavigationNode:
    label: str
    target_href: str = ""
    children: list["NavigationNode"] = field(default_factory=list)

    def describe(self, path: str) -> str | None:
        if self.target_href and self.target_href == path:
            return self.label
        for child in self.children:
            found = child.describe(path)
            if found is None:
                continue
            if not self.label:
                return found
            return f"{self.label}{BREADCRUMB_SEPARATOR}{found}"
        return None


@dataclass
class NavigationTree:
    nodes: list[NavigationNode] = field(default_factory=list)

    def describe(self, path: str) -> str | None:
        """Return the breadcrumb label of the first node (pre-order) targeting ``path``."""
        normalized = normalize_zip_path(path)
        for node in self.nodes:
            found = node.describe(normalized)
            if found is not None:
                return found
        return None

    def walk(self) -> Iterator[tuple[int, NavigationNode]]:
        stack = [(0, node) for node in reversed(self.nodes)]
        while stack:
            depth, node = stack.pop()
            yield depth, node
            stack.extend((depth + 1, child) for child in reversed(node.children))


def _resolve_target(base: str, src: str | None) -> str:
    if not src:
        return ""
    path, _ = split_href_fragment(src)
    if not path:
        return ""
    return join_href(base, path)


def _clean_label(parts: Iterable[str]) -> str:
    return " ".join("".join(parts).split())


# ---------- NCX (event driven) ----------


def _parse_nav_point(events: Iterator[XmlEvent], base: str) -> NavigationNode:
    label_parts: list[str] = []
    target = ""
    children: list[NavigationNode] = []
    in_label = False
    text_depth = 0
    for event in events:
        if isinstance(event, StartElement):
            if event.name == "navPoint":
                children.append(_parse_nav_point(events, base))
            elif event.name == "navLabel":
                in_label = True
            elif event.name == "text" and in_label:
                text_depth += 1
            elif event.name == "content" and not target:
                target = _resolve_target(base, get_attribute(event.attributes, "src"))
        elif isinstance(event, EndElement):
            if event.name == "navPoint":
                return NavigationNode(
                    label=_clean_label(label_parts),
                    target_href=target,
                    children=children,
                )
            if event.name == "navLabel":
                in_label = False
            elif event.name == "text" and text_depth:
                text_depth -= 1
        elif isinstance(event, Characters) and text_depth:
            label_parts.append(event.text)
    raise TocParseError("navPoint is not closed")


def parse_ncx_events(events: Iterable[XmlEvent], base: str) -> NavigationTree:
    """Build a tree from NCX events by recursive descent over ``navPoint``."""
    stream = iter(events)
    for event in stream:
        if isinstance(event, StartElement) and event.name == "navMap":
            break
    else:
        raise TocParseError("no navMap element")
    nodes: list[NavigationNode] = []
    for event in stream:
        if isinstance(event, StartElement) and event.name == "navPoint":
            nodes.append(_parse_nav_point(stream, base))
        elif isinstance(event, EndElement) and event.name == "navMap":
            return NavigationTree(nodes)
    raise TocParseError("navMap is not closed")


# ---------- XHTML nav document ----------


def _find_toc_nav(soup: BeautifulSoup) -> Tag | None:
    navs = soup.find_all("nav")
    for nav in navs:
        nav_type = (nav.get("epub:type") or "").lower()
        role = (nav.get("role") or "").lower()
        if "toc" in nav_type.split() or role == "doc-toc":
            return nav
    return navs[0] if navs else None


def _parse_nav_list(list_tag: Tag, base: str) -> list[NavigationNode]:
    nodes: list[NavigationNode] = []
    for item in list_tag.find_all("li", recursive=False):
        heading = item.find(["a", "span"], recursive=False)
        label = _clean_label([heading.get_text()]) if heading is not None else ""
        href = heading.get("href") if heading is not None and heading.name == "a" else None
        target = _resolve_target(base, decode_href(href) if href else None)
        sublist = item.find(["ol", "ul"], recursive=False)
        children = _parse_nav_list(sublist, base) if sublist is not None else []
        nodes.append(NavigationNode(label=label, target_href=target, children=children))
    return nodes


def parse_nav_document(markup: bytes | str, base: str) -> NavigationTree:
    soup = BeautifulSoup(markup, "html.parser")
    nav = _find_toc_nav(soup)
    if nav is None:
        raise TocParseError("no <nav> element")
    top = nav.find(["ol", "ul"])
    if top is None:
        return NavigationTree([])
    return NavigationTree(_parse_nav_list(top, base))


def load_navigation_tree(archive: EpubArchive, package: PackageDocument) -> NavigationTree:
    """Open and parse the navigation document declared by ``package``."""
    toc_path = package.toc_path
    base = base_directory(toc_path)
    try:
        stream = archive.open_entry(toc_path)
    except EntryError as exc:
        raise NavigationError(archive.name, f"cannot open navigation document: {exc.reason}", toc_path) from exc
    with stream:
        try:
            if package.toc_media_type == NCX_MEDIA_TYPE:
                tree = parse_ncx_events(XmlEventReader(stream), base)
            else:
                tree = parse_nav_document(stream.read(), base)
        except (TocParseError, XmlStreamError, *STREAM_READ_ERRORS) as exc:
            raise NavigationError(archive.name, f"invalid navigation document: {exc}", toc_path) from exc
    debug_log(f"{archive.name}: navigation tree with {sum(1 for _ in tree.walk())} entries")
    return tree

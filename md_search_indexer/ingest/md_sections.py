from __future__ import annotations

import logging
from enum import Enum
from typing import Iterator, List, Optional, Tuple

import markdown
from bs4 import BeautifulSoup, NavigableString, Tag
from bs4.element import PageElement, PreformattedString

from ..index.schema import Section
from .clean import normalize_markdown, strip_attribute_lists
from .slug import SlugRegistry

logger = logging.getLogger(__name__)

HEADER_TAGS = {"h1", "h2", "h3"}
INDEX_PAGES = {"index.html", "readme.html"}
MARKDOWN_EXTENSIONS = ["tables", "fenced_code"]


class NodeKind(Enum):
    HEADER = "header"          # h1..h3, a section boundary
    CONTAINER = "container"    # anything else; only its descendants matter
    TEXT = "text"              # character data


def node_kind(node: PageElement) -> NodeKind:
    if isinstance(node, Tag):
        return NodeKind.HEADER if node.name in HEADER_TAGS else NodeKind.CONTAINER
    # Comments, CDATA, doctypes and processing instructions carry no prose
    if isinstance(node, NavigableString) and not isinstance(node, PreformattedString):
        return NodeKind.TEXT
    return NodeKind.CONTAINER


def walk(node: PageElement) -> Iterator[Tuple[NodeKind, PageElement]]:
    """Depth-first headers and text leaves; header contents are never visited."""
    for child in getattr(node, "contents", ()):
        kind = node_kind(child)
        if kind is NodeKind.CONTAINER:
            yield from walk(child)
        else:
            yield kind, child


def render_markdown(content: str) -> str:
    return markdown.markdown(normalize_markdown(content), extensions=MARKDOWN_EXTENSIONS)


def page_base_url(url: str) -> str:
    """Section links for index/readme pages point at the folder itself."""
    parts = url.split("/")
    filename = parts.pop()
    if filename.lower() in INDEX_PAGES:
        filename = ""
    return "/".join(parts + [filename])


class _OpenSection:
    def __init__(self, title: str, anchor_id: str, url: str, order: int):
        self.title = title
        self.anchor_id = anchor_id
        self.url = url
        self.order = order
        self.fragments: List[str] = []

    def close(self) -> Section:
        text = strip_attribute_lists("".join(self.fragments)).strip()
        return Section(
            title=self.title,
            anchor_id=self.anchor_id,
            url=self.url,
            text=text,
            source_order=self.order,
        )


def segment(url: str, content: str) -> List[Section]:
    """
    Split one Markdown document into header-anchored sections.

    Every h1-h3 opens a section that runs until the next h1-h3; deeper
    headings are ordinary text of the enclosing section. Text ahead of the
    first header belongs to no section and is dropped, so a document
    without headers yields nothing.
    """
    soup = BeautifulSoup(render_markdown(content), "html.parser")
    base = page_base_url(url)
    slugs = SlugRegistry()

    sections: List[Section] = []
    current: Optional[_OpenSection] = None
    for kind, node in walk(soup):
        if kind is NodeKind.HEADER:
            if current is not None:
                sections.append(current.close())
            title = node.get_text()
            anchor = slugs.unique(title)
            current = _OpenSection(title, anchor, f"{base}#{anchor}", len(sections))
        elif current is not None:
            current.fragments.append(str(node))
    if current is not None:
        sections.append(current.close())

    logger.debug("Segmented %s into %d sections", url, len(sections))
    return sections

"""BookmarkHandler: builds the document outline from heading elements."""

from __future__ import annotations

import logging
from dataclasses import dataclass

import pikepdf

from effitex.content import read_page_content
from effitex.handlers._pdf_helpers import first_content_ref, get_kids, page_number, walk_struct_tree
from effitex.handlers.base import DocumentHandle
from effitex.instructions import BookmarksInstruction
from effitex.models import HandlerResult

logger = logging.getLogger(__name__)


@dataclass
class Heading:
    level: int
    title: str
    page_index: int


class BookmarkHandler:
    @property
    def name(self) -> str:
        return "Bookmarks"

    @property
    def section(self) -> str:
        return "bookmarks"

    def apply(self, doc: DocumentHandle, section: BookmarksInstruction) -> DocumentHandle:
        result = HandlerResult(handler_name=self.name)
        pdf = doc.pdf

        if section.generate_from_headings and "/StructTreeRoot" in pdf.Root:
            headings = self._collect_headings(pdf)
            if headings:
                with pdf.open_outline() as outline:
                    outline.root.clear()
                    build_outline(headings, outline.root)
                result.changes_made = len(headings)
                logger.info("Bookmarks: %d outline item(s)", len(headings))
            else:
                logger.info("Bookmarks: no headings found, outline left unchanged")

        doc.results.append(result)
        return doc

    def _collect_headings(self, pdf: pikepdf.Pdf) -> list[Heading]:
        texts = _McidTextCache(pdf)
        headings: list[Heading] = []
        for elem in walk_struct_tree(pdf.Root["/StructTreeRoot"]):
            level = heading_level(elem)
            if level is None:
                continue
            page_ref, _ = first_content_ref(elem)
            page_num = page_number(pdf, page_ref) if page_ref is not None else None
            headings.append(Heading(
                level=level,
                title=heading_title(elem, texts),
                page_index=(page_num or 1) - 1,
            ))
        return headings


def heading_level(elem: pikepdf.Dictionary) -> int | None:
    """1-6 for /H1../H6, else None."""
    tag = str(elem.get("/S", ""))
    if len(tag) == 3 and tag.startswith("/H") and tag[2] in "123456":
        return int(tag[2])
    return None


def heading_title(elem: pikepdf.Dictionary, texts: _McidTextCache) -> str:
    for key in ("/ActualText", "/Alt"):
        value = elem.get(key)
        if value is not None and str(value).strip():
            return str(value).strip()

    default_page = elem.get("/Pg")
    parts: list[str] = []
    for kid in get_kids(elem):
        if isinstance(kid, int):
            parts.append(texts.get(default_page, int(kid)))
        elif isinstance(kid, pikepdf.Dictionary) and "/MCID" in kid:
            parts.append(texts.get(kid.get("/Pg", default_page), int(kid["/MCID"])))
    text = " ".join(p for p in parts if p).strip()
    return text or str(elem["/S"])[1:]


class _McidTextCache:
    """Decoded text per (page, MCID), each page parsed at most once."""

    def __init__(self, pdf: pikepdf.Pdf) -> None:
        self._pdf = pdf
        self._pages: dict[tuple[int, int], dict[int, str]] = {}

    def get(self, page_ref: pikepdf.Object | None, mcid: int) -> str:
        if not isinstance(page_ref, pikepdf.Dictionary) or not page_ref.is_indirect:
            return ""
        key = page_ref.objgen
        if key not in self._pages:
            self._pages[key] = self._load(page_ref)
        return self._pages[key].get(mcid, "")

    def _load(self, page_ref: pikepdf.Dictionary) -> dict[int, str]:
        num = page_number(self._pdf, page_ref)
        if num is None:
            return {}
        content = read_page_content(self._pdf.pages[num - 1])
        parts: dict[int, list[str]] = {}
        for op in content.operators:
            if op.kind == "text" and op.mcid is not None:
                parts.setdefault(op.mcid, []).append(op.text)
        return {mcid: "".join(texts).strip() for mcid, texts in parts.items()}


def build_outline(headings: list[Heading], root: list) -> None:
    """Nest *headings* under the nearest open heading of a lower level."""
    stack: list[tuple[int, list]] = [(0, root)]
    for heading in headings:
        item = pikepdf.OutlineItem(
            heading.title, heading.page_index, page_location=pikepdf.PageLocation.Fit
        )
        while len(stack) > 1 and stack[-1][0] >= heading.level:
            stack.pop()
        stack[-1][1].append(item)
        stack.append((heading.level, item.children))

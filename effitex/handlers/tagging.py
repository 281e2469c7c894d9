"""ContentTaggingHandler: links visible content to structure elements.

For every entry the operators inside the page region are wrapped in
``/<Role> <</MCID n>> BDC ... EMC`` and the MCID is attached to the
referenced structure element and recorded in the ParentTree.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Hashable

import pikepdf

from effitex.content import ContentOperator, read_page_content
from effitex.handlers._marking import replace_page_content, wrap_operators
from effitex.handlers._pdf_helpers import (
    add_kid,
    ensure_mark_info,
    ensure_struct_tree_root,
    page_parent_array,
    raw,
)
from effitex.handlers.base import DocumentHandle
from effitex.instructions import ContentTaggingEntry
from effitex.models import HandlerResult

logger = logging.getLogger(__name__)


class ContentTaggingHandler:
    @property
    def name(self) -> str:
        return "ContentTagging"

    @property
    def section(self) -> str:
        return "content_tagging"

    def apply(self, doc: DocumentHandle, section: list[ContentTaggingEntry]) -> DocumentHandle:
        result = HandlerResult(handler_name=self.name)

        by_page: dict[int, list[tuple[int, ContentTaggingEntry]]] = defaultdict(list)
        for i, entry in enumerate(section):
            by_page[entry.page].append((i, entry))

        for page_num, entries in by_page.items():
            result.changes_made += self._tag_page(doc, page_num, entries, result)

        doc.results.append(result)
        return doc

    def _tag_page(
        self,
        doc: DocumentHandle,
        page_num: int,
        entries: list[tuple[int, ContentTaggingEntry]],
        result: HandlerResult,
    ) -> int:
        pdf = doc.pdf
        page = doc.page(page_num)
        content = read_page_content(page)
        resolver = doc.resolver

        elems: dict[Hashable, pikepdf.Dictionary] = {}
        assignments: list[tuple[ContentOperator, Hashable]] = []
        claimed: set[int] = set()

        for i, entry in entries:
            elem = doc.node(entry.node)
            matched = resolver.resolve(content.operators, entry.bbox.to_rect())
            if not matched:
                result.warnings.append(
                    f"content_tagging[{i}]: no content found in bbox on page {page_num}"
                )
                continue
            elems[i] = elem
            for op in matched:
                if op.mcid is not None or op.is_artifact:
                    result.warnings.append(
                        f"content_tagging[{i}]: {op.operator} at position {op.index} "
                        "is already marked; left unchanged"
                    )
                    continue
                if op.index in claimed:
                    continue
                claimed.add(op.index)
                assignments.append((op, i))

        if not assignments:
            return 0

        next_mcid = content.max_mcid + 1
        runs: list[tuple[Hashable, int]] = []

        def open_mark(key: Hashable) -> list:
            nonlocal next_mcid
            mcid = next_mcid
            next_mcid += 1
            runs.append((key, mcid))
            return [elems[key]["/S"], pikepdf.Dictionary({"/MCID": mcid})]

        new_instructions = wrap_operators(content.instructions, assignments, open_mark)
        replace_page_content(pdf, page, new_instructions)

        struct_root = ensure_struct_tree_root(pdf)
        ensure_mark_info(pdf)
        parents = page_parent_array(pdf, struct_root, page)
        for key, mcid in runs:
            elem = elems[key]
            _link_mcid(elem, page, mcid)
            while len(parents) <= mcid:
                parents.append(None)
            parents[mcid] = elem

        logger.info("ContentTagging: page %d, %d marked range(s)", page_num, len(runs))
        return len(runs)


def _link_mcid(elem: pikepdf.Dictionary, page: pikepdf.Page, mcid: int) -> None:
    """Attach *mcid* on *page* to *elem* as an integer kid or an MCR dict."""
    page_obj = raw(page)
    if "/Pg" not in elem:
        elem["/Pg"] = page_obj
    if elem["/Pg"].objgen == page_obj.objgen:
        add_kid(elem, mcid)
    else:
        add_kid(elem, pikepdf.Dictionary({
            "/Type": pikepdf.Name("/MCR"),
            "/Pg": page_obj,
            "/MCID": mcid,
        }))

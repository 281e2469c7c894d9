"""Tests for ContentTaggingHandler."""

from __future__ import annotations

from pathlib import Path

import pikepdf
import pytest

from effitex.content import read_page_content
from effitex.exceptions import ExecutionError
from effitex.handlers.structure import StructureHandler
from effitex.handlers.tagging import ContentTaggingHandler
from effitex.instructions import ContentTaggingEntry, StructureInstruction
from tests.utils.validate import marked_ranges, page_mcids

HEADING_BOX = {"x": 70, "y": 640, "width": 220, "height": 32}
HELLO_BOX = {"x": 70, "y": 690, "width": 100, "height": 25}


def _entry(node: str, page: int, bbox: dict) -> ContentTaggingEntry:
    return ContentTaggingEntry.model_validate({"node": node, "page": page, "bbox": bbox})


def _build(doc, *children: dict) -> None:
    StructureHandler().apply(doc, StructureInstruction.model_validate({
        "root": "Document", "children": list(children),
    }))


class TestContentTaggingHandler:
    def test_wraps_matched_text(self, open_doc, untagged_pdf: Path) -> None:
        doc = open_doc(untagged_pdf)
        _build(doc, {"id": "heading", "role": "H1"}, {"id": "para", "role": "P"})
        ContentTaggingHandler().apply(doc, [
            _entry("heading", 1, HEADING_BOX),
            _entry("para", 1, HELLO_BOX),
        ])

        page = doc.pdf.pages[0]
        # MCIDs follow content-stream order: "Hello World" is drawn first
        assert [tag for tag, _ in marked_ranges(page)] == ["P", "H1"]
        assert page_mcids(page) == [0, 1]
        assert doc.results[-1].changes_made == 2
        assert doc.results[-1].warnings == []

        ops = {op.text: op for op in read_page_content(page).operators}
        assert ops["Hello World"].mcid == 0
        assert ops["Large Heading Text"].mcid == 1
        assert ops["Page 1"].mcid is None

    def test_links_structure_and_parent_tree(self, open_doc, untagged_pdf: Path) -> None:
        doc = open_doc(untagged_pdf)
        _build(doc, {"id": "heading", "role": "H1"})
        ContentTaggingHandler().apply(doc, [_entry("heading", 1, HEADING_BOX)])

        pdf = doc.pdf
        page = pdf.pages[0]
        elem = doc.node("heading")
        assert elem["/Pg"].objgen == page.obj.objgen
        assert list(elem["/K"]) == [0]

        key = int(page.obj["/StructParents"])
        nums = pdf.Root["/StructTreeRoot"]["/ParentTree"]["/Nums"]
        assert int(nums[0]) == key
        assert nums[1][0].objgen == elem.objgen
        assert bool(pdf.Root["/MarkInfo"]["/Marked"]) is True

    def test_no_content_in_bbox_warns(self, open_doc, untagged_pdf: Path) -> None:
        doc = open_doc(untagged_pdf)
        _build(doc, {"id": "p", "role": "P"})
        ContentTaggingHandler().apply(doc, [
            _entry("p", 1, {"x": 400, "y": 400, "width": 10, "height": 10}),
        ])
        result = doc.results[-1]
        assert result.changes_made == 0
        assert result.warnings == ["content_tagging[0]: no content found in bbox on page 1"]
        assert page_mcids(doc.pdf.pages[0]) == []

    def test_already_marked_content_left_unchanged(self, open_doc, untagged_pdf: Path) -> None:
        doc = open_doc(untagged_pdf)
        _build(doc, {"id": "a", "role": "P"}, {"id": "b", "role": "Span"})
        handler = ContentTaggingHandler()
        handler.apply(doc, [_entry("a", 1, HELLO_BOX)])
        handler.apply(doc, [_entry("b", 1, HELLO_BOX)])

        assert page_mcids(doc.pdf.pages[0]) == [0]
        assert "already marked" in doc.results[-1].warnings[0]
        assert doc.results[-1].changes_made == 0

    def test_new_mcids_continue_after_existing(self, open_doc, untagged_pdf: Path) -> None:
        doc = open_doc(untagged_pdf)
        _build(doc, {"id": "a", "role": "P"}, {"id": "b", "role": "H1"})
        handler = ContentTaggingHandler()
        handler.apply(doc, [_entry("a", 1, HELLO_BOX)])
        handler.apply(doc, [_entry("b", 1, HEADING_BOX)])

        assert sorted(page_mcids(doc.pdf.pages[0])) == [0, 1]
        assert list(doc.node("b")["/K"]) == [1]

    def test_node_spanning_pages_uses_mcr(self, open_doc, multipage_pdf: Path) -> None:
        doc = open_doc(multipage_pdf)
        _build(doc, {"id": "body", "role": "P"})
        box = {"x": 70, "y": 690, "width": 150, "height": 25}
        ContentTaggingHandler().apply(doc, [_entry("body", 1, box), _entry("body", 2, box)])

        elem = doc.node("body")
        kids = list(elem["/K"])
        assert kids[0] == 0
        mcr = kids[1]
        assert str(mcr["/Type"]) == "/MCR"
        assert mcr["/Pg"].objgen == doc.pdf.pages[1].obj.objgen
        assert int(mcr["/MCID"]) == 0

    def test_missing_page_raises(self, open_doc, untagged_pdf: Path) -> None:
        doc = open_doc(untagged_pdf)
        _build(doc, {"id": "p", "role": "P"})
        with pytest.raises(ExecutionError, match="Page 9 does not exist"):
            ContentTaggingHandler().apply(doc, [_entry("p", 9, HELLO_BOX)])

    def test_output_reparses(self, open_doc, untagged_pdf: Path) -> None:
        doc = open_doc(untagged_pdf)
        _build(doc, {"id": "p", "role": "P"})
        ContentTaggingHandler().apply(doc, [_entry("p", 1, HELLO_BOX)])
        ops = [str(i.operator) for i in pikepdf.parse_content_stream(doc.pdf.pages[0])]
        assert ops.count("BDC") == ops.count("EMC") == 1

"""Tests for ArtifactHandler."""

from __future__ import annotations

from pathlib import Path

import pikepdf
import pytest

from effitex.content import read_page_content
from effitex.handlers.artifacts import ArtifactHandler, artifact_properties
from effitex.instructions import ArtifactEntry
from tests.utils.validate import marked_ranges

FOOTER_BOX = {"x": 295, "y": 25, "width": 40, "height": 15}


def _entry(page: int, bbox: dict, type: str = "layout") -> ArtifactEntry:
    return ArtifactEntry.model_validate({"page": page, "bbox": bbox, "type": type})


class TestArtifactHandler:
    def test_marks_footer(self, open_doc, untagged_pdf: Path) -> None:
        doc = open_doc(untagged_pdf)
        ArtifactHandler().apply(doc, [_entry(1, FOOTER_BOX, "footer")])

        ((tag, props),) = marked_ranges(doc.pdf.pages[0])
        assert tag == "Artifact"
        assert str(props["/Type"]) == "/Pagination"
        assert str(props["/Subtype"]) == "/Footer"
        assert doc.results[0].changes_made == 1

        ops = {op.text: op for op in read_page_content(doc.pdf.pages[0]).operators}
        assert ops["Page 1"].is_artifact
        assert ops["Page 1"].mcid is None
        assert not ops["Hello World"].is_artifact

    def test_no_structure_created(self, open_doc, untagged_pdf: Path) -> None:
        doc = open_doc(untagged_pdf)
        ArtifactHandler().apply(doc, [_entry(1, FOOTER_BOX)])
        assert "/StructTreeRoot" not in doc.pdf.Root

    def test_every_page(self, open_doc, multipage_pdf: Path) -> None:
        doc = open_doc(multipage_pdf)
        ArtifactHandler().apply(doc, [_entry(n, FOOTER_BOX, "pagination") for n in (1, 2, 3)])
        for page in doc.pdf.pages:
            assert [tag for tag, _ in marked_ranges(page)] == ["Artifact"]
        assert doc.results[0].changes_made == 3

    def test_empty_region_warns(self, open_doc, untagged_pdf: Path) -> None:
        doc = open_doc(untagged_pdf)
        ArtifactHandler().apply(doc, [_entry(1, {"x": 500, "y": 500, "width": 5, "height": 5})])
        assert doc.results[0].warnings == ["artifacts[0]: no content found in bbox on page 1"]

    def test_already_artifact_skipped(self, open_doc, untagged_pdf: Path) -> None:
        doc = open_doc(untagged_pdf)
        handler = ArtifactHandler()
        handler.apply(doc, [_entry(1, FOOTER_BOX)])
        handler.apply(doc, [_entry(1, FOOTER_BOX)])
        assert len(marked_ranges(doc.pdf.pages[0])) == 1
        assert "already marked" in doc.results[1].warnings[0]


class TestArtifactProperties:
    @pytest.mark.parametrize(
        ("artifact_type", "type_name", "subtype"),
        [
            ("layout", "/Layout", None),
            ("background", "/Background", None),
            ("pagination", "/Pagination", None),
            ("header", "/Pagination", "/Header"),
            ("FOOTER", "/Pagination", "/Footer"),
        ],
    )
    def test_mapping(self, artifact_type: str, type_name: str, subtype: str | None) -> None:
        props = artifact_properties(artifact_type)
        assert props["/Type"] == pikepdf.Name(type_name)
        if subtype is None:
            assert "/Subtype" not in props
        else:
            assert props["/Subtype"] == pikepdf.Name(subtype)

"""Tests for AnnotationHandler."""

from __future__ import annotations

from pathlib import Path

import pikepdf
import pytest

from effitex.exceptions import ExecutionError
from effitex.handlers._pdf_helpers import get_kids, parent_tree_get
from effitex.handlers.annotations import AnnotationHandler
from effitex.handlers.structure import StructureHandler
from effitex.instructions import AnnotationOperation, StructureInstruction


def _op(**fields) -> AnnotationOperation:
    return AnnotationOperation.model_validate({"page": 1, **fields})


def _index_of(page: pikepdf.Page, subtype: str) -> int:
    for i, annot in enumerate(page.obj["/Annots"]):
        if str(annot.get("/Subtype")) == subtype:
            return i
    raise AssertionError(f"no {subtype} annotation")


def _build(doc) -> None:
    StructureHandler().apply(doc, StructureInstruction.model_validate({
        "root": "Document", "children": [
            {"id": "link", "role": "Link"},
            {"id": "form", "role": "Form"},
        ],
    }))


class TestTextOperations:
    def test_set_contents(self, open_doc, annotated_pdf: Path) -> None:
        doc = open_doc(annotated_pdf)
        page = doc.pdf.pages[0]
        index = _index_of(page, "/Link")
        AnnotationHandler().apply(doc, [_op(op="set_contents", index=index, value="Example website")])
        assert str(page.obj["/Annots"][index]["/Contents"]) == "Example website"
        assert doc.results[0].changes_made == 1

    def test_set_tu(self, open_doc, annotated_pdf: Path) -> None:
        doc = open_doc(annotated_pdf)
        page = doc.pdf.pages[0]
        index = _index_of(page, "/Widget")
        AnnotationHandler().apply(doc, [_op(op="set_tu", index=index, value="Email address")])
        assert str(page.obj["/Annots"][index]["/TU"]) == "Email address"

    def test_index_out_of_range(self, open_doc, annotated_pdf: Path) -> None:
        doc = open_doc(annotated_pdf)
        with pytest.raises(ExecutionError, match="Annotation index 42 is out of range on page 1"):
            AnnotationHandler().apply(doc, [_op(op="set_contents", index=42, value="x")])

    def test_page_without_annotations(self, open_doc, untagged_pdf: Path) -> None:
        doc = open_doc(untagged_pdf)
        with pytest.raises(ExecutionError, match=r"\(0 annotation\(s\)\)"):
            AnnotationHandler().apply(doc, [_op(op="set_tu", index=0, value="x")])


class TestAssociate:
    def test_associate_with_node(self, open_doc, annotated_pdf: Path) -> None:
        doc = open_doc(annotated_pdf)
        _build(doc)
        page = doc.pdf.pages[0]
        index = _index_of(page, "/Link")
        AnnotationHandler().apply(doc, [_op(op="associate", index=index, node="link")])

        annot = page.obj["/Annots"][index]
        elem = doc.node("link")
        (objr,) = list(elem["/K"])
        assert str(objr["/Type"]) == "/OBJR"
        assert objr["/Obj"].objgen == annot.objgen
        assert objr["/Pg"].objgen == page.obj.objgen

        struct_root = doc.pdf.Root["/StructTreeRoot"]
        parent = parent_tree_get(struct_root, int(annot["/StructParent"]))
        assert parent.objgen == elem.objgen
        assert str(page.obj["/Tabs"]) == "/S"

    def test_associate_without_node_creates_element(self, open_doc, annotated_pdf: Path) -> None:
        doc = open_doc(annotated_pdf)
        _build(doc)
        page = doc.pdf.pages[0]
        index = _index_of(page, "/Link")
        AnnotationHandler().apply(doc, [_op(op="associate", index=index)])

        document = doc.pdf.Root["/StructTreeRoot"]["/K"][0]
        created = document["/K"][-1]
        assert str(created["/S"]) == "/Link"
        assert created["/P"].objgen == document.objgen
        assert str(created["/K"][0]["/Type"]) == "/OBJR"

    def test_widget_without_node_gets_form_role(self, open_doc, annotated_pdf: Path) -> None:
        doc = open_doc(annotated_pdf)
        page = doc.pdf.pages[0]
        index = _index_of(page, "/Widget")
        AnnotationHandler().apply(doc, [_op(op="associate", index=index)])
        # no tag tree yet: the element hangs off StructTreeRoot
        created = doc.pdf.Root["/StructTreeRoot"]["/K"][0]
        assert str(created["/S"]) == "/Form"

    def test_reassociation_moves_ownership(self, open_doc, annotated_pdf: Path) -> None:
        doc = open_doc(annotated_pdf)
        _build(doc)
        page = doc.pdf.pages[0]
        index = _index_of(page, "/Link")
        AnnotationHandler().apply(doc, [
            _op(op="associate", index=index, node="link"),
            _op(op="associate", index=index, node="form"),
        ])
        result = doc.results[-1]
        assert len(result.warnings) == 1
        assert "already associated" in result.warnings[0]

        annot = page.obj["/Annots"][index]
        owners = [
            node for node in ("link", "form")
            if any(
                isinstance(kid, pikepdf.Dictionary) and "/Obj" in kid
                and kid["/Obj"].objgen == annot.objgen
                for kid in get_kids(doc.node(node))
            )
        ]
        assert owners == ["form"]

        struct_root = doc.pdf.Root["/StructTreeRoot"]
        key = int(annot["/StructParent"])
        assert parent_tree_get(struct_root, key).objgen == doc.node("form").objgen
        assert int(struct_root["/ParentTreeNextKey"]) == key + 1

    def test_distinct_parent_tree_keys(self, open_doc, annotated_pdf: Path) -> None:
        doc = open_doc(annotated_pdf)
        _build(doc)
        page = doc.pdf.pages[0]
        AnnotationHandler().apply(doc, [
            _op(op="associate", index=_index_of(page, "/Link"), node="link"),
            _op(op="associate", index=_index_of(page, "/Widget"), node="form"),
        ])
        keys = [int(a["/StructParent"]) for a in page.obj["/Annots"] if "/StructParent" in a]
        assert len(set(keys)) == 2
        assert int(doc.pdf.Root["/StructTreeRoot"]["/ParentTreeNextKey"]) == max(keys) + 1


class TestCreateWidget:
    def test_creates_field(self, open_doc, untagged_pdf: Path) -> None:
        doc = open_doc(untagged_pdf)
        AnnotationHandler().apply(doc, [_op(
            op="create_widget",
            rect={"x": 72, "y": 400, "width": 150, "height": 20},
            field_name="name",
            field_type="Tx",
            tu="Your name",
        )])

        page = doc.pdf.pages[0]
        (widget,) = list(page.obj["/Annots"])
        assert str(widget["/Subtype"]) == "/Widget"
        assert str(widget["/FT"]) == "/Tx"
        assert str(widget["/T"]) == "name"
        assert str(widget["/TU"]) == "Your name"
        assert [float(v) for v in widget["/Rect"]] == [72, 400, 222, 420]
        assert isinstance(widget["/AP"]["/N"], pikepdf.Stream)

        fields = doc.pdf.Root["/AcroForm"]["/Fields"]
        assert fields[0].objgen == widget.objgen

    def test_button_appearance_and_association(self, open_doc, annotated_pdf: Path) -> None:
        doc = open_doc(annotated_pdf)
        _build(doc)
        before = len(doc.pdf.pages[0].obj["/Annots"])
        AnnotationHandler().apply(doc, [_op(
            op="create_widget",
            rect={"x": 72, "y": 300, "width": 20, "height": 20},
            field_name="agree",
            field_type="Btn",
            node="form",
        )])

        annots = doc.pdf.pages[0].obj["/Annots"]
        assert len(annots) == before + 1
        widget = annots[-1]
        assert b"re S" in widget["/AP"]["/N"].read_bytes()
        assert "/StructParent" in widget
        kids = list(doc.node("form")["/K"])
        assert kids[-1]["/Obj"].objgen == widget.objgen

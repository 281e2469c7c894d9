"""AnnotationHandler: annotation text, structure association and widget synthesis."""

from __future__ import annotations

import logging

import pikepdf

from effitex.exceptions import ExecutionError
from effitex.handlers._pdf_helpers import (
    add_kid,
    ensure_struct_tree_root,
    get_kids,
    is_struct_elem,
    make_struct_elem,
    next_parent_tree_key,
    parent_tree_get,
    parent_tree_set,
    raw,
)
from effitex.handlers.base import DocumentHandle
from effitex.instructions import AnnotationOperation
from effitex.models import HandlerResult

logger = logging.getLogger(__name__)

# Annotation /Subtype -> role of the element created for an unassociated annotation
_SUBTYPE_ROLES = {"/Link": "Link", "/Widget": "Form"}

# Print flag
_ANNOT_PRINT = 4


class AnnotationHandler:
    @property
    def name(self) -> str:
        return "Annotations"

    @property
    def section(self) -> str:
        return "annotations"

    def apply(self, doc: DocumentHandle, section: list[AnnotationOperation]) -> DocumentHandle:
        result = HandlerResult(handler_name=self.name)
        dispatch = {
            "set_contents": self._set_contents,
            "set_tu": self._set_tu,
            "associate": self._associate,
            "create_widget": self._create_widget,
        }
        for op in section:
            dispatch[op.op](doc, op, result)
            result.changes_made += 1
        logger.info("Annotations: %d operation(s)", result.changes_made)
        doc.results.append(result)
        return doc

    # -- operations ----------------------------------------------------------

    def _set_contents(self, doc: DocumentHandle, op: AnnotationOperation, result: HandlerResult) -> None:
        annot = _annotation_at(doc, op.page, op.index)
        annot["/Contents"] = pikepdf.String(op.value or "")

    def _set_tu(self, doc: DocumentHandle, op: AnnotationOperation, result: HandlerResult) -> None:
        annot = _annotation_at(doc, op.page, op.index)
        annot["/TU"] = pikepdf.String(op.value or "")

    def _associate(self, doc: DocumentHandle, op: AnnotationOperation, result: HandlerResult) -> None:
        annot = _annotation_at(doc, op.page, op.index)
        page = doc.page(op.page)
        if "/StructParent" in annot:
            result.warnings.append(
                f"Annotation {op.index} on page {op.page} was already associated; re-associated"
            )
        elem = doc.node(op.node) if op.node else None
        associate_annotation(doc.pdf, page, annot, elem)

    def _create_widget(self, doc: DocumentHandle, op: AnnotationOperation, result: HandlerResult) -> None:
        pdf = doc.pdf
        page = doc.page(op.page)
        rect = op.rect.to_rect()

        widget = pdf.make_indirect(pikepdf.Dictionary({
            "/Type": pikepdf.Name("/Annot"),
            "/Subtype": pikepdf.Name("/Widget"),
            "/FT": pikepdf.Name(f"/{op.field_type}"),
            "/T": pikepdf.String(op.field_name or ""),
            "/F": _ANNOT_PRINT,
            "/Rect": pikepdf.Array(rect.as_list()),
            "/P": raw(page),
            "/AP": pikepdf.Dictionary({
                "/N": _appearance_stream(pdf, op.field_type or "Tx", rect.width, rect.height),
            }),
        }))
        if op.tu is not None:
            widget["/TU"] = pikepdf.String(op.tu)

        if "/Annots" not in page.obj:
            page.obj["/Annots"] = pikepdf.Array()
        page.obj["/Annots"].append(widget)

        if "/AcroForm" not in pdf.Root:
            pdf.Root["/AcroForm"] = pdf.make_indirect(pikepdf.Dictionary({"/Fields": pikepdf.Array()}))
        acroform = pdf.Root["/AcroForm"]
        if "/Fields" not in acroform:
            acroform["/Fields"] = pikepdf.Array()
        acroform["/Fields"].append(widget)

        if op.node:
            associate_annotation(pdf, page, widget, doc.node(op.node))
        logger.debug("Annotations: created %s widget %r on page %d", op.field_type, op.field_name, op.page)


def _annotation_at(doc: DocumentHandle, page_num: int, index: int | None) -> pikepdf.Dictionary:
    page = doc.page(page_num)
    annots = page.obj.get("/Annots")
    count = len(annots) if isinstance(annots, pikepdf.Array) else 0
    if index is None or index < 0 or index >= count:
        raise ExecutionError(
            f"Annotation index {index} is out of range on page {page_num} ({count} annotation(s))."
        )
    return annots[index]


def associate_annotation(
    pdf: pikepdf.Pdf,
    page: pikepdf.Page,
    annot: pikepdf.Dictionary,
    elem: pikepdf.Dictionary | None,
) -> pikepdf.Dictionary:
    """Link *annot* to *elem* through an OBJR kid and a ParentTree entry.

    Without *elem*, a Link/Form/Annot element is created under the
    document's top-level element.  Returns the element used.
    """
    struct_root = ensure_struct_tree_root(pdf)
    page_obj = raw(page)

    key = None
    if "/StructParent" in annot:
        previous = parent_tree_get(struct_root, int(annot["/StructParent"]))
        if is_struct_elem(previous):
            _drop_objr(previous, annot)
            key = int(annot["/StructParent"])

    if elem is None:
        role = _SUBTYPE_ROLES.get(str(annot.get("/Subtype", "")), "Annot")
        parent = _top_element(struct_root)
        elem = make_struct_elem(pdf, role, parent, page=page_obj)
        add_kid(parent, elem)
    elif "/Pg" not in elem:
        elem["/Pg"] = page_obj

    objr = pdf.make_indirect(pikepdf.Dictionary({
        "/Type": pikepdf.Name("/OBJR"),
        "/Obj": annot,
        "/Pg": page_obj,
    }))
    add_kid(elem, objr)

    if key is None:
        key = next_parent_tree_key(struct_root)
    annot["/StructParent"] = key
    parent_tree_set(pdf, struct_root, key, elem)

    if "/Tabs" not in page_obj:
        page_obj["/Tabs"] = pikepdf.Name("/S")
    return elem


def _drop_objr(elem: pikepdf.Dictionary, annot: pikepdf.Dictionary) -> None:
    """Remove the OBJR kids of *elem* that reference *annot*."""

    def refers_to_annot(kid: pikepdf.Object) -> bool:
        return (
            isinstance(kid, pikepdf.Dictionary)
            and str(kid.get("/Type", "")) == "/OBJR"
            and "/Obj" in kid
            and kid["/Obj"].objgen == annot.objgen
        )

    elem["/K"] = pikepdf.Array([kid for kid in get_kids(elem) if not refers_to_annot(kid)])


def _top_element(struct_root: pikepdf.Dictionary) -> pikepdf.Dictionary:
    for kid in get_kids(struct_root):
        if is_struct_elem(kid):
            return kid
    return struct_root


def _appearance_stream(pdf: pikepdf.Pdf, field_type: str, width: float, height: float) -> pikepdf.Stream:
    """Normal appearance: a border for buttons, an underline for other fields."""
    if field_type == "Btn":
        ops = f"0 G 1 w 0.5 0.5 {max(width - 1, 0):g} {max(height - 1, 0):g} re S"
    else:
        ops = f"0 G 1 w 0 0.5 m {width:g} 0.5 l S"
    stream = pdf.make_stream(ops.encode("ascii"))
    stream["/Type"] = pikepdf.Name("/XObject")
    stream["/Subtype"] = pikepdf.Name("/Form")
    stream["/BBox"] = pikepdf.Array([0, 0, width, height])
    return stream

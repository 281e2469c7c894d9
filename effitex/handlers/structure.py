"""StructureHandler: builds the declared tag tree.

Creates (or, with ``strip_existing``, first clears) the StructTreeRoot,
instantiates one structure element per declared node, attaches
properties and attribute dictionaries, and records every node id in
``DocumentHandle.nodes`` for the handlers that follow.
"""

from __future__ import annotations

import logging
import re

import pikepdf

from effitex.handlers._pdf_helpers import (
    add_kid,
    ensure_mark_info,
    ensure_struct_tree_root,
    make_struct_elem,
)
from effitex.handlers.base import DocumentHandle
from effitex.instructions import AttributeValue, StructureInstruction, StructureNode
from effitex.models import HandlerResult

logger = logging.getLogger(__name__)

_NUMBER = re.compile(r"^-?\d+(\.\d+)?$")


class StructureHandler:
    @property
    def name(self) -> str:
        return "Structure"

    @property
    def section(self) -> str:
        return "structure"

    def apply(self, doc: DocumentHandle, section: StructureInstruction) -> DocumentHandle:
        pdf = doc.pdf
        result = HandlerResult(handler_name=self.name)

        if section.strip_existing and "/StructTreeRoot" in pdf.Root:
            result.changes_made += self._strip(pdf)

        struct_root = ensure_struct_tree_root(pdf)
        ensure_mark_info(pdf)

        if section.root:
            root_elem = make_struct_elem(pdf, section.root, struct_root)
            add_kid(struct_root, root_elem)
            created = 1
            for child in section.children:
                created += self._build(pdf, child, root_elem, doc.nodes, result)
            result.changes_made += created
            logger.info("Structure: built %d element(s) under /%s", created, section.root)

        doc.results.append(result)
        return doc

    @staticmethod
    def _strip(pdf: pikepdf.Pdf) -> int:
        """Drop the existing tag tree and every back-reference into it."""
        struct_root = pdf.Root["/StructTreeRoot"]
        for key in ("/K", "/ParentTree", "/ParentTreeNextKey", "/IDTree"):
            if key in struct_root:
                del struct_root[key]
        struct_root["/K"] = pikepdf.Array()

        for page in pdf.pages:
            if "/StructParents" in page.obj:
                del page.obj["/StructParents"]
            annots = page.obj.get("/Annots")
            if isinstance(annots, pikepdf.Array):
                for annot in annots:
                    if isinstance(annot, pikepdf.Dictionary) and "/StructParent" in annot:
                        del annot["/StructParent"]
        logger.info("Structure: stripped existing tag tree")
        return 1

    def _build(
        self,
        pdf: pikepdf.Pdf,
        node: StructureNode,
        parent: pikepdf.Object,
        index: dict[str, pikepdf.Dictionary],
        result: HandlerResult,
    ) -> int:
        elem = make_struct_elem(pdf, node.role, parent)
        add_kid(parent, elem)
        self._set_properties(pdf, elem, node)

        if node.id:
            if node.id in index:
                result.warnings.append(f'Duplicate node id "{node.id}" replaced an earlier element')
            index[node.id] = elem

        count = 1
        for child in node.children:
            count += self._build(pdf, child, elem, index, result)
        return count

    def _set_properties(self, pdf: pikepdf.Pdf, elem: pikepdf.Dictionary, node: StructureNode) -> None:
        if node.language:
            elem["/Lang"] = pikepdf.String(node.language)
        if node.alt_text is not None:
            elem["/Alt"] = pikepdf.String(node.alt_text)
        if node.actual_text is not None:
            elem["/ActualText"] = pikepdf.String(node.actual_text)
        if node.element_id:
            elem["/ID"] = pikepdf.String(node.element_id)
            _register_id(pdf, node.element_id, elem)

        attrs = self._attribute_dicts(node)
        if len(attrs) == 1:
            elem["/A"] = attrs[0]
        elif attrs:
            elem["/A"] = pikepdf.Array(attrs)

    @staticmethod
    def _attribute_dicts(node: StructureNode) -> list[pikepdf.Dictionary]:
        by_owner: dict[str, pikepdf.Dictionary] = {}

        if node.bbox is not None:
            b = node.bbox
            by_owner["Layout"] = pikepdf.Dictionary({
                "/O": pikepdf.Name("/Layout"),
                "/BBox": pikepdf.Array([b.x, b.y, b.x + b.width, b.y + b.height]),
            })

        if node.scope is not None or node.colspan is not None or node.rowspan is not None:
            table = pikepdf.Dictionary({"/O": pikepdf.Name("/Table")})
            if node.scope is not None:
                table["/Scope"] = pikepdf.Name(f"/{node.scope}")
            if node.colspan is not None:
                table["/ColSpan"] = node.colspan
            if node.rowspan is not None:
                table["/RowSpan"] = node.rowspan
            by_owner["Table"] = table

        for attr in node.attributes:
            owner_dict = by_owner.setdefault(
                attr.owner, pikepdf.Dictionary({"/O": pikepdf.Name(f"/{attr.owner}")})
            )
            owner_dict[f"/{attr.key}"] = attribute_value(attr.value)

        return list(by_owner.values())


def attribute_value(value: AttributeValue) -> pikepdf.Object:
    """Type a DSL attribute value: ``/Name``, number, boolean or text."""
    if isinstance(value, (bool, int, float)):
        return value  # type: ignore[return-value]
    text = str(value)
    if text.startswith("/") and len(text) > 1:
        return pikepdf.Name(text)
    if text in ("true", "false"):
        return text == "true"  # type: ignore[return-value]
    if _NUMBER.match(text):
        return float(text) if "." in text else int(text)  # type: ignore[return-value]
    return pikepdf.String(text)


def _register_id(pdf: pikepdf.Pdf, element_id: str, elem: pikepdf.Dictionary) -> None:
    """Add *element_id* to the StructTreeRoot /IDTree name tree (flat /Names)."""
    struct_root = pdf.Root["/StructTreeRoot"]
    if "/IDTree" not in struct_root:
        struct_root["/IDTree"] = pdf.make_indirect(pikepdf.Dictionary({"/Names": pikepdf.Array()}))
    tree = struct_root["/IDTree"]
    if "/Names" not in tree:
        tree["/Names"] = pikepdf.Array()

    entries: dict[str, pikepdf.Object] = {}
    names = list(tree["/Names"])
    for i in range(0, len(names) - 1, 2):
        entries[str(names[i])] = names[i + 1]
    entries[element_id] = elem

    flat: list[pikepdf.Object] = []
    for key in sorted(entries):
        flat.extend([pikepdf.String(key), entries[key]])
    tree["/Names"] = pikepdf.Array(flat)

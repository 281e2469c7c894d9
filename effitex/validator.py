"""Business-rule validation for instruction sets.

``validate`` never raises for rule violations and never stops at the first
problem: every applicable rule is checked and all failures are returned.
"""

from __future__ import annotations

from effitex.instructions import (
    AnnotationOperation,
    BoundingBox,
    FontOperation,
    InstructionSet,
    StructureNode,
)
from effitex.models import ValidationResult

SUPPORTED_VERSION = "1.0"

VALID_ROLES = frozenset({
    "Document", "Part", "Art", "Sect", "Div", "BlockQuote", "Caption",
    "TOC", "TOCI", "Index", "NonStruct", "Private",
    "P", "H", "H1", "H2", "H3", "H4", "H5", "H6",
    "L", "LI", "Lbl", "LBody",
    "Table", "TR", "TH", "TD", "THead", "TBody", "TFoot",
    "Span", "Quote", "Note", "Reference", "BibEntry", "Code", "Link", "Annot",
    "Ruby", "RB", "RT", "RP", "Warichu", "WT", "WP",
    "Figure", "Formula", "Form",
})
VALID_SCOPES = frozenset({"Row", "Column", "Both"})
VALID_TAB_ORDERS = frozenset({"structure", "row", "column", "unordered"})
VALID_ARTIFACT_TYPES = frozenset({"layout", "header", "footer", "pagination", "background"})
VALID_PDFUA_PARTS = frozenset({1, 2})

ANNOTATION_OPS = frozenset({"set_contents", "set_tu", "associate", "create_widget"})
FIELD_TYPES = frozenset({"Tx", "Btn", "Ch"})
FONT_OPS = frozenset({
    "write_cidset", "write_charset", "set_encoding", "set_differences",
    "write_tounicode", "set_widths", "add_font_descriptor",
})

_MAX_CHAR_CODE = 0xFFFF


def validate(instructions: InstructionSet) -> ValidationResult:
    """Check *instructions* against every DSL rule and collect all failures."""
    result = ValidationResult()

    _check_version(instructions, result)
    _check_metadata(instructions, result)

    node_ids = _check_structure(instructions, result)

    _check_content_tagging(instructions, node_ids, result)
    _check_artifacts(instructions, result)
    _check_annotations(instructions, node_ids, result)
    _check_fonts(instructions, result)
    _check_ocr(instructions, result)

    return result


def _check_version(instructions: InstructionSet, result: ValidationResult) -> None:
    version = instructions.version
    if version is None or not version.strip():
        result.add("version", "Version is required.")
    elif version != SUPPORTED_VERSION:
        result.add("version", f'Version must be "{SUPPORTED_VERSION}".')


def _check_metadata(instructions: InstructionSet, result: ValidationResult) -> None:
    meta = instructions.metadata
    if meta is None:
        return
    if meta.language is not None and not meta.language.strip():
        result.add("metadata.language", "Language must not be empty.")
    if meta.tab_order is not None and meta.tab_order.lower() not in VALID_TAB_ORDERS:
        result.add(
            "metadata.tab_order",
            f'Tab order "{meta.tab_order}" is invalid. '
            f"Expected one of: {', '.join(sorted(VALID_TAB_ORDERS))}.",
        )
    if meta.pdfua_identifier is not None and meta.pdfua_identifier not in VALID_PDFUA_PARTS:
        result.add("metadata.pdfua_identifier", "PDF/UA identifier must be 1 or 2.")


def _check_structure(instructions: InstructionSet, result: ValidationResult) -> set[str]:
    """Validate the structure tree and return every declared node id."""
    structure = instructions.structure
    node_ids: set[str] = set()
    if structure is None:
        return node_ids
    if not structure.root:
        result.add("structure.root", "Structure root is required.")
    elif structure.root not in VALID_ROLES:
        result.add("structure.root", f'Root "{structure.root}" is not a valid structure role.')

    # Pass 1: collect ids, reporting duplicates where they occur
    for i, child in enumerate(structure.children):
        _collect_ids(child, f"structure.children[{i}]", node_ids, result)
    for i, child in enumerate(structure.children):
        _check_node(child, f"structure.children[{i}]", result)
    return node_ids


def _collect_ids(
    node: StructureNode, path: str, seen: set[str], result: ValidationResult
) -> None:
    if node.id:
        if node.id in seen:
            result.add(f"{path}.id", f'Duplicate id "{node.id}".')
        else:
            seen.add(node.id)
    for i, child in enumerate(node.children):
        _collect_ids(child, f"{path}.children[{i}]", seen, result)


def _check_node(node: StructureNode, path: str, result: ValidationResult) -> None:
    if node.role not in VALID_ROLES:
        result.add(f"{path}.role", f'Role "{node.role}" is not a valid structure role.')
    if node.scope is not None and node.scope not in VALID_SCOPES:
        result.add(
            f"{path}.scope",
            f'Scope "{node.scope}" is invalid. Expected one of: Both, Column, Row.',
        )
    if node.colspan is not None and node.colspan <= 0:
        result.add(f"{path}.colspan", "Colspan must be a positive integer.")
    if node.rowspan is not None and node.rowspan <= 0:
        result.add(f"{path}.rowspan", "Rowspan must be a positive integer.")
    if node.bbox is not None:
        _check_bbox(node.bbox, path, result)
    for i, attr in enumerate(node.attributes):
        if not attr.owner.strip():
            result.add(f"{path}.attributes[{i}].owner", "Attribute owner is required.")
        if not attr.key.strip():
            result.add(f"{path}.attributes[{i}].key", "Attribute key is required.")
    for i, child in enumerate(node.children):
        _check_node(child, f"{path}.children[{i}]", result)


def _check_bbox(bbox: BoundingBox | None, path: str, result: ValidationResult) -> None:
    field = f"{path}.bbox"
    if bbox is None:
        result.add(field, "Bbox is required.")
        return
    if bbox.x < 0 or bbox.y < 0:
        result.add(field, "Bbox x and y must be non-negative.")
    if bbox.width <= 0 or bbox.height <= 0:
        result.add(field, "Bbox width and height must be positive.")


def _check_page(page: int, path: str, result: ValidationResult) -> None:
    if page <= 0:
        result.add(f"{path}.page", "Page must be a positive integer.")


def _check_content_tagging(
    instructions: InstructionSet, node_ids: set[str], result: ValidationResult
) -> None:
    # Pass 2: node references resolve against ids collected from the tree
    for i, entry in enumerate(instructions.content_tagging or []):
        path = f"content_tagging[{i}]"
        if entry.node not in node_ids:
            result.add(
                f"{path}.node",
                f'Node "{entry.node}" does not reference a valid structure node id.',
            )
        _check_page(entry.page, path, result)
        _check_bbox(entry.bbox, path, result)


def _check_artifacts(instructions: InstructionSet, result: ValidationResult) -> None:
    for i, entry in enumerate(instructions.artifacts or []):
        path = f"artifacts[{i}]"
        _check_page(entry.page, path, result)
        _check_bbox(entry.bbox, path, result)
        if (entry.type or "").lower() not in VALID_ARTIFACT_TYPES:
            result.add(
                f"{path}.type",
                f'Artifact type "{entry.type}" is invalid. '
                f"Expected one of: {', '.join(sorted(VALID_ARTIFACT_TYPES))}.",
            )


def _check_annotations(
    instructions: InstructionSet, node_ids: set[str], result: ValidationResult
) -> None:
    for i, op in enumerate(instructions.annotations or []):
        path = f"annotations[{i}]"
        if op.op not in ANNOTATION_OPS:
            result.add(f"{path}.op", f'Annotation op "{op.op}" is not supported.')
            continue
        _check_page(op.page, path, result)
        _check_annotation_op(op, path, node_ids, result)


def _check_annotation_op(
    op: AnnotationOperation, path: str, node_ids: set[str], result: ValidationResult
) -> None:
    if op.op in ("set_contents", "set_tu", "associate"):
        if op.index is None:
            result.add(f"{path}.index", f"Index is required for {op.op}.")
        elif op.index < 0:
            result.add(f"{path}.index", "Index must not be negative.")

    if op.op in ("set_contents", "set_tu") and not op.value:
        result.add(f"{path}.value", f"Value is required for {op.op}.")

    if op.op == "associate" and op.node and op.node not in node_ids:
        result.add(
            f"{path}.node",
            f'Node "{op.node}" does not reference a valid structure node id.',
        )

    if op.op == "create_widget":
        if op.rect is None:
            result.add(f"{path}.rect", "Rect is required for create_widget.")
        else:
            _check_bbox(op.rect, path, result)
        if not (op.field_name or "").strip():
            result.add(f"{path}.field_name", "Field name is required for create_widget.")
        if op.field_type not in FIELD_TYPES:
            result.add(
                f"{path}.field_type",
                f'Field type "{op.field_type}" is invalid. Expected one of: Btn, Ch, Tx.',
            )
        if op.node and op.node not in node_ids:
            result.add(
                f"{path}.node",
                f'Node "{op.node}" does not reference a valid structure node id.',
            )


def _check_fonts(instructions: InstructionSet, result: ValidationResult) -> None:
    for i, op in enumerate(instructions.fonts or []):
        path = f"fonts[{i}]"
        if op.op not in FONT_OPS:
            result.add(f"{path}.op", f'Font op "{op.op}" is not supported.')
            continue
        if not op.font.strip():
            result.add(f"{path}.font", "Font name is required.")
        _check_page(op.page, path, result)
        _check_font_payload(op, path, result)


def _check_font_payload(op: FontOperation, path: str, result: ValidationResult) -> None:
    if op.op == "write_cidset":
        if not op.cids:
            result.add(f"{path}.cids", "At least one CID is required for write_cidset.")
        elif any(cid < 0 for cid in op.cids):
            result.add(f"{path}.cids", "CIDs must not be negative.")
    elif op.op == "write_charset":
        if not op.glyph_names:
            result.add(f"{path}.glyph_names", "At least one glyph name is required for write_charset.")
        elif any(not name.strip() for name in op.glyph_names):
            result.add(f"{path}.glyph_names", "Glyph names must not be empty.")
    elif op.op == "set_encoding":
        if not (op.encoding or "").strip():
            result.add(f"{path}.encoding", "Encoding is required for set_encoding.")
    elif op.op == "set_differences":
        _check_code_map(op.differences, "differences", op.op, path, result)
        if any(not name.strip() for name in op.differences.values()):
            result.add(f"{path}.differences", "Glyph names must not be empty.")
    elif op.op == "write_tounicode":
        _check_code_map(op.mappings, "mappings", op.op, path, result)
    elif op.op == "set_widths":
        _check_code_map(op.widths, "widths", op.op, path, result)
        if any(w < 0 for w in op.widths.values()):
            result.add(f"{path}.widths", "Widths must not be negative.")


def _check_code_map(
    codes: dict, field: str, op: str, path: str, result: ValidationResult
) -> None:
    if not codes:
        result.add(f"{path}.{field}", f"At least one entry is required for {op}.")
    elif any(code < 0 or code > _MAX_CHAR_CODE for code in codes):
        result.add(f"{path}.{field}", "Character codes must be between 0 and 65535.")


def _check_ocr(instructions: InstructionSet, result: ValidationResult) -> None:
    for i, page in enumerate(instructions.ocr or []):
        path = f"ocr[{i}]"
        _check_page(page.page, path, result)
        for j, word in enumerate(page.words):
            word_path = f"{path}.words[{j}]"
            if not word.text.strip():
                result.add(f"{word_path}.text", "Word text is required.")
            _check_bbox(word.bbox, word_path, result)
            if word.confidence is not None and not 0.0 <= word.confidence <= 1.0:
                result.add(f"{word_path}.confidence", "Confidence must be between 0 and 1.")

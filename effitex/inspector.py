"""Read-only structural inspection of a PDF.

Produces an ``InspectionReport`` describing document metadata, fonts, the
tag tree, per-page content operators and annotations, outlines, embedded
files, optional-content configurations and text/background colour pairs.
The input document is never modified.
"""

from __future__ import annotations

import base64
import hashlib
import logging
from collections import Counter
from io import BytesIO
from pathlib import Path

import pikepdf

from effitex.content import ContentOperator, page_resources, read_page_content
from effitex.exceptions import ExecutionError
from effitex.fontinfo import describe_font, to_python
from effitex.handlers._pdf_helpers import (
    first_content_ref,
    get_kids,
    is_struct_elem,
    page_number,
    parent_tree_get,
)
from effitex.pdffont import name_str
from effitex.report import (
    AnnotationInfo,
    BoundingBoxInfo,
    ColorInfo,
    ColorPairInfo,
    ContentOperatorInfo,
    DocumentInfo,
    EmbeddedFileInfo,
    InspectionReport,
    OcgConfigInfo,
    OutlineNode,
    PageInfo,
    StructureTreeNode,
)
from effitex.utils.contrast import WHITE, contrast_ratio, to_hex
from effitex.utils.geometry import Rect

logger = logging.getLogger(__name__)

_PERMISSIONS = (
    "accessibility",
    "extract",
    "modify_annotation",
    "modify_assembly",
    "modify_form",
    "modify_other",
    "print_lowres",
    "print_highres",
)
_HIDDEN_FLAG = 1 << 1
_INVISIBLE_RENDER_MODE = 3


def inspect(source: bytes | str | Path) -> InspectionReport:
    """Inspect a PDF given as bytes or as a file path."""
    data = source if isinstance(source, bytes) else Path(source).read_bytes()
    return Inspector().inspect(data)


def inspect_file(path: Path) -> InspectionReport:
    return inspect(Path(path))


class Inspector:
    """Builds an InspectionReport from PDF bytes.

    Usage::

        report = Inspector().inspect(Path("input.pdf").read_bytes())
    """

    def inspect(self, data: bytes) -> InspectionReport:
        try:
            pdf = pikepdf.open(BytesIO(data))
        except pikepdf.PdfError as exc:
            raise ExecutionError(f"Unable to open PDF: {exc}") from exc

        with pdf:
            contents = [read_page_content(page) for page in pdf.pages]
            report = InspectionReport(
                file_hash=hashlib.sha256(data).hexdigest(),
                file_size_bytes=len(data),
                document=self._document_info(pdf),
                xmp_metadata=self._xmp_metadata(pdf),
                fonts=self._fonts(pdf, contents),
                structure_tree=self._structure_tree(pdf),
                role_map=self._role_map(pdf),
                pages=self._pages(pdf, contents),
                outlines=self._outlines(pdf),
                embedded_files=self._embedded_files(pdf),
                ocg_configurations=self._ocg_configurations(pdf),
                color_pairs=color_pairs([c.operators for c in contents]),
            )
        logger.info(
            "Inspected %d page(s), %d font(s), %d colour pair(s)",
            len(report.pages), len(report.fonts), len(report.color_pairs),
        )
        return report

    # -- document ----------------------------------------------------------

    def _document_info(self, pdf: pikepdf.Pdf) -> DocumentInfo:
        root = pdf.Root
        info = DocumentInfo(
            page_count=len(pdf.pages),
            pdf_version=pdf.pdf_version,
            language=str(root["/Lang"]) if "/Lang" in root else None,
            has_info_dictionary="/Info" in pdf.trailer,
            is_encrypted=pdf.is_encrypted,
        )
        if info.has_info_dictionary and "/Title" in pdf.docinfo:
            info.title = str(pdf.docinfo["/Title"])

        prefs = root.get("/ViewerPreferences")
        if isinstance(prefs, pikepdf.Dictionary) and "/DisplayDocTitle" in prefs:
            info.display_doc_title = bool(prefs["/DisplayDocTitle"])

        mark_info = root.get("/MarkInfo")
        if isinstance(mark_info, pikepdf.Dictionary):
            if "/Marked" in mark_info:
                info.mark_info_marked = bool(mark_info["/Marked"])
            if "/Suspects" in mark_info:
                info.suspect_flag = bool(mark_info["/Suspects"])
        info.is_tagged = bool(info.mark_info_marked) and "/StructTreeRoot" in root

        if info.is_encrypted:
            allow = pdf.allow
            info.encryption_permissions = {name: bool(getattr(allow, name, False)) for name in _PERMISSIONS}

        struct_root = root.get("/StructTreeRoot")
        info.has_structural_parent_tree = isinstance(struct_root, pikepdf.Dictionary) and "/ParentTree" in struct_root
        acroform = root.get("/AcroForm")
        info.has_xfa_dynamic_render = isinstance(acroform, pikepdf.Dictionary) and "/XFA" in acroform
        return info

    def _xmp_metadata(self, pdf: pikepdf.Pdf) -> str | None:
        stream = pdf.Root.get("/Metadata")
        if not isinstance(stream, pikepdf.Stream):
            return None
        try:
            raw = stream.read_bytes()
        except pikepdf.PdfError:
            logger.debug("Unreadable XMP stream", exc_info=True)
            return None
        return base64.b64encode(raw).decode("ascii") if raw else None

    # -- fonts -------------------------------------------------------------

    def _fonts(self, pdf: pikepdf.Pdf, contents: list) -> list:
        found: dict = {}
        for page_num, page in enumerate(pdf.pages, 1):
            for resource_name, font in _page_fonts(page):
                key = _font_key(font, page_num, resource_name)
                entry = found.setdefault(key, {"font": font, "name": resource_name, "pages": set(), "codes": set()})
                entry["pages"].add(page_num)

            for op in contents[page_num - 1].operators:
                if op.font is None:
                    continue
                key = _font_key(op.font.obj, page_num, op.font.resource_name)
                if key in found:
                    found[key]["codes"].update(op.codes)

        reports = []
        for entry in found.values():
            try:
                reports.append(describe_font(entry["font"], entry["name"], sorted(entry["pages"]), entry["codes"]))
            except (pikepdf.PdfError, ValueError, TypeError, KeyError):
                logger.debug("Skipping unreadable font %s", entry["name"], exc_info=True)
        return reports

    # -- structure tree ----------------------------------------------------

    def _structure_tree(self, pdf: pikepdf.Pdf) -> list[StructureTreeNode]:
        struct_root = pdf.Root.get("/StructTreeRoot")
        if not isinstance(struct_root, pikepdf.Dictionary):
            return []
        seen: set = set()
        return [
            self._structure_node(pdf, kid, seen)
            for kid in get_kids(struct_root)
            if is_struct_elem(kid)
        ]

    def _structure_node(self, pdf: pikepdf.Pdf, elem: pikepdf.Dictionary, seen: set) -> StructureTreeNode:
        seen.add(elem.objgen if elem.is_indirect else id(elem))
        page_ref, mcid = first_content_ref(elem)
        attributes, has_bbox = _attributes(elem)
        node = StructureTreeNode(
            role=str(elem["/S"])[1:],
            page=page_number(pdf, page_ref) if page_ref is not None else None,
            mcid=mcid,
            id=_text(elem.get("/ID")),
            alt_text=_text(elem.get("/Alt")),
            actual_text=_text(elem.get("/ActualText")),
            language=_text(elem.get("/Lang")),
            has_bbox=has_bbox,
            attributes=attributes,
        )
        for kid in get_kids(elem):
            if not is_struct_elem(kid):
                continue
            if (kid.objgen if kid.is_indirect else id(kid)) in seen:
                continue
            node.children.append(self._structure_node(pdf, kid, seen))
        return node

    def _role_map(self, pdf: pikepdf.Pdf) -> dict[str, str]:
        struct_root = pdf.Root.get("/StructTreeRoot")
        if not isinstance(struct_root, pikepdf.Dictionary):
            return {}
        role_map = struct_root.get("/RoleMap")
        if not isinstance(role_map, pikepdf.Dictionary):
            return {}
        return {str(k)[1:]: str(v)[1:] if isinstance(v, pikepdf.Name) else str(v) for k, v in role_map.items()}

    # -- pages -------------------------------------------------------------

    def _pages(self, pdf: pikepdf.Pdf, contents: list) -> list[PageInfo]:
        mcids = _structured_mcids(pdf)
        struct_root = pdf.Root.get("/StructTreeRoot")
        pages = []
        for page_num, page in enumerate(pdf.pages, 1):
            box = [float(v) for v in page.mediabox]
            tabs = page.obj.get("/Tabs")
            info = PageInfo(
                page_number=page_num,
                width=abs(box[2] - box[0]),
                height=abs(box[3] - box[1]),
                tab_order=name_str(tabs),
                content_operators=[
                    _operator_info(op, page_num) for op in contents[page_num - 1].operators
                ],
                annotations=_annotations(pdf, page, page_num, struct_root),
                fonts=sorted({name_str(font.get("/BaseFont")) or name for name, font in _page_fonts(page)}),
                structured_mcids=sorted(mcids.get(page.obj.objgen, set())),
            )
            pages.append(info)
        return pages

    # -- navigation and catalogue extras -------------------------------------

    def _outlines(self, pdf: pikepdf.Pdf) -> list[OutlineNode]:
        outlines = pdf.Root.get("/Outlines")
        if not isinstance(outlines, pikepdf.Dictionary):
            return []
        return _outline_children(outlines, set())

    def _embedded_files(self, pdf: pikepdf.Pdf) -> list[EmbeddedFileInfo]:
        names = pdf.Root.get("/Names")
        if not isinstance(names, pikepdf.Dictionary):
            return []
        tree = names.get("/EmbeddedFiles")
        if not isinstance(tree, pikepdf.Dictionary):
            return []
        files = []
        for name, filespec in _name_tree_items(tree):
            if isinstance(filespec, pikepdf.Dictionary):
                files.append(EmbeddedFileInfo(name=name, has_f_key="/F" in filespec, has_uf_key="/UF" in filespec))
        return files

    def _ocg_configurations(self, pdf: pikepdf.Pdf) -> list[OcgConfigInfo]:
        props = pdf.Root.get("/OCProperties")
        if not isinstance(props, pikepdf.Dictionary):
            return []
        configs = []
        if isinstance(props.get("/D"), pikepdf.Dictionary):
            configs.append(_ocg_config(props["/D"]))
        extra = props.get("/Configs")
        if isinstance(extra, pikepdf.Array):
            configs.extend(_ocg_config(c) for c in extra if isinstance(c, pikepdf.Dictionary))
        return configs


# -- helpers --------------------------------------------------------------------


def _text(value: pikepdf.Object | None) -> str | None:
    return str(value) if value is not None else None


def _page_fonts(page: pikepdf.Page) -> list[tuple[str, pikepdf.Dictionary]]:
    resources = page_resources(page)
    fonts = resources.get("/Font") if resources is not None else None
    if not isinstance(fonts, pikepdf.Dictionary):
        return []
    return [(str(k)[1:], v) for k, v in fonts.items() if isinstance(v, pikepdf.Dictionary)]


def _font_key(font: pikepdf.Dictionary, page_num: int, resource_name: str) -> tuple:
    if font.is_indirect:
        return font.objgen
    return ("direct", page_num, resource_name)


def _bbox_info(rect: Rect | None) -> BoundingBoxInfo | None:
    if rect is None:
        return None
    return BoundingBoxInfo(
        x=round(rect.x0, 3), y=round(rect.y0, 3),
        width=round(rect.width, 3), height=round(rect.height, 3),
    )


def _color(rgb: tuple[int, int, int] | None) -> ColorInfo | None:
    return ColorInfo(r=rgb[0], g=rgb[1], b=rgb[2]) if rgb is not None else None


def _operator_info(op: ContentOperator, page_num: int) -> ContentOperatorInfo:
    is_text = op.kind == "text"
    return ContentOperatorInfo(
        content_stream_index=op.index,
        operator_name=op.operator,
        is_text_operator=is_text,
        is_image_operator=op.kind == "image",
        is_path_operator=op.kind == "path",
        is_artifact=op.is_artifact,
        is_inside_marked_content=op.in_marked_content,
        marked_content_id=op.mcid,
        text=op.text if is_text else None,
        font_name=op.font.base_font if is_text and op.font is not None else None,
        font_size=op.font_size if is_text else None,
        fill_color=_color(op.fill_color),
        stroke_color=_color(op.stroke_color),
        has_unicode_mapping=op.has_unicode_mapping if is_text else None,
        x_object_name=op.xobject_name,
        x_object_subtype=op.xobject_subtype,
        page_number=page_num,
        bounding_box=_bbox_info(op.bbox),
    )


def _attributes(elem: pikepdf.Dictionary) -> tuple[dict, bool]:
    """``Owner:Key`` -> value over every attribute dictionary, plus BBox presence."""
    raw = elem.get("/A")
    if isinstance(raw, pikepdf.Dictionary):
        dicts = [raw]
    elif isinstance(raw, pikepdf.Array):
        dicts = [d for d in raw if isinstance(d, pikepdf.Dictionary)]
    else:
        return {}, False

    attributes: dict = {}
    has_bbox = False
    for attr in dicts:
        owner = name_str(attr.get("/O")) or ""
        for key, value in attr.items():
            if key == "/O":
                continue
            if key == "/BBox":
                has_bbox = True
            attributes[f"{owner}:{key[1:]}"] = to_python(value)
    return attributes, has_bbox


def _structured_mcids(pdf: pikepdf.Pdf) -> dict[tuple[int, int], set[int]]:
    """Page objgen -> MCIDs referenced from the structure tree."""
    result: dict[tuple[int, int], set[int]] = {}
    struct_root = pdf.Root.get("/StructTreeRoot")
    if not isinstance(struct_root, pikepdf.Dictionary):
        return result

    stack = [(kid, None) for kid in get_kids(struct_root)]
    seen: set = set()
    while stack:
        node, inherited_page = stack.pop()
        if not is_struct_elem(node):
            continue
        key = node.objgen if node.is_indirect else id(node)
        if key in seen:
            continue
        seen.add(key)
        page = node.get("/Pg", inherited_page)
        for kid in get_kids(node):
            if isinstance(kid, int):
                if isinstance(page, pikepdf.Dictionary):
                    result.setdefault(page.objgen, set()).add(int(kid))
            elif isinstance(kid, pikepdf.Dictionary) and "/MCID" in kid:
                kid_page = kid.get("/Pg", page)
                if isinstance(kid_page, pikepdf.Dictionary):
                    result.setdefault(kid_page.objgen, set()).add(int(kid["/MCID"]))
            else:
                stack.append((kid, page))
    return result


def _annotations(
    pdf: pikepdf.Pdf, page: pikepdf.Page, page_num: int, struct_root: pikepdf.Object | None
) -> list[AnnotationInfo]:
    annots = page.obj.get("/Annots")
    if not isinstance(annots, pikepdf.Array):
        return []

    infos = []
    for index, annot in enumerate(annots):
        if not isinstance(annot, pikepdf.Dictionary):
            continue
        info = AnnotationInfo(
            subtype=name_str(annot.get("/Subtype")),
            index=index,
            page_number=page_num,
            contents=_text(annot.get("/Contents")),
            tu=_text(annot.get("/TU")),
            is_hidden=bool(int(annot.get("/F", 0)) & _HIDDEN_FLAG),
            has_tab_order="/Tabs" in page.obj,
        )
        rect = annot.get("/Rect")
        if isinstance(rect, pikepdf.Array) and len(rect) == 4:
            info.bounding_box = _bbox_info(Rect.from_points([
                (float(rect[0]), float(rect[1])), (float(rect[2]), float(rect[3])),
            ]))
        action = annot.get("/A")
        if isinstance(action, pikepdf.Dictionary) and "/URI" in action:
            info.uri = str(action["/URI"])

        if isinstance(struct_root, pikepdf.Dictionary) and "/StructParent" in annot:
            elem = parent_tree_get(struct_root, int(annot["/StructParent"]))
            if isinstance(elem, pikepdf.Dictionary):
                info.enclosing_tag_role = name_str(elem.get("/S"))
                info.alt_text = _text(elem.get("/Alt"))

        if info.subtype == "Widget" or "/FT" in annot:
            _field_info(annot, info)
        infos.append(info)
    return infos


def _field_info(annot: pikepdf.Dictionary, info: AnnotationInfo) -> None:
    """Field name/type/flags/value, inherited through the /Parent chain."""
    names: list[str] = []
    node: pikepdf.Object | None = annot
    depth = 0
    while isinstance(node, pikepdf.Dictionary) and depth < 32:
        if "/T" in node:
            names.append(str(node["/T"]))
        if info.field_type is None and "/FT" in node:
            info.field_type = name_str(node["/FT"])
        if info.field_flags is None and "/Ff" in node:
            info.field_flags = int(node["/Ff"])
        if info.field_value is None and "/V" in node:
            value = node["/V"]
            info.field_value = name_str(value) or str(value)
        node = node.get("/Parent")
        depth += 1
    if names:
        info.field_name = ".".join(reversed(names))


def _outline_children(parent: pikepdf.Dictionary, seen: set) -> list[OutlineNode]:
    nodes = []
    item = parent.get("/First")
    while isinstance(item, pikepdf.Dictionary) and item.objgen not in seen:
        seen.add(item.objgen)
        nodes.append(OutlineNode(
            title=str(item.get("/Title", "")),
            lang=_text(item.get("/Lang")),
            children=_outline_children(item, seen),
        ))
        item = item.get("/Next")
    return nodes


def _name_tree_items(tree: pikepdf.Dictionary, depth: int = 0) -> list[tuple[str, pikepdf.Object]]:
    items: list[tuple[str, pikepdf.Object]] = []
    names = tree.get("/Names")
    if isinstance(names, pikepdf.Array):
        for i in range(0, len(names) - 1, 2):
            items.append((str(names[i]), names[i + 1]))
    kids = tree.get("/Kids")
    if isinstance(kids, pikepdf.Array) and depth < 32:
        for kid in kids:
            if isinstance(kid, pikepdf.Dictionary):
                items.extend(_name_tree_items(kid, depth + 1))
    return items


def _ocg_config(config: pikepdf.Dictionary) -> OcgConfigInfo:
    intent = config.get("/Intent")
    if isinstance(intent, pikepdf.Array):
        intent = intent[0] if len(intent) > 0 else None
    return OcgConfigInfo(
        name=_text(config.get("/Name")),
        has_as_key="/AS" in config,
        intent=name_str(intent),
    )


def color_pairs(pages: list[list[ContentOperator]]) -> list[ColorPairInfo]:
    """Aggregate (text colour, background colour) pairs over rendered text.

    The background of a text run is the fill of the last filled path drawn
    before it whose bounding box contains the run's centre, or white.
    """
    counts: Counter[tuple[str, str]] = Counter()
    colors: dict[tuple[str, str], tuple] = {}
    for operators in pages:
        fills: list[ContentOperator] = []
        for op in operators:
            if op.kind == "path" and op.is_fill and op.bbox is not None and op.fill_color is not None:
                fills.append(op)
                continue
            if op.kind != "text" or op.render_mode == _INVISIBLE_RENDER_MODE or op.bbox is None:
                continue
            if op.fill_color is None or not op.codes:
                continue
            cx, cy = op.bbox.center
            background = WHITE
            for fill in reversed(fills):
                if fill.bbox.contains_point(cx, cy):
                    background = fill.fill_color
                    break
            key = (to_hex(op.fill_color), to_hex(background))
            counts[key] += 1
            colors.setdefault(key, (op.fill_color, background))

    return [
        ColorPairInfo(
            foreground=fg,
            background=bg,
            occurrence_count=count,
            contrast_ratio=round(contrast_ratio(*colors[(fg, bg)]), 2),
        )
        for (fg, bg), count in counts.most_common()
    ]

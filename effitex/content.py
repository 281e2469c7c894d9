"""Content-stream interpreter.

Walks a page's parsed content stream, tracking the graphics state, text
state and marked-content nesting, and produces one ``ContentOperator`` per
drawing operator with the bounding box it paints in default user space.
Handlers use the operator's ``start``/``index`` span to rewrite the stream;
the inspector reports the operators as-is.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from decimal import Decimal

import pikepdf

from effitex.pdffont import PdfFont
from effitex.utils.contrast import parse_pdf_color
from effitex.utils.geometry import IDENTITY, Matrix, Rect

logger = logging.getLogger(__name__)

TEXT_SHOW_OPS = frozenset({"Tj", "TJ", "'", '"'})
PATH_CONSTRUCTION_OPS = frozenset({"m", "l", "c", "v", "y", "h", "re"})
PATH_PAINT_OPS = frozenset({"S", "s", "f", "F", "f*", "B", "B*", "b", "b*", "n"})
FILL_PAINT_OPS = frozenset({"f", "F", "f*", "B", "B*", "b", "b*"})
CLIP_OPS = frozenset({"W", "W*"})
INLINE_IMAGE = "INLINE IMAGE"

_UNIT_SQUARE = Rect(0.0, 0.0, 1.0, 1.0)
_COMPONENT_SPACES = {1: "gray", 3: "rgb", 4: "cmyk"}


@dataclass
class ContentOperator:
    """A drawing operator located in a page's content stream."""

    index: int  # position of the operator in the parsed instruction list
    start: int  # first instruction of the operator's span (path construction)
    operator: str
    kind: str  # "text" | "image" | "path" | "form"
    bbox: Rect | None
    mcid: int | None = None
    is_artifact: bool = False
    in_marked_content: bool = False
    font: PdfFont | None = None
    font_size: float = 0.0
    render_mode: int = 0
    codes: list[int] = field(default_factory=list)
    text: str = ""
    has_unicode_mapping: bool = True
    fill_color: tuple[int, int, int] | None = None
    stroke_color: tuple[int, int, int] | None = None
    is_fill: bool = False
    xobject_name: str | None = None
    xobject_subtype: str | None = None


@dataclass
class PageContent:
    """Parsed instructions of one page plus the drawing operators found in them."""

    instructions: list
    operators: list[ContentOperator]

    @property
    def max_mcid(self) -> int:
        """Highest MCID opened anywhere on the page, or -1."""
        highest = -1
        for instr in self.instructions:
            if str(instr.operator) == "BDC" and len(instr.operands) >= 2:
                props = instr.operands[1]
                if isinstance(props, pikepdf.Dictionary) and "/MCID" in props:
                    highest = max(highest, int(props["/MCID"]))
        return highest


@dataclass
class _GraphicsState:
    ctm: Matrix = field(default_factory=Matrix)
    fill: tuple[int, int, int] = (0, 0, 0)
    stroke: tuple[int, int, int] = (0, 0, 0)
    fill_space: str = "gray"
    stroke_space: str = "gray"
    font: PdfFont | None = None
    font_size: float = 0.0
    char_spacing: float = 0.0
    word_spacing: float = 0.0
    h_scale: float = 1.0
    leading: float = 0.0
    rise: float = 0.0
    render_mode: int = 0


def page_resources(page: pikepdf.Page) -> pikepdf.Dictionary | None:
    """The page's /Resources, inherited from the page tree when not set on the page."""
    node = page.obj
    while isinstance(node, pikepdf.Dictionary):
        resources = node.get("/Resources")
        if isinstance(resources, pikepdf.Dictionary):
            return resources
        node = node.get("/Parent")
    return None


def read_page_content(page: pikepdf.Page) -> PageContent:
    """Parse *page* and locate every drawing operator on it."""
    if "/Contents" not in page.obj:
        return PageContent(instructions=[], operators=[])
    instructions = list(pikepdf.parse_content_stream(page))
    interp = _Interpreter(page)
    return PageContent(instructions=instructions, operators=interp.run(instructions))


class _Interpreter:
    def __init__(self, page: pikepdf.Page) -> None:
        resources = page_resources(page)
        self._resources = resources if isinstance(resources, pikepdf.Dictionary) else pikepdf.Dictionary()
        self._fonts: dict[str, PdfFont] = {}
        self._gs = _GraphicsState()
        self._stack: list[_GraphicsState] = []
        self._marks: list[tuple[str, int | None]] = []
        self._tm = IDENTITY
        self._tlm = IDENTITY
        self._path_points: list[tuple[float, float]] = []
        self._path_start: int | None = None
        self._ops: list[ContentOperator] = []

    def run(self, instructions: list) -> list[ContentOperator]:
        for idx, instr in enumerate(instructions):
            op = str(instr.operator)
            try:
                self._dispatch(idx, op, list(instr.operands))
            except (ValueError, TypeError, IndexError, KeyError):
                logger.debug("Skipping malformed operator %s at %d", op, idx, exc_info=True)
        return self._ops

    def _dispatch(self, idx: int, op: str, operands: list) -> None:
        gs = self._gs
        if op == "q":
            self._stack.append(replace(gs))
        elif op == "Q":
            if self._stack:
                self._gs = self._stack.pop()
        elif op == "cm":
            gs.ctm = Matrix(*(float(v) for v in operands[:6])) @ gs.ctm
        elif op in ("BDC", "BMC"):
            self._begin_marked(operands)
        elif op == "EMC":
            if self._marks:
                self._marks.pop()
        elif op in ("g", "rg", "k", "G", "RG", "K", "cs", "CS", "sc", "scn", "SC", "SCN"):
            self._set_color(op, operands)
        elif op in PATH_CONSTRUCTION_OPS:
            self._construct_path(idx, op, operands)
        elif op in PATH_PAINT_OPS:
            self._paint_path(idx, op)
        elif op in CLIP_OPS:
            pass
        elif op == "Do":
            self._do_xobject(idx, operands)
        elif op == INLINE_IMAGE:
            self._emit(idx, idx, op, "image", _UNIT_SQUARE.transformed(gs.ctm))
        else:
            self._text_op(idx, op, operands)

    # -- marked content -------------------------------------------------

    def _begin_marked(self, operands: list) -> None:
        tag = str(operands[0])[1:] if operands else ""
        mcid = None
        if len(operands) >= 2 and isinstance(operands[1], pikepdf.Dictionary):
            if "/MCID" in operands[1]:
                mcid = int(operands[1]["/MCID"])
        self._marks.append((tag, mcid))

    def _current_mcid(self) -> int | None:
        for _, mcid in reversed(self._marks):
            if mcid is not None:
                return mcid
        return None

    # -- colour ---------------------------------------------------------

    def _set_color(self, op: str, operands: list) -> None:
        gs = self._gs
        stroking = op in ("G", "RG", "K", "CS", "SC", "SCN")
        if op in ("cs", "CS"):
            space = str(operands[0]) if operands else ""
            mapped = {"/DeviceGray": "gray", "/DeviceRGB": "rgb", "/DeviceCMYK": "cmyk"}.get(space, space)
            if stroking:
                gs.stroke_space = mapped
            else:
                gs.fill_space = mapped
            return

        numbers = [float(v) for v in operands if _is_number(v)]
        if op in ("g", "G"):
            space = "gray"
        elif op in ("rg", "RG"):
            space = "rgb"
        elif op in ("k", "K"):
            space = "cmyk"
        else:
            space = _COMPONENT_SPACES.get(len(numbers), gs.stroke_space if stroking else gs.fill_space)
        color = parse_pdf_color(numbers, space)
        if stroking:
            gs.stroke = color
        else:
            gs.fill = color

    # -- paths ----------------------------------------------------------

    def _construct_path(self, idx: int, op: str, operands: list) -> None:
        if self._path_start is None:
            self._path_start = idx
        ctm = self._gs.ctm
        nums = [float(v) for v in operands]
        if op == "re":
            x, y, w, h = nums[:4]
            for px, py in ((x, y), (x + w, y), (x, y + h), (x + w, y + h)):
                self._path_points.append(ctm.transform((px, py)))
        elif op != "h":
            for i in range(0, len(nums) - 1, 2):
                self._path_points.append(ctm.transform((nums[i], nums[i + 1])))

    def _paint_path(self, idx: int, op: str) -> None:
        start = self._path_start if self._path_start is not None else idx
        bbox = Rect.from_points(self._path_points)
        self._path_points = []
        self._path_start = None
        if op == "n" or bbox is None:
            return
        record = self._emit(idx, start, op, "path", bbox)
        record.is_fill = op in FILL_PAINT_OPS
        record.stroke_color = self._gs.stroke
        if not record.is_fill:
            record.fill_color = None

    # -- xobjects -------------------------------------------------------

    def _do_xobject(self, idx: int, operands: list) -> None:
        name = str(operands[0]) if operands else ""
        xobjects = self._resources.get("/XObject")
        xobj = xobjects.get(name) if isinstance(xobjects, pikepdf.Dictionary) else None
        subtype = None
        kind = "image"
        bbox = _UNIT_SQUARE.transformed(self._gs.ctm)
        if isinstance(xobj, pikepdf.Stream):
            subtype = str(xobj.get("/Subtype", ""))[1:] or None
            if subtype == "Form":
                kind = "form"
                bbox = self._form_bbox(xobj)
        record = self._emit(idx, idx, "Do", kind, bbox)
        record.xobject_name = name[1:] if name.startswith("/") else name
        record.xobject_subtype = subtype

    def _form_bbox(self, xobj: pikepdf.Stream) -> Rect:
        raw = xobj.get("/BBox")
        rect = _UNIT_SQUARE
        if isinstance(raw, pikepdf.Array) and len(raw) == 4:
            vals = [float(v) for v in raw]
            rect = Rect(min(vals[0], vals[2]), min(vals[1], vals[3]), max(vals[0], vals[2]), max(vals[1], vals[3]))
        matrix = IDENTITY
        raw_m = xobj.get("/Matrix")
        if isinstance(raw_m, pikepdf.Array) and len(raw_m) == 6:
            matrix = Matrix(*(float(v) for v in raw_m))
        return rect.transformed(matrix @ self._gs.ctm)

    # -- text -----------------------------------------------------------

    def _font(self, name: str) -> PdfFont | None:
        if name in self._fonts:
            return self._fonts[name]
        fonts = self._resources.get("/Font")
        font_obj = fonts.get(name) if isinstance(fonts, pikepdf.Dictionary) else None
        font = PdfFont(font_obj, name[1:]) if isinstance(font_obj, pikepdf.Dictionary) else None
        self._fonts[name] = font  # type: ignore[assignment]
        return font

    def _text_op(self, idx: int, op: str, operands: list) -> None:
        gs = self._gs
        if op == "BT":
            self._tm = self._tlm = IDENTITY
        elif op == "Tf":
            gs.font = self._font(str(operands[0]))
            gs.font_size = float(operands[1])
        elif op == "Tc":
            gs.char_spacing = float(operands[0])
        elif op == "Tw":
            gs.word_spacing = float(operands[0])
        elif op == "Tz":
            gs.h_scale = float(operands[0]) / 100.0
        elif op == "TL":
            gs.leading = float(operands[0])
        elif op == "Ts":
            gs.rise = float(operands[0])
        elif op == "Tr":
            gs.render_mode = int(operands[0])
        elif op == "Td":
            self._move(float(operands[0]), float(operands[1]))
        elif op == "TD":
            gs.leading = -float(operands[1])
            self._move(float(operands[0]), float(operands[1]))
        elif op == "Tm":
            self._tm = self._tlm = Matrix(*(float(v) for v in operands[:6]))
        elif op == "T*":
            self._move(0.0, -gs.leading)
        elif op in TEXT_SHOW_OPS:
            if op == "'":
                self._move(0.0, -gs.leading)
            elif op == '"':
                gs.word_spacing = float(operands[0])
                gs.char_spacing = float(operands[1])
                self._move(0.0, -gs.leading)
                operands = operands[2:]
            self._show(idx, op, operands)

    def _move(self, tx: float, ty: float) -> None:
        self._tlm = Matrix(1, 0, 0, 1, tx, ty) @ self._tlm
        self._tm = self._tlm

    def _show(self, idx: int, op: str, operands: list) -> None:
        gs = self._gs
        font = gs.font
        items: list = list(operands[0]) if op == "TJ" and operands else operands[:1]

        x = 0.0
        lo = hi = 0.0
        codes: list[int] = []
        for item in items:
            if isinstance(item, pikepdf.String):
                item_codes = font.decode(bytes(item)) if font else list(bytes(item))
                for code in item_codes:
                    w0 = font.width(code) if font else 0.5
                    spacing = gs.char_spacing
                    if code == 32 and (font is None or font.bytes_per_code == 1):
                        spacing += gs.word_spacing
                    x += (w0 * gs.font_size + spacing) * gs.h_scale
                    lo, hi = min(lo, x), max(hi, x)
                codes.extend(item_codes)
            elif _is_number(item):
                x -= float(item) / 1000.0 * gs.font_size * gs.h_scale
                lo, hi = min(lo, x), max(hi, x)

        ascent = font.ascent if font else 800.0
        descent = font.descent if font else -200.0
        local = Rect(
            lo,
            gs.rise + descent / 1000.0 * gs.font_size,
            hi,
            gs.rise + ascent / 1000.0 * gs.font_size,
        )
        bbox = local.transformed(self._tm @ gs.ctm)
        self._tm = Matrix(1, 0, 0, 1, x, 0) @ self._tm

        record = self._emit(idx, idx, op, "text", bbox)
        record.font = font
        record.font_size = gs.font_size
        record.render_mode = gs.render_mode
        record.codes = codes
        if font is not None:
            record.text = font.text(codes)
            record.has_unicode_mapping = font.is_mappable(codes)
        else:
            record.has_unicode_mapping = False

    # -- bookkeeping ----------------------------------------------------

    def _emit(self, idx: int, start: int, op: str, kind: str, bbox: Rect | None) -> ContentOperator:
        record = ContentOperator(
            index=idx,
            start=start,
            operator=op,
            kind=kind,
            bbox=bbox,
            mcid=self._current_mcid(),
            is_artifact=any(tag == "Artifact" for tag, _ in self._marks),
            in_marked_content=bool(self._marks),
            fill_color=self._gs.fill,
            stroke_color=None,
        )
        self._ops.append(record)
        return record


def _is_number(value: object) -> bool:
    # pikepdf hands scalar operands back as int or Decimal
    return isinstance(value, (int, float, Decimal)) and not isinstance(value, bool)

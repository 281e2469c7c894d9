"""Font resource model: code decoding, glyph widths and unicode lookup.

Widths for non-embedded standard-14 fonts, encoding tables and ToUnicode
CMap parsing come from pdfminer.six so that geometry and text extraction
agree with what a conforming reader would compute.
"""

from __future__ import annotations

import logging
from io import BytesIO

import pikepdf
from pdfminer.cmapdb import CMapParser, FileUnicodeMap
from pdfminer.encodingdb import EncodingDB
from pdfminer.fontmetrics import FONT_METRICS
from pdfminer.psparser import LIT

logger = logging.getLogger(__name__)

_STANDARD_ALIASES: dict[str, str] = {
    "Arial": "Helvetica",
    "ArialMT": "Helvetica",
    "Arial,Bold": "Helvetica-Bold",
    "Arial-BoldMT": "Helvetica-Bold",
    "Arial,Italic": "Helvetica-Oblique",
    "Arial-ItalicMT": "Helvetica-Oblique",
    "TimesNewRoman": "Times-Roman",
    "TimesNewRomanPSMT": "Times-Roman",
    "TimesNewRoman,Bold": "Times-Bold",
    "TimesNewRomanPS-BoldMT": "Times-Bold",
    "CourierNew": "Courier",
    "CourierNewPSMT": "Courier",
}

DEFAULT_ASCENT = 800.0
DEFAULT_DESCENT = -200.0
DEFAULT_WIDTH = 500.0


def name_str(obj: object) -> str | None:
    """Return a PDF name without its leading slash, or None."""
    if isinstance(obj, pikepdf.Name):
        return str(obj)[1:]
    return None


def strip_subset_prefix(name: str) -> str:
    """``ABCDEF+Helvetica`` -> ``Helvetica``."""
    if len(name) > 7 and name[6] == "+" and name[:6].isalpha() and name[:6].isupper():
        return name[7:]
    return name


def standard_font_metrics(base_font: str) -> tuple[dict, dict] | None:
    """Return pdfminer's (descriptor, widths-by-char) for a standard-14 font."""
    name = strip_subset_prefix(base_font)
    name = _STANDARD_ALIASES.get(name, name)
    return FONT_METRICS.get(name)


def descendant_font(font: pikepdf.Dictionary) -> pikepdf.Dictionary | None:
    kids = font.get("/DescendantFonts")
    if isinstance(kids, pikepdf.Array) and len(kids) > 0:
        kid = kids[0]
        if isinstance(kid, pikepdf.Dictionary):
            return kid
    return None


def font_descriptor(font: pikepdf.Dictionary) -> pikepdf.Dictionary | None:
    """The font's descriptor, looking through to the descendant for Type0."""
    desc = font.get("/FontDescriptor")
    if isinstance(desc, pikepdf.Dictionary):
        return desc
    if name_str(font.get("/Subtype")) == "Type0":
        kid = descendant_font(font)
        if kid is not None:
            desc = kid.get("/FontDescriptor")
            if isinstance(desc, pikepdf.Dictionary):
                return desc
    return None


def parse_tounicode(stream: pikepdf.Object) -> dict[int, str]:
    """Parse a ToUnicode CMap stream into ``{code: text}``."""
    if not isinstance(stream, pikepdf.Stream):
        return {}
    cmap = FileUnicodeMap()
    CMapParser(cmap, BytesIO(stream.read_bytes())).run()
    return dict(cmap.cid2unichr)


def differences_map(encoding: pikepdf.Object) -> dict[int, str]:
    """Decode an encoding dictionary's ``/Differences`` into ``{code: glyph}``."""
    result: dict[int, str] = {}
    if not isinstance(encoding, pikepdf.Dictionary):
        return result
    diffs = encoding.get("/Differences")
    if not isinstance(diffs, pikepdf.Array):
        return result
    code = 0
    for item in diffs:
        if isinstance(item, pikepdf.Name):
            result[code] = str(item)[1:]
            code += 1
        else:
            code = int(item)
    return result


def parse_cid_widths(w: pikepdf.Object) -> dict[int, float]:
    """Expand a CIDFont ``/W`` array into ``{cid: width}``."""
    widths: dict[int, float] = {}
    if not isinstance(w, pikepdf.Array):
        return widths
    items = list(w)
    i = 0
    while i < len(items):
        first = int(items[i])
        if i + 1 < len(items) and isinstance(items[i + 1], pikepdf.Array):
            for offset, value in enumerate(items[i + 1]):
                widths[first + offset] = float(value)
            i += 2
        elif i + 2 < len(items):
            last = int(items[i + 1])
            value = float(items[i + 2])
            for cid in range(first, last + 1):
                widths[cid] = value
            i += 3
        else:
            break
    return widths


def simple_encoding(font: pikepdf.Dictionary) -> dict[int, str]:
    """Code -> unicode table derived from a simple font's /Encoding."""
    encoding = font.get("/Encoding")
    base = "StandardEncoding"
    diffs: list[object] = []
    if isinstance(encoding, pikepdf.Name):
        base = str(encoding)[1:]
    elif isinstance(encoding, pikepdf.Dictionary):
        base = name_str(encoding.get("/BaseEncoding")) or base
        for code, glyph in sorted(differences_map(encoding).items()):
            diffs.extend([code, LIT(glyph)])
    return EncodingDB.get_encoding(base, diffs or None)


class PdfFont:
    """Read-only view over a font resource for text geometry and decoding."""

    def __init__(self, font: pikepdf.Dictionary, resource_name: str = "") -> None:
        self.obj = font
        self.resource_name = resource_name
        self.subtype = name_str(font.get("/Subtype")) or ""
        base = font.get("/BaseFont")
        self.base_font = name_str(base) or resource_name
        self.is_type0 = self.subtype == "Type0"
        self.is_type3 = self.subtype == "Type3"
        self.descriptor = font_descriptor(font)

        self.tounicode: dict[int, str] = {}
        if "/ToUnicode" in font:
            try:
                self.tounicode = parse_tounicode(font["/ToUnicode"])
            except Exception:
                logger.debug("Unreadable ToUnicode on font %s", self.base_font, exc_info=True)

        self.encoding: dict[int, str] = {} if self.is_type0 else simple_encoding(font)
        self._standard = None if self.is_type0 else standard_font_metrics(self.base_font)

        self._scale = 0.001
        if self.is_type3:
            matrix = font.get("/FontMatrix")
            if isinstance(matrix, pikepdf.Array) and len(matrix) >= 1:
                self._scale = float(matrix[0])

        self._setup_widths()
        self.ascent, self.descent = self._vertical_metrics()

    def _setup_widths(self) -> None:
        self._first_char = 0
        self._widths: list[float] = []
        self._cid_widths: dict[int, float] = {}
        self._missing_width = 0.0

        if self.descriptor is not None and "/MissingWidth" in self.descriptor:
            self._missing_width = float(self.descriptor["/MissingWidth"])

        if self.is_type0:
            kid = descendant_font(self.obj)
            self._default_width = 1000.0
            if kid is not None:
                self._cid_widths = parse_cid_widths(kid.get("/W"))
                if "/DW" in kid:
                    self._default_width = float(kid["/DW"])
            return

        widths = self.obj.get("/Widths")
        if isinstance(widths, pikepdf.Array):
            self._first_char = int(self.obj.get("/FirstChar", 0))
            self._widths = [float(w) for w in widths]

    def _vertical_metrics(self) -> tuple[float, float]:
        if self.descriptor is not None:
            ascent = self.descriptor.get("/Ascent")
            descent = self.descriptor.get("/Descent")
            if ascent is not None and descent is not None and float(ascent) > float(descent):
                return float(ascent), float(descent)
        if self._standard is not None:
            desc = self._standard[0]
            return float(desc.get("Ascent", DEFAULT_ASCENT)), float(desc.get("Descent", DEFAULT_DESCENT))
        if self.is_type3:
            bbox = self.obj.get("/FontBBox")
            if isinstance(bbox, pikepdf.Array) and len(bbox) == 4:
                factor = self._scale * 1000
                return float(bbox[3]) * factor, float(bbox[1]) * factor
        return DEFAULT_ASCENT, DEFAULT_DESCENT

    @property
    def bytes_per_code(self) -> int:
        return 2 if self.is_type0 else 1

    def decode(self, data: bytes) -> list[int]:
        if self.is_type0:
            return [
                (data[i] << 8) | (data[i + 1] if i + 1 < len(data) else 0)
                for i in range(0, len(data), 2)
            ]
        return list(data)

    def width(self, code: int) -> float:
        """Horizontal advance of *code* in text space units (before font size)."""
        if self.is_type0:
            return self._cid_widths.get(code, self._default_width) * self._scale

        idx = code - self._first_char
        if self._widths and 0 <= idx < len(self._widths):
            return self._widths[idx] * self._scale
        if self._standard is not None:
            char = self.encoding.get(code)
            if char is not None and char in self._standard[1]:
                return float(self._standard[1][char]) * self._scale
        if self._missing_width:
            return self._missing_width * self._scale
        return DEFAULT_WIDTH * self._scale

    def unicode(self, code: int) -> str | None:
        if code in self.tounicode:
            return self.tounicode[code]
        if self.is_type0:
            return None
        return self.encoding.get(code)

    def text(self, codes: list[int]) -> str:
        return "".join(self.unicode(c) or "" for c in codes)

    def is_mappable(self, codes: list[int]) -> bool:
        return all(self.unicode(c) for c in codes)

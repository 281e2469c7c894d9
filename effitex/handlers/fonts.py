"""FontHandler: repairs font dictionaries so text is embeddable and extractable.

Seven operations, each addressing one font resource on one page:
CIDSet, CharSet, encoding name, encoding differences, ToUnicode CMap,
glyph widths, and a synthesized font descriptor.
"""

from __future__ import annotations

import logging

import pikepdf

from effitex.content import page_resources
from effitex.exceptions import ExecutionError
from effitex.handlers.base import DocumentHandle
from effitex.instructions import FontOperation
from effitex.models import HandlerResult
from effitex.pdffont import (
    DEFAULT_ASCENT,
    DEFAULT_DESCENT,
    descendant_font,
    differences_map,
    font_descriptor,
    name_str,
    parse_cid_widths,
    parse_tounicode,
    standard_font_metrics,
    strip_subset_prefix,
)

logger = logging.getLogger(__name__)

_BFCHAR_BLOCK = 100

_TOUNICODE_HEADER = """/CIDInit /ProcSet findresource begin
12 dict begin
begincmap
/CIDSystemInfo << /Registry (Adobe) /Ordering (UCS) /Supplement 0 >> def
/CMapName /Adobe-Identity-UCS def
/CMapType 2 def
1 begincodespacerange
{codespace}
endcodespacerange
"""

_TOUNICODE_FOOTER = """endcmap
CMapName currentdict /CMap defineresource pop
end
end
"""


class FontHandler:
    @property
    def name(self) -> str:
        return "Fonts"

    @property
    def section(self) -> str:
        return "fonts"

    def apply(self, doc: DocumentHandle, section: list[FontOperation]) -> DocumentHandle:
        result = HandlerResult(handler_name=self.name)
        dispatch = {
            "write_cidset": self._write_cidset,
            "write_charset": self._write_charset,
            "set_encoding": self._set_encoding,
            "set_differences": self._set_differences,
            "write_tounicode": self._write_tounicode,
            "set_widths": self._set_widths,
            "add_font_descriptor": self._add_font_descriptor,
        }
        for op in section:
            page = doc.page(op.page)
            font = find_font(page, op.font, op.page)
            if dispatch[op.op](doc.pdf, font, op, result):
                result.changes_made += 1
                logger.debug("Fonts: %s on %s (page %d)", op.op, op.font, op.page)

        logger.info("Fonts: %d change(s)", result.changes_made)
        doc.results.append(result)
        return doc

    # -- operations ----------------------------------------------------------

    def _write_cidset(self, pdf: pikepdf.Pdf, font: pikepdf.Dictionary, op: FontOperation, result: HandlerResult) -> bool:
        desc = _require_descriptor(font, op)
        desc["/CIDSet"] = pdf.make_stream(cidset_bytes(op.cids))
        return True

    def _write_charset(self, pdf: pikepdf.Pdf, font: pikepdf.Dictionary, op: FontOperation, result: HandlerResult) -> bool:
        desc = _require_descriptor(font, op)
        names = dict.fromkeys(n.lstrip("/") for n in op.glyph_names)
        desc["/CharSet"] = pikepdf.String("".join(f"/{n}" for n in names))
        return True

    def _set_encoding(self, pdf: pikepdf.Pdf, font: pikepdf.Dictionary, op: FontOperation, result: HandlerResult) -> bool:
        font["/Encoding"] = pikepdf.Name("/" + (op.encoding or "").lstrip("/"))
        return True

    def _set_differences(self, pdf: pikepdf.Pdf, font: pikepdf.Dictionary, op: FontOperation, result: HandlerResult) -> bool:
        existing = font.get("/Encoding")
        base: pikepdf.Name | None = None
        merged: dict[int, str] = {}
        if isinstance(existing, pikepdf.Name):
            base = existing
        elif isinstance(existing, pikepdf.Dictionary):
            if isinstance(existing.get("/BaseEncoding"), pikepdf.Name):
                base = existing["/BaseEncoding"]
            merged = differences_map(existing)
        merged.update({code: glyph.lstrip("/") for code, glyph in op.differences.items()})

        encoding = pikepdf.Dictionary({
            "/Type": pikepdf.Name("/Encoding"),
            "/Differences": differences_array(merged),
        })
        if base is not None:
            encoding["/BaseEncoding"] = base
        font["/Encoding"] = encoding
        return True

    def _write_tounicode(self, pdf: pikepdf.Pdf, font: pikepdf.Dictionary, op: FontOperation, result: HandlerResult) -> bool:
        two_byte = name_str(font.get("/Subtype")) == "Type0"
        merged: dict[int, str] = {}
        if "/ToUnicode" in font:
            try:
                merged = parse_tounicode(font["/ToUnicode"])
            except Exception:
                result.warnings.append(f'Existing ToUnicode of font "{op.font}" is unreadable; replaced')

        limit = 0xFFFF if two_byte else 0xFF
        for code, text in op.mappings.items():
            if code > limit:
                result.warnings.append(f'Code {code} is outside the codespace of font "{op.font}"; skipped')
                continue
            if not text:
                result.warnings.append(f'Code {code} of font "{op.font}" maps to empty text; skipped')
                continue
            merged[code] = text

        font["/ToUnicode"] = pdf.make_stream(tounicode_cmap(merged, two_byte))
        return True

    def _set_widths(self, pdf: pikepdf.Pdf, font: pikepdf.Dictionary, op: FontOperation, result: HandlerResult) -> bool:
        if name_str(font.get("/Subtype")) == "Type0":
            kid = descendant_font(font)
            if kid is None:
                raise ExecutionError(f'Font "{op.font}" has no descendant font.')
            widths = parse_cid_widths(kid.get("/W"))
            widths.update(op.widths)
            kid["/W"] = cid_widths_array(widths)
            return True

        widths: dict[int, float] = {}
        existing = font.get("/Widths")
        if isinstance(existing, pikepdf.Array):
            first = int(font.get("/FirstChar", 0))
            for offset, value in enumerate(existing):
                widths[first + offset] = float(value)
        widths.update(op.widths)

        desc = font_descriptor(font)
        fill = float(desc.get("/MissingWidth", 0)) if desc is not None else 0.0
        first, last = min(widths), max(widths)
        font["/FirstChar"] = first
        font["/LastChar"] = last
        font["/Widths"] = pikepdf.Array([_number(widths.get(code, fill)) for code in range(first, last + 1)])
        return True

    def _add_font_descriptor(self, pdf: pikepdf.Pdf, font: pikepdf.Dictionary, op: FontOperation, result: HandlerResult) -> bool:
        if font_descriptor(font) is not None:
            result.warnings.append(f'Font "{op.font}" already has a font descriptor; left unchanged')
            return False

        target = font
        if name_str(font.get("/Subtype")) == "Type0":
            target = descendant_font(font) or font
        base_font = name_str(target.get("/BaseFont")) or name_str(font.get("/BaseFont")) or op.font.lstrip("/")
        target["/FontDescriptor"] = pdf.make_indirect(synthesize_descriptor(base_font))
        return True


def find_font(page: pikepdf.Page, name: str, page_num: int) -> pikepdf.Dictionary:
    """Look *name* up as a resource key, then as a BaseFont ignoring subset prefixes."""
    key = name[1:] if name.startswith("/") else name
    fonts = _page_fonts(page)
    if f"/{key}" in fonts:
        return fonts[f"/{key}"]
    wanted = strip_subset_prefix(key)
    for _, font in fonts.items():
        base = name_str(font.get("/BaseFont")) if isinstance(font, pikepdf.Dictionary) else None
        if base is not None and (base == key or strip_subset_prefix(base) == wanted):
            return font
    raise ExecutionError(f'Font "{name}" not found on page {page_num}.')


def _page_fonts(page: pikepdf.Page) -> pikepdf.Dictionary:
    resources = page_resources(page)
    fonts = resources.get("/Font") if resources is not None else None
    return fonts if isinstance(fonts, pikepdf.Dictionary) else pikepdf.Dictionary()


def _require_descriptor(font: pikepdf.Dictionary, op: FontOperation) -> pikepdf.Dictionary:
    desc = font_descriptor(font)
    if desc is None:
        raise ExecutionError(f'Font "{op.font}" has no font descriptor.')
    return desc


def cidset_bytes(cids: list[int]) -> bytes:
    """Bitset with the high bit of byte 0 standing for CID 0."""
    data = bytearray(max(cids) // 8 + 1)
    for cid in cids:
        data[cid // 8] |= 0x80 >> (cid % 8)
    return bytes(data)


def differences_array(differences: dict[int, str]) -> pikepdf.Array:
    """``{32: 'space', 33: 'exclam', 65: 'A'}`` -> ``[32 /space /exclam 65 /A]``."""
    items: list = []
    previous: int | None = None
    for code in sorted(differences):
        if previous is None or code != previous + 1:
            items.append(code)
        items.append(pikepdf.Name("/" + differences[code]))
        previous = code
    return pikepdf.Array(items)


def cid_widths_array(widths: dict[int, float]) -> pikepdf.Array:
    """Emit ``/W`` as ``[cid [w w ...] cid [w ...]]`` runs of consecutive CIDs."""
    items: list = []
    run: list = []
    previous: int | None = None
    for cid in sorted(widths):
        if previous is None or cid != previous + 1:
            if run:
                items.append(pikepdf.Array(run))
            items.append(cid)
            run = []
        run.append(_number(widths[cid]))
        previous = cid
    if run:
        items.append(pikepdf.Array(run))
    return pikepdf.Array(items)


def tounicode_cmap(mappings: dict[int, str], two_byte: bool) -> bytes:
    digits = 4 if two_byte else 2
    codespace = "<0000> <FFFF>" if two_byte else "<00> <FF>"
    lines = [_TOUNICODE_HEADER.format(codespace=codespace)]

    entries = sorted(mappings.items())
    for start in range(0, len(entries), _BFCHAR_BLOCK):
        block = entries[start:start + _BFCHAR_BLOCK]
        lines.append(f"{len(block)} beginbfchar\n")
        for code, text in block:
            lines.append(f"<{code:0{digits}X}> <{text.encode('utf-16-be').hex().upper()}>\n")
        lines.append("endbfchar\n")

    lines.append(_TOUNICODE_FOOTER)
    return "".join(lines).encode("ascii")


def synthesize_descriptor(base_font: str) -> pikepdf.Dictionary:
    """A FontDescriptor from standard-14 metrics when known, else generic values."""
    metrics = standard_font_metrics(base_font)
    values: dict = {
        "Flags": 32,
        "FontBBox": (0, 0, 1000, 1000),
        "ItalicAngle": 0,
        "Ascent": DEFAULT_ASCENT,
        "Descent": DEFAULT_DESCENT,
        "CapHeight": 700,
        "StemV": 80,
    }
    if metrics is not None:
        afm = metrics[0]
        for key in ("Flags", "FontBBox", "ItalicAngle", "Ascent", "Descent", "CapHeight", "StemV", "XHeight"):
            if key in afm:
                values[key] = afm[key]

    desc = pikepdf.Dictionary({
        "/Type": pikepdf.Name("/FontDescriptor"),
        "/FontName": pikepdf.Name("/" + base_font),
    })
    for key, value in values.items():
        if key == "FontBBox":
            desc["/FontBBox"] = pikepdf.Array([_number(v) for v in value])
        else:
            desc[f"/{key}"] = _number(value)
    return desc


def _number(value: float) -> int | float:
    value = float(value)
    return int(value) if value.is_integer() else value

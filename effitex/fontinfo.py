"""Per-font introspection for the inspection report.

Embedded font programs are opened with fontTools (TrueType/OpenType and
CFF) or decrypted with its eexec routine (Type 1); CMaps are parsed and
looked up with pdfminer.six.  Any probe that cannot read its input is
logged at debug level and reported as absent.
"""

from __future__ import annotations

import base64
import binascii
import logging
import re
from io import BytesIO
from typing import Any

import pikepdf
from fontTools.cffLib import CFFFontSet
from fontTools.misc.eexec import decrypt
from fontTools.ttLib import TTFont
from pdfminer.cmapdb import CMapDB

from effitex.pdffont import (
    PdfFont,
    descendant_font,
    differences_map,
    font_descriptor,
    name_str,
    parse_tounicode,
)
from effitex.report import (
    CidSystemInfo,
    CidToGidMapInfo,
    CmapInfo,
    CmapSubtable,
    EncodingDetail,
    FontReport,
    PdfStreamData,
    Type3FontInfo,
)

logger = logging.getLogger(__name__)

FILTER_ABBREVIATIONS = {
    "AHx": "ASCIIHexDecode",
    "A85": "ASCII85Decode",
    "LZW": "LZWDecode",
    "Fl": "FlateDecode",
    "RL": "RunLengthDecode",
    "CCF": "CCITTFaxDecode",
    "DCT": "DCTDecode",
}

_INVALID_UNICODE = frozenset({"\u0000", "\ufffd", "\ufeff"})
_SYMBOLIC_FLAG = 1 << 2
_EEXEC_KEY = 55665
_WMODE = re.compile(rb"/WMode\s+(\d+)\s+def")
_CHARSTRING = re.compile(rb"/([^\s/\[\]{}()<>%]+)\s+\d+\s+(?:RD|-\|)")


def describe_font(
    font: pikepdf.Dictionary,
    resource_name: str,
    pages: list[int],
    used_codes: set[int],
) -> FontReport:
    view = PdfFont(font, resource_name)
    desc = font_descriptor(font)
    kid = descendant_font(font) if view.is_type0 else None
    program = font_program(desc)

    report = FontReport(
        name=view.base_font,
        font_type=view.subtype,
        is_embedded=view.is_type3 or program is not None,
        is_symbolic=desc is not None and bool(int(desc.get("/Flags", 0)) & _SYMBOLIC_FLAG),
        has_tounicode="/ToUnicode" in font,
        has_font_descriptor=desc is not None,
        has_charset=desc is not None and "/CharSet" in desc,
        has_cidset=desc is not None and "/CIDSet" in desc,
        encoding=_encoding_name(font.get("/Encoding")),
        pages=sorted(pages),
    )

    if report.has_tounicode:
        mappings = _safe_tounicode(font)
        report.tounicode_mappings = {str(code): text for code, text in sorted(mappings.items())}
        report.tounicode_is_valid = bool(mappings) and all(
            text and not (set(text) & _INVALID_UNICODE) for text in mappings.values()
        )

    report.unmappable_char_codes = sorted(c for c in used_codes if not view.unicode(c))

    if view.is_type0:
        if kid is not None:
            report.cid_system_info = _cid_system_info(kid.get("/CIDSystemInfo"))
            report.cid_to_gid_map = _cid_to_gid_map(kid)
        report.cmap_info = cmap_info(font.get("/Encoding"))
    else:
        report.encoding_detail = _encoding_detail(font.get("/Encoding"))

    if view.is_type3:
        report.type3_info = _type3_info(font, view, used_codes, desc is not None)

    if program is not None:
        key, stream = program
        report.font_program = stream_data(stream)
        report.has_notdef_glyph = has_notdef(key, stream)
        if _is_sfnt(key, stream):
            report.cmap_subtables = truetype_cmap_subtables(stream)
        if key == "/FontFile":
            report.type1_glyph_names = type1_glyph_names(stream)

    return report


def font_program(desc: pikepdf.Dictionary | None) -> tuple[str, pikepdf.Stream] | None:
    if desc is None:
        return None
    for key in ("/FontFile", "/FontFile2", "/FontFile3"):
        stream = desc.get(key)
        if isinstance(stream, pikepdf.Stream):
            return key, stream
    return None


def stream_data(stream: pikepdf.Stream) -> PdfStreamData:
    """Raw stream bytes (not decoded) with a normalized filter chain."""
    filters = stream.get("/Filter")
    names: list[str] | None = None
    if isinstance(filters, pikepdf.Name):
        names = [_expand_filter(filters)]
    elif isinstance(filters, pikepdf.Array):
        names = [_expand_filter(f) for f in filters if isinstance(f, pikepdf.Name)]

    parms = stream.get("/DecodeParms")
    decode_parms: list[dict[str, Any] | None] | None = None
    if isinstance(parms, pikepdf.Dictionary):
        decode_parms = [to_python(parms)]
    elif isinstance(parms, pikepdf.Array):
        decode_parms = [to_python(p) if isinstance(p, pikepdf.Dictionary) else None for p in parms]

    return PdfStreamData(
        data=base64.b64encode(stream.read_raw_bytes()).decode("ascii"),
        filter=names,
        decode_parms=decode_parms,
    )


def _expand_filter(name: pikepdf.Name) -> str:
    short = str(name)[1:]
    return FILTER_ABBREVIATIONS.get(short, short)


def to_python(obj: Any) -> Any:
    """Convert a pikepdf object into plain JSON-friendly Python values."""
    if isinstance(obj, bool):
        return obj
    if isinstance(obj, int):
        return obj
    if isinstance(obj, pikepdf.Name):
        return str(obj)[1:]
    if isinstance(obj, pikepdf.String):
        return str(obj)
    if isinstance(obj, pikepdf.Array):
        return [to_python(item) for item in obj]
    if isinstance(obj, pikepdf.Stream):
        return None
    if isinstance(obj, pikepdf.Dictionary):
        return {str(k)[1:]: to_python(v) for k, v in obj.items()}
    try:
        return float(obj)
    except (TypeError, ValueError):
        return str(obj)


# -- encodings and CMaps -------------------------------------------------------


def _encoding_name(encoding: pikepdf.Object | None) -> str | None:
    if isinstance(encoding, pikepdf.Name):
        return str(encoding)[1:]
    if isinstance(encoding, pikepdf.Dictionary):
        return name_str(encoding.get("/BaseEncoding")) or "Custom"
    if isinstance(encoding, pikepdf.Stream):
        return name_str(encoding.get("/CMapName")) or "Embedded"
    return None


def _encoding_detail(encoding: pikepdf.Object | None) -> EncodingDetail | None:
    if isinstance(encoding, pikepdf.Name):
        return EncodingDetail(base_encoding=str(encoding)[1:])
    if not isinstance(encoding, pikepdf.Dictionary):
        return None
    diffs = differences_map(encoding)
    return EncodingDetail(
        is_dictionary=True,
        base_encoding=name_str(encoding.get("/BaseEncoding")),
        has_differences_array=isinstance(encoding.get("/Differences"), pikepdf.Array),
        differences_glyph_names=[diffs[c] for c in sorted(diffs)],
    )


def is_predefined_cmap(name: str) -> bool:
    try:
        CMapDB.get_cmap(name)
    except CMapDB.CMapNotFound:
        return False
    return True


def cmap_info(encoding: pikepdf.Object | None) -> CmapInfo | None:
    if isinstance(encoding, pikepdf.Name):
        name = str(encoding)[1:]
        return CmapInfo(name=name, is_predefined=is_predefined_cmap(name))
    if not isinstance(encoding, pikepdf.Stream):
        return None

    info = CmapInfo(name=name_str(encoding.get("/CMapName")), is_embedded=True)
    use = encoding.get("/UseCMap")
    if isinstance(use, pikepdf.Name):
        info.use_cmap_name = str(use)[1:]
        info.use_cmap_is_predefined = is_predefined_cmap(info.use_cmap_name)
    elif isinstance(use, pikepdf.Stream):
        info.use_cmap_name = name_str(use.get("/CMapName"))
    if "/WMode" in encoding:
        info.dict_w_mode = int(encoding["/WMode"])
    try:
        match = _WMODE.search(encoding.read_bytes())
    except pikepdf.PdfError:
        logger.debug("Unreadable embedded CMap", exc_info=True)
        match = None
    if match:
        info.stream_w_mode = int(match.group(1))
    return info


def _cid_system_info(obj: pikepdf.Object | None) -> CidSystemInfo | None:
    if not isinstance(obj, pikepdf.Dictionary):
        return None
    supplement = obj.get("/Supplement")
    return CidSystemInfo(
        registry=str(obj["/Registry"]) if "/Registry" in obj else None,
        ordering=str(obj["/Ordering"]) if "/Ordering" in obj else None,
        supplement=int(supplement) if supplement is not None else None,
    )


def _cid_to_gid_map(kid: pikepdf.Dictionary) -> CidToGidMapInfo:
    value = kid.get("/CIDToGIDMap")
    if value is None:
        return CidToGidMapInfo()
    if isinstance(value, pikepdf.Name):
        return CidToGidMapInfo(present=True, is_valid=str(value) == "/Identity")
    if isinstance(value, pikepdf.Stream):
        try:
            return CidToGidMapInfo(present=True, is_valid=len(value.read_bytes()) % 2 == 0)
        except pikepdf.PdfError:
            logger.debug("Unreadable CIDToGIDMap", exc_info=True)
    return CidToGidMapInfo(present=True, is_valid=False)


def _safe_tounicode(font: pikepdf.Dictionary) -> dict[int, str]:
    try:
        return parse_tounicode(font["/ToUnicode"])
    except Exception:
        logger.debug("Unreadable ToUnicode CMap", exc_info=True)
        return {}


def _type3_info(font: pikepdf.Dictionary, view: PdfFont, used: set[int], has_descriptor: bool) -> Type3FontInfo:
    procs = font.get("/CharProcs")
    proc_names = [str(k)[1:] for k in procs.keys()] if isinstance(procs, pikepdf.Dictionary) else []
    diffs = differences_map(font.get("/Encoding"))
    return Type3FontInfo(
        char_procs_glyph_names=sorted(proc_names),
        encoded_glyph_names=[diffs[c] for c in sorted(diffs)],
        used_char_codes=sorted(used),
        tounicode_mappings={str(c): view.unicode(c) or "" for c in sorted(used)},
        has_font_descriptor=has_descriptor,
    )


# -- font programs -------------------------------------------------------------


def _is_sfnt(key: str, stream: pikepdf.Stream) -> bool:
    return key == "/FontFile2" or (key == "/FontFile3" and name_str(stream.get("/Subtype")) == "OpenType")


def has_notdef(key: str, stream: pikepdf.Stream) -> bool:
    """True when glyph 0 of the embedded program is ``.notdef``."""
    try:
        data = stream.read_bytes()
        if _is_sfnt(key, stream):
            order = TTFont(BytesIO(data), lazy=True).getGlyphOrder()
            return bool(order) and order[0] == ".notdef"
        if key == "/FontFile3":
            cff = CFFFontSet()
            cff.decompile(BytesIO(data), None)
            top = cff[cff.fontNames[0]]
            charset = top.charset
            # CID-keyed charsets name glyph 0 "cid00000"
            return bool(charset) and (charset[0] == ".notdef" or hasattr(top, "ROS"))
        return ".notdef" in _type1_charstring_names(stream, data)
    except Exception:
        logger.debug("Font program probe failed", exc_info=True)
        return False


def truetype_cmap_subtables(stream: pikepdf.Stream) -> list[CmapSubtable] | None:
    try:
        font = TTFont(BytesIO(stream.read_bytes()), lazy=True)
        if "cmap" not in font:
            return []
        return [
            CmapSubtable(platform_id=t.platformID, encoding_id=t.platEncID, format=t.format)
            for t in font["cmap"].tables
        ]
    except Exception:
        logger.debug("TrueType cmap probe failed", exc_info=True)
        return None


def type1_glyph_names(stream: pikepdf.Stream) -> list[str] | None:
    try:
        return _type1_charstring_names(stream, stream.read_bytes())
    except Exception:
        logger.debug("Type 1 charstring probe failed", exc_info=True)
        return None


def _type1_charstring_names(stream: pikepdf.Stream, data: bytes) -> list[str]:
    length1 = int(stream.get("/Length1", 0))
    length2 = int(stream.get("/Length2", 0))
    if length1 <= 0:
        marker = data.find(b"eexec")
        length1 = marker + len(b"eexec") if marker >= 0 else 0
    encrypted = data[length1:length1 + length2] if length2 else data[length1:]
    encrypted = encrypted.lstrip(b"\r\n\t ")
    head = encrypted[:4]
    if head and all(chr(b) in "0123456789abcdefABCDEF" for b in head):
        encrypted = binascii.unhexlify(re.sub(rb"\s+", b"", encrypted.split(b"0000000000")[0]))
    plain, _ = decrypt(encrypted, _EEXEC_KEY)
    start = plain.find(b"/CharStrings")
    if start < 0:
        return []
    return [m.group(1).decode("latin-1") for m in _CHARSTRING.finditer(plain, start)]

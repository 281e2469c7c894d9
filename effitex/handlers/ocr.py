"""OcrHandler: overlays recognised words as invisible text.

Each word is drawn in render mode 3 (neither fill nor stroke) so that the
page looks unchanged while text extraction and assistive technology see
the recognised text at the word's position.  Words that fit WinAnsi use a
standard font; anything else goes through an Identity-H composite font
whose ToUnicode CMap carries the original characters.
"""

from __future__ import annotations

import logging

import pikepdf

from effitex.content import page_resources
from effitex.exceptions import ExecutionError
from effitex.handlers._marking import instruction
from effitex.handlers.base import DocumentHandle
from effitex.handlers.fonts import synthesize_descriptor, tounicode_cmap
from effitex.instructions import OcrPage, OcrWord
from effitex.models import HandlerResult
from effitex.pdffont import DEFAULT_DESCENT, DEFAULT_WIDTH, standard_font_metrics

logger = logging.getLogger(__name__)

_INVISIBLE = 3
_ENCODING = "cp1252"
_MAX_CODE = 0xFFFF


class OcrHandler:
    @property
    def name(self) -> str:
        return "Ocr"

    @property
    def section(self) -> str:
        return "ocr"

    def apply(self, doc: DocumentHandle, section: list[OcrPage]) -> DocumentHandle:
        result = HandlerResult(handler_name=self.name)
        settings = doc.config.ocr
        metrics = standard_font_metrics(settings.font)
        descent = float(metrics[0].get("Descent", DEFAULT_DESCENT)) if metrics else DEFAULT_DESCENT

        for entry in section:
            page = doc.page(entry.page)
            words = [
                w for w in entry.words
                if w.confidence is None or w.confidence >= settings.min_confidence
            ]
            skipped = len(entry.words) - len(words)
            if skipped:
                logger.debug("Ocr: page %d, skipped %d low-confidence word(s)", entry.page, skipped)
            if not words:
                continue

            fonts = _page_fonts(page)
            simple_font = _add_font(fonts, _simple_font(doc.pdf, settings.font))

            codes = unicode_codes(w.text for w in words if not _encodable(w.text))
            unicode_font = None
            if codes:
                unicode_font = _add_font(fonts, _unicode_font(doc.pdf, settings.font, codes))
                logger.debug("Ocr: page %d, %d character(s) outside %s", entry.page, len(codes), _ENCODING)

            ops: list = []
            for word in words:
                if unicode_font is not None and not _encodable(word.text):
                    data = b"".join(codes[ch].to_bytes(2, "big") for ch in word.text)
                    advance = DEFAULT_WIDTH * len(word.text)
                    ops.extend(_word_instructions(word, unicode_font, data, advance, descent))
                else:
                    data = word.text.encode(_ENCODING)
                    advance = text_width(word.text, metrics)
                    ops.extend(_word_instructions(word, simple_font, data, advance, descent))

            page.contents_add(b"q\n", prepend=True)
            page.contents_add(b"\nQ\n")
            page.contents_add(doc.pdf.make_stream(pikepdf.unparse_content_stream(ops)))
            result.changes_made += len(words)
            logger.info("Ocr: page %d, %d word(s)", entry.page, len(words))

        doc.results.append(result)
        return doc


def _word_instructions(
    word: OcrWord, font_name: pikepdf.Name, data: bytes, advance: float, descent: float
) -> list:
    box = word.bbox
    size = box.height
    natural = advance * size / 1000
    scale = box.width / natural * 100 if natural > 0 else 100.0
    baseline = box.y - descent * size / 1000

    return [
        instruction([], "q"),
        instruction([], "BT"),
        instruction([_INVISIBLE], "Tr"),
        instruction([font_name, size], "Tf"),
        instruction([round(scale, 3)], "Tz"),
        instruction([1, 0, 0, 1, box.x, round(baseline, 3)], "Tm"),
        instruction([pikepdf.String(data)], "Tj"),
        instruction([], "ET"),
        instruction([], "Q"),
    ]


def text_width(text: str, metrics: tuple[dict, dict] | None) -> float:
    """Advance of *text* in 1/1000 em."""
    if metrics is None:
        return DEFAULT_WIDTH * len(text)
    widths = metrics[1]
    return float(sum(widths.get(ch, DEFAULT_WIDTH) for ch in text))


def unicode_codes(texts) -> dict[str, int]:
    """Two-byte codes for every distinct character of *texts*, starting at 1."""
    chars = sorted(set("".join(texts)))
    if len(chars) > _MAX_CODE:
        raise ExecutionError(f"{len(chars)} distinct characters do not fit a two-byte encoding")
    return {ch: code for code, ch in enumerate(chars, start=1)}


def _encodable(text: str) -> bool:
    try:
        text.encode(_ENCODING)
    except UnicodeEncodeError:
        return False
    return True


def _page_fonts(page: pikepdf.Page) -> pikepdf.Dictionary:
    """The page's own /Font dictionary, copied so shared resources stay untouched."""
    page_obj = page.obj
    if "/Resources" not in page_obj:
        inherited = page_resources(page)
        page_obj["/Resources"] = pikepdf.Dictionary(
            {key: value for key, value in inherited.items()} if inherited is not None else {}
        )
    resources = page_obj["/Resources"]
    fonts = resources.get("/Font")
    resources["/Font"] = pikepdf.Dictionary(
        {key: value for key, value in fonts.items()} if isinstance(fonts, pikepdf.Dictionary) else {}
    )
    return resources["/Font"]


def _add_font(fonts: pikepdf.Dictionary, font: pikepdf.Dictionary) -> pikepdf.Name:
    name = _unused_name(fonts, "FOcr")
    fonts[name] = font
    return pikepdf.Name(name)


def _simple_font(pdf: pikepdf.Pdf, base_font: str) -> pikepdf.Dictionary:
    return pdf.make_indirect(pikepdf.Dictionary({
        "/Type": pikepdf.Name("/Font"),
        "/Subtype": pikepdf.Name("/Type1"),
        "/BaseFont": pikepdf.Name("/" + base_font),
        "/Encoding": pikepdf.Name("/WinAnsiEncoding"),
    }))


def _unicode_font(pdf: pikepdf.Pdf, base_font: str, codes: dict[str, int]) -> pikepdf.Dictionary:
    cid_font = pdf.make_indirect(pikepdf.Dictionary({
        "/Type": pikepdf.Name("/Font"),
        "/Subtype": pikepdf.Name("/CIDFontType2"),
        "/BaseFont": pikepdf.Name("/" + base_font),
        "/CIDSystemInfo": pikepdf.Dictionary({
            "/Registry": pikepdf.String("Adobe"),
            "/Ordering": pikepdf.String("Identity"),
            "/Supplement": 0,
        }),
        "/FontDescriptor": pdf.make_indirect(synthesize_descriptor(base_font)),
        "/DW": int(DEFAULT_WIDTH),
        "/CIDToGIDMap": pikepdf.Name("/Identity"),
    }))
    cmap = tounicode_cmap({code: ch for ch, code in codes.items()}, two_byte=True)
    return pdf.make_indirect(pikepdf.Dictionary({
        "/Type": pikepdf.Name("/Font"),
        "/Subtype": pikepdf.Name("/Type0"),
        "/BaseFont": pikepdf.Name("/" + base_font),
        "/Encoding": pikepdf.Name("/Identity-H"),
        "/DescendantFonts": pikepdf.Array([cid_font]),
        "/ToUnicode": pdf.make_stream(cmap),
    }))


def _unused_name(fonts: pikepdf.Dictionary, prefix: str) -> str:
    n = 0
    while f"/{prefix}{n}" in fonts:
        n += 1
    return f"/{prefix}{n}"

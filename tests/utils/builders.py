"""Build small in-memory PDFs with hand-written content streams."""

from __future__ import annotations

from io import BytesIO

import pikepdf
from pikepdf import Array, Dictionary, Name


def helvetica(pdf: pikepdf.Pdf, base_font: str = "Helvetica") -> pikepdf.Dictionary:
    return pdf.make_indirect(Dictionary({
        "/Type": Name.Font,
        "/Subtype": Name.Type1,
        "/BaseFont": Name("/" + base_font),
        "/Encoding": Name.WinAnsiEncoding,
    }))


def type0_font(pdf: pikepdf.Pdf, *, with_descriptor: bool = True) -> pikepdf.Dictionary:
    """Identity-H composite font: CID 1 is 500 wide, CID 2 is 600 wide."""
    kid = Dictionary({
        "/Type": Name.Font,
        "/Subtype": Name.CIDFontType2,
        "/BaseFont": Name("/ABCDEF+Custom"),
        "/CIDSystemInfo": Dictionary({
            "/Registry": pikepdf.String("Adobe"),
            "/Ordering": pikepdf.String("Identity"),
            "/Supplement": 0,
        }),
        "/DW": 1000,
        "/W": Array([1, Array([500, 600])]),
        "/CIDToGIDMap": Name.Identity,
    })
    if with_descriptor:
        kid["/FontDescriptor"] = pdf.make_indirect(Dictionary({
            "/Type": Name.FontDescriptor,
            "/FontName": Name("/ABCDEF+Custom"),
            "/Flags": 4,
            "/FontBBox": Array([0, -200, 1000, 800]),
            "/ItalicAngle": 0,
            "/Ascent": 800,
            "/Descent": -200,
            "/CapHeight": 700,
            "/StemV": 80,
        }))
    return pdf.make_indirect(Dictionary({
        "/Type": Name.Font,
        "/Subtype": Name.Type0,
        "/BaseFont": Name("/ABCDEF+Custom"),
        "/Encoding": Name("/Identity-H"),
        "/DescendantFonts": Array([pdf.make_indirect(kid)]),
    }))


def image_xobject(pdf: pikepdf.Pdf) -> pikepdf.Stream:
    """A 1x1 gray image."""
    stream = pdf.make_stream(b"\x80")
    stream["/Type"] = Name.XObject
    stream["/Subtype"] = Name.Image
    stream["/Width"] = 1
    stream["/Height"] = 1
    stream["/ColorSpace"] = Name.DeviceGray
    stream["/BitsPerComponent"] = 8
    return stream


def single_page_pdf(
    content: bytes,
    *,
    fonts: dict[str, pikepdf.Object] | None = None,
    xobjects: dict[str, pikepdf.Object] | None = None,
    pdf: pikepdf.Pdf | None = None,
) -> pikepdf.Pdf:
    """Append a 612x792 page drawing *content* and return the document.

    *fonts* and *xobjects* map resource names (without the slash) to objects.
    """
    pdf = pdf or pikepdf.Pdf.new()
    pdf.add_blank_page(page_size=(612, 792))
    page = pdf.pages[-1]
    resources = Dictionary()
    if fonts:
        resources["/Font"] = Dictionary({f"/{k}": v for k, v in fonts.items()})
    if xobjects:
        resources["/XObject"] = Dictionary({f"/{k}": v for k, v in xobjects.items()})
    page.obj["/Resources"] = resources
    page.obj["/Contents"] = pdf.make_stream(content)
    return pdf


def to_bytes(pdf: pikepdf.Pdf) -> bytes:
    buffer = BytesIO()
    pdf.save(buffer)
    return buffer.getvalue()

"""Tests for the content-stream interpreter."""

from __future__ import annotations

from pathlib import Path

import pikepdf
import pytest

from effitex.content import page_resources, read_page_content
from tests.utils.builders import helvetica, image_xobject, single_page_pdf, type0_font

# Helvetica advance widths: H 722, e 556, l 222, o 556 -> "Hello" = 2278
HELLO_WIDTH = 2.278


def _ops(content: bytes, **kwargs):
    pdf = single_page_pdf(content, **kwargs)
    return read_page_content(pdf.pages[0])


class TestTextGeometry:
    def test_simple_text_bbox(self) -> None:
        pdf = pikepdf.Pdf.new()
        content = _ops(b"BT /F1 10 Tf 100 200 Td (Hello) Tj ET", fonts={"F1": helvetica(pdf)}, pdf=pdf)
        (op,) = content.operators
        assert op.kind == "text"
        assert op.operator == "Tj"
        assert op.text == "Hello"
        assert op.font_size == 10
        assert op.bbox.x0 == pytest.approx(100)
        assert op.bbox.x1 == pytest.approx(100 + HELLO_WIDTH * 10)
        # Helvetica ascent 718, descent -207
        assert op.bbox.y0 == pytest.approx(200 - 2.07)
        assert op.bbox.y1 == pytest.approx(200 + 7.18)

    def test_ctm_scales_text(self) -> None:
        pdf = pikepdf.Pdf.new()
        content = _ops(
            b"q 2 0 0 2 0 0 cm BT /F1 10 Tf 10 10 Td (Hello) Tj ET Q",
            fonts={"F1": helvetica(pdf)}, pdf=pdf,
        )
        (op,) = content.operators
        assert op.bbox.x0 == pytest.approx(20)
        assert op.bbox.width == pytest.approx(HELLO_WIDTH * 20)

    def test_tj_adjustments_widen_run(self) -> None:
        pdf = pikepdf.Pdf.new()
        content = _ops(
            b"BT /F1 10 Tf 0 0 Td [(He) -1000 (llo)] TJ ET",
            fonts={"F1": helvetica(pdf)}, pdf=pdf,
        )
        (op,) = content.operators
        assert op.operator == "TJ"
        assert op.text == "Hello"
        assert op.bbox.width == pytest.approx(HELLO_WIDTH * 10 + 10)

    def test_consecutive_shows_advance(self) -> None:
        pdf = pikepdf.Pdf.new()
        content = _ops(
            b"BT /F1 10 Tf 0 0 Td (Hello) Tj (Hello) Tj ET",
            fonts={"F1": helvetica(pdf)}, pdf=pdf,
        )
        first, second = content.operators
        assert second.bbox.x0 == pytest.approx(first.bbox.x1)

    def test_composite_font_widths(self) -> None:
        pdf = pikepdf.Pdf.new()
        content = _ops(
            b"BT /F2 10 Tf 0 0 Td <00010002> Tj ET",
            fonts={"F2": type0_font(pdf)}, pdf=pdf,
        )
        (op,) = content.operators
        assert op.codes == [1, 2]
        assert op.bbox.width == pytest.approx(11)
        assert op.has_unicode_mapping is False

    def test_render_mode_recorded(self) -> None:
        pdf = pikepdf.Pdf.new()
        content = _ops(b"BT 3 Tr /F1 10 Tf (Hello) Tj ET", fonts={"F1": helvetica(pdf)}, pdf=pdf)
        assert content.operators[0].render_mode == 3


class TestPathsAndImages:
    def test_filled_rectangle(self) -> None:
        content = _ops(b"1 0 0 rg 10 20 30 40 re f")
        (op,) = content.operators
        assert op.kind == "path"
        assert op.operator == "f"
        assert op.is_fill
        assert op.fill_color == (255, 0, 0)
        assert (op.bbox.x0, op.bbox.y0, op.bbox.x1, op.bbox.y1) == (10, 20, 40, 60)
        # span starts at the path construction operator
        assert op.start == 1
        assert op.index == 2

    def test_stroked_path_has_no_fill(self) -> None:
        content = _ops(b"0 0 1 RG 0 0 m 100 0 l S")
        (op,) = content.operators
        assert op.is_fill is False
        assert op.fill_color is None
        assert op.stroke_color == (0, 0, 255)

    def test_end_path_without_paint_is_not_reported(self) -> None:
        assert _ops(b"0 0 10 10 re W n").operators == []

    def test_image_xobject(self) -> None:
        pdf = pikepdf.Pdf.new()
        content = _ops(
            b"q 100 0 0 50 10 10 cm /Im0 Do Q",
            xobjects={"Im0": image_xobject(pdf)}, pdf=pdf,
        )
        (op,) = content.operators
        assert op.kind == "image"
        assert op.xobject_name == "Im0"
        assert op.xobject_subtype == "Image"
        assert (op.bbox.x0, op.bbox.y0, op.bbox.x1, op.bbox.y1) == (10, 10, 110, 60)


class TestMarkedContent:
    def test_mcid_and_nesting(self) -> None:
        pdf = pikepdf.Pdf.new()
        content = _ops(
            b"/P <</MCID 3>> BDC BT /F1 10 Tf (Hello) Tj ET EMC BT /F1 10 Tf (Hello) Tj ET",
            fonts={"F1": helvetica(pdf)}, pdf=pdf,
        )
        inside, outside = content.operators
        assert inside.mcid == 3
        assert inside.in_marked_content
        assert outside.mcid is None
        assert not outside.in_marked_content
        assert content.max_mcid == 3

    def test_artifact(self) -> None:
        content = _ops(b"/Artifact BMC 0 0 10 10 re f EMC")
        (op,) = content.operators
        assert op.is_artifact
        assert op.mcid is None

    def test_max_mcid_without_marks(self) -> None:
        assert _ops(b"0 0 10 10 re f").max_mcid == -1


class TestPageResources:
    def test_inherited_from_page_tree(self) -> None:
        pdf = pikepdf.Pdf.new()
        font = helvetica(pdf)
        single_page_pdf(b"BT /F1 10 Tf (Hello) Tj ET", pdf=pdf)
        page = pdf.pages[0]
        del page.obj["/Resources"]
        pdf.Root.Pages["/Resources"] = pikepdf.Dictionary({
            "/Font": pikepdf.Dictionary({"/F1": font}),
        })

        assert page_resources(page) is not None
        (op,) = read_page_content(page).operators
        assert op.text == "Hello"

    def test_page_without_contents(self) -> None:
        pdf = pikepdf.Pdf.new()
        pdf.add_blank_page()
        if "/Contents" in pdf.pages[0].obj:
            del pdf.pages[0].obj["/Contents"]
        content = read_page_content(pdf.pages[0])
        assert content.operators == []
        assert content.instructions == []


class TestCorpus:
    def test_untagged_text_runs(self, untagged_pdf: Path) -> None:
        with pikepdf.open(untagged_pdf) as pdf:
            content = read_page_content(pdf.pages[0])
        texts = [op.text for op in content.operators if op.kind == "text"]
        assert texts == ["Hello World", "Large Heading Text", "Page 1"]
        hello = content.operators[0]
        assert hello.bbox.x0 == pytest.approx(72)
        assert 690 < hello.bbox.y0 < 700 < hello.bbox.y1 < 715

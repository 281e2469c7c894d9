"""Tests for colour conversion and contrast utilities."""

from __future__ import annotations

import pytest

from effitex.utils.contrast import (
    contrast_ratio,
    from_hex,
    parse_pdf_color,
    relative_luminance,
    to_hex,
)


class TestRelativeLuminance:
    def test_black(self) -> None:
        assert relative_luminance((0, 0, 0)) == pytest.approx(0.0, abs=1e-6)

    def test_white(self) -> None:
        assert relative_luminance((255, 255, 255)) == pytest.approx(1.0, abs=1e-4)

    def test_mid_gray(self) -> None:
        lum = relative_luminance((128, 128, 128))
        assert 0.2 < lum < 0.25  # ~0.2158

    def test_pure_red(self) -> None:
        lum = relative_luminance((255, 0, 0))
        assert 0.20 < lum < 0.22  # ~0.2126


class TestContrastRatio:
    def test_black_on_white(self) -> None:
        assert contrast_ratio((0, 0, 0), (255, 255, 255)) == pytest.approx(21.0, abs=0.1)

    def test_white_on_white(self) -> None:
        assert contrast_ratio((255, 255, 255), (255, 255, 255)) == pytest.approx(1.0, abs=0.01)

    def test_symmetric(self) -> None:
        r1 = contrast_ratio((100, 50, 200), (200, 100, 50))
        r2 = contrast_ratio((200, 100, 50), (100, 50, 200))
        assert r1 == pytest.approx(r2, abs=0.01)

    def test_light_gray_on_white(self) -> None:
        assert contrast_ratio((217, 217, 217), (255, 255, 255)) < 4.5


class TestParsePdfColor:
    def test_gray(self) -> None:
        assert parse_pdf_color([0.5], "gray") == (128, 128, 128)

    def test_rgb(self) -> None:
        assert parse_pdf_color([1.0, 0.0, 0.0], "rgb") == (255, 0, 0)

    def test_cmyk(self) -> None:
        assert parse_pdf_color([0, 0, 0, 1], "cmyk") == (0, 0, 0)
        assert parse_pdf_color([0, 0, 0, 0], "cmyk") == (255, 255, 255)

    def test_clamped(self) -> None:
        assert parse_pdf_color([1.5, -0.2, 0.0], "rgb") == (255, 0, 0)

    def test_unknown_space_is_black(self) -> None:
        assert parse_pdf_color([0.3], "/Pattern") == (0, 0, 0)
        assert parse_pdf_color([0.3, 0.2], "rgb") == (0, 0, 0)


class TestHex:
    def test_to_hex(self) -> None:
        assert to_hex((255, 0, 10)) == "FF000A"

    def test_from_hex(self) -> None:
        assert from_hex("#D9D9D9") == (217, 217, 217)
        assert from_hex(to_hex((1, 2, 3))) == (1, 2, 3)

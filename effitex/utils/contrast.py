"""Colour conversion and WCAG 2.1 contrast ratio helpers."""

from __future__ import annotations

RGB = tuple[int, int, int]

WHITE: RGB = (255, 255, 255)


def _clamp(v: float) -> int:
    return max(0, min(255, round(v)))


def parse_pdf_color(operands: list[float], color_space: str) -> RGB:
    """Convert PDF colour operands (``gray``, ``rgb`` or ``cmyk``) to 0-255 RGB.

    Unknown spaces or short operand lists fall back to black, which is the
    initial colour of every PDF graphics state.
    """
    cs = color_space.lower()
    if cs == "rgb" and len(operands) >= 3:
        return (_clamp(operands[0] * 255), _clamp(operands[1] * 255), _clamp(operands[2] * 255))
    if cs == "gray" and len(operands) >= 1:
        v = _clamp(operands[0] * 255)
        return (v, v, v)
    if cs == "cmyk" and len(operands) >= 4:
        c, m, y, k = operands[:4]
        return (
            _clamp(255 * (1 - c) * (1 - k)),
            _clamp(255 * (1 - m) * (1 - k)),
            _clamp(255 * (1 - y) * (1 - k)),
        )
    return (0, 0, 0)


def to_hex(color: RGB) -> str:
    """``(255, 0, 10)`` -> ``"FF000A"``."""
    return "".join(f"{c:02X}" for c in color)


def from_hex(value: str) -> RGB:
    value = value.lstrip("#")
    return (int(value[0:2], 16), int(value[2:4], 16), int(value[4:6], 16))


def _linear(channel: int) -> float:
    v = channel / 255.0
    if v <= 0.04045:
        return v / 12.92
    return ((v + 0.055) / 1.055) ** 2.4


def relative_luminance(color: RGB) -> float:
    r, g, b = color
    return 0.2126 * _linear(r) + 0.7152 * _linear(g) + 0.0722 * _linear(b)


def contrast_ratio(color1: RGB, color2: RGB) -> float:
    """WCAG contrast ratio, from 1.0 (identical) to 21.0 (black on white)."""
    l1 = relative_luminance(color1)
    l2 = relative_luminance(color2)
    return (max(l1, l2) + 0.05) / (min(l1, l2) + 0.05)

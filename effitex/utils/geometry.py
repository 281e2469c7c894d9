"""Axis-aligned rectangles in PDF user space, transformed by pikepdf matrices."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from pikepdf import Matrix

IDENTITY = Matrix()


@dataclass(frozen=True)
class Rect:
    """Axis-aligned rectangle given by its lower-left and upper-right corners."""

    x0: float
    y0: float
    x1: float
    y1: float

    @classmethod
    def from_points(cls, points: Iterable[tuple[float, float]]) -> Rect | None:
        pts = list(points)
        if not pts:
            return None
        xs = [p[0] for p in pts]
        ys = [p[1] for p in pts]
        return cls(min(xs), min(ys), max(xs), max(ys))

    @classmethod
    def from_xywh(cls, x: float, y: float, width: float, height: float) -> Rect:
        return cls(x, y, x + width, y + height)

    @property
    def width(self) -> float:
        return self.x1 - self.x0

    @property
    def height(self) -> float:
        return self.y1 - self.y0

    @property
    def area(self) -> float:
        return max(self.width, 0.0) * max(self.height, 0.0)

    @property
    def center(self) -> tuple[float, float]:
        return ((self.x0 + self.x1) / 2, (self.y0 + self.y1) / 2)

    def expanded(self, amount: float) -> Rect:
        return Rect(self.x0 - amount, self.y0 - amount, self.x1 + amount, self.y1 + amount)

    def transformed(self, m: Matrix) -> Rect:
        corners = [
            m.transform((self.x0, self.y0)),
            m.transform((self.x1, self.y0)),
            m.transform((self.x0, self.y1)),
            m.transform((self.x1, self.y1)),
        ]
        return Rect.from_points(corners)  # type: ignore[return-value]

    def contains(self, other: Rect) -> bool:
        return (
            other.x0 >= self.x0
            and other.y0 >= self.y0
            and other.x1 <= self.x1
            and other.y1 <= self.y1
        )

    def contains_point(self, x: float, y: float) -> bool:
        return self.x0 <= x <= self.x1 and self.y0 <= y <= self.y1

    def intersection(self, other: Rect) -> Rect | None:
        x0 = max(self.x0, other.x0)
        y0 = max(self.y0, other.y0)
        x1 = min(self.x1, other.x1)
        y1 = min(self.y1, other.y1)
        if x1 < x0 or y1 < y0:
            return None
        return Rect(x0, y0, x1, y1)

    def as_list(self) -> list[float]:
        return [self.x0, self.y0, self.x1, self.y1]

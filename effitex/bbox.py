"""Correlate a declared page region with the content operators drawn inside it."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from effitex.config import ResolverConfig
from effitex.content import ContentOperator
from effitex.utils.geometry import Rect

logger = logging.getLogger(__name__)


class BboxResolver:
    """Select the drawing operators that fall inside a target rectangle.

    An operator is selected when its bounding box lies inside the target
    grown by ``tolerance`` points.  When nothing is contained, the single
    operator with the largest overlap ratio (intersection with the grown
    target over the operator's own area) is returned instead, provided the
    ratio exceeds ``min_overlap_ratio``.  Results keep content-stream order.
    """

    def __init__(self, config: ResolverConfig | None = None) -> None:
        self.config = config or ResolverConfig()

    def resolve(self, operators: Sequence[ContentOperator], target: Rect) -> list[ContentOperator]:
        region = target.expanded(self.config.tolerance)
        candidates = [op for op in operators if op.bbox is not None]

        contained = [op for op in candidates if region.contains(op.bbox)]  # type: ignore[arg-type]
        if contained:
            return contained

        best: ContentOperator | None = None
        best_ratio = self.config.min_overlap_ratio
        for op in candidates:
            ratio = overlap_ratio(op.bbox, region)  # type: ignore[arg-type]
            # strict comparison keeps the earliest operator on ties
            if ratio > best_ratio:
                best, best_ratio = op, ratio

        if best is None:
            logger.debug("No operators overlap region %s", target)
            return []
        logger.debug("No operator contained in %s; using best overlap %.2f", target, best_ratio)
        return [best]


def overlap_ratio(box: Rect, region: Rect) -> float:
    """Fraction of *box* covered by *region*.

    Zero-area boxes (hairlines, points) are measured by length instead.
    """
    inter = region.intersection(box)
    if inter is None:
        return 0.0
    if box.area > 0:
        return inter.area / box.area
    length = max(box.width, box.height)
    if length == 0:
        return 1.0
    return max(inter.width, inter.height) / length

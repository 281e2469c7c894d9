"""ArtifactHandler: marks decorative content as /Artifact."""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Hashable

import pikepdf

from effitex.content import ContentOperator, read_page_content
from effitex.handlers._marking import replace_page_content, wrap_operators
from effitex.handlers.base import DocumentHandle
from effitex.instructions import ArtifactEntry
from effitex.models import HandlerResult

logger = logging.getLogger(__name__)

# DSL type -> (/Type, /Subtype)
ARTIFACT_TYPES: dict[str, tuple[str, str | None]] = {
    "layout": ("/Layout", None),
    "background": ("/Background", None),
    "pagination": ("/Pagination", None),
    "header": ("/Pagination", "/Header"),
    "footer": ("/Pagination", "/Footer"),
}


def artifact_properties(artifact_type: str) -> pikepdf.Dictionary:
    type_name, subtype = ARTIFACT_TYPES[artifact_type.lower()]
    props = pikepdf.Dictionary({"/Type": pikepdf.Name(type_name)})
    if subtype is not None:
        props["/Subtype"] = pikepdf.Name(subtype)
    return props


class ArtifactHandler:
    @property
    def name(self) -> str:
        return "Artifacts"

    @property
    def section(self) -> str:
        return "artifacts"

    def apply(self, doc: DocumentHandle, section: list[ArtifactEntry]) -> DocumentHandle:
        result = HandlerResult(handler_name=self.name)

        by_page: dict[int, list[tuple[int, ArtifactEntry]]] = defaultdict(list)
        for i, entry in enumerate(section):
            by_page[entry.page].append((i, entry))

        for page_num, entries in by_page.items():
            page = doc.page(page_num)
            content = read_page_content(page)

            assignments: list[tuple[ContentOperator, Hashable]] = []
            types: dict[Hashable, str] = {}
            claimed: set[int] = set()
            for i, entry in entries:
                matched = doc.resolver.resolve(content.operators, entry.bbox.to_rect())
                if not matched:
                    result.warnings.append(f"artifacts[{i}]: no content found in bbox on page {page_num}")
                    continue
                types[i] = entry.type
                for op in matched:
                    if op.mcid is not None or op.is_artifact:
                        result.warnings.append(
                            f"artifacts[{i}]: {op.operator} at position {op.index} "
                            "is already marked; left unchanged"
                        )
                        continue
                    if op.index not in claimed:
                        claimed.add(op.index)
                        assignments.append((op, i))

            if not assignments:
                continue

            ranges = 0

            def open_mark(key: Hashable) -> list:
                nonlocal ranges
                ranges += 1
                return [pikepdf.Name("/Artifact"), artifact_properties(types[key])]

            replace_page_content(
                doc.pdf, page, wrap_operators(content.instructions, assignments, open_mark)
            )
            logger.info("Artifacts: page %d, %d range(s)", page_num, ranges)
            result.changes_made += ranges

        doc.results.append(result)
        return doc

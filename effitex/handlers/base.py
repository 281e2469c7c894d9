"""Base protocol and the document handle shared by pipeline handlers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

import pikepdf

from effitex.bbox import BboxResolver
from effitex.config import EffiTexConfig
from effitex.exceptions import ExecutionError
from effitex.models import HandlerResult


@dataclass
class DocumentHandle:
    """The single mutable document threaded through the pipeline.

    ``nodes`` maps declared structure-node ids to the structure elements
    built for them; later handlers correlate through it by id.
    """

    pdf: pikepdf.Pdf
    config: EffiTexConfig = field(default_factory=EffiTexConfig)
    nodes: dict[str, pikepdf.Dictionary] = field(default_factory=dict)
    results: list[HandlerResult] = field(default_factory=list)

    @property
    def resolver(self) -> BboxResolver:
        return BboxResolver(self.config.resolver)

    def page(self, number: int) -> pikepdf.Page:
        """Return the 1-based page *number*."""
        if number < 1 or number > len(self.pdf.pages):
            raise ExecutionError(
                f"Page {number} does not exist (document has {len(self.pdf.pages)} page(s))."
            )
        return self.pdf.pages[number - 1]

    def node(self, node_id: str) -> pikepdf.Dictionary:
        try:
            return self.nodes[node_id]
        except KeyError:
            raise ExecutionError(f'Structure node "{node_id}" was not built.') from None


@runtime_checkable
class Handler(Protocol):
    """Interface that every pipeline handler must implement.

    Each handler owns one section of the instruction set.  It receives the
    document handle plus that section, mutates the document in place, and
    returns the handle.  A handler appends exactly one HandlerResult to
    ``doc.results``.  Errors propagate; the pipeline aborts on the first one.
    """

    @property
    def name(self) -> str:
        """Human-readable handler name (e.g. 'Structure')."""
        ...

    @property
    def section(self) -> str:
        """Attribute of InstructionSet this handler consumes."""
        ...

    def apply(self, doc: DocumentHandle, section: Any) -> DocumentHandle:
        ...

"""Rewrite content streams so selected operators sit inside BDC/EMC ranges."""

from __future__ import annotations

from collections.abc import Callable, Hashable, Sequence

import pikepdf

from effitex.content import ContentOperator

# State-only operators that may stay inside an open marked range without
# ending it; anything else closes the range first.
TRANSPARENT_OPS = frozenset({
    "Tc", "Tw", "Tz", "TL", "Tf", "Tr", "Ts", "Td", "TD", "Tm", "T*",
    "g", "G", "rg", "RG", "k", "K", "cs", "CS", "sc", "scn", "SC", "SCN",
    "w", "J", "j", "M", "d", "ri", "i", "gs",
})


def instruction(operands: list, operator: str) -> pikepdf.ContentStreamInstruction:
    return pikepdf.ContentStreamInstruction(operands, pikepdf.Operator(operator))


def wrap_operators(
    instructions: Sequence,
    assignments: Sequence[tuple[ContentOperator, Hashable]],
    open_mark: Callable[[Hashable], list],
) -> list:
    """Return *instructions* with each assigned operator span marked.

    Consecutive spans assigned the same key share one range.  *open_mark*
    is called once per range and returns the BDC operands for it.
    """
    member: dict[int, Hashable] = {}
    for op, key in assignments:
        for i in range(op.start, op.index + 1):
            member.setdefault(i, key)

    out: list = []
    active: Hashable | None = None
    for i, instr in enumerate(instructions):
        key = member.get(i)
        if key is not None:
            if active != key:
                if active is not None:
                    out.append(instruction([], "EMC"))
                out.append(instruction(open_mark(key), "BDC"))
                active = key
            out.append(instr)
            continue
        if active is not None and str(instr.operator) not in TRANSPARENT_OPS:
            out.append(instruction([], "EMC"))
            active = None
        out.append(instr)

    if active is not None:
        out.append(instruction([], "EMC"))
    return out


def replace_page_content(pdf: pikepdf.Pdf, page: pikepdf.Page, instructions: list) -> None:
    """Replace all of *page*'s content streams with *instructions*."""
    page.obj["/Contents"] = pdf.make_stream(pikepdf.unparse_content_stream(instructions))

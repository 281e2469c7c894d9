"""Exception hierarchy for EffiTex."""

from __future__ import annotations

from effitex.models import FieldError


class EffiTexError(Exception):
    """Base class for all errors raised by EffiTex."""


class InstructionParseError(EffiTexError):
    """The instruction text could not be deserialized."""


class InstructionValidationError(EffiTexError):
    """Instructions were handed to the interpreter without passing validation."""

    def __init__(self, errors: list[FieldError]) -> None:
        self.errors = errors
        lines = "; ".join(f"{e.field}: {e.message}" for e in errors)
        super().__init__(f"Instruction set is invalid ({len(errors)} error(s)): {lines}")


class ExecutionError(EffiTexError):
    """Mutating or inspecting the document failed. No output is produced."""

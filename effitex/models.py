"""Result models shared across the EffiTex pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class FieldError:
    """A single validation failure, addressed by its DSL field path."""

    field: str  # e.g. "structure.children[0].role"
    message: str


@dataclass
class ValidationResult:
    """All validation failures found in one instruction set."""

    errors: list[FieldError] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def add(self, path: str, message: str) -> None:
        self.errors.append(FieldError(path, message))


@dataclass
class HandlerResult:
    """Result from a single pipeline handler."""

    handler_name: str
    changes_made: int = 0
    warnings: list[str] = field(default_factory=list)


@dataclass
class ExecutionResult:
    """Aggregate result from the full interpretation pipeline."""

    output: bytes = b""
    handler_results: list[HandlerResult] = field(default_factory=list)

    @property
    def total_changes(self) -> int:
        return sum(r.changes_made for r in self.handler_results)

    @property
    def warnings(self) -> list[str]:
        out: list[str] = []
        for r in self.handler_results:
            for w in r.warnings:
                out.append(f"[{r.handler_name}] {w}")
        return out

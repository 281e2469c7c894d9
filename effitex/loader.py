"""Deserialize DSL text (YAML or JSON) into an InstructionSet."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from effitex.exceptions import InstructionParseError
from effitex.instructions import InstructionSet

logger = logging.getLogger(__name__)

_EXTENSION_CONTENT_TYPES = {
    ".yaml": "application/yaml",
    ".yml": "application/yaml",
    ".json": "application/json",
}


def load_instructions(text: str | bytes, content_type: str | None = None) -> InstructionSet:
    """Parse *text* into an InstructionSet.

    A *content_type* containing ``json`` selects JSON, one containing ``yaml``
    or ``yml`` selects YAML.  Without a content type the input is treated as
    JSON when it starts with ``{`` or ``[`` and as YAML otherwise.
    """
    if isinstance(text, bytes):
        text = text.decode("utf-8-sig")
    if not text or not text.strip():
        raise InstructionParseError("Instruction input is empty.")

    fmt = _detect_format(text, content_type)
    try:
        if fmt == "json":
            raw: Any = json.loads(text)
        else:
            raw = yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise InstructionParseError(f"Malformed {fmt.upper()} instructions: {exc}") from exc

    if not isinstance(raw, dict):
        raise InstructionParseError(
            f"Instruction document must be a mapping, got {type(raw).__name__}."
        )

    try:
        instructions = InstructionSet.model_validate(raw)
    except ValidationError as exc:
        raise InstructionParseError(f"Instructions do not match the DSL schema: {exc}") from exc

    logger.debug("Loaded %s instructions (version=%s)", fmt, instructions.version)
    return instructions


def load_instructions_file(path: Path) -> InstructionSet:
    """Load instructions from a ``.yaml``, ``.yml`` or ``.json`` file."""
    content_type = content_type_for(path)
    return load_instructions(path.read_text(encoding="utf-8"), content_type)


def content_type_for(path: Path) -> str:
    """Map an instruction file extension to its content type."""
    try:
        return _EXTENSION_CONTENT_TYPES[path.suffix.lower()]
    except KeyError:
        raise InstructionParseError(
            f"Unsupported instruction file extension {path.suffix!r}; "
            "use .yaml, .yml or .json."
        ) from None


def _detect_format(text: str, content_type: str | None) -> str:
    if content_type:
        lowered = content_type.lower()
        if "json" in lowered:
            return "json"
        if "yaml" in lowered or "yml" in lowered:
            return "yaml"
    stripped = text.lstrip()
    if stripped.startswith(("{", "[")):
        return "json"
    return "yaml"

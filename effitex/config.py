"""Pydantic configuration model with YAML loading."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

_DEFAULT_CONFIG_NAME = "effitex.yaml"


class ResolverConfig(BaseModel):
    """Bounding-box to content-operator matching policy."""

    tolerance: float = Field(default=2.0, ge=0.0)
    min_overlap_ratio: float = Field(default=0.0, ge=0.0, le=1.0)


class OcrConfig(BaseModel):
    """Invisible text layer settings."""

    font: str = "Helvetica"
    min_confidence: float = Field(default=0.0, ge=0.0, le=1.0)


class OutputConfig(BaseModel):
    """Output file settings."""

    suffix: str = "_remediated"
    deterministic_id: bool = True


class EffiTexConfig(BaseModel):
    """Top-level configuration for EffiTex."""

    product_name: str = "EffiTex"
    resolver: ResolverConfig = Field(default_factory=ResolverConfig)
    ocr: OcrConfig = Field(default_factory=OcrConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)

    @property
    def processor_stamp(self) -> str:
        from effitex import __version__

        return f"{self.product_name} {__version__}"

    @classmethod
    def load(cls, path: Path | None = None) -> EffiTexConfig:
        """Load config from a YAML file.

        Search order when *path* is None:
          1. ./effitex.yaml
          2. ~/.config/effitex/effitex.yaml

        Returns default config if no file is found.
        """
        if path is not None:
            return cls._from_yaml(path)

        candidates = [
            Path.cwd() / _DEFAULT_CONFIG_NAME,
            Path.home() / ".config" / "effitex" / _DEFAULT_CONFIG_NAME,
        ]
        for candidate in candidates:
            if candidate.is_file():
                return cls._from_yaml(candidate)

        return cls()

    @classmethod
    def _from_yaml(cls, path: Path) -> EffiTexConfig:
        raw: dict[str, Any] = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        return cls.model_validate(raw)

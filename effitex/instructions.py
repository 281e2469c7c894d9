"""Instruction set model: the remediation DSL.

Every field is optional at the model level so that the validator, not the
deserializer, reports business-rule violations as a complete list of field
errors.  Unknown keys are ignored.
"""

from __future__ import annotations

from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from effitex.utils.geometry import Rect

AttributeValue = Union[bool, int, float, str]


class _DslModel(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)


class BoundingBox(_DslModel):
    """Rectangle in PDF points, origin at the bottom-left of the page."""

    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0

    def to_rect(self) -> Rect:
        return Rect.from_xywh(self.x, self.y, self.width, self.height)


class MetadataInstruction(_DslModel):
    language: str | None = None
    title: str | None = None
    display_doc_title: bool | None = None
    mark_info: bool | None = None
    pdfua_identifier: int | None = None
    tab_order: str | None = None


class StructureAttribute(_DslModel):
    owner: str = ""
    key: str = ""
    value: AttributeValue = ""


class StructureNode(_DslModel):
    id: str | None = None
    role: str = ""
    bbox: BoundingBox | None = None
    language: str | None = None
    alt_text: str | None = None
    actual_text: str | None = None
    element_id: str | None = None
    scope: str | None = None
    colspan: int | None = None
    rowspan: int | None = None
    attributes: list[StructureAttribute] = Field(default_factory=list)
    children: list[StructureNode] = Field(default_factory=list)


class StructureInstruction(_DslModel):
    """Root element role plus the tree of nodes beneath it."""

    strip_existing: bool = False
    root: str | None = None
    children: list[StructureNode] = Field(default_factory=list)


class ContentTaggingEntry(_DslModel):
    node: str = ""
    page: int = 0
    bbox: BoundingBox | None = None


class ArtifactEntry(_DslModel):
    page: int = 0
    bbox: BoundingBox | None = None
    type: str = "layout"


class AnnotationOperation(_DslModel):
    op: str = ""
    page: int = 0
    index: int | None = None
    value: str | None = None
    node: str | None = None
    rect: BoundingBox | None = None
    field_name: str | None = None
    field_type: str | None = None
    tu: str | None = None


class FontOperation(_DslModel):
    op: str = ""
    font: str = ""
    page: int = 0
    cids: list[int] = Field(default_factory=list)
    glyph_names: list[str] = Field(default_factory=list)
    encoding: str | None = None
    differences: dict[int, str] = Field(default_factory=dict)
    mappings: dict[int, str] = Field(default_factory=dict)
    widths: dict[int, float] = Field(default_factory=dict)


class OcrWord(_DslModel):
    text: str = ""
    bbox: BoundingBox | None = None
    confidence: float | None = None


class OcrPage(_DslModel):
    page: int = 0
    words: list[OcrWord] = Field(default_factory=list)


class BookmarksInstruction(_DslModel):
    generate_from_headings: bool = False


class InstructionSet(_DslModel):
    """Root of the DSL document.  Absent sections skip their handler."""

    version: str | None = None
    metadata: MetadataInstruction | None = None
    structure: StructureInstruction | None = None
    content_tagging: list[ContentTaggingEntry] | None = None
    artifacts: list[ArtifactEntry] | None = None
    annotations: list[AnnotationOperation] | None = None
    bookmarks: BookmarksInstruction | None = None
    fonts: list[FontOperation] | None = None
    ocr: list[OcrPage] | None = None

    @field_validator("version", mode="before")
    @classmethod
    def _version_as_text(cls, value: Any) -> Any:
        # YAML reads an unquoted 1.0 as a float
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value


StructureNode.model_rebuild()

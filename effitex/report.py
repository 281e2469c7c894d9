"""Inspection report models.

Field names are snake_case in Python and camelCase on the wire; ``None``
values are kept and serialize as ``null``.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _ReportModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json(self, indent: int | None = 2) -> str:
        return self.model_dump_json(by_alias=True, indent=indent)


class BoundingBoxInfo(_ReportModel):
    x: float
    y: float
    width: float
    height: float


class ColorInfo(_ReportModel):
    r: int
    g: int
    b: int


class DocumentInfo(_ReportModel):
    is_tagged: bool = False
    page_count: int = 0
    pdf_version: str | None = None
    language: str | None = None
    title: str | None = None
    display_doc_title: bool | None = None
    mark_info_marked: bool | None = None
    suspect_flag: bool | None = None
    has_info_dictionary: bool = False
    is_encrypted: bool = False
    encryption_permissions: dict[str, bool] | None = None
    has_structural_parent_tree: bool = False
    has_xfa_dynamic_render: bool = False


class CidSystemInfo(_ReportModel):
    registry: str | None = None
    ordering: str | None = None
    supplement: int | None = None


class CmapInfo(_ReportModel):
    name: str | None = None
    is_embedded: bool = False
    is_predefined: bool = False
    use_cmap_name: str | None = None
    use_cmap_is_predefined: bool = False
    dict_w_mode: int | None = None
    stream_w_mode: int | None = None


class CidToGidMapInfo(_ReportModel):
    present: bool = False
    is_valid: bool = False


class EncodingDetail(_ReportModel):
    is_dictionary: bool = False
    base_encoding: str | None = None
    has_differences_array: bool = False
    differences_glyph_names: list[str] = Field(default_factory=list)


class CmapSubtable(_ReportModel):
    platform_id: int
    encoding_id: int
    format: int


class Type3FontInfo(_ReportModel):
    char_procs_glyph_names: list[str] = Field(default_factory=list)
    encoded_glyph_names: list[str] = Field(default_factory=list)
    used_char_codes: list[int] = Field(default_factory=list)
    tounicode_mappings: dict[str, str] = Field(default_factory=dict)
    has_font_descriptor: bool = False


class PdfStreamData(_ReportModel):
    """Raw (undecoded) stream bytes plus the filter chain needed to decode them."""

    data: str
    filter: list[str] | None = None
    decode_parms: list[dict[str, Any] | None] | None = None


class FontReport(_ReportModel):
    name: str
    font_type: str
    is_embedded: bool = False
    is_symbolic: bool = False
    has_tounicode: bool = False
    tounicode_is_valid: bool | None = None
    has_notdef_glyph: bool = False
    encoding: str | None = None
    has_charset: bool = False
    has_cidset: bool = False
    has_font_descriptor: bool = False
    cid_system_info: CidSystemInfo | None = None
    cmap_info: CmapInfo | None = None
    cid_to_gid_map: CidToGidMapInfo | None = None
    encoding_detail: EncodingDetail | None = None
    cmap_subtables: list[CmapSubtable] | None = None
    tounicode_mappings: dict[str, str] | None = None
    unmappable_char_codes: list[int] = Field(default_factory=list)
    type3_info: Type3FontInfo | None = None
    type1_glyph_names: list[str] | None = None
    font_program: PdfStreamData | None = None
    pages: list[int] = Field(default_factory=list)


class StructureTreeNode(_ReportModel):
    role: str
    page: int | None = None
    mcid: int | None = None
    id: str | None = None
    alt_text: str | None = None
    actual_text: str | None = None
    language: str | None = None
    has_bbox: bool = False
    attributes: dict[str, Any] = Field(default_factory=dict)
    children: list[StructureTreeNode] = Field(default_factory=list)


class ContentOperatorInfo(_ReportModel):
    content_stream_index: int
    operator_name: str
    is_text_operator: bool = False
    is_image_operator: bool = False
    is_path_operator: bool = False
    is_artifact: bool = False
    is_inside_marked_content: bool = False
    marked_content_id: int | None = None
    text: str | None = None
    font_name: str | None = None
    font_size: float | None = None
    fill_color: ColorInfo | None = None
    stroke_color: ColorInfo | None = None
    has_unicode_mapping: bool | None = None
    x_object_name: str | None = None
    x_object_subtype: str | None = None
    page_number: int
    bounding_box: BoundingBoxInfo | None = None


class AnnotationInfo(_ReportModel):
    subtype: str | None = None
    index: int
    page_number: int
    bounding_box: BoundingBoxInfo | None = None
    contents: str | None = None
    uri: str | None = None
    tu: str | None = None
    alt_text: str | None = None
    is_hidden: bool = False
    enclosing_tag_role: str | None = None
    has_tab_order: bool = False
    field_name: str | None = None
    field_type: str | None = None
    field_flags: int | None = None
    field_value: str | None = None


class PageInfo(_ReportModel):
    page_number: int
    width: float
    height: float
    tab_order: str | None = None
    content_operators: list[ContentOperatorInfo] = Field(default_factory=list)
    annotations: list[AnnotationInfo] = Field(default_factory=list)
    fonts: list[str] = Field(default_factory=list)
    structured_mcids: list[int] = Field(default_factory=list)


class OutlineNode(_ReportModel):
    title: str
    lang: str | None = None
    children: list[OutlineNode] = Field(default_factory=list)


class EmbeddedFileInfo(_ReportModel):
    name: str | None = None
    has_f_key: bool = False
    has_uf_key: bool = False


class OcgConfigInfo(_ReportModel):
    name: str | None = None
    has_as_key: bool = False
    intent: str | None = None


class ColorPairInfo(_ReportModel):
    foreground: str
    background: str
    occurrence_count: int
    contrast_ratio: float


class InspectionReport(_ReportModel):
    file_hash: str
    file_size_bytes: int
    document: DocumentInfo
    xmp_metadata: str | None = None
    fonts: list[FontReport] = Field(default_factory=list)
    structure_tree: list[StructureTreeNode] = Field(default_factory=list)
    role_map: dict[str, str] = Field(default_factory=dict)
    pages: list[PageInfo] = Field(default_factory=list)
    outlines: list[OutlineNode] = Field(default_factory=list)
    embedded_files: list[EmbeddedFileInfo] = Field(default_factory=list)
    ocg_configurations: list[OcgConfigInfo] = Field(default_factory=list)
    color_pairs: list[ColorPairInfo] = Field(default_factory=list)


StructureTreeNode.model_rebuild()
OutlineNode.model_rebuild()

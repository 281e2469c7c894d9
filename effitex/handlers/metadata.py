"""MetadataHandler: document language, title, view preferences, MarkInfo,
PDF/UA identifier and per-page tab order."""

from __future__ import annotations

import logging

import pikepdf

from effitex.handlers._pdf_helpers import ensure_mark_info
from effitex.handlers.base import DocumentHandle
from effitex.instructions import MetadataInstruction
from effitex.models import HandlerResult

logger = logging.getLogger(__name__)

TAB_ORDER_NAMES: dict[str, str] = {
    "structure": "/S",
    "row": "/R",
    "column": "/C",
    "unordered": "/W",
}


class MetadataHandler:
    @property
    def name(self) -> str:
        return "Metadata"

    @property
    def section(self) -> str:
        return "metadata"

    def apply(self, doc: DocumentHandle, section: MetadataInstruction) -> DocumentHandle:
        pdf = doc.pdf
        changes = 0
        xmp: dict[str, str] = {}

        if section.language is not None:
            pdf.Root["/Lang"] = pikepdf.String(section.language)
            changes += 1

        if section.title is not None:
            # docinfo is written directly; XMP is updated below without syncing
            pdf.docinfo["/Title"] = pikepdf.String(section.title)
            xmp["dc:title"] = section.title
            changes += 1

        if section.display_doc_title is not None:
            if "/ViewerPreferences" not in pdf.Root:
                pdf.Root["/ViewerPreferences"] = pikepdf.Dictionary()
            pdf.Root["/ViewerPreferences"]["/DisplayDocTitle"] = section.display_doc_title
            changes += 1

        if section.mark_info is not None:
            mark_info = ensure_mark_info(pdf, section.mark_info)
            if section.mark_info:
                mark_info["/Suspects"] = False
            changes += 1

        if section.pdfua_identifier is not None:
            xmp["pdfuaid:part"] = str(section.pdfua_identifier)
            changes += 1

        if xmp:
            self._write_xmp(pdf, xmp)

        if section.tab_order is not None:
            tabs = pikepdf.Name(TAB_ORDER_NAMES[section.tab_order.lower()])
            for page in pdf.pages:
                page.obj["/Tabs"] = tabs
            changes += len(pdf.pages)

        logger.info("Metadata: %d change(s)", changes)
        doc.results.append(HandlerResult(handler_name=self.name, changes_made=changes))
        return doc

    @staticmethod
    def _write_xmp(pdf: pikepdf.Pdf, values: dict[str, str]) -> None:
        """Write XMP properties without touching /Producer or the info dict."""
        with pdf.open_metadata(set_pikepdf_as_editor=False, update_docinfo=False) as meta:
            for key, value in values.items():
                meta[key] = value

"""Final output step: processor stamp and serialization."""

from __future__ import annotations

import logging
from io import BytesIO

import pikepdf

logger = logging.getLogger(__name__)


def stamp_processor(pdf: pikepdf.Pdf, stamp: str) -> None:
    """Record the processing tool in the custom ``/Processor`` info entry.

    ``/Producer`` belongs to the application that created the document and
    is left as it is.
    """
    pdf.docinfo["/Processor"] = pikepdf.String(stamp)


def save_to_bytes(pdf: pikepdf.Pdf, *, deterministic_id: bool = True) -> bytes:
    """Serialize *pdf*; with *deterministic_id* equal inputs give equal bytes."""
    buffer = BytesIO()
    # qpdf cannot derive a deterministic /ID for encrypted output
    deterministic = deterministic_id and not pdf.is_encrypted
    pdf.save(buffer, deterministic_id=deterministic)
    logger.debug("Saved %d bytes (deterministic id: %s)", buffer.tell(), deterministic)
    return buffer.getvalue()

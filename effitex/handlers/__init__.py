"""Instruction handlers, one per section of the instruction set."""

from __future__ import annotations


def default_handlers() -> tuple:
    """Return the handlers in execution order.

    Structure runs before ContentTagging and Bookmarks, which look
    elements up by node id or walk the tree it builds.
    """
    from effitex.handlers.annotations import AnnotationHandler
    from effitex.handlers.artifacts import ArtifactHandler
    from effitex.handlers.bookmarks import BookmarkHandler
    from effitex.handlers.fonts import FontHandler
    from effitex.handlers.metadata import MetadataHandler
    from effitex.handlers.ocr import OcrHandler
    from effitex.handlers.structure import StructureHandler
    from effitex.handlers.tagging import ContentTaggingHandler

    return (
        MetadataHandler(),
        StructureHandler(),
        ContentTaggingHandler(),
        ArtifactHandler(),
        AnnotationHandler(),
        FontHandler(),
        OcrHandler(),
        BookmarkHandler(),
    )

"""Interpreter: validates an instruction set and runs the handler pipeline."""

from __future__ import annotations

import logging
from io import BytesIO
from pathlib import Path
from typing import Iterable

import pikepdf

from effitex.config import EffiTexConfig
from effitex.exceptions import EffiTexError, ExecutionError, InstructionValidationError
from effitex.handlers import default_handlers
from effitex.handlers.base import DocumentHandle, Handler
from effitex.instructions import InstructionSet
from effitex.models import ExecutionResult
from effitex.validator import validate
from effitex.writer import save_to_bytes, stamp_processor

logger = logging.getLogger(__name__)


def execute(
    source: bytes,
    instructions: InstructionSet,
    config: EffiTexConfig | None = None,
    *,
    handlers: Iterable[Handler] | None = None,
) -> ExecutionResult:
    """Apply *instructions* to the PDF in *source* and return the new document.

    1. Validates; an invalid set raises InstructionValidationError.
    2. Runs each handler whose section is present, in pipeline order.
    3. Stamps the processor entry and serializes the result.

    Any handler failure aborts the run with an ExecutionError.
    """
    config = config or EffiTexConfig()

    validation = validate(instructions)
    if not validation.is_valid:
        raise InstructionValidationError(validation.errors)

    try:
        pdf = pikepdf.open(BytesIO(source))
    except pikepdf.PdfError as exc:
        raise ExecutionError(f"Unable to open PDF: {exc}") from exc

    with pdf:
        doc = DocumentHandle(pdf=pdf, config=config)
        for handler in handlers if handlers is not None else default_handlers():
            section = getattr(instructions, handler.section)
            if section is None:
                continue
            doc = _run_single_handler(handler, doc, section)

        stamp_processor(pdf, config.processor_stamp)
        try:
            output = save_to_bytes(pdf, deterministic_id=config.output.deterministic_id)
        except pikepdf.PdfError as exc:
            raise ExecutionError(f"Unable to write PDF: {exc}") from exc

    result = ExecutionResult(output=output, handler_results=doc.results)
    logger.info("Pipeline finished: %d change(s), %d warning(s)", result.total_changes, len(result.warnings))
    return result


def _run_single_handler(handler: Handler, doc: DocumentHandle, section: object) -> DocumentHandle:
    """Run one handler, converting any failure into ExecutionError."""
    logger.debug("Running handler %s", handler.name)
    try:
        return handler.apply(doc, section)
    except ExecutionError:
        logger.error("Handler %s failed", handler.name, exc_info=True)
        raise
    except (EffiTexError, pikepdf.PdfError, ValueError, TypeError, KeyError, IndexError) as exc:
        logger.error("Handler %s failed: %s", handler.name, exc, exc_info=True)
        raise ExecutionError(f"{handler.name} failed: {exc}") from exc


def default_output_path(input_path: Path, config: EffiTexConfig | None = None) -> Path:
    """``report.pdf`` -> ``report_remediated.pdf`` next to the input."""
    suffix = (config or EffiTexConfig()).output.suffix
    return input_path.with_name(f"{input_path.stem}{suffix}{input_path.suffix}")


def run_pipeline(
    input_path: Path,
    output_path: Path,
    instructions: InstructionSet,
    config: EffiTexConfig | None = None,
) -> ExecutionResult:
    """Path-based wrapper around ``execute``; never modifies *input_path*."""
    if output_path.resolve() == input_path.resolve():
        raise ExecutionError(f"Refusing to overwrite the input file {input_path}.")

    result = execute(input_path.read_bytes(), instructions, config)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_bytes(result.output)
    logger.info("Wrote %s", output_path)
    return result

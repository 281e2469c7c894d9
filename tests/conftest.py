"""Shared test fixtures."""

from __future__ import annotations

from pathlib import Path

import pikepdf
import pytest

from effitex.config import EffiTexConfig
from effitex.handlers.base import DocumentHandle
from tests.fixtures.generate import CORPUS_DIR, generate_all


@pytest.fixture(scope="session")
def corpus_dir() -> Path:
    """Ensure test PDFs exist and return the corpus directory."""
    CORPUS_DIR.mkdir(parents=True, exist_ok=True)
    generate_all()
    return CORPUS_DIR


@pytest.fixture(scope="session")
def untagged_pdf(corpus_dir: Path) -> Path:
    return corpus_dir / "untagged.pdf"


@pytest.fixture(scope="session")
def headings_pdf(corpus_dir: Path) -> Path:
    return corpus_dir / "headings.pdf"


@pytest.fixture(scope="session")
def annotated_pdf(corpus_dir: Path) -> Path:
    return corpus_dir / "annotated.pdf"


@pytest.fixture(scope="session")
def low_contrast_pdf(corpus_dir: Path) -> Path:
    return corpus_dir / "low_contrast.pdf"


@pytest.fixture(scope="session")
def multipage_pdf(corpus_dir: Path) -> Path:
    return corpus_dir / "multipage.pdf"


@pytest.fixture(scope="session")
def scanned_pdf(corpus_dir: Path) -> Path:
    return corpus_dir / "scanned.pdf"


@pytest.fixture
def output_pdf(tmp_path: Path) -> Path:
    """Temporary output path for remediated PDFs."""
    return tmp_path / "output.pdf"


@pytest.fixture
def open_doc():
    """Open a corpus PDF as a DocumentHandle; closed after the test."""
    opened: list[pikepdf.Pdf] = []

    def _open(path: Path, config: EffiTexConfig | None = None) -> DocumentHandle:
        pdf = pikepdf.open(path)
        opened.append(pdf)
        return DocumentHandle(pdf=pdf, config=config or EffiTexConfig())

    yield _open
    for pdf in opened:
        pdf.close()


@pytest.fixture
def sample_instructions_yaml(tmp_path: Path) -> Path:
    """Write a small valid instruction file for the untagged corpus PDF."""
    content = """\
version: "1.0"
metadata:
  language: en-US
  title: Sample Document
  display_doc_title: true
  mark_info: true
structure:
  root: Document
  children:
    - id: heading
      role: H1
    - id: para
      role: P
content_tagging:
  - node: heading
    page: 1
    bbox: {x: 70, y: 640, width: 220, height: 32}
  - node: para
    page: 1
    bbox: {x: 70, y: 690, width: 100, height: 25}
artifacts:
  - page: 1
    bbox: {x: 295, y: 25, width: 40, height: 15}
    type: footer
bookmarks:
  generate_from_headings: true
"""
    path = tmp_path / "instructions.yaml"
    path.write_text(content, encoding="utf-8")
    return path

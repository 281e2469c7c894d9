"""Tests for the command-line interface."""

from __future__ import annotations

import json
import shutil
from pathlib import Path

from typer.testing import CliRunner

from effitex import __version__
from effitex.cli import app

runner = CliRunner()


def _write(path: Path, text: str) -> Path:
    path.write_text(text, encoding="utf-8")
    return path


class TestRoot:
    def test_help(self) -> None:
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for command in ("validate", "execute", "inspect"):
            assert command in result.stdout

    def test_version(self) -> None:
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert f"effitex {__version__}" in result.stdout


class TestValidate:
    def test_valid_file(self, sample_instructions_yaml: Path) -> None:
        result = runner.invoke(app, ["validate", str(sample_instructions_yaml)])
        assert result.exit_code == 0
        assert "valid" in result.stdout

    def test_invalid_file(self, tmp_path: Path) -> None:
        path = _write(tmp_path / "bad.yaml", "version: '2.0'\nmetadata:\n  tab_order: diagonal\n")
        result = runner.invoke(app, ["validate", str(path)])
        assert result.exit_code == 2
        assert "metadata.tab_order" in result.stdout
        assert "2 error(s)" in result.stdout

    def test_unparseable_file(self, tmp_path: Path) -> None:
        path = _write(tmp_path / "broken.yaml", "version: [1.0\n")
        result = runner.invoke(app, ["validate", str(path)])
        assert result.exit_code == 1

    def test_missing_file(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["validate", str(tmp_path / "nope.yaml")])
        assert result.exit_code == 1
        assert "not found" in result.stdout


class TestExecute:
    def test_writes_output(self, untagged_pdf: Path, sample_instructions_yaml: Path, output_pdf: Path) -> None:
        result = runner.invoke(app, [
            "execute", str(untagged_pdf), str(sample_instructions_yaml), "-o", str(output_pdf),
        ])
        assert result.exit_code == 0, result.stdout
        assert output_pdf.exists()
        assert "Handlers" in result.stdout
        assert "Metadata" in result.stdout

    def test_default_output_path(self, untagged_pdf: Path, sample_instructions_yaml: Path, tmp_path: Path) -> None:
        source = tmp_path / "report.pdf"
        shutil.copy(untagged_pdf, source)
        result = runner.invoke(app, ["execute", str(source), str(sample_instructions_yaml)])
        assert result.exit_code == 0, result.stdout
        assert (tmp_path / "report_remediated.pdf").exists()
        assert source.read_bytes() == untagged_pdf.read_bytes()

    def test_config_suffix(self, untagged_pdf: Path, sample_instructions_yaml: Path, tmp_path: Path) -> None:
        source = tmp_path / "report.pdf"
        shutil.copy(untagged_pdf, source)
        config = _write(tmp_path / "effitex.yaml", "output:\n  suffix: _fixed\n")
        result = runner.invoke(app, [
            "execute", str(source), str(sample_instructions_yaml), "--config", str(config),
        ])
        assert result.exit_code == 0, result.stdout
        assert (tmp_path / "report_fixed.pdf").exists()

    def test_invalid_instructions(self, untagged_pdf: Path, tmp_path: Path, output_pdf: Path) -> None:
        path = _write(tmp_path / "bad.json", json.dumps({"version": "1.0", "artifacts": [
            {"page": 0, "bbox": {"x": 0, "y": 0, "width": 1, "height": 1}},
        ]}))
        result = runner.invoke(app, ["execute", str(untagged_pdf), str(path), "-o", str(output_pdf)])
        assert result.exit_code == 2
        assert "artifacts[0].page" in result.stdout
        assert not output_pdf.exists()

    def test_page_out_of_range_fails(self, untagged_pdf: Path, tmp_path: Path, output_pdf: Path) -> None:
        path = _write(tmp_path / "far.yaml", """\
version: "1.0"
artifacts:
  - page: 9
    bbox: {x: 0, y: 0, width: 10, height: 10}
""")
        result = runner.invoke(app, ["execute", str(untagged_pdf), str(path), "-o", str(output_pdf)])
        assert result.exit_code == 1
        assert "Execution failed" in result.stdout
        assert not output_pdf.exists()

    def test_missing_pdf(self, sample_instructions_yaml: Path, tmp_path: Path) -> None:
        result = runner.invoke(app, ["execute", str(tmp_path / "none.pdf"), str(sample_instructions_yaml)])
        assert result.exit_code == 1


class TestInspect:
    def test_json_to_stdout(self, untagged_pdf: Path) -> None:
        result = runner.invoke(app, ["inspect", str(untagged_pdf)])
        assert result.exit_code == 0
        payload = json.loads(result.stdout)
        assert payload["document"]["pageCount"] == 1

    def test_json_to_file(self, untagged_pdf: Path, tmp_path: Path) -> None:
        target = tmp_path / "report.json"
        result = runner.invoke(app, ["inspect", str(untagged_pdf), "-o", str(target)])
        assert result.exit_code == 0
        payload = json.loads(target.read_text(encoding="utf-8"))
        assert payload["fonts"][0]["name"] == "Helvetica"

    def test_not_a_pdf(self, tmp_path: Path) -> None:
        path = _write(tmp_path / "fake.pdf", "hello")
        result = runner.invoke(app, ["inspect", str(path)])
        assert result.exit_code == 1
        assert "Inspection failed" in result.stdout

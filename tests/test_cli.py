from __future__ import annotations

import json
from pathlib import Path

import fitz  # type: ignore
import pytest

from pdfmargins.cli import build_arg_parser, main, output_name


def test_output_name() -> None:
    assert output_name(Path("/tmp/notes.pdf")) == "enhanced_notes.pdf"


def test_cli_writes_enhanced_copy(tmp_path: Path, single_page_pdf: bytes, capsys) -> None:
    source = tmp_path / "lecture.pdf"
    source.write_bytes(single_page_pdf)
    outdir = tmp_path / "out"

    code = main([str(source), "--outdir", str(outdir), "--side", "left", "--strategy", "vector", "--json"])

    assert code == 0
    target = outdir / "enhanced_lecture.pdf"
    assert target.exists()
    doc = fitz.open(target)
    assert doc.page_count == 1
    doc.close()
    summary = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
    assert summary["event"] == "cli_summary"
    assert summary["page_count"] == 1


def test_cli_reports_malformed_input(tmp_path: Path, capsys) -> None:
    source = tmp_path / "broken.pdf"
    source.write_bytes(b"this is not a pdf")

    code = main([str(source), "--outdir", str(tmp_path)])

    assert code == 1
    assert not (tmp_path / "enhanced_broken.pdf").exists()
    payload = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
    assert payload["event"] == "cli_failed"
    assert payload["error"] == "load"


def test_cli_batch_mixes_success_and_failure(tmp_path: Path, single_page_pdf: bytes) -> None:
    good = tmp_path / "good.pdf"
    bad = tmp_path / "bad.pdf"
    good.write_bytes(single_page_pdf)
    bad.write_bytes(b"junk")

    code = main([str(good), str(bad), "--outdir", str(tmp_path / "out"), "--workers", "1"])

    assert code == 1
    assert (tmp_path / "out" / "enhanced_good.pdf").exists()
    assert not (tmp_path / "out" / "enhanced_bad.pdf").exists()


def test_cli_rejects_output_with_several_inputs(tmp_path: Path) -> None:
    with pytest.raises(SystemExit):
        main(["a.pdf", "b.pdf", "-o", str(tmp_path / "x.pdf")])


def test_parser_defaults() -> None:
    args = build_arg_parser().parse_args(["doc.pdf"])
    assert args.side is None
    assert args.strategy is None
    assert args.log_level == "WARNING"

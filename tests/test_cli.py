from __future__ import annotations

from pathlib import Path

import click
import pytest
from click.testing import CliRunner

from pdfassemblex.cli import cli, parse_layout
from pdfassemblex.types import SourceDocument

from conftest import page_rotations, page_signatures


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


def _sources() -> list[SourceDocument]:
    return [
        SourceDocument(id="a", name="a.pdf", size=0, page_count=3, content=b""),
        SourceDocument(id="b", name="b.pdf", size=0, page_count=2, content=b""),
    ]


def test_parse_layout() -> None:
    references = parse_layout("2:1, 1:*@90 ,1:2@-90", _sources())

    assert [(ref.source_id, ref.page_index, ref.rotation) for ref in references] == [
        ("b", 0, 0),
        ("a", 0, 90),
        ("a", 1, 90),
        ("a", 2, 90),
        ("a", 1, 270),
    ]


@pytest.mark.parametrize("layout", ["3:1", "1:4", "1:0", "1", "x:1", "1:1@45", "1:y"])
def test_parse_layout_rejects_bad_items(layout: str) -> None:
    with pytest.raises(click.BadParameter):
        parse_layout(layout, _sources())


def test_info_lists_sources(runner: CliRunner, pdf_files: list[Path]) -> None:
    result = runner.invoke(cli, ["info", *map(str, pdf_files)])

    assert result.exit_code == 0, result.output
    assert "a.pdf" in result.output
    assert "b.pdf" in result.output


def test_info_fails_without_readable_pdf(runner: CliRunner, tmp_path: Path) -> None:
    bad = tmp_path / "bad.pdf"
    bad.write_bytes(b"nope")

    result = runner.invoke(cli, ["info", str(bad)])

    assert result.exit_code == 1
    assert "Skipped" in result.output


def test_assemble_all_pages(runner: CliRunner, pdf_files: list[Path], tmp_path: Path) -> None:
    output = tmp_path / "merged.pdf"

    result = runner.invoke(cli, ["assemble", *map(str, pdf_files), "-o", str(output)])

    assert result.exit_code == 0, result.output
    assert page_signatures(output.read_bytes()) == [
        (101, 200),
        (102, 200),
        (103, 200),
        (201, 300),
        (202, 300),
    ]


def test_assemble_with_layout(runner: CliRunner, pdf_files: list[Path], tmp_path: Path) -> None:
    output = tmp_path / "nested" / "out.pdf"

    result = runner.invoke(
        cli,
        ["assemble", *map(str, pdf_files), "-o", str(output), "--layout", "2:1@90,1:3,1:1@180"],
    )

    assert result.exit_code == 0, result.output
    content = output.read_bytes()
    assert page_signatures(content) == [(201, 300), (103, 200), (101, 200)]
    assert page_rotations(content) == [180, 0, 180]


def test_assemble_into_directory(runner: CliRunner, pdf_files: list[Path], tmp_path: Path) -> None:
    out_dir = tmp_path / "exports"
    out_dir.mkdir()

    result = runner.invoke(cli, ["assemble", *map(str, pdf_files), "-o", str(out_dir)])

    assert result.exit_code == 0, result.output
    written = list(out_dir.glob("merged-*.pdf"))
    assert len(written) == 1
    assert len(page_signatures(written[0].read_bytes())) == 5


def test_assemble_bad_layout(runner: CliRunner, pdf_files: list[Path], tmp_path: Path) -> None:
    result = runner.invoke(
        cli, ["assemble", *map(str, pdf_files), "-o", str(tmp_path / "x.pdf"), "-l", "9:1"]
    )

    assert result.exit_code == 2
    assert not (tmp_path / "x.pdf").exists()


def test_assemble_empty_layout_reports_merge_error(runner: CliRunner, pdf_files: list[Path], tmp_path: Path) -> None:
    result = runner.invoke(
        cli, ["assemble", *map(str, pdf_files), "-o", str(tmp_path / "x.pdf"), "-l", ","]
    )

    assert result.exit_code == 1
    assert "no pages" in result.output


def test_thumbnails(runner: CliRunner, pdf_files: list[Path], tmp_path: Path) -> None:
    out_dir = tmp_path / "thumbs"

    result = runner.invoke(cli, ["thumbnails", str(pdf_files[0]), "-o", str(out_dir), "--format", "png"])

    assert result.exit_code == 0, result.output
    assert sorted(path.name for path in out_dir.iterdir()) == [
        "page-001.png",
        "page-002.png",
        "page-003.png",
    ]


def test_verbose_flag(runner: CliRunner, pdf_files: list[Path]) -> None:
    result = runner.invoke(cli, ["--verbose", "info", str(pdf_files[0])])
    assert result.exit_code == 0, result.output

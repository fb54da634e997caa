from __future__ import annotations

import io
from pathlib import Path
from typing import Callable, Sequence
import sys

import pytest
from pypdf import PdfReader, PdfWriter

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from pdfassemblex import AssemblySession, SourceRegistry  # noqa: E402

PdfBytesFactory = Callable[..., bytes]


def build_pdf(
    widths: Sequence[int],
    *,
    height: int = 200,
    rotations: Sequence[int] | None = None,
    title: str | None = None,
) -> bytes:
    writer = PdfWriter()
    for index, width in enumerate(widths):
        page = writer.add_blank_page(width=width, height=height)
        if rotations is not None and rotations[index]:
            page.rotation = rotations[index]
    if title is not None:
        writer.add_metadata({"/Title": title})
    buffer = io.BytesIO()
    writer.write(buffer)
    return buffer.getvalue()


def page_signatures(content: bytes) -> list[tuple[int, int]]:
    """Return ``(width, height)`` of each page, used to identify pages."""

    reader = PdfReader(io.BytesIO(content))
    return [
        (int(float(page.mediabox.width)), int(float(page.mediabox.height)))
        for page in reader.pages
    ]


def page_rotations(content: bytes) -> list[int]:
    reader = PdfReader(io.BytesIO(content))
    return [page.rotation % 360 for page in reader.pages]


@pytest.fixture()
def pdf_bytes() -> PdfBytesFactory:
    return build_pdf


@pytest.fixture()
def doc_a() -> bytes:
    # Pages identified by width: 101, 102, 103.
    return build_pdf([101, 102, 103], height=200, title="Document A")


@pytest.fixture()
def doc_b() -> bytes:
    # Widths 201, 202; page 0 stored with an intrinsic 90 degree rotation.
    return build_pdf([201, 202], height=300, rotations=[90, 0])


@pytest.fixture()
def registry() -> SourceRegistry:
    reg = SourceRegistry()
    yield reg
    reg.evict_all()


@pytest.fixture()
def session(doc_a: bytes, doc_b: bytes) -> AssemblySession:
    sess = AssemblySession()
    sess.add_files([("a.pdf", doc_a), ("b.pdf", doc_b)])
    yield sess
    sess.close()


@pytest.fixture()
def pdf_files(tmp_path: Path, doc_a: bytes, doc_b: bytes) -> list[Path]:
    a = tmp_path / "a.pdf"
    b = tmp_path / "b.pdf"
    a.write_bytes(doc_a)
    b.write_bytes(doc_b)
    return [a, b]

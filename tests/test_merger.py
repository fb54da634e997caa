from __future__ import annotations

import asyncio
import io

import pytest
from pypdf import PdfReader

from pdfassemblex import PageReference, PageSequence, SourceRegistry, merge_async, merge_sequence
from pdfassemblex.backends import pypdf_backend
from pdfassemblex.exceptions import MergeError, MergeFailureKind

from conftest import page_rotations, page_signatures

A_PAGES = [(101, 200), (102, 200), (103, 200)]
B_PAGES = [(201, 300), (202, 300)]


@pytest.fixture()
def loaded(registry: SourceRegistry, doc_a: bytes, doc_b: bytes):
    a = registry.register_source(doc_a, "a.pdf")
    b = registry.register_source(doc_b, "b.pdf")
    sequence = PageSequence()
    sequence.expand_source(a)
    sequence.expand_source(b)
    return registry, sequence, a, b


def _ref(sequence: PageSequence, source_id: str, index: int) -> PageReference:
    return next(ref for ref in sequence if ref.source_id == source_id and ref.page_index == index)


def test_merge_keeps_every_page_in_order(loaded) -> None:
    registry, sequence, _, _ = loaded

    content = merge_sequence(sequence, registry)

    assert page_signatures(content) == A_PAGES + B_PAGES
    assert page_rotations(content) == [0, 0, 0, 90, 0]


def test_merge_follows_reordered_sequence(loaded) -> None:
    registry, sequence, a, _ = loaded
    sequence.move(_ref(sequence, a.id, 2).id, 0)

    content = merge_sequence(sequence, registry)

    assert page_signatures(content) == [A_PAGES[2], A_PAGES[0], A_PAGES[1]] + B_PAGES


def test_merge_adds_user_rotation_to_intrinsic_rotation(loaded) -> None:
    registry, sequence, a, b = loaded
    sequence.rotate(_ref(sequence, b.id, 0).id, 90)
    sequence.rotate(_ref(sequence, b.id, 1).id, 270)
    sequence.rotate(_ref(sequence, a.id, 0).id, 180)

    content = merge_sequence(sequence, registry)

    # B:0 already carries /Rotate 90 in its source.
    assert page_rotations(content) == [180, 0, 0, 180, 270]


def test_merge_wraps_rotation_past_full_turn(registry: SourceRegistry, pdf_bytes) -> None:
    source = registry.register_source(pdf_bytes([100], rotations=[270]), "r.pdf")
    sequence = PageSequence()
    ref = sequence.expand_source(source)[0]
    sequence.rotate(ref.id, 180)

    assert page_rotations(merge_sequence(sequence, registry)) == [90]


def test_merge_after_remove(loaded) -> None:
    registry, sequence, a, _ = loaded
    sequence.remove(_ref(sequence, a.id, 1).id)

    content = merge_sequence(sequence, registry)

    assert page_signatures(content) == [A_PAGES[0], A_PAGES[2]] + B_PAGES


def test_merge_repeated_page(loaded) -> None:
    registry, sequence, a, _ = loaded
    sequence.clear()
    sequence.extend(
        [
            PageReference(source_id=a.id, page_index=0),
            PageReference(source_id=a.id, page_index=0, rotation=90),
        ]
    )

    content = merge_sequence(sequence, registry)

    assert page_signatures(content) == [A_PAGES[0], A_PAGES[0]]
    assert page_rotations(content) == [0, 90]


def test_merge_does_not_modify_sequence(loaded) -> None:
    registry, sequence, _, _ = loaded
    before = sequence.references

    merge_sequence(sequence, registry)

    assert sequence.references == before


def test_merge_opens_each_source_once(loaded, monkeypatch: pytest.MonkeyPatch) -> None:
    registry, sequence, _, _ = loaded
    opened = []
    original = registry.open_for_copying

    def counting_open(source_id: str):
        opened.append(source_id)
        return original(source_id)

    monkeypatch.setattr(registry, "open_for_copying", counting_open)

    merge_sequence(sequence, registry)

    assert sorted(opened) == sorted(set(opened))
    assert len(opened) == 2


def test_merge_output_is_valid_pdf(loaded) -> None:
    registry, sequence, _, _ = loaded
    content = merge_sequence(sequence, registry)

    assert content.startswith(b"%PDF-")
    assert len(PdfReader(io.BytesIO(content)).pages) == len(sequence)


def test_merge_empty_sequence_fails(registry: SourceRegistry) -> None:
    with pytest.raises(MergeError) as excinfo:
        merge_sequence(PageSequence(), registry)
    assert excinfo.value.kind is MergeFailureKind.EMPTY


def test_merge_fails_fast_on_missing_source(loaded) -> None:
    registry, sequence, a, _ = loaded
    sequence.extend([PageReference(source_id="gone", page_index=0)])

    with pytest.raises(MergeError) as excinfo:
        merge_sequence(sequence, registry)
    assert excinfo.value.kind is MergeFailureKind.MISSING_SOURCE
    assert "gone" in str(excinfo.value)


def test_merge_fails_after_source_removed(loaded) -> None:
    registry, sequence, _, b = loaded
    registry.remove_source(b.id)

    with pytest.raises(MergeError) as excinfo:
        merge_sequence(sequence, registry)
    assert excinfo.value.kind is MergeFailureKind.MISSING_SOURCE
    assert len(sequence) == 5


def test_merge_rejects_page_outside_source(loaded) -> None:
    registry, sequence, a, _ = loaded
    sequence.extend([PageReference(source_id=a.id, page_index=7)])

    with pytest.raises(MergeError) as excinfo:
        merge_sequence(sequence, registry)
    assert excinfo.value.kind is MergeFailureKind.CORRUPT_SOURCE


def test_merge_reports_copy_failure_as_corrupt_source(loaded, monkeypatch: pytest.MonkeyPatch) -> None:
    registry, sequence, _, _ = loaded

    def broken_append(writer, document, index, rotation):
        raise ValueError("bad page object")

    monkeypatch.setattr(registry.structure_backend, "append_page", broken_append)

    with pytest.raises(MergeError) as excinfo:
        merge_sequence(sequence, registry)
    assert excinfo.value.kind is MergeFailureKind.CORRUPT_SOURCE


def test_merge_reports_memory_exhaustion_as_too_large(loaded, monkeypatch: pytest.MonkeyPatch) -> None:
    registry, sequence, _, _ = loaded

    def exhausted(writer):
        raise MemoryError()

    monkeypatch.setattr(registry.structure_backend, "serialize", exhausted)

    with pytest.raises(MergeError) as excinfo:
        merge_sequence(sequence, registry)
    assert excinfo.value.kind is MergeFailureKind.TOO_LARGE
    assert "too large" in excinfo.value.user_message


def test_merge_reports_serialization_failure(loaded, monkeypatch: pytest.MonkeyPatch) -> None:
    registry, sequence, _, _ = loaded

    def broken(writer):
        raise OSError("disk full")

    monkeypatch.setattr(registry.structure_backend, "serialize", broken)

    with pytest.raises(MergeError) as excinfo:
        merge_sequence(sequence, registry)
    assert excinfo.value.kind is MergeFailureKind.SERIALIZATION


def test_merge_fails_if_evicted_while_running(loaded, monkeypatch: pytest.MonkeyPatch) -> None:
    registry, sequence, _, _ = loaded
    original = registry.structure_backend.append_page
    calls = []

    def append_then_evict(writer, document, index, rotation):
        original(writer, document, index, rotation)
        calls.append(index)
        if len(calls) == 2:
            registry.evict_handles()

    monkeypatch.setattr(registry.structure_backend, "append_page", append_then_evict)

    with pytest.raises(MergeError) as excinfo:
        merge_sequence(sequence, registry)
    assert excinfo.value.kind is MergeFailureKind.MISSING_SOURCE


def test_merge_copies_metadata_when_requested(loaded) -> None:
    registry, sequence, _, _ = loaded

    plain = PdfReader(io.BytesIO(merge_sequence(sequence, registry)))
    with_info = PdfReader(io.BytesIO(merge_sequence(sequence, registry, copy_metadata=True)))

    assert (plain.metadata or {}).get("/Title") is None
    assert with_info.metadata.get("/Title") == "Document A"


def test_merge_async_matches_sync(loaded) -> None:
    registry, sequence, _, b = loaded
    sequence.rotate(_ref(sequence, b.id, 1).id)

    content = asyncio.run(merge_async(sequence, registry))

    assert page_signatures(content) == A_PAGES + B_PAGES
    assert page_rotations(content) == [0, 0, 0, 90, 90]


def test_merge_reports_memory_exhaustion_while_reopening_as_too_large(
    loaded, monkeypatch: pytest.MonkeyPatch
) -> None:
    registry, sequence, _, _ = loaded
    registry.evict_handles()

    def exhausted(stream):
        raise MemoryError()

    monkeypatch.setattr(pypdf_backend, "PdfReader", exhausted)

    with pytest.raises(MergeError) as excinfo:
        merge_sequence(sequence, registry)
    assert excinfo.value.kind is MergeFailureKind.TOO_LARGE
    assert "too large" in excinfo.value.user_message

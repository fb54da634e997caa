"""Merge engine turning a page sequence into one PDF byte stream."""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, Optional

from .backends.base import CopyDocument, StructureBackend
from .exceptions import InvalidDocumentError, MergeError, MergeFailureKind, SourceNotFoundError
from .registry import SourceRegistry
from .sequence import PageSequence

LOGGER = logging.getLogger("pdfassemblex.merge")


def _open_sources(sequence: PageSequence, registry: SourceRegistry) -> Dict[str, CopyDocument]:
    handles: Dict[str, CopyDocument] = {}
    for source_id in sequence.source_ids():
        try:
            handles[source_id] = registry.open_for_copying(source_id)
        except SourceNotFoundError as exc:
            LOGGER.error("Page sequence references unknown source %s", source_id)
            raise MergeError(str(exc), kind=MergeFailureKind.MISSING_SOURCE) from exc
        except InvalidDocumentError as exc:
            LOGGER.error("Failed to reopen source %s: %s", source_id, exc)
            raise MergeError(
                f"Unable to open source {source_id}: {exc}",
                kind=MergeFailureKind.CORRUPT_SOURCE,
            ) from exc
        except MemoryError as exc:
            LOGGER.error("Ran out of memory while reopening source %s", source_id)
            raise MergeError(
                f"Out of memory while opening source {source_id}",
                kind=MergeFailureKind.TOO_LARGE,
            ) from exc
    return handles


def merge_sequence(
    sequence: PageSequence,
    registry: SourceRegistry,
    *,
    copy_metadata: Optional[bool] = None,
    backend: Optional[StructureBackend] = None,
) -> bytes:
    """Return the serialized PDF described by *sequence*.

    Pages are appended in sequence order. Each output page's rotation is the
    source page's intrinsic rotation plus the reference's rotation, mod 360.

    Args:
        sequence: The page sequence to serialize. It is not modified.
        registry: Registry resolving the sequence's source ids.
        copy_metadata: Copy the first source's document info into the output.
            Defaults to ``registry.options.copy_metadata``.
        backend: Structure backend to use instead of the registry's.

    Raises:
        MergeError: If any source is missing or unreadable, or if the output
            cannot be built or serialized. ``MergeError.kind`` tells these
            cases apart.
    """

    snapshot = PageSequence(sequence.references)
    if snapshot.is_empty:
        raise MergeError("No pages to merge", kind=MergeFailureKind.EMPTY)

    backend = backend or registry.structure_backend
    if copy_metadata is None:
        copy_metadata = registry.options.copy_metadata
    epoch = registry.epoch

    handles = _open_sources(snapshot, registry)
    LOGGER.debug("Opened %d source(s) for %d page(s)", len(handles), len(snapshot))

    try:
        writer = backend.new_writer()
        for position, reference in enumerate(snapshot):
            handle = handles[reference.source_id]
            if reference.page_index >= handle.num_pages:
                raise MergeError(
                    f"Page {reference.page_index + 1} does not exist in source "
                    f"{reference.source_id} ({handle.num_pages} pages)",
                    kind=MergeFailureKind.CORRUPT_SOURCE,
                )
            LOGGER.debug(
                "Adding page %d of %s as output page %d",
                reference.page_index,
                reference.source_id,
                position,
            )
            try:
                backend.append_page(writer, handle, reference.page_index, reference.rotation)
            except MemoryError:
                raise
            except Exception as exc:
                raise MergeError(
                    f"Failed to copy page {reference.page_index + 1} of source "
                    f"{reference.source_id}: {exc}",
                    kind=MergeFailureKind.CORRUPT_SOURCE,
                ) from exc

        if registry.epoch != epoch:
            raise MergeError(
                "Sources were evicted while the merge was running",
                kind=MergeFailureKind.MISSING_SOURCE,
            )

        if copy_metadata:
            first = handles[snapshot.references[0].source_id]
            backend.add_metadata(writer, first.document_info())

        try:
            content = backend.serialize(writer)
        except MemoryError:
            raise
        except Exception as exc:
            LOGGER.error("Failed to serialize merged PDF: %s", exc)
            raise MergeError(
                f"Failed to serialize merged PDF: {exc}",
                kind=MergeFailureKind.SERIALIZATION,
            ) from exc
    except MemoryError as exc:
        LOGGER.error("Ran out of memory while merging %d pages", len(snapshot))
        raise MergeError(
            "Out of memory while building the merged PDF",
            kind=MergeFailureKind.TOO_LARGE,
        ) from exc

    LOGGER.info(
        "Merged %d page(s) from %d source(s) into %d bytes",
        len(snapshot),
        len(handles),
        len(content),
    )
    return content


async def merge_async(
    sequence: PageSequence,
    registry: SourceRegistry,
    **kwargs: object,
) -> bytes:
    """Run :func:`merge_sequence` off the event loop.

    The sequence is snapshotted before the merge starts, so later mutations
    cannot leak into the output.
    """

    snapshot = PageSequence(sequence.references)
    return await asyncio.to_thread(merge_sequence, snapshot, registry, **kwargs)


__all__ = ["merge_sequence", "merge_async"]

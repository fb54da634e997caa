"""Assembly session tying the registry, sequence, renderer and merge together.

The session follows the lifecycle of the editing workflow:

1. files are uploaded and can be reordered or removed as whole sources;
2. editing starts by expanding every source into its pages;
3. pages are reordered, rotated, removed, and more files may be added;
4. the sequence is exported to one PDF.

Leaving the editor evicts cached handles; starting over forgets the sources.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, List, Optional

from .config import DEFAULT_OPTIONS, AssemblyOptions
from .exceptions import MergeError, MergeFailureKind
from .merger import merge_async, merge_sequence
from .registry import SourceRegistry, UploadedFile
from .sequence import PageSequence
from .thumbnails import ThumbnailRenderer
from .types import ExportResult, PageReference, SourceDocument, UploadBatchResult
from .utils import PathLike, ensure_path, generate_output_name

LOGGER = logging.getLogger("pdfassemblex.session")


class AssemblySession:
    """One in-memory editing session."""

    def __init__(
        self,
        options: AssemblyOptions = DEFAULT_OPTIONS,
        *,
        registry: Optional[SourceRegistry] = None,
    ) -> None:
        self.options = options
        self.registry = registry or SourceRegistry(options)
        self.sequence = PageSequence()
        self.renderer = ThumbnailRenderer(self.registry, options)
        self._editing = False

    @property
    def editing(self) -> bool:
        return self._editing

    @property
    def sources(self) -> List[SourceDocument]:
        return self.registry.sources

    # ------------------------------------------------------------------
    # Sources
    # ------------------------------------------------------------------
    def add_files(self, files: Iterable[UploadedFile]) -> UploadBatchResult:
        """Register uploads; while editing, their pages join the sequence."""

        result = self.registry.register_many(files)
        if self._editing:
            for source in result.added:
                self.sequence.expand_source(source)
        return result

    def add_paths(self, paths: Iterable[PathLike]) -> UploadBatchResult:
        """Convenience wrapper reading files from disk."""

        return self.add_files((path.name, path.read_bytes()) for path in map(ensure_path, paths))

    def move_source(self, source_id: str, position: int) -> None:
        self.registry.reorder_source(source_id, position)

    def remove_source(self, source_id: str) -> List[PageReference]:
        """Forget a source and every page that references it."""

        if source_id not in self.registry:
            return []
        self.registry.remove_source(source_id)
        self.renderer.discard_source(source_id)
        return self.sequence.remove_source(source_id)

    def prune_orphans(self) -> List[PageReference]:
        """Remove references whose source no longer resolves."""

        orphans = [ref.id for ref in self.sequence if ref.source_id not in self.registry]
        return self.sequence.remove_many(orphans)

    # ------------------------------------------------------------------
    # Editing lifecycle
    # ------------------------------------------------------------------
    def start_editing(self) -> PageSequence:
        """Build a fresh sequence from all sources in their current order."""

        sequence = PageSequence()
        for source in self.registry.sources:
            sequence.expand_source(source)
        self.sequence = sequence
        self._editing = True
        LOGGER.info("Editing %d pages from %d sources", len(sequence), len(self.registry))
        return sequence

    def reset_editing(self) -> None:
        """Discard page arrangements and cached handles, keep the sources."""

        self.sequence = PageSequence()
        self.registry.evict_handles()
        self.renderer.clear()
        self._editing = False

    def restart(self) -> None:
        """Forget everything uploaded in this session."""

        self.sequence = PageSequence()
        self.registry.evict_all()
        self.renderer.clear()
        self._editing = False

    def close(self) -> None:
        self.restart()

    def __enter__(self) -> "AssemblySession":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------
    def _export_result(self, content: bytes, page_count: int, timestamp: Optional[float]) -> ExportResult:
        filename = generate_output_name(self.options.output_prefix, timestamp)
        return ExportResult(filename=filename, content=content, page_count=page_count)

    def export(self, *, timestamp: Optional[float] = None) -> ExportResult:
        """Merge the current sequence.

        Raises:
            MergeError: If the sequence is empty or the merge fails. The
                sequence is left untouched so the user can retry.
        """

        page_count = len(self.sequence)
        content = merge_sequence(self.sequence, self.registry)
        return self._export_result(content, page_count, timestamp)

    async def export_async(self, *, timestamp: Optional[float] = None) -> ExportResult:
        page_count = len(self.sequence)
        content = await merge_async(self.sequence, self.registry)
        return self._export_result(content, page_count, timestamp)

    def save(self, directory: PathLike, *, timestamp: Optional[float] = None) -> Path:
        """Export and write the result into *directory*."""

        result = self.export(timestamp=timestamp)
        target = ensure_path(directory) / result.filename
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with target.open("wb") as handle:
                handle.write(result.content)
        except OSError as exc:
            LOGGER.error("Failed to write merged PDF to %s: %s", target, exc)
            raise MergeError(
                f"Failed to write merged PDF to {target}",
                kind=MergeFailureKind.SERIALIZATION,
            ) from exc
        LOGGER.info("Saved %d pages to %s", result.page_count, target)
        return target


__all__ = ["AssemblySession"]

"""Source registry and document handle cache.

The registry owns every uploaded :class:`~pdfassemblex.types.SourceDocument`
together with two lazily populated caches of parsed handles:

* render handles (PyMuPDF documents) used by the thumbnail renderer;
* copy handles (pypdf readers) used by the merge engine.

Both caches are keyed by source id. Parsing a large source once and reusing
the handle for every page is what keeps thumbnail rendering cheap. Page
references never hold a handle themselves; they hold a source id and look the
handle up here, so evicting the registry cannot leave a dangling handle.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Dict, Generic, Iterable, List, Optional, Tuple, TypeVar, Union

from .backends import PymupdfBackend, PypdfBackend
from .backends.base import BackendDocument, CopyDocument, RenderBackend, RenderDocument, StructureBackend
from .config import DEFAULT_OPTIONS, AssemblyOptions
from .exceptions import InvalidDocumentError, SourceNotFoundError
from .types import SourceDocument, UploadBatchResult, new_identity
from .utils import looks_like_pdf

LOGGER = logging.getLogger("pdfassemblex.registry")

H = TypeVar("H", bound=BackendDocument)

# ``(name, content)`` or ``(name, content, media_type)``
UploadedFile = Union[Tuple[str, bytes], Tuple[str, bytes, Optional[str]]]


class HandleCache(Generic[H]):
    """Explicit get-or-create cache of parsed document handles."""

    def __init__(self, lock: threading.RLock) -> None:
        self._lock = lock
        self._handles: Dict[str, H] = {}

    def get_or_create(self, key: str, factory: Callable[[], H]) -> H:
        with self._lock:
            handle = self._handles.get(key)
            if handle is None:
                handle = factory()
                self._handles[key] = handle
            return handle

    def peek(self, key: str) -> Optional[H]:
        with self._lock:
            return self._handles.get(key)

    def discard(self, key: str) -> None:
        with self._lock:
            handle = self._handles.pop(key, None)
        if handle is not None:
            handle.close()

    def clear(self) -> int:
        with self._lock:
            handles = list(self._handles.values())
            self._handles.clear()
        for handle in handles:
            handle.close()
        return len(handles)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._handles

    def __len__(self) -> int:
        with self._lock:
            return len(self._handles)


class SourceRegistry:
    """Owns uploaded sources and the cached handles parsed from them."""

    def __init__(
        self,
        options: AssemblyOptions = DEFAULT_OPTIONS,
        *,
        structure_backend: Optional[StructureBackend] = None,
        render_backend: Optional[RenderBackend] = None,
    ) -> None:
        self.options = options
        self.structure_backend: StructureBackend = structure_backend or PypdfBackend()
        self.render_backend: RenderBackend = render_backend or PymupdfBackend()
        self._lock = threading.RLock()
        self._sources: Dict[str, SourceDocument] = {}
        self._order: List[str] = []
        self._render_cache: HandleCache[RenderDocument] = HandleCache(self._lock)
        self._copy_cache: HandleCache[CopyDocument] = HandleCache(self._lock)
        self._epoch = 0

    # ------------------------------------------------------------------
    # Source bookkeeping
    # ------------------------------------------------------------------
    @property
    def epoch(self) -> int:
        """Counter bumped by every eviction."""

        return self._epoch

    @property
    def sources(self) -> List[SourceDocument]:
        """Registered sources in upload order."""

        with self._lock:
            return [self._sources[source_id] for source_id in self._order]

    def __len__(self) -> int:
        return len(self._order)

    def __contains__(self, source_id: object) -> bool:
        return source_id in self._sources

    def get(self, source_id: str) -> SourceDocument:
        try:
            return self._sources[source_id]
        except KeyError:
            raise SourceNotFoundError(source_id) from None

    def page_count(self, source_id: str) -> int:
        return self.get(source_id).page_count

    def register_source(self, content: bytes, name: Optional[str] = None) -> SourceDocument:
        """Parse *content*, record it as a source and return it.

        Raises:
            InvalidDocumentError: If *content* is not a parseable PDF.
        """

        display_name = name or "document.pdf"
        if not content:
            raise InvalidDocumentError(f"Empty file: {display_name}", name=display_name)

        try:
            document = self.structure_backend.load(
                bytes(content), ignore_encryption=self.options.ignore_encryption
            )
        except InvalidDocumentError as exc:
            raise InvalidDocumentError(f"{display_name}: {exc.message}", name=display_name) from exc

        source = SourceDocument(
            id=new_identity(),
            name=display_name,
            size=len(content),
            page_count=document.num_pages,
            content=bytes(content),
        )
        with self._lock:
            self._sources[source.id] = source
            self._order.append(source.id)
            # The parse above is a valid copy handle; keep it.
            self._copy_cache.get_or_create(source.id, lambda: document)
        LOGGER.info("Registered %s (%d pages, %d bytes)", source.name, source.page_count, source.size)
        return source

    def register_many(self, files: Iterable[UploadedFile]) -> UploadBatchResult:
        """Register a batch of uploads, skipping files that are not valid PDFs."""

        result = UploadBatchResult()
        for entry in files:
            name, content = entry[0], entry[1]
            media_type = entry[2] if len(entry) > 2 else None
            if not looks_like_pdf(name, media_type, accepted=self.options.accepted_media_types):
                LOGGER.debug("Skipping non-PDF upload %s (%s)", name, media_type)
                result.skipped.append(name)
                continue
            try:
                result.added.append(self.register_source(content, name))
            except InvalidDocumentError as exc:
                LOGGER.warning("Failed to process file %s: %s", name, exc)
                result.failed.append((name, str(exc)))
        LOGGER.info("Upload batch processed: %s", result)
        return result

    def remove_source(self, source_id: str) -> SourceDocument:
        with self._lock:
            source = self.get(source_id)
            del self._sources[source_id]
            self._order.remove(source_id)
            self._render_cache.discard(source_id)
            self._copy_cache.discard(source_id)
        LOGGER.info("Removed source %s", source.name)
        return source

    def reorder_source(self, source_id: str, position: int) -> None:
        """Move *source_id* to *position* in upload order (list-move semantics)."""

        with self._lock:
            if source_id not in self._sources:
                return
            current = self._order.index(source_id)
            position = max(0, min(position, len(self._order) - 1))
            if current == position:
                return
            self._order.insert(position, self._order.pop(current))

    # ------------------------------------------------------------------
    # Handle cache
    # ------------------------------------------------------------------
    def open_for_rendering(self, source_id: str) -> RenderDocument:
        """Return the cached render handle for *source_id*, parsing on first use."""

        source = self.get(source_id)

        def _load() -> RenderDocument:
            LOGGER.debug("Opening %s for rendering", source.name)
            return self.render_backend.load(
                source.content, ignore_encryption=self.options.ignore_encryption
            )

        return self._render_cache.get_or_create(source_id, _load)

    def open_for_copying(self, source_id: str) -> CopyDocument:
        """Return the cached copy handle for *source_id*, parsing on first use."""

        source = self.get(source_id)

        def _load() -> CopyDocument:
            LOGGER.debug("Opening %s for copying", source.name)
            return self.structure_backend.load(
                source.content, ignore_encryption=self.options.ignore_encryption
            )

        return self._copy_cache.get_or_create(source_id, _load)

    def is_cached(self, source_id: str) -> bool:
        return source_id in self._render_cache or source_id in self._copy_cache

    def evict_handles(self) -> int:
        """Close every cached handle but keep the sources registered."""

        with self._lock:
            self._epoch += 1
            closed = self._render_cache.clear() + self._copy_cache.clear()
        LOGGER.debug("Evicted %d cached handles", closed)
        return closed

    def evict_all(self) -> None:
        """Drop every cached handle and every source's bytes."""

        with self._lock:
            self.evict_handles()
            count = len(self._sources)
            self._sources.clear()
            self._order.clear()
        LOGGER.info("Evicted registry (%d sources)", count)


__all__ = ["HandleCache", "SourceRegistry", "UploadedFile"]

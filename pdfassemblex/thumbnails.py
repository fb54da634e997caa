"""Thumbnail rendering with an upright raster cache.

Pages are always rasterized upright at the base scale and cached by
``(source_id, page_index)``. The user's rotation is applied afterwards as a
presentation transform on the cached raster, so rotating a page never causes
another decode.
"""

from __future__ import annotations

import asyncio
import io
import logging
import threading
from typing import Dict, Iterable, List, Optional, Tuple

from PIL import Image

from .config import DEFAULT_OPTIONS, AssemblyOptions
from .exceptions import PageRenderError, SourceNotFoundError
from .registry import SourceRegistry
from .sequence import PageSequence
from .types import PageReference, RenderedThumbnail, RenderOutcome

LOGGER = logging.getLogger("pdfassemblex.thumbnails")


class ThumbnailRenderer:
    """Render and cache page previews for a :class:`SourceRegistry`."""

    def __init__(self, registry: SourceRegistry, options: Optional[AssemblyOptions] = None) -> None:
        self.registry = registry
        self.options = options or registry.options or DEFAULT_OPTIONS
        self._cache: Dict[Tuple[str, int], RenderedThumbnail] = {}
        self._cache_lock = threading.Lock()
        self._epoch = registry.epoch
        self._decode_count = 0
        self._semaphore: Optional[asyncio.Semaphore] = None
        self._semaphore_loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def decode_count(self) -> int:
        """Number of page rasterizations performed so far."""

        return self._decode_count

    def __len__(self) -> int:
        return len(self._cache)

    def clear(self) -> None:
        with self._cache_lock:
            self._cache.clear()

    def discard_source(self, source_id: str) -> int:
        """Drop every cached raster of *source_id* and return how many were dropped."""

        with self._cache_lock:
            keys = [key for key in self._cache if key[0] == source_id]
            for key in keys:
                del self._cache[key]
        return len(keys)

    def _sync_epoch(self) -> None:
        # Rasters from an evicted session are dropped with it.
        epoch = self.registry.epoch
        if epoch != self._epoch:
            with self._cache_lock:
                self._cache.clear()
                self._epoch = epoch

    def cached(self, source_id: str, page_index: int) -> Optional[RenderedThumbnail]:
        self._sync_epoch()
        with self._cache_lock:
            return self._cache.get((source_id, page_index))

    # ------------------------------------------------------------------
    # Synchronous rendering
    # ------------------------------------------------------------------
    def render(
        self,
        source_id: str,
        page_index: int,
        base_scale: Optional[float] = None,
    ) -> RenderedThumbnail:
        """Return the upright raster for one source page.

        Raises:
            SourceNotFoundError: If *source_id* is not registered.
            PageRenderError: If the page cannot be rasterized.
            ValueError: If *base_scale* is not positive.
        """

        if base_scale is None:
            scale = self.options.thumbnail_scale
        elif base_scale <= 0:
            raise ValueError("base_scale must be positive")
        else:
            scale = base_scale
        cached = self.cached(source_id, page_index)
        if cached is not None and cached.scale == scale:
            return cached

        source = self.registry.get(source_id)
        if not 0 <= page_index < source.page_count:
            raise PageRenderError(
                source_id,
                page_index,
                f"Page {page_index + 1} is out of range for {source.name} ({source.page_count} pages)",
            )

        try:
            handle = self.registry.open_for_rendering(source_id)
            LOGGER.debug("Rasterizing page %d of %s at scale %.2f", page_index, source.name, scale)
            image = handle.rasterize(page_index, scale)
        except SourceNotFoundError:
            raise
        except Exception as exc:
            LOGGER.warning("Failed to render page %d of %s: %s", page_index, source.name, exc)
            raise PageRenderError(source_id, page_index) from exc

        thumbnail = RenderedThumbnail(
            source_id=source_id, page_index=page_index, scale=scale, image=image
        )
        with self._cache_lock:
            self._decode_count += 1
            self._cache[(source_id, page_index)] = thumbnail
        return thumbnail

    def present(self, reference: PageReference, base_scale: Optional[float] = None) -> Image.Image:
        """Render *reference*'s page and apply its rotation for display."""

        thumbnail = self.render(reference.source_id, reference.page_index, base_scale)
        return thumbnail.present(reference.rotation)

    def render_many(self, references: Iterable[PageReference]) -> List[RenderOutcome]:
        """Render references one after another, isolating per-page failures."""

        outcomes = []
        for reference in references:
            try:
                outcomes.append(RenderOutcome(reference.id, image=self.present(reference)))
            except (PageRenderError, SourceNotFoundError) as exc:
                outcomes.append(RenderOutcome(reference.id, error=str(exc)))
        return outcomes

    # ------------------------------------------------------------------
    # Asynchronous rendering
    # ------------------------------------------------------------------
    def _get_semaphore(self) -> asyncio.Semaphore:
        loop = asyncio.get_running_loop()
        if self._semaphore is None or self._semaphore_loop is not loop:
            self._semaphore = asyncio.Semaphore(self.options.max_in_flight_decodes)
            self._semaphore_loop = loop
        return self._semaphore

    async def render_async(self, reference: PageReference, sequence: PageSequence) -> RenderOutcome:
        """Render *reference* off the event loop.

        At most ``max_in_flight_decodes`` decodes run at once. If the
        reference was rotated or removed, or the registry evicted, while the
        decode was in flight, the result is reported as stale and must not
        be displayed.
        """

        generation = sequence.generation(reference.id)
        epoch = self.registry.epoch
        if generation is None:
            return RenderOutcome(reference.id, stale=True)

        error: Optional[str] = None
        thumbnail: Optional[RenderedThumbnail] = None
        async with self._get_semaphore():
            if sequence.is_current(reference.id, generation):
                try:
                    thumbnail = await asyncio.to_thread(
                        self.render, reference.source_id, reference.page_index
                    )
                except (PageRenderError, SourceNotFoundError) as exc:
                    error = str(exc)

        if not sequence.is_current(reference.id, generation) or self.registry.epoch != epoch:
            LOGGER.debug("Discarding stale render for %s", reference.id)
            return RenderOutcome(reference.id, stale=True)
        if thumbnail is None:
            return RenderOutcome(reference.id, error=error)
        current = sequence.get(reference.id) or reference
        return RenderOutcome(reference.id, image=thumbnail.present(current.rotation))

    async def render_sequence_async(
        self,
        sequence: PageSequence,
        references: Optional[Iterable[PageReference]] = None,
    ) -> List[RenderOutcome]:
        """Render several references concurrently, within the decode bound."""

        targets = list(sequence if references is None else references)
        return list(await asyncio.gather(*(self.render_async(ref, sequence) for ref in targets)))

    # ------------------------------------------------------------------
    # Encoding
    # ------------------------------------------------------------------
    def encode(
        self,
        image: Image.Image,
        fmt: Optional[str] = None,
        quality: Optional[int] = None,
    ) -> bytes:
        """Encode *image* for display or saving."""

        fmt = (fmt or self.options.thumbnail_format).upper()
        buffer = io.BytesIO()
        if fmt == "JPEG":
            image.convert("RGB").save(
                buffer, format="JPEG", quality=quality or self.options.thumbnail_quality
            )
        else:
            image.save(buffer, format=fmt)
        return buffer.getvalue()


__all__ = ["ThumbnailRenderer"]

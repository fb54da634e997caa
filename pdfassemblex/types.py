"""
Type definitions and dataclasses for pdfassemblex.

This module defines the value records shared by the registry, the page
sequence, the thumbnail renderer and the merge engine.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from typing import List, Optional, Tuple

from PIL import Image

from .exceptions import InvalidRotationError

VALID_ROTATIONS = (0, 90, 180, 270)


def new_identity() -> str:
    """Return a fresh opaque identity string."""

    return uuid.uuid4().hex


def normalize_rotation(angle: int) -> int:
    """Return *angle* reduced into ``VALID_ROTATIONS``.

    Raises:
        InvalidRotationError: If *angle* is not a multiple of 90.
    """

    if int(angle) != angle or angle % 90:
        raise InvalidRotationError(f"Rotation must be a multiple of 90, got {angle!r}")
    return int(angle) % 360


@dataclass(frozen=True)
class SourceDocument:
    """
    An uploaded source PDF.

    Attributes:
        id: Opaque unique identity
        name: Display name, usually the uploaded file name
        size: Size of ``content`` in bytes
        page_count: Number of pages parsed from ``content``
        content: Raw PDF bytes
    """
    id: str
    name: str
    size: int
    page_count: int
    content: bytes = field(repr=False)


@dataclass(frozen=True)
class PageReference:
    """
    One element of the page sequence.

    Attributes:
        id: Stable identity, independent of position
        source_id: Identity of the source document the page comes from
        page_index: Zero-based page index within the source
        rotation: User-applied rotation, one of 0, 90, 180 or 270
    """
    source_id: str
    page_index: int
    rotation: int = 0
    id: str = field(default_factory=new_identity)

    def __post_init__(self) -> None:
        if self.page_index < 0:
            raise ValueError(f"page_index must not be negative, got {self.page_index}")
        object.__setattr__(self, "rotation", normalize_rotation(self.rotation))

    @property
    def page_key(self) -> Tuple[str, int]:
        return (self.source_id, self.page_index)

    def rotated(self, delta: int = 90) -> "PageReference":
        """Return a copy rotated clockwise by *delta* degrees."""

        return replace(self, rotation=normalize_rotation(self.rotation + normalize_rotation(delta)))


@dataclass(frozen=True)
class RenderedThumbnail:
    """An upright raster of one source page, shared by every rotation state."""

    source_id: str
    page_index: int
    scale: float
    image: Image.Image = field(repr=False, compare=False)

    @property
    def size(self) -> Tuple[int, int]:
        return self.image.size

    def present(self, rotation: int = 0) -> Image.Image:
        """Return the raster turned clockwise by *rotation* degrees.

        The cached image is never modified, so one decode serves all four
        rotation states.
        """

        rotation = normalize_rotation(rotation)
        if rotation == 0:
            return self.image
        # PIL rotates counter-clockwise.
        return self.image.rotate(-rotation, expand=True)


@dataclass
class RenderOutcome:
    """
    Result of rendering one page reference.

    Attributes:
        reference_id: Identity of the page reference the render was for
        image: Presented raster, or ``None`` when rendering failed or was stale
        error: Error message if rendering failed
        stale: Whether the result was discarded because the reference changed
    """
    reference_id: str
    image: Optional[Image.Image] = None
    error: Optional[str] = None
    stale: bool = False

    @property
    def ok(self) -> bool:
        return self.image is not None and not self.stale


@dataclass
class UploadBatchResult:
    """
    Result of registering a batch of uploaded files.

    Attributes:
        added: Sources registered successfully, in input order
        failed: ``(name, error)`` pairs for files that could not be parsed
        skipped: Names of files ignored because they are not PDFs
    """
    added: List[SourceDocument] = field(default_factory=list)
    failed: List[Tuple[str, str]] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.added) + len(self.failed) + len(self.skipped)

    def __str__(self) -> str:
        return (
            f"UploadBatchResult(added={len(self.added)}, failed={len(self.failed)}, "
            f"skipped={len(self.skipped)})"
        )


@dataclass(frozen=True)
class ExportResult:
    """Merged output ready for the save collaborator."""

    filename: str
    content: bytes = field(repr=False)
    page_count: int

    @property
    def size(self) -> int:
        return len(self.content)


__all__ = [
    "VALID_ROTATIONS",
    "new_identity",
    "normalize_rotation",
    "SourceDocument",
    "PageReference",
    "RenderedThumbnail",
    "RenderOutcome",
    "UploadBatchResult",
    "ExportResult",
]

"""Backend protocols for PDF structure access and rasterization."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Protocol

from PIL import Image


@dataclass
class BackendDocument:
    """Represents a loaded PDF document with backend-specific helpers."""

    num_pages: int
    file_size: int

    def close(self) -> None:
        """Release backend resources. Loading again is required afterwards."""


class CopyDocument(BackendDocument):
    """A document whose page objects can be copied into a writer."""

    def get_page(self, index: int) -> object:
        raise NotImplementedError

    def intrinsic_rotation(self, index: int) -> int:
        raise NotImplementedError

    def document_info(self) -> Dict[str, str]:
        raise NotImplementedError


class RenderDocument(BackendDocument):
    """A document whose pages can be rasterized."""

    def rasterize(self, index: int, scale: float) -> Image.Image:
        raise NotImplementedError


class StructureBackend(Protocol):
    """Protocol for loading, copying and serializing PDF structure."""

    def load(self, content: bytes, *, ignore_encryption: bool = True) -> CopyDocument:
        """Parse *content* and return a copy-capable document."""

    def new_writer(self) -> Any:
        """Return an empty output container."""

    def append_page(self, writer: Any, document: CopyDocument, index: int, rotation: int) -> None:
        """Copy page *index* of *document* to the end of *writer* with *rotation*."""

    def add_metadata(self, writer: Any, info: Dict[str, str]) -> None:
        """Set document information entries on *writer*."""

    def serialize(self, writer: Any) -> bytes:
        """Return the serialized bytes of *writer*."""


class RenderBackend(Protocol):
    """Protocol for loading documents that can be rasterized."""

    def load(self, content: bytes, *, ignore_encryption: bool = True) -> RenderDocument:
        """Parse *content* and return a render-capable document."""

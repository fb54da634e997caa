"""Backend abstractions for pdfassemblex."""

from .base import BackendDocument, CopyDocument, RenderBackend, RenderDocument, StructureBackend
from .pymupdf_backend import PymupdfBackend, PymupdfDocument
from .pypdf_backend import PypdfBackend, PypdfDocument

__all__ = [
    "BackendDocument",
    "CopyDocument",
    "RenderDocument",
    "StructureBackend",
    "RenderBackend",
    "PypdfBackend",
    "PypdfDocument",
    "PymupdfBackend",
    "PymupdfDocument",
]

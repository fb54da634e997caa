"""PyMuPDF backend implementation for page rasterization."""

from __future__ import annotations

import io
import threading
from dataclasses import dataclass, field

import fitz  # PyMuPDF
from PIL import Image

from ..exceptions import InvalidDocumentError
from .base import RenderBackend, RenderDocument


@dataclass
class PymupdfDocument(RenderDocument):
    document: fitz.Document = field(repr=False, default=None)  # type: ignore[assignment]
    lock: threading.Lock = field(repr=False, default_factory=threading.Lock)

    def rasterize(self, index: int, scale: float) -> Image.Image:
        # A fitz.Document must not be used from two threads at once.
        with self.lock:
            page = self.document.load_page(index)
            pix = page.get_pixmap(matrix=fitz.Matrix(scale, scale), alpha=False)
            img_data = pix.tobytes("ppm")
        image = Image.open(io.BytesIO(img_data))
        image.load()
        return image

    def close(self) -> None:
        with self.lock:
            if not self.document.is_closed:
                self.document.close()


class PymupdfBackend(RenderBackend):
    """Backend implementation that uses PyMuPDF for rendering."""

    def load(self, content: bytes, *, ignore_encryption: bool = True) -> PymupdfDocument:
        try:
            document = fitz.open(stream=content, filetype="pdf")
        except MemoryError:
            raise
        except Exception as exc:
            raise InvalidDocumentError(f"Unable to open PDF for rendering. Error: {exc}") from exc

        if document.needs_pass and not (ignore_encryption and document.authenticate("")):
            document.close()
            raise InvalidDocumentError("PDF is encrypted with a password.")

        return PymupdfDocument(
            num_pages=document.page_count,
            file_size=len(content),
            document=document,
        )

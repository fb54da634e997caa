"""pypdf backend implementation for page copying and serialization."""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass, field
from typing import Dict

from pypdf import PageObject, PdfReader, PdfWriter
from pypdf.errors import PdfReadError

from ..exceptions import InvalidDocumentError
from .base import CopyDocument, StructureBackend

LOGGER = logging.getLogger("pdfassemblex.backends.pypdf")


@dataclass
class PypdfDocument(CopyDocument):
    reader: PdfReader = field(repr=False, default=None)  # type: ignore[assignment]

    def get_page(self, index: int) -> PageObject:
        return self.reader.pages[index]

    def intrinsic_rotation(self, index: int) -> int:
        # ``PageObject.rotation`` resolves an inherited /Rotate as well.
        return int(self.get_page(index).rotation) % 360

    def document_info(self) -> Dict[str, str]:
        metadata = self.reader.metadata
        if not metadata:
            return {}
        return {
            key: str(value)
            for key, value in metadata.items()
            if isinstance(key, str) and value is not None
        }


class PypdfBackend(StructureBackend):
    """Backend implementation that uses `pypdf` under the hood."""

    def load(self, content: bytes, *, ignore_encryption: bool = True) -> PypdfDocument:
        try:
            reader = PdfReader(io.BytesIO(content))
        except PdfReadError as exc:
            raise InvalidDocumentError(f"Corrupted or invalid PDF. Error: {exc}") from exc
        except MemoryError:
            raise
        except Exception as exc:
            raise InvalidDocumentError(f"Unexpected error reading PDF. Error: {exc}") from exc

        if reader.is_encrypted:
            if not ignore_encryption:
                raise InvalidDocumentError("PDF is encrypted.")
            LOGGER.debug("Attempting to decrypt encrypted PDF with an empty password")
            try:
                decrypted = reader.decrypt("")
            except MemoryError:
                raise
            except Exception as exc:
                raise InvalidDocumentError(f"Unable to decrypt encrypted PDF. Error: {exc}") from exc
            if not decrypted:
                raise InvalidDocumentError("PDF is encrypted with a password.")

        try:
            num_pages = len(reader.pages)
        except MemoryError:
            raise
        except Exception as exc:
            raise InvalidDocumentError(f"Unable to read the page tree. Error: {exc}") from exc

        return PypdfDocument(num_pages=num_pages, file_size=len(content), reader=reader)

    def new_writer(self) -> PdfWriter:
        return PdfWriter()

    def append_page(self, writer: PdfWriter, document: PypdfDocument, index: int, rotation: int) -> None:
        source_page = document.get_page(index)
        final_rotation = (document.intrinsic_rotation(index) + rotation) % 360
        copied = writer.add_page(source_page)
        copied.rotation = final_rotation

    def add_metadata(self, writer: PdfWriter, info: Dict[str, str]) -> None:
        if info:
            writer.add_metadata(info)

    def serialize(self, writer: PdfWriter) -> bytes:
        buffer = io.BytesIO()
        writer.write(buffer)
        return buffer.getvalue()

"""
Custom exceptions for pdfassemblex.

Per-file and per-page failures (:class:`InvalidDocumentError`,
:class:`PageRenderError`) are meant to be caught and isolated by the caller.
:class:`MergeError` aborts a whole export.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional


class PdfAssembleError(Exception):
    """Base exception for all pdfassemblex errors."""

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.default_message)
        self.message = message or self.default_message

    @property
    def default_message(self) -> str:
        return "An unknown PDF assembly error occurred."


class InvalidDocumentError(PdfAssembleError):
    """Raised when a source file cannot be parsed as a PDF."""

    def __init__(self, message: str = "", *, name: Optional[str] = None) -> None:
        super().__init__(message)
        self.name = name

    @property
    def default_message(self) -> str:
        return "Invalid or corrupted PDF file."


class SourceNotFoundError(PdfAssembleError, KeyError):
    """Raised when a source id does not resolve to a registered source."""

    def __init__(self, source_id: str) -> None:
        super().__init__(f"Unknown source document: {source_id}")
        self.source_id = source_id

    def __str__(self) -> str:
        return self.message


class InvalidRotationError(PdfAssembleError, ValueError):
    """Raised when a rotation is not a multiple of 90 degrees."""

    @property
    def default_message(self) -> str:
        return "Rotation must be a multiple of 90 degrees."


class PageRenderError(PdfAssembleError):
    """Raised when a single page cannot be rasterized."""

    def __init__(self, source_id: str, page_index: int, message: str = "") -> None:
        super().__init__(
            message or f"Failed to render page {page_index + 1} of source {source_id}"
        )
        self.source_id = source_id
        self.page_index = page_index


class MergeFailureKind(str, Enum):
    """Why a merge failed, so callers can pick a message."""

    EMPTY = "empty"
    MISSING_SOURCE = "missing_source"
    CORRUPT_SOURCE = "corrupt_source"
    TOO_LARGE = "too_large"
    SERIALIZATION = "serialization"


_USER_MESSAGES = {
    MergeFailureKind.EMPTY: "There are no pages to export.",
    MergeFailureKind.MISSING_SOURCE: (
        "One of the source files is no longer available. Re-add it and try again."
    ),
    MergeFailureKind.CORRUPT_SOURCE: (
        "A page in one of the source files could not be copied. "
        "Remove it and try again."
    ),
    MergeFailureKind.TOO_LARGE: (
        "Failed to generate PDF. The resulting file might be too large "
        "to handle in one go."
    ),
    MergeFailureKind.SERIALIZATION: "Failed to generate PDF. Please try again.",
}


class MergeError(PdfAssembleError):
    """Raised when the output document cannot be assembled or serialized."""

    def __init__(
        self,
        message: str = "",
        *,
        kind: MergeFailureKind = MergeFailureKind.SERIALIZATION,
    ) -> None:
        super().__init__(message)
        self.kind = kind

    @property
    def default_message(self) -> str:
        return "Failed to merge the page sequence."

    @property
    def user_message(self) -> str:
        """Short, retry-oriented text suitable for a blocking alert."""

        return _USER_MESSAGES[self.kind]


__all__ = [
    "PdfAssembleError",
    "InvalidDocumentError",
    "SourceNotFoundError",
    "InvalidRotationError",
    "PageRenderError",
    "MergeFailureKind",
    "MergeError",
]

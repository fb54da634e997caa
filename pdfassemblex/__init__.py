"""
pdfassemblex - Assemble one PDF from pages of several PDFs.

The library keeps an ordered, identity-addressed sequence of page references
into uploaded source documents, renders cached previews for them and merges
the final sequence into one PDF, composing each page's rotation with the
rotation already stored in its source.

Quick Start:
    >>> from pdfassemblex import AssemblySession
    >>> session = AssemblySession()
    >>> session.add_files([("a.pdf", a_bytes), ("b.pdf", b_bytes)])
    >>> sequence = session.start_editing()
    >>> sequence.rotate(sequence.references[0].id)
    >>> result = session.export()

Main Classes:
    - AssemblySession: Upload, edit and export workflow
    - SourceRegistry: Uploaded sources and cached document handles
    - PageSequence: Ordered page references with selection
    - ThumbnailRenderer: Cached upright page previews

Exceptions:
    - PdfAssembleError: Base exception
    - InvalidDocumentError: Source is not a parseable PDF
    - PageRenderError: One page could not be rasterized
    - MergeError: The output document could not be produced

For CLI usage, use the 'pdfassemblex' command after installation.
"""

__version__ = "1.0.0"

# Core classes
from pdfassemblex.merger import merge_async, merge_sequence
from pdfassemblex.registry import HandleCache, SourceRegistry
from pdfassemblex.sequence import PageSequence
from pdfassemblex.session import AssemblySession
from pdfassemblex.thumbnails import ThumbnailRenderer

# Configuration and data types
from pdfassemblex.config import AssemblyOptions
from pdfassemblex.types import (
    ExportResult,
    PageReference,
    RenderedThumbnail,
    RenderOutcome,
    SourceDocument,
    UploadBatchResult,
)

# Exceptions
from pdfassemblex.exceptions import (
    InvalidDocumentError,
    InvalidRotationError,
    MergeError,
    MergeFailureKind,
    PageRenderError,
    PdfAssembleError,
    SourceNotFoundError,
)

# Utility functions
from pdfassemblex.utils import format_file_size, generate_output_name

__author__ = "pdfassemblex Contributors"
__license__ = "MIT"

__all__ = [
    # Main classes
    "AssemblySession",
    "SourceRegistry",
    "HandleCache",
    "PageSequence",
    "ThumbnailRenderer",
    "merge_sequence",
    "merge_async",
    # Data types
    "AssemblyOptions",
    "SourceDocument",
    "PageReference",
    "RenderedThumbnail",
    "RenderOutcome",
    "UploadBatchResult",
    "ExportResult",
    # Exceptions
    "PdfAssembleError",
    "InvalidDocumentError",
    "SourceNotFoundError",
    "InvalidRotationError",
    "PageRenderError",
    "MergeError",
    "MergeFailureKind",
    # Utility functions
    "format_file_size",
    "generate_output_name",
    # Version info
    "__version__",
]

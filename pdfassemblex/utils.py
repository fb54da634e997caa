"""Utility helpers for pdfassemblex."""

from __future__ import annotations

import time
from pathlib import Path
from typing import Iterable, Optional, Union

from .config import PDF_MEDIA_TYPE

PathLike = Union[str, Path]


def ensure_path(path: PathLike) -> Path:
    """Return an expanded, resolved :class:`~pathlib.Path` for *path*."""

    return Path(path).expanduser().resolve(strict=False)


def looks_like_pdf(
    name: str,
    media_type: Optional[str] = None,
    *,
    accepted: Iterable[str] = (PDF_MEDIA_TYPE,),
) -> bool:
    """Return whether an upload should be treated as a PDF.

    The media type wins when the caller supplies one; otherwise the file
    extension decides.
    """

    if media_type:
        return media_type.split(";", 1)[0].strip().lower() in accepted
    return name.lower().endswith(".pdf")


def generate_output_name(prefix: str = "merged", timestamp: Optional[float] = None) -> str:
    """Return a download name such as ``merged-1700000000000.pdf``.

    The timestamp is expressed in milliseconds.
    """

    if timestamp is None:
        timestamp = time.time()
    return f"{prefix}-{int(timestamp * 1000)}.pdf"


def format_file_size(size_bytes: float) -> str:
    """
    Format file size in human-readable format.

    Args:
        size_bytes: File size in bytes

    Returns:
        Formatted string (e.g., "1.5 MB", "500.0 KB")
    """
    for unit in ['B', 'KB', 'MB', 'GB', 'TB']:
        if size_bytes < 1024.0:
            return f"{size_bytes:.1f} {unit}"
        size_bytes /= 1024.0
    return f"{size_bytes:.1f} PB"


__all__ = ["PathLike", "ensure_path", "looks_like_pdf", "generate_output_name", "format_file_size"]

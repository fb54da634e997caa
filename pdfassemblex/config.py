"""Configuration for an assembly session."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Tuple

PDF_MEDIA_TYPE = "application/pdf"
THUMBNAIL_FORMATS = ("JPEG", "PNG")


@dataclass(frozen=True)
class AssemblyOptions:
    """
    Tunables shared by the registry, renderer, merge engine and session.

    Attributes:
        thumbnail_scale: Scale factor used to rasterize previews
        max_in_flight_decodes: Upper bound on concurrent asynchronous decodes
        thumbnail_format: Encoding used by :meth:`ThumbnailRenderer.encode`
        thumbnail_quality: JPEG quality used for encoded previews
        ignore_encryption: Try the empty user password on encrypted sources
        output_prefix: Prefix of generated output file names
        accepted_media_types: Media types accepted in an upload batch
        copy_metadata: Copy the first source's document info into the output
    """
    thumbnail_scale: float = 0.4
    max_in_flight_decodes: int = 1
    thumbnail_format: str = "JPEG"
    thumbnail_quality: int = 80
    ignore_encryption: bool = True
    output_prefix: str = "merged"
    accepted_media_types: Tuple[str, ...] = (PDF_MEDIA_TYPE,)
    copy_metadata: bool = False

    def __post_init__(self) -> None:
        if self.thumbnail_scale <= 0:
            raise ValueError("thumbnail_scale must be positive")
        if self.max_in_flight_decodes < 1:
            raise ValueError("max_in_flight_decodes must be at least 1")
        if self.thumbnail_format.upper() not in THUMBNAIL_FORMATS:
            raise ValueError(
                f"thumbnail_format must be one of {', '.join(THUMBNAIL_FORMATS)}"
            )
        if not 1 <= self.thumbnail_quality <= 95:
            raise ValueError("thumbnail_quality must be between 1 and 95")
        if not self.output_prefix:
            raise ValueError("output_prefix must not be empty")

    def with_updates(self, **changes: Any) -> "AssemblyOptions":
        return replace(self, **{k: v for k, v in changes.items() if v is not None})


DEFAULT_OPTIONS = AssemblyOptions()

__all__ = ["AssemblyOptions", "DEFAULT_OPTIONS", "PDF_MEDIA_TYPE", "THUMBNAIL_FORMATS"]

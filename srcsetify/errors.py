"""Error taxonomy for the variant pipeline.

Every error carries the name of the source it concerns (when known) so a
caller can retry a single image without reprocessing the whole batch.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class SrcsetifyError(Exception):
    """Base class for all pipeline errors."""

    kind = "error"

    def __init__(self, message: str, source: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.source = source

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.source, "kind": self.kind, "message": self.message}

    def __str__(self) -> str:
        if self.source:
            return f"{self.source}: {self.message}"
        return self.message


class InvalidSource(SrcsetifyError):
    """Missing or corrupt input, or non-positive dimensions."""

    kind = "invalid_source"


class DecodeError(SrcsetifyError):
    """The source bytes could not be parsed as an image."""

    kind = "decode_error"


class EncodeError(SrcsetifyError):
    """A specific width/format combination failed to encode."""

    kind = "encode_error"

    def __init__(
        self,
        message: str,
        source: Optional[str] = None,
        width: Optional[int] = None,
        format: Optional[str] = None,
    ) -> None:
        super().__init__(message, source)
        self.width = width
        self.format = format

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({"width": self.width, "format": self.format})
        return data

    def __str__(self) -> str:
        return f"{super().__str__()} (width={self.width}, format={self.format})"


class EmptySelection(SrcsetifyError):
    """An export was requested with no active variants."""

    kind = "empty_selection"


class ArchiveError(SrcsetifyError):
    """The archive itself could not be assembled."""

    kind = "archive_error"

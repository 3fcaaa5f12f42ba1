"""Immutable value types shared across the pipeline."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Any, Optional, Tuple, Union

from .errors import EncodeError, SrcsetifyError


@dataclass(frozen=True)
class Preset:
    """A variant rendered at a preset's canonical width."""

    name: str
    width: int


@dataclass(frozen=True)
class RawDimensions:
    """A variant with no matching preset, known only by its size."""

    width: int
    height: int


VariantLabel = Union[Preset, RawDimensions]


@dataclass(frozen=True)
class SourceImage:
    name: str
    data: bytes = field(repr=False)
    width: int
    height: int
    format: Optional[str]
    # Decoded Pillow image, loaded once and only read afterwards.
    image: Any = field(default=None, repr=False, compare=False)


@dataclass(frozen=True)
class Variant:
    width: int
    height: int
    data: bytes = field(repr=False)
    label: VariantLabel

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def preset_name(self) -> Optional[str]:
        if isinstance(self.label, Preset):
            return self.label.name
        return None


@dataclass(frozen=True)
class SourceMetadata:
    original_width: int
    original_height: int
    format: Optional[str]


@dataclass(frozen=True)
class ProcessingResult:
    """Everything produced for one source image."""

    original_name: str
    format: str
    variants: Tuple[Variant, ...]
    sizes_attr: str
    metadata: SourceMetadata
    failures: Tuple[EncodeError, ...] = ()
    id: str = field(default_factory=lambda: uuid.uuid4().hex)


@dataclass(frozen=True)
class ProcessingError:
    """A source that produced no result, kept in place of one in a batch."""

    name: str
    kind: str
    message: str
    width: Optional[int] = None
    format: Optional[str] = None

    @classmethod
    def from_exception(cls, name: str, exc: BaseException) -> "ProcessingError":
        if isinstance(exc, SrcsetifyError):
            return cls(
                name=exc.source or name,
                kind=exc.kind,
                message=exc.message,
                width=getattr(exc, "width", None),
                format=getattr(exc, "format", None),
            )
        return cls(name=name, kind="error", message=str(exc) or type(exc).__name__)

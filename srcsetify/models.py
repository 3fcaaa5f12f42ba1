"""Pydantic schemas returned by the API endpoints.

These mirror the pipeline's dataclasses in a JSON friendly shape: variant
bytes are inlined as base64 and selections are plain sorted index lists.
"""

from __future__ import annotations

import base64
from typing import List, Optional

from pydantic import BaseModel

from .batch import Batch
from .domain import ProcessingError, ProcessingResult, Variant
from .markup import build_markup, markup_snippet
from .naming import suffix_for, variant_filenames


class VariantOut(BaseModel):
    """One rendered variant.

    Attributes:
        index: Position within the result (ascending width).
        width: Width in pixels.
        height: Height in pixels.
        size: Encoded size in bytes.
        label: Preset label, or ``None`` for widths without a preset.
        suffix: Filename suffix derived from the label or width.
        filename: Name used in markup and archives.
        data: Base64 encoded image bytes.
    """

    index: int
    width: int
    height: int
    size: int
    label: Optional[str] = None
    suffix: str
    filename: str
    data: str


class MetadataOut(BaseModel):
    original_width: int
    original_height: int
    format: Optional[str] = None


class MarkupOut(BaseModel):
    srcset: str
    sizes: str
    snippet: str


class ErrorOut(BaseModel):
    name: str
    kind: str
    message: str
    width: Optional[int] = None
    format: Optional[str] = None


class ResultOut(BaseModel):
    id: str
    original_name: str
    format: str
    sizes_attr: str
    metadata: MetadataOut
    markup: MarkupOut
    images: List[VariantOut]
    selected: List[int]
    failures: List[ErrorOut] = []


class BatchOut(BaseModel):
    id: str
    results: List[ResultOut]
    errors: List[ErrorOut]


class SelectionOut(BaseModel):
    result_id: str
    selected: List[int]


class PresetOut(BaseModel):
    label: str
    width: int
    suffix: str


class PresetsOut(BaseModel):
    presets: List[PresetOut]
    default_widths: List[int]


def variant_out(index: int, variant: Variant, filename: str) -> VariantOut:
    return VariantOut(
        index=index,
        width=variant.width,
        height=variant.height,
        size=variant.size,
        label=variant.preset_name,
        suffix=suffix_for(variant.label),
        filename=filename,
        data=base64.b64encode(variant.data).decode("ascii"),
    )


def error_out(error: ProcessingError) -> ErrorOut:
    return ErrorOut(
        name=error.name,
        kind=error.kind,
        message=error.message,
        width=error.width,
        format=error.format,
    )


def markup_out(result: ProcessingResult, directory: Optional[str] = None) -> MarkupOut:
    markup = build_markup(result, directory)
    return MarkupOut(srcset=markup.srcset, sizes=markup.sizes, snippet=markup_snippet(markup))


def result_out(result: ProcessingResult, selected=(), directory: Optional[str] = None) -> ResultOut:
    filenames = variant_filenames(result.original_name, result.variants, result.format)
    return ResultOut(
        id=result.id,
        original_name=result.original_name,
        format=result.format,
        sizes_attr=result.sizes_attr,
        metadata=MetadataOut(
            original_width=result.metadata.original_width,
            original_height=result.metadata.original_height,
            format=result.metadata.format,
        ),
        markup=markup_out(result, directory),
        images=[variant_out(i, v, f) for i, (v, f) in enumerate(zip(result.variants, filenames))],
        selected=sorted(selected),
        failures=[error_out(ProcessingError.from_exception(result.original_name, e)) for e in result.failures],
    )


def batch_out(batch: Batch, directory: Optional[str] = None) -> BatchOut:
    selection = batch.snapshot()
    return BatchOut(
        id=batch.id,
        results=[result_out(r, selection.get(r.id, ()), directory) for r in batch.results],
        errors=[error_out(e) for e in batch.errors],
    )

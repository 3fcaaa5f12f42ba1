"""``srcset`` and ``sizes`` markup for a processed image."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

from . import config
from .domain import ProcessingResult, Variant
from .naming import variant_filenames
from .presets import DEFAULT_PRESETS, PresetTable


@dataclass(frozen=True)
class Markup:
    srcset: str
    sizes: str


def sizes_descriptor(natural_width: int) -> str:
    return f"(max-width: {natural_width}px) 100vw, {natural_width}px"


def normalise_directory(base_directory: Optional[str]) -> str:
    directory = (base_directory or "").strip().rstrip("/")
    return directory or config.DEFAULT_DIRECTORY


def build_srcset(
    original_name: str,
    variants: Sequence[Variant],
    output_format: str,
    base_directory: Optional[str] = None,
    presets: PresetTable = DEFAULT_PRESETS,
) -> str:
    """Join ``"{dir}/{filename} {width}w"`` candidates in variant order."""
    directory = normalise_directory(base_directory)
    filenames = variant_filenames(original_name, variants, output_format, presets)
    return ", ".join(
        f"{directory}/{filename} {variant.width}w"
        for filename, variant in zip(filenames, variants)
    )


def build_markup(
    result: ProcessingResult,
    base_directory: Optional[str] = None,
    presets: PresetTable = DEFAULT_PRESETS,
) -> Markup:
    """Compose the candidate list and sizes descriptor for ``result``.

    The sizes descriptor was fixed when the result was created and does not
    depend on the directory. The result is only read, so calling this again
    with another directory is safe.
    """
    srcset = build_srcset(result.original_name, result.variants, result.format, base_directory, presets)
    return Markup(srcset=srcset, sizes=result.sizes_attr)


def markup_snippet(markup: Markup) -> str:
    """Attribute pair ready to paste into an ``<img>`` tag."""
    return f'srcset="{markup.srcset}" sizes="{markup.sizes}"'

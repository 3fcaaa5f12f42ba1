"""Filename suffixes and variant filenames.

A variant's filename is ``{original_name}-{suffix}.{format}``. The suffix
comes from the variant's preset when the preset has one, and otherwise from
a fixed set of width buckets.
"""

from __future__ import annotations

import os
import re
from typing import List, Sequence, Tuple, Union

from .domain import Preset, RawDimensions, Variant, VariantLabel
from .presets import DEFAULT_PRESETS, PresetTable

# Inclusive upper bounds; anything wider lands in the last bucket.
WIDTH_BUCKETS: Tuple[Tuple[int, str], ...] = (
    (360, "mob-sm"),
    (480, "mob"),
    (768, "tablet"),
    (1366, "desktop"),
)
WIDEST_BUCKET = "mob-lg"

_TRAILING_DIMENSIONS_RE = re.compile(r"(\d+)(?:x\d+)?$")
_WHITESPACE_RE = re.compile(r"\s+")


def bucket_for_width(width: int) -> str:
    for upper, suffix in WIDTH_BUCKETS:
        if width <= upper:
            return suffix
    return WIDEST_BUCKET


def _preset_suffix(name: str, presets: PresetTable) -> str:
    preset = presets.get(name)
    if preset.suffix:
        return preset.suffix
    return bucket_for_width(preset.width)


def suffix_for(label: Union[VariantLabel, str], presets: PresetTable = DEFAULT_PRESETS) -> str:
    """Return the filename suffix for a variant label.

    Presets without a suffix of their own (``card``) use the bucket of
    their width, as do raw dimensions and strings ending in ``NNN`` or
    ``NNNxMMM``. Any other string is returned with whitespace runs replaced
    by a single hyphen.
    """
    if isinstance(label, Preset):
        if label.name in presets:
            return _preset_suffix(label.name, presets)
        return bucket_for_width(label.width)
    if isinstance(label, RawDimensions):
        return bucket_for_width(label.width)
    text = str(label)
    if text in presets:
        return _preset_suffix(text, presets)
    match = _TRAILING_DIMENSIONS_RE.search(text)
    if match:
        return bucket_for_width(int(match.group(1)))
    return _WHITESPACE_RE.sub("-", text)


def strip_extension(filename: str) -> str:
    """Derive an image's original name from its upload filename."""
    base = os.path.basename((filename or "").replace("\\", "/"))
    stem, _ = os.path.splitext(base)
    return stem or "image"


def variant_filenames(
    original_name: str,
    variants: Sequence[Variant],
    output_format: str,
    presets: PresetTable = DEFAULT_PRESETS,
) -> List[str]:
    """Filenames for every variant of one result, in variant order.

    Several widths can land in the same suffix bucket (``1024`` and ``1366``
    are both ``desktop``). The first keeps the plain name and later ones get
    their width appended so names stay unique within a result.
    This is the only place a name departs from ``{name}-{suffix}.{format}``.
    """
    names: List[str] = []
    seen = set()
    for variant in variants:
        name = f"{original_name}-{suffix_for(variant.label, presets)}"
        if name in seen:
            name = f"{name}-{variant.width}"
        seen.add(name)
        names.append(f"{name}.{output_format}")
    return names

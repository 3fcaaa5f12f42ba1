"""Size presets and target width resolution.

A preset maps a stable label (``mobile``, ``tablet`` …) to a canonical pixel
width and, for most presets, a short filename suffix. The table is built
once at import time and passed explicitly to the functions that need it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

from .errors import InvalidSource


# Common responsive image widths for srcset
DEFAULT_WIDTHS: Tuple[int, ...] = (320, 480, 640, 768, 1024, 1366, 1536, 1920)


@dataclass(frozen=True)
class SizePreset:
    label: str
    width: int
    suffix: Optional[str] = None


class PresetTable:
    """Immutable, ordered table of size presets.

    Order matters: it is the tie-break priority when several labels share a
    width, and it is the order in which presets are listed to clients.
    """

    def __init__(self, presets: Iterable[SizePreset], default_widths: Sequence[int] = DEFAULT_WIDTHS) -> None:
        self._presets: Tuple[SizePreset, ...] = tuple(presets)
        self._by_label: Dict[str, SizePreset] = {}
        for preset in self._presets:
            if preset.width <= 0:
                raise ValueError(f"Preset {preset.label!r} must have a positive width")
            if preset.label in self._by_label:
                raise ValueError(f"Duplicate preset label {preset.label!r}")
            self._by_label[preset.label] = preset
        self._default_widths: Tuple[int, ...] = tuple(sorted(set(default_widths)))

    def __iter__(self):
        return iter(self._presets)

    def __len__(self) -> int:
        return len(self._presets)

    def __contains__(self, label: object) -> bool:
        return label in self._by_label

    def get(self, label: str) -> Optional[SizePreset]:
        return self._by_label.get(label)

    @property
    def default_widths(self) -> Tuple[int, ...]:
        return self._default_widths


DEFAULT_PRESETS = PresetTable(
    [
        SizePreset("small-mobile", 320, "mob-sm"),
        SizePreset("mobile", 480, "mob"),
        # No suffix of its own; filenames fall back to the width bucket.
        SizePreset("card", 640),
        SizePreset("tablet", 768, "tablet"),
        SizePreset("desktop", 1024, "desktop"),
        SizePreset("large", 1536, "mob-lg"),
    ]
)

Labels = Union[str, Sequence[str], None]


def parse_labels(requested: Labels) -> List[str]:
    """Normalise a comma separated string or a sequence into a label list."""
    if not requested:
        return []
    if isinstance(requested, str):
        parts: Iterable[str] = requested.split(",")
    else:
        parts = requested
    return [p.strip() for p in parts if p and p.strip()]


def _check_natural_width(natural_width: object) -> int:
    if isinstance(natural_width, bool) or not isinstance(natural_width, int) or natural_width <= 0:
        raise InvalidSource(f"Natural width must be a positive integer, got {natural_width!r}")
    return natural_width


def resolve_widths(
    natural_width: int,
    requested_labels: Labels = None,
    presets: PresetTable = DEFAULT_PRESETS,
) -> Tuple[int, ...]:
    """Resolve the widths to render for an image.

    Args:
        natural_width: Width of the source image in pixels.
        requested_labels: Preset labels, as a list or a comma separated
            string. Unknown labels are dropped silently. When nothing known
            remains the default width ladder is used.
        presets: Preset table to resolve labels against.

    Returns:
        Strictly ascending widths, none larger than ``natural_width``, always
        ending with ``natural_width`` itself.

    Raises:
        InvalidSource: If ``natural_width`` is not a positive integer.
    """
    natural_width = _check_natural_width(natural_width)
    widths = [presets.get(label).width for label in parse_labels(requested_labels) if label in presets]
    if not widths:
        widths = list(presets.default_widths)
    valid = {w for w in widths if w <= natural_width}
    valid.add(natural_width)
    return tuple(sorted(valid))


def label_for_width(
    width: int,
    presets: PresetTable = DEFAULT_PRESETS,
    requested_labels: Labels = None,
) -> Optional[str]:
    """Return the preset label a rendered width should carry, if any.

    Requested labels win in the caller's order; otherwise the first preset
    in table order with that width is used.
    """
    for label in parse_labels(requested_labels):
        preset = presets.get(label)
        if preset is not None and preset.width == width:
            return label
    for preset in presets:
        if preset.width == width:
            return preset.label
    return None

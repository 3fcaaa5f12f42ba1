"""Zip export of processed variants.

The archive holds one folder per result, named after the source image, with
one file per exported variant inside it. Results that share a name (two
uploads called ``photo.jpg``) each write their own ``photo/`` entries; the
zip then holds members with identical paths rather than renamed ones.
"""

from __future__ import annotations

import warnings
import zipfile
from dataclasses import dataclass
from datetime import datetime, timezone
from io import BytesIO
from typing import FrozenSet, Iterable, List, Mapping, Optional, Sequence, Tuple

from .domain import ProcessingResult
from .errors import ArchiveError, EmptySelection
from .naming import variant_filenames
from .presets import DEFAULT_PRESETS, PresetTable

ARCHIVE_PREFIX = "srcsetify"
MEDIA_TYPE = "application/zip"
SCOPE_BATCH = "batch"
SCOPE_SELECTED = "selected"


@dataclass(frozen=True)
class Archive:
    filename: str
    data: bytes
    media_type: str = MEDIA_TYPE

    @property
    def size(self) -> int:
        return len(self.data)


def timestamp(now: Optional[datetime] = None) -> str:
    """Sortable UTC stamp usable in a filename, e.g. ``2025-01-31T09-05-02-417Z``."""
    now = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
    stamp = now.strftime("%Y-%m-%dT%H:%M:%S") + f".{now.microsecond // 1000:03d}Z"
    return stamp.replace(":", "-").replace(".", "-")


def archive_name(results: Sequence[ProcessingResult], scope: str, now: Optional[datetime] = None) -> str:
    prefix = results[0].original_name if len(results) == 1 else ARCHIVE_PREFIX
    return f"{prefix}-{scope}-{timestamp(now)}.zip"


def _entries(
    results: Iterable[ProcessingResult],
    selection: Optional[Mapping[str, Iterable[int]]],
    presets: PresetTable,
) -> List[Tuple[ProcessingResult, List[Tuple[str, bytes]]]]:
    chosen = []
    for result in results:
        filenames = variant_filenames(result.original_name, result.variants, result.format, presets)
        if selection is None:
            active: FrozenSet[int] = frozenset(range(len(result.variants)))
        else:
            active = frozenset(selection.get(result.id, ()))
        files = [
            (f"{result.original_name}/{filename}", variant.data)
            for index, (filename, variant) in enumerate(zip(filenames, result.variants))
            if index in active
        ]
        if files:
            chosen.append((result, files))
    return chosen


def pack(
    results: Sequence[ProcessingResult],
    selection: Optional[Mapping[str, Iterable[int]]] = None,
    now: Optional[datetime] = None,
    presets: PresetTable = DEFAULT_PRESETS,
) -> Archive:
    """Build a zip archive of the chosen variants.

    Args:
        results: Results to export, in archive order.
        selection: Active variant indices per result id. ``None`` exports
            every variant (scope ``batch``); otherwise only active ones are
            written (scope ``selected``). The mapping is copied first, so
            later selection changes do not affect this archive.
        now: Clock override for the archive name.
        presets: Preset table used for filename suffixes.

    Raises:
        EmptySelection: If no variant would be written.
        ArchiveError: If the zip cannot be assembled.
    """
    scope = SCOPE_BATCH if selection is None else SCOPE_SELECTED
    if selection is not None:
        selection = {key: frozenset(value) for key, value in selection.items()}
    chosen = _entries(results, selection, presets)
    if not chosen:
        raise EmptySelection("Select at least one image to download")

    buffer = BytesIO()
    try:
        with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as zf:
            with warnings.catch_warnings():
                # Same-named results share a folder; duplicate paths are expected.
                warnings.filterwarnings("ignore", message="Duplicate name", category=UserWarning)
                for result, files in chosen:
                    zf.writestr(f"{result.original_name}/", b"")
                    for path, data in files:
                        zf.writestr(path, data)
    except (OSError, ValueError, zipfile.LargeZipFile) as e:
        raise ArchiveError(f"Failed to build archive: {e}") from e

    archive = Archive(filename=archive_name([r for r, _ in chosen], scope, now), data=buffer.getvalue())
    file_count = sum(len(files) for _, files in chosen)
    print(f"[archive] {archive.filename}: {file_count} files from {len(chosen)} images, {archive.size} bytes")
    return archive

"""Batch processing of uploaded images and the export selection model.

Each source is processed independently: it is decoded once, then every
target width is resized and encoded as its own job on a bounded thread
pool. Results come back in input order, and the variants of a result in
ascending width, whatever order the jobs finish in. A source that fails is
recorded as a :class:`ProcessingError` in its slot; its siblings carry on.
"""

from __future__ import annotations

import asyncio
import functools
import sys
import uuid
from concurrent.futures import Executor, ThreadPoolExecutor
from typing import Dict, FrozenSet, Iterable, List, Mapping, NamedTuple, Optional, Sequence, Union

from . import config
from .domain import Preset, ProcessingError, ProcessingResult, SourceImage, SourceMetadata, Variant
from .errors import EncodeError, SrcsetifyError
from .image_ops import load_source, render, resolve_format
from .markup import sizes_descriptor
from .naming import strip_extension
from .presets import DEFAULT_PRESETS, Labels, PresetTable, label_for_width, resolve_widths

Outcome = Union[ProcessingResult, ProcessingError]


class SourceUpload(NamedTuple):
    filename: str
    data: bytes


async def _run(executor: Optional[Executor], fn, *args):
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(executor, functools.partial(fn, *args))


async def _render_width(
    executor: Optional[Executor],
    source: SourceImage,
    width: int,
    output_format: str,
    label: Optional[str],
    presets: PresetTable,
) -> Union[Variant, EncodeError]:
    variant_label = Preset(label, presets.get(label).width) if label else None
    try:
        return await _run(executor, render, source, width, output_format, variant_label)
    except EncodeError as e:
        print(f"[process] {e}", file=sys.stderr)
        return e


async def process_image(
    data: bytes,
    filename: str,
    output_format: Optional[str],
    requested_labels: Labels = None,
    *,
    presets: PresetTable = DEFAULT_PRESETS,
    executor: Optional[Executor] = None,
    strict: Optional[bool] = None,
) -> ProcessingResult:
    """Produce every variant of one image.

    Args:
        data: Raw uploaded bytes.
        filename: Upload filename; its extension is stripped for naming.
        output_format: Requested format token (``jpg``, ``webp``, ``png``).
        requested_labels: Optional preset labels, list or comma separated.
        presets: Preset table for width resolution and labelling.
        executor: Pool the decode and encode jobs run on.
        strict: Override ``SRCSETIFY_STRICT_FORMAT`` for this call.

    Returns:
        The result. Widths that failed to encode are listed in
        ``failures`` while the rest are kept.

    Raises:
        InvalidSource: Empty input, bad dimensions or (strict) bad format.
        DecodeError: The bytes are not an image.
        EncodeError: Every width failed to encode.
    """
    name = strip_extension(filename)
    try:
        fmt = resolve_format(output_format, strict)
    except SrcsetifyError as e:
        e.source = name
        raise
    source = await _run(executor, load_source, data, name)
    try:
        widths = resolve_widths(source.width, requested_labels, presets)
        outcomes = await asyncio.gather(
            *(
                _render_width(executor, source, w, fmt, label_for_width(w, presets, requested_labels), presets)
                for w in widths
            )
        )
    finally:
        if source.image is not None:
            source.image.close()
    variants = tuple(o for o in outcomes if isinstance(o, Variant))
    failures = tuple(o for o in outcomes if isinstance(o, EncodeError))
    if not variants:
        raise failures[0]
    print(f"[process] {name}: {len(variants)} {fmt} variants, {len(failures)} failed")
    return ProcessingResult(
        original_name=name,
        format=fmt,
        variants=variants,
        sizes_attr=sizes_descriptor(source.width),
        metadata=SourceMetadata(source.width, source.height, source.format),
        failures=failures,
    )


async def process_batch(
    sources: Sequence[SourceUpload],
    output_format: Optional[str],
    requested_labels: Labels = None,
    *,
    max_workers: Optional[int] = None,
    presets: PresetTable = DEFAULT_PRESETS,
    strict: Optional[bool] = None,
) -> List[Outcome]:
    """Process several images concurrently on a bounded pool.

    The returned list lines up with ``sources``: each slot holds either the
    image's result or the error that stopped it.
    """
    workers = max_workers or config.MAX_WORKERS
    semaphore = asyncio.Semaphore(workers)
    executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="srcsetify")

    async def one(upload: SourceUpload) -> Outcome:
        filename, data = upload
        async with semaphore:
            try:
                return await process_image(
                    data, filename, output_format, requested_labels,
                    presets=presets, executor=executor, strict=strict,
                )
            except SrcsetifyError as e:
                print(f"[process] {e}", file=sys.stderr)
                return ProcessingError.from_exception(strip_extension(filename), e)
            except Exception as e:
                print(f"[process] {filename}: unexpected failure: {e!r}", file=sys.stderr)
                return ProcessingError.from_exception(strip_extension(filename), e)

    try:
        return list(await asyncio.gather(*(one(s) for s in sources)))
    finally:
        # On cancellation, queued encodes are dropped instead of awaited.
        executor.shutdown(wait=False, cancel_futures=True)


class Selection:
    """Active variant indices per result, keyed by result id.

    Every mutation swaps in a new frozenset, so a :meth:`snapshot` taken
    before archiving never changes underneath the reader.
    """

    def __init__(self) -> None:
        self._counts: Dict[str, int] = {}
        self._active: Dict[str, FrozenSet[int]] = {}

    def register(self, result: ProcessingResult) -> None:
        self._counts[result.id] = len(result.variants)
        self._active[result.id] = frozenset(range(len(result.variants)))

    def discard(self, result_id: str) -> None:
        self._counts.pop(result_id, None)
        self._active.pop(result_id, None)

    def _check(self, result_id: str, index: Optional[int] = None) -> None:
        if result_id not in self._counts:
            raise KeyError(result_id)
        if index is not None and not 0 <= index < self._counts[result_id]:
            raise IndexError(f"Variant index {index} out of range for result {result_id}")

    def active(self, result_id: str) -> FrozenSet[int]:
        self._check(result_id)
        return self._active[result_id]

    def toggle(self, result_id: str, index: int) -> bool:
        """Flip one variant and return whether it is now active."""
        self._check(result_id, index)
        current = self._active[result_id]
        if index in current:
            self._active[result_id] = current - {index}
            return False
        self._active[result_id] = current | {index}
        return True

    def select_all(self, result_id: str) -> None:
        self._check(result_id)
        self._active[result_id] = frozenset(range(self._counts[result_id]))

    def deselect_all(self, result_id: str) -> None:
        self._check(result_id)
        self._active[result_id] = frozenset()

    def select_all_across(self) -> None:
        for result_id in list(self._counts):
            self.select_all(result_id)

    def deselect_all_across(self) -> None:
        for result_id in list(self._counts):
            self.deselect_all(result_id)

    def snapshot(self) -> Dict[str, FrozenSet[int]]:
        return dict(self._active)


class Batch:
    """The outcomes of one processing request plus their selection."""

    def __init__(self, outcomes: Iterable[Outcome], id: Optional[str] = None) -> None:
        self.id = id or uuid.uuid4().hex
        self.outcomes: List[Outcome] = list(outcomes)
        self.selection = Selection()
        for result in self.results:
            self.selection.register(result)

    @property
    def results(self) -> List[ProcessingResult]:
        return [o for o in self.outcomes if isinstance(o, ProcessingResult)]

    @property
    def errors(self) -> List[ProcessingError]:
        return [o for o in self.outcomes if isinstance(o, ProcessingError)]

    def result(self, result_id: str) -> ProcessingResult:
        for result in self.results:
            if result.id == result_id:
                return result
        raise KeyError(result_id)

    def remove(self, result_id: str) -> ProcessingResult:
        result = self.result(result_id)
        self.outcomes.remove(result)
        self.selection.discard(result_id)
        return result

    # Selection shortcuts
    def toggle(self, result_id: str, index: int) -> bool:
        return self.selection.toggle(result_id, index)

    def select_all(self, result_id: str) -> None:
        self.selection.select_all(result_id)

    def deselect_all(self, result_id: str) -> None:
        self.selection.deselect_all(result_id)

    def select_all_across(self) -> None:
        self.selection.select_all_across()

    def deselect_all_across(self) -> None:
        self.selection.deselect_all_across()

    def snapshot(self) -> Mapping[str, FrozenSet[int]]:
        return self.selection.snapshot()

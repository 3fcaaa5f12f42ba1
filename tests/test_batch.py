"""Tests for batch orchestration and the selection model."""

import asyncio
import threading
import time

import pytest

from srcsetify import batch as batch_module
from srcsetify.batch import Batch, Selection, SourceUpload, process_batch, process_image
from srcsetify.domain import Preset, ProcessingError, ProcessingResult, RawDimensions, Variant
from srcsetify.errors import DecodeError, EncodeError, InvalidSource


def run(coro):
    return asyncio.run(coro)


def test_process_image_default_widths(make_image):
    result = run(process_image(make_image(1200, 800, fmt="JPEG"), "photo.jpg", "webp"))
    assert result.original_name == "photo"
    assert result.format == "webp"
    assert [v.width for v in result.variants] == [320, 480, 640, 768, 1024, 1200]
    for v in result.variants:
        assert v.height == (2 * 800 * v.width + 1200) // 2400
    assert result.sizes_attr == "(max-width: 1200px) 100vw, 1200px"
    assert result.metadata.original_width == 1200
    assert result.metadata.original_height == 800
    assert result.metadata.format == "jpeg"
    assert result.failures == ()
    assert [v.label for v in result.variants[:3]] == [
        Preset("small-mobile", 320), Preset("mobile", 480), Preset("card", 640),
    ]
    assert result.variants[-1].label == RawDimensions(1200, 800)


def test_process_image_requested_labels_above_natural_width(make_image):
    result = run(process_image(make_image(300, 200), "small.png", "png", "mobile,tablet"))
    assert [(v.width, v.height) for v in result.variants] == [(300, 200)]


def test_process_image_unknown_format_falls_back(make_image):
    result = run(process_image(make_image(100, 50), "a.png", "tiff", strict=False))
    assert result.format == "jpg"


def test_process_image_strict_format(make_image):
    with pytest.raises(InvalidSource) as exc:
        run(process_image(make_image(100, 50), "a.png", "tiff", strict=True))
    assert exc.value.source == "a"


def test_process_image_decode_error():
    with pytest.raises(DecodeError):
        run(process_image(b"nope", "bad.jpg", "jpg"))


def test_width_failure_does_not_sink_other_widths(make_image, monkeypatch):
    real_render = batch_module.render

    def flaky_render(source, width, output_format, label=None):
        if width == 480:
            raise EncodeError("boom", source.name, width, output_format)
        return real_render(source, width, output_format, label)

    monkeypatch.setattr(batch_module, "render", flaky_render)
    result = run(process_image(make_image(1000, 500), "pic.png", "jpg"))
    assert [v.width for v in result.variants] == [320, 640, 768, 1000]
    assert len(result.failures) == 1
    assert (result.failures[0].width, result.failures[0].format) == (480, "jpg")


def test_every_width_failing_becomes_an_error(make_image, monkeypatch):
    def broken_render(source, width, output_format, label=None):
        raise EncodeError("boom", source.name, width, output_format)

    monkeypatch.setattr(batch_module, "render", broken_render)
    outcomes = run(process_batch([SourceUpload("pic.png", make_image(50, 50))], "png"))
    assert isinstance(outcomes[0], ProcessingError)
    assert outcomes[0].kind == "encode_error"
    assert outcomes[0].name == "pic"
    assert outcomes[0].width == 50


def test_batch_isolates_failures_and_keeps_input_order(make_image):
    sources = [
        SourceUpload("big.png", make_image(900, 300)),
        SourceUpload("broken.jpg", b"garbage"),
        SourceUpload("empty.jpg", b""),
        ("tiny.png", make_image(10, 10)),
    ]
    outcomes = run(process_batch(sources, "png", max_workers=2))
    assert [type(o) for o in outcomes] == [ProcessingResult, ProcessingError, ProcessingError, ProcessingResult]
    assert outcomes[0].original_name == "big"
    assert outcomes[1].name == "broken" and outcomes[1].kind == "decode_error"
    assert outcomes[2].name == "empty" and outcomes[2].kind == "invalid_source"
    assert [v.width for v in outcomes[3].variants] == [10]


def test_batch_of_nothing():
    assert run(process_batch([], "jpg")) == []


def _batch(make_image, *names):
    outcomes = run(process_batch([SourceUpload(n, make_image(800, 400)) for n in names], "jpg"))
    return Batch(outcomes)


def test_selection_defaults_to_all_active(make_image):
    batch = _batch(make_image, "a.png", "b.png")
    for result in batch.results:
        assert batch.selection.active(result.id) == frozenset(range(len(result.variants)))


def test_toggle_twice_restores(make_image):
    batch = _batch(make_image, "a.png")
    rid = batch.results[0].id
    before = batch.selection.active(rid)
    assert batch.toggle(rid, 1) is False
    assert 1 not in batch.selection.active(rid)
    assert batch.toggle(rid, 1) is True
    assert batch.selection.active(rid) == before


def test_select_and_deselect_all_are_idempotent(make_image):
    batch = _batch(make_image, "a.png", "b.png")
    rid = batch.results[0].id
    batch.select_all(rid)
    full = batch.selection.active(rid)
    batch.select_all(rid)
    assert batch.selection.active(rid) == full
    batch.deselect_all(rid)
    batch.deselect_all(rid)
    assert batch.selection.active(rid) == frozenset()
    other = batch.results[1].id
    assert batch.selection.active(other) == frozenset(range(len(batch.results[1].variants)))


def test_across_mutators(make_image):
    batch = _batch(make_image, "a.png", "b.png")
    batch.deselect_all_across()
    assert all(not s for s in batch.snapshot().values())
    batch.select_all_across()
    assert all(len(batch.snapshot()[r.id]) == len(r.variants) for r in batch.results)


def test_snapshot_is_not_affected_by_later_toggles(make_image):
    batch = _batch(make_image, "a.png")
    rid = batch.results[0].id
    snap = batch.snapshot()
    batch.toggle(rid, 0)
    assert 0 in snap[rid]


def test_unknown_ids_and_indices(make_image):
    batch = _batch(make_image, "a.png")
    rid = batch.results[0].id
    with pytest.raises(KeyError):
        batch.toggle("missing", 0)
    with pytest.raises(IndexError):
        batch.toggle(rid, 99)
    with pytest.raises(IndexError):
        batch.toggle(rid, -1)


def test_remove_result_keeps_other_selections(make_image):
    batch = _batch(make_image, "a.png", "b.png")
    first, second = batch.results
    batch.toggle(second.id, 0)
    batch.remove(first.id)
    assert batch.results == [second]
    assert first.id not in batch.snapshot()
    assert 0 not in batch.selection.active(second.id)
    with pytest.raises(KeyError):
        batch.remove(first.id)


def test_selection_register_and_discard():
    selection = Selection()
    with pytest.raises(KeyError):
        selection.active("nope")
    selection.discard("nope")


class _RenderTracker:
    """Stand-in for ``render`` that sleeps and records how many run at once."""

    def __init__(self, delay):
        self.delay = delay
        self.lock = threading.Lock()
        self.active = 0
        self.peak = 0
        self.started = 0
        self.finished = 0

    def __call__(self, source, width, output_format, label=None):
        with self.lock:
            self.started += 1
            self.active += 1
            self.peak = max(self.peak, self.active)
        try:
            time.sleep(self.delay)
            return Variant(width, 1, b"x", label or RawDimensions(width, 1))
        finally:
            with self.lock:
                self.active -= 1
                self.finished += 1


def test_single_worker_renders_one_width_at_a_time(make_image, monkeypatch):
    tracker = _RenderTracker(0.02)
    monkeypatch.setattr(batch_module, "render", tracker)
    sources = [SourceUpload(f"{i}.png", make_image(400, 200)) for i in range(3)]
    outcomes = run(process_batch(sources, "png", max_workers=1))
    assert all(isinstance(o, ProcessingResult) for o in outcomes)
    assert tracker.started == 6  # 320 and 400 for each source
    assert tracker.peak == 1


def test_pool_never_exceeds_max_workers(make_image, monkeypatch):
    tracker = _RenderTracker(0.02)
    monkeypatch.setattr(batch_module, "render", tracker)
    sources = [SourceUpload(f"{i}.png", make_image(800, 400)) for i in range(4)]
    run(process_batch(sources, "png", max_workers=2))
    assert 1 <= tracker.peak <= 2


def test_cancelling_a_batch_drops_pending_work(make_image, monkeypatch):
    earlier = run(process_batch([SourceUpload("kept.png", make_image(100, 100))], "png"))[0]
    kept_variants = earlier.variants

    tracker = _RenderTracker(0.2)
    monkeypatch.setattr(batch_module, "render", tracker)
    sources = [SourceUpload(f"{i}.png", make_image(100, 100)) for i in range(6)]

    async def cancel_midway():
        task = asyncio.ensure_future(process_batch(sources, "png", max_workers=2))
        await asyncio.sleep(0.1)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    started = time.monotonic()
    run(cancel_midway())
    elapsed = time.monotonic() - started

    # six sequential 0.2s renders on two workers would take at least 0.6s
    assert elapsed < 0.55
    assert tracker.started < len(sources)
    assert earlier.variants == kept_variants
    assert isinstance(earlier, ProcessingResult)

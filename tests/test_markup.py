"""Tests for srcset/sizes markup generation."""

from srcsetify.domain import Preset, ProcessingResult, RawDimensions, SourceMetadata, Variant
from srcsetify.markup import build_markup, build_srcset, markup_snippet, sizes_descriptor


def _result():
    variants = (
        Variant(320, 213, b"a", Preset("small-mobile", 320)),
        Variant(480, 320, b"b", Preset("mobile", 480)),
        Variant(1200, 800, b"c", RawDimensions(1200, 800)),
    )
    return ProcessingResult(
        original_name="photo",
        format="webp",
        variants=variants,
        sizes_attr=sizes_descriptor(1200),
        metadata=SourceMetadata(1200, 800, "jpeg"),
    )


def test_sizes_descriptor():
    assert sizes_descriptor(1200) == "(max-width: 1200px) 100vw, 1200px"


def test_build_markup_default_directory():
    markup = build_markup(_result())
    assert markup.srcset == (
        "images/photo-mob-sm.webp 320w, "
        "images/photo-mob.webp 480w, "
        "images/photo-desktop.webp 1200w"
    )
    assert markup.sizes == "(max-width: 1200px) 100vw, 1200px"


def test_blank_directory_uses_default():
    assert build_markup(_result(), "   ").srcset == build_markup(_result(), None).srcset


def test_custom_directory_and_trailing_slash():
    markup = build_markup(_result(), "https://cdn.example.com/uploads/")
    assert markup.srcset.startswith("https://cdn.example.com/uploads/photo-mob-sm.webp 320w, ")


def test_regenerating_is_idempotent_and_leaves_variants_alone():
    result = _result()
    before = result.variants
    first = build_markup(result, "a")
    build_markup(result, "b")
    assert build_markup(result, "a") == first
    assert result.variants == before
    assert build_markup(result, "b").sizes == first.sizes


def test_build_srcset_matches_result_markup():
    result = _result()
    assert build_srcset("photo", result.variants, "webp", "img") == build_markup(result, "img").srcset


def test_markup_snippet():
    snippet = markup_snippet(build_markup(_result()))
    assert snippet.startswith('srcset="images/photo-mob-sm.webp 320w')
    assert snippet.endswith('sizes="(max-width: 1200px) 100vw, 1200px"')

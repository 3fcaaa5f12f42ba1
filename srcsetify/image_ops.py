"""Image decoding, resizing and encoding.

This module wraps the Pillow operations behind the variant pipeline:
opening uploaded bytes once, computing proportional heights, resizing
without ever enlarging, and encoding into one of the three supported
output formats at a fixed quality policy.
"""

from __future__ import annotations

from io import BytesIO
from typing import Dict, Optional

from PIL import Image, UnidentifiedImageError  # type: ignore[import]

from . import config
from .domain import RawDimensions, SourceImage, Variant, VariantLabel
from .errors import DecodeError, EncodeError, InvalidSource

DEFAULT_FORMAT = "jpg"
QUALITY = 85
PNG_COMPRESS_LEVEL = 9

# Output token -> (Pillow format name, save options)
_ENCODERS: Dict[str, tuple] = {
    "jpg": ("JPEG", {"quality": QUALITY}),
    "webp": ("WEBP", {"quality": QUALITY}),
    "png": ("PNG", {"compress_level": PNG_COMPRESS_LEVEL}),
}

MIME_TYPES: Dict[str, str] = {
    "jpg": "image/jpeg",
    "webp": "image/webp",
    "png": "image/png",
}

SUPPORTED_FORMATS = tuple(_ENCODERS)


def resolve_format(token: Optional[str], strict: Optional[bool] = None) -> str:
    """Map a requested output format token to a supported extension.

    Tokens are case-sensitive. A missing token means the default. An
    unrecognised one falls back to ``jpg`` unless strict mode is on
    (``SRCSETIFY_STRICT_FORMAT``), in which case it is rejected.

    Raises:
        InvalidSource: In strict mode, for an unrecognised token.
    """
    if strict is None:
        strict = config.STRICT_FORMAT
    if not token:
        return DEFAULT_FORMAT
    if token in _ENCODERS:
        return token
    if strict:
        raise InvalidSource(
            f"Unsupported output format {token!r}; expected one of {', '.join(SUPPORTED_FORMATS)}"
        )
    return DEFAULT_FORMAT


def mime_type(output_format: str) -> str:
    return MIME_TYPES.get(output_format, MIME_TYPES[DEFAULT_FORMAT])


def _has_alpha(img: Image.Image) -> bool:
    return img.mode in ("RGBA", "LA", "PA") or "transparency" in img.info


def load_source(data: bytes, name: str = "image") -> SourceImage:
    """Decode raw image bytes once and capture their metadata.

    The decoded image is normalised to RGB, or RGBA when it carries
    transparency, so every later resize works on the same pixel layout.

    Raises:
        InvalidSource: If ``data`` is empty or the image has no pixels.
        DecodeError: If Pillow cannot parse the bytes.
    """
    if not data:
        raise InvalidSource("No image data provided", source=name)
    try:
        img = Image.open(BytesIO(data))
        source_format = (img.format or "").lower() or None
        img.load()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, SyntaxError, ValueError) as e:
        raise DecodeError(f"Cannot decode image: {e}", source=name) from e
    width, height = img.size
    if width <= 0 or height <= 0:
        raise InvalidSource(f"Image has invalid dimensions {width}x{height}", source=name)
    target_mode = "RGBA" if _has_alpha(img) else "RGB"
    if img.mode != target_mode:
        img = img.convert(target_mode)
    return SourceImage(name=name, data=data, width=width, height=height, format=source_format, image=img)


def scaled_height(natural_width: int, natural_height: int, width: int) -> int:
    """Height that keeps the aspect ratio at ``width``, rounded half up."""
    # Integer arithmetic avoids float error at exact .5 boundaries.
    return max(1, (2 * natural_height * width + natural_width) // (2 * natural_width))


def render(
    source: SourceImage,
    width: int,
    output_format: str,
    label: Optional[VariantLabel] = None,
) -> Variant:
    """Produce one variant of ``source`` at ``width``.

    When ``width`` equals the natural width the image is only re-encoded.
    Otherwise it is shrunk to exactly ``width`` by its proportional height.

    Args:
        source: Decoded source image from :func:`load_source`.
        width: Target width; must not exceed the natural width.
        output_format: One of ``jpg``, ``webp`` or ``png``.
        label: Preset the width came from; defaults to the raw dimensions.

    Raises:
        InvalidSource: If ``width`` would enlarge the image or is not positive.
        EncodeError: If Pillow fails to encode this width/format.
    """
    if width <= 0 or width > source.width:
        raise InvalidSource(
            f"Width {width} is outside 1..{source.width}; images are never enlarged",
            source=source.name,
        )
    if output_format not in _ENCODERS:
        raise EncodeError(f"Unsupported output format {output_format!r}", source.name, width, output_format)
    height = scaled_height(source.width, source.height, width)
    pil_format, options = _ENCODERS[output_format]
    try:
        img = source.image if source.image is not None else load_source(source.data, source.name).image
        # The source image is shared between concurrent renders; only
        # ever save a private copy of it.
        if width != source.width:
            img = img.resize((width, height), Image.LANCZOS)
        else:
            img = img.copy()
        if pil_format == "JPEG" and img.mode != "RGB":
            img = img.convert("RGB")
        buffer = BytesIO()
        img.save(buffer, format=pil_format, **options)
    except (OSError, ValueError, KeyError) as e:
        raise EncodeError(f"Failed to encode: {e}", source.name, width, output_format) from e
    return Variant(
        width=width,
        height=height,
        data=buffer.getvalue(),
        label=label if label is not None else RawDimensions(width, height),
    )

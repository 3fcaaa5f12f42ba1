"""Shared fixtures for the srcsetify tests.

Images are generated in memory with Pillow so tests need no fixture files.
"""

import io
import sys
from pathlib import Path

import pytest
from PIL import Image  # type: ignore

# Make ``main`` importable when running from a source checkout.
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))


def encode_image(width, height, fmt="PNG", mode="RGB", color=None):
    if color is None:
        color = (200, 80, 40, 128) if mode == "RGBA" else (200, 80, 40)
    img = Image.new(mode, (width, height), color=color)
    buf = io.BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture
def make_image():
    """Factory returning encoded image bytes of the requested size."""
    return encode_image


@pytest.fixture
def photo_bytes():
    return encode_image(1200, 800, fmt="JPEG")

"""SrcSetify: responsive image variants, srcset markup and zip export.

This package contains the pipeline behind the API in ``main.py``: width
resolution against the size presets, Pillow-based resizing and encoding,
filename suffixes, ``srcset``/``sizes`` markup, batch orchestration with a
selection model, and archive packaging. See individual modules for details.
"""

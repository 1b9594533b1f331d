"""Preview module for rendered output.

Components:
    export: Gamma-encoded PNG export of the RGBA render buffer (Pillow)

Example:
    >>> from src.jumbletracer.preview import save_png
    >>> from src.jumbletracer.core.progressive import ProgressiveRenderer
    >>>
    >>> renderer = ProgressiveRenderer(400, 225)
    >>> renderer.render(100)
    >>> save_png(renderer, "output.png")
"""

from src.jumbletracer.preview.export import (
    DEFAULT_GAMMA,
    buffer_to_uint8,
    save_png,
    save_png_from_buffer,
)

__all__ = [
    "DEFAULT_GAMMA",
    "buffer_to_uint8",
    "save_png",
    "save_png_from_buffer",
]

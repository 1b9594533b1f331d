"""Image export utilities for rendered images.

This module turns the integrator's linear RGBA float buffer into an 8-bit
PNG. Each channel is gamma encoded as ``c ** (1 / gamma)``, clamped to
[0, 1] and scaled by just under 256 so that 1.0 maps to 255 and every 8-bit
level covers an equal slice of the range.

The default gamma of 2 encodes with a square root, a cheap stand-in for
the sRGB curve.

Example:
    >>> from src.jumbletracer.preview.export import save_png
    >>> from src.jumbletracer.core.progressive import ProgressiveRenderer
    >>>
    >>> renderer = ProgressiveRenderer(400, 225)
    >>> renderer.render(100)
    >>> save_png(renderer, "output.png")
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import numpy as np
import numpy.typing as npt
from PIL import Image as PILImage

if TYPE_CHECKING:
    from src.jumbletracer.core.progressive import ProgressiveRenderer

logger = logging.getLogger(__name__)

DEFAULT_GAMMA = 2.0

# Largest float32 below 256
_BYTE_SCALE = np.nextafter(np.float32(256.0), np.float32(0.0))


def buffer_to_uint8(
    buffer: npt.NDArray[np.float32],
    width: int,
    height: int,
    *,
    gamma: float = DEFAULT_GAMMA,
) -> npt.NDArray[np.uint8]:
    """Convert a flat linear RGBA buffer into an 8-bit (height, width, 4) image.

    Args:
        buffer: Row-major RGBA floats, top row first, ``width * height * 4``
            values.
        width: Image width in pixels.
        height: Image height in pixels.
        gamma: Gamma used for encoding. Alpha is not gamma encoded.

    Returns:
        Array of shape (height, width, 4) with dtype uint8.

    Raises:
        ValueError: If the buffer size does not match the dimensions or
            gamma is not positive.
    """
    if buffer.size != width * height * 4:
        raise ValueError(
            f"Buffer has {buffer.size} values, expected {width * height * 4} "
            f"for a {width}x{height} RGBA image"
        )
    if not gamma > 0.0:
        raise ValueError(f"Gamma must be positive, got {gamma}")

    image = np.asarray(buffer, dtype=np.float32).reshape(height, width, 4)
    # NaN pixels encode as black rather than poisoning the cast
    image = np.nan_to_num(image, nan=0.0, posinf=1.0, neginf=0.0)
    image = np.clip(image, 0.0, 1.0)
    rgb = np.power(image[..., :3], 1.0 / gamma)
    encoded = np.concatenate((rgb, image[..., 3:]), axis=2)
    return (encoded * _BYTE_SCALE).astype(np.uint8)


def save_png_from_buffer(
    buffer: npt.NDArray[np.float32],
    width: int,
    height: int,
    filepath: str,
    *,
    gamma: float = DEFAULT_GAMMA,
) -> None:
    """Write a flat linear RGBA buffer to an 8-bit RGBA PNG file."""
    image_uint8 = buffer_to_uint8(buffer, width, height, gamma=gamma)
    pil_image = PILImage.fromarray(image_uint8)
    pil_image.save(filepath)
    logger.info("Saved %dx%d image to %s", width, height, filepath)


def save_png(
    renderer: ProgressiveRenderer,
    filepath: str,
    *,
    gamma: float = DEFAULT_GAMMA,
) -> None:
    """Save the renderer's accumulated image as a PNG file.

    Example:
        >>> renderer = ProgressiveRenderer(400, 225)
        >>> renderer.render(100)
        >>> save_png(renderer, "output.png", gamma=2.2)
    """
    save_png_from_buffer(
        renderer.get_image_buffer(), renderer.width, renderer.height, filepath, gamma=gamma
    )

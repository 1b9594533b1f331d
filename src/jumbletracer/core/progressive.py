"""Progressive renderer for iterative sample accumulation.

This module provides a convenient wrapper around the core integrator that supports:
- Progressive rendering that refines over time
- Batch rendering (multiple SPP in one call)
- Progress callbacks or a generator for UI updates
- Easy reset and re-render functionality

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from src.jumbletracer.core.progressive import ProgressiveRenderer
    >>> from src.jumbletracer.scene.demo import create_demo_scene
    >>> from src.jumbletracer.camera.thin_lens import setup_camera
    >>>
    >>> scene, camera = create_demo_scene()
    >>> setup_camera(camera)
    >>>
    >>> renderer = ProgressiveRenderer(camera.image_width, camera.image_height)
    >>> stats = renderer.render(100, batch_size=10)
    >>> buffer = renderer.get_image_buffer()
"""

import logging
from collections.abc import Callable, Generator

import numpy as np
import numpy.typing as npt

from src.jumbletracer.core.integrator import (
    MAX_DEPTH,
    RenderStats,
    clear_render_target,
    get_image_buffer,
    get_image_numpy,
    get_total_samples,
    render_image,
    setup_render_target,
)

logger = logging.getLogger(__name__)

# Type alias for progress callback
# Callback receives (current_samples, total_target_samples)
ProgressCallback = Callable[[int, int], None]


class ProgressiveRenderer:
    """A progressive renderer that accumulates samples over time.

    The renderer keeps its own width/height and delegates to the global
    integrator buffers (which are Taichi fields).

    Attributes:
        width: Image width in pixels.
        height: Image height in pixels.
        max_depth: Bounce budget for each camera ray.
    """

    def __init__(self, width: int, height: int, max_depth: int = MAX_DEPTH) -> None:
        """Initialize the progressive renderer.

        Raises:
            ValueError: If dimensions are outside the supported range.
        """
        self._width = width
        self._height = height
        self.max_depth = max_depth
        setup_render_target(width, height)

    @property
    def width(self) -> int:
        return self._width

    @property
    def height(self) -> int:
        return self._height

    @property
    def sample_count(self) -> int:
        """Get the current number of accumulated samples per pixel."""
        return get_total_samples()

    def reset(self) -> None:
        """Clear the accumulator without changing the image dimensions."""
        clear_render_target()

    def resize(self, width: int, height: int) -> None:
        """Resize the render target and reset accumulator.

        Raises:
            ValueError: If dimensions are outside the supported range.
        """
        self._width = width
        self._height = height
        setup_render_target(width, height)

    def render(
        self,
        num_samples: int = 1,
        batch_size: int = 1,
        callback: ProgressCallback | None = None,
    ) -> RenderStats | None:
        """Render samples progressively with optional progress callback.

        Accumulates the specified number of samples into the existing buffer.
        Can be called multiple times to continue refining the image.

        Args:
            num_samples: Total number of samples to add.
            batch_size: Number of samples to render before each callback.
            callback: Optional callback function called after each batch.
                Receives (current_total_samples, target_total_samples).

        Returns:
            Statistics for the whole call (elapsed time and non-finite
            samples summed over batches), or None if nothing was rendered.
        """
        stats = None
        for stats, target in self._render_batches(num_samples, batch_size):
            if callback is not None:
                callback(stats.samples_per_pixel, target)
        return stats

    def render_progressive(
        self,
        num_samples: int = 1,
        batch_size: int = 1,
    ) -> Generator[tuple[int, int], None, None]:
        """Render samples progressively, yielding progress after each batch.

        Yields:
            Tuple of (current_total_samples, target_total_samples).

        Example:
            >>> for current, target in renderer.render_progressive(100, batch_size=10):
            ...     print(f"Progress: {current}/{target} samples")
        """
        for stats, target in self._render_batches(num_samples, batch_size):
            yield (stats.samples_per_pixel, target)

    def _render_batches(
        self, num_samples: int, batch_size: int
    ) -> Generator[tuple[RenderStats, int], None, None]:
        if num_samples <= 0:
            return
        batch_size = max(1, batch_size)

        target = self.sample_count + num_samples
        remaining = num_samples
        elapsed = 0.0
        nonfinite = 0
        negative = 0
        while remaining > 0:
            batch = min(batch_size, remaining)
            stats = render_image(batch, self.max_depth)
            remaining -= batch
            elapsed += stats.elapsed_seconds
            nonfinite += stats.nonfinite_samples
            negative += stats.negative_samples
            stats.elapsed_seconds = elapsed
            stats.nonfinite_samples = nonfinite
            stats.negative_samples = negative
            logger.debug("Progress: %d/%d samples", stats.samples_per_pixel, target)
            yield stats, target

    def get_image_numpy(self, gamma: float = 1.0) -> npt.NDArray[np.float32]:
        """Get the rendered image as a (height, width, 3) NumPy array.

        Args:
            gamma: Gamma correction value. Default 1.0 leaves the linear,
                unclamped values untouched; other values clamp to [0, 1]
                first.
        """
        image = get_image_numpy()
        if gamma != 1.0:
            image = np.power(np.clip(image, 0.0, 1.0), 1.0 / gamma)
        return image

    def get_image_buffer(self) -> npt.NDArray[np.float32]:
        """Get the flat row-major RGBA float32 buffer, top row first."""
        return get_image_buffer()

    def save_image(self, filepath: str, gamma: float = 2.0) -> None:
        """Save the rendered image to a PNG file.

        Args:
            filepath: Path to save the image (e.g., "output.png").
            gamma: Gamma correction value. Default 2.0 (square root).
        """
        from src.jumbletracer.preview.export import save_png

        save_png(self, filepath, gamma=gamma)

    def __repr__(self) -> str:
        return (
            f"ProgressiveRenderer(width={self.width}, height={self.height}, "
            f"samples={self.sample_count})"
        )

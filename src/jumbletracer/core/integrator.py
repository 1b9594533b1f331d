"""Radiance integrator and render loop.

This module implements ``ray_color``: follow a camera ray through the scene,
letting each hit material either attenuate and redirect it or absorb it,
until it escapes to the sky or runs out of bounces.

    ray_color(ray, depth):
        depth <= 0          -> black
        miss                -> sky gradient
        hit, absorbed       -> black
        hit, attenuated     -> attenuation * ray_color(scattered, depth - 1)

Taichi kernels cannot recurse, so the recursion is unrolled into a loop that
carries the product of attenuations (the throughput). The result is the same
as the recursive form.

The sky is a vertical gradient from white (straight down) to sky blue
(straight up). There are no other light sources.

The render loop runs every pixel in parallel. Pixel (i, j) is sampled at
``pct_x = i / (width - 1)``, ``pct_y = j / (height - 1)`` with j = 0 at the
bottom, and successive render calls keep a running average per pixel.
Colors are not clamped; samples that come out non-finite are counted in the
returned RenderStats and reported as a warning, never silently replaced.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from src.jumbletracer.core.integrator import render_image, setup_render_target
    >>> from src.jumbletracer.scene.demo import create_demo_scene
    >>> from src.jumbletracer.camera.thin_lens import setup_camera
    >>>
    >>> scene, camera = create_demo_scene()
    >>> setup_camera(camera)
    >>> setup_render_target(camera.image_width, camera.image_height)
    >>> stats = render_image(num_samples=100)
"""

import logging
import time
from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm

from src.jumbletracer.camera.thin_lens import get_ray
from src.jumbletracer.core.ray import T_MAX, T_MIN
from src.jumbletracer.materials.dielectric import scatter_dielectric_by_id
from src.jumbletracer.materials.lambertian import scatter_lambertian_by_id
from src.jumbletracer.materials.material import MaterialType
from src.jumbletracer.materials.metal import scatter_metal_by_id
from src.jumbletracer.scene.intersection import intersect_scene
from src.jumbletracer.scene.manager import get_material_type, get_material_type_index

logger = logging.getLogger(__name__)

# Type alias for 3D vectors
vec3 = tm.vec3

# =============================================================================
# Rendering Constants
# =============================================================================

# Maximum ray bounces (path length)
MAX_DEPTH = 50

# Sky gradient endpoints
SKY_BOTTOM_COLOR = vec3(1.0, 1.0, 1.0)
SKY_TOP_COLOR = vec3(0.5, 0.7, 1.0)


@dataclass
class RenderStats:
    """Summary of the accumulated image after a render call.

    Attributes:
        width: Image width in pixels.
        height: Image height in pixels.
        samples_per_pixel: Samples accumulated per pixel so far.
        color_min: Per-channel minimum over the finite pixel colors.
        color_max: Per-channel maximum over the finite pixel colors.
        nonfinite_samples: Samples in this call that produced NaN or inf.
        negative_samples: Finite samples in this call with a channel below zero.
        elapsed_seconds: Wall time of this call.
    """

    width: int
    height: int
    samples_per_pixel: int
    color_min: tuple[float, float, float]
    color_max: tuple[float, float, float]
    nonfinite_samples: int
    negative_samples: int
    elapsed_seconds: float


# =============================================================================
# Render Target (Image Buffer)
# =============================================================================

# Maximum supported image dimensions (preallocated to avoid kernel recompilation)
MAX_IMAGE_WIDTH = 2048
MAX_IMAGE_HEIGHT = 2048

# Image dimensions (actual active size)
_image_width = ti.field(dtype=ti.i32, shape=())
_image_height = ti.field(dtype=ti.i32, shape=())

# Color accumulation buffer (preallocated to max size), j = 0 is the bottom row
_color_buffer = ti.Vector.field(3, dtype=ti.f32, shape=(MAX_IMAGE_WIDTH, MAX_IMAGE_HEIGHT))

# Sample count per pixel (preallocated to max size)
_sample_count = ti.field(dtype=ti.i32, shape=(MAX_IMAGE_WIDTH, MAX_IMAGE_HEIGHT))

# Flag to track if render target is initialized
_render_target_initialized = ti.field(dtype=ti.i32, shape=())

# Non-finite and negative samples seen during the current render call
_nonfinite_samples = ti.field(dtype=ti.i32, shape=())
_negative_samples = ti.field(dtype=ti.i32, shape=())

# Single-slot result for host-side ray evaluation
_trace_result = ti.Vector.field(3, dtype=ti.f32, shape=())


def setup_render_target(width: int, height: int) -> None:
    """Initialize the render target buffers.

    Sets the active image dimensions and clears the buffers.

    Args:
        width: Image width in pixels, in [2, MAX_IMAGE_WIDTH].
        height: Image height in pixels, in [2, MAX_IMAGE_HEIGHT].

    Raises:
        ValueError: If dimensions are outside the supported range.
    """
    if width > MAX_IMAGE_WIDTH or height > MAX_IMAGE_HEIGHT:
        raise ValueError(
            f"Image dimensions ({width}x{height}) exceed maximum supported "
            f"({MAX_IMAGE_WIDTH}x{MAX_IMAGE_HEIGHT})"
        )
    if width < 2 or height < 2:
        raise ValueError(f"Image dimensions ({width}x{height}) must be at least 2x2")

    _image_width[None] = width
    _image_height[None] = height
    _render_target_initialized[None] = 1

    clear_render_target()


def clear_render_target() -> None:
    """Clear the render target buffers to zero."""
    _color_buffer.fill(0.0)
    _sample_count.fill(0)


def reset_render_target() -> None:
    """Forget the render target; rendering fails until it is set up again."""
    _render_target_initialized[None] = 0
    clear_render_target()


def get_image_dimensions() -> tuple[int, int]:
    """Get the current render target dimensions as (width, height)."""
    return int(_image_width[None]), int(_image_height[None])


def _check_render_target_initialized() -> None:
    if _render_target_initialized[None] == 0:
        raise RuntimeError("Render target not set up. Call setup_render_target() first.")


# =============================================================================
# Material Dispatch
# =============================================================================


@ti.func
def _scatter_material(
    material_id: ti.i32,
    incident_direction: vec3,
    normal: vec3,
    front_face: ti.i32,
):
    """Dispatch to the appropriate material scattering function.

    Args:
        material_id: The unified material ID.
        incident_direction: The incoming ray direction (any length).
        normal: The surface normal (unit length, facing the ray).
        front_face: 1 if hit front face, 0 if back face.

    Returns:
        A tuple of (scattered_direction, attenuation, did_scatter). Unknown
        material IDs absorb.
    """
    mat_type = get_material_type(material_id)
    type_index = get_material_type_index(material_id)

    # Default values
    scattered_direction = vec3(0.0, 0.0, 0.0)
    attenuation = vec3(0.0, 0.0, 0.0)
    did_scatter = 0

    if mat_type == int(MaterialType.LAMBERTIAN):
        scattered_direction, attenuation, did_scatter = scatter_lambertian_by_id(type_index, normal)

    elif mat_type == int(MaterialType.METAL):
        scattered_direction, attenuation, did_scatter = scatter_metal_by_id(
            type_index, incident_direction, normal
        )

    elif mat_type == int(MaterialType.DIELECTRIC):
        scattered_direction, attenuation, did_scatter = scatter_dielectric_by_id(
            type_index, incident_direction, normal, front_face
        )

    return scattered_direction, attenuation, did_scatter


# =============================================================================
# Radiance
# =============================================================================


@ti.func
def sky_color(direction: vec3) -> vec3:
    """Background radiance for a ray that escapes the scene."""
    unit_direction = tm.normalize(direction)
    t = 0.5 * (unit_direction.y + 1.0)
    return (1.0 - t) * SKY_BOTTOM_COLOR + t * SKY_TOP_COLOR


@ti.func
def ray_color(origin: vec3, direction: vec3, depth: ti.i32) -> vec3:
    """Radiance arriving along a ray, following at most ``depth`` hits.

    Args:
        origin: Ray origin in world space.
        direction: Ray direction (any length).
        depth: Remaining bounce budget. 0 or less returns black.

    Returns:
        The color carried back along the ray.
    """
    ray_origin = origin
    ray_direction = direction
    color = vec3(0.0, 0.0, 0.0)
    throughput = vec3(1.0, 1.0, 1.0)

    # Taichi doesn't support break in ti.func loops
    active = 1

    for _ in range(depth):
        if active == 1:
            rec = intersect_scene(ray_origin, ray_direction, T_MIN, T_MAX)

            if rec.hit == 0:
                color = throughput * sky_color(ray_direction)
                active = 0
            else:
                scattered_direction, attenuation, did_scatter = _scatter_material(
                    rec.material_id, ray_direction, rec.normal, rec.front_face
                )
                if did_scatter == 0:
                    active = 0
                else:
                    throughput *= attenuation
                    ray_origin = rec.point
                    ray_direction = scattered_direction

    # Still active here means the bounce budget ran out: black
    return color


@ti.func
def _is_finite(color: vec3) -> ti.i32:
    finite = 1
    for c in ti.static(range(3)):
        if tm.isnan(color[c]) or tm.isinf(color[c]):
            finite = 0
    return finite


@ti.func
def _is_negative(color: vec3) -> ti.i32:
    negative = 0
    for c in ti.static(range(3)):
        if color[c] < 0.0:
            negative = 1
    return negative


# =============================================================================
# Rendering Kernels
# =============================================================================


@ti.kernel
def _render_pass(width: ti.i32, height: ti.i32, num_samples: ti.i32, max_depth: ti.i32):
    """Add ``num_samples`` samples to every pixel's running average."""
    for i, j in ti.ndrange(width, height):
        pct_x = ti.cast(i, ti.f32) / ti.cast(width - 1, ti.f32)
        pct_y = ti.cast(j, ti.f32) / ti.cast(height - 1, ti.f32)

        color = vec3(0.0, 0.0, 0.0)
        for _ in range(num_samples):
            ray = get_ray(pct_x, pct_y)
            sample = ray_color(ray.origin, ray.direction, max_depth)
            if _is_finite(sample) == 0:
                ti.atomic_add(_nonfinite_samples[None], 1)
            elif _is_negative(sample) == 1:
                ti.atomic_add(_negative_samples[None], 1)
            color += sample
        color /= ti.cast(num_samples, ti.f32)

        # Running average: avg_n = avg_m + (batch_mean - avg_m) * k / n
        _sample_count[i, j] += num_samples
        n = _sample_count[i, j]
        weight = ti.cast(num_samples, ti.f32) / ti.cast(n, ti.f32)
        _color_buffer[i, j] += (color - _color_buffer[i, j]) * weight


@ti.kernel
def _trace_ray_kernel(
    ox: ti.f32,
    oy: ti.f32,
    oz: ti.f32,
    dx: ti.f32,
    dy: ti.f32,
    dz: ti.f32,
    depth: ti.i32,
):
    # Single-iteration outer loop keeps the bounce loop serial
    for _ in range(1):
        _trace_result[None] = ray_color(vec3(ox, oy, oz), vec3(dx, dy, dz), depth)


# =============================================================================
# Public Rendering API
# =============================================================================


def trace_ray(
    origin: Sequence[float],
    direction: Sequence[float],
    depth: int = MAX_DEPTH,
) -> tuple[float, float, float]:
    """Evaluate ``ray_color`` for one ray from Python.

    Uses the scene and materials currently uploaded; no render target or
    camera is needed.

    Returns:
        Tuple of (R, G, B) color values.
    """
    _trace_ray_kernel(
        origin[0], origin[1], origin[2], direction[0], direction[1], direction[2], depth
    )
    color = _trace_result[None]
    return (float(color[0]), float(color[1]), float(color[2]))


def render_image(num_samples: int = 1, max_depth: int = MAX_DEPTH) -> RenderStats:
    """Render ``num_samples`` samples per pixel into the accumulation buffer.

    Can be called multiple times to add more samples for convergence.

    Args:
        num_samples: Number of samples to add per pixel (at least 1).
        max_depth: Bounce budget for each camera ray.

    Returns:
        RenderStats for the accumulated image.

    Raises:
        RuntimeError: If render target has not been set up.
        ValueError: If num_samples is less than 1.
    """
    _check_render_target_initialized()
    if num_samples < 1:
        raise ValueError(f"num_samples must be at least 1, got {num_samples}")

    width, height = get_image_dimensions()
    _nonfinite_samples[None] = 0
    _negative_samples[None] = 0

    start = time.perf_counter()
    _render_pass(width, height, num_samples, max_depth)
    ti.sync()
    elapsed = time.perf_counter() - start
    logger.debug("Rendered %d spp at %dx%d in %.3fs", num_samples, width, height, elapsed)

    stats = _collect_stats(elapsed)
    if stats.nonfinite_samples > 0:
        logger.warning(
            "%d of %d samples were not finite",
            stats.nonfinite_samples,
            num_samples * width * height,
        )
    if stats.negative_samples > 0:
        logger.warning(
            "%d of %d samples had a negative channel",
            stats.negative_samples,
            num_samples * width * height,
        )
    return stats


def _collect_stats(elapsed: float) -> RenderStats:
    width, height = get_image_dimensions()
    image = get_image_numpy().reshape(-1, 3)
    finite = image[np.isfinite(image).all(axis=1)]
    if len(finite) == 0:
        nan = float("nan")
        color_min = color_max = (nan, nan, nan)
    else:
        color_min = tuple(float(x) for x in finite.min(axis=0))
        color_max = tuple(float(x) for x in finite.max(axis=0))
    return RenderStats(
        width=width,
        height=height,
        samples_per_pixel=get_total_samples(),
        color_min=color_min,
        color_max=color_max,
        nonfinite_samples=int(_nonfinite_samples[None]),
        negative_samples=int(_negative_samples[None]),
        elapsed_seconds=elapsed,
    )


def get_total_samples() -> int:
    """Get the number of samples accumulated per pixel so far.

    Raises:
        RuntimeError: If render target has not been set up.
    """
    _check_render_target_initialized()
    return int(_sample_count[0, 0])


def get_image_numpy() -> npt.NDArray[np.float32]:
    """Get the accumulated image as a (height, width, 3) float32 array.

    Rows run top to bottom. Values are linear and unclamped.

    Raises:
        RuntimeError: If render target has not been set up.
    """
    _check_render_target_initialized()

    width, height = get_image_dimensions()
    image = _color_buffer.to_numpy()[:width, :height, :]

    # (width, height, 3) with j = 0 at the bottom -> (height, width, 3) top first
    image = np.flipud(np.transpose(image, (1, 0, 2)))
    return np.ascontiguousarray(image, dtype=np.float32)


def get_image_buffer() -> npt.NDArray[np.float32]:
    """Get the accumulated image as a flat row-major RGBA float32 buffer.

    The buffer holds ``width * height * 4`` values, top row first, with
    alpha 1. No gamma or clamping is applied.

    Raises:
        RuntimeError: If render target has not been set up.
    """
    rgb = get_image_numpy()
    alpha = np.ones(rgb.shape[:2] + (1,), dtype=np.float32)
    return np.concatenate((rgb, alpha), axis=2).reshape(-1)

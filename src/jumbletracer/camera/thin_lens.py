"""Thin-lens camera model for perspective ray generation with depth of field.

This module implements the camera that generates primary rays for rendering.
The camera supports:
- Look-at positioning (look_from, look_at, view_up)
- Vertical field of view in degrees
- Arbitrary aspect ratios
- Depth of field through a circular lens of diameter ``aperture``
- Per-sample jitter whose extent is chosen by a SampleType

The camera builds an orthonormal basis (u, v, w) from the view parameters:
- w: points from look_at toward look_from (opposite view direction)
- u: points right in the image plane
- v: points up in the image plane

The viewport sits on the focus plane, ``focus_distance`` in front of the
camera, so every ray through a given viewport point converges there no
matter where on the lens it starts.

Image coordinates are normalized: ``pct_x`` runs 0..1 left to right and
``pct_y`` 0..1 bottom to top. Jitter is expressed in those units, scaled by
the pixel footprint of the chosen SampleType.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from src.jumbletracer.camera.thin_lens import ThinLensCamera, setup_camera, gen_rays
    >>>
    >>> camera = ThinLensCamera(image_height=225, aspect_ratio=16.0 / 9.0)
    >>> setup_camera(camera)
    >>> origins, directions = gen_rays(0.5, 0.5, 4)
"""

import math
from dataclasses import dataclass
from enum import IntEnum

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm

from src.jumbletracer.core.ray import Ray, make_ray, random_in_unit_disk, vec3

# =============================================================================
# Camera Data Structures
# =============================================================================


class SampleType(IntEnum):
    """How far a sample may be jittered away from the pixel position.

    PIXEL_RATIO: one pixel in normalized image units (1/width, 1/height),
        i.e. half a pixel either side.
    BLURRY: the pixel's extent in viewport units, a softer image.
    BLURRIER: twice BLURRY.
    """

    PIXEL_RATIO = 0
    BLURRY = 1
    BLURRIER = 2


@dataclass
class ThinLensCamera:
    """Configuration for a thin-lens (perspective, depth of field) camera.

    Attributes:
        image_height: Output image height in pixels.
        aspect_ratio: Width divided by height of the output image.
        aperture: Lens diameter. 0 gives a pinhole camera (everything sharp).
        sample_type: Jitter extent per sample.
        vfov: Vertical field of view in degrees.
        look_from: Camera position in world space (x, y, z).
        look_at: Point the camera is looking at in world space (x, y, z).
        view_up: Up direction vector for camera orientation.
        focus_distance: Distance to the plane of perfect focus. Defaults to
            |look_at - look_from|.
    """

    image_height: int = 225
    aspect_ratio: float = 16.0 / 9.0
    aperture: float = 0.0
    sample_type: SampleType = SampleType.PIXEL_RATIO
    vfov: float = 90.0
    look_from: tuple[float, float, float] = (0.0, 0.0, 0.0)
    look_at: tuple[float, float, float] = (0.0, 0.0, -1.0)
    view_up: tuple[float, float, float] = (0.0, 1.0, 0.0)
    focus_distance: float | None = None

    def __post_init__(self) -> None:
        if self.image_height < 2:
            raise ValueError(f"image_height must be at least 2, got {self.image_height}")
        if not self.aspect_ratio > 0.0:
            raise ValueError(f"aspect_ratio must be positive, got {self.aspect_ratio}")
        if self.image_width < 2:
            raise ValueError(f"Image width must be at least 2 pixels, got {self.image_width}")
        if not self.aperture >= 0.0:
            raise ValueError(f"aperture must be non-negative, got {self.aperture}")
        if not 0.0 < self.vfov < 180.0:
            raise ValueError(f"vfov must be in (0, 180) degrees, got {self.vfov}")
        self.sample_type = SampleType(self.sample_type)

        for name in ("look_from", "look_at", "view_up"):
            if not np.all(np.isfinite(np.asarray(getattr(self, name), dtype=np.float64))):
                raise ValueError(f"{name} must be finite, got {getattr(self, name)}")

        view = np.asarray(self.look_at, dtype=np.float64) - np.asarray(self.look_from, dtype=np.float64)
        if np.linalg.norm(view) == 0.0:
            raise ValueError("look_from and look_at must be different points")
        if np.linalg.norm(np.cross(np.asarray(self.view_up, dtype=np.float64), view)) < 1e-12:
            raise ValueError("view_up must not be parallel to the viewing direction")
        if self.focus_distance is not None and not self.focus_distance > 0.0:
            raise ValueError(f"focus_distance must be positive, got {self.focus_distance}")

    @property
    def image_width(self) -> int:
        return int(self.aspect_ratio * self.image_height)

    def get_focus_distance(self) -> float:
        if self.focus_distance is not None:
            return float(self.focus_distance)
        return float(np.linalg.norm(np.subtract(self.look_at, self.look_from)))


def get_pixel_footprint(
    sample_type: SampleType,
    image_width: int,
    image_height: int,
    viewport_width: float,
    viewport_height: float,
) -> tuple[float, float]:
    """Compute the jitter scale for a sampling mode in normalized image units."""
    if sample_type == SampleType.PIXEL_RATIO:
        return 1.0 / image_width, 1.0 / image_height
    scale = 2.0 if sample_type == SampleType.BLURRIER else 1.0
    return scale * viewport_width / image_width, scale * viewport_height / image_height


# =============================================================================
# Taichi Fields for Camera State (GPU-accessible)
# =============================================================================

# Camera origin (position)
_camera_origin = ti.Vector.field(3, dtype=ti.f32, shape=())

# Orthonormal basis vectors
_camera_u = ti.Vector.field(3, dtype=ti.f32, shape=())  # Right
_camera_v = ti.Vector.field(3, dtype=ti.f32, shape=())  # Up
_camera_w = ti.Vector.field(3, dtype=ti.f32, shape=())  # Backward (opposite view)

# Viewport vectors on the focus plane
_viewport_right = ti.Vector.field(3, dtype=ti.f32, shape=())  # Full width
_viewport_up = ti.Vector.field(3, dtype=ti.f32, shape=())  # Full height
_viewport_botleft = ti.Vector.field(3, dtype=ti.f32, shape=())  # Bottom-left corner

_lens_radius = ti.field(dtype=ti.f32, shape=())
_pixel_footprint = ti.Vector.field(2, dtype=ti.f32, shape=())

# Batch buffer for host-side ray generation
MAX_RAY_BATCH = 4096
_batch_origins = ti.Vector.field(3, dtype=ti.f32, shape=MAX_RAY_BATCH)
_batch_directions = ti.Vector.field(3, dtype=ti.f32, shape=MAX_RAY_BATCH)


# =============================================================================
# Camera Setup (Python-side, called once per camera configuration)
# =============================================================================


def setup_camera(camera: ThinLensCamera) -> None:
    """Initialize camera state from configuration.

    Computes the camera's orthonormal basis (u, v, w), the viewport on the
    focus plane, the lens radius and the pixel footprint, and uploads them.
    This must be called before rendering.

    Args:
        camera: Camera configuration with position, orientation, FOV and lens.
    """
    theta = math.radians(camera.vfov)
    focus = camera.get_focus_distance()

    viewport_height = 2.0 * focus * math.tan(theta / 2.0)
    viewport_width = camera.aspect_ratio * viewport_height

    # Build orthonormal basis using NumPy (Python-side computation)
    look_from = np.array(camera.look_from, dtype=np.float64)
    look_at = np.array(camera.look_at, dtype=np.float64)
    view_up = np.array(camera.view_up, dtype=np.float64)

    # w points from look_at toward look_from (backward)
    w = look_from - look_at
    w = w / np.linalg.norm(w)

    # u points right (perpendicular to w and view_up)
    u = np.cross(view_up, w)
    u = u / np.linalg.norm(u)

    # v points up in the camera's frame
    v = np.cross(w, u)

    right = viewport_width * u
    up = viewport_height * v
    botleft = look_from - right / 2.0 - up / 2.0 - focus * w

    _camera_origin[None] = look_from.tolist()
    _camera_u[None] = u.tolist()
    _camera_v[None] = v.tolist()
    _camera_w[None] = w.tolist()
    _viewport_right[None] = right.tolist()
    _viewport_up[None] = up.tolist()
    _viewport_botleft[None] = botleft.tolist()
    _lens_radius[None] = camera.aperture / 2.0
    _pixel_footprint[None] = list(
        get_pixel_footprint(
            camera.sample_type,
            camera.image_width,
            camera.image_height,
            viewport_width,
            viewport_height,
        )
    )


# =============================================================================
# Ray Generation (Taichi-compatible, GPU-callable)
# =============================================================================


@ti.func
def get_ray_exact(pct_x: ti.f32, pct_y: ti.f32, lens_offset: vec3) -> Ray:
    """Generate the ray through (pct_x, pct_y) from a given lens offset.

    Args:
        pct_x: Horizontal coordinate, 0 = left edge, 1 = right edge.
        pct_y: Vertical coordinate, 0 = bottom edge, 1 = top edge.
        lens_offset: World-space offset of the ray origin on the lens.

    Returns:
        A Ray from the lens point toward the viewport point, unit direction.
    """
    target = (
        _viewport_botleft[None] + pct_x * _viewport_right[None] + pct_y * _viewport_up[None]
    )
    origin = _camera_origin[None] + lens_offset
    return make_ray(origin, tm.normalize(target - origin))


@ti.func
def get_ray(pct_x: ti.f32, pct_y: ti.f32) -> Ray:
    """Sample one camera ray for normalized image coordinates.

    The origin is drawn from the lens disk and the viewport point is
    jittered uniformly within [-0.5, 0.5) times the pixel footprint on each
    axis. This function is designed to be called from within Taichi kernels.

    Args:
        pct_x: Horizontal coordinate in [0, 1] (left to right).
        pct_y: Vertical coordinate in [0, 1] (bottom to top).

    Returns:
        A sampled Ray with unit direction.
    """
    rd = _lens_radius[None] * random_in_unit_disk()
    offset = _camera_u[None] * rd.x + _camera_v[None] * rd.y

    footprint = _pixel_footprint[None]
    jitter_x = (ti.random(ti.f32) - 0.5) * footprint[0]
    jitter_y = (ti.random(ti.f32) - 0.5) * footprint[1]

    return get_ray_exact(pct_x + jitter_x, pct_y + jitter_y, offset)


@ti.kernel
def _gen_rays_kernel(pct_x: ti.f32, pct_y: ti.f32, n: ti.i32):
    for k in range(n):
        ray = get_ray(pct_x, pct_y)
        _batch_origins[k] = ray.origin
        _batch_directions[k] = ray.direction


def gen_rays(
    pct_x: float, pct_y: float, n: int
) -> tuple[npt.NDArray[np.float32], npt.NDArray[np.float32]]:
    """Sample ``n`` camera rays for one pixel position from Python.

    Args:
        pct_x: Horizontal coordinate in [0, 1].
        pct_y: Vertical coordinate in [0, 1].
        n: Number of rays, at most MAX_RAY_BATCH.

    Returns:
        Tuple of (origins, directions), each a float32 array of shape (n, 3).

    Raises:
        ValueError: If n is not in [0, MAX_RAY_BATCH].
    """
    if not 0 <= n <= MAX_RAY_BATCH:
        raise ValueError(f"Ray count must be in [0, {MAX_RAY_BATCH}], got {n}")
    _gen_rays_kernel(pct_x, pct_y, n)
    return _batch_origins.to_numpy()[:n], _batch_directions.to_numpy()[:n]


# =============================================================================
# Utility Functions
# =============================================================================


def get_camera_info() -> dict[str, tuple[float, ...] | float]:
    """Get current camera state for debugging.

    Returns:
        Dictionary with origin, u, v, w, right, up, botleft (3-tuples),
        lens_radius (float) and pixel_footprint (2-tuple).
    """

    def _vec(field) -> tuple[float, ...]:
        return tuple(float(x) for x in field.to_numpy())

    return {
        "origin": _vec(_camera_origin),
        "u": _vec(_camera_u),
        "v": _vec(_camera_v),
        "w": _vec(_camera_w),
        "right": _vec(_viewport_right),
        "up": _vec(_viewport_up),
        "botleft": _vec(_viewport_botleft),
        "lens_radius": float(_lens_radius[None]),
        "pixel_footprint": _vec(_pixel_footprint),
    }

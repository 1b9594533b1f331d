"""Core rendering module.

This module contains the fundamental building blocks for ray tracing:

Components:
    transform: Affine matrices, coordinate systems and the dual basis
        used to carry normals between frames
    ray: Ray data structure, ray parameter range and vector utilities
    integrator: Radiance integration (ray_color) and the render loop
    progressive: Batched rendering with progress reporting

All compute-intensive operations use Taichi kernels; the host-side transform
classes use NumPy and run once at scene build time.
"""

from .ray import (
    T_MAX,
    T_MIN,
    Ray,
    in_range,
    length_squared,
    make_ray,
    near_zero,
    random_in_unit_disk,
    random_in_unit_sphere,
    random_unit_vector,
    ray_at,
    reflect,
    refract,
    schlick_reflectance,
    transform_ray,
    vec3,
)
from .transform import (
    AffineMatrix,
    Axis,
    CoordinateSystem,
    dual_basis,
    transform_normal,
    transform_point,
    transform_vector,
)

# Note: integrator and progressive are NOT imported here to avoid circular imports.
# Import directly from src.jumbletracer.core.integrator or
# src.jumbletracer.core.progressive when needed.

__all__ = [
    "AffineMatrix",
    "Axis",
    "CoordinateSystem",
    "dual_basis",
    "transform_point",
    "transform_vector",
    "transform_normal",
    "Ray",
    "ray_at",
    "make_ray",
    "transform_ray",
    "in_range",
    "T_MIN",
    "T_MAX",
    "vec3",
    "length_squared",
    "reflect",
    "refract",
    "schlick_reflectance",
    "near_zero",
    "random_in_unit_sphere",
    "random_unit_vector",
    "random_in_unit_disk",
]

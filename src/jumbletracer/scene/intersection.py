"""Scene-level ray intersection over flattened sphere instances.

The scene tree is flattened on the host (see ``Jumble.instances``) and each
sphere occurrence is stored here with the composition of every coordinate
system above it:

    to_local:        world -> sphere frame (4x4), applied to incoming rays
    to_world:        sphere frame -> world (4x4), applied to hit points
    normal_to_world: product of dual bases (3x3), applied to hit normals

Ray directions are carried into the sphere frame without renormalizing, so
the ray parameter t means the same thing in every frame. Testing instances in
depth-first order with strict-closer replacement therefore gives the same
closest hit, and the same tie-breaking, as the recursive tree walk.

The scene stores instances in Taichi fields for GPU-efficient access. Each
instance has an associated material ID for shading.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from src.jumbletracer.scene.intersection import add_sphere, clear_scene, cast_ray
    >>> clear_scene()
    >>> add_sphere((0.0, 0.0, -1.0), 0.5, material_id=0)
    >>> cast_ray((0.0, 0.0, 0.0), (0.0, 0.0, -1.0))["t"]
    0.5
"""

from collections.abc import Sequence
from typing import Any

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm

from src.jumbletracer.core.ray import T_MAX, T_MIN
from src.jumbletracer.core.transform import transform_normal, transform_point, transform_vector
from src.jumbletracer.geometry.sphere import Sphere, hit_sphere

# Type alias for 3D vectors using Taichi's math module
vec3 = tm.vec3


@ti.dataclass
class SceneHitRecord:
    """Record of a ray-scene intersection with material information.

    Attributes:
        hit: Whether the ray intersected any instance (1 if hit, 0 if miss).
        t: The parameter value along the world ray. Only valid if hit == 1.
        point: The world-space hit point. Only valid if hit == 1.
        normal: The world-space unit normal, facing against the ray.
            Only valid if hit == 1.
        front_face: Whether the ray hit the front face (1) or back face (0).
            Only valid if hit == 1.
        material_id: The material ID of the hit instance.
            Only valid if hit == 1. -1 indicates no hit.
    """

    hit: ti.i32
    t: ti.f32
    point: vec3
    normal: vec3
    front_face: ti.i32
    material_id: ti.i32


# Maximum number of sphere instances supported in the scene
MAX_SPHERES = 1024

# Instance storage: Structure of Arrays layout for GPU efficiency
sphere_centers = ti.Vector.field(3, dtype=ti.f32, shape=MAX_SPHERES)
sphere_radii = ti.field(dtype=ti.f32, shape=MAX_SPHERES)
sphere_material_ids = ti.field(dtype=ti.i32, shape=MAX_SPHERES)
sphere_to_local = ti.Matrix.field(4, 4, dtype=ti.f32, shape=MAX_SPHERES)
sphere_to_world = ti.Matrix.field(4, 4, dtype=ti.f32, shape=MAX_SPHERES)
sphere_normal_to_world = ti.Matrix.field(3, 3, dtype=ti.f32, shape=MAX_SPHERES)
num_spheres = ti.field(dtype=ti.i32, shape=())

# Single-slot result for host-side queries
_query_result = SceneHitRecord.field(shape=())


def clear_scene() -> None:
    """Clear all sphere instances from the scene.

    Resets the instance count to zero. The actual field data is not
    cleared but will be overwritten when new instances are added.
    """
    num_spheres[None] = 0


def add_sphere_instance(
    center: Sequence[float],
    radius: float,
    material_id: int,
    to_local: npt.ArrayLike | None = None,
    to_world: npt.ArrayLike | None = None,
    normal_to_world: npt.ArrayLike | None = None,
) -> int:
    """Add one positioned sphere occurrence to the scene.

    Args:
        center: Sphere center in its own frame.
        radius: Sphere radius (negative flips the outward normal).
        material_id: The unified material ID of the sphere.
        to_local: 4x4 world -> sphere-frame matrix. Defaults to identity.
        to_world: 4x4 sphere-frame -> world matrix. Defaults to identity.
        normal_to_world: 3x3 dual-basis matrix. Defaults to identity.

    Returns:
        The index of the added instance.

    Raises:
        RuntimeError: If the maximum number of spheres is exceeded.
        ValueError: If the radius is zero or a matrix has the wrong shape.
    """
    if radius == 0.0:
        raise ValueError("Sphere radius must be non-zero")
    to_local = _as_matrix(to_local, 4, "to_local")
    to_world = _as_matrix(to_world, 4, "to_world")
    normal_to_world = _as_matrix(normal_to_world, 3, "normal_to_world")

    idx = num_spheres[None]
    if idx >= MAX_SPHERES:
        raise RuntimeError(f"Maximum number of spheres ({MAX_SPHERES}) exceeded")
    sphere_centers[idx] = vec3(center[0], center[1], center[2])
    sphere_radii[idx] = radius
    sphere_material_ids[idx] = material_id
    sphere_to_local[idx] = ti.Matrix(to_local.tolist())
    sphere_to_world[idx] = ti.Matrix(to_world.tolist())
    sphere_normal_to_world[idx] = ti.Matrix(normal_to_world.tolist())
    num_spheres[None] = idx + 1
    return idx


def add_sphere(center: Sequence[float], radius: float, material_id: int = 0) -> int:
    """Add a sphere placed directly in world space."""
    return add_sphere_instance(center, radius, material_id)


def _as_matrix(value: npt.ArrayLike | None, size: int, name: str) -> npt.NDArray[np.float64]:
    if value is None:
        return np.identity(size)
    matrix = np.asarray(value, dtype=np.float64)
    if matrix.shape != (size, size):
        raise ValueError(f"{name} must be {size}x{size}, got shape {matrix.shape}")
    return matrix


def get_sphere_count() -> int:
    """Get the number of sphere instances in the scene."""
    return int(num_spheres[None])


@ti.func
def _make_miss_record() -> SceneHitRecord:
    return SceneHitRecord(
        hit=0,
        t=0.0,
        point=vec3(0.0, 0.0, 0.0),
        normal=vec3(0.0, 0.0, 0.0),
        front_face=0,
        material_id=-1,
    )


@ti.func
def intersect_scene(
    ray_origin: vec3,
    ray_direction: vec3,
    t_min: ti.f32,
    t_max: ti.f32,
) -> SceneHitRecord:
    """Find the closest instance hit with t in [t_min, t_max).

    Each instance sees the ray in its own frame; the running closest t is
    passed as the upper bound so only strictly closer hits replace the result.

    Args:
        ray_origin: The world-space ray origin.
        ray_direction: The world-space ray direction (any length).
        t_min: Minimum t value to consider a valid hit (inclusive).
        t_max: Maximum t value to consider a valid hit (exclusive).

    Returns:
        A SceneHitRecord containing the closest intersection, or a miss
        record if no intersection was found.
    """
    closest_t = t_max
    result = _make_miss_record()

    n_spheres = num_spheres[None]
    for i in range(n_spheres):
        to_local = sphere_to_local[i]
        local_origin = transform_point(to_local, ray_origin)
        local_direction = transform_vector(to_local, ray_direction)
        sphere = Sphere(center=sphere_centers[i], radius=sphere_radii[i])
        rec = hit_sphere(local_origin, local_direction, sphere, t_min, closest_t)
        if rec.hit == 1:
            closest_t = rec.t
            result = SceneHitRecord(
                hit=1,
                t=rec.t,
                point=transform_point(sphere_to_world[i], rec.point),
                normal=transform_normal(sphere_normal_to_world[i], rec.normal),
                front_face=rec.front_face,
                material_id=sphere_material_ids[i],
            )

    return result


@ti.kernel
def _cast_ray_kernel(
    ox: ti.f32,
    oy: ti.f32,
    oz: ti.f32,
    dx: ti.f32,
    dy: ti.f32,
    dz: ti.f32,
    t_min: ti.f32,
    t_max: ti.f32,
):
    # Single-iteration outer loop keeps the instance loop serial
    for _ in range(1):
        _query_result[None] = intersect_scene(vec3(ox, oy, oz), vec3(dx, dy, dz), t_min, t_max)


def cast_ray(
    origin: Sequence[float],
    direction: Sequence[float],
    t_min: float = T_MIN,
    t_max: float = T_MAX,
) -> dict[str, Any]:
    """Intersect one world-space ray with the uploaded scene from Python.

    Returns:
        Dictionary with hit (bool), t, point, normal, front_face (bool) and
        material_id.
    """
    _cast_ray_kernel(
        origin[0], origin[1], origin[2], direction[0], direction[1], direction[2], t_min, t_max
    )
    rec = _query_result[None]
    return {
        "hit": bool(rec.hit),
        "t": float(rec.t),
        "point": (float(rec.point[0]), float(rec.point[1]), float(rec.point[2])),
        "normal": (float(rec.normal[0]), float(rec.normal[1]), float(rec.normal[2])),
        "front_face": bool(rec.front_face),
        "material_id": int(rec.material_id),
    }

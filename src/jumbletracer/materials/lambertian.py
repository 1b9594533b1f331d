"""Lambertian (ideal diffuse) material implementation.

A Lambertian surface scatters every incoming ray; it never absorbs. The new
direction is the surface normal plus a uniformly random point on the unit
sphere, which distributes scattered rays proportionally to cos(theta) around
the normal. The attenuation is the albedo itself.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from src.jumbletracer.materials.lambertian import scatter_lambertian
    >>> # Use within a Taichi kernel:
    >>> # direction, attenuation, did_scatter = scatter_lambertian(albedo, normal)
"""

from dataclasses import dataclass

import taichi as ti
import taichi.math as tm

from src.jumbletracer.core.ray import near_zero, random_unit_vector
from src.jumbletracer.materials.material import (
    Color,
    Material,
    MaterialType,
    validate_albedo,
)

# Type alias for 3D vectors
vec3 = tm.vec3


@dataclass(frozen=True, eq=False)
class Lambertian(Material):
    """Lambertian (ideal diffuse) material.

    Attributes:
        albedo: The diffuse reflectance color (RGB, each component in [0, 1]).
    """

    albedo: Color
    material_type = MaterialType.LAMBERTIAN

    def __post_init__(self) -> None:
        object.__setattr__(self, "albedo", validate_albedo(self.albedo))

    def to_dict(self) -> dict:
        return {"type": "lambertian", "albedo": list(self.albedo)}


@ti.func
def scatter_lambertian(
    albedo: vec3,
    normal: vec3,
):
    """Sample a scattered ray direction for a Lambertian material.

    Args:
        albedo: The diffuse reflectance color (RGB, each component in [0, 1]).
        normal: The unit surface normal facing the incoming ray.

    Returns:
        A tuple of (scattered_direction, attenuation, did_scatter) where:
        - scattered_direction: normal + random unit vector, or the normal
          itself when that sum nearly vanishes.
        - attenuation: The albedo.
        - did_scatter: Always 1.
    """
    scattered_direction = normal + random_unit_vector()

    # The random point can nearly cancel the normal; never emit a zero direction
    if near_zero(scattered_direction):
        scattered_direction = normal

    return scattered_direction, albedo, 1


# Device registry: one albedo per registered Lambertian material
MAX_LAMBERTIAN_MATERIALS = 256

lambertian_albedos = ti.Vector.field(3, dtype=ti.f32, shape=MAX_LAMBERTIAN_MATERIALS)
num_lambertian_materials = ti.field(dtype=ti.i32, shape=())


def clear_lambertian_materials() -> None:
    num_lambertian_materials[None] = 0


def add_lambertian_material(albedo: Color) -> int:
    """Store an albedo in the registry and return its index.

    Raises:
        RuntimeError: If the registry is full.
        ValueError: If any albedo component is outside [0, 1].
    """
    albedo = validate_albedo(albedo)
    idx = num_lambertian_materials[None]
    if idx >= MAX_LAMBERTIAN_MATERIALS:
        raise RuntimeError(
            f"Maximum number of Lambertian materials ({MAX_LAMBERTIAN_MATERIALS}) exceeded"
        )
    lambertian_albedos[idx] = vec3(*albedo)
    num_lambertian_materials[None] = idx + 1
    return idx


def get_lambertian_material_count() -> int:
    return int(num_lambertian_materials[None])


@ti.func
def scatter_lambertian_by_id(material_idx: ti.i32, normal: vec3):
    """scatter_lambertian with the albedo of a registered material."""
    return scatter_lambertian(lambertian_albedos[material_idx], normal)

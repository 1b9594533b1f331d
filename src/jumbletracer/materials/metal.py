"""Metal (specular reflective) material implementation.

This module implements specular reflection with optional fuzz. A perfect
metal (fuzz=0) is a mirror; larger fuzz perturbs the mirror direction by a
random point in a sphere of radius fuzz, which blurs reflections.

The reflection formula is:
    R = D - 2(D . N)N

where D is the unit incident direction and N the surface normal. If the
perturbed reflection no longer leaves the surface (R . N <= 0) the ray is
absorbed.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from src.jumbletracer.materials.metal import scatter_metal
    >>> # Use within a Taichi kernel:
    >>> # direction, attenuation, did_scatter = scatter_metal(
    >>> #     albedo, fuzz, incident_dir, normal
    >>> # )
"""

from dataclasses import dataclass

import taichi as ti
import taichi.math as tm

from src.jumbletracer.core.ray import random_in_unit_sphere, reflect
from src.jumbletracer.materials.material import (
    Color,
    Material,
    MaterialType,
    validate_albedo,
    validate_fuzz,
)

# Type alias for 3D vectors
vec3 = tm.vec3


@dataclass(frozen=True, eq=False)
class Metal(Material):
    """Metal (specular reflective) material.

    Attributes:
        albedo: The reflective color (RGB, each component in [0, 1]).
        fuzz: Perturbation radius in [0, 1]. 0 = perfect mirror.
    """

    albedo: Color
    fuzz: float = 0.0
    material_type = MaterialType.METAL

    def __post_init__(self) -> None:
        object.__setattr__(self, "albedo", validate_albedo(self.albedo))
        object.__setattr__(self, "fuzz", validate_fuzz(self.fuzz))

    def to_dict(self) -> dict:
        return {"type": "metal", "albedo": list(self.albedo), "fuzz": self.fuzz}


@ti.func
def scatter_metal(
    albedo: vec3,
    fuzz: ti.f32,
    incident_direction: vec3,
    normal: vec3,
):
    """Compute the scattered ray direction for a metal material.

    Args:
        albedo: The reflective color (RGB, each component in [0, 1]).
        fuzz: The perturbation radius in [0, 1].
        incident_direction: The incoming ray direction (any length).
        normal: The unit surface normal facing the incoming ray.

    Returns:
        A tuple of (scattered_direction, attenuation, did_scatter) where:
        - scattered_direction: The fuzzed reflection.
        - attenuation: The albedo.
        - did_scatter: 1 if the direction leaves the surface, 0 if the ray
          was absorbed.
    """
    reflected = reflect(tm.normalize(incident_direction), normal)
    scattered_direction = reflected + fuzz * random_in_unit_sphere()

    did_scatter = 0
    if tm.dot(scattered_direction, normal) > 0.0:
        did_scatter = 1

    return scattered_direction, albedo, did_scatter


# Device registry: albedo and fuzz per registered metal material
MAX_METAL_MATERIALS = 256

metal_albedos = ti.Vector.field(3, dtype=ti.f32, shape=MAX_METAL_MATERIALS)
metal_fuzz = ti.field(dtype=ti.f32, shape=MAX_METAL_MATERIALS)
num_metal_materials = ti.field(dtype=ti.i32, shape=())


def clear_metal_materials() -> None:
    num_metal_materials[None] = 0


def add_metal_material(albedo: Color, fuzz: float = 0.0) -> int:
    """Store a metal's albedo and fuzz in the registry and return its index.

    Raises:
        RuntimeError: If the registry is full.
        ValueError: If any albedo component or the fuzz is outside [0, 1].
    """
    albedo = validate_albedo(albedo)
    fuzz = validate_fuzz(fuzz)
    idx = num_metal_materials[None]
    if idx >= MAX_METAL_MATERIALS:
        raise RuntimeError(f"Maximum number of metal materials ({MAX_METAL_MATERIALS}) exceeded")
    metal_albedos[idx] = vec3(*albedo)
    metal_fuzz[idx] = fuzz
    num_metal_materials[None] = idx + 1
    return idx


def get_metal_material_count() -> int:
    return int(num_metal_materials[None])


@ti.func
def scatter_metal_by_id(material_idx: ti.i32, incident_direction: vec3, normal: vec3):
    """scatter_metal with the parameters of a registered material."""
    return scatter_metal(metal_albedos[material_idx], metal_fuzz[material_idx], incident_direction, normal)

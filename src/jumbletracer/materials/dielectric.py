"""Dielectric (glass/water) material implementation.

This module implements transparent materials that either reflect or refract
each incoming ray.

Key physics:
    - Snell's law for refraction: n1 * sin(theta1) = n2 * sin(theta2)
    - Schlick's approximation for Fresnel reflectance, with
      r0 = ((n1 - n2) / (n1 + n2))^2
    - Total internal reflection when (n1 / n2) * sin(theta1) > 1

Which side of the surface the ray arrives on decides the indices: on the
front face the ray leaves vacuum (1.0) and enters the material, on the back
face the reverse. Reflection is chosen on total internal reflection or with
the Schlick probability; either way the result is perturbed by the
material's fuzz and tinted by its albedo. Dielectrics never absorb.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from src.jumbletracer.materials.dielectric import scatter_dielectric
    >>> # Use within a Taichi kernel:
    >>> # direction, attenuation, did_scatter = scatter_dielectric(
    >>> #     albedo, fuzz, ior, incident_dir, normal, front_face
    >>> # )
"""

from dataclasses import dataclass

import taichi as ti
import taichi.math as tm

from src.jumbletracer.core.ray import (
    random_in_unit_sphere,
    reflect,
    refract,
    schlick_reflectance,
)
from src.jumbletracer.materials.material import (
    Color,
    Material,
    MaterialType,
    validate_albedo,
    validate_fuzz,
)

# Type alias for 3D vectors
vec3 = tm.vec3

# Refractive index of the medium outside every dielectric
VACUUM_INDEX = 1.0


@dataclass(frozen=True, eq=False)
class Dielectric(Material):
    """Dielectric (glass/water) material.

    Attributes:
        albedo: Transmission tint (RGB, each component in [0, 1]).
        fuzz: Perturbation radius in [0, 1] applied to both reflected and
            refracted directions.
        refractive_index: Index of refraction, at least 1.0. Common values:
            - Water: 1.33
            - Glass: 1.5
            - Diamond: 2.4
    """

    albedo: Color = (1.0, 1.0, 1.0)
    fuzz: float = 0.0
    refractive_index: float = 1.5
    material_type = MaterialType.DIELECTRIC

    def __post_init__(self) -> None:
        object.__setattr__(self, "albedo", validate_albedo(self.albedo))
        object.__setattr__(self, "fuzz", validate_fuzz(self.fuzz))
        object.__setattr__(self, "refractive_index", validate_refractive_index(self.refractive_index))

    def to_dict(self) -> dict:
        return {
            "type": "dielectric",
            "albedo": list(self.albedo),
            "fuzz": self.fuzz,
            "refractive_index": self.refractive_index,
        }


def validate_refractive_index(ior: float) -> float:
    """Check that a refractive index is physically meaningful (>= 1).

    Raises:
        ValueError: If ior is less than 1.0.
    """
    if not ior >= 1.0:
        raise ValueError(
            f"Index of refraction = {ior} is less than 1.0. "
            "IOR must be >= 1.0 for physically meaningful materials."
        )
    return float(ior)


@ti.func
def _indices(ior: ti.f32, front_face: ti.i32):
    """Return (src_eta, dst_eta) for a ray arriving on the given face."""
    src_eta = VACUUM_INDEX
    dst_eta = ior
    if front_face == 0:
        src_eta = ior
        dst_eta = VACUUM_INDEX
    return src_eta, dst_eta


@ti.func
def will_reflect(
    ior: ti.f32,
    incident_direction: vec3,
    normal: vec3,
    front_face: ti.i32,
) -> ti.i32:
    """Determine if total internal reflection will occur.

    Returns:
        1 if total internal reflection will occur, 0 otherwise.
    """
    src_eta, dst_eta = _indices(ior, front_face)
    cos_theta = tm.min(-tm.dot(normal, tm.normalize(incident_direction)), 1.0)
    sin_theta = tm.sqrt(1.0 - cos_theta * cos_theta)
    return 1 if (src_eta / dst_eta) * sin_theta > 1.0 else 0


@ti.func
def fresnel_reflectance(
    ior: ti.f32,
    incident_direction: vec3,
    normal: vec3,
    front_face: ti.i32,
) -> ti.f32:
    """Compute the Schlick reflectance for a ray hitting the surface.

    Returns:
        The Fresnel reflectance coefficient in [0, 1].
    """
    src_eta, dst_eta = _indices(ior, front_face)
    cos_theta = tm.min(-tm.dot(normal, tm.normalize(incident_direction)), 1.0)
    return schlick_reflectance(cos_theta, src_eta, dst_eta)


@ti.func
def scatter_dielectric(
    albedo: vec3,
    fuzz: ti.f32,
    ior: ti.f32,
    incident_direction: vec3,
    normal: vec3,
    front_face: ti.i32,
):
    """Compute the scattered ray direction for a dielectric material.

    Args:
        albedo: Transmission tint (RGB).
        fuzz: Perturbation radius in [0, 1].
        ior: Index of refraction of the material.
        incident_direction: The incoming ray direction (any length).
        normal: The unit surface normal facing the incoming ray.
        front_face: 1 if the ray hits the outside of the surface,
            0 if it travels inside the material.

    Returns:
        A tuple of (scattered_direction, attenuation, did_scatter) where
        did_scatter is always 1.
    """
    unit_direction = tm.normalize(incident_direction)

    scattered_direction = vec3(0.0, 0.0, 0.0)
    total_internal = will_reflect(ior, unit_direction, normal, front_face)
    if total_internal == 1 or ti.random(ti.f32) < fresnel_reflectance(ior, unit_direction, normal, front_face):
        scattered_direction = reflect(unit_direction, normal)
    else:
        src_eta, dst_eta = _indices(ior, front_face)
        scattered_direction = refract(unit_direction, normal, src_eta / dst_eta)

    scattered_direction += fuzz * random_in_unit_sphere()

    return scattered_direction, albedo, 1


# Device registry: tint, fuzz and refractive index per registered dielectric
MAX_DIELECTRIC_MATERIALS = 256

dielectric_albedos = ti.Vector.field(3, dtype=ti.f32, shape=MAX_DIELECTRIC_MATERIALS)
dielectric_fuzz = ti.field(dtype=ti.f32, shape=MAX_DIELECTRIC_MATERIALS)
dielectric_iors = ti.field(dtype=ti.f32, shape=MAX_DIELECTRIC_MATERIALS)
num_dielectric_materials = ti.field(dtype=ti.i32, shape=())


def clear_dielectric_materials() -> None:
    num_dielectric_materials[None] = 0


def add_dielectric_material(
    ior: float = 1.5,
    albedo: Color = (1.0, 1.0, 1.0),
    fuzz: float = 0.0,
) -> int:
    """Store a dielectric's parameters in the registry and return its index.

    Args:
        ior: Index of refraction. Default is 1.5 (typical glass).
        albedo: Transmission tint. Default is clear (white).
        fuzz: Perturbation radius in [0, 1]. Default is 0.

    Returns:
        The index of the added material.

    Raises:
        RuntimeError: If the maximum number of materials is exceeded.
        ValueError: If IOR is less than 1.0, or albedo or fuzz are out of range.
    """
    ior = validate_refractive_index(ior)
    albedo = validate_albedo(albedo)
    fuzz = validate_fuzz(fuzz)

    idx = num_dielectric_materials[None]
    if idx >= MAX_DIELECTRIC_MATERIALS:
        raise RuntimeError(
            f"Maximum number of dielectric materials ({MAX_DIELECTRIC_MATERIALS}) exceeded"
        )

    dielectric_albedos[idx] = vec3(*albedo)
    dielectric_fuzz[idx] = fuzz
    dielectric_iors[idx] = ior
    num_dielectric_materials[None] = idx + 1
    return idx


def get_dielectric_material_count() -> int:
    """Get the number of dielectric materials in the registry."""
    return int(num_dielectric_materials[None])


@ti.func
def scatter_dielectric_by_id(
    material_idx: ti.i32,
    incident_direction: vec3,
    normal: vec3,
    front_face: ti.i32,
):
    """Scatter off a registered dielectric material.

    Returns:
        A tuple of (scattered_direction, attenuation, did_scatter).
    """
    return scatter_dielectric(
        dielectric_albedos[material_idx],
        dielectric_fuzz[material_idx],
        dielectric_iors[material_idx],
        incident_direction,
        normal,
        front_face,
    )

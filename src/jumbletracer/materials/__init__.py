"""Materials module for light scattering models.

This module implements the closed set of scattering models:

Components:
    material: Material base class, MaterialType and parameter validation
    lambertian: Ideal diffuse reflection
    metal: Specular reflection with optional fuzz
    dielectric: Glass-like materials that reflect or refract (Schlick)

Each material provides:
    - A frozen host-side dataclass, shared by reference between spheres
    - A Taichi scatter function returning (direction, attenuation, did_scatter)
    - A per-type device registry filled by the scene manager
"""

# Dielectric (glass/water) material
from .dielectric import (
    Dielectric,
    add_dielectric_material,
    clear_dielectric_materials,
    fresnel_reflectance,
    get_dielectric_material_count,
    scatter_dielectric,
    scatter_dielectric_by_id,
    validate_refractive_index,
    will_reflect,
)

# Lambertian (ideal diffuse) material
from .lambertian import (
    Lambertian,
    add_lambertian_material,
    clear_lambertian_materials,
    get_lambertian_material_count,
    scatter_lambertian,
    scatter_lambertian_by_id,
)
from .material import Color, Material, MaterialType, validate_albedo, validate_fuzz

# Metal (specular reflective) material
from .metal import (
    Metal,
    add_metal_material,
    clear_metal_materials,
    get_metal_material_count,
    scatter_metal,
    scatter_metal_by_id,
)

__all__ = [
    # Base
    "Color",
    "Material",
    "MaterialType",
    "validate_albedo",
    "validate_fuzz",
    # Lambertian
    "Lambertian",
    "scatter_lambertian",
    "scatter_lambertian_by_id",
    "add_lambertian_material",
    "clear_lambertian_materials",
    "get_lambertian_material_count",
    # Metal
    "Metal",
    "scatter_metal",
    "scatter_metal_by_id",
    "add_metal_material",
    "clear_metal_materials",
    "get_metal_material_count",
    # Dielectric
    "Dielectric",
    "scatter_dielectric",
    "scatter_dielectric_by_id",
    "add_dielectric_material",
    "clear_dielectric_materials",
    "get_dielectric_material_count",
    "fresnel_reflectance",
    "will_reflect",
    "validate_refractive_index",
]

"""Scene module for the scene tree, its device upload and hit records.

Components:
    graph: Host-side scene tree (Jumble nodes over sphere primitives) with
        the reference intersection protocol and serialization
    intersection: Flattened sphere instances in Taichi fields and the
        closest-hit query used while rendering
    manager: Material id assignment and tree upload
    demo: The demo stage of nested, transformed spheres

Scene data is organized for efficient GPU access:
    - Structure-of-Arrays layout for sphere instances
    - One world -> local matrix per instance, composed at upload time
    - Contiguous material ID arrays
"""

from .demo import create_demo_scene
from .graph import (
    HitRecord,
    HostRay,
    Intersectable,
    Jumble,
    Range,
    Shot,
    SphereInstance,
    SpherePrimitive,
)
from .intersection import (
    MAX_SPHERES,
    SceneHitRecord,
    add_sphere,
    add_sphere_instance,
    cast_ray,
    clear_scene,
    get_sphere_count,
    intersect_scene,
)
from .manager import (
    MAX_MATERIALS,
    MaterialInfo,
    SceneManager,
    SphereInfo,
    get_material_type,
    get_material_type_index,
)

__all__ = [
    # Host scene tree
    "HitRecord",
    "HostRay",
    "Intersectable",
    "Jumble",
    "Range",
    "Shot",
    "SphereInstance",
    "SpherePrimitive",
    # Device intersection
    "MAX_SPHERES",
    "SceneHitRecord",
    "add_sphere",
    "add_sphere_instance",
    "cast_ray",
    "clear_scene",
    "get_sphere_count",
    "intersect_scene",
    # Scene manager
    "MAX_MATERIALS",
    "MaterialInfo",
    "SceneManager",
    "SphereInfo",
    "get_material_type",
    "get_material_type_index",
    # Demo stage
    "create_demo_scene",
]

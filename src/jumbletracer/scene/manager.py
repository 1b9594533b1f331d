"""Unified scene manager for uploading a scene tree and its materials.

This module connects the host-side scene graph to the device. It flattens a
``Jumble`` tree into sphere instances, registers every distinct material
instance once, and tracks which material type (Lambertian, Metal,
Dielectric) each material ID corresponds to, enabling proper material
dispatch in the integrator.

The SceneManager maintains:
- A root ``Jumble`` that always describes what is on the device
- A unified material_id space across all material types, keyed by material
  identity so that spheres sharing a material share its ID
- Mapping from material_id to (material_type, type_local_index)
- Scene serialization support

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from src.jumbletracer.materials import Lambertian
    >>> from src.jumbletracer.scene.manager import SceneManager
    >>> scene = SceneManager()
    >>> red = Lambertian(albedo=(0.8, 0.3, 0.3))
    >>> scene.add_sphere((0, 0, -1), 0.5, red)
    >>> scene.add_sphere((0, -100.5, -1), 100.0, red)  # same material ID
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

import taichi as ti

from src.jumbletracer.materials.dielectric import (
    Dielectric,
    add_dielectric_material,
    clear_dielectric_materials,
)
from src.jumbletracer.materials.lambertian import (
    Lambertian,
    add_lambertian_material,
    clear_lambertian_materials,
)
from src.jumbletracer.materials.material import Color, Material, MaterialType
from src.jumbletracer.materials.metal import (
    Metal,
    add_metal_material,
    clear_metal_materials,
)
from src.jumbletracer.scene.graph import Jumble, SphereInstance, SpherePrimitive
from src.jumbletracer.scene.intersection import (
    MAX_SPHERES,
    add_sphere_instance,
    clear_scene,
    get_sphere_count,
)

logger = logging.getLogger(__name__)

# Unified material ids index these; 256 per type * 3 types
MAX_MATERIALS = 768

# material id -> MaterialType value, and -> index in that type's registry
material_types = ti.field(dtype=ti.i32, shape=MAX_MATERIALS)
material_type_indices = ti.field(dtype=ti.i32, shape=MAX_MATERIALS)
num_materials = ti.field(dtype=ti.i32, shape=())


def _clear_material_tracking() -> None:
    num_materials[None] = 0


@ti.func
def get_material_type(material_id: ti.i32) -> ti.i32:
    """MaterialType value of a material id, or -1 for an unknown id."""
    result = -1
    if 0 <= material_id < num_materials[None]:
        result = material_types[material_id]
    return result


@ti.func
def get_material_type_index(material_id: ti.i32) -> ti.i32:
    """Index of a material id in its type's registry, or -1 for an unknown id."""
    result = -1
    if 0 <= material_id < num_materials[None]:
        result = material_type_indices[material_id]
    return result


def _register(material: Material) -> int:
    """Store a material's parameters in its type registry; returns the type-local index."""
    if isinstance(material, Lambertian):
        return add_lambertian_material(material.albedo)
    if isinstance(material, Metal):
        return add_metal_material(material.albedo, material.fuzz)
    if isinstance(material, Dielectric):
        return add_dielectric_material(material.refractive_index, material.albedo, material.fuzz)
    raise ValueError(f"Unknown material: {material!r}")


@dataclass
class MaterialInfo:
    """Information about a registered material.

    Attributes:
        material_id: The unified material ID.
        material_type: The type of material (Lambertian, Metal, Dielectric).
        type_index: The index within the type-specific material array.
        material: The registered material instance.
    """

    material_id: int
    material_type: MaterialType
    type_index: int
    material: Material


@dataclass
class SphereInfo:
    """Information about a sphere instance on the device.

    Attributes:
        sphere_index: The index in the instance storage arrays.
        center: The center of the sphere in its own frame.
        radius: The radius of the sphere.
        material_id: The material ID assigned to the sphere.
        path: Names of the enclosing scene nodes, root first.
    """

    sphere_index: int
    center: tuple[float, float, float]
    radius: float
    material_id: int
    path: tuple[str, ...]


class SceneManager:
    """Scene manager coordinating the scene tree, instances and materials.

    Attributes:
        root: The scene tree currently uploaded.
        materials: MaterialInfo for all registered materials, by material ID.
        spheres: SphereInfo for all sphere instances, by instance index.
    """

    def __init__(self) -> None:
        """Initialize an empty scene."""
        self.root = Jumble("main")
        self.materials: list[MaterialInfo] = []
        self.spheres: list[SphereInfo] = []
        self._material_ids: dict[int, int] = {}
        self._clear_all()

    def _clear_all(self) -> None:
        """Empty the device instances, every material registry and the host mirrors."""
        clear_scene()
        clear_lambertian_materials()
        clear_metal_materials()
        clear_dielectric_materials()
        _clear_material_tracking()
        self.materials.clear()
        self.spheres.clear()
        self._material_ids.clear()

    def clear(self) -> None:
        """Clear the entire scene and start over with an empty root node."""
        self._clear_all()
        self.root = Jumble("main")

    # =========================================================================
    # Material Management
    # =========================================================================

    def add_material(self, material: Material) -> int:
        """Register a material instance and return its unified ID.

        Registering the same instance again returns the existing ID; two
        distinct instances with equal parameters get distinct IDs.

        Raises:
            RuntimeError: If the maximum number of materials is exceeded.
            ValueError: If ``material`` is not a known material type.
        """
        existing = self._material_ids.get(id(material))
        if existing is not None:
            return existing

        material_id = num_materials[None]
        if material_id >= MAX_MATERIALS:
            raise RuntimeError(f"Maximum number of materials ({MAX_MATERIALS}) exceeded")

        type_index = _register(material)
        material_types[material_id] = int(material.material_type)
        material_type_indices[material_id] = type_index
        num_materials[None] = material_id + 1

        self.materials.append(
            MaterialInfo(
                material_id=material_id,
                material_type=material.material_type,
                type_index=type_index,
                material=material,
            )
        )
        self._material_ids[id(material)] = material_id
        return material_id

    def add_lambertian_material(self, albedo: Color) -> int:
        """Create and register a Lambertian material."""
        return self.add_material(Lambertian(albedo=albedo))

    def add_metal_material(self, albedo: Color, fuzz: float = 0.0) -> int:
        """Create and register a metal material."""
        return self.add_material(Metal(albedo=albedo, fuzz=fuzz))

    def add_dielectric_material(
        self,
        ior: float = 1.5,
        albedo: Color = (1.0, 1.0, 1.0),
        fuzz: float = 0.0,
    ) -> int:
        """Create and register a dielectric material."""
        return self.add_material(Dielectric(albedo=albedo, fuzz=fuzz, refractive_index=ior))

    def get_material_count(self) -> int:
        """Get the total number of materials in the scene."""
        return int(num_materials[None])

    def get_material_info(self, material_id: int) -> MaterialInfo | None:
        if 0 <= material_id < len(self.materials):
            return self.materials[material_id]
        return None

    def get_material_type_python(self, material_id: int) -> MaterialType | None:
        """Get the material type for a given material ID (Python side).

        For GPU-side lookup, use the get_material_type() Taichi function.
        """
        if 0 <= material_id < len(self.materials):
            return self.materials[material_id].material_type
        return None

    # =========================================================================
    # Scene Upload
    # =========================================================================

    def load(self, root: Jumble) -> None:
        """Replace the scene with ``root`` and upload all of its spheres.

        Raises:
            RuntimeError: If a device capacity is exceeded.
        """
        self._clear_all()
        self.root = root
        for instance in root.instances():
            self._upload_instance(instance)
        logger.info(
            "Uploaded scene %r: %d sphere instances, %d materials",
            root.name,
            len(self.spheres),
            len(self.materials),
        )

    def _upload_instance(self, instance: SphereInstance) -> int:
        sphere = instance.sphere
        material_id = self.add_material(sphere.material)
        sphere_index = add_sphere_instance(
            sphere.center,
            sphere.radius,
            material_id,
            to_local=instance.to_local.rows,
            to_world=instance.to_world.rows,
            normal_to_world=instance.normal_to_world,
        )
        center = (float(sphere.center[0]), float(sphere.center[1]), float(sphere.center[2]))
        self.spheres.append(
            SphereInfo(
                sphere_index=sphere_index,
                center=center,
                radius=sphere.radius,
                material_id=material_id,
                path=instance.path,
            )
        )
        return sphere_index

    def add_sphere(
        self,
        center: Sequence[float],
        radius: float,
        material: Material | int,
    ) -> int:
        """Add a sphere directly under the root node and upload it.

        Args:
            center: The center of the sphere in the root frame.
            radius: The radius of the sphere (non-zero).
            material: A material instance, or the ID of a registered one.

        Returns:
            The instance index of the added sphere.

        Raises:
            RuntimeError: If the maximum number of spheres is exceeded.
            ValueError: If the radius is zero or material_id is invalid.
        """
        if isinstance(material, int):
            info = self.get_material_info(material)
            if info is None:
                raise ValueError(f"Invalid material_id: {material}")
            material = info.material

        sphere = SpherePrimitive(center, radius, material)
        self.root.add(sphere)
        csys = self.root.csys
        return self._upload_instance(
            SphereInstance(sphere, csys.inverse, csys.matrix, csys.dual, (self.root.name,))
        )

    def get_sphere_count(self) -> int:
        return get_sphere_count()

    def get_sphere_info(self, sphere_index: int) -> SphereInfo | None:
        if 0 <= sphere_index < len(self.spheres):
            return self.spheres[sphere_index]
        return None

    # =========================================================================
    # Serialization
    # =========================================================================

    def to_dict(self) -> dict[str, Any]:
        """Export the scene tree to a dictionary (for JSON serialization)."""
        return self.root.to_dict()

    def from_dict(self, data: dict[str, Any]) -> None:
        """Load a scene tree from a dictionary written by ``to_dict``.

        Raises:
            ValueError: If the dictionary describes an invalid scene.
        """
        self.load(Jumble.from_dict(data))

    # =========================================================================
    # Capacity Information
    # =========================================================================

    @staticmethod
    def get_max_spheres() -> int:
        """Get the maximum number of sphere instances supported."""
        return MAX_SPHERES

    @staticmethod
    def get_max_materials() -> int:
        """Get the maximum number of materials supported."""
        return MAX_MATERIALS

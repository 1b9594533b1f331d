"""Hierarchical scene graph with nested coordinate systems.

A scene is a tree of ``Jumble`` nodes whose leaves are spheres. Each node
owns a coordinate system that applies uniformly to all of its children, and
nodes nest to any depth. Spheres and nodes may be shared: the same object can
be added to several parents, and every occurrence is positioned by its own
chain of enclosing frames.

This module is the host-side (NumPy) form of the tree. It implements the
recursive intersection protocol directly:

    intersect(ray, rng, hit) -> Shot

A node carries the ray into its local frame with the inverse matrix, offers
it to every child in insertion order with the same mutable ``HitRecord``, and
on a hit carries the point back out with the forward matrix and the normal
with the dual basis. Children only replace the record when strictly closer,
so the closest hit is kept across the whole tree and ties go to the child
inserted first.

Rendering does not walk this tree. ``Jumble.instances()`` flattens it into
sphere instances with composed matrices, which the scene manager uploads to
the device; this module is the reference those device results are checked
against.

Example:
    >>> from src.jumbletracer.scene.graph import HostRay, HitRecord, Jumble, Range, SpherePrimitive
    >>> from src.jumbletracer.materials import Lambertian
    >>> gray = Lambertian(albedo=(0.5, 0.5, 0.5))
    >>> root = Jumble("main")
    >>> root.add(SpherePrimitive((0.0, 0.0, -1.0), 0.5, gray))
    >>> hit = HitRecord()
    >>> root.intersect(HostRay((0.0, 0.0, 0.0), (0.0, 0.0, -1.0)), Range(), hit)
    <Shot.HIT: 1>
"""

import math
from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import numpy as np
import numpy.typing as npt

from src.jumbletracer.core.ray import T_MAX, T_MIN
from src.jumbletracer.core.transform import AffineMatrix, CoordinateSystem, _as_vector3
from src.jumbletracer.materials.material import Material


@dataclass
class Range:
    """Half-open interval [min, max) of accepted ray parameters."""

    min: float = T_MIN
    max: float = T_MAX

    def contains(self, t: float) -> bool:
        return self.min <= t < self.max


class Shot(Enum):
    """Result of offering a ray to an intersectable."""

    MISS = 0
    HIT = 1


@dataclass
class HostRay:
    """A ray on the host. The direction is never renormalized."""

    origin: npt.NDArray[np.float64]
    direction: npt.NDArray[np.float64]

    def __post_init__(self) -> None:
        self.origin = _as_vector3(self.origin, "origin")
        self.direction = _as_vector3(self.direction, "direction")

    def at(self, t: float) -> npt.NDArray[np.float64]:
        return self.origin + t * self.direction

    def transform(self, matrix: AffineMatrix) -> "HostRay":
        """Carry the ray through ``matrix``: origin as a point, direction as a vector."""
        return HostRay(matrix.transform_point(self.origin), matrix.transform_vector(self.direction))


@dataclass
class HitRecord:
    """Mutable closest-hit record shared by every intersectable in a query.

    Attributes:
        t: Ray parameter of the closest hit so far (inf until something hits).
        point: Hit point in the frame of the last node that returned.
        normal: Unit normal facing against the ray.
        front_face: True if the ray arrived on the outward side of the surface.
        material: The material of the hit sphere (shared, never copied).
    """

    t: float = math.inf
    point: npt.NDArray[np.float64] = field(default_factory=lambda: np.zeros(3))
    normal: npt.NDArray[np.float64] = field(default_factory=lambda: np.zeros(3))
    front_face: bool = True
    material: Material | None = None


class Intersectable:
    """Anything a ray can be offered to: a sphere or a nested node."""

    def intersect(self, ray: HostRay, rng: Range, hit: HitRecord) -> Shot:
        raise NotImplementedError

    def _to_node_dict(self, materials: list[Material]) -> dict[str, Any]:
        raise NotImplementedError


def _material_index(material: Material, materials: list[Material]) -> int:
    # Identity, not equality: two equal-valued materials stay distinct
    for i, known in enumerate(materials):
        if known is material:
            return i
    materials.append(material)
    return len(materials) - 1


class SpherePrimitive(Intersectable):
    """A sphere leaf of the scene tree.

    Attributes:
        center: Center in the enclosing node's frame.
        radius: Radius; a negative radius turns the outward normal inward.
        material: Shared reference to the sphere's material.
    """

    def __init__(self, center: Sequence[float], radius: float, material: Material) -> None:
        """Create a sphere.

        Raises:
            ValueError: If the radius is zero or not finite, or the material is
                missing.
        """
        if radius == 0.0 or not math.isfinite(radius):
            raise ValueError(f"Sphere radius must be finite and non-zero, got {radius}")
        if not isinstance(material, Material):
            raise ValueError(f"Sphere material must be a Material, got {type(material).__name__}")
        self.center = _as_vector3(center, "center")
        self.radius = float(radius)
        self.material = material

    def intersect(self, ray: HostRay, rng: Range, hit: HitRecord) -> Shot:
        oc = ray.origin - self.center
        a = float(np.dot(ray.direction, ray.direction))
        half_b = float(np.dot(oc, ray.direction))
        c = float(np.dot(oc, oc)) - self.radius * self.radius
        discriminant = half_b * half_b - a * c
        if discriminant < 0.0:
            return Shot.MISS

        sqrt_d = math.sqrt(discriminant)
        # Only strictly closer hits may replace the record
        accepted = Range(rng.min, min(rng.max, hit.t))
        t = (-half_b - sqrt_d) / a
        if not accepted.contains(t):
            t = (-half_b + sqrt_d) / a
            if not accepted.contains(t):
                return Shot.MISS

        point = ray.at(t)
        outward_normal = (point - self.center) / self.radius
        front_face = float(np.dot(outward_normal, ray.direction)) < 0.0

        hit.t = t
        hit.point = point
        hit.normal = outward_normal if front_face else -outward_normal
        hit.front_face = front_face
        hit.material = self.material
        return Shot.HIT

    def _to_node_dict(self, materials: list[Material]) -> dict[str, Any]:
        return {
            "type": "sphere",
            "center": self.center.tolist(),
            "radius": self.radius,
            "material": _material_index(self.material, materials),
        }

    def __repr__(self) -> str:
        return f"SpherePrimitive(center={self.center.tolist()}, radius={self.radius})"


@dataclass
class SphereInstance:
    """One occurrence of a sphere, positioned by its chain of enclosing frames.

    Attributes:
        sphere: The sphere leaf.
        to_local: World -> sphere frame (product of the enclosing inverses).
        to_world: Sphere frame -> world (product of the enclosing matrices).
        normal_to_world: Product of the enclosing dual bases.
        path: Names of the enclosing nodes, root first.
    """

    sphere: SpherePrimitive
    to_local: AffineMatrix
    to_world: AffineMatrix
    normal_to_world: npt.NDArray[np.float64]
    path: tuple[str, ...]


class Jumble(Intersectable):
    """A scene node: a named coordinate system over an ordered list of children.

    Attributes:
        name: Node name, used for logging and serialization.
        children: Spheres and nested nodes in insertion order.
        csys: The node's coordinate system (local -> parent).
    """

    def __init__(
        self,
        name: str = "jumble",
        children: Sequence[Intersectable] | None = None,
        csys: CoordinateSystem | None = None,
    ) -> None:
        self.name = name
        self.children: list[Intersectable] = []
        self.csys = CoordinateSystem() if csys is None else csys
        for child in children or ():
            self.add(child)

    def add(self, child: Intersectable) -> Intersectable:
        """Append a child; returns it so calls can be chained into variables.

        Raises:
            ValueError: If ``child`` is not intersectable or would create a cycle.
        """
        if not isinstance(child, Intersectable):
            raise ValueError(f"Cannot add {type(child).__name__} to a Jumble")
        if child is self or (isinstance(child, Jumble) and child._contains(self)):
            raise ValueError(f"Adding {child!r} to {self!r} would create a cycle")
        self.children.append(child)
        return child

    def _contains(self, node: "Jumble") -> bool:
        for child in self.children:
            if child is node or (isinstance(child, Jumble) and child._contains(node)):
                return True
        return False

    def set_csys(self, csys: CoordinateSystem | AffineMatrix) -> None:
        """Replace the node's coordinate system.

        Raises:
            ValueError: If the matrix is singular or not affine.
        """
        if isinstance(csys, AffineMatrix):
            csys = CoordinateSystem(csys)
        self.csys = csys

    def set_csys_from_basis(
        self,
        origin: Sequence[float] = (0.0, 0.0, 0.0),
        scale: Sequence[float] = (1.0, 1.0, 1.0),
        u: Sequence[float] = (1.0, 0.0, 0.0),
        v: Sequence[float] = (0.0, 1.0, 0.0),
        w: Sequence[float] = (0.0, 0.0, 1.0),
    ) -> None:
        """Set the node's frame from an origin, a 3-axis scale and axis vectors."""
        self.csys = CoordinateSystem.from_basis(origin, scale, u, v, w)

    def intersect(self, ray: HostRay, rng: Range, hit: HitRecord) -> Shot:
        local_ray = ray.transform(self.csys.inverse)

        hit_something = False
        for child in self.children:
            if child.intersect(local_ray, rng, hit) is Shot.HIT:
                hit_something = True

        if not hit_something:
            return Shot.MISS

        # The record now holds a hit in this node's frame; hand it to the parent
        hit.point = self.csys.matrix.transform_point(hit.point)
        hit.normal = self.csys.transform_normal(hit.normal)
        return Shot.HIT

    def instances(
        self,
        to_local: AffineMatrix | None = None,
        to_world: AffineMatrix | None = None,
        normal_to_world: npt.NDArray[np.float64] | None = None,
        path: tuple[str, ...] = (),
    ) -> Iterator[SphereInstance]:
        """Yield every sphere occurrence depth-first in insertion order.

        The enclosing frames are composed along the way, so each instance can
        be intersected directly in world space without walking the tree.
        """
        to_local = self.csys.inverse if to_local is None else self.csys.inverse @ to_local
        to_world = self.csys.matrix if to_world is None else to_world @ self.csys.matrix
        normal_to_world = self.csys.dual if normal_to_world is None else normal_to_world @ self.csys.dual
        path = path + (self.name,)

        for child in self.children:
            if isinstance(child, Jumble):
                yield from child.instances(to_local, to_world, normal_to_world, path)
            elif isinstance(child, SpherePrimitive):
                yield SphereInstance(child, to_local, to_world, normal_to_world, path)

    def count_spheres(self) -> int:
        return sum(1 for _ in self.instances())

    def to_dict(self) -> dict[str, Any]:
        """Serialize the tree with a shared material table.

        Returns:
            ``{"materials": [...], "root": {...}}``. Spheres refer to
            materials by index into the table. A node shared by several
            parents is written once per occurrence.
        """
        materials: list[Material] = []
        root = self._to_node_dict(materials)
        return {"materials": [m.to_dict() for m in materials], "root": root}

    def _to_node_dict(self, materials: list[Material]) -> dict[str, Any]:
        return {
            "type": "jumble",
            "name": self.name,
            "csys": self.csys.matrix.to_list(),
            "children": [child._to_node_dict(materials) for child in self.children],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Jumble":
        """Rebuild a tree written by ``to_dict``.

        Raises:
            ValueError: If a node type, material or material index is invalid.
        """
        materials = [Material.from_dict(m) for m in data.get("materials", [])]
        root = _node_from_dict(data.get("root", {"type": "jumble"}), materials)
        if not isinstance(root, Jumble):
            raise ValueError("Scene root must be a jumble node")
        return root

    def __repr__(self) -> str:
        return f"Jumble({self.name!r}, children={len(self.children)})"


def _node_from_dict(data: dict[str, Any], materials: list[Material]) -> Intersectable:
    kind = data.get("type", "jumble")
    if kind == "sphere":
        index = data.get("material", 0)
        if not 0 <= index < len(materials):
            raise ValueError(f"Invalid material index: {index}")
        return SpherePrimitive(data.get("center", (0.0, 0.0, 0.0)), data.get("radius", 1.0), materials[index])
    if kind == "jumble":
        csys = CoordinateSystem(AffineMatrix(data["csys"])) if "csys" in data else None
        node = Jumble(data.get("name", "jumble"), csys=csys)
        for child in data.get("children", []):
            node.add(_node_from_dict(child, materials))
        return node
    raise ValueError(f"Unknown scene node type: {kind!r}")

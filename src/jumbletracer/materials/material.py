"""Material interface and parameter validation.

Materials are host-side value objects created once while a scene is built and
attached to spheres by reference. Several spheres may share one material
instance; the scene manager gives each distinct instance one material id and
uploads its parameters to the per-type device registry, so a material is
never copied per primitive.

Validation happens at construction: an invalid material is a scene-building
error, never something the renderer has to cope with.
"""

from collections.abc import Sequence
from enum import IntEnum

Color = tuple[float, float, float]


class MaterialType(IntEnum):
    """Enumeration of supported material types.

    Used for material dispatch in the integrator to determine which
    scattering function to call.
    """

    LAMBERTIAN = 0
    METAL = 1
    DIELECTRIC = 2


class Material:
    """Base class of the closed set of scattering models.

    Subclasses are frozen dataclasses; ``material_type`` selects the device
    scatter routine and ``to_dict`` / ``from_dict`` give the serialized form.
    """

    material_type: MaterialType

    def to_dict(self) -> dict:
        raise NotImplementedError

    @staticmethod
    def from_dict(data: dict) -> "Material":
        """Rebuild a material from its serialized form.

        Raises:
            ValueError: If the type is unknown or the parameters are invalid.
        """
        # Imported here: the concrete classes import this module
        from src.jumbletracer.materials.dielectric import Dielectric
        from src.jumbletracer.materials.lambertian import Lambertian
        from src.jumbletracer.materials.metal import Metal

        kind = str(data.get("type", "")).lower()
        if kind == "lambertian":
            return Lambertian(albedo=tuple(data.get("albedo", (0.5, 0.5, 0.5))))
        if kind == "metal":
            return Metal(
                albedo=tuple(data.get("albedo", (0.8, 0.8, 0.8))),
                fuzz=data.get("fuzz", 0.0),
            )
        if kind == "dielectric":
            return Dielectric(
                albedo=tuple(data.get("albedo", (1.0, 1.0, 1.0))),
                fuzz=data.get("fuzz", 0.0),
                refractive_index=data.get("refractive_index", 1.5),
            )
        raise ValueError(f"Unknown material type: {kind!r}")


def validate_albedo(albedo: Sequence[float]) -> Color:
    """Check that an albedo has three channels in [0, 1].

    Returns:
        The albedo as a tuple of floats.

    Raises:
        ValueError: If the albedo has the wrong length or any channel is
            outside [0, 1].
    """
    if len(albedo) != 3:
        raise ValueError(f"Albedo must have 3 components, got {len(albedo)}")
    for i, component in enumerate(albedo):
        if not 0.0 <= component <= 1.0:
            raise ValueError(
                f"Albedo component {i} = {component} is outside [0, 1]. "
                "This would violate energy conservation."
            )
    return (float(albedo[0]), float(albedo[1]), float(albedo[2]))


def validate_fuzz(fuzz: float) -> float:
    """Check that a fuzz radius lies in [0, 1].

    Raises:
        ValueError: If fuzz is outside [0, 1].
    """
    if not 0.0 <= fuzz <= 1.0:
        raise ValueError(f"Fuzz = {fuzz} is outside [0, 1]")
    return float(fuzz)

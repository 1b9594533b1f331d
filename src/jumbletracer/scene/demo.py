"""Demo stage: nested, non-uniformly transformed copies of two spheres.

The stage is a "main" node holding four children that share the same
sphere primitives:

- sub: a small sphere resting on a large ground sphere
- squishy: the same pair plus a coincident sphere, scaled by
  (1.5, 0.75, 1) and moved down by 0.5
- sq2: the small sphere rotated -135 degrees about Z, scaled by
  (0.5, 1.25, 1) and moved left
- sq3: the small sphere rotated -135 degrees about Z then -90 degrees
  about X, scaled by (0.5, 1, 1.1) and moved right

An optional "fov_test" node holds two spheres that exactly fill a 90 degree
field of view, handy for checking the camera.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from src.jumbletracer.scene.demo import create_demo_scene
    >>> from src.jumbletracer.scene.manager import SceneManager
    >>> from src.jumbletracer.camera.thin_lens import setup_camera
    >>>
    >>> root, camera = create_demo_scene()
    >>> SceneManager().load(root)
    >>> setup_camera(camera)
"""

import math

from src.jumbletracer.camera.thin_lens import SampleType, ThinLensCamera
from src.jumbletracer.core.transform import AffineMatrix, Axis
from src.jumbletracer.materials.dielectric import Dielectric
from src.jumbletracer.materials.lambertian import Lambertian
from src.jumbletracer.materials.metal import Metal
from src.jumbletracer.scene.graph import Jumble, SpherePrimitive

# =============================================================================
# Demo Constants
# =============================================================================

IMAGE_HEIGHT = 225
ASPECT_RATIO = 16.0 / 9.0
VERTICAL_FOV = 90.0

SMALL_SPHERE_ALBEDO = (0.7, 0.3, 0.3)
GROUND_ALBEDO = (0.8, 0.8, 0.0)
CORE_METAL_ALBEDO = (0.8, 0.8, 0.8)
CORE_METAL_FUZZ = 0.3
FOV_TEST_ALBEDO = (0.1, 0.2, 0.5)


def create_demo_scene(
    include_fov_test: bool = False,
    include_glass: bool = False,
) -> tuple[Jumble, ThinLensCamera]:
    """Build the demo stage and a camera looking at it.

    Args:
        include_fov_test: Add the "fov_test" node with two spheres of radius
            cos(pi/4) at (+-cos(pi/4), 0, -1).
        include_glass: Make the squishy node's core sphere glass instead of
            fuzzy metal.

    Returns:
        A tuple of (root node, camera). The camera sits at the origin
        looking down -z with a 90 degree vertical field of view.
    """
    diffuse = Lambertian(albedo=SMALL_SPHERE_ALBEDO)
    ground_material = Lambertian(albedo=GROUND_ALBEDO)
    if include_glass:
        core_material = Dielectric(refractive_index=1.5)
    else:
        core_material = Metal(albedo=CORE_METAL_ALBEDO, fuzz=CORE_METAL_FUZZ)

    s1 = SpherePrimitive((0.0, 0.0, -1.0), 0.5, diffuse)
    s2 = SpherePrimitive((0.0, -100.5, -1.0), 100.0, ground_material)
    s3 = SpherePrimitive((0.0, 0.0, -1.0), 0.5, core_material)

    root = Jumble("main")

    if include_fov_test:
        radius = math.cos(math.pi / 4.0)
        fov_material = Lambertian(albedo=FOV_TEST_ALBEDO)
        fov_test = Jumble("fov_test")
        fov_test.add(SpherePrimitive((-radius, 0.0, -1.0), radius, fov_material))
        fov_test.add(SpherePrimitive((radius, 0.0, -1.0), radius, fov_material))
        root.add(fov_test)

    sub = Jumble("sub", [s1, s2])
    root.add(sub)

    squishy = Jumble("squishy", [s3, s1, s2])
    csys = AffineMatrix.scaling((1.5, 0.75, 1.0))
    csys.translate((0.0, -0.5, 0.0))
    squishy.set_csys(csys)
    root.add(squishy)

    sq2 = Jumble("sq2", [s1])
    csys = AffineMatrix.rotation(-3.0 * math.pi / 4.0, Axis.Z)
    csys = csys @ AffineMatrix.scaling((0.5, 1.25, 1.0))
    csys.translate((-1.25, 0.25, 0.0))
    sq2.set_csys(csys)
    root.add(sq2)

    sq3 = Jumble("sq3", [s1])
    csys = AffineMatrix.rotation(-3.0 * math.pi / 4.0, Axis.Z)
    csys = csys @ AffineMatrix.rotation(-math.pi / 2.0, Axis.X)
    csys = csys @ AffineMatrix.scaling((0.5, 1.0, 1.1))
    csys.translate((1.25, -0.333, -0.25))
    sq3.set_csys(csys)
    root.add(sq3)

    camera = ThinLensCamera(
        image_height=IMAGE_HEIGHT,
        aspect_ratio=ASPECT_RATIO,
        vfov=VERTICAL_FOV,
        sample_type=SampleType.PIXEL_RATIO,
    )
    return root, camera

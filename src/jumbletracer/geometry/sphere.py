"""Sphere primitive with analytic ray-sphere intersection.

Points on the ray are O + tD. Substituting into |P - C|^2 = r^2 gives a
quadratic in t, solved here in its half-b form:

    a      = D . D
    half_b = (O - C) . D
    c      = |O - C|^2 - r^2
    disc   = half_b^2 - a c

D is used as given, without normalizing, so a ray carried into a scaled
frame still reports the t of the original ray.

A negative radius keeps the surface but turns its outward normal inside,
which is how hollow glass shells are built.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from src.jumbletracer.geometry.sphere import Sphere, hit_sphere
    >>> sphere = Sphere(center=ti.math.vec3(0, 0, -1), radius=0.5)
    >>> # Use hit_sphere within a Taichi kernel
"""

import taichi as ti
import taichi.math as tm

from src.jumbletracer.core.ray import in_range

vec3 = tm.vec3


@ti.dataclass
class Sphere:
    """Center and radius of a sphere in its own frame.

    A negative radius flips the outward normal.
    """

    center: vec3
    radius: ti.f32


@ti.dataclass
class SphereHit:
    """Result of hit_sphere.

    Attributes:
        hit: 1 if a root was accepted, 0 otherwise.
        t: Ray parameter of the accepted root.
        point: Hit point, O + tD.
        normal: Unit normal facing against the ray.
        front_face: 1 when the outward normal already faced the ray.
    """

    hit: ti.i32
    t: ti.f32
    point: vec3
    normal: vec3
    front_face: ti.i32


@ti.func
def _roots(half_b: ti.f32, a: ti.f32, c: ti.f32, sqrt_disc: ti.f32):
    """Both roots of a t^2 + 2 half_b t + c = 0, smaller first.

    One root comes from q = -(half_b + sign(half_b) sqrt_disc), which never
    subtracts nearly equal numbers, and the other from c / q.
    """
    q = -(half_b + ti.select(half_b < 0.0, -1.0, 1.0) * sqrt_disc)
    near = 0.0
    far = 0.0
    if ti.abs(q) < 1e-10:
        # q vanishes only for a tangent ray through the center plane
        near = (-half_b - sqrt_disc) / a
        far = (-half_b + sqrt_disc) / a
    else:
        near = ti.min(q / a, c / q)
        far = ti.max(q / a, c / q)
    return near, far


@ti.func
def _face_normal(outward: vec3, direction: vec3):
    """Orient a normal against the ray; returns (normal, front_face)."""
    normal = outward
    front_face = 1
    if tm.dot(outward, direction) >= 0.0:
        normal = -outward
        front_face = 0
    return normal, front_face


@ti.func
def hit_sphere(
    ray_origin: vec3,
    ray_direction: vec3,
    sphere: Sphere,
    t_min: ti.f32,
    t_max: ti.f32,
) -> SphereHit:
    """Intersect a ray with a sphere over [t_min, t_max).

    The near root wins if it is in range, otherwise the far one. Passing the
    best t so far as ``t_max`` only accepts strictly closer hits.

    Args:
        ray_origin: Ray origin.
        ray_direction: Ray direction, any length.
        sphere: Sphere to test.
        t_min: Smallest accepted t.
        t_max: Accepted t must be below this.

    Returns:
        A SphereHit; check its hit field.
    """
    oc = ray_origin - sphere.center
    a = tm.dot(ray_direction, ray_direction)
    half_b = tm.dot(oc, ray_direction)
    c = tm.dot(oc, oc) - sphere.radius * sphere.radius
    disc = half_b * half_b - a * c

    result = SphereHit(hit=0, t=0.0, point=vec3(0.0), normal=vec3(0.0), front_face=0)
    if disc >= 0.0:
        near, far = _roots(half_b, a, c, ti.sqrt(disc))
        t = near
        if not in_range(t, t_min, t_max):
            t = far
        if in_range(t, t_min, t_max):
            point = ray_origin + t * ray_direction
            normal, front_face = _face_normal((point - sphere.center) / sphere.radius, ray_direction)
            result = SphereHit(hit=1, t=t, point=point, normal=normal, front_face=front_face)

    return result


@ti.func
def make_sphere(center: vec3, radius: ti.f32) -> Sphere:
    return Sphere(center=center, radius=radius)

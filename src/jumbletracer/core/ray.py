"""Ray data structure and vector utilities for GPU-accelerated ray tracing.

This module provides the Ray dataclass, the ray parameter range used to
reject self-intersections, and the vector and sampling helpers shared by the
geometry, material and camera modules. All operations are Taichi functions
callable from kernels.

Ray directions are deliberately left unnormalized: when a ray is carried into
a scaled coordinate system its direction is rescaled with it, and keeping the
same parameter t along the ray in every frame is what lets hit distances from
different frames be compared directly.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> origin = ti.math.vec3(0.0, 0.0, 0.0)
    >>> direction = ti.math.vec3(0.0, 0.0, -1.0)
    >>> ray = Ray(origin=origin, direction=direction)
    >>> point = ray_at(ray, 5.0)  # Point 5 units along the ray
"""

import math

import taichi as ti
import taichi.math as tm

from src.jumbletracer.core.transform import transform_point, transform_vector

# Type alias for 3D vectors using Taichi's math module
vec3 = tm.vec3

# Default ray parameter range [T_MIN, T_MAX). The lower bound keeps a bounced
# ray from re-hitting the surface it starts on ("shadow acne").
T_MIN = 0.001
T_MAX = math.inf


@ti.dataclass
class Ray:
    """A ray with an origin point and direction vector.

    Attributes:
        origin: The starting point of the ray (vec3).
        direction: The direction vector of the ray (vec3). Not necessarily
            unit length.
    """

    origin: vec3
    direction: vec3


@ti.func
def ray_at(ray: Ray, t: ti.f32) -> vec3:
    """Compute the point along the ray at parameter t.

    Args:
        ray: The ray to evaluate.
        t: The parameter value. Positive values are in front of the origin.

    Returns:
        The point ray.origin + t * ray.direction.
    """
    return ray.origin + t * ray.direction


@ti.func
def make_ray(origin: vec3, direction: vec3) -> Ray:
    """Create a ray from origin and direction."""
    return Ray(origin=origin, direction=direction)


@ti.func
def transform_ray(m: tm.mat4, ray: Ray) -> Ray:
    """Carry a ray through an affine matrix.

    The origin is transformed as a point and the direction as a vector. The
    direction is not renormalized, so ray parameters are preserved.
    """
    return Ray(origin=transform_point(m, ray.origin), direction=transform_vector(m, ray.direction))


@ti.func
def in_range(t: ti.f32, t_min: ti.f32, t_max: ti.f32) -> ti.i32:
    """Check whether t lies in the half-open range [t_min, t_max)."""
    return t >= t_min and t < t_max


# =============================================================================
# Vector Utility Functions
# =============================================================================


@ti.func
def length_squared(v: vec3) -> ti.f32:
    """Compute the squared length of a vector."""
    return tm.dot(v, v)


@ti.func
def reflect(incident: vec3, normal: vec3) -> vec3:
    """Reflect an incident vector about a normal.

    Computes d - 2 (d . n) n. The normal should be unit length.

    Args:
        incident: The incoming direction vector (pointing toward the surface).
        normal: The surface normal (should be normalized).

    Returns:
        The reflected direction vector.
    """
    return incident - 2.0 * tm.dot(incident, normal) * normal


@ti.func
def refract(unit_incident: vec3, normal: vec3, eta_ratio: ti.f32) -> vec3:
    """Refract a unit incident vector through a surface with Snell's law.

    The refracted direction is split into the part perpendicular to the
    normal, eta * (d + cos_theta * n), and the part parallel to it,
    -sqrt(|1 - |perp|^2|) * n. Callers must rule out total internal
    reflection first.

    Args:
        unit_incident: The incoming direction (unit length).
        normal: The surface normal facing the incoming ray (unit length).
        eta_ratio: Source over destination refractive index.

    Returns:
        The refracted direction (unit length).
    """
    cos_theta = tm.min(-tm.dot(unit_incident, normal), 1.0)
    r_perp = eta_ratio * (unit_incident + cos_theta * normal)
    r_parallel = -ti.sqrt(ti.abs(1.0 - tm.dot(r_perp, r_perp))) * normal
    return r_perp + r_parallel


@ti.func
def schlick_reflectance(cosine: ti.f32, src_eta: ti.f32, dst_eta: ti.f32) -> ti.f32:
    """Compute Fresnel reflectance using Schlick's approximation.

    r0 = ((src_eta - dst_eta) / (src_eta + dst_eta))^2 is the reflectance at
    normal incidence; at cosine == 1 the result is exactly r0.

    Args:
        cosine: Cosine of the angle between the incident ray and the normal.
        src_eta: Refractive index of the medium the ray leaves.
        dst_eta: Refractive index of the medium the ray enters.

    Returns:
        The approximate Fresnel reflectance coefficient.
    """
    r0 = (src_eta - dst_eta) / (src_eta + dst_eta)
    r0 = r0 * r0
    return r0 + (1.0 - r0) * ((1.0 - cosine) ** 5)


@ti.func
def near_zero(v: vec3) -> ti.i32:
    """Check if a vector is near zero in all components.

    Returns:
        1 if all components are near zero, 0 otherwise.
    """
    s = 1e-8
    return ti.abs(v.x) < s and ti.abs(v.y) < s and ti.abs(v.z) < s


# =============================================================================
# Random Sampling Utilities for Monte Carlo
# =============================================================================


@ti.func
def random_in_unit_sphere() -> vec3:
    """Generate a random point inside the unit sphere.

    Uses rejection sampling to generate uniformly distributed points
    within the unit sphere.

    Returns:
        A random point with length < 1.
    """
    p = vec3(0.0, 0.0, 0.0)
    found = False
    # Rejection sampling loop
    for _ in range(100):  # Max iterations to avoid infinite loops
        if not found:
            p = vec3(
                ti.random(ti.f32) * 2.0 - 1.0,
                ti.random(ti.f32) * 2.0 - 1.0,
                ti.random(ti.f32) * 2.0 - 1.0,
            )
            if length_squared(p) < 1.0:
                found = True
    return p


@ti.func
def random_unit_vector() -> vec3:
    """Generate a random point on the unit sphere (uniform direction)."""
    return tm.normalize(random_in_unit_sphere())


@ti.func
def random_in_unit_disk() -> vec3:
    """Generate a random point inside the unit disk in the xy-plane.

    Draws uniform points in [-1, 1]^2 and retries until one falls inside the
    unit circle. Used to sample the camera lens for depth of field.

    Returns:
        A random point (x, y, 0) with x^2 + y^2 < 1.
    """
    p = vec3(0.0, 0.0, 0.0)
    found = False
    for _ in range(100):
        if not found:
            p = vec3(
                ti.random(ti.f32) * 2.0 - 1.0,
                ti.random(ti.f32) * 2.0 - 1.0,
                0.0,
            )
            if p.x * p.x + p.y * p.y < 1.0:
                found = True
    return p

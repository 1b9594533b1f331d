"""Geometry module for shape primitives.

Components:
    sphere: Sphere primitive with analytic ray-sphere intersection

Intersection routines are Taichi functions (@ti.func) evaluated in the
primitive's own coordinate frame; the scene module carries rays into that
frame and hit records back out.

Ray-object intersection follows the pattern:
    record = hit_sphere(ray_origin, ray_direction, sphere, t_min, t_max)
"""

from .sphere import Sphere, SphereHit, hit_sphere, make_sphere

__all__ = [
    "Sphere",
    "SphereHit",
    "hit_sphere",
    "make_sphere",
]

"""Taichi-based ray tracer for hierarchical scenes of spheres.

This package renders still images by casting rays from a thin-lens camera
into a tree of scene nodes ("jumbles"), each with its own affine coordinate
system, and resolving diffuse, metallic and dielectric scattering until the
ray escapes to the sky or runs out of bounces.

Subpackages:
    core: Linear algebra, rays, the radiance integrator and render loop
    geometry: Sphere primitive and its intersection routine
    materials: Lambertian, metal and dielectric scattering models
    scene: Scene graph, device-side scene storage and the scene manager
    camera: Thin-lens camera with depth of field and pixel jitter
    preview: Image export
"""

__version__ = "0.1.0"

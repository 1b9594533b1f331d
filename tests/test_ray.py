"""Unit tests for the ray module.

Tests cover:
- Ray dataclass, ray_at, transform_ray and in_range
- Vector utility functions (reflect, refract, Schlick, near_zero)
- Random sampling functions for Monte Carlo
"""

import math

import taichi as ti


class TestRayBasics:
    """Tests for Ray dataclass and basic operations."""

    def test_ray_at_positive_t(self):
        """Test ray_at computes correct point along ray."""
        from src.jumbletracer.core.ray import Ray, ray_at, vec3

        result = ti.field(dtype=ti.math.vec3, shape=())

        @ti.kernel
        def test_kernel():
            ray = Ray(origin=vec3(1.0, 2.0, 3.0), direction=vec3(0.0, 0.0, -2.0))
            result[None] = ray_at(ray, 1.5)

        test_kernel()
        r = result[None]
        assert abs(r[0] - 1.0) < 1e-6
        assert abs(r[1] - 2.0) < 1e-6
        assert abs(r[2] - 0.0) < 1e-6

    def test_default_range(self):
        """The default range starts just above zero and is unbounded."""
        from src.jumbletracer.core.ray import T_MAX, T_MIN

        assert T_MIN == 0.001
        assert math.isinf(T_MAX)

    def test_in_range_is_half_open(self):
        """t_min is accepted, t_max is not."""
        from src.jumbletracer.core.ray import in_range

        results = ti.field(dtype=ti.i32, shape=4)

        @ti.kernel
        def test_kernel():
            results[0] = in_range(0.001, 0.001, 1.0)
            results[1] = in_range(1.0, 0.001, 1.0)
            results[2] = in_range(0.5, 0.001, 1.0)
            results[3] = in_range(0.0, 0.001, 1.0)

        test_kernel()
        assert results[0] == 1
        assert results[1] == 0
        assert results[2] == 1
        assert results[3] == 0

    def test_transform_ray_keeps_direction_length(self):
        """Directions go through the linear part only and are not renormalized."""
        from src.jumbletracer.core.ray import Ray, transform_ray, vec3

        matrix = ti.Matrix.field(4, 4, dtype=ti.f32, shape=())
        matrix[None] = ti.Matrix(
            [[2.0, 0.0, 0.0, 1.0], [0.0, 2.0, 0.0, 0.0], [0.0, 0.0, 2.0, 0.0], [0.0, 0.0, 0.0, 1.0]]
        )
        origin = ti.field(dtype=ti.math.vec3, shape=())
        direction = ti.field(dtype=ti.math.vec3, shape=())

        @ti.kernel
        def test_kernel():
            ray = transform_ray(matrix[None], Ray(origin=vec3(1.0, 0.0, 0.0), direction=vec3(0.0, 1.0, 0.0)))
            origin[None] = ray.origin
            direction[None] = ray.direction

        test_kernel()
        assert abs(origin[None][0] - 3.0) < 1e-6
        assert abs(direction[None][1] - 2.0) < 1e-6


class TestVectorUtilities:
    """Tests for reflection, refraction and Fresnel helpers."""

    def test_reflect(self):
        """Test reflection off a horizontal surface."""
        from src.jumbletracer.core.ray import reflect, vec3

        result = ti.field(dtype=ti.math.vec3, shape=())

        @ti.kernel
        def test_kernel():
            result[None] = reflect(vec3(1.0, -1.0, 0.0), vec3(0.0, 1.0, 0.0))

        test_kernel()
        r = result[None]
        assert abs(r[0] - 1.0) < 1e-6
        assert abs(r[1] - 1.0) < 1e-6
        assert abs(r[2]) < 1e-6

    def test_refract_normal_incidence_passes_straight(self):
        from src.jumbletracer.core.ray import refract, vec3

        result = ti.field(dtype=ti.math.vec3, shape=())

        @ti.kernel
        def test_kernel():
            result[None] = refract(vec3(0.0, -1.0, 0.0), vec3(0.0, 1.0, 0.0), 1.0 / 1.5)

        test_kernel()
        r = result[None]
        assert abs(r[0]) < 1e-6
        assert abs(r[1] + 1.0) < 1e-6

    def test_refract_obeys_snell(self):
        """sin(theta_out) = eta * sin(theta_in) for air into glass."""
        from src.jumbletracer.core.ray import refract, vec3

        result = ti.field(dtype=ti.math.vec3, shape=())
        eta = 1.0 / 1.5

        @ti.kernel
        def test_kernel():
            s = ti.sqrt(0.5)
            result[None] = refract(vec3(s, -s, 0.0), vec3(0.0, 1.0, 0.0), eta)

        test_kernel()
        r = result[None]
        length = math.sqrt(r[0] ** 2 + r[1] ** 2 + r[2] ** 2)
        assert abs(length - 1.0) < 1e-5
        assert abs(r[0] - eta * math.sqrt(0.5)) < 1e-5
        assert r[1] < 0.0

    def test_schlick_at_normal_incidence_is_r0(self):
        """At cosine 1 the reflectance is ((n1 - n2) / (n1 + n2))^2."""
        from src.jumbletracer.core.ray import schlick_reflectance

        results = ti.field(dtype=ti.f32, shape=3)

        @ti.kernel
        def test_kernel():
            results[0] = schlick_reflectance(1.0, 1.0, 1.5)
            results[1] = schlick_reflectance(1.0, 1.5, 1.0)
            results[2] = schlick_reflectance(0.0, 1.0, 1.5)

        test_kernel()
        assert abs(results[0] - 0.04) < 1e-6
        assert abs(results[1] - 0.04) < 1e-6
        assert abs(results[2] - 1.0) < 1e-6

    def test_near_zero(self):
        from src.jumbletracer.core.ray import near_zero, vec3

        results = ti.field(dtype=ti.i32, shape=2)

        @ti.kernel
        def test_kernel():
            results[0] = near_zero(vec3(1e-9, -1e-9, 0.0))
            results[1] = near_zero(vec3(1e-9, 1e-3, 0.0))

        test_kernel()
        assert results[0] == 1
        assert results[1] == 0


class TestRandomSampling:
    """Tests for random sampling functions."""

    def test_random_in_unit_sphere_bounds(self):
        from src.jumbletracer.core.ray import random_in_unit_sphere

        n = 1000
        lengths = ti.field(dtype=ti.f32, shape=n)

        @ti.kernel
        def test_kernel():
            for i in range(n):
                lengths[i] = random_in_unit_sphere().norm()

        test_kernel()
        assert lengths.to_numpy().max() < 1.0

    def test_random_unit_vector_length(self):
        from src.jumbletracer.core.ray import random_unit_vector

        n = 1000
        lengths = ti.field(dtype=ti.f32, shape=n)

        @ti.kernel
        def test_kernel():
            for i in range(n):
                lengths[i] = random_unit_vector().norm()

        test_kernel()
        values = lengths.to_numpy()
        assert abs(values.min() - 1.0) < 1e-4
        assert abs(values.max() - 1.0) < 1e-4

    def test_random_in_unit_disk_is_flat(self):
        """Disk samples lie in the xy-plane inside the unit circle."""
        from src.jumbletracer.core.ray import random_in_unit_disk

        n = 1000
        points = ti.Vector.field(3, dtype=ti.f32, shape=n)

        @ti.kernel
        def test_kernel():
            for i in range(n):
                points[i] = random_in_unit_disk()

        test_kernel()
        p = points.to_numpy()
        assert abs(p[:, 2]).max() == 0.0
        assert (p[:, 0] ** 2 + p[:, 1] ** 2).max() < 1.0
        # Both signs show up on each axis
        assert p[:, 0].min() < 0.0 < p[:, 0].max()
        assert p[:, 1].min() < 0.0 < p[:, 1].max()

"""Unit tests for the Metal material module.

Tests cover:
- Perfect specular reflection (fuzz=0)
- Fuzzy reflection (fuzz>0)
- Ray absorption when scattered below surface
- Attenuation equals the albedo
- Material registry operations and fuzz validation
"""

import math

import numpy as np
import pytest
import taichi as ti


class TestPerfectReflection:
    """Tests for perfect specular reflection (fuzz=0)."""

    def test_perfect_reflection_normal_incidence(self):
        """Test reflection of ray hitting surface head-on."""
        from src.jumbletracer.materials.metal import scatter_metal

        result_dir = ti.Vector.field(3, dtype=ti.f32, shape=())
        result_scatter = ti.field(dtype=ti.i32, shape=())

        @ti.kernel
        def test_kernel():
            albedo = ti.math.vec3(1.0, 1.0, 1.0)
            # Ray going straight down (-Y)
            incident = ti.math.vec3(0.0, -1.0, 0.0)
            # Surface normal pointing up (+Y)
            normal = ti.math.vec3(0.0, 1.0, 0.0)
            direction, _, did_scatter = scatter_metal(albedo, 0.0, incident, normal)
            result_dir[None] = direction
            result_scatter[None] = did_scatter

        test_kernel()
        d = result_dir[None]
        assert abs(d[0]) < 1e-5
        assert abs(d[1] - 1.0) < 1e-5
        assert abs(d[2]) < 1e-5
        assert result_scatter[None] == 1

    def test_incident_is_normalized_first(self):
        """A long incident vector reflects to a unit direction."""
        from src.jumbletracer.materials.metal import scatter_metal

        result_dir = ti.Vector.field(3, dtype=ti.f32, shape=())

        @ti.kernel
        def test_kernel():
            incident = ti.math.vec3(3.0, -3.0, 0.0)
            normal = ti.math.vec3(0.0, 1.0, 0.0)
            direction, _, _ = scatter_metal(ti.math.vec3(1.0, 1.0, 1.0), 0.0, incident, normal)
            result_dir[None] = direction

        test_kernel()
        d = result_dir[None]
        inv_sqrt2 = 1.0 / math.sqrt(2.0)
        assert abs(d[0] - inv_sqrt2) < 1e-5
        assert abs(d[1] - inv_sqrt2) < 1e-5

    def test_attenuation_is_albedo(self):
        from src.jumbletracer.materials.metal import scatter_metal

        attenuation = ti.Vector.field(3, dtype=ti.f32, shape=())

        @ti.kernel
        def test_kernel():
            _, att, _ = scatter_metal(
                ti.math.vec3(0.8, 0.6, 0.4), 0.0, ti.math.vec3(0.0, -1.0, 0.0), ti.math.vec3(0.0, 1.0, 0.0)
            )
            attenuation[None] = att

        test_kernel()
        np.testing.assert_allclose(attenuation[None].to_numpy(), (0.8, 0.6, 0.4), atol=1e-6)


class TestFuzzyReflection:
    """Tests for fuzzy metal reflection (fuzz>0)."""

    def test_fuzz_spreads_directions(self):
        """Fuzzed directions vary and stay within fuzz of the mirror direction."""
        from src.jumbletracer.materials.metal import scatter_metal

        n = 500
        directions = ti.Vector.field(3, dtype=ti.f32, shape=n)

        @ti.kernel
        def test_kernel():
            for i in range(n):
                direction, _, _ = scatter_metal(
                    ti.math.vec3(1.0, 1.0, 1.0),
                    0.3,
                    ti.math.vec3(0.0, -1.0, 0.0),
                    ti.math.vec3(0.0, 1.0, 0.0),
                )
                directions[i] = direction

        test_kernel()
        d = directions.to_numpy()
        offsets = np.linalg.norm(d - np.array([0.0, 1.0, 0.0]), axis=1)
        assert offsets.max() < 0.3 + 1e-5
        assert d[:, 0].std() > 0.01

    def test_grazing_fuzz_sometimes_absorbs(self):
        """Fuzz can push a grazing reflection below the surface."""
        from src.jumbletracer.materials.metal import scatter_metal

        n = 1000
        scattered = ti.field(dtype=ti.i32, shape=n)

        @ti.kernel
        def test_kernel():
            for i in range(n):
                incident = ti.math.normalize(ti.math.vec3(1.0, -0.05, 0.0))
                _, _, did_scatter = scatter_metal(
                    ti.math.vec3(1.0, 1.0, 1.0), 1.0, incident, ti.math.vec3(0.0, 1.0, 0.0)
                )
                scattered[i] = did_scatter

        test_kernel()
        s = scattered.to_numpy()
        assert 0 < s.sum() < n


class TestMetalRegistry:
    """Tests for the metal material registry."""

    def test_add_and_scatter_by_id(self):
        from src.jumbletracer.materials.metal import (
            add_metal_material,
            get_metal_material_count,
            scatter_metal_by_id,
        )

        add_metal_material((0.5, 0.5, 0.5), 0.0)
        idx = add_metal_material((0.9, 0.8, 0.7), 0.0)
        assert idx == 1
        assert get_metal_material_count() == 2

        direction = ti.Vector.field(3, dtype=ti.f32, shape=())
        attenuation = ti.Vector.field(3, dtype=ti.f32, shape=())

        @ti.kernel
        def test_kernel(material_idx: ti.i32):
            d, att, _ = scatter_metal_by_id(
                material_idx, ti.math.vec3(0.0, -1.0, 0.0), ti.math.vec3(0.0, 1.0, 0.0)
            )
            direction[None] = d
            attenuation[None] = att

        test_kernel(idx)
        np.testing.assert_allclose(attenuation[None].to_numpy(), (0.9, 0.8, 0.7), atol=1e-6)
        np.testing.assert_allclose(direction[None].to_numpy(), (0.0, 1.0, 0.0), atol=1e-5)

    @pytest.mark.parametrize("fuzz", [-0.1, 1.5, float("nan")])
    def test_invalid_fuzz(self, fuzz):
        from src.jumbletracer.materials.metal import add_metal_material

        with pytest.raises(ValueError):
            add_metal_material((0.5, 0.5, 0.5), fuzz)

    def test_value_object(self):
        from src.jumbletracer.materials import Material, Metal

        metal = Metal(albedo=(0.9, 0.9, 0.9), fuzz=0.25)
        rebuilt = Material.from_dict(metal.to_dict())
        assert isinstance(rebuilt, Metal)
        assert rebuilt.fuzz == 0.25
        with pytest.raises(ValueError):
            Metal(albedo=(0.9, 0.9, 0.9), fuzz=1.2)
        with pytest.raises(ValueError):
            Metal(albedo=(0.9, 0.9, 0.9), fuzz=float("nan"))

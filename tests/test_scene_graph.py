"""Unit tests for the host-side scene tree.

Tests cover:
- Sphere primitive validation and intersection
- Closest-hit selection and first-inserted tie breaking
- Nested coordinate systems (points, normals, t invariance)
- Flattening into sphere instances
- Serialization round trip
"""

import math

import numpy as np
import pytest


def _gray():
    from src.jumbletracer.materials import Lambertian

    return Lambertian(albedo=(0.5, 0.5, 0.5))


def _shoot(node, origin, direction):
    from src.jumbletracer.scene.graph import HitRecord, HostRay, Range

    hit = HitRecord()
    shot = node.intersect(HostRay(origin, direction), Range(), hit)
    return shot, hit


class TestSpherePrimitive:
    """Tests for sphere leaves."""

    def test_zero_radius_rejected(self):
        from src.jumbletracer.scene.graph import SpherePrimitive

        with pytest.raises(ValueError):
            SpherePrimitive((0.0, 0.0, 0.0), 0.0, _gray())

    def test_infinite_radius_rejected(self):
        from src.jumbletracer.scene.graph import SpherePrimitive

        with pytest.raises(ValueError):
            SpherePrimitive((0.0, 0.0, 0.0), math.inf, _gray())

    def test_material_required(self):
        from src.jumbletracer.scene.graph import SpherePrimitive

        with pytest.raises(ValueError):
            SpherePrimitive((0.0, 0.0, 0.0), 1.0, None)

    def test_hit_fills_record(self):
        from src.jumbletracer.scene.graph import Shot, SpherePrimitive

        material = _gray()
        sphere = SpherePrimitive((0.0, 0.0, -1.0), 0.5, material)
        shot, hit = _shoot(sphere, (0.0, 0.0, 0.0), (0.0, 0.0, -1.0))
        assert shot is Shot.HIT
        assert hit.t == pytest.approx(0.5)
        np.testing.assert_allclose(hit.point, (0.0, 0.0, -0.5))
        np.testing.assert_allclose(hit.normal, (0.0, 0.0, 1.0))
        assert hit.front_face
        assert hit.material is material

    def test_miss_leaves_record_untouched(self):
        from src.jumbletracer.scene.graph import Shot, SpherePrimitive

        sphere = SpherePrimitive((0.0, 0.0, -1.0), 0.5, _gray())
        shot, hit = _shoot(sphere, (0.0, 0.0, 0.0), (0.0, 1.0, 0.0))
        assert shot is Shot.MISS
        assert math.isinf(hit.t)
        assert hit.material is None

    def test_farther_hit_does_not_replace(self):
        """Only strictly closer hits replace an existing record."""
        from src.jumbletracer.scene.graph import HitRecord, HostRay, Range, Shot, SpherePrimitive

        sphere = SpherePrimitive((0.0, 0.0, -5.0), 0.5, _gray())
        hit = HitRecord(t=1.0)
        shot = sphere.intersect(HostRay((0.0, 0.0, 0.0), (0.0, 0.0, -1.0)), Range(), hit)
        assert shot is Shot.MISS
        assert hit.t == 1.0


class TestJumble:
    """Tests for nested scene nodes."""

    def test_empty_node_misses(self):
        from src.jumbletracer.scene.graph import Jumble, Shot

        shot, hit = _shoot(Jumble(), (0.0, 0.0, 0.0), (0.0, 0.0, -1.0))
        assert shot is Shot.MISS

    def test_closest_child_wins(self):
        from src.jumbletracer.scene.graph import Jumble, SpherePrimitive

        far_material = _gray()
        near_material = _gray()
        root = Jumble("main")
        root.add(SpherePrimitive((0.0, 0.0, -5.0), 0.5, far_material))
        root.add(SpherePrimitive((0.0, 0.0, -2.0), 0.5, near_material))
        _, hit = _shoot(root, (0.0, 0.0, 0.0), (0.0, 0.0, -1.0))
        assert hit.t == pytest.approx(1.5)
        assert hit.material is near_material

    def test_tie_goes_to_first_inserted(self):
        """Coincident spheres: the first child keeps the hit."""
        from src.jumbletracer.scene.graph import Jumble, SpherePrimitive

        first = _gray()
        second = _gray()
        root = Jumble("main")
        root.add(SpherePrimitive((0.0, 0.0, -1.0), 0.5, first))
        root.add(SpherePrimitive((0.0, 0.0, -1.0), 0.5, second))
        _, hit = _shoot(root, (0.0, 0.0, 0.0), (0.0, 0.0, -1.0))
        assert hit.material is first

    def test_adding_child_leaves_siblings_alone(self):
        """Growing one node does not change hits against its sibling."""
        from src.jumbletracer.core.transform import AffineMatrix
        from src.jumbletracer.scene.graph import Jumble, SpherePrimitive

        left = Jumble("left", [SpherePrimitive((0.0, 0.0, -2.0), 0.5, _gray())])
        left.set_csys(AffineMatrix.translation((-2.0, 0.0, 0.0)))
        right = Jumble("right", [SpherePrimitive((0.0, 0.0, -2.0), 0.5, _gray())])
        right.set_csys(AffineMatrix.translation((2.0, 0.0, 0.0)))
        root = Jumble("main", [left, right])

        direction = (-2.0, 0.1, -2.0)
        _, before = _shoot(root, (0.0, 0.0, 0.0), direction)
        right.add(SpherePrimitive((0.0, 0.0, -4.0), 1.0, _gray()))
        _, after = _shoot(root, (0.0, 0.0, 0.0), direction)

        assert after.t == before.t
        np.testing.assert_array_equal(after.normal, before.normal)
        assert after.material is before.material

    def test_translated_node(self):
        from src.jumbletracer.core.transform import AffineMatrix
        from src.jumbletracer.scene.graph import Jumble, SpherePrimitive

        node = Jumble("moved", [SpherePrimitive((0.0, 0.0, 0.0), 0.5, _gray())])
        node.set_csys(AffineMatrix.translation((0.0, 0.0, -3.0)))
        _, hit = _shoot(node, (0.0, 0.0, 0.0), (0.0, 0.0, -1.0))
        assert hit.t == pytest.approx(2.5)
        np.testing.assert_allclose(hit.point, (0.0, 0.0, -2.5))

    def test_t_is_frame_invariant_under_scale(self):
        """Scaling the frame does not change t because directions are not renormalized."""
        from src.jumbletracer.core.transform import AffineMatrix
        from src.jumbletracer.scene.graph import Jumble, SpherePrimitive

        node = Jumble("squashed", [SpherePrimitive((0.0, 0.0, -1.0), 0.5, _gray())])
        node.set_csys(AffineMatrix.scaling((1.0, 1.0, 2.0)))
        _, hit = _shoot(node, (0.0, 0.0, 0.0), (0.0, 0.0, -1.0))
        # The sphere now spans z in [-3, -1]
        assert hit.t == pytest.approx(1.0)
        np.testing.assert_allclose(hit.point, (0.0, 0.0, -1.0), atol=1e-12)

    def test_normal_uses_dual_basis(self):
        """Normals off a squashed sphere stay perpendicular to its surface."""
        from src.jumbletracer.core.transform import AffineMatrix
        from src.jumbletracer.scene.graph import Jumble, SpherePrimitive

        node = Jumble("squashed", [SpherePrimitive((0.0, 0.0, 0.0), 1.0, _gray())])
        node.set_csys(AffineMatrix.scaling((2.0, 0.5, 1.0)))
        # Ellipse x^2/4 + y^2/0.25 = 1 in the z = 0 plane
        x = 1.0
        y = 0.5 * math.sqrt(1.0 - x * x / 4.0)
        _, hit = _shoot(node, (x, 5.0, 0.0), (0.0, -1.0, 0.0))
        np.testing.assert_allclose(hit.point, (x, y, 0.0), atol=1e-9)

        gradient = np.array([2.0 * x / 4.0, 2.0 * y / 0.25, 0.0])
        np.testing.assert_allclose(hit.normal, gradient / np.linalg.norm(gradient), atol=1e-9)

    def test_nested_frames_compose(self):
        from src.jumbletracer.core.transform import AffineMatrix
        from src.jumbletracer.scene.graph import Jumble, SpherePrimitive

        inner = Jumble("inner", [SpherePrimitive((0.0, 0.0, 0.0), 1.0, _gray())])
        inner.set_csys(AffineMatrix.scaling((0.5, 0.5, 0.5)))
        outer = Jumble("outer", [inner])
        outer.set_csys(AffineMatrix.translation((0.0, 0.0, -2.0)))
        _, hit = _shoot(outer, (0.0, 0.0, 0.0), (0.0, 0.0, -1.0))
        assert hit.t == pytest.approx(1.5)
        np.testing.assert_allclose(hit.normal, (0.0, 0.0, 1.0), atol=1e-12)

    def test_cycle_rejected(self):
        from src.jumbletracer.scene.graph import Jumble

        a = Jumble("a")
        b = Jumble("b")
        a.add(b)
        with pytest.raises(ValueError, match="cycle"):
            b.add(a)
        with pytest.raises(ValueError, match="cycle"):
            a.add(a)

    def test_non_intersectable_rejected(self):
        from src.jumbletracer.scene.graph import Jumble

        with pytest.raises(ValueError):
            Jumble().add("sphere")

    def test_set_csys_from_basis(self):
        from src.jumbletracer.scene.graph import Jumble

        node = Jumble()
        node.set_csys_from_basis(origin=(1.0, 0.0, 0.0), scale=(2.0, 1.0, 1.0))
        np.testing.assert_allclose(node.csys.matrix.transform_point((1.0, 0.0, 0.0)), (3.0, 0.0, 0.0))

    def test_singular_csys_rejected(self):
        from src.jumbletracer.core.transform import AffineMatrix
        from src.jumbletracer.scene.graph import Jumble

        with pytest.raises(ValueError):
            Jumble().set_csys(AffineMatrix.scaling((1.0, 1.0, 0.0)))


class TestInstances:
    """Tests for flattening the tree."""

    def test_shared_sphere_yields_one_instance_per_occurrence(self):
        from src.jumbletracer.scene.demo import create_demo_scene

        root, _ = create_demo_scene()
        paths = [instance.path for instance in root.instances()]
        assert root.count_spheres() == 7
        assert paths[0] == ("main", "sub")
        assert paths[2] == ("main", "squishy")
        assert paths[-1] == ("main", "sq3")

    def test_fov_test_adds_two_spheres(self):
        from src.jumbletracer.scene.demo import create_demo_scene

        root, _ = create_demo_scene(include_fov_test=True)
        assert root.count_spheres() == 9

    def test_instance_matrices_match_tree_walk(self):
        """Intersecting an instance in its frame reproduces the tree result."""
        from src.jumbletracer.scene.graph import HitRecord, HostRay, Range, Shot
        from src.jumbletracer.scene.demo import create_demo_scene

        root, _ = create_demo_scene()
        ray = HostRay((0.0, 0.0, 0.0), (-1.25, 0.25, -1.0))
        _, tree_hit = _shoot(root, ray.origin, ray.direction)

        best = HitRecord()
        best_instance = None
        for instance in root.instances():
            local = HitRecord(t=best.t)
            if instance.sphere.intersect(ray.transform(instance.to_local), Range(), local) is Shot.HIT:
                best = local
                best_instance = instance

        assert best_instance is not None
        assert best.t == pytest.approx(tree_hit.t)
        np.testing.assert_allclose(best_instance.to_world.transform_point(best.point), tree_hit.point, atol=1e-9)
        world_normal = best_instance.normal_to_world @ best.normal
        world_normal /= np.linalg.norm(world_normal)
        np.testing.assert_allclose(world_normal, tree_hit.normal, atol=1e-9)


class TestSerialization:
    """Tests for dictionary round trips."""

    def test_round_trip_preserves_structure(self):
        from src.jumbletracer.scene.demo import create_demo_scene
        from src.jumbletracer.scene.graph import Jumble

        root, _ = create_demo_scene()
        data = root.to_dict()
        rebuilt = Jumble.from_dict(data)

        assert rebuilt.name == "main"
        assert [c.name for c in rebuilt.children] == ["sub", "squishy", "sq2", "sq3"]
        assert rebuilt.count_spheres() == root.count_spheres()
        np.testing.assert_allclose(rebuilt.children[1].csys.matrix.rows, root.children[1].csys.matrix.rows)

    def test_materials_are_shared_by_index(self):
        """Each distinct material appears once in the table."""
        from src.jumbletracer.scene.demo import create_demo_scene
        from src.jumbletracer.scene.graph import Jumble

        root, _ = create_demo_scene()
        data = root.to_dict()
        assert len(data["materials"]) == 3

        rebuilt = Jumble.from_dict(data)
        sub = rebuilt.children[0]
        squishy = rebuilt.children[1]
        # s1 appears in both nodes and still refers to one material object
        assert sub.children[0].material is squishy.children[1].material

    def test_rebuilt_tree_intersects_identically(self):
        from src.jumbletracer.scene.demo import create_demo_scene
        from src.jumbletracer.scene.graph import Jumble

        root, _ = create_demo_scene()
        rebuilt = Jumble.from_dict(root.to_dict())
        for direction in [(0.0, 0.0, -1.0), (0.9, -0.3, -1.0), (-0.7, 0.2, -1.0)]:
            _, a = _shoot(root, (0.0, 0.0, 0.0), direction)
            _, b = _shoot(rebuilt, (0.0, 0.0, 0.0), direction)
            assert a.t == pytest.approx(b.t)

    def test_unknown_node_type_raises(self):
        from src.jumbletracer.scene.graph import Jumble

        with pytest.raises(ValueError):
            Jumble.from_dict({"materials": [], "root": {"type": "cube"}})

    def test_bad_material_index_raises(self):
        from src.jumbletracer.scene.graph import Jumble

        data = {
            "materials": [],
            "root": {"type": "jumble", "children": [{"type": "sphere", "radius": 1.0, "material": 0}]},
        }
        with pytest.raises(ValueError):
            Jumble.from_dict(data)

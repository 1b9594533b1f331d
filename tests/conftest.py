"""Pytest configuration for raytracer tests.

This module provides shared fixtures for all test modules, including
Taichi initialization which must happen once per session.
"""

import pytest
import taichi as ti


@pytest.fixture(scope="session", autouse=True)
def init_taichi_session():
    """Initialize Taichi once for the entire test session.

    Using session scope prevents multiple ti.init() calls which can cause
    segmentation faults due to Taichi runtime conflicts.
    """
    ti.init(arch=ti.cpu, random_seed=42)
    yield


@pytest.fixture(autouse=True)
def clear_all_scene_data():
    """Clear instance, material and render-target state around each test."""
    # Imported here so Taichi is initialized first
    from src.jumbletracer.core.integrator import reset_render_target
    from src.jumbletracer.materials.dielectric import clear_dielectric_materials
    from src.jumbletracer.materials.lambertian import clear_lambertian_materials
    from src.jumbletracer.materials.metal import clear_metal_materials
    from src.jumbletracer.scene.intersection import clear_scene
    from src.jumbletracer.scene.manager import _clear_material_tracking

    def _clear_all():
        clear_scene()
        clear_lambertian_materials()
        clear_metal_materials()
        clear_dielectric_materials()
        _clear_material_tracking()
        reset_render_target()

    _clear_all()
    yield
    _clear_all()


@pytest.fixture
def demo_scene():
    """The demo stage uploaded to the device, with its camera set up.

    Returns:
        Tuple of (root node, camera, scene manager).
    """
    from src.jumbletracer.camera.thin_lens import setup_camera
    from src.jumbletracer.scene.demo import create_demo_scene
    from src.jumbletracer.scene.manager import SceneManager

    root, camera = create_demo_scene()
    manager = SceneManager()
    manager.load(root)
    setup_camera(camera)
    return root, camera, manager

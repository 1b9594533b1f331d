#!/usr/bin/env python3
"""Render the demo jumble stage.

This script renders the nested, transformed spheres of the demo stage end to
end: it builds the scene tree, uploads it, sets up the camera and renders
with progressive refinement before writing a gamma-encoded PNG.

Usage:
    python -m examples.render_jumble [options]

Options:
    --height HEIGHT       Image height in pixels (default: 225)
    --aspect ASPECT       Width / height (default: 16/9)
    --samples SAMPLES     Number of samples per pixel (default: 100)
    --max-depth DEPTH     Bounce budget per camera ray (default: 50)
    --sample-type TYPE    pixel_ratio, blurry or blurrier (default: pixel_ratio)
    --aperture APERTURE   Lens diameter, 0 for a pinhole (default: 0)
    --seed SEED           Random seed for Taichi (default: 0)
    --arch ARCH           auto, gpu or cpu (default: auto)
    --batch-size SIZE     Samples per progress update (default: 10)
    --fov-test            Add the field-of-view test spheres
    --glass               Use a glass core sphere in the squishy node
    --output OUTPUT       Output file path (default: jumble.png)
    --quiet               Suppress progress output

Example:
    python -m examples.render_jumble --height 120 --samples 20
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path

import taichi as ti

SAMPLE_TYPES = ("pixel_ratio", "blurry", "blurrier")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Render the demo jumble stage.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--height",
        type=int,
        default=225,
        help="Image height in pixels (default: 225)",
    )
    parser.add_argument(
        "--aspect",
        type=float,
        default=16.0 / 9.0,
        help="Aspect ratio, width / height (default: 16/9)",
    )
    parser.add_argument(
        "--samples",
        type=int,
        default=100,
        help="Number of samples per pixel (default: 100)",
    )
    parser.add_argument(
        "--max-depth",
        type=int,
        default=50,
        help="Bounce budget per camera ray (default: 50)",
    )
    parser.add_argument(
        "--sample-type",
        choices=SAMPLE_TYPES,
        default="pixel_ratio",
        help="Pixel jitter extent (default: pixel_ratio)",
    )
    parser.add_argument(
        "--aperture",
        type=float,
        default=0.0,
        help="Lens diameter, 0 for a pinhole camera (default: 0)",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=0,
        help="Random seed for Taichi (default: 0)",
    )
    parser.add_argument(
        "--arch",
        choices=("auto", "gpu", "cpu"),
        default="auto",
        help="Taichi backend (default: auto, GPU with CPU fallback)",
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        default=10,
        help="Samples per progress update (default: 10)",
    )
    parser.add_argument(
        "--fov-test",
        action="store_true",
        help="Add the field-of-view test spheres",
    )
    parser.add_argument(
        "--glass",
        action="store_true",
        help="Use a glass core sphere in the squishy node",
    )
    parser.add_argument(
        "--output",
        type=str,
        default="jumble.png",
        help="Output file path (default: jumble.png)",
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Suppress progress output",
    )
    return parser.parse_args(argv)


def init_taichi(arch: str, seed: int, quiet: bool = False) -> None:
    """Initialize Taichi on the requested backend."""
    if arch == "cpu":
        ti.init(arch=ti.cpu, random_seed=seed)
        return

    # Use GPU if available, fall back to CPU
    try:
        ti.init(arch=ti.gpu, random_seed=seed)
        if not quiet:
            print("Using GPU backend")
    except Exception:
        if arch == "gpu":
            raise
        ti.init(arch=ti.cpu, random_seed=seed)
        if not quiet:
            print("Using CPU backend")


def render_jumble(
    height: int = 225,
    aspect: float = 16.0 / 9.0,
    num_samples: int = 100,
    max_depth: int = 50,
    sample_type: str = "pixel_ratio",
    aperture: float = 0.0,
    output_path: str = "jumble.png",
    batch_size: int = 10,
    include_fov_test: bool = False,
    include_glass: bool = False,
    quiet: bool = False,
) -> Path:
    """Render the demo stage and save it to a PNG file.

    Returns:
        Path to the saved image file.
    """
    # Lazy imports to allow Taichi initialization first
    from src.jumbletracer.camera.thin_lens import SampleType, ThinLensCamera, setup_camera
    from src.jumbletracer.core.progressive import ProgressiveRenderer
    from src.jumbletracer.preview.export import save_png
    from src.jumbletracer.scene.demo import create_demo_scene
    from src.jumbletracer.scene.manager import SceneManager

    root, camera = create_demo_scene(include_fov_test=include_fov_test, include_glass=include_glass)
    camera = ThinLensCamera(
        image_height=height,
        aspect_ratio=aspect,
        aperture=aperture,
        sample_type=SampleType[sample_type.upper()],
        vfov=camera.vfov,
        look_from=camera.look_from,
        look_at=camera.look_at,
        view_up=camera.view_up,
    )
    width = camera.image_width

    if not quiet:
        print(f"Creating jumble scene ({width}x{height})...")

    scene = SceneManager()
    scene.load(root)
    setup_camera(camera)

    renderer = ProgressiveRenderer(width, height, max_depth=max_depth)

    if not quiet:
        print(
            f"Rendering {scene.get_sphere_count()} sphere instances, "
            f"{num_samples} samples per pixel..."
        )

    start_time = time.time()

    def progress_callback(current: int, target: int) -> None:
        if not quiet:
            elapsed = time.time() - start_time
            progress_pct = (current / target) * 100 if target > 0 else 0
            samples_per_sec = current / elapsed if elapsed > 0 else 0
            print(
                f"\r  Progress: {current}/{target} samples "
                f"({progress_pct:.1f}%) - {samples_per_sec:.1f} spp/s",
                end="",
                flush=True,
            )

    stats = renderer.render(
        num_samples=num_samples,
        batch_size=batch_size,
        callback=progress_callback,
    )

    if not quiet:
        print()  # Newline after progress

    output_file = Path(output_path)
    save_png(renderer, str(output_file))

    total_time = time.time() - start_time
    if not quiet:
        if stats is not None and stats.nonfinite_samples > 0:
            print(f"Warning: {stats.nonfinite_samples} samples were not finite")
        if stats is not None and stats.negative_samples > 0:
            print(f"Warning: {stats.negative_samples} samples had a negative channel")
        print(f"Saved to: {output_file.absolute()}")
        print(f"Total time: {total_time:.2f}s")

    return output_file


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.WARNING if args.quiet else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        init_taichi(args.arch, args.seed, quiet=args.quiet)
        render_jumble(
            height=args.height,
            aspect=args.aspect,
            num_samples=args.samples,
            max_depth=args.max_depth,
            sample_type=args.sample_type,
            aperture=args.aperture,
            output_path=args.output,
            batch_size=args.batch_size,
            include_fov_test=args.fov_test,
            include_glass=args.glass,
            quiet=args.quiet,
        )
        return 0
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())

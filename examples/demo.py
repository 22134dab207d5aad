#!/usr/bin/env python3
"""
Blockify Demo Script

This script demonstrates the full conversion pipeline by:
1. Creating synthetic test pictures (no external images needed)
2. Converting each with every fill mode
3. Exporting to .schematic and .obj
4. Printing statistics and a merged vs naive face comparison

Run with: python examples/demo.py
"""

import sys
from pathlib import Path
import numpy as np
import time

# Add src to path for development
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from blockify import ConversionSettings, FillMode, VoxelGenerator
from blockify.greedy_mesh import GreedyMesher, NaiveMesher


def create_test_picture_disc(size: int = 32) -> np.ndarray:
    """
    Bright shaded disc on a flat dark background.

    Returns:
        RGBA array of shape (size, size, 4)
    """
    rgba = np.zeros((size, size, 4), dtype=np.uint8)
    rgba[:, :] = [30, 40, 60, 255]

    center = size / 2
    radius = size / 3
    ys, xs = np.mgrid[0:size, 0:size]
    dist = np.sqrt((xs - center) ** 2 + (ys - center) ** 2)
    inside = dist < radius
    shade = (1 - dist / radius)[inside]

    rgba[inside, 0] = (180 + 70 * shade).astype(np.uint8)
    rgba[inside, 1] = (90 + 60 * shade).astype(np.uint8)
    rgba[inside, 2] = 40
    return rgba


def create_test_picture_gradient(size: int = 32) -> np.ndarray:
    """
    Smooth two-axis colour gradient with a transparent frame.

    Returns:
        RGBA array of shape (size, size, 4)
    """
    rgba = np.zeros((size, size, 4), dtype=np.uint8)
    margin = 3
    ys, xs = np.mgrid[0:size, 0:size]

    rgba[..., 0] = (255 * xs / size).astype(np.uint8)
    rgba[..., 1] = (255 * ys / size).astype(np.uint8)
    rgba[..., 2] = 128
    rgba[margin:size - margin, margin:size - margin, 3] = 255
    return rgba


def create_test_picture_tree(size: int = 48) -> np.ndarray:
    """
    Green cone on a brown trunk in front of a pale sky.

    Returns:
        RGBA array of shape (size, size, 4)
    """
    rgba = np.zeros((size, size, 4), dtype=np.uint8)
    rgba[:, :] = [200, 220, 240, 255]

    cx = size // 2
    trunk_width = size // 10
    rgba[size // 2:size - 2, cx - trunk_width:cx + trunk_width, :3] = [101, 67, 33]

    foliage_top, foliage_bottom = 2, size // 2 + size // 8
    for y in range(foliage_top, foliage_bottom):
        progress = (y - foliage_top) / (foliage_bottom - foliage_top)
        half_width = int(progress * size // 3) + 2
        x0, x1 = max(0, cx - half_width), min(size, cx + half_width)
        rgba[y, x0:x1, :3] = [34, 139, 34]

    return rgba


def run_demo():
    """Run the demonstration."""
    print("=" * 60)
    print("Blockify - Demo")
    print("=" * 60)

    output_dir = Path(__file__).parent / "output"
    output_dir.mkdir(exist_ok=True)

    pictures = [
        ("disc", create_test_picture_disc(32)),
        ("gradient", create_test_picture_gradient(32)),
        ("tree", create_test_picture_tree(48)),
    ]

    total_start = time.time()

    for name, rgba in pictures:
        print(f"\n--- Processing: {name} ({rgba.shape[1]}x{rgba.shape[0]}) ---")

        for fill in FillMode:
            settings = ConversionSettings(depth_layers=8, fill_mode=fill, palette="full")
            generator = VoxelGenerator(settings)

            start = time.time()
            generator.load_array(rgba).convert()
            elapsed = time.time() - start

            stats = generator.get_stats()
            raw = len(generator.result.grid.voxels)
            print(f"  {fill.value:8s} {raw:6d} voxels -> {stats.total_voxels:6d} visible, "
                  f"{stats.unique_blocks:3d} blocks, {stats.dimensions} ({elapsed*1000:.0f}ms)")

        # Export the last (hollow) conversion and compare meshers on it
        grid = generator.grid
        greedy = GreedyMesher().mesh(grid)
        naive = NaiveMesher().mesh(grid)
        if naive.face_count:
            reduction = (1 - greedy.face_count / naive.face_count) * 100
            print(f"  Faces: {naive.face_count} naive, {greedy.face_count} merged "
                  f"({reduction:.1f}% fewer)")

        for path in generator.export_all(output_dir / name):
            print(f"    Saved: {path}")

    print("\n" + "=" * 60)
    print(f"Demo complete! Total time: {time.time() - total_start:.2f}s")
    print(f"Output files in: {output_dir}")
    print("=" * 60)

    return 0


if __name__ == "__main__":
    run_demo()

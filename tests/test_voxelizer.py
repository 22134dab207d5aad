"""
Unit tests for voxel grids, column fills, occlusion culling and meshing.
"""

import sys
from pathlib import Path
import itertools
import numpy as np
import unittest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from blockify.config import FillMode
from blockify.errors import InvalidDimensionsError
from blockify.greedy_mesh import (
    FACE_NORMALS,
    GreedyMesher,
    NaiveMesher,
    build_volume,
    quad_corners,
)
from blockify.palette import Block, Palette
from blockify.quantizer import QuantizedBlockField
from blockify.voxelizer import (
    Bounds,
    Voxel,
    VoxelGrid,
    Voxelizer,
    build_voxel_grid,
    grid_stats,
    optimize_grid,
)


STONE = Block("stone", (125, 125, 125), 1)
DIRT = Block("dirt", (134, 96, 67), 3)
PALETTE = Palette("test", [STONE, DIRT])


def block_field(indices):
    indices = np.asarray(indices, dtype=np.int32)
    colors = np.zeros(indices.shape + (3,), dtype=np.uint8)
    return QuantizedBlockField(PALETTE, indices, colors)


def cube(n, block=STONE):
    voxels = [Voxel(x, y, z, block) for x, y, z in itertools.product(range(n), repeat=3)]
    return VoxelGrid(tuple(voxels), n, n, n)


class TestBounds(unittest.TestCase):
    """Tests for bounds computation."""

    def test_empty(self):
        """An empty voxel set has all-zero bounds."""
        b = Bounds.from_voxels([])
        assert b.is_empty
        assert b.size == (0, 0, 0)
        assert b.minimum == (0, 0, 0)

    def test_bounds_invariant(self):
        """size = max - min + 1 and every voxel lies inside."""
        rng = np.random.default_rng(7)
        voxels = [
            Voxel(int(x), int(y), int(z), STONE)
            for x, y, z in rng.integers(-5, 9, size=(40, 3))
        ]
        grid = VoxelGrid(tuple(voxels), 10, 10, 10)
        b = grid.bounds

        assert b.size_x == b.max_x - b.min_x + 1
        assert b.size_y == b.max_y - b.min_y + 1
        assert b.size_z == b.max_z - b.min_z + 1
        for v in voxels:
            assert b.contains(v.x, v.y, v.z)


class TestVoxelizer(unittest.TestCase):
    """Tests for building voxel columns."""

    def test_solid_column(self):
        """Solid fill: depth 3 at one pixel gives z = 0..3 there only."""
        blocks = block_field([[-1, 0], [-1, -1]])
        depth = np.array([[0, 3], [0, 0]])
        grid = build_voxel_grid(blocks, depth, 4, FillMode.SOLID)

        assert len(grid.voxels) == 4
        assert sorted(v.z for v in grid.voxels) == [0, 1, 2, 3]
        # Image row 0 is the top row: y = height - 1
        assert all((v.x, v.y) == (1, 1) for v in grid.voxels)

    def test_surface(self):
        """Surface fill: one voxel per opaque pixel at its depth."""
        blocks = block_field([[0, 1], [1, 0]])
        depth = np.array([[2, 0], [1, 3]])
        grid = build_voxel_grid(blocks, depth, 4, "surface")

        assert len(grid.voxels) == 4
        assert grid.index.get(0, 1, 2).block == STONE
        assert grid.index.get(1, 0, 3).block == STONE
        assert grid.index.get(1, 1, 0).block == DIRT

    def test_hollow(self):
        """Hollow fill: top plus base, a single voxel at depth 0."""
        blocks = block_field([[0, 0]])
        depth = np.array([[3, 0]])
        grid = build_voxel_grid(blocks, depth, 4, FillMode.HOLLOW)

        assert len(grid.voxels) == 3
        assert grid.index.is_occupied(0, 0, 3)
        assert grid.index.is_occupied(0, 0, 0)
        assert not grid.index.is_occupied(0, 0, 1)
        assert grid.index.is_occupied(1, 0, 0)

    def test_transparent_only(self):
        """No opaque pixel, no voxels, zero bounds."""
        grid = build_voxel_grid(block_field([[-1, -1]]), np.zeros((1, 2)), 3)
        assert len(grid.voxels) == 0
        assert grid.bounds.is_empty

    def test_shape_mismatch(self):
        """Depth and block fields must agree in shape."""
        with self.assertRaises(InvalidDimensionsError):
            build_voxel_grid(block_field([[0, 0]]), np.zeros((2, 2)), 3)

    def test_invalid_fill_mode(self):
        """Unknown fill modes are rejected."""
        with self.assertRaises(ValueError):
            Voxelizer("wireframe")


class TestOptimizer(unittest.TestCase):
    """Tests for occlusion culling."""

    def test_cube_surface_count(self):
        """A solid n^3 cube keeps exactly its 6n^2 - 12n + 8 shell."""
        for n in (2, 3, 4, 5):
            optimized = optimize_grid(cube(n))
            assert len(optimized.voxels) == 6 * n * n - 12 * n + 8

    def test_monotonic(self):
        """Culling never adds voxels."""
        rng = np.random.default_rng(3)
        cells = {tuple(int(c) for c in p) for p in rng.integers(0, 4, size=(50, 3))}
        grid = VoxelGrid(tuple(Voxel(x, y, z, STONE) for x, y, z in cells), 4, 4, 4)
        assert len(optimize_grid(grid).voxels) <= len(grid.voxels)

    def test_face_flags(self):
        """Flags are true exactly where the neighbor cell is empty."""
        grid = VoxelGrid((Voxel(0, 0, 0, STONE), Voxel(1, 0, 0, DIRT)), 2, 1, 1)
        optimized = optimize_grid(grid)
        left = optimized.index.get(0, 0, 0)

        assert left.faces.pos_x is False
        assert left.faces.neg_x is True
        assert left.faces.visible_count == 5

    def test_index_rebuilt(self):
        """The optimized grid indexes only the surviving voxels."""
        optimized = optimize_grid(cube(3))
        assert len(optimized.index) == len(optimized.voxels)
        assert not optimized.index.is_occupied(1, 1, 1)
        assert optimized.bounds == cube(3).bounds

    def test_input_unchanged(self):
        """Optimization returns a new grid and leaves the input alone."""
        grid = cube(3)
        optimize_grid(grid)
        assert len(grid.voxels) == 27
        assert all(v.faces is None for v in grid.voxels)


class TestGridStats(unittest.TestCase):
    """Tests for grid statistics."""

    def test_stats(self):
        """Counts per block and the dimension string."""
        grid = VoxelGrid(
            (Voxel(0, 0, 0, STONE), Voxel(2, 1, 3, DIRT), Voxel(1, 0, 0, STONE)),
            3, 2, 4
        )
        stats = grid_stats(grid)

        assert stats.total_voxels == 3
        assert stats.dimensions == "3 × 2 × 4"
        assert stats.unique_blocks == 2
        assert stats.block_counts == {"stone": 2, "dirt": 1}


class TestMeshing(unittest.TestCase):
    """Tests for naive and greedy meshing."""

    def test_winding_matches_normals(self):
        """Every corner order winds counter-clockwise around its normal."""
        for direction in range(6):
            c = np.array(quad_corners(direction, 0, 0, 0), dtype=np.float64)
            normal = np.cross(c[1] - c[0], c[2] - c[0])
            assert np.allclose(normal, FACE_NORMALS[direction]), direction

    def test_single_voxel(self):
        """One voxel: six faces sharing eight corners."""
        grid = optimize_grid(VoxelGrid((Voxel(0, 0, 0, STONE),), 1, 1, 1))

        for mesher in (GreedyMesher(), NaiveMesher()):
            mesh = mesher.mesh(grid)
            assert mesh.face_count == 6
            assert mesh.vertex_count == 8

    def test_merging_reduces_faces(self):
        """A solid cube merges into six quads."""
        grid = optimize_grid(cube(3))
        greedy = GreedyMesher().mesh(grid)
        naive = NaiveMesher().mesh(grid)

        assert naive.face_count == 6 * 9
        assert greedy.face_count == 6
        assert greedy.vertex_count == 8
        assert greedy.vertex_count < naive.vertex_count

    def test_merging_respects_blocks(self):
        """Faces of different blocks are never merged."""
        voxels = (Voxel(0, 0, 0, STONE), Voxel(1, 0, 0, DIRT))
        grid = optimize_grid(VoxelGrid(voxels, 2, 1, 1))
        mesh = GreedyMesher().mesh(grid)

        # +y, -y, +z, -z stay split per block, plus both x end caps
        assert mesh.face_count == 10

    def test_volume(self):
        """Dense volume is local to the minimum bound."""
        grid = optimize_grid(VoxelGrid((Voxel(5, 6, 7, STONE), Voxel(6, 6, 7, DIRT)), 8, 8, 8))
        volume = build_volume(grid)

        assert volume.origin == (5, 6, 7)
        assert volume.materials.shape == (2, 1, 1)
        assert volume.faces[0, 0, 0].tolist() == [0, 1, 1, 1, 1, 1]

    def test_empty_grid(self):
        """Meshing nothing gives an empty mesh."""
        grid = VoxelGrid((), 0, 0, 0)
        for mesher in (GreedyMesher(), NaiveMesher()):
            mesh = mesher.mesh(grid)
            assert mesh.face_count == 0
            assert mesh.vertices.shape == (0, 3)


if __name__ == "__main__":
    unittest.main()

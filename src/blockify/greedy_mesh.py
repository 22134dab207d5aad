"""
Greedy Meshing Algorithm with Numba JIT Compilation

This module turns an optimized voxel grid into quad geometry. Only faces
flagged visible by the visibility optimizer are emitted.

Two meshers are provided:
- NaiveMesher: one unit quad per visible face, vertices shared only within
  the voxel that owns them
- GreedyMesher: coplanar, adjacent, same-block faces are merged into larger
  rectangles per slice; vertices are shared across the whole mesh

Algorithm Overview (greedy):
1. Densify: copy block indices and face flags into (X, Y, Z) arrays
2. Greedy Sweep: for each direction and slice, grow rectangles along v, then u
3. Emit Geometry: map (slice, u, v) rectangles back to lattice corners

Slice axes per direction axis:
    X faces: u = Y, v = Z
    Y faces: u = X, v = Z
    Z faces: u = X, v = Y

Limitations:
- Merged quads of different sizes meet at T-junctions: a corner of one quad
  can lie on the edge of its neighbor without being one of its vertices.
  Exported meshes are fine for viewing and import, but renderers without
  conservative rasterization may show hairline cracks along such edges.
- Vertices are shared by position only, so quads of different blocks reuse
  the same corner. NaiveMesher keeps corners per voxel instead.
"""

from typing import Dict, List, NamedTuple, Optional, Tuple
import numpy as np
from numba import njit

from .palette import Block
from .voxelizer import VoxelGrid


# Face directions in FaceFlags order
DIRECTION_NAMES = ("+x", "-x", "+y", "-y", "+z", "-z")

FACE_NORMALS = np.array([
    [1, 0, 0],
    [-1, 0, 0],
    [0, 1, 0],
    [0, -1, 0],
    [0, 0, 1],
    [0, 0, -1],
], dtype=np.float64)

# Sign of (u x v) along the slice axis; corners are reversed when the face
# normal points the other way so every quad winds counter-clockwise outward.
_UV_HANDEDNESS = {0: 1, 1: -1, 2: 1}


class MeshData(NamedTuple):
    """Container for quad mesh geometry."""
    vertices: np.ndarray    # (N, 3) float64 lattice positions
    quads: np.ndarray       # (M, 4) int64 vertex indices, CCW seen from outside
    directions: np.ndarray  # (M,) int64 face direction (FaceFlags order)
    materials: np.ndarray   # (M,) int64 index into `blocks`
    blocks: Tuple[Block, ...]

    @property
    def vertex_count(self) -> int:
        return len(self.vertices)

    @property
    def face_count(self) -> int:
        return len(self.quads)


class VoxelVolume(NamedTuple):
    """Dense copy of a sparse grid, local to its minimum bound."""
    origin: Tuple[int, int, int]
    materials: np.ndarray   # (X, Y, Z) int32, -1 = empty
    faces: np.ndarray       # (X, Y, Z, 6) uint8 visibility flags
    blocks: Tuple[Block, ...]


def build_volume(grid: VoxelGrid) -> VoxelVolume:
    """
    Densify a voxel grid.

    Voxels without face flags get them evaluated against the grid's own index.

    Args:
        grid: Voxel grid, usually the optimized one

    Returns:
        VoxelVolume
    """
    blocks = tuple(grid.unique_blocks())
    material_of = {block: i for i, block in enumerate(blocks)}
    bounds = grid.bounds
    shape = bounds.size

    materials = np.full(shape, -1, dtype=np.int32)
    faces = np.zeros(shape + (6,), dtype=np.uint8)

    for v in grid.voxels:
        flags = v.faces if v.faces is not None else grid.index.face_flags(v.x, v.y, v.z)
        lx = v.x - bounds.min_x
        ly = v.y - bounds.min_y
        lz = v.z - bounds.min_z
        materials[lx, ly, lz] = material_of[v.block]
        faces[lx, ly, lz] = flags

    return VoxelVolume(bounds.minimum, materials, faces, blocks)


@njit(cache=True)
def _cell(axis: int, s: int, u: int, v: int):
    """Map slice coordinates to (x, y, z)."""
    if axis == 0:
        return s, u, v
    elif axis == 1:
        return u, s, v
    return u, v, s


@njit(cache=True)
def _face_material(
    materials: np.ndarray,
    faces: np.ndarray,
    direction: int,
    x: int, y: int, z: int
) -> int:
    """Block index of a visible face, or -1 when there is none."""
    if faces[x, y, z, direction] == 0:
        return -1
    return materials[x, y, z]


@njit(cache=True)
def _merge_direction(
    materials: np.ndarray,
    faces: np.ndarray,
    direction: int
) -> np.ndarray:
    """
    Greedy-merge all slices of one face direction.

    Args:
        materials: (X, Y, Z) block indices, -1 = empty
        faces: (X, Y, Z, 6) visibility flags
        direction: Face direction (0-5, FaceFlags order)

    Returns:
        int32 (M, 6) quads: slice, u, v, height (along u), width (along v),
        material
    """
    axis = direction // 2
    sx, sy, sz = materials.shape

    if axis == 0:
        ns, nu, nv = sx, sy, sz
    elif axis == 1:
        ns, nu, nv = sy, sx, sz
    else:
        ns, nu, nv = sz, sx, sy

    quads = np.zeros((ns * nu * nv, 6), dtype=np.int32)
    count = 0
    done = np.zeros((nu, nv), dtype=np.bool_)

    for s in range(ns):
        done[:, :] = False
        for u in range(nu):
            v = 0
            while v < nv:
                x, y, z = _cell(axis, s, u, v)
                mat = _face_material(materials, faces, direction, x, y, z)
                if done[u, v] or mat < 0:
                    v += 1
                    continue

                # Expand width (along v)
                width = 1
                while v + width < nv:
                    x, y, z = _cell(axis, s, u, v + width)
                    if (done[u, v + width] or
                            _face_material(materials, faces, direction, x, y, z) != mat):
                        break
                    width += 1

                # Expand height (along u), one full row at a time
                height = 1
                growing = True
                while growing and u + height < nu:
                    for k in range(width):
                        x, y, z = _cell(axis, s, u + height, v + k)
                        if (done[u + height, v + k] or
                                _face_material(materials, faces, direction, x, y, z) != mat):
                            growing = False
                            break
                    if growing:
                        height += 1

                for du in range(height):
                    for dv in range(width):
                        done[u + du, v + dv] = True

                quads[count, 0] = s
                quads[count, 1] = u
                quads[count, 2] = v
                quads[count, 3] = height
                quads[count, 4] = width
                quads[count, 5] = mat
                count += 1

                v += width

    return quads[:count].copy()


def quad_corners(
    direction: int,
    s: int,
    u: int,
    v: int,
    height: int = 1,
    width: int = 1,
    origin: Tuple[int, int, int] = (0, 0, 0)
) -> List[Tuple[int, int, int]]:
    """
    Lattice corners of a rectangle in slice coordinates.

    Args:
        direction: Face direction (0-5)
        s, u, v: Cell position in slice coordinates
        height: Extent along u
        width: Extent along v
        origin: Offset added to every corner

    Returns:
        Four (x, y, z) corners, counter-clockwise seen from outside
    """
    axis = direction // 2
    sign = 1 if direction % 2 == 0 else -1
    plane = s + 1 if sign > 0 else s

    corners = []
    for cu, cv in ((u, v), (u + height, v), (u + height, v + width), (u, v + width)):
        if axis == 0:
            p = (plane, cu, cv)
        elif axis == 1:
            p = (cu, plane, cv)
        else:
            p = (cu, cv, plane)
        corners.append((p[0] + origin[0], p[1] + origin[1], p[2] + origin[2]))

    if sign != _UV_HANDEDNESS[axis]:
        corners.reverse()
    return corners


def _split_position(axis: int, x: int, y: int, z: int) -> Tuple[int, int, int]:
    """Inverse of _cell: (x, y, z) to (slice, u, v)."""
    if axis == 0:
        return x, y, z
    elif axis == 1:
        return y, x, z
    return z, x, y


class _MeshBuilder:
    """Accumulates quads with vertex deduplication over a given cache."""

    def __init__(self, blocks: Tuple[Block, ...]):
        self.blocks = blocks
        self.vertices: List[Tuple[int, int, int]] = []
        self.quads: List[Tuple[int, int, int, int]] = []
        self.directions: List[int] = []
        self.materials: List[int] = []

    def add_quad(
        self,
        corners: List[Tuple[int, int, int]],
        direction: int,
        material: int,
        cache: Dict[Tuple[int, int, int], int]
    ):
        refs = []
        for corner in corners:
            index = cache.get(corner)
            if index is None:
                index = len(self.vertices)
                self.vertices.append(corner)
                cache[corner] = index
            refs.append(index)

        self.quads.append(tuple(refs))
        self.directions.append(direction)
        self.materials.append(material)

    def build(self) -> MeshData:
        return MeshData(
            vertices=np.array(self.vertices, dtype=np.float64).reshape(-1, 3),
            quads=np.array(self.quads, dtype=np.int64).reshape(-1, 4),
            directions=np.array(self.directions, dtype=np.int64),
            materials=np.array(self.materials, dtype=np.int64),
            blocks=self.blocks,
        )


class GreedyMesher:
    """
    High-performance greedy meshing for voxel grids.

    This class wraps the Numba-accelerated merge kernel and emits one quad
    per merged rectangle.
    """

    def mesh(self, grid: VoxelGrid) -> MeshData:
        """
        Generate a merged quad mesh.

        Args:
            grid: Voxel grid (face flags are read from the voxels)

        Returns:
            MeshData in lattice coordinates
        """
        volume = build_volume(grid)
        builder = _MeshBuilder(volume.blocks)
        if len(grid.voxels) == 0:
            return builder.build()

        cache: Dict[Tuple[int, int, int], int] = {}
        for direction in range(6):
            quads = _merge_direction(volume.materials, volume.faces, direction)
            for s, u, v, height, width, material in quads.tolist():
                corners = quad_corners(direction, s, u, v, height, width, volume.origin)
                builder.add_quad(corners, direction, material, cache)

        return builder.build()


class NaiveMesher:
    """
    Naive meshing for comparison/debugging.

    Generates one unit quad per visible face.
    """

    def mesh(self, grid: VoxelGrid) -> MeshData:
        """Generate naive mesh (one quad per visible face)."""
        blocks = tuple(grid.unique_blocks())
        material_of = {block: i for i, block in enumerate(blocks)}
        builder = _MeshBuilder(blocks)

        for voxel in grid.voxels:
            flags = voxel.faces
            if flags is None:
                flags = grid.index.face_flags(voxel.x, voxel.y, voxel.z)

            cache: Dict[Tuple[int, int, int], int] = {}
            for direction, visible in enumerate(flags):
                if not visible:
                    continue
                s, u, v = _split_position(direction // 2, voxel.x, voxel.y, voxel.z)
                builder.add_quad(
                    quad_corners(direction, s, u, v),
                    direction,
                    material_of[voxel.block],
                    cache,
                )

        return builder.build()


def mesh_grid(grid: VoxelGrid, merge: bool = True, mesher: Optional[object] = None) -> MeshData:
    """Mesh a grid with the greedy or the naive mesher."""
    if mesher is None:
        mesher = GreedyMesher() if merge else NaiveMesher()
    return mesher.mesh(grid)

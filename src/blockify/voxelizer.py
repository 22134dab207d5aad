"""
Voxel Data Structures and Voxelization Engine

This module provides:
- Voxel / VoxelGrid: sparse, immutable voxel sets on the integer lattice
- PositionIndex: O(1) occupancy lookup, rebuilt whenever the voxel set changes
- Voxelizer: turns quantized blocks + quantized depth into voxel columns
- optimize_grid: occlusion culling with per-face visibility flags

Coordinate system: X-right, Y-up (image rows flipped), Z toward the viewer.
"""

from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, Iterator, List, NamedTuple, Optional, Tuple, Union
import numpy as np

from .config import FillMode
from .errors import InvalidDimensionsError
from .palette import Block
from .quantizer import QuantizedBlockField


class FaceFlags(NamedTuple):
    """Visibility of each face; True = neighbor cell is empty."""
    pos_x: bool
    neg_x: bool
    pos_y: bool
    neg_y: bool
    pos_z: bool
    neg_z: bool

    @property
    def visible_count(self) -> int:
        return sum(self)


# Neighbor offsets in FaceFlags field order
FACE_OFFSETS = (
    (1, 0, 0),
    (-1, 0, 0),
    (0, 1, 0),
    (0, -1, 0),
    (0, 0, 1),
    (0, 0, -1),
)


@dataclass(frozen=True)
class Voxel:
    """A unit cube on the integer lattice."""
    x: int
    y: int
    z: int
    block: Block
    faces: Optional[FaceFlags] = None

    @property
    def position(self) -> Tuple[int, int, int]:
        return (self.x, self.y, self.z)


@dataclass(frozen=True)
class Bounds:
    """Inclusive integer bounds of a voxel set (all zero when empty)."""
    min_x: int = 0
    max_x: int = 0
    min_y: int = 0
    max_y: int = 0
    min_z: int = 0
    max_z: int = 0
    size_x: int = 0
    size_y: int = 0
    size_z: int = 0

    @classmethod
    def from_voxels(cls, voxels: Iterable[Voxel]) -> "Bounds":
        coords = np.array([v.position for v in voxels], dtype=np.int64)
        if len(coords) == 0:
            return cls()

        lo = coords.min(axis=0)
        hi = coords.max(axis=0)
        size = hi - lo + 1
        return cls(
            min_x=int(lo[0]), max_x=int(hi[0]),
            min_y=int(lo[1]), max_y=int(hi[1]),
            min_z=int(lo[2]), max_z=int(hi[2]),
            size_x=int(size[0]), size_y=int(size[1]), size_z=int(size[2]),
        )

    @property
    def is_empty(self) -> bool:
        return self.size_x == 0

    @property
    def size(self) -> Tuple[int, int, int]:
        return (self.size_x, self.size_y, self.size_z)

    @property
    def minimum(self) -> Tuple[int, int, int]:
        return (self.min_x, self.min_y, self.min_z)

    def contains(self, x: int, y: int, z: int) -> bool:
        return (
            self.min_x <= x <= self.max_x
            and self.min_y <= y <= self.max_y
            and self.min_z <= z <= self.max_z
        )


class PositionIndex:
    """
    Hash index from (x, y, z) to Voxel.

    Built from a complete voxel sequence and never patched afterwards; a
    changed voxel set always gets a new index.
    """

    __slots__ = ("_cells",)

    def __init__(self, voxels: Iterable[Voxel]):
        self._cells: Dict[Tuple[int, int, int], Voxel] = {
            (v.x, v.y, v.z): v for v in voxels
        }

    def __contains__(self, position: Tuple[int, int, int]) -> bool:
        return position in self._cells

    def __len__(self) -> int:
        return len(self._cells)

    def __iter__(self) -> Iterator[Voxel]:
        return iter(self._cells.values())

    def get(self, x: int, y: int, z: int) -> Optional[Voxel]:
        return self._cells.get((x, y, z))

    def is_occupied(self, x: int, y: int, z: int) -> bool:
        return (x, y, z) in self._cells

    def face_flags(self, x: int, y: int, z: int) -> FaceFlags:
        """Visibility flags of the cell at (x, y, z) against this index."""
        return FaceFlags(*(
            (x + dx, y + dy, z + dz) not in self._cells
            for dx, dy, dz in FACE_OFFSETS
        ))

    def is_occluded(self, x: int, y: int, z: int) -> bool:
        """True when all six axis neighbors are occupied."""
        return all(
            (x + dx, y + dy, z + dz) in self._cells
            for dx, dy, dz in FACE_OFFSETS
        )


@dataclass(frozen=True)
class VoxelGrid:
    """
    Immutable sparse voxel set with derived bounds and position index.

    Attributes:
        voxels: Voxels in emission order
        width: Source image width (blocks)
        height: Source image height (blocks)
        max_depth: Depth layer count used to build the grid
        bounds: Bounds recomputed from `voxels`
        index: PositionIndex over `voxels`
    """

    voxels: Tuple[Voxel, ...]
    width: int
    height: int
    max_depth: int
    bounds: Bounds = field(init=False)
    index: PositionIndex = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        voxels = tuple(self.voxels)
        object.__setattr__(self, "voxels", voxels)
        object.__setattr__(self, "bounds", Bounds.from_voxels(voxels))
        object.__setattr__(self, "index", PositionIndex(voxels))

    def with_voxels(self, voxels: Iterable[Voxel]) -> "VoxelGrid":
        """New grid with the same metadata and a fresh bounds/index."""
        return replace(self, voxels=tuple(voxels))

    def __len__(self) -> int:
        return len(self.voxels)

    def __iter__(self) -> Iterator[Voxel]:
        return iter(self.voxels)

    @property
    def count(self) -> int:
        return len(self.voxels)

    def unique_blocks(self) -> List[Block]:
        """Distinct blocks in first-seen order."""
        seen: Dict[Block, None] = {}
        for v in self.voxels:
            seen.setdefault(v.block, None)
        return list(seen)


class GridStats(NamedTuple):
    """Summary numbers for a voxel grid."""
    total_voxels: int
    dimensions: str
    unique_blocks: int
    block_counts: Dict[str, int]


def grid_stats(grid: VoxelGrid) -> GridStats:
    """
    Count voxels per block name.

    Args:
        grid: Voxel grid

    Returns:
        GridStats
    """
    counts: Dict[str, int] = {}
    for v in grid.voxels:
        counts[v.block.name] = counts.get(v.block.name, 0) + 1

    b = grid.bounds
    return GridStats(
        total_voxels=len(grid.voxels),
        dimensions=f"{b.size_x} × {b.size_y} × {b.size_z}",
        unique_blocks=len(counts),
        block_counts=counts,
    )


class Voxelizer:
    """
    Engine for converting quantized images to voxel grids.

    The voxelizer handles:
    - Image to model coordinate mapping (row flip)
    - Column fill policies
    - Occlusion culling
    """

    def __init__(self, fill_mode: Union[FillMode, str] = FillMode.SURFACE):
        """
        Initialize the voxelizer.

        Args:
            fill_mode: Column fill policy
        """
        self.fill_mode = FillMode(fill_mode)

    def _column(self, x: int, y: int, depth: int, block: Block) -> Iterator[Voxel]:
        if self.fill_mode == FillMode.SURFACE:
            yield Voxel(x, y, depth, block)
        elif self.fill_mode == FillMode.SOLID:
            for z in range(depth + 1):
                yield Voxel(x, y, z, block)
        elif self.fill_mode == FillMode.HOLLOW:
            # Top and base only; lateral walls are not filled in
            yield Voxel(x, y, depth, block)
            if depth > 0:
                yield Voxel(x, y, 0, block)
        else:
            raise ValueError(f"Unknown fill mode: {self.fill_mode}")

    def voxelize(
        self,
        blocks: QuantizedBlockField,
        depth: np.ndarray,
        layers: int
    ) -> VoxelGrid:
        """
        Build voxel columns from a block field and a quantized depth field.

        Args:
            blocks: Quantized block field (H, W)
            depth: Integer depth per pixel (H, W), values in [0, layers-1]
            layers: Layer count the depth was quantized with

        Returns:
            VoxelGrid with bounds over all emitted voxels
        """
        depth = np.asarray(depth)
        if depth.shape != blocks.shape:
            raise InvalidDimensionsError(
                f"Depth shape {depth.shape} does not match block field {blocks.shape}"
            )

        height, width = blocks.shape
        voxels: List[Voxel] = []

        for iy in range(height):
            # Image rows run top-down, model Y runs bottom-up
            y = height - 1 - iy
            for ix in range(width):
                block = blocks.block_at(ix, iy)
                if block is None:
                    continue
                voxels.extend(self._column(ix, y, int(depth[iy, ix]), block))

        return VoxelGrid(tuple(voxels), width, height, layers)

    @staticmethod
    def optimize(grid: VoxelGrid) -> VoxelGrid:
        """
        Drop fully enclosed voxels and annotate the rest with face flags.

        A voxel is enclosed when all six neighbor cells hold a voxel of any
        block. Flags are evaluated against the full input set, so faces that
        touch a culled interior voxel stay hidden.

        Args:
            grid: Input grid

        Returns:
            New grid (voxel count <= input) with `faces` set on every voxel
        """
        index = grid.index
        visible = []

        for v in grid.voxels:
            flags = index.face_flags(v.x, v.y, v.z)
            if not any(flags):
                continue
            visible.append(replace(v, faces=flags))

        return grid.with_voxels(visible)


def build_voxel_grid(
    blocks: QuantizedBlockField,
    depth: np.ndarray,
    layers: int,
    fill_mode: Union[FillMode, str] = FillMode.SURFACE
) -> VoxelGrid:
    """Functional form of Voxelizer.voxelize."""
    return Voxelizer(fill_mode).voxelize(blocks, depth, layers)


def optimize_grid(grid: VoxelGrid) -> VoxelGrid:
    """Functional form of Voxelizer.optimize."""
    return Voxelizer.optimize(grid)

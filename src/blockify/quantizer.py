"""
Palette Quantization Module

Maps every opaque pixel onto the nearest block of a fixed palette.

Floyd-Steinberg error diffusion spreads each pixel's residual
(working colour - block colour) onto its unprocessed neighbors:

        .     *    7/16
      3/16  5/16   1/16

Pixels are visited in strict row-major order and the working colour is only
rounded, never clamped, before the lookup, so accumulated error can push it
outside [0, 255]. Transparent neighbors never receive error.
"""

from dataclasses import dataclass
from typing import Dict, List, NamedTuple, Optional, Tuple
import numpy as np
from numba import njit

from .ingestion import PixelGrid
from .palette import Block, Palette, _nearest_index


# (dx, dy, weight) of the diffusion stencil
DIFFUSION_STENCIL = (
    (1, 0, 7.0 / 16.0),
    (-1, 1, 3.0 / 16.0),
    (0, 1, 5.0 / 16.0),
    (1, 1, 1.0 / 16.0),
)

_STENCIL_OFFSETS = np.array([(dx, dy) for dx, dy, _ in DIFFUSION_STENCIL], dtype=np.int64)
_STENCIL_WEIGHTS = np.array([w for _, _, w in DIFFUSION_STENCIL], dtype=np.float64)


class QuantizedPixel(NamedTuple):
    """Block chosen for a pixel plus the pixel's source colour."""
    block: Block
    original_color: Tuple[int, int, int]


@njit(cache=True)
def _add_error(
    working: np.ndarray,
    mask: np.ndarray,
    x: int,
    y: int,
    factor: float,
    er: float,
    eg: float,
    eb: float
):
    h, w = mask.shape
    if x < 0 or x >= w or y < 0 or y >= h or not mask[y, x]:
        return
    working[y, x, 0] += er * factor
    working[y, x, 1] += eg * factor
    working[y, x, 2] += eb * factor


@njit(cache=True)
def _quantize_kernel(
    rgb: np.ndarray,
    mask: np.ndarray,
    colors: np.ndarray,
    offsets: np.ndarray,
    weights: np.ndarray,
    diffuse: bool
) -> np.ndarray:
    """
    Row-major nearest-block assignment with optional error diffusion.

    Returns:
        int32 (H, W) palette indices, -1 where transparent
    """
    h, w = mask.shape
    working = rgb.copy()
    indices = np.full((h, w), -1, dtype=np.int32)

    for y in range(h):
        for x in range(w):
            if not mask[y, x]:
                continue

            r = np.floor(working[y, x, 0] + 0.5)
            g = np.floor(working[y, x, 1] + 0.5)
            b = np.floor(working[y, x, 2] + 0.5)

            idx = _nearest_index(r, g, b, colors)
            indices[y, x] = idx

            if diffuse:
                er = r - colors[idx, 0]
                eg = g - colors[idx, 1]
                eb = b - colors[idx, 2]
                for k in range(weights.shape[0]):
                    _add_error(
                        working, mask, x + offsets[k, 0], y + offsets[k, 1],
                        weights[k], er, eg, eb
                    )

    return indices


@dataclass(frozen=True)
class QuantizedBlockField:
    """
    2D grid of nullable block assignments, one per pixel.

    Attributes:
        palette: Palette the indices refer to
        indices: int32 (H, W) palette indices, -1 = transparent / no block
        original_colors: uint8 (H, W, 3) source colours
    """

    palette: Palette
    indices: np.ndarray
    original_colors: np.ndarray

    @property
    def width(self) -> int:
        return self.indices.shape[1]

    @property
    def height(self) -> int:
        return self.indices.shape[0]

    @property
    def shape(self) -> Tuple[int, int]:
        """(height, width), matching the depth field."""
        return self.indices.shape

    def block_at(self, x: int, y: int) -> Optional[Block]:
        """Block at image coordinate (x, y), or None if transparent."""
        idx = int(self.indices[y, x])
        if idx < 0:
            return None
        return self.palette[idx]

    def pixel_at(self, x: int, y: int) -> Optional[QuantizedPixel]:
        """Block plus source colour at (x, y), or None if transparent."""
        block = self.block_at(x, y)
        if block is None:
            return None
        return QuantizedPixel(block, tuple(int(c) for c in self.original_colors[y, x]))

    def rows(self) -> List[List[Optional[QuantizedPixel]]]:
        """The field as nested lists addressed [y][x]."""
        return [
            [self.pixel_at(x, y) for x in range(self.width)]
            for y in range(self.height)
        ]

    def block_colors(self) -> np.ndarray:
        """
        Chosen block colours as an (H, W, 4) RGBA preview image.
        """
        out = np.zeros((self.height, self.width, 4), dtype=np.uint8)
        present = self.indices >= 0
        out[present, :3] = self.palette.colors[self.indices[present]].astype(np.uint8)
        out[present, 3] = 255
        return out

    def block_counts(self) -> Dict[str, int]:
        """Pixel count per block name, in palette order."""
        counts = np.bincount(self.indices[self.indices >= 0], minlength=len(self.palette))
        return {
            self.palette[i].name: int(n)
            for i, n in enumerate(counts)
            if n > 0
        }


class PaletteQuantizer:
    """
    Nearest-block quantizer with optional error diffusion.
    """

    def __init__(self, palette: Palette, dithering: bool = True):
        """
        Initialize the quantizer.

        Args:
            palette: Target block palette (validated non-empty on creation)
            dithering: Apply Floyd-Steinberg error diffusion
        """
        self.palette = palette
        self.dithering = dithering

    def quantize(self, grid: PixelGrid) -> QuantizedBlockField:
        """
        Assign a block to every opaque pixel.

        Args:
            grid: Input pixel grid

        Returns:
            QuantizedBlockField of the same dimensions
        """
        indices = _quantize_kernel(
            np.ascontiguousarray(grid.rgb),
            np.ascontiguousarray(grid.opaque),
            np.ascontiguousarray(self.palette.colors),
            _STENCIL_OFFSETS,
            _STENCIL_WEIGHTS,
            bool(self.dithering),
        )
        return QuantizedBlockField(
            palette=self.palette,
            indices=indices,
            original_colors=np.array(grid.rgba[:, :, :3]),
        )


def quantize_pixels(grid: PixelGrid, palette: Palette, dithering: bool = True) -> QuantizedBlockField:
    """Convenience wrapper around PaletteQuantizer."""
    return PaletteQuantizer(palette, dithering).quantize(grid)

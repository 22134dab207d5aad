"""
Blockify
========

Deterministic conversion of a single picture into a block-game build.

This package estimates a depth field from one image with closed-form
heuristics, snaps every pixel to the nearest block of a fixed palette, and
stacks the result into a sparse voxel model that can be written as an MCEdit
.schematic or a Wavefront .obj.

Key Features:
- Model-free foreground segmentation and depth fusion
- Floyd-Steinberg dithering against named block palettes
- Surface, solid and hollow column fills with occlusion culling
- Greedy face merging with Numba JIT compilation
- Export to .schematic (gzip NBT) and .obj/.mtl

Example Usage:
    from blockify import ConversionSettings, VoxelGenerator

    generator = VoxelGenerator(ConversionSettings(resolution=48, fill_mode="solid"))
    generator.load_image("photo.png").convert()
    generator.export_schematic("photo.schematic")
"""

__version__ = "1.0.0"

from .config import ConversionSettings, DepthMode, FillMode
from .errors import (
    BlockifyError,
    ConfigurationError,
    EmptyPaletteError,
    InvalidDimensionsError,
    InvalidPixelError,
    NBTError,
    UnknownPaletteError,
)
from .generator import ConversionResult, VoxelGenerator, convert
from .ingestion import ImageLoader, PixelGrid
from .palette import Block, Palette, PaletteCatalog, get_palette
from .voxelizer import Voxel, VoxelGrid, Voxelizer, grid_stats

__all__ = [
    "ConversionSettings",
    "DepthMode",
    "FillMode",
    "BlockifyError",
    "ConfigurationError",
    "EmptyPaletteError",
    "InvalidDimensionsError",
    "InvalidPixelError",
    "NBTError",
    "UnknownPaletteError",
    "ConversionResult",
    "VoxelGenerator",
    "convert",
    "ImageLoader",
    "PixelGrid",
    "Block",
    "Palette",
    "PaletteCatalog",
    "get_palette",
    "Voxel",
    "VoxelGrid",
    "Voxelizer",
    "grid_stats",
]

"""
MCEdit .schematic Format Exporter

The .schematic format is a gzip-compressed NBT compound named "Schematic"
holding legacy numeric block ids for a dense box of cells.

Root compound children, in order:
- Width, Height, Length (TAG_Short): box size along X, Y, Z
- Materials (TAG_String): always "Alpha"
- Blocks, Data (TAG_Byte_Array): one byte per cell, index
  (y * Length + z) * Width + x, local to the grid's minimum bound
- Entities, TileEntities (TAG_List of TAG_Compound): always empty

Unoccupied cells are air (id 0, data 0).

Limitations:
- Legacy numeric ids only (0-255)
- Each size must fit a signed 16-bit short
"""

import gzip
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Union
import numpy as np

from ..errors import NBTError
from ..voxelizer import VoxelGrid
from .nbt import (
    TAG_BYTE_ARRAY,
    TAG_COMPOUND,
    TAG_SHORT,
    TAG_STRING,
    NBTWriter,
    read_nbt,
)

logger = logging.getLogger(__name__)


ROOT_NAME = "Schematic"
MATERIALS = "Alpha"


def cell_index(x: int, y: int, z: int, width: int, length: int) -> int:
    """Flat index of a local cell; Y-major, then Z, then X."""
    return (y * length + z) * width + x


class SchematicExporter:
    """
    Export voxel grids to the .schematic format.

    Usage:
        exporter = SchematicExporter()
        exporter.export(grid, "output.schematic")
    """

    def build_arrays(self, grid: VoxelGrid):
        """
        Dense Blocks and Data arrays for a grid.

        Args:
            grid: Voxel grid

        Returns:
            (blocks, data) uint8 arrays of length Width * Height * Length
        """
        b = grid.bounds
        width, height, length = b.size
        blocks = np.zeros(width * height * length, dtype=np.uint8)
        data = np.zeros_like(blocks)

        for v in grid.index:
            if not (0 <= v.block.id <= 255 and 0 <= v.block.data <= 255):
                raise NBTError(f"Block {v.block.name} has a non-byte id/data")
            idx = cell_index(v.x - b.min_x, v.y - b.min_y, v.z - b.min_z, width, length)
            blocks[idx] = v.block.id
            data[idx] = v.block.data

        return blocks, data

    def encode(self, grid: VoxelGrid) -> bytes:
        """
        Uncompressed NBT stream for a grid.

        Raises:
            NBTError: Sizes or ids that the format cannot hold
        """
        width, height, length = grid.bounds.size
        blocks, data = self.build_arrays(grid)

        writer = NBTWriter()
        writer.begin_compound(ROOT_NAME)
        writer.write_tag(TAG_SHORT, "Width", width)
        writer.write_tag(TAG_SHORT, "Height", height)
        writer.write_tag(TAG_SHORT, "Length", length)
        writer.write_tag(TAG_STRING, "Materials", MATERIALS)
        writer.write_tag(TAG_BYTE_ARRAY, "Blocks", blocks.tobytes())
        writer.write_tag(TAG_BYTE_ARRAY, "Data", data.tobytes())
        writer.write_empty_list("Entities", TAG_COMPOUND)
        writer.write_empty_list("TileEntities", TAG_COMPOUND)
        writer.end_compound()
        return writer.getvalue()

    def export_bytes(self, grid: VoxelGrid) -> bytes:
        """Gzip-compressed schematic payload."""
        return gzip.compress(self.encode(grid), mtime=0)

    def export(self, grid: VoxelGrid, output_path: Union[str, Path]) -> Path:
        """
        Write a .schematic file.

        The payload is encoded completely before the file is opened.

        Args:
            grid: Voxel grid
            output_path: Output file path (.schematic)

        Returns:
            Path written
        """
        output_path = Path(output_path)
        payload = self.export_bytes(grid)

        with open(output_path, 'wb') as f:
            f.write(payload)

        logger.info("Wrote %s (%d voxels, %d bytes)", output_path, len(grid.voxels), len(payload))
        return output_path


@dataclass(frozen=True)
class SchematicData:
    """Decoded schematic contents."""
    width: int
    height: int
    length: int
    materials: str
    blocks: np.ndarray   # uint8, flat
    data: np.ndarray     # uint8, flat

    def block_at(self, x: int, y: int, z: int) -> int:
        """Block id at local coordinates."""
        return int(self.blocks[cell_index(x, y, z, self.width, self.length)])

    def data_at(self, x: int, y: int, z: int) -> int:
        return int(self.data[cell_index(x, y, z, self.width, self.length)])


def read_schematic(payload: bytes) -> SchematicData:
    """
    Parse a (gzip-compressed or raw) schematic payload.

    Raises:
        NBTError: Malformed stream or missing fields
    """
    if payload[:2] == b"\x1f\x8b":
        payload = gzip.decompress(payload)

    name, root = read_nbt(payload)
    if name != ROOT_NAME:
        raise NBTError(f"Expected root compound {ROOT_NAME!r}, got {name!r}")

    try:
        width, height, length = root["Width"], root["Height"], root["Length"]
        blocks = np.frombuffer(root["Blocks"], dtype=np.uint8)
        data = np.frombuffer(root["Data"], dtype=np.uint8)
        materials = root["Materials"]
    except KeyError as e:
        raise NBTError(f"Schematic is missing {e.args[0]}") from None

    expected = width * height * length
    if len(blocks) != expected or len(data) != expected:
        raise NBTError(f"Block arrays hold {len(blocks)}/{len(data)} cells, expected {expected}")

    return SchematicData(width, height, length, materials, blocks, data)

"""
Export modules for voxel grids.

Supported formats:
- MCEdit schematic (.schematic) - gzip NBT with legacy block ids
- Wavefront (.obj + .mtl) - Universal mesh support
"""

from .nbt import NBTWriter, read_nbt
from .obj_exporter import OBJExporter
from .schematic_exporter import SchematicData, SchematicExporter, read_schematic

__all__ = [
    "NBTWriter",
    "read_nbt",
    "OBJExporter",
    "SchematicData",
    "SchematicExporter",
    "read_schematic",
]

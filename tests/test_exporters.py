"""
Unit tests for the NBT writer, .schematic export and OBJ export.
"""

import sys
from pathlib import Path
import gzip
import struct
import tempfile
import numpy as np
import unittest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from blockify.errors import NBTError
from blockify.exporters import OBJExporter, SchematicExporter, read_schematic
from blockify.exporters.nbt import (
    TAG_BYTE_ARRAY,
    TAG_FLOAT,
    TAG_LIST,
    TAG_SHORT,
    TAG_STRING,
    NBTWriter,
    read_nbt,
    tag_order,
)
from blockify.exporters.schematic_exporter import cell_index
from blockify.palette import Block
from blockify.voxelizer import Voxel, VoxelGrid, optimize_grid


STONE = Block("stone", (125, 125, 125), 1)
WOOL = Block("red_wool", (161, 39, 34), 35, 14)
CONCRETE = Block("white_concrete", (207, 213, 214), 251, 0)


def sample_grid():
    voxels = (
        Voxel(0, 0, 0, STONE),
        Voxel(2, 1, 3, WOOL),
        Voxel(1, 0, 2, CONCRETE),
    )
    return VoxelGrid(voxels, 3, 2, 4)


class TestNBTWriter(unittest.TestCase):
    """Tests for the tag builder."""

    def test_short_tag_bytes(self):
        """Named short: type, name length, name, big-endian value."""
        writer = NBTWriter()
        writer.write_tag(TAG_SHORT, "Width", 258)
        assert writer.getvalue() == b"\x02\x00\x05Width\x01\x02"

    def test_string_tag_utf8(self):
        """Strings are UTF-8 with a 16-bit length prefix."""
        writer = NBTWriter()
        writer.write_tag(TAG_STRING, "n", "é")
        assert writer.getvalue() == b"\x08\x00\x01n\x00\x02\xc3\xa9"

    def test_byte_array(self):
        """Byte arrays carry a 32-bit length prefix."""
        writer = NBTWriter()
        writer.write_tag(TAG_BYTE_ARRAY, "B", bytes([1, 2, 255]))
        assert writer.getvalue() == b"\x07\x00\x01B\x00\x00\x00\x03\x01\x02\xff"

    def test_empty_list(self):
        """Empty compound list: element type 10, count 0."""
        writer = NBTWriter()
        writer.write_empty_list("Entities")
        assert writer.getvalue() == b"\x09\x00\x08Entities\x0a\x00\x00\x00\x00"

    def test_unsupported_tag(self):
        """Tag types without a writer are rejected."""
        with self.assertRaises(NBTError):
            NBTWriter().write_tag(TAG_FLOAT, "f", 1.5)

    def test_out_of_range(self):
        """Values that do not fit their tag are rejected."""
        with self.assertRaises(NBTError):
            NBTWriter().write_tag(TAG_SHORT, "s", 40000)

    def test_unbalanced_compound(self):
        """Open compounds and stray ends are errors."""
        writer = NBTWriter()
        writer.begin_compound("root")
        with self.assertRaises(NBTError):
            writer.getvalue()

        with self.assertRaises(NBTError):
            NBTWriter().end_compound()

    def test_read_back(self):
        """The reader parses what the writer produced."""
        writer = NBTWriter()
        writer.begin_compound("root")
        writer.write_tag(TAG_SHORT, "a", -3)
        writer.write_tag(TAG_STRING, "b", "hi")
        writer.end_compound()

        name, root = read_nbt(writer.getvalue())
        assert name == "root"
        assert root == {"a": -3, "b": "hi"}

    def test_truncated_stream(self):
        """Truncated input raises instead of returning partial data."""
        writer = NBTWriter()
        writer.begin_compound("root")
        writer.write_tag(TAG_SHORT, "a", 1)
        writer.end_compound()

        with self.assertRaises(NBTError):
            read_nbt(writer.getvalue()[:-3])


class TestSchematicExporter(unittest.TestCase):
    """Tests for the .schematic format."""

    def test_tag_order(self):
        """Root children appear in the mandated order."""
        raw = SchematicExporter().encode(sample_grid())

        assert raw.startswith(b"\x0a\x00\x09Schematic")
        assert raw.endswith(b"\x00")
        assert tag_order(raw) == [
            (TAG_SHORT, "Width"),
            (TAG_SHORT, "Height"),
            (TAG_SHORT, "Length"),
            (TAG_STRING, "Materials"),
            (TAG_BYTE_ARRAY, "Blocks"),
            (TAG_BYTE_ARRAY, "Data"),
            (TAG_LIST, "Entities"),
            (TAG_LIST, "TileEntities"),
        ]

    def test_width_bytes(self):
        """Width follows the root header as a big-endian short."""
        raw = SchematicExporter().encode(sample_grid())
        header = b"\x0a\x00\x09Schematic" + b"\x02\x00\x05Width"
        assert raw[len(header):len(header) + 2] == struct.pack(">h", 3)

    def test_round_trip(self):
        """Sizes and block ids survive compression and parsing."""
        grid = sample_grid()
        data = read_schematic(SchematicExporter().export_bytes(grid))

        assert (data.width, data.height, data.length) == grid.bounds.size
        assert data.materials == "Alpha"
        assert len(data.blocks) == 3 * 2 * 4

        assert data.block_at(0, 0, 0) == 1
        assert data.block_at(2, 1, 3) == 35
        assert data.data_at(2, 1, 3) == 14
        assert data.block_at(1, 0, 2) == 251
        assert data.block_at(1, 1, 1) == 0

    def test_index_layout(self):
        """Cells are ordered Y, then Z, then X."""
        grid = sample_grid()
        blocks, _ = SchematicExporter().build_arrays(grid)

        assert cell_index(2, 1, 3, 3, 4) == (1 * 4 + 3) * 3 + 2
        assert blocks[cell_index(2, 1, 3, 3, 4)] == 35
        assert np.count_nonzero(blocks) == 3

    def test_offset_by_minimum(self):
        """Coordinates are local to the grid's minimum bound."""
        grid = VoxelGrid((Voxel(10, 20, 30, STONE), Voxel(11, 20, 30, WOOL)), 0, 0, 0)
        data = read_schematic(SchematicExporter().export_bytes(grid))

        assert (data.width, data.height, data.length) == (2, 1, 1)
        assert data.block_at(0, 0, 0) == 1
        assert data.block_at(1, 0, 0) == 35

    def test_empty_grid(self):
        """An empty grid still writes a complete, valid file."""
        payload = SchematicExporter().export_bytes(VoxelGrid((), 0, 0, 0))
        data = read_schematic(payload)

        assert (data.width, data.height, data.length) == (0, 0, 0)
        assert len(data.blocks) == 0
        assert len(data.data) == 0

    def test_gzip_deterministic(self):
        """The compressed payload carries no timestamp."""
        exporter = SchematicExporter()
        payload = exporter.export_bytes(sample_grid())
        assert gzip.decompress(payload) == exporter.encode(sample_grid())
        assert payload == exporter.export_bytes(sample_grid())

    def test_write_file(self):
        """export() writes the gzip payload to disk."""
        with tempfile.TemporaryDirectory() as tmp:
            path = SchematicExporter().export(sample_grid(), Path(tmp) / "build.schematic")
            assert read_schematic(path.read_bytes()).block_at(2, 1, 3) == 35

    def test_failure_leaves_no_file(self):
        """An unencodable block id raises before anything is written."""
        bad = Block("modded", (1, 2, 3), 300)
        grid = VoxelGrid((Voxel(0, 0, 0, bad),), 1, 1, 1)

        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "bad.schematic"
            with self.assertRaises(NBTError):
                SchematicExporter().export(grid, path)
            assert not path.exists()


class TestOBJExporter(unittest.TestCase):
    """Tests for Wavefront OBJ export."""

    def _lines(self, text, prefix):
        return [line for line in text.splitlines() if line.startswith(prefix)]

    def test_single_voxel(self):
        """One voxel: 8 vertices, 6 quads, centered on the origin."""
        grid = optimize_grid(VoxelGrid((Voxel(4, 5, 6, STONE),), 1, 1, 1))
        doc = OBJExporter().render(grid, "cube")

        vertices = self._lines(doc.obj, "v ")
        faces = self._lines(doc.obj, "f ")
        assert len(vertices) == 8
        assert len(faces) == 6
        assert len(self._lines(doc.obj, "vn ")) == 6

        coords = np.array([[float(c) for c in line.split()[1:]] for line in vertices])
        assert np.allclose(np.abs(coords), 0.5)

        for face in faces:
            refs = [int(tok.split("//")[0]) for tok in face.split()[1:]]
            assert len(refs) == 4
            assert min(refs) >= 1 and max(refs) <= 8

    def test_block_size(self):
        """Vertices scale with the block size."""
        grid = optimize_grid(VoxelGrid((Voxel(0, 0, 0, STONE),), 1, 1, 1))
        doc = OBJExporter(block_size=2.0).render(grid)
        coords = [float(c) for line in self._lines(doc.obj, "v ") for c in line.split()[1:]]
        assert np.allclose(np.abs(coords), 1.0)

    def test_materials(self):
        """One material per block, referenced from the OBJ."""
        grid = optimize_grid(sample_grid())
        doc = OBJExporter().render(grid, "model", "model.mtl")

        assert "mtllib model.mtl" in doc.obj
        for block in (STONE, WOOL, CONCRETE):
            assert f"usemtl {block.name}" in doc.obj
            assert f"newmtl {block.name}" in doc.mtl
        assert "Kd 0.6314 0.1529 0.1333" in doc.mtl

    def test_merge_reduces_faces(self):
        """Merged export emits fewer faces than one quad per face."""
        voxels = tuple(Voxel(x, y, 0, STONE) for x in range(4) for y in range(4))
        grid = optimize_grid(VoxelGrid(voxels, 4, 4, 1))

        merged = OBJExporter(merge_faces=True).render(grid)
        naive = OBJExporter(merge_faces=False).render(grid)

        assert merged.face_count == 6
        assert naive.face_count == 16 + 16 + 4 * 4
        assert merged.vertex_count < naive.vertex_count

    def test_empty_grid(self):
        """An empty grid still yields a loadable document."""
        doc = OBJExporter().render(VoxelGrid((), 0, 0, 0), "empty")

        assert "o empty" in doc.obj
        assert "mtllib empty.mtl" in doc.obj
        assert doc.face_count == 0
        assert not self._lines(doc.obj, "f ")

    def test_write_files(self):
        """export() writes the OBJ and its MTL side by side."""
        grid = optimize_grid(sample_grid())
        with tempfile.TemporaryDirectory() as tmp:
            obj_path, mtl_path = OBJExporter().export(grid, Path(tmp) / "model.obj")

            assert obj_path.exists() and mtl_path.exists()
            assert mtl_path.name == "model.mtl"
            assert "mtllib model.mtl" in obj_path.read_text()


if __name__ == "__main__":
    unittest.main()

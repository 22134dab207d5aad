"""
Wavefront OBJ Format Exporter

OBJ is a universal text-based format supported by virtually all 3D software.
Each block becomes one MTL material (diffuse = block colour), faces are
grouped per material with `usemtl`, and every face references one of six
shared axis normals.

The mesh is centered on the grid's bounding-box center and scaled by the
block size. Faces are quads with 1-based vertex indices.

Limitations:
- Text format = larger file sizes
- Colour lives in the MTL file; loaders that skip it show grey geometry
"""

import logging
from pathlib import Path
from typing import NamedTuple, Optional, Tuple, Union
import numpy as np

from ..greedy_mesh import FACE_NORMALS, MeshData, mesh_grid
from ..voxelizer import VoxelGrid

logger = logging.getLogger(__name__)


class OBJDocument(NamedTuple):
    """Rendered OBJ and MTL text."""
    obj: str
    mtl: str
    vertex_count: int
    face_count: int


def mesh_center(grid: VoxelGrid) -> np.ndarray:
    """Center of the grid's bounding box in lattice units."""
    b = grid.bounds
    if b.is_empty:
        return np.zeros(3)
    return np.array([
        (b.min_x + b.max_x + 1) / 2.0,
        (b.min_y + b.max_y + 1) / 2.0,
        (b.min_z + b.max_z + 1) / 2.0,
    ])


class OBJExporter:
    """
    Export voxel grids to Wavefront OBJ + MTL.

    Supports:
    - Greedy face merging (default) or one quad per visible face
    - Per-block materials
    - Configurable block size
    """

    def __init__(
        self,
        block_size: float = 1.0,
        merge_faces: bool = True,
        include_normals: bool = True
    ):
        """
        Initialize the exporter.

        Args:
            block_size: Edge length of one voxel in output units
            merge_faces: Merge coplanar same-block faces into larger quads
            include_normals: Emit `vn` lines and `f v//n` references
        """
        self.block_size = block_size
        self.merge_faces = merge_faces
        self.include_normals = include_normals

    def render(
        self,
        grid: VoxelGrid,
        model_name: str = "blockify_model",
        mtl_name: Optional[str] = None,
        mesh: Optional[MeshData] = None
    ) -> OBJDocument:
        """
        Render OBJ and MTL text for a grid.

        Args:
            grid: Optimized voxel grid
            model_name: Object name (`o` line)
            mtl_name: File name referenced by `mtllib`
            mesh: Pre-built mesh; built from the grid when omitted

        Returns:
            OBJDocument
        """
        if mesh is None:
            mesh = mesh_grid(grid, merge=self.merge_faces)
        mtl_name = mtl_name or f"{model_name}.mtl"

        vertices = (mesh.vertices - mesh_center(grid)) * self.block_size

        lines = []
        lines.append("# Blockify OBJ Export")
        lines.append(f"# Vertices: {len(vertices)}")
        lines.append(f"# Faces: {mesh.face_count}")
        lines.append("")
        lines.append(f"mtllib {mtl_name}")
        lines.append(f"o {model_name}")
        lines.append("")

        for v in vertices:
            lines.append(f"v {v[0]:.6f} {v[1]:.6f} {v[2]:.6f}")
        if len(vertices):
            lines.append("")

        if self.include_normals:
            for n in FACE_NORMALS:
                lines.append(f"vn {n[0]:.1f} {n[1]:.1f} {n[2]:.1f}")
            lines.append("")

        # Faces grouped by material
        for material, block in enumerate(mesh.blocks):
            selected = np.flatnonzero(mesh.materials == material)
            if len(selected) == 0:
                continue

            lines.append(f"usemtl {block.name}")
            for q in selected:
                refs = mesh.quads[q] + 1
                if self.include_normals:
                    ni = int(mesh.directions[q]) + 1
                    lines.append("f " + " ".join(f"{i}//{ni}" for i in refs))
                else:
                    lines.append("f " + " ".join(str(i) for i in refs))
            lines.append("")

        return OBJDocument(
            obj="\n".join(lines) + "\n",
            mtl=self.render_mtl(mesh),
            vertex_count=len(vertices),
            face_count=mesh.face_count,
        )

    def render_mtl(self, mesh: MeshData) -> str:
        """MTL text with one material per block used by the mesh."""
        lines = []
        lines.append("# Blockify MTL Export")
        lines.append("")

        for block in mesh.blocks:
            r, g, b = (c / 255.0 for c in block.color)

            lines.append(f"newmtl {block.name}")
            lines.append(f"Kd {r:.4f} {g:.4f} {b:.4f}")  # Diffuse color
            lines.append(f"Ka {r*0.1:.4f} {g*0.1:.4f} {b*0.1:.4f}")  # Ambient
            lines.append("Ks 0.0 0.0 0.0")
            lines.append("d 1.0")
            lines.append("illum 1")
            lines.append("")

        return "\n".join(lines)

    def export(
        self,
        grid: VoxelGrid,
        output_path: Union[str, Path],
        model_name: Optional[str] = None
    ) -> Tuple[Path, Path]:
        """
        Write `<name>.obj` and its `<name>.mtl` side by side.

        Both documents are rendered before either file is opened.

        Args:
            grid: Optimized voxel grid
            output_path: Output file path (.obj)
            model_name: Object name (defaults to the file stem)

        Returns:
            (obj path, mtl path)
        """
        output_path = Path(output_path)
        mtl_path = output_path.with_suffix('.mtl')
        doc = self.render(grid, model_name or output_path.stem, mtl_path.name)

        with open(output_path, 'w') as f:
            f.write(doc.obj)
        with open(mtl_path, 'w') as f:
            f.write(doc.mtl)

        logger.info(
            "Wrote %s (%d vertices, %d faces) and %s",
            output_path, doc.vertex_count, doc.face_count, mtl_path.name
        )
        return output_path, mtl_path

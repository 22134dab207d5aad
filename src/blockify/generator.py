"""
Conversion Pipeline and VoxelGenerator Class

This is the primary interface for the image to block model pipeline.
It orchestrates:
1. Image loading and down-scaling
2. Feature extraction and foreground segmentation
3. Depth estimation and layer quantization
4. Palette quantization (optional dithering)
5. Voxelization and occlusion culling
6. Export to .schematic and .obj

Example Usage:
    generator = VoxelGenerator(ConversionSettings(resolution=48, palette="wool"))
    generator.load_image("photo.png")
    generator.convert()
    generator.export_schematic("photo.schematic")
    generator.export_obj("photo.obj")
"""

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union
import numpy as np

from .config import ConversionSettings
from .depth import DepthEstimator, quantize_depth
from .errors import BlockifyError
from .exporters import OBJExporter, SchematicExporter
from .features import FeatureExtractor, FeatureFields
from .ingestion import ImageLoader, PixelGrid
from .palette import PaletteCatalog, get_palette
from .quantizer import PaletteQuantizer, QuantizedBlockField
from .voxelizer import GridStats, VoxelGrid, Voxelizer, grid_stats

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConversionResult:
    """
    Every intermediate product of one conversion.

    Attributes:
        settings: Settings the conversion ran with
        pixels: Input pixel grid
        features: Cue fields
        foreground: Foreground probability (zeros unless fused depth)
        depth: Normalized depth field
        depth_layers: Integer depth per pixel
        blocks: Quantized block field
        grid: Voxel grid before culling
        optimized: Culled grid with face flags, used for export
        timings: Seconds spent in each pipeline stage
    """

    settings: ConversionSettings
    pixels: PixelGrid
    features: FeatureFields
    foreground: np.ndarray
    depth: np.ndarray
    depth_layers: np.ndarray
    blocks: QuantizedBlockField
    grid: VoxelGrid
    optimized: VoxelGrid
    timings: Dict[str, float] = field(default_factory=dict)

    @property
    def stats(self) -> GridStats:
        return grid_stats(self.optimized)


class _StageTimer:
    """Records the duration of each pipeline stage and logs it at DEBUG."""

    def __init__(self):
        self.timings: Dict[str, float] = {}

    def run(self, name: str, func, *args, **kwargs):
        start = time.perf_counter()
        result = func(*args, **kwargs)
        elapsed = time.perf_counter() - start
        self.timings[name] = elapsed
        logger.debug("%s took %.3fs", name, elapsed)
        return result


def convert(
    pixels: PixelGrid,
    settings: Optional[ConversionSettings] = None,
    catalog: Optional[PaletteCatalog] = None
) -> ConversionResult:
    """
    Run the full pipeline on a pixel grid.

    The palette is resolved before any pixel is processed, so an unknown or
    empty palette fails fast.

    Args:
        pixels: Input pixel grid (already at block resolution)
        settings: Conversion settings (defaults when omitted)
        catalog: Palette catalog (the built-in one when omitted)

    Returns:
        ConversionResult
    """
    settings = settings or ConversionSettings()
    palette = get_palette(settings.palette, catalog)
    timer = _StageTimer()

    logger.debug(
        "Converting %dx%d grid (%d opaque) with palette %s (%d blocks)",
        pixels.width, pixels.height, pixels.opaque_count, palette.name, len(palette)
    )

    features = timer.run("features", FeatureExtractor().extract, pixels)

    estimator = DepthEstimator(settings.depth_mode, settings.smoothing_iterations)
    estimate = timer.run("depth", estimator.estimate, pixels, features)
    layers = quantize_depth(estimate.depth, settings.depth_layers)
    layers = np.where(pixels.opaque, layers, 0).astype(np.int32)

    quantizer = PaletteQuantizer(palette, settings.dithering)
    blocks = timer.run("quantize", quantizer.quantize, pixels)

    voxelizer = Voxelizer(settings.fill_mode)
    grid = timer.run("voxelize", voxelizer.voxelize, blocks, layers, settings.depth_layers)
    optimized = timer.run("optimize", voxelizer.optimize, grid)

    logger.debug(
        "Voxels: %d raw, %d after culling", len(grid.voxels), len(optimized.voxels)
    )

    return ConversionResult(
        settings=settings,
        pixels=pixels,
        features=features,
        foreground=estimate.foreground,
        depth=estimate.depth,
        depth_layers=layers,
        blocks=blocks,
        grid=grid,
        optimized=optimized,
        timings=dict(timer.timings),
    )


class VoxelGenerator:
    """
    High-level interface for image to block model conversion.

    This class provides a streamlined workflow for turning a picture into
    a block build and exporting it.

    Attributes:
        settings: Conversion settings
        pixels: The loaded pixel grid
        result: The last conversion result
    """

    def __init__(
        self,
        settings: Optional[ConversionSettings] = None,
        catalog: Optional[PaletteCatalog] = None
    ):
        """
        Initialize the VoxelGenerator.

        Args:
            settings: Conversion settings (defaults when omitted)
            catalog: Palette catalog (the built-in one when omitted)
        """
        self.settings = settings or ConversionSettings()
        self.catalog = catalog

        self._pixels: Optional[PixelGrid] = None
        self._result: Optional[ConversionResult] = None

    def load_image(self, image_path: Union[str, Path]) -> "VoxelGenerator":
        """
        Load and down-scale an image.

        Args:
            image_path: Path to the image

        Returns:
            self for method chaining
        """
        loader = ImageLoader(self.settings.resolution)
        self._pixels = loader.load(image_path)
        self._result = None

        logger.debug(
            "Loaded %s: %s -> %dx%d blocks",
            image_path, loader.original_size, self._pixels.width, self._pixels.height
        )
        return self

    def load_array(self, rgba_array: np.ndarray) -> "VoxelGenerator":
        """
        Load an (H, W, 4) RGBA array as-is (no down-scaling).

        Returns:
            self for method chaining
        """
        self._pixels = PixelGrid.from_array(rgba_array)
        self._result = None
        return self

    def load_pixels(self, image: dict) -> "VoxelGenerator":
        """
        Load a `{width, height, pixels}` mapping as-is.

        Returns:
            self for method chaining
        """
        self._pixels = PixelGrid.from_pixels(image)
        self._result = None
        return self

    def convert(self) -> "VoxelGenerator":
        """
        Run the pipeline on the loaded pixels.

        Returns:
            self for method chaining
        """
        if self._pixels is None:
            raise BlockifyError("No image loaded. Call load_image() first.")

        self._result = convert(self._pixels, self.settings, self.catalog)
        return self

    def _require_result(self) -> ConversionResult:
        if self._result is None:
            self.convert()
        return self._result

    def export_schematic(self, output_path: Union[str, Path]) -> Path:
        """
        Export to .schematic.

        Args:
            output_path: Output file path

        Returns:
            Path written
        """
        result = self._require_result()
        return SchematicExporter().export(result.optimized, output_path)

    def export_obj(self, output_path: Union[str, Path]) -> Tuple[Path, Path]:
        """
        Export to .obj with its .mtl material library.

        Args:
            output_path: Output file path

        Returns:
            (obj path, mtl path)
        """
        result = self._require_result()
        exporter = OBJExporter(
            block_size=self.settings.block_size,
            merge_faces=self.settings.optimize_faces,
        )
        return exporter.export(result.optimized, output_path)

    def export_all(
        self,
        base_path: Union[str, Path],
        formats: Optional[List[str]] = None
    ) -> List[Path]:
        """
        Export to multiple formats at once.

        Args:
            base_path: Base file path (without extension)
            formats: Formats to export (default: schematic and obj)

        Returns:
            Paths written
        """
        base_path = Path(base_path)
        formats = formats or ["schematic", "obj"]
        written = []

        if "schematic" in formats:
            schematic_path = base_path.parent / f"{base_path.name}.schematic"
            written.append(self.export_schematic(schematic_path))

        if "obj" in formats:
            written.extend(self.export_obj(base_path.parent / f"{base_path.name}.obj"))

        return written

    @property
    def pixels(self) -> Optional[PixelGrid]:
        """Get the loaded pixel grid."""
        return self._pixels

    @property
    def result(self) -> Optional[ConversionResult]:
        """Get the last conversion result."""
        return self._result

    @property
    def grid(self) -> Optional[VoxelGrid]:
        """Get the optimized voxel grid."""
        if self._result is None:
            return None
        return self._result.optimized

    @property
    def voxel_count(self) -> int:
        """Get the number of exported voxels."""
        if self._result is None:
            return 0
        return len(self._result.optimized.voxels)

    def get_stats(self) -> Optional[GridStats]:
        """Statistics of the optimized grid."""
        if self._result is None:
            return None
        return self._result.stats

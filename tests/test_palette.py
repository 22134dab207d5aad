"""
Unit tests for block palettes and palette quantization.
"""

import sys
from pathlib import Path
import numpy as np
import unittest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from blockify.errors import EmptyPaletteError, UnknownPaletteError
from blockify.ingestion import PixelGrid
from blockify.palette import (
    BASE_CATALOGS,
    DEFAULT_CATALOG,
    Block,
    Palette,
    PaletteCatalog,
    color_distance,
    get_palette,
)
from blockify.quantizer import DIFFUSION_STENCIL, PaletteQuantizer, quantize_pixels


BLACK = Block("black", (0, 0, 0), 1)
WHITE = Block("white", (255, 255, 255), 2)


def grey_grid(width, height, value):
    rgba = np.full((height, width, 4), value, dtype=np.uint8)
    rgba[:, :, 3] = 255
    return PixelGrid(rgba)


class TestColorDistance(unittest.TestCase):
    """Tests for the weighted colour metric."""

    def test_identity(self):
        """Distance of a colour to itself is zero."""
        assert color_distance((10, 20, 30), (10, 20, 30)) == 0.0

    def test_symmetry(self):
        """Distance is symmetric."""
        a, b = (200, 10, 50), (30, 180, 90)
        assert np.isclose(color_distance(a, b), color_distance(b, a))

    def test_green_weighted_highest(self):
        """A green difference costs more than the same red difference."""
        base = (128, 128, 128)
        assert color_distance(base, (128, 148, 128)) > color_distance(base, (148, 128, 128))


class TestPalette(unittest.TestCase):
    """Tests for Palette and PaletteCatalog."""

    def test_find_closest_is_idempotent(self):
        """Every palette colour maps back to a block of that colour."""
        for name in DEFAULT_CATALOG.names:
            palette = DEFAULT_CATALOG[name]
            for block in palette:
                assert palette.find_closest_block(block.color).color == block.color

    def test_duplicate_colours_prefer_first(self):
        """Equal distances resolve to the earlier block."""
        first = Block("a", (10, 10, 10), 1)
        second = Block("b", (10, 10, 10), 2)
        palette = Palette("dup", [first, second])
        assert palette.find_closest_block((12, 12, 12)) is first

    def test_empty_palette(self):
        """A palette without blocks is rejected."""
        with self.assertRaises(EmptyPaletteError):
            Palette("nothing", [])

        with self.assertRaises(EmptyPaletteError):
            PaletteCatalog([("nothing", ())])

    def test_unknown_palette(self):
        """Unknown names raise, also as a KeyError."""
        with self.assertRaises(UnknownPaletteError):
            get_palette("plasma")
        with self.assertRaises(KeyError):
            DEFAULT_CATALOG["plasma"]

    def test_builtin_names(self):
        """All documented palettes exist."""
        for name in ("minecraft", "terracotta", "wool", "concrete", "full"):
            assert name in DEFAULT_CATALOG
            assert len(DEFAULT_CATALOG[name]) > 0

    def test_full_catalog_union(self):
        """The full catalog holds each block name once, first occurrence wins."""
        full = get_palette("full")
        names = [b.name for b in full]
        assert len(names) == len(set(names))

        expected = []
        for _, blocks in BASE_CATALOGS:
            for block in blocks:
                if block.name not in expected:
                    expected.append(block.name)
        assert names == expected

    def test_colors_read_only(self):
        """The colour table cannot be modified."""
        palette = get_palette("wool")
        with self.assertRaises(ValueError):
            palette.colors[0, 0] = 1.0

    def test_catalog_is_shared(self):
        """Repeated lookups return the same palette object."""
        assert get_palette("concrete") is get_palette("concrete")


class TestQuantizer(unittest.TestCase):
    """Tests for nearest-block quantization and dithering."""

    def test_stencil_weights_sum_to_one(self):
        """Floyd-Steinberg weights distribute the whole error."""
        assert sum(w for _, _, w in DIFFUSION_STENCIL) == 1.0

    def test_exact_colours_unchanged(self):
        """Palette-exact pixels keep their block with or without dithering."""
        palette = get_palette("wool")
        rgba = np.zeros((2, 3, 4), dtype=np.uint8)
        rgba[:, :, 3] = 255
        for i in range(6):
            rgba[i // 3, i % 3, :3] = palette[i].color

        for dithering in (False, True):
            field = quantize_pixels(PixelGrid(rgba), palette, dithering)
            for i in range(6):
                assert field.block_at(i % 3, i // 3) == palette[i]

    def test_transparent_pixels(self):
        """Transparent pixels get no block and never receive error."""
        palette = Palette("bw", [BLACK, WHITE])
        rgba = np.zeros((1, 3, 4), dtype=np.uint8)
        rgba[0, 0] = [100, 100, 100, 255]
        rgba[0, 1] = [255, 255, 255, 0]
        rgba[0, 2] = [200, 200, 200, 255]

        field = PaletteQuantizer(palette, dithering=True).quantize(PixelGrid(rgba))

        assert field.block_at(1, 0) is None
        assert field.pixel_at(1, 0) is None
        # Error from x=0 skips the transparent pixel, so x=2 stays white
        assert field.block_at(0, 0) == BLACK
        assert field.block_at(2, 0) == WHITE

    def test_original_colour_kept(self):
        """Each quantized pixel remembers its source colour."""
        palette = Palette("bw", [BLACK, WHITE])
        field = quantize_pixels(grey_grid(2, 2, 90), palette, dithering=False)
        pixel = field.pixel_at(1, 1)

        assert pixel.block == BLACK
        assert pixel.original_color == (90, 90, 90)

    def test_dithering_preserves_mean(self):
        """Dithering keeps average brightness where direct mapping bands."""
        palette = Palette("bw", [BLACK, WHITE])
        grid = grey_grid(32, 32, 128)

        direct = quantize_pixels(grid, palette, dithering=False)
        dithered = quantize_pixels(grid, palette, dithering=True)

        direct_mean = direct.block_colors()[:, :, 0].mean()
        dithered_mean = dithered.block_colors()[:, :, 0].mean()

        assert direct_mean == 255.0
        assert abs(dithered_mean - 128) < 16

    def test_gradient_banding(self):
        """A smooth ramp dithers into more transitions than direct mapping."""
        palette = Palette("bw", [BLACK, WHITE])
        rgba = np.zeros((8, 64, 4), dtype=np.uint8)
        rgba[:, :, :3] = np.linspace(0, 255, 64).astype(np.uint8)[np.newaxis, :, np.newaxis]
        rgba[:, :, 3] = 255
        grid = PixelGrid(rgba)

        def transitions(field):
            row = field.indices[4]
            return int(np.count_nonzero(row[1:] != row[:-1]))

        assert transitions(quantize_pixels(grid, palette, False)) == 1
        assert transitions(quantize_pixels(grid, palette, True)) > 4

    def test_block_counts(self):
        """Per-block counts cover every opaque pixel."""
        palette = Palette("bw", [BLACK, WHITE])
        field = quantize_pixels(grey_grid(4, 4, 250), palette, dithering=False)
        assert field.block_counts() == {"white": 16}


if __name__ == "__main__":
    unittest.main()

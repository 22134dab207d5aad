"""
Depth Cue Extraction Module

Derives per-pixel scalar fields from the RGBA pixel grid. Each field is weak
evidence about depth or subject membership; the segmenter and depth fuser
combine them.

Cues:
1. Luminance - perceptual brightness (BT.601 weights)
2. Edges - Sobel gradient magnitude of luminance
3. Saturation - HSV-style chroma ratio
4. Contrast - colour distance to the mean opaque colour
5. Saliency - contrast blended with local luminance difference
6. Position - bottom/center prior (near content sits low and central)
7. Sharpness - local Laplacian deviation (blurred regions read as far)

Transparent pixels (alpha < 128) are 0 in every field and are excluded from
the neighborhoods of their opaque neighbors.
"""

from typing import NamedTuple
import numpy as np
from scipy import ndimage

from .ingestion import PixelGrid
from .fields import (
    MAX_RGB_DISTANCE,
    center_gaussian,
    masked_mean,
    normalize,
)


LUMA_WEIGHTS = np.array([0.299, 0.587, 0.114])

# Laplacian stencil used by the sharpness cue
LAPLACIAN_KERNEL = np.array([
    [0.0, 1.0, 0.0],
    [1.0, -4.0, 1.0],
    [0.0, 1.0, 0.0],
])


class FeatureFields(NamedTuple):
    """Per-pixel cue fields, each of shape (height, width)."""
    luminance: np.ndarray
    edges: np.ndarray
    saturation: np.ndarray
    contrast: np.ndarray
    saliency: np.ndarray
    position: np.ndarray
    sharpness: np.ndarray


class FeatureExtractor:
    """
    Computes the depth cue fields of a pixel grid.

    All methods are pure: they read the grid and return new arrays.
    """

    def __init__(
        self,
        edge_gain: float = 1.0,
        contrast_radius: int = 2,
        sharpness_window: int = 3,
        vertical_weight: float = 0.6
    ):
        """
        Initialize the extractor.

        Args:
            edge_gain: Multiplier on Sobel magnitude before clamping to [0, 1]
            contrast_radius: Neighborhood radius of the local luminance contrast
            sharpness_window: Half-size of the Laplacian variance window
            vertical_weight: Share of the vertical term in the position prior
                (the rest goes to the center falloff)
        """
        self.edge_gain = edge_gain
        self.contrast_radius = contrast_radius
        self.sharpness_window = sharpness_window
        self.vertical_weight = vertical_weight

    def extract(self, grid: PixelGrid) -> FeatureFields:
        """
        Compute every cue field.

        Args:
            grid: Input pixel grid

        Returns:
            FeatureFields
        """
        luminance = self.luminance(grid)
        edges = self.edges(luminance)
        contrast = self.contrast(grid)

        return FeatureFields(
            luminance=luminance,
            edges=edges,
            saturation=self.saturation(grid),
            contrast=contrast,
            saliency=self.saliency(grid, luminance, contrast),
            position=self.position(grid),
            sharpness=self.sharpness(grid, luminance),
        )

    def luminance(self, grid: PixelGrid) -> np.ndarray:
        """
        Perceptual luminance 0.299R + 0.587G + 0.114B scaled to [0, 1].
        """
        lum = grid.rgb @ LUMA_WEIGHTS / 255.0
        return np.where(grid.opaque, lum, 0.0)

    def edges(self, luminance: np.ndarray) -> np.ndarray:
        """
        3x3 Sobel gradient magnitude, zero on the one-pixel border.
        """
        gx = ndimage.sobel(luminance, axis=1, mode="nearest")
        gy = ndimage.sobel(luminance, axis=0, mode="nearest")
        magnitude = np.clip(np.hypot(gx, gy) * self.edge_gain, 0.0, 1.0)

        # Border pixels have an incomplete stencil
        magnitude[0, :] = 0.0
        magnitude[-1, :] = 0.0
        magnitude[:, 0] = 0.0
        magnitude[:, -1] = 0.0
        return magnitude

    def saturation(self, grid: PixelGrid) -> np.ndarray:
        """
        (max - min) / max over normalized RGB; 0 for black or transparent.
        """
        rgb = grid.rgb / 255.0
        cmax = rgb.max(axis=2)
        cmin = rgb.min(axis=2)

        sat = np.zeros_like(cmax)
        valid = grid.opaque & (cmax > 0)
        sat[valid] = (cmax[valid] - cmin[valid]) / cmax[valid]
        return sat

    def contrast(self, grid: PixelGrid) -> np.ndarray:
        """
        Euclidean distance to the mean opaque colour over the largest
        possible RGB distance.
        """
        out = np.zeros((grid.height, grid.width))
        if grid.opaque_count == 0:
            return out

        rgb = grid.rgb
        mean_color = rgb[grid.opaque].mean(axis=0)
        dist = np.sqrt(np.sum((rgb - mean_color) ** 2, axis=2)) / MAX_RGB_DISTANCE

        out[grid.opaque] = dist[grid.opaque]
        return out

    def local_contrast(self, grid: PixelGrid, luminance: np.ndarray) -> np.ndarray:
        """
        Absolute luminance difference to the opaque neighborhood mean.
        """
        size = 2 * self.contrast_radius + 1
        local_mean = masked_mean(luminance, grid.opaque, size)
        return np.where(grid.opaque, np.abs(luminance - local_mean), 0.0)

    def saliency(
        self,
        grid: PixelGrid,
        luminance: np.ndarray,
        contrast: np.ndarray
    ) -> np.ndarray:
        """
        Global colour contrast blended with local luminance contrast,
        normalized over opaque pixels.
        """
        local = self.local_contrast(grid, luminance)
        return normalize(0.5 * contrast + 0.5 * local, grid.opaque)

    def position(self, grid: PixelGrid) -> np.ndarray:
        """
        Weak near/far prior: bottom rows and the image center read as near.
        """
        w, h = grid.width, grid.height

        if h > 1:
            vertical = np.arange(h, dtype=np.float64) / (h - 1)
        else:
            vertical = np.full(1, 0.5)
        vertical = np.repeat(vertical[:, np.newaxis], w, axis=1)

        center = center_gaussian(w, h, w / 3.0, h / 3.0)
        prior = self.vertical_weight * vertical + (1.0 - self.vertical_weight) * center

        return np.where(grid.opaque, prior, 0.0)

    def sharpness(self, grid: PixelGrid, luminance: np.ndarray) -> np.ndarray:
        """
        Local Laplacian standard deviation as a focus measure.

        Blurred regions are usually background. Pixels closer than the
        window half-size to the border have no full window and get 0.5.
        """
        h, w = luminance.shape
        k = self.sharpness_window
        out = np.full((h, w), 0.5)

        if h <= 2 * k or w <= 2 * k:
            return np.where(grid.opaque, out, 0.0)

        lap = ndimage.convolve(luminance, LAPLACIAN_KERNEL, mode="constant", cval=0.0)
        size = 2 * k + 1
        mean = ndimage.uniform_filter(lap, size=size, mode="constant")
        mean_sq = ndimage.uniform_filter(lap * lap, size=size, mode="constant")
        std = np.sqrt(np.abs(mean_sq - mean * mean))

        inner = np.minimum(1.0, std * 10.0)
        out[k:h - k, k:w - k] = inner[k:h - k, k:w - k]
        return np.where(grid.opaque, out, 0.0)

"""
Foreground Segmentation Module

Estimates, per pixel, how likely it is to belong to the subject rather than
the background, without any learned model. The border band of the image is
assumed to be mostly background; pixels that differ from it, sit near the
center, are saturated or lie on strong edges score as foreground.

Pipeline:
1. Background model from the outer band (mean colour + spread)
2. Five evidence terms combined with fixed weights
3. Two masked Gaussian passes (radius 2, then 1)
4. Min/max normalization and an S-curve stretch
"""

from typing import NamedTuple, Optional
import numpy as np

from .ingestion import PixelGrid
from .features import FeatureFields
from .fields import (
    center_gaussian,
    color_spread,
    masked_gaussian,
    normalize,
    s_curve,
)


# Evidence weights (sum to 1)
WEIGHT_DISTANCE = 0.35
WEIGHT_SPATIAL = 0.20
WEIGHT_THRESHOLD = 0.20
WEIGHT_SATURATION = 0.15
WEIGHT_EDGE = 0.10

# Probability above which downstream stages treat a pixel as foreground
FOREGROUND_THRESHOLD = 0.3

# Colour spread at which spatial priors reach full weight
SPATIAL_CONFIDENCE_SPREAD = 32.0


class BackgroundModel(NamedTuple):
    """Colour statistics of the border band."""
    mean_color: np.ndarray   # (3,) float RGB
    std: float               # RMS colour distance to the mean
    threshold: float         # Colour difference that counts as "not background"
    sample_count: int


def spatial_confidence(grid: PixelGrid) -> float:
    """
    Weight multiplier for purely positional priors.

    An image without colour variation carries no evidence about where the
    subject is, so position-only terms fade out with the colour spread.
    """
    return min(1.0, color_spread(grid.rgb, grid.opaque) / SPATIAL_CONFIDENCE_SPREAD)


class ForegroundSegmenter:
    """
    Heuristic foreground/background separation.

    The segmenter is stateless apart from its configuration; `segment` can be
    called concurrently on different grids.
    """

    def __init__(
        self,
        border_fraction: float = 0.12,
        min_threshold: float = 30.0,
        threshold_scale: float = 1.5,
        blur_radii: tuple = (2, 1)
    ):
        """
        Initialize the segmenter.

        Args:
            border_fraction: Width of the background sampling band relative
                to image width/height
            min_threshold: Lower bound of the colour-difference threshold
            threshold_scale: Multiplier on the border colour spread
            blur_radii: Radii of the successive refinement blurs
        """
        self.border_fraction = border_fraction
        self.min_threshold = min_threshold
        self.threshold_scale = threshold_scale
        self.blur_radii = blur_radii

    def border_mask(self, width: int, height: int) -> np.ndarray:
        """Boolean mask of the outer sampling band."""
        bw = max(1, int(round(width * self.border_fraction)))
        bh = max(1, int(round(height * self.border_fraction)))

        ys, xs = np.mgrid[0:height, 0:width]
        return (xs < bw) | (xs >= width - bw) | (ys < bh) | (ys >= height - bh)

    def background_model(self, grid: PixelGrid) -> Optional[BackgroundModel]:
        """
        Estimate the background colour from opaque border pixels.

        Falls back to all opaque pixels when the band is fully transparent.

        Returns:
            BackgroundModel, or None for a fully transparent grid
        """
        if grid.opaque_count == 0:
            return None

        sample = self.border_mask(grid.width, grid.height) & grid.opaque
        if not sample.any():
            sample = grid.opaque

        colors = grid.rgb[sample]
        mean_color = colors.mean(axis=0)
        std = float(np.sqrt(np.mean(np.sum((colors - mean_color) ** 2, axis=1))))
        threshold = max(self.min_threshold, self.threshold_scale * std)

        return BackgroundModel(mean_color, std, threshold, len(colors))

    def raw_probability(self, grid: PixelGrid, features: FeatureFields) -> np.ndarray:
        """
        Weighted evidence sum before refinement, clamped to [0, 1].
        """
        out = np.zeros((grid.height, grid.width))
        model = self.background_model(grid)
        if model is None:
            return out

        opaque = grid.opaque
        distance = np.sqrt(np.sum((grid.rgb - model.mean_color) ** 2, axis=2))

        # Larger distance from the background colour = more foreground-like
        max_distance = float(distance[opaque].max())
        if max_distance > 0:
            distance_term = distance / max_distance
        else:
            distance_term = np.zeros_like(distance)

        spatial = center_gaussian(grid.width, grid.height, grid.width / 3.0, grid.height / 3.0)
        spatial_weight = WEIGHT_SPATIAL * spatial_confidence(grid)

        threshold_term = (distance > model.threshold).astype(np.float64)

        combined = (
            WEIGHT_DISTANCE * distance_term
            + spatial_weight * spatial
            + WEIGHT_THRESHOLD * threshold_term
            + WEIGHT_SATURATION * features.saturation
            + WEIGHT_EDGE * features.edges
        )
        combined = np.clip(combined, 0.0, 1.0)

        out[opaque] = combined[opaque]
        return out

    def segment(self, grid: PixelGrid, features: FeatureFields) -> np.ndarray:
        """
        Foreground probability per pixel.

        Args:
            grid: Input pixel grid
            features: Cue fields of the same grid

        Returns:
            Field in [0, 1]; 0 for transparent pixels
        """
        opaque = grid.opaque
        prob = self.raw_probability(grid, features)
        if not opaque.any():
            return prob

        for radius in self.blur_radii:
            prob = masked_gaussian(prob, opaque, radius)

        prob = normalize(prob, opaque)
        prob = s_curve(prob)
        return np.where(opaque, prob, 0.0)

"""
Depth Estimation Module

This module turns the cue fields of a single image into a normalized depth
field (0 = far, 1 = near) and quantizes it into integer voxel layers.

Strategies (see DepthMode):
1. Fused - foreground probability dominates, small corrective cue terms,
   background attenuation, median-split contrast boost, edge-aware smoothing
2. Cues - fixed-weight blend of luminance, edges, sharpness, saturation and
   position
3. Flat - constant mid depth

The estimate is a deterministic heuristic, not a measurement: it resolves the
underdetermined depth of a single photo with closed-form rules only.
"""

from typing import NamedTuple, Optional
import numpy as np
from numba import njit

from .config import DepthMode
from .errors import ConfigurationError
from .features import FeatureFields
from .fields import DEGENERATE_SPREAD, masked_mean, normalize
from .ingestion import PixelGrid
from .segmentation import (
    FOREGROUND_THRESHOLD,
    ForegroundSegmenter,
    spatial_confidence,
)


# Fused-mode weights: the mask dominates, the rest sum to 0.3
FUSED_WEIGHTS = {
    "foreground": 0.70,
    "saliency": 0.08,
    "contrast": 0.07,
    "center": 0.06,
    "saturation": 0.05,
    "luminance": 0.04,
}

# Cue-blend weights
CUE_WEIGHTS = {
    "luminance": 0.25,
    "edges": 0.15,
    "sharpness": 0.25,
    "saturation": 0.15,
    "position": 0.20,
}

BACKGROUND_ATTENUATION = 0.5
MEDIAN_SPLIT_FACTOR = 0.8
BACKGROUND_CEILING = 0.3
FOREGROUND_FLOOR = 0.4


class DepthEstimate(NamedTuple):
    """Result of depth estimation."""
    depth: np.ndarray        # Normalized depth field, 0 where transparent
    foreground: np.ndarray   # Foreground probability (zeros unless fused)


@njit(cache=True)
def _bilateral_kernel(
    values: np.ndarray,
    edges: np.ndarray,
    mask: np.ndarray,
    radius: int,
    sigma_spatial: float,
    sigma_range: float,
    edge_attenuation: float
) -> np.ndarray:
    """
    Edge-aware weighted average over a (2r+1)^2 neighborhood.

    Neighbor weight = spatial Gaussian x range Gaussian x (1 - attenuation *
    edge strength at the center). The center always has weight 1, so strong
    edges keep their own value.
    """
    h, w = values.shape
    out = np.zeros((h, w))
    two_ss = 2.0 * sigma_spatial * sigma_spatial
    two_rr = 2.0 * sigma_range * sigma_range

    for y in range(h):
        for x in range(w):
            if not mask[y, x]:
                continue

            center = values[y, x]
            neighbor_scale = 1.0 - edge_attenuation * edges[y, x]
            total = 0.0
            weight_sum = 0.0

            for dy in range(-radius, radius + 1):
                ny = y + dy
                if ny < 0 or ny >= h:
                    continue
                for dx in range(-radius, radius + 1):
                    nx = x + dx
                    if nx < 0 or nx >= w or not mask[ny, nx]:
                        continue

                    diff = values[ny, nx] - center
                    weight = np.exp(-(dx * dx + dy * dy) / two_ss)
                    weight *= np.exp(-(diff * diff) / two_rr)
                    if dx != 0 or dy != 0:
                        weight *= neighbor_scale

                    total += weight * values[ny, nx]
                    weight_sum += weight

            out[y, x] = total / weight_sum

    return out


def bilateral_smooth(
    depth: np.ndarray,
    edges: np.ndarray,
    mask: np.ndarray,
    radius: int = 2,
    sigma_spatial: float = 1.5,
    sigma_range: float = 0.15,
    edge_attenuation: float = 0.8
) -> np.ndarray:
    """
    Edge-preserving smoothing of a depth field.

    Args:
        depth: Depth field
        edges: Edge magnitude field in [0, 1]
        mask: Opacity mask; transparent pixels neither read nor write
        radius: Neighborhood radius
        sigma_spatial: Spatial Gaussian sigma (pixels)
        sigma_range: Depth-difference Gaussian sigma
        edge_attenuation: Fraction of neighbor weight removed at full edge
            strength (must be < 1)

    Returns:
        Smoothed field, 0 where transparent
    """
    return _bilateral_kernel(
        np.ascontiguousarray(depth, dtype=np.float64),
        np.ascontiguousarray(edges, dtype=np.float64),
        np.ascontiguousarray(mask, dtype=np.bool_),
        int(radius),
        float(sigma_spatial),
        float(sigma_range),
        float(edge_attenuation),
    )


def box_smooth(depth: np.ndarray, mask: np.ndarray, iterations: int = 2) -> np.ndarray:
    """
    Repeated 3x3 mean over in-bounds opaque neighbors.

    Args:
        depth: Depth field
        mask: Opacity mask
        iterations: Number of passes

    Returns:
        Smoothed field, 0 where transparent
    """
    result = np.where(mask, depth, 0.0)
    for _ in range(iterations):
        result = np.where(mask, masked_mean(result, mask, 3), 0.0)
    return result


def median_split(depth: np.ndarray, mask: np.ndarray) -> np.ndarray:
    """
    Push values apart around 0.8 x median.

    Values below the split are compressed into [0, 0.3); values at or above
    it are expanded into [0.4, 1.0], leaving a guaranteed gap between
    background and subject.
    """
    out = np.zeros_like(depth)
    if not mask.any():
        return out

    values = depth[mask]
    split = MEDIAN_SPLIT_FACTOR * float(np.median(values))
    hi = float(values.max())

    below = mask & (depth < split)
    above = mask & ~below

    if split > 0:
        out[below] = BACKGROUND_CEILING * depth[below] / split

    if hi - split > DEGENERATE_SPREAD:
        span = 1.0 - FOREGROUND_FLOOR
        out[above] = FOREGROUND_FLOOR + span * (depth[above] - split) / (hi - split)
    else:
        out[above] = 1.0

    return out


def quantize_depth(depth: np.ndarray, layers: int) -> np.ndarray:
    """
    Map a normalized depth field onto integer layers.

    Each value becomes round(depth * (layers - 1)), rounded half up.

    Args:
        depth: Field in [0, 1]
        layers: Layer count (>= 1)

    Returns:
        int32 array with values in [0, layers - 1]
    """
    if int(layers) < 1:
        raise ConfigurationError(f"Depth layers must be >= 1, got {layers}")

    scaled = np.floor(np.asarray(depth, dtype=np.float64) * (layers - 1) + 0.5)
    return np.clip(scaled, 0, layers - 1).astype(np.int32)


class DepthEstimator:
    """
    Depth estimation engine for image to voxel conversion.

    The estimator consumes the pixel grid plus its cue fields and produces a
    normalized depth field where each opaque pixel is assigned a value in
    [0, 1].
    """

    def __init__(
        self,
        mode: DepthMode = DepthMode.FUSED,
        smoothing_iterations: int = 2,
        segmenter: Optional[ForegroundSegmenter] = None
    ):
        """
        Initialize the depth estimator.

        Args:
            mode: Depth estimation strategy
            smoothing_iterations: 3x3 box passes applied after the main filter
            segmenter: Foreground segmenter for the fused strategy
        """
        self.mode = DepthMode(mode)
        self.smoothing_iterations = smoothing_iterations
        self.segmenter = segmenter or ForegroundSegmenter()

    def estimate(self, grid: PixelGrid, features: FeatureFields) -> DepthEstimate:
        """
        Estimate depth for all opaque pixels.

        Args:
            grid: Input pixel grid
            features: Cue fields of the same grid

        Returns:
            DepthEstimate with the normalized depth field
        """
        opaque = grid.opaque
        foreground = np.zeros((grid.height, grid.width))

        if self.mode == DepthMode.FUSED:
            foreground = self.segmenter.segment(grid, features)
            depth = self._fused_depth(grid, features, foreground)
        elif self.mode == DepthMode.CUES:
            depth = self._cue_depth(grid, features)
        elif self.mode == DepthMode.FLAT:
            depth = self._flat_depth(grid)
        else:
            raise ValueError(f"Unknown depth mode: {self.mode}")

        if self.smoothing_iterations > 0 and self.mode != DepthMode.FLAT:
            depth = box_smooth(depth, opaque, self.smoothing_iterations)
            depth = normalize(depth, opaque)

        return DepthEstimate(depth=depth, foreground=foreground)

    def _fused_depth(
        self,
        grid: PixelGrid,
        features: FeatureFields,
        foreground: np.ndarray
    ) -> np.ndarray:
        """
        Foreground-dominated fusion with edge-aware smoothing.
        """
        opaque = grid.opaque
        w = FUSED_WEIGHTS

        raw = (
            w["foreground"] * foreground
            + w["saliency"] * features.saliency
            + w["contrast"] * features.contrast
            + w["center"] * spatial_confidence(grid) * features.position
            + w["saturation"] * features.saturation
            + w["luminance"] * features.luminance
        )

        # Background must recess below the subject
        raw = np.where(foreground < FOREGROUND_THRESHOLD, raw * BACKGROUND_ATTENUATION, raw)
        raw = np.where(opaque, raw, 0.0)

        boosted = median_split(raw, opaque)
        smoothed = bilateral_smooth(boosted, features.edges, opaque)
        return normalize(smoothed, opaque)

    def _cue_depth(self, grid: PixelGrid, features: FeatureFields) -> np.ndarray:
        """
        Fixed-weight blend: bright, sharp, saturated, low and central = near.
        """
        w = CUE_WEIGHTS
        depth = (
            w["luminance"] * features.luminance
            + w["edges"] * features.edges * 0.5
            + w["sharpness"] * features.sharpness
            + w["saturation"] * features.saturation
            + w["position"] * features.position
        )
        return normalize(np.clip(depth, 0.0, 1.0), grid.opaque)

    def _flat_depth(self, grid: PixelGrid) -> np.ndarray:
        """Constant mid depth for every opaque pixel."""
        return np.where(grid.opaque, 0.5, 0.0)

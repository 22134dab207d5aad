"""
Scalar Field Utilities

Every per-pixel quantity in the pipeline is a float64 array of shape
(height, width) aligned 1:1 with the pixel grid. Neighborhood reads go
through scipy.ndimage with an explicit boundary mode, and masked variants
let transparent pixels contribute nothing instead of a fake zero.
"""

from typing import Optional
import numpy as np
from scipy import ndimage


# Spreads at or below this are treated as a constant field
DEGENERATE_SPREAD = 1e-9

# Largest possible distance between two RGB colours: sqrt(3 * 255^2)
MAX_RGB_DISTANCE = float(np.sqrt(3.0 * 255.0 ** 2))


def normalize(field: np.ndarray, mask: Optional[np.ndarray] = None) -> np.ndarray:
    """
    Linearly rescale a field to [0, 1] by its observed (min, max).

    A constant field (or one whose spread is below DEGENERATE_SPREAD)
    collapses to 0.5 instead of dividing by zero.

    Args:
        field: 2D float array
        mask: Optional boolean mask; min/max are taken over masked pixels
              only and unmasked pixels are written as 0

    Returns:
        New normalized array
    """
    field = np.asarray(field, dtype=np.float64)

    if mask is None:
        values = field
    else:
        values = field[mask]

    result = np.zeros_like(field)
    if values.size == 0:
        return result

    lo = float(values.min())
    hi = float(values.max())

    if hi - lo <= DEGENERATE_SPREAD:
        normalized = np.full_like(field, 0.5)
    else:
        normalized = np.clip((field - lo) / (hi - lo), 0.0, 1.0)

    if mask is None:
        return normalized

    result[mask] = normalized[mask]
    return result


def masked_mean(values: np.ndarray, mask: np.ndarray, size: int) -> np.ndarray:
    """
    Box mean over a size x size window counting only in-bounds masked pixels.

    Pixels with no masked neighbor at all get 0.

    Args:
        values: 2D float array
        mask: Boolean mask of contributing pixels
        size: Odd window edge length

    Returns:
        Filtered array
    """
    weights = mask.astype(np.float64)
    num = ndimage.uniform_filter(values * weights, size=size, mode="constant", cval=0.0)
    den = ndimage.uniform_filter(weights, size=size, mode="constant", cval=0.0)

    out = np.zeros_like(num)
    valid = den > DEGENERATE_SPREAD
    out[valid] = num[valid] / den[valid]
    return out


def masked_gaussian(values: np.ndarray, mask: np.ndarray, radius: int) -> np.ndarray:
    """
    Separable Gaussian blur with a kernel that reaches exactly `radius` pixels.

    Transparent pixels are excluded from the weighted average; edges are
    clamped (nearest) so border pixels are not darkened.

    Args:
        values: 2D float array
        mask: Boolean mask of contributing pixels
        radius: Kernel radius in pixels (sigma = radius / 2)

    Returns:
        Blurred array, 0 outside the mask
    """
    if radius <= 0:
        return np.where(mask, values, 0.0)

    sigma = radius / 2.0
    weights = mask.astype(np.float64)
    num = ndimage.gaussian_filter(values * weights, sigma=sigma, mode="nearest", truncate=2.0)
    den = ndimage.gaussian_filter(weights, sigma=sigma, mode="nearest", truncate=2.0)

    out = np.zeros_like(num)
    valid = mask & (den > DEGENERATE_SPREAD)
    out[valid] = num[valid] / den[valid]
    return out


def center_gaussian(width: int, height: int, sigma_x: float, sigma_y: float) -> np.ndarray:
    """
    Gaussian falloff from the image center, 1.0 at the center.

    Args:
        width, height: Field dimensions
        sigma_x, sigma_y: Standard deviations in pixels

    Returns:
        Array of shape (height, width) in (0, 1]
    """
    ys, xs = np.mgrid[0:height, 0:width].astype(np.float64)
    cx = (width - 1) / 2.0
    cy = (height - 1) / 2.0
    sigma_x = max(sigma_x, 1e-6)
    sigma_y = max(sigma_y, 1e-6)

    return np.exp(
        -(((xs - cx) ** 2) / (2.0 * sigma_x ** 2) + ((ys - cy) ** 2) / (2.0 * sigma_y ** 2))
    )


def s_curve(t: np.ndarray) -> np.ndarray:
    """Smoothstep contrast stretch 3t^2 - 2t^3 on [0, 1]."""
    t = np.clip(t, 0.0, 1.0)
    return t * t * (3.0 - 2.0 * t)


def color_spread(rgb: np.ndarray, mask: np.ndarray) -> float:
    """
    RMS distance of the masked colours to their mean colour.

    Args:
        rgb: (H, W, 3) float array
        mask: Boolean opacity mask

    Returns:
        Spread in RGB units (0 for an empty or single-colour image)
    """
    colors = rgb[mask]
    if len(colors) == 0:
        return 0.0
    mean = colors.mean(axis=0)
    return float(np.sqrt(np.mean(np.sum((colors - mean) ** 2, axis=1))))

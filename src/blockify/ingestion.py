"""
Image Ingestion and Preprocessing Module

This module handles:
- Loading photos or artwork with Pillow and forcing RGBA
- Down-scaling to the target block resolution with nearest-neighbor sampling
- Alpha thresholding (alpha < 128 is treated as fully transparent)
- Accepting the plain pixel-grid contract {width, height, pixels[y][x]}
"""

from dataclasses import dataclass, field
from pathlib import Path
from numbers import Integral
from typing import Optional, Tuple, Union, Mapping, Sequence
import numpy as np
from PIL import Image

from .errors import InvalidDimensionsError, InvalidPixelError


# Pixels with alpha below this value never produce colour, depth or voxels
ALPHA_THRESHOLD = 128
CHANNELS = ("r", "g", "b", "a")


def _check_dimensions(width: int, height: int):
    if width <= 0 or height <= 0:
        raise InvalidDimensionsError(
            f"Image dimensions must be positive, got {width}x{height}"
        )


def _check_channel_range(rgba: np.ndarray):
    if rgba.dtype == np.uint8:
        return
    if rgba.dtype == np.bool_ or not (
        np.issubdtype(rgba.dtype, np.integer) or np.issubdtype(rgba.dtype, np.floating)
    ):
        raise InvalidPixelError(f"Pixel array must hold numbers, got dtype {rgba.dtype}")

    if not np.all(np.isfinite(rgba)) or np.any(rgba != np.floor(rgba)):
        raise InvalidPixelError("Pixel channels must be whole numbers")
    if rgba.min() < 0 or rgba.max() > 255:
        raise InvalidPixelError(
            f"Pixel channels must lie in 0..255, got {rgba.min()}..{rgba.max()}"
        )


def _channel(pixel: Mapping, name: str, x: int, y: int) -> int:
    try:
        value = pixel[name] if name != "a" else pixel.get("a", 255)
    except KeyError:
        raise InvalidPixelError(f"Pixel ({x}, {y}) has no {name!r} channel") from None

    if isinstance(value, bool) or not isinstance(value, Integral) or not 0 <= value <= 255:
        raise InvalidPixelError(
            f"Pixel ({x}, {y}) channel {name!r} must be an integer in 0..255, got {value!r}"
        )
    return int(value)


@dataclass(frozen=True)
class PixelGrid:
    """
    RGBA pixel grid addressed as rgba[y, x].

    Attributes:
        rgba: uint8 array of shape (height, width, 4)
    """

    rgba: np.ndarray
    _opaque: np.ndarray = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        rgba = np.asarray(self.rgba)
        if rgba.ndim != 3 or rgba.shape[2] != 4:
            raise InvalidDimensionsError(
                f"Pixel array must have shape (H, W, 4), got {rgba.shape}"
            )
        _check_dimensions(rgba.shape[1], rgba.shape[0])
        _check_channel_range(rgba)

        rgba = rgba.astype(np.uint8, copy=True)
        rgba.setflags(write=False)
        opaque = rgba[:, :, 3] >= ALPHA_THRESHOLD
        opaque.setflags(write=False)

        object.__setattr__(self, "rgba", rgba)
        object.__setattr__(self, "_opaque", opaque)

    @classmethod
    def from_array(cls, rgba_array: np.ndarray) -> "PixelGrid":
        """Build a grid from an (H, W, 4) array."""
        return cls(rgba_array)

    @classmethod
    def from_pixels(cls, image: Mapping) -> "PixelGrid":
        """
        Build a grid from the plain mapping form.

        Args:
            image: {"width": w, "height": h, "pixels": [[{r, g, b, a}, ...], ...]}
                   with pixels[y][x] addressing

        Returns:
            PixelGrid
        """
        width = int(image["width"])
        height = int(image["height"])
        _check_dimensions(width, height)

        rows: Sequence = image["pixels"]
        if len(rows) != height:
            raise InvalidDimensionsError(
                f"Expected {height} pixel rows, got {len(rows)}"
            )

        rgba = np.zeros((height, width, 4), dtype=np.uint8)
        for y, row in enumerate(rows):
            if len(row) != width:
                raise InvalidDimensionsError(
                    f"Row {y} has {len(row)} pixels, expected {width}"
                )
            for x, p in enumerate(row):
                if p is None:
                    continue  # Missing pixel = transparent
                rgba[y, x] = [_channel(p, name, x, y) for name in CHANNELS]

        return cls(rgba)

    @property
    def width(self) -> int:
        return self.rgba.shape[1]

    @property
    def height(self) -> int:
        return self.rgba.shape[0]

    @property
    def size(self) -> Tuple[int, int]:
        """Image size as (width, height)."""
        return (self.width, self.height)

    @property
    def opaque(self) -> np.ndarray:
        """Boolean mask, True where the pixel takes part in the conversion."""
        return self._opaque

    @property
    def rgb(self) -> np.ndarray:
        """RGB channels as float64, shape (H, W, 3)."""
        return self.rgba[:, :, :3].astype(np.float64)

    @property
    def opaque_count(self) -> int:
        return int(self._opaque.sum())


def scaled_size(width: int, height: int, resolution: int) -> Tuple[int, int]:
    """
    Size that maps the longer edge onto `resolution` blocks.

    The shorter edge keeps the aspect ratio (rounded half up) and never drops
    below one block.
    """
    _check_dimensions(width, height)
    if resolution < 1:
        raise InvalidDimensionsError(f"Resolution must be >= 1, got {resolution}")

    if width > height:
        new_w = resolution
        new_h = int(np.floor(resolution * height / width + 0.5))
    else:
        new_h = resolution
        new_w = int(np.floor(resolution * width / height + 0.5))

    return max(1, new_w), max(1, new_h)


class ImageLoader:
    """
    Image loader with voxelization-specific preprocessing.

    Key features:
    - Any Pillow-readable format, converted to RGBA
    - Strict nearest-neighbor down-scaling (no colour blending at edges)
    """

    def __init__(self, resolution: int = 64):
        """
        Initialize the image loader.

        Args:
            resolution: Block count along the longer image edge
        """
        self.resolution = resolution
        self._original_size: Optional[Tuple[int, int]] = None

    def load(self, image_path: Union[str, Path]) -> PixelGrid:
        """
        Load an image file and scale it to the block resolution.

        Args:
            image_path: Path to the image

        Returns:
            PixelGrid at block resolution
        """
        image_path = Path(image_path)
        if not image_path.exists():
            raise FileNotFoundError(f"Image not found: {image_path}")

        with Image.open(image_path) as img:
            img.load()
            return self.load_image(img)

    def load_image(self, img: Image.Image) -> PixelGrid:
        """
        Scale an already opened Pillow image to the block resolution.

        Args:
            img: Pillow image in any mode

        Returns:
            PixelGrid at block resolution
        """
        self._original_size = img.size
        _check_dimensions(*img.size)

        if img.mode != "RGBA":
            img = img.convert("RGBA")

        new_w, new_h = scaled_size(img.width, img.height, self.resolution)
        if (new_w, new_h) != img.size:
            img = img.resize((new_w, new_h), Image.Resampling.NEAREST)

        return PixelGrid(np.array(img, dtype=np.uint8))

    @property
    def original_size(self) -> Optional[Tuple[int, int]]:
        """Size (width, height) of the last loaded source image."""
        return self._original_size

"""
Conversion Settings

All tunable knobs of the image -> block model pipeline live in one immutable
object that is passed explicitly into the stage functions. Enum-typed fields
also accept their string values, which is what the CLI hands over.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Union

from .errors import ConfigurationError


class FillMode(Enum):
    """How a pixel column is turned into voxels."""
    SURFACE = "surface"   # One voxel at the estimated depth
    SOLID = "solid"       # Column from z=0 up to the depth
    HOLLOW = "hollow"     # Top voxel plus a base voxel at z=0


class DepthMode(Enum):
    """Available depth estimation strategies."""
    FUSED = "fused"       # Segmentation-driven fusion with edge-aware smoothing
    CUES = "cues"         # Fixed-weight blend of the raw depth cues
    FLAT = "flat"         # Constant mid depth for every opaque pixel


def _coerce_enum(enum_cls, value, field_name: str):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        choices = ", ".join(m.value for m in enum_cls)
        raise ConfigurationError(
            f"Invalid {field_name} {value!r} (expected one of: {choices})"
        ) from None


@dataclass(frozen=True)
class ConversionSettings:
    """
    Immutable configuration for a single conversion.

    Attributes:
        resolution: Block count along the longer image edge
        depth_layers: Number of depth layers; voxel z lies in [0, layers-1]
        palette: Name of the block palette to quantize against
        fill_mode: Column fill policy
        dithering: Apply Floyd-Steinberg error diffusion when quantizing
        depth_mode: Depth estimation strategy
        smoothing_iterations: Extra 3x3 box smoothing passes on the depth field
        block_size: Edge length of one block in exported meshes
        optimize_faces: Merge coplanar same-material faces in exported meshes
    """

    resolution: int = 64
    depth_layers: int = 10
    palette: str = "minecraft"
    fill_mode: Union[FillMode, str] = FillMode.SURFACE
    dithering: bool = True
    depth_mode: Union[DepthMode, str] = DepthMode.FUSED
    smoothing_iterations: int = 2
    block_size: float = 1.0
    optimize_faces: bool = True

    def __post_init__(self):
        # frozen dataclass: coerce through object.__setattr__
        object.__setattr__(
            self, "fill_mode", _coerce_enum(FillMode, self.fill_mode, "fill_mode")
        )
        object.__setattr__(
            self, "depth_mode", _coerce_enum(DepthMode, self.depth_mode, "depth_mode")
        )

        if int(self.resolution) < 1:
            raise ConfigurationError(f"resolution must be >= 1, got {self.resolution}")
        if int(self.depth_layers) < 1:
            raise ConfigurationError(f"depth_layers must be >= 1, got {self.depth_layers}")
        if int(self.smoothing_iterations) < 0:
            raise ConfigurationError(
                f"smoothing_iterations must be >= 0, got {self.smoothing_iterations}"
            )
        if not self.block_size > 0:
            raise ConfigurationError(f"block_size must be positive, got {self.block_size}")
        if not self.palette:
            raise ConfigurationError("palette name must not be empty")

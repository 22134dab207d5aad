"""
Exception hierarchy for the conversion pipeline.

Every failure the pipeline reports on purpose derives from BlockifyError, so
callers can catch the whole family at once. The concrete classes also derive
from the matching builtin (ValueError, KeyError) for code that only knows
about those.
"""


class BlockifyError(Exception):
    """Base class for all pipeline errors."""


class InvalidDimensionsError(BlockifyError, ValueError):
    """Raised for zero/negative image sizes or mismatched grid shapes."""


class InvalidPixelError(BlockifyError, ValueError):
    """Raised for channel values that are missing, non-integral or outside 0..255."""


class EmptyPaletteError(BlockifyError, ValueError):
    """Raised when a palette has no blocks to match against."""


class UnknownPaletteError(BlockifyError, KeyError):
    """Raised when a palette name is not present in the catalog."""

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the message readable
        return str(self.args[0]) if self.args else ""


class ConfigurationError(BlockifyError, ValueError):
    """Raised for invalid conversion settings."""


class NBTError(BlockifyError):
    """Raised when a tag cannot be written or a tag stream cannot be read."""

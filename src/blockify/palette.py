"""
Block Palette Module

A palette is an ordered, non-empty tuple of Blocks. Only `color` takes part
in matching; `id` and `data` are the legacy numeric block codes written to
schematic files.

The named catalogs are static. The "full" catalog is derived once, when the
catalog object is built, as the union of the base catalogs by block name
(first occurrence wins) and is never mutated afterwards.
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, Iterable, Mapping, Optional, Sequence, Tuple
import numpy as np
from numba import njit

from .errors import EmptyPaletteError, UnknownPaletteError


@dataclass(frozen=True)
class Block:
    """A selectable output material."""
    name: str
    color: Tuple[int, int, int]
    id: int
    data: int = 0


def _blocks(rows: Iterable[tuple]) -> Tuple[Block, ...]:
    return tuple(Block(name, tuple(color), block_id, data) for name, color, block_id, data in rows)


_WOOL = (
    ("white_wool", (233, 236, 236), 35, 0),
    ("orange_wool", (234, 126, 53), 35, 1),
    ("magenta_wool", (189, 68, 179), 35, 2),
    ("light_blue_wool", (58, 175, 217), 35, 3),
    ("yellow_wool", (248, 198, 39), 35, 4),
    ("lime_wool", (112, 185, 25), 35, 5),
    ("pink_wool", (237, 141, 172), 35, 6),
    ("gray_wool", (62, 68, 71), 35, 7),
    ("light_gray_wool", (142, 142, 134), 35, 8),
    ("cyan_wool", (21, 137, 145), 35, 9),
    ("purple_wool", (121, 42, 172), 35, 10),
    ("blue_wool", (53, 57, 157), 35, 11),
    ("brown_wool", (114, 71, 40), 35, 12),
    ("green_wool", (84, 109, 27), 35, 13),
    ("red_wool", (161, 39, 34), 35, 14),
    ("black_wool", (20, 21, 25), 35, 15),
)

_NATURAL = (
    ("stone", (125, 125, 125), 1, 0),
    ("granite", (149, 103, 85), 1, 1),
    ("diorite", (188, 188, 188), 1, 3),
    ("andesite", (136, 136, 136), 1, 5),
    ("dirt", (134, 96, 67), 3, 0),
    ("oak_planks", (162, 130, 78), 5, 0),
    ("spruce_planks", (104, 78, 47), 5, 1),
    ("birch_planks", (196, 179, 123), 5, 2),
    ("jungle_planks", (160, 115, 80), 5, 3),
    ("acacia_planks", (168, 90, 50), 5, 4),
    ("dark_oak_planks", (66, 43, 20), 5, 5),
    ("cobblestone", (127, 127, 127), 4, 0),
    ("sand", (219, 207, 163), 12, 0),
    ("red_sand", (190, 102, 33), 12, 1),
    ("gravel", (131, 127, 126), 13, 0),
    ("gold_block", (246, 208, 61), 41, 0),
    ("iron_block", (220, 220, 220), 42, 0),
    ("diamond_block", (97, 219, 213), 57, 0),
    ("lapis_block", (38, 67, 138), 22, 0),
    ("emerald_block", (42, 176, 67), 133, 0),
    ("redstone_block", (171, 26, 10), 152, 0),
    ("coal_block", (21, 21, 21), 173, 0),
    ("obsidian", (15, 10, 24), 49, 0),
    ("netherrack", (111, 54, 53), 87, 0),
    ("soul_sand", (81, 62, 50), 88, 0),
    ("glowstone", (171, 131, 84), 89, 0),
    ("nether_brick", (44, 22, 26), 112, 0),
    ("end_stone", (221, 223, 165), 121, 0),
    ("purpur_block", (169, 125, 169), 201, 0),
    ("prismarine", (99, 156, 151), 168, 0),
    ("sea_lantern", (172, 199, 190), 169, 0),
    ("hay_block", (166, 139, 12), 170, 0),
    ("bone_block", (209, 206, 179), 216, 0),
    ("quartz_block", (235, 229, 222), 155, 0),
    ("brick", (150, 97, 83), 45, 0),
    ("bookshelf", (162, 130, 78), 47, 0),
    ("mossy_cobblestone", (110, 118, 94), 48, 0),
    ("ice", (145, 183, 253), 79, 0),
    ("packed_ice", (141, 180, 250), 174, 0),
    ("snow", (249, 254, 254), 80, 0),
    ("clay", (160, 166, 179), 82, 0),
    ("pumpkin", (198, 118, 24), 86, 0),
    ("melon", (111, 145, 30), 103, 0),
    ("mycelium", (111, 99, 105), 110, 0),
    ("sponge", (195, 192, 74), 19, 0),
)

_TERRACOTTA = (
    ("terracotta", (152, 94, 67), 172, 0),
    ("white_terracotta", (209, 178, 161), 159, 0),
    ("orange_terracotta", (161, 83, 37), 159, 1),
    ("magenta_terracotta", (149, 88, 108), 159, 2),
    ("light_blue_terracotta", (113, 108, 137), 159, 3),
    ("yellow_terracotta", (186, 133, 35), 159, 4),
    ("lime_terracotta", (103, 117, 52), 159, 5),
    ("pink_terracotta", (161, 78, 78), 159, 6),
    ("gray_terracotta", (57, 42, 35), 159, 7),
    ("light_gray_terracotta", (135, 106, 97), 159, 8),
    ("cyan_terracotta", (86, 91, 91), 159, 9),
    ("purple_terracotta", (118, 70, 86), 159, 10),
    ("blue_terracotta", (74, 59, 91), 159, 11),
    ("brown_terracotta", (77, 51, 35), 159, 12),
    ("green_terracotta", (76, 83, 42), 159, 13),
    ("red_terracotta", (143, 61, 46), 159, 14),
    ("black_terracotta", (37, 22, 16), 159, 15),
)

_CONCRETE = (
    ("white_concrete", (207, 213, 214), 251, 0),
    ("orange_concrete", (224, 97, 0), 251, 1),
    ("magenta_concrete", (169, 48, 159), 251, 2),
    ("light_blue_concrete", (35, 137, 198), 251, 3),
    ("yellow_concrete", (241, 175, 21), 251, 4),
    ("lime_concrete", (94, 169, 24), 251, 5),
    ("pink_concrete", (214, 101, 143), 251, 6),
    ("gray_concrete", (54, 57, 61), 251, 7),
    ("light_gray_concrete", (125, 125, 115), 251, 8),
    ("cyan_concrete", (21, 119, 136), 251, 9),
    ("purple_concrete", (100, 31, 156), 251, 10),
    ("blue_concrete", (44, 46, 143), 251, 11),
    ("brown_concrete", (96, 59, 31), 251, 12),
    ("green_concrete", (73, 91, 36), 251, 13),
    ("red_concrete", (142, 32, 32), 251, 14),
    ("black_concrete", (8, 10, 15), 251, 15),
)

# Base catalogs in the order the full catalog is assembled from
BASE_CATALOGS: Tuple[Tuple[str, Tuple[Block, ...]], ...] = (
    ("minecraft", _blocks(_WOOL + _NATURAL)),
    ("terracotta", _blocks(_TERRACOTTA)),
    ("wool", _blocks(_WOOL)),
    ("concrete", _blocks(_CONCRETE)),
)

FULL_PALETTE_NAME = "full"
DEFAULT_PALETTE_NAME = "minecraft"


@njit(cache=True)
def _color_distance(r1: float, g1: float, b1: float, r2: float, g2: float, b2: float) -> float:
    """Red-mean weighted Euclidean distance (green weighted highest)."""
    r_mean = (r1 + r2) / 2.0
    dr = r1 - r2
    dg = g1 - g2
    db = b1 - b2
    r_weight = 2.0 + r_mean / 256.0
    g_weight = 4.0
    b_weight = 2.0 + (255.0 - r_mean) / 256.0
    return np.sqrt(r_weight * dr * dr + g_weight * dg * dg + b_weight * db * db)


@njit(cache=True)
def _nearest_index(r: float, g: float, b: float, colors: np.ndarray) -> int:
    """Index of the closest palette colour; ties go to the earlier entry."""
    best = 0
    best_distance = np.inf
    for i in range(colors.shape[0]):
        d = _color_distance(r, g, b, colors[i, 0], colors[i, 1], colors[i, 2])
        if d < best_distance:
            best_distance = d
            best = i
    return best


def color_distance(c1: Sequence[float], c2: Sequence[float]) -> float:
    """
    Perceptually weighted distance between two RGB colours.

    Weights: red 2 + rMean/256, green 4, blue 2 + (255 - rMean)/256 where
    rMean is the mean of the two reds.
    """
    return float(_color_distance(
        float(c1[0]), float(c1[1]), float(c1[2]),
        float(c2[0]), float(c2[1]), float(c2[2]),
    ))


class Palette:
    """
    Immutable, ordered set of blocks with nearest-colour lookup.
    """

    def __init__(self, name: str, blocks: Sequence[Block]):
        """
        Args:
            name: Palette name
            blocks: Non-empty sequence of Blocks

        Raises:
            EmptyPaletteError: If `blocks` is empty
        """
        blocks = tuple(blocks)
        if not blocks:
            raise EmptyPaletteError(f"Palette {name!r} has no blocks")

        self._name = name
        self._blocks = blocks
        colors = np.array([b.color for b in blocks], dtype=np.float64)
        colors.setflags(write=False)
        self._colors = colors

    @property
    def name(self) -> str:
        return self._name

    @property
    def blocks(self) -> Tuple[Block, ...]:
        return self._blocks

    @property
    def colors(self) -> np.ndarray:
        """Read-only (N, 3) float64 array of block colours."""
        return self._colors

    def __len__(self) -> int:
        return len(self._blocks)

    def __iter__(self):
        return iter(self._blocks)

    def __getitem__(self, index: int) -> Block:
        return self._blocks[index]

    def __repr__(self) -> str:
        return f"Palette({self._name!r}, {len(self._blocks)} blocks)"

    def nearest_index(self, rgb: Sequence[float]) -> int:
        """Index of the block closest to `rgb`."""
        return int(_nearest_index(float(rgb[0]), float(rgb[1]), float(rgb[2]), self._colors))

    def find_closest_block(self, rgb: Sequence[float]) -> Block:
        """
        Block whose colour is closest to `rgb` under color_distance.

        Re-quantizing a colour that already belongs to the palette returns
        that block (first occurrence for duplicated colours).
        """
        return self._blocks[self.nearest_index(rgb)]

    def index_of(self, block: Block) -> int:
        return self._blocks.index(block)


class PaletteCatalog:
    """
    Read-only collection of named palettes.
    """

    def __init__(self, catalogs: Sequence[Tuple[str, Sequence[Block]]] = BASE_CATALOGS):
        """
        Build the catalog and derive the "full" palette.

        Args:
            catalogs: (name, blocks) pairs in merge order
        """
        palettes: Dict[str, Palette] = {}
        merged: Dict[str, Block] = {}

        for name, blocks in catalogs:
            palettes[name] = Palette(name, blocks)
            for block in blocks:
                # First occurrence of a name wins
                merged.setdefault(block.name, block)

        if FULL_PALETTE_NAME not in palettes and merged:
            palettes[FULL_PALETTE_NAME] = Palette(FULL_PALETTE_NAME, merged.values())

        self._palettes: Mapping[str, Palette] = MappingProxyType(palettes)

    @property
    def names(self) -> Tuple[str, ...]:
        return tuple(self._palettes)

    def get(self, name: str) -> Palette:
        """
        Look up a palette by name.

        Raises:
            UnknownPaletteError: If no palette has that name
        """
        try:
            return self._palettes[name]
        except KeyError:
            known = ", ".join(self._palettes)
            raise UnknownPaletteError(
                f"Unknown palette {name!r} (available: {known})"
            ) from None

    def __contains__(self, name: str) -> bool:
        return name in self._palettes

    def __getitem__(self, name: str) -> Palette:
        return self.get(name)


# Built once at import, shared read-only
DEFAULT_CATALOG = PaletteCatalog()


def get_palette(name: str = DEFAULT_PALETTE_NAME, catalog: Optional[PaletteCatalog] = None) -> Palette:
    """Palette lookup against the default catalog."""
    return (catalog or DEFAULT_CATALOG).get(name)

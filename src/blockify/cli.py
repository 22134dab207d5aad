"""
Command-Line Interface for Blockify

Usage:
    blockify photo.png -o build
    blockify photo.png --resolution 48 --layers 16 --fill solid --format schematic obj
    blockify --list-palettes
"""

import argparse
import logging
import sys
import time
from pathlib import Path
from typing import List, Optional

from .config import ConversionSettings, DepthMode, FillMode
from .errors import BlockifyError
from .generator import VoxelGenerator
from .palette import DEFAULT_CATALOG

logger = logging.getLogger(__name__)


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="blockify",
        description="Blockify - Convert a picture into a block build (.schematic / .obj)",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  blockify photo.png -o castle
      Convert photo.png to castle.schematic and castle.obj

  blockify photo.png --resolution 32 --layers 6 --palette wool --fill solid
      Small wool build with solid columns

  blockify photo.png --format obj --block-size 0.5 --no-merge
      Half-size OBJ with one quad per visible face

Fill Modes:
  surface  - One block at the estimated depth (default)
  solid    - Column from the base plane up to the depth
  hollow   - Top block plus a base block

Depth Modes:
  fused    - Foreground segmentation + edge-aware smoothing (default)
  cues     - Weighted blend of brightness, sharpness, colour and position
  flat     - Constant depth
        """
    )

    # Input
    parser.add_argument(
        "input",
        nargs="?",
        help="Input image file"
    )

    # Output
    parser.add_argument(
        "-o", "--output",
        help="Output base path (extension is set per format)"
    )

    parser.add_argument(
        "-f", "--format",
        nargs="+",
        choices=["schematic", "obj"],
        default=["schematic", "obj"],
        help="Output format(s) (default: schematic obj)"
    )

    # Conversion settings
    parser.add_argument(
        "-r", "--resolution",
        type=int,
        default=64,
        help="Blocks along the longer image edge (default: 64)"
    )

    parser.add_argument(
        "-l", "--layers",
        type=int,
        default=10,
        help="Number of depth layers (default: 10)"
    )

    parser.add_argument(
        "-p", "--palette",
        default="minecraft",
        help="Block palette name (default: minecraft, see --list-palettes)"
    )

    parser.add_argument(
        "--fill",
        choices=[m.value for m in FillMode],
        default=FillMode.SURFACE.value,
        help="Column fill mode (default: surface)"
    )

    parser.add_argument(
        "-d", "--depth-mode",
        choices=[m.value for m in DepthMode],
        default=DepthMode.FUSED.value,
        help="Depth estimation mode (default: fused)"
    )

    parser.add_argument(
        "--no-dither",
        action="store_true",
        help="Disable Floyd-Steinberg dithering"
    )

    parser.add_argument(
        "--smooth",
        type=int,
        default=2,
        help="Extra depth smoothing passes (default: 2)"
    )

    # Mesh settings
    parser.add_argument(
        "--block-size",
        type=float,
        default=1.0,
        help="Block edge length in OBJ units (default: 1.0)"
    )

    parser.add_argument(
        "--no-merge",
        action="store_true",
        help="Emit one quad per visible face instead of merged faces"
    )

    # Misc
    parser.add_argument(
        "--list-palettes",
        action="store_true",
        help="List available palettes and exit"
    )

    parser.add_argument(
        "--stats",
        action="store_true",
        help="Print block statistics"
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Verbose logging and tracebacks on error"
    )

    parser.add_argument(
        "--version",
        action="version",
        version="%(prog)s 1.0.0"
    )

    return parser


def list_palettes() -> int:
    """Print every palette with its block count."""
    for name in DEFAULT_CATALOG.names:
        print(f"{name:12s} {len(DEFAULT_CATALOG[name]):4d} blocks")
    return 0


def print_stats(generator: VoxelGenerator):
    stats = generator.get_stats()
    print("\nBlock Statistics:")
    print(f"  Voxels: {stats.total_voxels}")
    print(f"  Dimensions: {stats.dimensions}")
    print(f"  Unique blocks: {stats.unique_blocks}")
    for name, count in sorted(stats.block_counts.items(), key=lambda kv: -kv[1]):
        print(f"    {name:24s} {count}")


def process_single(args) -> int:
    """Convert a single image file."""
    if not args.input:
        print("Error: No input file specified", file=sys.stderr)
        return 1

    input_path = Path(args.input)
    if not input_path.exists():
        print(f"Error: Input file not found: {input_path}", file=sys.stderr)
        return 1

    output_base = Path(args.output) if args.output else input_path.with_suffix("")
    start_time = time.time()

    try:
        settings = ConversionSettings(
            resolution=args.resolution,
            depth_layers=args.layers,
            palette=args.palette,
            fill_mode=args.fill,
            dithering=not args.no_dither,
            depth_mode=args.depth_mode,
            smoothing_iterations=args.smooth,
            block_size=args.block_size,
            optimize_faces=not args.no_merge,
        )

        generator = VoxelGenerator(settings)
        generator.load_image(input_path).convert()

        if args.stats:
            print_stats(generator)

        for path in generator.export_all(output_base, args.format):
            print(f"Exported: {path}")

        logger.info("Completed in %.2fs", time.time() - start_time)
        return 0

    except (BlockifyError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        if args.verbose:
            import traceback
            traceback.print_exc()
        return 1


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.list_palettes:
        return list_palettes()
    return process_single(args)


if __name__ == "__main__":
    sys.exit(main())

import argparse
import logging
from functools import reduce
from pathlib import Path

from export_converter.game_map import load_game_map
from export_converter.logging_config import setup_logging
from export_converter.masks import Mask
from export_converter.mesh import from_cube_locations, save_mesh, surface_mesh_from_solidity_mask

logger = logging.getLogger("export_converter.scripts.run_export")


def main():
    parser = argparse.ArgumentParser(
        description="Convert a map export (.nbt) into a surface mesh"
    )

    parser.add_argument("--input", type=Path, required=True)
    parser.add_argument("--output", type=Path, default=None, help="default: outputs/<input stem>.obj")
    parser.add_argument(
        "--scale",
        type=float,
        default=None,
        help="vertex scale factor (default: 1/x so the map spans [0, 1] along x)",
    )
    parser.add_argument(
        "--masks",
        nargs="+",
        default=None,
        help="mask names to union (default: walkable | passable-flow-down, or the open-tile mask)",
    )
    parser.add_argument(
        "--include-magma",
        action="store_true",
        help="keep magma tiles instead of removing them via the magma mask",
    )
    parser.add_argument(
        "--naive",
        action="store_true",
        help="emit every face of every voxel (debug output)",
    )
    parser.add_argument("--log-level", default="INFO")
    parser.add_argument("--log-file", default=None)

    args = parser.parse_args()
    setup_logging(args.log_level, args.log_file)

    input_path = args.input.resolve()
    output_path = args.output or Path("outputs") / f"{input_path.stem}.obj"

    game_map = load_game_map(input_path)

    if args.masks:
        solid: Mask = reduce(Mask.or_, (game_map.mask(name) for name in args.masks))
    else:
        solid = game_map.open_mask(exclude_magma=not args.include_magma)

    mesh = from_cube_locations(solid) if args.naive else surface_mesh_from_solidity_mask(solid)

    scale = args.scale if args.scale is not None else 1.0 / game_map.dims[0]
    save_mesh(mesh, output_path, scale=scale)

    logger.info(f"Done: {len(mesh)} faces from {solid.count()} voxels")
    logger.info(f"Mesh saved to: {output_path}")


if __name__ == "__main__":
    main()

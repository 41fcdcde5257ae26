"""Command-line interface."""
import argparse
import logging
import sys
from typing import List, Optional

from cadutilities import drawing_tools
from cadutilities.logging_config import setup_logging
from cadutilities.model.database import Database, OpenMode
from cadutilities.model.errors import CadUtilitiesError
from cadutilities.model.geometry_primitives import AngleMode, Axis, Point3d
from cadutilities.model.io import DrawingIO

logger = logging.getLogger("cadutilities.cli")


def _entities_for_write(database: Database, transaction) -> list:
    return [transaction.get_object(eid, OpenMode.FOR_WRITE) for eid in database.entity_ids()]


def _describe(entity) -> str:
    ext = entity.geometric_extents
    lo, hi = ext.min_point, ext.max_point
    return (f"{entity.object_id}\t{entity.__class__.__name__}\t"
            f"({lo.x:g}, {lo.y:g}, {lo.z:g}) - ({hi.x:g}, {hi.y:g}, {hi.z:g})")


def cmd_info(args: argparse.Namespace) -> int:
    database = DrawingIO.load_database(args.file)
    with database.transaction_manager.start_transaction() as tr:
        for eid in database.entity_ids():
            print(_describe(tr.get_object(eid, OpenMode.FOR_READ)))
    return 0


def cmd_sort(args: argparse.Namespace) -> int:
    database = DrawingIO.load_database(args.file)
    with database.transaction_manager.start_transaction() as tr:
        entities = [tr.get_object(eid, OpenMode.FOR_READ) for eid in database.entity_ids()]
        for entity in drawing_tools.sort_entities(entities, Axis[args.axis]):
            print(_describe(entity))
    return 0


def cmd_transform(args: argparse.Namespace) -> int:
    database = DrawingIO.load_database(args.file)
    base = Point3d(*args.base)

    with database.transaction_manager.start_transaction() as tr:
        entities = _entities_for_write(database, tr)
        for entity in entities:
            if args.command == "move":
                drawing_tools.move(entity, Point3d.ORIGIN, Point3d(args.dx, args.dy, args.dz))
            elif args.command == "rotate":
                mode = AngleMode.RADIANS if args.radians else AngleMode.DEGREES
                drawing_tools.rotate(entity, base, args.angle, Axis[args.axis], mode)
            elif args.command == "scale":
                drawing_tools.scale(entity, base, args.factor)
        tr.commit()

    logger.info(f"{args.command}: transformed {len(entities)} entities.")
    DrawingIO.save_database(database, args.file)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="cadutilities", description="Drawing entity tools")
    parser.add_argument("--log-level", default="WARNING",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="Logging level")
    parser.add_argument("--log-file", default=None, help="Optional log file")
    sub = parser.add_subparsers(dest="command", required=True)

    p_info = sub.add_parser("info", help="List entities and their extents")
    p_info.add_argument("file")
    p_info.set_defaults(func=cmd_info)

    p_sort = sub.add_parser("sort", help="List entities ordered along an axis")
    p_sort.add_argument("file")
    p_sort.add_argument("--axis", choices=["X", "Y", "Z"], default="X")
    p_sort.set_defaults(func=cmd_sort)

    p_move = sub.add_parser("move", help="Move every entity by an offset")
    p_move.add_argument("file")
    p_move.add_argument("dx", type=float)
    p_move.add_argument("dy", type=float)
    p_move.add_argument("dz", type=float, nargs="?", default=0.0)
    p_move.set_defaults(func=cmd_transform, base=(0.0, 0.0, 0.0))

    p_rotate = sub.add_parser("rotate", help="Rotate every entity about an axis")
    p_rotate.add_argument("file")
    p_rotate.add_argument("angle", type=float)
    p_rotate.add_argument("--axis", choices=["X", "Y", "Z"], default="Z")
    p_rotate.add_argument("--base", type=float, nargs=3, default=(0.0, 0.0, 0.0), metavar=("X", "Y", "Z"))
    p_rotate.add_argument("--radians", action="store_true", help="Angle is given in radians")
    p_rotate.set_defaults(func=cmd_transform)

    p_scale = sub.add_parser("scale", help="Scale every entity about a base point")
    p_scale.add_argument("file")
    p_scale.add_argument("factor", type=float)
    p_scale.add_argument("--base", type=float, nargs=3, default=(0.0, 0.0, 0.0), metavar=("X", "Y", "Z"))
    p_scale.set_defaults(func=cmd_transform)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(level=getattr(logging, args.log_level), log_file=args.log_file)

    try:
        return args.func(args)
    except (CadUtilitiesError, OSError, ValueError) as e:
        logger.error(f"{args.command} failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())

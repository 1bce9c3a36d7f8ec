"""
Command-line interface for cellresampler.

Usage:
    cellresampler demo [--search tree|naive|brute_force] [--pt-weight 0.0] [--json]
    cellresampler doctor
"""

from __future__ import annotations

import argparse
import json
import logging
import math
import sys

import cellresampler

# Two dijet events with opposite weights; jets use type id 90.
DIJET_EVENTS = [
    {
        "weights": [-1.0],
        "type_sets": [
            {
                "type_id": 90,
                "momenta": [
                    [0.86042412975e02, 0.18299527188e02, 0.50776693328e02, -0.67008593105e02],
                    [0.80026513931e03, -0.18299527188e02, -0.50776693328e02, -0.79844295220e03],
                ],
            }
        ],
    },
    {
        "weights": [1.0],
        "type_sets": [
            {
                "type_id": 90,
                "momenta": [
                    [0.49452408437e02, 0.20789583719e02, -0.23718791628e02, 0.38088749425e02],
                    [0.10452662667e03, -0.20789583719e02, 0.23718791628e02, 0.99654542370e02],
                ],
            }
        ],
    },
]


def _configure_logging(args: argparse.Namespace) -> None:
    level = logging.INFO
    if getattr(args, "verbose", False):
        level = logging.DEBUG
    elif getattr(args, "quiet", False):
        level = logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cellresampler",
        description="Cancel negative Monte-Carlo event weights by cell resampling.",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {cellresampler.__version__}"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # --- demo ---
    demo_parser = subparsers.add_parser(
        "demo",
        help="Resample two dijet events with opposite weights",
        description="Push two dijet events (weights -1 and +1), resample and drain the weights.",
    )
    demo_parser.add_argument(
        "--search", default="tree", choices=["tree", "naive", "brute_force"],
        help="Nearest-neighbour search algorithm (default: tree)",
    )
    demo_parser.add_argument(
        "--pt-weight", type=float, default=0.0,
        help="Scale of the transverse-momentum term in the distance (default: 0.0)",
    )
    demo_parser.add_argument(
        "--max-cell-diameter", type=float, default=math.inf,
        help="Largest distance from a cell seed (default: unlimited)",
    )
    demo_parser.add_argument(
        "--policy", default="mean", choices=["mean", "absolute"],
        help="Weight redistribution policy (default: mean)",
    )
    demo_parser.add_argument(
        "--json", dest="as_json", action="store_true",
        help="Output report and drained weights as JSON",
    )
    demo_parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    demo_parser.add_argument("--quiet", "-q", action="store_true", help="Only log warnings")

    # --- doctor ---
    doctor_parser = subparsers.add_parser(
        "doctor",
        help="Environment & capability check",
    )
    doctor_parser.add_argument("--json", dest="as_json", action="store_true")

    return parser


def _cmd_demo(args: argparse.Namespace) -> int:
    from .config import ResamplerConfig
    from .pdg import describe_layout
    from .resampler import Resampler

    try:
        config = ResamplerConfig(
            neighbour_search=args.search,
            pt_weight=args.pt_weight,
            redistribution=args.policy,
        )
        with Resampler(config) as resampler:
            resampler.reserve(len(DIJET_EVENTS))
            for ev in DIJET_EVENTS:
                resampler.push_event(ev)
            layout = resampler.layout
            report = resampler.resample(0, args.max_cell_diameter)
            drained = list(resampler.drain())
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.as_json:
        print(json.dumps({"config": config.to_dict(), "report": report.to_dict(), "weights": drained}, indent=2))
    else:
        print(f"Events:   {describe_layout(layout.types) if layout else 'none'}")
        print(str(report))
        print("Drained weights (last cell first):")
        for i, weights in enumerate(drained):
            print(f"  {i}: {weights}")
    return 0


def _cmd_doctor(args: argparse.Namespace) -> int:
    from .doctor import doctor_report

    rep = doctor_report()
    if args.as_json:
        print(json.dumps(rep, indent=2, sort_keys=True))
    else:
        print(rep["summary"])
        for item in rep["checks"]:
            status = "OK" if item["ok"] else "FAIL"
            print(f"- {status}: {item['name']}: {item['detail']}")
    return 0 if all(c["ok"] for c in rep["checks"]) else 2


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    _configure_logging(args)

    commands = {
        "demo": _cmd_demo,
        "doctor": _cmd_doctor,
    }

    handler = commands.get(args.command)
    if handler is None:
        parser.print_help()
        return 1

    return handler(args)


if __name__ == "__main__":
    raise SystemExit(main())

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

# Ensure project root is on path when running this script directly
_script_dir = Path(__file__).resolve().parent
_project_root = _script_dir.parent
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

import yaml

from city_collision.collision import CollisionConfig, CollisionGeometry
from city_collision.projection import LocalEquirectangularProjection
from telemetry.logger import TelemetryLogger


def load_yaml(path: str) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f)


def collect_probes(
    geometry: CollisionGeometry,
    points: Optional[List[List[float]]],
    locations: List[str],
) -> List[Tuple[str, float, float]]:
    """(label, x, y) for every explicit point and every known named location."""
    probes: List[Tuple[str, float, float]] = []
    for x, y in points or []:
        probes.append((f"({x:g}, {y:g})", float(x), float(y)))
    named = geometry.named_locations
    for name in locations:
        loc = named.get(name)
        if loc is None:
            print(f"  Unknown location '{name}', skipping")
            continue
        probes.append((name, loc.x, loc.y))
    return probes


def main() -> None:
    parser = argparse.ArgumentParser(description="Load collision geometry and probe walkability.")
    parser.add_argument("--config", type=str, default="configs/collision.yaml", help="Path to collision YAML config.")
    parser.add_argument("--geojson", type=str, default=None, help="Override the GeoJSON source (path or URL).")
    parser.add_argument("--origin", type=float, nargs=2, metavar=("LAT", "LON"), default=None)
    parser.add_argument("--slope", type=float, default=None, help="Attach a constant slope sampler.")
    parser.add_argument("--slope-threshold", type=float, default=None)
    parser.add_argument("--point", type=float, nargs=2, action="append", metavar=("X", "Y"), default=None)
    parser.add_argument("--location", type=str, action="append", default=None, help="Named location to probe.")
    parser.add_argument("--dump", type=str, default=None, help="Write polygons as JSON to this path.")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")

    cfg = load_yaml(args.config)
    probe_cfg = cfg.get("probe", {})
    proj_cfg = cfg.get("projection", {})

    origin = {"lat": args.origin[0], "lon": args.origin[1]} if args.origin else proj_cfg.get("origin")
    projector = None
    if origin:
        projector = LocalEquirectangularProjection(
            origin=origin,
            rotation_degrees=float(proj_cfg.get("rotation_degrees", 0.0)),
        )

    telemetry_path = probe_cfg.get("telemetry_path")
    telemetry_logger = TelemetryLogger(telemetry_path) if telemetry_path else None

    geometry = CollisionGeometry(
        config=CollisionConfig.from_dict(cfg),
        projector=projector,
        telemetry_logger=telemetry_logger,
    )
    geometry.load(geojson=args.geojson)
    if args.slope is not None:
        slope = args.slope
        geometry.set_slope_map(lambda x, y: slope, args.slope_threshold)
    elif args.slope_threshold is not None:
        geometry.set_slope_map(None, args.slope_threshold)

    locations = args.location if args.location else list(probe_cfg.get("locations", []))
    probes = collect_probes(geometry, args.point, locations)

    summary = geometry.summary()
    print()
    print("=" * 72)
    print("COLLISION GEOMETRY SUMMARY")
    print("=" * 72)
    for key in (
        "city_wall_polygons",
        "long_wall_polygons",
        "additional_polygons",
        "acropolis_polygons",
        "all_polygons",
        "named_locations",
    ):
        print(f"  {key.replace('_', ' ').capitalize():<24} {summary[key]:>8}")
    print(f"  {'Slope threshold':<24} {summary['slope_threshold']:>8.3f}")
    print(f"  {'Slope sampler':<24} {'yes' if summary['slope_sampler'] else 'no':>8}")
    print()

    if probes:
        print("Probe results:")
        print("-" * 72)
        print(f"  {'Probe':<32} {'x':>12} {'y':>12} {'Walkable':>10}")
        print("-" * 72)
        for label, x, y in probes:
            walkable = geometry.is_walkable(x, y)
            if telemetry_logger is not None:
                telemetry_logger.log_probe(x, y, walkable, label=label)
            print(f"  {label:<32} {x:>12.1f} {y:>12.1f} {'yes' if walkable else 'no':>10}")
        print("-" * 72)
        print()

    if args.dump:
        os.makedirs(os.path.dirname(args.dump) or ".", exist_ok=True)
        with open(args.dump, "w", encoding="utf-8") as f:
            json.dump(geometry.to_dict(), f, indent=2)
        print(f"Saved polygons to {args.dump}")

    if telemetry_logger is not None:
        telemetry_logger.close()


if __name__ == "__main__":
    main()

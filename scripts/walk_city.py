from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Dict

# Ensure project root is on path when running this script directly
_script_dir = Path(__file__).resolve().parent
_project_root = _script_dir.parent
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

import pygame
import yaml

from city_collision.collision import CollisionConfig, CollisionGeometry
from city_collision.geometry_utils import Point2D
from city_collision.projection import LocalEquirectangularProjection
from city_collision.render import PygameRenderer


def load_yaml(path: str) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f)


def main() -> None:
    parser = argparse.ArgumentParser(description="Walk the city with keyboard input; moves are gated by walkability.")
    parser.add_argument(
        "--config",
        type=str,
        default="configs/collision.yaml",
        help="Path to collision YAML config.",
    )
    parser.add_argument("--geojson", type=str, default=None, help="Override the GeoJSON source.")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")

    cfg = load_yaml(args.config)
    view_cfg = cfg.get("viewer", {})
    proj_cfg = cfg.get("projection", {})

    projector = None
    if proj_cfg.get("origin"):
        projector = LocalEquirectangularProjection(
            origin=proj_cfg["origin"],
            rotation_degrees=float(proj_cfg.get("rotation_degrees", 0.0)),
        )
    geometry = CollisionGeometry(config=CollisionConfig.from_dict(cfg), projector=projector)
    geometry.load(geojson=args.geojson)

    start_name = view_cfg.get("start_location")
    walker = geometry.named_locations.get(start_name, Point2D(0.0, 0.0))
    step = float(view_cfg.get("step_meters", 5.0))
    walker_radius = float(view_cfg.get("walker_radius", 3.0))

    renderer = PygameRenderer(
        geometry=geometry,
        window_width=int(view_cfg.get("window_width", 1000)),
        window_height=int(view_cfg.get("window_height", 800)),
        meters_per_pixel=float(view_cfg.get("meters_per_pixel", 4.0)),
    )

    print("Keyboard: W/A/S/D move, Q/E zoom in/out, ESC to quit.")

    moves = {
        pygame.K_w: (0.0, step),
        pygame.K_s: (0.0, -step),
        pygame.K_a: (-step, 0.0),
        pygame.K_d: (step, 0.0),
    }
    blocked_moves = 0
    running = True
    while running:
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                running = False
            elif event.type == pygame.KEYDOWN:
                if event.key == pygame.K_ESCAPE:
                    running = False
                elif event.key == pygame.K_q:
                    renderer.zoom(0.8)
                elif event.key == pygame.K_e:
                    renderer.zoom(1.25)

        pressed = pygame.key.get_pressed()
        for key, (dx, dy) in moves.items():
            if not pressed[key]:
                continue
            target = Point2D(walker.x + dx, walker.y + dy)
            if geometry.is_walkable(target.x, target.y):
                walker = target
            else:
                blocked_moves += 1

        fps = renderer.tick(int(view_cfg.get("fps", 30)))
        renderer.draw(walker=walker, walker_radius=walker_radius, fps=fps)

    renderer.close()
    print(f"Final position: ({walker.x:.1f}, {walker.y:.1f}); blocked moves: {blocked_moves}")


if __name__ == "__main__":
    main()

from __future__ import annotations

from typing import Iterable, List, Optional, Tuple

import pygame

from .collision import CollisionGeometry
from .geometry_utils import Point2D, Polygon


Color = Tuple[int, int, int]

THEME = {
    "bg": (18, 22, 32),
    "grid": (28, 34, 48),
    "city_wall": (200, 170, 110),
    "long_wall": (170, 130, 90),
    "additional": (120, 120, 140),
    "cliff_fill": (70, 60, 52),
    "cliff_edge": (140, 110, 90),
    "location": (0, 200, 160),
    "label": (150, 170, 200),
    "walker_ok": (100, 220, 255),
    "walker_blocked": (255, 90, 90),
    "walker_outline": (40, 140, 200),
    "trail_start": (60, 160, 200),
    "trail_end": (100, 220, 255),
    "hud_bg": (28, 34, 48),
    "hud_border": (55, 65, 88),
    "hud_text": (200, 220, 255),
}


class PygameRenderer:
    """Top-down view of a loaded CollisionGeometry and a single walker.

    Coordinates:
    - The view is centered on a world position that follows the walker.
    - Y axis is flipped so that world +y (north) is up on screen.
    """

    def __init__(
        self,
        geometry: CollisionGeometry,
        window_width: int,
        window_height: int,
        meters_per_pixel: float = 4.0,
        show_labels: bool = True,
        show_trail: bool = True,
        trail_max_length: int = 500,
    ) -> None:
        pygame.init()
        pygame.display.set_caption("City Collision Viewer")
        self.screen = pygame.display.set_mode((window_width, window_height))
        self.clock = pygame.time.Clock()
        self.font = pygame.font.SysFont("monospace", 12)

        self.geometry = geometry
        self.window_width = window_width
        self.window_height = window_height
        self.meters_per_pixel = meters_per_pixel
        self.show_labels = show_labels
        self.show_trail = show_trail
        self.trail_max_length = trail_max_length
        self.trail: List[Point2D] = []
        self.center = Point2D(0.0, 0.0)

    # ------------------------------------------------------------------
    # Coordinate transforms
    # ------------------------------------------------------------------
    def _world_to_screen(self, x: float, y: float) -> Tuple[int, int]:
        sx = int(self.window_width / 2 + (x - self.center.x) / self.meters_per_pixel)
        sy = int(self.window_height / 2 - (y - self.center.y) / self.meters_per_pixel)
        return sx, sy

    def _meters_to_pixels(self, r: float) -> int:
        return int(r / self.meters_per_pixel)

    def zoom(self, factor: float) -> None:
        """Multiply meters-per-pixel by `factor`, clamped to a sane range."""
        self.meters_per_pixel = max(0.25, min(200.0, self.meters_per_pixel * factor))

    def _visible(self, polygon: Polygon) -> bool:
        half_w = self.window_width * 0.5 * self.meters_per_pixel
        half_h = self.window_height * 0.5 * self.meters_per_pixel
        bbox = polygon.bbox
        return not (
            bbox.max_x < self.center.x - half_w
            or bbox.min_x > self.center.x + half_w
            or bbox.max_y < self.center.y - half_h
            or bbox.min_y > self.center.y + half_h
        )

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------
    def _draw_grid(self) -> None:
        step_m = 100.0
        half_w = self.window_width * 0.5 * self.meters_per_pixel
        half_h = self.window_height * 0.5 * self.meters_per_pixel
        x = (int((self.center.x - half_w) / step_m) - 1) * step_m
        while x <= self.center.x + half_w:
            sx, _ = self._world_to_screen(x, 0.0)
            pygame.draw.line(self.screen, THEME["grid"], (sx, 0), (sx, self.window_height), 1)
            x += step_m
        y = (int((self.center.y - half_h) / step_m) - 1) * step_m
        while y <= self.center.y + half_h:
            _, sy = self._world_to_screen(0.0, y)
            pygame.draw.line(self.screen, THEME["grid"], (0, sy), (self.window_width, sy), 1)
            y += step_m

    def _draw_polygons(
        self,
        polygons: Iterable[Polygon],
        fill: Color,
        edge: Optional[Color] = None,
    ) -> None:
        for polygon in polygons:
            if not self._visible(polygon):
                continue
            pts = [self._world_to_screen(p.x, p.y) for p in polygon.points]
            pygame.draw.polygon(self.screen, fill, pts)
            if edge is not None:
                pygame.draw.polygon(self.screen, edge, pts, 1)

    def _draw_locations(self) -> None:
        for name, loc in self.geometry.named_locations.items():
            pos = self._world_to_screen(loc.x, loc.y)
            pygame.draw.circle(self.screen, THEME["location"], pos, 3)
            if self.show_labels:
                surf = self.font.render(name, True, THEME["label"])
                self.screen.blit(surf, (pos[0] + 5, pos[1] - 6))

    def draw(self, walker: Point2D, walker_radius: float, fps: float = 0.0) -> None:
        """Render one frame centered on the walker."""
        self.center = walker
        walkable = self.geometry.is_walkable(walker.x, walker.y)

        self.screen.fill(THEME["bg"])
        self._draw_grid()
        self._draw_polygons(self.geometry.acropolis_polygons, THEME["cliff_fill"], THEME["cliff_edge"])
        self._draw_polygons(self.geometry.city_wall_polygons, THEME["city_wall"])
        self._draw_polygons(self.geometry.long_wall_polygons, THEME["long_wall"])
        self._draw_polygons(self.geometry.additional_polygons, THEME["additional"])
        self._draw_locations()

        if self.show_trail:
            self.trail.append(walker)
            if len(self.trail) > self.trail_max_length:
                self.trail = self.trail[-self.trail_max_length :]
            if len(self.trail) >= 2:
                pts = [self._world_to_screen(p.x, p.y) for p in self.trail]
                n = len(pts) - 1
                for i in range(n):
                    t = (i + 1) / max(n, 1)
                    color = tuple(
                        int(THEME["trail_start"][c] + t * (THEME["trail_end"][c] - THEME["trail_start"][c]))
                        for c in range(3)
                    )
                    pygame.draw.line(self.screen, color, pts[i], pts[i + 1], 1)

        center = self._world_to_screen(walker.x, walker.y)
        radius_px = max(3, self._meters_to_pixels(walker_radius))
        fill = THEME["walker_ok"] if walkable else THEME["walker_blocked"]
        pygame.draw.circle(self.screen, fill, center, radius_px, 0)
        pygame.draw.circle(self.screen, THEME["walker_outline"], center, radius_px, 2)

        self._draw_hud(walker, walkable, fps)
        pygame.display.flip()

    def _draw_hud(self, walker: Point2D, walkable: bool, fps: float) -> None:
        pad = 10
        status = "walkable" if walkable else "BLOCKED"
        text = (
            f"  x={walker.x:9.1f}m  y={walker.y:9.1f}m  {status}"
            f"  scale={self.meters_per_pixel:.2f}m/px  FPS={fps:.1f}  "
        )
        surf = self.font.render(text, True, THEME["hud_text"])
        r = surf.get_rect(topleft=(pad, pad))
        panel = r.inflate(pad, pad)
        pygame.draw.rect(self.screen, THEME["hud_bg"], panel)
        pygame.draw.rect(self.screen, THEME["hud_border"], panel, 1)
        self.screen.blit(surf, (panel.x + 4, panel.y + 4))

    def tick(self, target_fps: int) -> float:
        """Cap frame rate and return achieved FPS."""
        fps = self.clock.get_fps()
        self.clock.tick(target_fps)
        return fps

    def close(self) -> None:
        pygame.quit()

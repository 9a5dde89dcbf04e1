# visualization.py
"""
Handles the visualization of the fluid simulation using Pygame.

The Visualizer is the host side of the simulation: it owns the window,
turns pointer events into PointerState snapshots, and draws either the
contour polygons or the particles, plus the FPS and particle-count
overlay. Screen pixels and world units are the same.
"""
import logging
import pygame
from typing import Optional, Tuple
from constants import (
    BACKGROUND_COLOR, BOUNDING_BOX_COLOR, CONTOUR_COLOR, FPS_CAP, TEXT_COLOR,
    WINDOW_MARGIN_X, WINDOW_MARGIN_Y
)
from interaction import PointerState
from particle import BoundingBox

# Forward reference for type hinting to avoid circular import
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from simulation import Simulation


# --- Data Contracts ---
#
# class Visualizer:
#   - __init__(self, bounds: BoundingBox, render_mode: str, color_mode: str):
#     - Side Effects: Initializes Pygame and creates a display surface.
#
#   - poll(self) -> Tuple[bool, PointerState]:
#     - Outputs: False if the user has quit, and the pointer snapshot for
#       this frame.
#
#   - draw(self, simulation: "Simulation", fps: float) -> None:
#     - Side Effects: Renders the frame to the screen.

RENDER_MODES = ("contour", "particles")
COLOR_MODES = ("pressure", "velocity", "acceleration")


def interpolate_color(value: float) -> Tuple[int, int, int]:
    """Maps a value in [0, 1] from blue (0) to red (1)."""
    value = min(1.0, max(0.0, value))
    return int(255 * value), 0, int(255 * (1 - value))


class Visualizer:
    """
    Renders the simulation state and polls the pointer device.
    """
    def __init__(self, bounds: BoundingBox, render_mode: str = "contour", color_mode: str = "velocity"):
        """
        Initializes Pygame and the display window.
        """
        if render_mode not in RENDER_MODES:
            raise ValueError(f"Unknown render_mode '{render_mode}'. Expected one of {RENDER_MODES}.")
        if color_mode not in COLOR_MODES:
            raise ValueError(f"Unknown particle_color_mode '{color_mode}'. Expected one of {COLOR_MODES}.")

        pygame.init()
        pygame.font.init()

        self.bounds = bounds
        width = int(bounds.width) + WINDOW_MARGIN_X
        height = int(bounds.height) + WINDOW_MARGIN_Y
        self.screen = pygame.display.set_mode((width, height))
        pygame.display.set_caption("2D Fluid Simulation")
        self.clock = pygame.time.Clock()
        self.font = pygame.font.SysFont(None, 20)

        self.render_mode = render_mode
        self.color_mode = color_mode
        self.pointer_position: Optional[Tuple[float, float]] = None

        logging.info(
            f"Visualizer initialized with Pygame display ({width}x{height}), "
            f"'{render_mode}' rendering."
        )

    def poll(self) -> Tuple[bool, PointerState]:
        """
        Handles pending events and snapshots the pointer.

        Returns:
            Tuple[bool, PointerState]: False if the simulation should exit,
            and the pointer state for this frame.
        """
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                logging.info("Quit event received. Shutting down visualizer.")
                return False, PointerState()

            if event.type == pygame.KEYDOWN:
                if event.key == pygame.K_ESCAPE:
                    logging.info("ESC key pressed. Shutting down visualizer.")
                    return False, PointerState()
                if event.key == pygame.K_m:
                    index = (RENDER_MODES.index(self.render_mode) + 1) % len(RENDER_MODES)
                    self.render_mode = RENDER_MODES[index]
                    logging.info(f"Render mode switched to '{self.render_mode}'.")
                if event.key == pygame.K_c:
                    index = (COLOR_MODES.index(self.color_mode) + 1) % len(COLOR_MODES)
                    self.color_mode = COLOR_MODES[index]
                    logging.info(f"Particle color mode switched to '{self.color_mode}'.")

            # The pointer is only tracked while pressed or dragged.
            if event.type == pygame.MOUSEBUTTONDOWN:
                self.pointer_position = event.pos
            if event.type == pygame.MOUSEMOTION and any(event.buttons):
                self.pointer_position = event.pos

        left, _, right = pygame.mouse.get_pressed()
        pointer = PointerState(
            position=self.pointer_position,
            left_active=bool(left),
            right_active=bool(right)
        )
        return True, pointer

    def draw(self, simulation: "Simulation", fps: float) -> None:
        """Draws the current frame and the diagnostics overlay."""
        self.screen.fill(BACKGROUND_COLOR)

        if self.render_mode == "contour":
            for polygon in simulation.contours():
                pygame.draw.polygon(self.screen, CONTOUR_COLOR, polygon.vertices)
        else:
            positions, values = simulation.particle_view(self.color_mode)
            radius = simulation.particles.radius
            for (x, y), value in zip(positions, values):
                pygame.draw.circle(self.screen, interpolate_color(value), (int(x), int(y)), int(radius))

        bounds_rect = pygame.Rect(
            int(self.bounds.x), int(self.bounds.y), int(self.bounds.width), int(self.bounds.height)
        )
        pygame.draw.rect(self.screen, BOUNDING_BOX_COLOR, bounds_rect, 1)

        overlay_y = int(self.bounds.bottom) + 10
        lines = (
            f"FPS: {fps:.0f}",
            f"Particles: {simulation.particles.particle_count}",
        )
        for line in lines:
            surf = self.font.render(line, True, TEXT_COLOR)
            self.screen.blit(surf, (10, overlay_y))
            overlay_y += self.font.get_linesize()

        pygame.display.flip()
        self.clock.tick(FPS_CAP)

    def close(self):
        """Shuts down Pygame."""
        pygame.font.quit()
        pygame.quit()

from __future__ import annotations

import threading
from typing import List, Optional

import pygame

from .controller import Controller
from .display import DisplayHost
from .net.protocol import Connected, Connecting, ConnectionState, DiscoveredEndpoint, Direction, Error
from .snake.game import GameState, GameStatus


# --------------------------- Pygame rendering ---------------------------

WINDOW_BG = (15, 18, 25)
GRID_BG = (23, 28, 38)
GRID_LINE = (45, 52, 66)
TEXT = (230, 235, 245)
SUBTEXT = (155, 165, 185)
ACCENT = (58, 123, 213)
FOOD = (250, 210, 90)
SNAKE_HEAD = (90, 200, 120)
SNAKE_BODY = (60, 140, 90)
DEFEAT = (220, 60, 80)

CELL_SIZE = 28
PANEL_PADDING = 28
TOP_BAR = 84
BOTTOM_BAR = 48

KEYMAP = {
    pygame.K_w: Direction.UP, pygame.K_UP: Direction.UP,
    pygame.K_s: Direction.DOWN, pygame.K_DOWN: Direction.DOWN,
    pygame.K_a: Direction.LEFT, pygame.K_LEFT: Direction.LEFT,
    pygame.K_d: Direction.RIGHT, pygame.K_RIGHT: Direction.RIGHT,
}


def describe(state: ConnectionState) -> str:
    if isinstance(state, Connected):
        return f"Controller: {state.peer_info}" if state.peer_info else "Connected"
    if isinstance(state, Connecting):
        return "Connecting..."
    if isinstance(state, Error):
        return state.message
    return "Not connected"


class DisplayWindow:
    """Draws the engine snapshot. Never touches game state itself."""

    def __init__(self, host: DisplayHost) -> None:
        self.host = host
        cfg = host.engine.config
        pygame.init()
        pygame.display.set_caption("SnakeCast")
        width = CELL_SIZE * cfg.grid_width + PANEL_PADDING * 2
        height = TOP_BAR + CELL_SIZE * cfg.grid_height + BOTTOM_BAR
        self.screen = pygame.display.set_mode((width, height))
        self.clock = pygame.time.Clock()
        self.font = pygame.font.SysFont("Arial", 22)
        self.font_big = pygame.font.SysFont("Arial", 48, bold=True)
        self.running = True

    def draw(self, snap: GameState) -> None:
        self.screen.fill(WINDOW_BG)
        x0, y0 = PANEL_PADDING, TOP_BAR
        grid_w, grid_h = CELL_SIZE * snap.grid_width, CELL_SIZE * snap.grid_height
        pygame.draw.rect(self.screen, GRID_BG, (x0, y0, grid_w, grid_h), border_radius=8)
        for r in range(snap.grid_height + 1):
            y = y0 + r * CELL_SIZE
            pygame.draw.line(self.screen, GRID_LINE, (x0, y), (x0 + grid_w, y))
        for c in range(snap.grid_width + 1):
            x = x0 + c * CELL_SIZE
            pygame.draw.line(self.screen, GRID_LINE, (x, y0), (x, y0 + grid_h))

        fx = x0 + snap.food.x * CELL_SIZE + CELL_SIZE // 2
        fy = y0 + snap.food.y * CELL_SIZE + CELL_SIZE // 2
        pygame.draw.circle(self.screen, FOOD, (fx, fy), max(4, CELL_SIZE // 4))
        for i, p in enumerate(snap.snake):
            col = SNAKE_HEAD if i == 0 else SNAKE_BODY
            rect = (x0 + p.x * CELL_SIZE + 2, y0 + p.y * CELL_SIZE + 2, CELL_SIZE - 4, CELL_SIZE - 4)
            pygame.draw.rect(self.screen, col, rect, border_radius=6 if i == 0 else 4)

        score = self.font.render(f"Score: {snap.score}", True, TEXT)
        self.screen.blit(score, (PANEL_PADDING, 20))
        status = describe(self.host.engine.connection_state.value)
        if self.host.service_name:
            status += f"   |   {self.host.service_name} on port {self.host.port}"
        elif self.host.port > 0:
            status += f"   |   port {self.host.port}"
        surf = self.font.render(status, True, SUBTEXT)
        self.screen.blit(surf, (PANEL_PADDING, self.screen.get_height() - BOTTOM_BAR + 12))

        banner = {
            GameStatus.WAITING: ("Waiting for controller", TEXT),
            GameStatus.PAUSED: ("Paused", TEXT),
            GameStatus.GAME_OVER: ("Game Over", DEFEAT),
        }.get(snap.status)
        if banner:
            surf = self.font_big.render(banner[0], True, banner[1])
            self.screen.blit(surf, (self.screen.get_width() // 2 - surf.get_width() // 2, y0 + grid_h // 2 - 24))
        pygame.display.flip()

    def run(self) -> None:
        try:
            while self.running:
                for event in pygame.event.get():
                    if event.type == pygame.QUIT:
                        self.running = False
                    elif event.type == pygame.KEYDOWN and event.key == pygame.K_ESCAPE:
                        self.running = False
                self.draw(self.host.engine.state)
                self.clock.tick(60)
        finally:
            pygame.quit()


class ControllerWindow:
    """Key pad for the handheld: pick a display, then steer with arrows/WASD."""

    def __init__(self, controller: Controller, scan_timeout: float = 3.0) -> None:
        self.controller = controller
        self.scan_timeout = scan_timeout
        pygame.init()
        pygame.display.set_caption("SnakeCast Controller")
        self.screen = pygame.display.set_mode((520, 360))
        self.clock = pygame.time.Clock()
        self.font = pygame.font.SysFont("Arial", 22)
        self.font_big = pygame.font.SysFont("Arial", 40, bold=True)
        self.endpoints: List[DiscoveredEndpoint] = []
        self.scanning = False
        self.running = True

    def start_scan(self) -> None:
        if self.scanning:
            return
        self.scanning = True
        self.endpoints = []

        def work() -> None:
            try:
                self.endpoints = self.controller.scan(self.scan_timeout)
            finally:
                self.scanning = False

        threading.Thread(target=work, daemon=True).start()

    def pick(self, index: int) -> None:
        if 0 <= index < len(self.endpoints):
            endpoint = self.endpoints[index]
            threading.Thread(target=self.controller.connect_to, args=(endpoint,), daemon=True).start()

    def draw(self) -> None:
        self.screen.fill(WINDOW_BG)
        title = self.font_big.render("SnakeCast", True, TEXT)
        self.screen.blit(title, (self.screen.get_width() // 2 - title.get_width() // 2, 20))
        state = self.controller.connection_state.value
        y = 90
        self.screen.blit(self.font.render(describe(state), True, SUBTEXT), (PANEL_PADDING, y))
        y += 40
        if isinstance(state, Connected):
            last: Optional[Direction] = self.controller.last_direction.value
            hint = "Arrows / WASD to steer, Backspace to disconnect"
            self.screen.blit(self.font.render(hint, True, TEXT), (PANEL_PADDING, y))
            if last is not None:
                surf = self.font_big.render(last.name, True, ACCENT)
                self.screen.blit(surf, (self.screen.get_width() // 2 - surf.get_width() // 2, y + 60))
        else:
            label = "Scanning..." if self.scanning else "Press R to scan, 1-9 to connect"
            self.screen.blit(self.font.render(label, True, TEXT), (PANEL_PADDING, y))
            for i, ep in enumerate(self.endpoints[:9]):
                y += 30
                row = f"{i + 1}. {ep.service_name}  ({ep.host}:{ep.port})"
                self.screen.blit(self.font.render(row, True, SUBTEXT), (PANEL_PADDING, y))
        pygame.display.flip()

    def run(self) -> None:
        self.start_scan()
        try:
            while self.running:
                for event in pygame.event.get():
                    if event.type == pygame.QUIT:
                        self.running = False
                    elif event.type == pygame.KEYDOWN:
                        if event.key == pygame.K_ESCAPE:
                            self.running = False
                        elif event.key in KEYMAP:
                            self.controller.send_direction(KEYMAP[event.key])
                        elif event.key == pygame.K_BACKSPACE:
                            self.controller.disconnect()
                        elif event.key == pygame.K_r:
                            self.start_scan()
                        elif pygame.K_1 <= event.key <= pygame.K_9:
                            self.pick(event.key - pygame.K_1)
                self.draw()
                self.clock.tick(60)
        finally:
            pygame.quit()


# --------------------------- Entrypoints ---------------------------

def run_display_gui(host: DisplayHost) -> None:
    DisplayWindow(host).run()


def run_controller_gui(controller: Controller, scan_timeout: float = 3.0) -> None:
    ControllerWindow(controller, scan_timeout).run()

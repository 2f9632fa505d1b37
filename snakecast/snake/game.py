from __future__ import annotations

import random
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional, Tuple

from ..config import BoundaryMode, GameConfig
from ..net.protocol import Direction

DEFAULT_DIRECTION = Direction.RIGHT


@dataclass(frozen=True)
class Position:
    x: int
    y: int

    def moved(self, direction: Direction, width: int, height: int, wrap: bool = True) -> "Position":
        dx, dy = direction.delta()
        x, y = self.x + dx, self.y + dy
        if wrap:
            return Position(x % width, y % height)
        # may fall outside the grid; the caller decides what that means
        return Position(x, y)

    def inside(self, width: int, height: int) -> bool:
        return 0 <= self.x < width and 0 <= self.y < height


class GameStatus(Enum):
    WAITING = "waiting"      # no controller has connected yet
    RUNNING = "running"
    PAUSED = "paused"
    GAME_OVER = "game_over"


@dataclass(frozen=True)
class GameState:
    snake: Tuple[Position, ...] = (Position(10, 10),)   # head first
    food: Position = Position(15, 10)
    direction: Direction = DEFAULT_DIRECTION
    next_direction: Direction = DEFAULT_DIRECTION
    score: int = 0
    status: GameStatus = GameStatus.WAITING
    grid_width: int = 20
    grid_height: int = 20
    is_controller_connected: bool = False

    @property
    def head(self) -> Position:
        return self.snake[0]

    @property
    def length(self) -> int:
        return len(self.snake)

    def with_(self, **kwargs) -> "GameState":
        return replace(self, **kwargs)


@dataclass(frozen=True)
class TickOutcome:
    state: GameState
    ate: bool = False
    reason: Optional[str] = None  # 'self' | 'wall' | 'full' when the run ended


def center(cfg: GameConfig) -> Position:
    return Position(cfg.grid_width // 2, cfg.grid_height // 2)


def place_food(snake: Tuple[Position, ...], width: int, height: int, rng: random.Random) -> Optional[Position]:
    """Uniformly random cell not covered by the snake, None if there is none."""
    occupied = set(snake)
    if len(occupied) >= width * height:
        return None
    # plain retry is fast while the board is mostly empty
    for _ in range(width * height * 2):
        p = Position(rng.randrange(width), rng.randrange(height))
        if p not in occupied:
            return p
    free = [Position(x, y) for y in range(height) for x in range(width) if Position(x, y) not in occupied]
    return rng.choice(free)


def initial_state(cfg: GameConfig, rng: random.Random, connected: bool = False,
                  status: Optional[GameStatus] = None) -> GameState:
    snake = (center(cfg),)
    food = place_food(snake, cfg.grid_width, cfg.grid_height, rng)
    if food is None:
        raise ValueError("grid too small to place food")
    if status is None:
        status = GameStatus.RUNNING if connected else GameStatus.WAITING
    return GameState(
        snake=snake,
        food=food,
        direction=DEFAULT_DIRECTION,
        next_direction=DEFAULT_DIRECTION,
        score=0,
        status=status,
        grid_width=cfg.grid_width,
        grid_height=cfg.grid_height,
        is_controller_connected=connected,
    )


def steer(state: GameState, direction: Direction) -> GameState:
    # a 180 degree turn would run the head straight into the neck
    if direction is state.direction.opposite():
        return state
    return replace(state, next_direction=direction)


def advance(state: GameState, rng: random.Random, boundary: BoundaryMode = BoundaryMode.WRAP,
            food_score: int = 10) -> TickOutcome:
    if state.status is not GameStatus.RUNNING:
        return TickOutcome(state)
    w, h = state.grid_width, state.grid_height
    wrap = boundary is BoundaryMode.WRAP
    new_head = state.head.moved(state.next_direction, w, h, wrap)

    if not wrap and not new_head.inside(w, h):
        return TickOutcome(replace(state, status=GameStatus.GAME_OVER), reason="wall")
    # the tail cell is vacated this tick, so it is not an obstacle
    if new_head in state.snake[:-1]:
        return TickOutcome(replace(state, status=GameStatus.GAME_OVER), reason="self")

    if new_head == state.food:
        snake = (new_head,) + state.snake
        food = place_food(snake, w, h, rng)
        if food is None:
            # nowhere left to put food: the snake has filled the board
            return TickOutcome(replace(state, status=GameStatus.GAME_OVER), reason="full")
        return TickOutcome(
            replace(state, snake=snake, food=food, direction=state.next_direction,
                    score=state.score + food_score),
            ate=True,
        )

    snake = (new_head,) + state.snake[:-1]
    return TickOutcome(replace(state, snake=snake, direction=state.next_direction))


def speeds_up(score: int, cfg: GameConfig) -> bool:
    threshold = cfg.food_score * cfg.speed_interval
    return threshold > 0 and score > 0 and score % threshold == 0


def faster_tick(current_ms: int, cfg: GameConfig) -> int:
    return max(cfg.min_tick_ms, current_ms - cfg.speed_step_ms)

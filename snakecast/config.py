# snakecast/config.py
from __future__ import annotations

import os
from dataclasses import dataclass, replace
from enum import Enum
from typing import Mapping, Optional

from .net.protocol import SERVICE_NAME


class BoundaryMode(Enum):
    WRAP = "wrap"    # toroidal grid, only self-collision kills
    WALLS = "walls"  # bounded grid, leaving it kills


@dataclass(frozen=True)
class GameConfig:
    grid_width: int = 20
    grid_height: int = 20
    initial_tick_ms: int = 250
    min_tick_ms: int = 120
    speed_step_ms: int = 15
    speed_interval: int = 5       # foods between speed-ups
    food_score: int = 10
    boundary: BoundaryMode = BoundaryMode.WRAP
    seed: Optional[int] = None

    def __post_init__(self) -> None:
        if self.grid_width <= 0 or self.grid_height <= 0:
            raise ValueError("grid dimensions must be positive")
        if not 0 < self.min_tick_ms <= self.initial_tick_ms:
            raise ValueError("need 0 < min_tick_ms <= initial_tick_ms")
        if self.speed_interval < 1:
            raise ValueError("speed_interval must be at least 1")
        if self.speed_step_ms < 0 or self.food_score < 0:
            raise ValueError("speed_step_ms and food_score must not be negative")

    def with_(self, **kwargs) -> "GameConfig":
        """Convenience: clone with updated values"""
        return replace(self, **kwargs)

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "GameConfig":
        env = os.environ if env is None else env
        kw = {}
        for field, key in (
            ("grid_width", "SNAKECAST_GRID_WIDTH"),
            ("grid_height", "SNAKECAST_GRID_HEIGHT"),
            ("initial_tick_ms", "SNAKECAST_TICK_MS"),
            ("min_tick_ms", "SNAKECAST_MIN_TICK_MS"),
            ("speed_interval", "SNAKECAST_SPEED_INTERVAL"),
            ("seed", "SNAKECAST_SEED"),
        ):
            if env.get(key):
                kw[field] = int(env[key])
        if env.get("SNAKECAST_BOUNDARY"):
            kw["boundary"] = BoundaryMode(env["SNAKECAST_BOUNDARY"].lower())
        return cls(**kw)


@dataclass(frozen=True)
class NetConfig:
    bind: str = "0.0.0.0"
    connect_timeout_ms: int = 5000
    command_capacity: int = 64
    resolve_timeout_ms: int = 2000
    service_name: str = SERVICE_NAME

    def with_(self, **kwargs) -> "NetConfig":
        return replace(self, **kwargs)

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "NetConfig":
        env = os.environ if env is None else env
        kw = {}
        if env.get("SNAKECAST_BIND"):
            kw["bind"] = env["SNAKECAST_BIND"]
        if env.get("SNAKECAST_SERVICE_NAME"):
            kw["service_name"] = env["SNAKECAST_SERVICE_NAME"]
        for field, key in (
            ("connect_timeout_ms", "SNAKECAST_CONNECT_TIMEOUT_MS"),
            ("command_capacity", "SNAKECAST_COMMAND_CAPACITY"),
            ("resolve_timeout_ms", "SNAKECAST_RESOLVE_TIMEOUT_MS"),
        ):
            if env.get(key):
                kw[field] = int(env[key])
        return cls(**kw)

from __future__ import annotations

import logging
import random
import threading
from typing import Optional

from ..config import GameConfig
from ..net.protocol import Connected, ConnectionState, Direction, Disconnected
from ..net.streams import StateStream
from .game import GameState, GameStatus, advance, faster_tick, initial_state, speeds_up, steer

log = logging.getLogger(__name__)


class _Ticker(threading.Thread):
    """Sleeps one tick interval, then asks the engine to tick, until cancelled."""

    def __init__(self, engine: "GameEngine") -> None:
        super().__init__(name="snakecast-tick", daemon=True)
        self.engine = engine
        self.cancelled = threading.Event()

    def run(self) -> None:
        while not self.cancelled.wait(self.engine.current_tick_ms / 1000.0):
            if not self.engine._scheduled_tick(self):
                return

    def cancel(self) -> None:
        self.cancelled.set()


class GameEngine:
    """Authoritative Snake simulation for the display.

    All mutation happens under one lock; readers only ever see the immutable
    GameState snapshots published on ``game_state``. The tick scheduler is a
    single background thread that start()/pause()/reset() replace, never run
    side by side.
    """

    def __init__(self, config: Optional[GameConfig] = None, rng: Optional[random.Random] = None) -> None:
        self.config = config or GameConfig()
        self._rng = rng or random.Random(self.config.seed)
        self._lock = threading.RLock()
        self._tick_ms = self.config.initial_tick_ms
        self._ticker: Optional[_Ticker] = None
        self._closed = False
        self.game_state: StateStream[GameState] = StateStream(initial_state(self.config, self._rng))
        self.connection_state: StateStream[ConnectionState] = StateStream(Disconnected())

    @property
    def state(self) -> GameState:
        return self.game_state.value

    @property
    def current_tick_ms(self) -> int:
        return self._tick_ms

    @property
    def ticking(self) -> bool:
        ticker = self._ticker
        return ticker is not None and not ticker.cancelled.is_set()

    # ---- input ----
    def update_connection_state(self, state: ConnectionState) -> None:
        with self._lock:
            self.connection_state.set(state)
            if isinstance(state, Connected):
                self._publish(self.state.with_(is_controller_connected=True))
                if self.state.status is GameStatus.WAITING:
                    self._start()
            elif isinstance(state, Disconnected):
                self._publish(self.state.with_(is_controller_connected=False))
                if self.state.status is GameStatus.RUNNING:
                    self._pause()
            # Connecting / Error leave the game alone

    def change_direction(self, direction: Direction) -> None:
        with self._lock:
            status = self.state.status
            if status is GameStatus.GAME_OVER:
                # any input after a crash starts a fresh run
                self._reset()
                self._start()
                return
            if status is GameStatus.PAUSED and self.state.is_controller_connected:
                self._start()
            # only the latest input before a tick survives
            self._publish(steer(self.state, direction))

    # ---- lifecycle ----
    def start(self) -> None:
        with self._lock:
            self._start()

    def pause(self) -> None:
        with self._lock:
            self._pause()

    def reset(self) -> None:
        with self._lock:
            self._reset()

    def tick(self) -> GameState:
        with self._lock:
            return self._tick()

    def close(self) -> None:
        with self._lock:
            self._closed = True
            self._stop_ticker()

    # ---- internals, lock held ----
    def _start(self) -> None:
        if self.state.status is GameStatus.GAME_OVER:
            self._reset()
        self._publish(self.state.with_(status=GameStatus.RUNNING))
        self._start_ticker()

    def _pause(self) -> None:
        self._stop_ticker()
        self._publish(self.state.with_(status=GameStatus.PAUSED))

    def _reset(self) -> None:
        self._stop_ticker()
        self._tick_ms = self.config.initial_tick_ms
        fresh = initial_state(self.config, self._rng, connected=self.state.is_controller_connected)
        self._publish(fresh)
        if fresh.status is GameStatus.RUNNING:
            self._start_ticker()

    def _tick(self) -> GameState:
        cfg = self.config
        outcome = advance(self.state, self._rng, cfg.boundary, cfg.food_score)
        new = outcome.state
        if outcome.reason is not None:
            log.info("Game over (%s) with score %d", outcome.reason, new.score)
        elif outcome.ate and speeds_up(new.score, cfg):
            faster = faster_tick(self._tick_ms, cfg)
            if faster != self._tick_ms:
                log.debug("Speeding up: %d ms -> %d ms", self._tick_ms, faster)
            self._tick_ms = faster
        self._publish(new)
        return new

    def _scheduled_tick(self, ticker: _Ticker) -> bool:
        with self._lock:
            if ticker is not self._ticker or ticker.cancelled.is_set():
                return False
            if self.state.status is not GameStatus.RUNNING:
                return False
            if self._tick().status is GameStatus.RUNNING:
                return True
            self._ticker = None
            return False

    def _start_ticker(self) -> None:
        self._stop_ticker()
        if self._closed:
            return
        self._ticker = _Ticker(self)
        self._ticker.start()

    def _stop_ticker(self) -> None:
        ticker, self._ticker = self._ticker, None
        if ticker is not None:
            ticker.cancel()

    def _publish(self, new: GameState) -> None:
        old = self.state
        if new.status is not old.status:
            log.info("Game %s -> %s", old.status.value, new.status.value)
        self.game_state.set(new)

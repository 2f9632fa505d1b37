from .engine import GameEngine
from .game import GameState, GameStatus, Position

__all__ = ["GameEngine", "GameState", "GameStatus", "Position"]

"""NONAGA package exposing the rules engine, the heuristic AI, and the web service."""

from .ai import HeuristicAI
from .board import Color, Piece, Tile
from .game import GameState, Phase, Status
from .server import app

__all__ = ["Color", "GameState", "HeuristicAI", "Phase", "Piece", "Status", "Tile", "app"]

# /// script
# requires-python = ">=3.12"
# dependencies = ["pydantic>=2.0"]
# ///
"""Inning / half-inning cursor.

Stepping order is 1 top, 1 bottom, 2 top, 2 bottom, ...  Retreating
from the first half of the first inning is a no-op.
"""

from __future__ import annotations

from models import GameState


def advance(game_state: GameState) -> GameState:
    if game_state.is_top_half:
        return game_state.model_copy(update={"is_top_half": False})
    return game_state.model_copy(
        update={"is_top_half": True, "inning": game_state.inning + 1}
    )


def retreat(game_state: GameState) -> GameState:
    if not game_state.is_top_half:
        return game_state.model_copy(update={"is_top_half": True})
    if game_state.inning > 1:
        return game_state.model_copy(
            update={"is_top_half": False, "inning": game_state.inning - 1}
        )
    return game_state


def inning_label(game_state: GameState) -> str:
    """Scoreboard label, e.g. ``3回表`` / ``3回裏``."""
    half = "表" if game_state.is_top_half else "裏"
    return f"{game_state.inning}回{half}"

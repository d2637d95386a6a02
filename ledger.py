# /// script
# requires-python = ">=3.12"
# dependencies = ["pydantic>=2.0"]
# ///
"""Per-player batting ledger.

Each player owns :data:`~models.AT_BATS_PER_GAME` result slots.  The
``hits`` / ``at_bats`` / ``walks`` counters are maintained by delta: an
edit first undoes whatever the slot previously held, then applies the
new text.  Re-applying the same text is therefore a no-op, and a slot
can change category freely (strikeout -> walk, etc.).

All functions are pure and return new model instances.
"""

from __future__ import annotations

from models import AT_BATS_PER_GAME, BattingStats, GameState
from outcomes import classify, counter_deltas


NO_DATA = ".---"


class LedgerError(ValueError):
    """Raised for an at-bat slot outside the fixed slot range."""


def _check_slot(slot_index: int) -> None:
    if not 0 <= slot_index < AT_BATS_PER_GAME:
        raise LedgerError(
            f"at-bat slot must be 0-{AT_BATS_PER_GAME - 1}, got {slot_index}"
        )


def _shift(counters: list[int], raw: str, multiplier: int) -> None:
    for i, delta in enumerate(counter_deltas(classify(raw))):
        counters[i] += delta * multiplier


def apply_result(stats: BattingStats, slot_index: int, new_raw: str) -> BattingStats:
    """Overwrite one at-bat slot and return stats with adjusted counters.

    Args:
        stats: Current stats for the player.
        slot_index: Zero-based at-bat slot.
        new_raw: Text entered for the slot.  Blank clears the slot.

    Raises:
        LedgerError: If *slot_index* is out of range.
    """
    _check_slot(slot_index)
    counters = [stats.hits, stats.at_bats, stats.walks]
    results = list(stats.results)

    if slot_index < len(results) and results[slot_index]:
        _shift(counters, results[slot_index], -1)

    if slot_index >= len(results):
        results.extend([""] * (slot_index + 1 - len(results)))
    results[slot_index] = new_raw

    if new_raw.strip():
        _shift(counters, new_raw, +1)

    hits, at_bats, walks = (max(0, c) for c in counters)
    return BattingStats(hits=hits, at_bats=at_bats, walks=walks, results=results)


def recompute_stats(results: list[str]) -> BattingStats:
    """Build stats from scratch for a list of raw results."""
    counters = [0, 0, 0]
    for raw in results:
        _shift(counters, raw, +1)
    hits, at_bats, walks = counters
    return BattingStats(hits=hits, at_bats=at_bats, walks=walks, results=list(results))


def record_result(
    game_state: GameState,
    player_index: int,
    slot_index: int,
    new_raw: str,
) -> GameState:
    """Apply a result to the player keyed by *player_index*.

    An absent stats entry is treated as empty stats.
    """
    if player_index < 0:
        raise LedgerError(f"player index must be >= 0, got {player_index}")
    updated = apply_result(game_state.stats_for(player_index), slot_index, new_raw)
    batting_stats = dict(game_state.batting_stats)
    batting_stats[player_index] = updated
    return game_state.model_copy(update={"batting_stats": batting_stats})


def format_rate(numerator: int, denominator: int) -> str:
    """Three-decimal rate (``0.333``), or :data:`NO_DATA` for a zero denominator."""
    if denominator <= 0:
        return NO_DATA
    return f"{numerator / denominator:.3f}"


def player_average(stats: BattingStats) -> str:
    return format_rate(stats.hits, stats.at_bats)

# /// script
# requires-python = ">=3.12"
# dependencies = ["pydantic>=2.0"]
# ///
"""Roster reducers: lineup and bench edits on the order record.

The batting ledger is keyed by lineup index, so every structural lineup
change (add, remove, swap) re-keys ``game_state.batting_stats`` in the
same transition that changes ``players``.  Each reducer takes an
:class:`~models.OrderData` and returns a new one; the input is never
mutated.
"""

from __future__ import annotations

from models import (
    BENCH_GROUPS,
    GROUP_FIELDS,
    BattingStats,
    BenchPlayer,
    Condition,
    GameState,
    OrderData,
    Player,
    Position,
    RosterGroup,
)


UP = "up"
DOWN = "down"


class RosterValidationError(ValueError):
    """Raised when an edit is rejected before touching any state."""


class RosterIndexError(IndexError):
    """Raised for an index outside the addressed player list."""


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _clean_name(name: str, what: str) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise RosterValidationError(f"{what}名を入力してください")
    return cleaned


def _check_index(items: list, index: int, group: RosterGroup) -> None:
    if not 0 <= index < len(items):
        raise RosterIndexError(
            f"{group.value} index {index} out of range (size {len(items)})"
        )


def _position(position: Position | str) -> Position:
    try:
        return Position(position)
    except ValueError as exc:
        raise RosterValidationError(f"unknown position {position!r}") from exc


def _with_stats(data: OrderData, players: list[Player],
                batting_stats: dict[int, BattingStats]) -> OrderData:
    game_state = data.game_state.model_copy(update={"batting_stats": batting_stats})
    return data.model_copy(update={"players": players, "game_state": game_state})


# ---------------------------------------------------------------------------
# Lineup
# ---------------------------------------------------------------------------

def add_player(data: OrderData, name: str,
               position: Position = Position.PITCHER) -> OrderData:
    """Append a player and give the new last index fresh stats."""
    name = _clean_name(name, "選手")
    position = _position(position)
    players = [*data.players, Player(name=name, position=position)]
    batting_stats = dict(data.game_state.batting_stats)
    batting_stats[len(players) - 1] = BattingStats()
    return _with_stats(data, players, batting_stats)


def remove_player(data: OrderData, index: int) -> OrderData:
    """Remove the player at *index*, shifting later stats down by one."""
    _check_index(data.players, index, RosterGroup.PLAYERS)
    players = [p for i, p in enumerate(data.players) if i != index]
    batting_stats: dict[int, BattingStats] = {}
    for key, stats in data.game_state.batting_stats.items():
        if key < index:
            batting_stats[key] = stats
        elif key > index:
            batting_stats[key - 1] = stats
    return _with_stats(data, players, batting_stats)


def swap_players(data: OrderData, i: int, j: int) -> OrderData:
    """Swap two lineup slots together with their stats entries."""
    _check_index(data.players, i, RosterGroup.PLAYERS)
    _check_index(data.players, j, RosterGroup.PLAYERS)
    if i == j:
        return data
    players = list(data.players)
    players[i], players[j] = players[j], players[i]

    batting_stats = dict(data.game_state.batting_stats)
    stats_i = batting_stats.pop(i, None)
    stats_j = batting_stats.pop(j, None)
    if stats_j is not None:
        batting_stats[i] = stats_j
    if stats_i is not None:
        batting_stats[j] = stats_i
    return _with_stats(data, players, batting_stats)


def move_player(data: OrderData, index: int, direction: str) -> OrderData:
    """Move a player one slot up or down the order.

    Moving past either end of the lineup leaves the record unchanged.
    """
    if direction not in (UP, DOWN):
        raise RosterValidationError(f"direction must be 'up' or 'down', got {direction!r}")
    _check_index(data.players, index, RosterGroup.PLAYERS)
    target = index - 1 if direction == UP else index + 1
    if not 0 <= target < len(data.players):
        return data
    return swap_players(data, index, target)


def change_position(data: OrderData, index: int, position: Position | str) -> OrderData:
    _check_index(data.players, index, RosterGroup.PLAYERS)
    position = _position(position)
    players = list(data.players)
    players[index] = players[index].model_copy(update={"position": position})
    return data.model_copy(update={"players": players})


def change_condition(data: OrderData, group: RosterGroup | str, index: int,
                     condition: Condition | str) -> OrderData:
    """Set the condition tag of a lineup or bench entry."""
    group = _group(group)
    try:
        condition = Condition(condition)
    except ValueError as exc:
        raise RosterValidationError(f"unknown condition {condition!r}") from exc
    items = list(data.group(group))
    _check_index(items, index, group)
    items[index] = items[index].model_copy(update={"condition": condition})
    return data.model_copy(update={GROUP_FIELDS[group]: items})


# ---------------------------------------------------------------------------
# Bench groups
# ---------------------------------------------------------------------------

_BENCH_NOUNS = {
    RosterGroup.PITCHERS: "控え投手",
    RosterGroup.CATCHERS: "控え捕手",
    RosterGroup.MANAGERS: "監督",
}


def _group(group: RosterGroup | str) -> RosterGroup:
    try:
        return RosterGroup(group)
    except ValueError as exc:
        raise RosterValidationError(f"unknown roster group {group!r}") from exc


def _bench_group(group: RosterGroup | str) -> RosterGroup:
    group = _group(group)
    if group not in BENCH_GROUPS:
        raise RosterValidationError(f"{group.value} is not a bench group")
    return group


def add_bench_player(data: OrderData, group: RosterGroup | str, name: str) -> OrderData:
    group = _bench_group(group)
    entry = BenchPlayer(name=_clean_name(name, _BENCH_NOUNS[group]))
    return data.model_copy(update={GROUP_FIELDS[group]: [*data.group(group), entry]})


def remove_bench_player(data: OrderData, group: RosterGroup | str, index: int) -> OrderData:
    group = _bench_group(group)
    items = data.group(group)
    _check_index(items, index, group)
    remaining = [p for i, p in enumerate(items) if i != index]
    return data.model_copy(update={GROUP_FIELDS[group]: remaining})


# ---------------------------------------------------------------------------
# Whole-record resets
# ---------------------------------------------------------------------------

def reset_game(data: OrderData) -> OrderData:
    """Start a new game with the current lineup: inning 1 top, empty stats."""
    game_state = GameState(
        batting_stats={i: BattingStats() for i in range(len(data.players))},
    )
    return data.model_copy(update={"game_state": game_state})


def clear_all(data: OrderData) -> OrderData:
    """Drop every roster entry and all game data.  The version is kept."""
    return OrderData(version=data.version)

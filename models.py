# /// script
# requires-python = ">=3.12"
# dependencies = ["pydantic>=2.0"]
# ///
"""Data models for the team order board and scorebook.

The models mirror the single persisted record shared by every client.
Python attribute names are snake_case; the persisted JSON keeps the
camelCase keys (``atBats``, ``isTopHalf``, ``battingStats`` ...) through
field aliases, so ``OrderData.model_dump(mode="json", by_alias=True)``
produces exactly the stored shape.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


AT_BATS_PER_GAME = 4


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class Position(str, Enum):
    PITCHER = "投"
    CATCHER = "捕"
    FIRST = "一"
    SECOND = "二"
    THIRD = "三"
    SHORTSTOP = "遊"
    LEFT = "左"
    CENTER = "中"
    RIGHT = "右"
    DH = "DH"


class Condition(str, Enum):
    """Five-tier player condition, best first."""
    EXCELLENT = "🤩"
    GOOD = "😊"
    NORMAL = "😐"
    POOR = "😰"
    TERRIBLE = "🤢"

    @property
    def label(self) -> str:
        return _CONDITION_LABELS[self]

    @property
    def rank(self) -> int:
        """1 for the best tier through 5 for the worst."""
        return list(Condition).index(self) + 1


_CONDITION_LABELS: dict[Condition, str] = {
    Condition.EXCELLENT: "絶好調",
    Condition.GOOD: "好調",
    Condition.NORMAL: "ふつう",
    Condition.POOR: "不調",
    Condition.TERRIBLE: "絶不調",
}


class RosterGroup(str, Enum):
    """Addressable player lists in the record."""
    PLAYERS = "players"
    PITCHERS = "pitchers"
    CATCHERS = "catchers"
    MANAGERS = "managers"


BENCH_GROUPS = (RosterGroup.PITCHERS, RosterGroup.CATCHERS, RosterGroup.MANAGERS)


class _RecordModel(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)


# ---------------------------------------------------------------------------
# Roster models
# ---------------------------------------------------------------------------

class BenchPlayer(_RecordModel):
    name: str = Field(min_length=1)
    condition: Condition = Field(default=Condition.GOOD, alias="face")

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name must not be blank")
        return v


class Player(BenchPlayer):
    """Active lineup player. Its roster index doubles as the stats key."""
    position: Position = Field(default=Position.PITCHER, alias="pos")


# ---------------------------------------------------------------------------
# Game models
# ---------------------------------------------------------------------------

class BattingStats(_RecordModel):
    """Counters are a cached projection of ``results``."""
    hits: int = Field(default=0, ge=0)
    at_bats: int = Field(default=0, ge=0, alias="atBats")
    walks: int = Field(default=0, ge=0)
    results: list[str] = Field(default_factory=list)

    @field_validator("results", mode="before")
    @classmethod
    def fill_holes(cls, v):
        # Records written by older clients may hold nulls for skipped slots.
        if isinstance(v, list):
            return ["" if r is None else r for r in v]
        return v


class GameState(_RecordModel):
    inning: int = Field(default=1, ge=1)
    is_top_half: bool = Field(default=True, alias="isTopHalf")
    current_batter_index: int = Field(default=0, ge=0, alias="currentBatterIndex")
    batting_stats: dict[int, BattingStats] = Field(
        default_factory=dict, alias="battingStats",
        description="Sparse map of roster index -> stats",
    )

    def stats_for(self, index: int) -> BattingStats:
        """Stats at *index*, or empty stats when the entry is absent."""
        return self.batting_stats.get(index) or BattingStats()


class OrderData(_RecordModel):
    """The one persisted record: roster, bench groups and game state."""
    players: list[Player] = Field(default_factory=list)
    bench_pitchers: list[BenchPlayer] = Field(default_factory=list, alias="benchPitchers")
    bench_catchers: list[BenchPlayer] = Field(default_factory=list, alias="benchCatchers")
    managers: list[BenchPlayer] = Field(default_factory=list)
    game_state: GameState = Field(default_factory=GameState, alias="gameState")
    version: int = Field(default=0, ge=0, description="Incremented on every save")

    @field_validator(
        "players", "bench_pitchers", "bench_catchers", "managers", mode="before",
    )
    @classmethod
    def none_as_empty(cls, v):
        return [] if v is None else v

    @field_validator("game_state", mode="before")
    @classmethod
    def none_as_new_game(cls, v):
        return GameState() if v is None else v

    def group(self, group: RosterGroup) -> list[BenchPlayer]:
        return {
            RosterGroup.PLAYERS: self.players,
            RosterGroup.PITCHERS: self.bench_pitchers,
            RosterGroup.CATCHERS: self.bench_catchers,
            RosterGroup.MANAGERS: self.managers,
        }[group]

    def to_record(self) -> dict:
        """Serialize to the persisted JSON shape."""
        return self.model_dump(mode="json", by_alias=True)

    @classmethod
    def from_record(cls, record: dict | None) -> OrderData:
        return cls.model_validate(record or {})


GROUP_FIELDS: dict[RosterGroup, str] = {
    RosterGroup.PLAYERS: "players",
    RosterGroup.PITCHERS: "bench_pitchers",
    RosterGroup.CATCHERS: "bench_catchers",
    RosterGroup.MANAGERS: "managers",
}

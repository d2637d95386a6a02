# /// script
# requires-python = ">=3.12"
# dependencies = ["pydantic>=2.0"]
# ///
"""Team batting totals folded from every player's ledger.

Totals are recomputed from scratch on each call.  There is no team-level
cache to keep in step with player edits.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from pydantic import BaseModel

from ledger import format_rate
from models import BattingStats


class TeamStats(BaseModel):
    hits: int = 0
    at_bats: int = 0
    walks: int = 0
    avg: str
    obp: str


def aggregate(all_stats: Mapping[int, BattingStats] | Iterable[BattingStats]) -> TeamStats:
    """Sum counters and derive AVG and OBP.

    Args:
        all_stats: Either the sparse ``battingStats`` mapping or any
            iterable of :class:`BattingStats`.

    Returns:
        :class:`TeamStats` where ``avg`` is hits / at-bats and ``obp`` is
        (hits + walks) / (at-bats + walks), both with three decimals, or
        ``".---"`` when the denominator is zero.
    """
    if isinstance(all_stats, Mapping):
        all_stats = all_stats.values()
    hits = at_bats = walks = 0
    for stats in all_stats:
        hits += stats.hits
        at_bats += stats.at_bats
        walks += stats.walks
    return TeamStats(
        hits=hits,
        at_bats=at_bats,
        walks=walks,
        avg=format_rate(hits, at_bats),
        obp=format_rate(hits + walks, at_bats + walks),
    )

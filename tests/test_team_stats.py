# /// script
# requires-python = ">=3.12"
# dependencies = ["pytest>=7.0", "pydantic>=2.0"]
# ///
"""Tests for team batting totals.

Validates:
  1. Empty input yields zero totals and the no-data sentinel
  2. Totals sum every player's counters
  3. AVG and OBP use the documented denominators
  4. Mappings and plain iterables are both accepted
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from ledger import apply_result
from models import BattingStats
from team_stats import aggregate


def _stats(*results):
    stats = BattingStats()
    for slot, raw in enumerate(results):
        stats = apply_result(stats, slot, raw)
    return stats


class TestAggregate:
    def test_empty(self):
        team = aggregate([])
        assert (team.hits, team.at_bats, team.walks) == (0, 0, 0)
        assert team.avg == ".---"
        assert team.obp == ".---"

    def test_empty_mapping(self):
        assert aggregate({}).avg == ".---"

    def test_walks_only(self):
        team = aggregate([_stats("四球", "死球")])
        assert team.avg == ".---"
        assert team.obp == "1.000"

    def test_mixed_team(self):
        team = aggregate({
            0: _stats("三振", "左安", "", ""),
            1: _stats("四球", "遊ゴロ", "本塁打"),
            3: _stats("犠打"),
        })
        assert (team.hits, team.at_bats, team.walks) == (2, 4, 1)
        assert team.avg == "0.500"
        assert team.obp == "0.600"

    def test_after_overwrite(self):
        stats = apply_result(_stats("三振", "左安"), 0, "四球")
        team = aggregate([stats])
        assert (team.hits, team.at_bats, team.walks) == (1, 1, 1)
        assert team.avg == "1.000"
        assert team.obp == "1.000"

    def test_generator_input(self):
        team = aggregate(_stats("安") for _ in range(3))
        assert team.hits == 3
        assert team.model_dump() == {
            "hits": 3, "at_bats": 3, "walks": 0, "avg": "1.000", "obp": "1.000",
        }

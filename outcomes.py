# /// script
# requires-python = ">=3.12"
# dependencies = []
# ///
"""Classify free-text at-bat results into a closed outcome taxonomy.

Scorers type whatever is natural at the field: Japanese scorebook
shorthand (``左安``, ``三振``, ``遊ゴロ``, ``犠飛``), English shorthand
(``K``, ``BB``, ``HR``) or arbitrary notes.  :func:`classify` maps any
such text to one :class:`OutcomeKind`; unknown text is ``CUSTOM`` and
still counts as an at-bat.

Matching is first-match-wins over :data:`OUTCOME_RULES`.  The specific
extra-base categories are tested before the generic hit tokens so that
``ツーベースヒット`` is a double rather than a single.
"""

from __future__ import annotations

import unicodedata
from enum import Enum


class OutcomeKind(str, Enum):
    HIT = "hit"
    DOUBLE = "double"
    TRIPLE = "triple"
    HOMERUN = "homerun"
    STRIKEOUT = "strikeout"
    WALK = "walk"
    HIT_BY_PITCH = "hit-by-pitch"
    SACRIFICE_FLY = "sacrifice-fly"
    SACRIFICE_BUNT = "sacrifice-bunt"
    GROUNDER_OUT = "grounder-out"
    FLY_OUT = "fly-out"
    ERROR = "error"
    CUSTOM = "custom"
    EMPTY = "empty"


# (kind, substrings, exact shorthand).  Order is significant.
OUTCOME_RULES: tuple[tuple[OutcomeKind, tuple[str, ...], str | None], ...] = (
    (OutcomeKind.DOUBLE, ("二塁打", "2塁打", "ツーベース"), "2b"),
    (OutcomeKind.TRIPLE, ("三塁打", "3塁打", "スリーベース"), "3b"),
    (OutcomeKind.HOMERUN, ("本塁打", "ホームラン"), "hr"),
    (OutcomeKind.HIT, ("安", "ヒット"), "h"),
    (OutcomeKind.STRIKEOUT, ("三振",), "k"),
    (OutcomeKind.WALK, ("四球",), "bb"),
    (OutcomeKind.HIT_BY_PITCH, ("死球",), "hbp"),
    (OutcomeKind.SACRIFICE_FLY, ("犠飛",), "sf"),
    (OutcomeKind.SACRIFICE_BUNT, ("犠打",), "sh"),
    (OutcomeKind.GROUNDER_OUT, ("ゴロ",), None),
    (OutcomeKind.FLY_OUT, ("フライ", "飛"), None),
    (OutcomeKind.ERROR, ("エラー", "失"), None),
)

HIT_KINDS = frozenset({
    OutcomeKind.HIT, OutcomeKind.DOUBLE, OutcomeKind.TRIPLE, OutcomeKind.HOMERUN,
})
NON_AT_BAT_KINDS = frozenset({
    OutcomeKind.WALK, OutcomeKind.HIT_BY_PITCH,
    OutcomeKind.SACRIFICE_BUNT, OutcomeKind.SACRIFICE_FLY,
})
ON_BASE_KINDS = frozenset({OutcomeKind.WALK, OutcomeKind.HIT_BY_PITCH})


def normalize_text(raw: object) -> str:
    """Fold width and case, then trim.  Non-strings normalize to ``""``."""
    if not isinstance(raw, str):
        return ""
    return unicodedata.normalize("NFKC", raw).casefold().strip()


def classify(raw: object) -> OutcomeKind:
    """Return the outcome kind for a raw at-bat description.

    Never raises.  Blank (or non-string) input is ``EMPTY``.
    """
    text = normalize_text(raw)
    if not text:
        return OutcomeKind.EMPTY
    for kind, tokens, shorthand in OUTCOME_RULES:
        if text == shorthand or any(token in text for token in tokens):
            return kind
    return OutcomeKind.CUSTOM


def counter_deltas(kind: OutcomeKind) -> tuple[int, int, int]:
    """Return the ``(hits, at_bats, walks)`` contribution of one result."""
    if kind is OutcomeKind.EMPTY:
        return (0, 0, 0)
    return (
        int(kind in HIT_KINDS),
        int(kind not in NON_AT_BAT_KINDS),
        int(kind in ON_BASE_KINDS),
    )

"""
Depth and difficulty indicators.

Pure presentation helpers: map a collected-info count onto a bounded depth
level, normalize backend difficulty strings and format session durations.
"""

from __future__ import annotations

from typing import Any, NamedTuple

from .i18n import DEPTH_LABELS, DIFFICULTY_LABELS, Language, translate
from .models import Difficulty

DEPTH_LEVELS = 4
DEFAULT_MAX_INFO_COUNT = 8

_DIFFICULTY_VARIANTS: dict[Difficulty, str] = {
    Difficulty.EASY: "secondary",
    Difficulty.MEDIUM: "default",
    Difficulty.HARD: "destructive",
}


class DifficultyBadge(NamedTuple):
    """Localized label plus visual variant for a difficulty."""

    difficulty: Difficulty
    label: str
    variant: str


def depth_level(info_count: int, max_info_count: int = DEFAULT_MAX_INFO_COUNT) -> int:
    """
    Map a collected-info count onto a depth level in ``[0, DEPTH_LEVELS - 1]``.

    Args:
        info_count: Number of collected info points (negative counts as 0).
        max_info_count: Count that fills the whole indicator.

    Returns:
        Depth level, clamped so counts beyond the maximum stay in range.

    Raises:
        ValueError: If ``max_info_count`` is not positive.
    """
    if max_info_count <= 0:
        raise ValueError(f"max_info_count must be positive. Got: {max_info_count}")
    level = (max(info_count, 0) * DEPTH_LEVELS) // max_info_count
    return max(0, min(DEPTH_LEVELS - 1, level))


def depth_label(level: int, language: Language = Language.EN) -> str:
    labels = DEPTH_LABELS[language]
    return labels[max(0, min(len(labels) - 1, level))]


def normalize_difficulty(value: Any) -> Difficulty:
    """
    Normalize a backend difficulty value.

    Case-insensitive; anything unrecognized, including None, maps to Medium.
    Idempotent: ``normalize_difficulty(normalize_difficulty(x))`` equals
    ``normalize_difficulty(x)``.
    """
    if isinstance(value, Difficulty):
        return value
    if not isinstance(value, str):
        return Difficulty.MEDIUM
    lookup = {member.value.lower(): member for member in Difficulty}
    return lookup.get(value.strip().lower(), Difficulty.MEDIUM)


def difficulty_badge(value: Any, language: Language = Language.EN) -> DifficultyBadge:
    difficulty = normalize_difficulty(value)
    return DifficultyBadge(
        difficulty=difficulty,
        label=DIFFICULTY_LABELS[language][difficulty.value],
        variant=_DIFFICULTY_VARIANTS[difficulty],
    )


def format_duration(total_seconds: int, language: Language = Language.EN) -> str:
    """Format whole seconds as ``"2m 5s"`` (or ``"2分 5秒"``)."""
    total_seconds = max(0, int(total_seconds))
    minutes, seconds = divmod(total_seconds, 60)
    return translate("duration", language, minutes=minutes, seconds=seconds)

"""Template helpers: pure functions a prompt variant may call while rendering.

Each variant receives its own explicit helper set (see ``helper_set``);
nothing is registered globally. Helpers receive plain values: the
renderer turns undefined template values into ``None`` before the call.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from typing import Any

Helper = Callable[..., Any]
HelperSet = Mapping[str, Helper]


class NotAnswered(str):
    """Display value for a missing entry in a parallel answers array."""


NOT_ANSWERED = NotAnswered("Not answered")


def normalize(value: Any) -> str:
    """Compare-ready form of a string-like value."""
    if value is None:
        return ""
    return str(value).strip().lower()


def eq(a: Any, b: Any) -> bool:
    """Case- and type-tolerant equality. Missing values never match."""
    if a is None or b is None:
        return False
    return normalize(a) == normalize(b)


def add(a: int, b: int) -> int:
    return int(a) + int(b)


def ordinal(index: int) -> int:
    """1-based position for a 0-based loop index."""
    return int(index) + 1


def join(items: Sequence[Any] | None, separator: str = ", ") -> str:
    if not items:
        return ""
    return separator.join(str(item) for item in items)


def lookup(items: Sequence[Any] | None, index: int) -> Any:
    """Item ``index`` of a sibling array, or NOT_ANSWERED when absent or blank."""
    if not items or index < 0 or index >= len(items):
        return NOT_ANSWERED
    value = items[index]
    if value is None or normalize(value) == "":
        return NOT_ANSWERED
    return value


def is_correct(answer: Any, correct_answer: Any) -> bool:
    """Whether a student's answer matches, ignoring case and surrounding spaces."""
    if answer is None or isinstance(answer, NotAnswered):
        return False
    if normalize(answer) == "":
        return False
    return normalize(answer) == normalize(correct_answer)


HELPERS: dict[str, Helper] = {
    "eq": eq,
    "add": add,
    "ordinal": ordinal,
    "join": join,
    "lookup": lookup,
    "is_correct": is_correct,
}


def helper_set(*names: str) -> HelperSet:
    """Pick named helpers from the catalogue for one variant.

    Raises ``ValueError`` if any name is not in the catalogue.
    """
    missing = [n for n in names if n not in HELPERS]
    if missing:
        raise ValueError(
            f"Unknown helper(s): {missing}. Available: {list(HELPERS.keys())}"
        )
    return {n: HELPERS[n] for n in names}

"""
Sentence resolver — turns the capture session into one exportable text + interval.

Timing precedence per position:
  1. explicit user override (Timings)
  2. accumulated subtitle lines (SubList)
  3. -1, i.e. unresolved
"""

from dataclasses import dataclass
from typing import Callable

from miner.subtitles import Subtitle, SubList
from miner.timings import Timings
from miner.utils import (
    contains_non_latin_letters,
    escape_special_characters,
    remove_all_spaces,
)


@dataclass
class Sentence:
    text: str | None
    secondary: str
    start: float
    end: float


def get_timing(dialogs: SubList, timings: Timings, position: str) -> float:
    if timings.is_set(position):
        return timings.get(position)
    if not dialogs.is_empty():
        return dialogs.get_time(position)
    return -1


def prepare_text(text: str, nuke_spaces: bool = False) -> str:
    """Trim, escape HTML, and drop inter-word spaces for scripts that don't use them."""
    text = escape_special_characters(text.strip())
    if nuke_spaces and contains_non_latin_letters(text):
        text = remove_all_spaces(text)
    return text


def resolve_sentence(
    dialogs: SubList,
    timings: Timings,
    now: Callable[[], Subtitle | None],
    nuke_spaces: bool = False,
) -> Sentence | None:
    """
    Resolve the session into a Sentence, or None when there is nothing to export.
    `now` returns the currently visible line; it is only consulted when no
    lines have been accumulated yet, and `dialogs` itself is never modified.
    """
    if dialogs.is_empty():
        dialogs = SubList()
        dialogs.insert(now())

    start = get_timing(dialogs, timings, 'start')
    end = get_timing(dialogs, timings, 'end')

    if start < 0 or end < 0:
        return None
    if start == end:
        return None
    if start > end:
        start, end = end, start

    text = dialogs.get_text(secondary=False)
    if text:
        text = prepare_text(text, nuke_spaces)

    return Sentence(
        text=text,
        secondary=dialogs.get_text(secondary=True),
        start=start,
        end=end,
    )

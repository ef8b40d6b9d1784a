"""
Subtitle lines and the accumulator that collects them while a capture window is open.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class Subtitle:
    text: str
    secondary: str = ''
    start: float | None = None
    end: float | None = None

    def is_valid(self) -> bool:
        return bool(self.text) and self.start is not None and self.end is not None

    def delay(self, seconds: float) -> 'Subtitle':
        """Shift both bounds, e.g. by sub-delay minus audio-delay."""
        return Subtitle(self.text, self.secondary, self.start + seconds, self.end + seconds)


class SubList:
    def __init__(self):
        self._subs: list[Subtitle] = []

    def __len__(self) -> int:
        return len(self._subs)

    def is_empty(self) -> bool:
        return not self._subs

    def insert(self, sub: Subtitle | None) -> bool:
        """
        Append `sub` unless it repeats the last inserted line.
        mpv fires sub-text notifications more than once per line, so this is
        where duplicates are dropped. Returns True if a line was added.
        """
        if sub is None or not sub.is_valid():
            return False
        if self._subs and self._subs[-1] == sub:
            return False
        self._subs.append(sub)
        return True

    def get_subs_list(self) -> list[Subtitle]:
        return list(self._subs)

    def get_text(self, secondary: bool = False) -> str:
        parts = [(s.secondary if secondary else s.text) or '' for s in self._subs]
        return ' '.join(p for p in parts if p).strip()

    def get_time(self, position: str) -> float:
        if self.is_empty():
            return -1
        if position == 'start':
            return min(s.start for s in self._subs)
        if position == 'end':
            return max(s.end for s in self._subs)
        raise KeyError(f"Unknown timing position: {position!r}")

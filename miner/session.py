"""
Capture session — accumulated subtitle lines, user timing overrides and the
subtitle observer that feeds them. One session per interactive player; the
orchestrator owns it and drives its lifecycle.
"""

from typing import Callable

from miner.errors import UserInputError
from miner.sentence import Sentence, get_timing, resolve_sentence
from miner.subtitles import Subtitle, SubList
from miner.timings import Timings


class CaptureSession:
    def __init__(self, observe_fn: Callable, unobserve_fn: Callable):
        """
        observe_fn / unobserve_fn: register / detach a callback(sub) for
        subtitle changes, usually Player.observe_subtitles / unobserve_subtitles.
        """
        self._observe_fn = observe_fn
        self._unobserve_fn = unobserve_fn
        self.dialogs = SubList()
        self.timings = Timings()
        self.observed = False

    # ── Observation ───────────────────────────────────────────────────────────

    def append(self, sub: Subtitle | None) -> bool:
        """Observer target. Ignored unless the session is observing."""
        if not self.observed:
            return False
        return self.dialogs.insert(sub)

    def observe(self) -> None:
        if self.observed:
            return
        self._observe_fn(self.append)
        self.observed = True

    def unobserve(self) -> None:
        if not self.observed:
            return
        self._unobserve_fn(self.append)
        self.observed = False

    # ── Timings ───────────────────────────────────────────────────────────────

    def get_timing(self, position: str) -> float:
        return get_timing(self.dialogs, self.timings, position)

    def set_timing(self, position: str, value: float) -> None:
        self.timings.set(position, value)
        self.observe()

    def set_timing_to_sub(self, position: str, sub: Subtitle | None) -> None:
        if sub is None or not sub.is_valid():
            raise UserInputError("There's no visible subtitle.")
        self.set_timing(position, getattr(sub, position))

    def set_starting_line(self, sub: Subtitle | None) -> None:
        """Start a fresh capture from the visible line."""
        if sub is None or not sub.is_valid():
            raise UserInputError("There's no visible subtitle.")
        self.clear()
        self.observe()
        self.dialogs.insert(sub)

    # ── Resolution / lifecycle ────────────────────────────────────────────────

    def get(self, now: Callable[[], Subtitle | None], nuke_spaces: bool = False) -> Sentence | None:
        return resolve_sentence(self.dialogs, self.timings, now, nuke_spaces)

    def clear(self) -> None:
        # Detach first so a late notification can't land in the new, empty state.
        self.unobserve()
        self.dialogs = SubList()
        self.timings.clear()

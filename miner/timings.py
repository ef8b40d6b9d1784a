"""
User-set start/end overrides for the capture session.
Raw timestamps are stored as-is; the sentence resolver validates them.
"""

POSITIONS = ('start', 'end')


class Timings:
    def __init__(self):
        self._marks: dict[str, float | None] = dict.fromkeys(POSITIONS)

    def _check(self, position: str) -> None:
        if position not in self._marks:
            raise KeyError(f"Unknown timing position: {position!r}")

    def set(self, position: str, value: float) -> None:
        self._check(position)
        self._marks[position] = value

    def get(self, position: str) -> float | None:
        self._check(position)
        return self._marks[position]

    def is_set(self, position: str) -> bool:
        return self.get(position) is not None

    def clear(self) -> None:
        self._marks = dict.fromkeys(POSITIONS)

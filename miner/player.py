"""
The media player as seen by the pipeline.

Player is the small surface the orchestrator needs; MpvPlayer implements it
on top of python-mpv. mpv calls its observers from its own event thread, so
every subtitle notification is re-posted onto the EventLoop before it
reaches the capture session.
"""

from typing import Callable

from miner.subtitles import Subtitle

SubtitleCallback = Callable[[Subtitle | None], None]


class Player:
    def current_subtitle(self) -> Subtitle | None:
        raise NotImplementedError

    def time_pos(self) -> float | None:
        raise NotImplementedError

    def duration(self) -> float | None:
        raise NotImplementedError

    def filename(self) -> str:
        raise NotImplementedError

    def path(self) -> str | None:
        raise NotImplementedError

    def observe_subtitles(self, callback: SubtitleCallback) -> None:
        raise NotImplementedError

    def unobserve_subtitles(self, callback: SubtitleCallback) -> None:
        raise NotImplementedError

    def notify(self, message: str, level: str = 'info', duration: float = 1) -> None:
        raise NotImplementedError


class MpvPlayer(Player):
    def __init__(self, mpv_player, loop):
        self._mpv = mpv_player
        self._loop = loop
        self._handlers: dict[SubtitleCallback, Callable] = {}

    def _get(self, name: str, default=None):
        try:
            value = self._mpv[name]
        except (AttributeError, RuntimeError, KeyError):
            return default
        return default if value is None else value

    def current_subtitle(self) -> Subtitle | None:
        sub = Subtitle(
            text=self._get('sub-text', ''),
            secondary=self._get('secondary-sub-text', ''),
            start=self._get('sub-start'),
            end=self._get('sub-end'),
        )
        if not sub.is_valid():
            return None
        return sub.delay(self._get('sub-delay', 0.0) - self._get('audio-delay', 0.0))

    def time_pos(self) -> float | None:
        return self._get('time-pos')

    def duration(self) -> float | None:
        return self._get('duration')

    def filename(self) -> str:
        return self._get('filename', '')

    def path(self) -> str | None:
        return self._get('path')

    def observe_subtitles(self, callback: SubtitleCallback) -> None:
        def _handler(_name, _value):
            self._loop.call_soon(lambda: callback(self.current_subtitle()))

        self._handlers[callback] = _handler
        self._mpv.observe_property('sub-text', _handler)

    def unobserve_subtitles(self, callback: SubtitleCallback) -> None:
        handler = self._handlers.pop(callback, None)
        if handler is not None:
            self._mpv.unobserve_property('sub-text', handler)

    def notify(self, message: str, level: str = 'info', duration: float = 1) -> None:
        print(f'[{level}] {message}')
        self._mpv.show_text(message, int(duration * 1000))

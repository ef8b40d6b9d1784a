"""
Audio and snapshot filenames compatible with Anki.

Anki rewrites every media filename longer than 119 bytes when you run
Tools -> Check Media, which silently breaks the [sound:...] and <img> links
in existing notes. Names built here always fit, suffix included.
"""

import time

from miner.utils import (
    contains_non_latin_letters,
    human_readable_time,
    remove_extension,
    remove_newlines,
    remove_special_characters,
    remove_text_in_brackets,
)

ALLOWED_BYTES = 119
_WIDEST_SUFFIX = '_99h99m99s999ms-99h99m99s999ms.webp'
_WIDE_CHAR_BYTES = len('車'.encode('utf-8'))
_NARROW_CHAR_BYTES = len('z'.encode('utf-8'))


def _byte_len(text: str) -> int:
    return len(text.encode('utf-8'))


def _placeholder() -> str:
    return f'mpv_miner_{int(time.time())}'


def _truncate(name: str, limit_bytes: int) -> str:
    bytes_per_char = _WIDE_CHAR_BYTES if contains_non_latin_letters(name) else _NARROW_CHAR_BYTES
    limit_chars = max(0, limit_bytes // bytes_per_char)

    # Slicing a str works on whole code points, so nothing is cut mid-character.
    ret = name[:limit_chars]
    while ret and _byte_len(ret) > limit_bytes:
        ret = ret[:-1]
    return remove_newlines(ret).strip()


def anki_compatible_length(name: str, suffix: str | None = None) -> str:
    """
    Shorten `name` so that name + suffix fits in ALLOWED_BYTES.
    Never raises; on any failure returns a time-based placeholder.
    """
    try:
        limit_bytes = ALLOWED_BYTES - _byte_len(suffix if suffix is not None else _WIDEST_SUFFIX)
        if _byte_len(name) <= limit_bytes:
            return name
        ret = _truncate(name, limit_bytes)
        if not ret:
            return _placeholder()
        return ret
    except Exception as e:
        print(f'[filenames] Truncation failed for {name!r}: {e}')
        return _placeholder()


def make_media_filename(filename: str) -> str:
    """Base name for every clip of a media file: no extension, no [tags], nothing unsafe."""
    filename = remove_extension(filename or '')
    filename = remove_text_in_brackets(filename)
    filename = remove_special_characters(filename)
    return filename


class FilenameFactory:
    def __init__(self, filename: str = ''):
        self.base = make_media_filename(filename)

    def on_file_loaded(self, filename: str) -> None:
        self.base = make_media_filename(filename)

    def make_audio_filename(self, start: float, end: float, extension: str) -> str:
        suffix = f'_{human_readable_time(start)}-{human_readable_time(end)}{extension}'
        return anki_compatible_length(self.base, suffix) + suffix

    def make_snapshot_filename(self, timestamp: float, extension: str) -> str:
        suffix = f'_{human_readable_time(timestamp)}{extension}'
        return anki_compatible_length(self.base, suffix) + suffix

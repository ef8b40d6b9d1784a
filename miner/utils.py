"""
Shared text and time helpers used across the pipeline.
"""

import html
import re
import time
import unicodedata

_BRACKETS_RE = re.compile(r'\[[^\]]*\]|【[^】]*】')
_PARENTHESES_RE = re.compile(r'\([^)]*\)|（[^）]*）')
_WHITESPACE_RE = re.compile(r'\s+')


def is_empty(value) -> bool:
    return value is None or value == ''


def contains_non_latin_letters(text: str) -> bool:
    """Return True if text has at least one letter outside the Latin script (e.g. kana, kanji, hangul)."""
    for ch in text:
        if not ch.isalpha():
            continue
        if not unicodedata.name(ch, '').startswith('LATIN'):
            return True
    return False


def remove_all_spaces(text: str) -> str:
    return _WHITESPACE_RE.sub('', text)


def escape_special_characters(text: str) -> str:
    """Escape &, <, >, quotes so raw subtitle text can't break the note's HTML."""
    return html.escape(text, quote=True)


def remove_extension(filename: str) -> str:
    return re.sub(r'\.[^.\s]{1,5}$', '', filename)


def remove_text_in_brackets(text: str) -> str:
    return _BRACKETS_RE.sub('', text)


def remove_text_in_parentheses(text: str) -> str:
    return _PARENTHESES_RE.sub('', text)


def remove_special_characters(text: str) -> str:
    """Drop punctuation, symbols, control characters and every kind of whitespace."""
    return ''.join(
        ch for ch in text
        if unicodedata.category(ch)[0] not in ('P', 'S', 'C', 'Z') and not ch.isspace()
    )


def remove_newlines(text: str) -> str:
    return text.replace('\r', '').replace('\n', ' ')


def human_readable_time(seconds) -> str:
    """
    Render seconds as 00h01m02s345ms.
    Anything that isn't a non-negative number renders as 'empty'.
    """
    if not isinstance(seconds, (int, float)) or seconds < 0:
        return 'empty'
    total_ms = int(round(seconds * 1000))
    h, rem = divmod(total_ms, 3_600_000)
    m, rem = divmod(rem, 60_000)
    s, ms = divmod(rem, 1000)
    return f'{h:02d}h{m:02d}m{s:02d}s{ms:03d}ms'


def minutes_ago_ms(minutes: float, now: float | None = None) -> int:
    """Unix time in milliseconds `minutes` before now. Anki note ids are creation times in ms."""
    now = time.time() if now is None else now
    return int((now - minutes * 60) * 1000)

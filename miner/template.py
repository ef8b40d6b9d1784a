"""
Format strings for note tags and the misc-info field.

Supported substitutions:
  %n - the name of the video (cleaned up, see tag_format)
  %t - current playback position, e.g. 00h12m03s250ms
  %d - episode number, empty if none was found
  %e - the SENTENCE_MINER_TAGS environment variable
"""

import os
import re

from miner.utils import (
    human_readable_time,
    remove_extension,
    remove_text_in_brackets,
    remove_text_in_parentheses,
)

ENV_TAGS_VAR = 'SENTENCE_MINER_TAGS'

_RESOLUTIONS_RE = re.compile(r'\b(?:\d{3,4}[pi]|[248]K|\d{3,4}x\d{3,4})\b', re.IGNORECASE)

# Tried in order; the first hit wins. Group 1 is the episode number.
_EPISODE_PATTERNS = [
    re.compile(r'[Ss]\d{1,2}[Ee](\d{1,4})'),
    re.compile(r'\bEpisode ?(\d{1,4})\b', re.IGNORECASE),
    re.compile(r'\b[Ee][Pp]?\.? ?(\d{1,4})\b'),
    re.compile(r'\[(\d{1,4})(?:v\d)?\]'),
    re.compile(r'[\s_]-[\s_](\d{1,4})(?:v\d)?(?=[\s_.\[(]|$)'),
    re.compile(r'[\s_](\d{1,3})(?=[\s_.\[(]|$)'),
]


def get_episode_number(filename: str) -> tuple[int, int, str] | None:
    """Return (match_start, match_end, episode) for the first episode-looking token."""
    for pattern in _EPISODE_PATTERNS:
        m = pattern.search(filename)
        if m:
            return m.start(), m.end(), m.group(1)
    return None


def tag_format(filename: str, settings) -> tuple[str, str]:
    """Clean a media filename for use in tags. Returns (name, episode_number)."""
    filename = remove_extension(filename or '')
    filename = _RESOLUTIONS_RE.sub('', filename)

    episode = ''
    found = get_episode_number(filename)
    if found:
        start, end, episode = found
        if settings.tag_del_episode_num:
            if settings.tag_del_after_episode_num:
                # Drop the episode number and whatever follows it (usually the episode title).
                filename = filename[:start]
            else:
                filename = filename[:start] + filename[end:]

    if settings.tag_nuke_brackets:
        filename = remove_text_in_brackets(filename)
    if settings.tag_nuke_parentheses:
        filename = remove_text_in_parentheses(filename)
    if settings.tag_filename_lowercase:
        filename = filename.lower()

    filename = filename.strip()
    filename = filename.replace(' ', '_')
    filename = filename.replace('_-_', '_')
    filename = filename.strip('-_')
    return filename, episode


def substitute_fmt(fmt: str, filename: str, time_pos: float | None, settings, env=None) -> str:
    env = os.environ if env is None else env
    name, episode = tag_format(filename, settings)

    ret = fmt.replace('%n', name)
    ret = ret.replace('%d', episode)
    ret = ret.replace('%t', human_readable_time(time_pos))
    ret = ret.replace('%e', env.get(ENV_TAGS_VAR, ''))
    return ret.strip()

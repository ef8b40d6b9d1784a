"""
Note field construction and merging.

construct_note_fields() builds the fields for a brand-new note.
merge_fields() combines freshly built fields with a note already stored in
Anki (update-last-note workflow) without losing what the user put there:
  1. word pronunciation from Forvo (optional)
  2. target-word highlighting in the sentence field
  3. existing audio / image / misc-info (unless overwriting)
  4. placeholder text if the sentence is still empty
"""

import re
import time
from typing import Callable, NamedTuple

from miner.utils import is_empty

# <open>content</close> where content has no markup of its own.
_SPAN_RE = re.compile(r'(<[^/<>][^<>]*>)([^<>]+)(</[^<>]+>)')


class HighlightAnchor(NamedTuple):
    prefix: str
    open_tag: str
    content: str
    close_tag: str
    suffix: str


def placeholder_text() -> str:
    return f"mpv-sentence-miner wasn't able to grab subtitles ({int(time.time())})"


# ── Build ─────────────────────────────────────────────────────────────────────

def construct_note_fields(settings, sub_text: str | None, secondary_text: str,
                          snapshot_filename: str, audio_filename: str,
                          miscinfo: str = '') -> dict[str, str]:
    ret = {settings.sentence_field: sub_text or ''}
    if not is_empty(settings.secondary_field):
        ret[settings.secondary_field] = secondary_text or ''
    if not is_empty(settings.image_field):
        ret[settings.image_field] = f'<img alt="snapshot" src="{snapshot_filename}">'
    if not is_empty(settings.audio_field):
        ret[settings.audio_field] = f'[sound:{audio_filename}]'
    if settings.miscinfo_enable and not is_empty(settings.miscinfo_field):
        ret[settings.miscinfo_field] = miscinfo
    return ret


# ── Highlighting ──────────────────────────────────────────────────────────────

def parse_highlight(text: str) -> HighlightAnchor | None:
    """
    Split a sentence like 'abc<b>word</b>def' into its highlighted span.
    Exactly one span is required; none or several give None.
    """
    if not text:
        return None
    spans = list(_SPAN_RE.finditer(text))
    if len(spans) != 1:
        return None
    m = spans[0]
    return HighlightAnchor(
        prefix=text[:m.start()],
        open_tag=m.group(1),
        content=m.group(2),
        close_tag=m.group(3),
        suffix=text[m.end():],
    )


def update_sentence(settings, new_data: dict, stored_data: dict) -> dict:
    """
    Keep the target word highlighted (e.g. marked by Yomichan) when the
    sentence text is replaced.
    """
    field = settings.sentence_field
    stored = stored_data.get(field, '')
    new = new_data.get(field, '')

    if is_empty(stored):
        return new_data
    if is_empty(new):
        # Never erase an existing sentence with a blank one.
        new_data[field] = stored
        return new_data

    anchor = parse_highlight(stored)
    if anchor is None:
        return new_data

    highlighted = anchor.open_tag + anchor.content + anchor.close_tag
    if highlighted in new:
        return new_data

    idx = new.find(anchor.content)
    if idx >= 0:
        new_data[field] = ''.join((
            new[:idx],
            anchor.open_tag,
            anchor.content,
            anchor.close_tag,
            new[idx + len(anchor.content):],
        ))
    return new_data


# ── Pronunciation ─────────────────────────────────────────────────────────────

def append_pronunciation(settings, new_data: dict, stored_data: dict,
                         lookup: Callable[[str], str | None] | None) -> dict:
    """
    lookup(word) -> '[sound:...]' or None. Usually Forvo.get_pronunciation.
    """
    if settings.use_forvo == 'no' or lookup is None:
        return new_data

    vocab_audio_field = settings.vocab_audio_field
    if not isinstance(stored_data.get(vocab_audio_field), str):
        # The note type has no field for word audio.
        return new_data

    word = stored_data.get(settings.vocab_field)
    if is_empty(word):
        return new_data

    if settings.use_forvo == 'always' or is_empty(stored_data[vocab_audio_field]):
        pronunciation = lookup(word)
        if not is_empty(pronunciation):
            if vocab_audio_field == settings.audio_field:
                # Both pointing at the same field: keep the new sentence audio too.
                new_data[settings.audio_field] = pronunciation + new_data.get(settings.audio_field, '')
            else:
                new_data[vocab_audio_field] = pronunciation
    return new_data


# ── Media ─────────────────────────────────────────────────────────────────────

def join_media_fields(settings, new_data: dict, stored_data: dict, append: bool = True) -> dict:
    """
    append=True:  stored value first, then the new media.
    append=False: new media first, then the stored value.
    """
    for field in (settings.audio_field, settings.image_field, settings.miscinfo_field):
        if is_empty(field):
            continue
        if field not in new_data and field not in stored_data:
            continue
        stored = stored_data.get(field, '')
        new = new_data.get(field, '')
        new_data[field] = stored + new if append else new + stored
    return new_data


# ── Merge ─────────────────────────────────────────────────────────────────────

def merge_fields(settings, fresh: dict, stored: dict | None,
                 pronunciation: Callable[[str], str | None] | None = None,
                 overwrite: bool = False) -> dict[str, str]:
    new_data = dict(fresh)
    if stored:
        stored = dict(stored)
        new_data = append_pronunciation(settings, new_data, stored, pronunciation)
        new_data = update_sentence(settings, new_data, stored)
        if not overwrite:
            new_data = join_media_fields(settings, new_data, stored, append=settings.append_media)

    if is_empty(new_data.get(settings.sentence_field)):
        new_data[settings.sentence_field] = placeholder_text()
    return new_data

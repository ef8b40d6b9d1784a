import pytest

from miner.fields import (
    HighlightAnchor,
    construct_note_fields,
    join_media_fields,
    merge_fields,
    parse_highlight,
    placeholder_text,
)
from settings import Settings


@pytest.fixture
def s():
    return Settings()


def _stored(**overrides):
    note = {
        'SentKanji': 'abc<b>target</b>def',
        'SentEng': 'old translation',
        'SentAudio': '[sound:old.ogg]',
        'Image': '<img src="old.webp">',
        'Notes': 'old info',
        'VocabKanji': '',
        'VocabAudio': '',
    }
    note.update(overrides)
    return note


# ── Build ─────────────────────────────────────────────────────────────────────

def test_construct_all_fields(s):
    fields = construct_note_fields(s, 'text', 'translation', 'snap.webp', 'clip.ogg', 'Show EP05')
    assert fields == {
        'SentKanji': 'text',
        'SentEng': 'translation',
        'Image': '<img alt="snapshot" src="snap.webp">',
        'SentAudio': '[sound:clip.ogg]',
        'Notes': 'Show EP05',
    }


def test_construct_skips_unconfigured_fields():
    s = Settings(secondary_field='', image_field='', miscinfo_enable=False)
    fields = construct_note_fields(s, 'text', 'translation', 'snap.webp', 'clip.ogg', 'info')
    assert set(fields) == {'SentKanji', 'SentAudio'}


# ── Highlighting ──────────────────────────────────────────────────────────────

def test_parse_highlight():
    assert parse_highlight('abc<b>target</b>def') == HighlightAnchor('abc', '<b>', 'target', '</b>', 'def')


def test_parse_highlight_with_attributes():
    anchor = parse_highlight('<span class="hl">語</span>です')
    assert anchor.open_tag == '<span class="hl">'
    assert anchor.suffix == 'です'


@pytest.mark.parametrize('text', ['', 'plain text', '<b>a</b> and <b>b</b>', '<b></b>'])
def test_parse_highlight_no_single_span(text):
    assert parse_highlight(text) is None


def test_highlight_carried_into_new_sentence(s):
    merged = merge_fields(s, {'SentKanji': 'xyztargetuvw'}, _stored())
    assert merged['SentKanji'] == 'xyz<b>target</b>uvw'


def test_highlight_dropped_when_word_missing(s):
    merged = merge_fields(s, {'SentKanji': 'something else'}, _stored())
    assert merged['SentKanji'] == 'something else'


def test_merging_note_into_itself_keeps_sentence(s):
    stored = _stored()
    merged = merge_fields(s, dict(stored), stored)
    assert merged['SentKanji'] == stored['SentKanji']


def test_blank_sentence_keeps_stored_one(s):
    merged = merge_fields(s, {'SentKanji': ''}, _stored())
    assert merged['SentKanji'] == 'abc<b>target</b>def'


# ── Media ─────────────────────────────────────────────────────────────────────

def test_media_appended_after_stored(s):
    fresh = {'SentKanji': 'x', 'SentAudio': '[sound:new.ogg]', 'Image': '<img src="new.webp">', 'Notes': 'new'}
    merged = merge_fields(s, fresh, _stored())
    assert merged['SentAudio'] == '[sound:old.ogg][sound:new.ogg]'
    assert merged['Image'] == '<img src="old.webp"><img src="new.webp">'
    assert merged['Notes'] == 'old infonew'


def test_media_prepended_when_not_appending():
    s = Settings(append_media=False)
    merged = join_media_fields(s, {'SentAudio': '[sound:new.ogg]'}, {'SentAudio': '[sound:old.ogg]'}, append=False)
    assert merged['SentAudio'] == '[sound:new.ogg][sound:old.ogg]'


def test_overwrite_skips_joining(s):
    merged = merge_fields(s, {'SentKanji': 'x', 'SentAudio': '[sound:new.ogg]'}, _stored(), overwrite=True)
    assert merged['SentAudio'] == '[sound:new.ogg]'


def test_merge_does_not_mutate_inputs(s):
    fresh = {'SentKanji': 'xyztargetuvw', 'SentAudio': '[sound:new.ogg]'}
    stored = _stored()
    fresh_copy, stored_copy = dict(fresh), dict(stored)
    merge_fields(s, fresh, stored)
    assert fresh == fresh_copy
    assert stored == stored_copy


# ── Pronunciation ─────────────────────────────────────────────────────────────

def test_pronunciation_fills_empty_vocab_audio(s):
    words = []

    def lookup(word):
        words.append(word)
        return '[sound:forvo_語.ogg]'

    merged = merge_fields(s, {'SentKanji': 'x'}, _stored(VocabKanji='語'), pronunciation=lookup)
    assert words == ['語']
    assert merged['VocabAudio'] == '[sound:forvo_語.ogg]'


def test_pronunciation_skipped_when_vocab_audio_present(s):
    lookup = pytest.fail
    merged = merge_fields(s, {'SentKanji': 'x'}, _stored(VocabKanji='語', VocabAudio='[sound:x.ogg]'),
                          pronunciation=lookup)
    assert 'VocabAudio' not in merged


def test_pronunciation_always_mode():
    s = Settings(use_forvo='always')
    merged = merge_fields(s, {'SentKanji': 'x'}, _stored(VocabKanji='語', VocabAudio='[sound:x.ogg]'),
                          pronunciation=lambda w: '[sound:forvo.ogg]')
    assert merged['VocabAudio'] == '[sound:forvo.ogg]'


def test_pronunciation_disabled():
    s = Settings(use_forvo='no')
    merged = merge_fields(s, {'SentKanji': 'x'}, _stored(VocabKanji='語'), pronunciation=pytest.fail)
    assert 'VocabAudio' not in merged


def test_pronunciation_prepended_when_fields_alias():
    s = Settings(vocab_audio_field='SentAudio')
    stored = _stored(VocabKanji='語', SentAudio='')
    fresh = {'SentKanji': 'x', 'SentAudio': '[sound:clip.ogg]'}
    merged = merge_fields(s, fresh, stored, pronunciation=lambda w: '[sound:forvo.ogg]', overwrite=True)
    assert merged['SentAudio'] == '[sound:forvo.ogg][sound:clip.ogg]'


def test_pronunciation_not_found(s):
    merged = merge_fields(s, {'SentKanji': 'x'}, _stored(VocabKanji='語'), pronunciation=lambda w: None)
    assert 'VocabAudio' not in merged


# ── Placeholder ───────────────────────────────────────────────────────────────

def test_empty_sentence_gets_placeholder(s):
    merged = merge_fields(s, {'SentKanji': ''}, None)
    assert merged['SentKanji'].startswith("mpv-sentence-miner wasn't able to grab subtitles (")
    assert any(ch.isdigit() for ch in merged['SentKanji'])


def test_placeholder_embeds_timestamp():
    text = placeholder_text()
    assert text.endswith(')')
    assert text[text.rindex('(') + 1:-1].isdigit()

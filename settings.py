"""
Settings management — loads from / saves to settings.json next to main.py.
Validated once at startup; the pipeline only ever sees a checked Settings.

Field names left empty ("") switch that field off: nothing is written to it
and it takes no part in merging. Only sentence_field is mandatory.
"""

import json
import os
import tempfile
from dataclasses import asdict, dataclass, fields

SETTINGS_FILE = os.path.join(os.path.dirname(__file__), 'settings.json')

_AUDIO_FORMATS = {
    # format: (codec, extension)
    'opus': ('libopus', '.ogg'),
    'mp3': ('libmp3lame', '.mp3'),
}
_SNAPSHOT_FORMATS = {
    'webp': ('libwebp', '.webp'),
    'jpg': ('mjpeg', '.jpg'),
}
_FORVO_MODES = ('yes', 'no', 'always')


@dataclass
class Settings:
    # Common
    nuke_spaces: bool = False      # remove all spaces from sentences in scripts that don't use them
    tmp_dir: str = os.path.join(tempfile.gettempdir(), 'mpv_sentence_miner')

    # Media
    snapshot_format: str = "webp"  # webp or jpg
    snapshot_quality: int = 15     # 0 = lowest .. 100 = highest
    snapshot_width: int = -2       # a positive integer or -2 for auto
    snapshot_height: int = 200
    audio_format: str = "opus"     # opus or mp3
    audio_bitrate: str = "18k"
    audio_padding: float = 0.12    # seconds added around subtitle-derived clips; 0 disables
    ffmpeg_audio_args: str = "-af silenceremove=1:0:-50dB"

    # Anki
    ankiconnect_url: str = "http://127.0.0.1:8765"
    create_deck: bool = False      # create deck_name on startup if missing
    allow_duplicates: bool = False
    deck_name: str = "Learning"
    model_name: str = "Japanese sentences"
    sentence_field: str = "SentKanji"
    secondary_field: str = "SentEng"
    audio_field: str = "SentAudio"
    image_field: str = "Image"
    append_media: bool = True      # True: new media after existing data, False: before
    disable_gui_browse: bool = False

    # Note tagging — see miner/template.py for %n %t %d %e
    note_tag: str = "mined %n"
    tag_nuke_brackets: bool = True
    tag_nuke_parentheses: bool = False
    tag_del_episode_num: bool = True
    tag_del_after_episode_num: bool = True
    tag_filename_lowercase: bool = False

    # Misc info
    miscinfo_enable: bool = True
    miscinfo_field: str = "Notes"
    miscinfo_format: str = "%n EP%d (%t)"

    # Forvo
    use_forvo: str = "yes"         # yes, no, always
    vocab_field: str = "VocabKanji"
    vocab_audio_field: str = "VocabAudio"

    # ── Derived ───────────────────────────────────────────────────────────────

    @property
    def audio_codec(self) -> str:
        return _AUDIO_FORMATS[self.audio_format][0]

    @property
    def audio_extension(self) -> str:
        return _AUDIO_FORMATS[self.audio_format][1]

    @property
    def snapshot_codec(self) -> str:
        return _SNAPSHOT_FORMATS[self.snapshot_format][0]

    @property
    def snapshot_extension(self) -> str:
        return _SNAPSHOT_FORMATS[self.snapshot_format][1]

    def validate(self) -> 'Settings':
        """Raise ValueError on the first invalid option. Returns self for chaining."""
        if self.audio_format not in _AUDIO_FORMATS:
            raise ValueError(f"audio_format must be one of {sorted(_AUDIO_FORMATS)}, got {self.audio_format!r}")
        if self.snapshot_format not in _SNAPSHOT_FORMATS:
            raise ValueError(f"snapshot_format must be one of {sorted(_SNAPSHOT_FORMATS)}, got {self.snapshot_format!r}")
        if self.use_forvo not in _FORVO_MODES:
            raise ValueError(f"use_forvo must be one of {list(_FORVO_MODES)}, got {self.use_forvo!r}")
        if not self.sentence_field:
            raise ValueError("sentence_field can't be empty")
        if not 0 <= self.snapshot_quality <= 100:
            raise ValueError(f"snapshot_quality must be within 0..100, got {self.snapshot_quality}")
        if self.audio_padding < 0:
            raise ValueError(f"audio_padding can't be negative, got {self.audio_padding}")
        return self


def load(path: str = SETTINGS_FILE, write_defaults: bool = False) -> Settings:
    """
    Load settings from settings.json, or return defaults if not found.
    write_defaults=True also saves them there, so there is a file to edit.
    """
    if not os.path.exists(path):
        s = Settings()
        if write_defaults:
            save(s, path)
        return s
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        print(f"[settings] Failed to read {path}, using defaults: {e}")
        return Settings()
    if not isinstance(data, dict):
        print(f"[settings] {path} is not a JSON object, using defaults")
        return Settings()
    s = Settings()
    known = {f.name for f in fields(Settings)}
    for k, v in data.items():
        if k in known:
            setattr(s, k, v)
        else:
            print(f"[settings] Ignoring unknown option '{k}'")
    return s


def save(settings: Settings, path: str = SETTINGS_FILE) -> None:
    """Persist settings to settings.json."""
    try:
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(asdict(settings), f, ensure_ascii=False, indent=2)
    except OSError as e:
        print(f"[settings] Failed to save: {e}")

"""
Api class — the bridge between the player's key bindings and the pipeline.
Every public method is one user action: it reports through the player's OSD
and returns {ok, ...} on success or {ok: False, error} otherwise.

All methods run on the EventLoop thread. AnkiConnect writes and ffmpeg jobs
go to background lanes and come back as continuations on the same thread.
"""

from concurrent.futures import Future

import settings as settings_module
from miner import fields as note_fields
from miner.anki import AnkiConnect
from miner.errors import AnkiConnectError, MinerError, RecencyError, UserInputError
from miner.filenames import FilenameFactory
from miner.forvo import Forvo
from miner.loop import EventLoop
from miner.media import Encoder
from miner.player import Player
from miner.sentence import Sentence
from miner.session import CaptureSession
from miner.template import substitute_fmt
from miner.utils import human_readable_time, is_empty, minutes_ago_ms

# Only notes added within this window can be updated.
RECENCY_WINDOW_MINUTES = 10


class Api:
    def __init__(self, player: Player, settings: settings_module.Settings | None = None,
                 loop: EventLoop | None = None, anki: AnkiConnect | None = None,
                 encoder: Encoder | None = None, forvo: Forvo | None = None):
        self._settings = (settings or settings_module.load()).validate()
        self._player = player
        self._loop = loop or EventLoop()
        self._anki = anki or AnkiConnect(self._settings, loop=self._loop)
        self._encoder = encoder or Encoder(
            self._settings, self._anki.store_file, self._settings.tmp_dir, player.path,
        )
        self._forvo = forvo or Forvo(self._settings, self._anki.store_file, self._settings.tmp_dir)
        self._filenames = FilenameFactory()
        self.session = CaptureSession(player.observe_subtitles, player.unobserve_subtitles)
        self._started = False

    # ── Lifecycle ─────────────────────────────────────────────────────────────

    def start(self) -> dict:
        """One-time setup once the first file is loaded. Later calls are no-ops."""
        if self._started:
            return {'ok': True, 'started': False}
        self._started = True
        self.on_file_loaded()
        if self._settings.create_deck:
            self._anki.create_deck(self._settings.deck_name)
        return {'ok': True, 'started': True}

    def on_file_loaded(self) -> None:
        self._filenames.on_file_loaded(self._player.filename())

    def status(self) -> dict:
        """Current capture state, for the OSD."""
        return {
            'start': human_readable_time(self.session.get_timing('start')),
            'end': human_readable_time(self.session.get_timing('end')),
            'observed': self.session.observed,
            'deck': self._settings.deck_name,
            'selected': [s.text for s in self.session.dialogs.get_subs_list()],
        }

    def show_status(self) -> dict:
        st = self.status()
        lines = [f"Timings: {st['start']} to {st['end']}", f"Deck: {st['deck']}"]
        if st['observed'] and st['selected']:
            lines += ['Selected text:'] + st['selected']
        self._notify('\n'.join(lines), duration=3)
        return {'ok': True, **st}

    # ── Helpers ───────────────────────────────────────────────────────────────

    def _notify(self, message: str, level: str = 'info', duration: float = 1) -> None:
        self._player.notify(message, level, duration)

    def _report(self, error: MinerError) -> dict:
        if isinstance(error, (UserInputError, RecencyError)):
            self._notify(str(error), 'warn', 2)
        else:
            self._notify(f'Error: {error}.', 'error', 2)
        return {'ok': False, 'error': str(error)}

    def _substitute(self, fmt: str) -> str:
        return substitute_fmt(fmt, self._player.filename(), self._player.time_pos(), self._settings)

    def _tags(self) -> list[str]:
        if is_empty(self._settings.note_tag):
            return []
        return self._substitute(self._settings.note_tag).split()

    def _audio_padding(self) -> float:
        if self._settings.audio_padding == 0.0 or not self._player.duration():
            return 0.0
        # User-set timings are meant to be exact.
        if self.session.timings.is_set('start') or self.session.timings.is_set('end'):
            return 0.0
        return self._settings.audio_padding

    def _resolve(self) -> Sentence | None:
        return self.session.get(self._player.current_subtitle, self._settings.nuke_spaces)

    def _media_job(self, snapshot_timestamp: float, snapshot_filename: str,
                   sentence: Sentence, audio_filename: str, padding: float):
        """Returns a callable that queues snapshot + audio creation. Nothing waits on it."""
        start, end = sentence.start, sentence.end

        def _on_done(future: Future):
            error = future.exception()
            if error is not None:
                print(f'[api] Media creation failed: {error}')

        def _create_media():
            self._loop.run_in_background(
                lambda: self._encoder.create_snapshot(snapshot_timestamp, snapshot_filename),
                _on_done, lane='media',
            )
            self._loop.run_in_background(
                lambda: self._encoder.create_audio(start, end, audio_filename, padding),
                _on_done, lane='media',
            )

        return _create_media

    def _build_fields(self, sentence: Sentence, snapshot_filename: str, audio_filename: str) -> dict:
        miscinfo = ''
        if self._settings.miscinfo_enable:
            miscinfo = self._substitute(self._settings.miscinfo_format)
        return note_fields.construct_note_fields(
            self._settings, sentence.text, sentence.secondary,
            snapshot_filename, audio_filename, miscinfo,
        )

    # ── Timings ───────────────────────────────────────────────────────────────

    def set_timing(self, position: str) -> dict:
        """Set start/end to the current playback position."""
        time_pos = self._player.time_pos()
        if time_pos is None:
            return self._report(UserInputError('Nothing is playing.'))
        self.session.set_timing(position, time_pos)
        self._notify(f'{position.capitalize()} time has been set.')
        return {'ok': True, position: time_pos}

    def set_timing_to_sub(self, position: str) -> dict:
        """Set start/end to the bound of the visible subtitle."""
        try:
            self.session.set_timing_to_sub(position, self._player.current_subtitle())
        except UserInputError as e:
            return self._report(e)
        self._notify(f'{position.capitalize()} time has been set.')
        return {'ok': True, position: self.session.timings.get(position)}

    def set_starting_line(self) -> dict:
        try:
            self.session.set_starting_line(self._player.current_subtitle())
        except UserInputError as e:
            return self._report(e)
        self._notify('Timings have been set to the current sub.', duration=2)
        return {'ok': True}

    def clear_timings(self) -> dict:
        self.session.clear()
        self._notify('Timings have been reset.', duration=2)
        return {'ok': True}

    # ── Add note ──────────────────────────────────────────────────────────────

    def export_note(self, gui: bool = False) -> dict:
        """
        Create a new note from the capture session.
        gui=True opens Anki's Add dialog (guiAddCards) prefilled instead.
        """
        sentence = self._resolve()
        if sentence is None:
            return self._report(UserInputError('Nothing to export.'))

        if not gui and is_empty(sentence.text):
            sentence.text = note_fields.placeholder_text()

        snapshot_timestamp = self._player.time_pos() or 0.0
        snapshot_filename = self._filenames.make_snapshot_filename(
            snapshot_timestamp, self._settings.snapshot_extension)
        audio_filename = self._filenames.make_audio_filename(
            sentence.start, sentence.end, self._settings.audio_extension)

        create_media = self._media_job(
            snapshot_timestamp, snapshot_filename, sentence, audio_filename, self._audio_padding())
        create_media()

        fields = self._build_fields(sentence, snapshot_filename, audio_filename)
        self._anki.add_note(fields, self._tags(), gui=gui, on_done=self._on_note_added)
        self.session.clear()
        return {'ok': True, 'fields': fields}

    def _on_note_added(self, note_id, error: AnkiConnectError | None) -> None:
        if error is not None:
            self._notify(f'Error: {error}.', 'error', 2)
        else:
            self._notify(f'Note added. ID = {note_id}.')

    # ── Update last note ──────────────────────────────────────────────────────

    def update_last_note(self, overwrite: bool = False) -> dict:
        """
        Add the captured sentence, audio and snapshot to the note added last.
        overwrite=True replaces audio/image/misc-info instead of joining them.
        """
        sentence = self._resolve()
        if sentence is None:
            return self._report(UserInputError('Nothing to export. Have you set the timings?'))
        if is_empty(sentence.text):
            # Keep whatever text the note has; the user may be adding audio to
            # a manually transcribed card.
            sentence.text = None

        try:
            last_note_id = self._anki.get_last_note_id()
        except AnkiConnectError as e:
            return self._report(e)
        if last_note_id < 0 or last_note_id < minutes_ago_ms(RECENCY_WINDOW_MINUTES):
            return self._report(RecencyError("Couldn't find the target note."))

        try:
            stored = self._anki.get_note_fields(last_note_id)
        except AnkiConnectError as e:
            return self._report(e)

        snapshot_timestamp = self._player.time_pos() or 0.0
        snapshot_filename = self._filenames.make_snapshot_filename(
            snapshot_timestamp, self._settings.snapshot_extension)
        audio_filename = self._filenames.make_audio_filename(
            sentence.start, sentence.end, self._settings.audio_extension)
        create_media = self._media_job(
            snapshot_timestamp, snapshot_filename, sentence, audio_filename, self._audio_padding())

        fresh = self._build_fields(sentence, snapshot_filename, audio_filename)
        merged = note_fields.merge_fields(
            self._settings, fresh, stored,
            pronunciation=self._forvo.get_pronunciation,
            overwrite=overwrite,
        )

        # AnkiConnect can't update a note that is open in the Browser. Move the selection away first.
        self._anki.gui_browse('nid:1')
        self._anki.update_note_fields(
            last_note_id, merged,
            on_done=lambda _result, error: self._on_note_updated(last_note_id, error, create_media),
        )
        self.session.clear()
        return {'ok': True, 'note_id': last_note_id, 'fields': merged}

    def _on_note_updated(self, note_id: int, error: AnkiConnectError | None, create_media) -> None:
        if error is not None:
            self._notify(f'Error: {error}.', 'error', 2)
            return
        create_media()
        if not is_empty(self._settings.note_tag):
            self._anki.add_tag(note_id, self._substitute(self._settings.note_tag))
        self._anki.gui_browse(f'nid:{note_id}')
        self._notify(f'Note #{note_id} updated.')

    def shutdown(self) -> None:
        self.session.clear()
        self._loop.shutdown()

"""
AnkiConnect HTTP API wrapper.
All requests are POST to http://127.0.0.1:8765 with a JSON body:
    {"action": ..., "version": 6, "params": {...}}
and every reply is {"result": ..., "error": ...}.

Reads (findNotes, notesInfo) are synchronous: the update workflow needs
their answer before it can go on. Writes can be dispatched on the event loop
with a completion callback(result, error) that runs back on the loop thread.
No retries anywhere: a failed call is reported once and that's it.
"""

import json
from dataclasses import dataclass
from typing import Any, Callable

import requests

from miner.errors import (
    AnkiConnectError,
    ApplicationError,
    MalformedResponseError,
    TransportError,
)
from miner.utils import is_empty

API_VERSION = 6
DEFAULT_URL = 'http://127.0.0.1:8765'

OnDone = Callable[[Any, AnkiConnectError | None], None]


@dataclass
class TransportResult:
    status: int
    stdout: str


class HttpTransport:
    """Sends one JSON body and hands back (status, stdout). Fails closed on timeout."""

    def __init__(self, url: str = DEFAULT_URL, timeout: float = 10):
        self.url = url
        self.timeout = timeout

    def __call__(self, request_json: str) -> TransportResult:
        try:
            response = requests.post(
                self.url,
                data=request_json.encode('utf-8'),
                headers={'Content-Type': 'application/json; charset=UTF-8'},
                timeout=self.timeout,
            )
            return TransportResult(status=0, stdout=response.text)
        except requests.exceptions.Timeout:
            print(f'[anki] Request to {self.url} timed out.')
            return TransportResult(status=28, stdout='')
        except requests.exceptions.RequestException as e:
            print(f'[anki] Request to {self.url} failed: {e}')
            return TransportResult(status=7, stdout='')


def parse_result(output: TransportResult | None) -> Any:
    """Unwrap an AnkiConnect reply or raise the matching AnkiConnectError."""
    if output is None:
        raise MalformedResponseError('Failed to format json or no args passed')
    if output.status != 0:
        raise TransportError("AnkiConnect isn't running")
    try:
        data = json.loads(output.stdout)
    except (TypeError, ValueError):
        data = None
    if not isinstance(data, dict):
        raise MalformedResponseError('Fatal error from AnkiConnect')
    if data.get('error') is not None:
        raise ApplicationError(str(data['error']))
    return data.get('result')


class AnkiConnect:
    def __init__(self, settings, transport: Callable[[str], TransportResult] | None = None, loop=None):
        self._settings = settings
        self._transport = transport or HttpTransport(settings.ankiconnect_url)
        self._loop = loop

    # ── Internal helpers ──────────────────────────────────────────────────────

    def execute(self, request: dict) -> TransportResult | None:
        """Send a raw request envelope. None means it couldn't be serialised."""
        try:
            request_json = json.dumps(request, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            print(f'[anki] Could not encode {request.get("action")!r}: {e}')
            return None
        return self._transport(request_json)

    def request(self, action: str, **params) -> Any:
        """Blocking call. Raises AnkiConnectError."""
        return parse_result(self.execute({'action': action, 'version': API_VERSION, 'params': params}))

    def request_async(self, action: str, on_done: OnDone | None = None, **params) -> None:
        """
        Fire the call on the event loop's 'anki' lane, after any write already queued.
        on_done(result, error) runs on the loop thread; error is None on success.
        Without a loop the call is made inline.
        """
        def _call():
            return self.request(action, **params)

        if self._loop is None:
            self._settle(action, on_done, _call)
        else:
            self._loop.run_in_background(
                _call, lambda future: self._settle(action, on_done, future.result), lane='anki',
            )

    @staticmethod
    def _settle(action: str, on_done: OnDone | None, get_result: Callable[[], Any]) -> None:
        try:
            result, error = get_result(), None
        except AnkiConnectError as e:
            result, error = None, e
        if on_done is not None:
            on_done(result, error)
        elif error is not None:
            print(f"[anki] {action} failed: {error}")

    # ── Public API ────────────────────────────────────────────────────────────

    def store_file(self, filename: str, path: str) -> bool:
        """Copy a local file into Anki's media collection. Blocking."""
        try:
            self.request('storeMediaFile', filename=filename, path=path)
        except AnkiConnectError as e:
            print(f"[anki] Couldn't store file '{filename}': {e}")
            return False
        print(f"[anki] File stored: '{filename}'.")
        return True

    def create_deck(self, deck_name: str) -> None:
        """changeDeck with no cards creates the deck if it's missing."""
        def _done(_result, error):
            if error is None:
                print(f'[anki] Deck {deck_name}: check completed.')
            else:
                print(f'[anki] Deck {deck_name}: check failed. Reason: {error}.')

        self.request_async('changeDeck', _done, cards=[], deck=deck_name)

    def add_note(self, fields: dict, tags: list[str], gui: bool = False,
                 on_done: OnDone | None = None) -> None:
        action = 'guiAddCards' if gui else 'addNote'
        note = {
            'deckName': self._settings.deck_name,
            'modelName': self._settings.model_name,
            'fields': fields,
            'options': {
                'allowDuplicate': self._settings.allow_duplicates,
                'duplicateScope': 'deck',
            },
            'tags': tags,
        }
        self.request_async(action, on_done, note=note)

    def get_last_note_id(self) -> int:
        """Newest note added today, or -1. Note ids are creation times in ms."""
        note_ids = self.request('findNotes', query='added:1')
        if not note_ids:
            return -1
        return max(note_ids)

    def get_note_fields(self, note_id: int) -> dict[str, str]:
        """notesInfo flattened to {field_name: value}."""
        result = self.request('notesInfo', notes=[note_id])
        # A missing note comes back as [{}].
        if not result or not result[0] or not isinstance(result[0], dict):
            raise MalformedResponseError(f'Note {note_id} not found')
        fields = result[0].get('fields') or {}
        return {
            name: data.get('value', '') if isinstance(data, dict) else str(data)
            for name, data in fields.items()
        }

    def gui_browse(self, query: str) -> None:
        if self._settings.disable_gui_browse:
            return
        self.request_async('guiBrowse', query=query)

    def add_tag(self, note_id: int, tag: str) -> None:
        if is_empty(tag):
            return
        self.request_async('addTags', notes=[note_id], tags=tag)

    def update_note_fields(self, note_id: int, fields: dict, on_done: OnDone | None = None) -> None:
        self.request_async('updateNoteFields', on_done, note={'id': note_id, 'fields': fields})

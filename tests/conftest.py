import base64
import json
import os
import sys

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from miner.anki import AnkiConnect, TransportResult  # noqa: E402
from miner.loop import EventLoop  # noqa: E402
from miner.player import Player  # noqa: E402
from miner.subtitles import Subtitle  # noqa: E402
from settings import Settings  # noqa: E402


class FakePlayer(Player):
    def __init__(self, filename='[Group] Show Name - 05 [1080p].mkv'):
        self.sub: Subtitle | None = None
        self.position: float | None = 12.5
        self.length: float | None = 1440.0
        self.name = filename
        self.observers = []
        self.messages = []

    def current_subtitle(self):
        return self.sub

    def time_pos(self):
        return self.position

    def duration(self):
        return self.length

    def filename(self):
        return self.name

    def path(self):
        return '/videos/' + self.name

    def observe_subtitles(self, callback):
        self.observers.append(callback)

    def unobserve_subtitles(self, callback):
        self.observers.remove(callback)

    def notify(self, message, level='info', duration=1):
        self.messages.append((level, message))

    def show(self, sub: Subtitle | None):
        """Make `sub` the visible line and fire the sub-text observers."""
        self.sub = sub
        for cb in list(self.observers):
            cb(sub)

    @property
    def last_message(self):
        return self.messages[-1][1] if self.messages else None


MP3_PATH = '9/8/98_7_6_5.mp3'
OGG_PATH = '9/8/98_7_6_5.ogg'


def b64(text):
    return base64.b64encode(text.encode()).decode()


PAGE = f"""
<html><body>
<ul class="pronunciations">
  <li><span class="play" onclick="Play(1234,'{b64(MP3_PATH)}','{b64(OGG_PATH)}',false,'','','h');return false;">語</span></li>
  <li><span class="play" onclick="Play(99,'{b64('other.mp3')}','{b64('other.ogg')}',false);return false;">語</span></li>
</ul>
</body></html>
"""


class FakeResponse:
    def __init__(self, status_code=200, text='', content=b''):
        self.status_code = status_code
        self.text = text
        self.content = content

    def iter_content(self, chunk_size):
        for i in range(0, len(self.content), chunk_size):
            yield self.content[i:i + chunk_size]


class FakeSession:
    def __init__(self, page=PAGE, audio=b'\x00' * 2048, error=None):
        self.page = page
        self.audio = audio
        self.error = error
        self.urls = []

    def get(self, url, timeout=None, headers=None, stream=False):
        self.urls.append(url)
        if self.error:
            raise self.error
        if url.startswith('https://forvo.com/search/'):
            return FakeResponse(text=self.page)
        return FakeResponse(content=self.audio)


class FakeTransport:
    """Answers AnkiConnect actions from a table; records every request body."""

    def __init__(self, responses=None):
        self.responses = responses or {}
        self.requests = []

    def __call__(self, request_json):
        request = json.loads(request_json)
        self.requests.append(request)
        reply = self.responses.get(request['action'], {'result': None, 'error': None})
        if isinstance(reply, TransportResult):
            return reply
        if callable(reply):
            reply = reply(request['params'])
        return TransportResult(status=0, stdout=json.dumps(reply))

    def actions(self):
        return [r['action'] for r in self.requests]

    def params(self, action):
        return [r['params'] for r in self.requests if r['action'] == action]


class RecordingEncoder:
    def __init__(self, fail=False):
        self.fail = fail
        self.snapshots = []
        self.audio = []

    def create_snapshot(self, timestamp, filename):
        self.snapshots.append((timestamp, filename))
        if self.fail:
            raise RuntimeError('ffmpeg failed')
        return filename

    def create_audio(self, start, end, filename, padding=0.0):
        self.audio.append((start, end, filename, padding))
        if self.fail:
            raise RuntimeError('ffmpeg failed')
        return filename


class StubForvo:
    def __init__(self, result=None):
        self.result = result
        self.words = []

    def get_pronunciation(self, word):
        self.words.append(word)
        return self.result


def ok(result):
    return {'result': result, 'error': None}


def fail(message):
    return {'result': None, 'error': message}


@pytest.fixture
def settings(tmp_path):
    return Settings(tmp_dir=str(tmp_path))


@pytest.fixture
def loop():
    event_loop = EventLoop()
    yield event_loop
    event_loop.shutdown()


@pytest.fixture
def player():
    return FakePlayer()


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def anki(settings, transport, loop):
    return AnkiConnect(settings, transport=transport, loop=loop)

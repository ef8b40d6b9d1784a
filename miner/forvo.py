"""
Word pronunciations from Forvo.

The search page for a word embeds play buttons like
    onclick="Play(123,'OTg3...','Njc4...',false,...);return false;"
whose quoted arguments are base64-encoded paths of the mp3 and ogg
recordings. The first button is the top-rated pronunciation.

Audio is re-encoded to the configured format before it's stored in Anki so
that it matches the sentence clips. Returns '[sound:...]' or None; a missing
word is normal and only logged.
"""

import base64
import binascii
import os
import re
import subprocess
import time
import urllib.parse

import requests
from bs4 import BeautifulSoup

from miner.utils import remove_special_characters

SEARCH_URL = 'https://forvo.com/search/{word}/ja'
AUDIO_URL = 'https://audio00.forvo.com/{format}/{path}'

_PLAY_RE = re.compile(r'Play\((.*?)\);')
_QUOTED_RE = re.compile(r"'(.*?)'")
_MIN_VALID_SIZE = 500  # bytes — smaller than this is an error page, not audio
_TIMEOUT_SECS = 12

# Headers to mimic a browser to avoid being blocked
HEADERS = {
    'User-Agent': 'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36',
    'Accept': 'text/html,application/xhtml+xml,audio/*;q=0.9,*/*;q=0.5',
}


def extract_play_params(page: str) -> list[str] | None:
    """Quoted arguments of the first Play(...) handler on a Forvo search page."""
    soup = BeautifulSoup(page, 'lxml')
    for tag in soup.find_all(onclick=_PLAY_RE):
        m = _PLAY_RE.search(tag['onclick'])
        if m:
            return _QUOTED_RE.findall(m.group(1))
    # Some page versions wire the buttons up from inline script instead.
    m = _PLAY_RE.search(page)
    return _QUOTED_RE.findall(m.group(1)) if m else None


def decode_audio_path(encoded: str) -> str | None:
    try:
        return base64.b64decode(encoded, validate=False).decode('utf-8')
    except (binascii.Error, UnicodeDecodeError):
        return None


def build_audio_url(page: str, file_format: str) -> str | None:
    """file_format: 'mp3' or 'ogg'."""
    params = extract_play_params(page)
    if not params:
        return None
    formats = dict(zip(('mp3', 'ogg'), params))
    encoded = formats.get(file_format)
    if not encoded:
        return None
    path = decode_audio_path(encoded)
    if not path:
        return None
    return AUDIO_URL.format(format=file_format, path=path)


class Forvo:
    def __init__(self, settings, store_file, tmp_dir: str, session=None):
        """store_file(filename, path) -> bool: usually AnkiConnect.store_file."""
        self._settings = settings
        self._store_file = store_file
        self._tmp_dir = tmp_dir
        self._http = session or requests.Session()

    @property
    def file_format(self) -> str:
        return self._settings.audio_extension.lstrip('.')

    def make_filename(self, word: str) -> str:
        safe = remove_special_characters(word) or str(int(time.time()))
        return f'forvo_{safe}{self._settings.audio_extension}'

    def get_pronunciation_url(self, word: str) -> str | None:
        url = SEARCH_URL.format(word=urllib.parse.quote_plus(word))
        try:
            resp = self._http.get(url, timeout=_TIMEOUT_SECS, headers=HEADERS)
        except requests.exceptions.RequestException as e:
            print(f'[forvo] Search failed for {word}: {e}')
            return None
        if resp.status_code != 200:
            print(f'[forvo] Search for {word} returned HTTP {resp.status_code}')
            return None
        return build_audio_url(resp.text, self.file_format)

    def _download(self, url: str, dest_path: str) -> bool:
        """Download url to dest_path. Returns True if download succeeded and file is valid."""
        try:
            resp = self._http.get(url, timeout=_TIMEOUT_SECS, headers=HEADERS, stream=True)
            if resp.status_code != 200:
                return False
            with open(dest_path, 'wb') as f:
                for chunk in resp.iter_content(8192):
                    f.write(chunk)
        except (requests.exceptions.RequestException, OSError) as e:
            print(f'[forvo] Download error for {url}: {e}')
            return False
        return os.path.getsize(dest_path) >= _MIN_VALID_SIZE

    def reencode_cmd(self, source_path: str, dest_path: str) -> list[str]:
        s = self._settings
        return [
            'ffmpeg', '-y', '-hide_banner', '-nostdin', '-loglevel', 'error',
            '-i', source_path,
            '-vn', '-sn',
            '-map_metadata', '-1',
            '-ac', '1',
            '-af', 'silenceremove=1:0:-50dB',
            '-c:a', s.audio_codec,
            '-b:a', s.audio_bitrate,
            dest_path,
        ]

    def _reencode_and_store(self, source_path: str, filename: str) -> bool:
        reencoded_path = os.path.join(self._tmp_dir, 'reencoded_' + filename)
        try:
            result = subprocess.run(
                self.reencode_cmd(source_path, reencoded_path),
                capture_output=True, timeout=_TIMEOUT_SECS,
            )
            if result.returncode != 0:
                print(f'[forvo] Re-encoding {filename} failed: {result.stderr.decode(errors="replace")}')
                return False
            return self._store_file(filename, reencoded_path)
        except subprocess.TimeoutExpired:
            print(f'[forvo] Re-encoding {filename} timed out.')
            return False
        except OSError as e:
            print(f'[forvo] Could not run ffmpeg for {filename}: {e}')
            return False
        finally:
            if os.path.exists(reencoded_path):
                os.remove(reencoded_path)

    def get_pronunciation(self, word: str) -> str | None:
        word = re.sub(r'<[^>]+>', '', word).strip()
        audio_url = self.get_pronunciation_url(word)
        if not audio_url:
            print(f"[forvo] Seems like Forvo doesn't have audio for word {word}.")
            return None

        try:
            os.makedirs(self._tmp_dir, exist_ok=True)
        except OSError as e:
            print(f'[forvo] Could not create {self._tmp_dir}: {e}')
            return None
        filename = self.make_filename(word)
        tmp_path = os.path.join(self._tmp_dir, filename)

        result = None
        try:
            if self._download(audio_url, tmp_path) and self._reencode_and_store(tmp_path, filename):
                result = f'[sound:{filename}]'
            else:
                print(f"[forvo] Couldn't download audio for word {word} from Forvo.")
        finally:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
        return result

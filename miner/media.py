"""
ffmpeg wrappers for audio clips and snapshots.
ffmpeg must be in PATH.

Each file is written to the temp dir, handed to Anki via storeMediaFile and
then deleted. The caller runs these off the loop thread and doesn't wait for
them: a failed clip never blocks or rolls back the note it belongs to.
"""

import os
import shlex
import subprocess
from typing import Callable

_TIMEOUT_SECS = 60


def _ffmpeg_quality(quality: int, worst: int, best: int) -> int:
    """Map 0 (lowest) .. 100 (highest) onto an encoder's native quality scale."""
    quality = max(0, min(100, quality))
    return round(worst + (best - worst) * quality / 100)


class Encoder:
    def __init__(self, settings, store_file: Callable[[str, str], bool], tmp_dir: str,
                 source: Callable[[], str | None]):
        """
        store_file(filename, path) -> bool: usually AnkiConnect.store_file.
        source() -> path or URL of the media currently playing.
        """
        self._settings = settings
        self._store_file = store_file
        self._tmp_dir = tmp_dir
        self._source = source

    # ── Command builders ──────────────────────────────────────────────────────

    def snapshot_cmd(self, source: str, timestamp: float, output_path: str) -> list[str]:
        s = self._settings
        cmd = [
            'ffmpeg', '-y', '-hide_banner', '-nostdin', '-loglevel', 'error',
            '-ss', f'{timestamp:.3f}',
            '-i', source,
            '-map_metadata', '-1',
            '-an', '-sn',
            '-vframes', '1',
            '-vf', f'scale={s.snapshot_width}:{s.snapshot_height}',
            '-c:v', s.snapshot_codec,
        ]
        if s.snapshot_format == 'webp':
            cmd += ['-quality', str(_ffmpeg_quality(s.snapshot_quality, 0, 100)), '-lossless', '0']
        else:
            # mjpeg: 31 is the worst, 2 the best.
            cmd += ['-q:v', str(_ffmpeg_quality(s.snapshot_quality, 31, 2))]
        cmd.append(output_path)
        return cmd

    def audio_cmd(self, source: str, start: float, end: float, output_path: str,
                  padding: float = 0.0) -> list[str]:
        s = self._settings
        padded_start = max(0.0, start - padding)
        duration = (end + padding) - padded_start
        cmd = [
            'ffmpeg', '-y', '-hide_banner', '-nostdin', '-loglevel', 'error',
            '-vn', '-sn',
            '-ss', f'{padded_start:.3f}',
            '-i', source,
            '-t', f'{duration:.3f}',
            '-map_metadata', '-1',
            '-map', '0:a:0?',
            '-ac', '1',
            '-c:a', s.audio_codec,
            '-b:a', s.audio_bitrate,
        ]
        if s.audio_format == 'opus':
            cmd += ['-vbr', 'on', '-compression_level', '10', '-application', 'voip']
        cmd += shlex.split(s.ffmpeg_audio_args or '')
        cmd.append(output_path)
        return cmd

    # ── Public API ────────────────────────────────────────────────────────────

    def _run_and_store(self, cmd: list[str], filename: str, output_path: str) -> str:
        os.makedirs(self._tmp_dir, exist_ok=True)
        try:
            subprocess.run(cmd, capture_output=True, check=True, timeout=_TIMEOUT_SECS)
        except subprocess.CalledProcessError as e:
            raise RuntimeError(f"ffmpeg failed for '{filename}': {e.stderr.decode(errors='replace')}")
        except subprocess.TimeoutExpired:
            raise RuntimeError(f"ffmpeg timed out for '{filename}'")
        try:
            if not self._store_file(filename, output_path):
                raise RuntimeError(f"Anki refused '{filename}'")
        finally:
            try:
                os.remove(output_path)
            except OSError:
                pass
        print(f'[media] Created {filename}')
        return filename

    def _require_source(self) -> str:
        source = self._source()
        if not source:
            raise RuntimeError('No media is loaded.')
        return source

    def create_snapshot(self, timestamp: float, filename: str) -> str:
        output_path = os.path.join(self._tmp_dir, filename)
        cmd = self.snapshot_cmd(self._require_source(), timestamp, output_path)
        return self._run_and_store(cmd, filename, output_path)

    def create_audio(self, start: float, end: float, filename: str, padding: float = 0.0) -> str:
        output_path = os.path.join(self._tmp_dir, filename)
        cmd = self.audio_cmd(self._require_source(), start, end, output_path, padding)
        return self._run_and_store(cmd, filename, output_path)

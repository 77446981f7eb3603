"""FFmpeg transcoder: compressed browser audio → raw linear PCM.

Runs ``ffmpeg`` as a subprocess fed entirely through pipes, so no file is
ever written and concurrent calls cannot see each other's data.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from jarvis.constants import TARGET_CHANNELS, TARGET_ENCODING, TARGET_SAMPLE_RATE
from jarvis.errors import DecodeError

logger = logging.getLogger(__name__)

# ffmpeg reports a stream cut off mid-cluster only as a warning and still exits 0.
_TRUNCATION_MARKERS: tuple[str, ...] = (
    "ended prematurely",
    "truncated",
    "truncating",
    "premature end",
    "invalid data found",
)

# Recognizer encoding name → ffmpeg (sample format, codec)
_PCM_FORMATS: dict[str, tuple[str, str]] = {
    "linear16": ("s16le", "pcm_s16le"),
}


@dataclass(frozen=True)
class PcmSpec:
    """Target PCM layout for the recognizer."""

    sample_rate: int = TARGET_SAMPLE_RATE
    encoding: str = TARGET_ENCODING
    channels: int = TARGET_CHANNELS

    @property
    def bytes_per_frame(self) -> int:
        return 2 * self.channels

    def duration(self, pcm: bytes) -> float:
        """Seconds of audio held in *pcm*."""
        return len(pcm) / self.bytes_per_frame / self.sample_rate


def _truncation_warning(stderr: bytes) -> str:
    """Return the first stderr line reporting a cut-off stream, or ''."""
    for line in stderr.decode(errors="replace").splitlines():
        if any(marker in line.lower() for marker in _TRUNCATION_MARKERS):
            return line.strip()
    return ""


class FfmpegTranscoder:
    """Decode a finite compressed audio buffer to PCM via an ``ffmpeg`` subprocess.

    Parameters
    ----------
    binary : str
        ffmpeg executable name or path.
    """

    def __init__(self, binary: str = "ffmpeg") -> None:
        self._binary = binary

    def build_command(self, source_format: str, target: PcmSpec) -> list[str]:
        try:
            sample_fmt, codec = _PCM_FORMATS[target.encoding]
        except KeyError:
            raise DecodeError(f"unsupported target encoding {target.encoding!r}") from None
        return [
            self._binary,
            "-hide_banner",
            "-loglevel", "warning",
            "-xerror",  # exit non-zero on the first decoding error
            "-f", source_format,
            "-i", "pipe:0",
            "-vn",
            "-f", sample_fmt,
            "-acodec", codec,
            "-ar", str(target.sample_rate),
            "-ac", str(target.channels),
            "pipe:1",
        ]

    async def transcode(
        self,
        compressed: bytes,
        source_format: str,
        target: PcmSpec | None = None,
    ) -> bytes:
        """Return *compressed* decoded to PCM laid out as *target*.

        Raises ``DecodeError`` if the input is empty, malformed or truncated.
        """
        target = target or PcmSpec()
        if not compressed:
            raise DecodeError("empty audio buffer")

        cmd = self.build_command(source_format, target)
        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as exc:
            logger.error("[Transcoder] ffmpeg binary %r not found on PATH.", self._binary)
            raise DecodeError("ffmpeg not available") from exc

        try:
            stdout, stderr = await process.communicate(input=compressed)
        except asyncio.CancelledError:
            # Caller timed out or the session closed; reap the child.
            if process.returncode is None:
                process.kill()
                await process.wait()
            raise

        if process.returncode != 0:
            detail = stderr.decode(errors="replace").strip()
            logger.warning(
                "[Transcoder] ffmpeg exited %d for %d-byte %s input: %.200s",
                process.returncode, len(compressed), source_format, detail,
            )
            raise DecodeError(f"ffmpeg exited with {process.returncode}")

        truncation = _truncation_warning(stderr)
        if truncation:
            logger.warning(
                "[Transcoder] %d-byte %s input is truncated: %.200s",
                len(compressed), source_format, truncation,
            )
            raise DecodeError("audio stream is truncated")

        if not stdout:
            raise DecodeError("decoder produced no audio")

        # Drop a trailing partial frame so the buffer is sample-aligned.
        usable = len(stdout) - len(stdout) % target.bytes_per_frame
        pcm = stdout[:usable]
        logger.info(
            "[Transcoder] %d bytes %s → %d bytes PCM (%.2fs @ %d Hz)",
            len(compressed), source_format, len(pcm), target.duration(pcm), target.sample_rate,
        )
        return pcm

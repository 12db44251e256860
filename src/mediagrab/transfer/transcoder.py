"""FFmpeg-based conversion of downloads into streamable MP4."""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path

from mediagrab.shared.exceptions import TranscodeError

logger = logging.getLogger(__name__)

_MODES = ("x264", "copy")


class FFmpegTranscoder:
    """Transcoder implementation using an FFmpeg subprocess.

    Implements the ``Transcoder`` protocol. In ``x264`` mode the input is
    re-encoded to H.264/AAC; in ``copy`` mode the streams are copied into an
    MP4 container. Inputs that already are ``.mp4`` are returned unchanged.
    """

    def __init__(
        self,
        *,
        output_dir: str,
        mode: str = "x264",
        ffmpeg_bin: str = "ffmpeg",
        timeout: int = 7200,
    ) -> None:
        if mode not in _MODES:
            raise ValueError(f"unsupported transcode mode: {mode!r}")
        self._output_dir = output_dir
        self._mode = mode
        self._ffmpeg_bin = ffmpeg_bin
        self._timeout = timeout

    def build_command(self, input_path: str, output_path: str) -> list[str]:
        if self._mode == "copy":
            codec_args = ["-c", "copy"]
        else:
            codec_args = ["-c:v", "libx264", "-preset", "medium", "-crf", "23", "-c:a", "aac", "-b:a", "128k"]
        return [
            self._ffmpeg_bin,
            "-y",
            "-i",
            input_path,
            *codec_args,
            "-movflags",
            "+faststart",
            output_path,
        ]

    async def transcode(self, input_path: str) -> str:
        """Convert ``input_path`` into an MP4 under the output directory.

        Raises:
            TranscodeError: If input doesn't exist, FFmpeg fails, or times out.
        """
        if not os.path.isfile(input_path):
            raise TranscodeError(f"input file not found: {input_path}")
        if Path(input_path).suffix.lower() == ".mp4":
            logger.info("%s is already mp4, skipping transcode", input_path)
            return input_path

        output_path = self.make_output_path(input_path, self._output_dir)
        Path(output_path).parent.mkdir(parents=True, exist_ok=True)
        cmd = self.build_command(input_path, output_path)

        logger.info("transcoding (%s) %s → %s", self._mode, input_path, output_path)

        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            _stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=self._timeout)
        except asyncio.TimeoutError as exc:
            proc.kill()
            raise TranscodeError(f"FFmpeg timed out after {self._timeout}s") from exc
        except FileNotFoundError as exc:
            raise TranscodeError(f"FFmpeg binary not found: {self._ffmpeg_bin}") from exc

        if proc.returncode != 0:
            err_msg = stderr.decode(errors="replace")[-500:] if stderr else "unknown error"
            raise TranscodeError(f"FFmpeg failed (rc={proc.returncode}): {err_msg}")

        if not os.path.isfile(output_path):
            raise TranscodeError(f"FFmpeg produced no output file: {output_path}")

        out_size = os.path.getsize(output_path)
        logger.info("transcode complete: %s (%.1f MB)", output_path, out_size / 1_048_576)
        return output_path

    @staticmethod
    def make_output_path(input_path: str, output_dir: str) -> str:
        """``/dl/Movie.mkv`` -> ``<output_dir>/Movie_converted.mp4``."""
        stem = Path(input_path).stem
        return str(Path(output_dir) / f"{stem}_converted.mp4")

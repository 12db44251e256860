"""Tests for FFmpegTranscoder."""

from __future__ import annotations

import asyncio
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from mediagrab.shared.exceptions import TranscodeError
from mediagrab.transfer.transcoder import FFmpegTranscoder


@pytest.fixture
def transcoder(tmp_path: Path) -> FFmpegTranscoder:
    return FFmpegTranscoder(output_dir=str(tmp_path / "out"), timeout=5)


def _input(tmp_path: Path, name: str = "Blade.Runner.mkv") -> Path:
    path = tmp_path / name
    path.write_text("fake video data")
    return path


class TestBuildCommand:
    def test_x264_mode(self, transcoder: FFmpegTranscoder) -> None:
        cmd = transcoder.build_command("/dl/in.mkv", "/out/in_converted.mp4")

        assert cmd[:4] == ["ffmpeg", "-y", "-i", "/dl/in.mkv"]
        assert "libx264" in cmd
        assert "aac" in cmd
        assert cmd[-3:] == ["-movflags", "+faststart", "/out/in_converted.mp4"]

    def test_copy_mode(self, tmp_path: Path) -> None:
        transcoder = FFmpegTranscoder(output_dir=str(tmp_path), mode="copy")

        cmd = transcoder.build_command("/dl/in.mkv", "/out/in.mp4")

        assert "libx264" not in cmd
        assert cmd[cmd.index("-c") + 1] == "copy"

    def test_unknown_mode_rejected(self, tmp_path: Path) -> None:
        with pytest.raises(ValueError, match="unsupported transcode mode"):
            FFmpegTranscoder(output_dir=str(tmp_path), mode="hevc")


class TestTranscode:
    async def test_success(self, transcoder: FFmpegTranscoder, tmp_path: Path) -> None:
        input_file = _input(tmp_path)
        expected = tmp_path / "out" / "Blade.Runner_converted.mp4"

        mock_proc = AsyncMock()
        mock_proc.communicate.return_value = (b"", b"")
        mock_proc.returncode = 0

        async def fake_exec(*args, **kwargs):
            Path(args[-1]).write_text("converted")
            return mock_proc

        with patch("asyncio.create_subprocess_exec", side_effect=fake_exec) as mock_exec:
            result = await transcoder.transcode(str(input_file))

        assert result == str(expected)
        assert mock_exec.call_args[0][3] == str(input_file)

    async def test_mp4_passes_through(self, transcoder: FFmpegTranscoder, tmp_path: Path) -> None:
        input_file = _input(tmp_path, "movie.MP4")

        with patch("asyncio.create_subprocess_exec") as mock_exec:
            assert await transcoder.transcode(str(input_file)) == str(input_file)

        mock_exec.assert_not_called()

    async def test_input_not_found(self, transcoder: FFmpegTranscoder) -> None:
        with pytest.raises(TranscodeError, match="input file not found"):
            await transcoder.transcode("/nonexistent/file.mkv")

    async def test_ffmpeg_fails(self, transcoder: FFmpegTranscoder, tmp_path: Path) -> None:
        input_file = _input(tmp_path)

        mock_proc = AsyncMock()
        mock_proc.communicate.return_value = (b"", b"Invalid data found")
        mock_proc.returncode = 1

        with patch("asyncio.create_subprocess_exec", return_value=mock_proc):
            with pytest.raises(TranscodeError, match="FFmpeg failed \\(rc=1\\): Invalid data found"):
                await transcoder.transcode(str(input_file))

    async def test_missing_output(self, transcoder: FFmpegTranscoder, tmp_path: Path) -> None:
        input_file = _input(tmp_path)

        mock_proc = AsyncMock()
        mock_proc.communicate.return_value = (b"", b"")
        mock_proc.returncode = 0

        with patch("asyncio.create_subprocess_exec", return_value=mock_proc):
            with pytest.raises(TranscodeError, match="no output file"):
                await transcoder.transcode(str(input_file))

    async def test_timeout_kills_process(self, transcoder: FFmpegTranscoder, tmp_path: Path) -> None:
        input_file = _input(tmp_path)

        mock_proc = AsyncMock()
        mock_proc.communicate.side_effect = asyncio.TimeoutError()
        mock_proc.kill = MagicMock()

        with patch("asyncio.create_subprocess_exec", return_value=mock_proc):
            with pytest.raises(TranscodeError, match="timed out"):
                await transcoder.transcode(str(input_file))

        mock_proc.kill.assert_called_once()

    async def test_binary_not_found(self, transcoder: FFmpegTranscoder, tmp_path: Path) -> None:
        input_file = _input(tmp_path)

        with patch("asyncio.create_subprocess_exec", side_effect=FileNotFoundError("ffmpeg")):
            with pytest.raises(TranscodeError, match="FFmpeg binary not found"):
                await transcoder.transcode(str(input_file))


class TestMakeOutputPath:
    def test_appends_suffix(self) -> None:
        assert FFmpegTranscoder.make_output_path("/downloads/Movie.mkv", "/output") == "/output/Movie_converted.mp4"

    def test_nested_input(self) -> None:
        assert FFmpegTranscoder.make_output_path("/a/b/c/movie.avi", "/out/dir") == "/out/dir/movie_converted.mp4"

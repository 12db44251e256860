"""Tests for TransferOrchestrator."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock

import httpx
import pytest
import respx

from mediagrab.shared.enums import Quality
from mediagrab.shared.exceptions import TransferError, TransferStateError, TransferTimeoutError
from mediagrab.shared.models import TorrentFile, TorrentStatus, TransferCandidate
from mediagrab.transfer.orchestrator import TransferOrchestrator

HASH = "da39a3ee5e6b4b0d3255bfef95601890afd80709"


def _status(progress: float, state: str = "downloading", **kwargs) -> TorrentStatus:
    return TorrentStatus(hash=HASH, name="Blade.Runner.1982.1080p", progress=progress, state=state, **kwargs)


@pytest.fixture
def daemon() -> AsyncMock:
    mock = AsyncMock()
    mock.add_magnet.return_value = HASH
    mock.add_torrent_file.return_value = HASH
    mock.files.return_value = []
    return mock


@pytest.fixture
def sleep() -> AsyncMock:
    return AsyncMock()


def _orchestrator(daemon: AsyncMock, sleep: AsyncMock, **kwargs) -> TransferOrchestrator:
    kwargs.setdefault("max_attempts", 20)
    kwargs.setdefault("stuck_threshold", 10)
    return TransferOrchestrator(daemon, sleep=sleep, **kwargs)


class TestWaitComplete:
    async def test_completes(self, daemon: AsyncMock, sleep: AsyncMock) -> None:
        daemon.info.side_effect = [_status(0.2), _status(0.7), _status(1.0, "stalledUP")]

        status = await _orchestrator(daemon, sleep, poll_interval=30).wait_complete(HASH)

        assert status.state == "stalledUP"
        assert daemon.info.await_count == 3
        sleep.assert_awaited_with(30)

    async def test_stuck_transfer_restarted_once(self, daemon: AsyncMock, sleep: AsyncMock) -> None:
        daemon.info.side_effect = [_status(0.5)] * 12 + [_status(1.0)]

        await _orchestrator(daemon, sleep).wait_complete(HASH)

        daemon.pause.assert_awaited_once_with(HASH)
        daemon.resume.assert_awaited_once_with(HASH)

    async def test_progress_resets_stuck_counter(self, daemon: AsyncMock, sleep: AsyncMock) -> None:
        polls = [_status(0.1 + i * 0.01) for i in range(15)] + [_status(1.0)]
        daemon.info.side_effect = polls

        await _orchestrator(daemon, sleep, stuck_threshold=3).wait_complete(HASH)

        daemon.pause.assert_not_awaited()

    async def test_error_state(self, daemon: AsyncMock, sleep: AsyncMock) -> None:
        daemon.info.side_effect = [_status(0.3), _status(0.3, "missingFiles")]

        with pytest.raises(TransferStateError, match="missingFiles"):
            await _orchestrator(daemon, sleep).wait_complete(HASH)

    async def test_vanished_torrent(self, daemon: AsyncMock, sleep: AsyncMock) -> None:
        daemon.info.return_value = None

        with pytest.raises(TransferStateError, match="not found"):
            await _orchestrator(daemon, sleep).wait_complete(HASH)

    async def test_timeout(self, daemon: AsyncMock, sleep: AsyncMock) -> None:
        daemon.info.side_effect = [_status(0.1 * i) for i in range(1, 4)]

        with pytest.raises(TransferTimeoutError, match="after 3 polls"):
            await _orchestrator(daemon, sleep, max_attempts=3).wait_complete(HASH)


class TestLocateFile:
    async def test_content_path_is_video(self, daemon: AsyncMock, sleep: AsyncMock, tmp_path: Path) -> None:
        movie = tmp_path / "movie.mkv"
        movie.write_bytes(b"data")

        status = _status(1.0, content_path=str(movie), save_path=str(tmp_path))

        assert await _orchestrator(daemon, sleep).locate_file(status) == str(movie)

    async def test_directory_uses_daemon_listing(self, daemon: AsyncMock, sleep: AsyncMock, tmp_path: Path) -> None:
        folder = tmp_path / "Blade Runner"
        folder.mkdir()
        (folder / "movie.mkv").write_bytes(b"x" * 10)
        (folder / "sample.mkv").write_bytes(b"x" * 100)
        daemon.files.return_value = [
            TorrentFile(name="Blade Runner/missing.mkv", size=5000),
            TorrentFile(name="Blade Runner/movie.mkv", size=1000),
            TorrentFile(name="Blade Runner/sample.mkv", size=50),
            TorrentFile(name="Blade Runner/cover.jpg", size=9000),
        ]
        status = _status(1.0, content_path=str(folder), save_path=str(tmp_path))

        result = await _orchestrator(daemon, sleep).locate_file(status)

        assert result == str(folder / "movie.mkv")

    async def test_directory_scan_when_listing_fails(
        self, daemon: AsyncMock, sleep: AsyncMock, tmp_path: Path
    ) -> None:
        folder = tmp_path / "Blade Runner"
        folder.mkdir()
        (folder / "movie.mkv").write_bytes(b"x" * 10)
        (folder / "big.avi").write_bytes(b"x" * 100)
        daemon.files.side_effect = TransferError("qBittorrent torrents/files returned 500: boom")
        status = _status(1.0, content_path=str(folder), save_path=str(tmp_path))

        assert await _orchestrator(daemon, sleep).locate_file(status) == str(folder / "big.avi")

    async def test_falls_back_to_save_path_scan(self, daemon: AsyncMock, sleep: AsyncMock, tmp_path: Path) -> None:
        movie = tmp_path / "Blade.Runner.1982.1080p.mkv"
        movie.write_bytes(b"data")
        status = _status(1.0, content_path=str(tmp_path / "gone"), save_path=str(tmp_path))

        assert await _orchestrator(daemon, sleep).locate_file(status) == str(movie)


class TestSubmit:
    async def test_magnet(self, daemon: AsyncMock, sleep: AsyncMock) -> None:
        assert await _orchestrator(daemon, sleep).submit("magnet:?xt=urn:btih:" + HASH) == HASH
        daemon.add_torrent_file.assert_not_awaited()

    @respx.mock
    async def test_torrent_url_downloaded(self, daemon: AsyncMock, sleep: AsyncMock) -> None:
        respx.get("http://jackett:9117/dl/file.torrent").mock(return_value=httpx.Response(200, content=b"d4:infoe"))

        result = await _orchestrator(daemon, sleep).submit("http://jackett:9117/dl/file.torrent?apikey=x")

        assert result == HASH
        daemon.add_torrent_file.assert_awaited_once_with(b"d4:infoe", "file.torrent")

    @respx.mock
    async def test_torrent_download_failure(self, daemon: AsyncMock, sleep: AsyncMock) -> None:
        respx.get("http://jackett:9117/dl/file.torrent").mock(return_value=httpx.Response(404))

        with pytest.raises(TransferError, match="torrent file download failed"):
            await _orchestrator(daemon, sleep).submit("http://jackett:9117/dl/file.torrent")


class TestAcquire:
    async def test_full_flow(
        self, daemon: AsyncMock, sleep: AsyncMock, sample_candidate: TransferCandidate, tmp_path: Path
    ) -> None:
        movie = tmp_path / "movie.mkv"
        movie.write_bytes(b"data")
        daemon.info.return_value = _status(1.0, "seeding", content_path=str(movie), save_path=str(tmp_path))
        transcoder = AsyncMock()
        transcoder.transcode.return_value = "/out/movie_converted.mp4"

        result = await _orchestrator(daemon, sleep, transcoder=transcoder, settle_delay=5).acquire(sample_candidate)

        assert result == "/out/movie_converted.mp4"
        daemon.add_magnet.assert_awaited_once_with(sample_candidate.locator)
        daemon.delete.assert_awaited_once_with(HASH, delete_files=False)
        transcoder.transcode.assert_awaited_once_with(str(movie))
        sleep.assert_any_await(5)

    async def test_without_transcoder(self, daemon: AsyncMock, sleep: AsyncMock, tmp_path: Path) -> None:
        movie = tmp_path / "movie.mp4"
        movie.write_bytes(b"data")
        daemon.info.return_value = _status(1.0, content_path=str(movie), save_path=str(tmp_path))
        candidate = TransferCandidate(
            title="Blade Runner (1982) 1080p", size=2 * 1024**3, seeders=5, quality=Quality.FHD_1080P, locator="magnet:x"
        )

        assert await _orchestrator(daemon, sleep).acquire(candidate) == str(movie)

    async def test_empty_file_is_unusable(
        self, daemon: AsyncMock, sleep: AsyncMock, sample_candidate: TransferCandidate, tmp_path: Path
    ) -> None:
        movie = tmp_path / "movie.mkv"
        movie.write_bytes(b"")
        daemon.info.return_value = _status(1.0, content_path=str(movie), save_path=str(tmp_path))

        assert await _orchestrator(daemon, sleep).acquire(sample_candidate) is None
        daemon.delete.assert_not_awaited()

    async def test_delete_failure_is_not_fatal(
        self, daemon: AsyncMock, sleep: AsyncMock, sample_candidate: TransferCandidate, tmp_path: Path
    ) -> None:
        movie = tmp_path / "movie.mkv"
        movie.write_bytes(b"data")
        daemon.info.return_value = _status(1.0, content_path=str(movie), save_path=str(tmp_path))
        daemon.delete.side_effect = TransferError("qBittorrent unreachable")

        assert await _orchestrator(daemon, sleep).acquire(sample_candidate) == str(movie)

"""Tests for starting and watching spotdl runs, with a Python one-liner standing in for spotdl."""

import asyncio

import pytest

from downloader import DownloadProcess
from errors import AlreadyInProgressError, NotFoundError
from playlists import TRACK_DOWNLOADED, Track
from sync import SyncSupervisor

from conftest import PLAYLIST_ID, PLAYLIST_URL

WRITES_TRACK = (
    "import pathlib; "
    "print('Downloaded \"Karma Police\"'); "
    "pathlib.Path('Radiohead - Karma Police.mp3').write_bytes(b'ID3')"
)
FAILS = "import sys; sys.stderr.write('rate limited\\n'); sys.exit(2)"
SLOW = "import time; time.sleep(0.5)"
CHATTY = "for i in range(600): print(f'line {i}')"


@pytest.fixture
def playlist(registry):
    playlist = registry.get_or_create(PLAYLIST_ID, PLAYLIST_URL)
    playlist.tracks = [
        Track.from_metadata({"artists": "Radiohead", "name": "Karma Police"}),
        Track.from_metadata({"artists": "Portishead", "name": "Roads"}),
    ]
    return playlist


def _supervisor(registry, tasks, python_cmd, script):
    return SyncSupervisor(registry, tasks, command_factory=python_cmd(script))


@pytest.mark.asyncio
async def test_successful_sync(registry, tasks, python_cmd, playlist):
    sync = _supervisor(registry, tasks, python_cmd, WRITES_TRACK)

    returned = await sync.start_sync(PLAYLIST_ID)

    assert returned is playlist
    assert playlist.status == "syncing"
    assert sync.is_syncing(PLAYLIST_ID)
    process = playlist.process
    assert process.pid is not None

    await tasks.wait_idle()

    assert not process.is_running
    assert process.returncode == 0

    assert playlist.process is None
    assert not sync.is_syncing(PLAYLIST_ID)
    assert playlist.status == "idle"
    assert playlist.error_message is None
    assert playlist.last_sync_at is not None
    assert (playlist.download_dir / "Radiohead - Karma Police.mp3").is_file()
    assert playlist.tracks[0].local_status == TRACK_DOWNLOADED
    assert playlist.downloaded_count == 1
    assert any('[stdout] Downloaded "Karma Police"' in line for line in playlist.logs)


@pytest.mark.asyncio
async def test_nonzero_exit_is_recorded(registry, tasks, python_cmd, playlist):
    sync = _supervisor(registry, tasks, python_cmd, FAILS)

    await sync.start_sync(PLAYLIST_ID)
    await tasks.wait_idle()

    assert playlist.process is None
    assert playlist.status == "error"
    assert playlist.error_message == "exited with code 2"
    assert playlist.last_sync_at is not None
    assert any("[stderr] rate limited" in line for line in playlist.logs)


@pytest.mark.asyncio
async def test_missing_executable(registry, tasks, playlist):
    sync = SyncSupervisor(registry, tasks, spotdl_cmd="/nonexistent/bin/spotdl")

    returned = await sync.start_sync(PLAYLIST_ID)

    assert returned.process is None
    assert returned.status == "error"
    assert returned.error_message.startswith("Failed to start /nonexistent/bin/spotdl")
    assert returned.logs[-1].endswith(returned.error_message)
    assert len(tasks) == 0


@pytest.mark.asyncio
async def test_error_clears_on_next_start(registry, tasks, python_cmd, playlist):
    sync = _supervisor(registry, tasks, python_cmd, FAILS)
    await sync.start_sync(PLAYLIST_ID)
    await tasks.wait_idle()
    assert playlist.error_message

    sync.command_factory = python_cmd(WRITES_TRACK)
    await sync.start_sync(PLAYLIST_ID)

    assert playlist.error_message is None
    await tasks.wait_idle()
    assert playlist.status == "idle"


@pytest.mark.asyncio
async def test_second_start_is_rejected_without_side_effects(registry, tasks, python_cmd, playlist):
    sync = _supervisor(registry, tasks, python_cmd, SLOW)
    await sync.start_sync(PLAYLIST_ID)
    running = playlist.process
    logs_before = list(playlist.logs)

    with pytest.raises(AlreadyInProgressError):
        await sync.start_sync(PLAYLIST_ID)

    assert playlist.process is running
    assert playlist.status == "syncing"
    assert list(playlist.logs) == logs_before

    await tasks.wait_idle()
    assert playlist.status == "idle"


@pytest.mark.asyncio
async def test_concurrent_starts_spawn_one_process(registry, tasks, python_cmd, playlist):
    sync = _supervisor(registry, tasks, python_cmd, SLOW)

    results = await asyncio.gather(
        sync.start_sync(PLAYLIST_ID),
        sync.start_sync(PLAYLIST_ID),
        return_exceptions=True,
    )

    rejected = [r for r in results if isinstance(r, AlreadyInProgressError)]
    assert len(rejected) == 1
    assert len(tasks) == 1
    await tasks.wait_idle()


@pytest.mark.asyncio
async def test_unknown_playlist(registry, tasks, python_cmd):
    sync = _supervisor(registry, tasks, python_cmd, SLOW)

    with pytest.raises(NotFoundError):
        await sync.start_sync("unknown")
    assert not sync.is_syncing("unknown")


@pytest.mark.asyncio
async def test_log_keeps_newest_lines(registry, tasks, python_cmd, playlist):
    sync = _supervisor(registry, tasks, python_cmd, CHATTY)

    await sync.start_sync(PLAYLIST_ID)
    await tasks.wait_idle()

    assert len(playlist.logs) == 500
    assert playlist.logs[0].endswith("[stdout] line 100")
    assert playlist.logs[-1].endswith("[stdout] line 599")


@pytest.mark.asyncio
async def test_download_dir_is_created(registry, tasks, python_cmd, playlist):
    sync = _supervisor(registry, tasks, python_cmd, "pass")
    assert not playlist.download_dir.exists()

    await sync.start_sync(PLAYLIST_ID)
    await tasks.wait_idle()

    assert playlist.download_dir.is_dir()
    assert playlist.downloaded_count == 0


@pytest.mark.asyncio
async def test_unbroken_output_does_not_wedge_the_playlist(registry, tasks, python_cmd, playlist):
    script = "import sys; sys.stdout.write('x' * 70000); sys.stdout.flush()"
    sync = _supervisor(registry, tasks, python_cmd, script)

    await sync.start_sync(PLAYLIST_ID)
    await tasks.wait_idle()

    assert playlist.process is None
    assert playlist.status == "idle"
    assert playlist.last_sync_at is not None
    assert sum(line.count("x") for line in playlist.logs) == 70000

    # The slot is free again
    await sync.start_sync(PLAYLIST_ID)
    await tasks.wait_idle()
    assert playlist.status == "idle"


@pytest.mark.asyncio
async def test_failed_wait_still_releases_the_playlist(registry, tasks, python_cmd, playlist, monkeypatch):
    real_wait = DownloadProcess.wait

    async def wait_then_fail(self):
        await real_wait(self)
        raise RuntimeError("pipe went away")

    monkeypatch.setattr(DownloadProcess, "wait", wait_then_fail)
    sync = _supervisor(registry, tasks, python_cmd, "pass")

    await sync.start_sync(PLAYLIST_ID)
    await tasks.wait_idle()

    assert playlist.process is None
    assert playlist.status == "error"
    assert "pipe went away" in playlist.error_message
    assert playlist.last_sync_at is not None


@pytest.mark.asyncio
async def test_shutdown_stops_output_pumps(registry, tasks, python_cmd, playlist):
    sync = _supervisor(registry, tasks, python_cmd, SLOW)
    await sync.start_sync(PLAYLIST_ID)
    process = playlist.process
    await asyncio.sleep(0)
    assert process.is_running

    await tasks.cancel_all()

    assert not process.is_running

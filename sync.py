"""
Backup Sptfy - Playlist Sync

Runs spotdl for a playlist (never two at once for the same one), captures
its output into the playlist log, and reconciles download status when it
exits.
"""

from typing import Callable, Optional

from constants import SPOTDL_CMD
from downloader import DownloadProcess, spotdl_command
from errors import AlreadyInProgressError, ProcessExitError, ProcessSpawnError
from playlists import (
    STATUS_ERROR, STATUS_IDLE, STATUS_SYNCING,
    Playlist, PlaylistRegistry, update_download_status,
)
from utils import BackgroundTaskSet, utcnow


class SyncSupervisor:
    """Starts and watches spotdl runs.

    ``command_factory(url)`` builds the command line; the process always
    runs inside the playlist's download_dir.
    """

    def __init__(
        self,
        registry: PlaylistRegistry,
        tasks: BackgroundTaskSet,
        spotdl_cmd: str = SPOTDL_CMD,
        command_factory: Callable[[str], list[str]] | None = None,
    ):
        self.registry = registry
        self.tasks = tasks
        self.command_factory = command_factory or (lambda url: spotdl_command(spotdl_cmd, url))

    def is_syncing(self, playlist_id: str) -> bool:
        playlist = self.registry.get_by_id(playlist_id)
        return playlist is not None and playlist.process is not None

    async def start_sync(self, playlist_id: str) -> Playlist:
        """Kick off a sync and return without waiting for it.

        Raises NotFoundError for an unknown id and AlreadyInProgressError if
        a process is already attached (state is left as it was). A spawn
        failure is not raised; it lands in status/error_message.
        """
        playlist = self.registry.require(playlist_id)
        if playlist.process is not None:
            raise AlreadyInProgressError(f"Sync already in progress for {playlist_id}")

        process = DownloadProcess(
            self.command_factory(playlist.url),
            playlist.download_dir,
            on_line=playlist.append_log,
        )
        # Claim the slot before the first await so a second caller sees it
        playlist.process = process
        playlist.status = STATUS_SYNCING
        playlist.error_message = None

        try:
            await process.start()
        except ProcessSpawnError as e:
            playlist.process = None
            playlist.status = STATUS_ERROR
            playlist.error_message = e.message
            playlist.append_log(e.message, "stderr")
            print(f"[sync] {playlist.id}: {e}")
            return playlist

        print(f"[sync] Started spotdl for {playlist.id} (pid {process.pid})")
        self.tasks.spawn(self._watch(playlist, process), f"sync {playlist.id}")
        return playlist

    async def _watch(self, playlist: Playlist, process: DownloadProcess) -> None:
        try:
            code = await process.wait()
        except Exception as e:
            # The slot is released however the wait ended
            self._finish(playlist, process, None, failure=f"Lost track of {process.cmd[0]}: {e}")
            return
        self._finish(playlist, process, code)

    def _finish(
        self,
        playlist: Playlist,
        process: DownloadProcess,
        code: Optional[int],
        failure: Optional[str] = None,
    ) -> None:
        if playlist.process is process:
            playlist.process = None
        playlist.last_sync_at = utcnow()

        if failure is None and code != 0:
            failure = ProcessExitError(code).message

        if failure is None:
            playlist.status = STATUS_IDLE
            print(f"[sync] {playlist.id} finished")
        else:
            playlist.status = STATUS_ERROR
            playlist.error_message = failure
            print(f"[sync] {playlist.id}: {failure}")

        try:
            update_download_status(playlist)
        except Exception as e:
            print(f"[sync] Failed to update download status after sync of {playlist.id}: {e}")

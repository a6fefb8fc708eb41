"""
Backup Sptfy - Dashboard Lifecycle

Owns everything with state: the playlist and job registries, the Spotify
client, the sync/job supervisors and the background task set. One instance
is built at startup and handed to the routes; tests build their own.
"""

from pathlib import Path
from typing import Optional

from constants import (
    CLEANUP_INTERVAL_MINUTES, CONTENT_TTL_MINUTES, DOWNLOAD_ROOT,
    DOWNLOAD_SCAN_SECONDS, METADATA_REFRESH_MINUTES, SPOTDL_CMD,
    YT_DOWNLOAD_ROOT, YTDLP_CMD,
)
from jobs import JobRegistry, JobRunner
from playlists import PlaylistRegistry, init_playlists_from_config
from scheduler import start_scheduler
from settings import (
    get_playlist_urls, get_setting, get_setting_int, get_spotify_credentials,
    warn_missing_credentials,
)
from spotify import SpotifyClient
from sync import SyncSupervisor
from utils import BackgroundTaskSet


class Dashboard:
    def __init__(
        self,
        client,
        download_root: Path = DOWNLOAD_ROOT,
        yt_download_root: Path = YT_DOWNLOAD_ROOT,
        playlist_urls: Optional[list[str]] = None,
        metadata_refresh_minutes: int = METADATA_REFRESH_MINUTES,
        download_scan_seconds: int = DOWNLOAD_SCAN_SECONDS,
        content_ttl_minutes: int = CONTENT_TTL_MINUTES,
        cleanup_interval_minutes: int = CLEANUP_INTERVAL_MINUTES,
        spotdl_cmd: str = SPOTDL_CMD,
        ytdlp_cmd: str = YTDLP_CMD,
    ):
        self.client = client
        self.download_root = Path(download_root)
        self.yt_download_root = Path(yt_download_root)
        self.playlist_urls = list(playlist_urls or [])
        self.metadata_refresh_minutes = metadata_refresh_minutes
        self.download_scan_seconds = download_scan_seconds
        self.content_ttl_minutes = content_ttl_minutes
        self.cleanup_interval_minutes = cleanup_interval_minutes

        self.tasks = BackgroundTaskSet()
        self.registry = PlaylistRegistry(self.download_root)
        self.jobs = JobRegistry(self.yt_download_root)
        self.sync = SyncSupervisor(self.registry, self.tasks, spotdl_cmd=spotdl_cmd)
        self.job_runner = JobRunner(self.jobs, self.tasks, ytdlp_cmd=ytdlp_cmd)
        self.started = False

    @classmethod
    def from_env(cls) -> "Dashboard":
        """Build from environment settings with a real Spotify client."""
        warn_missing_credentials()
        client_id, client_secret = get_spotify_credentials()
        return cls(
            client=SpotifyClient(client_id, client_secret),
            download_root=Path(get_setting("download_root", str(DOWNLOAD_ROOT))).resolve(),
            yt_download_root=Path(get_setting("yt_download_root", str(YT_DOWNLOAD_ROOT))).resolve(),
            playlist_urls=get_playlist_urls(),
            metadata_refresh_minutes=get_setting_int("metadata_refresh_minutes", METADATA_REFRESH_MINUTES),
            download_scan_seconds=get_setting_int("download_scan_seconds", DOWNLOAD_SCAN_SECONDS),
            content_ttl_minutes=get_setting_int("content_ttl_minutes", CONTENT_TTL_MINUTES),
            cleanup_interval_minutes=get_setting_int("cleanup_interval_minutes", CLEANUP_INTERVAL_MINUTES),
            spotdl_cmd=get_setting("spotdl_cmd", SPOTDL_CMD),
            ytdlp_cmd=get_setting("ytdlp_cmd", YTDLP_CMD),
        )

    async def start(self) -> None:
        """Create download roots, seed configured playlists, start the loops.

        Must be called from inside the running event loop. Returns without
        waiting for the initial metadata refreshes.
        """
        if self.started:
            return
        self.download_root.mkdir(parents=True, exist_ok=True)
        self.yt_download_root.mkdir(parents=True, exist_ok=True)

        init_playlists_from_config(self.registry, self.client, self.playlist_urls, self.tasks)
        start_scheduler(self)
        self.started = True

    async def stop(self) -> None:
        """Cancel background work and close the Spotify client.

        Running downloader processes are not killed; they finish on their own.
        """
        await self.tasks.cancel_all()
        close = getattr(self.client, "close", None)
        if close is not None:
            await close()
        self.started = False

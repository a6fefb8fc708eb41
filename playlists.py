"""
Backup Sptfy - Playlists

In-memory playlist registry, metadata refresh from Spotify, and
reconciliation of per-track download status against the files on disk.
Nothing here is persisted: state is rebuilt from config + Spotify + the
download directories on every boot.
"""

import asyncio
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Iterator, Optional

from constants import LOG_CAPACITY, PLACEHOLDER_NAME
from downloader import DownloadProcess
from errors import ApiError, FilesystemError, NotFoundError
from spotify import extract_playlist_id
from utils import build_track_key, filename_key, list_audio_files, track_is_downloaded, utcnow

STATUS_IDLE = "idle"
STATUS_SYNCING = "syncing"
STATUS_ERROR = "error"

TRACK_PENDING = "pending"
TRACK_DOWNLOADED = "downloaded"


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def format_log_line(line: str, stream: str) -> str:
    return f"[{utcnow().isoformat()}] [{stream}] {line}"


@dataclass
class Track:
    name: str
    artists: str
    key: str = ""
    local_status: str = TRACK_PENDING

    @classmethod
    def from_metadata(cls, item: dict) -> "Track":
        name = item.get("name") or ""
        artists = item.get("artists") or ""
        return cls(name=name, artists=artists, key=build_track_key(artists, name))

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "artists": self.artists,
            "key": self.key,
            "local_status": self.local_status,
        }


@dataclass
class Playlist:
    id: str
    url: str
    download_dir: Path
    is_manual: bool = False
    name: str = PLACEHOLDER_NAME
    owner: str = ""
    description: str = ""
    images: list = field(default_factory=list)
    tracks_total: int = 0
    tracks: list[Track] = field(default_factory=list)
    status: str = STATUS_IDLE
    last_sync_at: Optional[datetime] = None
    last_metadata_refresh_at: Optional[datetime] = None
    last_content_at: Optional[datetime] = None
    downloaded_count: int = 0
    error_message: Optional[str] = None
    process: Optional[DownloadProcess] = field(default=None, repr=False)
    logs: deque = field(default_factory=lambda: deque(maxlen=LOG_CAPACITY), repr=False)
    refresh_lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False, compare=False)

    def append_log(self, line: str, stream: str = "stdout") -> None:
        self.logs.append(format_log_line(line, stream))

    def summary(self) -> dict:
        """Snapshot for listings; nothing in it aliases live state."""
        return {
            "id": self.id,
            "name": self.name,
            "owner": self.owner,
            "description": self.description,
            "tracks_total": self.tracks_total,
            "downloaded_count": self.downloaded_count,
            "status": self.status,
            "last_sync_at": _iso(self.last_sync_at),
            "last_metadata_refresh_at": _iso(self.last_metadata_refresh_at),
            "url": self.url,
            "images": list(self.images),
            "is_manual": self.is_manual,
        }

    def detail(self) -> dict:
        data = self.summary()
        data.update({
            "error_message": self.error_message,
            "last_content_at": _iso(self.last_content_at),
            "is_syncing": self.process is not None,
            "tracks": [t.to_dict() for t in self.tracks],
            "logs": list(self.logs),
        })
        return data


class PlaylistRegistry:
    """The one process-wide map of playlist id -> Playlist.

    Entries are created lazily and never removed; iteration order is the
    order in which ids were first seen.
    """

    def __init__(self, download_root: Path):
        self.download_root = Path(download_root)
        self._playlists: dict[str, Playlist] = {}

    def get_or_create(self, playlist_id: str, url: str, is_manual: bool = False) -> Playlist:
        """Existing entries come back untouched, url and is_manual included."""
        playlist = self._playlists.get(playlist_id)
        if playlist is None:
            playlist = Playlist(
                id=playlist_id,
                url=url,
                download_dir=self.download_root / playlist_id,
                is_manual=bool(is_manual),
            )
            self._playlists[playlist_id] = playlist
        return playlist

    def get_by_id(self, playlist_id: str) -> Optional[Playlist]:
        return self._playlists.get(playlist_id)

    def require(self, playlist_id: str) -> Playlist:
        playlist = self._playlists.get(playlist_id)
        if playlist is None:
            raise NotFoundError("Playlist", playlist_id)
        return playlist

    def summary_list(self) -> list[dict]:
        return [p.summary() for p in self._playlists.values()]

    def __iter__(self) -> Iterator[Playlist]:
        # Copy so sweeps survive entries being added mid-iteration
        return iter(list(self._playlists.values()))

    def __len__(self) -> int:
        return len(self._playlists)

    def __contains__(self, playlist_id: str) -> bool:
        return playlist_id in self._playlists


# =============================================================================
# Download status reconciliation
# =============================================================================

def update_download_status(playlist: Playlist) -> int:
    """Recompute every track's local_status from the files in download_dir.

    Returns the new downloaded_count. Runs without suspending, so no other
    task can observe a half-updated playlist.
    """
    file_keys = [filename_key(f) for f in list_audio_files(playlist.download_dir)]

    downloaded = 0
    pending = 0
    for track in playlist.tracks:
        key = track.key or build_track_key(track.artists, track.name)
        if track_is_downloaded(key, file_keys):
            track.local_status = TRACK_DOWNLOADED
            downloaded += 1
        else:
            track.local_status = TRACK_PENDING
            pending += 1

    playlist.downloaded_count = downloaded
    if not playlist.tracks_total:
        playlist.tracks_total = downloaded + pending

    # Only cleanup ever clears this back to None
    if downloaded > 0:
        playlist.last_content_at = utcnow()

    return downloaded


# =============================================================================
# Metadata refresh
# =============================================================================

async def refresh_metadata(playlist: Playlist, client) -> bool:
    """Pull fresh metadata + track list from Spotify and reconcile.

    Failures are recorded in error_message and printed, never raised;
    previous metadata and tracks stay as they were. Returns True on success.
    """
    async with playlist.refresh_lock:
        try:
            meta = await client.get_playlist_metadata(playlist.id)
            tracks = await client.get_playlist_tracks(playlist.id)
        except ApiError as e:
            playlist.error_message = e.message
            print(f"[playlists] Failed to refresh metadata for {playlist.id}: {e}")
            return False
        except Exception as e:
            playlist.error_message = str(e) or type(e).__name__
            print(f"[playlists] Unexpected error refreshing {playlist.id}: {e!r}")
            return False

        # Nothing below awaits, so the swap is atomic to other tasks
        playlist.name = meta.get("name") or playlist.name
        playlist.owner = meta.get("owner") or ""
        playlist.description = meta.get("description") or ""
        playlist.tracks_total = meta.get("tracks_total") or 0
        playlist.url = meta.get("url") or playlist.url
        playlist.images = list(meta.get("images") or [])
        playlist.tracks = [Track.from_metadata(t) for t in tracks]
        playlist.last_metadata_refresh_at = utcnow()
        playlist.error_message = None

        try:
            update_download_status(playlist)
        except FilesystemError as e:
            print(f"[playlists] Refreshed {playlist.id} but could not scan its downloads: {e}")
        return True


async def refresh_all(registry: PlaylistRegistry, client) -> int:
    """Refresh every known playlist one after another. Returns the success count."""
    refreshed = 0
    for playlist in registry:
        if await refresh_metadata(playlist, client):
            refreshed += 1
    return refreshed


def update_all_download_status(registry: PlaylistRegistry) -> None:
    for playlist in registry:
        try:
            update_download_status(playlist)
        except Exception as e:
            print(f"[playlists] Failed to scan downloads for {playlist.id}: {e}")


# =============================================================================
# Seeding
# =============================================================================

async def add_playlist_from_url(registry: PlaylistRegistry, client, url: str) -> Playlist:
    """Add a playlist from a pasted URL and wait for its first refresh.

    Lives in memory only, like everything else. Raises ApiError if no
    playlist id can be pulled out of the URL; a failed refresh is left in
    error_message for the caller to show.
    """
    playlist_id = extract_playlist_id(url)
    if not playlist_id:
        raise ApiError("Could not extract playlist ID from URL.")

    playlist = registry.get_or_create(playlist_id, url.strip(), is_manual=True)
    await refresh_metadata(playlist, client)
    return playlist


def init_playlists_from_config(registry: PlaylistRegistry, client, urls: list[str], tasks) -> list[Playlist]:
    """Register configured playlists and fire off their first refresh in the background."""
    if not urls:
        print("[playlists] No PLAYLIST_URLS configured.")
        return []

    seeded = []
    for url in urls:
        playlist_id = extract_playlist_id(url)
        if not playlist_id:
            print(f"[playlists] Skipping unrecognised playlist URL: {url}")
            continue
        playlist = registry.get_or_create(playlist_id, url, is_manual=False)
        tasks.spawn(refresh_metadata(playlist, client), f"refresh {playlist_id}")
        seeded.append(playlist)

    print(f"[playlists] Loaded {len(seeded)} playlist(s) from config")
    return seeded

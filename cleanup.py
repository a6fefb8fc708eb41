"""
Backup Sptfy - Content Cleanup

Downloaded audio only sticks around for a TTL. Playlists get their folder
emptied and status reset in place; yt-dlp jobs are dropped entirely.
Both go through the same sweep.
"""

import shutil
from datetime import datetime, timedelta
from typing import Callable, Iterable, Optional, TypeVar

from errors import FilesystemError
from playlists import TRACK_PENDING, Playlist
from utils import utcnow

T = TypeVar("T")


def sweep_expired(
    items: Iterable[T],
    get_timestamp: Callable[[T], Optional[datetime]],
    expire: Callable[[T], None],
    ttl: timedelta,
    now: Optional[datetime] = None,
    label: str = "item",
) -> int:
    """Call ``expire`` on every item whose timestamp is at least ``ttl`` old.

    Items without a timestamp are left alone. A FilesystemError on one item
    is printed and the sweep moves on. Returns how many items were expired.
    """
    now = now or utcnow()
    expired = 0
    for item in list(items):
        stamp = get_timestamp(item)
        if stamp is None or now - stamp < ttl:
            continue
        try:
            expire(item)
            expired += 1
        except FilesystemError as e:
            print(f"[cleanup] Failed to clean {label}: {e}")
    return expired


def _recreate_empty(directory) -> None:
    try:
        if directory.exists():
            shutil.rmtree(directory)
        directory.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise FilesystemError(f"{directory}: {e}") from e


def expire_playlist_content(playlist: Playlist) -> None:
    """Empty the playlist folder and put every track back to pending.

    The playlist itself stays registered so it can be synced again.
    """
    _recreate_empty(playlist.download_dir)
    for track in playlist.tracks:
        track.local_status = TRACK_PENDING
    playlist.downloaded_count = 0
    playlist.last_content_at = None
    print(f"[cleanup] Removed downloaded content for playlist {playlist.id} ({playlist.name}) after TTL")


def cleanup_old_playlist_content(registry, ttl: timedelta, now: Optional[datetime] = None) -> int:
    return sweep_expired(
        registry,
        lambda p: p.last_content_at,
        expire_playlist_content,
        ttl,
        now=now,
        label="playlist content",
    )


def cleanup_old_jobs(jobs, ttl: timedelta, now: Optional[datetime] = None) -> int:
    """Delete finished jobs (and their folders) once they are past the TTL."""

    def expire_job(job) -> None:
        try:
            if job.dir.exists():
                shutil.rmtree(job.dir)
        except OSError as e:
            raise FilesystemError(f"job {job.id}: {e}") from e
        jobs.remove(job.id)
        print(f"[cleanup] Removed YouTube job {job.id} content after TTL")

    # Running jobs have no finished_at yet and are skipped
    return sweep_expired(
        jobs,
        lambda j: j.finished_at,
        expire_job,
        ttl,
        now=now,
        label="YouTube job",
    )

"""
Backup Sptfy - Background Scheduler

Three recurring loops: metadata refresh, download-folder scan, and content
cleanup. Each runs as a task on the dashboard's task set; an error in one
pass is printed and the loop carries on.
"""

import asyncio
from datetime import timedelta

from cleanup import cleanup_old_jobs, cleanup_old_playlist_content
from playlists import refresh_all, update_all_download_status


async def metadata_refresh_loop(registry, client, minutes: int) -> None:
    """Re-pull Spotify metadata for every playlist, one at a time, every ``minutes``."""
    while True:
        await asyncio.sleep(minutes * 60)
        try:
            refreshed = await refresh_all(registry, client)
            print(f"Scheduler: Refreshed metadata for {refreshed}/{len(registry)} playlists")
        except Exception as e:
            print(f"Scheduler error (metadata refresh): {e}")


async def download_scan_loop(registry, seconds: int) -> None:
    """Re-check download folders so progress shows up while spotdl is still running."""
    while True:
        await asyncio.sleep(seconds)
        try:
            update_all_download_status(registry)
        except Exception as e:
            print(f"Scheduler error (download scan): {e}")


async def cleanup_loop(registry, jobs, ttl: timedelta, interval_minutes: int) -> None:
    while True:
        await asyncio.sleep(interval_minutes * 60)
        try:
            removed = cleanup_old_playlist_content(registry, ttl)
            removed += cleanup_old_jobs(jobs, ttl)
            if removed:
                print(f"Scheduler: Cleanup removed content for {removed} playlist(s)/job(s)")
        except Exception as e:
            print(f"Scheduler error (cleanup): {e}")


def start_scheduler(dashboard) -> int:
    """Start whichever loops are enabled (interval > 0). Returns how many were started."""
    started = 0
    tasks = dashboard.tasks

    if dashboard.metadata_refresh_minutes > 0:
        tasks.spawn(
            metadata_refresh_loop(dashboard.registry, dashboard.client, dashboard.metadata_refresh_minutes),
            "metadata refresh loop",
        )
        print(f"Scheduler: Metadata refresh interval: {dashboard.metadata_refresh_minutes} minutes")
        started += 1
    else:
        print("Scheduler: Metadata refresh disabled (METADATA_REFRESH_MINUTES=0)")

    if dashboard.download_scan_seconds > 0:
        tasks.spawn(
            download_scan_loop(dashboard.registry, dashboard.download_scan_seconds),
            "download scan loop",
        )
        print(f"Scheduler: Download scan interval: {dashboard.download_scan_seconds} seconds")
        started += 1
    else:
        print("Scheduler: Download scan disabled (DOWNLOAD_SCAN_SECONDS=0)")

    if dashboard.cleanup_interval_minutes > 0:
        tasks.spawn(
            cleanup_loop(
                dashboard.registry,
                dashboard.jobs,
                timedelta(minutes=dashboard.content_ttl_minutes),
                dashboard.cleanup_interval_minutes,
            ),
            "cleanup loop",
        )
        print(
            f"Scheduler: Content cleanup TTL: {dashboard.content_ttl_minutes} minutes; "
            f"interval: {dashboard.cleanup_interval_minutes} minutes"
        )
        started += 1
    else:
        print("Scheduler: Content cleanup disabled (CLEANUP_INTERVAL_MINUTES=0)")

    return started

#!/usr/bin/env python3
"""
Backup Sptfy - A self-hosted playlist backup dashboard
Tracks Spotify playlists, syncs them to disk with spotdl, grabs single URLs as MP3 with yt-dlp
"""

from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import FileResponse, StreamingResponse

from archive import iter_zip_directory
from constants import PORT, VERSION
from dashboard import Dashboard
from errors import AlreadyInProgressError, ApiError, NotFoundError
from models import PlaylistAddRequest, SyncResponse, YouTubeJobRequest
from playlists import add_playlist_from_url, refresh_metadata
from settings import describe_settings
from utils import safe_archive_name, safe_name

# =============================================================================
# Application Setup
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    # A dashboard set on app.state before startup is used as-is
    if getattr(app.state, "dashboard", None) is None:
        app.state.dashboard = Dashboard.from_env()
    print(f"Backup Sptfy v{VERSION} starting")
    await app.state.dashboard.start()
    try:
        yield
    finally:
        await app.state.dashboard.stop()


app = FastAPI(title="Backup Sptfy", version=VERSION, lifespan=lifespan)


def _dashboard(request: Request) -> Dashboard:
    return request.app.state.dashboard


def _require_playlist(request: Request, playlist_id: str):
    try:
        return _dashboard(request).registry.require(playlist_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Playlist not found")


def _require_job(request: Request, job_id: str):
    try:
        return _dashboard(request).jobs.require(job_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Job not found")


# =============================================================================
# Config
# =============================================================================

@app.get("/api/config")
def get_config(request: Request):
    """Expose server configuration and version for the UI"""
    dashboard = _dashboard(request)
    return {
        "version": VERSION,
        "download_root": str(dashboard.download_root),
        "yt_download_root": str(dashboard.yt_download_root),
        "metadata_refresh_minutes": dashboard.metadata_refresh_minutes,
        "download_scan_seconds": dashboard.download_scan_seconds,
        "content_ttl_minutes": dashboard.content_ttl_minutes,
        "cleanup_interval_minutes": dashboard.cleanup_interval_minutes,
        "settings": describe_settings(),
    }


# =============================================================================
# Playlists API
# =============================================================================

@app.get("/api/playlists")
def list_playlists(request: Request):
    return _dashboard(request).registry.summary_list()


@app.post("/api/playlists")
async def add_playlist(body: PlaylistAddRequest, request: Request):
    """Add a playlist by URL (kept in memory until restart)"""
    url = body.url.strip()
    if not url:
        raise HTTPException(status_code=400, detail="Please enter a Spotify playlist URL.")

    dashboard = _dashboard(request)
    try:
        playlist = await add_playlist_from_url(dashboard.registry, dashboard.client, url)
    except ApiError as e:
        print(f"[add playlist] error: {e}")
        raise HTTPException(status_code=400, detail=e.message or "Failed to add playlist.")

    return playlist.detail()


@app.get("/api/playlists/{playlist_id}")
def get_playlist(playlist_id: str, request: Request):
    """Playlist state including tracks, recent log lines and the last error"""
    return _require_playlist(request, playlist_id).detail()


@app.post("/api/playlists/{playlist_id}/sync", response_model=SyncResponse)
async def sync_playlist(playlist_id: str, request: Request):
    """Start spotdl for this playlist unless it is already running"""
    playlist = _require_playlist(request, playlist_id)

    already_running = playlist.process is not None
    if not already_running:
        try:
            await _dashboard(request).sync.start_sync(playlist.id)
        except AlreadyInProgressError:
            already_running = True

    return SyncResponse(
        id=playlist.id,
        status=playlist.status,
        is_syncing=playlist.process is not None,
        error_message=playlist.error_message,
        already_running=already_running,
    )


@app.post("/api/playlists/{playlist_id}/refresh")
async def refresh_playlist(playlist_id: str, request: Request):
    """Force an immediate metadata refresh of one playlist"""
    playlist = _require_playlist(request, playlist_id)
    refreshed = await refresh_metadata(playlist, _dashboard(request).client)
    return {"refreshed": refreshed, "playlist": playlist.summary(), "error_message": playlist.error_message}


@app.get("/api/playlists/{playlist_id}/download")
def download_playlist(playlist_id: str, request: Request):
    """ZIP of everything in the playlist folder, streamed"""
    playlist = _require_playlist(request, playlist_id)

    if not playlist.download_dir.is_dir():
        raise HTTPException(status_code=404, detail="No downloaded files yet")

    zip_name = safe_archive_name(playlist.name or playlist.id)
    return StreamingResponse(
        iter_zip_directory(playlist.download_dir),
        media_type="application/zip",
        headers={"Content-Disposition": f'attachment; filename="{zip_name}"'},
    )


# =============================================================================
# YouTube -> MP3 API
# =============================================================================

@app.post("/api/yt")
async def start_youtube_job(body: YouTubeJobRequest, request: Request):
    try:
        job = await _dashboard(request).job_runner.start_job(body.url)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return job.to_dict()


@app.get("/api/yt/{job_id}")
def get_youtube_job(job_id: str, request: Request):
    return _require_job(request, job_id).to_dict()


@app.get("/api/yt/{job_id}/file/{name}")
def get_youtube_file(job_id: str, name: str, request: Request):
    """Serve one finished file from a job folder"""
    job = _require_job(request, job_id)

    # Only ever a bare filename inside the job folder
    requested = Path(name).name
    file_path = job.dir / requested
    if not requested or not file_path.is_file():
        raise HTTPException(status_code=404, detail="File not found")

    return FileResponse(file_path, filename=safe_name(requested))


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=PORT)

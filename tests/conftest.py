"""Pytest configuration and shared fixtures."""

import asyncio
import sys
from pathlib import Path

import pytest

from errors import ApiError
from playlists import PlaylistRegistry
from utils import BackgroundTaskSet

PLAYLIST_ID = "37i9dQZF1DXcBWIGoYBM5M"
PLAYLIST_URL = f"https://open.spotify.com/playlist/{PLAYLIST_ID}?si=4f1c2d"


class FakeSpotifyClient:
    """Stands in for SpotifyClient; serves canned playlists from memory.

    ``fail`` maps playlist id -> exception to raise, ``delay`` makes each
    metadata call yield to the loop so overlapping refreshes can be seen.
    """

    def __init__(self, playlists: dict):
        self.playlists = playlists
        self.fail: dict[str, Exception] = {}
        self.delay = 0.0
        self.calls: list[tuple[str, str]] = []
        self.active = 0
        self.max_active = 0

    async def get_playlist_metadata(self, playlist_id: str) -> dict:
        self.calls.append(("metadata", playlist_id))
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if playlist_id in self.fail:
                raise self.fail[playlist_id]
            if playlist_id not in self.playlists:
                raise ApiError("Playlist not found or is private")
            return dict(self.playlists[playlist_id]["meta"])
        finally:
            self.active -= 1

    async def get_playlist_tracks(self, playlist_id: str) -> list[dict]:
        self.calls.append(("tracks", playlist_id))
        if playlist_id in self.fail:
            raise self.fail[playlist_id]
        return [dict(t) for t in self.playlists[playlist_id]["tracks"]]


@pytest.fixture
def fake_client():
    return FakeSpotifyClient({
        PLAYLIST_ID: {
            "meta": {
                "name": "Late Night",
                "owner": "dana",
                "description": "Slow songs for after midnight",
                "tracks_total": 3,
                "url": f"https://open.spotify.com/playlist/{PLAYLIST_ID}",
                "images": ["https://i.scdn.co/image/ab67706c0000da84"],
            },
            "tracks": [
                {"name": "Karma Police", "artists": "Radiohead"},
                {"name": "Teardrop", "artists": "Massive Attack"},
                {"name": "Roads", "artists": "Portishead"},
            ],
        },
    })


@pytest.fixture
def download_root(tmp_path) -> Path:
    root = tmp_path / "downloads"
    root.mkdir()
    return root


@pytest.fixture
def registry(download_root) -> PlaylistRegistry:
    return PlaylistRegistry(download_root)


@pytest.fixture
def tasks() -> BackgroundTaskSet:
    return BackgroundTaskSet()


@pytest.fixture
def python_cmd():
    """Command factory running an inline Python script in place of spotdl / yt-dlp."""

    def factory(script: str):
        return lambda url: [sys.executable, "-c", script]

    return factory

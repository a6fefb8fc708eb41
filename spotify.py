"""
Backup Sptfy - Spotify Web API Client

Client-credentials access to public playlist metadata and track lists.
Every failure (network, auth, unknown or private playlist) comes back as
an ApiError so the reconcilers only have one thing to catch.
"""

import re
import time
from typing import Optional

import httpx

from constants import (
    SPOTIFY_API_BASE, SPOTIFY_TOKEN_URL, SPOTIFY_TRACKS_PAGE_SIZE,
    TIMEOUT_HTTP_SPOTIFY, TOKEN_EXPIRY_MARGIN,
)
from errors import ApiError

_PLAYLIST_URL_RE = re.compile(
    r'https?://open\.spotify\.com/(?:intl-[a-zA-Z-]+/)?(?:embed/)?playlist/([a-zA-Z0-9]+)'
)
_PLAYLIST_URI_RE = re.compile(r'spotify:playlist:([a-zA-Z0-9]+)$')

_METADATA_FIELDS = "name,description,owner(display_name,id),tracks(total),external_urls,images"
_TRACK_FIELDS = "items(track(name,artists(name))),next"


def extract_playlist_id(url: str) -> Optional[str]:
    """Pull the playlist id out of a share URL or spotify: URI. None if it isn't one."""
    url = (url or "").strip()
    match = _PLAYLIST_URL_RE.match(url) or _PLAYLIST_URI_RE.match(url)
    return match.group(1) if match else None


class SpotifyClient:
    """Minimal async Spotify Web API client.

    The access token is fetched lazily and cached until shortly before it
    expires. Pass ``transport`` to swap in an ``httpx.MockTransport``.
    """

    def __init__(self, client_id: str, client_secret: str, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.client_id = client_id
        self.client_secret = client_secret
        self._http = httpx.AsyncClient(timeout=TIMEOUT_HTTP_SPOTIFY, transport=transport)
        self._token: Optional[str] = None
        self._token_expires_at = 0.0

    async def close(self) -> None:
        await self._http.aclose()

    async def _access_token(self) -> str:
        if self._token and time.monotonic() < self._token_expires_at:
            return self._token

        if not self.client_id or not self.client_secret:
            raise ApiError("Spotify credentials not configured (SPOTIFY_CLIENT_ID / SPOTIFY_CLIENT_SECRET)")

        try:
            response = await self._http.post(
                SPOTIFY_TOKEN_URL,
                data={"grant_type": "client_credentials"},
                auth=(self.client_id, self.client_secret),
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise ApiError(f"Spotify authentication failed ({e.response.status_code})")
        except httpx.RequestError as e:
            raise ApiError(f"Failed to connect to Spotify: {e}")

        data = response.json()
        self._token = data["access_token"]
        expires_in = int(data.get("expires_in", 3600))
        self._token_expires_at = time.monotonic() + max(0, expires_in - TOKEN_EXPIRY_MARGIN)
        return self._token

    async def _get(self, url: str, params: Optional[dict] = None) -> dict:
        token = await self._access_token()
        try:
            response = await self._http.get(
                url, params=params, headers={"Authorization": f"Bearer {token}"}
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            if status == 401:
                # Token revoked or expired early; next call fetches a fresh one
                self._token = None
            if status == 404:
                raise ApiError("Playlist not found or is private")
            raise ApiError(f"Spotify API error ({status})")
        except httpx.RequestError as e:
            raise ApiError(f"Failed to connect to Spotify: {e}")
        return response.json()

    async def get_playlist_metadata(self, playlist_id: str) -> dict:
        """Returns dict with: name, owner, description, tracks_total, url, images"""
        if not playlist_id:
            raise ApiError("Missing playlist id")

        data = await self._get(
            f"{SPOTIFY_API_BASE}/playlists/{playlist_id}",
            params={"fields": _METADATA_FIELDS},
        )
        owner = data.get("owner") or {}
        return {
            "name": data.get("name") or playlist_id,
            "owner": owner.get("display_name") or owner.get("id") or "",
            "description": data.get("description") or "",
            "tracks_total": (data.get("tracks") or {}).get("total") or 0,
            "url": (data.get("external_urls") or {}).get("spotify"),
            "images": [img["url"] for img in data.get("images") or [] if img.get("url")],
        }

    async def get_playlist_tracks(self, playlist_id: str) -> list[dict]:
        """Every track in playlist order as dicts with: name, artists ("A, B")"""
        if not playlist_id:
            raise ApiError("Missing playlist id")

        tracks = []
        url = f"{SPOTIFY_API_BASE}/playlists/{playlist_id}/tracks"
        params = {"limit": SPOTIFY_TRACKS_PAGE_SIZE, "offset": 0, "fields": _TRACK_FIELDS}
        while url:
            page = await self._get(url, params=params)
            for item in page.get("items") or []:
                track = item.get("track")
                # Removed tracks and local files come back as null entries
                if not track or not track.get("name"):
                    continue
                artists = ", ".join(a["name"] for a in track.get("artists") or [] if a.get("name"))
                tracks.append({"name": track["name"], "artists": artists})
            # "next" already carries limit/offset/fields
            url = page.get("next")
            params = None
        return tracks

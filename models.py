"""
Backup Sptfy - Pydantic Request/Response Models
"""

from typing import Optional
from pydantic import BaseModel


class PlaylistAddRequest(BaseModel):
    url: str = ""  # Spotify playlist share URL or spotify:playlist: URI

class YouTubeJobRequest(BaseModel):
    url: str = ""  # Any http(s) URL yt-dlp understands

class SyncResponse(BaseModel):
    id: str
    status: str
    is_syncing: bool
    error_message: Optional[str] = None
    already_running: bool = False

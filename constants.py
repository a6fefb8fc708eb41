"""
Backup Sptfy - Application Constants

All shared constants in one place for easy tuning.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

# Pick up a local .env before anything below reads the environment
load_dotenv()

VERSION = "1.2.0"

# Timeout values (in seconds)
TIMEOUT_HTTP_SPOTIFY = 30        # Spotify Web API calls (token + playlist pages)
TOKEN_EXPIRY_MARGIN = 60         # Refresh the access token this long before Spotify says it expires

# Spotify Web API
SPOTIFY_TOKEN_URL = "https://accounts.spotify.com/api/token"
SPOTIFY_API_BASE = "https://api.spotify.com/v1"
SPOTIFY_TRACKS_PAGE_SIZE = 100   # Spotify's max for playlist track pages

# Playlist state
PLACEHOLDER_NAME = "Loading..."  # Shown until the first metadata refresh lands
LOG_CAPACITY = 500               # Log lines kept per playlist / job (oldest dropped first)
LOG_LINE_MAX = 4096              # Longer output without a line break is split into pieces this size

# File handling
AUDIO_EXTENSIONS = ['.mp3', '.flac', '.m4a', '.opus', '.ogg', '.wav', '.webm']
JOB_ID_BYTES = 6                 # 12 hex chars
ZIP_CHUNK_SIZE = 64 * 1024       # Bytes read per chunk when streaming archives
PIPE_READ_SIZE = 64 * 1024       # Bytes read per chunk from downloader stdout/stderr

# Configuration from environment - structural paths and executables
DOWNLOAD_ROOT = Path(os.getenv("DOWNLOAD_ROOT", "./downloads")).resolve()
YT_DOWNLOAD_ROOT = Path(os.getenv("YT_DOWNLOAD_ROOT", "./yt_downloads")).resolve()
SPOTDL_CMD = os.getenv("SPOTDL_CMD", "spotdl")
YTDLP_CMD = os.getenv("YTDLP_CMD", "yt-dlp")
PORT = int(os.getenv("PORT", "5000"))

# Background loops
METADATA_REFRESH_MINUTES = int(os.getenv("METADATA_REFRESH_MINUTES", "30"))
DOWNLOAD_SCAN_SECONDS = int(os.getenv("DOWNLOAD_SCAN_SECONDS", "15"))

# Downloaded content is evicted after this long to reclaim disk space
# (applies to both playlists and yt-dlp jobs)
CONTENT_TTL_MINUTES = int(os.getenv("CONTENT_TTL_MINUTES", "60"))
CLEANUP_INTERVAL_MINUTES = int(os.getenv("CLEANUP_INTERVAL_MINUTES", "10"))

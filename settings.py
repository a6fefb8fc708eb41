"""
Backup Sptfy - Settings Management

Environment variable > default. There is no settings store: everything
is rebuilt from the environment (and an optional .env) on each boot.
"""

import os

from constants import (
    CLEANUP_INTERVAL_MINUTES, CONTENT_TTL_MINUTES, DOWNLOAD_ROOT,
    DOWNLOAD_SCAN_SECONDS, METADATA_REFRESH_MINUTES, SPOTDL_CMD,
    YT_DOWNLOAD_ROOT, YTDLP_CMD,
)


def get_setting(key: str, default: str = "") -> str:
    """Get a setting value from the environment (uppercase, with underscores)."""
    env_key = key.upper().replace(".", "_")
    env_value = os.getenv(env_key)
    if env_value is not None:
        return env_value
    return default


def get_setting_int(key: str, default: int = 0) -> int:
    """Get an integer setting value."""
    value = get_setting(key, str(default))
    try:
        return int(value)
    except (ValueError, TypeError):
        return default


def get_setting_list(key: str) -> list[str]:
    """Get a comma-separated setting as a list, blanks dropped."""
    return [item.strip() for item in get_setting(key, "").split(",") if item.strip()]


def get_playlist_urls() -> list[str]:
    return get_setting_list("playlist_urls")


def get_spotify_credentials() -> tuple[str, str]:
    return get_setting("spotify_client_id", ""), get_setting("spotify_client_secret", "")


# Sensitive settings are reported as configured/not configured, never echoed
SENSITIVE_SETTINGS = {"spotify_client_id", "spotify_client_secret"}

# All recognised settings with their types and defaults
SETTINGS_SCHEMA = {
    "playlist_urls": {"type": "list", "default": "", "env": "PLAYLIST_URLS"},
    "metadata_refresh_minutes": {"type": "int", "default": METADATA_REFRESH_MINUTES, "env": "METADATA_REFRESH_MINUTES"},
    "download_scan_seconds": {"type": "int", "default": DOWNLOAD_SCAN_SECONDS, "env": "DOWNLOAD_SCAN_SECONDS"},
    "download_root": {"type": "str", "default": str(DOWNLOAD_ROOT), "env": "DOWNLOAD_ROOT"},
    "yt_download_root": {"type": "str", "default": str(YT_DOWNLOAD_ROOT), "env": "YT_DOWNLOAD_ROOT"},
    "spotdl_cmd": {"type": "str", "default": SPOTDL_CMD, "env": "SPOTDL_CMD"},
    "ytdlp_cmd": {"type": "str", "default": YTDLP_CMD, "env": "YTDLP_CMD"},
    "content_ttl_minutes": {"type": "int", "default": CONTENT_TTL_MINUTES, "env": "CONTENT_TTL_MINUTES"},
    "cleanup_interval_minutes": {"type": "int", "default": CLEANUP_INTERVAL_MINUTES, "env": "CLEANUP_INTERVAL_MINUTES"},
    "spotify_client_id": {"type": "str", "default": "", "env": "SPOTIFY_CLIENT_ID", "sensitive": True},
    "spotify_client_secret": {"type": "str", "default": "", "env": "SPOTIFY_CLIENT_SECRET", "sensitive": True},
}


def _get_typed_setting(key: str):
    """Get a setting with proper type conversion based on schema."""
    schema = SETTINGS_SCHEMA.get(key, {"type": "str", "default": ""})
    default = schema["default"]
    if schema["type"] == "int":
        return get_setting_int(key, default)
    elif schema["type"] == "list":
        return get_setting_list(key)
    return get_setting(key, default)


def _is_env_override(key: str) -> bool:
    """Check if a setting is being overridden by an environment variable."""
    schema = SETTINGS_SCHEMA.get(key, {})
    env_key = schema.get("env", key.upper())
    return os.getenv(env_key) is not None


def describe_settings() -> dict:
    """Current value of every setting, with sensitive ones reduced to a flag."""
    described = {}
    for key in SETTINGS_SCHEMA:
        if key in SENSITIVE_SETTINGS:
            value = bool(get_setting(key, ""))
        else:
            value = _get_typed_setting(key)
        described[key] = {"value": value, "env_override": _is_env_override(key)}
    return described


def warn_missing_credentials() -> bool:
    """Print a warning when Spotify credentials are absent. Returns True if they are set."""
    client_id, client_secret = get_spotify_credentials()
    if not client_id or not client_secret:
        print("[config] SPOTIFY_CLIENT_ID or SPOTIFY_CLIENT_SECRET not set. Spotify API will fail.")
        return False
    return True

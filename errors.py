"""
Backup Sptfy - Error Types

NotFoundError and AlreadyInProgressError surface to callers of an explicit
operation. Everything else is recorded on the playlist/job it happened to
and logged; none of these are fatal to the service.
"""

from typing import Any


class DashboardError(Exception):
    """Base class. ``message`` holds the text shown to users."""

    def __init__(self, message: str, *args: Any) -> None:
        super().__init__(message, *args)
        self.message = message

    def __str__(self) -> str:
        return self.message


class NotFoundError(DashboardError):
    """Unknown playlist or job id."""

    def __init__(self, entity_type: str, entity_id: Any) -> None:
        super().__init__(f"{entity_type} not found: {entity_id}")
        self.entity_type = entity_type
        self.entity_id = entity_id


class AlreadyInProgressError(DashboardError):
    """A sync was requested for a playlist that already has a live process."""


class ApiError(DashboardError):
    """Spotify metadata fetch failed (network, auth, bad or unknown id)."""


class ProcessSpawnError(DashboardError):
    """The downloader executable could not be launched."""


class ProcessExitError(DashboardError):
    """The downloader exited with a nonzero code."""

    def __init__(self, code: int) -> None:
        super().__init__(f"exited with code {code}")
        self.code = code


class FilesystemError(DashboardError):
    """Scanning or cleaning a download directory failed."""

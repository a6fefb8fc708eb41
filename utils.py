"""
Backup Sptfy - Common Utilities

Track key normalisation and matching, audio file listing, name
sanitisation, and background task bookkeeping.
"""

import asyncio
import re
import secrets
import unicodedata
from datetime import datetime, timezone
from pathlib import Path
from typing import Awaitable, Iterable

from constants import AUDIO_EXTENSIONS, JOB_ID_BYTES
from errors import FilesystemError


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def slugify(text: str) -> str:
    """Normalise a string into a matching key.

    Examples:
    "Radiohead - Karma Police"            -> "radiohead-karma-police"
    "Beyoncé - Déjà Vu"                   -> "beyonce-deja-vu"
    "AC/DC - T.N.T."                      -> "acdc-tnt"
    """
    text = unicodedata.normalize("NFKD", text or "")
    # Drop everything but word chars, whitespace and hyphens (this also
    # removes the combining marks NFKD split off the accented letters)
    text = re.sub(r"[^\w\s-]", "", text, flags=re.ASCII)
    text = text.strip().lower()
    # " - " between artist and title collapses to one hyphen, same as a space
    return re.sub(r"[\s-]+", "-", text)


def build_track_key(artists: str, name: str) -> str:
    """Matching key for a track, as compared against downloaded filenames."""
    return slugify(f"{artists} - {name}")


def filename_key(filename: str) -> str:
    """Matching key for a file on disk (extension stripped)."""
    return slugify(Path(filename).stem)


def track_is_downloaded(key: str, file_keys: Iterable[str]) -> bool:
    """A track counts as downloaded if any file key contains its key.

    Substring rather than equality so downloader suffixes ("-320kbps",
    numeric prefixes) still match. An unrelated file whose name happens to
    contain the key will match as well.
    """
    return any(key in file_key for file_key in file_keys)


def list_audio_files(directory: Path, extensions: Iterable[str] = AUDIO_EXTENSIONS) -> list[str]:
    """Names of audio files directly inside ``directory``, sorted.

    A missing directory simply has no files yet.
    """
    wanted = {ext.lower() for ext in extensions}
    try:
        entries = list(directory.iterdir())
    except FileNotFoundError:
        return []
    except OSError as e:
        raise FilesystemError(f"Failed to list {directory}: {e}") from e
    return sorted(p.name for p in entries if p.is_file() and p.suffix.lower() in wanted)


def safe_archive_name(name: str) -> str:
    """Filename for a downloadable archive, e.g. 'My Mix!' -> 'My_Mix_.zip'"""
    return re.sub(r"[^\w\d\-_.]+", "_", f"{name}.zip")


def safe_name(name: str) -> str:
    """Keep filenames served to browsers free of path and header trouble."""
    return re.sub(r"[^\w\d\-_.\[\]\(\) ]+", "_", name)


def new_job_id() -> str:
    return secrets.token_hex(JOB_ID_BYTES)


class BackgroundTaskSet:
    """Fire-and-forget tasks that are still owned by someone.

    Every coroutine is wrapped so a failure is printed rather than lost or
    propagated, and the set keeps a strong reference until the task ends so
    it can't be garbage collected mid-flight. ``cancel_all`` is for shutdown.
    """

    def __init__(self):
        self._tasks: set[asyncio.Task] = set()

    def spawn(self, coro: Awaitable, label: str) -> asyncio.Task:
        task = asyncio.ensure_future(self._guarded(coro, label))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    @staticmethod
    async def _guarded(coro: Awaitable, label: str):
        try:
            return await coro
        except asyncio.CancelledError:
            raise
        except Exception as e:
            print(f"Background task '{label}' failed: {e}")
            return None

    def __len__(self) -> int:
        return len(self._tasks)

    async def wait_idle(self) -> None:
        """Wait until every task spawned so far (and any they spawn) has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def cancel_all(self) -> None:
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()

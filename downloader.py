"""
Backup Sptfy - Downloader Processes

Command lines for spotdl / yt-dlp and a small supervisor around one
running child process: start it, stream its output line by line, and
wait for the exit code.
"""

import asyncio
import re
from pathlib import Path
from typing import Callable, Optional

from constants import LOG_LINE_MAX, PIPE_READ_SIZE
from errors import ProcessSpawnError

# (line, stream) where stream is "stdout" or "stderr"
LineCallback = Callable[[str, str], None]

_LINE_BREAK = re.compile(rb"\r\n|\r|\n")


def spotdl_command(spotdl_cmd: str, url: str) -> list[str]:
    """spotdl invocation that writes straight into the working directory."""
    return [
        spotdl_cmd,
        "download",
        url,
        "--output", "{artists} - {title}.{output-ext}",
    ]


def ytdlp_command(ytdlp_cmd: str, url: str) -> list[str]:
    """yt-dlp invocation extracting an mp3 (plus tags/thumbnail) into the working directory."""
    return [
        ytdlp_cmd,
        url,
        "-x",
        "--audio-format", "mp3",
        "--add-metadata",
        "--embed-thumbnail",
        "--write-info-json",
        "-o", "%(title)s [%(id)s].%(ext)s",
    ]


class DownloadProcess:
    """One external downloader run.

    The handle exists before the process does so callers can claim a slot
    (e.g. ``playlist.process = handle``) and only then await ``start()``.
    """

    def __init__(self, cmd: list[str], cwd: Path, on_line: Optional[LineCallback] = None):
        self.cmd = cmd
        self.cwd = Path(cwd)
        self.on_line = on_line
        self.returncode: Optional[int] = None
        self._proc: Optional[asyncio.subprocess.Process] = None
        self._done: Optional[asyncio.Future] = None

    @property
    def pid(self) -> Optional[int]:
        return self._proc.pid if self._proc else None

    @property
    def is_running(self) -> bool:
        return self._done is not None and not self._done.done()

    async def start(self) -> None:
        """Launch the process. Raises ProcessSpawnError if it can't be started."""
        if self._proc is not None:
            raise RuntimeError("process already started")

        try:
            self.cwd.mkdir(parents=True, exist_ok=True)
            self._proc = await asyncio.create_subprocess_exec(
                *self.cmd,
                cwd=str(self.cwd),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            # FileNotFoundError / PermissionError for a missing or non-executable binary
            raise ProcessSpawnError(f"Failed to start {self.cmd[0]}: {e.strerror or e}")

        self._done = asyncio.ensure_future(self._supervise())

    async def _pump(self, stream: asyncio.StreamReader, name: str) -> None:
        """Forward output line by line until EOF.

        Progress bars redraw with a bare \\r, so that ends a line as well.
        Output with no break at all is cut into LOG_LINE_MAX pieces rather
        than buffered without bound.
        """
        pending = b""
        while True:
            chunk = await stream.read(PIPE_READ_SIZE)
            if not chunk:
                break
            pending += chunk
            *lines, pending = _LINE_BREAK.split(pending)
            while len(pending) > LOG_LINE_MAX:
                lines.append(pending[:LOG_LINE_MAX])
                pending = pending[LOG_LINE_MAX:]
            for raw in lines:
                self._emit(raw, name)
        if pending:
            self._emit(pending, name)

    def _emit(self, raw: bytes, name: str) -> None:
        line = raw.decode("utf-8", errors="replace").rstrip()
        if line and self.on_line:
            self.on_line(line, name)

    async def _supervise(self) -> int:
        # Drain both pipes before reaping so no trailing output is lost
        await asyncio.gather(
            self._pump(self._proc.stdout, "stdout"),
            self._pump(self._proc.stderr, "stderr"),
        )
        self.returncode = await self._proc.wait()
        return self.returncode

    async def wait(self) -> int:
        """Exit code, once the process has exited and its output is drained.

        Cancelling the waiter stops the output pumps too; the child itself
        is left to finish on its own.
        """
        if self._done is None:
            raise RuntimeError("process not started")
        return await self._done

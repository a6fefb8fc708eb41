"""
Backup Sptfy - YouTube -> MP3 Jobs

One-shot yt-dlp downloads of a single URL into their own folder. Same
shape as a playlist sync, minus the registry of known tracks: a job runs
once, reports its mp3 files, and is deleted by cleanup after the TTL.
"""

import re
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterator, Optional
from urllib.parse import quote

from constants import LOG_CAPACITY, YTDLP_CMD
from downloader import DownloadProcess, ytdlp_command
from errors import NotFoundError, ProcessExitError, ProcessSpawnError
from utils import BackgroundTaskSet, list_audio_files, new_job_id, utcnow

JOB_RUNNING = "running"
JOB_DONE = "done"
JOB_ERROR = "error"


@dataclass
class Job:
    id: str
    url: str
    dir: Path
    status: str = JOB_RUNNING
    files: list[str] = field(default_factory=list)
    logs: deque = field(default_factory=lambda: deque(maxlen=LOG_CAPACITY), repr=False)
    started_at: datetime = field(default_factory=utcnow)
    finished_at: Optional[datetime] = None
    error: Optional[str] = None
    process: Optional[DownloadProcess] = field(default=None, repr=False)

    def append_log(self, line: str, stream: str = "stdout") -> None:
        self.logs.append(f"[{utcnow().isoformat()}] [{stream}] {line}")
        print(f"[yt-dlp] {line}")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "url": self.url,
            "status": self.status,
            "files": [
                {"name": name, "href": f"/api/yt/{self.id}/file/{quote(name)}"}
                for name in self.files
            ],
            "logs": list(self.logs),
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "error": self.error,
        }


class JobRegistry:
    def __init__(self, root: Path):
        self.root = Path(root)
        self._jobs: dict[str, Job] = {}

    def create(self, url: str) -> Job:
        job_id = new_job_id()
        job = Job(id=job_id, url=url, dir=self.root / job_id)
        self._jobs[job_id] = job
        return job

    def get(self, job_id: str) -> Optional[Job]:
        return self._jobs.get(job_id)

    def require(self, job_id: str) -> Job:
        job = self._jobs.get(job_id)
        if job is None:
            raise NotFoundError("Job", job_id)
        return job

    def remove(self, job_id: str) -> None:
        self._jobs.pop(job_id, None)

    def __iter__(self) -> Iterator[Job]:
        return iter(list(self._jobs.values()))

    def __len__(self) -> int:
        return len(self._jobs)


class JobRunner:
    def __init__(
        self,
        jobs: JobRegistry,
        tasks: BackgroundTaskSet,
        ytdlp_cmd: str = YTDLP_CMD,
        command_factory: Callable[[str], list[str]] | None = None,
    ):
        self.jobs = jobs
        self.tasks = tasks
        self.command_factory = command_factory or (lambda url: ytdlp_command(ytdlp_cmd, url))

    async def start_job(self, url: str) -> Job:
        """Create a job for ``url`` and start yt-dlp. Raises ValueError for non-http(s) URLs."""
        url = (url or "").strip()
        if not re.match(r'^https?://', url, flags=re.IGNORECASE):
            raise ValueError("Please provide a valid http(s) URL.")

        job = self.jobs.create(url)
        process = DownloadProcess(self.command_factory(url), job.dir, on_line=job.append_log)
        job.process = process

        try:
            await process.start()
        except ProcessSpawnError as e:
            job.process = None
            job.finished_at = utcnow()
            job.status = JOB_ERROR
            job.error = e.message
            print(f"[yt-dlp] Job {job.id}: {job.error}")
            return job

        self.tasks.spawn(self._watch(job, process), f"yt-dlp job {job.id}")
        return job

    async def _watch(self, job: Job, process: DownloadProcess) -> None:
        try:
            code = await process.wait()
        except Exception as e:
            code = None
            job.error = f"Lost track of yt-dlp: {e}"
        job.process = None
        job.finished_at = utcnow()
        if code == 0:
            job.status = JOB_DONE
            try:
                job.files = list_audio_files(job.dir, extensions=[".mp3"])
            except Exception as e:
                print(f"[yt-dlp] Job {job.id} finished but its files could not be listed: {e}")
                job.files = []
        else:
            job.status = JOB_ERROR
            if code is not None:
                job.error = f"yt-dlp {ProcessExitError(code).message}"
            print(f"[yt-dlp] Job {job.id}: {job.error}")

"""
Backup Sptfy - ZIP Streaming

Builds a ZIP of a folder on the fly so a whole playlist can be downloaded
without writing the archive to disk first.
"""

import zipfile
from pathlib import Path
from typing import Iterator

from constants import ZIP_CHUNK_SIZE


class _ChunkBuffer:
    """Write-only, unseekable sink that zipfile writes into and we drain from."""

    def __init__(self):
        self._chunks: list[bytes] = []
        self._written = 0

    def write(self, data: bytes) -> int:
        if data:
            self._chunks.append(bytes(data))
            self._written += len(data)
        return len(data)

    def tell(self) -> int:
        return self._written

    def flush(self) -> None:
        pass

    def drain(self) -> bytes:
        data = b"".join(self._chunks)
        self._chunks.clear()
        return data


def iter_zip_directory(directory: Path, compresslevel: int = 9) -> Iterator[bytes]:
    """Yield the bytes of a ZIP of everything under ``directory``.

    Entries are relative to the folder itself (no parent folder entry), so
    unzipping drops the tracks straight into the target directory.
    """
    directory = Path(directory)
    buffer = _ChunkBuffer()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=compresslevel) as zf:
        for path in sorted(directory.rglob("*")):
            if not path.is_file():
                continue
            arcname = path.relative_to(directory).as_posix()
            with path.open("rb") as src, zf.open(arcname, "w") as dest:
                while True:
                    chunk = src.read(ZIP_CHUNK_SIZE)
                    if not chunk:
                        break
                    dest.write(chunk)
                    data = buffer.drain()
                    if data:
                        yield data
            data = buffer.drain()
            if data:
                yield data
    # Central directory is written on close
    data = buffer.drain()
    if data:
        yield data

"""Filesystem access used by the context discoverer.

The discoverer only needs four operations, so any store with POSIX-like
semantics can back it. ``LocalFileSystem`` pushes the blocking calls to
a worker thread so discovery never stalls the event loop.
"""

import asyncio
import stat as stat_module
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol


@dataclass(frozen=True)
class FileStat:
    size: int
    is_file: bool
    is_dir: bool


class FileSystem(Protocol):
    """Read/list/stat capability consumed by the discoverer.

    ``read_text`` decodes lossily: undecodable bytes become U+FFFD
    rather than raising.
    """

    async def exists(self, path: str) -> bool: ...

    async def read_text(self, path: str) -> str: ...

    async def list_dir(self, path: str) -> list[str]: ...

    async def stat(self, path: str) -> FileStat: ...


class LocalFileSystem:
    """The real disk."""

    async def exists(self, path: str) -> bool:
        return await asyncio.to_thread(Path(path).exists)

    async def read_text(self, path: str) -> str:
        return await asyncio.to_thread(
            Path(path).read_text, encoding="utf-8", errors="replace")

    async def list_dir(self, path: str) -> list[str]:
        # Sorted so results do not depend on directory entry order
        entries = await asyncio.to_thread(_entry_names, Path(path))
        return sorted(entries)

    async def stat(self, path: str) -> FileStat:
        st = await asyncio.to_thread(Path(path).stat)
        return FileStat(
            size=st.st_size,
            is_file=stat_module.S_ISREG(st.st_mode),
            is_dir=stat_module.S_ISDIR(st.st_mode),
        )


def _entry_names(directory: Path) -> list[str]:
    return [entry.name for entry in directory.iterdir()]

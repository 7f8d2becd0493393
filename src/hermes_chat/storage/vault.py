"""Vault storage collaborator.

The host application owns note storage. Components depend on the Vault
protocol; FileSystemVault implements it over a plain directory, with an
Obsidian-style ``.trash`` folder for deletions.
"""

import asyncio
import shutil
from pathlib import Path, PurePosixPath
from typing import Protocol

from hermes_chat.logging import get_logger

logger = get_logger("vault")

TRASH_FOLDER = ".trash"


class Vault(Protocol):
    async def create_file(self, path: str, content: str) -> None: ...

    async def create_directory(self, path: str) -> bool: ...

    async def list_files(self) -> list[str]: ...


class FileSystemVault:
    """Vault backed by a directory on disk.

    Paths are vault-relative POSIX strings, as the host presents them.
    """

    def __init__(self, root: Path) -> None:
        self._root = root

    @property
    def root(self) -> Path:
        return self._root

    def resolve(self, path: str) -> Path:
        """Absolute filesystem path for a vault path.

        Raises:
            ValueError: If the path escapes the vault root
        """
        relative = PurePosixPath(path.lstrip("/"))
        if ".." in relative.parts:
            raise ValueError(f"Path escapes vault: {path}")
        return self._root.joinpath(*relative.parts)

    async def create_file(self, path: str, content: str) -> None:
        """Create a new note.

        Raises:
            FileExistsError: If a note already exists at this path
        """
        target = self.resolve(path)
        await asyncio.to_thread(self._write_new, target, content)
        logger.info("Created file: path=%s", path)

    @staticmethod
    def _write_new(target: Path, content: str) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        with open(target, "x", encoding="utf-8") as f:
            f.write(content)

    async def create_directory(self, path: str) -> bool:
        """Create a folder; returns False if it already existed."""
        target = self.resolve(path)
        if target.is_dir():
            return False
        await asyncio.to_thread(target.mkdir, parents=True, exist_ok=True)
        return True

    async def list_files(self) -> list[str]:
        return await asyncio.to_thread(self._list_files)

    def _list_files(self) -> list[str]:
        if not self._root.exists():
            return []
        files = []
        for path in self._root.rglob("*"):
            relative = path.relative_to(self._root)
            if path.is_file() and relative.parts[0] != TRASH_FOLDER:
                files.append(relative.as_posix())
        return sorted(files)

    async def trash(self, path: str) -> str:
        """Move a note into the vault's .trash folder.

        Returns:
            The note's new vault path

        Raises:
            FileNotFoundError: If the note does not exist
        """
        source = self.resolve(path)
        if not source.exists():
            raise FileNotFoundError(f"File does not exist: {path}")
        trashed = await asyncio.to_thread(self._move_to_trash, source)
        logger.info("Trashed file: source=%s dest=%s", path, trashed)
        return trashed

    def _move_to_trash(self, source: Path) -> str:
        # An existing trashed note with the same name gets " 1", " 2", ... appended
        trash_dir = self._root / TRASH_FOLDER
        trash_dir.mkdir(parents=True, exist_ok=True)
        target = trash_dir / source.name
        counter = 1
        while target.exists():
            target = trash_dir / f"{source.stem} {counter}{source.suffix}"
            counter += 1
        shutil.move(str(source), str(target))
        return f"{TRASH_FOLDER}/{target.name}"

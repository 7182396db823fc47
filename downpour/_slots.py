from __future__ import annotations

import abc
import logging
import os
import typing as tp
from pathlib import Path, PurePosixPath
from urllib.parse import urlsplit

from ._utils import generate_key, whole_seconds

logger = logging.getLogger("downpour.slots")

__all__ = ("CacheSlot", "FileCacheSlot", "CacheDirectory")


class CacheSlot(abc.ABC):
    """
    The storage location of one cached resource.

    A slot holds the current cached copy (if any) and at most one temporary
    version being written. The current copy is only ever replaced by `promote`.
    """

    @abc.abstractmethod
    def exists(self) -> bool:
        pass

    @abc.abstractmethod
    def last_modified(self) -> int:
        """Modification time of the cached copy, in whole POSIX seconds."""

    @abc.abstractmethod
    def open_read(self) -> tp.BinaryIO:
        pass

    @abc.abstractmethod
    def open_temp(self) -> tp.BinaryIO:
        pass

    @abc.abstractmethod
    def promote(self) -> None:
        pass

    @abc.abstractmethod
    def discard(self) -> None:
        pass


class FileCacheSlot(CacheSlot):
    """
    A cache slot backed by a file on the local filesystem.

    The temporary version lives beside the cached file so that promoting it
    is a single `os.replace` on the same filesystem.

    :param path: Location of the cached file
    :type path: tp.Union[str, Path]
    :param temp_suffix: Suffix appended to the path for the temporary version, defaults to ".part"
    :type temp_suffix: str
    """

    def __init__(self, path: tp.Union[str, Path], temp_suffix: str = ".part") -> None:
        self.path = Path(path)
        self.temp_path = self.path.with_name(self.path.name + temp_suffix)

    def exists(self) -> bool:
        return self.path.is_file()

    def last_modified(self) -> int:
        return whole_seconds(self.path.stat().st_mtime)

    def open_read(self) -> tp.BinaryIO:
        return open(self.path, "rb")

    def open_temp(self) -> tp.BinaryIO:
        self.temp_path.parent.mkdir(parents=True, exist_ok=True)
        return open(self.temp_path, "wb")

    def promote(self) -> None:
        os.replace(self.temp_path, self.path)
        logger.debug(f"Promoted {self.temp_path} to {self.path}.")

    def discard(self) -> None:
        self.temp_path.unlink(missing_ok=True)
        logger.debug(f"Discarded the temporary file {self.temp_path}.")

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({str(self.path)!r})"


class CacheDirectory:
    """
    A directory of file cache slots, one per URL.

    Slot names are the SHA-256 of the URL, keeping the extension of the URL path.

    :param base_path: Directory holding the cached files, defaults to ".cache/downpour"
    :type base_path: tp.Optional[tp.Union[str, Path]], optional
    """

    def __init__(self, base_path: tp.Optional[tp.Union[str, Path]] = None) -> None:
        self._base_path = Path(base_path) if base_path is not None else Path(".cache/downpour")
        self._gitignore_file = self._base_path / ".gitignore"

        self._base_path.mkdir(parents=True, exist_ok=True)

        if not self._gitignore_file.is_file():
            with open(self._gitignore_file, "w", encoding="utf-8") as f:
                f.write("# Automatically created by Downpour\n*")

    @property
    def base_path(self) -> Path:
        return self._base_path

    def slot_for(self, url: str) -> FileCacheSlot:
        suffix = PurePosixPath(urlsplit(url).path).suffix
        return FileCacheSlot(self._base_path / f"{generate_key(url)}{suffix}")

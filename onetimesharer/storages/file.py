"""
FileStore — one-time secrets persisted as a single JSON document.

Every save and read loads the whole document, mutates it in memory and
writes it back. The read-mutate-write sequence is serialized by a lock owned
by the store instance; without it two concurrent saves could lose a record
and two concurrent reads could both deliver the same secret.

Note:
    There is no cross-process locking. Only one process may use a given
    file at a time; use the SQLite backend otherwise.
"""
import os
import asyncio
import logging
from pathlib import Path
from typing import Callable, Optional, Union

import aiofiles
import aiofiles.os

from ..codec import dumps_dataset, loads_dataset
from ..crypto import Cipher
from ..exceptions import ConfigurationError, StorageError
from .abstract import AbstractStore

logger = logging.getLogger("onetimesharer.storage.file")

FILE_MODE = 0o600  # owner read/write only


def _private_opener(path: str, flags: int) -> int:
    return os.open(path, flags, FILE_MODE)


def _fsync_dir(path: Path) -> None:
    fd = os.open(path, os.O_RDONLY)
    try:
        os.fsync(fd)
    finally:
        os.close(fd)


class FileStore(AbstractStore):
    """JSON file backend.

    Args:
        path: Location of the dataset document.
        cipher: Cipher used for keys and values.
    """

    name: str = "file"

    def __init__(self, path: Union[str, Path], cipher: Cipher, **kwargs):
        super().__init__(cipher, **kwargs)
        self._path = Path(path)
        self._tmp_path = self._path.with_name(f".{self._path.name}.tmp")
        self._lock = asyncio.Lock()

    @property
    def path(self) -> Path:
        return self._path

    # ------------------------------------------------------------------
    # Document I/O
    # ------------------------------------------------------------------

    async def _load(self) -> dict[str, str]:
        try:
            async with aiofiles.open(self._path, "rb") as f:
                data = await f.read()
        except OSError as err:
            logger.error("Could not read secrets file %s: %s", self._path, err)
            raise StorageError("Could not read secrets file") from err
        return loads_dataset(data)

    async def _dump(self, dataset: dict[str, str]) -> None:
        """Atomically replace the document: temp file, fsync, rename.

        The temp file may be left over from a crash with another mode, so
        its mode is reset before it replaces the dataset.
        """
        data = dumps_dataset(dataset)
        try:
            async with aiofiles.open(self._tmp_path, "wb", opener=_private_opener) as f:
                await f.write(data)
                await f.flush()
                os.fchmod(f.fileno(), FILE_MODE)
                await asyncio.to_thread(os.fsync, f.fileno())
            await aiofiles.os.replace(self._tmp_path, self._path)
            # make the rename itself durable
            await asyncio.to_thread(_fsync_dir, self._path.parent)
        except OSError as err:
            logger.error("Could not write secrets file %s: %s", self._path, err)
            try:
                await aiofiles.os.remove(self._tmp_path)
            except OSError:
                pass
            raise StorageError("Could not write secrets file") from err

    # ------------------------------------------------------------------
    # Backend primitives
    # ------------------------------------------------------------------

    async def _open(self) -> None:
        parent = self._path.parent
        if not await aiofiles.os.path.isdir(parent):
            raise ConfigurationError(
                f"Directory for secrets file does not exist: {parent}"
            )
        if await aiofiles.os.path.isdir(self._path):
            raise ConfigurationError(
                f"Secrets file path is a directory: {self._path}"
            )
        if not await aiofiles.os.path.exists(self._path):
            await self._dump({})
            logger.info("Created secrets file %s", self._path)
            return
        # fail fast on an unreadable or corrupt document
        dataset = await self._load()
        logger.info(
            "Loaded secrets file %s: %d secret(s)", self._path, len(dataset)
        )

    async def _close(self) -> None:
        # wait for an in-flight read-mutate-write to finish
        async with self._lock:
            pass

    async def _insert(self, lookup: str, value: str) -> bool:
        async with self._lock:
            self._ensure_open()
            dataset = await self._load()
            if lookup in dataset:
                return False
            dataset[lookup] = value
            await self._dump(dataset)
        return True

    async def _pop(
        self, lookup: str, decode: Callable[[str], str]
    ) -> Optional[str]:
        async with self._lock:
            self._ensure_open()
            dataset = await self._load()
            value = dataset.get(lookup)
            if value is None:
                return None
            # a value that fails to decode stays in the dataset
            secret = decode(value)
            del dataset[lookup]
            await self._dump(dataset)
        return secret

    async def _contains(self, lookup: str) -> bool:
        dataset = await self._load()
        return lookup in dataset

"""
SqliteStore — one-time secrets persisted as rows of an embedded database.

Each record is one row keyed by its encrypted lookup key. A read runs
``BEGIN IMMEDIATE``, ``DELETE ... RETURNING``, decrypts the value and only
then commits; a value that fails to decrypt is rolled back. SQLite's write
lock guarantees at-most-once delivery, also between processes sharing the
same database file.

One connection carries a single transaction at a time, so writes issued
through the same store instance are serialized by a per-instance lock.
"""
import asyncio
import sqlite3
import logging
from pathlib import Path
from typing import Callable, Optional, Union

import aiosqlite

from ..crypto import Cipher
from ..exceptions import ConfigurationError, StorageError
from .abstract import AbstractStore

logger = logging.getLogger("onetimesharer.storage.sqlite")

BUSY_TIMEOUT_MS = 5000

# SQL statements
_SCHEMA = """
CREATE TABLE IF NOT EXISTS secrets (
  key_ciphertext TEXT PRIMARY KEY,
  value_ciphertext TEXT NOT NULL
)
"""

_INSERT_SECRET = """
INSERT INTO secrets (key_ciphertext, value_ciphertext)
VALUES (?, ?)
"""

_CONSUME_SECRET = """
DELETE FROM secrets
WHERE key_ciphertext = ?
RETURNING value_ciphertext
"""

_SECRET_EXISTS = """
SELECT 1 FROM secrets WHERE key_ciphertext = ?
"""


class SqliteStore(AbstractStore):
    """SQLite backend.

    Args:
        path: Location of the database file.
        cipher: Cipher used for keys and values.
        busy_timeout: Milliseconds a statement waits on a locked database.
    """

    name: str = "sqlite"

    def __init__(
        self,
        path: Union[str, Path],
        cipher: Cipher,
        busy_timeout: int = BUSY_TIMEOUT_MS,
        **kwargs,
    ):
        super().__init__(cipher, **kwargs)
        self._path = Path(path)
        self._busy_timeout = busy_timeout
        self._conn: Optional[aiosqlite.Connection] = None
        self._write_lock = asyncio.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def _connection(self) -> aiosqlite.Connection:
        self._ensure_open()
        if self._conn is None:
            raise StorageError("sqlite store has no connection")
        return self._conn

    # ------------------------------------------------------------------
    # Backend primitives
    # ------------------------------------------------------------------

    async def _open(self) -> None:
        if not self._path.parent.is_dir():
            raise ConfigurationError(
                f"Directory for database does not exist: {self._path.parent}"
            )
        if self._path.is_dir():
            raise ConfigurationError(f"Database path is a directory: {self._path}")
        try:
            # autocommit: every statement is its own transaction
            conn = await aiosqlite.connect(str(self._path), isolation_level=None)
        except sqlite3.Error as err:
            logger.error("Could not open database %s: %s", self._path, err)
            raise StorageError("Could not open secrets database") from err
        try:
            await conn.execute(f"PRAGMA busy_timeout = {int(self._busy_timeout)}")
            await conn.execute("PRAGMA journal_mode = WAL")
            await conn.execute("PRAGMA synchronous = FULL")
            await conn.execute(_SCHEMA)
        except sqlite3.Error as err:
            await conn.close()
            logger.error("Could not initialize database %s: %s", self._path, err)
            raise StorageError("Could not initialize secrets database") from err
        self._conn = conn
        logger.info("Using secrets database %s", self._path)

    async def _close(self) -> None:
        # wait for an in-flight transaction to finish
        async with self._write_lock:
            conn, self._conn = self._conn, None
        if conn is not None:
            try:
                await conn.close()
            except sqlite3.Error as err:
                logger.error("Error closing database %s: %s", self._path, err)
                raise StorageError("Could not close secrets database") from err

    async def _insert(self, lookup: str, value: str) -> bool:
        async with self._write_lock:
            conn = self._connection()
            try:
                await conn.execute(_INSERT_SECRET, (lookup, value))
            except sqlite3.IntegrityError:
                return False
            except (sqlite3.Error, ValueError) as err:
                logger.error("Could not insert secret: %s", err)
                raise StorageError("Could not save secret") from err
        return True

    async def _pop(
        self, lookup: str, decode: Callable[[str], str]
    ) -> Optional[str]:
        async with self._write_lock:
            conn = self._connection()
            try:
                await conn.execute("BEGIN IMMEDIATE")
                try:
                    async with conn.execute(_CONSUME_SECRET, (lookup,)) as cursor:
                        rows = await cursor.fetchall()
                    secret = decode(rows[0][0]) if rows else None
                except BaseException:
                    await conn.execute("ROLLBACK")
                    raise
                await conn.execute("COMMIT")
            except (sqlite3.Error, ValueError) as err:
                logger.error("Could not consume secret: %s", err)
                raise StorageError("Could not read secret") from err
        return secret

    async def _contains(self, lookup: str) -> bool:
        conn = self._connection()
        try:
            async with conn.execute(_SECRET_EXISTS, (lookup,)) as cursor:
                row = await cursor.fetchone()
        except (sqlite3.Error, ValueError) as err:
            logger.error("Could not look up secret: %s", err)
            raise StorageError("Could not validate secret") from err
        return row is not None

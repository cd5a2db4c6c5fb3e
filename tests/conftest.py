"""Shared fixtures for the one-time secret store tests."""
import sqlite3

import orjson
import pytest

from onetimesharer.codec import encode_ciphertext
from onetimesharer.crypto import Cipher
from onetimesharer.storages import FileStore, SqliteStore

CIPHER_KEY = b"0123456789abcdefghijklmnopqrstuv"
OTHER_CIPHER_KEY = b"vutsrqponmlkjihgfedcba9876543210"

BACKENDS = ("json", "sqlite")


def make_store(backend: str, directory, cipher: Cipher):
    """Build an unopened store of the given backend inside directory."""
    if backend == "json":
        return FileStore(directory / "secrets.json", cipher)
    return SqliteStore(directory / "secrets.db", cipher)


def corrupt_values(backend: str, directory) -> None:
    """Overwrite every stored value with well-formed but undecryptable data."""
    garbage = encode_ciphertext(b"\x00" * 48)
    if backend == "json":
        path = directory / "secrets.json"
        dataset = orjson.loads(path.read_bytes())
        path.write_bytes(orjson.dumps({k: garbage for k in dataset}))
        return
    conn = sqlite3.connect(str(directory / "secrets.db"))
    try:
        conn.execute("UPDATE secrets SET value_ciphertext = ?", (garbage,))
        conn.commit()
    finally:
        conn.close()


@pytest.fixture
def cipher():
    """Cipher keyed with the test key."""
    return Cipher(CIPHER_KEY)


@pytest.fixture
async def file_store(tmp_path, cipher):
    """Opened JSON file store in a temporary directory."""
    store = make_store("json", tmp_path, cipher)
    await store.open()
    yield store
    await store.close()


@pytest.fixture
async def sqlite_store(tmp_path, cipher):
    """Opened SQLite store in a temporary directory."""
    store = make_store("sqlite", tmp_path, cipher)
    await store.open()
    yield store
    await store.close()


@pytest.fixture(params=BACKENDS)
def backend(request):
    """Name of each storage backend in turn."""
    return request.param


@pytest.fixture
async def store(backend, tmp_path, cipher):
    """Opened store, parametrized over both backends."""
    store = make_store(backend, tmp_path, cipher)
    await store.open()
    yield store
    await store.close()

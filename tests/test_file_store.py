"""
Tests specific to the JSON file backend.
"""
import stat

import orjson
import pytest

from onetimesharer.exceptions import ConfigurationError, StorageError
from onetimesharer.storages import FileStore
from onetimesharer.storages import abstract


@pytest.fixture
def fixed_tokens(monkeypatch):
    """Replace the token generator with a scripted sequence."""
    def _install(*tokens):
        it = iter(tokens)
        monkeypatch.setattr(abstract, "random_token", lambda length: next(it))
    return _install


class TestFileInitialization:
    """Tests for creating and verifying the secrets file."""

    async def test_creates_empty_dataset(self, file_store):
        assert file_store.path.read_bytes() == b"{}"

    async def test_owner_only_permissions(self, file_store):
        mode = stat.S_IMODE(file_store.path.stat().st_mode)
        assert mode == 0o600

    async def test_stale_temp_file_mode_is_reset(self, tmp_path, cipher):
        """A leftover temp file with a loose mode cannot widen the dataset."""
        stale = tmp_path / ".secrets.json.tmp"
        stale.write_bytes(b"{}")
        stale.chmod(0o644)
        async with FileStore(tmp_path / "secrets.json", cipher) as store:
            await store.save("hello")
            mode = stat.S_IMODE(store.path.stat().st_mode)
        assert mode == 0o600
        assert not stale.exists()

    async def test_existing_dataset_is_kept(self, tmp_path, cipher):
        path = tmp_path / "secrets.json"
        async with FileStore(path, cipher) as store:
            key = await store.save("kept")
        async with FileStore(path, cipher) as store:
            assert await store.read(key) == "kept"

    @pytest.mark.parametrize("content", [b"not json", b"[]", b'{"k": 1}'])
    async def test_corrupt_file_fails_fast(self, tmp_path, cipher, content):
        path = tmp_path / "secrets.json"
        path.write_bytes(content)
        store = FileStore(path, cipher)
        with pytest.raises(StorageError):
            await store.open()

    async def test_missing_directory(self, tmp_path, cipher):
        store = FileStore(tmp_path / "missing" / "secrets.json", cipher)
        with pytest.raises(ConfigurationError):
            await store.open()

    async def test_path_is_directory(self, tmp_path, cipher):
        store = FileStore(tmp_path, cipher)
        with pytest.raises(ConfigurationError):
            await store.open()


class TestFileDataset:
    """Tests for the persisted document."""

    async def test_document_layout(self, file_store):
        await file_store.save("one")
        await file_store.save("two")
        dataset = orjson.loads(file_store.path.read_bytes())
        assert len(dataset) == 2
        assert all(isinstance(k, str) and isinstance(v, str) for k, v in dataset.items())

    async def test_read_removes_record(self, file_store):
        key = await file_store.save("one")
        await file_store.read(key)
        assert orjson.loads(file_store.path.read_bytes()) == {}

    async def test_no_temp_file_left(self, file_store, tmp_path):
        key = await file_store.save("one")
        await file_store.read(key)
        assert sorted(p.name for p in tmp_path.iterdir()) == ["secrets.json"]

    async def test_failed_write_keeps_dataset(self, file_store, monkeypatch):
        """A failing write leaves the previous document intact."""
        key = await file_store.save("kept")
        before = file_store.path.read_bytes()

        async def broken_replace(*args, **kwargs):
            raise OSError("disk full")

        monkeypatch.setattr("aiofiles.os.replace", broken_replace)
        with pytest.raises(StorageError):
            await file_store.save("lost")
        assert file_store.path.read_bytes() == before
        monkeypatch.undo()
        assert await file_store.read(key) == "kept"


class TestFileLocking:
    """Tests for per-instance mutual exclusion."""

    def test_locks_are_per_instance(self, tmp_path, cipher):
        a = FileStore(tmp_path / "a.json", cipher)
        b = FileStore(tmp_path / "b.json", cipher)
        assert a._lock is not b._lock

    async def test_stores_on_separate_files(self, tmp_path, cipher):
        async with FileStore(tmp_path / "a.json", cipher) as a, \
                FileStore(tmp_path / "b.json", cipher) as b:
            key = await a.save("in a")
            assert await b.validate(key) is False
            assert await a.read(key) == "in a"


class TestKeyCollision:
    """Tests for regeneration when a lookup key already exists."""

    async def test_collision_regenerates(self, file_store, fixed_tokens):
        fixed_tokens("A" * 32, "A" * 32, "B" * 32)
        first = await file_store.save("first")
        second = await file_store.save("second")
        assert first == "A" * 32
        assert second == "B" * 32
        assert await file_store.read(first) == "first"
        assert await file_store.read(second) == "second"

    async def test_collision_never_overwrites(self, file_store, fixed_tokens):
        fixed_tokens(*(["A" * 32] * 6))
        key = await file_store.save("first")
        with pytest.raises(StorageError):
            await file_store.save("second")
        assert await file_store.read(key) == "first"

import asyncio
from io import BytesIO
from unittest.mock import patch

import pytest

from blobfs.adapters.fs.store import StreamStore, is_part_file
from blobfs.core.errors import BadRequestError, NotFoundError, WriteError
from blobfs.core.ports import SaveResult


@pytest.fixture
def store():
    return StreamStore(chunk_size=4)


async def read_all(store, identifier, target):
    async with await store.open_read(identifier, target) as stream:
        return await stream.read()


class TestWriteAndRead:
    async def test_save_and_read(self, store, collection_dir):
        target = collection_dir / "test.txt"
        result = await store.write("test.txt", target, BytesIO(b"hello world"))
        assert result == SaveResult(id="test.txt")
        assert await read_all(store, "test.txt", target) == b"hello world"

    async def test_overwrite(self, store, collection_dir):
        target = collection_dir / "overwrite.txt"
        await store.write("overwrite.txt", target, BytesIO(b"v1"))
        await store.write("overwrite.txt", target, BytesIO(b"v2"))
        assert await read_all(store, "overwrite.txt", target) == b"v2"

    async def test_nested_folders(self, store, collection_dir):
        target = collection_dir / "foo" / "bar" / "baz.txt"
        await store.write("foo/bar/baz.txt", target, BytesIO(b"nested"))
        assert target.read_bytes() == b"nested"

    async def test_existing_parent_directory(self, store, collection_dir):
        (collection_dir / "foo").mkdir()
        await store.write("foo/a", collection_dir / "foo" / "a", BytesIO(b"x"))
        assert (collection_dir / "foo" / "a").read_bytes() == b"x"

    async def test_empty_entity(self, store, collection_dir):
        target = collection_dir / "empty"
        await store.write("empty", target, BytesIO(b""))
        assert target.exists()
        assert await read_all(store, "empty", target) == b""

    async def test_stream_reports_size(self, store, collection_dir):
        target = collection_dir / "sized"
        target.write_bytes(b"123456789")
        stream = await store.open_read("sized", target)
        try:
            assert stream.size == 9
            assert [c async for c in stream] == [b"1234", b"5678", b"9"]
        finally:
            await stream.aclose()

    async def test_no_part_file_left_behind(self, store, collection_dir):
        await store.write("a", collection_dir / "a", BytesIO(b"content"))
        assert [p.name for p in collection_dir.iterdir()] == ["a"]

    async def test_on_complete_after_write(self, store, collection_dir):
        seen = []

        async def done(identifier, content):
            seen.append((identifier, content))

        await store.write(
            "a", collection_dir / "a", BytesIO(b"abc"), on_complete=done, capture_limit=10
        )
        assert seen == [("a", b"abc")]


class TestWriteFailures:
    async def test_parent_is_a_file(self, store, collection_dir):
        (collection_dir / "blocker").write_bytes(b"i am a file")
        with pytest.raises(WriteError) as exc_info:
            await store.write("blocker/a", collection_dir / "blocker" / "a", BytesIO(b"x"))
        assert exc_info.value.status == 500

    async def test_mkdir_failure_is_write_error(self, store, collection_dir):
        with patch("aiofiles.os.makedirs", side_effect=PermissionError("denied")):
            with pytest.raises(WriteError) as exc_info:
                await store.write("x/a", collection_dir / "x" / "a", BytesIO(b"x"))
        assert exc_info.value.code == "EEXIST"

    async def test_mkdir_race_is_success(self, store, collection_dir):
        (collection_dir / "x").mkdir()
        with patch("aiofiles.os.makedirs", side_effect=FileExistsError("raced")):
            await store.write("x/a", collection_dir / "x" / "a", BytesIO(b"ok"))
        assert (collection_dir / "x" / "a").read_bytes() == b"ok"

    async def test_midstream_failure(self, store, collection_dir):
        class Broken:
            def __init__(self):
                self.calls = 0

            def read(self, n):
                self.calls += 1
                if self.calls > 1:
                    raise OSError("disk on fire")
                return b"part"

        target = collection_dir / "broken"
        with pytest.raises(WriteError) as exc_info:
            await store.write("broken", target, Broken())
        assert exc_info.value.code == "ERR_WRITE_FILE"
        assert not target.exists()
        assert list(collection_dir.iterdir()) == []

    async def test_failed_overwrite_keeps_previous_content(self, store, collection_dir):
        target = collection_dir / "keep"
        await store.write("keep", target, BytesIO(b"old"))

        def broken():
            yield b"new"
            raise OSError("gone")

        with pytest.raises(WriteError):
            await store.write("keep", target, broken())
        assert target.read_bytes() == b"old"

    async def test_bad_chunk_is_bad_request(self, store, collection_dir):
        with pytest.raises(BadRequestError):
            await store.write("a", collection_dir / "a", iter(["not bytes"]))
        assert list(collection_dir.iterdir()) == []

    async def test_cancelled_write_cleans_up(self, store, collection_dir):
        started = asyncio.Event()

        async def slow():
            yield b"first"
            started.set()
            await asyncio.sleep(3600)
            yield b"never"

        task = asyncio.create_task(store.write("slow", collection_dir / "slow", slow()))
        await started.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert list(collection_dir.iterdir()) == []


class TestReadFailures:
    async def test_missing_file(self, store, collection_dir):
        with pytest.raises(NotFoundError) as exc_info:
            await store.open_read("zombie.txt", collection_dir / "zombie.txt")
        assert exc_info.value.status == 404
        assert exc_info.value.code == "ERR_NOT_FOUND"
        assert exc_info.value.identifier == "zombie.txt"

    async def test_directory_is_not_found(self, store, collection_dir):
        (collection_dir / "dir").mkdir()
        with pytest.raises(NotFoundError):
            await store.open_read("dir", collection_dir / "dir")


class TestRemove:
    async def test_delete(self, store, collection_dir):
        target = collection_dir / "zombie.txt"
        await store.write("zombie.txt", target, BytesIO(b"brains"))
        assert await store.remove("zombie.txt", target) == SaveResult(id="zombie.txt")
        with pytest.raises(NotFoundError):
            await store.open_read("zombie.txt", target)

    async def test_delete_missing_is_noop(self, store, collection_dir):
        target = collection_dir / "never"
        assert await store.remove("never", target) is None
        assert await store.remove("never", target) is None

    async def test_delete_directory_is_write_error(self, store, collection_dir):
        (collection_dir / "dir").mkdir()
        with pytest.raises(WriteError):
            await store.remove("dir", collection_dir / "dir")


class TestPrune:
    async def test_prune_empty_dirs(self, store, collection_dir):
        (collection_dir / "a" / "b").mkdir(parents=True)
        (collection_dir / "keep").mkdir()
        (collection_dir / "keep" / "file").write_bytes(b"x")

        removed = await store.prune_empty_dirs(collection_dir)

        assert removed == 2
        assert sorted(p.name for p in collection_dir.iterdir()) == ["keep"]
        assert collection_dir.exists()


def test_is_part_file():
    assert is_part_file(".a.txt.0123456789ab.part")
    assert not is_part_file("a.part")
    assert not is_part_file(".hidden")

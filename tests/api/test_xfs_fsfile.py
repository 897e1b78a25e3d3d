"""
Tests for file handles returned by DBFileStore.open
"""

import io
from datetime import datetime
from unittest.mock import MagicMock

import pytest

from api.xfs.models import FileMetadata
from api.xfs.services import DBFileStore, FSFile

T0 = datetime(2024, 5, 1, 8, 30, 0)


@pytest.fixture(name="fake_xfs")
def fake_xfs_fixture():
    """A store double that only knows how to read one file"""
    xfs = MagicMock()
    xfs.read_file.return_value = b"0123456789"
    return xfs


@pytest.fixture(name="meta")
def meta_fixture() -> FileMetadata:
    return FileMetadata(id="dir/digits.txt", name="digits.txt", ext=".txt", size=10, time=T0)


def test_content_is_read_lazily(fake_xfs, meta):
    f = FSFile(fake_xfs, meta)
    assert f.stat() is meta
    assert f.tell() == 0
    fake_xfs.read_file.assert_not_called()

    assert f.read(4) == b"0123"
    assert f.read() == b"456789"
    fake_xfs.read_file.assert_called_once_with("dir/digits.txt")


def test_seek(fake_xfs, meta):
    f = FSFile(fake_xfs, meta)
    assert f.seek(-3, io.SEEK_END) == 7
    assert f.read() == b"789"
    assert f.seekable() and f.readable()


def test_iter_chunks(fake_xfs, meta):
    f = FSFile(fake_xfs, meta)
    assert list(f.iter_chunks(4)) == [b"0123", b"4567", b"89"]


def test_read_after_close(fake_xfs, meta):
    with FSFile(fake_xfs, meta) as f:
        f.read(1)

    assert f.closed
    with pytest.raises(ValueError):
        f.read()
    with pytest.raises(ValueError):
        f.tell()


def test_stat_like_metadata(meta):
    assert meta.mod_time == T0
    assert meta.is_dir is False
    assert meta.mode & 0o444 == 0o444


def test_open_from_store(store: DBFileStore):
    store.save_file("x/y.bin", "y.bin", T0, bytes(range(256)))

    with store.open("x/y.bin") as f:
        assert f.name == "y.bin"
        assert f.stat().size == 256
        assert b"".join(f.iter_chunks(100)) == bytes(range(256))


def test_file_deleted_after_open(store: DBFileStore):
    """The content is fetched on first read, so a file deleted in between is gone"""
    store.save_file("a", "a.txt", T0, b"abc")
    f = store.open("a")
    store.delete_file("a")

    with pytest.raises(FileNotFoundError):
        f.read()

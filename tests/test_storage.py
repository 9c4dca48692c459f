"""Tests for storage.py - allocation and atomic commit."""

import errno
import os
import stat
import tempfile
from pathlib import Path

import pytest

from mdat.document import Tile, TileLayer, Tileset, make_document
from mdat.encoder import encode_map
from mdat.errors import StorageFailure, E_WRITE_IO
from mdat.storage import allocate, commit, write_mdat


class TestAllocate:
    def test_exact_size(self):
        buf = allocate(12)
        assert isinstance(buf, bytearray)
        assert len(buf) == 12
        assert bytes(buf) == b"\x00" * 12

    def test_negative(self):
        with pytest.raises(ValueError):
            allocate(-1)


class TestCommit:
    """Test writing buffers to disk."""

    def test_writes_all_bytes(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "map.mdat"
            result = commit(b"\x01\x02\x03", path)

            assert result == path
            assert path.read_bytes() == b"\x01\x02\x03"
            # no temporary files left behind
            assert os.listdir(tmp) == ["map.mdat"]

    def test_creates_parent_directories(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "out" / "levels" / "map.mdat"
            commit(b"abc", path)
            assert path.read_bytes() == b"abc"

    def test_replaces_existing_file(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "map.mdat"
            path.write_bytes(b"old contents that are longer")
            commit(b"new", path)
            assert path.read_bytes() == b"new"

    @pytest.mark.skipif(os.name == "nt", reason="POSIX permission bits")
    def test_mode_matches_plain_write(self):
        """A new file gets the same mode as Path.write_bytes would give it."""
        with tempfile.TemporaryDirectory() as tmp:
            plain = Path(tmp) / "plain.mdat"
            plain.write_bytes(b"x")
            path = commit(b"x", Path(tmp) / "map.mdat")

            assert stat.S_IMODE(path.stat().st_mode) == stat.S_IMODE(plain.stat().st_mode)

    @pytest.mark.skipif(os.name == "nt", reason="POSIX permission bits")
    def test_keeps_mode_of_replaced_file(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "map.mdat"
            path.write_bytes(b"old")
            path.chmod(0o640)
            commit(b"new", path)

            assert stat.S_IMODE(path.stat().st_mode) == 0o640

    def test_descriptor_closed_when_fdopen_fails(self, monkeypatch):
        closed = []
        real_close = os.close

        def fail_fdopen(fd, *args, **kwargs):
            raise OSError(errno.EMFILE, "Too many open files")

        def track_close(fd):
            closed.append(fd)
            real_close(fd)

        monkeypatch.setattr(os, "fdopen", fail_fdopen)
        monkeypatch.setattr(os, "close", track_close)

        with tempfile.TemporaryDirectory() as tmp:
            with pytest.raises(StorageFailure):
                commit(b"data", Path(tmp) / "map.mdat")

            assert len(closed) == 1
            assert os.listdir(tmp) == []
            monkeypatch.undo()

    def test_unwritable_target_raises_storage_failure(self):
        """A path that cannot be created surfaces the OS error."""
        with tempfile.TemporaryDirectory() as tmp:
            blocker = Path(tmp) / "file"
            blocker.write_bytes(b"")
            path = blocker / "map.mdat"  # parent is a regular file

            with pytest.raises(StorageFailure) as exc_info:
                commit(b"data", path)

            assert exc_info.value.code == E_WRITE_IO
            assert isinstance(exc_info.value.__cause__, OSError)
            assert str(path) in exc_info.value.message
            assert not path.exists()

    @pytest.mark.skipif(
        os.name == "nt" or (hasattr(os, "geteuid") and os.geteuid() == 0),
        reason="permission bits not enforced",
    )
    def test_read_only_directory(self):
        """Permission errors leave no partial file behind."""
        with tempfile.TemporaryDirectory() as tmp:
            locked = Path(tmp) / "locked"
            locked.mkdir()
            locked.chmod(stat.S_IRUSR | stat.S_IXUSR)
            try:
                with pytest.raises(StorageFailure):
                    commit(b"data", locked / "map.mdat")
                assert os.listdir(locked) == []
            finally:
                locked.chmod(stat.S_IRWXU)


class TestWriteMdat:
    def test_encode_and_commit(self):
        tileset = Tileset("terrain", 16, 16, 64, tiles=[Tile(i) for i in range(8)])
        doc = make_document(2, 1, 16, 16, layers=[TileLayer("ground", [[5, 0]])],
                            tilesets=[tileset])
        with tempfile.TemporaryDirectory() as tmp:
            path = write_mdat(Path(tmp) / "level.mdat", doc)
            assert path.read_bytes() == encode_map(doc)

    def test_custom_magic(self):
        doc = make_document(1, 1, 8, 8)
        with tempfile.TemporaryDirectory() as tmp:
            path = write_mdat(Path(tmp) / "level.mdat", doc, magic="X")
            assert path.read_bytes()[:3] == b"\x01\x00X"

"""
Frame Container Tests

Round trip, frame isolation and failure behaviour of EncryptionWriter /
EncryptionReader.

Run with: pytest tests/test_frames.py -v
"""

import os
import struct

import pytest

from cryptography.hazmat.primitives.ciphers.aead import ChaCha20Poly1305

from framevault.crypto.aead import new_key
from framevault.storage.frames import EncryptionReader, EncryptionWriter, scan_frames
from framevault.utils.dataModels import FRAME_LEN_SIZE, NONCE_SIZE, TAG_SIZE
from framevault.utils.errors import (
    AuthenticationError,
    ClosedError,
    CorruptFrameError,
    IOWriteError,
    RandomnessError,
    SetupError,
    TruncatedFrameError,
)


RECORDS = [b"", b"a", os.urandom(15), os.urandom(16), os.urandom(17), b"", os.urandom(100), os.urandom(1000), b"xyz"]


def write_records(path, key, records):
    with EncryptionWriter(path, key) as w:
        for r in records:
            w.append(r)


def read_all(path, key, chunk_size):
    chunks = []
    with EncryptionReader(path, key) as r:
        while True:
            chunk = r.read(chunk_size)
            if not chunk:
                break
            chunks.append(chunk)
    return chunks


@pytest.fixture
def key():
    return new_key()


@pytest.fixture
def container(tmp_path):
    return tmp_path / "data" / "container.bin"


class TestRoundTrip:

    @pytest.mark.parametrize("chunk_size", [1, 3, 7, 16, 64, 4096])
    def test_concatenation_matches_for_any_chunk_size(self, container, key, chunk_size):
        write_records(container, key, RECORDS)
        chunks = read_all(container, key, chunk_size)
        assert b"".join(chunks) == b"".join(RECORDS)
        assert all(0 < len(c) <= chunk_size for c in chunks)

    def test_records_come_back_in_order(self, container, key):
        write_records(container, key, RECORDS)
        with EncryptionReader(container, key) as r:
            assert list(r) == RECORDS

    def test_second_writer_appends(self, container, key):
        write_records(container, key, [b"first"])
        write_records(container, key, [b"second", b"third"])
        with EncryptionReader(container, key) as r:
            assert list(r) == [b"first", b"second", b"third"]

    def test_empty_record_is_tag_only_frame(self, container, key):
        write_records(container, key, [b""])
        assert container.stat().st_size == FRAME_LEN_SIZE + NONCE_SIZE + TAG_SIZE
        with EncryptionReader(container, key) as r:
            assert r.read_record() == b""
            assert r.read_record() is None

    def test_empty_records_are_skipped_by_read(self, container, key):
        write_records(container, key, [b"x", b"", b"", b"yz"])
        assert read_all(container, key, 10) == [b"x", b"yz"]

    def test_empty_file_is_clean_end_of_stream(self, container, key):
        EncryptionWriter(container, key).close()
        assert container.exists()
        with EncryptionReader(container, key) as r:
            assert r.read(16) == b""
            assert r.read_record() is None
            assert r.frames_read == 0


class TestFrameIsolation:

    def test_large_read_stops_at_record_boundary(self, container, key):
        write_records(container, key, [b"a" * 8, b"b" * 16])
        assert read_all(container, key, 100) == [b"a" * 8, b"b" * 16]

    def test_short_reads_follow_record_boundaries(self, container, key):
        write_records(container, key, [b"a" * 8, b"b" * 16])
        chunks = read_all(container, key, 5)
        assert [len(c) for c in chunks] == [5, 3, 5, 5, 5, 1]
        assert chunks[1] == b"aaa"
        assert chunks[2] == b"bbbbb"

    def test_at_frame_boundary(self, container, key):
        write_records(container, key, [b"abcdef", b"gh"])
        with EncryptionReader(container, key) as r:
            assert r.at_frame_boundary
            assert r.read(4) == b"abcd"
            assert not r.at_frame_boundary
            assert r.read(4) == b"ef"
            assert r.at_frame_boundary
            assert r.read_record() == b"gh"
            assert r.at_frame_boundary

    def test_read_record_returns_remainder(self, container, key):
        write_records(container, key, [b"abcdef", b"gh"])
        with EncryptionReader(container, key) as r:
            assert r.read(2) == b"ab"
            assert r.read_record() == b"cdef"
            assert r.read_record() == b"gh"


class TestFormat:

    def test_on_disk_layout(self, container, key):
        write_records(container, key, [b"hello"])
        data = container.read_bytes()
        (length,) = struct.unpack(">Q", data[:FRAME_LEN_SIZE])
        assert length == NONCE_SIZE + len(b"hello") + TAG_SIZE
        assert len(data) == FRAME_LEN_SIZE + length

        nonce = data[FRAME_LEN_SIZE:FRAME_LEN_SIZE + NONCE_SIZE]
        ct = data[FRAME_LEN_SIZE + NONCE_SIZE:]
        assert ChaCha20Poly1305(key).decrypt(nonce, ct, None) == b"hello"

    def test_nonce_uniqueness(self, container, key):
        """100 frames of identical plaintext must carry 100 distinct nonces."""
        write_records(container, key, [b"same"] * 100)
        data = container.read_bytes()
        nonces = [data[info.offset + FRAME_LEN_SIZE:info.offset + FRAME_LEN_SIZE + NONCE_SIZE]
                  for info in scan_frames(container)]
        assert len(nonces) == 100
        assert len(set(nonces)) == 100, "Nonce reuse detected"

    def test_scan_frames(self, container, key):
        write_records(container, key, [b"", b"abc", b"x" * 40])
        infos = list(scan_frames(container))
        assert [i.index for i in infos] == [0, 1, 2]
        assert [i.plaintext_size for i in infos] == [0, 3, 40]
        assert infos[0].offset == 0
        assert infos[1].offset == infos[0].total_size
        assert infos[2].offset == infos[0].total_size + infos[1].total_size

    def test_scan_frames_missing_file(self, tmp_path):
        with pytest.raises(SetupError):
            list(scan_frames(tmp_path / "missing.bin"))

    def test_file_permissions(self, container, key):
        write_records(container, key, [b"x"])
        if os.name == "posix":
            assert container.stat().st_mode & 0o777 == 0o600


class TestTamperDetection:

    def test_any_bit_flip_in_nonce_or_ciphertext_fails(self, container, key):
        write_records(container, key, [b"genome"])
        original = container.read_bytes()
        for pos in range(FRAME_LEN_SIZE, len(original)):
            for bit in range(8):
                tampered = bytearray(original)
                tampered[pos] ^= 1 << bit
                container.write_bytes(bytes(tampered))
                with EncryptionReader(container, key) as r:
                    with pytest.raises(AuthenticationError):
                        r.read(64)

    def test_wrong_key_fails_every_frame(self, container, key):
        write_records(container, key, [b"one", b"two", b"three"])
        with EncryptionReader(container, new_key()) as r:
            for _ in range(3):
                with pytest.raises(AuthenticationError):
                    r.read(64)
            assert r.read(64) == b""


class TestTruncation:

    @pytest.mark.parametrize("cut", [1, NONCE_SIZE // 2, NONCE_SIZE, NONCE_SIZE + 3, NONCE_SIZE + 5 + TAG_SIZE - 1])
    def test_truncated_last_frame(self, container, key, cut):
        write_records(container, key, [b"first", b"12345"])
        data = container.read_bytes()
        second = list(scan_frames(container))[1]
        container.write_bytes(data[:second.offset + FRAME_LEN_SIZE + cut])

        with EncryptionReader(container, key) as r:
            assert r.read_record() == b"first"
            with pytest.raises(TruncatedFrameError):
                r.read(64)

    def test_partial_length_field(self, container, key):
        write_records(container, key, [b"first"])
        with container.open("ab") as f:
            f.write(b"\x00\x00\x00")
        with EncryptionReader(container, key) as r:
            assert r.read(64) == b"first"
            with pytest.raises(TruncatedFrameError):
                r.read(64)
        with pytest.raises(TruncatedFrameError):
            list(scan_frames(container))

    def test_huge_length_is_truncation_not_allocation(self, container, key):
        container.parent.mkdir(parents=True)
        container.write_bytes(struct.pack(">Q", 2 ** 63) + b"\x00" * 40)
        with EncryptionReader(container, key) as r:
            with pytest.raises(TruncatedFrameError):
                r.read(1)

    def test_length_below_nonce_size_is_corrupt(self, container, key):
        container.parent.mkdir(parents=True)
        container.write_bytes(struct.pack(">Q", NONCE_SIZE - 1) + b"\x00" * (NONCE_SIZE - 1))
        with EncryptionReader(container, key) as r:
            with pytest.raises(CorruptFrameError) as excinfo:
                r.read(1)
        assert not isinstance(excinfo.value, TruncatedFrameError)

    def test_failed_write_leaves_detectable_tail(self, container, key):
        """A write that dies after length+nonce must surface as truncation on read."""

        class FailOnThirdWrite:
            def __init__(self, f):
                self.f = f
                self.writes = 0

            def write(self, b):
                self.writes += 1
                if self.writes == 3:
                    raise OSError("disk full")
                return self.f.write(b)

            def close(self):
                self.f.close()

        w = EncryptionWriter(container, key)
        w.append(b"kept")
        w.flush()
        w._file = FailOnThirdWrite(w._file)
        with pytest.raises(IOWriteError):
            w.append(b"lost")
        w.close()

        with EncryptionReader(container, key) as r:
            assert r.read_record() == b"kept"
            with pytest.raises(TruncatedFrameError):
                r.read_record()


class TestLifecycle:

    def test_wrong_key_length_is_setup_error(self, container):
        with pytest.raises(SetupError):
            EncryptionWriter(container, b"\x00" * 16)
        assert not container.parent.exists(), "key must be rejected before touching the filesystem"

    def test_reader_wrong_key_length(self, container, key):
        write_records(container, key, [b"x"])
        with pytest.raises(SetupError):
            EncryptionReader(container, key + b"\x00")

    def test_reader_missing_file(self, container, key):
        with pytest.raises(SetupError):
            EncryptionReader(container, key)

    def test_parent_is_a_file(self, tmp_path, key):
        blocker = tmp_path / "blocker"
        blocker.write_bytes(b"")
        with pytest.raises(SetupError):
            EncryptionWriter(blocker / "container.bin", key)

    def test_writer_closed(self, container, key):
        w = EncryptionWriter(container, key)
        w.close()
        w.close()
        assert w.closed
        with pytest.raises(ClosedError):
            w.append(b"late")
        with pytest.raises(ClosedError):
            w.flush()

    def test_reader_closed(self, container, key):
        write_records(container, key, [b"x"])
        r = EncryptionReader(container, key)
        r.close()
        r.close()
        with pytest.raises(ClosedError):
            r.read(1)
        with pytest.raises(ClosedError):
            r.read_record()

    def test_randomness_failure(self, container, key, monkeypatch):
        def broken_urandom(n):
            raise OSError("no entropy")

        with EncryptionWriter(container, key) as w:
            monkeypatch.setattr("framevault.crypto.aead.os.urandom", broken_urandom)
            with pytest.raises(RandomnessError):
                w.append(b"x")
            assert w.frames_written == 0
        assert container.stat().st_size == 0

    @pytest.mark.parametrize("bad", [0, -1])
    def test_non_positive_read_size(self, container, key, bad):
        write_records(container, key, [b"x"])
        with EncryptionReader(container, key) as r:
            with pytest.raises(ValueError):
                r.read(bad)

    @pytest.mark.parametrize("bad", [5, "text", None])
    def test_non_bytes_record_writes_nothing(self, container, key, bad):
        with EncryptionWriter(container, key) as w:
            w.append(b"kept")
            w.flush()
            size = container.stat().st_size
            with pytest.raises(TypeError):
                w.append(bad)
            assert w.frames_written == 1
        assert container.stat().st_size == size
        with EncryptionReader(container, key) as r:
            assert list(r) == [b"kept"]

    def test_bytes_like_records(self, container, key):
        write_records(container, key, [bytearray(b"ab"), memoryview(b"cd")])
        with EncryptionReader(container, key) as r:
            assert list(r) == [b"ab", b"cd"]


def test_scan_frames_rejects_frame_shorter_than_tag(tmp_path, key):
    """A body that cannot hold nonce + tag is corrupt to the scanner, unauthenticated to the reader."""
    container = tmp_path / "short.bin"
    length = NONCE_SIZE + TAG_SIZE - 5
    container.write_bytes(struct.pack(">Q", length) + b"\x00" * length)

    with pytest.raises(CorruptFrameError):
        list(scan_frames(container))
    with EncryptionReader(container, key) as r:
        with pytest.raises(AuthenticationError):
            r.read(1)

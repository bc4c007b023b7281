"""
Encrypted frame container.

A container is a plain concatenation of frames, no header:

    length     : u64 big-endian -> len(nonce) + len(ciphertext)
    nonce      : 12 bytes, fresh from os.urandom per frame
    ciphertext : ChaCha20-Poly1305(record), no associated data, 16-byte tag

One EncryptionWriter.append() produces exactly one frame. EncryptionReader.read()
never returns more than what is left of the current record, so short reads
happen at the written record boundaries no matter what size the caller asks
for. Callers that care about records rather than bytes should use
read_record() or iterate the reader.

Frames carry no sequence number: tampering inside a frame and truncation are
detected, dropping or reordering whole frames is not.
"""
from __future__ import annotations

import logging
import os

from pathlib import Path
from typing import BinaryIO, Iterator

from framevault.crypto.aead import fill_nonce, make_aead, open_sealed, seal
from framevault.utils.dataModels import FRAME_LEN_SIZE, NONCE_SIZE, TAG_SIZE, FrameInfo, pack_length, unpack_length
from framevault.utils.errors import (
    ClosedError,
    CorruptFrameError,
    IOReadError,
    IOWriteError,
    SetupError,
    TruncatedFrameError,
)

logger = logging.getLogger(__name__)


def _read_frame_length(f: BinaryIO, offset: int, file_size: int) -> int | None:
    """Read the length field at `offset`. Returns None on a clean end of file."""
    try:
        header = f.read(FRAME_LEN_SIZE)
    except OSError as err:
        raise IOReadError(f"failed to read length at offset {offset}: {err}") from err
    if not header:
        return None
    if len(header) < FRAME_LEN_SIZE:
        raise TruncatedFrameError(
            f"frame at offset {offset}: length field cut short ({len(header)} of {FRAME_LEN_SIZE} bytes)"
        )
    length = unpack_length(header)
    if length < NONCE_SIZE:
        raise CorruptFrameError(f"frame at offset {offset}: invalid data length {length}")
    available = file_size - offset - FRAME_LEN_SIZE
    if length > available:
        raise TruncatedFrameError(
            f"frame at offset {offset}: declares {length} bytes, only {max(available, 0)} left"
        )
    return length


class EncryptionWriter:
    """Seals records and appends them to a container file.

    The key must be 32 bytes. Not safe for concurrent use; serialize access
    externally. Nothing is durable before flush(sync=True) or close().
    """

    def __init__(self, path: str | os.PathLike, key: bytes):
        self.path = Path(path)
        self._aead = make_aead(key)
        self._nonce = bytearray(NONCE_SIZE)
        self._frames = 0
        self._file: BinaryIO | None = None

        try:
            self.path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
        except OSError as err:
            raise SetupError(f"failed to create directories: {err}") from err

        flags = os.O_CREAT | os.O_WRONLY | os.O_APPEND | getattr(os, "O_BINARY", 0)
        try:
            fd = os.open(self.path, flags, 0o600)
        except OSError as err:
            raise SetupError(f"failed to open file: {err}") from err
        try:
            self._file = os.fdopen(fd, "ab")
        except OSError as err:
            os.close(fd)
            raise SetupError(f"failed to open file: {err}") from err
        logger.debug("Opened %s for writing", self.path)

    @property
    def closed(self) -> bool:
        return self._file is None

    @property
    def frames_written(self) -> int:
        return self._frames

    def _check_open(self) -> BinaryIO:
        if self._file is None:
            raise ClosedError(f"writer for {self.path} is closed")
        return self._file

    def append(self, record: bytes) -> None:
        """Encrypt `record` and append it as one frame. Empty records are allowed."""
        f = self._check_open()
        try:
            data = memoryview(record)
        except TypeError:
            raise TypeError(f"record must be bytes-like, not {type(record).__name__}") from None
        size = data.nbytes
        fill_nonce(self._nonce)
        ct = seal(self._aead, self._nonce, data)
        length = pack_length(len(self._nonce) + len(ct))

        # Not atomic: a failure here can leave a truncated frame at the tail.
        try:
            f.write(length)
            f.write(self._nonce)
            f.write(ct)
        except OSError as err:
            raise IOWriteError(f"failed to write frame {self._frames}: {err}") from err
        logger.debug("Appended frame %d (%d plaintext bytes) to %s", self._frames, size, self.path)
        self._frames += 1

    def flush(self, sync: bool = False) -> None:
        f = self._check_open()
        try:
            f.flush()
            if sync:
                os.fsync(f.fileno())
        except OSError as err:
            raise IOWriteError(f"failed to flush {self.path}: {err}") from err

    def close(self) -> None:
        """Release the file handle. Calling it again is a no-op."""
        if self._file is None:
            return
        f, self._file = self._file, None
        try:
            f.close()
        except OSError as err:
            raise IOWriteError(f"failed to close {self.path}: {err}") from err
        logger.debug("Closed %s after %d frames", self.path, self._frames)

    def __enter__(self) -> "EncryptionWriter":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


class EncryptionReader:
    """Reads a container written by EncryptionWriter and yields plaintext.

    read(n) returns at most the rest of the current record: if records were
    written as 8 then 16 bytes, read(100) returns 8 bytes, then 16. Bytes from
    two records are never merged into one chunk. b"" means end of stream;
    empty records are skipped by read() and returned as b"" by read_record().
    """

    def __init__(self, path: str | os.PathLike, key: bytes):
        self.path = Path(path)
        self._aead = make_aead(key)
        self._buffer = memoryview(b"")
        self._frames = 0
        try:
            self._file: BinaryIO | None = self.path.open("rb")
        except OSError as err:
            raise SetupError(f"failed to open file: {err}") from err
        logger.debug("Opened %s for reading", self.path)

    @property
    def closed(self) -> bool:
        return self._file is None

    @property
    def frames_read(self) -> int:
        return self._frames

    @property
    def at_frame_boundary(self) -> bool:
        """True when the next read starts a new record."""
        return not self._buffer

    def _check_open(self) -> BinaryIO:
        if self._file is None:
            raise ClosedError(f"reader for {self.path} is closed")
        return self._file

    def _load_frame(self, f: BinaryIO) -> bool:
        try:
            file_size = os.fstat(f.fileno()).st_size
            offset = f.tell()
        except OSError as err:
            raise IOReadError(f"failed to stat {self.path}: {err}") from err

        length = _read_frame_length(f, offset, file_size)
        if length is None:
            return False
        try:
            data = f.read(length)
        except OSError as err:
            raise IOReadError(f"failed to read frame {self._frames}: {err}") from err
        if len(data) < length:
            raise TruncatedFrameError(
                f"frame at offset {offset}: declares {length} bytes, only {len(data)} left"
            )

        plaintext = open_sealed(self._aead, data[:NONCE_SIZE], data[NONCE_SIZE:])
        logger.debug("Decrypted frame %d (%d plaintext bytes) from %s", self._frames, len(plaintext), self.path)
        self._buffer = memoryview(plaintext)
        self._frames += 1
        return True

    def read(self, max_len: int) -> bytes:
        """Return up to `max_len` bytes of the current record, b"" at end of stream."""
        f = self._check_open()
        if max_len < 1:
            raise ValueError(f"max_len must be positive, got {max_len}")
        while not self._buffer:
            if not self._load_frame(f):
                return b""
        chunk = self._buffer[:max_len].tobytes()
        self._buffer = self._buffer[max_len:]
        return chunk

    def read_record(self) -> bytes | None:
        """Return the rest of the current record, or the next whole one. None at end of stream."""
        f = self._check_open()
        if not self._buffer and not self._load_frame(f):
            return None
        record = self._buffer.tobytes()
        self._buffer = memoryview(b"")
        return record

    def __iter__(self) -> Iterator[bytes]:
        while True:
            record = self.read_record()
            if record is None:
                return
            yield record

    def close(self) -> None:
        """Release the file handle. Calling it again is a no-op."""
        if self._file is None:
            return
        f, self._file = self._file, None
        self._buffer = memoryview(b"")
        f.close()
        logger.debug("Closed %s after %d frames", self.path, self._frames)

    def __enter__(self) -> "EncryptionReader":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


def scan_frames(path: str | os.PathLike) -> Iterator[FrameInfo]:
    """Walk the length fields of a container without decrypting anything."""
    p = Path(path)
    try:
        f = p.open("rb")
    except OSError as err:
        raise SetupError(f"failed to open file: {err}") from err
    with f:
        try:
            file_size = os.fstat(f.fileno()).st_size
        except OSError as err:
            raise IOReadError(f"failed to stat {p}: {err}") from err
        offset = 0
        index = 0
        while True:
            length = _read_frame_length(f, offset, file_size)
            if length is None:
                return
            if length < NONCE_SIZE + TAG_SIZE:
                raise CorruptFrameError(f"frame at offset {offset}: length {length} too short for nonce and tag")
            yield FrameInfo(index=index, offset=offset, length=length)
            try:
                f.seek(length, os.SEEK_CUR)
            except OSError as err:
                raise IOReadError(f"failed to seek past frame {index}: {err}") from err
            offset += FRAME_LEN_SIZE + length
            index += 1

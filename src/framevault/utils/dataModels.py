import struct

from dataclasses import dataclass, asdict
from typing import Dict, Any

KEY_SIZE = 32  # ChaCha20-Poly1305, 256 bits
NONCE_SIZE = 12
TAG_SIZE = 16

FRAME_LEN_FMT = ">Q"  # body length: nonce + ciphertext
FRAME_LEN_SIZE = struct.calcsize(FRAME_LEN_FMT)

CONTAINER_SUFFIX = ".bin"

DEFAULT_LOG_LEVEL = "info"
DEFAULT_MAX_BIN_DATA_CHUNK_SIZE = 16


@dataclass(frozen=True)
class FrameInfo:
    index: int
    offset: int
    length: int

    @property
    def plaintext_size(self) -> int:
        return self.length - NONCE_SIZE - TAG_SIZE

    @property
    def total_size(self) -> int:
        return FRAME_LEN_SIZE + self.length

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["plaintext_size"] = self.plaintext_size
        return d


def pack_length(length: int) -> bytes:
    return struct.pack(FRAME_LEN_FMT, length)


def unpack_length(raw: bytes) -> int:
    (length,) = struct.unpack(FRAME_LEN_FMT, raw)
    return length

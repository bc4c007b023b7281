import binascii
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import ChaCha20Poly1305

from framevault.utils.dataModels import KEY_SIZE, NONCE_SIZE
from framevault.utils.errors import AuthenticationError, RandomnessError, SetupError


def new_key() -> bytes:
    return os.urandom(KEY_SIZE)


def key_to_hex(k: bytes) -> str:
    return binascii.hexlify(k).decode()


def key_from_hex(s: str) -> bytes:
    try:
        return binascii.unhexlify(s.strip())
    except (binascii.Error, ValueError) as err:
        raise SetupError(f"key is not valid hex: {err}") from err


def make_aead(key: bytes) -> ChaCha20Poly1305:
    """Build the cipher context, rejecting anything but a 256-bit key up front."""
    if not isinstance(key, (bytes, bytearray, memoryview)):
        raise SetupError(f"key must be bytes, not {type(key).__name__}")
    if len(key) != KEY_SIZE:
        raise SetupError(f"key must be {KEY_SIZE} bytes, got {len(key)}")
    try:
        return ChaCha20Poly1305(bytes(key))
    except ValueError as err:
        raise SetupError(f"failed to create AEAD: {err}") from err


def fill_nonce(buf: bytearray) -> None:
    try:
        buf[:] = os.urandom(NONCE_SIZE)
    except (OSError, NotImplementedError) as err:
        raise RandomnessError(f"failed to generate nonce: {err}") from err


def seal(aead: ChaCha20Poly1305, nonce: bytes, plaintext: bytes) -> bytes:
    return aead.encrypt(bytes(nonce), memoryview(plaintext).tobytes(), None)


def open_sealed(aead: ChaCha20Poly1305, nonce: bytes, ct: bytes) -> bytes:
    try:
        return aead.decrypt(nonce, ct, None)
    except InvalidTag as err:
        raise AuthenticationError("failed to decrypt data: authentication tag mismatch") from err

import os

from pathlib import Path
from typing import List

from framevault.crypto.aead import key_from_hex, key_to_hex
from framevault.utils.dataModels import CONTAINER_SUFFIX, KEY_SIZE
from framevault.utils.errors import SetupError


def container_path(data_dir: Path, name: str) -> Path:
    if not name or name in (".", "..") or "/" in name or os.sep in name:
        raise ValueError(f"Invalid container name: {name!r}")
    return data_dir / f"{name}{CONTAINER_SUFFIX}"


def list_containers(data_dir: Path) -> List[Path]:
    if not data_dir.is_dir():
        return []
    return sorted(p for p in data_dir.iterdir() if p.is_file() and p.suffix == CONTAINER_SUFFIX)


def write_key_file(path: Path, key: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    fd = os.open(tmp, os.O_CREAT | os.O_WRONLY | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w", encoding="ascii") as f:
        f.write(key_to_hex(key) + "\n")
    os.replace(tmp, path)


def read_key_file(path: Path) -> bytes:
    try:
        text = path.read_text(encoding="ascii")
    except (OSError, UnicodeDecodeError) as err:
        raise SetupError(f"failed to read key file {path}: {err}") from err
    key = key_from_hex(text)
    if len(key) != KEY_SIZE:
        raise SetupError(f"key file {path} holds {len(key)} bytes, expected {KEY_SIZE}")
    return key

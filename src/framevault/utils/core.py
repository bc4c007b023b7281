import argparse
import logging
import os
import sys

from pathlib import Path

from framevault.crypto.aead import new_key
from framevault.storage.frames import EncryptionReader, EncryptionWriter, scan_frames
from framevault.utils.config import AppConfig
from framevault.utils.errors import CorruptFrameError, FrameVaultError
from framevault.utils.helper import container_path, list_containers, read_key_file, write_key_file

logger = logging.getLogger(__name__)


def cmd_keygen(args: argparse.Namespace, cfg: AppConfig) -> None:
    out = Path(args.out)
    if out.exists() and not args.force:
        print(f"[!] {out} exists. Use --force to overwrite.")
        sys.exit(1)
    write_key_file(out, new_key())
    print(f"[+] Wrote new key to {out}")


def cmd_seal(args: argparse.Namespace, cfg: AppConfig) -> None:
    src = Path(args.src)
    if not src.is_file():
        print(f"[!] Not a file: {src}")
        sys.exit(1)

    key = read_key_file(Path(args.key_file))
    dst = container_path(cfg.data_dir, args.name)
    if args.overwrite and dst.exists():
        dst.unlink()

    # One chunk read from the source becomes one record in the container.
    total = 0
    with EncryptionWriter(dst, key) as w, src.open("rb") as f:
        while True:
            chunk = f.read(cfg.max_bin_data_chunk_size)
            if not chunk:
                break
            w.append(chunk)
            total += len(chunk)
        w.flush(sync=True)
        frames = w.frames_written
    logger.info("Sealed %s into %s", src, dst)
    print(f"[+] Sealed {src.name} into {args.name} ({frames} frames, {total} bytes)")


def cmd_unseal(args: argparse.Namespace, cfg: AppConfig) -> None:
    key = read_key_file(Path(args.key_file))
    src = container_path(cfg.data_dir, args.name)
    out = Path(args.out)
    tmp = out.with_name(out.name + ".tmp")

    total = 0
    try:
        with EncryptionReader(src, key) as r, tmp.open("wb") as f:
            while True:
                chunk = r.read(cfg.max_bin_data_chunk_size)
                if not chunk:
                    break
                f.write(chunk)
                total += len(chunk)
            frames = r.frames_read
        os.replace(tmp, out)
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise
    print(f"[+] Extracted {args.name} -> {out} ({frames} frames, {total} bytes)")


def cmd_ls(args: argparse.Namespace, cfg: AppConfig) -> None:
    containers = list_containers(cfg.data_dir)
    if not containers:
        print("(empty)")
        return
    for path in containers:
        try:
            frames = str(sum(1 for _ in scan_frames(path)))
        except CorruptFrameError as err:
            logger.warning("Container %s is corrupt: %s", path, err)
            frames = "corrupt"
        except FrameVaultError as err:
            logger.warning("Container %s is unreadable: %s", path, err)
            frames = "unreadable"
        print(f"{path.stem}\t{path.stat().st_size} bytes\t{frames} frames")


def cmd_inspect(args: argparse.Namespace, cfg: AppConfig) -> None:
    path = container_path(cfg.data_dir, args.name)
    count = 0
    for info in scan_frames(path):
        print(f"{info.index}\toffset={info.offset}\tlength={info.length}\tplaintext={info.plaintext_size}")
        count += 1
    if not count:
        print("(empty)")


def cmd_verify(args: argparse.Namespace, cfg: AppConfig) -> None:
    key = read_key_file(Path(args.key_file))
    path = container_path(cfg.data_dir, args.name)
    total = 0
    with EncryptionReader(path, key) as r:
        for record in r:
            total += len(record)
        frames = r.frames_read
    print(f"[+] {args.name}: {frames} frames verified, {total} plaintext bytes")

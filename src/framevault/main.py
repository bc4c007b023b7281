#!/usr/bin/env python3
"""
framevault - streaming encrypted frame containers

A container is a single file holding a sequence of independently sealed
records. Each record is stored as one frame:

    length    : u64 big-endian (nonce + ciphertext)
    nonce     : 12 bytes, random per frame
    ciphertext: ChaCha20-Poly1305 over the record (16-byte tag, no AAD)

There is no file header; the file ends where the last frame ends.

Commands:
  keygen <out>                 Write a fresh 256-bit key (hex) to <out>
  seal <src> <name>            Encrypt <src> into <data>/<name>.bin, one record per chunk
  unseal <name> <out>          Decrypt a container back into <out>
  ls                           List containers in the data directory
  inspect <name>               List frame offsets and sizes (no key needed)
  verify <name>                Authenticate every frame of a container

Configuration (flag, then environment override):
  --user-data-path          USER_DATA_PATH
  --log-level               LOG_LEVEL              (default: info)
  --max-bin-data-chunk-size MAX_BIN_DATA_CHUNK_SIZE (default: 16)

Keys are supplied ready-made; nothing here derives keys from passwords.
"""
from __future__ import annotations

import logging
import sys

from framevault.ui.cli import build_parser
from framevault.utils.config import AppConfig
from framevault.utils.errors import FrameVaultError


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        cfg = AppConfig.configure(args)
    except FrameVaultError as err:
        print(f"[!] {err}")
        sys.exit(1)
    logging.basicConfig(level=cfg.logging_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    try:
        args.func(args, cfg)
    except (FrameVaultError, OSError, ValueError) as err:
        print(f"[!] {err}")
        sys.exit(1)


if __name__ == "__main__":
    main()

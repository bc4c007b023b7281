import argparse

from framevault.utils.config import add_config_arguments
from framevault.utils.core import cmd_inspect, cmd_keygen, cmd_ls, cmd_seal, cmd_unseal, cmd_verify


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Encrypted frame containers (ChaCha20-Poly1305)")
    add_config_arguments(p)
    sub = p.add_subparsers(dest="cmd", required=True)

    p_key = sub.add_parser("keygen", help="Generate a new 256-bit key file")
    p_key.add_argument("out", help="Path of the key file to write")
    p_key.add_argument("--force", action="store_true", help="Overwrite an existing key file")
    p_key.set_defaults(func=cmd_keygen)

    p_seal = sub.add_parser("seal", help="Encrypt a file into a container")
    p_seal.add_argument("src", help="Plaintext file to seal")
    p_seal.add_argument("name", help="Container name inside the data directory")
    p_seal.add_argument("--key-file", required=True)
    p_seal.add_argument("--overwrite", action="store_true", help="Replace the container instead of appending to it")
    p_seal.set_defaults(func=cmd_seal)

    p_unseal = sub.add_parser("unseal", help="Decrypt a container to a file")
    p_unseal.add_argument("name", help="Container name inside the data directory")
    p_unseal.add_argument("out", help="Output plaintext path")
    p_unseal.add_argument("--key-file", required=True)
    p_unseal.set_defaults(func=cmd_unseal)

    p_ls = sub.add_parser("ls", help="List containers in the data directory")
    p_ls.set_defaults(func=cmd_ls)

    p_ins = sub.add_parser("inspect", help="List the frames of a container (no key needed)")
    p_ins.add_argument("name", help="Container name inside the data directory")
    p_ins.set_defaults(func=cmd_inspect)

    p_ver = sub.add_parser("verify", help="Decrypt and authenticate every frame of a container")
    p_ver.add_argument("name", help="Container name inside the data directory")
    p_ver.add_argument("--key-file", required=True)
    p_ver.set_defaults(func=cmd_verify)

    return p

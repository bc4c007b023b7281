import argparse
import logging
import os

from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from framevault.utils.dataModels import DEFAULT_LOG_LEVEL, DEFAULT_MAX_BIN_DATA_CHUNK_SIZE
from framevault.utils.errors import ConfigError

LOG_LEVELS = ("debug", "info", "warning", "error", "critical")

ENV_USER_DATA_PATH = "USER_DATA_PATH"
ENV_LOG_LEVEL = "LOG_LEVEL"
ENV_MAX_BIN_DATA_CHUNK_SIZE = "MAX_BIN_DATA_CHUNK_SIZE"


def add_config_arguments(p: argparse.ArgumentParser) -> None:
    p.add_argument("--user-data-path", default="", help="Directory holding containers (env: USER_DATA_PATH)")
    p.add_argument("--log-level", default=DEFAULT_LOG_LEVEL, help="Log level (env: LOG_LEVEL)")
    p.add_argument(
        "--max-bin-data-chunk-size",
        default=DEFAULT_MAX_BIN_DATA_CHUNK_SIZE,
        help="Bytes per record when sealing a file (env: MAX_BIN_DATA_CHUNK_SIZE)",
    )


@dataclass
class AppConfig:
    user_data_path: str = ""
    log_level: str = DEFAULT_LOG_LEVEL
    max_bin_data_chunk_size: int = DEFAULT_MAX_BIN_DATA_CHUNK_SIZE

    @staticmethod
    def configure(args: argparse.Namespace, environ: Optional[Mapping[str, str]] = None) -> "AppConfig":
        """Flags first, then environment variables override them."""
        env = os.environ if environ is None else environ
        cfg = AppConfig(
            user_data_path=getattr(args, "user_data_path", "") or "",
            log_level=getattr(args, "log_level", DEFAULT_LOG_LEVEL),
        )
        chunk = getattr(args, "max_bin_data_chunk_size", DEFAULT_MAX_BIN_DATA_CHUNK_SIZE)

        if ENV_USER_DATA_PATH in env:
            cfg.user_data_path = env[ENV_USER_DATA_PATH]
        if ENV_LOG_LEVEL in env:
            cfg.log_level = env[ENV_LOG_LEVEL]
        if ENV_MAX_BIN_DATA_CHUNK_SIZE in env:
            chunk = env[ENV_MAX_BIN_DATA_CHUNK_SIZE]

        try:
            cfg.max_bin_data_chunk_size = int(chunk)
        except (TypeError, ValueError) as err:
            raise ConfigError(f"error parsing {ENV_MAX_BIN_DATA_CHUNK_SIZE}: {err}") from err
        if cfg.max_bin_data_chunk_size < 1:
            raise ConfigError(f"{ENV_MAX_BIN_DATA_CHUNK_SIZE} must be positive, got {cfg.max_bin_data_chunk_size}")

        cfg.log_level = cfg.log_level.lower()
        if cfg.log_level not in LOG_LEVELS:
            raise ConfigError(f"unknown log level {cfg.log_level!r}, expected one of {', '.join(LOG_LEVELS)}")
        return cfg

    @property
    def logging_level(self) -> int:
        return getattr(logging, self.log_level.upper())

    @property
    def data_dir(self) -> Path:
        if not self.user_data_path:
            raise ConfigError(
                f"{ENV_USER_DATA_PATH} is required and must be set either as an environment variable or command line argument"
            )
        return Path(self.user_data_path)

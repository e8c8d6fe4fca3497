from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

DEFAULT_TARGET = "claude"
CONFIG_FILE_NAME = "config"
DEBUG_ARTIFACT_NAME = "debug.json"
TARGET_KEY = "tmux_target="

_LOGGER = logging.getLogger("pigeon.config")


def expand_path(raw: str) -> Path:
    return Path(raw).expanduser()


def _home_dir() -> Path | None:
    raw = os.environ.get("HOME")
    if isinstance(raw, str) and raw.strip():
        return Path(raw.strip())
    return None


def _config_dir(home: Path | None) -> Path | None:
    raw = os.environ.get("PIGEON_CONFIG_DIR")
    if isinstance(raw, str) and raw.strip():
        return expand_path(raw.strip())
    if home is None:
        return None
    return home / ".config" / "pigeon"


@dataclass
class HostConfig:
    """Environment-derived settings, resolved once when the host starts."""

    config_dir: Path | None
    default_target: str = DEFAULT_TARGET
    tmux_binary: str | None = None
    debug: bool = False

    @property
    def config_path(self) -> Path | None:
        return self.config_dir / CONFIG_FILE_NAME if self.config_dir is not None else None

    @property
    def debug_artifact_path(self) -> Path | None:
        return self.config_dir / DEBUG_ARTIFACT_NAME if self.config_dir is not None else None

    @classmethod
    def from_env(cls) -> HostConfig:
        default_target = (os.environ.get("PIGEON_DEFAULT_TARGET") or "").strip() or DEFAULT_TARGET
        binary = (os.environ.get("PIGEON_TMUX_BINARY") or "").strip() or None
        return cls(
            config_dir=_config_dir(_home_dir()),
            default_target=default_target,
            tmux_binary=str(expand_path(binary)) if binary else None,
            debug=os.environ.get("PIGEON_HOST_DEBUG") == "1",
        )


def read_target_override(config_path: Path | None) -> str | None:
    """Return the first non-empty `tmux_target=` value in the config file, if any.

    Any failure to read the file counts as "no override".
    """
    if config_path is None:
        return None
    try:
        contents = config_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return None
    for line in contents.splitlines():
        line = line.strip()
        if not line.startswith(TARGET_KEY):
            continue
        value = line[len(TARGET_KEY) :].strip()
        if value:
            return value
    return None


class TargetResolver:
    """Pick the tmux session for a request: config file > request > default.

    The config file is re-read on every call so edits apply to the next request.
    """

    def __init__(self, config_path: Path | None, default_target: str = DEFAULT_TARGET) -> None:
        self.config_path = config_path
        self.default_target = default_target

    @classmethod
    def from_config(cls, config: HostConfig) -> TargetResolver:
        return cls(config.config_path, config.default_target)

    def resolve(self, request_target: str | None) -> str:
        override = read_target_override(self.config_path)
        if override:
            _LOGGER.debug("target_from_config path=%s target=%s", self.config_path, override)
            return override
        if request_target:
            return request_target
        return self.default_target


__all__ = ["DEFAULT_TARGET", "HostConfig", "TargetResolver", "read_target_override"]

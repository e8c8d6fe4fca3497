"""Chrome Native Messaging host for Pigeon.

This process is launched by Chrome when the extension calls `connectNative("pigeon")`.

- Extension -> native host: "send" / "list-sessions" requests (stdin framing)
- Native host -> tmux: `send-keys` / `list-sessions` subprocess calls
"""

from __future__ import annotations

import logging
import sys

from .config import HostConfig
from .host import NativeHost


def _configure_logging(config: HostConfig) -> None:
    # Native messaging requires strict stdout framing. Never write logs to stdout.
    logging.basicConfig(
        level=logging.DEBUG if config.debug else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        stream=sys.stderr,
    )


def main() -> None:
    config = HostConfig.from_env()
    _configure_logging(config)
    host = NativeHost(config, stdin=sys.stdin.buffer, stdout=sys.stdout.buffer)
    try:
        raise SystemExit(host.run())
    except KeyboardInterrupt:
        raise SystemExit(0) from None


if __name__ == "__main__":
    main()

"""Root logger configuration."""

from __future__ import annotations

import logging


def setup_logging(level: str = "INFO") -> None:
    # 二重設定しない
    if getattr(setup_logging, "_configured", False):
        return

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    # noisy lib
    logging.getLogger("slack_sdk").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)

    setup_logging._configured = True  # type: ignore[attr-defined]

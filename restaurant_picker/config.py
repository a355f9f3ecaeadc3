"""Runtime settings read from the environment (and ``.env``)."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import List, Mapping, Optional

from dotenv import load_dotenv

REQUIRED_ENV = [
    "SLACK_BOT_TOKEN",
    "SLACK_APP_TOKEN",
]

DEFAULT_APP_NAME = "Restaurant Picker"
DEFAULT_APP_ENDPOINT = "https://restaurant-picker.example.com"
DEFAULT_COMMAND = "/restaurant_picker"


@dataclass(frozen=True)
class Settings:
    bot_token: str = ""
    app_token: str = ""
    app_name: str = DEFAULT_APP_NAME
    app_endpoint: str = DEFAULT_APP_ENDPOINT
    command: str = DEFAULT_COMMAND
    log_level: str = "INFO"


def missing_env(env: Mapping[str, str]) -> List[str]:
    return [k for k in REQUIRED_ENV if not env.get(k)]


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """Build :class:`Settings`; reads ``.env`` first when using the process env."""
    if env is None:
        load_dotenv()
        env = os.environ
    return Settings(
        bot_token=env.get("SLACK_BOT_TOKEN", ""),
        app_token=env.get("SLACK_APP_TOKEN", ""),
        app_name=env.get("PICKER_APP_NAME") or DEFAULT_APP_NAME,
        app_endpoint=(env.get("PICKER_APP_ENDPOINT") or DEFAULT_APP_ENDPOINT).rstrip("/"),
        command=env.get("PICKER_COMMAND") or DEFAULT_COMMAND,
        log_level=env.get("PICKER_LOG_LEVEL") or "INFO",
    )

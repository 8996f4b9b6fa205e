"""Root conftest: seeds the environment before dispatch_service.config is imported.

Settings are read once at import time, so required variables must exist before
any test module imports the package. Values from ``.env.test`` win over the
defaults below; variables already exported in the shell win over both.
"""
from __future__ import annotations

import os
from pathlib import Path

_DEFAULTS = {
    "POSTGRES_USER": "dispatch",
    "POSTGRES_PASSWORD": "dispatch",
    "POSTGRES_DB": "dispatch_test",
    "REDIS_URL": "",
    "WEBHOOK_URL": "https://webhook.example.com/messages",
    "AUTH_KEY": "test-auth-key",
    "SCHEDULER_AUTOSTART": "false",
}


def _read_env_file(path: Path) -> dict[str, str]:
    values: dict[str, str] = {}
    if not path.exists():
        return values
    for line in path.read_text().splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        key, _, value = line.removeprefix("export ").partition("=")
        values[key.strip()] = value.strip().strip("'\"")
    return values


for _key, _value in {**_DEFAULTS, **_read_env_file(Path(__file__).resolve().parent / ".env.test")}.items():
    os.environ.setdefault(_key, _value)

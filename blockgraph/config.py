"""
Runtime settings, read from the environment.

A ``.env`` file in the working directory (or the one named by
``BLOCKGRAPH_ENV_FILE``) is loaded first so the service URL and friends can
be set without a manual ``export``.
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

DEFAULT_SERVICE_URL = "http://localhost:3000/api"


@dataclass
class Settings:
    service_url: str = DEFAULT_SERVICE_URL
    service_timeout: Optional[float] = None   # seconds; None waits indefinitely
    plugin_dir: Optional[str] = None
    host: str = "0.0.0.0"
    port: int = 3001
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, load_env_file: bool = True) -> "Settings":
        if load_env_file:
            load_dotenv(os.environ.get("BLOCKGRAPH_ENV_FILE") or None)

        timeout = os.environ.get("BLOCKGRAPH_SERVICE_TIMEOUT")
        return cls(
            service_url=os.environ.get("BLOCKGRAPH_SERVICE_URL", DEFAULT_SERVICE_URL).rstrip("/"),
            service_timeout=float(timeout) if timeout else None,
            plugin_dir=os.environ.get("BLOCKGRAPH_PLUGIN_DIR") or None,
            host=os.environ.get("BLOCKGRAPH_HOST", "0.0.0.0"),
            port=int(os.environ.get("BLOCKGRAPH_PORT", "3001")),
            log_level=os.environ.get("BLOCKGRAPH_LOG_LEVEL", "INFO").upper(),
        )


LOG_FORMAT = "[%(asctime)s]:%(name)s:(%(levelname)s) - %(message)s"
LOG_DATEFMT = "%H:%M:%S"

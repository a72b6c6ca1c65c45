"""
Server configuration, read from the environment at startup.
"""

import os
from dataclasses import dataclass
from typing import Optional

from server.shardring.state import ROOMS


@dataclass
class ServerConfig:
    host: str = "0.0.0.0"
    port: int = 8765
    rooms: int = ROOMS
    seed: Optional[int] = None
    log_level: str = "INFO"


def load_config(environ=None):
    """Build a ServerConfig, falling back to defaults for unset variables."""
    env = os.environ if environ is None else environ
    seed = env.get("SHARDRING_SEED")
    return ServerConfig(
        host=env.get("SHARDRING_HOST", "0.0.0.0"),
        # Hosting platforms hand the port over as PORT
        port=int(env.get("PORT", "8765")),
        rooms=int(env.get("SHARDRING_ROOMS", str(ROOMS))),
        seed=int(seed) if seed else None,
        log_level=env.get("SHARDRING_LOG_LEVEL", "INFO").upper(),
    )

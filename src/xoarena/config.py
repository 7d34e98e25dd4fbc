"""Runtime settings read from ``XOARENA_*`` environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from .ai import Tier
from .registry import ROOM_CODE_ATTEMPTS
from .solo import MAX_SOLO_GAMES

DEFAULT_SECRET = "xoarena-development-secret"


@dataclass(frozen=True)
class Settings:
    host: str = "0.0.0.0"
    port: int = 8000
    secret: str = DEFAULT_SECRET
    room_code_attempts: int = ROOM_CODE_ATTEMPTS
    log_level: str = "INFO"
    default_tier: Tier = Tier.MEDIUM
    max_solo_games: int = MAX_SOLO_GAMES

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ
        return cls(
            host=env.get("XOARENA_HOST", cls.host),
            port=int(env.get("XOARENA_PORT", str(cls.port))),
            secret=env.get("XOARENA_SECRET", DEFAULT_SECRET),
            room_code_attempts=int(
                env.get("XOARENA_ROOM_CODE_ATTEMPTS", str(ROOM_CODE_ATTEMPTS))
            ),
            log_level=env.get("XOARENA_LOG_LEVEL", cls.log_level).upper(),
            default_tier=Tier.parse(env.get("XOARENA_DEFAULT_TIER", Tier.MEDIUM.value)),
            max_solo_games=int(env.get("XOARENA_MAX_SOLO_GAMES", str(MAX_SOLO_GAMES))),
        )

# chbot/config.py
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import find_dotenv, load_dotenv

from chbot.sql_policy import RewritePolicy


DEFAULT_URL = "https://clickhouse.nxthdr.dev"
DEFAULT_OUTPUT_LIMIT = "10"
DEFAULT_TIMEOUT_S = 30.0


def load_env() -> None:
    # .env next to where the bot is started; real env vars win
    env_path = find_dotenv(usecwd=True)
    if env_path:
        load_dotenv(env_path, override=False)


def env(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.environ.get(f"CHBOT_{name}")
    return value if value not in (None, "") else default


@dataclass(frozen=True)
class BotConfig:
    user: str
    password: str
    url: str = DEFAULT_URL
    # Kept as text until startup validation, see policy()
    output_limit: str = DEFAULT_OUTPUT_LIMIT
    timeout_s: float = DEFAULT_TIMEOUT_S

    def policy(self) -> RewritePolicy:
        """Raises InvalidPolicyValue on a bad output limit; callers treat that as fatal."""
        return RewritePolicy.from_values(self.output_limit)

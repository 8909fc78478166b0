"""Configuration management for Planning Buddy."""

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from .core.stats import DEFAULT_Q1_WARNING_PERCENT, DEFAULT_REWARD_EVERY
from .core.sync import DEFAULT_INITIAL_SYNC_DAYS, DEFAULT_SAFETY_NET_HOURS, SyncMeta
from .core.tickets import DEFAULT_TICKET_PATTERN

logger = logging.getLogger(__name__)

PLANBUDDY_HOME = Path(os.environ.get("PLANBUDDY_HOME", Path.home() / "planbuddy"))
CONFIG_FILE = PLANBUDDY_HOME / "config" / "planbuddy.conf"
GMAIL_TOKEN_FILE = PLANBUDDY_HOME / "config" / ".gmail_token.json"
DATA_DIR = PLANBUDDY_HOME / "data"
DATA_FILE = DATA_DIR / "planbuddy.json"


@dataclass
class Config:
    """Planning Buddy configuration."""

    data_file: str = ""
    ticket_pattern: str = DEFAULT_TICKET_PATTERN
    ticket_base_url: str = ""
    # Gmail ticket discovery
    gmail_client_secret_file: str = ""
    gmail_token_file: str = ""
    gmail_max_results: int = 100
    # Delta sync
    initial_sync_days: int = DEFAULT_INITIAL_SYNC_DAYS
    safety_net_hours: int = DEFAULT_SAFETY_NET_HOURS
    # Stats
    reward_every: int = DEFAULT_REWARD_EVERY
    reward_name: str = "sandwich"
    q1_warning_percent: int = DEFAULT_Q1_WARNING_PERCENT

    @property
    def data_path(self) -> Path:
        if self.data_file:
            return Path(self.data_file).expanduser()
        return DATA_FILE

    @property
    def token_path(self) -> Path:
        if self.gmail_token_file:
            return Path(self.gmail_token_file).expanduser()
        return GMAIL_TOKEN_FILE

    def default_sync_meta(self) -> SyncMeta:
        """SyncMeta written on first run."""
        return SyncMeta(
            initial_sync_days=self.initial_sync_days,
            safety_net_hours=self.safety_net_hours,
        )


def _parse_int(key: str, value: str, fallback: int, minimum: int = 0) -> int:
    try:
        number = int(value)
    except ValueError:
        logger.warning(f"Invalid integer for {key.upper()}: {value!r}, using {fallback}")
        return fallback
    if number < minimum:
        logger.warning(f"{key.upper()} must be >= {minimum}, using {fallback}")
        return fallback
    return number


def load_config(path: Path | None = None) -> Config:
    """Load configuration from planbuddy.conf file."""
    config = Config()
    path = path or CONFIG_FILE

    if not path.exists():
        return config

    for line in path.read_text().splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue

        if "=" not in line:
            continue

        key, _, value = line.partition("=")
        key = key.strip().lower()
        value = value.strip()

        # Handle quoted values with inline comments: "value" # comment
        if value.startswith('"'):
            end_quote = value.find('"', 1)
            if end_quote != -1:
                value = value[1:end_quote]
            else:
                value = value[1:]
        elif value.startswith("'"):
            end_quote = value.find("'", 1)
            if end_quote != -1:
                value = value[1:end_quote]
            else:
                value = value[1:]
        else:
            # Unquoted: strip inline comments
            if "#" in value:
                value = value.split("#")[0].strip()

        match key:
            case "data_file":
                config.data_file = value
            case "ticket_pattern":
                config.ticket_pattern = value or DEFAULT_TICKET_PATTERN
            case "ticket_base_url":
                config.ticket_base_url = value
            case "gmail_client_secret_file":
                config.gmail_client_secret_file = value
            case "gmail_token_file":
                config.gmail_token_file = value
            case "gmail_max_results":
                config.gmail_max_results = _parse_int(key, value, config.gmail_max_results, 1)
            case "initial_sync_days":
                config.initial_sync_days = _parse_int(key, value, config.initial_sync_days)
            case "safety_net_hours":
                config.safety_net_hours = _parse_int(key, value, config.safety_net_hours)
            case "reward_every":
                config.reward_every = _parse_int(key, value, config.reward_every, 1)
            case "reward_name":
                config.reward_name = value or config.reward_name
            case "q1_warning_percent":
                config.q1_warning_percent = _parse_int(key, value, config.q1_warning_percent)
            case _:
                logger.debug(f"Ignoring unknown config key: {key}")

    return config

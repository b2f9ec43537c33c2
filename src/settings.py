"""Static configuration for livewatch.

All user-editable settings (guilds, polling, upstream limits, logging) live
in a single JSON file for quick edits without touching Python. Secrets stay
in the environment (see client.py).
"""

import json
import os

from core.config import FetchConfig, PollingConfig

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

# config.json sits at the project root unless LIVEWATCH_CONFIG points elsewhere.
CONFIG_PATH = os.getenv("LIVEWATCH_CONFIG", os.path.join(PROJECT_ROOT, "config.json"))


def _load_json_config() -> dict:
    """Load config.json with a flat, user-friendly schema."""

    if not os.path.exists(CONFIG_PATH):
        raise FileNotFoundError(f"Config file not found: {CONFIG_PATH}")

    with open(CONFIG_PATH, "r", encoding="utf-8") as handle:
        return json.load(handle)


def _normalize_guild_ids(raw_ids: list) -> list[str]:
    """Return guild ids as strings, dropping blanks and duplicates."""

    guild_ids: list[str] = []
    for raw_id in raw_ids:
        guild_id = str(raw_id).strip()
        if guild_id and guild_id not in guild_ids:
            guild_ids.append(guild_id)
    return guild_ids


_CONFIG = _load_json_config()

# Expose the raw config for modules that need structured access.
CONFIG = _CONFIG

# Guilds (tenants) reconciled every cycle. The development guild, if set,
# is always included first.
_development_guild = _CONFIG.get("development_guild_id")
GUILD_IDS = _normalize_guild_ids(
    ([_development_guild] if _development_guild else []) + list(_CONFIG.get("guild_ids", []))
)

# Where to store the SQLite database with per-guild configs.
_database = _CONFIG.get("database", {})
DB_PATH = _database.get("path", os.path.join(PROJECT_ROOT, "livewatch.db"))
if not os.path.isabs(DB_PATH):
    DB_PATH = os.path.join(PROJECT_ROOT, DB_PATH)

# Upstream query limits. Helix caps ids per request at 100; the overall
# ceiling guards against accidental request storms.
_twitch = _CONFIG.get("twitch", {})
FETCH = FetchConfig(
    batch_size=int(_twitch.get("batch_size", 100)),
    max_ids=int(_twitch.get("max_ids", 2000)),
    retry_attempts=int(_twitch.get("retry_attempts", 5)),
    retry_delay_seconds=float(_twitch.get("retry_delay_seconds", 0.5)),
)

# Polling cadence and per-cycle fan-out across guilds.
_polling = _CONFIG.get("polling", {})
POLLING = PollingConfig(
    interval_seconds=float(_polling.get("interval_seconds", 62)),
    initial_delay_seconds=float(_polling.get("initial_delay_seconds", 5)),
    max_concurrent_tenants=int(_polling.get("max_concurrent_guilds", 8)),
    tenant_timeout_seconds=(
        float(_polling["guild_timeout_seconds"]) if _polling.get("guild_timeout_seconds") is not None else None
    ),
    fetch=FETCH,
)

# Logging configuration (optional).
LOGGING = _CONFIG.get("logging", {})

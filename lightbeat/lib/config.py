"""
Shared configuration loader for the LightBeat gateway.

Loads a single JSON config file per device.  Search order:
  1. /etc/lightbeat/config.json    (production install)
  2. config.json                    (CWD — handy for local dev)
  3. ../../config/default.json      (repo fallback)

Secrets (SPOTIFY_ACCESS_TOKEN, MQTT_USER, MQTT_PASSWORD) stay in environment
variables, loaded from /etc/lightbeat/secrets.env by systemd EnvironmentFile.

Usage:
    from lightbeat.lib.config import cfg

    device_name   = cfg("device", default="LightBeat")
    poll_interval = cfg("sync", "poll_interval", default=2.0)
    hardware      = cfg("hardware")  # returns the whole dict
"""

import json
import logging
import os

logger = logging.getLogger(__name__)

_config: dict | None = None

_SEARCH_PATHS = [
    "/etc/lightbeat/config.json",
    "config.json",
    os.path.join(os.path.dirname(__file__), "..", "..", "config", "default.json"),
]

PLAYER_TYPES = ("spotify", "demo")
GRANULARITIES = ("beat", "bar", "tatum", "section")


def _validate(config: dict, path: str) -> None:
    """Warn about missing or suspicious config values."""
    if not config.get("device"):
        logger.warning("Config %s: missing 'device' name", path)
    player = config.get("player") or {}
    player_type = player.get("type", "spotify")
    if player_type not in PLAYER_TYPES:
        logger.warning("Config %s: unknown player.type '%s'", path, player_type)
    sync = config.get("sync") or {}
    interval = sync.get("poll_interval", 2.0)
    if not isinstance(interval, (int, float)) or interval <= 0:
        logger.error("Config %s: sync.poll_interval must be a positive number, got %r",
                     path, interval)
    granularity = sync.get("granularity", "beat")
    if granularity not in GRANULARITIES:
        logger.warning("Config %s: unknown sync.granularity '%s' — beats will be used",
                       path, granularity)
    transport = config.get("transport") or {}
    if not transport.get("mqtt_broker"):
        logger.warning("Config %s: missing transport.mqtt_broker — using localhost", path)


def load_config() -> dict:
    """Load config from the first JSON file found. Cached after first call."""
    global _config
    if _config is not None:
        return _config

    for path in _SEARCH_PATHS:
        try:
            with open(path) as f:
                _config = json.load(f)
                logger.info("Config loaded from %s", path)
                _validate(_config, path)
                return _config
        except FileNotFoundError:
            continue
        except json.JSONDecodeError as e:
            logger.error("Invalid JSON in %s: %s", path, e)
            continue

    logger.warning("No config.json found — using empty config")
    _config = {}
    return _config


def cfg(section: str, key: str | None = None, *, default=None):
    """Read a config value.

    cfg("device")                       → config["device"]
    cfg("sync", "poll_interval")        → config["sync"]["poll_interval"]
    cfg("hardware", "enabled", default=False) → config["hardware"]["enabled"] or False
    """
    config = load_config()
    val = config.get(section)
    if key is None:
        return val if val is not None else default
    if isinstance(val, dict):
        return val.get(key, default)
    return default


def reload_config():
    """Force re-read from disk (for testing or hot-reload)."""
    global _config
    _config = None
    return load_config()

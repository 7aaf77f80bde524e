# registry.py
"""Static feed registry loaded from YAML.

The registry lists the regulatory-authority feeds to poll together with
a handful of monitor settings.  It is read once at process start; the
only runtime mutation is ``FeedDefinition.last_check``.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Tuple, Union

import yaml

from .exceptions import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent / "feeds.yaml"


@dataclass
class FeedDefinition:
    """One polled feed."""
    id: str
    name: str
    url: str
    authority: str
    region: str
    active: bool = True
    check_frequency: int = 60  # minutes
    last_check: Optional[datetime] = field(default=None, compare=False)


@dataclass
class MonitorSettings:
    politeness_delay: float = 2.0  # seconds after every fetch
    inter_feed_delay: float = 1.0  # seconds between feeds
    request_timeout: float = 30.0
    fetch_attempts: int = 1
    monitor_interval_minutes: int = 30


_FEED_FIELDS = ("id", "name", "url", "authority", "region")


def _feed_from_config(entry: dict) -> FeedDefinition:
    missing = [k for k in _FEED_FIELDS if not entry.get(k)]
    if missing:
        raise ConfigError(
            f"Feed entry {entry.get('id', '?')!r} is missing {', '.join(missing)}"
        )
    try:
        frequency = int(entry.get("check_frequency", 60))
    except (TypeError, ValueError):
        raise ConfigError(
            f"Feed {entry['id']!r} has invalid check_frequency "
            f"{entry.get('check_frequency')!r}"
        )
    return FeedDefinition(
        id=str(entry["id"]),
        name=str(entry["name"]),
        url=str(entry["url"]),
        authority=str(entry["authority"]),
        region=str(entry["region"]),
        active=bool(entry.get("active", True)),
        check_frequency=frequency,
    )


def _settings_from_config(raw: Optional[dict]) -> MonitorSettings:
    settings = MonitorSettings()
    for key, value in (raw or {}).items():
        if not hasattr(settings, key):
            logger.warning(f"Ignoring unknown setting: {key}")
            continue
        current = getattr(settings, key)
        try:
            setattr(settings, key, type(current)(value))
        except (TypeError, ValueError):
            raise ConfigError(f"Invalid value for setting {key}: {value!r}")
    return settings


def load_registry(
    config_path: Union[str, Path, None] = None,
) -> Tuple[MonitorSettings, List[FeedDefinition]]:
    """Load monitor settings and feed definitions.

    Parameters
    ----------
    config_path : str | Path | None
        Path to the registry YAML; defaults to the packaged ``feeds.yaml``.

    Returns
    -------
    Tuple[MonitorSettings, List[FeedDefinition]]
        Settings and feeds in file order.
    """
    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            config = yaml.safe_load(f) or {}
    except OSError as e:
        raise ConfigError(f"Cannot read feed registry {config_path}: {e}")
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {config_path}: {e}")

    if not isinstance(config, dict):
        raise ConfigError(f"{config_path} must contain a mapping")

    entries = config.get("feeds")
    if not isinstance(entries, list):
        raise ConfigError(f"{config_path} must define a 'feeds' list")

    feeds = [_feed_from_config(entry) for entry in entries]
    ids = [feed.id for feed in feeds]
    if len(set(ids)) != len(ids):
        raise ConfigError(f"Duplicate feed ids in {config_path}")

    settings = _settings_from_config(config.get("settings"))
    logger.info(f"Loaded {len(feeds)} feeds from {config_path}")
    return settings, feeds

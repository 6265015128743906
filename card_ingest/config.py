"""YAML configuration loader and validation."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from card_ingest.adapters import known_adapters, known_games
from card_ingest.errors import ConfigError
from card_ingest.throttle import DelayPolicy

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("config.yaml")


@dataclass
class BrowserConfig:
    """Headless browser settings."""

    headless: bool = True
    user_agent: Optional[str] = None
    viewport_width: int = 1280
    viewport_height: int = 900


@dataclass
class StorageConfig:
    """Content store table, asset bucket and credential variable names."""

    table: str = "cards"
    bucket: str = "card-images"
    conflict_key: str = "series_code,number,language"
    url_env: str = "SUPABASE_URL"
    key_env: str = "SUPABASE_SERVICE_KEY"

    def credentials(self) -> tuple[str, str]:
        url = os.environ.get(self.url_env)
        key = os.environ.get(self.key_env)
        if not url or not key:
            raise ConfigError(
                f"Missing storage credentials: set {self.url_env} and {self.key_env}"
            )
        return url, key


@dataclass
class ImageConfig:
    """Uploaded image format."""

    width: int = 480
    height: int = 672
    quality: int = 85
    retries: int = 3


@dataclass
class StateConfig:
    """Progress persistence settings."""

    progress_file: str = "./state/ingest-progress.jsonl"


@dataclass
class AppConfig:
    """Top-level application configuration."""

    game: str = "onepiece"
    adapter: str = "opecards"
    max_pages: int = 20
    delays: DelayPolicy = field(default_factory=DelayPolicy)
    browser: BrowserConfig = field(default_factory=BrowserConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    image: ImageConfig = field(default_factory=ImageConfig)
    state: StateConfig = field(default_factory=StateConfig)


def load_config(path: Optional[Path] = None, game: Optional[str] = None) -> AppConfig:
    """Load configuration from a YAML file, falling back to defaults."""
    config_path = path or DEFAULT_CONFIG_PATH
    if not config_path.exists():
        logger.info("No config file at %s, using defaults", config_path)
        config = AppConfig()
    else:
        logger.info("Loading config from %s", config_path)
        with open(config_path, "r", encoding="utf-8") as f:
            try:
                raw = yaml.safe_load(f)
            except yaml.YAMLError as exc:
                raise ConfigError(f"Config error: cannot parse {config_path}: {exc}") from exc
        if raw is not None and not isinstance(raw, dict):
            raise ConfigError(f"Config error: {config_path} must contain a mapping")
        config = _parse_config(raw) if raw else AppConfig()

    # CLI game override
    if game:
        config.game = game

    _validate_config(config)
    return config


def _section(raw: Dict[str, Any], name: str) -> Dict[str, Any]:
    value = raw.get(name) or {}
    if not isinstance(value, dict):
        raise ConfigError(f"Config error: '{name}' must be a mapping")
    return value


def _parse_config(raw: Dict[str, Any]) -> AppConfig:
    """Parse raw YAML dict into AppConfig."""
    config = AppConfig()

    if "game" in raw:
        config.game = str(raw["game"])
    if "adapter" in raw:
        config.adapter = str(raw["adapter"])
    if "max_pages" in raw:
        config.max_pages = int(raw["max_pages"])

    delays = _section(raw, "delays")
    defaults = DelayPolicy()
    config.delays = DelayPolicy(
        between_pages=int(delays.get("between_pages", defaults.between_pages)),
        between_items=int(delays.get("between_items", defaults.between_items)),
        between_uploads=int(delays.get("between_uploads", defaults.between_uploads)),
        between_partitions=int(delays.get("between_partitions", defaults.between_partitions)),
        page_load=int(delays.get("page_load", defaults.page_load)),
        navigation_timeout=int(delays.get("navigation_timeout", defaults.navigation_timeout)),
    )

    br = _section(raw, "browser")
    config.browser = BrowserConfig(
        headless=bool(br.get("headless", config.browser.headless)),
        user_agent=br.get("user_agent", config.browser.user_agent),
        viewport_width=int(br.get("viewport_width", config.browser.viewport_width)),
        viewport_height=int(br.get("viewport_height", config.browser.viewport_height)),
    )

    st = _section(raw, "storage")
    config.storage = StorageConfig(
        table=st.get("table", config.storage.table),
        bucket=st.get("bucket", config.storage.bucket),
        conflict_key=st.get("conflict_key", config.storage.conflict_key),
        url_env=st.get("url_env", config.storage.url_env),
        key_env=st.get("key_env", config.storage.key_env),
    )

    img = _section(raw, "image")
    config.image = ImageConfig(
        width=int(img.get("width", config.image.width)),
        height=int(img.get("height", config.image.height)),
        quality=int(img.get("quality", config.image.quality)),
        retries=int(img.get("retries", config.image.retries)),
    )

    state = _section(raw, "state")
    config.state = StateConfig(
        progress_file=state.get("progress_file", config.state.progress_file),
    )

    return config


def _validate_config(config: AppConfig) -> None:
    """Validate config and raise ConfigError on the first batch of problems."""
    problems = []
    if config.game not in known_games():
        problems.append(f"unknown game '{config.game}'. Known: {sorted(known_games())}")
    elif config.adapter not in known_adapters(config.game):
        problems.append(
            f"unknown adapter '{config.adapter}' for game '{config.game}'. "
            f"Known: {sorted(known_adapters(config.game))}"
        )
    problems.extend(config.delays.validate())
    if config.max_pages < 1:
        problems.append(f"max_pages must be >= 1 (got {config.max_pages})")
    if not 1 <= config.image.quality <= 100:
        problems.append(f"image.quality must be within 1..100 (got {config.image.quality})")
    if config.image.width <= 0 or config.image.height <= 0:
        problems.append("image.width and image.height must be positive")
    if config.image.retries < 1:
        problems.append(f"image.retries must be >= 1 (got {config.image.retries})")

    if problems:
        raise ConfigError("Config error: " + "; ".join(problems))

    logger.info(
        "Config validated: game=%s, adapter=%s, progress -> %s",
        config.game,
        config.adapter,
        config.state.progress_file,
    )

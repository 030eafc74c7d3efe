"""Configuration helpers for orionlink."""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Any

from .settings import CONFIG_FILE, LOG_LEVEL, configure_logging

logger = logging.getLogger(__name__)

MODES = ("serial", "network")


def _ensure_parent(path: Path) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except OSError:
        # Directory creation failures will surface during write.
        pass


def _coerce_mode(value: Any, default: str) -> str:
    mode = str(value).strip().lower() if value is not None else ""
    return mode if mode in MODES else default


@dataclass
class LinkConfig:
    mode: str = "network"
    serial_port: str = ""
    log_level: str = "INFO"

    def log_level_value(self) -> int:
        level = logging.getLevelName(self.log_level.strip().upper())
        return level if isinstance(level, int) else LOG_LEVEL

    def apply_logging(self, *, force: bool = False) -> logging.Logger:
        return configure_logging(level=self.log_level_value(), force=force)


def load_config(path: str | Path = CONFIG_FILE) -> LinkConfig:
    """Load link settings from *path* or return defaults on failure."""

    defaults = LinkConfig()
    cfg_path = Path(path)
    if not cfg_path.exists():
        return defaults

    try:
        raw = json.loads(cfg_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        logger.error("Config file %s contains invalid JSON: %s", cfg_path, exc)
        return defaults
    except OSError as exc:
        logger.error("Could not read config file %s: %s", cfg_path, exc)
        return defaults

    if not isinstance(raw, dict):
        logger.error("Config file %s did not contain an object", cfg_path)
        return defaults

    data = asdict(defaults)
    data["mode"] = _coerce_mode(raw.get("mode"), defaults.mode)
    data["serial_port"] = str(raw.get("serial_port", data["serial_port"])).strip()
    data["log_level"] = str(raw.get("log_level", data["log_level"])).upper()

    return LinkConfig(**data)


def save_config(config: LinkConfig, path: str | Path = CONFIG_FILE) -> None:
    """Persist *config* to *path*, logging errors without raising."""

    cfg_path = Path(path)
    _ensure_parent(cfg_path)
    try:
        cfg_path.write_text(json.dumps(asdict(config), indent=4), encoding="utf-8")
    except OSError as exc:
        logger.error("Could not write config file %s: %s", cfg_path, exc)

"""Per-user data directory resolution."""

import os
from pathlib import Path

from oeis_tui.config import Settings, settings as default_settings

APP_DIR_NAME = "oeis-tui"
DB_FILE_NAME = "oeis_cache.db"
LOG_FILE_NAME = "oeis-tui.log"


def config_dir(cfg: Settings | None = None) -> Path:
    """Resolve the data directory (e.g. ~/.config/oeis-tui) without creating it."""
    cfg = cfg or default_settings
    if cfg.has_custom_data_dir:
        return Path(cfg.data_dir).expanduser()

    # ~/.config on every platform, macOS included.
    xdg = os.environ.get("XDG_CONFIG_HOME")
    base = Path(xdg) if xdg else Path.home() / ".config"
    return base / APP_DIR_NAME


def ensure_config_dir(cfg: Settings | None = None) -> Path:
    """Resolve the data directory and create it if needed."""
    path = config_dir(cfg)
    path.mkdir(parents=True, exist_ok=True)
    return path


def config_file(name: str, cfg: Settings | None = None) -> Path:
    """Build a path inside the data directory (ensures the dir exists)."""
    return ensure_config_dir(cfg) / name

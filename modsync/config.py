"""Configuration management for modsync.

Settings are read from environment variables first, then from a JSON file
in the user's config directory (``~/.config/modsync/config.json``).
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Optional

from .exceptions import ModSyncConfigError

logger = logging.getLogger(__name__)

DEFAULT_ORGANIZATION = "FalloutCollaborationProject"
DEFAULT_API_URL = "https://api.github.com"
DEFAULT_HOST = "github.com"
CONFIG_FILE_NAME = "config.json"


class Config:
    """Layered configuration: environment variables override the config file."""

    def __init__(self, config_dir: Optional[Path] = None):
        """Initialize configuration.

        Args:
            config_dir: Directory holding config.json. Defaults to
                ``$MODSYNC_CONFIG_DIR`` or ``~/.config/modsync``
        """
        if config_dir is None:
            env_dir = os.environ.get("MODSYNC_CONFIG_DIR")
            config_dir = (
                Path(env_dir) if env_dir else Path.home() / ".config" / "modsync"
            )
        self.config_dir = config_dir
        self._data: Optional[dict[str, Any]] = None

    def get_config_path(self) -> Path:
        """Get the path of the config file."""
        return self.config_dir / CONFIG_FILE_NAME

    def _load(self) -> dict[str, Any]:
        if self._data is not None:
            return self._data

        path = self.get_config_path()
        self._data = {}
        if path.exists():
            try:
                data = json.loads(path.read_text(encoding="utf-8"))
                if isinstance(data, dict):
                    self._data = data
                else:
                    logger.warning(f"Ignoring malformed config file: {path}")
            except (OSError, json.JSONDecodeError) as e:
                logger.warning(f"Could not read config file {path}: {e}")
        return self._data

    def _save(self, data: dict[str, Any]) -> None:
        path = self.get_config_path()
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        except OSError as e:
            raise ModSyncConfigError(f"Could not write config file {path}: {e}") from e
        self._data = data

    @property
    def organization(self) -> str:
        """Organization whose repositories make up the mod catalog."""
        return (
            os.environ.get("MODSYNC_ORGANIZATION")
            or self._load().get("organization")
            or DEFAULT_ORGANIZATION
        )

    @property
    def api_url(self) -> str:
        """Base URL of the hosting API."""
        return (
            os.environ.get("MODSYNC_API_URL")
            or self._load().get("api_url")
            or DEFAULT_API_URL
        )

    @property
    def host(self) -> str:
        """Host name that organization remotes point at."""
        return (
            os.environ.get("MODSYNC_HOST") or self._load().get("host") or DEFAULT_HOST
        )

    @property
    def github_token(self) -> Optional[str]:
        """Optional API token, only ever read from the environment."""
        return os.environ.get("GITHUB_TOKEN") or None

    @property
    def mods_directory(self) -> Optional[Path]:
        """Saved mods directory, if any."""
        value = os.environ.get("MODSYNC_MODS_DIR") or self._load().get("mods_directory")
        return Path(value) if value else None

    def save_mods_directory(self, path: Path) -> None:
        """Remember the mods directory for future runs.

        Raises:
            ModSyncConfigError: If the directory does not exist or the config
                file cannot be written
        """
        path = path.expanduser().resolve()
        if not path.is_dir():
            raise ModSyncConfigError(f"Directory does not exist: {path}")
        data = dict(self._load())
        data["mods_directory"] = str(path)
        self._save(data)

    def is_configured(self) -> bool:
        """True if a mods directory has been saved or set in the environment."""
        return self.mods_directory is not None


config = Config()

"""Configuration management for SharpCore.

Loads ``config.json`` and an optional ``.env`` beside it into a
``Config`` object. Property getters give typed access with defaults;
``validate()`` enforces the settings the bot cannot start without.

Key classes:
    Config: Central configuration manager.

Key functions:
    get_config: Singleton accessor for the global Config instance.
"""

import json
import os
import re
from pathlib import Path
from typing import List, Optional

import structlog
from dotenv import load_dotenv

from .exceptions import ConfigurationError

logger = structlog.get_logger("sharpcore.bot")

REPO_ROOT = Path(__file__).parent.parent

TOKEN_PATTERN = re.compile(r"^[A-Za-z0-9._-]+$")

TOKEN_HELP_URL = "https://discord.com/developers/applications"


class Config:
    """Central configuration manager for SharpCore.

    Reads the JSON config file once at construction. Environment
    variables (``SHARPCORE_BOT_TOKEN``, ``SHARPCORE_PREFIX``) take
    precedence over the file.

    Args:
        config_path: Path to the JSON config. Defaults to
            ``$SHARPCORE_CONFIG`` or ``<repo_root>/config.json``.

    Raises:
        ConfigurationError: If the file is missing, unreadable, not
            valid JSON, or not a JSON object.
    """

    def __init__(self, config_path: Optional[Path] = None):
        if config_path is None:
            env_path = os.environ.get("SHARPCORE_CONFIG")
            config_path = Path(env_path) if env_path else REPO_ROOT / "config.json"
        self.config_path = Path(config_path)
        self.config_dir = self.config_path.parent

        env_file = self.config_dir / ".env"
        if env_file.exists():
            load_dotenv(env_file)

        self.settings = self._load_json(self.config_path)

    @staticmethod
    def _load_json(path: Path) -> dict:
        """Load and sanity-check the JSON config file."""
        if not path.is_file():
            raise ConfigurationError(
                f"Config file not found at {path}. "
                "Copy config.example.json to config.json and fill it in.",
                path=str(path),
            )
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationError(
                f"Config file {path} is not valid JSON: {e.msg} "
                f"(line {e.lineno}, column {e.colno})",
                path=str(path),
            ) from e
        except OSError as e:
            raise ConfigurationError(
                f"Config file {path} could not be read: {e}", path=str(path)
            ) from e
        if not isinstance(data, dict):
            raise ConfigurationError(
                f"Config file {path} must contain a JSON object, "
                f"got {type(data).__name__}",
                path=str(path),
            )
        return data

    def validate(self) -> None:
        """Validate the settings required to connect.

        Raises:
            ConfigurationError: With a message specific to the
                failing setting.
        """
        token = self.bot_token
        if not token:
            raise ConfigurationError(
                "Config is missing a bot token! "
                f"Please acquire one at {TOKEN_HELP_URL}",
                setting_name="botToken",
            )
        if not isinstance(token, str) or not TOKEN_PATTERN.match(token):
            raise ConfigurationError(
                "Config has an invalid bot token! Tokens may only contain "
                "letters, digits, '.', '_' and '-'. "
                f"Please acquire a valid one at {TOKEN_HELP_URL}",
                setting_name="botToken",
            )

        prefix = self.prefix
        if not isinstance(prefix, str) or not prefix:
            raise ConfigurationError(
                "Config is missing a command prefix (e.g. \"!\")",
                setting_name="prefix",
            )

        modules = self.settings.get("commands")
        if modules is not None and (
            not isinstance(modules, list)
            or not all(isinstance(m, str) for m in modules)
        ):
            raise ConfigurationError(
                "Config 'commands' must be a list of module paths",
                setting_name="commands",
            )

        owner = self.settings.get("ownerId")
        if owner is not None and not str(owner).isdigit():
            logger.warning("config_invalid_owner_id", value=str(owner))

    @property
    def bot_token(self) -> Optional[str]:
        """Bot token. Env var SHARPCORE_BOT_TOKEN takes precedence."""
        return os.environ.get("SHARPCORE_BOT_TOKEN") or self.settings.get("botToken")

    @property
    def prefix(self) -> str:
        """Command prefix. Env var SHARPCORE_PREFIX takes precedence."""
        return os.environ.get("SHARPCORE_PREFIX") or self.settings.get("prefix", "")

    @property
    def owner_id(self) -> Optional[int]:
        """Discord user id of the bot owner, if configured."""
        owner = self.settings.get("ownerId")
        if owner is None or not str(owner).isdigit():
            return None
        return int(owner)

    @property
    def command_modules(self) -> Optional[List[str]]:
        """Explicit list of command module paths, or None for the defaults."""
        return self.settings.get("commands")

    @property
    def commands_dir(self) -> Optional[Path]:
        """Directory to scan for command units instead of the module list."""
        value = self.settings.get("commandsDir")
        if not value:
            return None
        path = Path(value)
        return path if path.is_absolute() else self.config_dir / path

    @property
    def data_dir(self) -> Path:
        value = self.settings.get("dataDir")
        if not value:
            return REPO_ROOT / "data"
        path = Path(value)
        return path if path.is_absolute() else self.config_dir / path

    @property
    def log_dir(self) -> Path:
        value = self.settings.get("logDir")
        if not value:
            return REPO_ROOT / "logs"
        path = Path(value)
        return path if path.is_absolute() else self.config_dir / path

    @property
    def log_level(self) -> str:
        return str(self.settings.get("logLevel", "INFO"))

    @property
    def invite_permissions(self) -> int:
        """Permission bits requested by the invite link (read + send)."""
        return int(self.settings.get("invitePermissions", 3072))


_config: Optional[Config] = None


def get_config() -> Config:
    """Get or create the global config instance."""
    global _config
    if _config is None:
        _config = Config()
    return _config


def reset_config() -> None:
    """Drop the cached config (tests, reload)."""
    global _config
    _config = None

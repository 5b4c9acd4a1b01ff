"""
Tianyi Router Client - Configuration Loader

Loads gateway connection settings from multiple sources with cascading priority:
environment variables -> config file -> keyring (password only).
"""

import json
import logging
import os
from pathlib import Path
from typing import Optional, Dict, Any, List

import keyring
from keyring.errors import KeyringError
import pydantic

from .models import RouterConfig
from .exceptions import ConfigurationError

logger = logging.getLogger("tianyi-router")


class ConfigLoader:
    """
    Configuration loader for Tianyi gateway profiles.

    Priority order:
    1. Environment variables (TIANYI_HOST, TIANYI_USERNAME, TIANYI_PASSWORD, ...)
    2. Config file (~/.tianyi-router/config.json), one entry per profile
    3. Keyring, consulted for the password when a profile stores none

    The config file is kept at 0600.
    """

    DEFAULT_CONFIG_DIR = Path.home() / ".tianyi-router"
    DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.json"
    REQUIRED_FILE_PERMISSIONS = 0o600
    KEYRING_SERVICE_NAME = "tianyi-router"

    ENV_PREFIX = "TIANYI_"
    ENV_FIELDS = {
        "host": "HOST",
        "username": "USERNAME",
        "password": "PASSWORD",
        "use_https": "USE_HTTPS",
        "verify_ssl": "VERIFY_SSL",
        "timeout": "TIMEOUT",
        "max_concurrency": "MAX_CONCURRENCY",
    }

    @classmethod
    def load(cls, profile: str = "default") -> RouterConfig:
        """
        Load gateway configuration for the specified profile.

        Args:
            profile: Profile name to load (default: "default")

        Returns:
            RouterConfig with credentials

        Raises:
            ConfigurationError: If no password can be found or configuration is invalid
        """
        logger.debug(f"Loading configuration for profile: {profile}")

        config = cls._load_from_env()
        if config:
            logger.info("Loaded configuration from environment variables")
            return config

        config = cls._load_from_config_file(profile)
        if config:
            logger.info(f"Loaded configuration for profile '{profile}' from config file")
            return config

        raise ConfigurationError(
            f"No credentials found for profile '{profile}'. "
            f"Run 'tianyi-router setup' or set TIANYI_PASSWORD (and optionally TIANYI_HOST, TIANYI_USERNAME)"
        )

    @classmethod
    def _load_from_env(cls) -> Optional[RouterConfig]:
        """Load configuration from environment variables; requires TIANYI_PASSWORD."""
        if not os.getenv(f"{cls.ENV_PREFIX}PASSWORD"):
            return None

        values: Dict[str, Any] = {}
        for field, suffix in cls.ENV_FIELDS.items():
            value = os.getenv(f"{cls.ENV_PREFIX}{suffix}")
            if value is None:
                continue
            if field in ("use_https", "verify_ssl"):
                values[field] = value.lower() in ("true", "1", "yes")
            else:
                values[field] = value

        try:
            return RouterConfig(**values)
        except pydantic.ValidationError as e:
            logger.error(f"Invalid settings in environment variables: {e}")
            raise ConfigurationError(f"Invalid settings in environment variables: {e}")

    @classmethod
    def _read_config_file(cls) -> Dict[str, Any]:
        config_file = cls.DEFAULT_CONFIG_FILE
        cls._verify_file_permissions(config_file)
        try:
            with open(config_file, 'r') as f:
                return json.load(f)
        except json.JSONDecodeError as e:
            logger.error(f"Invalid JSON in config file: {e}")
            raise ConfigurationError(f"Invalid JSON in config file: {e}")

    @classmethod
    def _load_from_config_file(cls, profile: str) -> Optional[RouterConfig]:
        """Load configuration from config file, falling back to keyring for the password."""
        config_file = cls.DEFAULT_CONFIG_FILE

        if not config_file.exists():
            logger.debug(f"Config file not found: {config_file}")
            return None

        config_data = cls._read_config_file()
        if profile not in config_data:
            logger.debug(f"Profile '{profile}' not found in config file")
            return None

        profile_config = dict(config_data[profile])
        if not profile_config.get("password"):
            password = cls._load_password_from_keyring(profile)
            if not password:
                raise ConfigurationError(
                    f"Profile '{profile}' has no password in the config file or keyring"
                )
            profile_config["password"] = password

        try:
            return RouterConfig(**profile_config)
        except pydantic.ValidationError as e:
            logger.error(f"Invalid profile '{profile}' in config file: {e}")
            raise ConfigurationError(f"Invalid profile '{profile}' in config file: {e}")

    @classmethod
    def _load_password_from_keyring(cls, profile: str) -> Optional[str]:
        """Look up a profile's password in the system keyring."""
        try:
            return keyring.get_password(cls.KEYRING_SERVICE_NAME, profile)
        except KeyringError as e:
            logger.debug(f"Could not read password from keyring: {e}")
            return None

    @classmethod
    def save_profile(cls, profile: str, config: RouterConfig, use_keyring: bool = False) -> None:
        """
        Save a profile to the config file.

        Args:
            profile: Profile name
            config: Gateway configuration to save
            use_keyring: Store the password in the system keyring instead of the file

        Raises:
            ConfigurationError: If the keyring cannot store the password
        """
        config_file = cls.DEFAULT_CONFIG_FILE
        config_file.parent.mkdir(parents=True, exist_ok=True)

        config_data = cls._read_config_file() if config_file.exists() else {}

        entry = config.model_dump(mode="json")
        if use_keyring:
            try:
                keyring.set_password(cls.KEYRING_SERVICE_NAME, profile, config.password)
            except KeyringError as e:
                raise ConfigurationError(f"Could not store password in keyring: {e}")
            entry.pop("password", None)

        config_data[profile] = entry

        with open(config_file, 'w') as f:
            json.dump(config_data, f, indent=2)

        cls._set_secure_permissions(config_file)
        logger.info(f"Saved profile '{profile}' to config file")

    @classmethod
    def delete_profile(cls, profile: str) -> None:
        """
        Delete a profile from the config file and its keyring entry.

        Raises:
            ConfigurationError: If the profile doesn't exist
        """
        config_file = cls.DEFAULT_CONFIG_FILE

        if not config_file.exists():
            raise ConfigurationError(f"Config file not found: {config_file}")

        config_data = cls._read_config_file()
        if profile not in config_data:
            raise ConfigurationError(f"Profile '{profile}' not found")

        del config_data[profile]

        with open(config_file, 'w') as f:
            json.dump(config_data, f, indent=2)
        cls._set_secure_permissions(config_file)

        try:
            keyring.delete_password(cls.KEYRING_SERVICE_NAME, profile)
        except KeyringError:
            # PasswordDeleteError is raised when nothing was stored
            pass

        logger.info(f"Deleted profile '{profile}' from config file")

    @classmethod
    def list_profiles(cls) -> List[str]:
        """List all configured profile names."""
        if not cls.DEFAULT_CONFIG_FILE.exists():
            return []
        return list(cls._read_config_file().keys())

    @classmethod
    def get_profile_info(cls, profile: str) -> Dict[str, Any]:
        """
        Get non-sensitive information about a profile.

        Raises:
            ConfigurationError: If the profile doesn't exist
        """
        config_file = cls.DEFAULT_CONFIG_FILE

        if not config_file.exists():
            raise ConfigurationError(f"Config file not found: {config_file}")

        config_data = cls._read_config_file()
        if profile not in config_data:
            raise ConfigurationError(f"Profile '{profile}' not found")

        profile_config = config_data[profile]
        return {
            "host": profile_config.get("host"),
            "username": profile_config.get("username"),
            "use_https": profile_config.get("use_https", False),
            "password_in_keyring": not profile_config.get("password"),
        }

    @classmethod
    def _set_secure_permissions(cls, file_path: Path) -> None:
        """Set 0600 permissions (owner read/write only)."""
        try:
            os.chmod(file_path, cls.REQUIRED_FILE_PERMISSIONS)
        except OSError as e:
            logger.warning(f"Could not set secure permissions on {file_path}: {e}")

    @classmethod
    def _verify_file_permissions(cls, file_path: Path) -> None:
        """Warn about and fix permissions looser than 0600."""
        try:
            current_perms = os.stat(file_path).st_mode & 0o777
        except OSError as e:
            logger.debug(f"Could not verify file permissions: {e}")
            return

        if current_perms != cls.REQUIRED_FILE_PERMISSIONS:
            logger.warning(
                f"Config file {file_path} has insecure permissions {oct(current_perms)}. "
                f"Recommended: {oct(cls.REQUIRED_FILE_PERMISSIONS)}"
            )
            cls._set_secure_permissions(file_path)

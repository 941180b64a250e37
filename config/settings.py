"""Configuration settings using Pydantic."""

import json
from pathlib import Path
from typing import Optional

import yaml
from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from tools.error_handling import ConfigurationError

# Values shipped in the sample config that must never be sent to the endpoint
PLACEHOLDER_KEYS = {"PLACEHOLDER", "PASTE_YOUR_GEMINI_API_KEY_HERE"}


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Completion endpoint
    gemini_api_key: Optional[SecretStr] = None
    completion_endpoint: str = (
        "https://generativelanguage.googleapis.com/v1beta/models/"
        "gemini-2.5-flash-lite:generateContent"
    )
    request_timeout_seconds: float = 30.0

    # Application Configuration
    log_level: str = "INFO"
    log_json: bool = False
    config_file: str = "config.json"

    # Input Configuration
    min_code_length: int = 10


def load_config_file(config_path: str) -> dict:
    """
    Load configuration from a YAML or JSON file.

    Args:
        config_path: Path to configuration file

    Returns:
        Configuration dictionary

    Raises:
        ConfigurationError: If the file cannot be read or parsed
    """
    config_file = Path(config_path)

    try:
        with open(config_file, 'r', encoding='utf-8') as f:
            if config_file.suffix in ('.yaml', '.yml'):
                data = yaml.safe_load(f)
            else:
                data = json.load(f)
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Could not parse {config_path}: {e}") from e
    except OSError as e:
        raise ConfigurationError(f"Could not read {config_path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"{config_path} must contain a mapping at the top level")
    return data


def is_usable_key(key: Optional[str]) -> bool:
    """Check that a key is present, non-blank and not a placeholder."""
    return bool(key) and bool(key.strip()) and key.strip() not in PLACEHOLDER_KEYS


def load_api_key(app_settings: Optional[Settings] = None) -> Optional[SecretStr]:
    """
    Resolve the completion-endpoint credential.

    The environment (GEMINI_API_KEY or .env) wins; otherwise ``gemini.api_key``
    is read from the config file if it exists.

    Args:
        app_settings: Settings to read from (module settings if None)

    Returns:
        The credential, or None if no usable credential is configured

    Raises:
        ConfigurationError: If the config file exists but is malformed
    """
    app_settings = app_settings or settings

    if app_settings.gemini_api_key is not None:
        env_key = app_settings.gemini_api_key.get_secret_value()
        if is_usable_key(env_key):
            return SecretStr(env_key.strip())

    if not Path(app_settings.config_file).exists():
        return None

    config = load_config_file(app_settings.config_file)
    gemini = config.get("gemini")
    key = gemini.get("api_key") if isinstance(gemini, dict) else None
    if isinstance(key, str) and is_usable_key(key):
        return SecretStr(key.strip())
    return None


# Global settings instance
settings = Settings()

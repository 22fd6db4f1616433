"""
Configuration loader with TOML file parsing and environment variable overrides.
"""
import os
import logging
import tomllib
from dataclasses import fields
from pathlib import Path
from typing import Optional, Any, Dict, Callable

from .models import (
    ColloquyConfig,
    AgentConfig,
    ProviderConfig,
    RedisConfig,
    HistoryConfig,
    WebChatConfig,
    LoggingConfig,
)

logger = logging.getLogger(__name__)

_config: Optional[ColloquyConfig] = None

CONFIG_ENV_VAR = "COLLOQUY_CONFIG"

CONFIG_PATHS = [
    Path("colloquy.toml"),
    Path.home() / ".config" / "colloquy" / "colloquy.toml",
]

SECTION_TYPES = {
    "agent": AgentConfig,
    "provider": ProviderConfig,
    "redis": RedisConfig,
    "history": HistoryConfig,
    "web_chat": WebChatConfig,
    "logging": LoggingConfig,
}


def _to_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in ("1", "true", "yes", "on"):
        return True
    if lowered in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"not a boolean: {value!r}")


# Format: COLLOQUY_SECTION_KEY -> (section, key, cast)
ENV_OVERRIDES: Dict[str, tuple] = {
    # Agent overrides
    "COLLOQUY_AGENT_MODEL": ("agent", "model", str),
    "COLLOQUY_AGENT_MAX_TOKENS": ("agent", "max_tokens", int),
    "COLLOQUY_AGENT_TEMPERATURE": ("agent", "temperature", float),
    "COLLOQUY_AGENT_SYSTEM_PROMPT": ("agent", "system_prompt", str),

    # Provider overrides
    "COLLOQUY_PROVIDER_ACCOUNT_ID": ("provider", "account_id", str),
    "COLLOQUY_PROVIDER_API_TOKEN": ("provider", "api_token", str),
    "COLLOQUY_PROVIDER_BASE_URL": ("provider", "base_url", str),
    "COLLOQUY_PROVIDER_TIMEOUT": ("provider", "timeout", float),

    # Redis overrides
    "COLLOQUY_REDIS_HOST": ("redis", "host", str),
    "COLLOQUY_REDIS_PORT": ("redis", "port", int),
    "COLLOQUY_REDIS_DB": ("redis", "db", int),
    "COLLOQUY_REDIS_KEY_PREFIX": ("redis", "key_prefix", str),

    # History overrides
    "COLLOQUY_HISTORY_BACKEND": ("history", "backend", str),
    "COLLOQUY_HISTORY_SWALLOW_WRITE_ERRORS": ("history", "swallow_write_errors", _to_bool),

    # Web chat overrides
    "COLLOQUY_WEB_CHAT_HOST": ("web_chat", "host", str),
    "COLLOQUY_WEB_CHAT_PORT": ("web_chat", "port", int),
    "COLLOQUY_WEB_CHAT_CONTEXTUAL_PROMPTS": ("web_chat", "contextual_prompts", _to_bool),

    # Logging overrides
    "COLLOQUY_LOGGING_LEVEL": ("logging", "level", str),
    "COLLOQUY_LOGGING_JSON_OUTPUT": ("logging", "json_output", _to_bool),
}


def _load_toml(path: Path) -> Dict[str, Any]:
    """Load TOML file and return parsed dict."""
    with open(path, "rb") as f:
        return tomllib.load(f)


def _apply_env_overrides(data: Dict[str, Dict[str, Any]]) -> Dict[str, Dict[str, Any]]:
    """
    Merge environment variables into the raw section data.
    Example: COLLOQUY_PROVIDER_API_TOKEN overrides [provider] api_token
    """
    for env_var, (section, key, cast) in ENV_OVERRIDES.items():
        value = os.environ.get(env_var)
        if value is None:
            continue
        try:
            data.setdefault(section, {})[key] = cast(value)
            logger.debug(f"Config override from env: {env_var}")
        except (ValueError, TypeError) as e:
            logger.warning(f"Failed to apply env override {env_var}={value}: {e}")

    return data


def _build_section(section_name: str, section_type: Callable, values: Dict[str, Any]):
    """Construct one section dataclass, ignoring unknown keys."""
    known = {f.name for f in fields(section_type)}
    kwargs = {k: v for k, v in values.items() if k in known}
    for k in values:
        if k not in known:
            logger.warning(f"Ignoring unknown config key [{section_name}] {k}")
    try:
        return section_type(**kwargs)
    except (ValueError, TypeError) as e:
        logger.warning(f"Invalid [{section_name}] config, using defaults: {e}")
        return section_type()


def _data_to_config(data: Dict[str, Any]) -> ColloquyConfig:
    """Convert parsed TOML dict to ColloquyConfig dataclass."""
    sections = {
        name: _build_section(name, section_type, data.get(name, {}))
        for name, section_type in SECTION_TYPES.items()
    }
    return ColloquyConfig(**sections)


def _candidate_paths(config_path: Optional[Path]) -> list:
    if config_path:
        return [config_path]
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return [Path(env_path)]
    return CONFIG_PATHS


def load_config(config_path: Optional[Path] = None) -> ColloquyConfig:
    """
    Load configuration from TOML file with environment variable overrides.

    Args:
        config_path: Optional explicit path to config file. If None, checks
            $COLLOQUY_CONFIG and then the default paths.

    Returns:
        ColloquyConfig instance with loaded configuration.
    """
    global _config

    data: Dict[str, Any] = {}
    for path in _candidate_paths(config_path):
        if path.exists():
            try:
                data = _load_toml(path)
                logger.info(f"Loaded config from {path}")
                break
            except (OSError, tomllib.TOMLDecodeError) as e:
                logger.error(f"Failed to load config from {path}: {e}")
                continue
    else:
        logger.warning("No config file found, using defaults")

    data = _apply_env_overrides(data)
    config = _data_to_config(data)
    _config = config
    return config


def get_config() -> ColloquyConfig:
    """
    Get cached config or load if not yet loaded.

    Returns:
        ColloquyConfig instance.
    """
    global _config
    if _config is None:
        _config = load_config()
    return _config

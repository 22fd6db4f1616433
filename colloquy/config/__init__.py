"""
Colloquy configuration management.

Provides centralized configuration loading from TOML files with environment variable overrides.

Usage:
    from colloquy.config import get_config

    config = get_config()
    model = config.agent.model
    port = config.web_chat.port
"""
from .loader import load_config, get_config
from .models import ColloquyConfig, AgentConfig

__all__ = ["load_config", "get_config", "ColloquyConfig", "AgentConfig"]

"""
Configuration dataclass models for Colloquy.
"""
from dataclasses import dataclass, field
from typing import Optional


DEFAULT_MODEL = "@cf/meta/llama-3.3-70b-instruct-fp8-fast"
DEFAULT_SYSTEM_PROMPT = "You are a helpful AI assistant powered by Cloudflare Workers AI."


@dataclass(frozen=True)
class AgentConfig:
    """Generation settings for the conversation orchestrator.

    Immutable once built. Use ``dataclasses.replace`` (or ``create_agent``
    keyword overrides) to derive a variant for a single invocation.
    """
    model: str = DEFAULT_MODEL
    max_tokens: int = 1024
    temperature: float = 0.7
    system_prompt: Optional[str] = DEFAULT_SYSTEM_PROMPT

    def __post_init__(self):
        if self.max_tokens <= 0:
            raise ValueError(f"max_tokens must be positive, got {self.max_tokens}")


@dataclass
class ProviderConfig:
    """Workers AI completion provider configuration."""
    account_id: str = ""
    api_token: str = ""  # loaded from env
    base_url: str = "https://api.cloudflare.com/client/v4"
    timeout: float = 120.0


@dataclass
class RedisConfig:
    """Redis server configuration."""
    host: str = "localhost"
    port: int = 6379
    db: int = 0
    key_prefix: str = "colloquy:history"


@dataclass
class HistoryConfig:
    """History store selection and write-failure policy."""
    backend: str = "memory"  # "memory" or "redis"
    swallow_write_errors: bool = True


@dataclass
class WebChatConfig:
    """Web chat boundary configuration."""
    host: str = "0.0.0.0"
    port: int = 8787
    contextual_prompts: bool = False


@dataclass
class LoggingConfig:
    """Logging output configuration."""
    level: str = "INFO"
    json_output: bool = False


@dataclass
class ColloquyConfig:
    """Root configuration object containing all subsystem configs."""
    agent: AgentConfig = field(default_factory=AgentConfig)
    provider: ProviderConfig = field(default_factory=ProviderConfig)
    redis: RedisConfig = field(default_factory=RedisConfig)
    history: HistoryConfig = field(default_factory=HistoryConfig)
    web_chat: WebChatConfig = field(default_factory=WebChatConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

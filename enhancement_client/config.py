"""
Configuration settings for the Remote Image Enhancement Client
Transport policy, Redis-backed preference storage and logging level
"""
import os
from dataclasses import dataclass, field
from typing import Optional
from dotenv import load_dotenv
from urllib.parse import quote_plus

load_dotenv()


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() == "true"


def _env_timeout() -> Optional[float]:
    raw = os.getenv("ENHANCEMENT_TIMEOUT", "")
    return float(raw) if raw else None


@dataclass
class TransportConfig:
    """
    HTTP transport used for enhancement calls only

    IMPORTANT: allow_insecure_tls disables certificate AND hostname
    verification. It exists for self-hosted enhancement servers with
    self-signed certificates and must be opted into explicitly.
    """
    allow_insecure_tls: bool = field(
        default_factory=lambda: _env_flag("ENHANCEMENT_ALLOW_INSECURE_TLS")
    )

    # None keeps the httpx default
    timeout: Optional[float] = field(default_factory=_env_timeout)

    user_agent: str = "page-enhancement-client"


@dataclass
class RedisConfig:
    """Redis configuration for the shared preference store"""
    host: str = field(default_factory=lambda: os.getenv("REDIS_HOST", "localhost"))
    port: int = field(default_factory=lambda: int(os.getenv("REDIS_PORT", "6379")))
    db: int = field(default_factory=lambda: int(os.getenv("REDIS_DB", "0")))
    password: Optional[str] = field(default_factory=lambda: os.getenv("REDIS_PASSWORD"))

    settings_key: str = "enhancement:preferences"
    channel_prefix: str = "enhancement:preferences:changed:"

    @property
    def url(self) -> str:
        if self.password:
            return f"redis://:{quote_plus(self.password)}@{self.host}:{self.port}/{self.db}"
        return f"redis://{self.host}:{self.port}/{self.db}"


@dataclass
class Config:
    """Main configuration class"""
    transport: TransportConfig = field(default_factory=TransportConfig)
    redis: RedisConfig = field(default_factory=RedisConfig)

    # "memory" or "redis"
    preference_backend: str = "memory"

    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Config":
        return cls(
            preference_backend=os.getenv("ENHANCEMENT_PREF_BACKEND", "memory").lower(),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )


# Global config instance
_config = None


def get_config() -> Config:
    """Get the global config instance"""
    global _config
    if _config is None:
        _config = Config.from_env()
    return _config

"""Configuration management for the MPD remote."""

import logging

from pydantic import BaseModel
from pydantic_settings import BaseSettings

from mpdremote.models import ServerEndpoint


class MPDConfig(BaseModel):
    """MPD server connection settings."""

    host: str = "localhost"
    port: int = 6600
    password: str = ""
    # Seconds allowed for connecting and reading the greeting
    timeout: float = 30.0

    def endpoint(self) -> ServerEndpoint:
        return ServerEndpoint(hostname=self.host, port=self.port, password=self.password)


class LoggingConfig(BaseModel):
    """Logging settings."""

    level: str = "WARNING"
    format: str = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    mpd: MPDConfig = MPDConfig()
    log: LoggingConfig = LoggingConfig()

    model_config = {
        "env_prefix": "MPDREMOTE_",
        "env_nested_delimiter": "__",
    }


def load_settings() -> Settings:
    """Load settings from environment variables.

    Environment variable examples:
        MPDREMOTE_MPD__HOST=musicbox.local
        MPDREMOTE_MPD__PASSWORD=secret
        MPDREMOTE_LOG__LEVEL=DEBUG
    """
    return Settings()


def configure_logging(config: LoggingConfig) -> None:
    """Configure the root logger. Only applications should call this."""
    logging.basicConfig(level=config.level.upper(), format=config.format)


# Default settings instance
settings = load_settings()

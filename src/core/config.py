"""
Engine configuration read from CHAT_* environment variables and a local .env file.
"""

import logging
from typing import Annotated, Optional

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from core.errors import ConfigError

DEFAULT_COMPLETIONS_PATH = "/api/v1/chat/completions"
DEFAULT_RECORDS_PATH = "/api/core/chat/getPaginationRecords"


class RevealConfig(BaseSettings):
    """
    Typing reveal constants, read from CHAT_REVEAL_* variables.

    tick_seconds: interval between reveal steps
    blink_seconds: interval of the cursor toggle
    step_thresholds: gaps above which the step grows to 2 and 3 characters,
        written as "100,200" in the environment
    """

    model_config = SettingsConfigDict(
        env_prefix="CHAT_REVEAL_",
        env_file=".env",
        extra="ignore",
        frozen=True,
    )

    tick_seconds: float = Field(default=0.05, gt=0)
    blink_seconds: float = Field(default=0.5, gt=0)
    step_thresholds: Annotated[tuple[int, int], NoDecode] = (100, 200)

    @field_validator("step_thresholds", mode="before")
    @classmethod
    def _split_thresholds(cls, value):
        if isinstance(value, str):
            return tuple(part.strip() for part in value.split(","))
        return value

    @field_validator("step_thresholds")
    @classmethod
    def _ordered_thresholds(cls, value: tuple[int, int]) -> tuple[int, int]:
        low, high = value
        if low < 0 or high < low:
            raise ValueError(f"invalid step thresholds: {value}")
        return value


class EngineConfig(BaseSettings):
    """Connection and timing settings, read from CHAT_* variables."""

    model_config = SettingsConfigDict(
        env_prefix="CHAT_",
        env_file=".env",
        extra="ignore",
        frozen=True,
    )

    base_url: str = "http://localhost:3000"
    api_key: str = ""
    app_id: str = ""
    share_id: str = ""
    out_link_uid: str = ""
    completions_path: str = DEFAULT_COMPLETIONS_PATH
    records_path: str = DEFAULT_RECORDS_PATH
    refresh_delay: float = Field(default=1.0, ge=0)
    log_level: str = "INFO"
    reveal: RevealConfig = Field(default_factory=RevealConfig)

    @field_validator("base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return value.upper()


def load_config(env_file: Optional[str] = ".env") -> EngineConfig:
    """
    Build an EngineConfig from the environment and env_file.

    Pass env_file=None to read the process environment only.
    """
    try:
        return EngineConfig(_env_file=env_file, reveal=RevealConfig(_env_file=env_file))
    except ValidationError as e:
        raise ConfigError(f"invalid configuration: {e}") from e


def configure_logging(level: str = "INFO", filename: Optional[str] = None) -> None:
    """Route engine logs to a file so they do not draw over the terminal UI."""
    handler: logging.Handler
    if filename:
        handler = logging.FileHandler(filename, encoding="utf-8")
    else:
        handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

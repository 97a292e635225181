"""Unified configuration via pydantic-settings."""

from pathlib import Path
from typing import Annotated

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class VcGotConfig(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="VCGOT_",
        env_file=".env",
        env_file_encoding="utf-8",
    )

    # Tool
    program: str = "got"
    diff_switches: Annotated[list[str], NoDecode] = []
    command_timeout: float = 30.0

    # Logging
    log_level: str = "INFO"
    log_dir: Path | None = None
    log_max_bytes: int = 10_485_760
    log_backup_count: int = 5

    @field_validator("program")
    @classmethod
    def validate_program(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("program must not be empty")
        return v

    @field_validator("diff_switches", mode="before")
    @classmethod
    def parse_diff_switches(cls, v: list[str] | str) -> list[str]:
        if isinstance(v, str):
            return [s.strip() for s in v.split(",") if s.strip()]
        return v

    @field_validator("command_timeout")
    @classmethod
    def validate_command_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("command_timeout must be positive")
        return v

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        return v.upper()

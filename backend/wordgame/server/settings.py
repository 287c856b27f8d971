"""Word game server configuration via environment variables."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from shared.validators import StringListEnvSettingsSource, parse_string_list

if TYPE_CHECKING:
    from pydantic_settings.sources.base import PydanticBaseSettingsSource


class WordGameServerSettings(BaseSettings):
    model_config = {"env_prefix": "WORDGAME_"}

    database_path: str = Field(default="backend/data/wordgame.db", min_length=1)
    log_dir: str | None = "backend/logs/wordgame"
    cors_origins: list[str] = ["http://localhost:3000"]

    lobby_api_url: str = Field(default="http://localhost:3000/api/lobbies", min_length=1)
    lobby_timeout_seconds: float = Field(default=5.0, gt=0)

    # Newline-separated word list; unset accepts any alphabetic word.
    dictionary_path: str | None = None

    tick_seconds: float = Field(default=1.0, gt=0)
    room_retention_seconds: int = Field(default=60 * 60 * 24, ge=60)
    reaper_interval_seconds: float = Field(default=300.0, gt=0)

    # Per connection. Players send a word every few seconds at most; the
    # burst leaves room for pings and reconnects.
    rate_limit_per_second: float = Field(default=10.0, gt=0)
    rate_limit_burst: int = Field(default=20, ge=1)
    max_decode_errors: int = Field(default=5, ge=1)

    @field_validator("cors_origins", mode="before")
    @classmethod
    def validate_cors_origins(cls, v: str | list[str]) -> list[str]:
        return parse_string_list(v)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return init_settings, StringListEnvSettingsSource(settings_cls), dotenv_settings, file_secret_settings

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ClientSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    api_url: str = Field(default="http://localhost:8000", validation_alias="QUIZDECK_API_URL")
    token_file: Path = Field(default=Path.home() / ".quizdeck" / "token", validation_alias="QUIZDECK_TOKEN_FILE")

    timeout_connect: float = Field(default=3.0, validation_alias="QUIZDECK_TIMEOUT_CONNECT")
    timeout_read: float = Field(default=15.0, validation_alias="QUIZDECK_TIMEOUT_READ")


def load_token(path: Path) -> str | None:
    try:
        token = path.read_text(encoding="utf-8").strip()
    except FileNotFoundError:
        return None
    return token or None


def save_token(path: Path, token: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(token, encoding="utf-8")
    path.chmod(0o600)


def clear_token(path: Path) -> None:
    path.unlink(missing_ok=True)

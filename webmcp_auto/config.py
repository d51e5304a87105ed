from __future__ import annotations

from typing import Mapping, Optional

from dotenv import load_dotenv
from pydantic import PositiveInt
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="WEBMCP_AUTO_", env_file=".env", extra="ignore")

    prefix: str = ""
    exclude: list[str] = []
    include: list[str] = []
    max_tools: PositiveInt = 50
    watch: bool = True
    debug: bool = True
    debounce_seconds: float = 1.0
    headless: bool = True
    manifest_version: str = "0.1.0"
    generated_by: str = "webmcp-auto"


def get_settings(**overrides) -> Settings:
    return Settings(**overrides)


def settings_from_script_attributes(attributes: Mapping[str, Optional[str]]) -> Optional[Settings]:
    """
    Build settings from the data-* attributes of the tag that embeds the instrumentor.

    Returns None when the tag opts out with data-auto="false".
    """

    if attributes.get("data-auto") == "false":
        return None

    overrides: dict = {}
    if attributes.get("data-prefix"):
        overrides["prefix"] = attributes["data-prefix"]
    if attributes.get("data-exclude"):
        overrides["exclude"] = [s.strip() for s in attributes["data-exclude"].split(",") if s.strip()]
    if attributes.get("data-max-tools"):
        overrides["max_tools"] = int(attributes["data-max-tools"])
    if attributes.get("data-debug") == "false":
        overrides["debug"] = False
    return get_settings(**overrides)


settings = get_settings()

"""Configuration helpers for SheetDB."""
from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional

from sheetdb.errors import SheetDBError

logger = logging.getLogger(__name__)


DEFAULT_SCOPES: List[str] = ["https://www.googleapis.com/auth/spreadsheets"]
DEFAULT_SPREADSHEET_ID = os.getenv("SHEETDB_SPREADSHEET_ID", "")
DEFAULT_CREDENTIALS_PATH = os.getenv("SHEETDB_CREDENTIALS_PATH", "credentials.json")
DEFAULT_TOKEN_PATH = os.getenv("SHEETDB_TOKEN_PATH", "token.json")
DEFAULT_AUTH_MODE = os.getenv("SHEETDB_AUTH_MODE", "oauth")
DEFAULT_VALUE_INPUT_OPTION = "RAW"
DEFAULT_MAX_RETRIES = 3

AUTH_MODES = ("oauth", "service_account")
VALUE_INPUT_OPTIONS = ("RAW", "USER_ENTERED")


@dataclass
class StoreSettings:
    spreadsheet_id: str = DEFAULT_SPREADSHEET_ID
    credential_path: str = DEFAULT_CREDENTIALS_PATH
    token_path: str = DEFAULT_TOKEN_PATH
    auth_mode: str = DEFAULT_AUTH_MODE
    scopes: List[str] = field(default_factory=lambda: list(DEFAULT_SCOPES))
    value_input_option: str = DEFAULT_VALUE_INPUT_OPTION
    max_retries: int = DEFAULT_MAX_RETRIES

    def to_json(self) -> Dict[str, object]:
        return {
            "spreadsheet_id": self.spreadsheet_id,
            "credential_path": self.credential_path,
            "token_path": self.token_path,
            "auth_mode": self.auth_mode,
            "scopes": list(self.scopes),
            "value_input_option": self.value_input_option,
            "max_retries": self.max_retries,
        }


def parse_spreadsheet_id(value: str) -> str:
    """Normalise a spreadsheet identifier from raw input or URL."""

    if not value:
        return ""
    value = value.strip()
    if "/spreadsheets/d/" in value:
        value = value.split("/spreadsheets/d/", 1)[1]
        value = value.split("/", 1)[0]
    if "?" in value:
        value = value.split("?", 1)[0]
    if "#" in value:
        value = value.split("#", 1)[0]
    return value


def _merge(data: Mapping[str, object]) -> StoreSettings:
    settings = StoreSettings()
    for key, value in data.items():
        if key == "scopes":
            if isinstance(value, list) and all(isinstance(item, str) for item in value) and value:
                settings.scopes = list(value)
        elif key == "max_retries":
            try:
                settings.max_retries = max(0, min(5, int(value)))  # type: ignore[arg-type]
            except (TypeError, ValueError):
                logger.warning("Ignoring invalid max_retries value %r", value)
        elif key == "auth_mode":
            if value in AUTH_MODES:
                settings.auth_mode = str(value)
            else:
                logger.warning("Unknown auth_mode %r, keeping %s", value, settings.auth_mode)
        elif key == "value_input_option":
            if value in VALUE_INPUT_OPTIONS:
                settings.value_input_option = str(value)
            else:
                logger.warning("Unknown value_input_option %r", value)
        elif key == "spreadsheet_id" and isinstance(value, str):
            settings.spreadsheet_id = parse_spreadsheet_id(value)
        elif key in ("credential_path", "token_path") and isinstance(value, str):
            setattr(settings, key, value)
    settings.spreadsheet_id = parse_spreadsheet_id(settings.spreadsheet_id)
    return settings


def load_settings(path: Optional[str] = None) -> StoreSettings:
    """Return settings from ``path`` merged over the environment defaults.

    A missing file simply yields the defaults; a file that is not valid JSON
    raises :class:`~sheetdb.errors.SheetDBError`.
    """

    if not path or not os.path.exists(path):
        return _merge({})
    with open(path, "r", encoding="utf-8") as handle:
        try:
            data = json.load(handle)
        except json.JSONDecodeError as exc:
            raise SheetDBError(f"Settings file {path} is not valid JSON: {exc.msg}") from exc
    if not isinstance(data, dict):
        logger.warning("Settings file %s does not contain an object", path)
        return _merge({})
    return _merge(data)


def save_settings(settings: StoreSettings, path: str) -> None:
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    with open(path, "w", encoding="utf-8") as handle:
        json.dump(settings.to_json(), handle, indent=2)


__all__ = [
    "AUTH_MODES",
    "DEFAULT_SCOPES",
    "StoreSettings",
    "load_settings",
    "parse_spreadsheet_id",
    "save_settings",
]

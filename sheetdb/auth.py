"""Credential loading for the Google Sheets grid client.

Two flows are supported:

``oauth``
    Installed-application flow.  A client secrets file (``credentials.json``)
    identifies the OAuth client; the authorised user token is cached in
    ``token.json`` and refreshed when it expires.  The browser based consent
    flow only runs when no usable token exists.

``service_account``
    A service account key file.  The payload is validated before it is handed
    to ``google.oauth2.service_account``.

Every failure is reported as :class:`sheetdb.errors.AuthError`.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Dict, Iterable, Mapping, Sequence

from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request
from google.oauth2 import service_account
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow

from sheetdb.errors import AuthError
from sheetdb.settings import StoreSettings

logger = logging.getLogger(__name__)

__all__ = [
    "REQUIRED_SERVICE_ACCOUNT_FIELDS",
    "load_credentials",
    "load_oauth_credentials",
    "load_service_account_credentials",
    "load_service_account_data",
]


REQUIRED_SERVICE_ACCOUNT_FIELDS: Iterable[str] = (
    "type",
    "project_id",
    "private_key_id",
    "private_key",
    "client_email",
    "client_id",
    "token_uri",
)


def _normalise_private_key(key: str) -> str:
    key = key.replace("\r\n", "\n").replace("\r", "\n")
    key = key.replace("\\n", "\n")
    if not key.endswith("\n"):
        key += "\n"
    return key


def _load_json(path: Path) -> Mapping[str, object]:
    try:
        with path.open("r", encoding="utf-8-sig") as handle:
            raw = handle.read()
    except OSError as exc:
        raise AuthError(f"Credentials file could not be read: {exc}") from exc

    payload_text = raw.lstrip("\ufeff").strip()
    if not payload_text:
        raise AuthError(f"Credentials file is empty: {path}")

    try:
        payload = json.loads(payload_text)
    except json.JSONDecodeError as exc:
        raise AuthError(f"Credentials file is not valid JSON: {exc.msg}") from exc
    if not isinstance(payload, dict):
        raise AuthError(f"Credentials file does not contain an object: {path}")
    return payload


def load_service_account_data(path: Path) -> Dict[str, object]:
    """Return validated service account data from ``path``."""

    data: Dict[str, object] = dict(_load_json(path))
    missing = []
    for name in REQUIRED_SERVICE_ACCOUNT_FIELDS:
        value = data.get(name)
        if not isinstance(value, str) or not value.strip():
            missing.append(name)
    if data.get("type") != "service_account":
        missing.append("type")
    if missing:
        ordered = ", ".join(sorted(dict.fromkeys(missing)))
        raise AuthError(f"Service account JSON missing fields: {ordered}")

    data["private_key"] = _normalise_private_key(str(data["private_key"]))
    return data


def load_service_account_credentials(path: Path, scopes: Sequence[str]):
    payload = load_service_account_data(path)
    try:
        return service_account.Credentials.from_service_account_info(payload, scopes=list(scopes))
    except (ValueError, GoogleAuthError) as exc:
        raise AuthError(str(exc)) from exc


def load_oauth_credentials(secret_path: Path, token_path: Path, scopes: Sequence[str]):
    """Return user credentials, running the consent flow when required."""

    credentials = None
    if token_path.exists():
        try:
            credentials = Credentials.from_authorized_user_file(str(token_path), list(scopes))
        except (ValueError, OSError) as exc:
            logger.warning("Ignoring unreadable token file %s: %s", token_path, exc)
            credentials = None

    if credentials and credentials.valid:
        return credentials

    try:
        if credentials and credentials.expired and credentials.refresh_token:
            logger.debug("Refreshing expired token from %s", token_path)
            credentials.refresh(Request())
        else:
            if not secret_path.exists():
                raise AuthError(f"Client secret file not found: {secret_path}")
            flow = InstalledAppFlow.from_client_secrets_file(str(secret_path), list(scopes))
            logger.info("Starting OAuth consent flow for %s", secret_path)
            credentials = flow.run_local_server(port=0)
    except GoogleAuthError as exc:
        raise AuthError(f"Authorisation failed: {exc}") from exc

    os.makedirs(token_path.parent, exist_ok=True)
    with token_path.open("w", encoding="utf-8") as handle:
        handle.write(credentials.to_json())
    logger.info("Token stored to %s", token_path)
    return credentials


def load_credentials(settings: StoreSettings):
    """Return Google credentials for ``settings.auth_mode``."""

    secret_path = Path(os.path.expanduser(settings.credential_path)).resolve()
    if settings.auth_mode == "service_account":
        if not secret_path.exists():
            raise AuthError(f"Credentials file not found: {secret_path}")
        return load_service_account_credentials(secret_path, settings.scopes)

    token_path = Path(os.path.expanduser(settings.token_path)).resolve()
    return load_oauth_credentials(secret_path, token_path, settings.scopes)

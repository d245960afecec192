from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

from .models import ClientConfig, Credentials

DEFAULT_TIMEOUT_SECONDS = 30.0


class MissingConfigError(ValueError):
    """Raised when a required CTMS setting is missing."""


@dataclass(frozen=True)
class EnvConfig:
    base_url: str
    credentials: Credentials
    client: ClientConfig


def load_env_config(*, use_dotenv: bool = True) -> EnvConfig:
    """Load CTMS connection settings from environment (optional .env)."""
    if use_dotenv:
        load_dotenv()

    base_url = os.getenv("CTMS_BASE_URL", "").strip()
    username = os.getenv("CTMS_USERNAME", "").strip()
    password = os.getenv("CTMS_PASSWORD", "")
    client_token = os.getenv("CTMS_CLIENT_TOKEN", "").strip()
    timeout_raw = os.getenv("CTMS_TIMEOUT_SECONDS", "").strip()

    missing = [
        name
        for name, value in (
            ("CTMS_BASE_URL", base_url),
            ("CTMS_USERNAME", username),
            ("CTMS_PASSWORD", password),
            ("CTMS_CLIENT_TOKEN", client_token),
        )
        if not value
    ]
    if missing:
        raise MissingConfigError(f"Missing {', '.join(missing)} in environment.")

    try:
        timeout = float(timeout_raw) if timeout_raw else DEFAULT_TIMEOUT_SECONDS
    except ValueError as exc:
        raise MissingConfigError(
            f"CTMS_TIMEOUT_SECONDS must be a number, got {timeout_raw!r}"
        ) from exc

    return EnvConfig(
        base_url=base_url.rstrip("/"),
        credentials=Credentials(username=username, password=password),
        client=ClientConfig(client_token=client_token, timeout_seconds=timeout),
    )


__all__ = ["EnvConfig", "MissingConfigError", "load_env_config"]

# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Configuration loader for the mailer settings file.

The settings file is JSON and holds the relay connection parameters and the
default sender address.

Example:
    Configuration file format (config.json)::

        {
            "smtp": {
                "server": "mail.example.com:587",
                "hello": "mail.example.com",
                "username": "robot",
                "password": "secret"
            },
            "from": "robot@example.com"
        }

    Loading it::

        config = load_mailer_config("/etc/relay-mailer/config.json")
        mailer = Mailer(config)

Environment variables:
    RELAY_MAILER_CONFIG: Path of the settings file when none is given
        explicitly (default: /etc/relay-mailer/config.json).
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import ValidationError

from .errors import ConfigurationError
from .logger import get_logger
from .models import MailerConfig

DEFAULT_CONFIG_PATH = "/etc/relay-mailer/config.json"
CONFIG_ENV_VAR = "RELAY_MAILER_CONFIG"

logger = get_logger("ConfigLoader")


def default_config_path() -> str:
    """Return the settings path from the environment, or the built-in default."""
    return os.getenv(CONFIG_ENV_VAR) or DEFAULT_CONFIG_PATH


def parse_mailer_config(raw: str | bytes) -> MailerConfig:
    """Validate a JSON document into a :class:`MailerConfig`.

    Raises:
        ConfigurationError: If the document is not valid JSON or a field is
            missing or invalid.
    """
    try:
        return MailerConfig.model_validate_json(raw)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid mailer configuration: {exc}") from exc


def load_mailer_config(config_path: str | None = None) -> MailerConfig:
    """Read and validate the mailer settings file.

    Args:
        config_path: Path of the JSON file; ``None`` uses
            :func:`default_config_path`.

    Returns:
        The validated, immutable configuration.

    Raises:
        FileNotFoundError: If the configuration file does not exist.
        ConfigurationError: If its content is invalid.
    """
    path = Path(config_path or default_config_path())
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    config = parse_mailer_config(path.read_bytes())
    logger.debug("Loaded mailer config from %s (relay %s)", path, config.smtp.server)
    return config

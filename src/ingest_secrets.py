"""
Ingest secret loading.

The secrets file is an untracked, operator-owned shell fragment such as

    export RTMP_INGEST="rtmp://live.example.com/app/<stream key>"

It is parsed, never executed, and the value is never logged.
"""

import os
import logging

from dotenv import dotenv_values

from errors import ConfigurationError
from models import SecretsConfig

logger = logging.getLogger(__name__)

INGEST_KEY = "RTMP_INGEST"


def load_secrets(path: str) -> SecretsConfig:
    """
    Load the remote ingest URL from a secrets file.

    Args:
        path: Location of the secrets file

    Returns:
        SecretsConfig holding the ingest URL as a SecretStr

    Raises:
        ConfigurationError: if the file is missing or does not define the URL
    """
    if not os.path.isfile(path):
        raise ConfigurationError(f"Secrets file not found: {path}")

    values = dotenv_values(path)
    ingest_url = values.get(INGEST_KEY)
    if not ingest_url:
        raise ConfigurationError(f"{INGEST_KEY} is not defined in {path}")

    logger.info(f"Loaded ingest endpoint from {path}")
    return SecretsConfig(ingest_url=ingest_url)

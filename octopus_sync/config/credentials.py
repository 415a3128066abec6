"""
Secrets for the remote API and the source database.

Values come from the process environment, optionally seeded from a .env
file:

    EMAIL_OCTOPUS_API_KEY=...
    DB_USER=...
    DB_PASSWORD=...
    DB_ADDR=db.internal
    DB_PORT=5432
    DB_NAME=school

Variables already set in the environment take precedence over the file.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import find_dotenv, load_dotenv

from octopus_sync.config.loader import ConfigError
from octopus_sync.storage.db import DEFAULT_PORT, build_conninfo

ENV_API_KEY = "EMAIL_OCTOPUS_API_KEY"
ENV_DB_USER = "DB_USER"
ENV_DB_PASSWORD = "DB_PASSWORD"
ENV_DB_ADDR = "DB_ADDR"
ENV_DB_PORT = "DB_PORT"
ENV_DB_NAME = "DB_NAME"

REQUIRED_VARS = (ENV_API_KEY, ENV_DB_USER, ENV_DB_PASSWORD, ENV_DB_ADDR, ENV_DB_NAME)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Credentials:
    """API key and database connection settings."""

    api_key: str
    db_user: str
    db_password: str
    db_host: str
    db_name: str
    db_port: int = DEFAULT_PORT

    @property
    def conninfo(self) -> str:
        """libpq connection string for the source database."""
        return build_conninfo(
            user=self.db_user,
            password=self.db_password,
            host=self.db_host,
            dbname=self.db_name,
            port=self.db_port,
        )

    def __repr__(self) -> str:
        return (
            f"Credentials(api_key='***', db_user={self.db_user!r}, "
            f"db_host={self.db_host!r}, db_port={self.db_port}, "
            f"db_name={self.db_name!r})"
        )


def load_credentials(
    env_file: Optional[Path | str] = None, require_database: bool = True
) -> Credentials:
    """
    Read credentials from the environment.

    Args:
        env_file: Optional .env file to load first. When None, python-dotenv
                  searches for a .env file from the working directory up.
        require_database: If False, only the API key is required and missing
                          database settings are left empty.

    Returns:
        Credentials

    Raises:
        ConfigError: If a required variable is missing or DB_PORT is invalid
    """
    if env_file is not None:
        path = Path(env_file).expanduser()
        if not path.exists():
            raise ConfigError(f"Environment file not found: {path}")
        load_dotenv(path, override=False)
        logger.debug(f"Loaded environment from {path}")
    else:
        load_dotenv(find_dotenv(usecwd=True), override=False)

    required = REQUIRED_VARS if require_database else (ENV_API_KEY,)
    missing = [name for name in required if not os.environ.get(name)]
    if missing:
        raise ConfigError(
            f"Missing required environment variables: {', '.join(missing)}"
        )

    port_value = os.environ.get(ENV_DB_PORT) or str(DEFAULT_PORT)
    try:
        port = int(port_value)
    except ValueError as e:
        raise ConfigError(f"{ENV_DB_PORT} must be an integer, got {port_value!r}") from e

    return Credentials(
        api_key=os.environ[ENV_API_KEY],
        db_user=os.environ.get(ENV_DB_USER, ""),
        db_password=os.environ.get(ENV_DB_PASSWORD, ""),
        db_host=os.environ.get(ENV_DB_ADDR, ""),
        db_name=os.environ.get(ENV_DB_NAME, ""),
        db_port=port,
    )

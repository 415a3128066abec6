"""
Configuration file generator for octopus-sync.

Generates a documented default options file and a sample mailing-list
mapping for `octopus-sync init-config`.
"""

import logging
from pathlib import Path

from octopus_sync.config.mail_config import MailConfig, MailListConfig

logger = logging.getLogger(__name__)


def generate_default_config() -> str:
    """
    Generate default YAML configuration with all options documented.

    Returns:
        String containing YAML configuration with comments
    """
    return """# octopus-sync Configuration
# ==========================
#
# Default options for octopus-sync. CLI arguments override these values.
# Secrets (API key, database credentials) are read from the environment
# or a .env file, never from this file.

# Logging Options
# ---------------

# Enable verbose output with detailed logging
# Default: false
# verbose: true

# Directory for log files
# Default: logs/ next to the installation
# log_dir: ~/.octopus-sync/logs

# Number of daily log files to keep (0 disables cleanup)
# Default: 10
# log_retention_count: 10


# Sync Behavior
# -------------

# Compute changes without applying them
# Default: false
# dry_run: false

# Mailing-list mapping file (relative paths resolve against the config dir)
# Default: mailconfig.json
# mail_config: mailconfig.json

# .env file with EMAIL_OCTOPUS_API_KEY and DB_* variables
# Default: search from the working directory upwards
# env_file: ~/.octopus-sync/.env


# Batch Execution
# ---------------

# Contacts per chunk; also the number of concurrent requests
# Default: 50
# chunk_size: 50

# Seconds to pause between chunks (remote rate limit)
# Default: 3.0
# chunk_delay: 3.0

# Attempts per contact before it is skipped
# Default: 3
# retry_attempts: 3

# Seconds to wait between attempts
# Default: 10.0
# retry_wait: 10.0


# Remote API
# ----------

# Contacts per page when reading a list (max 100)
# Default: 100
# page_size: 100

# Per-request timeout in seconds
# Default: 30
# request_timeout: 30

# API root
# Default: https://api.emailoctopus.com
# api_base_url: https://api.emailoctopus.com
"""


def generate_sample_mail_config() -> MailConfig:
    """Sample mapping showing the expected structure."""
    return MailConfig(
        lists=[
            MailListConfig(
                name="Lower School",
                list_id="00000000-0000-0000-0000-000000000001",
                grades=[0, 1, 2, 3, 4],
            ),
            MailListConfig(
                name="Upper School",
                list_id="00000000-0000-0000-0000-000000000002",
                grades=[5, 6, 7, 8],
            ),
        ]
    )


def save_config_file(path: Path, force: bool = False) -> bool:
    """
    Write the default options file.

    Args:
        path: Destination file
        force: Overwrite an existing file

    Returns:
        True if the file was written, False if it already existed

    Raises:
        OSError: If the file cannot be written
    """
    if path.exists() and not force:
        logger.debug(f"Configuration file already exists: {path}")
        return False

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(generate_default_config(), encoding="utf-8")
    logger.info(f"Wrote configuration file: {path}")
    return True


def save_sample_mail_config(path: Path, force: bool = False) -> bool:
    """
    Write the sample mailing-list mapping.

    Returns:
        True if the file was written, False if it already existed

    Raises:
        MailConfigError: If the file cannot be written
    """
    if path.exists() and not force:
        logger.debug(f"Mail configuration already exists: {path}")
        return False

    generate_sample_mail_config().save_to_file(path)
    logger.info(f"Wrote sample mail configuration: {path}")
    return True

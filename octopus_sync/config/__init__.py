"""
octopus_sync.config - Configuration management module

Contains the options file loader, the mailing-list mapping and the
environment credentials.
"""

from octopus_sync.config.credentials import Credentials, load_credentials
from octopus_sync.config.loader import ConfigError, ConfigLoader
from octopus_sync.config.mail_config import (
    MailConfig,
    MailConfigError,
    MailListConfig,
    load_mail_config,
)

__all__ = [
    "ConfigError",
    "ConfigLoader",
    "Credentials",
    "MailConfig",
    "MailConfigError",
    "MailListConfig",
    "load_credentials",
    "load_mail_config",
]

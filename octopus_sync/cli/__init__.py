"""CLI package for octopus_sync."""

from octopus_sync.cli.formatters import (
    show_detailed_changes,
    show_list_counts,
    show_mail_config,
    show_run_summary,
)
from octopus_sync.cli.main import (
    DEFAULT_CONFIG_FILE,
    cli,
    get_config_dir,
)

__all__ = [
    "DEFAULT_CONFIG_FILE",
    "cli",
    "get_config_dir",
    "show_detailed_changes",
    "show_list_counts",
    "show_mail_config",
    "show_run_summary",
]

"""
Mailing-list mapping configuration.

Describes which remote list is fed by which grade filter of the
source-of-truth query.

Configuration file format (mailconfig.json):

    [
        {"name": "Lower School", "id": "1f6b0c1e-...", "grades": [0, 1, 2, 3, 4]},
        {"name": "Grade 5", "id": "8a2d4f7c-...", "grades": [5]}
    ]

Notes:
    - Lists are processed in file order
    - Grades are the integer tags matched against the parents' grade array
    - Remote list ids must be unique
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from octopus_sync.config.loader import resolve_config_dir, resolve_config_path
from octopus_sync.utils import normalize_string

# Default mapping file name
DEFAULT_MAIL_CONFIG_FILE = "mailconfig.json"

logger = logging.getLogger(__name__)


class MailConfigError(Exception):
    """Raised when the mapping configuration cannot be loaded or is invalid."""

    pass


@dataclass
class MailListConfig:
    """
    One remote list and the grades that feed it.

    Attributes:
        name: Display name used in logs and on the command line
        list_id: Remote list identifier
        grades: Grade tags selecting the expected subscribers
    """

    name: str
    list_id: str
    grades: list[int] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any, index: int = 0) -> MailListConfig:
        """
        Create a MailListConfig from one entry of the JSON array.

        Raises:
            MailConfigError: If the entry is malformed
        """
        where = f"entry {index}"
        if not isinstance(data, dict):
            raise MailConfigError(
                f"{where} must be an object, got {type(data).__name__}"
            )

        name = data.get("name")
        if not isinstance(name, str) or not name.strip():
            raise MailConfigError(f"{where}: 'name' must be a non-empty string")

        list_id = data.get("id")
        if not isinstance(list_id, str) or not list_id.strip():
            raise MailConfigError(f"{where} ({name}): 'id' must be a non-empty string")

        grades = data.get("grades")
        if not isinstance(grades, list) or not grades:
            raise MailConfigError(
                f"{where} ({name}): 'grades' must be a non-empty list of integers"
            )
        for grade in grades:
            # bool is an int subclass but never a valid grade
            if isinstance(grade, bool) or not isinstance(grade, int):
                raise MailConfigError(
                    f"{where} ({name}): grade {grade!r} is not an integer"
                )

        return cls(name=name.strip(), list_id=list_id.strip(), grades=list(grades))

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "id": self.list_id, "grades": list(self.grades)}


@dataclass
class MailConfig:
    """
    Ordered collection of configured lists.

    Usage:
        config = MailConfig.load_from_file("mailconfig.json")
        for entry in config.select(["grade 5"]):
            ...
    """

    lists: list[MailListConfig] = field(default_factory=list)

    @classmethod
    def from_list(cls, data: Any) -> MailConfig:
        """
        Create a MailConfig from the parsed JSON array.

        Raises:
            MailConfigError: If the structure is invalid or ids repeat
        """
        if not isinstance(data, list):
            raise MailConfigError(
                f"Mail configuration must be a JSON array, got {type(data).__name__}"
            )

        lists = [MailListConfig.from_dict(item, i) for i, item in enumerate(data)]

        seen: set[str] = set()
        for entry in lists:
            if entry.list_id in seen:
                raise MailConfigError(f"Duplicate list id {entry.list_id!r}")
            seen.add(entry.list_id)

        return cls(lists=lists)

    def to_list(self) -> list[dict[str, Any]]:
        return [entry.to_dict() for entry in self.lists]

    def find(self, name_or_id: str) -> MailListConfig | None:
        """Find a list by remote id or by display name (case-insensitive)."""
        wanted = normalize_string(name_or_id)
        for entry in self.lists:
            if entry.list_id == name_or_id or normalize_string(entry.name) == wanted:
                return entry
        return None

    def select(self, names: list[str] | tuple[str, ...]) -> list[MailListConfig]:
        """
        Pick lists by name or id, keeping file order; empty selects all.

        Raises:
            MailConfigError: If a name matches no configured list
        """
        if not names:
            return list(self.lists)

        wanted = []
        for name in names:
            entry = self.find(name)
            if entry is None:
                raise MailConfigError(f"No configured list named {name!r}")
            wanted.append(entry)

        return [entry for entry in self.lists if entry in wanted]

    @classmethod
    def load_from_file(cls, path: Path | str) -> MailConfig:
        """
        Load the mapping from a JSON file.

        Raises:
            MailConfigError: If the file is missing, unreadable or invalid
        """
        path = Path(path)
        if not path.exists():
            raise MailConfigError(f"Mail configuration not found: {path}")

        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise MailConfigError(f"Invalid JSON in {path}: {e}") from e
        except OSError as e:
            raise MailConfigError(f"Failed to read {path}: {e}") from e

        config = cls.from_list(data)
        logger.debug(f"Loaded {len(config.lists)} lists from {path}")
        return config

    def save_to_file(self, path: Path | str) -> None:
        """
        Write the mapping as JSON.

        Raises:
            MailConfigError: If the file cannot be written
        """
        path = Path(path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "w", encoding="utf-8") as f:
                json.dump(self.to_list(), f, indent=2)
                f.write("\n")
        except OSError as e:
            raise MailConfigError(f"Failed to write {path}: {e}") from e

    def __len__(self) -> int:
        return len(self.lists)


def load_mail_config(
    path: Path | str | None = None, config_dir: Path | str | None = None
) -> MailConfig:
    """
    Load the mapping configuration.

    Args:
        path: Explicit mapping file. Relative paths resolve against config_dir.
        config_dir: Configuration directory (default ~/.octopus-sync)

    Returns:
        MailConfig

    Raises:
        MailConfigError: If the file is missing or invalid
    """
    target = resolve_config_path(
        path or DEFAULT_MAIL_CONFIG_FILE, resolve_config_dir(config_dir)
    )
    return MailConfig.load_from_file(target)

"""Core data types for migrator."""

from __future__ import annotations

import re
from dataclasses import dataclass
from os import PathLike

from .exceptions import VersionParseError

# Versions are stored in smallint columns.
SMALLINT_MIN = -32768
SMALLINT_MAX = 32767

MIGRATION_FILENAME = re.compile(r"(?:^|[/\\])v(\d+)_(\d+)_(\d+)\.sql$")


@dataclass(frozen=True, order=True)
class Version:
    """A schema revision: (major, minor, patch), ordered lexicographically.

    Example:
        >>> Version(2, 0, 0) > Version(1, 5, 5)
        True
        >>> str(Version.from_filename("sql/v2_10_3.sql"))
        '2.10.3'
    """

    major: int
    minor: int
    patch: int

    def __post_init__(self) -> None:
        for name in ("major", "minor", "patch"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise TypeError(f"Version {name} must be an int, got {value!r}")
            if not SMALLINT_MIN <= value <= SMALLINT_MAX:
                raise ValueError(
                    f"Version {name} {value} is outside the smallint range "
                    f"[{SMALLINT_MIN}, {SMALLINT_MAX}]"
                )

    @classmethod
    def zero(cls) -> "Version":
        """Version of a module that has never been migrated."""
        return cls(0, 0, 0)

    @classmethod
    def parse(cls, text: str) -> "Version":
        """Parse a dotted version string such as ``"1.2.3"``.

        Raises:
            ValueError: If the string is not three dot-separated integers.
        """
        parts = text.strip().split(".")
        if len(parts) != 3:
            raise ValueError(f"Expected major.minor.patch, got {text!r}")
        major, minor, patch = (int(part) for part in parts)
        return cls(major, minor, patch)

    @classmethod
    def from_filename(cls, filename: str | PathLike[str]) -> "Version":
        """Derive a version from a ``.../v<major>_<minor>_<patch>.sql`` filename.

        Args:
            filename: File name or path of a literal SQL migration.

        Returns:
            Version encoded in the filename.

        Raises:
            VersionParseError: If the name does not follow the convention
                or a component does not fit in a smallint.
        """
        name = str(filename)
        match = MIGRATION_FILENAME.search(name)
        if match is None:
            raise VersionParseError(name, "expected v<major>_<minor>_<patch>.sql")

        try:
            return cls(*(int(group) for group in match.groups()))
        except ValueError as e:
            raise VersionParseError(name, str(e)) from e

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"


@dataclass(frozen=True)
class ModuleVersion:
    """Recorded version of one module in the tracking table."""

    module: str
    version: Version

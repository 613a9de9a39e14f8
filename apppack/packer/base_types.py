"""Base types and error taxonomy for the packer.

This module contains fundamental definitions imported by the other packer
modules, preventing circular imports while centralizing the error hierarchy.
"""

from __future__ import annotations

import os
import stat
from dataclasses import dataclass
from typing import Optional


class PackError(Exception):
    """Base exception for packaging errors."""
    pass


class ConfigurationError(PackError):
    """Invalid configuration detected before any archive content is written."""
    pass


class EntryIOError(PackError):
    """I/O failure while reading or serializing a single entry."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class BuildError(PackError):
    """The external build command could not produce a binary."""
    pass


class SkipSubtree(Exception):
    """Signal that a directory subtree contributes nothing and is skipped.

    Only absorbed by the parent directory iteration, and only when the
    child raising it is itself a directory.
    """

    def __init__(self, path: str = ""):
        super().__init__(f"skip subtree: {path}")
        self.path = path


@dataclass(frozen=True)
class EntryInfo:
    """OS-level metadata for a filesystem entry."""
    name: str
    mode: int
    size: int
    mtime: float
    uid: int = 0
    gid: int = 0

    @classmethod
    def from_stat(cls, name: str, st: os.stat_result) -> 'EntryInfo':
        """Build metadata from an ``os.stat``/``os.lstat`` result."""
        return cls(
            name=name,
            mode=st.st_mode,
            size=st.st_size,
            mtime=st.st_mtime,
            uid=getattr(st, 'st_uid', 0),
            gid=getattr(st, 'st_gid', 0),
        )

    @property
    def is_dir(self) -> bool:
        return stat.S_ISDIR(self.mode)

    @property
    def is_symlink(self) -> bool:
        return stat.S_ISLNK(self.mode)

    @property
    def permissions(self) -> int:
        """Permission bits without the file type."""
        return stat.S_IMODE(self.mode)

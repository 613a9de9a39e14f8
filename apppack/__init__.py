"""
apppack - package an application tree into a single deployable archive.

Walks one or more include roots, applies prefix/suffix/regex exclusion and a
symlink policy, and writes the accepted entries into a tar.gz or zip file.
"""

from __future__ import annotations

__version__ = "1.0.0"

# Core engine exports
from .packer import (
    PackError,
    ConfigurationError,
    EntryIOError,
    BuildError,
    SkipSubtree,
    EntryInfo,
    ExclusionConfig,
    ExclusionPolicy,
    create_exclusion_policy,
    ArchiveWriter,
    TarGzWriter,
    ZipWriter,
    create_archive_writer,
    TreeWalker,
    ConfigManager,
    PackConfig,
    load_config,
    PackagingOrchestrator,
    PackResult,
    pack_directory,
)
from .project import is_packageable_project
from .build import BuildTarget, build_binary, resolve_build_target
from .cli import PackCLI

# High-level API for easier usage
from .library import AppPacker, pack_application

__all__ = [
    # High-level API (recommended for most users)
    "AppPacker",
    "PackConfig",
    "pack_application",

    # Engine
    "ExclusionConfig",
    "ExclusionPolicy",
    "create_exclusion_policy",
    "TreeWalker",
    "ArchiveWriter",
    "TarGzWriter",
    "ZipWriter",
    "create_archive_writer",
    "PackagingOrchestrator",
    "PackResult",
    "pack_directory",
    "ConfigManager",
    "load_config",

    # Collaborators
    "is_packageable_project",
    "BuildTarget",
    "build_binary",
    "resolve_build_target",
    "PackCLI",

    # Errors
    "PackError",
    "ConfigurationError",
    "EntryIOError",
    "BuildError",
    "SkipSubtree",
    "EntryInfo",
]

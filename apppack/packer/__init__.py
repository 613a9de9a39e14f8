"""
Packaging engine: exclusion policy, tree walker, archive writers and the
orchestrator that drives them.
"""

from __future__ import annotations

from .base_types import (
    PackError,
    ConfigurationError,
    EntryIOError,
    BuildError,
    SkipSubtree,
    EntryInfo,
)
from .exclusion import ExclusionConfig, ExclusionPolicy, create_exclusion_policy, split_list
from .archive_formats import (
    ArchiveWriter,
    TarGzWriter,
    ZipWriter,
    create_archive_writer,
    normalize_format,
)
from .walker import TreeWalker
from .config_manager import ConfigManager, PackConfig, load_config
from .orchestrator import PackagingOrchestrator, PackResult, pack_directory

__all__ = [
    "PackError",
    "ConfigurationError",
    "EntryIOError",
    "BuildError",
    "SkipSubtree",
    "EntryInfo",
    "ExclusionConfig",
    "ExclusionPolicy",
    "create_exclusion_policy",
    "split_list",
    "ArchiveWriter",
    "TarGzWriter",
    "ZipWriter",
    "create_archive_writer",
    "normalize_format",
    "TreeWalker",
    "ConfigManager",
    "PackConfig",
    "load_config",
    "PackagingOrchestrator",
    "PackResult",
    "pack_directory",
]

"""
Deterministic tree walker feeding accepted entries to an archive writer.

Performs a depth-first traversal of one include root:
- exclusion checks run before any I/O on a candidate
- children are visited in lexicographic name order
- effectively-empty directories are pruned without descending
- virtual paths are deduplicated through the writer's session set
"""

from __future__ import annotations

import logging
import os
from typing import List, Optional, Set, Tuple

from .archive_formats import ArchiveWriter
from .base_types import EntryInfo, EntryIOError, ConfigurationError, SkipSubtree
from .exclusion import ExclusionPolicy

logger = logging.getLogger(__name__)


class TreeWalker:
    """
    Walks include roots and hands every accepted file or symlink to a writer.

    The walker only receives the settings it needs: the writer sink, the
    exclusion policy, the output file path and the symlink/verbosity flags.
    """

    def __init__(
        self,
        writer: ArchiveWriter,
        policy: Optional[ExclusionPolicy] = None,
        output_path: Optional[str] = None,
        follow_symlinks: bool = False,
        skip_symlinks: bool = False,
        verbose: bool = False,
    ):
        if follow_symlinks and skip_symlinks:
            raise ConfigurationError("follow_symlinks and skip_symlinks are mutually exclusive")

        self.writer = writer
        self.policy = policy or ExclusionPolicy()
        self.output_path = os.path.abspath(output_path) if output_path else None
        self.follow_symlinks = follow_symlinks
        self.skip_symlinks = skip_symlinks
        self.verbose = verbose

        self.prefix = ''
        # (st_dev, st_ino) of directories on the current recursion stack
        self._active_dirs: Set[Tuple[int, int]] = set()

    def set_prefix(self, prefix: str):
        self.prefix = prefix

    def virtual_path(self, fpath: str) -> str:
        """Root-relative, slash-separated path used as archive name and dedup key."""
        name = fpath[len(self.prefix):]
        name = name.lstrip(os.sep)
        if os.altsep:
            name = name.lstrip(os.altsep)
        return name.replace(os.sep, '/')

    def walk_root(self, root: str) -> None:
        """Walk one include root, compressing every accepted entry.

        Raises ``ConfigurationError`` when the root does not exist and
        ``EntryIOError`` on the first unrecoverable I/O failure. Whatever was
        already written stays in the archive.
        """
        root = os.path.abspath(root)
        try:
            st = os.stat(root)
        except OSError as e:
            raise ConfigurationError(f"Include root does not exist: {root}") from e

        # a single-file root is stored under its basename
        info = EntryInfo.from_stat(os.path.basename(root), st)
        self.set_prefix(root if info.is_dir else os.path.dirname(root))

        self._active_dirs.clear()
        self._iterate(root, info)

    def _iterate(self, fpath: str, info: EntryInfo) -> None:
        if self.follow_symlinks and info.is_symlink:
            try:
                st = os.stat(fpath)
            except FileNotFoundError:
                # dangling link
                return
            except OSError as e:
                raise EntryIOError(f"Cannot resolve symlink {fpath}: {e}", fpath) from e
            info = EntryInfo.from_stat(info.name, st)

        rel_path = self.virtual_path(fpath)

        if rel_path:
            if self.policy.is_excluded_name(info.name):
                return
            if self.policy.is_excluded_path(rel_path):
                return

        self._visit(fpath, info)

        if not info.is_dir:
            return

        if rel_path and self.is_empty(fpath):
            raise SkipSubtree(fpath)

        dir_key = self._dir_key(fpath)
        if dir_key in self._active_dirs:
            logger.warning(f"Symlink cycle detected, not descending into {fpath}")
            return

        self._active_dirs.add(dir_key)
        try:
            for child_path, child_info in self._read_dir(fpath):
                try:
                    self._iterate(child_path, child_info)
                except SkipSubtree:
                    if not child_info.is_dir and not self._resolves_to_dir(child_path, child_info):
                        raise
        finally:
            self._active_dirs.discard(dir_key)

    def _visit(self, fpath: str, info: EntryInfo) -> None:
        """Leaf visit: compress files and symlinks not yet in the archive."""
        if self.output_path and fpath == self.output_path:
            return

        if info.is_dir:
            return

        if self.skip_symlinks and info.is_symlink:
            return

        name = self.virtual_path(fpath)

        if self.writer.is_written(name):
            return

        if self.writer.compress(name, fpath, info):
            if self.verbose:
                logger.info(f"\tcompressed\t {name}")
            self.writer.mark_written(name)

    def is_empty(self, fpath: str, _visiting: Optional[Set[Tuple[int, int]]] = None) -> bool:
        """True if no immediate child survives exclusion and symlink rules.

        Subdirectories are checked recursively.
        """
        visiting = set(self._active_dirs) if _visiting is None else _visiting
        visiting.add(self._dir_key(fpath))

        for child_path, child_info in self._read_dir(fpath):
            if self.policy.is_excluded_path(self.virtual_path(child_path)):
                continue
            if self.policy.is_excluded_name(child_info.name):
                continue
            if self.output_path and child_path == self.output_path:
                continue

            if child_info.is_symlink:
                if self.skip_symlinks:
                    continue
                if self.follow_symlinks:
                    try:
                        child_info = EntryInfo.from_stat(child_info.name, os.stat(child_path))
                    except FileNotFoundError:
                        continue
                    except OSError as e:
                        raise EntryIOError(f"Cannot resolve symlink {child_path}: {e}", child_path) from e
                    if child_info.is_dir and self._dir_key(child_path) in visiting:
                        continue

            if child_info.is_dir and self.is_empty(child_path, visiting):
                continue
            return False
        return True

    def _read_dir(self, dirname: str) -> List[Tuple[str, EntryInfo]]:
        """List immediate children (lstat metadata), sorted by name."""
        try:
            with os.scandir(dirname) as it:
                entries = [
                    (entry.path, EntryInfo.from_stat(entry.name, entry.stat(follow_symlinks=False)))
                    for entry in it
                ]
        except OSError as e:
            raise EntryIOError(f"Cannot read directory {dirname}: {e}", dirname) from e

        entries.sort(key=lambda item: item[1].name)
        return entries

    def _resolves_to_dir(self, fpath: str, info: EntryInfo) -> bool:
        return self.follow_symlinks and info.is_symlink and os.path.isdir(fpath)

    def _dir_key(self, fpath: str) -> Tuple[int, int]:
        try:
            st = os.stat(fpath)
        except OSError as e:
            raise EntryIOError(f"Cannot stat directory {fpath}: {e}", fpath) from e
        return (st.st_dev, st.st_ino)

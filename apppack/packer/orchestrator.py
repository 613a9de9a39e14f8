"""
Packaging orchestrator.

Owns the output archive file for the whole operation, selects the archive
back end and drives one walker pass per include root against a single
shared writer session, so that several roots merge into one archive
without duplicate entries.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import BinaryIO, List, Optional, Sequence

from .archive_formats import ArchiveWriter, create_archive_writer, normalize_format
from .base_types import ConfigurationError, EntryIOError
from .config_manager import PackConfig
from .exclusion import ExclusionPolicy, create_exclusion_policy
from .walker import TreeWalker

logger = logging.getLogger(__name__)


@dataclass
class PackResult:
    """Summary of one packaging run."""
    output_path: str
    archive_format: str
    roots: List[str] = field(default_factory=list)
    entries: List[str] = field(default_factory=list)

    @property
    def entry_count(self) -> int:
        return len(self.entries)


class PackagingOrchestrator:
    """
    Coordinates walker passes over include roots into one archive.

    The writer is finalized and the output file closed on every exit path;
    a failed pass still propagates its error after cleanup, and the partial
    archive must then be treated as invalid.
    """

    def __init__(
        self,
        output_path: str,
        archive_format: str = "tar.gz",
        policy: Optional[ExclusionPolicy] = None,
        follow_symlinks: bool = False,
        skip_symlinks: bool = False,
        verbose: bool = False,
    ):
        if follow_symlinks and skip_symlinks:
            raise ConfigurationError("follow_symlinks and skip_symlinks are mutually exclusive")

        self.output_path = os.path.abspath(output_path)
        self.archive_format = normalize_format(archive_format)
        self.policy = policy or ExclusionPolicy()
        self.follow_symlinks = follow_symlinks
        self.skip_symlinks = skip_symlinks
        self.verbose = verbose

    @classmethod
    def from_config(cls, config: PackConfig, output_path: str) -> 'PackagingOrchestrator':
        """Create an orchestrator from a full packaging configuration."""
        config.validate()
        policy = create_exclusion_policy(
            prefixes=config.exclude_prefix,
            suffixes=config.exclude_suffix,
            regexps=config.exclude_regexp,
        )
        return cls(
            output_path=output_path,
            archive_format=config.format,
            policy=policy,
            follow_symlinks=config.follow_symlinks,
            skip_symlinks=config.skip_symlinks,
            verbose=config.verbose,
        )

    def _log_rules(self):
        logger.info(f"Excluding relpath prefix: {':'.join(self.policy.prefixes)}")
        logger.info(f"Excluding relpath suffix: {':'.join(self.policy.suffixes)}")
        if self.policy.regex_patterns:
            patterns = "`, `".join(self.policy.regex_patterns)
            logger.info(f"Excluding filename regex: `{patterns}`")

    def _check_roots(self, include_roots: Sequence[str]) -> List[str]:
        roots = []
        for root in include_roots:
            root = os.path.abspath(root)
            if not os.path.exists(root):
                raise ConfigurationError(f"Include root does not exist: {root}")
            roots.append(root)
        return roots

    def _open_writer(self, output: BinaryIO) -> ArchiveWriter:
        try:
            return create_archive_writer(self.archive_format, output)
        except OSError as e:
            raise EntryIOError(f"Cannot start {self.archive_format} archive {self.output_path}: {e}",
                               self.output_path) from e

    def _close_output(self, output: BinaryIO, report_errors: bool) -> None:
        """Close the output file; only a clean run reports a close failure."""
        try:
            output.close()
        except OSError as e:
            if report_errors:
                raise EntryIOError(f"Cannot close output file {self.output_path}: {e}",
                                   self.output_path) from e
            logger.warning(f"Cannot close output file after earlier failure: {e}")

    def pack(self, include_roots: Sequence[str]) -> PackResult:
        """Package every include root, in order, into the output archive."""
        roots = self._check_roots(include_roots)
        self._log_rules()

        try:
            output = open(self.output_path, 'wb')
        except OSError as e:
            raise ConfigurationError(f"Cannot create output file {self.output_path}: {e}") from e

        completed = False
        try:
            with self._open_writer(output) as writer:
                walker = TreeWalker(
                    writer,
                    policy=self.policy,
                    output_path=self.output_path,
                    follow_symlinks=self.follow_symlinks,
                    skip_symlinks=self.skip_symlinks,
                    verbose=self.verbose,
                )
                for root in roots:
                    logger.debug(f"Walking include root: {root}")
                    walker.walk_root(root)

                entries = writer.entry_names
            completed = True
        finally:
            self._close_output(output, report_errors=completed)

        return PackResult(
            output_path=self.output_path,
            archive_format=self.archive_format,
            roots=roots,
            entries=entries,
        )


def pack_directory(
    output_path: str,
    include_roots: Sequence[str],
    archive_format: str = "tar.gz",
    policy: Optional[ExclusionPolicy] = None,
    follow_symlinks: bool = False,
    skip_symlinks: bool = False,
    verbose: bool = False,
) -> PackResult:
    """Convenience function packaging ``include_roots`` into ``output_path``."""
    orchestrator = PackagingOrchestrator(
        output_path,
        archive_format=archive_format,
        policy=policy,
        follow_symlinks=follow_symlinks,
        skip_symlinks=skip_symlinks,
        verbose=verbose,
    )
    return orchestrator.pack(include_roots)

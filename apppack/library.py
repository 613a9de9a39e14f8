"""
apppack main library interface.

Provides a minimal API for turning an application directory, plus an
optionally pre-built binary, into one deployable tar.gz or zip archive.
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import List, Optional, Union

from .build import build_binary, resolve_build_target
from .packer.archive_formats import normalize_format
from .packer.base_types import ConfigurationError
from .packer.config_manager import PackConfig
from .packer.orchestrator import PackagingOrchestrator, PackResult
from .project import is_packageable_project

logger = logging.getLogger(__name__)

TEMP_DIR_PREFIX = "apppack-"


class AppPacker:
    """
    Main interface for application packaging.

    Resolves paths, runs the project check and the optional build, then
    hands the include roots to the packaging orchestrator.
    """

    def __init__(self, config: Optional[PackConfig] = None, cwd: Optional[Union[str, Path]] = None):
        """
        Initialize the packer.

        Args:
            config: Packaging configuration (defaults if None)
            cwd: Directory relative paths are resolved against (process cwd if None)
        """
        self.config = config or PackConfig()
        self.cwd = Path(cwd) if cwd is not None else Path.cwd()

    def resolve_app_path(self) -> Path:
        app_path = Path(self.config.app_path or ".")
        if not app_path.is_absolute():
            app_path = self.cwd / app_path
        app_path = Path(os.path.abspath(app_path))

        if not app_path.is_dir():
            raise ConfigurationError(f"App path does not exist: {app_path}")
        return app_path

    def resolve_output_path(self, app_name: str) -> Path:
        """Create the output directory if needed and return the archive path."""
        output_dir = Path(self.config.output_dir or ".")
        if not output_dir.is_absolute():
            output_dir = self.cwd / output_dir
        output_dir = Path(os.path.abspath(output_dir))

        try:
            output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ConfigurationError(f"Cannot create output directory {output_dir}: {e}") from e

        return output_dir / f"{app_name}.{normalize_format(self.config.format)}"

    def package(self) -> PackResult:
        """
        Package the configured application.

        Returns:
            PackResult describing the written archive

        Raises:
            ConfigurationError: invalid paths, flags, regexes or project
            BuildError: the build command failed
            EntryIOError: an entry could not be read or written
        """
        config = self.config
        config.validate()

        app_path = self.resolve_app_path()
        if config.check_project and not is_packageable_project(app_path, config.project_signature):
            raise ConfigurationError(f"Not a packageable project: {app_path}")

        logger.info(f"Packaging application: {app_path}")
        app_name = app_path.name
        output_path = self.resolve_output_path(app_name)

        # compiles regexes, so bad patterns fail before the build runs
        orchestrator = PackagingOrchestrator.from_config(config, str(output_path))

        build_dir: Optional[Path] = None
        try:
            include_roots: List[str] = []
            if config.build:
                build_dir = Path(tempfile.mkdtemp(prefix=TEMP_DIR_PREFIX))
                self._build(app_path, build_dir, app_name)
                include_roots.append(str(build_dir))
            include_roots.append(str(app_path))

            result = orchestrator.pack(include_roots)
        finally:
            if build_dir is not None:
                shutil.rmtree(build_dir, ignore_errors=True)

        logger.info(f"Writing to output: `{result.output_path}`")
        return result

    def _build(self, app_path: Path, build_dir: Path, app_name: str) -> Path:
        logger.info("Building application...")
        target, extra_env = resolve_build_target(self.config.build_envs)
        binary = build_binary(
            app_path,
            build_dir,
            app_name,
            target,
            build_args=self.config.build_args,
            extra_env=extra_env,
            verbose=self.config.verbose,
        )
        logger.info("Build successful")
        return binary


def pack_application(config: PackConfig, cwd: Optional[Union[str, Path]] = None) -> PackResult:
    """Convenience function to package an application."""
    return AppPacker(config, cwd=cwd).package()

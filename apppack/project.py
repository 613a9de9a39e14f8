"""Project signature check run before packaging."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Union

from .packer.base_types import ConfigurationError
from .packer.config_manager import DEFAULT_PROJECT_SIGNATURE

logger = logging.getLogger(__name__)

SOURCE_SUFFIX = ".go"


def is_packageable_project(
    app_path: Union[str, Path],
    signature: str = DEFAULT_PROJECT_SIGNATURE,
) -> bool:
    """
    Check whether ``app_path`` looks like a buildable application.

    Scans the immediate source files of the directory and returns True as
    soon as one of them matches ``signature``. Unreadable files are skipped.
    """
    try:
        regex = re.compile(signature)
    except re.error as e:
        raise ConfigurationError(f"Invalid project signature `{signature}`: {e}") from e

    app_path = Path(app_path)
    for file_path in sorted(app_path.iterdir()):
        if file_path.is_dir() or file_path.suffix != SOURCE_SUFFIX:
            continue
        try:
            content = file_path.read_text(encoding='utf-8', errors='ignore')
        except OSError:
            logger.debug(f"Skipping unreadable source file {file_path}")
            continue
        if regex.search(content):
            return True
    return False

"""
Platform binary build for packaging.

Runs ``go build`` for the selected target OS/architecture into a directory
that is then packaged as an additional include root. Target variables are
passed through the child environment only.
"""

from __future__ import annotations

import logging
import os
import platform
import subprocess
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from .packer.base_types import BuildError

logger = logging.getLogger(__name__)

GO_BINARY = "go"

_OS_NAMES = {
    'linux': 'linux',
    'darwin': 'darwin',
    'win32': 'windows',
    'cygwin': 'windows',
    'freebsd': 'freebsd',
}

_ARCH_NAMES = {
    'x86_64': 'amd64',
    'amd64': 'amd64',
    'i386': '386',
    'i686': '386',
    'x86': '386',
    'aarch64': 'arm64',
    'arm64': 'arm64',
    'armv7l': 'arm',
    'armv6l': 'arm',
}


@dataclass(frozen=True)
class BuildTarget:
    """Target operating system and architecture for the build."""
    goos: str
    goarch: str

    @property
    def binary_suffix(self) -> str:
        return ".exe" if self.goos == "windows" else ""


def host_goos() -> str:
    for prefix, name in _OS_NAMES.items():
        if sys.platform.startswith(prefix):
            return name
    return sys.platform


def host_goarch() -> str:
    machine = platform.machine().lower()
    return _ARCH_NAMES.get(machine, machine)


def resolve_build_target(
    build_envs: Sequence[str] = (),
    environ: Optional[Mapping[str, str]] = None,
) -> Tuple[BuildTarget, Dict[str, str]]:
    """
    Work out the build target and extra environment variables.

    GOOS/GOARCH default to ``environ`` and then the host platform;
    ``GOOS=``/``GOARCH=`` entries in ``build_envs`` override them. Other
    ``KEY=VALUE`` entries are returned as extra environment. Entries with a
    blank key or value are ignored.
    """
    environ = os.environ if environ is None else environ
    goos = environ.get("GOOS") or host_goos()
    goarch = environ.get("GOARCH") or host_goarch()

    extra: Dict[str, str] = {}
    for env in build_envs:
        parts = env.split("=", 1)
        if len(parts) != 2:
            continue
        key, value = parts[0].strip(), parts[1].strip()
        if not key or not value:
            continue
        if key == "GOOS":
            goos = value
        elif key == "GOARCH":
            goarch = value
        else:
            extra[key] = value

    return BuildTarget(goos=goos, goarch=goarch), extra


def build_command(binary_path: Path, build_args: str = "") -> List[str]:
    args = [GO_BINARY, "build", "-o", str(binary_path)]
    if build_args:
        args.extend(build_args.split())
    return args


def build_binary(
    app_path: Path,
    output_dir: Path,
    app_name: str,
    target: BuildTarget,
    build_args: str = "",
    extra_env: Optional[Mapping[str, str]] = None,
    verbose: bool = False,
) -> Path:
    """Build the application binary into ``output_dir`` and return its path."""
    binary_path = Path(output_dir) / f"{app_name}{target.binary_suffix}"
    cmd = build_command(binary_path, build_args)

    env = dict(os.environ)
    env.update(extra_env or {})
    env["GOOS"] = target.goos
    env["GOARCH"] = target.goarch

    logger.info(f"Env: GOOS={target.goos} GOARCH={target.goarch}")
    if verbose:
        logger.info(f"\t+ {' '.join(cmd)}")

    try:
        result = subprocess.run(cmd, cwd=str(app_path), env=env)
    except (subprocess.SubprocessError, FileNotFoundError) as e:
        raise BuildError(f"Build command failed to start: {e}") from e

    if result.returncode != 0:
        raise BuildError(f"Build failed with exit status {result.returncode}")

    return binary_path

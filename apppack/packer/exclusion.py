"""
Path-based exclusion rules for application packaging.

Three independent rule lists decide whether an entry is skipped:
- prefix list, checked against the virtual (archive) path
- suffix list, checked against the virtual path
- regular expressions, checked against the bare basename

A path is excluded as soon as any rule in any list matches. The checks are
pure string functions and never touch the filesystem.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Union

from .base_types import ConfigurationError


DEFAULT_EXCLUDE_PREFIXES = [
    '.',            # dotfiles and dot-directories (.git, .idea, ...)
]

DEFAULT_EXCLUDE_SUFFIXES = [
    '.go',
    '.DS_Store',
    '.tmp',
]

LIST_SEPARATOR = ':'


def split_list(value: Union[str, Iterable[str], None], separator: str = LIST_SEPARATOR) -> List[str]:
    """Split a ``:``-separated option into its non-empty parts.

    Lists are accepted as well so that config files may use either form.
    """
    if value is None:
        return []
    if isinstance(value, str):
        parts = value.split(separator)
    else:
        parts = []
        for item in value:
            parts.extend(str(item).split(separator))
    return [part for part in parts if part]


@dataclass
class ExclusionConfig:
    """Configuration for path-based exclusion."""
    prefixes: List[str] = field(default_factory=lambda: list(DEFAULT_EXCLUDE_PREFIXES))
    suffixes: List[str] = field(default_factory=lambda: list(DEFAULT_EXCLUDE_SUFFIXES))
    regexps: List[str] = field(default_factory=list)


class ExclusionPolicy:
    """
    Decides from path strings alone whether an entry is skipped.

    Regexes are compiled once at construction; a malformed pattern is a
    configuration error raised before any archive content is written.
    """

    def __init__(self, config: Optional[ExclusionConfig] = None):
        self.config = config or ExclusionConfig()
        self.prefixes = [p for p in self.config.prefixes if p]
        self.suffixes = [s for s in self.config.suffixes if s]
        self._regexes: List[re.Pattern] = []

        self._compile_patterns()

    def _compile_patterns(self):
        """Compile all name regexes."""
        for pattern in self.config.regexps:
            if not pattern:
                continue
            try:
                self._regexes.append(re.compile(pattern))
            except re.error as e:
                raise ConfigurationError(f"Invalid exclude regexp `{pattern}`: {e}") from e

    @property
    def regex_patterns(self) -> List[str]:
        return [r.pattern for r in self._regexes]

    def is_excluded_path(self, virtual_path: str) -> bool:
        """True if the virtual path is empty or matches a prefix/suffix rule."""
        if not virtual_path:
            return True

        for prefix in self.prefixes:
            if virtual_path.startswith(prefix):
                return True
        for suffix in self.suffixes:
            if virtual_path.endswith(suffix):
                return True
        return False

    def is_excluded_name(self, name: str) -> bool:
        """True if the basename matches any configured regex."""
        # search, not match: an unanchored pattern hits anywhere in the name
        return any(regex.search(name) for regex in self._regexes)

    def get_stats(self):
        """Summary of the active rules."""
        return {
            'exclude_prefixes': list(self.prefixes),
            'exclude_suffixes': list(self.suffixes),
            'exclude_regexps': self.regex_patterns,
        }


def create_exclusion_policy(
    prefixes: Union[str, Iterable[str], None] = None,
    suffixes: Union[str, Iterable[str], None] = None,
    regexps: Optional[Iterable[str]] = None,
) -> ExclusionPolicy:
    """Create an exclusion policy, falling back to defaults for unset lists.

    ``None`` means "use the default"; an empty string or list disables the
    corresponding rule list.
    """
    config = ExclusionConfig(
        prefixes=list(DEFAULT_EXCLUDE_PREFIXES) if prefixes is None else split_list(prefixes),
        suffixes=list(DEFAULT_EXCLUDE_SUFFIXES) if suffixes is None else split_list(suffixes),
        regexps=[r for r in (regexps or []) if r],
    )
    return ExclusionPolicy(config)

"""
apppack CLI interface.

Compresses an application project into a single deployable file:
- optional platform build bundled alongside the sources
- tar.gz (default) or zip output
- prefix/suffix/regex exclusion rules
- symlink policy: store, follow (-fs) or skip (-ss)
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from ..library import AppPacker
from ..packer.base_types import PackError
from ..packer.config_manager import ConfigManager, PackConfig, parse_bool
from ..packer.exclusion import split_list

EXIT_OK = 0
EXIT_FAILURE = 2


def _parse_bool(value: str) -> bool:
    try:
        return parse_bool(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from e


class PackCLI:
    """
    Command-line interface for application packaging.

    Explicit flags override the config file, which overrides defaults.
    """

    def __init__(self):
        self.config: Optional[PackConfig] = None

    def create_parser(self) -> argparse.ArgumentParser:
        """Create command-line argument parser."""
        parser = argparse.ArgumentParser(
            prog='apppack',
            description='Compress an application project into a single file for deployment'
        )

        parser.add_argument(
            '-p', '--app-path',
            dest='app_path',
            help='App path (default: current path)'
        )

        parser.add_argument(
            '-c', '--config',
            type=Path,
            help='Configuration file path (JSON, or YAML with .yaml/.yml suffix)'
        )

        # Build options
        parser.add_argument(
            '-b', '--build',
            dest='build',
            type=_parse_bool,
            nargs='?',
            const=True,
            help='Build the platform binary (default: true)'
        )

        parser.add_argument(
            '--no-build',
            dest='build',
            action='store_false',
            help='Do not build; package sources only'
        )

        parser.add_argument(
            '-ba', '--build-args',
            dest='build_args',
            help='Additional args of go build'
        )

        parser.add_argument(
            '-be', '--build-env',
            dest='build_envs',
            action='append',
            help='Additional ENV variable of go build, e.g. GOARCH=arm (repeatable)'
        )

        # Output options
        parser.add_argument(
            '-o', '--output-dir',
            dest='output_dir',
            help='Compressed file output dir (default: current path)'
        )

        parser.add_argument(
            '-f', '--format',
            dest='format',
            help='Archive format: tar.gz or zip (default: tar.gz)'
        )

        # Exclusion options
        parser.add_argument(
            '-exp', '--exclude-prefix',
            dest='exclude_prefix',
            help='Relpath exclude prefixes, ":" separated (default: .)'
        )

        parser.add_argument(
            '-exs', '--exclude-suffix',
            dest='exclude_suffix',
            help='Relpath exclude suffixes, ":" separated (default: .go:.DS_Store:.tmp)'
        )

        parser.add_argument(
            '-exr', '--exclude-regexp',
            dest='exclude_regexp',
            action='append',
            help='File/directory name exclude regexp (repeatable)'
        )

        # Symlink policy
        symlinks = parser.add_mutually_exclusive_group()
        symlinks.add_argument(
            '-fs', '--follow-symlinks',
            dest='follow_symlinks',
            action='store_true',
            default=None,
            help='Follow symlinks and store the target content'
        )
        symlinks.add_argument(
            '-ss', '--skip-symlinks',
            dest='skip_symlinks',
            action='store_true',
            default=None,
            help='Skip symlinks (default: store the symlink itself)'
        )

        parser.add_argument(
            '--skip-check',
            dest='check_project',
            action='store_false',
            default=None,
            help='Do not check the project signature before packaging'
        )

        parser.add_argument(
            '-v', '--verbose',
            action='store_true',
            default=None,
            help='Print every compressed entry'
        )

        parser.add_argument(
            '--debug',
            action='store_true',
            help='Enable debug logging'
        )

        return parser

    def configure_logging(self, debug: bool = False) -> None:
        logging.basicConfig(
            level=logging.DEBUG if debug else logging.INFO,
            format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

    def load_config(self, args: argparse.Namespace, cwd: Path) -> PackConfig:
        """Load the config file for the app path, then apply explicit flags."""
        app_dir = Path(args.app_path) if args.app_path else cwd
        if not app_dir.is_absolute():
            app_dir = cwd / app_dir

        config = ConfigManager(app_dir).load_config(args.config)

        overrides = {
            'app_path': args.app_path,
            'output_dir': args.output_dir,
            'format': args.format,
            'build': args.build,
            'build_args': args.build_args,
            'follow_symlinks': args.follow_symlinks,
            'skip_symlinks': args.skip_symlinks,
            'check_project': args.check_project,
            'verbose': args.verbose,
        }
        for key, value in overrides.items():
            if value is not None:
                setattr(config, key, value)

        # an explicit symlink mode replaces the other one from the config file
        if args.follow_symlinks:
            config.skip_symlinks = False
        if args.skip_symlinks:
            config.follow_symlinks = False

        if args.exclude_prefix is not None:
            config.exclude_prefix = split_list(args.exclude_prefix)
        if args.exclude_suffix is not None:
            config.exclude_suffix = split_list(args.exclude_suffix)
        if args.exclude_regexp:
            config.exclude_regexp = list(args.exclude_regexp)
        if args.build_envs:
            config.build_envs = list(args.build_envs)

        return config

    def run(self, args: Optional[List[str]] = None, cwd: Optional[Path] = None) -> int:
        """Run the CLI with the given arguments."""
        parser = self.create_parser()
        parsed_args = parser.parse_args(args)
        cwd = Path(cwd) if cwd is not None else Path.cwd()

        self.configure_logging(parsed_args.debug)

        try:
            config = self.load_config(parsed_args, cwd)
            self.config = config

            result = AppPacker(config, cwd=cwd).package()

            print(f"Pack written to {result.output_path} ({result.entry_count} entries)")
            return EXIT_OK

        except PackError as e:
            print(f"Error: {e}", file=sys.stderr)
            if parsed_args.debug:
                import traceback
                traceback.print_exc()
            return EXIT_FAILURE


def create_cli() -> PackCLI:
    """Create CLI instance."""
    return PackCLI()


def main() -> int:
    """Main entry point for CLI."""
    cli = create_cli()
    return cli.run()


if __name__ == '__main__':
    sys.exit(main())

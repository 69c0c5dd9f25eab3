"""
jdkcache CLI argument parser.

This module implements the command-line interface using argparse.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from jdkcache import __version__
from jdkcache.core.exceptions import JdkCacheError

logger = logging.getLogger(__name__)


def _key_value(text: str):
    if "=" not in text:
        raise argparse.ArgumentTypeError(f"expected key=value, got '{text}'")
    key, value = text.split("=", 1)
    if not key.strip():
        raise argparse.ArgumentTypeError(f"empty attribute name in '{text}'")
    return key.strip(), value


class CLI:
    """jdkcache command-line interface."""

    def __init__(self):
        self.parser = self._create_parser()

    def _create_parser(self) -> argparse.ArgumentParser:
        parser = argparse.ArgumentParser(
            prog="jdkcache",
            description="jdkcache - download, verify and cache JDK distributions",
            epilog='Use "jdkcache COMMAND --help" for command-specific help',
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )
        parser.add_argument(
            "--version", action="version", version=f"jdkcache {__version__}"
        )
        parser.add_argument(
            "--verbose", "-v", action="store_true", help="Enable verbose output"
        )
        parser.add_argument(
            "--quiet",
            "-q",
            action="store_true",
            help="Enable minimal output (errors only)",
        )

        subparsers = parser.add_subparsers(
            dest="command", help="Available commands", metavar="COMMAND"
        )
        self._add_acquire_command(subparsers)
        self._add_providers_command(subparsers)
        return parser

    def _add_acquire_command(self, subparsers):
        acquire = subparsers.add_parser(
            "acquire",
            help="Install a JDK into the cache and print its path",
            description="Resolve, download, verify and install a JDK distribution.",
        )
        acquire.add_argument(
            "--provider",
            "-p",
            metavar="ID",
            help="Provider id (see 'jdkcache providers')",
        )
        acquire.add_argument(
            "--attribute",
            "-a",
            dest="attributes",
            action="append",
            type=_key_value,
            default=[],
            metavar="KEY=VALUE",
            help="Provider attribute, repeatable (e.g. -a version=17*)",
        )
        acquire.add_argument(
            "--config",
            type=Path,
            metavar="PATH",
            help="YAML file with 'settings' and 'request' sections",
        )
        acquire.add_argument(
            "--cache-root", type=Path, metavar="PATH", help="Cache directory"
        )
        acquire.add_argument(
            "--offline",
            action="store_true",
            help="Fail instead of downloading when the JDK is not cached",
        )
        acquire.add_argument(
            "--timeout",
            type=float,
            metavar="SECONDS",
            help="HTTP connection timeout (default: 60)",
        )
        acquire.add_argument(
            "--keep-archive",
            action="store_true",
            help="Keep the downloaded archive in the cache",
        )

    def _add_providers_command(self, subparsers):
        subparsers.add_parser("providers", help="List provider ids")

    def parse_args(self, args: Optional[List[str]] = None):
        return self.parser.parse_args(args)

    def run(self, args: Optional[List[str]] = None) -> int:
        """
        Run CLI with given arguments.

        Args:
            args: Arguments to parse (uses sys.argv if None)

        Returns:
            Exit code (0 for success, non-zero for error)
        """
        parsed_args = self.parse_args(args)
        self._configure_logging(parsed_args)

        if not parsed_args.command:
            self.parser.print_help()
            return 1

        try:
            return self._dispatch_command(parsed_args)
        except KeyboardInterrupt:
            logger.info("Operation cancelled by user")
            return 130
        except JdkCacheError as e:
            logger.error(f"Error: {e}")
            if parsed_args.verbose:
                logger.debug("Failure details", exc_info=True)
            return 1

    def _configure_logging(self, args):
        """Configure logging based on verbose/quiet flags."""
        if args.verbose:
            level = logging.DEBUG
            format_str = "%(levelname)s [%(name)s] %(message)s"
        elif args.quiet:
            level = logging.ERROR
            format_str = "%(levelname)s: %(message)s"
        else:
            level = logging.INFO
            format_str = "%(message)s"

        logging.basicConfig(level=level, format=format_str, force=True)

    def _dispatch_command(self, args) -> int:
        from jdkcache.cli.commands import acquire, providers

        command_map = {
            "acquire": acquire.run,
            "providers": providers.run,
        }
        handler = command_map.get(args.command)
        if handler is None:
            logger.error(f"Unknown command: {args.command}")
            return 1
        return handler(args)


def main():
    """Main entry point for CLI."""
    cli = CLI()
    sys.exit(cli.run())


if __name__ == "__main__":
    main()

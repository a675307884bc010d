"""Argument parsing functionality for octpkg."""

import argparse
from typing import Dict, List, Optional

from constants import Actions
from errors import UsageError

DEPRECATED_FLAGS = ("-auto", "-noauto")


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser; flags follow the interpreter's single-dash style."""
    parser = argparse.ArgumentParser(
        prog="octpkg",
        description="octpkg - install, load and manage Octave packages",
        add_help=True,
        allow_abbrev=False,
    )

    parser.add_argument("action",
                        help="Action to perform",
                        choices=[a.value for a in Actions])
    parser.add_argument("names",
                        help="Package names, name@version ids, archive files or URLs",
                        nargs="*",
                        default=[])

    parser.add_argument("-nodeps",
                        dest="NODEPS",
                        help="Ignore dependencies when installing, uninstalling, loading or unloading",
                        action="store_true")
    parser.add_argument("-force",
                        dest="FORCE",
                        help="Reinstall already installed packages and tolerate resolution errors",
                        action="store_true")
    parser.add_argument("-global",
                        dest="GLOBAL",
                        help="Operate on the system-wide package registry",
                        action="store_true")
    parser.add_argument("-local",
                        dest="LOCAL",
                        help="Operate on the per-user package registry",
                        action="store_true")
    parser.add_argument("-verbose",
                        dest="VERBOSE",
                        help="Show build output",
                        action="store_true")
    parser.add_argument("-nocache",
                        dest="NOCACHE",
                        help="Always fetch a fresh package index",
                        action="store_true")
    parser.add_argument("-resolve-only",
                        dest="RESOLVE_ONLY",
                        help="Print the installation plan without installing",
                        action="store_true")
    parser.add_argument("-forge",
                        dest="FORGE",
                        help="Look packages up on Octave Forge instead of the packages index",
                        action="store_true")
    for flag in DEPRECATED_FLAGS:
        parser.add_argument(flag,
                            dest="DEPRECATED",
                            help=argparse.SUPPRESS,
                            action="append_const",
                            const=flag,
                            default=[])

    parser.add_argument("--loglevel",
                        dest="LOG_LEVEL",
                        help="Set the logging level",
                        action="store",
                        type=str.upper,
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'])
    parser.add_argument("--logfile",
                        dest="LOG_FILE",
                        help="Log output file",
                        action="store",
                        type=str)
    parser.add_argument("--error-on-warnings",
                        dest="ERROR_ON_WARNINGS",
                        help="Exit with a non-zero status code if warnings are present.",
                        action="store_true")
    parser.add_argument("-c", "--config",
                        dest="CONFIG",
                        help="Path to configuration file (YAML)",
                        action="store",
                        type=str)
    parser.add_argument("--set",
                        dest="CONFIG_SET",
                        help="Set a configuration override (KEY=VALUE format, can be used multiple times)",
                        action="append",
                        type=str,
                        default=[])
    return parser


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parses the arguments passed to the program."""
    return build_parser().parse_args(argv)


def parse_overrides(pairs: List[str]) -> Dict[str, str]:
    """Turn ``--set KEY=VALUE`` pairs into a dotted-key mapping.

    Raises:
        UsageError: when a pair has no ``=`` or an empty key.
    """
    overrides: Dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key.strip():
            raise UsageError(f"invalid --set value '{pair}', expected KEY=VALUE")
        overrides[key.strip()] = value.strip()
    return overrides

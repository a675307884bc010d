"""octpkg - package manager for GNU Octave packages.

    Returns:
        int: Exit code
"""
import logging
import sys
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Type

from args import parse_args, parse_overrides
from cli_context import CommandContext
from cli_install import run_install, run_rebuild, run_uninstall, run_update
from cli_load import run_list, run_load, run_test, run_unload
from common.logging_utils import configure_logging, extra_context, is_debug_enabled
from config import load_config
from constants import Actions, ExitCodes
from errors import (
    ConfigError,
    DescriptionError,
    DownloadError,
    IndexLookupError,
    IndexUnavailableError,
    OctpkgError,
    PackageNotInstalledError,
    PersistenceError,
    ResolutionError,
    TransactionStepError,
    UnsatisfiedDependencyError,
    UsageError,
)
from options import Options

logger = logging.getLogger(__name__)

Handler = Callable[[CommandContext, Sequence[str]], ExitCodes]

HANDLERS: Dict[Actions, Handler] = {
    Actions.INSTALL: run_install,
    Actions.UNINSTALL: run_uninstall,
    Actions.LOAD: run_load,
    Actions.UNLOAD: run_unload,
    Actions.LIST: run_list,
    Actions.UPDATE: run_update,
    Actions.REBUILD: run_rebuild,
    Actions.TEST: run_test,
}

# Most specific first
ERROR_EXIT_CODES: List[Tuple[Type[OctpkgError], ExitCodes]] = [
    (UsageError, ExitCodes.USAGE_ERROR),
    (ConfigError, ExitCodes.CONFIG_ERROR),
    (PackageNotInstalledError, ExitCodes.PACKAGE_NOT_FOUND),
    (IndexUnavailableError, ExitCodes.CONNECTION_ERROR),
    (DownloadError, ExitCodes.CONNECTION_ERROR),
    (UnsatisfiedDependencyError, ExitCodes.DEPENDENCY_ERROR),
    (ResolutionError, ExitCodes.RESOLUTION_ERROR),
    (IndexLookupError, ExitCodes.RESOLUTION_ERROR),
    (PersistenceError, ExitCodes.PERSISTENCE_ERROR),
    (TransactionStepError, ExitCodes.TRANSACTION_ERROR),
    (DescriptionError, ExitCodes.TRANSACTION_ERROR),
]


def exit_code_for(exc: OctpkgError) -> ExitCodes:
    """Map a domain error to its exit code."""
    for error_type, code in ERROR_EXIT_CODES:
        if isinstance(exc, error_type):
            return code
    return ExitCodes.FILE_ERROR


def build_options(args) -> Options:
    """Build typed options from parsed arguments.

    Raises:
        UsageError: on contradicting scope flags.
    """
    return Options(
        nodeps=args.NODEPS,
        force=args.FORCE,
        global_scope=args.GLOBAL,
        local_scope=args.LOCAL,
        verbose=args.VERBOSE,
        nocache=args.NOCACHE,
        resolve_only=args.RESOLVE_ONLY,
        forge=args.FORGE,
    )


def run(argv: Optional[List[str]] = None) -> int:
    """Parse ``argv``, execute the action and return the exit code."""
    args = parse_args(argv)
    configure_logging(level=args.LOG_LEVEL, logfile=args.LOG_FILE)
    for flag in args.DEPRECATED:
        logger.warning("the %s option is deprecated and has no effect", flag)

    action = Actions(args.action)
    if is_debug_enabled(logger):
        logger.debug(
            "CLI start",
            extra=extra_context(event="function_entry", component="cli", action=action.value)
        )

    try:
        options = build_options(args)
        config = load_config(args.CONFIG, overrides=parse_overrides(args.CONFIG_SET))
        ctx = CommandContext.from_env(config, options)
        code = HANDLERS[action](ctx, args.names)
    except OctpkgError as exc:
        logger.error("%s", exc)
        code = exit_code_for(exc)
        if is_debug_enabled(logger):
            logger.debug(
                "CLI finished",
                extra=extra_context(
                    event="function_exit",
                    component="cli",
                    action=action.value,
                    outcome="error",
                    error=type(exc).__name__
                )
            )
        return code.value

    if code is ExitCodes.SUCCESS and args.ERROR_ON_WARNINGS and ctx.warnings:
        code = ExitCodes.EXIT_WARNINGS
    if is_debug_enabled(logger):
        logger.debug(
            "CLI finished",
            extra=extra_context(
                event="function_exit",
                component="cli",
                action=action.value,
                outcome="success" if code is ExitCodes.SUCCESS else code.name.lower()
            )
        )
    return code.value


def main() -> None:
    """Main function of the program."""
    sys.exit(run())


if __name__ == "__main__":
    main()

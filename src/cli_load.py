"""CLI handlers for search path actions: load, unload, test, list."""

from __future__ import annotations

import logging
import os
import sys
from typing import List, Optional, Sequence

from cli_context import CommandContext, select_records
from constants import Constants, ExitCodes
from errors import UsageError
from installed.load_order import compute_load_order, compute_unload_safety
from installed.records import InstalledRecord
from transaction import TestRunner

logger = logging.getLogger(__name__)


def _record_dirs(rec: InstalledRecord) -> List[str]:
    dirs = [rec.dir]
    if rec.archdir and os.path.isdir(rec.archdir):
        dirs.append(rec.archdir)
    return dirs


def _print_search_path(ctx: CommandContext) -> None:
    sys.stdout.write(f"{Constants.ENV_SEARCH_PATH}={ctx.search_path.to_env_value()}\n")


def load_records(ctx: CommandContext, names: Sequence[str]) -> List[InstalledRecord]:
    """Prepend the named packages and their dependencies to the search path.

    Returns:
        List[InstalledRecord]: Newly loaded records in load order.
    """
    records = ctx.records()
    requested = select_records(records, names)
    order = compute_load_order(records, requested, handle_deps=not ctx.options.nodeps)
    dirs: List[str] = []
    for i in order:
        dirs.extend(_record_dirs(records[i]))
        records[i].loaded = True
    # same result as prepending each directory in load order
    ctx.search_path.prepend(*reversed(dirs))
    return [records[i] for i in order]


def run_load(ctx: CommandContext, names: Sequence[str]) -> ExitCodes:
    """Load packages and print the resulting search path."""
    if not names:
        raise UsageError("load: at least one package name is required")
    loaded = load_records(ctx, names)
    for rec in loaded:
        logger.info("Loaded %s", rec.id)
    _print_search_path(ctx)
    return ExitCodes.SUCCESS


def run_unload(ctx: CommandContext, names: Sequence[str]) -> ExitCodes:
    """Unload packages and print the resulting search path."""
    if not names:
        raise UsageError("unload: at least one package name is required")
    records = ctx.records()
    targets = [i for i in select_records(records, names) if records[i].loaded]
    compute_unload_safety(records, targets, nodeps=ctx.options.nodeps)
    for i in targets:
        ctx.search_path.remove(*_record_dirs(records[i]))
        records[i].loaded = False
        logger.info("Unloaded %s", records[i].id)
    _print_search_path(ctx)
    return ExitCodes.SUCCESS


def run_test(ctx: CommandContext, names: Sequence[str],
             runner: Optional[TestRunner] = None) -> ExitCodes:
    """Run the test suite of each named package with the package loaded."""
    if not names:
        raise UsageError("test: at least one package name is required")
    runner = runner or TestRunner(ctx.config.octave_executable)
    failed: List[str] = []
    for name in names:
        saved = ctx.search_path.snapshot()
        try:
            loaded = load_records(ctx, [name])
            rec = next((r for r in ctx.records() if name.lower() in (r.name, r.id)))
            dirs = [rec.dir]
            if rec.archprefix and os.path.isdir(rec.archprefix) \
                    and os.path.normpath(rec.archprefix) != os.path.normpath(rec.dir):
                dirs.append(rec.archprefix)
            logger.info("Testing %s (%d package(s) loaded)", rec.id, len(loaded))
            status = runner.run(dirs, ctx.search_path.to_env_value())
        finally:
            ctx.search_path.restore(saved)
        if status != 0:
            logger.error("Tests of %s failed", rec.id)
            failed.append(rec.id)
    return ExitCodes.TEST_FAILURE if failed else ExitCodes.SUCCESS


def run_list(ctx: CommandContext, names: Sequence[str]) -> ExitCodes:
    """Print the merged registry; ``*`` marks loaded packages."""
    records = ctx.records()
    if names:
        records = [records[i] for i in select_records(records, names)]
    if not records:
        sys.stdout.write("no packages installed.\n")
        return ExitCodes.SUCCESS
    name_width = max(len("Package Name"), max(len(r.name) for r in records))
    ver_width = max(len("Version"), max(len(r.version) for r in records))
    sys.stdout.write(
        f"{'Package Name':>{name_width}}  | {'Version':<{ver_width}} | Installation directory\n"
    )
    sys.stdout.write(f"{'-' * (name_width + 1)}-+-{'-' * ver_width}-+-{'-' * 22}\n")
    for rec in sorted(records, key=lambda r: r.name):
        mark = "*" if rec.loaded else " "
        sys.stdout.write(f"{rec.name:>{name_width}} {mark}| {rec.version:<{ver_width}} | {rec.dir}\n")
    return ExitCodes.SUCCESS

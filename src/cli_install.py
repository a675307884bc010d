"""CLI handlers for actions that change the registry: install, uninstall, update, rebuild."""

from __future__ import annotations

import logging
import sys
from typing import List, Sequence

from cli_context import CommandContext
from common.logging_utils import extra_context, is_debug_enabled, safe_url
from constants import ExitCodes
from errors import ResolutionError, UsageError
from resolver import ResolutionResult, Resolver
from transaction import Installer, NativeBuilder, Uninstaller, rebuild_records
from versioning.compare import compare_versions
from versioning.models import ResolutionItem
from versioning.parser import item_from_input

logger = logging.getLogger(__name__)


def _resolve(ctx: CommandContext, items: Sequence[ResolutionItem]) -> ResolutionResult:
    index = ctx.index()
    resolver = Resolver(index, ctx.store.merged(), ctx.config.host_version)
    result = resolver.resolve(items, ctx.options)
    ctx.warnings.extend(result.warnings)
    if result.unresolved:
        parts = []
        for item in result.unresolved:
            hint = index.suggest(item.name) if item.id else None
            parts.append(f"{item.describe()} (did you mean '{hint}'?)" if hint else item.describe())
        raise ResolutionError(f"package(s) not found in the index: {', '.join(parts)}")
    if is_debug_enabled(logger):
        logger.debug(
            "Resolved plan",
            extra=extra_context(
                event="decision",
                component="cli",
                action="resolve",
                outcome="complete" if result.complete else "partial",
                count=len(result.plan)
            )
        )
    return result


def _print_plan(result: ResolutionResult) -> None:
    for item in result.plan:
        sys.stdout.write(f"{item.id}\t{safe_url(item.url)}\n")


def _install_items(ctx: CommandContext, items: Sequence[ResolutionItem]) -> ExitCodes:
    result = _resolve(ctx, items)
    if ctx.options.resolve_only:
        _print_plan(result)
        return ExitCodes.SUCCESS
    if not result.plan:
        return ExitCodes.SUCCESS
    builder = NativeBuilder(
        octave=ctx.config.octave_executable,
        jobs=ctx.config.make_jobs,
        verbose=ctx.options.verbose,
    )
    installer = Installer(ctx.store, ctx.config, builder=builder)
    report = installer.install(result.plan, ctx.options)
    ctx.warnings.extend(report.warnings)
    for rec in report.installed:
        sys.stdout.write(f"{rec.id} installed in {rec.dir}\n")
    return ExitCodes.SUCCESS


def run_install(ctx: CommandContext, names: Sequence[str]) -> ExitCodes:
    """Resolve and install ``names`` (ids, archive files or URLs)."""
    if not names:
        raise UsageError("install: at least one package name, file or URL is required")
    items = [item_from_input(name) for name in names]
    return _install_items(ctx, items)


def run_uninstall(ctx: CommandContext, names: Sequence[str]) -> ExitCodes:
    """Uninstall the named packages."""
    if not names:
        raise UsageError("uninstall: at least one package name is required")
    uninstaller = Uninstaller(ctx.store, ctx.config, search_path=ctx.search_path)
    report = uninstaller.uninstall(names, ctx.options)
    ctx.warnings.extend(report.warnings)
    for rec in report.removed:
        sys.stdout.write(f"{rec.id} uninstalled\n")
    return ExitCodes.SUCCESS


def run_update(ctx: CommandContext, names: Sequence[str]) -> ExitCodes:
    """Install the newest index version of every (or every named) installed package."""
    records = ctx.store.merged()
    targets: List[str] = [n.lower() for n in names] or [r.name for r in records]
    index = ctx.index()
    items: List[ResolutionItem] = []
    for name in targets:
        rec = next((r for r in records if r.name == name), None)
        if rec is None:
            ctx.warn(f"package {name} is not installed - not updating this package")
            continue
        newest = index.newest(name)
        if newest is None:
            ctx.warn(f"package {name} is not listed in the package index - not updating this package")
            continue
        if compare_versions(newest.version, rec.version, ">"):
            logger.info("Updating %s to %s", rec.id, newest.id)
            # the forge index only resolves bare names
            items.append(ResolutionItem(id=newest.id if index.has_dependency_graph else name))
    if not items:
        logger.info("All packages are up to date")
        return ExitCodes.SUCCESS
    return _install_items(ctx, items)


def run_rebuild(ctx: CommandContext, names: Sequence[str]) -> ExitCodes:
    """Rebuild the registry of the selected scope from the installed directories."""
    scope = ctx.options.scope(ctx.config.has_elevated_rights)
    records = rebuild_records(
        ctx.config.scope(scope), ctx.config.arch, ctx.store.list(scope), names
    )
    ctx.store.replace_all(scope, records)
    logger.info("Rebuilt %s package list with %d package(s)", scope.value, len(records))
    return ExitCodes.SUCCESS

"""Scoped rollback of filesystem side effects."""

from __future__ import annotations

import logging
import os
import shutil
from typing import Callable, List, Tuple

logger = logging.getLogger(__name__)

Action = Tuple[str, Callable[[], None]]


class RollbackStack:
    """Undo actions executed in reverse order when the guarded block fails.

    Usage::

        with RollbackStack() as rb:
            os.makedirs(target)
            rb.track_dir(target)
            ...
            rb.commit()

    Leaving the block with an exception runs every registered undo action,
    newest first, then lets the exception propagate. ``commit`` discards
    the undo actions and runs the commit actions instead.
    """

    def __init__(self) -> None:
        self._undo: List[Action] = []
        self._on_commit: List[Action] = []

    def __enter__(self) -> "RollbackStack":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc_type is not None:
            self.rollback()
        return False

    def __len__(self) -> int:
        return len(self._undo)

    def push(self, description: str, action: Callable[[], None]) -> None:
        """Register an undo action."""
        self._undo.append((description, action))

    def on_commit(self, description: str, action: Callable[[], None]) -> None:
        """Register an action to run once the block commits."""
        self._on_commit.append((description, action))

    def track_dir(self, path: str) -> None:
        """Remove ``path`` on rollback."""
        self.push(f"remove {path}", lambda: shutil.rmtree(path, ignore_errors=True))

    def track_backup(self, original: str, backup: str) -> None:
        """Restore ``backup`` to ``original`` on rollback, drop it on commit."""
        def restore() -> None:
            if os.path.lexists(original):
                shutil.rmtree(original, ignore_errors=True)
            os.replace(backup, original)

        self.push(f"restore {original}", restore)
        self.on_commit(f"drop backup {backup}", lambda: shutil.rmtree(backup, ignore_errors=True))

    def move_aside(self, path: str, suffix: str = ".octpkg-old") -> str:
        """Rename ``path`` to a backup that is restored on rollback and deleted on commit."""
        backup = path.rstrip(os.sep) + suffix
        if os.path.lexists(backup):
            shutil.rmtree(backup, ignore_errors=True)
        os.replace(path, backup)
        self.track_backup(path, backup)
        return backup

    def commit(self) -> None:
        """Keep every side effect; run commit actions."""
        self._undo.clear()
        actions, self._on_commit = self._on_commit, []
        for description, action in actions:
            try:
                action()
            except OSError as exc:
                logger.warning("Cleanup step '%s' failed: %s", description, exc)

    def rollback(self) -> None:
        """Run every undo action, newest first."""
        self._on_commit.clear()
        while self._undo:
            description, action = self._undo.pop()
            logger.debug("Rolling back: %s", description)
            try:
                action()
            except OSError as exc:
                logger.warning("Rollback step '%s' failed: %s", description, exc)

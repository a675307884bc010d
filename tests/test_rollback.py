"""Tests for RollbackStack."""

import os

import pytest

from transaction.rollback import RollbackStack


class TestRollbackStack:
    """Tests for RollbackStack."""

    def test_exception_removes_tracked_dirs(self, tmp_path):
        """Leaving the block with an error removes created directories."""
        target = tmp_path / "created"
        with pytest.raises(RuntimeError):
            with RollbackStack() as rb:
                target.mkdir()
                rb.track_dir(str(target))
                raise RuntimeError("boom")
        assert not target.exists()

    def test_undo_runs_newest_first(self):
        """Undo actions run in reverse registration order."""
        calls = []
        rb = RollbackStack()
        rb.push("first", lambda: calls.append(1))
        rb.push("second", lambda: calls.append(2))
        rb.rollback()
        assert calls == [2, 1]
        assert len(rb) == 0

    def test_commit_keeps_side_effects(self, tmp_path):
        """A committed block keeps its directories and runs commit actions."""
        target = tmp_path / "kept"
        calls = []
        with RollbackStack() as rb:
            target.mkdir()
            rb.track_dir(str(target))
            rb.on_commit("note", lambda: calls.append("committed"))
            rb.commit()
        assert target.is_dir()
        assert calls == ["committed"]

    def test_move_aside_restores_on_rollback(self, tmp_path):
        """A moved-aside directory comes back when the block fails."""
        original = tmp_path / "pkg"
        original.mkdir()
        (original / "old.m").write_text("old", encoding="utf-8")
        with pytest.raises(ValueError):
            with RollbackStack() as rb:
                rb.move_aside(str(original))
                original.mkdir()
                (original / "new.m").write_text("new", encoding="utf-8")
                raise ValueError("copy failed")
        assert sorted(os.listdir(original)) == ["old.m"]
        assert not (tmp_path / "pkg.octpkg-old").exists()

    def test_move_aside_dropped_on_commit(self, tmp_path):
        """The backup disappears once the block commits."""
        original = tmp_path / "pkg"
        original.mkdir()
        with RollbackStack() as rb:
            backup = rb.move_aside(str(original))
            rb.commit()
        assert not os.path.exists(backup)
        assert not original.exists()

    def test_failing_undo_step_does_not_stop_rollback(self):
        """An OSError in one undo action is logged and the rest still run."""
        calls = []

        def broken():
            raise OSError("gone")

        rb = RollbackStack()
        rb.push("ok", lambda: calls.append("ok"))
        rb.push("broken", broken)
        rb.rollback()
        assert calls == ["ok"]

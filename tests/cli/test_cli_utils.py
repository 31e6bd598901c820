"""Tests for cli/utils.py module."""

from __future__ import annotations

from pathlib import Path

import click
import pytest

from mysqlinstr.cli.utils import fail, get_config, open_database, setup
from mysqlinstr.config import InstrumentationConfig
from mysqlinstr.config.models import DatabaseConfig
from mysqlinstr.core.errors import DatabaseError
from mysqlinstr.core.logging import get_run_id
from mysqlinstr.db.database import Database


class TestFail:
    def test_exits_with_status_one(self, capsys: pytest.CaptureFixture[str]) -> None:
        with pytest.raises(SystemExit) as exc_info:
            fail("Error: boom")

        assert exc_info.value.code == 1
        assert capsys.readouterr().err == "Error: boom\n"


class TestSetup:
    def test_stores_config_on_context(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        # Given
        monkeypatch.chdir(tmp_path)
        (tmp_path / ".mysqlinstr.yaml").write_text("instrument:\n  ftrace_suffix: .traced\n")
        ctx = click.Context(click.Command("test"))

        # When
        config = setup(ctx, verbose=False)

        # Then
        assert get_config(ctx) is config
        assert config.instrument.ftrace_suffix == ".traced"
        assert ctx.obj["verbose"] is False
        assert get_run_id() is not None

    def test_invalid_project_config_exits(
        self,
        tmp_path: Path,
        monkeypatch: pytest.MonkeyPatch,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        monkeypatch.chdir(tmp_path)
        (tmp_path / ".mysqlinstr.yaml").write_text("database:\n  connect_timeout_sec: soon\n")

        with pytest.raises(SystemExit):
            setup(click.Context(click.Command("test")), verbose=False)

        assert capsys.readouterr().err.startswith("Error: ")


class TestOpenDatabase:
    def test_engine_disposed_on_exit(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        # Given
        disposed: list[Database] = []
        monkeypatch.setattr(Database, "dispose", lambda self: disposed.append(self))
        config = InstrumentationConfig(
            database=DatabaseConfig(dsn=f"sqlite:///{tmp_path / 'x.db'}")
        )

        # When
        with pytest.raises(RuntimeError), open_database(config, None) as db:
            raise RuntimeError("command failed")

        # Then
        assert disposed == [db]

    def test_explicit_dsn_overrides_config(self, tmp_path: Path) -> None:
        config = InstrumentationConfig(database=DatabaseConfig(dsn="sqlite:///ignored.db"))

        with open_database(config, f"sqlite:///{tmp_path / 'used.db'}") as db:
            assert db.url.database == str(tmp_path / "used.db")

    def test_missing_dsn_exits(self, capsys: pytest.CaptureFixture[str]) -> None:
        with pytest.raises(SystemExit), open_database(InstrumentationConfig(), None):
            pass

        assert "no database DSN given" in capsys.readouterr().err

    def test_unreachable_database_exits_before_command(
        self, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
    ) -> None:
        # Given
        disposed: list[Database] = []
        entered: list[Database] = []

        def refuse(self: Database) -> None:
            raise DatabaseError.connection_failed("connection refused")

        monkeypatch.setattr(Database, "ping", refuse)
        monkeypatch.setattr(Database, "dispose", lambda self: disposed.append(self))
        config = InstrumentationConfig(database=DatabaseConfig(dsn="sqlite:///unused.db"))

        # When
        with pytest.raises(SystemExit) as exc_info, open_database(config, None) as db:
            entered.append(db)

        # Then
        assert exc_info.value.code == 1
        assert entered == []
        assert len(disposed) == 1
        assert (
            capsys.readouterr().err
            == "Error: failed to connect to database: connection refused\n"
        )

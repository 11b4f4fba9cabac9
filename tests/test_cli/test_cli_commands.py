"""End-to-end tests for the kvk-tracker CLI using typer's CliRunner."""

from __future__ import annotations

import csv
from pathlib import Path

import pytest
from typer.testing import CliRunner

from kvk_tracker.cli import app

runner = CliRunner()


@pytest.fixture
def workspace(tmp_path, monkeypatch) -> Path:
    """Temp dir with a config pointing at a fresh DB and three roster exports."""
    for var in ("KVK_TRACKER_DB_PATH", "KVK_TRACKER_LOG_LEVEL", "KVK_TRACKER_DEBUG",
                "KVK_TRACKER_DECIMAL_SEPARATOR"):
        monkeypatch.delenv(var, raising=False)

    db_path = (tmp_path / "kvk.db").as_posix()
    (tmp_path / "config.toml").write_text(
        f'[database]\ndb_path = "{db_path}"\n\n'
        f'[data]\nimports_dir = "{(tmp_path / "imports").as_posix()}"\n'
        f'exports_dir = "{(tmp_path / "exports").as_posix()}"\n\n'
        '[logging]\nlevel = "WARNING"\nlog_file = ""\n',
        encoding="utf-8",
    )
    (tmp_path / "week1.csv").write_text(
        "Governor ID;Name;Honor;Power\n101;Aldric;1.000;50.000\n102;Brenna;500;30.000\n",
        encoding="utf-8",
    )
    (tmp_path / "week2.csv").write_text(
        "Governor ID;Name;Honor;Power\n101;Aldric;1.800;52.000\n103;Corvin;300;9.000\n",
        encoding="utf-8",
    )
    (tmp_path / "week3.csv").write_text(
        "Governor ID;Name;Honor;Power\n101;Aldric Prime;2.500;55.000\n103;Corvin;700;9.500\n",
        encoding="utf-8",
    )
    return tmp_path


def invoke(workspace: Path, *args: str):
    return runner.invoke(app, [*args, "--config", str(workspace / "config.toml")])


def _import_all(workspace: Path) -> None:
    for order, sid in enumerate(("w1", "w2", "w3")):
        result = invoke(
            workspace, "import-snapshot", str(workspace / f"week{order + 1}.csv"),
            "--id", sid, "--order", str(order),
        )
        assert result.exit_code == 0, result.output


def _create_event(workspace: Path) -> None:
    result = invoke(
        workspace, "create-event", "kvk1", "--name", "KvK 1",
        "--start", "w1", "--end", "w3",
        "--honor", "w1", "--honor", "w2", "--honor", "w3",
        "--fight", "f1:w1:w2:Pass 4",
    )
    assert result.exit_code == 0, result.output


class TestSetupCommands:
    def test_init_db(self, workspace):
        result = invoke(workspace, "init-db")
        assert result.exit_code == 0
        assert "[OK] Database ready." in result.output
        assert (workspace / "kvk.db").exists()

    def test_validate_config(self, workspace):
        result = invoke(workspace, "validate-config", "--full")
        assert result.exit_code == 0
        assert "honorPoint" in result.output
        assert "[OK] Config valid." in result.output

    def test_missing_config(self, tmp_path):
        result = runner.invoke(app, ["init-db", "--config", str(tmp_path / "nope.toml")])
        assert result.exit_code == 1
        assert "[ERROR]" in result.output


class TestSnapshotCommands:
    def test_import_and_list(self, workspace):
        _import_all(workspace)
        result = invoke(workspace, "list-snapshots")
        assert result.exit_code == 0
        lines = [ln for ln in result.output.splitlines() if "week" in ln]
        assert [ln.split()[1] for ln in lines] == ["w1", "w2", "w3"]

    def test_import_reports_columns(self, workspace):
        result = invoke(workspace, "import-snapshot", str(workspace / "week1.csv"), "--id", "w1")
        assert result.exit_code == 0
        assert "id='Governor ID'" in result.output
        assert "[OK] Imported w1: 2 rows" in result.output

    def test_import_duplicate_id(self, workspace):
        _import_all(workspace)
        result = invoke(workspace, "import-snapshot", str(workspace / "week1.csv"), "--id", "w1")
        assert result.exit_code == 1
        assert "already exists" in result.output

    def test_import_missing_file(self, workspace):
        result = invoke(workspace, "import-snapshot", str(workspace / "nope.csv"))
        assert result.exit_code == 1
        assert "[ERROR]" in result.output

    def test_import_falls_back_to_imports_dir(self, workspace):
        imports = workspace / "imports"
        imports.mkdir()
        (imports / "pass7_kvk_week9.csv").write_text(
            "Governor ID;Name;Power\n101;Aldric;60.000\n", encoding="utf-8"
        )
        result = invoke(workspace, "import-snapshot", "pass7_kvk_week9.csv", "--id", "w9")
        assert result.exit_code == 0, result.output
        assert "[OK] Imported w9: 1 rows" in result.output

    def test_reorder(self, workspace):
        _import_all(workspace)
        result = invoke(workspace, "reorder-snapshots", "w3", "w1", "w2")
        assert result.exit_code == 0
        listing = invoke(workspace, "list-snapshots").output
        lines = [ln for ln in listing.splitlines() if "week" in ln]
        assert [ln.split()[1] for ln in lines] == ["w3", "w1", "w2"]

    def test_reorder_unknown(self, workspace):
        _import_all(workspace)
        result = invoke(workspace, "reorder-snapshots", "w1", "ghost")
        assert result.exit_code == 1

    def test_delete_snapshot(self, workspace):
        _import_all(workspace)
        assert invoke(workspace, "delete-snapshot", "w2").exit_code == 0
        assert invoke(workspace, "delete-snapshot", "w2").exit_code == 1


class TestEventCommands:
    def test_create_event_unknown_snapshot(self, workspace):
        _import_all(workspace)
        result = invoke(workspace, "create-event", "kvk1", "--start", "ghost")
        assert result.exit_code == 1
        assert "ghost" in result.output

    def test_create_event_bad_fight(self, workspace):
        result = invoke(workspace, "create-event", "kvk1", "--fight", "onlyid")
        assert result.exit_code == 1

    def test_list_and_delete_events(self, workspace):
        _import_all(workspace)
        _create_event(workspace)
        listing = invoke(workspace, "list-events")
        assert "kvk1: KvK 1" in listing.output
        assert "fight f1 (Pass 4): w1 -> w2" in listing.output
        assert invoke(workspace, "delete-event", "kvk1").exit_code == 0
        assert "(no events stored)" in invoke(workspace, "list-events").output


class TestAnalysisCommands:
    def test_delta(self, workspace):
        _import_all(workspace)
        _create_event(workspace)
        result = invoke(workspace, "delta", "kvk1", "--stat", "honorPoint")
        assert result.exit_code == 0, result.output
        assert "Aldric Prime" in result.output
        assert "+inf%" in result.output
        assert "left" in result.output

    def test_delta_export(self, workspace):
        _import_all(workspace)
        _create_event(workspace)
        out = workspace / "delta.csv"
        result = invoke(workspace, "delta", "kvk1", "--export", str(out))
        assert result.exit_code == 0
        with out.open(encoding="utf-8", newline="") as f:
            rows = list(csv.DictReader(f))
        assert [r["player_id"] for r in rows] == ["101", "103", "102"]
        assert float(rows[0]["change"]) == 1500.0

    def test_fight_delta(self, workspace):
        _import_all(workspace)
        _create_event(workspace)
        result = invoke(workspace, "delta", "kvk1", "--fight", "f1")
        assert result.exit_code == 0
        assert "(fight f1)" in result.output

    def test_incomplete_event(self, workspace):
        _import_all(workspace)
        invoke(workspace, "create-event", "kvk2", "--start", "w1")
        result = invoke(workspace, "delta", "kvk2")
        assert result.exit_code == 1
        assert "[ERROR]" in result.output and "incomplete" in result.output

    def test_unknown_statistic(self, workspace):
        _import_all(workspace)
        _create_event(workspace)
        result = invoke(workspace, "delta", "kvk1", "--stat", "gold")
        assert result.exit_code == 1
        assert "Unknown statistic" in result.output

    def test_history(self, workspace):
        _import_all(workspace)
        _create_event(workspace)
        result = invoke(workspace, "history", "kvk1", "102")
        assert result.exit_code == 0
        assert "week1" in result.output
        assert "week2" not in result.output

    def test_history_unknown_player(self, workspace):
        _import_all(workspace)
        _create_event(workspace)
        assert invoke(workspace, "history", "kvk1", "999").exit_code == 1

    def test_totals(self, workspace):
        _import_all(workspace)
        _create_event(workspace)
        result = invoke(workspace, "totals", "kvk1", "--stat", "power")
        assert result.exit_code == 0
        assert "80,000" in result.output

    def test_search(self, workspace):
        _import_all(workspace)
        _create_event(workspace)
        result = invoke(workspace, "search", "kvk1", "corv")
        assert result.exit_code == 0
        assert "103" in result.output

    def test_list_stats(self, workspace):
        _import_all(workspace)
        _create_event(workspace)
        result = invoke(workspace, "list-stats", "kvk1")
        assert result.exit_code == 0
        assert "honorPoint" in result.output and "power" in result.output

    def test_bare_export_name_goes_to_exports_dir(self, workspace):
        _import_all(workspace)
        _create_event(workspace)
        result = invoke(workspace, "totals", "kvk1", "--export", "kvk1_totals.csv")
        assert result.exit_code == 0, result.output
        assert (workspace / "exports" / "kvk1_totals.csv").exists()

    def test_compare(self, workspace):
        _import_all(workspace)
        result = invoke(workspace, "compare", "w1", "w3", "--stat", "honorPoint")
        assert result.exit_code == 0, result.output
        assert "=== honorPoint comparison ===" in result.output
        assert "Aldric Prime" in result.output
        assert "1,500" in result.output

    def test_compare_unknown_snapshot(self, workspace):
        _import_all(workspace)
        result = invoke(workspace, "compare", "w1", "ghost")
        assert result.exit_code == 1
        assert "ghost" in result.output

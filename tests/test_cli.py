"""Tests for the command-line interface."""

import json
import os

import pytest

from dirsnap.cli import create_parser, main
from dirsnap.config import format_config, parse_config
from dirsnap.operations import (
    EXIT_CONFIG_ERROR,
    EXIT_STRUCTURAL_ERROR,
    EXIT_SUCCESS,
)


@pytest.fixture
def config_path(tmp_path, config):
    path = tmp_path / "config.toml"
    path.write_text(format_config(config))
    return path


def _backup(config_path, repository, source, capsys):
    assert main(["--config", str(config_path), "full_backup", str(repository), str(source)]) == EXIT_SUCCESS
    out = capsys.readouterr().out
    return out.strip().rsplit("/", 1)[-1]


class TestParser:

    def test_full_backup_arguments(self):
        args = create_parser().parse_args(["full_backup", "/repo", "/db"])
        assert args.command == "full_backup"
        assert str(args.repository) == "/repo"
        assert str(args.source) == "/db"

    def test_restore_arguments(self):
        args = create_parser().parse_args(["restore", "/repo", "/target", "20250101120000_FULL"])
        assert str(args.target) == "/target"
        assert args.snapshot_id == "20250101120000_FULL"

    def test_missing_argument_is_usage_error(self):
        with pytest.raises(SystemExit) as exc_info:
            create_parser().parse_args(["restore", "/repo"])
        assert exc_info.value.code == 2

    def test_no_command_prints_help(self, capsys):
        assert main([]) == EXIT_SUCCESS
        assert "usage: dirsnap" in capsys.readouterr().out


class TestCommands:

    def test_full_backup_prints_confirmation(self, tmp_path, scenario_tree, config_path, capsys):
        repository = tmp_path / "repo"

        code = main(["--config", str(config_path), "full_backup", str(repository), str(scenario_tree)])

        out = capsys.readouterr().out
        [snapshot] = [p for p in repository.iterdir() if not p.name.startswith(".")]
        assert code == EXIT_SUCCESS
        assert out.strip() == f"Backup completed successfully in {snapshot}"

    def test_restore_prints_confirmation(self, tmp_path, scenario_tree, config_path, capsys):
        repository = tmp_path / "repo"
        snapshot_id = _backup(config_path, repository, scenario_tree, capsys)
        target = tmp_path / "restored"

        code = main(["--config", str(config_path), "restore", str(repository), str(target), snapshot_id])

        out = capsys.readouterr().out
        assert code == EXIT_SUCCESS
        assert out.strip() == (
            f"Restore completed successfully from {repository / snapshot_id} to {target}"
        )
        assert (target / "a" / "file1").read_text() == "hello"
        assert os.readlink(target / "a" / "link1") == "/etc/passwd"

    def test_restore_missing_snapshot_fails(self, tmp_path, config_path, capsys):
        repository = tmp_path / "repo"
        repository.mkdir()
        target = tmp_path / "restored"

        code = main([
            "--config", str(config_path), "restore", str(repository), str(target), "20990101000000_FULL",
        ])

        assert code == EXIT_STRUCTURAL_ERROR
        assert "not found" in capsys.readouterr().err
        assert not target.exists()

    def test_missing_config_file(self, tmp_path, scenario_tree, capsys):
        code = main([
            "--config", str(tmp_path / "missing.toml"), "full_backup", str(tmp_path / "repo"), str(scenario_tree),
        ])
        assert code == EXIT_CONFIG_ERROR
        assert "Configuration error" in capsys.readouterr().err

    def test_list_json(self, tmp_path, scenario_tree, config_path, capsys):
        repository = tmp_path / "repo"
        snapshot_id = _backup(config_path, repository, scenario_tree, capsys)

        assert main(["--config", str(config_path), "list", str(repository), "--json"]) == EXIT_SUCCESS

        [entry] = json.loads(capsys.readouterr().out)
        assert entry["snapshot_id"] == snapshot_id
        assert entry["file_count"] == 1
        assert entry["size_bytes"] == 5

    def test_list_empty(self, tmp_path, config_path, capsys):
        assert main(["--config", str(config_path), "list", str(tmp_path / "repo")]) == EXIT_SUCCESS
        assert "No snapshots found." in capsys.readouterr().out

    def test_list_table(self, tmp_path, scenario_tree, config_path, capsys):
        repository = tmp_path / "repo"
        snapshot_id = _backup(config_path, repository, scenario_tree, capsys)

        main(["--config", str(config_path), "list", str(repository)])

        out = capsys.readouterr().out
        assert snapshot_id in out
        assert "Total: 1 snapshot(s)" in out

    def test_init_writes_default_config(self, tmp_path, capsys):
        path = tmp_path / "conf" / "config.toml"

        assert main(["--config", str(path), "init"]) == EXIT_SUCCESS
        assert parse_config(path).copy.chunk_size == 65536

    def test_init_refuses_overwrite(self, tmp_path, capsys):
        path = tmp_path / "config.toml"
        path.write_text("# mine\n")

        assert main(["--config", str(path), "init"]) != EXIT_SUCCESS
        assert path.read_text() == "# mine\n"

        assert main(["--config", str(path), "init", "--force"]) == EXIT_SUCCESS
        assert "[copy]" in path.read_text()

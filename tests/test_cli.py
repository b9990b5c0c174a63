"""Tests for the command-line interface."""

import argparse
from unittest.mock import patch

import pytest

from zynex import cli


@pytest.fixture
def run_cli(tmp_path, vms_dir, monkeypatch):
    """Run cli.main against temp directories with file logging disabled."""
    monkeypatch.delenv("VM_DIR", raising=False)
    monkeypatch.setattr(cli, "setup_logging", lambda *args, **kwargs: None)

    def _run(*argv):
        return cli.main(["--vms-dir", str(vms_dir), "--config", str(tmp_path / "none.json"), *argv])

    return _run


@pytest.fixture
def tools_present():
    with patch("shutil.which", side_effect=lambda name: f"/usr/bin/{name}"):
        yield


class TestDependencies:
    """Tests for the dependency gate."""

    def test_missing_tools_exit_1(self, run_cli, capsys):
        with patch("shutil.which", return_value=None):
            assert run_cli("list") == cli.EXIT_MISSING_DEPENDENCY
        assert "qemu-img" in capsys.readouterr().err

    def test_os_list_needs_no_tools(self, run_cli, capsys):
        with patch("shutil.which", return_value=None):
            assert run_cli("os-list") == cli.EXIT_OK
        assert "Ubuntu 24.04" in capsys.readouterr().out


@pytest.mark.usefixtures("tools_present")
class TestCommands:
    """Tests for the subcommands."""

    def test_list_empty(self, run_cli, capsys):
        assert run_cli("list") == cli.EXIT_OK
        assert "No VMs found" in capsys.readouterr().out

    def test_list_names(self, run_cli, make_vm, capsys):
        make_vm("beta")
        make_vm("alpha")
        assert run_cli("list") == cli.EXIT_OK
        out = capsys.readouterr().out
        assert out.index("alpha") < out.index("beta")

    def test_status(self, run_cli, make_vm, capsys):
        make_vm("alpha")
        with patch("psutil.process_iter", return_value=[]):
            assert run_cli("status") == cli.EXIT_OK
        out = capsys.readouterr().out
        assert "alpha" in out and "stopped" in out

    def test_start_missing_vm_fails(self, run_cli, capsys):
        assert run_cli("start", "ghost") == cli.EXIT_FAILED
        assert "ghost" in capsys.readouterr().err

    def test_stop_missing_vm_warns(self, run_cli, capsys):
        assert run_cli("stop", "ghost") == cli.EXIT_OK
        assert "not found" in capsys.readouterr().out

    def test_delete_missing_vm_warns(self, run_cli, capsys):
        assert run_cli("delete", "ghost") == cli.EXIT_OK
        captured = capsys.readouterr()
        assert "not found" in captured.out
        assert "RESOURCE ERROR" not in captured.err

    def test_create_unknown_os_fails(self, run_cli, vms_dir):
        assert run_cli("create", "vm1", "Unknown OS 99") == cli.EXIT_FAILED
        assert not vms_dir.exists()


class TestRunCommand:
    """Tests for run_command with an injected manager."""

    def test_create_options(self, manager, capsys):
        args = cli.build_parser().parse_args([
            "create", "web", "Debian 12", "--memory", "1024", "--forward", "8080:80", "--forward", "8443:443",
        ])
        assert cli.run_command(manager, args) == cli.EXIT_OK

        config = manager.get("web")
        assert config.memory_mb == 1024
        assert config.port_forwards == ["8080:80", "8443:443"]
        assert "created" in capsys.readouterr().out

    def test_parser_requires_name(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args(["start"])

    def test_no_command(self):
        args = cli.build_parser().parse_args([])
        assert isinstance(args, argparse.Namespace)
        assert args.command is None

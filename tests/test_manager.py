"""Tests for the lifecycle manager."""

import os
from unittest.mock import MagicMock, patch

import pytest

from zynex.lifecycle import (
    ConfigStore, LifecycleManager, ProcessHandle, VMConfig, VMExistsError,
    VMNotFoundError, VMRunningError,
)


@pytest.fixture
def supervisor():
    supervisor = MagicMock()
    supervisor.find_process.return_value = None
    supervisor.is_running.return_value = False
    return supervisor


@pytest.fixture
def manager(settings, store, provisioner, supervisor):
    return LifecycleManager(settings, store=store, provisioner=provisioner, supervisor=supervisor)


class TestList:
    """Tests for LifecycleManager.list and status."""

    def test_empty(self, manager):
        assert manager.list() == []
        assert manager.status() == []

    def test_alphabetical(self, manager, make_vm):
        for name in ["gamma", "alpha", "beta"]:
            make_vm(name)
        assert manager.list() == ["alpha", "beta", "gamma"]

    def test_status_reports_running(self, manager, make_vm, supervisor):
        make_vm("alpha")
        make_vm("beta")
        supervisor.is_running.side_effect = lambda config: config.name == "beta"
        assert manager.status() == [("alpha", False), ("beta", True)]


class TestCreate:
    """Tests for LifecycleManager.create."""

    def test_create_then_get(self, manager):
        config = manager.create("testvm1", "Ubuntu 24.04", {})
        assert manager.get("testvm1") == config
        assert manager.list() == ["testvm1"]

    def test_duplicate(self, manager):
        manager.create("vm1", "Ubuntu 24.04")
        with pytest.raises(VMExistsError):
            manager.create("vm1", "Ubuntu 24.04")


class TestStart:
    """Tests for LifecycleManager.start."""

    def test_not_found(self, manager, supervisor):
        with pytest.raises(VMNotFoundError):
            manager.start("ghost")
        supervisor.start.assert_not_called()

    def test_starts_stopped_vm(self, manager, make_vm, supervisor):
        config = make_vm("vm1")
        supervisor.start.return_value = ProcessHandle(name="vm1", pid=100)

        handle = manager.start("vm1")

        assert handle.pid == 100
        supervisor.start.assert_called_once_with(config)

    def test_already_running(self, manager, make_vm, supervisor):
        """Starting a running VM never launches a second hypervisor."""
        make_vm("vm1")
        supervisor.find_process.return_value = MagicMock(pid=777)

        handle = manager.start("vm1")

        assert handle.already_running is True
        assert handle.pid == 777
        assert handle.log_path.endswith("qemu.log")
        supervisor.start.assert_not_called()


class TestStop:
    """Tests for LifecycleManager.stop."""

    def test_not_found(self, manager):
        with pytest.raises(VMNotFoundError):
            manager.stop("ghost")

    def test_delegates(self, manager, make_vm, supervisor):
        make_vm("vm1")
        supervisor.stop.return_value = False
        assert manager.stop("vm1") is False


class TestDelete:
    """Tests for LifecycleManager.delete."""

    def test_not_found(self, manager):
        with pytest.raises(VMNotFoundError):
            manager.delete("ghost")

    def test_removes_everything(self, manager, vms_dir):
        manager.create("vm1", "Ubuntu 24.04")
        manager.delete("vm1")
        assert manager.list() == []
        assert not (vms_dir / "vm1").exists()

    def test_running_refused(self, manager, make_vm, supervisor, store):
        make_vm("vm1")
        supervisor.is_running.return_value = True

        with pytest.raises(VMRunningError):
            manager.delete("vm1")
        assert store.exists("vm1")
        supervisor.stop.assert_not_called()

    def test_force_stops_first(self, manager, make_vm, supervisor, store):
        config = make_vm("vm1")
        supervisor.is_running.return_value = True

        manager.delete("vm1", force=True)

        supervisor.stop.assert_called_once_with(config)
        assert not store.exists("vm1")

    def test_name_reusable_after_delete(self, manager):
        manager.create("vm1", "Ubuntu 24.04")
        manager.delete("vm1")
        assert manager.create("vm1", "Debian 12").os_family == "debian"


class TestCorruptRecord:
    """A VM with an unreadable config.json stays visible and removable."""

    @pytest.fixture
    def broken(self, vms_dir):
        vm_dir = vms_dir / "broken"
        vm_dir.mkdir(parents=True)
        (vm_dir / "config.json").write_text("{not json")
        (vm_dir / "disk.qcow2").write_bytes(b"QFI\xfb")
        return vm_dir

    def test_status_marks_unreadable(self, manager, make_vm, broken):
        make_vm("good")
        assert manager.list() == ["broken", "good"]
        assert manager.status() == [("broken", None), ("good", False)]

    def test_delete(self, manager, broken, store):
        manager.delete("broken", force=True)
        assert not store.exists("broken")
        assert not broken.exists()

    def test_running_hypervisor_found_by_disk(self, manager, broken, supervisor):
        supervisor.is_running.return_value = True

        with pytest.raises(VMRunningError):
            manager.delete("broken")
        checked = supervisor.is_running.call_args.args[0]
        assert checked.disk_path == str(broken / "disk.qcow2")
        assert broken.exists()

    def test_force_stops_by_disk(self, manager, broken, supervisor):
        supervisor.is_running.return_value = True

        manager.delete("broken", force=True)

        assert supervisor.stop.call_args.args[0].disk_path == str(broken / "disk.qcow2")
        assert not broken.exists()


class TestStoreRoot:
    """The supervisor follows the store's root, not the settings default."""

    def test_pid_file_beside_record(self, settings, tmp_path):
        other_root = tmp_path / "elsewhere"
        store = ConfigStore(str(other_root))
        manager = LifecycleManager(settings, store=store)
        store.save("vm1", VMConfig(name="vm1", disk_path=str(other_root / "vm1" / "disk.qcow2")))

        process = MagicMock(pid=4242)
        process.poll.return_value = None
        with patch("psutil.process_iter", return_value=[]), \
                patch("subprocess.Popen", return_value=process):
            manager.start("vm1")

        assert (other_root / "vm1" / "qemu.pid").read_text().strip() == "4242"
        assert not os.path.exists(settings["VMS_DIR"])

"""Shared test fixtures."""

import os

import pytest

from zynex.config import load_config
from zynex.lifecycle import ConfigStore, LifecycleManager, Provisioner, VMConfig
from zynex.lifecycle.vm_paths import get_vm_paths


class FakeDownloader:
    """Stands in for core_utils.download_file; records every call."""

    def __init__(self, payload=b"cloud-image" * 100, expected="match", error=None):
        self.payload = payload
        self.expected = len(payload) if expected == "match" else expected
        self.error = error
        self.calls = []

    def __call__(self, url, destination, **kwargs):
        self.calls.append((url, destination, kwargs))
        if self.error is not None:
            # Leave a partial file behind, like an interrupted transfer
            with open(destination, "wb") as f:
                f.write(self.payload[:10])
            raise self.error
        with open(destination, "wb") as f:
            f.write(self.payload)
        return len(self.payload), self.expected


class FakeRunner:
    """Stands in for core_utils.run_command; creates the qemu-img target file."""

    def __init__(self, error=None):
        self.error = error
        self.calls = []

    def __call__(self, cmd, check=True):
        self.calls.append(list(cmd))
        if self.error is not None:
            raise self.error
        # qemu-img create ... <disk> <size>
        with open(cmd[-2], "wb") as f:
            f.write(b"QFI\xfb")
        return ""


@pytest.fixture
def vms_dir(tmp_path):
    """VM root directory (not created)."""
    return tmp_path / "vms"


@pytest.fixture
def settings(tmp_path, vms_dir, monkeypatch):
    """Effective settings pointed at temp directories, with fast timeouts."""
    monkeypatch.delenv("VM_DIR", raising=False)
    monkeypatch.delenv("ZYNEX_CONFIG", raising=False)
    return load_config(
        str(tmp_path / "missing-config.json"),
        overrides={
            "VMS_DIR": str(vms_dir),
            "LOG_DIR": str(tmp_path / "logs"),
            "LAUNCH_SETTLE_SECONDS": 0,
            "STOP_TIMEOUT": 2,
            "SHOW_PROGRESS": False,
            "ENABLE_KVM": False,
        },
    )


@pytest.fixture
def store(vms_dir):
    return ConfigStore(str(vms_dir))


@pytest.fixture
def downloader():
    return FakeDownloader()


@pytest.fixture
def runner():
    return FakeRunner()


@pytest.fixture
def provisioner(store, settings, runner, downloader):
    return Provisioner(store, settings, runner=runner, downloader=downloader)


@pytest.fixture
def manager(settings, store, provisioner):
    return LifecycleManager(settings, store=store, provisioner=provisioner)


@pytest.fixture
def make_vm(store, vms_dir):
    """Write a config record directly, bypassing provisioning."""

    def _make(name, **kwargs):
        paths = get_vm_paths(str(vms_dir), name)
        kwargs.setdefault("os_family", "ubuntu")
        kwargs.setdefault("release_codename", "noble")
        kwargs.setdefault("disk_path", paths["disk"])
        kwargs.setdefault("base_image_path", paths["base"])
        config = VMConfig(name=name, **kwargs)
        store.save(name, config)
        return config

    return _make


def leftovers(directory):
    """Every file under directory, relative to it."""
    found = []
    for root, _dirs, files in os.walk(directory):
        for name in files:
            found.append(os.path.relpath(os.path.join(root, name), directory))
    return sorted(found)

"""
QEMU Command Builder Module

Turns a VMConfig into the hypervisor argv.
"""

import os
from typing import Any, Dict, List

from .config_store import VMConfig


def escape_option(value: str) -> str:
    """Escape a value for a QEMU -drive/-netdev option list (commas are doubled)."""
    return str(value).replace(",", ",,")


def split_options(arg: str) -> List[str]:
    """Split a QEMU option list on single commas, undoing escape_option."""
    parts, current, i = [], [], 0
    while i < len(arg):
        if arg[i] == ",":
            if arg[i + 1:i + 2] == ",":
                current.append(",")
                i += 2
                continue
            parts.append("".join(current))
            current = []
        else:
            current.append(arg[i])
        i += 1
    parts.append("".join(current))
    return parts


def kvm_available() -> bool:
    """True if /dev/kvm exists and is usable by this user."""
    return os.access("/dev/kvm", os.R_OK | os.W_OK)


def _netdev_arg(config: VMConfig) -> str:
    forwards = [f"hostfwd=tcp::{config.ssh_port}-:22"]
    for rule in config.port_forwards:
        host, guest = rule.split(':', 1)
        forwards.append(f"hostfwd=tcp::{host}-:{guest}")
    return ",".join(["user", "id=n0"] + forwards)


def build_qemu_command(config: VMConfig, settings: Dict[str, Any]) -> List[str]:
    """Builds the QEMU command list for running a provisioned VM."""
    qemu_cmd = [
        settings["QEMU_BINARY"],
        "-name", config.name,
        "-m", str(config.memory_mb),
        "-smp", str(config.cpu_count),
    ]

    if settings.get("ENABLE_KVM", True) and kvm_available():
        qemu_cmd.extend(["-enable-kvm", "-cpu", "host"])

    qemu_cmd.extend(["-drive", f"file={escape_option(config.disk_path)},format=qcow2,if=virtio"])

    # Seed images are prepared out of band; only attach one that exists
    if config.seed_path and os.path.exists(config.seed_path):
        qemu_cmd.extend(["-drive", f"file={escape_option(config.seed_path)},format=raw,if=virtio"])

    qemu_cmd.extend(["-boot", "order=c"])
    qemu_cmd.extend([
        "-device", "virtio-net-pci,netdev=n0",
        "-netdev", _netdev_arg(config),
    ])

    if config.gui_mode:
        qemu_cmd.extend(["-vga", "virtio", "-display", "gtk,gl=on"])
    else:
        qemu_cmd.append("-nographic")

    return qemu_cmd

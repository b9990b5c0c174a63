"""
VM Path Utilities Module

Every artifact of a VM lives in its own directory under the VM root, at a
path derived only from the VM name.
"""

import os
import re
from typing import Dict

VM_NAME_PATTERN = re.compile(r"^[a-zA-Z0-9_-]+$")


def is_valid_vm_name(vm_name) -> bool:
    """True if vm_name is letters, digits, hyphens and underscores only."""
    return isinstance(vm_name, str) and bool(VM_NAME_PATTERN.match(vm_name))


def get_vm_paths(vms_dir: str, vm_name: str) -> Dict[str, str]:
    """
    Returns a dictionary of paths for a given VM name.
    """
    vm_dir = os.path.abspath(os.path.join(vms_dir, vm_name))
    base = os.path.join(vm_dir, "base.img")
    return {
        "dir": vm_dir,
        "config": os.path.join(vm_dir, "config.json"),
        "disk": os.path.join(vm_dir, "disk.qcow2"),
        "base": base,
        "base_partial": base + ".part",
        "base_source": base + ".source",
        "seed": os.path.join(vm_dir, "seed.img"),
        "pid_file": os.path.join(vm_dir, "qemu.pid"),
        "log": os.path.join(vm_dir, "qemu.log"),
    }

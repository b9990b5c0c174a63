"""
Host dependency check for the external tools the manager drives.
"""

import shutil
from typing import Any, Dict, List

from .lifecycle.error_handling import DependencyError

INSTALL_HINTS = {
    'debian': "sudo apt install qemu-system-x86 qemu-utils",
    'ubuntu': "sudo apt install qemu-system-x86 qemu-utils",
    'fedora': "sudo dnf install qemu-system-x86 qemu-img",
    'arch': "sudo pacman -S qemu-desktop",
}


def required_binaries(settings: Dict[str, Any]) -> List[str]:
    return [settings['QEMU_BINARY'], settings['QEMU_IMG_BINARY']]


def check_dependencies(settings: Dict[str, Any]) -> List[str]:
    """Returns the required binaries that are not on PATH."""
    return [binary for binary in required_binaries(settings) if not shutil.which(binary)]


def detect_distro() -> str:
    """ID from /etc/os-release, or 'unknown'."""
    try:
        with open("/etc/os-release", "r", encoding='utf-8') as f:
            for line in f:
                if line.startswith("ID="):
                    return line.strip().split("=", 1)[1].lower().strip('"')
    except OSError:
        pass
    return "unknown"


def install_hint() -> str:
    return INSTALL_HINTS.get(detect_distro(), INSTALL_HINTS['ubuntu'])


def require_dependencies(settings: Dict[str, Any]):
    """
    Raises DependencyError naming every missing binary, with an install hint.
    """
    missing = check_dependencies(settings)
    if missing:
        raise DependencyError(
            f"Missing dependencies: {' '.join(missing)}",
            suggestions=[f"To fix this, try: {install_hint()}"],
            context={'missing': missing}
        )

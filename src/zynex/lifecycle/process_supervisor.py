"""
Hypervisor Process Supervision

Starts QEMU detached from the manager, records its PID, and finds it again
later to check or stop it. The PID file is only a hint: a process is treated
as the VM's hypervisor only if its command line references the VM's disk.
When the PID file is missing or stale, the process table is scanned for that
disk as a fallback.
"""

import os
import logging
import subprocess
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

import psutil

from ..core_utils import remove_file
from .config_store import VMConfig
from .error_handling import LaunchFailedError, ProcessError
from .qemu_builder import build_qemu_command, split_options
from .vm_paths import get_vm_paths

logger = logging.getLogger(__name__)


@dataclass
class ProcessHandle:
    """A launched (or already running) hypervisor process"""
    name: str
    pid: int
    command: List[str] = field(default_factory=list)
    log_path: Optional[str] = None
    started_at: datetime = field(default_factory=datetime.now)
    already_running: bool = False


def references_disk(cmdline: Iterable[str], disk_path: str) -> bool:
    """True if a QEMU-style argument in cmdline uses file=<disk_path>"""
    if not disk_path:
        return False
    needle = f"file={disk_path}"
    return any(needle in split_options(str(arg)) for arg in cmdline or [])


class ProcessSupervisor:
    """
    Launches and tracks hypervisor processes for VMs
    """

    def __init__(self, settings: Dict[str, Any], vms_dir: Optional[str] = None):
        self.settings = settings
        self.vms_dir = os.path.abspath(vms_dir or settings['VMS_DIR'])

    def _paths(self, config: VMConfig) -> Dict[str, str]:
        return get_vm_paths(self.vms_dir, config.name)

    def start(self, config: VMConfig) -> ProcessHandle:
        """
        Launch the hypervisor for config without waiting for it

        Raises:
            LaunchFailedError: The binary could not be executed, or it exited
                during the launch settle window
        """
        paths = self._paths(config)
        qemu_cmd = build_qemu_command(config, self.settings)
        os.makedirs(paths['dir'], exist_ok=True)

        logger.info(f"Launching VM '{config.name}': {' '.join(qemu_cmd)}")
        try:
            with open(paths['log'], 'ab') as log_file:
                process = subprocess.Popen(
                    qemu_cmd,
                    stdin=subprocess.DEVNULL,
                    stdout=log_file,
                    stderr=subprocess.STDOUT,
                    cwd=paths['dir'],
                    start_new_session=True
                )
        except OSError as e:
            raise LaunchFailedError(
                f"Could not launch hypervisor for VM '{config.name}': {e}",
                vm_name=config.name, original_exception=e
            )

        settle = float(self.settings.get('LAUNCH_SETTLE_SECONDS', 0) or 0)
        try:
            returncode = process.wait(timeout=settle) if settle > 0 else process.poll()
        except subprocess.TimeoutExpired:
            returncode = None

        if returncode is not None:
            raise LaunchFailedError(
                f"Hypervisor for VM '{config.name}' exited immediately with code {returncode}",
                vm_name=config.name, details=f"See {paths['log']}",
                suggestions=["Check the hypervisor log for the reason", "Verify the disk image is intact"]
            )

        self._write_pid_file(paths['pid_file'], process.pid)
        logger.info(f"VM '{config.name}' started with PID {process.pid}")
        return ProcessHandle(name=config.name, pid=process.pid, command=qemu_cmd, log_path=paths['log'])

    def stop(self, config: VMConfig) -> bool:
        """
        Terminate the hypervisor for config

        Returns:
            bool: True if a process was found and stopped, False if none was running
        """
        process = self.find_process(config)
        if process is None:
            logger.info(f"VM '{config.name}' is not running")
            return False

        timeout = self.settings.get('STOP_TIMEOUT', 10)
        try:
            process.terminate()
            logger.info(f"Sent SIGTERM to VM '{config.name}' (PID: {process.pid})")
            try:
                process.wait(timeout=timeout)
            except psutil.TimeoutExpired:
                logger.warning(f"VM '{config.name}' did not respond to SIGTERM in {timeout}s, using SIGKILL")
                process.kill()
                process.wait(timeout=5)
        except psutil.NoSuchProcess:
            logger.info(f"Process for VM '{config.name}' was already terminated")
        except (psutil.AccessDenied, psutil.TimeoutExpired) as e:
            raise ProcessError(
                f"Failed to stop VM '{config.name}' (PID: {process.pid}): {e}",
                vm_name=config.name, original_exception=e
            )

        remove_file(self._paths(config)['pid_file'])
        return True

    def is_running(self, config: VMConfig) -> bool:
        """True if a hypervisor process for config is alive"""
        return self.find_process(config) is not None

    def find_process(self, config: VMConfig) -> Optional[psutil.Process]:
        """Locate the hypervisor process backing config's disk, if any"""
        pid_file = self._paths(config)['pid_file']
        pid = self._read_pid_file(pid_file)
        if pid is not None:
            process = self._match_pid(pid, config.disk_path)
            if process is not None:
                return process
            logger.info(f"Removing stale PID file for VM '{config.name}' (PID: {pid})")
            remove_file(pid_file)

        process = self._scan_for_disk(config.disk_path)
        if process is not None:
            logger.warning(
                f"Found VM '{config.name}' by scanning the process table (PID: {process.pid}); "
                f"its PID file was missing or stale"
            )
            self._write_pid_file(pid_file, process.pid)
        return process

    def _match_pid(self, pid: int, disk_path: str) -> Optional[psutil.Process]:
        try:
            process = psutil.Process(pid)
            if process.status() == psutil.STATUS_ZOMBIE:
                return None
            if references_disk(process.cmdline(), disk_path):
                return process
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            pass
        return None

    def _scan_for_disk(self, disk_path: str) -> Optional[psutil.Process]:
        own_pid = os.getpid()
        for process in psutil.process_iter(['pid', 'cmdline']):
            try:
                if process.info['pid'] == own_pid:
                    continue
                if not references_disk(process.info.get('cmdline'), disk_path):
                    continue
                if process.status() == psutil.STATUS_ZOMBIE:
                    continue
                return process
            except (psutil.NoSuchProcess, psutil.AccessDenied):
                continue
        return None

    @staticmethod
    def _read_pid_file(pid_file: str) -> Optional[int]:
        try:
            with open(pid_file, 'r', encoding='utf-8') as f:
                return int(f.read().strip())
        except FileNotFoundError:
            return None
        except (OSError, ValueError):
            logger.warning(f"Ignoring unreadable PID file {pid_file}")
            return None

    @staticmethod
    def _write_pid_file(pid_file: str, pid: int):
        with open(pid_file, 'w', encoding='utf-8') as f:
            f.write(f"{pid}\n")

"""
VM Lifecycle Manager

Orchestrates the config store, provisioner and process supervisor. A VM moves
through Absent -> Created -> {Running, Stopped} -> Absent; the state is
observed from the config record and the process table, never stored.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from ..core_utils import remove_dir
from .config_store import ConfigStore, VMConfig
from .error_handling import CorruptConfigError, VMRunningError
from .process_supervisor import ProcessHandle, ProcessSupervisor
from .provisioner import Provisioner
from .vm_paths import get_vm_paths

logger = logging.getLogger(__name__)


class LifecycleManager:
    """
    Entry point for every VM operation
    """

    def __init__(self, settings: Dict[str, Any],
                 store: Optional[ConfigStore] = None,
                 provisioner: Optional[Provisioner] = None,
                 supervisor: Optional[ProcessSupervisor] = None):
        self.settings = settings
        self.store = store or ConfigStore(settings['VMS_DIR'])
        # Records, disks and PID files all live under the store's root
        self.vms_dir = self.store.vms_dir
        self.provisioner = provisioner or Provisioner(self.store, settings)
        self.supervisor = supervisor or ProcessSupervisor(settings, vms_dir=self.vms_dir)

    def list(self) -> List[str]:
        """All VM names, sorted, regardless of running state"""
        return self.store.list()

    def status(self) -> List[Tuple[str, Optional[bool]]]:
        """
        (name, is_running) for every VM

        is_running is None for a VM whose record cannot be read.
        """
        rows = []
        for name in self.store.list():
            try:
                config = self.store.load(name)
            except CorruptConfigError as e:
                logger.warning(f"Unreadable config for VM '{name}': {e}")
                rows.append((name, None))
                continue
            rows.append((name, self.supervisor.is_running(config)))
        return rows

    def get(self, vm_name: str) -> VMConfig:
        return self.store.load(vm_name)

    def create(self, vm_name: str, os_label: str, options: Optional[Dict[str, Any]] = None) -> VMConfig:
        """Absent -> Created"""
        return self.provisioner.create(vm_name, os_label, options)

    def start(self, vm_name: str) -> ProcessHandle:
        """
        Created|Stopped -> Running

        Never launches a second hypervisor on the same disk: if one is already
        running, its handle is returned with already_running set.
        """
        config = self.store.load(vm_name)
        process = self.supervisor.find_process(config)
        if process is not None:
            logger.info(f"VM '{vm_name}' is already running (PID: {process.pid})")
            return ProcessHandle(name=vm_name, pid=process.pid, already_running=True,
                                 log_path=get_vm_paths(self.vms_dir, vm_name)['log'])
        return self.supervisor.start(config)

    def stop(self, vm_name: str) -> bool:
        """
        Running -> Stopped

        Returns:
            bool: False if the VM was not running
        """
        config = self.store.load(vm_name)
        return self.supervisor.stop(config)

    def is_running(self, vm_name: str) -> bool:
        return self.supervisor.is_running(self.store.load(vm_name))

    def delete(self, vm_name: str, force: bool = False):
        """
        Created|Stopped -> Absent

        A running VM is refused with VMRunningError unless force is set, in
        which case it is stopped first. A VM whose record is corrupt can still
        be deleted; its hypervisor is then looked up by disk path alone.
        """
        try:
            config = self.store.load(vm_name)
        except CorruptConfigError as e:
            logger.warning(f"Deleting VM '{vm_name}' with an unreadable config: {e}")
            paths = get_vm_paths(self.vms_dir, vm_name)
            config = VMConfig(name=vm_name, disk_path=paths['disk'], base_image_path=paths['base'])
        if self.supervisor.is_running(config):
            if not force:
                raise VMRunningError(vm_name)
            logger.info(f"Stopping VM '{vm_name}' before deleting it")
            self.supervisor.stop(config)

        self.store.delete(vm_name)
        remove_dir(get_vm_paths(self.vms_dir, vm_name)['dir'])
        logger.info(f"Deleted VM '{vm_name}'")


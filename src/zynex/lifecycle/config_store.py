"""
VM Configuration Store

One JSON record per VM, stored at <vms_dir>/<name>/config.json. The record is
the durable source of truth for everything the manager knows about a VM.
"""

import os
import json
import logging
import tempfile
from dataclasses import dataclass, asdict, field, fields
from datetime import datetime
from typing import Dict, List, Optional, Any

from .error_handling import (
    ConfigurationError, CorruptConfigError, InvalidNameError, VMNotFoundError
)
from .vm_paths import get_vm_paths, is_valid_vm_name

logger = logging.getLogger(__name__)


@dataclass
class VMConfig:
    """Persistent configuration of a single VM"""
    name: str
    os_family: str = ""
    release_codename: str = ""
    image_source_url: str = ""
    disk_path: str = ""
    base_image_path: str = ""
    seed_path: Optional[str] = None
    hostname: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    disk_size: str = "20G"
    memory_mb: int = 2048
    cpu_count: int = 2
    ssh_port: int = 2222
    gui_mode: bool = False
    port_forwards: List[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=lambda: datetime.now().replace(microsecond=0))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization"""
        data = asdict(self)
        data['created_at'] = self.created_at.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'VMConfig':
        """
        Create a VMConfig from a dictionary

        Unknown keys are dropped; missing keys take their defaults, so every
        record starts from a clean slate.
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            logger.warning(f"Ignoring unknown config keys for VM '{data.get('name')}': {', '.join(unknown)}")

        values = {k: v for k, v in data.items() if k in known}
        if not values.get('name'):
            raise CorruptConfigError("VM config record has no 'name'")

        created = values.get('created_at')
        if isinstance(created, str):
            try:
                values['created_at'] = datetime.fromisoformat(created)
            except ValueError as e:
                raise CorruptConfigError(
                    f"Invalid created_at '{created}'", vm_name=values['name'], original_exception=e
                )
        elif created is None:
            values.pop('created_at', None)

        if values.get('port_forwards') is None:
            values.pop('port_forwards', None)
        return cls(**values)


class ConfigStore:
    """
    Reads and writes VM config records under a VM root directory
    """

    def __init__(self, vms_dir: str):
        self.vms_dir = os.path.abspath(vms_dir)

    def _config_path(self, vm_name: str) -> str:
        return get_vm_paths(self.vms_dir, vm_name)['config']

    def exists(self, vm_name: str) -> bool:
        """True if a record is stored for vm_name"""
        return is_valid_vm_name(vm_name) and os.path.isfile(self._config_path(vm_name))

    def list(self) -> List[str]:
        """Names of all stored VMs, sorted lexicographically"""
        if not os.path.isdir(self.vms_dir):
            return []
        return sorted(
            entry for entry in os.listdir(self.vms_dir)
            if is_valid_vm_name(entry) and os.path.isfile(self._config_path(entry))
        )

    def load(self, vm_name: str) -> VMConfig:
        """
        Load the record for vm_name

        Raises:
            VMNotFoundError: No record exists
            CorruptConfigError: The record is not a valid JSON object
        """
        if not self.exists(vm_name):
            raise VMNotFoundError(vm_name)

        path = self._config_path(vm_name)
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except FileNotFoundError:
            raise VMNotFoundError(vm_name)
        except ValueError as e:
            raise CorruptConfigError(
                f"Config for VM '{vm_name}' is not valid JSON: {e}",
                vm_name=vm_name, details=path, original_exception=e
            )

        if not isinstance(data, dict):
            raise CorruptConfigError(
                f"Config for VM '{vm_name}' is not a JSON object", vm_name=vm_name, details=path
            )
        data.setdefault('name', vm_name)
        config = VMConfig.from_dict(data)
        if config.name != vm_name:
            raise CorruptConfigError(
                f"Config at {path} names VM '{config.name}', expected '{vm_name}'", vm_name=vm_name
            )
        return config

    def save(self, vm_name: str, config: VMConfig):
        """
        Write the record for vm_name, replacing any previous one atomically
        """
        if not is_valid_vm_name(vm_name):
            raise InvalidNameError(vm_name)
        if config.name != vm_name:
            raise ConfigurationError(
                f"Refusing to save config named '{config.name}' under '{vm_name}'", vm_name=vm_name
            )

        path = self._config_path(vm_name)
        directory = os.path.dirname(path)
        os.makedirs(directory, exist_ok=True)

        fd, tmp_path = tempfile.mkstemp(prefix='.config.', suffix='.tmp', dir=directory)
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(config.to_dict(), f, indent=2, sort_keys=True)
                f.write('\n')
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise
        logger.info(f"Saved config for VM '{vm_name}' to {path}")

    def delete(self, vm_name: str) -> bool:
        """
        Remove the record for vm_name

        Returns:
            bool: True if a record was removed, False if there was none
        """
        if not is_valid_vm_name(vm_name):
            return False
        try:
            os.remove(self._config_path(vm_name))
        except FileNotFoundError:
            return False
        logger.info(f"Deleted config for VM '{vm_name}'")
        return True

"""
VM Provisioning Module

Creates a new VM: validates the request, resolves the catalog entry,
allocates the writable disk, fetches the base cloud image and finally writes
the config record. The record is written last, so a VM either has a record
and all of its artifacts, or neither.
"""

import os
import re
import logging
import subprocess
from typing import Any, Callable, Dict, List, Optional

import requests

from ..core_utils import run_command, download_file, remove_file
from . import catalog
from .catalog import CatalogEntry
from .config_store import ConfigStore, VMConfig
from .error_handling import (
    InvalidNameError, VMExistsError, UnknownOSError, ValidationError,
    StorageError, DownloadFailedError, PartialArtifactError
)
from .vm_paths import get_vm_paths, is_valid_vm_name

logger = logging.getLogger(__name__)

DISK_SIZE_PATTERN = re.compile(r"^[0-9]+[GgMm]$")
USERNAME_PATTERN = re.compile(r"^[a-z_][a-z0-9_-]*$")
MIN_PORT, MAX_PORT = 23, 65535

OPTION_KEYS = frozenset({
    'disk_size', 'memory_mb', 'cpu_count', 'ssh_port', 'gui_mode', 'port_forwards',
    'hostname', 'username', 'password', 'seed_path',
})


def _positive_int(vm_name, key, value) -> int:
    text = str(value).strip()
    if isinstance(value, bool) or not text.isdigit() or int(text) <= 0:
        raise ValidationError(f"{key} must be a positive number, got '{value}'", vm_name=vm_name)
    return int(text)


def _port(vm_name, key, value) -> int:
    text = str(value).strip()
    if isinstance(value, bool) or not text.isdigit() or not MIN_PORT <= int(text) <= MAX_PORT:
        raise ValidationError(
            f"{key} must be a valid port number ({MIN_PORT}-{MAX_PORT}), got '{value}'", vm_name=vm_name
        )
    return int(text)


TRUE_WORDS = frozenset({'1', 'true', 'yes', 'y', 'on'})
FALSE_WORDS = frozenset({'', '0', 'false', 'no', 'n', 'off'})


def _flag(vm_name, key, value) -> bool:
    if value is None or isinstance(value, bool):
        return bool(value)
    text = str(value).strip().lower()
    if text in TRUE_WORDS:
        return True
    if text in FALSE_WORDS:
        return False
    raise ValidationError(f"{key} must be yes or no, got '{value}'", vm_name=vm_name)


def parse_port_forwards(vm_name: str, value) -> List[str]:
    """
    Normalize port forward rules to a list of "host:guest" strings

    Accepts a list of rules or a single comma-separated string.
    """
    if value is None or value == "":
        return []
    rules = value.split(',') if isinstance(value, str) else list(value)

    normalized = []
    for rule in rules:
        rule = str(rule).strip()
        if not rule:
            continue
        host, sep, guest = rule.partition(':')
        if not sep:
            raise ValidationError(f"Port forward '{rule}' must look like HOST:GUEST", vm_name=vm_name)
        normalized.append(f"{_port(vm_name, 'host port', host)}:{_port(vm_name, 'guest port', guest)}")
    return normalized


def _read_source(source_file: str) -> Optional[str]:
    try:
        with open(source_file, 'r', encoding='utf-8') as f:
            return f.read().strip()
    except OSError:
        return None


class Provisioner:
    """
    Builds new VMs from catalog images
    """

    def __init__(self, store: ConfigStore, settings: Dict[str, Any],
                 runner: Callable[..., str] = run_command,
                 downloader: Callable[..., Any] = download_file):
        self.store = store
        self.settings = settings
        self._run = runner
        self._download = downloader

    def create(self, vm_name: str, os_label: str, options: Optional[Dict[str, Any]] = None) -> VMConfig:
        """
        Provision a VM and persist its config

        Raises:
            InvalidNameError, VMExistsError, UnknownOSError, ValidationError,
            StorageError, DownloadFailedError (or PartialArtifactError)
        """
        if not is_valid_vm_name(vm_name):
            raise InvalidNameError(str(vm_name))
        if self.store.exists(vm_name):
            raise VMExistsError(vm_name)

        try:
            entry = catalog.resolve(os_label)
        except UnknownOSError as e:
            e.context['vm_name'] = vm_name
            raise

        opts = self._validate_options(vm_name, options or {})
        paths = get_vm_paths(self.store.vms_dir, vm_name)
        os.makedirs(paths['dir'], exist_ok=True)

        base_created = False
        try:
            self._allocate_disk(vm_name, paths, opts['disk_size'])
            base_created = self._fetch_base_image(vm_name, entry, paths)
            config = self._build_config(vm_name, entry, paths, opts)
            self.store.save(vm_name, config)
        except BaseException:
            logger.error(f"Provisioning of VM '{vm_name}' failed, removing its artifacts")
            self._discard_artifacts(paths, keep_base=not base_created)
            raise

        logger.info(f"Created VM '{vm_name}' ({entry.label}) at {paths['dir']}")
        return config

    def _validate_options(self, vm_name: str, options: Dict[str, Any]) -> Dict[str, Any]:
        unknown = sorted(set(options) - OPTION_KEYS)
        if unknown:
            raise ValidationError(f"Unknown option(s): {', '.join(unknown)}", vm_name=vm_name)

        def pick(key, default):
            value = options.get(key)
            return default if value is None or value == "" else value

        disk_size = str(pick('disk_size', self.settings['DEFAULT_DISK_SIZE'])).strip()
        if not DISK_SIZE_PATTERN.match(disk_size):
            raise ValidationError(
                f"Disk size must be a size with unit (e.g., 100G, 512M), got '{disk_size}'", vm_name=vm_name
            )

        username = options.get('username')
        if username and not USERNAME_PATTERN.match(username):
            raise ValidationError(
                "Username must start with a letter or underscore, and contain only "
                "letters, numbers, hyphens, and underscores", vm_name=vm_name
            )

        return {
            'disk_size': disk_size.upper(),
            'memory_mb': _positive_int(vm_name, 'memory_mb', pick('memory_mb', self.settings['DEFAULT_MEMORY_MB'])),
            'cpu_count': _positive_int(vm_name, 'cpu_count', pick('cpu_count', self.settings['DEFAULT_CPUS'])),
            'ssh_port': _port(vm_name, 'ssh_port', pick('ssh_port', self.settings['DEFAULT_SSH_PORT'])),
            'gui_mode': _flag(vm_name, 'gui_mode', options.get('gui_mode')),
            'port_forwards': parse_port_forwards(vm_name, options.get('port_forwards')),
            'hostname': options.get('hostname') or None,
            'username': username or None,
            'password': options.get('password') or None,
            'seed_path': options.get('seed_path') or None,
        }

    def _allocate_disk(self, vm_name: str, paths: Dict[str, str], disk_size: str):
        """Create the writable qcow2 overlay on top of the (future) base image"""
        cmd = [
            self.settings['QEMU_IMG_BINARY'], "create", "-f", "qcow2",
            "-F", "qcow2", "-u", "-b", paths['base'],
            paths['disk'], disk_size
        ]
        try:
            self._run(cmd)
        except FileNotFoundError as e:
            raise StorageError(
                f"'{cmd[0]}' not found while allocating disk for VM '{vm_name}'",
                vm_name=vm_name, original_exception=e
            )
        except subprocess.CalledProcessError as e:
            raise StorageError(
                f"Failed to allocate {disk_size} disk for VM '{vm_name}'",
                vm_name=vm_name, details=(e.stderr or "").strip() or None, original_exception=e
            )
        logger.info(f"Allocated {disk_size} disk for VM '{vm_name}' at {paths['disk']}")

    def _fetch_base_image(self, vm_name: str, entry: CatalogEntry, paths: Dict[str, str]) -> bool:
        """
        Download the cloud image via a .part file that is renamed only when complete

        A base image left by an interrupted create is reused only if its
        .source marker names the same URL.

        Returns:
            bool: True if this call downloaded the base image, False if it was reused
        """
        base, partial, source = paths['base'], paths['base_partial'], paths['base_source']
        url = entry.image_url

        if os.path.exists(partial):
            logger.warning(f"Removing partial image left by an interrupted create: {partial}")
            remove_file(partial)
        if os.path.isfile(base):
            if _read_source(source) == url:
                logger.info(f"Reusing existing base image for VM '{vm_name}': {base}")
                return False
            logger.warning(f"Discarding base image for VM '{vm_name}' that was not fetched from {url}")
            remove_file(base)
            remove_file(source)

        context = {'url': url}
        try:
            written, expected = self._download(
                url, partial,
                timeout=self.settings['DOWNLOAD_TIMEOUT'],
                chunk_size=self.settings['DOWNLOAD_CHUNK_SIZE'],
                show_progress=self.settings.get('SHOW_PROGRESS', True),
            )
        except requests.exceptions.RequestException as e:
            remove_file(partial)
            raise DownloadFailedError(
                f"Failed to download image for VM '{vm_name}': {e}",
                vm_name=vm_name, context=context, original_exception=e
            )
        except OSError as e:
            remove_file(partial)
            raise DownloadFailedError(
                f"Failed to write image for VM '{vm_name}': {e}",
                vm_name=vm_name, context=context, original_exception=e
            )

        if expected is not None and written != expected:
            remove_file(partial)
            raise PartialArtifactError(
                f"Image download for VM '{vm_name}' was truncated ({written} of {expected} bytes)",
                vm_name=vm_name, context=context
            )
        if written == 0:
            remove_file(partial)
            raise DownloadFailedError(f"Image download for VM '{vm_name}' was empty", vm_name=vm_name, context=context)

        # Marker first, so a base.img on disk never outlives a missing or older marker
        with open(source, 'w', encoding='utf-8') as f:
            f.write(f"{url}\n")
        os.replace(partial, base)
        return True

    def _build_config(self, vm_name: str, entry: CatalogEntry, paths: Dict[str, str], opts: Dict[str, Any]) -> VMConfig:
        return VMConfig(
            name=vm_name,
            os_family=entry.family,
            release_codename=entry.codename,
            image_source_url=entry.image_url,
            disk_path=paths['disk'],
            base_image_path=paths['base'],
            seed_path=opts['seed_path'],
            hostname=opts['hostname'] or entry.default_hostname,
            username=opts['username'] or entry.default_username,
            password=opts['password'] or entry.default_password,
            disk_size=opts['disk_size'],
            memory_mb=opts['memory_mb'],
            cpu_count=opts['cpu_count'],
            ssh_port=opts['ssh_port'],
            gui_mode=opts['gui_mode'],
            port_forwards=opts['port_forwards'],
        )

    def _discard_artifacts(self, paths: Dict[str, str], keep_base: bool = False):
        keys = ['disk', 'base_partial']
        if not keep_base:
            keys += ['base', 'base_source']
        for key in keys:
            try:
                remove_file(paths[key])
            except OSError as e:
                logger.warning(f"Could not remove {paths[key]}: {e}")
        try:
            os.rmdir(paths['dir'])
        except OSError:
            # Directory holds files we did not create
            pass

"""
Configuration module for Zynex

This module provides configuration settings for the application. Settings are
built fresh by load_config() and handed to each component, so nothing below
the CLI reads process-wide state.
"""

import os
import json
import logging
from typing import Dict, Any, Optional

logger = logging.getLogger(__name__)

# Default configuration
DEFAULT_CONFIG = {
    'VMS_DIR': os.path.join(os.path.expanduser('~'), 'vms'),
    'LOG_DIR': os.path.join(os.path.expanduser('~'), '.local', 'state', 'zynex', 'logs'),
    'LOG_LEVEL': 'INFO',
    'QEMU_BINARY': 'qemu-system-x86_64',
    'QEMU_IMG_BINARY': 'qemu-img',
    'DEFAULT_DISK_SIZE': '20G',
    'DEFAULT_MEMORY_MB': 2048,
    'DEFAULT_CPUS': 2,
    'DEFAULT_SSH_PORT': 2222,
    'ENABLE_KVM': True,
    'DOWNLOAD_TIMEOUT': 30,
    'DOWNLOAD_CHUNK_SIZE': 1024 * 1024,
    'SHOW_PROGRESS': True,
    # Seconds to wait after launch before declaring the hypervisor alive
    'LAUNCH_SETTLE_SECONDS': 0.5,
    # Seconds between SIGTERM and SIGKILL when stopping a VM
    'STOP_TIMEOUT': 10,
}

DEFAULT_CONFIG_FILE = os.path.join(os.path.expanduser('~'), '.config', 'zynex', 'config.json')


def get_config_file() -> str:
    """Path of the user config file, honouring ZYNEX_CONFIG."""
    return os.environ.get('ZYNEX_CONFIG') or DEFAULT_CONFIG_FILE


def load_config(config_file: Optional[str] = None, overrides: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    Build the effective configuration

    Precedence, lowest first: built-in defaults, the JSON config file, the
    VM_DIR environment variable, then explicit overrides.

    Args:
        config_file: JSON file to read instead of the default location
        overrides: Values that win over everything else (e.g. CLI flags)

    Returns:
        Dict[str, Any]: A new configuration dictionary
    """
    config = dict(DEFAULT_CONFIG)
    config_file = config_file or get_config_file()

    if os.path.exists(config_file):
        try:
            with open(config_file, 'r', encoding='utf-8') as f:
                user_config = json.load(f)
        except (OSError, ValueError) as e:
            logger.error(f"Failed to load configuration from {config_file}: {e}")
        else:
            if isinstance(user_config, dict):
                config.update(user_config)
                logger.info(f"Loaded configuration from {config_file}")
            else:
                logger.error(f"Ignoring {config_file}: top level must be a JSON object")
    else:
        logger.debug(f"Configuration file {config_file} not found, using defaults")

    env_vms_dir = os.environ.get('VM_DIR')
    if env_vms_dir:
        config['VMS_DIR'] = env_vms_dir

    if overrides:
        config.update({k: v for k, v in overrides.items() if v is not None})

    config['VMS_DIR'] = os.path.abspath(os.path.expanduser(config['VMS_DIR']))
    config['LOG_DIR'] = os.path.abspath(os.path.expanduser(config['LOG_DIR']))
    return config

"""
VM Lifecycle Management

Config records, the OS catalog, provisioning, hypervisor supervision and the
manager that ties them together.
"""

from .catalog import CatalogEntry, OS_CATALOG, resolve, list_labels
from .config_store import ConfigStore, VMConfig
from .error_handling import (
    ZynexError, ErrorSeverity, ErrorCategory, get_error_handler,
    ConfigurationError, ResourceError, NetworkError, StorageError,
    ProcessError, ValidationError, DependencyError,
    InvalidNameError, VMNotFoundError, VMExistsError, UnknownOSError,
    CorruptConfigError, DownloadFailedError, PartialArtifactError,
    LaunchFailedError, VMRunningError
)
from .manager import LifecycleManager
from .process_supervisor import ProcessHandle, ProcessSupervisor
from .provisioner import Provisioner

__all__ = [
    'LifecycleManager', 'Provisioner', 'ProcessSupervisor', 'ProcessHandle',
    'ConfigStore', 'VMConfig', 'CatalogEntry', 'OS_CATALOG', 'resolve', 'list_labels',
    # Error handling exports
    'ZynexError', 'ErrorSeverity', 'ErrorCategory', 'get_error_handler',
    'ConfigurationError', 'ResourceError', 'NetworkError', 'StorageError',
    'ProcessError', 'ValidationError', 'DependencyError',
    'InvalidNameError', 'VMNotFoundError', 'VMExistsError', 'UnknownOSError',
    'CorruptConfigError', 'DownloadFailedError', 'PartialArtifactError',
    'LaunchFailedError', 'VMRunningError',
]

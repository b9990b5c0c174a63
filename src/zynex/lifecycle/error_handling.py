"""
Error Handling and Messaging System for VM lifecycle operations

Every failure raised by the lifecycle core is a ZynexError carrying a stable
code, a category, a severity and the name of the VM it concerns. The CLI hands
caught errors to the ErrorHandler, which logs them and renders them with rich.
"""

import logging
from enum import Enum
from typing import Dict, List, Optional, Any
from dataclasses import dataclass, field

from rich.console import Console
from rich.panel import Panel

from ..core_utils import print_warning

console = Console(stderr=True)
logger = logging.getLogger(__name__)


class ErrorSeverity(Enum):
    """Error severity levels for classification"""
    WARNING = "warning"     # Warning that doesn't prevent operation
    ERROR = "error"         # Error that prevents current operation
    CRITICAL = "critical"   # Critical error that affects system stability


class ErrorCategory(Enum):
    """Error categories for systematic classification"""
    CONFIGURATION = "configuration"
    RESOURCE = "resource"
    NETWORK = "network"
    STORAGE = "storage"
    PROCESS = "process"
    VALIDATION = "validation"
    DEPENDENCY = "dependency"
    UNKNOWN = "unknown"


@dataclass
class ErrorInfo:
    """Comprehensive error information structure"""
    message: str
    code: str
    severity: ErrorSeverity
    category: ErrorCategory
    details: Optional[str] = None
    suggestions: List[str] = field(default_factory=list)
    exception: Optional[BaseException] = None
    context: Dict[str, Any] = field(default_factory=dict)


class ZynexError(Exception):
    """Base exception class for all Zynex errors"""

    kind = "Error"

    def __init__(self,
                 message: str,
                 code: str = "ZYNEX-E000",
                 severity: ErrorSeverity = ErrorSeverity.ERROR,
                 category: ErrorCategory = ErrorCategory.UNKNOWN,
                 vm_name: Optional[str] = None,
                 details: Optional[str] = None,
                 suggestions: List[str] = None,
                 context: Dict[str, Any] = None,
                 original_exception: BaseException = None):
        context = dict(context or {})
        if vm_name is not None:
            context['vm_name'] = vm_name
        self.error_info = ErrorInfo(
            message=message,
            code=code,
            severity=severity,
            category=category,
            details=details,
            suggestions=list(suggestions or []),
            exception=original_exception,
            context=context
        )
        super().__init__(message)

    @property
    def code(self) -> str:
        return self.error_info.code

    @property
    def severity(self) -> ErrorSeverity:
        return self.error_info.severity

    @property
    def category(self) -> ErrorCategory:
        return self.error_info.category

    @property
    def suggestions(self) -> List[str]:
        return self.error_info.suggestions

    @property
    def details(self) -> Optional[str]:
        return self.error_info.details

    @property
    def context(self) -> Dict[str, Any]:
        return self.error_info.context

    @property
    def vm_name(self) -> Optional[str]:
        """Name of the VM the error concerns, if any"""
        return self.error_info.context.get('vm_name')


# Category base classes
class ConfigurationError(ZynexError):
    """Configuration-related errors"""
    kind = "Configuration"

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault('category', ErrorCategory.CONFIGURATION)
        kwargs.setdefault('code', 'ZYNEX-E200')
        super().__init__(message, **kwargs)


class ResourceError(ZynexError):
    """Resource availability errors"""
    kind = "Resource"

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault('category', ErrorCategory.RESOURCE)
        kwargs.setdefault('code', 'ZYNEX-E300')
        super().__init__(message, **kwargs)


class NetworkError(ZynexError):
    """Network-related errors"""
    kind = "Network"

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault('category', ErrorCategory.NETWORK)
        kwargs.setdefault('code', 'ZYNEX-E500')
        super().__init__(message, **kwargs)


class StorageError(ZynexError):
    """Disk artifact errors"""
    kind = "Storage"

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault('category', ErrorCategory.STORAGE)
        kwargs.setdefault('code', 'ZYNEX-E600')
        super().__init__(message, **kwargs)


class ProcessError(ZynexError):
    """Process management errors"""
    kind = "Process"

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault('category', ErrorCategory.PROCESS)
        kwargs.setdefault('code', 'ZYNEX-E700')
        super().__init__(message, **kwargs)


class ValidationError(ZynexError):
    """Input validation errors"""
    kind = "Validation"

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault('category', ErrorCategory.VALIDATION)
        kwargs.setdefault('code', 'ZYNEX-E800')
        super().__init__(message, **kwargs)


class DependencyError(ZynexError):
    """Missing dependency errors"""
    kind = "Dependency"

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault('category', ErrorCategory.DEPENDENCY)
        kwargs.setdefault('code', 'ZYNEX-E901')
        super().__init__(message, **kwargs)


# Lifecycle errors
class InvalidNameError(ValidationError):
    kind = "InvalidName"

    def __init__(self, vm_name: str, **kwargs):
        kwargs.setdefault('code', 'ZYNEX-E801')
        kwargs.setdefault('suggestions', [
            "VM names can only contain letters, numbers, hyphens, and underscores"
        ])
        super().__init__(f"Invalid VM name '{vm_name}'", vm_name=vm_name, **kwargs)


class VMNotFoundError(ResourceError):
    kind = "NotFound"

    def __init__(self, vm_name: str, **kwargs):
        kwargs.setdefault('code', 'ZYNEX-E301')
        kwargs.setdefault('suggestions', ["Run 'zynex list' to see the configured VMs"])
        super().__init__(f"Configuration for VM '{vm_name}' not found", vm_name=vm_name, **kwargs)


class VMExistsError(ResourceError):
    kind = "AlreadyExists"

    def __init__(self, vm_name: str, **kwargs):
        kwargs.setdefault('code', 'ZYNEX-E302')
        kwargs.setdefault('suggestions', [
            "Pick another name, or delete the existing VM first"
        ])
        super().__init__(f"VM '{vm_name}' already exists", vm_name=vm_name, **kwargs)


class UnknownOSError(ConfigurationError):
    kind = "UnknownOS"

    def __init__(self, os_label: str, **kwargs):
        kwargs.setdefault('code', 'ZYNEX-E204')
        kwargs.setdefault('suggestions', ["Run 'zynex os-list' to see the supported images"])
        context = dict(kwargs.pop('context', None) or {})
        context['os_label'] = os_label
        super().__init__(f"Unknown OS '{os_label}'", context=context, **kwargs)


class CorruptConfigError(ConfigurationError):
    kind = "CorruptConfig"

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault('code', 'ZYNEX-E201')
        super().__init__(message, **kwargs)


class DownloadFailedError(NetworkError):
    kind = "DownloadFailed"

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault('code', 'ZYNEX-E501')
        kwargs.setdefault('suggestions', [
            "Check network connectivity and the image URL",
            "Re-run the create command; downloads are not retried automatically"
        ])
        super().__init__(message, **kwargs)


class PartialArtifactError(DownloadFailedError):
    kind = "PartialArtifact"

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault('code', 'ZYNEX-E504')
        super().__init__(message, **kwargs)


class LaunchFailedError(ProcessError):
    kind = "LaunchFailed"

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault('code', 'ZYNEX-E704')
        super().__init__(message, **kwargs)


class VMRunningError(ProcessError):
    kind = "VMRunning"

    def __init__(self, vm_name: str, **kwargs):
        kwargs.setdefault('code', 'ZYNEX-E703')
        kwargs.setdefault('suggestions', [
            f"Stop it first with 'zynex stop {vm_name}'",
            "Or pass --force to stop and delete in one step"
        ])
        super().__init__(f"VM '{vm_name}' is running", vm_name=vm_name, **kwargs)


class ErrorHandler:
    """
    Centralized error reporting

    Logs every handled error and renders it for the user according to its
    severity.
    """

    def __init__(self):
        self.logger = logging.getLogger('zynex.error_handler')

    def handle_error(self, error: BaseException, context: Dict[str, Any] = None) -> ZynexError:
        """
        Log and display an exception

        Returns:
            ZynexError: The error that was reported (converted if necessary)
        """
        if not isinstance(error, ZynexError):
            error = ZynexError(
                message=str(error) or "An unknown error occurred",
                suggestions=["Check logs for more details"],
                original_exception=error
            )
        if context:
            error.error_info.context.update(context)

        self._log_error(error)
        self.display_error(error)
        return error

    def _log_error(self, error: ZynexError):
        """Log error information to the logger"""
        log_message = f"[{error.code}] {error.kind}: {error}"
        if error.vm_name:
            log_message += f" (vm={error.vm_name})"

        if error.severity == ErrorSeverity.CRITICAL:
            self.logger.critical(log_message, exc_info=error.error_info.exception)
        elif error.severity == ErrorSeverity.ERROR:
            self.logger.error(log_message, exc_info=error.error_info.exception)
        else:
            self.logger.warning(log_message)

    def display_error(self, error: ZynexError):
        """Display error information to the user"""
        if error.severity == ErrorSeverity.WARNING:
            print_warning(str(error))
            return

        error_panel = f"[bold red]Error {error.code} ({error.kind}):[/] {error}"
        if error.vm_name:
            error_panel += f"\n[dim]VM:[/] {error.vm_name}"
        if error.details:
            error_panel += f"\n\n[dim]{error.details}[/]"
        if error.suggestions:
            error_panel += "\n\n[yellow]Suggested Solutions:[/]"
            for suggestion in error.suggestions:
                error_panel += f"\n  • {suggestion}"

        console.print(Panel(
            error_panel,
            title=f"[red]{error.category.value.upper()} ERROR[/]",
            border_style="red"
        ))


# Singleton instance for global access
_error_handler = None

def get_error_handler() -> ErrorHandler:
    """Get the global error handler instance"""
    global _error_handler
    if _error_handler is None:
        _error_handler = ErrorHandler()
    return _error_handler

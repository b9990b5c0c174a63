"""
Command-line entry point for the Zynex VM Manager.

With a subcommand, runs one operation and exits. Without one, opens the
interactive menu.
"""
import argparse
import logging
import sys
from typing import List, Optional

from rich.table import Table

from . import __version__
from .config import load_config
from .core_utils import (
    console, print_info, print_success, print_warning, setup_logging
)
from .dependencies import require_dependencies
from .lifecycle import (
    DependencyError, ErrorSeverity, LifecycleManager, ZynexError, VMNotFoundError,
    get_error_handler, list_labels, OS_CATALOG
)

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_MISSING_DEPENDENCY = 1
EXIT_FAILED = 2

# Commands that never touch the hypervisor tools
NO_DEPENDENCY_COMMANDS = {'os-list'}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="zynex", description="Manage QEMU VMs built from cloud images")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--vms-dir", help="Directory holding VM configs and disks (default: $VM_DIR or ~/vms)")
    parser.add_argument("--config", help="JSON settings file (default: $ZYNEX_CONFIG or ~/.config/zynex/config.json)")

    sub = parser.add_subparsers(dest="command")
    sub.add_parser("list", help="List VMs")
    sub.add_parser("status", help="List VMs with their running state")
    sub.add_parser("os-list", help="List the operating systems that can be provisioned")

    create = sub.add_parser("create", help="Create a VM")
    create.add_argument("name")
    create.add_argument("os", help="OS label, e.g. 'Ubuntu 24.04'")
    create.add_argument("--disk-size", help="Disk size with unit, e.g. 20G")
    create.add_argument("--memory", type=int, help="Memory in MB")
    create.add_argument("--cpus", type=int, help="CPU count")
    create.add_argument("--ssh-port", type=int, help="Host port forwarded to guest port 22")
    create.add_argument("--gui", action="store_true", help="Open a graphical console instead of running headless")
    create.add_argument("--forward", action="append", default=[], metavar="HOST:GUEST",
                        help="Extra TCP port forward (repeatable)")
    create.add_argument("--hostname")
    create.add_argument("--username")
    create.add_argument("--password")
    create.add_argument("--seed", help="Pre-built seed disk to attach at boot")

    for name, text in (("start", "Start a VM"), ("stop", "Stop a running VM")):
        cmd = sub.add_parser(name, help=text)
        cmd.add_argument("name")

    delete = sub.add_parser("delete", help="Delete a VM and its disks")
    delete.add_argument("name")
    delete.add_argument("--force", action="store_true", help="Stop the VM first if it is running")
    return parser


def _create_options(args) -> dict:
    return {
        'disk_size': args.disk_size,
        'memory_mb': args.memory,
        'cpu_count': args.cpus,
        'ssh_port': args.ssh_port,
        'gui_mode': args.gui,
        'port_forwards': args.forward,
        'hostname': args.hostname,
        'username': args.username,
        'password': args.password,
        'seed_path': args.seed,
    }


def print_vm_list(names: List[str]):
    if not names:
        print_info("No VMs found.")
        return
    console.print("VMs:")
    for name in names:
        console.print(f" - {name}", highlight=False)


def print_status_table(rows):
    if not rows:
        print_info("No VMs found.")
        return
    table = Table(title="Virtual Machines")
    table.add_column("Name", style="cyan")
    table.add_column("State")
    for name, running in rows:
        if running is None:
            state = "[red]unreadable[/]"
        else:
            state = "[green]running[/]" if running else "[dim]stopped[/]"
        table.add_row(name, state)
    console.print(table)


def print_os_list():
    table = Table(title="Available Images")
    table.add_column("OS", style="cyan")
    table.add_column("Family")
    table.add_column("Release")
    for label in list_labels():
        entry = OS_CATALOG[label]
        table.add_row(label, entry.family, entry.codename)
    console.print(table)


def _report_absent(error: VMNotFoundError, command: str):
    """Stop and delete of an absent VM are warnings, not failures."""
    error.error_info.severity = ErrorSeverity.WARNING
    get_error_handler().handle_error(error, {'command': command})


def run_command(manager: LifecycleManager, args) -> int:
    """Dispatch one subcommand. ZynexErrors propagate to the caller."""
    if args.command == "list":
        print_vm_list(manager.list())
    elif args.command == "status":
        print_status_table(manager.status())
    elif args.command == "os-list":
        print_os_list()
    elif args.command == "create":
        config = manager.create(args.name, args.os, _create_options(args))
        print_success(f"VM '{config.name}' created ({args.os}, {config.disk_size} disk)")
    elif args.command == "start":
        handle = manager.start(args.name)
        if handle.already_running:
            print_info(f"VM '{args.name}' is already running (PID: {handle.pid})")
        else:
            config = manager.get(args.name)
            print_success(f"VM '{args.name}' started (PID: {handle.pid})")
            print_info(f"SSH: ssh -p {config.ssh_port} {config.username}@localhost")
    elif args.command == "stop":
        try:
            stopped = manager.stop(args.name)
        except VMNotFoundError as e:
            _report_absent(e, args.command)
            return EXIT_OK
        if stopped:
            print_success(f"VM '{args.name}' stopped")
        else:
            print_info(f"VM '{args.name}' is not running")
    elif args.command == "delete":
        try:
            manager.delete(args.name, force=args.force)
        except VMNotFoundError as e:
            _report_absent(e, args.command)
            return EXIT_OK
        print_success(f"VM '{args.name}' deleted")
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = load_config(args.config, overrides={'VMS_DIR': args.vms_dir})
    setup_logging(settings['LOG_DIR'], settings['LOG_LEVEL'])

    if args.command not in NO_DEPENDENCY_COMMANDS:
        try:
            require_dependencies(settings)
        except DependencyError as e:
            get_error_handler().handle_error(e, {'command': args.command})
            return EXIT_MISSING_DEPENDENCY

    manager = LifecycleManager(settings)

    if not args.command:
        from .menu import main_menu
        return main_menu(manager)

    try:
        return run_command(manager, args)
    except ZynexError as e:
        get_error_handler().handle_error(e, {'command': args.command})
        return EXIT_FAILED
    except KeyboardInterrupt:
        print_warning("Interrupted.")
        return EXIT_FAILED


if __name__ == "__main__":
    sys.exit(main())

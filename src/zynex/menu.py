"""
Interactive menu for the Zynex VM Manager.
"""
import logging

import questionary

from .cli import EXIT_OK, print_status_table
from .core_utils import (
    UserCancelled, clear_screen, console, print_banner, print_header, print_info,
    print_success, print_warning, print_error, safe_ask, safe_text_ask,
    select_from_list, wait_for_enter
)
from .lifecycle import LifecycleManager, ZynexError, get_error_handler, list_labels

logger = logging.getLogger(__name__)

MENU_CHOICES = [
    "1. List VMs",
    "2. Create VM",
    "3. Start VM",
    "4. Stop VM",
    "5. Delete VM",
    "0. Exit",
]


def _select_vm(manager: LifecycleManager, action_text: str):
    print_header(f"Select VM to {action_text}")
    names = manager.list()
    if not names:
        print_error("No VMs found.")
        return None
    return select_from_list(names, "Choose a VM")


def create_vm_interactive(manager: LifecycleManager):
    """Prompt for everything create needs, then provision the VM."""
    print_header("Create New VM")
    settings = manager.settings

    name = safe_text_ask("Enter a name for the new VM (e.g., web-01):", allow_empty=True)
    if not name:
        print_warning("A VM name is required.")
        return
    os_label = safe_ask(questionary.select("Select an OS:", choices=list_labels()).ask())

    options = {
        'disk_size': safe_text_ask(f"Disk size [default: {settings['DEFAULT_DISK_SIZE']}]:"),
        'memory_mb': safe_text_ask(f"Memory in MB [default: {settings['DEFAULT_MEMORY_MB']}]:"),
        'cpu_count': safe_text_ask(f"CPU cores [default: {settings['DEFAULT_CPUS']}]:"),
        'ssh_port': safe_text_ask(f"SSH port [default: {settings['DEFAULT_SSH_PORT']}]:"),
        'gui_mode': safe_ask(questionary.confirm("Enable GUI mode?", default=False).ask()),
        'port_forwards': safe_text_ask("Extra port forwards, e.g. 8080:80,8443:443 [default: none]:"),
        'username': safe_text_ask("Guest username [default: distribution user]:"),
        'password': safe_ask(questionary.password("Guest password [default: distribution password]:").ask()),
    }

    print_info(f"Downloading {os_label} image and creating '{name}'...")
    config = manager.create(name, os_label, options)
    print_success(f"VM '{config.name}' created.")


def start_vm_interactive(manager: LifecycleManager):
    vm_name = _select_vm(manager, "Start")
    if not vm_name:
        return
    handle = manager.start(vm_name)
    if handle.already_running:
        print_info(f"VM '{vm_name}' is already running (PID: {handle.pid}).")
    else:
        print_success(f"VM '{vm_name}' started (PID: {handle.pid}).")


def stop_vm_interactive(manager: LifecycleManager):
    vm_name = _select_vm(manager, "Stop")
    if not vm_name:
        return
    if manager.stop(vm_name):
        print_success(f"VM '{vm_name}' stopped.")
    else:
        print_info(f"VM '{vm_name}' is not running.")


def delete_vm_interactive(manager: LifecycleManager):
    vm_name = _select_vm(manager, "Delete")
    if not vm_name:
        return
    print_warning(f"This will permanently delete VM '{vm_name}' and its disks.")
    confirm = safe_text_ask(f"To confirm, type the name of the VM ({vm_name}):", allow_empty=True)
    if confirm != vm_name:
        print_error("Confirmation failed. Aborting.")
        return
    force = False
    if manager.is_running(vm_name):
        force = safe_ask(questionary.confirm("The VM is running. Stop it and delete?", default=False).ask())
        if not force:
            print_info("Operation cancelled.")
            return
    manager.delete(vm_name, force=force)
    print_success(f"VM '{vm_name}' deleted.")


ACTIONS = {
    "2. Create VM": create_vm_interactive,
    "3. Start VM": start_vm_interactive,
    "4. Stop VM": stop_vm_interactive,
    "5. Delete VM": delete_vm_interactive,
}


def main_menu(manager: LifecycleManager) -> int:
    """Menu loop; returns the process exit code."""
    clear_screen()
    print_banner()
    console.print("Zynex VM Manager loaded. Use this menu to manage your VMs.")

    while True:
        console.rule(style="dim")
        try:
            choice = questionary.select("Select an option", choices=MENU_CHOICES).ask()
            if choice is None or choice == "0. Exit":
                print_info("Exiting...")
                return EXIT_OK
            if choice == "1. List VMs":
                print_status_table(manager.status())
            else:
                ACTIONS[choice](manager)
        except UserCancelled:
            print_info("Operation cancelled.")
        except ZynexError as e:
            get_error_handler().handle_error(e, {'command': choice})
        except (KeyboardInterrupt, EOFError):
            print_info("\nExiting...")
            return EXIT_OK
        wait_for_enter("Press Enter to return to the menu...")

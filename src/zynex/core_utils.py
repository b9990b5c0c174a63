"""
Core utility functions for the Zynex VM Manager.

This module provides a collection of helper functions for console output,
logging setup, command execution, file downloads and user interaction.
"""
import os
import sys
import shlex
import shutil
import logging
import subprocess
from typing import List, Optional, Tuple

import questionary
import requests
from rich.console import Console
from rich.panel import Panel
from tqdm import tqdm

console = Console()
# Create a dedicated console for printing errors to stderr
error_console = Console(stderr=True, style="bold red")

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

BANNER = r"""
 /$$$$$$$$ /$$     /$$ /$$   /$$ /$$$$$$$$ /$$   /$$
|_____ $$ |  $$   /$$/| $$$ | $$| $$_____/| $$  / $$
     /$$/  \  $$ /$$/ | $$$$| $$| $$      |  $$/ $$/
    /$$/    \  $$$$/  | $$ $$ $$| $$$$$    \  $$$$/
   /$$/      \  $$/   | $$  $$$$| $$__/     >$$  $$
  /$$/        | $$    | $$\  $$$| $$       /$$/\  $$
 /$$$$$$$$    | $$    | $$ \  $$| $$$$$$$$| $$  \ $$
|________/    |__/    |__/  \__/|________/|__/  |__/
"""

# --- Text and Styling ---

def print_banner():
    """Prints the application banner."""
    console.print(Panel(f"[bold cyan]{BANNER}[/]\n[bold]POWERED BY ZYNEX[/]", expand=False, border_style="blue"))

def print_header(text):
    """Prints a styled header to the console."""
    console.print(Panel(f"[bold cyan]{text}[/]", expand=False, border_style="blue"))

def print_info(text):
    """Prints an informational message to the console."""
    console.print(f"[cyan]ℹ️  {text}[/]", highlight=False)

def print_success(text):
    """Prints a success message to the console."""
    console.print(f"[green]✅ {text}[/]", highlight=False)

def print_warning(text):
    """Prints a warning message to the console."""
    console.print(f"[yellow]⚠️  {text}[/]", highlight=False)

def print_error(text):
    """Prints an error message to stderr."""
    error_console.print(f"❌ {text}", markup=False, highlight=False)

def clear_screen():
    """Clears the console screen."""
    console.clear()


# --- Logging ---

def setup_logging(log_dir: str, level: str = 'INFO') -> logging.Logger:
    """
    Attach a file handler to the package logger.

    Calling this twice is harmless; the second call keeps the existing handler.
    """
    pkg_logger = logging.getLogger('zynex')
    pkg_logger.setLevel(getattr(logging, str(level).upper(), logging.INFO))

    if not pkg_logger.handlers:
        try:
            os.makedirs(log_dir, exist_ok=True)
            file_handler = logging.FileHandler(os.path.join(log_dir, 'zynex.log'), encoding='utf-8')
        except OSError as e:
            print_warning(f"File logging disabled, cannot write to {log_dir}: {e}")
            pkg_logger.addHandler(logging.NullHandler())
            return pkg_logger
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        pkg_logger.addHandler(file_handler)

    return pkg_logger


# --- User Interaction ---

class UserCancelled(Exception):
    """Exception raised when user cancels an operation via ESC or Ctrl+C."""
    pass


def safe_ask(prompt_result):
    """
    Safely handle questionary .ask() result.

    If user pressed ESC/Ctrl+C (returns None), raises UserCancelled.
    Otherwise returns the result.
    """
    if prompt_result is None:
        raise UserCancelled("Operation cancelled by user")
    return prompt_result


def safe_text_ask(prompt, default="", allow_empty=False):
    """
    Safely ask for text input with proper cancellation handling.

    Args:
        prompt: The prompt to display
        default: Default value if user enters empty string
        allow_empty: If True, empty input returns empty string; if False, returns default

    Returns:
        User input (stripped) or default value

    Raises:
        UserCancelled if user presses ESC/Ctrl+C
    """
    result = safe_ask(questionary.text(prompt).ask())
    stripped = result.strip()
    if not stripped and not allow_empty:
        return default
    return stripped


def wait_for_enter(message="Press Enter to continue..."):
    """Waits for the user to press Enter; ESC and Ctrl+C just return."""
    try:
        questionary.text(f"\n{message}").ask()
    except (KeyboardInterrupt, EOFError):
        pass


def select_from_list(items, prompt):
    """
    Prompts the user to select an item from a list.

    Returns None when the list is empty or the user cancels.
    """
    if not items:
        print_warning("No items to select from.")
        return None

    custom_style = questionary.Style([
        ('selected', 'fg:#673ab7 bold'),
        ('highlighted', 'fg:#673ab7 bold'),
        ('pointer', 'fg:#673ab7 bold'),
    ])
    try:
        return questionary.select(
            message=prompt,
            choices=[questionary.Choice(title=str(item), value=item) for item in items],
            use_indicator=True,
            style=custom_style
        ).ask()
    except KeyboardInterrupt:
        print_info("\nSelection cancelled by user.")
        return None


# --- Command Execution ---

def run_command(cmd_list: List[str], check: bool = True) -> str:
    """
    Runs a command and returns its stripped stdout.

    Raises subprocess.CalledProcessError or FileNotFoundError for the caller
    to handle.
    """
    cmd_list = list(cmd_list)
    logger.info(f"Executing: {' '.join(shlex.quote(s) for s in cmd_list)}")
    result = subprocess.run(
        cmd_list,
        capture_output=True,
        text=True,
        check=check,
        encoding='utf-8',
        errors='ignore'
    )
    return result.stdout.strip()


# --- File and Directory Operations ---

def remove_file(path) -> bool:
    """Removes a file if present. Returns True if something was removed."""
    try:
        os.remove(path)
    except FileNotFoundError:
        return False
    logger.debug(f"Removed: {path}")
    return True


def remove_dir(path) -> bool:
    """Removes a directory and its contents. Returns True if something was removed."""
    if not os.path.isdir(path):
        return False
    shutil.rmtree(path)
    logger.debug(f"Deleted directory: {path}")
    return True


# --- File Downloads ---

def download_file(url: str, destination: str, timeout: float = 30,
                  chunk_size: int = 1024 * 1024, show_progress: bool = True) -> Tuple[int, Optional[int]]:
    """
    Streams a URL to a destination file, with a progress bar.

    Returns:
        Tuple of (bytes written, Content-Length or None when the server sent none)

    Raises:
        requests.exceptions.RequestException on transport errors
        OSError when the destination cannot be written
    """
    written = 0
    with requests.get(url, stream=True, timeout=timeout) as r:
        r.raise_for_status()
        header = r.headers.get('content-length')
        expected = int(header) if header and header.isdigit() else None
        with open(destination, 'wb') as f, tqdm(
            total=expected, unit='B', unit_scale=True,
            desc=os.path.basename(destination), disable=not show_progress, file=sys.stderr
        ) as pbar:
            for chunk in r.iter_content(chunk_size=chunk_size):
                if not chunk:
                    continue
                f.write(chunk)
                written += len(chunk)
                pbar.update(len(chunk))
            f.flush()
            os.fsync(f.fileno())
    logger.info(f"Downloaded {written} bytes from {url} to {destination}")
    return written, expected

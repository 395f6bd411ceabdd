"""Core utility functions: logging, command execution, platform detection."""

import contextlib
import os
import shutil
import subprocess
import sys
from collections.abc import Generator

from rich.console import Console

console = Console()


@contextlib.contextmanager
def pushd(path: str) -> Generator[None, None, None]:
    """Context manager that changes to a directory and restores on exit."""
    prev = os.getcwd()
    os.chdir(path)
    try:
        yield
    finally:
        os.chdir(prev)


def log(agent_name: str, message: str, style: str = "", logs_dir: str = "") -> None:
    """Write a message to the console (with optional style) and, when *logs_dir*
    is given, append it to that directory's <agent_name>.log file.
    """
    if style:
        console.print(message, style=style)
    else:
        console.print(message)

    if not logs_dir:
        return
    try:
        os.makedirs(logs_dir, exist_ok=True)
        log_file = os.path.join(logs_dir, f"{agent_name}.log")
        with open(log_file, "a", encoding="utf-8") as f:
            f.write(message + "\n")
    except Exception:
        pass  # Never break the launch over logging


def log_verbose(agent_name: str, message: str, verbose: bool, logs_dir: str = "") -> None:
    """Log a diagnostic line only when verbose output is enabled."""
    if verbose:
        log(agent_name, message, style="dim", logs_dir=logs_dir)


def is_macos() -> bool:
    return sys.platform == "darwin"


def check_command(name: str) -> bool:
    """Check if a command is available on PATH."""
    return shutil.which(name) is not None


def run_cmd(
    args: list[str], capture: bool = False, quiet: bool = False
) -> subprocess.CompletedProcess:
    """Run a command, optionally capturing output."""
    kwargs = {}
    if capture or quiet:
        kwargs["stdout"] = subprocess.PIPE
        kwargs["stderr"] = subprocess.PIPE
        kwargs["text"] = True
    return subprocess.run(args, **kwargs)


def run_git(project_path: str, *args: str) -> subprocess.CompletedProcess:
    """Run a git command against *project_path* with captured output.

    A missing git binary is reported as a failed result (returncode 127)
    rather than an exception, so read-only probes degrade gracefully.
    """
    try:
        return run_cmd(["git", "-C", project_path, *args], capture=True)
    except FileNotFoundError:
        return subprocess.CompletedProcess(["git", *args], 127, stdout="", stderr="git: command not found")


def print_error(exc: Exception) -> None:
    """Print a launcher error in red, followed by its remediation lines and hint."""
    console.print(f"ERROR: {exc}", style="bold red", markup=False)
    for line in getattr(exc, "remediation", None) or []:
        console.print(f"  {line}", style="yellow", markup=False)
    stderr = getattr(exc, "stderr", "")
    if stderr:
        console.print(stderr, style="dim", markup=False)
    hint = getattr(exc, "hint", None)
    if hint:
        console.print(hint, style="yellow", markup=False)

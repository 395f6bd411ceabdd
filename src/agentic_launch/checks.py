"""Pre-flight requirement checks run before a launch.

Errors block the launch; warnings are reported and never block.
"""

import os
import shutil
from dataclasses import dataclass, field
from pathlib import Path

from agentic_launch.utils import check_command, console, is_macos, run_git

MIN_FREE_BYTES = 1024 ** 3

_INSTALL_HINTS = {
    "git": ("brew install git", "sudo apt install git"),
    "docker": ("brew install --cask docker", "https://docs.docker.com/engine/install/"),
}


@dataclass
class PreflightReport:
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


def _install_hint(tool: str) -> str:
    mac, other = _INSTALL_HINTS[tool]
    return f"Run: {mac if is_macos() else other}"


def _check_tools(report: PreflightReport) -> None:
    for tool in ("git", "docker"):
        if not check_command(tool):
            report.errors.append(f"{tool} is not installed. {_install_hint(tool)}")


def _check_project(project_path: Path, report: PreflightReport) -> None:
    if not project_path.is_dir():
        report.errors.append(f"Project directory does not exist: {project_path}")
        return
    if not os.access(project_path, os.R_OK | os.W_OK):
        report.errors.append(f"Project directory is not readable and writable: {project_path}")
    if not check_command("git"):
        return
    if run_git(str(project_path), "rev-parse", "--is-inside-work-tree").returncode != 0:
        report.errors.append(f"Not a git repository: {project_path} (run: git init)")
        return
    status = run_git(str(project_path), "status", "--porcelain")
    if status.returncode == 0 and status.stdout.strip():
        report.warnings.append("Uncommitted changes in the working tree")


def _check_environment(project_path: Path, report: PreflightReport) -> None:
    if hasattr(os, "geteuid") and os.geteuid() == 0:
        report.warnings.append("Running as root; files created in the project may be owned by root")
    try:
        free = shutil.disk_usage(project_path).free
    except OSError:
        return
    if free < MIN_FREE_BYTES:
        report.warnings.append(f"Low disk space: {free // (1024 ** 2)} MiB free")


def run_preflight(project_path: str | Path) -> PreflightReport:
    """Check tools, the project directory and the host environment."""
    path = Path(project_path)
    report = PreflightReport()
    _check_tools(report)
    _check_project(path, report)
    if path.is_dir():
        _check_environment(path, report)
    return report


def print_report(report: PreflightReport) -> None:
    """Print errors in red and warnings in yellow, or a single OK line."""
    for error in report.errors:
        console.print(f"✗ {error}", style="bold red")
    for warning in report.warnings:
        console.print(f"! {warning}", style="yellow")
    if report.ok and not report.warnings:
        console.print("✓ All requirements met", style="green")

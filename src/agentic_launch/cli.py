"""CLI app definition and command registration."""

from pathlib import Path
from typing import Annotated

import typer

from agentic_launch.branches import GitHubProtectedBranchSource, capture_repo_state
from agentic_launch.checks import print_report, run_preflight
from agentic_launch.composer import generate_assistant_prompt
from agentic_launch.config import KNOWN_ASSISTANTS, LauncherConfig, ensure_home, list_assistants, resolve_assistant
from agentic_launch.credentials import remediation_message, resolve_credentials
from agentic_launch.errors import LauncherError
from agentic_launch.utils import console, print_error
from agentic_launch.version import get_version


def _version_callback(value: bool):
    if value:
        console.print(get_version())
        raise typer.Exit()


app = typer.Typer(
    help="Launch containerized AI coding assistants on isolated git work branches.",
    no_args_is_help=True,
)


@app.callback()
def main(
    version: Annotated[
        bool,
        typer.Option("--version", "-v", help="Show version and exit.", callback=_version_callback, is_eager=True),
    ] = False,
) -> None:
    """Containerized AI coding assistant launcher."""

# Register commands from submodules
from agentic_launch import launcher as _launcher_mod
from agentic_launch import login as _login_mod

_launcher_mod.register(app)
_login_mod.register(app)


# ============================================
# Commands
# ============================================


@app.command()
def compose(
    assistant: Annotated[str, typer.Argument(help="Assistant whose prompt to compose")],
    project: Annotated[str, typer.Option(help="Project directory (default: current directory)")] = ".",
) -> None:
    """Compose and write the assistant prompt without starting a container."""
    try:
        config = LauncherConfig.from_env()
        ensure_home(config)
        spec = resolve_assistant(assistant, config)
        path = generate_assistant_prompt(spec, Path(project).resolve(), config)
    except LauncherError as exc:
        print_error(exc)
        raise typer.Exit(1)
    console.print(str(path))


@app.command()
def credentials(
    assistant: Annotated[str, typer.Argument(help="Assistant to check")],
) -> None:
    """Report whether an assistant is authenticated (exit 1 if not)."""
    try:
        config = LauncherConfig.from_env()
        spec = resolve_assistant(assistant, config)
    except LauncherError as exc:
        print_error(exc)
        raise typer.Exit(1)
    config_dir = config.assistant_config_dir(spec.cli)
    verdict = resolve_credentials(spec, config_dir, spec.credential_dir_name, spec.api_key_env)
    if verdict.authenticated:
        console.print(f"✓ {spec.name}: {verdict.detail} ({verdict.method.value})", style="green")
        for warning in verdict.warnings:
            console.print(f"! {warning}", style="yellow")
        return
    console.print(f"✗ {spec.name}: {verdict.detail}", style="bold red")
    for line in remediation_message(spec, config_dir):
        console.print(f"  {line}", style="yellow")
    raise typer.Exit(1)


@app.command()
def branches(
    project: Annotated[str, typer.Option(help="Project directory (default: current directory)")] = ".",
    github: Annotated[bool, typer.Option(help="Include GitHub-protected branches (needs gh)")] = False,
) -> None:
    """Show the current branch, local branches and the protected set."""
    snapshot = capture_repo_state(str(Path(project).resolve()), GitHubProtectedBranchSource() if github else None)
    console.print(f"Current:   {snapshot.current_branch or '(detached or not a repository)'}", style="bold cyan")
    console.print(f"Protected: {', '.join(sorted(snapshot.protected))}", style="yellow")
    console.print(f"Local branches ({len(snapshot.branches)}):")
    for name in sorted(snapshot.branches):
        marker = "*" if name == snapshot.current_branch else " "
        suffix = "  (protected)" if name in snapshot.protected else ""
        console.print(f"  {marker} {name}{suffix}")


@app.command(name="check-requirements")
def check_requirements(
    project: Annotated[str, typer.Option(help="Project directory (default: current directory)")] = ".",
) -> None:
    """Run pre-flight checks; exit 1 if any requirement is missing."""
    report = run_preflight(Path(project).resolve())
    print_report(report)
    if not report.ok:
        raise typer.Exit(1)


@app.command()
def assistants() -> None:
    """List known assistants and those declared in the config directory."""
    config = LauncherConfig.from_env()
    for name in list_assistants(config):
        origin = "built-in" if name in KNOWN_ASSISTANTS else f"{config.conf_file(name)}"
        console.print(f"  {name:<10} {origin}")

"""Run command: the launch sequence for one assistant invocation.

Order is fixed and short-circuits on the first fatal condition:
pre-flight checks -> credential gate -> prompt composition -> work branch
-> container. Debug-shell mode skips the credential gate and the branch step.
"""

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Annotated

import typer

from agentic_launch.branches import BranchDecision, GitHubProtectedBranchSource, ProtectedBranchSource, prepare_work_branch
from agentic_launch.checks import run_preflight
from agentic_launch.composer import ensure_git_exclusion, generate_assistant_prompt
from agentic_launch.config import PROJECT_DIR_NAME, AssistantKind, LauncherConfig, ensure_home, resolve_assistant
from agentic_launch.credentials import remediation_message, resolve_credentials
from agentic_launch.envfile import ephemeral_env_file
from agentic_launch.errors import ConfigError, CredentialError, LauncherError
from agentic_launch.runtime import (
    ContainerRequest,
    codex_extra_mounts,
    container_name,
    container_project_path,
    pull_image,
    resolve_image,
    run_container,
)
from agentic_launch.utils import log, log_verbose, print_error


@dataclass
class LaunchRequest:
    assistant: str
    project_path: str | Path = "."
    prompt: str | None = None
    base_branch: str | None = None
    work_branch: str | None = None
    shell: bool = False
    image: str | None = None
    skip_checks: bool = False
    protected_source: ProtectedBranchSource | None = None
    environ: dict | None = None
    now: datetime | None = None
    extra_args: list[str] = field(default_factory=list)


def register(app: typer.Typer) -> None:
    """Register the run command on the shared app."""
    app.command(name="run")(run)


def _container_args(request: LaunchRequest, decision: BranchDecision | None) -> list[str]:
    args = []
    if decision is not None and decision.base_branch:
        args += ["--base-branch", decision.base_branch]
    if request.prompt:
        args += ["-p", request.prompt]
    return args + list(request.extra_args)


def run_assistant(request: LaunchRequest, config: LauncherConfig) -> int:
    """Launch the assistant described by *request*. Returns the container exit code.

    Raises ConfigError, CredentialError, BranchPolicyError or
    GitOperationError; no container is started after any of them.
    """
    ensure_home(config)
    spec = resolve_assistant(request.assistant, config)
    project = Path(request.project_path).expanduser().resolve()
    logs_dir = str(config.logs_dir)
    log_verbose(spec.name, f"Project: {project}", config.verbose, logs_dir)

    # 1. Pre-flight
    if not request.skip_checks:
        report = run_preflight(project)
        for warning in report.warnings:
            log(spec.name, f"Warning: {warning}", style="yellow", logs_dir=logs_dir)
        if report.errors:
            raise ConfigError(
                "Pre-flight checks failed: " + "; ".join(report.errors),
                hint="Fix the problems above, or pass --skip-checks.",
            )
    elif not project.is_dir():
        raise ConfigError(f"Project path does not exist: {project}")

    # 2. Credential gate
    config_dir = config.assistant_config_dir(spec.cli)
    config_dir.mkdir(parents=True, exist_ok=True)
    if request.shell:
        log(spec.name, "Debug shell mode: skipping credential check", style="dim", logs_dir=logs_dir)
    else:
        verdict = resolve_credentials(spec, config_dir, spec.credential_dir_name, spec.api_key_env, request.environ)
        if not verdict.authenticated:
            raise CredentialError(verdict.detail, remediation=remediation_message(spec, config_dir))
        log(spec.name, f"✓ {verdict.detail}", style="green", logs_dir=logs_dir)
        for warning in verdict.warnings:
            log(spec.name, f"Warning: {warning}", style="yellow", logs_dir=logs_dir)

    # 3. Prompt
    prompt_file = generate_assistant_prompt(spec, project, config, now=request.now)
    ensure_git_exclusion(project, spec.prompt_filename)

    # 4. Work branch
    decision = None
    if not request.shell:
        decision = prepare_work_branch(
            project,
            spec.name,
            config,
            base_branch=request.base_branch,
            work_branch=request.work_branch,
            source=request.protected_source,
            now=request.now,
        )

    # 5. Container
    image = resolve_image(spec, config, request.image)
    if not request.image:
        pull_image(image, spec.name, logs_dir)

    container_path = container_project_path(project)
    env = {
        "AGENTIC_LAUNCH_ASSISTANT_CLI": spec.cli,
        "AGENTIC_LAUNCH_PROJECT_PATH": container_path,
        "AGENTIC_LAUNCH_PROMPT_FILE": f"{container_path}/{PROJECT_DIR_NAME}/{spec.cli}/{prompt_file.name}",
    }
    if decision is not None:
        env["AGENTIC_LAUNCH_WORK_BRANCH"] = decision.target_branch

    data_dir = config.project_data_dir(project)
    data_dir.mkdir(parents=True, exist_ok=True)

    with ephemeral_env_file(project, spec, config, request.environ) as env_file:
        container = ContainerRequest(
            image=image,
            name=container_name(spec, project, request.now),
            cli=spec.cli,
            config_dir=config_dir,
            project_path=project,
            container_path=container_path,
            data_dir=data_dir,
            env=env,
            env_file=env_file,
            args=_container_args(request, decision),
            shell=request.shell,
            extra_mounts=codex_extra_mounts(config_dir) if spec.kind is AssistantKind.CODEX else [],
        )
        return run_container(container, logs_dir=logs_dir)


def run(
    assistant: Annotated[str, typer.Argument(help="Assistant to launch (claude, gemini, codex, opencode, vibe, ...)")],
    prompt: Annotated[str, typer.Option("--prompt", "-p", help="Non-interactive prompt passed to the assistant")] = None,
    project: Annotated[str, typer.Option(help="Project directory (default: current directory)")] = ".",
    base_branch: Annotated[str, typer.Option(help="Branch to create the work branch from (default: current)")] = None,
    work_branch: Annotated[str, typer.Option(help="Explicit work branch to reuse or create")] = None,
    shell: Annotated[bool, typer.Option(help="Open a bash debug shell instead of the assistant")] = False,
    image: Annotated[str, typer.Option(help="Override the container image")] = None,
    skip_checks: Annotated[bool, typer.Option(help="Skip pre-flight requirement checks")] = False,
    github: Annotated[bool, typer.Option(help="Also treat GitHub-protected branches as protected (needs gh)")] = False,
    verbose: Annotated[bool, typer.Option(help="Show diagnostic output")] = False,
) -> None:
    """Launch an assistant container on a fresh or reused work branch."""
    request = LaunchRequest(
        assistant=assistant,
        project_path=project,
        prompt=prompt,
        base_branch=base_branch,
        work_branch=work_branch,
        shell=shell,
        image=image,
        skip_checks=skip_checks,
        protected_source=GitHubProtectedBranchSource() if github else None,
    )
    try:
        config = LauncherConfig.from_env()
        if verbose:
            config = config.with_verbose(True)
        returncode = run_assistant(request, config)
    except LauncherError as exc:
        print_error(exc)
        raise typer.Exit(1)
    if returncode != 0:
        raise typer.Exit(returncode)

"""Login command: authenticate an assistant inside its container.

Credentials are written by the assistant CLI into the mounted config
directory, so they persist on the host after the container exits.
"""

from pathlib import Path
from typing import Annotated

import typer

from agentic_launch.config import AssistantKind, AssistantSpec, LauncherConfig, ensure_home, resolve_assistant
from agentic_launch.credentials import remediation_message, resolve_credentials
from agentic_launch.errors import CredentialError, LauncherError
from agentic_launch.prompts import LOGIN_START_MESSAGE
from agentic_launch.runtime import ContainerRequest, codex_extra_mounts, resolve_image, run_container
from agentic_launch.utils import log, print_error

DEVICE_CODE = "device_code"
CHATGPT_SIGNIN = "chatgpt_signin"


def register(app: typer.Typer) -> None:
    """Register the login command on the shared app."""
    app.command(name="login")(login_cmd)


def login_command(spec: AssistantSpec, auth_method: str = "") -> list[str]:
    """Command run inside the container to start the assistant's own login flow."""
    if spec.kind is AssistantKind.CLAUDE:
        command = ["claude", "/quit"]
    elif spec.kind in (AssistantKind.GEMINI, AssistantKind.CODEX, AssistantKind.OPENCODE,
                       AssistantKind.VIBE, AssistantKind.GENERIC):
        command = [spec.cli, "login"]
    else:
        raise ValueError(f"Unhandled assistant kind: {spec.kind}")
    if auth_method == DEVICE_CODE:
        command.append("--device-code")
    return command


def verify_credential_persistence(spec: AssistantSpec, config_dir: str | Path) -> bool:
    """Check the login left credentials on the host side of the mount.

    Only Claude has a file we can rely on; other assistants pass.
    """
    if spec.kind is AssistantKind.CLAUDE:
        return (Path(config_dir) / ".credentials.json").is_file()
    if spec.kind in (AssistantKind.GEMINI, AssistantKind.CODEX, AssistantKind.OPENCODE,
                     AssistantKind.VIBE, AssistantKind.GENERIC):
        return True
    raise ValueError(f"Unhandled assistant kind: {spec.kind}")


def login(
    spec: AssistantSpec,
    config: LauncherConfig,
    force: bool = False,
    shell: bool = False,
    image: str | None = None,
    environ=None,
) -> int:
    """Run the login container for *spec*. Returns the container exit code.

    Returns 0 without starting a container when already authenticated,
    unless *force*. Raises CredentialError when the login did not persist.
    """
    ensure_home(config)
    logs_dir = str(config.logs_dir)
    config_dir = config.assistant_config_dir(spec.cli)
    config_dir.mkdir(parents=True, exist_ok=True)

    verdict = resolve_credentials(spec, config_dir, spec.credential_dir_name, spec.api_key_env, environ)
    if verdict.authenticated and not force and not shell:
        log(spec.name, f"{spec.display_name} is already authenticated ({verdict.detail})", style="green", logs_dir=logs_dir)
        log(spec.name, "Use --force to log in again.", style="dim", logs_dir=logs_dir)
        return 0

    command = login_command(spec, spec.auth_method)
    log(spec.name, LOGIN_START_MESSAGE.format(display_name=spec.display_name), style="cyan", logs_dir=logs_dir)
    if shell:
        log(spec.name, f"Debug shell: run '{' '.join(command)}' manually", style="cyan", logs_dir=logs_dir)

    request = ContainerRequest(
        image=resolve_image(spec, config, image),
        name=f"agentic-launch-{spec.cli}-login",
        cli=spec.cli,
        config_dir=config_dir,
        env={"AGENTIC_LAUNCH_ASSISTANT_CLI": spec.cli},
        args=command,
        shell=shell,
        extra_mounts=codex_extra_mounts(config_dir) if spec.kind is AssistantKind.CODEX else [],
        network="host" if spec.auth_method == CHATGPT_SIGNIN else "",
    )
    returncode = run_container(request, logs_dir=logs_dir)
    if shell:
        return returncode
    if returncode != 0:
        raise CredentialError(f"{spec.display_name} login exited with code {returncode}")
    if not verify_credential_persistence(spec, config_dir):
        raise CredentialError(
            f"{spec.display_name} login finished but no credentials were saved to {config_dir}",
            remediation=remediation_message(spec, config_dir),
        )
    log(spec.name, f"{spec.display_name} credentials saved to: {config_dir}", style="green", logs_dir=logs_dir)
    return 0


def login_cmd(
    assistant: Annotated[str, typer.Argument(help="Assistant to authenticate (claude, gemini, codex, ...)")],
    force: Annotated[bool, typer.Option(help="Log in again even if credentials exist")] = False,
    shell: Annotated[bool, typer.Option(help="Open a bash shell in the login container instead")] = False,
    image: Annotated[str, typer.Option(help="Override the container image")] = None,
    verbose: Annotated[bool, typer.Option(help="Show diagnostic output")] = False,
) -> None:
    """Authenticate an assistant; credentials persist in the config home."""
    try:
        config = LauncherConfig.from_env()
        if verbose:
            config = config.with_verbose(True)
        spec = resolve_assistant(assistant, config)
        returncode = login(spec, config, force=force, shell=shell, image=image)
    except LauncherError as exc:
        print_error(exc)
        raise typer.Exit(1)
    if returncode != 0:
        raise typer.Exit(returncode)

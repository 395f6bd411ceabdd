"""Container runtime boundary: image selection and the `docker run` command line."""

import re
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from agentic_launch.config import AssistantSpec, LauncherConfig, project_hash
from agentic_launch.errors import ConfigError
from agentic_launch.utils import log, run_cmd

CONTAINER_HOME = "/home/node"
CONTAINER_WORKSPACE = "/workspace"

_IMAGE_RE = re.compile(
    r"^(?:[a-z0-9][a-z0-9.-]*(?::[0-9]+)?/)?"   # registry host[:port]/
    r"[a-z0-9][a-z0-9._-]*(?:/[a-z0-9][a-z0-9._-]*)*"  # repository path
    r"(?::[A-Za-z0-9_][A-Za-z0-9_.-]{0,127})?$"  # :tag
)


def validate_image_name(image: str) -> bool:
    """True for `[registry/]name[:tag]` references without shell metacharacters."""
    return bool(image) and len(image) <= 255 and bool(_IMAGE_RE.match(image))


def resolve_image(spec: AssistantSpec, config: LauncherConfig, override: str | None = None) -> str:
    """Image reference for *spec*: validated *override*, else <registry>/<image_name>:latest."""
    if override:
        if not validate_image_name(override):
            raise ConfigError(f"Invalid image name: '{override}'", hint="Expected [registry/]name[:tag].")
        return override
    image = f"{config.registry.rstrip('/')}/{spec.image_name}:latest"
    if not validate_image_name(image):
        raise ConfigError(
            f"Invalid image reference: '{image}'",
            hint="Check AGENTIC_LAUNCH_REGISTRY.",
        )
    return image


def sanitize_dir_name(name: str) -> str:
    """Lowercase, hyphen-separated, [a-z0-9-] only, at most 40 chars."""
    sanitized = re.sub(r"[\s_]", "-", name.lower())
    sanitized = re.sub(r"[^a-z0-9-]", "", sanitized)
    sanitized = re.sub(r"-+", "-", sanitized).strip("-")[:40].strip("-")
    return sanitized or "project"


def container_project_path(project_path: str | Path) -> str:
    """Stable, per-project mount point inside the container."""
    resolved = Path(project_path).resolve()
    return f"{CONTAINER_WORKSPACE}/{sanitize_dir_name(resolved.name)}-{project_hash(resolved)}"


def container_name(spec: AssistantSpec, project_path: str | Path, now: datetime | None = None) -> str:
    stamp = (now or datetime.now()).strftime("%Y%m%d-%H%M%S")
    return f"agentic-launch-{spec.cli}-{sanitize_dir_name(Path(project_path).resolve().name)}-{stamp}"


@dataclass
class ContainerRequest:
    """Everything needed to start one assistant container."""

    image: str
    name: str
    cli: str
    config_dir: Path
    project_path: Path | None = None
    container_path: str = ""
    data_dir: Path | None = None
    env: dict[str, str] = field(default_factory=dict)
    env_file: Path | None = None
    args: list[str] = field(default_factory=list)
    shell: bool = False
    extra_mounts: list[tuple[Path, str]] = field(default_factory=list)
    network: str = ""


def _mount(host: Path | str, container: str) -> list[str]:
    return ["-v", f"{host}:{container}:rw"]


def build_docker_command(request: ContainerRequest) -> list[str]:
    """Build the `docker run` argv for *request*. Pure function."""
    argv = ["docker", "run", "-it", "--rm", "--name", request.name]
    if request.network:
        argv += ["--network", request.network]
    if request.project_path is not None:
        argv += _mount(request.project_path, request.container_path)
        argv += ["-w", request.container_path]
    if request.data_dir is not None:
        argv += _mount(request.data_dir, "/data")
    argv += _mount(request.config_dir, f"{CONTAINER_HOME}/.{request.cli}")
    argv += _mount(request.config_dir, f"{CONTAINER_HOME}/.config/{request.cli}")
    for host, container in request.extra_mounts:
        argv += _mount(host, container)
    for key, value in request.env.items():
        argv += ["-e", f"{key}={value}"]
    if request.env_file is not None:
        argv += ["--env-file", str(request.env_file)]
    if request.shell:
        argv += ["--entrypoint", "bash", request.image]
    else:
        argv += [request.image, *request.args]
    return argv


def codex_extra_mounts(config_dir: Path) -> list[tuple[Path, str]]:
    """The OpenAI CLI also looks for credentials under ~/.openai and ~/.config/openai."""
    return [(config_dir, f"{CONTAINER_HOME}/.openai"), (config_dir, f"{CONTAINER_HOME}/.config/openai")]


def pull_image(image: str, agent_name: str, logs_dir: str = "") -> bool:
    """Best-effort pull; a failed pull falls back to any local image."""
    log(agent_name, f"Pulling image: {image}", style="cyan", logs_dir=logs_dir)
    try:
        result = run_cmd(["docker", "pull", image], quiet=True)
    except FileNotFoundError:
        return False
    if result.returncode != 0:
        log(agent_name, f"Failed to pull {image} - using local image if available", style="yellow", logs_dir=logs_dir)
        return False
    return True


def run_container(request: ContainerRequest, logs_dir: str = "") -> int:
    """Run the container in the foreground and return its exit code."""
    argv = build_docker_command(request)
    log(request.cli, f"Starting container {request.name} ({request.image})", style="cyan", logs_dir=logs_dir)
    try:
        result = run_cmd(argv)
    except FileNotFoundError as exc:
        raise ConfigError("docker not found on PATH", hint="Install Docker: https://docs.docker.com/get-docker/") from exc
    return result.returncode

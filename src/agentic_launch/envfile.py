"""Ephemeral environment file handed to `docker run --env-file`.

The file holds secrets, so it only exists for the duration of one container
run: owner-only permissions, ownership checked before anything is written,
removed on normal exit, on error and on SIGTERM/SIGHUP.
"""

import contextlib
import os
import signal
import tempfile
from collections.abc import Generator
from pathlib import Path

from agentic_launch.config import PROJECT_DIR_NAME, AssistantSpec, LauncherConfig, load_conf, parse_conf
from agentic_launch.errors import ConfigError
from agentic_launch.utils import log_verbose

ENV_FILE_MODE = 0o600

# Variables forwarded from the assistant's .conf file.
CONF_FORWARDED_VARS = ("GOOGLE_CLOUD_PROJECT", "ANTHROPIC_API_KEY", "GEMINI_API_KEY", "MISTRAL_API_KEY")

# With this AUTH_METHOD the OpenAI key is deliberately kept out of the container.
CHATGPT_SIGNIN = "chatgpt_signin"


def creds_env_path(project_path: str | Path) -> Path:
    return Path(project_path) / PROJECT_DIR_NAME / "creds" / "env"


def parse_creds_env(text: str) -> list[tuple[str, str]]:
    """Parse `export NAME=value` lines into (name, value) pairs, in file order."""
    return list(parse_conf(text).items())


def conf_env_entries(conf: dict[str, str], environ: dict | None = None) -> list[tuple[str, str]]:
    """Pick the forwarded variables for the container. Pure function.

    Host values from *environ* are the fallback; a value set in the .conf
    file wins over the host one.
    """
    environ = environ or {}
    names = CONF_FORWARDED_VARS
    if conf.get("AUTH_METHOD", "") != CHATGPT_SIGNIN:
        names = names + ("OPENAI_API_KEY",)
    entries = []
    for name in names:
        value = conf.get(name) or environ.get(name)
        if value:
            entries.append((name, value))
    return entries


def dedupe_last_wins(entries: list[tuple[str, str]]) -> list[tuple[str, str]]:
    """Keep the last value for each name, ordered by that last occurrence."""
    last = {}
    for index, (name, _) in enumerate(entries):
        last[name] = index
    return [entry for index, entry in enumerate(entries) if last[entry[0]] == index]


def collect_env_entries(
    project_path: str | Path,
    spec: AssistantSpec,
    config: LauncherConfig,
    environ: dict | None = None,
) -> list[tuple[str, str]]:
    """Gather env entries: project creds/env first, then host env and the assistant .conf."""
    entries: list[tuple[str, str]] = []
    creds_file = creds_env_path(project_path)
    if creds_file.is_file():
        try:
            entries.extend(parse_creds_env(creds_file.read_text(encoding="utf-8")))
        except OSError as exc:
            raise ConfigError(f"Cannot read credentials file {creds_file}: {exc}") from exc
    entries.extend(conf_env_entries(load_conf(config, spec.name), environ))
    return dedupe_last_wins(entries)


def render_env_file(entries: list[tuple[str, str]]) -> str:
    """docker --env-file format: NAME=value per line, no quoting."""
    return "".join(f"{name}={value}\n" for name, value in entries)


def _raise_system_exit(signum, frame) -> None:
    raise SystemExit(128 + signum)


@contextlib.contextmanager
def _unwind_on_signals() -> Generator[None, None, None]:
    """Turn SIGTERM/SIGHUP into SystemExit for the scope so finally blocks run."""
    previous = {}
    for name in ("SIGTERM", "SIGHUP"):
        signum = getattr(signal, name, None)
        if signum is None:
            continue
        try:
            previous[signum] = signal.signal(signum, _raise_system_exit)
        except ValueError:
            pass  # Not the main thread; handlers cannot be installed
    try:
        yield
    finally:
        for signum, handler in previous.items():
            signal.signal(signum, handler)


@contextlib.contextmanager
def ephemeral_env_file(
    project_path: str | Path,
    spec: AssistantSpec,
    config: LauncherConfig,
    environ: dict | None = None,
) -> Generator[Path, None, None]:
    """Create the env file for one container run and yield its path.

    Forwarded keys fall back to *environ* (default: os.environ). The file
    is deleted when the block exits, however it exits.
    """
    if environ is None:
        environ = dict(os.environ)
    entries = collect_env_entries(project_path, spec, config, environ)
    logs_dir = str(config.logs_dir)

    with _unwind_on_signals():
        fd, name = tempfile.mkstemp(prefix="agentic-launch-env-", suffix=".env")
        path = Path(name)
        try:
            os.chmod(name, ENV_FILE_MODE)
            if hasattr(os, "getuid") and os.fstat(fd).st_uid != os.getuid():
                raise ConfigError(f"Env file {path} is not owned by the current user")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                fd = -1
                f.write(render_env_file(entries))
            for entry_name, _ in entries:
                log_verbose(spec.name, f"Env file entry: {entry_name}=***", config.verbose, logs_dir)
            yield path
        finally:
            if fd != -1:
                os.close(fd)
            with contextlib.suppress(FileNotFoundError):
                path.unlink()
            log_verbose(spec.name, f"Cleaned up env file: {path}", config.verbose, logs_dir)

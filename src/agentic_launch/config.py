"""Configuration for the assistant launcher.

LauncherConfig is resolved once at process start from environment overrides
and passed explicitly to every component. The assistant table below maps each
supported assistant to its CLI name, prompt filename, credential layout and
image name; generic assistants are declared by <home>/config/<name>.conf.
"""

import hashlib
import os
import re
import sys
from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path

from agentic_launch.errors import ConfigError

APP_NAME = "agentic-launch"

# Hidden directory inside each project: composed prompts, project prompt
# overrides and the creds/env file live under it.
PROJECT_DIR_NAME = ".agentic-launch"

DEFAULT_REGISTRY = "ghcr.io/agentic-launch"

_PACKAGED_SYSTEM_PROMPTS = Path(__file__).resolve().parent / "system_prompts"


# ---------------------------------------------------------------------------
# Assistant table
# ---------------------------------------------------------------------------


class AssistantKind(str, Enum):
    CLAUDE = "claude"
    GEMINI = "gemini"
    CODEX = "codex"
    OPENCODE = "opencode"
    VIBE = "vibe"
    GENERIC = "generic"


@dataclass(frozen=True)
class AssistantSpec:
    """Static description of one assistant."""

    name: str
    cli: str
    kind: AssistantKind
    prompt_filename: str
    api_key_env: str = ""
    credential_dir_name: str = ""
    image_name: str = ""
    auth_method: str = ""

    @property
    def display_name(self) -> str:
        return self.name[:1].upper() + self.name[1:]


KNOWN_ASSISTANTS = {
    "claude": AssistantSpec(
        name="claude",
        cli="claude",
        kind=AssistantKind.CLAUDE,
        prompt_filename="CLAUDE.md",
        api_key_env="ANTHROPIC_API_KEY",
        credential_dir_name=".claude",
        image_name="agentic-launch-claude",
    ),
    "gemini": AssistantSpec(
        name="gemini",
        cli="gemini",
        kind=AssistantKind.GEMINI,
        prompt_filename="GEMINI.md",
        api_key_env="GEMINI_API_KEY",
        credential_dir_name=".gemini",
        image_name="agentic-launch-gemini",
    ),
    "codex": AssistantSpec(
        name="codex",
        cli="codex",
        kind=AssistantKind.CODEX,
        prompt_filename="AGENTS.md",
        api_key_env="OPENAI_API_KEY",
        credential_dir_name=".codex",
        image_name="agentic-launch-codex",
        auth_method="device_code",
    ),
    "opencode": AssistantSpec(
        name="opencode",
        cli="opencode",
        kind=AssistantKind.OPENCODE,
        prompt_filename="OPENCODE.md",
        credential_dir_name=".opencode",
        image_name="agentic-launch-opencode",
    ),
    "vibe": AssistantSpec(
        name="vibe",
        cli="vibe",
        kind=AssistantKind.VIBE,
        prompt_filename="VIBE.md",
        api_key_env="MISTRAL_API_KEY",
        credential_dir_name=".vibe",
        image_name="agentic-launch-vibe",
    ),
}

# Aliases accepted on the command line.
ASSISTANT_ALIASES = {"openai-codex": "codex"}

_ASSISTANT_NAME_RE = re.compile(r"^[a-z0-9][a-z0-9_-]*$")


def prompt_filename_for(cli: str) -> str:
    """Conventional prompt filename for an assistant CLI not in the table."""
    return f"{cli.upper()}.md"


# ---------------------------------------------------------------------------
# Launcher configuration
# ---------------------------------------------------------------------------


def _default_home(environ: dict, platform: str) -> Path:
    """Platform-specific config home (Linux XDG, macOS Application Support, Windows APPDATA)."""
    home = Path(environ.get("HOME") or os.path.expanduser("~"))
    if platform == "darwin":
        return home / "Library" / "Application Support" / APP_NAME
    if platform == "win32":
        appdata = environ.get("APPDATA") or str(home / "AppData" / "Roaming")
        return Path(appdata) / APP_NAME
    xdg = environ.get("XDG_CONFIG_HOME") or str(home / ".config")
    return Path(xdg) / APP_NAME


def _truthy(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class LauncherConfig:
    """Immutable process configuration."""

    home: Path
    system_prompts_dir: Path
    registry: str = DEFAULT_REGISTRY
    verbose: bool = False

    @classmethod
    def from_env(cls, environ: dict | None = None, platform: str | None = None) -> "LauncherConfig":
        """Resolve configuration from environment overrides.

        AGENTIC_LAUNCH_HOME wins over the platform default; the registry and
        the system prompts directory have their own overrides.
        """
        env = dict(os.environ if environ is None else environ)
        plat = platform or sys.platform

        home_override = env.get("AGENTIC_LAUNCH_HOME", "")
        home = Path(home_override).expanduser() if home_override else _default_home(env, plat)

        prompts_override = env.get("AGENTIC_LAUNCH_SYSTEM_PROMPTS", "")
        system_prompts = Path(prompts_override).expanduser() if prompts_override else _PACKAGED_SYSTEM_PROMPTS

        return cls(
            home=home,
            system_prompts_dir=system_prompts,
            registry=env.get("AGENTIC_LAUNCH_REGISTRY", "") or DEFAULT_REGISTRY,
            verbose=_truthy(env.get("AGENTIC_LAUNCH_VERBOSE", "")),
        )

    def with_verbose(self, verbose: bool) -> "LauncherConfig":
        return replace(self, verbose=verbose)

    @property
    def user_prompts_dir(self) -> Path:
        return self.home / "prompts"

    @property
    def logs_dir(self) -> Path:
        return self.home / "logs"

    @property
    def conf_dir(self) -> Path:
        return self.home / "config"

    def assistant_config_dir(self, cli: str) -> Path:
        """Host directory mounted as the assistant's credential/config home."""
        return self.home / cli

    def conf_file(self, name: str) -> Path:
        return self.conf_dir / f"{name}.conf"

    def project_data_dir(self, project_path: str | Path) -> Path:
        return self.home / "data" / project_hash(project_path)


def project_hash(project_path: str | Path) -> str:
    """Short stable identifier for a project: first 12 hex chars of sha256(abs path)."""
    absolute = os.path.abspath(str(project_path))
    return hashlib.sha256(absolute.encode("utf-8")).hexdigest()[:12]


def ensure_home(config: LauncherConfig) -> None:
    """Create the config home and its prompts/logs subdirectories.

    Raises ConfigError when the home cannot be created or written to.
    """
    try:
        for directory in (config.home, config.user_prompts_dir, config.logs_dir):
            directory.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise ConfigError(
            f"Cannot create config directory {config.home}: {exc}",
            hint="Set AGENTIC_LAUNCH_HOME to a writable directory.",
        ) from exc
    if not os.access(config.home, os.W_OK):
        raise ConfigError(
            f"Config directory not writable: {config.home}",
            hint=f"Fix with: chown -R $(id -u):$(id -g) {config.home}",
        )


# ---------------------------------------------------------------------------
# .conf files
# ---------------------------------------------------------------------------

_CONF_LINE_RE = re.compile(r"^\s*(?:export\s+)?([A-Za-z_][A-Za-z0-9_]*)=(.*)$")


def _unquote(value: str) -> str:
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        return value[1:-1]
    return value


def parse_conf(text: str) -> dict[str, str]:
    """Parse KEY=VALUE lines. Skips blanks and comments, strips one level of quotes.

    Pure function. Later assignments override earlier ones.
    """
    values: dict[str, str] = {}
    for line in text.splitlines():
        if not line.strip() or line.lstrip().startswith("#"):
            continue
        match = _CONF_LINE_RE.match(line)
        if match:
            values[match.group(1)] = _unquote(match.group(2))
    return values


def load_conf(config: LauncherConfig, name: str) -> dict[str, str]:
    """Read <home>/config/<name>.conf, or an empty dict when absent or unreadable."""
    path = config.conf_file(name)
    try:
        return parse_conf(path.read_text(encoding="utf-8"))
    except OSError:
        return {}


def resolve_assistant(name: str, config: LauncherConfig) -> AssistantSpec:
    """Look up an assistant by name.

    Known assistants come from KNOWN_ASSISTANTS, with API_KEY_ENV and
    AUTH_METHOD optionally overridden by their .conf file. Any other name
    must have a .conf file declaring it, and becomes a GENERIC assistant.
    """
    key = ASSISTANT_ALIASES.get(name.strip().lower(), name.strip().lower())
    if not _ASSISTANT_NAME_RE.match(key):
        raise ConfigError(f"Invalid assistant name: '{name}'")

    conf = load_conf(config, key)
    if key in KNOWN_ASSISTANTS:
        spec = KNOWN_ASSISTANTS[key]
        overrides = {}
        if "API_KEY_ENV" in conf:
            overrides["api_key_env"] = conf["API_KEY_ENV"]
        if conf.get("AUTH_METHOD"):
            overrides["auth_method"] = conf["AUTH_METHOD"]
        return replace(spec, **overrides) if overrides else spec

    if not config.conf_file(key).is_file():
        known = ", ".join(sorted(KNOWN_ASSISTANTS))
        raise ConfigError(
            f"Unknown assistant '{name}'",
            hint=f"Known assistants: {known}. Declare others in {config.conf_file(key)}.",
        )
    cli = conf.get("ASSISTANT_CLI") or key
    assistant_name = conf.get("ASSISTANT_NAME") or key
    for field_name, value in (("ASSISTANT_NAME", assistant_name), ("ASSISTANT_CLI", cli)):
        if not _ASSISTANT_NAME_RE.match(value):
            raise ConfigError(
                f"Invalid {field_name} in {config.conf_file(key)}: '{value}'",
                hint="Use lowercase letters, digits, '-' and '_' only.",
            )
    return AssistantSpec(
        name=assistant_name,
        cli=cli,
        kind=AssistantKind.GENERIC,
        prompt_filename=prompt_filename_for(cli),
        api_key_env=conf.get("API_KEY_ENV", ""),
        credential_dir_name=conf.get("CONFIG_DIR_NAME") or f".{cli}",
        image_name=conf.get("BASE_IMAGE_NAME") or f"agentic-launch-{cli}",
        auth_method=conf.get("AUTH_METHOD", ""),
    )


def list_assistants(config: LauncherConfig) -> list[str]:
    """Known assistants plus any generic ones declared in the conf directory."""
    names = set(KNOWN_ASSISTANTS)
    try:
        for entry in os.listdir(config.conf_dir):
            if entry.endswith(".conf"):
                stem = entry[: -len(".conf")]
                if _ASSISTANT_NAME_RE.match(stem):
                    names.add(ASSISTANT_ALIASES.get(stem, stem))
    except OSError:
        pass
    return sorted(names)

"""Credential resolver: is this assistant authenticated on the host?

One fixed policy per AssistantKind. The resolver only inspects files and
environment variables; it never writes anything and never puts a secret
value into the verdict (only file paths and variable names).
"""

import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from agentic_launch.config import AssistantKind, AssistantSpec, parse_conf
from agentic_launch.prompts import (
    CLAUDE_REMEDIATION,
    CODEX_REMEDIATION,
    GEMINI_REMEDIATION,
    GENERIC_REMEDIATION,
    VIBE_REMEDIATION,
)


class CredentialMethod(str, Enum):
    TOKEN_FILE = "token-file"
    OAUTH_FILE = "oauth-file"
    API_KEY_ENV = "api-key-env"
    SERVICE_ACCOUNT_PAIR = "service-account-pair"
    AUTH_FILE = "auth-file"
    CONFIG_FILE = "config-file"
    NONE_REQUIRED = "none-required"
    MISSING = "missing"


@dataclass(frozen=True)
class CredentialVerdict:
    assistant: str
    method: CredentialMethod
    authenticated: bool
    detail: str
    warnings: tuple[str, ...] = field(default_factory=tuple)


def _non_empty_file(path: Path) -> bool:
    try:
        return path.is_file() and path.stat().st_size > 0
    except OSError:
        return False


def _env_set(environ, name: str) -> bool:
    return bool(name) and bool(environ.get(name, ""))


def _found(spec, method, detail, warnings=()) -> CredentialVerdict:
    return CredentialVerdict(spec.name, method, True, detail, tuple(warnings))


def _missing(spec, detail) -> CredentialVerdict:
    return CredentialVerdict(spec.name, CredentialMethod.MISSING, False, detail)


def _check_claude(spec, config_dir: Path, environ) -> CredentialVerdict:
    token_file = config_dir / ".credentials.json"
    if not _non_empty_file(token_file):
        return _missing(spec, f"Claude credentials not found: {token_file}")
    warnings = []
    if not (config_dir / ".claude.json").is_file():
        warnings.append("Claude configuration not found; Claude will create default settings on first use")
    return _found(spec, CredentialMethod.TOKEN_FILE, f"Claude credentials found at {token_file}", warnings)


def _check_gemini(spec, config_dir: Path, environ) -> CredentialVerdict:
    oauth_file = config_dir / "oauth_creds.json"
    if _non_empty_file(oauth_file):
        return _found(spec, CredentialMethod.OAUTH_FILE, f"OAuth credentials found at {oauth_file}")
    if _env_set(environ, "GEMINI_API_KEY"):
        return _found(spec, CredentialMethod.API_KEY_ENV, "Found GEMINI_API_KEY")
    project = environ.get("GOOGLE_CLOUD_PROJECT", "")
    creds_path = environ.get("GOOGLE_APPLICATION_CREDENTIALS", "")
    if project and creds_path and Path(creds_path).is_file():
        return _found(
            spec,
            CredentialMethod.SERVICE_ACCOUNT_PAIR,
            "Found Vertex AI credentials (GOOGLE_CLOUD_PROJECT + GOOGLE_APPLICATION_CREDENTIALS)",
        )
    return _missing(spec, "No Gemini credentials found (oauth_creds.json, GEMINI_API_KEY, Vertex AI pair)")


def _check_codex(spec, config_dir: Path, environ) -> CredentialVerdict:
    if _env_set(environ, "OPENAI_API_KEY"):
        return _found(spec, CredentialMethod.API_KEY_ENV, "Found OPENAI_API_KEY")
    auth_file = config_dir / "auth.json"
    if _non_empty_file(auth_file):
        return _found(spec, CredentialMethod.AUTH_FILE, f"Found {auth_file}")
    return _missing(spec, "No OPENAI_API_KEY or auth.json found")


def vibe_conf_path(config_dir: Path) -> Path:
    """The vibe .conf file sits in the config home's config/ directory."""
    return config_dir.parent / "config" / "vibe.conf"


def _check_vibe(spec, config_dir: Path, environ) -> CredentialVerdict:
    if _env_set(environ, "MISTRAL_API_KEY"):
        return _found(spec, CredentialMethod.API_KEY_ENV, "Found MISTRAL_API_KEY in environment")
    conf_file = vibe_conf_path(config_dir)
    try:
        conf = parse_conf(conf_file.read_text(encoding="utf-8"))
    except OSError:
        conf = {}
    if conf.get("MISTRAL_API_KEY", "").strip():
        return _found(spec, CredentialMethod.CONFIG_FILE, f"Found MISTRAL_API_KEY in {conf_file}")
    return _missing(spec, "No MISTRAL_API_KEY found in environment or config")


def _check_generic(spec, config_dir: Path, environ, credential_dir_name: str, api_key_env: str) -> CredentialVerdict:
    if not api_key_env:
        return _found(spec, CredentialMethod.NONE_REQUIRED, f"No API key required for {spec.name}")
    if _env_set(environ, api_key_env):
        return _found(spec, CredentialMethod.API_KEY_ENV, f"Found credentials in {api_key_env}")
    auth_file = config_dir / "auth.json"
    if _non_empty_file(auth_file):
        return _found(spec, CredentialMethod.AUTH_FILE, f"Found credentials file {auth_file}")
    if credential_dir_name:
        cfg_file = config_dir / f"{credential_dir_name}.json"
        if _non_empty_file(cfg_file):
            return _found(spec, CredentialMethod.CONFIG_FILE, f"Found credentials file {cfg_file}")
    return _missing(spec, f"No credentials found for {spec.name} ({api_key_env}, auth.json)")


def resolve_credentials(
    spec: AssistantSpec,
    config_dir: str | Path,
    credential_dir_name: str,
    api_key_env: str,
    environ=None,
) -> CredentialVerdict:
    """Run the assistant's credential policy and return the first satisfied method.

    *environ* defaults to os.environ. Pure predicate: safe to call repeatedly.
    """
    env = os.environ if environ is None else environ
    cfg = Path(config_dir)
    kind = spec.kind
    if kind is AssistantKind.CLAUDE:
        return _check_claude(spec, cfg, env)
    if kind is AssistantKind.GEMINI:
        return _check_gemini(spec, cfg, env)
    if kind is AssistantKind.CODEX:
        return _check_codex(spec, cfg, env)
    if kind is AssistantKind.VIBE:
        return _check_vibe(spec, cfg, env)
    if kind is AssistantKind.OPENCODE:
        return _found(spec, CredentialMethod.NONE_REQUIRED, f"No pre-flight credential check needed for {spec.cli}")
    if kind is AssistantKind.GENERIC:
        return _check_generic(spec, cfg, env, credential_dir_name, api_key_env)
    raise ValueError(f"Unhandled assistant kind: {kind}")


def check_credentials(
    spec: AssistantSpec,
    config_dir: str | Path,
    credential_dir_name: str,
    api_key_env: str,
    environ=None,
) -> bool:
    """True when at least one credential method is satisfied."""
    return resolve_credentials(spec, config_dir, credential_dir_name, api_key_env, environ).authenticated


def remediation_message(spec: AssistantSpec, config_dir: str | Path) -> list[str]:
    """Assistant-specific lines telling the user how to authenticate."""
    kind = spec.kind
    if kind is AssistantKind.CLAUDE:
        text = CLAUDE_REMEDIATION
    elif kind is AssistantKind.GEMINI:
        text = GEMINI_REMEDIATION
    elif kind is AssistantKind.CODEX:
        text = CODEX_REMEDIATION
    elif kind is AssistantKind.VIBE:
        text = VIBE_REMEDIATION.format(conf_file=vibe_conf_path(Path(config_dir)))
    elif kind in (AssistantKind.OPENCODE, AssistantKind.GENERIC):
        text = GENERIC_REMEDIATION.format(
            display_name=spec.display_name,
            api_key_env=spec.api_key_env or "the assistant API key",
            name=spec.name,
        )
    else:
        raise ValueError(f"Unhandled assistant kind: {kind}")
    return text.splitlines()

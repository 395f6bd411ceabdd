"""Prompt composer: merge the eight prompt layers into one instruction document.

The composed prompt is regenerated on every launch and written to
.agentic-launch/<cli>/<PROMPT_FILE> inside the project; <PROMPT_FILE> at the
project root is a symlink to it so the assistant finds it where it expects.
"""

import os
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from agentic_launch.config import PROJECT_DIR_NAME, AssistantSpec, LauncherConfig
from agentic_launch.errors import ConfigError
from agentic_launch.layers import LayerScope, PromptLayer, read_layer, resolve_layers
from agentic_launch.prompts import (
    COMPOSITION_INFO_TEMPLATE,
    COMPOSITION_LAYER_LINE,
    PROJECT_ASSISTANT_HEADING,
    PROJECT_GLOBAL_HEADING,
    USER_ASSISTANT_HEADING,
    USER_BASE_HEADING,
)
from agentic_launch.utils import log, log_verbose

_HEADINGS = {
    LayerScope.USER_BASE_OVERRIDE: USER_BASE_HEADING,
    LayerScope.USER_ASSISTANT_OVERRIDE: USER_ASSISTANT_HEADING,
    LayerScope.PROJECT_GLOBAL_OVERRIDE: PROJECT_GLOBAL_HEADING,
    LayerScope.PROJECT_ASSISTANT_OVERRIDE: PROJECT_ASSISTANT_HEADING,
}

SEPARATOR = "\n\n"


@dataclass(frozen=True)
class ComposedPart:
    """One present layer as it appears in the composed body."""

    scope: LayerScope
    source: Path
    text: str

    @property
    def size(self) -> int:
        return len(self.text.encode("utf-8"))


@dataclass(frozen=True)
class ComposedPrompt:
    assistant: str
    body: str
    footer: str
    composed_at: str
    parts: tuple[ComposedPart, ...]

    @property
    def text(self) -> str:
        return self.body + self.footer

    @property
    def body_size(self) -> int:
        return len(self.body.encode("utf-8"))


def render_part(layer: PromptLayer, raw: str, cli: str) -> str:
    """Render one layer: optional heading, text without trailing newlines, one blank line.

    Pure function.
    """
    heading = _HEADINGS.get(layer.scope)
    content = raw.rstrip("\n")
    if heading:
        content = heading.format(cli=cli) + "\n" + content
    return content + SEPARATOR


def render_footer(assistant: str, composed_at: str, parts: tuple[ComposedPart, ...], body_size: int) -> str:
    """Render the trailing metadata block. Pure function."""
    layer_lines = "".join(
        COMPOSITION_LAYER_LINE.format(scope=part.scope.value, size=part.size) for part in parts
    )
    return COMPOSITION_INFO_TEMPLATE.format(
        assistant=assistant,
        composed_at=composed_at,
        layer_lines=layer_lines,
        body_size=body_size,
    )


def _read(layer: PromptLayer) -> str | None:
    try:
        content = read_layer(layer)
        return content.text if content is not None else None
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigError(f"Cannot read prompt layer {layer.scope.value}: {layer.path}: {exc}") from exc


def compose(
    spec: AssistantSpec,
    project_path: str | Path,
    config: LauncherConfig,
    now: datetime | None = None,
) -> ComposedPrompt:
    """Compose the prompt for *spec* in *project_path*.

    Layers are read in fixed order; optional layers that are absent are
    skipped without changing the relative order of the rest. A missing
    protected prefix or suffix raises ConfigError before anything is written.
    """
    if not Path(project_path).is_dir():
        raise ConfigError(f"Project path does not exist: {project_path}")

    log_verbose(spec.name, f"Composing prompt for {spec.cli}", config.verbose, str(config.logs_dir))

    parts = []
    for layer in resolve_layers(spec, project_path, config):
        raw = _read(layer)
        if raw is None:
            if layer.mandatory:
                raise ConfigError(
                    f"Critical: missing {layer.scope.value} prompt layer: {layer.path}",
                    hint="Reinstall agentic-launch or fix AGENTIC_LAUNCH_SYSTEM_PROMPTS.",
                )
            log_verbose(spec.name, f"  skip {layer.scope.value} (not found)", config.verbose, str(config.logs_dir))
            continue
        parts.append(ComposedPart(scope=layer.scope, source=layer.path, text=render_part(layer, raw, spec.cli)))

    parts = tuple(parts)
    body = "".join(part.text for part in parts)
    stamp = (now or datetime.now().astimezone()).isoformat(timespec="seconds")
    footer = render_footer(spec.cli, stamp, parts, len(body.encode("utf-8")))
    return ComposedPrompt(assistant=spec.cli, body=body, footer=footer, composed_at=stamp, parts=parts)


def prompt_file_path(spec: AssistantSpec, project_path: str | Path) -> Path:
    """Deterministic location of the composed prompt for (project, assistant)."""
    return Path(project_path) / PROJECT_DIR_NAME / spec.cli / spec.prompt_filename


def write_composed_prompt(composed: ComposedPrompt, spec: AssistantSpec, project_path: str | Path) -> Path:
    """Write the composed prompt and (re)point the project-root symlink at it.

    Whatever exists at <project>/<prompt_filename> (file or symlink) is
    replaced. Returns the path of the written prompt file.
    """
    target = prompt_file_path(spec, project_path)
    link = Path(project_path) / spec.prompt_filename
    relative_target = os.path.join(PROJECT_DIR_NAME, spec.cli, spec.prompt_filename)

    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(composed.text, encoding="utf-8")
        if link.is_symlink() or link.is_file():
            link.unlink()
        elif link.exists():
            raise ConfigError(f"Cannot replace {link}: it is a directory")
        os.symlink(relative_target, link)
    except OSError as exc:
        raise ConfigError(f"Failed to write composed prompt for {spec.name}: {exc}") from exc
    return target


def generate_assistant_prompt(
    spec: AssistantSpec,
    project_path: str | Path,
    config: LauncherConfig,
    now: datetime | None = None,
) -> Path:
    """Compose and write the prompt. Returns the written prompt file path."""
    composed = compose(spec, project_path, config, now=now)
    path = write_composed_prompt(composed, spec, project_path)
    log(
        spec.name,
        f"Generated {spec.prompt_filename} ({len(composed.text.encode('utf-8'))} bytes, {len(composed.parts)} layers)",
        style="green",
        logs_dir=str(config.logs_dir),
    )
    return path


def ensure_git_exclusion(project_path: str | Path, filename: str) -> bool:
    """Add *filename* to .git/info/exclude once. Returns True if it was added.

    Local-only exclusion: the symlink never appears as untracked and the
    entry is never committed. No-op outside a git checkout.
    """
    git_dir = Path(project_path) / ".git"
    if not git_dir.is_dir():
        return False
    exclude_file = git_dir / "info" / "exclude"
    try:
        exclude_file.parent.mkdir(parents=True, exist_ok=True)
        existing = exclude_file.read_text(encoding="utf-8") if exclude_file.exists() else ""
        if filename in (line.strip() for line in existing.splitlines()):
            return False
        prefix = "" if not existing or existing.endswith("\n") else "\n"
        with open(exclude_file, "a", encoding="utf-8") as f:
            f.write(f"{prefix}{filename}\n")
    except OSError as exc:
        raise ConfigError(f"Cannot update {exclude_file}: {exc}") from exc
    return True

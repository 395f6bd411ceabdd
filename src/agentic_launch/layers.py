"""Layer store: where each prompt layer lives on disk.

Eight layers, always in the same order. Protected layers ship with the
system prompts; user layers live under the config home; project layers live
in the project's hidden directory.
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from agentic_launch.config import PROJECT_DIR_NAME, AssistantSpec, LauncherConfig


class LayerScope(str, Enum):
    PROTECTED_PREFIX = "protected-prefix"
    CONFIGURABLE_UNIVERSAL = "configurable-universal"
    USER_BASE_OVERRIDE = "user-base-override"
    CONFIGURABLE_ASSISTANT = "configurable-assistant"
    USER_ASSISTANT_OVERRIDE = "user-assistant-override"
    PROJECT_GLOBAL_OVERRIDE = "project-global-override"
    PROJECT_ASSISTANT_OVERRIDE = "project-assistant-override"
    PROTECTED_SUFFIX = "protected-suffix"


# Composition order. Enum definition order already matches, but the
# composer iterates this tuple so the order is explicit in one place.
LAYER_ORDER = (
    LayerScope.PROTECTED_PREFIX,
    LayerScope.CONFIGURABLE_UNIVERSAL,
    LayerScope.USER_BASE_OVERRIDE,
    LayerScope.CONFIGURABLE_ASSISTANT,
    LayerScope.USER_ASSISTANT_OVERRIDE,
    LayerScope.PROJECT_GLOBAL_OVERRIDE,
    LayerScope.PROJECT_ASSISTANT_OVERRIDE,
    LayerScope.PROTECTED_SUFFIX,
)

MANDATORY_SCOPES = frozenset({LayerScope.PROTECTED_PREFIX, LayerScope.PROTECTED_SUFFIX})

ASSISTANT_SCOPES = frozenset({
    LayerScope.CONFIGURABLE_ASSISTANT,
    LayerScope.USER_ASSISTANT_OVERRIDE,
    LayerScope.PROJECT_ASSISTANT_OVERRIDE,
})


@dataclass(frozen=True)
class PromptLayer:
    """One named layer and the file it resolves to."""

    scope: LayerScope
    path: Path
    assistant: str | None = None

    @property
    def mandatory(self) -> bool:
        return self.scope in MANDATORY_SCOPES


@dataclass(frozen=True)
class LayerContent:
    layer: PromptLayer
    text: str


def project_prompts_dir(project_path: str | Path) -> Path:
    return Path(project_path) / PROJECT_DIR_NAME / "prompts"


def _layer_path(scope: LayerScope, cli: str, system_dir: Path, user_dir: Path, project_dir: Path) -> Path:
    if scope is LayerScope.PROTECTED_PREFIX:
        return system_dir / "protected" / "universal-prefix.md"
    if scope is LayerScope.CONFIGURABLE_UNIVERSAL:
        return system_dir / "configurable" / "universal-base.md"
    if scope is LayerScope.USER_BASE_OVERRIDE:
        return user_dir / "base-overrides.md"
    if scope is LayerScope.CONFIGURABLE_ASSISTANT:
        return system_dir / "configurable" / f"{cli}-system.md"
    if scope is LayerScope.USER_ASSISTANT_OVERRIDE:
        return user_dir / f"{cli}-overrides.md"
    if scope is LayerScope.PROJECT_GLOBAL_OVERRIDE:
        return project_dir / "project-overrides.md"
    if scope is LayerScope.PROJECT_ASSISTANT_OVERRIDE:
        return project_dir / f"{cli}-project.md"
    if scope is LayerScope.PROTECTED_SUFFIX:
        return system_dir / "protected" / "universal-suffix.md"
    raise ValueError(f"Unhandled layer scope: {scope}")


def resolve_layers(spec: AssistantSpec, project_path: str | Path, config: LauncherConfig) -> list[PromptLayer]:
    """Return all eight layers for *spec* and *project_path*, in composition order.

    Pure path arithmetic: nothing is read or checked for existence here.
    """
    project_dir = project_prompts_dir(project_path)
    layers = []
    for scope in LAYER_ORDER:
        path = _layer_path(scope, spec.cli, config.system_prompts_dir, config.user_prompts_dir, project_dir)
        assistant = spec.cli if scope in ASSISTANT_SCOPES else None
        layers.append(PromptLayer(scope=scope, path=path, assistant=assistant))
    return layers


def read_layer(layer: PromptLayer) -> LayerContent | None:
    """Return the layer with its text, or None when the file does not exist."""
    if not layer.path.is_file():
        return None
    return LayerContent(layer=layer, text=layer.path.read_text(encoding="utf-8"))

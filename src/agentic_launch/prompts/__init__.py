"""Text templates.

Each constant is a format string. Use .format() to interpolate variables.
This __init__ re-exports every constant so callers can import from
``agentic_launch.prompts`` directly.
"""

from agentic_launch.prompts.composition import (
    COMPOSITION_INFO_TEMPLATE,
    COMPOSITION_LAYER_LINE,
    PROJECT_ASSISTANT_HEADING,
    PROJECT_GLOBAL_HEADING,
    USER_ASSISTANT_HEADING,
    USER_BASE_HEADING,
)
from agentic_launch.prompts.remediation import (
    CLAUDE_REMEDIATION,
    CODEX_REMEDIATION,
    GEMINI_REMEDIATION,
    GENERIC_REMEDIATION,
    LOGIN_START_MESSAGE,
    VIBE_REMEDIATION,
)

__all__ = [
    "CLAUDE_REMEDIATION",
    "CODEX_REMEDIATION",
    "COMPOSITION_INFO_TEMPLATE",
    "COMPOSITION_LAYER_LINE",
    "GEMINI_REMEDIATION",
    "GENERIC_REMEDIATION",
    "LOGIN_START_MESSAGE",
    "PROJECT_ASSISTANT_HEADING",
    "PROJECT_GLOBAL_HEADING",
    "USER_ASSISTANT_HEADING",
    "USER_BASE_HEADING",
    "VIBE_REMEDIATION",
]

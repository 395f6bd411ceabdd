"""Headings and footer used when composing an assistant prompt."""

# Heading line written above each override layer. {cli} is the assistant CLI name.
USER_BASE_HEADING = "# User Base Customizations"
USER_ASSISTANT_HEADING = "# User {cli} Customizations"
PROJECT_GLOBAL_HEADING = "# Project Global Overrides"
PROJECT_ASSISTANT_HEADING = "# Project {cli} Specific"

COMPOSITION_LAYER_LINE = "- Layer {scope}: {size} bytes\n"

COMPOSITION_INFO_TEMPLATE = """\
# Prompt Composition Info
- Assistant: {assistant}
- Composed: {composed_at}
{layer_lines}- System Prompt: {body_size} bytes
"""

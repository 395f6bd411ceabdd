"""Remediation text shown when an assistant is not authenticated."""

CLAUDE_REMEDIATION = """\
Claude is not authenticated.
To authenticate, run:
  agentic-launch login claude"""

GEMINI_REMEDIATION = """\
Gemini authentication required. Choose one method:
1. Run 'agentic-launch run gemini --shell' for interactive OAuth authentication
2. Set GEMINI_API_KEY environment variable
3. For Vertex AI: set GOOGLE_CLOUD_PROJECT + GOOGLE_APPLICATION_CREDENTIALS"""

CODEX_REMEDIATION = """\
No credentials found for codex.
Set OPENAI_API_KEY or run 'agentic-launch login codex' to authenticate."""

VIBE_REMEDIATION = """\
No Mistral API key found.
Get your key at: https://console.mistral.ai/api-keys
Then set MISTRAL_API_KEY, or add MISTRAL_API_KEY="..." to {conf_file}"""

GENERIC_REMEDIATION = """\
{display_name} is not authenticated.
Set {api_key_env}, or run 'agentic-launch login {name}' to authenticate."""

LOGIN_START_MESSAGE = """\
Starting {display_name} authentication...
A browser window may open for you to log in."""

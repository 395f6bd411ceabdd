"""Exception hierarchy for agentic-launch.

Every fatal condition in the launch sequence maps to one of these. The CLI
catches LauncherError, prints the message plus any hint, and exits 1.
"""


class LauncherError(Exception):
    """Base exception for all launcher errors."""

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        super().__init__(message)
        self.hint = hint


class ConfigError(LauncherError):
    """Mandatory prompt layer missing, or config directory unusable."""


class CredentialError(LauncherError):
    """No credential method is satisfied for the assistant."""

    def __init__(self, message: str, *, remediation: list[str] | None = None, hint: str | None = None) -> None:
        super().__init__(message, hint=hint)
        self.remediation = remediation or []


class BranchPolicyError(LauncherError):
    """Requested work branch violates the branch safety policy."""

    def __init__(self, message: str, *, rule: str, protected: list[str] | None = None, hint: str | None = None) -> None:
        super().__init__(message, hint=hint)
        self.rule = rule
        self.protected = sorted(protected or [])


class GitOperationError(LauncherError):
    """A git checkout/create failed. Never retried."""

    def __init__(self, message: str, *, stderr: str = "", hint: str | None = None) -> None:
        super().__init__(message, hint=hint)
        self.stderr = stderr

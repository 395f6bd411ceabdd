"""Version string with git build metadata.

Reports the package version plus commit date and hash when running from a
source checkout (editable installs included). Git runs against this
package's repository, never the caller's project.
"""

import os
import subprocess

PACKAGE_VERSION = "0.1.0"

_REPO_DIR = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


def _run_git(*args: str) -> str | None:
    """Run git in the source repository. Return stdout or None on failure."""
    try:
        result = subprocess.run(
            ["git", "-C", _REPO_DIR, *args],
            capture_output=True,
            text=True,
            timeout=5,
        )
        if result.returncode == 0:
            return result.stdout.strip()
    except (FileNotFoundError, subprocess.TimeoutExpired):
        pass
    return None


def format_version(version: str, commit: str | None, date: str | None, dirty: bool) -> str:
    """'0.1.0' for installed packages, '0.1.0 (2026-02-13 g3a7f2c1+dirty)' from a checkout."""
    if not commit:
        return version
    return f"{version} ({date or 'unknown'} g{commit}{'+dirty' if dirty else ''})"


def get_version() -> str:
    if not os.path.isdir(os.path.join(_REPO_DIR, ".git")):
        return PACKAGE_VERSION
    commit = _run_git("rev-parse", "--short", "HEAD")
    date = _run_git("log", "-1", "--format=%cs")
    dirty = (_run_git("status", "--porcelain") or "") != ""
    return format_version(PACKAGE_VERSION, commit, date, dirty)

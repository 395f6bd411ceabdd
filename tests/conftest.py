"""Shared fixtures: an isolated config home and throwaway git repositories."""

import shutil
import subprocess

import pytest

from agentic_launch.config import LauncherConfig


@pytest.fixture
def config(tmp_path):
    """LauncherConfig rooted in a temporary home, using the packaged system prompts."""
    return LauncherConfig.from_env(
        {"AGENTIC_LAUNCH_HOME": str(tmp_path / "home"), "HOME": str(tmp_path)},
        platform="linux",
    )


@pytest.fixture
def git():
    """Run a git command in a repository and return its stripped stdout."""
    if shutil.which("git") is None:
        pytest.skip("git not installed")

    def _git(repo, *args):
        result = subprocess.run(
            ["git", "-C", str(repo), *args],
            check=True,
            capture_output=True,
            text=True,
        )
        return result.stdout.strip()

    return _git


@pytest.fixture
def empty_repo(tmp_path, git):
    """A git repository on 'main' with no commits yet."""
    repo = tmp_path / "project"
    repo.mkdir()
    git(repo, "init", "-q")
    git(repo, "symbolic-ref", "HEAD", "refs/heads/main")
    git(repo, "config", "user.email", "dev@example.com")
    git(repo, "config", "user.name", "Dev")
    git(repo, "config", "commit.gpgsign", "false")
    return repo


@pytest.fixture
def git_repo(empty_repo, git):
    """A git repository with a single commit on 'main'."""
    git(empty_repo, "commit", "-q", "--allow-empty", "-m", "initial")
    return empty_repo

"""Tests for the ephemeral env file: contents, permissions and cleanup."""

import os
import signal
import stat

import pytest

from agentic_launch.config import KNOWN_ASSISTANTS
from agentic_launch.envfile import (
    ENV_FILE_MODE,
    collect_env_entries,
    conf_env_entries,
    creds_env_path,
    dedupe_last_wins,
    ephemeral_env_file,
    parse_creds_env,
    render_env_file,
)

CLAUDE = KNOWN_ASSISTANTS["claude"]


@pytest.fixture
def project(tmp_path):
    path = tmp_path / "project"
    path.mkdir()
    return path


def _write_creds(project, text):
    path = creds_env_path(project)
    path.parent.mkdir(parents=True)
    path.write_text(text, encoding="utf-8")


# --- pure helpers ---

def test_parse_creds_env():
    text = "# project secrets\nexport GITHUB_TOKEN=ghp_x\nexport DB_URL='postgres://db'\n"
    assert parse_creds_env(text) == [("GITHUB_TOKEN", "ghp_x"), ("DB_URL", "postgres://db")]


def test_conf_entries_forward_known_keys():
    conf = {"GEMINI_API_KEY": "g", "ANTHROPIC_API_KEY": "", "UNRELATED": "u", "OPENAI_API_KEY": "o"}
    assert conf_env_entries(conf) == [("GEMINI_API_KEY", "g"), ("OPENAI_API_KEY", "o")]


def test_conf_entries_drop_openai_key_for_chatgpt_signin():
    conf = {"OPENAI_API_KEY": "o", "AUTH_METHOD": "chatgpt_signin"}
    assert conf_env_entries(conf) == []


def test_conf_entries_fall_back_to_host_environment():
    environ = {"OPENAI_API_KEY": "sk-host", "GEMINI_API_KEY": "g-host", "PATH": "/usr/bin"}
    assert conf_env_entries({"GEMINI_API_KEY": "g-conf"}, environ) == [
        ("GEMINI_API_KEY", "g-conf"),
        ("OPENAI_API_KEY", "sk-host"),
    ]


def test_conf_entries_host_openai_key_dropped_for_chatgpt_signin():
    assert conf_env_entries({"AUTH_METHOD": "chatgpt_signin"}, {"OPENAI_API_KEY": "sk-host"}) == []


def test_dedupe_keeps_last_value():
    assert dedupe_last_wins([("A", "1"), ("B", "2"), ("A", "3")]) == [("B", "2"), ("A", "3")]


def test_render_env_file():
    assert render_env_file([("A", "1"), ("B", "x y")]) == "A=1\nB=x y\n"


def test_collect_merges_creds_and_conf_last_wins(project, config):
    _write_creds(project, "export ANTHROPIC_API_KEY=old\nexport EXTRA=1\n")
    config.conf_dir.mkdir(parents=True)
    config.conf_file("claude").write_text("ANTHROPIC_API_KEY=new\n")
    assert collect_env_entries(project, CLAUDE, config) == [("EXTRA", "1"), ("ANTHROPIC_API_KEY", "new")]


def test_collect_without_sources_is_empty(project, config):
    assert collect_env_entries(project, CLAUDE, config) == []


def test_host_api_key_reaches_env_file(project, config):
    """A key that satisfied the credential check must also reach the container."""
    codex = KNOWN_ASSISTANTS["codex"]
    with ephemeral_env_file(project, codex, config, environ={"OPENAI_API_KEY": "sk-host"}) as path:
        assert path.read_text(encoding="utf-8") == "OPENAI_API_KEY=sk-host\n"


# --- scoped file ---

def test_env_file_lifecycle(project, config):
    _write_creds(project, "export GITHUB_TOKEN=ghp_x\n")
    with ephemeral_env_file(project, CLAUDE, config, environ={}) as path:
        assert path.is_file()
        assert stat.S_IMODE(os.stat(path).st_mode) == ENV_FILE_MODE
        assert path.read_text(encoding="utf-8") == "GITHUB_TOKEN=ghp_x\n"
    assert not path.exists()


def test_env_file_removed_after_exception(project, config):
    with pytest.raises(RuntimeError):
        with ephemeral_env_file(project, CLAUDE, config) as path:
            raise RuntimeError("container failed")
    assert not path.exists()


def test_env_file_already_removed_is_fine(project, config):
    with ephemeral_env_file(project, CLAUDE, config) as path:
        path.unlink()
    assert not path.exists()


@pytest.mark.skipif(not hasattr(signal, "SIGTERM") or os.name == "nt", reason="POSIX signals only")
def test_sigterm_unwinds_and_removes_file(project, config):
    previous = signal.getsignal(signal.SIGTERM)
    with pytest.raises(SystemExit):
        with ephemeral_env_file(project, CLAUDE, config) as path:
            os.kill(os.getpid(), signal.SIGTERM)
    assert not path.exists()
    assert signal.getsignal(signal.SIGTERM) == previous


def test_verbose_log_lists_names_not_values(project, config):
    _write_creds(project, "export GITHUB_TOKEN=ghp_very_secret\n")
    verbose = config.with_verbose(True)
    with ephemeral_env_file(project, CLAUDE, verbose, environ={}):
        pass
    log_text = (verbose.logs_dir / "claude.log").read_text(encoding="utf-8")
    assert "GITHUB_TOKEN=***" in log_text
    assert "ghp_very_secret" not in log_text

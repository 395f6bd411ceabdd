"""Tests for the branch lifecycle: validation, the pure decision, and git side effects."""

import subprocess
from datetime import datetime

import pytest

from agentic_launch import branches
from agentic_launch.branches import (
    RULE_INVALID_FORMAT,
    RULE_PROTECTED,
    RULE_SINGLE_BRANCH,
    STATIC_PROTECTED_BRANCHES,
    BranchAction,
    BranchDecision,
    BranchState,
    GitHubProtectedBranchSource,
    NullProtectedBranchSource,
    ProtectedBranchSource,
    RepoSnapshot,
    apply_branch_decision,
    capture_repo_state,
    decide_branch,
    detect_remote_default_branch,
    get_current_branch,
    get_protected_branches,
    has_commits,
    list_local_branches,
    parse_branch_lines,
    parse_symbolic_ref,
    prepare_work_branch,
    validate_branch_name,
    validate_work_branch,
)
from agentic_launch.errors import BranchPolicyError, GitOperationError

NOW = datetime(2026, 3, 14, 9, 26, 53)


def _snapshot(current="develop", local=("main", "develop"), extra_protected=()):
    return RepoSnapshot(
        current_branch=current,
        branches=frozenset(local),
        protected=frozenset(STATIC_PROTECTED_BRANCHES | set(extra_protected)),
    )


# ============================================
# validate_branch_name / validate_work_branch
# ============================================


@pytest.mark.parametrize("name", ["feature/x", "fix-123", "release_notes", "v1.2.3", "a/b/c"])
def test_valid_branch_names(name):
    assert validate_branch_name(name)


@pytest.mark.parametrize("name", ["", "has space", "semi;colon", "$(whoami)", "tick`", "star*", "-option"])
def test_invalid_branch_names(name):
    assert not validate_branch_name(name)


def test_validate_work_branch_accepts_feature_branch():
    assert validate_work_branch("feature/login", STATIC_PROTECTED_BRANCHES) is None


def test_validate_work_branch_rejects_protected_and_lists_set():
    reason = validate_work_branch("main", STATIC_PROTECTED_BRANCHES)
    assert "protected" in reason
    for name in STATIC_PROTECTED_BRANCHES:
        assert name in reason


def test_validate_work_branch_rejects_bad_format():
    assert "Invalid" in validate_work_branch("bad name", STATIC_PROTECTED_BRANCHES)


# ============================================
# Parsers
# ============================================


def test_parse_branch_lines_strips_marker_and_blanks():
    assert parse_branch_lines("* main\n  develop\n\n feature/x \n") == ["main", "develop", "feature/x"]


def test_parse_symbolic_ref_extracts_branch():
    assert parse_symbolic_ref("refs/remotes/origin/develop\n") == "develop"


def test_parse_symbolic_ref_rejects_other_refs():
    assert parse_symbolic_ref("refs/heads/main") == ""
    assert parse_symbolic_ref("") == ""


# ============================================
# decide_branch (pure)
# ============================================


def test_no_explicit_branch_creates_timestamped_from_current():
    decision = decide_branch(_snapshot(), "claude", now=NOW)
    assert decision.action is BranchAction.CREATE
    assert decision.target_branch == "claude-2026-03-14-092653"
    assert decision.base_branch == "develop"
    assert decision.state is BranchState.NO_EXPLICIT_BRANCH


def test_no_explicit_branch_never_rejects_in_single_branch_repo():
    decision = decide_branch(_snapshot(current="main", local=("main",)), "gemini", now=NOW)
    assert decision.action is BranchAction.CREATE
    assert decision.base_branch == "main"


def test_explicit_base_overrides_current_branch():
    decision = decide_branch(_snapshot(), "claude", base_branch="main", now=NOW)
    assert decision.base_branch == "main"


def test_absent_branch_is_created_from_current():
    """main+develop repo, on develop, requesting feature/x: create from develop."""
    decision = decide_branch(_snapshot(), "claude", work_branch="feature/x")
    assert decision.action is BranchAction.CREATE
    assert decision.target_branch == "feature/x"
    assert decision.base_branch == "develop"
    assert decision.state is BranchState.BRANCH_ABSENT


def test_existing_branch_is_reused():
    decision = decide_branch(_snapshot(local=("main", "develop", "feature/x")), "claude", work_branch="feature/x")
    assert decision.action is BranchAction.REUSE
    assert decision.state is BranchState.BRANCH_EXISTS


def test_protected_branch_is_rejected():
    decision = decide_branch(_snapshot(), "claude", work_branch="main")
    assert decision.rejected
    assert decision.rule == RULE_PROTECTED
    assert decision.state is BranchState.REJECTED


def test_remote_default_branch_is_rejected():
    decision = decide_branch(_snapshot(extra_protected=("develop",)), "claude", work_branch="develop")
    assert decision.rule == RULE_PROTECTED


def test_single_branch_repository_rejects_explicit_branch():
    decision = decide_branch(_snapshot(current="main", local=("main",)), "claude", work_branch="feature/x")
    assert decision.rejected
    assert decision.rule == RULE_SINGLE_BRANCH


def test_format_check_runs_before_single_branch_guard():
    decision = decide_branch(_snapshot(current="main", local=("main",)), "claude", work_branch="bad name")
    assert decision.rule == RULE_INVALID_FORMAT


def test_single_branch_guard_runs_before_protected_check():
    decision = decide_branch(_snapshot(current="main", local=("main",)), "claude", work_branch="main")
    assert decision.rule == RULE_SINGLE_BRANCH


@pytest.mark.parametrize("work_branch", ["bad name", "main", "-rf"])
def test_rejection_reason_matches_standalone_validation(work_branch):
    snapshot = _snapshot()
    decision = decide_branch(snapshot, "claude", work_branch=work_branch)
    assert decision.rejected
    assert decision.reason == validate_work_branch(work_branch, snapshot.protected)


@pytest.mark.parametrize(
    "work_branch",
    [None, "feature/x", "develop", "main", "master", "release", "stable", "production", "bad name", "x;y"],
)
def test_accepted_target_is_never_protected(work_branch):
    snapshot = _snapshot()
    decision = decide_branch(snapshot, "claude", work_branch=work_branch, now=NOW)
    if not decision.rejected:
        assert decision.target_branch not in snapshot.protected


# ============================================
# Protected branch sources
# ============================================


class _FailingSource(ProtectedBranchSource):
    def protected_branches(self, project_path):
        raise RuntimeError("API unreachable")


class _FixedSource(ProtectedBranchSource):
    def protected_branches(self, project_path):
        return {"staging", ""}


def test_null_source_reports_nothing(tmp_path):
    assert NullProtectedBranchSource().protected_branches(str(tmp_path)) == set()


def test_protected_set_contains_static_names(tmp_path):
    assert get_protected_branches(str(tmp_path)) >= STATIC_PROTECTED_BRANCHES


def test_external_source_names_are_added(tmp_path):
    protected = get_protected_branches(str(tmp_path), _FixedSource())
    assert "staging" in protected
    assert "" not in protected


def test_failing_external_source_contributes_nothing(tmp_path):
    assert get_protected_branches(str(tmp_path), _FailingSource()) == STATIC_PROTECTED_BRANCHES


def test_github_source_without_gh_is_empty(tmp_path, monkeypatch):
    monkeypatch.setattr(branches, "check_command", lambda name: False)
    assert GitHubProtectedBranchSource().protected_branches(str(tmp_path)) == set()


def test_github_source_parses_protected_names(tmp_path, monkeypatch):
    monkeypatch.setattr(branches, "check_command", lambda name: True)
    monkeypatch.setattr(
        branches,
        "run_cmd",
        lambda args, capture=False, quiet=False: subprocess.CompletedProcess(args, 0, stdout="main\nrelease/1.0\n", stderr=""),
    )
    assert GitHubProtectedBranchSource().protected_branches(str(tmp_path)) == {"main", "release/1.0"}


def test_github_source_api_failure_is_empty(tmp_path, monkeypatch):
    monkeypatch.setattr(branches, "check_command", lambda name: True)
    monkeypatch.setattr(
        branches,
        "run_cmd",
        lambda args, capture=False, quiet=False: subprocess.CompletedProcess(args, 1, stdout="", stderr="HTTP 404"),
    )
    assert GitHubProtectedBranchSource().protected_branches(str(tmp_path)) == set()


# ============================================
# Git read surface (real git)
# ============================================


def test_git_reads_on_fresh_repo(git_repo):
    assert get_current_branch(str(git_repo)) == "main"
    assert list_local_branches(str(git_repo)) == ["main"]
    assert has_commits(str(git_repo))


def test_empty_repo_has_no_commits(empty_repo):
    assert not has_commits(str(empty_repo))


def test_not_a_repository(tmp_path):
    assert get_current_branch(str(tmp_path)) == ""
    assert list_local_branches(str(tmp_path)) == []
    assert detect_remote_default_branch(str(tmp_path)) == ""


def test_remote_default_branch_detected_and_protected(git_repo, git):
    git(git_repo, "update-ref", "refs/remotes/origin/trunk", "HEAD")
    git(git_repo, "symbolic-ref", "refs/remotes/origin/HEAD", "refs/remotes/origin/trunk")
    assert detect_remote_default_branch(str(git_repo)) == "trunk"
    assert "trunk" in capture_repo_state(str(git_repo)).protected


# ============================================
# apply / prepare (real git)
# ============================================


@pytest.fixture
def two_branch_repo(git_repo, git):
    """main + develop, with develop checked out one commit ahead."""
    git(git_repo, "checkout", "-q", "-b", "develop")
    git(git_repo, "commit", "-q", "--allow-empty", "-m", "develop work")
    return git_repo


def test_prepare_creates_timestamped_branch(git_repo, config):
    decision = prepare_work_branch(git_repo, "claude", config, now=NOW)
    assert decision.state is BranchState.ACTIVE
    assert decision.target_branch == "claude-2026-03-14-092653"
    assert get_current_branch(str(git_repo)) == "claude-2026-03-14-092653"


def test_prepare_creates_feature_branch_from_develop(two_branch_repo, config, git):
    decision = prepare_work_branch(two_branch_repo, "claude", config, work_branch="feature/x")
    assert decision.action is BranchAction.CREATE
    assert decision.base_branch == "develop"
    assert get_current_branch(str(two_branch_repo)) == "feature/x"
    assert git(two_branch_repo, "rev-parse", "feature/x") == git(two_branch_repo, "rev-parse", "develop")


def test_prepare_explicit_base_branch(two_branch_repo, config, git):
    prepare_work_branch(two_branch_repo, "claude", config, base_branch="main", work_branch="feature/z")
    assert git(two_branch_repo, "rev-parse", "feature/z") == git(two_branch_repo, "rev-parse", "main")


def test_prepare_rejects_protected_branch_without_touching_checkout(two_branch_repo, config):
    with pytest.raises(BranchPolicyError) as excinfo:
        prepare_work_branch(two_branch_repo, "claude", config, work_branch="main")
    assert excinfo.value.rule == RULE_PROTECTED
    assert "main" in excinfo.value.protected
    assert excinfo.value.hint
    assert get_current_branch(str(two_branch_repo)) == "develop"


def test_prepare_rejects_explicit_branch_in_single_branch_repo(git_repo, config):
    with pytest.raises(BranchPolicyError) as excinfo:
        prepare_work_branch(git_repo, "claude", config, work_branch="feature/x")
    assert excinfo.value.rule == RULE_SINGLE_BRANCH
    assert list_local_branches(str(git_repo)) == ["main"]


def test_prepare_reuses_existing_branch(two_branch_repo, config, git):
    git(two_branch_repo, "branch", "feature/y", "main")
    git(two_branch_repo, "branch", "--set-upstream-to=main", "feature/y")
    tip = git(two_branch_repo, "rev-parse", "feature/y")

    decision = prepare_work_branch(two_branch_repo, "claude", config, work_branch="feature/y", base_branch="develop")

    assert decision.action is BranchAction.REUSE
    assert decision.base_branch == ""
    assert get_current_branch(str(two_branch_repo)) == "feature/y"
    assert git(two_branch_repo, "rev-parse", "feature/y") == tip
    assert git(two_branch_repo, "config", "branch.feature/y.merge") == "refs/heads/main"
    assert git(two_branch_repo, "rev-parse", "--abbrev-ref", "feature/y@{upstream}") == "main"


def test_prepare_fails_on_empty_repository(empty_repo, config):
    with pytest.raises(GitOperationError):
        prepare_work_branch(empty_repo, "claude", config)


def test_prepare_rejects_malformed_base_branch(git_repo, config):
    with pytest.raises(BranchPolicyError):
        prepare_work_branch(git_repo, "claude", config, base_branch="main;rm")


def test_apply_failed_checkout_raises(git_repo):
    decision = BranchDecision(BranchAction.REUSE, "does-not-exist", "", "reuse", BranchState.BRANCH_EXISTS)
    with pytest.raises(GitOperationError):
        apply_branch_decision(str(git_repo), decision)


def test_apply_create_without_base_raises(git_repo):
    decision = BranchDecision(BranchAction.CREATE, "feature/q", "", "create", BranchState.BRANCH_ABSENT)
    with pytest.raises(GitOperationError):
        apply_branch_decision(str(git_repo), decision)


def test_apply_rejected_decision_raises_policy_error(git_repo):
    decision = BranchDecision(BranchAction.REJECT, "main", "main", "nope", BranchState.REJECTED, RULE_PROTECTED)
    with pytest.raises(BranchPolicyError):
        apply_branch_decision(str(git_repo), decision)

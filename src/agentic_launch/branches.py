"""Branch lifecycle: decide and apply the work branch for one launch.

Flow per invocation:
1. capture_repo_state() snapshots current branch, local branches and the
   protected set before anything else touches the checkout
2. decide_branch() turns the snapshot plus the request into a BranchDecision
   (pure: reuse, create or reject)
3. apply_branch_decision() runs the single git checkout, failing hard on error
"""

import re
import subprocess
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from pathlib import Path

from agentic_launch.config import LauncherConfig
from agentic_launch.errors import BranchPolicyError, GitOperationError
from agentic_launch.utils import check_command, log, log_verbose, pushd, run_cmd, run_git

STATIC_PROTECTED_BRANCHES = frozenset({"main", "master", "stable", "production", "release"})

_BRANCH_NAME_RE = re.compile(r"^[A-Za-z0-9._/-]+$")

RULE_INVALID_FORMAT = "invalid-format"
RULE_SINGLE_BRANCH = "single-branch-repository"
RULE_PROTECTED = "protected-branch"


class BranchAction(str, Enum):
    REUSE = "reuse"
    CREATE = "create"
    REJECT = "reject"


class BranchState(str, Enum):
    NO_EXPLICIT_BRANCH = "NoExplicitBranch"
    EXPLICIT_BRANCH_REQUESTED = "ExplicitBranchRequested"
    BRANCH_EXISTS = "BranchExists"
    BRANCH_ABSENT = "BranchAbsent"
    REJECTED = "Rejected"
    ACTIVE = "Active"


@dataclass(frozen=True)
class BranchDecision:
    action: BranchAction
    target_branch: str
    base_branch: str
    reason: str
    state: BranchState
    rule: str = ""

    @property
    def rejected(self) -> bool:
        return self.action is BranchAction.REJECT


@dataclass(frozen=True)
class RepoSnapshot:
    """Repository state captured before any checkout side effect."""

    current_branch: str
    branches: frozenset[str]
    protected: frozenset[str]


# ============================================
# Protected branch sources
# ============================================


class ProtectedBranchSource:
    """Optional external source of protected branch names. Default: none."""

    def protected_branches(self, project_path: str) -> set[str]:
        return set()


NullProtectedBranchSource = ProtectedBranchSource


class GitHubProtectedBranchSource(ProtectedBranchSource):
    """Ask the GitHub API (via gh) which branches are protected.

    Best effort: a missing gh binary, no auth, no network or a non-GitHub
    remote all yield an empty set.
    """

    def protected_branches(self, project_path: str) -> set[str]:
        if not check_command("gh"):
            return set()
        try:
            with pushd(project_path):
                result = run_cmd(
                    ["gh", "api", "repos/:owner/:repo/branches",
                     "--jq", ".[] | select(.protected==true) | .name"],
                    capture=True,
                )
        except (OSError, subprocess.SubprocessError):
            return set()
        if result.returncode != 0:
            return set()
        return set(parse_branch_lines(result.stdout))


# ============================================
# Git read surface
# ============================================


def parse_branch_lines(output: str) -> list[str]:
    """Split one-name-per-line git output into branch names.

    Pure function: strips whitespace and a leading '* ' current-branch marker,
    drops blanks.
    """
    names = []
    for line in output.splitlines():
        name = line.strip()
        if name.startswith("* "):
            name = name[2:].strip()
        if name:
            names.append(name)
    return names


def parse_symbolic_ref(output: str, remote: str = "origin") -> str:
    """Turn 'refs/remotes/origin/develop' into 'develop'. Empty string otherwise."""
    ref = output.strip()
    prefix = f"refs/remotes/{remote}/"
    if ref.startswith(prefix):
        return ref[len(prefix):]
    return ""


def has_commits(project_path: str) -> bool:
    """True when HEAD points at a commit (i.e. the repo is not empty)."""
    return run_git(project_path, "rev-parse", "--verify", "--quiet", "HEAD").returncode == 0


def get_current_branch(project_path: str) -> str:
    """Current branch name, or empty string when detached or not a repository."""
    result = run_git(project_path, "branch", "--show-current")
    if result.returncode != 0:
        return ""
    return result.stdout.strip()


def list_local_branches(project_path: str) -> list[str]:
    result = run_git(project_path, "for-each-ref", "--format=%(refname:short)", "refs/heads/")
    if result.returncode != 0:
        return []
    return parse_branch_lines(result.stdout)


def detect_remote_default_branch(project_path: str, remote: str = "origin") -> str:
    """Default branch of *remote* from its symbolic HEAD, or empty string."""
    result = run_git(project_path, "symbolic-ref", f"refs/remotes/{remote}/HEAD")
    if result.returncode != 0:
        return ""
    return parse_symbolic_ref(result.stdout, remote)


def get_protected_branches(project_path: str, source: ProtectedBranchSource | None = None) -> frozenset[str]:
    """Union of static protected names, the remote default branch and *source*'s names.

    Failures of the external source never propagate; they contribute nothing.
    """
    protected = set(STATIC_PROTECTED_BRANCHES)
    default_branch = detect_remote_default_branch(project_path)
    if default_branch:
        protected.add(default_branch)
    if source is not None:
        try:
            protected.update(name for name in source.protected_branches(project_path) if name)
        except Exception:
            pass  # Best effort: an unreachable API must not block a launch
    return frozenset(protected)


def capture_repo_state(project_path: str, source: ProtectedBranchSource | None = None) -> RepoSnapshot:
    return RepoSnapshot(
        current_branch=get_current_branch(project_path),
        branches=frozenset(list_local_branches(project_path)),
        protected=get_protected_branches(project_path, source),
    )


# ============================================
# Validation and decision (pure)
# ============================================


def validate_branch_name(name: str) -> bool:
    """Allowed characters: letters, digits, '.', '/', '_', '-'.

    Names starting with '-' are refused as well, since git would read them
    as options.
    """
    return bool(name) and bool(_BRANCH_NAME_RE.match(name)) and not name.startswith("-")


def validate_work_branch(name: str, protected: frozenset[str] | set[str]) -> str | None:
    """Return a rejection reason, or None if *name* may be used as a work branch."""
    if not validate_branch_name(name):
        return f"Invalid work branch name format: '{name}' (allowed: a-z A-Z 0-9 . / _ -)"
    if name in protected:
        listed = ", ".join(sorted(protected))
        return f"Cannot use protected branch as work branch: '{name}' (protected: {listed})"
    return None


def timestamped_branch_name(assistant_name: str, now: datetime) -> str:
    return f"{assistant_name}-{now.strftime('%Y-%m-%d-%H%M%S')}"


def _reject(target: str, base: str, reason: str, rule: str) -> BranchDecision:
    return BranchDecision(BranchAction.REJECT, target, base, reason, BranchState.REJECTED, rule)


def decide_branch(
    snapshot: RepoSnapshot,
    assistant_name: str,
    base_branch: str | None = None,
    work_branch: str | None = None,
    now: datetime | None = None,
) -> BranchDecision:
    """Decide what to do with the work branch for this launch.

    Without *work_branch* a timestamped branch is always created from the
    base (explicit *base_branch*, else the snapshot's current branch). With
    one, it must pass the format check, the repository must have at least two
    branches, and it must not be protected; it is then reused if it exists
    locally and created from the base otherwise.
    """
    base = base_branch or snapshot.current_branch

    if not work_branch:
        name = timestamped_branch_name(assistant_name, now or datetime.now())
        return BranchDecision(
            BranchAction.CREATE, name, base,
            f"Creating timestamped branch {name} from {base or '(unknown)'}",
            BranchState.NO_EXPLICIT_BRANCH,
        )

    reason = validate_work_branch(work_branch, frozenset())
    if reason:
        return _reject(work_branch, base, reason, RULE_INVALID_FORMAT)

    if len(snapshot.branches) <= 1:
        return _reject(
            work_branch, base,
            f"Repository has {len(snapshot.branches)} branch(es); an explicit work branch "
            f"requires at least two so the only branch is never rewritten",
            RULE_SINGLE_BRANCH,
        )

    reason = validate_work_branch(work_branch, snapshot.protected)
    if reason:
        return _reject(work_branch, base, reason, RULE_PROTECTED)

    if work_branch in snapshot.branches:
        return BranchDecision(
            BranchAction.REUSE, work_branch, "",
            f"Using existing local branch: {work_branch}",
            BranchState.BRANCH_EXISTS,
        )

    return BranchDecision(
        BranchAction.CREATE, work_branch, base,
        f"Creating new branch: {work_branch} from {base or '(unknown)'}",
        BranchState.BRANCH_ABSENT,
    )


# ============================================
# Side effects
# ============================================


def apply_branch_decision(project_path: str, decision: BranchDecision) -> BranchDecision:
    """Run the git command for *decision* and return it in the Active state.

    Any git failure raises GitOperationError; nothing is retried and no
    branch state is guessed at.
    """
    if decision.rejected:
        raise BranchPolicyError(decision.reason, rule=decision.rule)

    if decision.action is BranchAction.REUSE:
        result = run_git(project_path, "checkout", decision.target_branch)
        if result.returncode != 0:
            raise GitOperationError(
                f"Failed to switch to existing branch: {decision.target_branch}",
                stderr=result.stderr.strip(),
            )
    else:
        if not decision.base_branch:
            raise GitOperationError(
                "Cannot determine current branch to create the work branch from",
                hint="Checkout a branch first, or pass --base-branch.",
            )
        result = run_git(project_path, "checkout", "-b", decision.target_branch, decision.base_branch)
        if result.returncode != 0:
            raise GitOperationError(
                f"Failed to create branch: {decision.target_branch} from {decision.base_branch}",
                stderr=result.stderr.strip(),
            )
    return replace(decision, state=BranchState.ACTIVE)


def prepare_work_branch(
    project_path: str | Path,
    assistant_name: str,
    config: LauncherConfig,
    base_branch: str | None = None,
    work_branch: str | None = None,
    source: ProtectedBranchSource | None = None,
    now: datetime | None = None,
) -> BranchDecision:
    """Snapshot, decide and apply. Returns the Active decision.

    Raises BranchPolicyError on rejection and GitOperationError on git failure.
    """
    project = str(project_path)
    logs_dir = str(config.logs_dir)

    # Snapshot first: the base branch must be read before any checkout.
    snapshot = capture_repo_state(project, source)
    log_verbose(assistant_name, f"Current branch: {snapshot.current_branch or '(detached)'}", config.verbose, logs_dir)
    log_verbose(assistant_name, f"Protected branches: {', '.join(sorted(snapshot.protected))}", config.verbose, logs_dir)

    if not has_commits(project):
        raise GitOperationError(
            "Repository has no commits - cannot create branch",
            hint="Make an initial commit first: git commit --allow-empty -m 'Initial commit'",
        )

    if base_branch and not validate_branch_name(base_branch):
        raise BranchPolicyError(
            f"Invalid base branch name format: '{base_branch}'",
            rule=RULE_INVALID_FORMAT,
            protected=list(snapshot.protected),
        )

    decision = decide_branch(snapshot, assistant_name, base_branch=base_branch, work_branch=work_branch, now=now)
    if decision.rejected:
        hint = f"Use a feature branch name like: feature/{work_branch}" if decision.rule == RULE_PROTECTED else None
        raise BranchPolicyError(decision.reason, rule=decision.rule, protected=list(snapshot.protected), hint=hint)

    log(assistant_name, decision.reason, style="cyan", logs_dir=logs_dir)
    active = apply_branch_decision(project, decision)
    log(assistant_name, f"Now on work branch: {active.target_branch}", style="green", logs_dir=logs_dir)
    return active

"""
Small helpers for interacting with git. Every operation goes
through the command registry and the execution layer, so each
one is logged and recorded like any other command.

Helpers return results or parsed values; they never raise on
a failing git command. Callers decide what a failure means.
"""
# ======================= STANDARDS =======================
from dataclasses import dataclass
from pathlib import Path
import logging as log

# ======================== LOCALS =========================
from .run import RunResult, run_command


logger = log.getLogger("pan.git")

DEFAULT_REMOTE_REFS: tuple[str, ...] = ("origin/master", "origin/main")
REBASE_MARKERS: tuple[str, ...] = ("rebase-merge", "rebase-apply")


@dataclass(frozen=True)
class WorktreeStatus:
    staged: int = 0
    unstaged: int = 0
    untracked: int = 0

    @property
    def clean(self) -> bool:
        return not (self.staged or self.unstaged or self.untracked)


@dataclass(frozen=True)
class BranchStatus:
    name: str
    upstream: str | None
    ahead: int
    behind: int
    detached: bool = False


def current_branch() -> str | None:
    result = run_command("gcur", silence=True)
    if not result.ok: return None
    return result.stdout.strip() or None


def parse_porcelain(text: str) -> WorktreeStatus:
    staged = unstaged = untracked = 0
    for line in text.splitlines():
        if len(line) < 2: continue
        x, y = line[0], line[1]
        if x == "?" and y == "?": untracked += 1; continue
        if x not in (" ", "!"): staged += 1
        if y not in (" ", "!"): unstaged += 1
    return WorktreeStatus(staged, unstaged, untracked)


def worktree_status() -> WorktreeStatus | None:
    result = run_command("gstp", silence=True)
    if not result.ok: return None
    return parse_porcelain(result.stdout)


def fetch_origin() -> RunResult:
    return run_command("gfo")


def ref_exists(ref: str) -> bool:
    return run_command("gsref", {"ref": ref}, silence=True).ok


def resolve_default_remote_ref() -> str:
    """`origin/master` if it exists, else `origin/main`, else master."""
    for ref in DEFAULT_REMOTE_REFS:
        if ref_exists(f"refs/remotes/{ref}"): return ref
    return DEFAULT_REMOTE_REFS[0]


def rebase_onto(target: str, autostash: bool = True) -> RunResult:
    return run_command("grb", {"target": target, "autostash": autostash})


def rebase_in_progress() -> bool:
    for marker in REBASE_MARKERS:
        result = run_command("ggp", {"name": marker}, silence=True)
        path   = result.stdout.strip()
        if result.ok and path and Path(path).exists(): return True
    return False


def abort_rebase() -> RunResult:
    return run_command("grba")


def upstream_of(branch: str = "HEAD") -> str | None:
    result = run_command("gup", {"branch": branch}, silence=True)
    if not result.ok: return None
    return result.stdout.strip() or None


def ahead_behind(base: str, head: str = "HEAD") -> tuple[int, int] | None:
    """`(ahead, behind)` of `head` relative to `base`."""
    result = run_command("gcount", {"base": base, "head": head},
             silence=True)
    if not result.ok: return None
    parts = result.stdout.split()
    if len(parts) != 2: return None
    try: behind, ahead = int(parts[0]), int(parts[1])
    except ValueError: return None
    return ahead, behind


def branch_status() -> BranchStatus | None:
    """
    Position of the current branch against its upstream.

    Branches without an upstream are measured against the
    default remote ref.
    """
    name = current_branch()
    if name is None: return None
    if name == "HEAD":
        return BranchStatus(name=name, upstream=None, ahead=0,
               behind=0, detached=True)
    upstream = upstream_of(name)
    base     = upstream or resolve_default_remote_ref()
    counts   = ahead_behind(base)
    if counts is None:
        logger.debug("no comparable base for %s (tried %s)", name, base)
        counts = (0, 0)
    ahead, behind = counts
    return BranchStatus(name=name, upstream=upstream, ahead=ahead,
           behind=behind)


def create_branch(name: str) -> RunResult:
    return run_command("gcb", {"branch": name})


def stage_all() -> RunResult:
    return run_command("gaa")


def commit(subject: str, body: str | None = None) -> RunResult:
    return run_command("gcmsg", {"subject": subject, "body": body or ""})


def amend_no_edit() -> RunResult:
    return run_command("gcn")


def push_set_upstream(branch: str, remote: str = "origin") -> RunResult:
    return run_command("gpsup", {"branch": branch, "remote": remote})


def stash_message(status: WorktreeStatus) -> str:
    return (f"pan stash before rebase (staged:{status.staged}, "
            f"unstaged:{status.unstaged}, untracked:{status.untracked})")


def stash_push(message: str) -> str | None:
    """Stash everything; returns the new stash ref or None."""
    result = run_command("gsta", {"message": message})
    if not result.ok: return None
    listed = run_command("gstl", silence=True)
    ref    = listed.stdout.strip() if listed.ok else ""
    return ref or "stash@{0}"


def stash_apply(ref: str) -> RunResult:
    return run_command("gstaa", {"ref": ref})


def stash_drop(ref: str) -> RunResult:
    return run_command("gstd", {"ref": ref})

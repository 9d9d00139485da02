"""Push flow: get local changes safely onto origin."""
# ======================= STANDARDS =======================
from dataclasses import dataclass, field
from typing import Any
import logging as log
import sys

# ======================== LOCALS =========================
from .commit_message import CommitMessageProvider
from .commit_message import create_commit_message_provider
from .error_model import PolicyViolation, PushFlowError
from .policy import DEFAULT_POLICY, PushPolicy, sanitize_segment
from .utils import StepResult
from .tui import step_panel
from . import _constants as const
from . import telemetry
from . import gitutils
from . import policy
from . import checks
from . import utils
from . import fix
from . import run


logger = log.getLogger("pan.push")

DEFAULT_PREFIX = "feat"
DEFAULT_SLUG   = "work"


@dataclass(frozen=True)
class PushOptions:
    branch_prefix: str | None = None
    branch_name: str | None = None
    commit_first_line: str | None = None
    commit_body: str | None = None
    source: str | None = field(default=None, compare=False)


@dataclass(frozen=True)
class PushReport:
    branch: str | None
    pushed: bool
    committed: bool
    commands: tuple[str, ...] = ()


def _clean(value: object) -> str | None:
    if value is None: return None
    return str(value).strip()


def normalize_push_options(branch_prefix: str | None = None,
                           branch_name: str | None = None,
                           commit_first_line: str | None = None,
                           commit_body: str | None = None,
                           source: str | None = None,
                           push_policy: PushPolicy = DEFAULT_POLICY
                          ) -> PushOptions:
    """
    Validate supplied push answers before anything touches the
    repository. `None` means "not supplied"; a supplied value
    that cannot be used raises `PolicyViolation`.
    """
    prefix  = _clean(branch_prefix)
    name    = _clean(branch_name)
    subject = _clean(commit_first_line)
    body    = _clean(commit_body)

    if prefix is not None:
        prefix = prefix.lower()
        if not push_policy.is_allowed_prefix(prefix):
            allowed = ", ".join(push_policy.allowed_prefixes)
            raise PolicyViolation(f"branch prefix '{prefix}' is not "
                  f"allowed; use one of: {allowed}")
    if name is not None and not sanitize_segment(name):
        raise PolicyViolation(f"branch name '{branch_name}' has no "
              "usable characters")
    if subject is not None:
        if not subject:
            raise PolicyViolation("commit subject must not be empty")
        if "\n" in subject or "\r" in subject:
            raise PolicyViolation("commit subject must be a single line")

    return PushOptions(branch_prefix=prefix, branch_name=name,
           commit_first_line=subject,
           commit_body=body.replace("\r\n", "\n") if body else None,
           source=source)


class PushFlow:
    """
    Sequential push workflow. Each step returns a message and a
    `StepResult`:
      - OK / SKIP: continue with the next step
      - DONE: stop successfully without pushing
      - FAIL / ABORT: raise `PushFlowError` for the step
    """

    def __init__(self, options: PushOptions | None = None,
                 push_policy: PushPolicy = DEFAULT_POLICY,
                 message_provider: CommitMessageProvider | None = None
                ) -> None:
        self.options  = options or PushOptions()
        self.policy   = push_policy
        self.provider = message_provider
        self.out      = utils.Output(quiet=const.QUIET)

        self.branch:    str | None = None
        self.user:      str = "dev"
        self.stash_ref: str | None = None
        self.on_protected = False
        self.committed    = False
        self.pushed       = False
        self.failure_code: str | None = None

    # ---------- Plan ----------
    def _plan(self) -> tuple[list[Any], list[str], list[str]]:
        steps = [
            self.snapshot,
            self.stash,
            self.rebase,
            self.restore_stash,
            self.negotiate_branch,
            self.remediate,
            self.prepush_checks,
            self.commit,
            self.ahead_gate,
            self.guard,
            self.push,
        ]
        labels = [
            "Snapshot branch",
            "Stash local changes",
            "Rebase onto default branch",
            "Restore stash",
            "Negotiate feature branch",
            "Fix build",
            "Prepush checks",
            "Commit changes",
            "Check branch position",
            "Guard protected branches",
            "Push to origin",
        ]
        keys = [
            "snapshot",
            "stash",
            "rebase",
            "restore",
            "branch",
            "remediate",
            "checks",
            "commit",
            "gate",
            "guard",
            "push",
        ]
        return steps, labels, keys

    def run(self) -> PushReport:
        steps, labels, keys = self._plan()
        use_ui = bool(const.CI_MODE and not const.PLAIN
                 and sys.stdout.isatty())
        self.out.info("starting push flow")

        with run.recording() as records:
            with step_panel(labels, enabled=use_ui) as ui:
                for i, step in enumerate(steps):
                    ui.start(i)
                    msg, result = step(step_idx=i)
                    ui.finish(i, result)
                    telemetry.emit_event("push_step", keys[i],
                        {"result": result.name.lower()})
                    if result is StepResult.DONE: break
                    if result in (StepResult.FAIL, StepResult.ABORT):
                        logger.error("push step %s failed: %s",
                                     keys[i], msg)
                        raise PushFlowError(msg or f"{labels[i]} failed",
                              code=self.failure_code, step=keys[i])
            summary = run.summarize_successful_commands(records) \
                      if self.pushed else []

        if self.pushed:
            self.out.success(f"✔ Pushed {self.branch}")
            if summary:
                self.out.info("commands executed to prepare the push:")
                for line in summary: self.out.muted(f"    - {line}")
        return PushReport(branch=self.branch, pushed=self.pushed,
               committed=self.committed, commands=tuple(summary))

    # ---------- Internal Utilities ----------
    def _provider(self) -> CommitMessageProvider:
        if self.provider is None:
            self.provider = create_commit_message_provider()
        return self.provider

    def _echo(self, what: str, value: str,
              step_idx: int | None = None) -> None:
        source = self.options.source or "options"
        self.out.info(f"{what} (from {source}): {value}",
                      step_idx=step_idx)

    def _blocked(self, outcome: fix.RemediationOutcome,
                 step_idx: int | None = None
                ) -> tuple[str, StepResult]:
        for line in outcome.steps:
            self.out.muted(f"▸ {line}", step_idx=step_idx)
        self.failure_code = "PAN_GIT_REBASE_BLOCKED"
        return outcome.blocked_message or outcome.summary, \
               StepResult.ABORT

    # ---------- Step: Snapshot ----------
    def snapshot(self, step_idx: int | None = None
                ) -> tuple[str | None, StepResult]:
        self.branch = gitutils.current_branch()
        if self.branch is None:
            return "could not determine the current branch", \
                   StepResult.FAIL
        self.user = policy.user_name()
        self.on_protected = self.policy.is_protected(self.branch)
        if self.on_protected:
            self.out.info(f"on {self.branch}: will update, create a "
                          "feature branch, then continue",
                          step_idx=step_idx)
        else: self.out.info(f"on branch {self.branch}",
                            step_idx=step_idx)
        return None, StepResult.OK

    # ---------- Step: Stash ----------
    def stash(self, step_idx: int | None = None
             ) -> tuple[str | None, StepResult]:
        status = gitutils.worktree_status()
        if status is None or status.clean: return None, StepResult.SKIP

        message = gitutils.stash_message(status)
        self.out.info(f"creating stash: {message}", step_idx=step_idx)
        ref = gitutils.stash_push(message)
        if ref is None:
            return ("failed to stash the working tree before rebase; "
                    f"inspect the {const.LOG_DIR_NAME} logs"), \
                   StepResult.FAIL
        self.stash_ref = ref
        self.out.info(f"stash saved as {ref}", step_idx=step_idx)
        return None, StepResult.OK

    # ---------- Step: Rebase ----------
    def rebase(self, step_idx: int | None = None
              ) -> tuple[str | None, StepResult]:
        gitutils.fetch_origin()
        target = gitutils.resolve_default_remote_ref()
        if gitutils.rebase_onto(target).ok: return None, StepResult.OK

        if self.stash_ref:
            self.out.warn(f"rebase failed; changes remain in "
                          f"{self.stash_ref}. Apply it manually after "
                          "resolving conflicts.", step_idx=step_idx)
        return f"rebase onto {target} failed; resolve conflicts " \
               "then retry", StepResult.FAIL

    # ---------- Step: Restore ----------
    def restore_stash(self, step_idx: int | None = None
                     ) -> tuple[str | None, StepResult]:
        ref = self.stash_ref
        if not ref: return None, StepResult.SKIP

        self.out.info(f"restoring {ref}", step_idx=step_idx)
        if not gitutils.stash_apply(ref).ok:
            self.out.warn(f"stash apply failed; {ref} kept for manual "
                          "inspection", step_idx=step_idx)
            return None, StepResult.OK
        if not gitutils.stash_drop(ref).ok:
            self.out.warn(f"could not drop {ref}; drop it manually",
                          step_idx=step_idx)
        self.stash_ref = None
        return None, StepResult.OK

    # ---------- Step: Branch ----------
    def _branch_parts(self, step_idx: int | None = None
                     ) -> tuple[str, str]:
        opts = self.options
        if opts.branch_prefix:
            prefix = opts.branch_prefix
            self._echo("branch type", prefix, step_idx)
        else: prefix = utils.choose("Branch type",
                       self.policy.allowed_prefixes, DEFAULT_PREFIX)

        if opts.branch_name:
            slug = opts.branch_name
            self._echo("branch name", slug, step_idx)
        else: slug = utils.ask(f"Short branch message [{DEFAULT_SLUG}]:",
                               DEFAULT_SLUG)
        return prefix, sanitize_segment(slug) or DEFAULT_SLUG

    def negotiate_branch(self, step_idx: int | None = None
                        ) -> tuple[str | None, StepResult]:
        branch = self.branch or ""
        if not self.on_protected \
                and self.policy.valid_feature_branch(branch, self.user):
            return None, StepResult.SKIP

        prefix, slug = self._branch_parts(step_idx)
        name = self.policy.feature_branch(self.user, prefix, slug)
        if not gitutils.create_branch(name).ok:
            return f"failed to create feature branch {name}", \
                   StepResult.FAIL
        self.branch       = name
        self.on_protected = False
        self.out.success(f"created {name}", step_idx=step_idx)
        return None, StepResult.OK

    # ---------- Step: Remediate ----------
    def remediate(self, step_idx: int | None = None
                 ) -> tuple[str | None, StepResult]:
        self.out.info("fixing build (smart)...", step_idx=step_idx)
        outcome = fix.smart_build_fix(label="push")
        self.out.info(outcome.summary, step_idx=step_idx)
        if outcome.blocked: return self._blocked(outcome, step_idx)
        if not outcome.ok:
            self.out.warn("build still failing; continuing with "
                          "prepush checks", step_idx=step_idx)
        return None, StepResult.OK

    # ---------- Step: Checks ----------
    def prepush_checks(self, step_idx: int | None = None
                      ) -> tuple[str | None, StepResult]:
        report = checks.run_prepush_checks()
        if report: return None, StepResult.OK

        self.out.warn(f"prepush checks failed at {report.failed_step}; "
                      "trying another remediation pass",
                      step_idx=step_idx)
        retry = fix.smart_build_fix(label="push-retry")
        self.out.info(retry.summary, step_idx=step_idx)
        if retry.blocked: return self._blocked(retry, step_idx)

        report = checks.run_prepush_checks()
        if report: return None, StepResult.OK
        return f"prepush checks still failing at {report.failed_step}", \
               StepResult.FAIL

    # ---------- Step: Commit ----------
    def commit(self, step_idx: int | None = None
              ) -> tuple[str | None, StepResult]:
        status = gitutils.worktree_status()
        if status is None:
            return "could not read the worktree status", StepResult.FAIL
        if status.clean: return None, StepResult.SKIP

        if not gitutils.stage_all().ok:
            return "failed to stage changes", StepResult.FAIL
        opts    = self.options
        message = self._provider().get_commit_message(
                  const.DEFAULT_COMMIT_SUBJECT, opts.commit_first_line,
                  opts.commit_body)
        if opts.commit_first_line:
            self._echo("commit subject", message.subject, step_idx)
        if not gitutils.commit(message.subject, message.body).ok:
            return "commit failed", StepResult.FAIL
        self.committed = True

        if checks.dirty_index_check().ok: return None, StepResult.OK
        self.out.warn("dirty-index check failed after commit; trying "
                      "lint/type-check and recommit", step_idx=step_idx)
        checks.lint_fix()
        checks.type_check()
        gitutils.stage_all()
        gitutils.amend_no_edit()
        if checks.dirty_index_check().ok: return None, StepResult.OK
        self.failure_code = "PAN_GIT_DIRTY_INDEX"
        return "dirty-index check still failing", StepResult.FAIL

    # ---------- Step: Gate ----------
    def ahead_gate(self, step_idx: int | None = None
                  ) -> tuple[str | None, StepResult]:
        if self.committed: return None, StepResult.OK

        status = gitutils.branch_status()
        if status is None or status.ahead == 0:
            self.out.info("nothing to push: branch is not ahead of "
                          "its upstream", step_idx=step_idx)
            return None, StepResult.DONE

        base = status.upstream or "the default branch"
        if not utils.confirm(f"{status.name} is {status.ahead} "
                             f"commit(s) ahead of {base}. Push now?",
                             default=True):
            self.out.info("push skipped", step_idx=step_idx)
            return None, StepResult.DONE
        return None, StepResult.OK

    # ---------- Step: Guard ----------
    def guard(self, step_idx: int | None = None
             ) -> tuple[str | None, StepResult]:
        if self.branch and not self.policy.is_protected(self.branch):
            return None, StepResult.OK
        return f"refusing to push {self.branch}; create a feature " \
               "branch first", StepResult.ABORT

    # ---------- Step: Push ----------
    def push(self, step_idx: int | None = None
            ) -> tuple[str | None, StepResult]:
        branch = self.branch or ""
        if not gitutils.push_set_upstream(branch).ok:
            return f"push of {branch} failed", StepResult.FAIL
        self.pushed = True
        return None, StepResult.OK


def push_flow(options: PushOptions | None = None,
              message_provider: CommitMessageProvider | None = None
             ) -> PushReport:
    return PushFlow(options, message_provider=message_provider).run()

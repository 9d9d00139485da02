"""
Smart build remediation engine.

`SmartBuildFix` walks a fixed plan of phases. Each phase either
returns a `RemediationOutcome` (the run is over) or `None` (fall
through to the next phase):

  1. priority fast path: fetch, rebase onto the default remote
     ref, then cache clean, install, build, lint, type-check on
     the root workspace
  2. build the workspaces touched by local changes
  3. heuristic remediation derived from the failure output
  4. rebuild
  5. reinstall dependencies and rebuild
  6. deep clean (interactive and confirmed only), reinstall and
     rebuild
  7. summarize and, unless told otherwise, consult the assistant

A failed rebase in phase 1 ends the run with a blocked outcome:
the rebase is aborted and recovery commands are suggested, but
nothing else is attempted.
"""
from __future__ import annotations

# ======================= STANDARDS =======================
from dataclasses import dataclass, replace
from typing import Callable
import logging as log

# ======================== LOCALS =========================
from .remediation_policy import alias_for, can_run_remediation
from .remediation_policy import requires_confirmation
from .commands import CommandInstance, resolve_command
from .workspaces import Workspace
from . import _constants as const
from . import classifier
from . import workspaces
from . import assistant
from . import telemetry
from . import gitutils
from . import utils
from . import run


logger = log.getLogger("pan.fix")

PRIORITY_SCRIPTS: tuple[str, ...] = ("build", "lint", "type-check")
CONSULT_QUESTION = ("What additional build or remediation commands "
                    "should pan try next to restore a passing build?")


@dataclass(frozen=True)
class BuildFailure:
    workspace: Workspace
    result: run.RunResult
    script: str = "build"

    @property
    def target(self) -> str:
        return f"{self.workspace.name}:{self.script}"


@dataclass(frozen=True)
class BuildPass:
    ok: bool
    failures: tuple[BuildFailure, ...] = ()
    ran: int = 0


@dataclass(frozen=True)
class RemediationOutcome:
    ok: bool
    summary: str
    steps: tuple[str, ...] = ()
    failures: tuple[BuildFailure, ...] = ()
    attempts: int = 0
    blocked_message: str | None = None
    consulted: bool = False
    commands: tuple[run.CommandRecord, ...] = ()

    @property
    def blocked(self) -> bool:
        return self.blocked_message is not None

    @classmethod
    def success(cls, summary: str, steps: list[str],
                attempts: int) -> "RemediationOutcome":
        return cls(ok=True, summary=summary, steps=tuple(steps),
               attempts=attempts)

    @classmethod
    def blocked_by(cls, message: str, steps: list[str],
                   attempts: int = 0) -> "RemediationOutcome":
        return cls(ok=False, summary=message.splitlines()[0],
               steps=tuple(steps), attempts=attempts,
               blocked_message=message)

    def with_consulted(self) -> "RemediationOutcome":
        return replace(self, consulted=True)


class SmartBuildFix:
    """Seven-phase remediation run; see module docstring."""

    def __init__(self, skip_consult: bool = False,
                 interactive: bool | None = None,
                 label: str = "fix") -> None:
        self.skip_consult = skip_consult
        self.interactive  = (not const.CI_MODE) if interactive is None \
                            else interactive
        self.label        = label
        self.out          = utils.Output(quiet=const.QUIET)
        self.steps:    list[str] = []
        self.targets:  list[Workspace] = []
        self.failures: tuple[BuildFailure, ...] = ()
        self.attempts  = 0
        self._executed: set[str] = set()

    # ---------- Internal Utilities ----------
    def _note(self, message: str) -> None:
        self.steps.append(message)
        self.out.info(message)
        logger.info("[%s] %s", self.label, message)

    def _phase_event(self, phase: str, **payload: object) -> None:
        telemetry.emit_event("remediation_phase", f"{self.label}:{phase}",
                             {"attempts": self.attempts, **payload})

    def _run_instance(self, instance: CommandInstance) -> run.RunResult:
        return run.execute(instance.command, instance.label)

    def _script_instance(self, workspace: Workspace, script: str
                        ) -> CommandInstance:
        command = workspaces.workspace_script_command(workspace, script)
        return resolve_command("workspace-script", command=command,
               label=f"{workspace.name}: {script}")

    def _script_scope(self) -> list[Workspace]:
        scope = list(self.targets)
        root  = workspaces.root_workspace()
        if root not in scope: scope.append(root)
        return scope

    def _run_builds(self) -> BuildPass:
        failures: list[BuildFailure] = []
        ran = 0
        for workspace in self.targets:
            script = workspaces.select_build_script(workspace)
            if script is None: continue
            ran += 1
            result = self._run_instance(self._script_instance(workspace,
                     script))
            if not result.ok:
                failures.append(BuildFailure(workspace, result, script))
        if ran == 0:
            ran    = 1
            result = run.run_command("yb")
            if not result.ok:
                failures.append(BuildFailure(
                                workspaces.root_workspace(), result))
        self.attempts += 1
        return BuildPass(ok=not failures, failures=tuple(failures),
               ran=ran)

    def _build_and_check(self, label: str) -> "RemediationOutcome | None":
        build = self._run_builds()
        self._phase_event(label, ok=build.ok, ran=build.ran)
        if build.ok:
            return RemediationOutcome.success(f"{label} passed",
                   self.steps, self.attempts)
        self.failures = build.failures
        failing = ", ".join(f.target for f in build.failures)
        self._note(f"{label} failed: {failing}")
        return None

    # ---------- Plan ----------
    def _plan(self) -> list[Callable[[], "RemediationOutcome | None"]]:
        return [
            self.priority_path,
            self.initial_build,
            self.heuristic_remediation,
            self.retry_build,
            self.reinstall,
            self.deep_clean,
        ]

    def run(self) -> RemediationOutcome:
        with run.recording() as records:
            outcome = None
            for phase in self._plan():
                outcome = phase()
                if outcome is not None: break
            if outcome is None: outcome = self.exhausted()
        telemetry.emit_event("remediation_outcome", self.label, {
            "ok": outcome.ok, "attempts": outcome.attempts,
            "blocked": outcome.blocked, "consulted": outcome.consulted,
        })
        return replace(outcome, commands=tuple(records))

    # ---------- Phase 1: priority fast path ----------
    def priority_path(self) -> "RemediationOutcome | None":
        if not gitutils.fetch_origin().ok:
            self._note("fetch failed; skipping priority remediation")
            return None

        target = gitutils.resolve_default_remote_ref()
        rebase = gitutils.rebase_onto(target)
        if not rebase.ok: return self._blocked(target, rebase)

        root  = workspaces.root_workspace()
        chain = [resolve_command("ycc"), resolve_command("yi")]
        chain += [self._script_instance(root, script)
                  for script in PRIORITY_SCRIPTS if root.has_script(script)]
        for instance in chain:
            if not self._run_instance(instance).ok:
                self._note(f"priority step '{instance.label}' failed; "
                           "falling back to targeted remediation")
                self._phase_event("priority", ok=False)
                return None

        self.attempts = 1
        self._phase_event("priority", ok=True)
        return RemediationOutcome.success(
               "priority remediation finished cleanly", self.steps,
               self.attempts)

    def _blocked(self, target: str, rebase: run.RunResult
                ) -> RemediationOutcome:
        lines = [f"Rebase onto {target} failed; pan stopped before "
                 "touching the build."]
        if gitutils.rebase_in_progress():
            aborted = gitutils.abort_rebase().ok
            lines.append("The in-progress rebase was aborted."
                         if aborted else
                         "Aborting the rebase failed; run "
                         "`git rebase --abort` yourself.")
        counts = gitutils.ahead_behind(target)
        if counts is not None:
            ahead, behind = counts
            lines.append(f"Your branch is {ahead} commit(s) ahead and "
                         f"{behind} commit(s) behind {target}.")
        lines += [
            "Recovery options:",
            "  git rebase --abort        # leave a half-finished rebase",
            f"  git reset --hard {target}  # drop local commits, match the remote",
            f"  git rebase {target}  # replay local commits and resolve conflicts",
        ]
        if rebase.log_file: lines.append(f"Rebase log: {rebase.log_file}")
        self._note(lines[0])
        self._phase_event("priority", ok=False, blocked=True)
        return RemediationOutcome.blocked_by("\n".join(lines), self.steps)

    # ---------- Phase 2: targeted build ----------
    def initial_build(self) -> "RemediationOutcome | None":
        self.targets = workspaces.changed_workspaces()
        names = ", ".join(ws.name for ws in self.targets)
        self._note(f"building changed workspaces: {names}")
        return self._build_and_check("initial build")

    # ---------- Phase 3: heuristics ----------
    def _commands_for(self, action: str) -> list[CommandInstance]:
        configured = bool(const.DOCKER_DEV_CMD)
        allowed, reason = can_run_remediation(action, self.interactive,
                          configured=configured)
        if not allowed:
            self._note(f"skipping {action}: {reason}")
            return []
        alias = alias_for(action)
        if alias: return [resolve_command(alias)]
        if action == "docker_remediation":
            return [resolve_command("workspace-script",
                    command=const.DOCKER_DEV_CMD,
                    label="docker dev command")]
        if action == "migrate_scripts":
            return [self._script_instance(ws, script)
                    for ws in self._script_scope()
                    for script in workspaces.find_scripts_by_keywords(
                        ws, ("migrate",))]
        return []

    def heuristic_remediation(self) -> "RemediationOutcome | None":
        blob    = "\n".join(f.result.output for f in self.failures)
        if not blob.strip():
            self._note("no failure output to match; skipping heuristics")
            self._phase_event("heuristics", actions=[], ran=0)
            return None
        actions = classifier.classify(blob)
        planned: list[CommandInstance] = []
        for action in actions: planned += self._commands_for(action)

        keywords = classifier.derive_keywords([blob])
        for workspace in self._script_scope():
            for script in workspaces.find_scripts_by_keywords(workspace,
                          keywords):
                planned.append(self._script_instance(workspace, script))

        ran = 0
        for instance in planned:
            if instance.command in self._executed: continue
            self._executed.add(instance.command)
            ran += 1
            self._run_instance(instance)
        self._note(f"heuristic remediation ran {ran} command(s) "
                   f"(matched: {', '.join(actions) or 'none'}; "
                   f"keywords: {', '.join(keywords)})")
        self._phase_event("heuristics", actions=actions, ran=ran)
        return None

    # ---------- Phase 4: retry ----------
    def retry_build(self) -> "RemediationOutcome | None":
        return self._build_and_check("rebuild after remediation")

    # ---------- Phase 5: reinstall ----------
    def reinstall(self) -> "RemediationOutcome | None":
        run.run_command(alias_for("reinstall") or "yi")
        return self._build_and_check("rebuild after reinstall")

    # ---------- Phase 6: deep clean ----------
    def deep_clean(self) -> "RemediationOutcome | None":
        allowed, reason = can_run_remediation("deep_clean",
                          self.interactive)
        if not allowed:
            self._note(f"deep clean skipped: {reason}")
            return None
        if requires_confirmation("deep_clean"):
            prompt = ("Deep clean deletes build output, tsbuildinfo "
                      "files and every node_modules tree. Continue?")
            if not utils.confirm(prompt, default=False):
                self._note("deep clean skipped: declined")
                return None
        run.run_command(alias_for("deep_clean") or "ffyc")
        run.run_command(alias_for("reinstall") or "yi")
        return self._build_and_check("rebuild after deep clean")

    # ---------- Phase 7: summary ----------
    def exhausted(self) -> RemediationOutcome:
        names   = ", ".join(ws.name for ws in self.targets) or "root"
        failing = ", ".join(f.target for f in self.failures) or "unknown"
        summary = (f"Build still failing after {self.attempts} "
                   f"attempt(s). Workspaces targeted: {names}. "
                   f"Failing targets: {failing}.")
        self._note(summary)
        outcome = RemediationOutcome(ok=False, summary=summary,
                  steps=tuple(self.steps), failures=self.failures,
                  attempts=self.attempts)
        if self.skip_consult: return outcome

        logs = [assistant.log_context_from_file(f.target,
                f.result.log_file) for f in self.failures]
        assistant.consult(summary, CONSULT_QUESTION, logs)
        return outcome.with_consulted()


def smart_build_fix(skip_consult: bool = False,
                    interactive: bool | None = None,
                    label: str = "fix") -> RemediationOutcome:
    """Run the remediation engine once."""
    return SmartBuildFix(skip_consult=skip_consult,
           interactive=interactive, label=label).run()

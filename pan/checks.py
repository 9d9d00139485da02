"""Prepush quality gate: lint, type-check, tests, index check."""
# ======================= STANDARDS =======================
from dataclasses import dataclass
from typing import Callable
import logging as log
import re

# ======================== LOCALS =========================
from .workspaces import Workspace
from . import workspaces
from . import telemetry
from . import run


logger = log.getLogger("pan.checks")

PLACEHOLDER_TEST_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r'^echo\s+["\']?error:\s*no test specified["\']?\s*&&\s*exit\s+1$', re.I),
    re.compile(r"^exit\s+0$"),
    re.compile(r"^(true|:)$"),
    re.compile(r"^echo(\s+[^;&|]*)?$"),
)


@dataclass(frozen=True)
class CheckReport:
    ok: bool
    failed_step: str | None = None

    def __bool__(self) -> bool:
        return self.ok


def lint_fix() -> run.RunResult:
    return run.run_command("ylf")


def type_check() -> run.RunResult:
    return run.run_command("ytc")


def dirty_index_check() -> run.RunResult:
    return run.run_command("ydik")


def is_placeholder_script(body: str) -> bool:
    text = " ".join(body.split())
    return any(p.match(text) for p in PLACEHOLDER_TEST_PATTERNS)


def _test_command(workspace: Workspace) -> tuple[str, str] | None:
    script = workspaces.select_test_script(workspace)
    if script is None: return None
    if is_placeholder_script(workspace.scripts.get(script, "")):
        logger.debug("skipping placeholder test script %s in %s",
                     script, workspace.name)
        return None
    command = workspaces.workspace_script_command(workspace, script)
    return command, f"{workspace.name}: {script}"


def run_relevant_tests() -> bool:
    """Tests of every changed workspace, root included.

    Every suite runs even after one fails so the logs show all of
    the failures. The root suite is the fallback when no changed
    workspace has a runnable test script.
    """
    commands: dict[str, str] = {}
    for workspace in workspaces.changed_workspaces():
        found = _test_command(workspace)
        if found and found[0] not in commands:
            commands[found[0]] = found[1]

    if not commands:
        found = _test_command(workspaces.root_workspace())
        if found: commands[found[0]] = found[1]

    if not commands:
        logger.debug("no runnable test scripts found")
        return True

    failed: list[str] = []
    for command, label in commands.items():
        result = run.run_command("workspace-script",
                 {"command": command, "label": label})
        if not result.ok: failed.append(label)
    if failed: logger.info("failing test suites: %s", ", ".join(failed))
    return not failed


def run_prepush_checks() -> CheckReport:
    """AND-gate of every check; stops at the first failure."""
    steps: tuple[tuple[str, Callable[[], object]], ...] = (
        ("lint", lambda: lint_fix().ok),
        ("type-check", lambda: type_check().ok),
        ("tests", run_relevant_tests),
        ("dirty-index", lambda: dirty_index_check().ok),
    )
    for name, step in steps:
        ok = bool(step())
        telemetry.emit_event("prepush_check", name, {"ok": ok})
        if not ok: return CheckReport(ok=False, failed_step=name)
    return CheckReport(ok=True)

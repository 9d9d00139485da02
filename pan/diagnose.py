"""
`pan diagnose`: quiet remediation followed by the root's
type-check, lint and build scripts.
"""
# ======================= STANDARDS =======================
from dataclasses import dataclass
import logging as log

# ======================== LOCALS =========================
from . import _constants as const
from . import workspaces
from . import assistant
from . import utils
from . import fix
from . import run


logger = log.getLogger("pan.diagnose")

DIAGNOSE_SCRIPTS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("type-check", ("type-check", "typecheck", "check", "tsc")),
    ("lint", ("lint", "lint:ci", "lint:fix", "eslint")),
    ("build", ("build", "compile", "dist")),
)
CONSULT_QUESTION = ("What additional remediation steps should pan "
                    "attempt to resolve the failing checks?")


@dataclass(frozen=True)
class DiagnoseStep:
    name: str
    label: str
    result: run.RunResult


def find_script_candidate(scripts: dict[str, str],
                          candidates: tuple[str, ...]) -> str | None:
    return next((name for name in candidates if name in scripts), None)


def format_list(items: list[str]) -> str:
    if len(items) <= 1: return "".join(items)
    if len(items) == 2: return f"{items[0]} and {items[1]}"
    return f"{', '.join(items[:-1])}, and {items[-1]}"


def build_summary(successes: list[str], failures: list[str]) -> str:
    parts: list[str] = []
    if successes: parts.append(f"pan made it through "
                               f"{format_list(successes)}.")
    if failures: parts.append(f"But {format_list(failures)} exited "
                              "non-zero, so pan diagnose stopped there.")
    parts.append("See the captured logs for details.")
    return " ".join(parts)


def diagnose() -> int:
    """Run the diagnosis; returns the process exit code."""
    out = utils.Output(quiet=const.QUIET)
    out.info("running smart remediation before diagnostics...")
    outcome = fix.smart_build_fix(skip_consult=True, interactive=False,
              label="diagnose")
    out.info(f"smart remediation summary: {outcome.summary}")
    if outcome.steps:
        out.muted("    " + " → ".join(outcome.steps))
    if outcome.blocked:
        out.warn(f"smart remediation blocked: {outcome.blocked_message}",
                 fit=False)
        return 1
    exit_code = 0 if outcome.ok else 1

    root    = workspaces.root_workspace()
    runner  = workspaces.detect_runner()
    results: list[DiagnoseStep] = []
    for name, candidates in DIAGNOSE_SCRIPTS:
        script = find_script_candidate(root.scripts, candidates)
        if script is None:
            out.info(f"skipping {name} (no matching package script)")
            continue
        command = workspaces.command_for_script(runner, script)
        label   = f"{runner} {script}"
        result  = run.run_command("workspace-script",
                  {"command": command, "label": label})
        results.append(DiagnoseStep(name, label, result))

    if not results:
        out.info("no diagnose scripts found; define package scripts "
                 "(type-check, lint, build) to enable diagnostics")
        return exit_code

    failures = [s for s in results if not s.result.ok]
    if not failures:
        out.success("all diagnose checks passed; no further action "
                    "required")
        return exit_code

    success_labels = [s.label for s in results if s.result.ok]
    failure_labels = [s.label for s in failures]
    summary = build_summary(success_labels, failure_labels)
    out.warn(summary)
    for step in failures:
        if step.result.log_file:
            out.info(f"↳ {step.label} log: {step.result.log_file}")

    lines = [
        "pan diagnose summary:",
        f"Smart remediation: {outcome.summary}",
        summary,
        "",
        "Failures:",
        *(f"- {s.label} (exit code {s.result.exit_code})"
          for s in failures),
    ]
    if success_labels:
        lines += ["", f"Successful checks: {', '.join(success_labels)}"]
    logger.info("diagnose failures: %s", ", ".join(failure_labels))
    assistant.consult("\n".join(lines), CONSULT_QUESTION,
        [assistant.log_context_from_file(s.label, s.result.log_file)
         for s in failures])
    return 1

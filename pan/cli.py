#!/usr/bin/env python3
"""
Primary CLI entry point for `pan`.

Subcommands:
  - diagnose: quiet remediation, then root type-check/lint/build
  - fix:      smart build remediation
  - prepush:  lint --fix, type-check, tests, dirty-index check
  - push:     the full policy-guarded push flow
  - chat:     an assistant session seeded with repository state
  - help:     the detailed guide
  - toolkit:  list or install pan's shell aliases

Every failure ends the same way: a concise summary with a
one-line fix, the last failing command's snippet and log path,
and `last_error_envelope.json` in the log directory.

Uses `main` as the safe entry point to invoke the CLI.
"""


# ======================= STANDARDS =======================
from pathlib import Path
import logging as log
import argparse
import json
import sys
import os

# ======================== LOCALS =========================
from .error_model import (
    FailureEvent,
    PanError,
    build_error_envelope,
)
from .help_menu import help_msg, print_guide
from . import _constants as const
from . import __version__
from . import diagnose
from . import telemetry
from . import answers
from . import toolkit
from . import checks
from . import config
from . import utils
from . import chat
from . import push
from . import fix
from . import run


logger = log.getLogger("pan.cli")

COMMON_FAILURE_FIXES: dict[str, tuple[str, str]] = {
    "PAN_GIT_STATUS_FAIL": (
        "could not read repository state",
        "Run pan from inside a git checkout (or pass --path).",
    ),
    "PAN_GIT_STASH_FAIL": (
        "stashing local changes failed",
        "Inspect `git stash list` and the worktree, then rerun.",
    ),
    "PAN_GIT_REBASE_FAIL": (
        "rebase onto the default branch failed",
        "Resolve the conflicts, reapply any pan stash, then rerun.",
    ),
    "PAN_GIT_REBASE_BLOCKED": (
        "an unresolved rebase blocked remediation",
        "Follow the recovery options above, then rerun.",
    ),
    "PAN_GIT_BRANCH_FAIL": (
        "feature branch creation failed",
        "Check that the branch does not already exist, then rerun.",
    ),
    "PAN_BLD_REMEDIATION_FAIL": (
        "the build is still failing",
        "Open the failing log above, fix the build, then rerun `pan fix`.",
    ),
    "PAN_CHK_PREPUSH_FAIL": (
        "prepush checks failed",
        "Run `pan prepush --verbose` to see the failing check.",
    ),
    "PAN_GIT_COMMIT_FAIL": (
        "commit step failed",
        "Inspect staged changes and the commit message, then rerun.",
    ),
    "PAN_GIT_DIRTY_INDEX": (
        "the index is still dirty after committing",
        "Commit the files lint/type-check rewrote, then rerun.",
    ),
    "PAN_GIT_PROTECTED_BRANCH": (
        "refused to push a protected branch",
        "Switch to a <user>/<type>/<slug> feature branch.",
    ),
    "PAN_NET_PUSH_FAIL": (
        "push step failed",
        "Verify remote, auth and network, then retry the push.",
    ),
    "PAN_CFG_POLICY_VIOLATION": (
        "push answers break branch or commit policy",
        "Fix the branch prefix, name or commit subject and rerun.",
    ),
    "PAN_CFG_ANSWERS_INVALID": (
        "answers file could not be loaded",
        "Check the --answers path and its JSON/YAML syntax.",
    ),
}


def _emit_runtime_failure_ux(
    args: argparse.Namespace,
    envelope: dict[str, object],
    out: utils.Output,
) -> None:
    """Emit concise failure summary with optional advanced details."""
    code = str(envelope.get("code", "")).strip()
    step = str(envelope.get("step", "")).strip()
    message = str(envelope.get("message", "")).strip()
    summary, one_liner = COMMON_FAILURE_FIXES.get(
        code,
        ("command failed",
         f"Inspect {const.LOG_DIR_NAME}/ and rerun with --verbose."),
    )
    telemetry.emit_event(
        event_type="actionable_diagnosis",
        step_id=step or "cli",
        payload={"code": code, "summary": summary, "fix": one_liner},
    )
    out.warn(f"summary: {summary}")
    out.warn(f"fix: {one_liner}")

    if not getattr(args, "verbose", False): return

    severity = str(envelope.get("severity", "")).strip()
    category = str(envelope.get("category", "")).strip()
    raw_ref  = str(envelope.get("raw_ref", "")).strip()
    out.warn("advanced details:")
    out.warn(f"code={code} step={step} severity={severity} "
             f"category={category}")
    if message: out.warn(f"message={message}")
    if raw_ref: out.warn(f"envelope_ref={raw_ref}")


def _build_runtime_error_envelope(
    args: argparse.Namespace,
    error: BaseException,
    exit_code: int,
    log_dir: Path,
) -> dict[str, object]:
    """Build a stable envelope for a failed invocation."""
    code = "PAN_INT_UNHANDLED_EXCEPTION"
    step = str(getattr(args, "command", None) or "cli")
    message = str(error).strip() or "command failure"
    suggested_fix = "Rerun with --verbose and inspect the logs."

    if isinstance(error, PanError):
        hint = FailureEvent.from_error(error, label=step)
        code, step, message = hint.code, hint.step, hint.message
        suggested_fix = COMMON_FAILURE_FIXES.get(code, ("", ""))[1]
    elif isinstance(error, KeyboardInterrupt):
        code = "PAN_INT_KEYBOARD_INTERRUPT"
        message = "interrupted by keyboard input"
        suggested_fix = "Rerun the command when ready."
    elif isinstance(error, EOFError):
        code = "PAN_INT_EOF_INTERRUPT"
        message = "interrupted by EOF/input stream closure"
        suggested_fix = "Use --ci or an answers file for unattended runs."
    elif isinstance(error, SystemExit):
        code = "PAN_INT_WORKFLOW_EXIT_NONZERO"
        message = f"pan exited with code {exit_code}"

    failure = run.last_failure()
    context: dict[str, object] = {
        "path": os.getcwd(),
        "command": getattr(args, "command", None) or "",
        "ci_mode": const.CI_MODE,
        "exit_code": exit_code,
        "last_command": failure.command if failure else "",
        "last_log_file": failure.log_file if failure else "",
    }
    envelope = build_error_envelope(
        code=code,
        message=message,
        operation=str(getattr(args, "command", None) or "cli"),
        step=step,
        context=context,
        suggested_fix=suggested_fix,
        stderr_excerpt=(failure.stderr[-400:] if failure else ""),
        raw_ref=str(log_dir / "last_error_envelope.json"),
    )
    return envelope.with_runtime_schema()


def _persist_runtime_error_envelope(
    envelope: dict[str, object],
    log_dir: Path,
    out: utils.Output,
) -> None:
    """Persist the envelope into the log directory for postmortems."""
    path = log_dir / "last_error_envelope.json"
    try:
        os.makedirs(log_dir, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(envelope, f, indent=2)
        telemetry.emit_event(
            event_type="runtime_error",
            step_id=str(envelope.get("step", "cli")),
            payload=dict(envelope),
        )
        out.warn(f"error envelope written: {utils.pathit(str(path))}")
    except OSError as e:
        out.warn(f"failed to persist error envelope: {e}")


# ---------- Commands ----------
def cmd_diagnose(args: argparse.Namespace, out: utils.Output) -> int:
    return diagnose.diagnose()


def cmd_fix(args: argparse.Namespace, out: utils.Output) -> int:
    outcome = fix.smart_build_fix()
    out.info(outcome.summary)
    if outcome.ok:
        out.success("✔ build fixed")
        return 0
    if outcome.blocked:
        out.warn(outcome.blocked_message or "", fit=False)
        raise PanError(outcome.summary, code="PAN_GIT_REBASE_BLOCKED",
              step="remediate")
    raise PanError(f"build still failing (see {const.LOG_DIR_NAME} logs)",
          code="PAN_BLD_REMEDIATION_FAIL", step="remediate")


def cmd_prepush(args: argparse.Namespace, out: utils.Output) -> int:
    report = checks.run_prepush_checks()
    if not report:
        raise PanError(f"prepush checks failed at {report.failed_step}",
              code="PAN_CHK_PREPUSH_FAIL", step="checks")
    out.success("✔ ready to push")
    return 0


def cmd_push(args: argparse.Namespace, out: utils.Output) -> int:
    options = answers.load_push_answers(args.answers) \
              if args.answers else None
    push.push_flow(options)
    return 0


def cmd_chat(args: argparse.Namespace, out: utils.Output) -> int:
    return chat.chat()


def cmd_help(args: argparse.Namespace, out: utils.Output) -> int:
    print_guide()
    return 0


def cmd_toolkit(args: argparse.Namespace, out: utils.Output) -> int:
    if not args.install:
        out.raw(toolkit.format_toolkit_listing())
        out.raw()
        out.raw(toolkit.generate_toolkit_snippet())
        return 0
    result = toolkit.install_toolkit_aliases(args.profile)
    where  = utils.pathit(str(result.profile))
    if result.installed:
        out.success(f"toolkit aliases added to {where}; open a new "
                    "shell to use them")
    else: out.info(f"toolkit aliases skipped for {where} "
                   f"({result.reason})")
    return 0


COMMANDS = {
    "diagnose": cmd_diagnose,
    "fix": cmd_fix,
    "prepush": cmd_prepush,
    "push": cmd_push,
    "chat": cmd_chat,
    "help": cmd_help,
    "toolkit": cmd_toolkit,
}


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="pan", description=help_msg())
    p.add_argument("--version", action="version",
        version=f"{const.PAN}{__version__}")
    p.add_argument("--show-config", action="store_true")
    p.set_defaults(command=None, path=".")

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--verbose", "-v", action="store_true",
                        default=None)
    common.add_argument("--ci", action="store_true", default=None)
    common.add_argument("--plain", action="store_true", default=None)
    common.add_argument("--path", default=".")

    sub = p.add_subparsers(dest="command")
    sub.add_parser("diagnose", parents=[common])
    sub.add_parser("fix", parents=[common])
    sub.add_parser("prepush", parents=[common])
    push_p = sub.add_parser("push", parents=[common])
    push_p.add_argument("--answers", default=None)
    sub.add_parser("chat", parents=[common])
    sub.add_parser("help", parents=[common])
    kit = sub.add_parser("toolkit", parents=[common])
    kit.add_argument("--install", action="store_true")
    kit.add_argument("--profile", default=None)
    return p


def parse_args(argv: list[str]) -> argparse.Namespace:
    """Add and parse arguments."""
    parser = _build_parser()
    parsed = parser.parse_args(argv)
    return config.apply_layered_config(parsed, argv, parser)


def _enter_target(path: str) -> None:
    target = os.path.abspath(path)
    if os.path.isfile(target): target = os.path.dirname(target)
    os.chdir(target)


def main() -> None:
    """
    CLI entry point for `pan`.

    Resolves layered configuration, moves into `--path`, wires
    logging and telemetry into the log directory, dispatches the
    subcommand and turns every failure into a non-zero exit with
    a persisted error envelope.
    """
    args = parse_args(sys.argv[1:])
    args.ci = bool(args.ci) or not sys.stdin.isatty()
    const.sync_runtime_flags(args)
    out  = utils.Output(quiet=const.QUIET)

    try: _enter_target(args.path)
    except OSError as e: out.abort(f"cannot use --path {args.path}: {e}")
    telemetry.set_run_id()
    log_dir = utils.get_log_dir()
    run.configure_logger(log_dir)
    logger.info("pan %s: %s", __version__, args.command or "-")

    code = 0
    last_error: BaseException | None = None
    try:
        if args.show_config:
            code = config.show_effective_config(args, out)
            return None
        if args.command is None:
            print_guide()
            return None
        code = COMMANDS[args.command](args, out)
    except BaseException as e:
        last_error = e
        code = 1
        interrupts = (KeyboardInterrupt, EOFError, SystemExit)
        if isinstance(e, SystemExit):
            if isinstance(e.code, int): code = e.code
        if isinstance(e, PanError): out.warn(str(e), fit=False)
        elif not isinstance(e, interrupts):
            logger.exception("unhandled error")
            out.warn(f"ERROR: {e}")
        elif not isinstance(e, SystemExit):
            i = 1 if not isinstance(e, EOFError) else 2
            out.raw("\n" * i + const.PAN, end="")
            out.raw(utils.color("forced exit", const.BAD))
    finally:
        if code != 0:
            run.print_last_failure_summary()
        if code != 0 and last_error is not None:
            envelope = _build_runtime_error_envelope(args, last_error,
                       code, log_dir)
            _emit_runtime_failure_ux(args, envelope, out)
            _persist_runtime_error_envelope(envelope, log_dir, out)
        telemetry.close_event_stream()
        sys.exit(code)

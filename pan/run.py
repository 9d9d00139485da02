"""
Shell execution primitive.

Every command pan runs goes through `execute`: it is run
through the user's shell, timed, written to its own log file
under the log directory, and broadcast as a `CommandRecord`
to whoever is recording. A non-zero exit is a result, never
an exception.
"""
# ======================= STANDARDS =======================
from contextlib import contextmanager
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from typing import Callable
from pathlib import Path
import logging as log
import subprocess
import time
import os
import re

# ======================== LOCALS =========================
from .commands import resolve_command
from . import _constants as const
from . import telemetry
from . import utils


logger = log.getLogger("pan")
logger.setLevel(log.DEBUG)
def configure_logger(log_dir: Path) -> None:
    """Configure the package logger once per process."""
    telemetry.init_event_stream(Path(log_dir))
    if logger.handlers: return
    os.makedirs(log_dir, exist_ok=True)
    debug_log    = Path(log_dir) / "debug.log"
    file_handler = log.FileHandler(str(debug_log))
    fmt          = log.Formatter("%(asctime)s - %(name)s - "
                 + "%(levelname)s - %(message)s")
    file_handler.setFormatter(fmt)
    logger.addHandler(file_handler)


_LABEL_PATTERN    = re.compile(r"[^a-z0-9._-]+")
SUMMARY_MAX_LINES = 10
SUMMARY_MAX_CHARS = 800


@dataclass(frozen=True)
class RunResult:
    ok: bool
    stdout: str
    stderr: str
    exit_code: int
    log_file: str | None
    command: str = ""
    label: str = ""

    @property
    def output(self) -> str:
        return "\n".join(p for p in (self.stdout, self.stderr) if p)


@dataclass(frozen=True)
class CommandRecord:
    command: str
    label: str
    ok: bool
    exit_code: int
    duration_ms: int
    timestamp: float


Recorder = Callable[[CommandRecord], None]
_recorders: list[Recorder] = []
_last_failure: RunResult | None = None


def add_command_recorder(recorder: Recorder) -> Callable[[], None]:
    """Register `recorder`; returns the function that removes it."""
    _recorders.append(recorder)

    def _remove() -> None:
        if recorder in _recorders: _recorders.remove(recorder)
    return _remove


@contextmanager
def recording() -> Iterator[list[CommandRecord]]:
    """Collect every command executed inside the block."""
    records: list[CommandRecord] = []
    remove = add_command_recorder(records.append)
    try: yield records
    finally: remove()


def _notify_recorders(record: CommandRecord) -> None:
    for recorder in list(_recorders):
        try: recorder(record)
        except Exception:
            logger.exception("command recorder failed")


def summarize_successful_commands(records: list[CommandRecord]
                                 ) -> list[str]:
    """Labels of successful commands, first occurrence only."""
    seen: set[str] = set()
    summary: list[str] = []
    for record in records:
        if not record.ok or record.command in seen: continue
        seen.add(record.command)
        summary.append(record.label or record.command)
    return summary


def sanitize_label(label: str) -> str:
    text = _LABEL_PATTERN.sub("-", label.lower()).strip("-")
    return text[:80].strip("-") or "command"


def _write_log(label: str, command: str, code: int,
               duration_ms: int, stdout: str, stderr: str
              ) -> str | None:
    try:
        log_dir = utils.get_log_dir()
        stamp   = int(time.time() * 1000)
        name    = f"{stamp}-{sanitize_label(label)}"
        path    = log_dir / f"{name}.log"
        n = 1
        while path.exists():
            path = log_dir / f"{name}.{n}.log"; n += 1
        body = (
            f"# {label}\n"
            f"command: {command}\n"
            f"code: {code}\n"
            f"ms: {duration_ms}\n\n"
            f"## out\n{stdout}\n\n"
            f"## err\n{stderr}\n"
        )
        path.write_text(body, encoding="utf-8")
        return str(path)
    except OSError as e:
        logger.warning("could not write command log: %s", e)
        return None


def execute(command: str, label: str | None = None,
            cwd: str | None = None,
            env: Mapping[str, str] | None = None,
            silence: bool = False) -> RunResult:
    """Run `command` through the user's shell and record it."""
    global _last_failure
    label = label or command
    out   = utils.Output(quiet=const.QUIET or silence)
    out.info(f"▶ {label}")
    logger.debug("RUN: %s (cwd=%s)", command, cwd)

    merged_env = {**os.environ, **(env or {})}
    start = time.monotonic()
    try:
        cp = subprocess.run(command, shell=True, cwd=cwd,
             env=merged_env, executable=utils.get_shell(),
             capture_output=True, text=True, check=False)
        code, stdout, stderr = cp.returncode, cp.stdout, cp.stderr
    except OSError as e:
        code, stdout, stderr = 127, "", str(e)
    duration_ms = int((time.monotonic() - start) * 1000)
    logger.debug("RC=%s (%sms) for %s", code, duration_ms, label)

    log_file = _write_log(label, command, code, duration_ms,
               stdout, stderr)
    result   = RunResult(ok=code == 0, stdout=stdout,
               stderr=stderr, exit_code=code, log_file=log_file,
               command=command, label=label)

    if not result.ok and not silence: _last_failure = result
    if not out.quiet:
        if result.ok: out.success(f"✔ {label} ({duration_ms}ms)")
        else: out.warn(f"✖ {label} ({duration_ms}ms)")

    if const.VERBOSE and not silence:
        for stream in (stdout, stderr):
            if stream.strip(): print(stream.rstrip())
    elif const.VERBOSE and not result.ok:
        print(result.output.rstrip())

    _notify_recorders(CommandRecord(command=command, label=label,
        ok=result.ok, exit_code=code, duration_ms=duration_ms,
        timestamp=time.time()))
    telemetry.emit_event(
        event_type="command_executed",
        step_id=label,
        payload={"command": command, "exit_code": code,
                 "duration_ms": duration_ms, "log_file": log_file},
    )
    return result


def run_command(alias: str, ctx: Mapping[str, object] | None = None,
                cwd: str | None = None,
                env: Mapping[str, str] | None = None,
                silence: bool = False) -> RunResult:
    """Resolve a registry alias and execute it."""
    instance = resolve_command(alias, ctx)
    return execute(instance.command, instance.label, cwd=cwd,
           env=env, silence=silence)


def last_failure() -> RunResult | None:
    return _last_failure


def clear_last_failure() -> None:
    global _last_failure
    _last_failure = None


def _snippet(text: str) -> str:
    lines = [l for l in text.strip().splitlines() if l.strip()]
    text  = "\n".join(lines[-SUMMARY_MAX_LINES:])
    if len(text) > SUMMARY_MAX_CHARS:
        text = "…" + text[-SUMMARY_MAX_CHARS:]
    return text


def print_last_failure_summary(reason: str | None = None) -> None:
    """Print a short snippet of the last failing command."""
    failure = _last_failure
    out     = utils.Output(quiet=const.QUIET)
    if reason: out.warn(reason)
    if failure is None: return
    out.warn(f"last failing command: {failure.label} "
             f"(exit {failure.exit_code})")
    snippet = _snippet(failure.output)
    if snippet: out.raw(utils.color(snippet, const.MUTED))
    if failure.log_file:
        out.info(f"View full log: less {failure.log_file}")
    if not const.VERBOSE:
        out.info("Tip: rerun with --verbose to stream every "
                 "command's output")

"""Terminal I/O for pan: narration, prompts and the step-panel sink."""
# ======================= STANDARDS ========================
from enum import Enum, auto as auto_enum
from typing import NoReturn, Protocol, Sequence
from dataclasses import dataclass
from pathlib import Path
import shutil
import sys
import os

# ===================== THIRD-PARTIES ======================
from tuikit.textools import wrap_text, style_text as color
from tuikit.textools import transmit as _transmit, pathit


# ======================== LOCALS ==========================
from . import _constants as const
from ._constants import *


SHELLS: tuple[str, ...] = ("bash", "zsh", "sh")


class StepResult(Enum):
    OK    = auto_enum()
    DONE  = auto_enum()
    SKIP  = auto_enum()
    FAIL  = auto_enum()
    ABORT = auto_enum()


class MessageSink(Protocol):
    def add_message(self, idx: int | None, msg: str,
                    fg: str = PROMPT, prfx: bool = True
                   ) -> None: ...


_sink: MessageSink | None = None
_suspended: list[MessageSink | None] = []


def bind_console(console: MessageSink | None) -> None:
    """Route narration into `console` (the step panel) or stdout."""
    global _sink
    _sink = console


def suspend_console() -> None:
    """Hand the terminal to a child process (editor, prompt)."""
    current = _sink
    _suspended.append(current)
    if current is None: return
    pause = getattr(current, "suspend", None)
    if callable(pause): pause()
    else: bind_console(None)


def resume_console() -> None:
    if not _suspended: return
    previous = _suspended.pop()
    resume   = getattr(previous, "resume", None)
    if callable(resume): resume()
    else: bind_console(previous)


def get_shell() -> str | None:
    """First available of bash, zsh, sh."""
    return next(filter(None, map(shutil.which, SHELLS)), None)


def get_log_dir(path: str | None = None) -> Path:
    """`.repo-doctor/` under `path` (or cwd) unless configured."""
    if const.LOG_DIR: log_dir = Path(const.LOG_DIR).expanduser()
    else: log_dir = Path(path or os.getcwd()) / LOG_DIR_NAME
    log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir


def wrap(text: str) -> str:
    return wrap_text(text, I, inline=True, order=APP)


def to_list(items: Sequence[str]) -> str:
    """Numbered, hang-indented listing for suggested commands."""
    lines = []
    for n, item in enumerate(items, start=1):
        marker = f"      {n}."
        lines.append(f"{marker} " + wrap_text(f"{item}\n", len(marker) + 2,
                     inline=True, order=marker))
    return "".join(lines)


def transmit(*text: object, fg: str = PROMPT, quiet: bool = False,
             prfx: bool = True, step_idx: int | None = None) -> None:
    if quiet: return
    msg = " ".join(map(str, text))
    if _sink is not None:
        _sink.add_message(step_idx, msg, fg=fg, prfx=prfx)
        return
    if prfx: print(PAN, end="")
    if const.PLAIN: print(color(msg, fg))
    else: _transmit(msg, speed=SPEED, hold=HOLD, hue=fg)


def ask(prompt: str, default: str = "") -> str:
    """
    Prompt for a free-form answer.

    Non-interactive runs (CI mode or a closed stdin) return the
    default without blocking.
    """
    if const.CI_MODE: return default
    transmit(prompt)
    suspend_console()
    try: answer = input(CURSOR).strip()
    except EOFError: answer = ""
    finally: resume_console()
    return answer or default


def choose(prompt: str, options: Sequence[str], default: str) -> str:
    """`ask` restricted to `options`; anything else is the default."""
    answer = ask(f"{prompt} ({'/'.join(options)}) [{default}]:",
             default).lower()
    return answer if answer in options else default


def confirm(prompt: str, default: bool = False) -> bool:
    """Yes/no prompt; empty or non-interactive answers use default."""
    answer = ask(f"{prompt} {'[Y/n]' if default else '[y/N]'}").lower()
    return answer.startswith("y") if answer else default


@dataclass
class Output:
    """Colored narration; `quiet` mutes everything but warnings."""
    quiet: bool = False

    def _fit(self, msg: str, fit: bool = True) -> str:
        return wrap(msg) if fit and _sink is None else msg

    def success(self, msg: str, step_idx: int | None = None) -> None:
        transmit(self._fit(msg), fg=GOOD, quiet=self.quiet,
                 step_idx=step_idx)

    def info(self, msg: str, prefix: bool = True,
             step_idx: int | None = None) -> None:
        if const.PLAIN: msg = wrap(msg)
        transmit(msg, fg=INFO, quiet=self.quiet, prfx=prefix,
                 step_idx=step_idx)

    def prompt(self, msg: str, fit: bool = True,
               step_idx: int | None = None) -> None:
        transmit(self._fit(msg, fit), quiet=self.quiet, step_idx=step_idx)

    def muted(self, msg: str, step_idx: int | None = None) -> None:
        transmit(msg, fg=MUTED, quiet=self.quiet, prfx=False,
                 step_idx=step_idx)

    def warn(self, msg: str, fit: bool = True,
             step_idx: int | None = None) -> None:
        transmit(self._fit(msg, fit), fg=BAD, step_idx=step_idx)

    def abort(self, msg: str | None = None, fit: bool = True,
              step_idx: int | None = None) -> NoReturn:
        self.warn(msg or "exiting...", fit, step_idx)
        sys.exit(1)

    def raw(self, *args: object, **kwargs: object) -> None:
        if not self.quiet: print(*args, **kwargs)  # type: ignore[call-overload]

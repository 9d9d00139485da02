from __future__ import annotations

# ======================= STANDARDS =======================
from contextlib import contextmanager
from collections.abc import Iterator
from types import TracebackType
from enum import Enum
import time

# ==================== THIRD-PARTIES ======================
from rich.console import Console, RenderableType, Group
from rich.spinner import Spinner
from rich.panel import Panel
from rich.table import Table
from rich.box import MINIMAL
from rich.live import Live
from rich.text import Text

# ======================== LOCALS =========================
from . import utils


TAIL = 6  # narration lines kept under each step


class StepStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    DONE    = "done"
    SKIPPED = "skipped"
    FAIL    = "fail"
    ABORT   = "abort"


GLYPHS: dict[StepStatus, tuple[str, str]] = {
    StepStatus.PENDING: ("○", "dim"),
    StepStatus.DONE:    ("✔", "green"),
    StepStatus.SKIPPED: ("↷", "dim"),
    StepStatus.FAIL:    ("✖", "red"),
    StepStatus.ABORT:   ("✖", "yellow"),
}
_FINISHED = {
    "ok":    StepStatus.DONE,
    "done":  StepStatus.DONE,
    "skip":  StepStatus.SKIPPED,
    "abort": StepStatus.ABORT,
}


class StepPanel:
    """
    Live step list for the push flow. Narration bound to a step
    index is shown under that step; the panel pauses whenever a
    prompt or editor needs the terminal.
    """

    def __init__(self, labels: list[str], enabled: bool,
                 title: str = "pan push") -> None:
        self.enabled  = enabled
        self.title    = title
        self.labels   = labels
        self.statuses = [StepStatus.PENDING] * len(labels)
        self.console  = Console(stderr=True)
        self._tails: list[list[tuple[str, str, bool]]] \
                   = [[] for _ in labels]
        self._started: dict[int, float] = {}
        self._elapsed: dict[int, float] = {}
        self._live: Live | None = None

    # ---------- Sink ----------
    def add_message(self, idx: int | None, msg: str,
                    fg: str = "yellow", prfx: bool = True
                   ) -> None:
        if not self.enabled or idx is None:
            text   = utils.wrap(msg) if prfx else msg
            styled = utils.color(text, fg)
            print(f"{utils.const.PAN}{styled}" if prfx else styled)
            return
        tail = self._tails[idx]
        tail.append((msg, fg, prfx))
        del tail[:-TAIL]
        self._refresh()

    # ---------- Lifecycle ----------
    def __enter__(self) -> "StepPanel":
        if self.enabled: self.resume()
        return self

    def __exit__(self, exc_type: type[BaseException] | None,
                 exc: BaseException | None,
                 tb: TracebackType | None) -> None:
        utils.bind_console(None)
        if self._live is None: return
        self._live.__exit__(exc_type, exc, tb)
        self._live = None

    def suspend(self) -> None:
        if self._live is None: return
        utils.bind_console(None)
        self._live.__exit__(None, None, None)
        self._live = None

    def resume(self) -> None:
        if not self.enabled or self._live is not None: return
        self._live = Live(self._render(), console=self.console,
                     refresh_per_second=10, transient=False)
        self._live.__enter__()
        utils.bind_console(self)

    # ---------- Steps ----------
    def start(self, idx: int) -> None:
        self._started[idx] = time.monotonic()
        if not self.enabled: return
        self.statuses[idx] = StepStatus.RUNNING
        self._refresh()

    def finish(self, idx: int, result: object) -> None:
        began = self._started.pop(idx, None)
        if began is not None: self._elapsed[idx] = time.monotonic() - began
        if not self.enabled: return
        name = getattr(result, "name", "").lower()
        self.statuses[idx] = _FINISHED.get(name, StepStatus.FAIL)
        self._refresh()

    def elapsed(self, idx: int) -> float | None:
        return self._elapsed.get(idx)

    # ---------- Rendering ----------
    def _refresh(self) -> None:
        if self._live: self._live.update(self._render())

    def _caption(self) -> str:
        settled = sum(s not in (StepStatus.PENDING, StepStatus.RUNNING)
                      for s in self.statuses)
        return f"{settled}/{len(self.labels)} steps"

    def _row(self, idx: int) -> Text | Spinner:
        label, status = self.labels[idx], self.statuses[idx]
        if status == StepStatus.RUNNING:
            return Spinner("dots", text=label)
        glyph, style = GLYPHS[status]
        row = Text(f"{glyph} {label}", style=style)
        seconds = self._elapsed.get(idx)
        if seconds is not None: row.append(f"  {seconds:.1f}s", style="dim")
        return row

    def _render(self) -> Table:
        table = Table(title=self.title, title_style="magenta",
                caption=self._caption(), show_header=False, box=None,
                pad_edge=False)
        table.add_column(justify="left")
        for i in range(len(self.labels)):
            row  = self._row(i)
            tail = self._tails[i]
            if not tail:
                table.add_row(row)
                continue
            lines = Text()
            for j, (msg, fg, prfx) in enumerate(tail):
                if j: lines.append("\n")
                if prfx: lines.append(f"{utils.const.APP} ",
                                      style="magenta")
                lines.append(msg, style=fg)
            body: RenderableType = Group(row, Panel(lines, box=MINIMAL,
                  padding=(0, 2)))
            table.add_row(body)
        return table


@contextmanager
def step_panel(labels: list[str], enabled: bool,
               title: str = "pan push") -> Iterator[StepPanel]:
    with StepPanel(labels, enabled, title) as panel: yield panel

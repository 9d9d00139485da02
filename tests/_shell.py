"""Scripted stand-in for pan's shell execution primitive."""
from __future__ import annotations

from dataclasses import dataclass
from argparse import Namespace
from unittest.mock import patch
import time

from pan import _constants as const
from pan import telemetry
from pan import run


@dataclass(frozen=True)
class Reply:
    ok: bool = True
    stdout: str = ""
    stderr: str = ""

    @property
    def exit_code(self) -> int:
        return 0 if self.ok else 1


OK   = Reply()
FAIL = Reply(ok=False, stderr="failed")


def quiet_flags(**overrides: object) -> None:
    """Non-interactive, plain runtime flags for unit tests."""
    values: dict[str, object] = {
        "ci": True, "plain": True, "verbose": False, "quiet": True,
        "chatgpt_enabled": False,
    }
    values.update(overrides)
    const.sync_runtime_flags(Namespace(**values))
    telemetry.close_event_stream()
    run.clear_last_failure()


class FakeShell:
    """
    Replaces `pan.run.execute`. Each rule maps a command substring
    to a list of replies consumed in order; the last reply sticks.
    Unmatched commands succeed with empty output.
    """

    def __init__(self) -> None:
        self.rules: list[tuple[str, list[Reply]]] = []
        self.calls: list[str] = []
        self._patch = patch("pan.run.execute", side_effect=self._execute)

    def on(self, needle: str, *replies: Reply) -> "FakeShell":
        self.rules.append((needle, list(replies) or [OK]))
        return self

    def __enter__(self) -> "FakeShell":
        self._patch.start()
        return self

    def __exit__(self, *exc: object) -> None:
        self._patch.stop()

    def _reply(self, command: str) -> Reply:
        for needle, replies in self.rules:
            if needle not in command: continue
            return replies.pop(0) if len(replies) > 1 else replies[0]
        return OK

    def _execute(self, command: str, label: str | None = None,
                 cwd: str | None = None, env: object = None,
                 silence: bool = False) -> run.RunResult:
        self.calls.append(command)
        reply = self._reply(command)
        run._notify_recorders(run.CommandRecord(command=command,
            label=label or command, ok=reply.ok,
            exit_code=reply.exit_code, duration_ms=1,
            timestamp=time.time()))
        return run.RunResult(ok=reply.ok, stdout=reply.stdout,
               stderr=reply.stderr, exit_code=reply.exit_code,
               log_file=None, command=command, label=label or command)

    def ran(self, needle: str) -> bool:
        return any(needle in call for call in self.calls)

    def index(self, needle: str) -> int:
        return next(i for i, call in enumerate(self.calls)
                    if needle in call)

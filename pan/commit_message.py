"""
Commit message providers for the push flow.

A subject supplied by the caller always wins. Otherwise the
provider picked by `create_commit_message_provider` decides:
static text from the environment, the user's editor, or a
plain prompt.
"""
# ======================= STANDARDS =======================
from dataclasses import dataclass
from typing import Mapping, Protocol
from pathlib import Path
import subprocess
import tempfile
import shutil
import shlex
import os

# ======================== LOCALS =========================
from . import _constants as const
from . import utils


TEXT_ENV         = "PAN_COMMIT_MESSAGE_TEXT"
EDITOR_ENV       = "PAN_COMMIT_MESSAGE_EDITOR"
USE_EDITOR_ENV   = "PAN_COMMIT_MESSAGE_USE_EDITOR"
NO_EDITOR_ENV    = "PAN_NO_COMMIT_EDITOR"
TEMPLATE_COMMENT = (
    "# Subject: max 50 chars; body wrapped at 72 chars per line.",
    "# Lines starting with '#' are ignored.",
)


@dataclass(frozen=True)
class CommitMessage:
    subject: str
    body: str | None = None


class CommitMessageProvider(Protocol):
    def get_commit_message(self, default_subject: str,
                           provided_subject: str | None = None,
                           provided_body: str | None = None
                          ) -> CommitMessage: ...


def normalize_body(body: str | None) -> str | None:
    if body is None: return None
    return body.strip() or None


def normalize_multiline(message: str) -> CommitMessage:
    """First line is the subject, the rest (trimmed) the body."""
    lines   = message.replace("\r\n", "\n").replace("\r", "\n").split("\n")
    subject = lines[0].strip() if lines else ""
    return CommitMessage(subject, normalize_body("\n".join(lines[1:])))


def strip_comment_lines(message: str) -> str:
    return "\n".join(line for line in message.splitlines()
           if not line.lstrip().startswith("#"))


def _provided(default_subject: str, subject: str | None,
              body: str | None) -> CommitMessage | None:
    if not subject: return None
    return CommitMessage(subject.strip() or default_subject,
           normalize_body(body))


class StaticCommitMessageProvider:
    def __init__(self, message: str) -> None:
        self.message = message

    def get_commit_message(self, default_subject: str,
                           provided_subject: str | None = None,
                           provided_body: str | None = None
                          ) -> CommitMessage:
        provided = _provided(default_subject, provided_subject,
                   provided_body)
        if provided: return provided
        parsed = normalize_multiline(self.message)
        return CommitMessage(parsed.subject or default_subject,
               parsed.body or normalize_body(provided_body))


class PromptCommitMessageProvider:
    def get_commit_message(self, default_subject: str,
                           provided_subject: str | None = None,
                           provided_body: str | None = None
                          ) -> CommitMessage:
        provided = _provided(default_subject, provided_subject,
                   provided_body)
        if provided: return provided
        subject = utils.ask(f"Commit message [{default_subject}]:",
                  default_subject)
        first   = subject.strip().splitlines()[:1]
        return CommitMessage(first[0].strip() if first
               else default_subject, normalize_body(provided_body))


def resolve_editor_command(env: Mapping[str, str] | None = None
                          ) -> list[str]:
    """Editor argv from the environment, else nano or vi."""
    env = os.environ if env is None else env
    candidates = [
        env.get(EDITOR_ENV),
        env.get("GIT_EDITOR"),
        env.get("VISUAL"),
        env.get("EDITOR"),
        "nano",
        "vi",
    ]
    seen: set[str] = set()
    for candidate in candidates:
        value = (candidate or "").strip()
        if not value or value in seen: continue
        seen.add(value)
        try: parts = shlex.split(value)
        except ValueError: parts = [value]
        if not parts: continue
        if os.path.isabs(parts[0]) or shutil.which(parts[0]):
            return parts
    raise RuntimeError(f"no editor found; set {EDITOR_ENV}, "
          "GIT_EDITOR, VISUAL, or EDITOR")


def build_template(default_subject: str, body: str | None) -> str:
    lines = [default_subject, ""]
    if body: lines += [body, ""]
    return "\n".join([*lines, *TEMPLATE_COMMENT]) + "\n"


class EditorCommitMessageProvider:
    def __init__(self, editor: list[str] | None = None) -> None:
        self.editor = editor

    def get_commit_message(self, default_subject: str,
                           provided_subject: str | None = None,
                           provided_body: str | None = None
                          ) -> CommitMessage:
        provided = _provided(default_subject, provided_subject,
                   provided_body)
        if provided: return provided

        body   = normalize_body(provided_body)
        editor = self.editor or resolve_editor_command()
        with tempfile.TemporaryDirectory(prefix="pan-commit-") as tmp:
            path = Path(tmp) / "COMMIT_EDITMSG"
            path.write_text(build_template(default_subject, body),
                            encoding="utf-8")
            utils.Output(quiet=const.QUIET).info(
                f"opening editor: {' '.join(editor)}")
            utils.suspend_console()
            try: cp = subprocess.run([*editor, str(path)], check=False)
            finally: utils.resume_console()
            if cp.returncode != 0:
                raise RuntimeError("commit message editor exited "
                      f"with status {cp.returncode}")
            raw = path.read_text(encoding="utf-8")

        parsed = normalize_multiline(strip_comment_lines(raw))
        return CommitMessage(parsed.subject or default_subject,
               parsed.body or body)


def _should_use_editor(env: Mapping[str, str]) -> bool:
    if env.get(NO_EDITOR_ENV) == "1": return False
    if env.get(EDITOR_ENV): return True
    return env.get(USE_EDITOR_ENV) == "1"


def create_commit_message_provider(env: Mapping[str, str] | None = None
                                  ) -> CommitMessageProvider:
    env = os.environ if env is None else env
    text = env.get(TEXT_ENV)
    if text is not None: return StaticCommitMessageProvider(text)
    if _should_use_editor(env): return EditorCommitMessageProvider()
    return PromptCommitMessageProvider()

"""Custom help output for pan."""

# ====================== STANDARDS ========================
from typing import NoReturn
import sys

# ==================== THIRD-PARTIES ======================
from tuikit.textools import wrap_text as wrap, Align
from tuikit.textools import style_text as color
from tuikit import console

# ======================== LOCALS =========================
from ._constants import GOOD, LOG_DIR_NAME


INDENT   = 23  # Indented spaces for descriptions
H_FLAGS  = ["-h", "--h", "-help", "--help"]
COMMANDS: tuple[tuple[str, str], ...] = (
    ("help", "show this guide"),
    ("diagnose", "run smart remediation without the assistant, "
     "then the root type-check, lint and build scripts, and "
     "summarize what passed and what failed"),
    ("fix", "smart remediation: priority fast path, targeted "
     "workspace builds, Prisma/cache/migrate/fix scripts, the "
     "Docker hook, reinstall, and an optional deep clean"),
    ("prepush", "lint --fix, type-check, tests of changed "
     "workspaces and the dirty-index check"),
    ("push", "feature branch policy, stash + rebase, smart "
     "build fix, prepush checks, commit and push to origin. "
     "--answers FILE supplies branch and commit answers from "
     "JSON or YAML"),
    ("chat", "gather branch, worktree and build state and open "
     "an assistant session (ChatGPT or a local LLM command)"),
    ("toolkit", "list pan's shell aliases; --install appends "
     "them to your shell profile (--profile PATH to choose)"),
)
ENV_KNOBS: tuple[tuple[str, str], ...] = (
    ("PAN_OPENAI_API_KEY", "ChatGPT credentials (or OPENAI_API_KEY)"),
    ("PAN_CHATGPT_ENABLED", "disable/enable escalation (default 1)"),
    ("PAN_CHATGPT_CONFIRM", "ask before consulting (default 1)"),
    ("PAN_CHATGPT_MODEL", "override the ChatGPT model"),
    ("PAN_CHATGPT_BASE_URL", "override the API host"),
    ("PAN_CHATGPT_TIMEOUT_MS", "request timeout in milliseconds"),
    ("PAN_CHATGPT_MAX_TOKENS", "cap the reply length"),
    ("PAN_CHATGPT_MAX_ROUNDS", "chat rounds per session (default 3)"),
    ("PAN_ASSISTANT_MODE", "'openai' or 'local'"),
    ("PAN_LOCAL_LLM_COMMAND", "command pan pipes local prompts to"),
    ("PAN_DOCKER_DEV_CMD", "custom command for Docker remediation"),
    ("PAN_COMMIT_MESSAGE_TEXT", "fixed commit message for push"),
    ("PAN_COMMIT_MESSAGE_EDITOR", "editor for commit messages"),
)


def help_msg() -> str | NoReturn:
    """
    Parser description, or the full guide when a help flag is
    present on the command line.
    """
    if not any(h in sys.argv for h in H_FLAGS):
        return "pan yarn monorepo workflow assistant"
    print_guide()
    sys.exit(0)


def desc(text: str) -> str:
    return wrap(text, INDENT, inline=True, order=" " * (INDENT - 1))


def _rows(rows: tuple[tuple[str, str], ...], width: int) -> None:
    for name, text in rows:
        print(f"    {name:<{width}}{desc(text)}")


def print_guide() -> None:
    hue    = "magenta"
    header = Align().center("《 PAN HELP 》", "=", hue, GOOD)
    print(f"\n{header}\n")

    section = color("Usage examples:", "", "", True, True)
    print(section)
    print("    pan diagnose\n")
    print(wrap("pan fix --verbose", 8, 4))
    print(wrap("pan push --answers push-answers.yaml --ci", 8, 4))
    print(wrap("pan chat", 8, 4))
    print(wrap("pan toolkit --install", 8, 4))
    print(wrap("pan --show-config", 8, 4))

    section = color("Commands:", bold=True, underline=True)
    print(f"\n{section}\n")
    _rows(COMMANDS, INDENT - 4)
    print()
    print(f"    {'--verbose / -v':<{INDENT - 4}}"
          + desc("stream every command's output"))
    print(f"    {'--ci':<{INDENT - 4}}"
          + desc("never prompt; use defaults"))
    print(f"    {'--path PATH':<{INDENT - 4}}"
          + desc("run against another checkout"))

    section = color("Environment knobs:", bold=True, underline=True)
    print(f"\n{section}\n")
    for name, text in ENV_KNOBS:
        print(f"    {name}")
        print(f"    {'':<{INDENT - 4}}{desc(text)}")

    section = color("Tips:", "", "", True, True)
    print(f"\n{section}")
    print(wrap(f"• Every command's stdout/stderr is captured under "
               f"{LOG_DIR_NAME}/; failures print the exact log path",
               4, 2))
    print(wrap("• Set defaults via a \"pan\" object in package.json, "
               "pyproject [tool.pan], git config (pan.<key>) or env "
               "vars (PAN_<KEY>)", 4, 2))
    print(wrap("• pan never pushes main or master; push always "
               "lands on <user>/<type>/<slug>", 4, 2))
    print(wrap("• Deep clean only runs interactively and only after "
               "you confirm it", 4, 2))

    console.underline(hue=GOOD, alone=True)

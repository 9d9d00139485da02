"""`pan chat`: an assistant session seeded with repository state."""
# ======================= STANDARDS =======================
from pathlib import Path
import logging as log

# ======================== LOCALS =========================
from .assistant import LogContext
from . import _constants as const
from . import workspaces
from . import assistant
from . import gitutils
from . import utils
from . import run


logger = log.getLogger("pan.chat")

DEFAULT_QUESTION = "Help me plan the next steps for this workspace."


def choose_mode() -> str:
    if const.ASSISTANT_MODE: return assistant.assistant_mode()
    const.ASSISTANT_MODE = utils.choose("Select assistant mode",
                           ("openai", "local"), assistant.assistant_mode())
    return const.ASSISTANT_MODE


def prepare_assistant(mode: str, out: utils.Output) -> bool:
    """Make sure the chosen mode has credentials or a command."""
    if mode == "openai":
        if assistant.ensure_openai_key(): return True
        out.warn("chat session cancelled: an API key is required")
        return False

    if not assistant.local_command():
        custom = utils.ask("Enter a local LLM command, or press enter "
                 "to set up llama3 in Docker:")
        if custom: const.LOCAL_LLM_COMMAND = custom
        elif not assistant.ensure_docker_llama3():
            out.warn("unable to prepare the llama3 Docker setup; "
                     "provide a custom command and retry")
            return False
    out.info(f"using local assistant command ({assistant.local_command()})")
    return True


def _indent(text: str) -> str:
    return "\n".join(f"  {line}" for line in text.splitlines())


def gather_state(out: utils.Output) -> tuple[str, list[LogContext]]:
    pkg     = workspaces.read_package_json() or {}
    branch  = gitutils.current_branch() or "unknown"
    status  = gitutils.worktree_status()
    files   = workspaces.changed_files()
    listing = workspaces.list_workspaces()
    changed = [ws for ws in workspaces.changed_workspaces()
               if not ws.is_root]
    logs: list[LogContext] = []

    out.info("gathering build state...")
    needs_build = bool(files) or not Path("node_modules").exists()
    build_state = "skipped"
    if not needs_build:
        build_state = "skipped (clean tree)"
        out.info("build snapshot skipped (clean worktree with "
                 "dependencies present)")
    elif utils.confirm("Run `yarn build` now to capture the current "
                       "status?", default=True):
        result = run.run_command("yb", {"label": "chat build snapshot"})
        build_state = "yarn build succeeded" if result.ok \
                      else f"yarn build failed (exit {result.exit_code})"
        if result.log_file:
            logs.append(assistant.log_context_from_file("yarn build",
                        result.log_file))

    short = run.run_command("gss", {"label": "chat git status"},
            silence=True)
    if short.log_file:
        logs.append(assistant.log_context_from_file("git status --short",
                    short.log_file))

    project = str(pkg.get("name") or "unknown")
    if pkg.get("version"): project += f"@{pkg['version']}"
    worktree = "clean worktree" if status is not None and status.clean \
               else "dirty worktree"
    rows = "\n  ".join(f"{'(root)' if ws.is_root else ws.name} → "
                       f"{ws.location}" for ws in listing)
    lines = [
        f"Project: {project}",
        f"Branch: {branch} ({worktree})",
        f"Changed files: {len(files)}",
        "Changed workspaces: " + (", ".join(f"{ws.name} ({ws.location})"
                                  for ws in changed) or "none"),
        f"Build state: {build_state}",
        "",
        "Workspaces:",
        f"  {rows or 'n/a'}",
        "",
        "Recent git status:",
        _indent(short.stdout.strip()) if short.stdout.strip()
        else "  (no changes)",
    ]
    return "\n".join(lines), logs


def chat() -> int:
    out = utils.Output(quiet=const.QUIET)
    assistant.reset_session()
    mode = choose_mode()
    if not prepare_assistant(mode, out): return 1

    summary, logs = gather_state(out)
    out.raw(summary)
    target   = "ChatGPT" if mode == "openai" else "the assistant"
    question = utils.ask(f"What would you like to ask {target}? "
               "(enter for default)", DEFAULT_QUESTION)
    assistant.consult(summary, question, logs)
    return 0

"""
Assistant escalation: ask a remote chat model or a local LLM
command for more remediation ideas.

Consultation is advisory. Every failure mode (disabled, no
credentials, user declined, transport error) degrades to a
printed skip message and never raises to the caller.
"""
# ======================= STANDARDS =======================
from dataclasses import dataclass
from typing import Iterable, Sequence
from pathlib import Path
import logging as log
import subprocess
import tempfile
import os
import re

# ===================== THIRD-PARTIES =====================
import httpx

# ======================== LOCALS =========================
from .commands import resolve_command
from . import _constants as const
from . import telemetry
from . import utils
from . import run


logger = log.getLogger("pan.assistant")

API_KEY_ENV: tuple[str, ...] = ("PAN_OPENAI_API_KEY", "OPENAI_API_KEY")
LOCAL_COMMAND_ENV: tuple[str, ...] = (
    "PAN_LOCAL_LLM_COMMAND", "PAN_LLM_COMMAND", "LLM_COMMAND",
)
LOG_TAIL_LINES = 80
RESULT_EXCERPT = 400
SYSTEM_PROMPT  = (
    "You are helping a CLI assistant named Pan debug a Yarn "
    "workspaces repository. Suggest actionable shell commands "
    "wrapped in ```sh code blocks, and only propose steps that "
    "are safe to run locally. After Pan executes your commands "
    "it reports the results back to you."
)

_CODE_BLOCK = re.compile(r"```(?:sh|bash|zsh|shell)?\s+([\s\S]*?)```",
              re.IGNORECASE)
_PROMPT_LINE = re.compile(r"^[>$]\s*(.+)$", re.MULTILINE)

_escalated = False


@dataclass(frozen=True)
class LogContext:
    label: str
    path: str | None = None
    snippet: str | None = None


def reset_session() -> None:
    global _escalated
    _escalated = False


def api_key() -> str | None:
    for key in API_KEY_ENV:
        value = os.environ.get(key, "").strip()
        if value: return value
    return None


def local_command() -> str | None:
    if const.LOCAL_LLM_COMMAND: return const.LOCAL_LLM_COMMAND
    for key in LOCAL_COMMAND_ENV:
        value = os.environ.get(key, "").strip()
        if value: return value
    return None


def assistant_mode() -> str:
    mode = (const.ASSISTANT_MODE or "").lower()
    if mode in ("local", "openai"): return mode
    if api_key(): return "openai"
    return "local" if local_command() else "openai"


def log_context_from_file(label: str, path: str | None,
                          max_lines: int = LOG_TAIL_LINES
                         ) -> LogContext:
    if not path: return LogContext(label)
    try: content = Path(path).read_text(encoding="utf-8")
    except OSError: return LogContext(label, path)
    lines = content.rstrip().splitlines()
    return LogContext(label, path, "\n".join(lines[-max_lines:]))


def _indent(text: str, spaces: int = 2) -> str:
    pad = " " * spaces
    return "\n".join(pad + line for line in text.splitlines())


def build_prompt(summary: str, question: str,
                 logs: Sequence[LogContext] = ()) -> str:
    lines = ["Pan status report:", summary.strip(), "",
             "Relevant logs:"]
    if not logs: lines.append("(No log snippets available.)")
    for entry in logs:
        header = f"- {entry.label}"
        if entry.path: header += f" ({entry.path})"
        lines.append(header)
        if entry.snippet: lines.append(_indent(entry.snippet.strip()))
        lines.append("")
    lines += ["Question:", question.strip()]
    return "\n".join(lines)


def extract_shell_commands(text: str) -> list[str]:
    """Commands from fenced shell blocks, else `$ `/`> ` lines."""
    commands: list[str] = []
    for block in _CODE_BLOCK.findall(text):
        for line in block.splitlines():
            line = line.strip()
            if line and not line.startswith("#"): commands.append(line)
    if not commands:
        for line in _PROMPT_LINE.findall(text):
            line = line.strip()
            if line and "```" not in line \
                    and not line.lower().startswith("run"):
                commands.append(line)
    cleaned = [c[1:].strip() if c.startswith("$") else c.strip()
               for c in commands]
    return list(dict.fromkeys(c for c in cleaned if c))


def _request_openai(key: str, messages: list[dict[str, str]]) -> str:
    url     = f"{const.CHATGPT_BASE_URL.rstrip('/')}/chat/completions"
    payload = {
        "model": const.CHATGPT_MODEL,
        "temperature": 0.2,
        "max_tokens": const.CHATGPT_MAX_TOKENS,
        "messages": messages,
    }
    response = httpx.post(
        url,
        json=payload,
        headers={"Authorization": f"Bearer {key}"},
        timeout=const.CHATGPT_TIMEOUT_MS / 1000,
    )
    response.raise_for_status()
    data    = response.json()
    if not isinstance(data, dict): return ""
    choices = data.get("choices") or []
    first   = choices[0] if isinstance(choices, list) and choices else None
    if not isinstance(first, dict): return ""
    message = first.get("message")
    if not isinstance(message, dict): return ""
    return str(message.get("content") or "").strip()


def _local_prompt(messages: list[dict[str, str]]) -> str:
    system = "\n\n".join(m["content"] for m in messages
             if m["role"] == "system")
    conversation = "\n\n".join(
        f"{'Assistant' if m['role'] == 'assistant' else 'Pan'}: {m['content']}"
        for m in messages if m["role"] != "system")
    return "\n".join([
        system, "", "Conversation so far:",
        conversation or "(none yet)", "",
        "Respond as Assistant. Suggest shell commands inside ```sh "
        "code blocks when appropriate, followed by explanations.",
    ])


def _request_local(command: str, messages: list[dict[str, str]]) -> str:
    with tempfile.NamedTemporaryFile("w", prefix="pan-local-",
         suffix=".txt", delete=False, encoding="utf-8") as f:
        f.write(_local_prompt(messages))
        path = f.name
    try:
        with open(path, encoding="utf-8") as stdin:
            cp = subprocess.run(command, shell=True, stdin=stdin,
                 capture_output=True, text=True,
                 executable=utils.get_shell(), check=False,
                 timeout=const.CHATGPT_TIMEOUT_MS / 1000)
    finally:
        try: os.unlink(path)
        except OSError: pass
    if cp.returncode != 0:
        raise RuntimeError(cp.stderr.strip()
              or f"local LLM command exited with {cp.returncode}")
    return cp.stdout.strip()


def _request_reply(mode: str, messages: list[dict[str, str]]) -> str:
    if mode == "local":
        command = local_command()
        return _request_local(command, messages) if command else ""
    return _request_openai(api_key() or "", messages)


def _run_suggestions(commands: Iterable[str], tag: str,
                     out: utils.Output) -> str:
    outputs: list[str] = []
    for command in commands:
        out.info(f"running suggested command: {command}")
        result = run.execute(command, f"{tag}: {command.split()[0]}")
        status = "success" if result.ok \
                 else f"failed (exit {result.exit_code})"
        parts  = [f"Command: {command}", f"Outcome: {status}"]
        if result.stdout:
            parts.append(f"Stdout: {result.stdout[:RESULT_EXCERPT]}")
        if result.stderr:
            parts.append(f"Stderr: {result.stderr[:RESULT_EXCERPT]}")
        outputs.append("\n".join(parts))
    return "\n\n".join(outputs)


def consult(summary: str, question: str,
            logs: Sequence[LogContext] = ()) -> bool:
    """
    Escalate to the configured assistant, at most once per
    process. Returns True when a conversation took place.
    """
    global _escalated
    out   = utils.Output(quiet=const.QUIET)
    mode  = assistant_mode()
    label = "ChatGPT" if mode == "openai" else "assistant"
    tag   = "chatgpt" if mode == "openai" else "assistant"

    if not const.CHATGPT_ENABLED:
        out.info(f"{label} escalation disabled")
        return False
    if _escalated:
        out.info(f"{label} escalation already triggered earlier in this run")
        return False
    if mode == "openai" and not api_key():
        out.info("ChatGPT escalation skipped: set PAN_OPENAI_API_KEY "
                 "or OPENAI_API_KEY to enable terminal suggestions")
        return False
    if mode == "local" and not local_command():
        out.info("local assistant skipped: set PAN_LOCAL_LLM_COMMAND, "
                 "PAN_LLM_COMMAND, or LLM_COMMAND")
        return False
    if const.CHATGPT_CONFIRM:
        name = f"ChatGPT ({const.CHATGPT_MODEL})" if mode == "openai" \
               else f"local assistant ({local_command()})"
        if not utils.confirm(f"Consult {name} for additional ideas?",
                             default=False):
            out.info(f"skipping {label} escalation (user declined)")
            return False

    _escalated = True
    messages = [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": build_prompt(summary, question, logs)},
    ]
    extra = utils.ask(f"Add anything {label} should know (enter to skip):")
    if extra:
        messages.append({"role": "user",
                         "content": f"Additional user context: {extra}"})
    telemetry.emit_event("assistant_consult", tag,
                         {"mode": mode, "summary": summary[:400]})

    replied = False
    for round_no in range(1, const.CHATGPT_MAX_ROUNDS + 1):
        try: reply = _request_reply(mode, messages)
        except (httpx.HTTPError, OSError, RuntimeError, ValueError,
                subprocess.TimeoutExpired) as e:
            logger.warning("%s request failed: %s", label, e)
            out.warn(f"{label} request failed: {e}")
            break
        if not reply:
            out.info(f"{label} did not return a response; ending chat")
            break

        replied = True
        out.raw(f"[{tag}] {reply}")
        messages.append({"role": "assistant", "content": reply})

        commands = extract_shell_commands(reply)
        if not commands:
            out.info(f"{label} did not provide runnable commands")
        else:
            listing = "\n" + utils.to_list(commands)
            out.prompt(f"suggested commands:{listing}", fit=False)
            if utils.confirm(f"Run {len(commands)} suggested "
                             "command(s)?", default=False):
                report = _run_suggestions(commands, tag, out)
                messages.append({"role": "user", "content":
                    f"Pan executed the following commands:\n{report}"})

        reply_text = utils.ask(f"Reply to {label} (enter to skip):")
        if reply_text:
            messages.append({"role": "user",
                             "content": f"User says: {reply_text}"})
        if round_no >= const.CHATGPT_MAX_ROUNDS:
            out.info("reached chat round limit")
            break
        if not utils.confirm(f"Continue chatting with {label}?",
                             default=False):
            break

    out.info(f"{label} session complete")
    return replied


def ensure_openai_key() -> bool:
    """Prompt for an API key when none is configured."""
    if api_key(): return True
    key = utils.ask("Enter an OpenAI API key for this session "
                    "(enter to skip):")
    if not key: return False
    os.environ["PAN_OPENAI_API_KEY"] = key
    return True


def ensure_docker_llama3() -> bool:
    """Make sure the local llama3 container runs and has the model."""
    out = utils.Output(quiet=const.QUIET)
    inspect = run.run_command("docker-inspect", silence=True)
    if not (inspect.ok and inspect.stdout.strip() == "true"):
        if inspect.ok:
            started = run.run_command("docker-start")
        else:
            if not run.run_command("docker-pull").ok:
                out.warn("could not pull the ollama image; is docker running?")
                return False
            started = run.run_command("docker-run")
        if not started.ok:
            out.warn("could not start the local llama3 container")
            return False
    if not run.run_command("docker-exec-pull").ok:
        out.warn("could not pull the llama3 model inside the container")
        return False
    const.LOCAL_LLM_COMMAND = resolve_command("docker-exec-run").command
    const.ASSISTANT_MODE    = "local"
    return True

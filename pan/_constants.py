"""Constants across pan."""


from argparse import Namespace

from tuikit.textools import style_text as color


CURSOR         = color("  >>> ", "magenta")
GOOD           = "green"
BAD            = "red"
PROMPT         = "yellow"
INFO           = "cyan"
MUTED          = "gray"
SPEED          = 0.0075
HOLD           = 0.01
APP            = "[pan]"
PAN            = color(f"{APP} ", "magenta")
I              = 6
LOG_DIR_NAME   = ".repo-doctor"
DEFAULT_COMMIT_SUBJECT = "chore: prepare for push"

# Runtime flags: initialized once per invocation by CLI.
PLAIN                  = False
VERBOSE                = False
CI_MODE                = False
QUIET                  = False
LOG_DIR: str | None    = None
DOCKER_DEV_CMD: str | None = None
ASSISTANT_MODE: str | None = None
LOCAL_LLM_COMMAND: str | None = None
CHATGPT_ENABLED        = True
CHATGPT_CONFIRM        = True
CHATGPT_MODEL          = "gpt-5-codex"
CHATGPT_BASE_URL       = "https://api.openai.com/v1"
CHATGPT_TIMEOUT_MS     = 120_000
CHATGPT_MAX_TOKENS     = 800
CHATGPT_MAX_ROUNDS     = 3


def _flag(args: Namespace, name: str, default: bool) -> bool:
    value = getattr(args, name, None)
    return default if value is None else bool(value)


def sync_runtime_flags(args: Namespace) -> None:
    """Synchronize runtime flags from parsed CLI args."""
    global PLAIN, VERBOSE, CI_MODE, QUIET, LOG_DIR
    global DOCKER_DEV_CMD, ASSISTANT_MODE, LOCAL_LLM_COMMAND
    global CHATGPT_ENABLED, CHATGPT_CONFIRM, CHATGPT_MODEL
    global CHATGPT_BASE_URL, CHATGPT_TIMEOUT_MS
    global CHATGPT_MAX_TOKENS, CHATGPT_MAX_ROUNDS

    PLAIN          = bool(getattr(args, "plain", False))
    VERBOSE        = bool(getattr(args, "verbose", False))
    QUIET          = bool(getattr(args, "quiet", False))
    CI_MODE        = bool(getattr(args, "ci", False))
    LOG_DIR        = getattr(args, "log_dir", None) or None
    DOCKER_DEV_CMD = getattr(args, "docker_dev_cmd", None) or None
    ASSISTANT_MODE = getattr(args, "assistant_mode", None) or None
    LOCAL_LLM_COMMAND = getattr(args, "local_llm_command", None) \
                     or None
    CHATGPT_ENABLED = _flag(args, "chatgpt_enabled", True)
    CHATGPT_CONFIRM = _flag(args, "chatgpt_confirm", True)
    CHATGPT_MODEL   = getattr(args, "chatgpt_model", None) \
                   or "gpt-5-codex"
    CHATGPT_BASE_URL = getattr(args, "chatgpt_base_url", None) \
                    or "https://api.openai.com/v1"
    CHATGPT_TIMEOUT_MS = int(getattr(args, "chatgpt_timeout_ms",
                         None) or 120_000)
    CHATGPT_MAX_TOKENS = int(getattr(args, "chatgpt_max_tokens",
                         None) or 800)
    CHATGPT_MAX_ROUNDS = max(1, int(getattr(args,
                         "chatgpt_max_rounds", None) or 3))

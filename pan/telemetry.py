"""
JSONL event stream for a pan run.

Every shell command, remediation phase, prepush check, push step,
assistant consultation and runtime error lands as one line in
`<log dir>/events.jsonl`, tagged with the run id. Payloads pass
through `redact` first: registry tokens and API keys routinely
show up in yarn and git output.
"""
# ======================= STANDARDS =======================
from datetime import datetime, timezone
from typing import Iterator
from pathlib import Path
import logging as log
import json
import uuid
import re


logger = log.getLogger("pan.telemetry")

EVENT_SCHEMA = "pan.event.v1"
EVENTS_NAME  = "events.jsonl"
EVENT_TYPES: frozenset[str] = frozenset({
    "command_executed",
    "remediation_phase",
    "remediation_outcome",
    "prepush_check",
    "push_step",
    "assistant_consult",
    "actionable_diagnosis",
    "runtime_error",
})
REDACTED = "<redacted>"
SECRET_PATTERNS: tuple[tuple[re.Pattern[str], str], ...] = (
    # credentials embedded in remote URLs
    (re.compile(r"(https?://)([^/\s@]+)@"), rf"\1{REDACTED}@"),
    # .npmrc / .yarnrc.yml auth entries
    (re.compile(r"(?i)(_auth(?:Token|Ident)?\"?\s*[:=]\s*)\"?[^\s\"]+"),
     rf"\1{REDACTED}"),
    (re.compile(r"(?i)\b(npm_token|token|password|passwd|secret|"
                r"api[_-]?key)\s*[:=]\s*([^\s,'\"]+)"),
     rf"\1={REDACTED}"),
    (re.compile(r"(?i)\b(bearer)\s+[A-Za-z0-9._~+/=-]+"),
     rf"\1 {REDACTED}"),
    (re.compile(r"\b(?:sk|npm|ghp|gho)[-_][A-Za-z0-9_-]{8,}"), REDACTED),
)

_run_id: str | None = None
_stream: Path | None = None


def _now() -> str:
    stamp = datetime.now(timezone.utc).isoformat(timespec="milliseconds")
    return stamp.replace("+00:00", "Z")


def set_run_id(value: str | None = None) -> str:
    """Pin the run id (tests) or start a fresh one."""
    global _run_id
    value   = (value or "").strip()
    _run_id = value or uuid.uuid4().hex[:12]
    return _run_id


def run_id() -> str:
    return _run_id or set_run_id()


def init_event_stream(log_dir: str | Path) -> Path:
    """Point the stream at `events.jsonl` inside `log_dir`."""
    global _stream
    folder = Path(log_dir).expanduser().resolve()
    folder.mkdir(parents=True, exist_ok=True)
    _stream = folder / EVENTS_NAME
    return _stream


def close_event_stream() -> None:
    global _stream
    _stream = None


def events_file() -> Path | None:
    return _stream


def redact_text(text: str) -> str:
    for pattern, replacement in SECRET_PATTERNS:
        text = pattern.sub(replacement, text)
    return text


def redact(value: object) -> object:
    """Redact secrets from strings nested anywhere in a payload."""
    if isinstance(value, str): return redact_text(value)
    if isinstance(value, dict):
        return {str(k): redact(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)): return [redact(v) for v in value]
    return value


def emit_event(event_type: str, step_id: str,
               payload: dict[str, object]) -> None:
    """Append one event; silently dropped when no stream is open."""
    if _stream is None: return
    if event_type not in EVENT_TYPES:
        logger.debug("unregistered event type %s", event_type)
    event = {
        "schema": EVENT_SCHEMA,
        "ts": _now(),
        "run_id": run_id(),
        "event_type": event_type,
        "step_id": step_id,
        "payload": redact(payload),
    }
    line = json.dumps(event, separators=(",", ":"), default=str)
    try:
        with _stream.open("a", encoding="utf-8") as f: f.write(line + "\n")
    except OSError as e:
        logger.debug("dropping %s event: %s", event_type, e)


def read_events(path: str | Path | None = None) -> Iterator[dict[str, object]]:
    """Events from a stream file, skipping lines that do not parse."""
    target = Path(path) if path else _stream
    if target is None or not target.exists(): return
    with target.open(encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line: continue
            try: yield json.loads(line)
            except json.JSONDecodeError: continue

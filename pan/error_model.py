"""
Stable error codes, the exceptions that carry them, and the
failure envelope the CLI persists for postmortems.

Codes read `PAN_<AREA>_<WHAT>`: GIT, NET, CHK (prepush checks),
BLD (build remediation), CFG (options and answers), INT (pan
itself or the user interrupting it).
"""
from dataclasses import dataclass, asdict, field
from datetime import datetime, timezone


ENVELOPE_SCHEMA = "pan.error_envelope.v1"
FALLBACK_CODE   = "PAN_INT_WORKFLOW_EXIT_NONZERO"


@dataclass(frozen=True)
class ErrorPolicy:
    severity: str
    category: str
    retryable: bool = False


def _git(retryable: bool = False) -> ErrorPolicy:
    return ErrorPolicy("error", "git", retryable)


ERROR_CODE_POLICY: dict[str, ErrorPolicy] = {
    "PAN_INT_UNHANDLED_EXCEPTION":   ErrorPolicy("error", "internal"),
    "PAN_INT_KEYBOARD_INTERRUPT":    ErrorPolicy("warn", "workflow", True),
    "PAN_INT_EOF_INTERRUPT":         ErrorPolicy("warn", "workflow", True),
    "PAN_INT_WORKFLOW_EXIT_NONZERO": ErrorPolicy("error", "workflow"),
    "PAN_GIT_STATUS_FAIL":      _git(),
    "PAN_GIT_STASH_FAIL":       _git(),
    "PAN_GIT_REBASE_FAIL":      _git(),
    "PAN_GIT_REBASE_BLOCKED":   _git(),
    "PAN_GIT_BRANCH_FAIL":      _git(),
    "PAN_GIT_COMMIT_FAIL":      _git(),
    "PAN_GIT_DIRTY_INDEX":      _git(retryable=True),
    "PAN_GIT_PROTECTED_BRANCH": _git(),
    "PAN_NET_PUSH_FAIL":        ErrorPolicy("error", "network", True),
    "PAN_CHK_PREPUSH_FAIL":     ErrorPolicy("error", "checks", True),
    "PAN_BLD_REMEDIATION_FAIL": ErrorPolicy("error", "build", True),
    "PAN_CFG_POLICY_VIOLATION": ErrorPolicy("error", "config"),
    "PAN_CFG_ANSWERS_INVALID":  ErrorPolicy("error", "config"),
}

# push flow step key -> code used when the step sets none
PUSH_STEP_CODES: dict[str, str] = {
    "snapshot":  "PAN_GIT_STATUS_FAIL",
    "stash":     "PAN_GIT_STASH_FAIL",
    "rebase":    "PAN_GIT_REBASE_FAIL",
    "restore":   "PAN_GIT_STASH_FAIL",
    "branch":    "PAN_GIT_BRANCH_FAIL",
    "remediate": "PAN_BLD_REMEDIATION_FAIL",
    "checks":    "PAN_CHK_PREPUSH_FAIL",
    "commit":    "PAN_GIT_COMMIT_FAIL",
    "gate":      "PAN_GIT_STATUS_FAIL",
    "guard":     "PAN_GIT_PROTECTED_BRANCH",
    "push":      "PAN_NET_PUSH_FAIL",
}


def resolve_failure_code(step: str = "", preferred_code: str = "") -> str:
    """An explicit code wins; otherwise the step decides."""
    return preferred_code.strip() \
        or PUSH_STEP_CODES.get(step.strip(), FALLBACK_CODE)


def error_policy_for(code: str) -> ErrorPolicy:
    return ERROR_CODE_POLICY.get(code.strip(),
           ERROR_CODE_POLICY[FALLBACK_CODE])


class PanError(RuntimeError):
    """Base class for failures pan reports with a stable code."""
    default_code = FALLBACK_CODE

    def __init__(self, message: str, code: str | None = None,
                 step: str = "") -> None:
        super().__init__(message)
        self.code = code or self.default_code
        self.step = step


class PolicyViolation(PanError):
    """Supplied push options break branch or commit policy."""
    default_code = "PAN_CFG_POLICY_VIOLATION"


class AnswersError(PanError):
    """Answers file is missing or cannot be parsed."""
    default_code = "PAN_CFG_ANSWERS_INVALID"


class PushFlowError(PanError):
    """The push flow stopped on an unrecoverable step."""

    def __init__(self, message: str, code: str | None = None,
                 step: str = "") -> None:
        super().__init__(message, resolve_failure_code(step, code or ""),
                         step)


@dataclass(frozen=True)
class FailureEvent:
    """A `PanError` flattened for the CLI failure report."""
    step: str
    label: str
    message: str
    code: str
    severity: str
    category: str

    @classmethod
    def from_error(cls, error: PanError, label: str = "") -> "FailureEvent":
        policy = error_policy_for(error.code)
        step   = error.step or "workflow"
        return cls(step=step, label=label or step,
               message=str(error).strip(), code=error.code,
               severity=policy.severity, category=policy.category)


@dataclass(frozen=True)
class ErrorEnvelope:
    code: str
    severity: str
    category: str
    message: str
    operation: str
    step: str
    retryable: bool
    suggested_fix: str = ""
    stderr_excerpt: str = ""
    raw_ref: str = ""
    actionable: bool = True
    user_action_required: bool = True
    context: dict[str, object] = field(default_factory=dict)

    def as_dict(self) -> dict[str, object]:
        return asdict(self)

    def with_runtime_schema(self) -> dict[str, object]:
        stamp = datetime.now(timezone.utc).isoformat(timespec="seconds")
        return {**self.as_dict(), "schema": ENVELOPE_SCHEMA,
                "schema_version": 1,
                "generated_at": stamp.replace("+00:00", "Z")}


def build_error_envelope(code: str, message: str, operation: str,
                         step: str, context: dict[str, object],
                         **details: object) -> ErrorEnvelope:
    """Envelope for `code`, with severity and category from policy."""
    policy = error_policy_for(code)
    return ErrorEnvelope(code=code, severity=policy.severity,
           category=policy.category, message=message,
           operation=operation, step=step, retryable=policy.retryable,
           context=context, **details)  # type: ignore[arg-type]

"""Branch naming and protection policy."""
from dataclasses import dataclass
from typing import Mapping
import os
import re


ALLOWED_PREFIXES: tuple[str, ...] = (
    "ci", "docs", "feat", "fix", "perf", "refactor", "style",
)
PROTECTED_BRANCHES: tuple[str, ...] = ("main", "master")
USER_ENV_KEYS: tuple[str, ...] = (
    "USER", "LOGNAME", "GITHUB_USER", "CI_USER",
)
SEGMENT_MAX = 80

_SEGMENT_INVALID = re.compile(r"[^a-z0-9._-]+")
_USER_INVALID    = re.compile(r"[^a-zA-Z0-9._-]")


def sanitize_segment(value: str) -> str:
    """
    Lower-case a branch segment and keep only `[a-z0-9._-]`.

    Runs of other characters collapse to one hyphen; edge
    hyphens are trimmed before and after the length cap so a
    second pass never changes the result.
    """
    text = _SEGMENT_INVALID.sub("-", value.lower()).strip("-")
    return text[:SEGMENT_MAX].strip("-")


def sanitize_user(value: str) -> str:
    return _USER_INVALID.sub("", value or "") or "dev"


def resolve_user_name(env: Mapping[str, str] | None = None) -> str:
    env = os.environ if env is None else env
    for key in USER_ENV_KEYS:
        raw = env.get(key)
        if raw and raw.strip(): return sanitize_user(raw.strip())
    return "dev"


@dataclass(frozen=True)
class PushPolicy:
    allowed_prefixes: tuple[str, ...] = ALLOWED_PREFIXES
    protected: tuple[str, ...] = PROTECTED_BRANCHES

    def is_allowed_prefix(self, prefix: str) -> bool:
        return prefix in self.allowed_prefixes

    def is_protected(self, branch: str) -> bool:
        return branch in self.protected

    def branch_pattern(self, user: str) -> re.Pattern[str]:
        prefixes = "|".join(re.escape(p) for p in self.allowed_prefixes)
        return re.compile(rf"^{re.escape(sanitize_user(user))}/(?:{prefixes})/.+")

    def valid_feature_branch(self, branch: str, user: str) -> bool:
        return bool(self.branch_pattern(user).match(branch or ""))

    def feature_branch(self, user: str, prefix: str, slug: str) -> str:
        return f"{sanitize_user(user)}/{prefix}/{sanitize_segment(slug)}"


DEFAULT_POLICY = PushPolicy()


def user_name() -> str:
    return resolve_user_name()


def valid_feature_branch(branch: str, user: str | None = None) -> bool:
    return DEFAULT_POLICY.valid_feature_branch(branch,
           user if user is not None else user_name())

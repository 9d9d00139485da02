"""Pure build-failure classification for remediation heuristics."""
from dataclasses import dataclass
from typing import Callable, Iterable
import re


@dataclass(frozen=True)
class HeuristicRule:
    """Declarative failure-text rule mapped to a remediation action."""
    action: str
    matcher: Callable[[str], bool]


@dataclass(frozen=True)
class KeywordRule:
    """Failure-text needles that suggest a script keyword."""
    keyword: str
    matcher: Callable[[str], bool]


def _match_any(needles: tuple[str, ...]) -> Callable[[str], bool]:
    """Return predicate that matches if any needle exists in text."""
    def _matcher(text: str) -> bool:
        return any(needle in text for needle in needles)
    return _matcher


PRISMA_NEEDLES: tuple[str, ...] = ("prisma", "p100", "client")

STALE_ARTIFACT_NEEDLES: tuple[str, ...] = (
    "tsbuildinfo",
    "cannot find module",
    "duplicate identifier",
    "ts180",
)

CACHE_NEEDLES: tuple[str, ...] = ("cache", "yn000", "integrity")

MIGRATION_NEEDLES: tuple[str, ...] = ("migrat",)

DOCKER_NEEDLES: tuple[str, ...] = (
    "docker",
    "cannot connect to the docker daemon",
)

HEURISTIC_RULES: tuple[HeuristicRule, ...] = (
    HeuristicRule("prisma_generate", _match_any(PRISMA_NEEDLES)),
    HeuristicRule("clean_artifacts", _match_any(STALE_ARTIFACT_NEEDLES)),
    HeuristicRule("cache_clean", _match_any(CACHE_NEEDLES)),
    HeuristicRule("migrate_scripts", _match_any(MIGRATION_NEEDLES)),
    HeuristicRule("docker_remediation", _match_any(DOCKER_NEEDLES)),
)

KEYWORD_RULES: tuple[KeywordRule, ...] = (
    KeywordRule("cache", _match_any(CACHE_NEEDLES)),
    KeywordRule("migrate", _match_any(MIGRATION_NEEDLES)),
    KeywordRule("clean", _match_any(STALE_ARTIFACT_NEEDLES + ("clean",))),
    KeywordRule("prisma", _match_any(PRISMA_NEEDLES[:2])),
    KeywordRule("rebuild", _match_any(("rebuild", "node-gyp", "binding"))),
    KeywordRule("docker", _match_any(DOCKER_NEEDLES)),
    KeywordRule("lint", _match_any(("eslint", "lint"))),
)

DEFAULT_KEYWORDS: tuple[str, ...] = ("fix", "clean", "prepare", "postinstall")


def normalize_failure_text(text: str) -> str:
    return re.sub(r"\s+", " ", text.strip().lower())


def classify(text: str) -> list[str]:
    """Actions whose rule matches the failure text, in table order."""
    blob = normalize_failure_text(text)
    if not blob: return []
    return [rule.action for rule in HEURISTIC_RULES if rule.matcher(blob)]


def derive_keywords(texts: Iterable[str]) -> list[str]:
    """Script keywords to try: those the failure matched, then defaults."""
    blob  = normalize_failure_text(" ".join(texts))
    found = [rule.keyword for rule in KEYWORD_RULES if rule.matcher(blob)]
    return list(dict.fromkeys(found + list(DEFAULT_KEYWORDS)))

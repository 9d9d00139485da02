"""
Answers files for non-interactive `pan push`.

Both shapes load to the same options:

    push:
      branch: {prefix: feat, name: Test-Foundations}
      commit: {subject: "test: scaffold", body: "..."}

    branchPrefix: feat
    branchName: Test-Foundations
    commitFirstLine: "test: scaffold"
    commitBody: "..."
"""
# ======================= STANDARDS =======================
from typing import Any, Mapping
from pathlib import Path
import json

# ===================== THIRD-PARTIES =====================
import yaml

# ======================== LOCALS =========================
from .push import PushOptions, normalize_push_options
from .error_model import AnswersError


def _is_mapping(value: object) -> bool:
    return isinstance(value, Mapping)


def _coerce(value: object) -> str | None:
    if isinstance(value, str): return value
    if isinstance(value, (bool, int, float)):
        return str(value).lower() if isinstance(value, bool) \
               else str(value)
    return None


def _first(*values: object) -> str | None:
    for value in values:
        coerced = _coerce(value)
        if coerced is not None: return coerced
    return None


def parse_answers(content: str, suffix: str, source: str) -> Any:
    suffix = suffix.lower()
    try:
        if suffix == ".json": return json.loads(content)
        if suffix in (".yaml", ".yml"): return yaml.safe_load(content)
    except (ValueError, yaml.YAMLError) as e:
        raise AnswersError(f"unable to parse answers file {source}: {e}")

    try: return json.loads(content)
    except ValueError: pass
    try: return yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise AnswersError(f"unable to parse answers file {source}: {e}")


def extract_push_node(raw: Any) -> Mapping[str, Any]:
    if not _is_mapping(raw): return {}
    push = raw.get("push")
    return push if _is_mapping(push) else raw


def load_push_answers(path: str | Path) -> PushOptions:
    resolved = Path(path).expanduser().resolve()
    try: content = resolved.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise AnswersError(f"Answers file not found at {resolved}")
    except OSError as e:
        raise AnswersError(f"failed to read answers file {resolved}: {e}")

    node   = extract_push_node(parse_answers(content, resolved.suffix,
             str(resolved)))
    branch = node.get("branch")
    branch = branch if _is_mapping(branch) else {}
    commit = node.get("commit")
    commit = commit if _is_mapping(commit) else {}

    return normalize_push_options(
        branch_prefix=_first(node.get("branchPrefix"),
                      branch.get("prefix"), branch.get("type")),
        branch_name=_first(node.get("branchName"), branch.get("name"),
                    branch.get("slug")),
        commit_first_line=_first(node.get("commitFirstLine"),
                          commit.get("firstLine"), commit.get("subject"),
                          commit.get("title")),
        commit_body=_first(node.get("commitBody"), commit.get("body")),
        source=str(resolved),
    )

"""Workspace inventory for yarn monorepos."""
# ======================= STANDARDS =======================
from dataclasses import dataclass, field
from typing import Callable, Iterable
from pathlib import Path
import logging as log
import shlex
import json
import re

# ======================== LOCALS =========================
from . import run


logger = log.getLogger("pan.workspaces")

BUILD_SCRIPT_PREFERENCE: tuple[str, ...] = (
    "build:ci", "build", "compile", "prepare",
)
TEST_SCRIPT_PREFERENCE: tuple[str, ...] = (
    "test:ci", "test:coverage", "test", "unit:test", "test:unit",
)
_BUILD_PATTERN = re.compile(r"build|compile")
_TEST_PATTERN  = re.compile(r"test|jest|vitest|cypress", re.IGNORECASE)

RUNNER_LOCKFILES: tuple[tuple[str, str], ...] = (
    ("yarn.lock", "yarn"),
    ("pnpm-lock.yaml", "pnpm"),
    ("bun.lockb", "bun"),
    ("package-lock.json", "npm"),
)


def normalize_location(location: str) -> str:
    text = location.replace("\\", "/").strip()
    text = re.sub(r"/{2,}", "/", text)
    while text.startswith("./"): text = text[2:]
    text = text.rstrip("/")
    return text or "."


@dataclass(frozen=True)
class Workspace:
    name: str
    location: str
    scripts: dict[str, str] = field(default_factory=dict, hash=False,
                                    compare=False)
    is_root: bool = False

    def has_script(self, name: str) -> bool:
        return name in self.scripts

    def first_script(self, candidates: Iterable[str]) -> str | None:
        return next((c for c in candidates if c in self.scripts), None)

    def scripts_matching(self, predicate: Callable[[str], bool]
                        ) -> list[str]:
        return [name for name in self.scripts if predicate(name)]

    def owns_file(self, path: str) -> bool:
        if self.is_root: return True
        target = normalize_location(path)
        prefix = normalize_location(self.location)
        return target == prefix or target.startswith(prefix + "/")


def read_package_json(path: str | Path = "package.json"
                     ) -> dict[str, object] | None:
    file = Path(path)
    if file.is_dir(): file = file / "package.json"
    try: data = json.loads(file.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError): return None
    return data if isinstance(data, dict) else None


def _scripts_of(data: dict[str, object] | None) -> dict[str, str]:
    scripts = (data or {}).get("scripts")
    if not isinstance(scripts, dict): return {}
    return {str(k): str(v) for k, v in scripts.items()
            if isinstance(v, str)}


_cache: list[Workspace] | None = None


def clear_workspace_cache() -> None:
    global _cache
    _cache = None


def list_workspaces() -> list[Workspace]:
    """Root workspace plus every workspace yarn knows about."""
    global _cache
    if _cache is not None: return list(_cache)

    root_pkg = read_package_json() or {}
    root = Workspace(name=str(root_pkg.get("name") or "root"),
           location=".", scripts=_scripts_of(root_pkg),
           is_root=True)
    found = [root]

    result = run.run_command("ywls", silence=True)
    if result.ok:
        for line in result.stdout.splitlines():
            line = line.strip()
            if not line: continue
            try: entry = json.loads(line)
            except json.JSONDecodeError:
                logger.debug("skipping malformed workspace line: %r", line)
                continue
            if not isinstance(entry, dict): continue
            location = normalize_location(str(entry.get("location", "")))
            name     = entry.get("name")
            if location == "." or not name: continue
            pkg = read_package_json(Path(location) / "package.json")
            found.append(Workspace(name=str(name), location=location,
                         scripts=_scripts_of(pkg)))
    else:
        logger.debug("yarn workspaces list failed (exit %s)",
                     result.exit_code)

    _cache = found
    return list(found)


def root_workspace() -> Workspace:
    return next(ws for ws in list_workspaces() if ws.is_root)


def _unquote(path: str) -> str:
    path = path.strip()
    if len(path) >= 2 and path[0] == path[-1] == '"':
        path = path[1:-1]
    return path


def parse_status_paths(text: str) -> list[str]:
    """Paths from `git status --short` output; renames give both."""
    paths: list[str] = []
    for line in text.splitlines():
        if len(line) < 4 or line.startswith("##"): continue
        entry = line[3:]
        parts = entry.split(" -> ") if " -> " in entry else [entry]
        for part in parts:
            part = _unquote(part)
            if part and part not in paths: paths.append(part)
    return paths


def changed_files() -> list[str]:
    result = run.run_command("gss", silence=True)
    if not result.ok: return []
    return parse_status_paths(result.stdout)


def select_changed_workspaces(workspaces: list[Workspace],
                              files: list[str]) -> list[Workspace]:
    root = next((ws for ws in workspaces if ws.is_root), None)
    base = [root] if root else []
    if not files: return base
    matched = [ws for ws in workspaces if not ws.is_root
               and any(ws.owns_file(f) for f in files)]
    return matched + base


def changed_workspaces() -> list[Workspace]:
    """Workspaces owning changed files; the root is always included."""
    return select_changed_workspaces(list_workspaces(), changed_files())


def find_scripts_by_keywords(workspace: Workspace,
                             keywords: Iterable[str]) -> list[str]:
    needles = [k.lower() for k in keywords if k]
    return workspace.scripts_matching(
        lambda name: any(k in name.lower() for k in needles))


def workspace_script_command(workspace: Workspace, script: str) -> str:
    if workspace.is_root: return f"yarn run {shlex.quote(script)}"
    return (f"yarn workspace {shlex.quote(workspace.name)} "
            f"run {shlex.quote(script)}")


def select_build_script(workspace: Workspace) -> str | None:
    preferred = workspace.first_script(BUILD_SCRIPT_PREFERENCE)
    if preferred: return preferred
    matches = workspace.scripts_matching(
              lambda name: bool(_BUILD_PATTERN.search(name)))
    return matches[0] if matches else None


def select_test_script(workspace: Workspace) -> str | None:
    preferred = workspace.first_script(TEST_SCRIPT_PREFERENCE)
    if preferred: return preferred
    matches = workspace.scripts_matching(
              lambda name: bool(_TEST_PATTERN.search(name)))
    return matches[0] if matches else None


def detect_runner(path: str | Path = ".") -> str:
    """Package manager declared by the project, yarn by default."""
    root = Path(path)
    pkg  = read_package_json(root) or {}
    declared = str(pkg.get("packageManager") or "")
    if declared:
        return declared.split("@", 1)[0] or "yarn"
    for lockfile, runner in RUNNER_LOCKFILES:
        if (root / lockfile).exists(): return runner
    return "yarn"


def command_for_script(runner: str, script: str) -> str:
    quoted = shlex.quote(script)
    if runner == "npm": return f"npm run {quoted}"
    if runner == "bun": return f"bun run {quoted}"
    return f"{runner} run {quoted}"

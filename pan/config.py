"""Layered runtime configuration for pan.

Precedence order (low -> high):
1) argparse defaults
2) project file: the `"pan"` object of package.json, or
   `[tool.pan]` in pyproject.toml, nearest directory first
3) git config `pan.<key>` (global, then local repository)
4) environment variables `PAN_<KEY>`
5) explicit CLI options
"""
from __future__ import annotations

from argparse import Namespace, ArgumentParser, Action
from dataclasses import dataclass, field
from typing import Callable
from pathlib import Path
import subprocess
import argparse
import json
import os

try:
    import tomllib
except ModuleNotFoundError:  # pragma: no cover
    import tomli as tomllib  # type: ignore[no-redef]

from . import utils


@dataclass(frozen=True)
class OptionSpec:
    dest: str
    kind: str  # "bool" | "str" | "int"
    choices: tuple[str, ...] | None = None

    @property
    def key(self) -> str:
        return self.dest.replace("_", "-")

    @property
    def env_key(self) -> str:
        return f"PAN_{self.dest.upper()}"


SPECS: tuple[OptionSpec, ...] = (
    OptionSpec("verbose", "bool"),
    OptionSpec("ci", "bool"),
    OptionSpec("plain", "bool"),
    OptionSpec("log_dir", "str"),
    OptionSpec("docker_dev_cmd", "str"),
    OptionSpec("assistant_mode", "str", choices=("openai", "local")),
    OptionSpec("local_llm_command", "str"),
    OptionSpec("chatgpt_enabled", "bool"),
    OptionSpec("chatgpt_confirm", "bool"),
    OptionSpec("chatgpt_model", "str"),
    OptionSpec("chatgpt_base_url", "str"),
    OptionSpec("chatgpt_timeout_ms", "int"),
    OptionSpec("chatgpt_max_tokens", "int"),
    OptionSpec("chatgpt_max_rounds", "int"),
)
BY_DEST = {spec.dest: spec for spec in SPECS}
BY_KEY  = {spec.key: spec for spec in SPECS}

TRUTHY = frozenset({"1", "true", "yes", "on"})
FALSY  = frozenset({"0", "false", "no", "off"})


# ---------- Coercion ----------
def _as_bool(raw: object) -> bool | None:
    if isinstance(raw, bool): return raw
    if not isinstance(raw, str): return None
    value = raw.strip().lower()
    if value in TRUTHY: return True
    if value in FALSY: return False
    return None


def _as_int(raw: object) -> int | None:
    if isinstance(raw, bool): return None
    if isinstance(raw, str):
        try: raw = int(raw.strip())
        except ValueError: return None
    if isinstance(raw, int) and raw > 0: return raw
    return None


def _as_str(raw: object) -> str | None:
    return raw.strip() if isinstance(raw, str) else None


COERCE: dict[str, tuple[Callable[[object], object | None], str]] = {
    "bool": (_as_bool, "use true/false"),
    "int":  (_as_int, "expected a positive integer"),
    "str":  (_as_str, "expected string"),
}


def _diag(level: str, source: str, key: str, raw: object,
          message: str) -> dict[str, str]:
    return {"level": level, "source": source, "key": key,
            "raw": str(raw), "message": message}


def _coerce(spec: OptionSpec, raw: object, source: str,
            diagnostics: list[dict[str, str]]) -> object | None:
    parse, expectation = COERCE[spec.kind]
    value = parse(raw)
    if value is None:
        diagnostics.append(_diag("warning", source, spec.dest, raw,
                           f"invalid value for {spec.dest}; {expectation}"))
        return None
    if spec.choices:
        value = str(value).lower()
        if value not in spec.choices:
            diagnostics.append(_diag("warning", source, spec.dest, raw,
                               f"invalid value for {spec.dest}; expected "
                               f"one of: {', '.join(spec.choices)}"))
            return None
    return value


# ---------- Project layer ----------
@dataclass
class ProjectLayer:
    values: dict[str, object] = field(default_factory=dict)
    diagnostics: list[dict[str, str]] = field(default_factory=list)
    file: Path | None = None

    @property
    def source(self) -> str:
        if self.file is not None and self.file.name == "package.json":
            return "package.json"
        return "pyproject"


def _scan_root(path: str) -> Path:
    target = Path(path).expanduser()
    target = (target if target.is_absolute() else Path.cwd() / target)
    target = target.resolve()
    return target.parent if target.is_file() else target


def _package_table(file: Path) -> tuple[object, str | None]:
    try: data = json.loads(file.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        return None, f"failed to parse package.json: {e}"
    return (data.get("pan") if isinstance(data, dict) else None), None


def _pyproject_table(file: Path) -> tuple[object, str | None]:
    try: data = tomllib.loads(file.read_text(encoding="utf-8"))
    except (OSError, tomllib.TOMLDecodeError) as e:
        return None, f"failed to parse pyproject.toml: {e}"
    return data.get("tool", {}).get("pan"), None


def _read_table(layer: ProjectLayer, table: object) -> ProjectLayer:
    source = layer.source
    if not isinstance(table, dict):
        layer.diagnostics.append(_diag("error", source, "pan",
            type(table).__name__, "pan settings must be a table/object"))
        return layer
    for raw_key, raw_val in table.items():
        spec = BY_KEY.get(str(raw_key).strip().lower().replace("_", "-"))
        if spec is None:
            layer.diagnostics.append(_diag("warning", source, str(raw_key),
                raw_val, "unknown pan setting; see `pan --help`"))
            continue
        layer.values[spec.dest] = raw_val
    return layer


def _load_project_overrides(path: str) -> ProjectLayer:
    """Settings from the nearest package.json or pyproject.toml."""
    readers = (("package.json", _package_table),
               ("pyproject.toml", _pyproject_table))
    folder = _scan_root(path)
    for current in (folder, *folder.parents):
        for name, reader in readers:
            file = current / name
            if not file.is_file(): continue
            layer = ProjectLayer(file=file)
            table, error = reader(file)
            if error:
                layer.diagnostics.append(_diag("error", layer.source,
                                         "pan", "", error))
                return layer
            if table is not None: return _read_table(layer, table)
    return ProjectLayer()


# ---------- Git and environment layers ----------
def _repo_root(path: str) -> Path | None:
    folder = _scan_root(path)
    return next((p for p in (folder, *folder.parents)
                 if (p / ".git").exists()), None)


def _git_config(scope: str, repo: Path | None = None) -> dict[str, str]:
    cmd = ["git", *(["-C", str(repo)] if repo else []), "config", scope,
           "--get-regexp", r"^pan\."]
    try: cp = subprocess.run(cmd, check=False, capture_output=True,
                             text=True)
    except FileNotFoundError: return {}
    if cp.returncode != 0: return {}
    found: dict[str, str] = {}
    for line in cp.stdout.splitlines():
        key, _, value = line.partition(" ")
        if key.strip(): found[key.strip()] = value.strip()
    return found


def _load_git_overrides(path: str) -> dict[str, str]:
    values = _git_config("--global")
    repo   = _repo_root(path)
    if repo: values.update(_git_config("--local", repo))
    return {spec.dest: values[f"pan.{spec.key}"] for spec in SPECS
            if f"pan.{spec.key}" in values}


def _load_env_overrides() -> dict[str, str]:
    return {spec.dest: os.environ[spec.env_key] for spec in SPECS
            if spec.env_key in os.environ}


# ---------- CLI layer ----------
def _option_actions(parser: ArgumentParser) -> dict[str, Action]:
    """Option strings of a parser and all of its subparsers."""
    mapping = dict(parser._option_string_actions)
    for action in parser._actions:
        if isinstance(action, argparse._SubParsersAction):
            for sub in action.choices.values():
                mapping.update(_option_actions(sub))
    return mapping


def _explicit_cli_dests(argv: list[str], parser: ArgumentParser) -> set[str]:
    mapping  = _option_actions(parser)
    explicit: set[str] = set()
    tokens   = iter(argv)
    for token in tokens:
        if token == "--": break
        if not token.startswith("-"): continue
        action = mapping.get(token.split("=", 1)[0])
        if action is None: continue
        explicit.add(action.dest)
        if "=" not in token and action.nargs != 0: next(tokens, None)
    return explicit


def apply_layered_config(args: Namespace, argv: list[str],
                         parser: ArgumentParser) -> Namespace:
    """Apply project/git/env overrides unless set explicitly by CLI."""
    merged   = Namespace(**vars(args))
    target   = getattr(merged, "path", ".") or "."
    explicit = _explicit_cli_dests(argv, parser)
    project  = _load_project_overrides(target)
    layers   = ((project.source, project.values),
                ("git", _load_git_overrides(target)),
                ("env", _load_env_overrides()))
    diagnostics = list(project.diagnostics)
    sources = {k: "default" for k in vars(merged)}

    for spec in SPECS:
        if not hasattr(merged, spec.dest): setattr(merged, spec.dest, None)
        if spec.dest in explicit:
            sources[spec.dest] = "cli"
            continue
        sources.setdefault(spec.dest, "default")
        for source, values in layers:
            if spec.dest not in values: continue
            value = _coerce(spec, values[spec.dest], source, diagnostics)
            if value is None: continue
            setattr(merged, spec.dest, value)
            sources[spec.dest] = source
    for dest in explicit: sources[dest] = "cli"

    merged._pan_config_sources     = sources
    merged._pan_config_diagnostics = diagnostics
    merged._pan_config_files = {
        "project": str(project.file) if project.file else None}
    return merged


def show_effective_config(args: Namespace, out: utils.Output) -> int:
    """Print the effective merged runtime configuration."""
    keys      = ["path", "command", *BY_DEST]
    effective = {k: getattr(args, k, None) for k in keys}
    sources   = getattr(args, "_pan_config_sources", None) or {}
    effective["_sources"] = {k: sources.get(k, "default") for k in keys}
    effective["_config_files"] = getattr(args, "_pan_config_files", {})
    effective["_config_diagnostics"] = getattr(args,
        "_pan_config_diagnostics", [])
    out.raw(json.dumps(effective, indent=2, sort_keys=True, default=str))
    return 0

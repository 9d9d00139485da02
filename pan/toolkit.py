"""Shell aliases for pan's command registry."""
# ======================= STANDARDS =======================
from dataclasses import dataclass
from typing import Mapping
from pathlib import Path
import os

# ======================== LOCALS =========================
from .commands import CommandDefinition, list_toolkit_commands
from .commands import resolve_command


SENTINEL_BEGIN = "# >>> pan toolkit aliases >>>"
SENTINEL_END   = "# <<< pan toolkit aliases <<<"


@dataclass(frozen=True)
class ToolkitAlias:
    alias: str
    command: str
    description: str


@dataclass(frozen=True)
class InstallResult:
    profile: Path | None
    installed: bool
    reason: str = ""


def _shell_form(definition: CommandDefinition) -> str:
    if definition.shell: return definition.shell
    return resolve_command(definition.alias).command


def toolkit_aliases() -> list[ToolkitAlias]:
    return [ToolkitAlias(d.alias, _shell_form(d), d.description)
            for d in list_toolkit_commands()]


def format_toolkit_listing() -> str:
    rows = [f"  {a.alias:<16} → {a.command} ({a.description})"
            for a in toolkit_aliases()]
    return "\n".join(["Pan Remediation Toolkit",
                      "-----------------------", *rows])


def _single_quote(text: str) -> str:
    return "'" + text.replace("'", "'\\''") + "'"


def generate_toolkit_snippet() -> str:
    body = [f"alias {a.alias}={_single_quote(a.command)}"
            for a in toolkit_aliases()]
    return "\n".join([
        SENTINEL_BEGIN,
        "# Pan toolkit aliases; keep this block in your shell profile.",
        *body,
        SENTINEL_END,
        "",
    ])


def default_profile(env: Mapping[str, str] | None = None) -> Path:
    env   = os.environ if env is None else env
    shell = env.get("SHELL", "")
    home  = Path.home()
    if "zsh" in shell: return home / ".zshrc"
    if "bash" in shell: return home / ".bashrc"
    return home / ".profile"


def install_toolkit_aliases(profile: str | Path | None = None
                           ) -> InstallResult:
    """Append the alias block unless the profile already has it."""
    path = Path(profile).expanduser().resolve() if profile \
           else default_profile()
    try: existing = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        path.parent.mkdir(parents=True, exist_ok=True)
        existing = ""
    if SENTINEL_BEGIN in existing:
        return InstallResult(path, False, "already installed")

    separator = "" if not existing or existing.endswith("\n") else "\n"
    path.write_text(existing + separator + generate_toolkit_snippet(),
                    encoding="utf-8")
    return InstallResult(path, True)

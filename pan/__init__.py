"""pan: yarn monorepo build remediation and push workflow."""


from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
import sys

if sys.version_info >= (3, 11): import tomllib
else: import tomli as tomllib


DIST_NAME = "pan-shepherd"


def _checkout_version() -> str | None:
    """Version declared by a source checkout's pyproject.toml."""
    pyproject = Path(__file__).resolve().parent.parent / "pyproject.toml"
    try: data = tomllib.loads(pyproject.read_text(encoding="utf-8"))
    except (OSError, tomllib.TOMLDecodeError): return None
    project = data.get("project") or {}
    if project.get("name") != DIST_NAME: return None
    return project.get("version")


try: __version__ = _checkout_version() or version(DIST_NAME)
except PackageNotFoundError: __version__ = "0+local"

"""Throwaway git checkouts shaped like a small yarn monorepo."""
from __future__ import annotations

from pathlib import Path
import subprocess
import tempfile
import json


class GitFixture:
    def __init__(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)

    def close(self) -> None:
        self._tmp.cleanup()

    def git(self, repo: Path | None, *args: str,
            check: bool = True) -> subprocess.CompletedProcess[str]:
        return subprocess.run(
            ["git", *args],
            cwd=str(repo) if repo else None,
            check=check,
            capture_output=True,
            text=True,
        )

    def origin(self, name: str = "origin.git") -> Path:
        path = self.root / name
        self.git(None, "init", "--bare", "--initial-branch=main", str(path))
        return path

    def write(self, repo: Path, rel: str, text: str) -> Path:
        path = repo / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
        return path

    def write_package(self, repo: Path, rel: str, name: str,
                      scripts: dict[str, str],
                      workspaces: list[str] | None = None) -> Path:
        data: dict[str, object] = {"name": name, "version": "0.0.0",
                                   "private": True, "scripts": scripts}
        if workspaces is not None: data["workspaces"] = workspaces
        return self.write(repo, f"{rel}/package.json".lstrip("/"),
                          json.dumps(data, indent=2) + "\n")

    def monorepo(self, name: str = "work",
                 origin: Path | None = None) -> Path:
        """Root package plus `packages/api`, committed on main."""
        repo = self.root / name
        repo.mkdir(parents=True, exist_ok=True)
        self.git(None, "init", "--initial-branch=main", str(repo))
        self.git(repo, "config", "user.name", "pan-test")
        self.git(repo, "config", "user.email", "pan@example.com")
        self.write_package(repo, "", "mono",
                           {"build": "true", "lint": "true"},
                           workspaces=["packages/*"])
        self.write_package(repo, "packages/api", "api",
                           {"build": "true", "test": "true"})
        self.write(repo, "packages/api/src/index.ts",
                   "export const ready = true;\n")
        self.commit_all(repo, "chore: seed monorepo")
        if origin is not None:
            self.git(repo, "remote", "add", "origin", str(origin))
            self.git(repo, "push", "-u", "origin", "main")
        return repo

    def commit_all(self, repo: Path, message: str) -> None:
        self.git(repo, "add", "-A")
        self.git(repo, "commit", "-m", message)

    def branch(self, repo: Path) -> str:
        return self.git(repo, "rev-parse", "--abbrev-ref",
                        "HEAD").stdout.strip()

    def remote_branches(self, origin: Path) -> list[str]:
        cp = self.git(origin, "for-each-ref", "--format=%(refname:short)",
                      "refs/heads")
        return [line for line in cp.stdout.splitlines() if line]

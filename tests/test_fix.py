"""Smart build remediation engine tests with a scripted shell."""


from unittest.mock import patch
from typing import get_type_hints
from pathlib import Path
import tempfile
import unittest
import json
import os

from pan import workspaces
from pan import fix
from pan import run
from tests._shell import FAIL, FakeShell, Reply, quiet_flags


API_BUILD = "yarn workspace api run build"
STALE     = Reply(ok=False, stderr="error TS2307: Cannot find module "
                  "'./generated' or its corresponding type declarations.")
LISTING   = "\n".join([
    json.dumps({"location": ".", "name": "mono"}),
    json.dumps({"location": "packages/api", "name": "api"}),
])


class SmartBuildFixTests(unittest.TestCase):
    def setUp(self) -> None:
        quiet_flags()
        workspaces.clear_workspace_cache()
        self._cwd = os.getcwd()
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        self._pkg(".", {"name": "mono", "scripts": {
            "build": "tsc -b", "lint": "eslint .",
            "type-check": "tsc --noEmit", "clean": "rimraf build",
        }})
        self._pkg("packages/api", {"name": "api",
                  "scripts": {"build": "tsc"}})
        os.chdir(self.root)

    def tearDown(self) -> None:
        os.chdir(self._cwd)
        workspaces.clear_workspace_cache()
        self._tmp.cleanup()

    def _pkg(self, rel: str, data: dict[str, object]) -> None:
        path = self.root / rel / "package.json"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(data), encoding="utf-8")

    def _shell(self) -> FakeShell:
        return FakeShell().on("yarn workspaces list", Reply(stdout=LISTING))

    def _changed_api(self, shell: FakeShell) -> FakeShell:
        return shell.on("git status --short",
                        Reply(stdout=" M packages/api/src/x.ts\n"))

    def test_priority_path_runs_chain_in_order(self) -> None:
        with self._shell() as shell:
            outcome = fix.smart_build_fix(skip_consult=True,
                      interactive=False)
        self.assertTrue(outcome.ok)
        self.assertEqual(outcome.attempts, 1)
        order = ["git fetch origin --prune", "git rebase --autostash",
                 "yarn cache clean", "yarn install", "yarn run build",
                 "yarn run lint", "yarn run type-check"]
        indexes = [shell.index(step) for step in order]
        self.assertEqual(indexes, sorted(indexes))
        self.assertFalse(shell.ran(API_BUILD))
        self.assertEqual(len(outcome.commands), len(shell.calls))

    def test_failed_rebase_blocks_everything_else(self) -> None:
        marker = self.root / ".git" / "rebase-merge"
        marker.mkdir(parents=True)
        shell = self._shell()
        shell.on("git rebase --autostash", FAIL)
        shell.on("--git-path rebase-merge", Reply(stdout=".git/rebase-merge"))
        shell.on("git rev-list --left-right --count", Reply(stdout="3\t1"))
        with shell:
            outcome = fix.smart_build_fix(skip_consult=True,
                      interactive=False)
        self.assertFalse(outcome.ok)
        self.assertTrue(outcome.blocked)
        self.assertTrue(shell.ran("git rebase --abort"))
        self.assertFalse(any(c.startswith("yarn") and "workspaces" not in c
                             for c in shell.calls))
        message = outcome.blocked_message or ""
        self.assertIn("1 commit(s) ahead and 3 commit(s) behind", message)
        self.assertIn("Recovery options", message)
        self.assertIn("git reset --hard origin/master", message)

    def test_fail_then_succeed_counts_two_attempts(self) -> None:
        shell = self._changed_api(self._shell())
        shell.on("git fetch origin", FAIL)
        shell.on(API_BUILD, STALE, Reply())
        with shell:
            outcome = fix.smart_build_fix(skip_consult=True,
                      interactive=False)
        self.assertTrue(outcome.ok)
        self.assertEqual(outcome.attempts, 2)
        self.assertFalse(shell.ran("yarn cache clean"))
        self.assertFalse(shell.ran("git rebase"))
        builds = [i for i, c in enumerate(shell.calls) if c == API_BUILD]
        self.assertEqual(len(builds), 2)
        clean_artifacts = shell.index('-name "*.tsbuildinfo"')
        clean_script    = shell.index("yarn run clean")
        self.assertLess(builds[0], clean_artifacts)
        self.assertLess(clean_script, builds[1])

    def test_exhausted_without_consult(self) -> None:
        shell = self._changed_api(self._shell())
        shell.on("git fetch origin", FAIL)
        shell.on(API_BUILD, STALE)
        with shell, patch("pan.assistant.consult") as consult:
            outcome = fix.smart_build_fix(skip_consult=True,
                      interactive=False)
        self.assertFalse(outcome.ok)
        self.assertFalse(outcome.blocked)
        self.assertFalse(outcome.consulted)
        self.assertEqual(outcome.attempts, 3)
        self.assertIn("api:build", outcome.summary)
        self.assertFalse(shell.ran('-name "node_modules"'))
        consult.assert_not_called()

    def test_exhausted_consults_with_failure_logs(self) -> None:
        shell = self._changed_api(self._shell())
        shell.on("git fetch origin", FAIL)
        shell.on(API_BUILD, STALE)
        with shell, patch("pan.assistant.consult",
                          return_value=False) as consult:
            outcome = fix.smart_build_fix(interactive=False)
        self.assertTrue(outcome.consulted)
        consult.assert_called_once()
        summary, question, logs = consult.call_args.args
        self.assertIn("Build still failing", summary)
        self.assertEqual([entry.label for entry in logs], ["api:build"])

    def test_deep_clean_runs_only_when_confirmed(self) -> None:
        shell = self._changed_api(self._shell())
        shell.on("git fetch origin", FAIL)
        shell.on(API_BUILD, STALE, STALE, STALE, Reply())
        with shell, patch("pan.utils.confirm", return_value=True):
            outcome = fix.smart_build_fix(skip_consult=True,
                      interactive=True)
        self.assertTrue(outcome.ok)
        self.assertEqual(outcome.attempts, 4)
        self.assertTrue(shell.ran('-name "node_modules"'))

    def test_deep_clean_declined(self) -> None:
        shell = self._changed_api(self._shell())
        shell.on("git fetch origin", FAIL)
        shell.on(API_BUILD, STALE)
        with shell, patch("pan.utils.confirm", return_value=False):
            outcome = fix.smart_build_fix(skip_consult=True,
                      interactive=True)
        self.assertFalse(outcome.ok)
        self.assertFalse(shell.ran('-name "node_modules"'))
        self.assertTrue(any("declined" in step for step in outcome.steps))

    def _root_scripts(self, **extra: str) -> None:
        self._pkg(".", {"name": "mono", "scripts": {
            "build": "tsc -b", "clean": "rimraf build", **extra}})

    def test_keyword_scripts_include_defaults(self) -> None:
        self._root_scripts(**{"postinstall": "husky install",
                              "fix:deps": "syncpack fix-mismatches"})
        shell = self._changed_api(self._shell())
        shell.on("git fetch origin", FAIL)
        shell.on(API_BUILD, Reply(ok=False, stderr="YN0018: cache "
                 "integrity mismatch for lodash"), Reply())
        with shell:
            outcome = fix.smart_build_fix(skip_consult=True,
                      interactive=False)
        self.assertTrue(outcome.ok)
        self.assertTrue(shell.ran("yarn cache clean"))
        self.assertTrue(shell.ran("yarn run postinstall"))
        self.assertTrue(shell.ran("yarn run fix:deps"))

    def test_script_matched_twice_runs_once(self) -> None:
        self._root_scripts(**{"db:migrate": "prisma migrate deploy"})
        shell = self._changed_api(self._shell())
        shell.on("git fetch origin", FAIL)
        shell.on(API_BUILD, Reply(ok=False, stderr="Pending migrations "
                 "detected; run migrate deploy before building."), Reply())
        with shell:
            outcome = fix.smart_build_fix(skip_consult=True,
                      interactive=False)
        self.assertTrue(outcome.ok)
        self.assertEqual(shell.calls.count("yarn run db:migrate"), 1)

    def test_blank_failure_output_skips_heuristics(self) -> None:
        self._root_scripts(postinstall="husky install")
        shell = self._changed_api(self._shell())
        shell.on("git fetch origin", FAIL)
        shell.on(API_BUILD, Reply(ok=False), Reply())
        with shell:
            outcome = fix.smart_build_fix(skip_consult=True,
                      interactive=False)
        self.assertTrue(outcome.ok)
        self.assertEqual(outcome.attempts, 2)
        self.assertFalse(shell.ran("yarn run postinstall"))
        self.assertFalse(shell.ran("yarn run clean"))
        self.assertTrue(any("skipping heuristics" in step
                            for step in outcome.steps))

    def test_annotations_resolve_against_module_names(self) -> None:
        hints = get_type_hints(fix.SmartBuildFix._blocked)
        self.assertIs(hints["rebase"], run.RunResult)
        self.assertIs(hints["return"], fix.RemediationOutcome)


if __name__ == "__main__":
    unittest.main()

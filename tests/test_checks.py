"""Prepush quality gate tests."""


from pathlib import Path
import tempfile
import unittest
import json
import os

from pan import workspaces
from pan import checks
from tests._shell import FAIL, FakeShell, Reply, quiet_flags


LISTING = json.dumps({"location": "packages/api", "name": "api"})


class PlaceholderTests(unittest.TestCase):
    def test_known_placeholders(self) -> None:
        for body in ('echo "Error: no test specified" && exit 1',
                     "exit 0", "true", ":", "echo skip"):
            self.assertTrue(checks.is_placeholder_script(body), msg=body)

    def test_real_runners_are_not_placeholders(self) -> None:
        for body in ("jest", "vitest run", "echo start && jest"):
            self.assertFalse(checks.is_placeholder_script(body), msg=body)


class PrepushChecksTests(unittest.TestCase):
    def setUp(self) -> None:
        quiet_flags()
        workspaces.clear_workspace_cache()
        self._cwd = os.getcwd()
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
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
        return FakeShell() \
            .on("yarn workspaces list", Reply(stdout=LISTING)) \
            .on("git status --short",
                Reply(stdout=" M packages/api/src/a.ts\n"))

    def test_runs_checks_in_order(self) -> None:
        self._pkg(".", {"name": "mono", "scripts": {"test": "jest"}})
        self._pkg("packages/api", {"name": "api",
                  "scripts": {"test": "vitest run"}})
        with self._shell() as shell:
            report = checks.run_prepush_checks()
        self.assertTrue(report)
        self.assertIsNone(report.failed_step)
        order = ["yarn lint --fix", "yarn type-check",
                 "yarn workspace api run test", "yarn dirty-index-check"]
        indexes = [shell.index(step) for step in order]
        self.assertEqual(indexes, sorted(indexes))
        self.assertTrue(shell.ran("yarn run test"))

    def test_first_failure_stops_the_gate(self) -> None:
        self._pkg(".", {"name": "mono"})
        with self._shell().on("yarn lint --fix", FAIL) as shell:
            report = checks.run_prepush_checks()
        self.assertFalse(report)
        self.assertEqual(report.failed_step, "lint")
        self.assertFalse(shell.ran("yarn type-check"))

    def test_failing_tests_report_tests_step(self) -> None:
        self._pkg(".", {"name": "mono"})
        self._pkg("packages/api", {"name": "api",
                  "scripts": {"test": "jest"}})
        shell = self._shell().on("yarn workspace api run test", FAIL)
        with shell:
            report = checks.run_prepush_checks()
        self.assertEqual(report.failed_step, "tests")
        self.assertFalse(shell.ran("yarn dirty-index-check"))

    def test_placeholder_falls_back_to_root_tests(self) -> None:
        self._pkg(".", {"name": "mono", "scripts": {"test:ci": "jest"}})
        self._pkg("packages/api", {"name": "api", "scripts": {
                  "test": 'echo "Error: no test specified" && exit 1'}})
        with self._shell() as shell:
            self.assertTrue(checks.run_relevant_tests())
        self.assertFalse(shell.ran("yarn workspace api"))
        self.assertTrue(shell.ran("yarn run test:ci"))

    def test_no_test_scripts_passes(self) -> None:
        self._pkg(".", {"name": "mono"})
        with self._shell() as shell:
            self.assertTrue(checks.run_relevant_tests())
        self.assertFalse(shell.ran(" run test"))

    def test_root_suite_runs_alongside_changed_workspaces(self) -> None:
        self._pkg(".", {"name": "mono", "scripts": {"test": "jest"}})
        self._pkg("packages/api", {"name": "api",
                  "scripts": {"test": "vitest run"}})
        with self._shell() as shell:
            self.assertTrue(checks.run_relevant_tests())
        self.assertEqual(sum(" run test" in c for c in shell.calls), 2)
        self.assertTrue(shell.ran("yarn workspace api run test"))
        self.assertTrue(shell.ran("yarn run test"))

    def test_every_suite_runs_after_a_failure(self) -> None:
        self._pkg(".", {"name": "mono", "scripts": {"test": "jest"}})
        self._pkg("packages/api", {"name": "api",
                  "scripts": {"test": "vitest run"}})
        shell = self._shell().on("yarn workspace api run test", FAIL) \
                             .on("yarn run test", FAIL)
        with shell:
            self.assertFalse(checks.run_relevant_tests())
        self.assertTrue(shell.ran("yarn workspace api run test"))
        self.assertTrue(shell.ran("yarn run test"))


if __name__ == "__main__":
    unittest.main()

"""CLI smoke tests for stable user-facing behavior."""


from pathlib import Path
import subprocess
import tempfile
import unittest
import json
import sys


def _pan(*args: str, cwd: str | None = None
        ) -> subprocess.CompletedProcess[str]:
    return subprocess.run(
        [sys.executable, "-m", "pan", *args],
        check=False,
        capture_output=True,
        text=True,
        cwd=cwd,
        stdin=subprocess.DEVNULL,
    )


class CliSmokeTests(unittest.TestCase):
    def test_help_exits_zero(self) -> None:
        cp = _pan("--help")
        self.assertEqual(cp.returncode, 0, cp.stderr)
        for needle in ("diagnose", "prepush", "push", "toolkit", "chat",
                       "PAN_OPENAI_API_KEY", "PAN_DOCKER_DEV_CMD"):
            self.assertIn(needle, cp.stdout)

    def test_version(self) -> None:
        cp = _pan("--version")
        self.assertEqual(cp.returncode, 0, cp.stderr)
        self.assertIn("[pan]", cp.stdout)

    def test_toolkit_listing(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            cp = _pan("toolkit", "--plain", cwd=tmp)
        self.assertEqual(cp.returncode, 0, cp.stderr)
        self.assertIn("Pan Remediation Toolkit", cp.stdout)
        self.assertIn("alias ffyc=", cp.stdout)

    def test_show_config_prints_sources(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            cp = _pan("--show-config", cwd=tmp)
        self.assertEqual(cp.returncode, 0, cp.stderr)
        payload = json.loads(cp.stdout)
        self.assertIn("chatgpt_model", payload)
        self.assertIn("_sources", payload)

    def test_missing_answers_file_writes_envelope(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            cp = _pan("push", "--answers", "missing.yaml", "--ci",
                      "--plain", cwd=tmp)
            log_dir  = Path(tmp) / ".repo-doctor"
            envelope = log_dir / "last_error_envelope.json"
            events   = log_dir / "events.jsonl"
            self.assertTrue(envelope.exists())
            self.assertTrue(events.exists())
            payload = json.loads(envelope.read_text(encoding="utf-8"))
            self.assertEqual(payload["code"], "PAN_CFG_ANSWERS_INVALID")
            self.assertEqual(payload["schema"], "pan.error_envelope.v1")
            rows = [json.loads(x) for x in
                    events.read_text(encoding="utf-8").splitlines()]
            runtime = [r for r in rows if r.get("event_type") == "runtime_error"]
            self.assertTrue(runtime)
            self.assertTrue(all(r.get("run_id") for r in runtime))
        self.assertNotEqual(cp.returncode, 0)
        self.assertIn("Answers file not found", cp.stdout)
        self.assertIn("summary: answers file could not be loaded", cp.stdout)

    def test_verbose_failure_prints_advanced_details(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            cp = _pan("push", "--answers", "missing.yaml", "--ci",
                      "--plain", "--verbose", cwd=tmp)
        self.assertNotEqual(cp.returncode, 0)
        self.assertIn("advanced details:", cp.stdout)
        self.assertIn("code=PAN_CFG_ANSWERS_INVALID", cp.stdout)


if __name__ == "__main__":
    unittest.main()

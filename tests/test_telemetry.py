"""Telemetry redaction and event-shape tests."""


from pathlib import Path
import tempfile
import unittest
import json

from pan import telemetry


class TelemetryTests(unittest.TestCase):
    def tearDown(self) -> None:
        telemetry.close_event_stream()

    def test_emit_event_includes_run_and_step(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            telemetry.set_run_id("testrun01")
            path = telemetry.init_event_stream(Path(tmp))
            telemetry.emit_event(
                event_type="remediation_phase",
                step_id="fix:initial build",
                payload={"ok": False, "attempts": 1},
            )
            rows = list(telemetry.read_events(path))
        self.assertEqual(len(rows), 1)
        row = rows[0]
        self.assertEqual(row["schema"], telemetry.EVENT_SCHEMA)
        self.assertEqual(row["run_id"], "testrun01")
        self.assertEqual(row["event_type"], "remediation_phase")
        self.assertEqual(row["step_id"], "fix:initial build")
        self.assertEqual(row["payload"], {"ok": False, "attempts": 1})

    def test_blank_run_id_generates_one(self) -> None:
        generated = telemetry.set_run_id("  ")
        self.assertEqual(len(generated), 12)
        self.assertEqual(telemetry.run_id(), generated)

    def test_closed_stream_drops_events(self) -> None:
        telemetry.close_event_stream()
        self.assertIsNone(telemetry.events_file())
        telemetry.emit_event("push_step", "push", {"result": "ok"})
        self.assertEqual(list(telemetry.read_events()), [])

    def test_read_events_skips_garbage(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "events.jsonl"
            path.write_text('{"event_type":"push_step"}\nnot json\n\n',
                            encoding="utf-8")
            rows = list(telemetry.read_events(path))
        self.assertEqual(rows, [{"event_type": "push_step"}])

    def test_redaction_masks_keys_and_auth_urls(self) -> None:
        payload = {
            "url": "https://ghp_1234@github.com/u/r.git",
            "token": "token=ghp_5678",
            "nested": {"password": "password: secret123"},
            "header": "Authorization: Bearer abc.def.ghi",
            "prompt": ["key sk-proj-abcdefghijk in text"],
            "npmrc": ("//registry.npmjs.org/:_authToken=npm_abcdefgh1234",),
        }
        text = json.dumps(telemetry.redact(payload))
        for secret in ("ghp_1234", "ghp_5678", "secret123", "abc.def.ghi",
                       "sk-proj-abcdefghijk", "npm_abcdefgh1234"):
            self.assertNotIn(secret, text)
        self.assertIn("<redacted>", text)


if __name__ == "__main__":
    unittest.main()

"""Tests for runtime error-envelope code mapping."""


from argparse import Namespace
from unittest.mock import patch
from pathlib import Path
import unittest

from pan.cli import COMMON_FAILURE_FIXES, _build_runtime_error_envelope
from pan.error_model import (
    ERROR_CODE_POLICY,
    AnswersError,
    PanError,
    PolicyViolation,
    PushFlowError,
)
from pan import run
from tests._shell import quiet_flags


LOG_DIR = Path("/tmp/pan-logs")


def _args(**overrides: object) -> Namespace:
    base: dict[str, object] = {
        "path": ".",
        "command": "push",
        "ci": True,
        "verbose": False,
    }
    base.update(overrides)
    return Namespace(**base)


class RuntimeErrorEnvelopeTests(unittest.TestCase):
    def setUp(self) -> None:
        quiet_flags()

    def test_system_exit_uses_generic_code(self) -> None:
        payload = _build_runtime_error_envelope(
            _args(), SystemExit(1), exit_code=1, log_dir=LOG_DIR)
        self.assertEqual(payload["code"], "PAN_INT_WORKFLOW_EXIT_NONZERO")
        self.assertEqual(payload["step"], "push")
        self.assertEqual(payload["schema"], "pan.error_envelope.v1")

    def test_push_step_failures_map_by_step(self) -> None:
        cases = {
            "stash": "PAN_GIT_STASH_FAIL",
            "rebase": "PAN_GIT_REBASE_FAIL",
            "branch": "PAN_GIT_BRANCH_FAIL",
            "checks": "PAN_CHK_PREPUSH_FAIL",
            "commit": "PAN_GIT_COMMIT_FAIL",
            "guard": "PAN_GIT_PROTECTED_BRANCH",
            "push": "PAN_NET_PUSH_FAIL",
        }
        for step, code in cases.items():
            payload = _build_runtime_error_envelope(
                _args(), PushFlowError(f"{step} failed", step=step),
                exit_code=1, log_dir=LOG_DIR)
            self.assertEqual(payload["code"], code, msg=step)
            self.assertEqual(payload["step"], step)

    def test_retryable_follows_code_policy(self) -> None:
        push = _build_runtime_error_envelope(
            _args(), PushFlowError("rejected", step="push"),
            exit_code=1, log_dir=LOG_DIR)
        guard = _build_runtime_error_envelope(
            _args(), PushFlowError("protected", step="guard"),
            exit_code=1, log_dir=LOG_DIR)
        self.assertTrue(push["retryable"])
        self.assertFalse(guard["retryable"])

    def test_explicit_code_wins_over_step(self) -> None:
        payload = _build_runtime_error_envelope(
            _args(), PushFlowError("blocked", code="PAN_GIT_REBASE_BLOCKED",
                                   step="remediate"),
            exit_code=1, log_dir=LOG_DIR)
        self.assertEqual(payload["code"], "PAN_GIT_REBASE_BLOCKED")
        self.assertEqual(payload["category"], "git")

    def test_config_errors_have_config_category(self) -> None:
        for error in (AnswersError("bad file"), PolicyViolation("bad prefix")):
            payload = _build_runtime_error_envelope(
                _args(), error, exit_code=1, log_dir=LOG_DIR)
            self.assertEqual(payload["category"], "config")
            self.assertTrue(payload["suggested_fix"])

    def test_build_failure_uses_build_category(self) -> None:
        payload = _build_runtime_error_envelope(
            _args(command="fix"),
            PanError("still failing", code="PAN_BLD_REMEDIATION_FAIL",
                     step="remediate"),
            exit_code=1, log_dir=LOG_DIR)
        self.assertEqual(payload["category"], "build")
        self.assertEqual(payload["operation"], "fix")

    def test_keyboard_interrupt(self) -> None:
        payload = _build_runtime_error_envelope(
            _args(), KeyboardInterrupt(), exit_code=1, log_dir=LOG_DIR)
        self.assertEqual(payload["code"], "PAN_INT_KEYBOARD_INTERRUPT")
        self.assertEqual(payload["severity"], "warn")

    def test_unhandled_exception_uses_internal_category_policy(self) -> None:
        payload = _build_runtime_error_envelope(
            _args(), RuntimeError("boom"), exit_code=1, log_dir=LOG_DIR)
        self.assertEqual(payload["code"], "PAN_INT_UNHANDLED_EXCEPTION")
        self.assertEqual(payload["severity"], "error")
        self.assertEqual(payload["category"], "internal")

    def test_last_failing_command_lands_in_context(self) -> None:
        failure = run.RunResult(ok=False, stdout="", stderr="tsc: error",
                  exit_code=2, log_file="/tmp/x.log", command="yarn build",
                  label="yarn build")
        with patch("pan.run.last_failure", return_value=failure):
            payload = _build_runtime_error_envelope(
                _args(), SystemExit(1), exit_code=1, log_dir=LOG_DIR)
        context = payload["context"]
        self.assertEqual(context["last_command"], "yarn build")
        self.assertEqual(context["last_log_file"], "/tmp/x.log")
        self.assertIn("tsc: error", payload["stderr_excerpt"])
        self.assertEqual(payload["raw_ref"],
                         str(LOG_DIR / "last_error_envelope.json"))

    def test_every_failure_fix_code_has_a_policy(self) -> None:
        for code in COMMON_FAILURE_FIXES:
            self.assertIn(code, ERROR_CODE_POLICY, msg=code)


if __name__ == "__main__":
    unittest.main()

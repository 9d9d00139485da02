"""Tests for remediation policy matrix behavior."""


import unittest

from pan.remediation_policy import (
    REMEDIATION_POLICY,
    alias_for,
    can_run_remediation,
    requires_confirmation,
)


class RemediationPolicyTests(unittest.TestCase):
    def test_deep_clean_disallowed_when_not_interactive(self) -> None:
        allowed, reason = can_run_remediation(
            action="deep_clean",
            interactive=False,
        )
        self.assertFalse(allowed)
        self.assertIn("interactive", reason)

    def test_deep_clean_allowed_interactively_with_confirmation(self) -> None:
        allowed, reason = can_run_remediation(
            action="deep_clean",
            interactive=True,
        )
        self.assertTrue(allowed)
        self.assertEqual(reason, "")
        self.assertTrue(requires_confirmation("deep_clean"))

    def test_docker_remediation_requires_configured_command(self) -> None:
        allowed, reason = can_run_remediation(
            action="docker_remediation",
            interactive=True,
            configured=False,
        )
        self.assertFalse(allowed)
        self.assertIn("configuration", reason)

    def test_heuristics_allowed_unattended(self) -> None:
        for action in ("prisma_generate", "clean_artifacts", "cache_clean",
                       "migrate_scripts", "keyword_scripts", "reinstall"):
            allowed, reason = can_run_remediation(action, interactive=False)
            self.assertTrue(allowed, msg=action)
            self.assertFalse(requires_confirmation(action), msg=action)

    def test_unknown_action_is_rejected(self) -> None:
        allowed, reason = can_run_remediation(
            action="unknown_action",
            interactive=True,
        )
        self.assertFalse(allowed)
        self.assertIn("unknown", reason)
        self.assertFalse(requires_confirmation("unknown_action"))

    def test_fixed_command_actions_resolve_to_aliases(self) -> None:
        self.assertEqual(alias_for("prisma_generate"), "prisma-generate")
        self.assertEqual(alias_for("clean_artifacts"), "ycln")
        self.assertEqual(alias_for("deep_clean"), "ffyc")
        self.assertIsNone(alias_for("migrate_scripts"))
        self.assertIsNone(alias_for("unknown_action"))

    def test_only_deep_clean_is_destructive(self) -> None:
        destructive = [a for a, r in REMEDIATION_POLICY.items()
                       if r.destructive]
        self.assertEqual(destructive, ["deep_clean"])


if __name__ == "__main__":
    unittest.main()
